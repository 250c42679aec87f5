from __future__ import annotations

import json
from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from sieve_alchemy.cli import add_filter_commands, get_sieve_group
from sieve_alchemy.operators import EqualOperator
from sieve_alchemy.registry import OperatorRegistry

if TYPE_CHECKING:
    from click import Group

pytestmark = pytest.mark.unit

equality_only = OperatorRegistry([EqualOperator])


@pytest.fixture
def cli_runner() -> Generator[CliRunner, None, None]:
    """Create a Click CLI test runner."""
    yield CliRunner()


@pytest.fixture
def sieve_cli() -> Generator[Group, None, None]:
    """Create the sieve CLI group."""
    yield add_filter_commands(get_sieve_group())


def test_list_operators(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(sieve_cli, ["operators"])
    assert result.exit_code == 0
    assert "$eq" in result.output
    assert "$containsc" in result.output


def test_list_operators_from_custom_registry(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(sieve_cli, ["--registry", "tests.unit.test_cli:equality_only", "operators"])
    assert result.exit_code == 0
    assert "$eq" in result.output
    assert "$between" not in result.output


def test_invalid_registry(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(sieve_cli, ["--registry", "tests.unit.test_cli:pytestmark", "operators"])
    assert result.exit_code == 1
    assert "is not an OperatorRegistry" in result.output


def test_list_fields(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(sieve_cli, ["fields", "tests.fixtures.models:Post"])
    assert result.exit_code == 0
    assert "summary" in result.output
    assert "User" in result.output
    assert "password_hash" not in result.output


def test_list_fields_of_unknown_model(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(sieve_cli, ["fields", "tests.fixtures.models:Missing"])
    assert result.exit_code == 1
    assert "Error loading model" in result.output


def test_compile_json_filters(cli_runner: CliRunner, sieve_cli: Group) -> None:
    filters = json.dumps({"author": {"name": {"$eq": "Ada"}}})
    result = cli_runner.invoke(sieve_cli, ["compile", "tests.fixtures.models:Post", "--filters", filters])
    assert result.exit_code == 0
    assert "EXISTS" in result.output
    assert "user_account.name = 'Ada'" in result.output


def test_compile_query_string(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(
        sieve_cli,
        ["compile", "tests.fixtures.models:Post", "--query", "filters[title][$eq]=Hi", "--dialect", "postgresql"],
    )
    assert result.exit_code == 0
    assert "post.title = 'Hi'" in result.output


def test_compile_invalid_field(cli_runner: CliRunner, sieve_cli: Group) -> None:
    filters = json.dumps({"password": {"$eq": "x"}})
    result = cli_runner.invoke(sieve_cli, ["compile", "tests.fixtures.models:Post", "--filters", filters])
    assert result.exit_code == 1
    assert "FieldNotSupportedError" in result.output


def test_compile_invalid_field_in_silent_mode(cli_runner: CliRunner, sieve_cli: Group) -> None:
    filters = json.dumps({"password": {"$eq": "x"}})
    result = cli_runner.invoke(sieve_cli, ["compile", "tests.fixtures.models:Post", "--filters", filters, "--silent"])
    assert result.exit_code == 0
    assert "WHERE" not in result.output


@pytest.mark.parametrize(
    "args",
    [
        [],
        ["--filters", "{}", "--query", "filters[id][$eq]=1"],
    ],
)
def test_compile_requires_exactly_one_input(cli_runner: CliRunner, sieve_cli: Group, args: list[str]) -> None:
    result = cli_runner.invoke(sieve_cli, ["compile", "tests.fixtures.models:Post", *args])
    assert result.exit_code == 2
    assert "Provide exactly one of --filters or --query." in result.output


@pytest.mark.parametrize("filters", ["{not json", "[1, 2]"])
def test_compile_rejects_bad_json(cli_runner: CliRunner, sieve_cli: Group, filters: str) -> None:
    result = cli_runner.invoke(sieve_cli, ["compile", "tests.fixtures.models:Post", "--filters", filters])
    assert result.exit_code == 2


def test_compile_unknown_dialect(cli_runner: CliRunner, sieve_cli: Group) -> None:
    result = cli_runner.invoke(
        sieve_cli, ["compile", "tests.fixtures.models:Post", "--filters", "{}", "--dialect", "nosuchdb"]
    )
    assert result.exit_code == 1
    assert "Unknown dialect: nosuchdb" in result.output
