from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

import pytest
from sqlalchemy import ColumnElement

from sieve_alchemy.exceptions import ImproperConfigurationError
from sieve_alchemy.operators import DEFAULT_STRATEGIES, EqualOperator, OperatorStrategy, ValueComparisonStrategy
from sieve_alchemy.registry import OperatorRegistry, default_registry

pytestmark = pytest.mark.unit


@dataclass
class LikeOperator(OperatorStrategy):
    operator: ClassVar[str] = "$like"

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        return self.get_attribute(model).like(self.values[0])


@dataclass
class NamelessOperator(OperatorStrategy):
    def get_clause(self, model: Any) -> ColumnElement[bool]:
        return self.get_attribute(model).is_(None)


def test_default_registry_holds_every_builtin_strategy() -> None:
    assert len(default_registry) == len(DEFAULT_STRATEGIES)
    for strategy in DEFAULT_STRATEGIES:
        assert default_registry.resolve(strategy.operator) is strategy


def test_register_and_resolve() -> None:
    registry = OperatorRegistry()
    registry.register(LikeOperator)
    assert "$like" in registry
    assert registry.resolve("$like") is LikeOperator
    assert registry.get_strategy("$like") is LikeOperator
    assert registry.known_tokens() == frozenset({"$like"})


def test_register_under_custom_token() -> None:
    registry = OperatorRegistry()
    registry.register(EqualOperator, token="$is")
    assert registry.resolve("$is") is EqualOperator
    assert "$eq" not in registry


def test_resolve_unknown_token() -> None:
    registry = OperatorRegistry()
    assert registry.resolve("$nope") is None
    assert 5 not in registry
    with pytest.raises(ImproperConfigurationError, match="No operator strategy"):
        registry.get_strategy("$nope")


def test_duplicate_token_is_rejected() -> None:
    registry = OperatorRegistry([EqualOperator])
    with pytest.raises(ImproperConfigurationError, match="already registered"):
        registry.register(EqualOperator)
    registry.register(LikeOperator, token="$eq", replace=True)
    assert registry.resolve("$eq") is LikeOperator


@pytest.mark.parametrize("strategy", [object, str, OperatorStrategy, ValueComparisonStrategy])
def test_invalid_strategies_are_rejected(strategy: Any) -> None:
    with pytest.raises(ImproperConfigurationError):
        OperatorRegistry().register(strategy)


def test_strategy_without_token_is_rejected() -> None:
    with pytest.raises(ImproperConfigurationError, match="does not declare an operator token"):
        OperatorRegistry().register(NamelessOperator)


def test_unregister_and_copy() -> None:
    registry = default_registry.copy()
    registry.unregister("$eq")
    registry.unregister("$unknown")
    assert "$eq" not in registry
    assert "$eq" in default_registry
    assert set(registry) == set(default_registry) - {"$eq"}
