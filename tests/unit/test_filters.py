from __future__ import annotations

import pytest
from sqlalchemy import delete, select, update

from sieve_alchemy import FilterConfig, NestedFilter, apply_filters
from sieve_alchemy.exceptions import FieldNotSupportedError
from sieve_alchemy.filters import StatementFilter
from sieve_alchemy.operators import EqualOperator
from sieve_alchemy.registry import OperatorRegistry
from tests.fixtures.models import Comment, Post, User
from tests.helpers import compile_sql

pytestmark = pytest.mark.unit


def test_nested_filter_is_a_statement_filter() -> None:
    nested = NestedFilter({"title": {"$eq": "x"}})
    assert isinstance(nested, StatementFilter)
    assert nested.session is None
    assert nested.config.silent is False


def test_nested_filter_appends_to_select() -> None:
    statement = NestedFilter({"views": {"$gte": 10}}).append_to_statement(select(Post.id), Post)
    assert compile_sql(statement) == "SELECT post.id FROM post WHERE post.views >= 10"


def test_nested_filter_keeps_existing_criteria() -> None:
    statement = select(Post).where(Post.status == "draft")
    sql = compile_sql(NestedFilter({"views": {"$lt": 3}}).append_to_statement(statement, Post))
    assert sql.endswith("WHERE post.status = 'draft' AND post.views < 3")


def test_to_query_reports_predicates() -> None:
    query = NestedFilter({"title": {"$eq": "x"}, "author": {"name": {"$eq": "Ada"}}}).to_query(select(Post), Post)
    assert query.predicate_count == 2
    assert query.model is Post


def test_nested_filter_on_update_and_delete() -> None:
    updated = apply_filters(update(Post).values(status="archived"), Post, {"views": {"$gt": 10}})
    assert compile_sql(updated).endswith("WHERE post.views > 10")
    deleted = apply_filters(delete(Post), Post, {"status": {"$in": ["draft"]}})
    assert compile_sql(deleted) == "DELETE FROM post WHERE post.status IN ('draft')"


def test_apply_filters_strict_by_default() -> None:
    with pytest.raises(FieldNotSupportedError):
        apply_filters(select(Post), Post, {"password": {"$eq": "x"}})


def test_apply_filters_silent() -> None:
    statement = apply_filters(select(Post), Post, {"password": {"$eq": "x"}}, config=FilterConfig(silent=True))
    assert compile_sql(statement) == compile_sql(select(Post))


def test_custom_registry_limits_known_tokens() -> None:
    registry = OperatorRegistry()
    registry.register(EqualOperator)
    config = FilterConfig(registry=registry)
    assert "post.title = 'x'" in compile_sql(apply_filters(select(Post), Post, {"title": {"$eq": "x"}}, config=config))
    silent = FilterConfig(silent=True, registry=registry)
    assert "WHERE" not in compile_sql(apply_filters(select(Post), Post, {"views": {"$gt": 1}}, config=silent))


class TestFilterableMixin:
    def test_filterable_fields(self) -> None:
        assert Post.filterable_fields() == ["author", "id", "status", "summary", "tags", "title", "views"]
        assert "commentable" in Comment.filterable_fields()
        assert "password_hash" not in User.filterable_fields()

    def test_filter_statement_defaults_to_select_of_model(self) -> None:
        statement = Post.filter_statement({"title": {"$eq": "x"}})
        assert compile_sql(statement) == compile_sql(select(Post).where(Post.title == "x"))

    def test_filter_statement_extends_given_statement(self) -> None:
        statement = User.filter_statement({"name": {"$eq": "Ada"}}, statement=select(User.id))
        assert compile_sql(statement) == "SELECT user_account.id FROM user_account WHERE user_account.name = 'Ada'"

    def test_filter_statement_with_config(self) -> None:
        statement = User.filter_statement({"password_hash": {"$eq": "x"}}, config=FilterConfig(silent=True))
        assert "WHERE" not in compile_sql(statement)
