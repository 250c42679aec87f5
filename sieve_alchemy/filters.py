"""Statement filters built from nested filter requests.

:class:`NestedFilter` is the entry point most applications use: it wraps a filter
request, resolves it against a model and appends the resulting predicates to a
SQLAlchemy statement.

Example:
    .. code-block:: python

        from sqlalchemy import select

        from sieve_alchemy.filters import NestedFilter

        nested = NestedFilter({"author": {"name": {"$startsWith": "Ada"}}})
        statement = nested.append_to_statement(select(Post), Post)

Note:
    Filters implement the :class:`StatementFilter` ABC and can be applied to ``SELECT``,
    ``UPDATE`` and ``DELETE`` statements alike.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Union, cast

from sqlalchemy import Delete, Select, Update
from sqlalchemy.sql.dml import ReturningDelete, ReturningUpdate
from typing_extensions import TypeAlias, TypeVar

from sieve_alchemy.config import FilterConfig
from sieve_alchemy.query import FilterQuery
from sieve_alchemy.resolver import FilterResolver

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

__all__ = (
    "FilterRequest",
    "NestedFilter",
    "StatementFilter",
    "StatementTypeT",
    "apply_filters",
)

FilterRequest: TypeAlias = Mapping[str, Any]
"""A nested mapping of field names, relation names and operator tokens to values."""

StatementTypeT = TypeVar(
    "StatementTypeT",
    bound=Union[
        ReturningDelete[tuple[Any]], ReturningUpdate[tuple[Any]], Select[tuple[Any]], Select[Any], Update, Delete
    ],
)


class StatementFilter(ABC):
    """Abstract base class for SQLAlchemy statement filters.

    Each implementation appends its filtering logic to an existing statement and
    returns the new statement.
    """

    @abstractmethod
    def append_to_statement(self, statement: StatementTypeT, model: "type[Any]") -> StatementTypeT:
        """Append filter conditions to a SQLAlchemy statement.

        Args:
            statement: The SQLAlchemy statement to modify
            model: The SQLAlchemy model class the statement filters

        Returns:
            StatementTypeT: Modified SQLAlchemy statement with filter conditions applied
        """
        return statement


@dataclass
class NestedFilter(StatementFilter):
    """Resolve a nested filter request into predicates on a statement.

    Predicates across relations become correlated ``EXISTS`` sub-queries. With
    ``config.silent`` unset, the first invalid field raises a
    :class:`~sieve_alchemy.exceptions.FilterValidationError`.
    """

    filters: FilterRequest
    """The filter request, usually parsed from an untrusted source."""
    session: "Optional[Session]" = None
    """Session used to discover the type markers of generic relations."""
    config: FilterConfig = field(default_factory=FilterConfig)
    """Resolution configuration."""

    def to_query(self, statement: Any, model: "type[Any]") -> FilterQuery:
        """Resolve the request into a query handle wrapping ``statement``."""
        query = FilterQuery(model, statement=statement, session=self.session)
        FilterResolver(model, self.config).apply_all(query, self.filters)
        return query

    def append_to_statement(self, statement: StatementTypeT, model: "type[Any]") -> StatementTypeT:
        """Apply the filter request to ``statement``.

        Args:
            statement: The SQLAlchemy statement to modify
            model: The SQLAlchemy model class the filter request refers to

        Returns:
            StatementTypeT: Modified statement with every resolved predicate applied

        Raises:
            FilterValidationError: If the request is invalid and silent mode is off.
        """
        return cast("StatementTypeT", self.to_query(statement, model).statement)


def apply_filters(
    statement: StatementTypeT,
    model: "type[Any]",
    filters: FilterRequest,
    session: "Optional[Session]" = None,
    config: Optional[FilterConfig] = None,
) -> StatementTypeT:
    """Apply a nested filter request to ``statement``.

    Shortcut for ``NestedFilter(filters, session, config).append_to_statement(statement, model)``.
    """
    nested = NestedFilter(filters, session=session, config=config if config is not None else FilterConfig())
    return nested.append_to_statement(statement, model)
