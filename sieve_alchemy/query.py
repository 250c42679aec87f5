"""Mutable query handle the resolver appends predicates to."""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, Optional, cast

from sqlalchemy import ColumnElement, Select, and_, distinct, exists, or_, select
from sqlalchemy import inspect as sa_inspect

from sieve_alchemy.exceptions import ImproperConfigurationError
from sieve_alchemy.schema import get_generic_relation

if TYPE_CHECKING:
    from sqlalchemy.orm import RelationshipProperty, Session

    from sieve_alchemy.schema import ConcreteType

__all__ = ("FilterQuery",)


class FilterQuery:
    """A SQLAlchemy statement together with the model it selects from.

    SQLAlchemy statements are immutable, so the handle keeps the latest generated
    statement and the list of predicates appended through it. Relation scopes create
    nested handles whose predicates end up inside a correlated ``EXISTS`` sub-query.

    Args:
        model: The mapped class the statement filters.
        statement: Statement to extend. Defaults to ``select(model)``.
        session: Session used to project distinct values (generic relation type markers).
    """

    def __init__(
        self, model: "type[Any]", statement: "Optional[Any]" = None, session: "Optional[Session]" = None
    ) -> None:
        self.model = model
        self.statement = select(model) if statement is None else statement
        self.session = session
        self.criteria: list[ColumnElement[bool]] = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model.__name__}, predicates={self.predicate_count})"

    @property
    def predicate_count(self) -> int:
        """Number of predicates appended through this handle."""
        return len(self.criteria)

    def nested(self, model: "type[Any]") -> "FilterQuery":
        """Create an empty handle for ``model`` sharing this handle's session."""
        return FilterQuery(model, session=self.session)

    def where(self, *clauses: ColumnElement[bool]) -> "FilterQuery":
        """Append parameterised predicates."""
        self.criteria.extend(clauses)
        self.statement = self.statement.where(*clauses)
        return self

    def _get_relationship_property(self, relationship: str) -> "RelationshipProperty[Any]":
        mapper = sa_inspect(self.model)
        if relationship not in mapper.relationships:
            msg = f"Relationship '{relationship}' not found on model {self.model.__name__}"
            raise ImproperConfigurationError(msg)
        return mapper.relationships[relationship]

    def where_has(self, relationship: str, callback: "Callable[[FilterQuery], Any]") -> "FilterQuery":
        """Keep rows with at least one related row matching the predicates ``callback`` adds.

        Args:
            relationship: Name of a relationship on :attr:`model`.
            callback: Receives a nested handle scoped to the related model.

        Returns:
            FilterQuery: This handle.

        Raises:
            ImproperConfigurationError: If ``relationship`` is not a relationship of :attr:`model`.
        """
        rel_prop = self._get_relationship_property(relationship)
        related_model = rel_prop.mapper.class_
        sub = self.nested(related_model)
        callback(sub)

        subquery: Select[Any] = select(1).select_from(related_model).where(*sub.criteria)
        if rel_prop.secondary is not None and rel_prop.secondaryjoin is not None:
            subquery = subquery.where(rel_prop.secondaryjoin)
        subquery = subquery.where(rel_prop.primaryjoin).correlate(self.model)
        return self.where(exists(subquery))

    def where_has_morph(
        self,
        relation: str,
        types: "Sequence[ConcreteType]",
        callback: "Callable[[FilterQuery], Any]",
    ) -> "FilterQuery":
        """Keep rows whose generic relation target, of one of ``types``, matches ``callback``.

        Each concrete type contributes ``type_marker = :marker AND EXISTS (...)`` and the
        branches are combined with ``OR``.

        Args:
            relation: Name of a generic relation declared on :attr:`model`.
            types: Concrete targets to consider.
            callback: Receives a nested handle scoped to each concrete model in turn.

        Returns:
            FilterQuery: This handle.

        Raises:
            ImproperConfigurationError: If ``relation`` is not a generic relation of :attr:`model`.
        """
        generic = get_generic_relation(self.model, relation)
        if generic is None:
            msg = f"Generic relation '{relation}' not found on model {self.model.__name__}"
            raise ImproperConfigurationError(msg)
        if not types:
            return self

        type_column = getattr(self.model, generic.type_field)
        id_column = getattr(self.model, generic.id_field)
        branches: list[ColumnElement[bool]] = []
        for concrete in types:
            sub = self.nested(concrete.model)
            callback(sub)
            target_key = getattr(concrete.model, generic.target_key)
            subquery = (
                select(1)
                .select_from(concrete.model)
                .where(target_key == id_column, *sub.criteria)
                .correlate(self.model)
            )
            branches.append(and_(type_column == concrete.marker, exists(subquery)))
        return self.where(cast("ColumnElement[bool]", or_(*branches)))

    def distinct_values(self, attribute: str) -> "list[Any]":
        """Project the distinct non-null values of ``attribute`` across :attr:`model`.

        Raises:
            ImproperConfigurationError: If the handle has no session.
        """
        if self.session is None:
            msg = f"A session is required to read distinct values of {self.model.__name__}.{attribute}"
            raise ImproperConfigurationError(msg)
        column = getattr(self.model, attribute)
        statement = select(distinct(column)).where(column.is_not(None)).order_by(column)
        return list(self.session.execute(statement).scalars())
