from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import select

from sieve_alchemy.filters import NestedFilter
from sieve_alchemy.schema import describe_model

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy import Select
    from sqlalchemy.orm import Session
    from typing_extensions import Self

    from sieve_alchemy.config import FilterConfig
    from sieve_alchemy.schema import FieldDeclaration, GenericRelation


class FilterableMixin:
    """Mixin declaring the filter schema of a model.

    Example:
        .. code-block:: python

            class Post(FilterableMixin, Base):
                __tablename__ = "post"
                __filter_fields__ = ["title", {"status": ["$eq", "$in"]}, "author"]
                __filter_aliases__ = {"headline": "title"}

                id: Mapped[int] = mapped_column(primary_key=True)
                title: Mapped[str]
                status: Mapped[str]
                author_id: Mapped[int] = mapped_column(ForeignKey("user.id"))
                author: Mapped[User] = relationship()

    A model does not need the mixin to be filtered; the declarations are read from
    any mapped class. Models without ``__filter_fields__`` expose every column,
    relationship and generic relation.
    """

    __filter_fields__: ClassVar[FieldDeclaration | None] = None
    """Filterable public field names, each optionally restricted to a list of operator tokens."""
    __filter_aliases__: ClassVar[Mapping[str, str] | None] = None
    """Public field name to attribute name."""
    __generic_relations__: ClassVar[Mapping[str, GenericRelation] | None] = None
    """Polymorphic relations keyed by public name."""

    @classmethod
    def filterable_fields(cls) -> list[str]:
        """Return the public field names accepted in filter requests."""
        return describe_model(cls).available_fields()

    @classmethod
    def filter_statement(
        cls,
        filters: Mapping[str, Any],
        statement: Select[tuple[Self]] | None = None,
        session: Session | None = None,
        config: FilterConfig | None = None,
    ) -> Select[tuple[Self]]:
        """Build a ``SELECT`` of this model restricted by a nested filter request.

        Args:
            filters: The filter request.
            statement: Statement to extend. Defaults to ``select(cls)``.
            session: Session used to discover the type markers of generic relations.
            config: Resolution configuration.

        Returns:
            Select[tuple[Self]]: The filtered statement.
        """
        nested = NestedFilter(filters, session=session) if config is None else NestedFilter(filters, session, config)
        return nested.append_to_statement(select(cls) if statement is None else statement, cls)
