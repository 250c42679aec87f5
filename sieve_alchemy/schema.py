"""Filter schema introspection for SQLAlchemy models.

The schema facade answers the questions the resolver asks while it walks a filter
request: which fields a model exposes for filtering, which operators each field
accepts, and which model (or models, for a generic relation) a relation leads to.

Declarations are read from class attributes on the mapped class, documented on
:class:`~sieve_alchemy.mixins.FilterableMixin`:

- ``__filter_fields__``: the filterable public field names, optionally restricted
  to a set of operators. Defaults to every mapped column, relationship and generic
  relation.
- ``__filter_aliases__``: public field names mapped onto attribute names.
- ``__generic_relations__``: polymorphic relations stored as a type marker column
  and a target id column.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Union

from sqlalchemy import inspect as sa_inspect

from sieve_alchemy.exceptions import ImproperConfigurationError

if TYPE_CHECKING:
    from sieve_alchemy.query import FilterQuery

__all__ = (
    "ConcreteType",
    "Descriptor",
    "FieldDeclaration",
    "GenericRelation",
    "ModelDescriptor",
    "PolymorphicDescriptor",
    "allowed_operators",
    "concrete_types_for",
    "describe_model",
    "filterable_fields",
    "get_generic_relation",
    "has_attribute",
    "relation_target",
)

logger = logging.getLogger("sieve_alchemy")

OperatorDeclaration = Union[str, Sequence[str], None]
FieldDeclaration = Union[
    Sequence[Union[str, Mapping[str, OperatorDeclaration]]],
    Mapping[str, OperatorDeclaration],
]


@dataclass(frozen=True)
class GenericRelation:
    """A polymorphic many-to-one reference stored as a ``(type marker, id)`` column pair.

    Example:
        A comment attached to either a post or a video::

            class Comment(FilterableMixin, Base):
                commentable_type: Mapped[str]
                commentable_id: Mapped[int]

                __generic_relations__ = {
                    "commentable": GenericRelation(
                        type_field="commentable_type",
                        id_field="commentable_id",
                        targets={"post": "Post", "video": "Video"},
                    ),
                }
    """

    type_field: str
    """Attribute holding the type marker on the owning model."""
    id_field: str
    """Attribute holding the target's key on the owning model."""
    targets: "Mapping[Any, Union[type[Any], str]]"
    """Type marker to concrete model class, or its class name within the same registry."""
    target_key: str = "id"
    """Attribute on the concrete models that :attr:`id_field` refers to."""

    def resolve_targets(self, owner: "type[Any]") -> "dict[Any, type[Any]]":
        """Resolve every declared target to a mapped class.

        Raises:
            ImproperConfigurationError: If a target name is not mapped in ``owner``'s registry.
        """
        return {
            marker: _lookup_class(owner, target) if isinstance(target, str) else target
            for marker, target in self.targets.items()
        }


def _lookup_class(owner: "type[Any]", name: str) -> "type[Any]":
    for mapper in sa_inspect(owner).registry.mappers:
        class_ = mapper.class_
        if name in {class_.__name__, f"{class_.__module__}.{class_.__qualname__}"}:
            return class_
    msg = f"Generic relation target {name!r} of {owner.__name__} is not a mapped class"
    raise ImproperConfigurationError(msg)


def _operator_set(operators: OperatorDeclaration) -> "Optional[frozenset[str]]":
    if operators is None:
        return None
    if isinstance(operators, str):
        return frozenset({operators})
    return frozenset(operators)


def _parse_fields(declaration: FieldDeclaration) -> "dict[str, Optional[frozenset[str]]]":
    items = [declaration] if isinstance(declaration, Mapping) else declaration
    fields: dict[str, Optional[frozenset[str]]] = {}
    for item in items:
        if isinstance(item, str):
            fields[item] = None
        elif isinstance(item, Mapping):
            for name, operators in item.items():
                fields[name] = _operator_set(operators)
        else:
            msg = f"Invalid filter field declaration: {item!r}"
            raise ImproperConfigurationError(msg)
    return fields


def generic_relations(model: "type[Any]") -> "Mapping[str, GenericRelation]":
    return getattr(model, "__generic_relations__", None) or {}


def get_generic_relation(model: "type[Any]", name: str) -> Optional[GenericRelation]:
    """Return the generic relation declared on ``model`` under ``name``, if any."""
    return generic_relations(model).get(name)


def has_attribute(model: "type[Any]", name: str) -> bool:
    """Check whether ``model`` maps ``name``.

    Columns, relationships, hybrid properties and other ORM descriptors count, as do
    generic relations.
    """
    return name in sa_inspect(model).all_orm_descriptors or name in generic_relations(model)


def _default_fields(model: "type[Any]") -> "dict[str, Optional[frozenset[str]]]":
    mapper = sa_inspect(model)
    names = [*mapper.column_attrs.keys(), *mapper.relationships.keys(), *generic_relations(model)]
    return dict.fromkeys(names)


@dataclass(frozen=True, eq=False)
class ModelDescriptor:
    """Filter schema view of one mapped class."""

    model: "type[Any]"
    fields: "Mapping[str, Optional[frozenset[str]]]"
    """Public field name to allowed operators; ``None`` means unrestricted."""
    aliases: "Mapping[str, str]" = field(default_factory=dict)
    """Public field name to attribute name."""

    @property
    def name(self) -> str:
        return self.model.__name__

    @property
    def members(self) -> "tuple[ModelDescriptor, ...]":
        return (self,)

    def available_fields(self) -> "list[str]":
        return sorted(self.fields)

    def is_filterable(self, field: str) -> bool:
        return field in self.fields

    def allowed_operators(self, field: str) -> "Optional[frozenset[str]]":
        return self.fields.get(field)

    def column_for(self, field: str) -> str:
        """Translate a public field name into the attribute name it filters."""
        return self.aliases.get(field, field)

    def relation_target(self, attribute: str) -> "Optional[Descriptor]":
        """Describe the model(s) reached through ``attribute``.

        Returns:
            The related model's descriptor, a :class:`PolymorphicDescriptor` for a generic
            relation, or ``None`` when ``attribute`` is not a relation.
        """
        generic = get_generic_relation(self.model, attribute)
        if generic is not None:
            targets = dict.fromkeys(generic.resolve_targets(self.model).values())
            return PolymorphicDescriptor(attribute, tuple(describe_model(target) for target in targets))
        relationship = sa_inspect(self.model).relationships.get(attribute)
        if relationship is None:
            return None
        return describe_model(relationship.mapper.class_)


@dataclass(frozen=True)
class PolymorphicDescriptor:
    """Filter schema view of a relation whose target model varies per row.

    A field is filterable when any concrete member declares it, and the allowed
    operators are the union of what the members allow.
    """

    relation: str
    members: "tuple[ModelDescriptor, ...]"

    @property
    def name(self) -> str:
        return f"{self.relation}<{'|'.join(member.name for member in self.members)}>"

    def available_fields(self) -> "list[str]":
        return sorted({name for member in self.members for name in member.fields})

    def is_filterable(self, field: str) -> bool:
        return any(member.is_filterable(field) for member in self.members)

    def allowed_operators(self, field: str) -> "Optional[frozenset[str]]":
        declared = [member.allowed_operators(field) for member in self.members if member.is_filterable(field)]
        if not declared or any(operators is None for operators in declared):
            return None
        return frozenset().union(*declared)  # type: ignore[arg-type]

    def column_for(self, field: str) -> str:
        for member in self.members:
            if member.is_filterable(field):
                return member.column_for(field)
        return field

    def relation_target(self, attribute: str) -> "Optional[Descriptor]":
        targets = [target for member in self.members if (target := member.relation_target(attribute)) is not None]
        if not targets:
            return None
        if len(targets) == 1:
            return targets[0]
        members = dict.fromkeys(member for target in targets for member in target.members)
        return PolymorphicDescriptor(attribute, tuple(members))


Descriptor = Union[ModelDescriptor, PolymorphicDescriptor]


@lru_cache(maxsize=None)
def describe_model(model: "type[Any]") -> ModelDescriptor:
    """Build (once per class) the filter schema view of ``model``.

    Raises:
        ImproperConfigurationError: If ``__filter_fields__`` is malformed.
    """
    declaration = getattr(model, "__filter_fields__", None)
    fields = _parse_fields(declaration) if declaration is not None else _default_fields(model)
    aliases = dict(getattr(model, "__filter_aliases__", None) or {})
    for public, attribute in aliases.items():
        if attribute in fields and public not in fields:
            fields = {public if name == attribute else name: operators for name, operators in fields.items()}
    return ModelDescriptor(model=model, fields=fields, aliases=aliases)


def filterable_fields(model: "type[Any]") -> "list[str]":
    """Public field names ``model`` accepts in filter requests."""
    return describe_model(model).available_fields()


def allowed_operators(model: "type[Any]", field: str) -> "Optional[frozenset[str]]":
    """Operators allowed for ``field`` on ``model``; ``None`` when unrestricted."""
    return describe_model(model).allowed_operators(field)


def relation_target(model: "type[Any]", relation: str) -> "Optional[Descriptor]":
    """Descriptor of the model(s) reached through ``relation`` on ``model``."""
    return describe_model(model).relation_target(relation)


class ConcreteType(NamedTuple):
    """One concrete target of a generic relation."""

    marker: Any
    """Type marker value stored on the owning row."""
    model: "type[Any]"
    """Mapped class the marker resolves to."""


def concrete_types_for(query: "FilterQuery", relation: str) -> "list[ConcreteType]":
    """Enumerate the concrete targets of a generic relation on ``query.model``.

    The distinct type markers present in the owning table are read through the query's
    session. Without a session every declared target is returned.

    Raises:
        ImproperConfigurationError: If ``relation`` is not a generic relation of ``query.model``.
    """
    generic = get_generic_relation(query.model, relation)
    if generic is None:
        msg = f"{relation!r} is not a generic relation of {query.model.__name__}"
        raise ImproperConfigurationError(msg)
    targets = generic.resolve_targets(query.model)
    markers = query.distinct_values(generic.type_field) if query.session is not None else list(targets)
    concrete: list[ConcreteType] = []
    for marker in markers:
        target = targets.get(marker)
        if target is None:
            logger.debug("Ignoring unknown type marker %r on %s.%s", marker, query.model.__name__, relation)
            continue
        concrete.append(ConcreteType(marker, target))
    return concrete
