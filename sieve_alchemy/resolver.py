"""Recursive resolution of nested filter requests.

A filter request maps field names to operator expressions, for example::

    {"author": {"company": {"name": {"$eq": "Acme"}}}}

Keys are either operator tokens registered in the :class:`~sieve_alchemy.registry.OperatorRegistry`
or public field names declared by the model. The resolver walks the request, validates
every field and operator against the model's filter schema, and turns each terminal
``{operator: values}`` pair into a predicate. Relations traversed on the way become
correlated ``EXISTS`` scopes wrapped around that predicate, innermost relation first.

Validation failures are typed (:mod:`sieve_alchemy.exceptions`). Each recursive step is
a ``safe`` boundary: in silent mode a failing field is skipped and its siblings are still
resolved, otherwise the error aborts the whole :meth:`FilterResolver.apply` call. Predicates
appended before the failure stay on the query.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from sqlalchemy import and_, or_

from sieve_alchemy.config import FilterConfig
from sieve_alchemy.exceptions import (
    FieldNotSupportedError,
    FilterValidationError,
    NoOperatorMatchError,
    OperatorNotSupportedError,
)
from sieve_alchemy.schema import Descriptor, concrete_types_for, describe_model, get_generic_relation, has_attribute

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from sieve_alchemy.query import FilterQuery

__all__ = (
    "LOGICAL_OPERATORS",
    "FilterResolver",
    "OperatorFound",
    "OperatorLookup",
    "OperatorNotFound",
    "ResolutionContext",
    "find_operator",
)

logger = logging.getLogger("sieve_alchemy")

Predicate = Callable[["FilterQuery"], Any]

LOGICAL_OPERATORS: "dict[str, Callable[..., ColumnElement[bool]]]" = {"$or": or_, "$and": and_}
"""Group keys combining a list of filter requests."""


@dataclass(frozen=True)
class OperatorFound:
    token: str
    depth: int
    """Nesting depth below the inspected value at which the token appeared."""


@dataclass(frozen=True)
class OperatorNotFound:
    pass


OperatorLookup = Union[OperatorFound, OperatorNotFound]


def find_operator(value: Any, known_tokens: "frozenset[str]") -> OperatorLookup:
    """Search a filter expression for an operator token.

    Follows the first key of each mapping (or the first item of each list) until a
    known token is met or the expression runs out.
    """
    current = value
    depth = 0
    while True:
        if isinstance(current, Mapping) and current:
            key = next(iter(current))
            if key in known_tokens:
                return OperatorFound(key, depth)
            current = current[key]
        elif isinstance(current, (list, tuple)) and current:
            current = current[0]
        else:
            return OperatorNotFound()
        depth += 1


@dataclass(frozen=True)
class ResolutionContext:
    """Resolver state for one step of the descent.

    ``path`` holds the attribute names traversed so far (relations, then the terminal
    column) and ``descriptor`` is the schema of the model declaring ``path[-1]``.
    Every step builds a new context, so nothing needs to be restored on the way out.
    """

    descriptor: Descriptor
    path: "tuple[str, ...]" = ()

    def owner(self) -> Optional[Descriptor]:
        """Descriptor of the model declaring the next field, swapped in through ``path[-1]``."""
        if not self.path:
            return self.descriptor
        return self.descriptor.relation_target(self.path[-1])

    def enter(self, descriptor: Descriptor, attribute: str) -> "ResolutionContext":
        return ResolutionContext(descriptor, (*self.path, attribute))


class FilterResolver:
    """Resolves filter requests against one root model.

    The resolver holds no per-call state; a single instance may be shared.

    Args:
        model: The mapped class the filtered statement selects from.
        config: Resolution configuration. Defaults to :class:`~sieve_alchemy.config.FilterConfig`.
    """

    def __init__(self, model: "type[Any]", config: Optional[FilterConfig] = None) -> None:
        self.model = model
        self.config = config if config is not None else FilterConfig()
        self.registry = self.config.registry
        self.descriptor = describe_model(model)

    def apply(self, query: "FilterQuery", field: str, value: Any) -> None:
        """Apply the filter ``{field: value}`` to ``query``.

        Raises:
            FilterValidationError: When the request is invalid and silent mode is off.
        """
        if field in LOGICAL_OPERATORS:
            self._safe(self._apply_group, query, field, value)
            return
        if not self._safe(self._validate, field, value):
            return
        self._safe(self._filter, query, ResolutionContext(self.descriptor), field, value)

    def apply_all(self, query: "FilterQuery", filters: "Mapping[str, Any]") -> None:
        """Apply every top-level field of a filter request, in order."""
        for field, value in filters.items():
            self.apply(query, field, value)

    def _safe(self, func: "Callable[..., Any]", *args: Any) -> bool:
        try:
            func(*args)
        except FilterValidationError as exc:
            if self.config.silent:
                logger.debug(
                    "Skipping invalid filter %r on %s: %s",
                    getattr(exc, "field", None),
                    getattr(exc, "model", None) or self.descriptor.name,
                    exc,
                )
                return False
            raise
        return True

    def _validate(self, field: str, value: Any) -> None:
        if field not in self.registry and not self.descriptor.is_filterable(field):
            raise FieldNotSupportedError(field, self.descriptor.name, self.descriptor.available_fields())
        known = self.registry.known_tokens()
        if isinstance(find_operator({field: value}, known), OperatorNotFound):
            raise NoOperatorMatchError(known)

    def _filter(self, query: "FilterQuery", context: ResolutionContext, field: str, value: Any) -> None:
        if field in self.registry:
            self._safe(self._apply_operator, query, context, field, value)
        else:
            self._apply_field(query, context, field, value)

    def _apply_field(self, query: "FilterQuery", context: ResolutionContext, field: str, value: Any) -> None:
        if not isinstance(value, Mapping) or not value:
            raise NoOperatorMatchError(self.registry.known_tokens())
        for sub_field, sub_value in value.items():
            self._safe(self._descend, query, context, field, sub_field, sub_value)

    def _descend(
        self, query: "FilterQuery", context: ResolutionContext, field: str, sub_field: str, sub_value: Any
    ) -> None:
        descriptor = context.owner()
        if descriptor is None:
            # the previous path entry is a column, which only accepts operators
            raise NoOperatorMatchError(self.registry.known_tokens())
        if not descriptor.is_filterable(field):
            raise FieldNotSupportedError(field, descriptor.name, descriptor.available_fields())
        attribute = descriptor.column_for(field)
        if sub_field in self.registry:
            allowed = descriptor.allowed_operators(field)
            if allowed is not None and sub_field not in allowed:
                raise OperatorNotSupportedError(field, sub_field, allowed, model=descriptor.name)
            target = descriptor.relation_target(attribute)
            if target is not None:
                # relations only accept fields of the related model
                raise FieldNotSupportedError(sub_field, target.name, target.available_fields())
        self._filter(query, context.enter(descriptor, attribute), sub_field, sub_value)

    def _apply_operator(self, query: "FilterQuery", context: ResolutionContext, token: str, value: Any) -> None:
        if not context.path:
            raise FieldNotSupportedError(token, self.descriptor.name, self.descriptor.available_fields())
        *relations, column = context.path
        strategy = self.registry.get_strategy(token)(column, _as_values(value))
        self._apply_relations(query, tuple(relations), column, strategy)

    def _apply_relations(
        self, query: "FilterQuery", relations: "tuple[str, ...]", column: str, predicate: Predicate
    ) -> None:
        hops = (*relations, column)
        for index in reversed(range(len(relations))):
            predicate = self._wrap_relation(relations[index], hops[index + 1], predicate)
        predicate(query)

    def _wrap_relation(self, relation: str, next_hop: str, inner: Predicate) -> Predicate:
        def scoped(query: "FilterQuery") -> None:
            if get_generic_relation(query.model, relation) is not None:
                types = [
                    concrete
                    for concrete in concrete_types_for(query, relation)
                    if has_attribute(concrete.model, next_hop)
                ]
                if types:
                    query.where_has_morph(relation, types, inner)
                return

            def constrain(sub: "FilterQuery") -> None:
                if not has_attribute(sub.model, next_hop):
                    descriptor = describe_model(sub.model)
                    raise FieldNotSupportedError(next_hop, descriptor.name, descriptor.available_fields())
                inner(sub)

            query.where_has(relation, constrain)

        return scoped

    def _apply_group(self, query: "FilterQuery", token: str, value: Any) -> None:
        if not isinstance(value, (list, tuple)) or not value:
            raise NoOperatorMatchError(self.registry.known_tokens())
        members: list[ColumnElement[bool]] = []
        for request in value:
            self._safe(self._apply_member, query.nested(query.model), request, members)
        if members:
            query.where(LOGICAL_OPERATORS[token](*members))

    def _apply_member(
        self, scratch: "FilterQuery", request: Any, members: "list[ColumnElement[bool]]"
    ) -> None:
        if not isinstance(request, Mapping) or not request:
            raise NoOperatorMatchError(self.registry.known_tokens())
        self.apply_all(scratch, request)
        if scratch.criteria:
            members.append(and_(*scratch.criteria))


def _as_values(value: Any) -> "list[Any]":
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return list(value)
    return [value]
