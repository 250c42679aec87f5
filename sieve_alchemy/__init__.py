from sieve_alchemy import config, exceptions, filters, mixins, operators, query, registry, resolver, schema, utils
from sieve_alchemy.__metadata__ import __version__
from sieve_alchemy.config import FilterConfig
from sieve_alchemy.filters import NestedFilter, apply_filters
from sieve_alchemy.query import FilterQuery
from sieve_alchemy.registry import OperatorRegistry, default_registry
from sieve_alchemy.resolver import FilterResolver
from sieve_alchemy.schema import GenericRelation

__all__ = (
    "FilterConfig",
    "FilterQuery",
    "FilterResolver",
    "GenericRelation",
    "NestedFilter",
    "OperatorRegistry",
    "__version__",
    "apply_filters",
    "config",
    "default_registry",
    "exceptions",
    "filters",
    "mixins",
    "operators",
    "query",
    "registry",
    "resolver",
    "schema",
    "utils",
)
