from dataclasses import dataclass, field

from sieve_alchemy.registry import OperatorRegistry, default_registry

__all__ = ("FilterConfig",)


@dataclass
class FilterConfig:
    """Nested filter resolution configuration."""

    silent: bool = False
    """When ``True``, invalid fields and operators are skipped instead of raising a
    :class:`~sieve_alchemy.exceptions.FilterValidationError`."""
    registry: OperatorRegistry = field(default_factory=lambda: default_registry)
    """Registry used to recognise operator tokens and look up their strategies."""
