from sieve_alchemy.mixins.filterable import FilterableMixin

__all__ = ("FilterableMixin",)
