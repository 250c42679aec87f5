from sieve_alchemy.utils import module_loader, query_string

__all__ = ("module_loader", "query_string")
