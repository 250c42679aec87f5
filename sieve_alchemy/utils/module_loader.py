"""General utility functions for loading objects by dotted path."""

from importlib import import_module
from typing import Any

__all__ = ("import_string",)


def import_string(dotted_path: str) -> Any:
    """Import a module attribute from a dotted path.

    Both ``package.module.attribute`` and ``package.module:attribute`` are accepted.

    Args:
        dotted_path: Path to the attribute.

    Raises:
        ImportError: If the module cannot be imported or does not define the attribute.

    Returns:
        Any: The imported attribute.
    """
    if ":" in dotted_path:
        module_path, _, attribute = dotted_path.partition(":")
    else:
        module_path, _, attribute = dotted_path.rpartition(".")
    if not module_path or not attribute:
        msg = f"{dotted_path!r} doesn't look like a module path"
        raise ImportError(msg)
    module = import_module(module_path)
    obj: Any = module
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            msg = f"Module {module_path!r} does not define {attribute!r}"
            raise ImportError(msg) from e
    return obj
