"""Bracket notation query string parsing."""

import re
from collections.abc import Iterable, Mapping
from typing import Any, Union
from urllib.parse import parse_qsl

__all__ = ("parse_filter_params",)

_SEGMENT = re.compile(r"\[([^\[\]]*)\]")

QueryParams = Union[str, Mapping[str, Any], Iterable["tuple[str, Any]"]]


def _pairs(params: QueryParams) -> "list[tuple[str, Any]]":
    if isinstance(params, str):
        return parse_qsl(params.lstrip("?"), keep_blank_values=True)
    if isinstance(params, Mapping):
        pairs: list[tuple[str, Any]] = []
        for name, value in params.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((name, item) for item in value)
            else:
                pairs.append((name, value))
        return pairs
    return list(params)


def _segments(name: str, key: str) -> "list[str]":
    if not name.startswith(f"{key}["):
        return []
    rest = name[len(key) :]
    segments = _SEGMENT.findall(rest)
    if "".join(f"[{segment}]" for segment in segments) != rest:
        return []
    return segments


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {name: _listify(value) for name, value in node.items()}
    if converted and all(name.isdigit() for name in converted):
        return [converted[name] for name in sorted(converted, key=int)]
    return converted


def parse_filter_params(params: QueryParams, key: str = "filters") -> "dict[str, Any]":
    """Build a filter request from bracket notation query parameters.

    ``filters[author][name][$eq]=Ada`` becomes ``{"author": {"name": {"$eq": "Ada"}}}``.
    Empty brackets append to a list and numeric brackets index into one, so both
    ``filters[id][$in][]=1&filters[id][$in][]=2`` and ``filters[id][$in][0]=1&filters[id][$in][1]=2``
    yield ``{"id": {"$in": ["1", "2"]}}``. Values are kept as strings.

    Args:
        params: A raw query string, a mapping of parameter names to a value or list of
            values, or an iterable of ``(name, value)`` pairs.
        key: Name of the root parameter holding the filter request.

    Returns:
        dict[str, Any]: The filter request. Parameters outside ``key`` are ignored.
    """
    tree: dict[str, Any] = {}
    for name, value in _pairs(params):
        segments = _segments(name, key)
        if not segments or segments[0] == "":
            continue
        node = tree
        for index, segment in enumerate(segments):
            part = segment if segment != "" else str(len(node))
            if index == len(segments) - 1:
                node[part] = value
                break
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
    return {name: _listify(value) for name, value in tree.items()}
