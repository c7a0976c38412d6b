"""
Utility functions for snapguard.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, MutableMapping, Sequence
from copy import deepcopy
from typing import Any, Union

MISSING: Any = object()


def to_number(value: Any) -> float:
    """
    Coerce a loosely typed snapshot value into a finite float.

    Snapshot fields are written by an upstream generator and may hold numbers,
    numeric strings, ``None`` or arbitrary junk. Anything that does not read as
    a finite number becomes ``0.0``.

    **Example:**
        ```python
        to_number("1500")   # 1500.0
        to_number(" 2.5 ")  # 2.5
        to_number(None)     # 0.0
        to_number("n/a")    # 0.0
        to_number(True)     # 1.0
        ```
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return 0.0
    return number if math.isfinite(number) else 0.0


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into ``[lower, upper]``."""
    return max(lower, min(upper, value))


Path = Union[str, Sequence[str]]


def split_path(path: Path) -> list[str]:
    """
    Normalize a path into its keys.

    Strings are dotted paths; tuples and lists are taken as keys verbatim so
    that names containing dots (entry names, for instance) stay intact. The
    empty path addresses the whole tree.
    """
    if isinstance(path, str):
        return [part for part in path.split(".") if part]
    return [str(part) for part in path if part != ""]


def join_path(*parts: str) -> str:
    return ".".join(part for part in parts if part)


def get_path(tree: Any, path: Path, default: Any = None) -> Any:
    """
    Read a nested value by dotted path.

    Returns ``default`` when any segment is missing or when an intermediate
    node is not a mapping.
    """
    node = tree
    for key in split_path(path):
        if not isinstance(node, Mapping) or key not in node:
            return default
        node = node[key]
    return node


def set_path(tree: MutableMapping, path: Path, value: Any) -> None:
    """
    Write a nested value by dotted path, creating intermediate mappings.

    Intermediate nodes that exist but are not mappings are replaced.
    """
    keys = split_path(path)
    if not keys:
        raise ValueError("cannot assign to the snapshot root")
    node = tree
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, MutableMapping):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value


def delete_path(tree: MutableMapping, path: Path) -> bool:
    """Remove the value at ``path``; returns whether anything was removed."""
    keys = split_path(path)
    if not keys:
        raise ValueError("cannot delete the snapshot root")
    parent = get_path(tree, keys[:-1], MISSING)
    if not isinstance(parent, MutableMapping) or keys[-1] not in parent:
        return False
    del parent[keys[-1]]
    return True


def clone_tree(tree: Any) -> Any:
    """Deep copy of a snapshot so callers never share mutable state."""
    return deepcopy(tree)
