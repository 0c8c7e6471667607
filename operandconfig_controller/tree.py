"""Helpers for untyped configuration trees.

A config tree is whatever the Kubernetes dynamic client or ``yaml.safe_load``
hands back: dicts, lists and scalars nested to any depth. Code that walks a
tree classifies each node with :func:`node_kind` and reads children through
the ``as_*`` accessors, which return ``None`` on a type mismatch instead of
raising.
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Optional


class NodeKind(Enum):
    """Shape of a config tree node."""
    MAP = "map"
    LIST = "list"
    SCALAR = "scalar"


def node_kind(value: Any) -> NodeKind:
    """Classify a tree node. ``None`` counts as a scalar."""
    if isinstance(value, dict):
        return NodeKind.MAP
    if isinstance(value, list):
        return NodeKind.LIST
    return NodeKind.SCALAR


def as_map(value: Any) -> Optional[Dict[str, Any]]:
    """Return ``value`` if it is a map, else None."""
    return value if isinstance(value, dict) else None


def as_list(value: Any) -> Optional[List[Any]]:
    """Return ``value`` if it is a list, else None."""
    return value if isinstance(value, list) else None


def as_str(value: Any) -> str:
    """Return ``value`` if it is a string, else an empty string."""
    return value if isinstance(value, str) else ""


def get_path(tree: Any, *keys: str) -> Any:
    """
    Walk nested maps along ``keys``.

    Returns:
        The value at the path, or None if any step is missing or not a map
    """
    node = tree
    for key in keys:
        node_map = as_map(node)
        if node_map is None:
            return None
        node = node_map.get(key)
    return node


def copy_tree(value: Any) -> Any:
    """Return an owned deep copy of a tree."""
    return copy.deepcopy(value)


def _scalar_equal(a: Any, b: Any) -> bool:
    # True == 1 in Python; a boolean flag must not match a replica count
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


def tree_equal(a: Any, b: Any) -> bool:
    """
    Structural equality over config trees.

    Map keys are compared unordered, lists positionally, scalars exactly
    (booleans never equal numbers).
    """
    kind_a, kind_b = node_kind(a), node_kind(b)
    if kind_a is not kind_b:
        return False

    if kind_a is NodeKind.MAP:
        if a.keys() != b.keys():
            return False
        return all(tree_equal(a[key], b[key]) for key in a)

    if kind_a is NodeKind.LIST:
        if len(a) != len(b):
            return False
        return all(tree_equal(x, y) for x, y in zip(a, b))

    return _scalar_equal(a, b)
