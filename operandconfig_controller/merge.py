"""Structural merge primitives for OperandConfig trees.

Every function here is pure: inputs are deep-copied on entry and a new tree
is returned, so a caller may fold many tenant trees into one accumulator
without two tenants ever sharing a sub-tree.
"""

import logging
from enum import Enum
from typing import AbstractSet, Any, Dict, List, Optional

from .config import COMPARABLE_KEYS, RESET_KEYS
from .tree import NodeKind, as_map, copy_tree, get_path, node_kind, tree_equal
from .utils import resource_comparison

logger = logging.getLogger(__name__)


class Extreme(str, Enum):
    """Which side of the comparator an extreme merge keeps."""
    MAX = "max"
    MIN = "min"


def _child_path(path: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else str(key)


def _warn_mismatch(path: str, default: Any, changed: Any) -> None:
    logger.warning(
        f"Skipping field {path or '<root>'}: expected {node_kind(default).value}, "
        f"got {node_kind(changed).value}"
    )


def prune_with_rules(tree: Dict[str, Any], rules: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Keep only the fields of ``tree`` that ``rules`` governs.

    A key without a rule is dropped. A map whose rule is not itself a map is
    dropped. Lists and scalars are kept whole once their key has a rule.

    Returns:
        A new, pruned tree
    """
    rules = rules or {}
    result: Dict[str, Any] = {}
    for key, value in tree.items():
        rule = rules.get(key)
        if rule is None:
            logger.debug(f"Dropping {key}: not covered by rules")
            continue
        if node_kind(value) is NodeKind.MAP:
            rule_map = as_map(rule)
            if rule_map is None:
                logger.debug(f"Dropping {key}: rule is not a map")
                continue
            result[key] = prune_with_rules(value, rule_map)
        else:
            result[key] = copy_tree(value)
    return result


def rule_filtered_merge(
    default: Any,
    changed: Any,
    rules: Optional[Dict[str, Any]],
    overwrite: bool,
    direct_assign: bool,
    comparable_keys: AbstractSet[str] = COMPARABLE_KEYS,
) -> Any:
    """
    Merge a tenant tree into a default tree under a rules document.

    Args:
        default: The current tree (canonical config or fold accumulator)
        changed: The tenant's requested tree
        rules: Rule tree for this level; only consulted when overwrite is False
        overwrite: If False, fields the rules do not govern are dropped
            from both sides before merging
        direct_assign: If True the tenant's scalar values win; if False
            comparable keys take the larger value and other scalars keep
            the default
        comparable_keys: Scalar keys resolved through the comparator

    Returns:
        A new merged tree
    """
    default = copy_tree(default)
    changed = copy_tree(changed)

    if not overwrite:
        rules_map = as_map(rules)
        if isinstance(changed, dict):
            changed = prune_with_rules(changed, rules_map)
        if isinstance(default, dict):
            default = prune_with_rules(default, rules_map)

    return _merge_value(None, default, changed, direct_assign, comparable_keys, "")


def _merge_value(
    key: Any,
    default: Any,
    changed: Any,
    direct_assign: bool,
    comparable_keys: AbstractSet[str],
    path: str,
) -> Any:
    if tree_equal(default, changed):
        return changed
    if changed is None:
        return default
    if default is None:
        return changed

    kind = node_kind(default)
    if kind is not node_kind(changed):
        _warn_mismatch(path, default, changed)
        return default

    if kind is NodeKind.MAP:
        result: Dict[str, Any] = {}
        for child_key, default_value in default.items():
            result[child_key] = _merge_value(
                child_key, default_value, changed.get(child_key),
                direct_assign, comparable_keys, _child_path(path, child_key),
            )
        for child_key, changed_value in changed.items():
            if child_key not in result:
                result[child_key] = changed_value
        return result

    if kind is NodeKind.LIST:
        merged: List[Any] = []
        for index, default_item in enumerate(default):
            if index < len(changed):
                merged.append(_merge_value(
                    key, default_item, changed[index],
                    direct_assign, comparable_keys, _child_path(path, index),
                ))
            else:
                # tenant did not address this slot
                merged.append(default_item)
        merged.extend(changed[len(default):])
        return merged

    if key in comparable_keys:
        if direct_assign:
            return changed
        larger, _ = resource_comparison(default, changed)
        return larger

    return changed if direct_assign else default


def extreme_merge(default: Any, changed: Any, extreme: Extreme) -> Any:
    """
    Merge two trees keeping the larger or smaller value of every scalar.

    Unlike :func:`rule_filtered_merge` there is no rule document and no
    allow-list: every scalar present on both sides goes through the
    comparator. Fields present only in ``changed`` are adopted.

    Args:
        default: The canonical tree
        changed: The tenant summary tree
        extreme: Extreme.MAX to grow, Extreme.MIN to shrink

    Returns:
        A new merged tree
    """
    return _extreme_value(copy_tree(default), copy_tree(changed), Extreme(extreme), "")


def _extreme_value(default: Any, changed: Any, extreme: Extreme, path: str) -> Any:
    if tree_equal(default, changed):
        return default
    if changed is None:
        return default
    if default is None:
        return changed

    kind = node_kind(default)
    if kind is not node_kind(changed):
        _warn_mismatch(path, default, changed)
        return default

    if kind is NodeKind.MAP:
        result = dict(default)
        for key, changed_value in changed.items():
            result[key] = _extreme_value(
                default.get(key), changed_value, extreme, _child_path(path, key)
            )
        return result

    if kind is NodeKind.LIST:
        merged = [
            _extreme_value(item, changed[index], extreme, _child_path(path, index))
            if index < len(changed) else item
            for index, item in enumerate(default)
        ]
        merged.extend(changed[len(default):])
        return merged

    larger, smaller = resource_comparison(default, changed)
    return larger if extreme is Extreme.MAX else smaller


def deep_merge(default: Any, changed: Any) -> Any:
    """
    Fill every field missing from ``changed`` with the value from ``default``.

    Fields ``changed`` already sets are never overwritten. Used to lay a
    size profile template under a tenant's explicit settings.
    """
    return _fill(copy_tree(default), copy_tree(changed))


def _fill(default: Any, changed: Any) -> Any:
    if changed is None:
        return default
    if default is None:
        return changed

    kind = node_kind(default)
    if kind is not node_kind(changed):
        return changed

    if kind is NodeKind.MAP:
        result = {key: _fill(value, changed.get(key)) for key, value in default.items()}
        for key, value in changed.items():
            if key not in result:
                result[key] = value
        return result

    if kind is NodeKind.LIST:
        merged = [
            _fill(item, changed[index]) if index < len(changed) else item
            for index, item in enumerate(default)
        ]
        merged.extend(changed[len(default):])
        return merged

    return changed


def reset_managed_fields(
    spec: Any,
    rules_for_kind: Optional[Dict[str, Any]],
    reset_keys: AbstractSet[str] = RESET_KEYS,
) -> Any:
    """
    Remove fields owned by an independent controller (e.g. an autoscaler).

    A field is removed when the rules govern it and its key is in
    ``reset_keys``. Recursion only follows paths where both the spec and
    the rule are maps.

    Returns:
        A new spec without the managed fields
    """
    spec_map = as_map(spec)
    if spec_map is None:
        return copy_tree(spec)
    return _reset(copy_tree(spec_map), as_map(rules_for_kind) or {}, reset_keys)


def _reset(spec: Dict[str, Any], rules: Dict[str, Any], reset_keys: AbstractSet[str]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in spec.items():
        rule = rules.get(key)
        if rule is None:
            result[key] = value
        elif node_kind(value) is NodeKind.MAP:
            rule_map = as_map(rule)
            result[key] = _reset(value, rule_map, reset_keys) if rule_map is not None else value
        elif key in reset_keys:
            logger.debug(f"Resetting managed field {key}")
        else:
            result[key] = value
    return result


def reset_managed_limits(resource: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop ``data.spec.resources.limits.cpu`` from a resource override.

    The CPU limit of an embedded resource belongs to the independent
    controller when one owns the operand.
    """
    resource = copy_tree(resource)
    limits = as_map(get_path(resource, "data", "spec", "resources", "limits"))
    if limits is not None and "cpu" in limits:
        logger.debug(f"Resetting cpu limit of {resource.get('kind')}/{resource.get('name')}")
        del limits["cpu"]
    return resource
