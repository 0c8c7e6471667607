"""Utility functions for resource value parsing and comparison."""

import logging
from decimal import Decimal
from typing import Any, Optional, Tuple

from kubernetes.utils import parse_quantity

from .config import SIZE_PROFILES

logger = logging.getLogger(__name__)


def parse_resource_value(value: Any) -> Optional[Decimal]:
    """
    Parse a resource value to a Decimal.

    Examples:
        "100m" -> Decimal("0.1")
        "2Gi" -> Decimal("2147483648")
        3 -> Decimal("3")

    Returns:
        The parsed value, or None if ``value`` is not a quantity
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        try:
            parsed = parse_quantity(value.strip())
        except (ValueError, ArithmeticError):
            return None
    else:
        return None

    if parsed.is_nan() or parsed.is_infinite():
        return None
    return parsed


def profile_rank(value: Any) -> Optional[int]:
    """Position of a size profile name, smallest first, or None."""
    if not isinstance(value, str):
        return None
    try:
        return SIZE_PROFILES.index(value.strip().lower())
    except ValueError:
        return None


def resource_comparison(a: Any, b: Any) -> Tuple[Any, Any]:
    """
    Order two resource values.

    Booleans order False < True, size profiles by SIZE_PROFILES, and numbers
    and quantity strings ("500m", "2Gi", 3) by their parsed value. Ties and
    pairs that cannot be ordered return ``a`` on both sides, so the current
    value is kept.

    Returns:
        Tuple of (max, min), each one of the original values
    """
    if isinstance(a, bool) and isinstance(b, bool):
        if a == b:
            return a, a
        return (a, b) if a else (b, a)

    rank_a, rank_b = profile_rank(a), profile_rank(b)
    if rank_a is not None and rank_b is not None:
        if rank_a == rank_b:
            return a, a
        return (a, b) if rank_a > rank_b else (b, a)

    value_a, value_b = parse_resource_value(a), parse_resource_value(b)
    if value_a is not None and value_b is not None:
        if value_a == value_b:
            return a, a
        return (a, b) if value_a > value_b else (b, a)

    logger.debug(f"Cannot order {a!r} and {b!r}, keeping {a!r}")
    return a, a
