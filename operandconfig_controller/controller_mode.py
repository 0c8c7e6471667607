"""Resolution of which controller owns an operand's sizing fields."""

from typing import AbstractSet, Dict, Optional

from .config import (
    DEFAULT_CONTROLLER_MODE,
    INDEPENDENT_CONTROLLER_MODES,
    PROFILE_CONTROLLER_KEY,
)


def is_independent_mode(
    mode: Optional[str],
    independent_modes: AbstractSet[str] = INDEPENDENT_CONTROLLER_MODES,
) -> bool:
    """True if ``mode`` hands sizing to an external controller."""
    return mode in independent_modes


def merge_controller_modes(
    summary: Dict[str, str],
    incoming: Dict[str, str],
    independent_modes: AbstractSet[str] = INDEPENDENT_CONTROLLER_MODES,
) -> Dict[str, str]:
    """
    Fold one tenant's controller modes into the summary.

    An independent mode is sticky: once any tenant declares one for an
    operand, a default mode from another tenant never displaces it.

    Returns:
        A new summary map
    """
    merged = dict(summary)
    for operand, mode in incoming.items():
        if operand not in merged:
            merged[operand] = mode
        elif is_independent_mode(mode, independent_modes) and not is_independent_mode(
            merged[operand], independent_modes
        ):
            merged[operand] = mode
    return merged


def resolve_mode(modes: Dict[str, str], operand: str) -> str:
    """Mode for ``operand``, falling back to the tenant-wide profile controller."""
    if operand in modes:
        return modes[operand]
    return modes.get(PROFILE_CONTROLLER_KEY, DEFAULT_CONTROLLER_MODE)
