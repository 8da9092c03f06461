"""
GeoCanvas - Feature Flags
=========================

Feature flags allow incremental rollouts and simple rollback.
This file only holds active debug flags and experimental features.
"""

from typing import Dict

FEATURE_FLAGS: Dict[str, bool] = {
    # Debug modes
    "resolver_debug": False,  # Per-pass constraint resolution logging ([Resolver])
    "hit_test_debug": False,  # Hit-test candidates ([HitTest])
    "construction_debug": False,  # Tool state transitions ([Construction])

    # Resolution
    "strict_cycle_check": False,  # Raise ConstraintCycleError instead of reporting cycles

    # Construction
    "snap_to_graphs": True,  # Clicking near a graph creates an onFunctionGraph point
    "snap_to_axes": True,  # Clicking near an axis creates an onAxis point
}


def is_enabled(flag: str) -> bool:
    """
    Checks whether a feature flag is enabled.

    Args:
        flag: Name of the feature flag

    Returns:
        True if enabled, False if disabled or unknown
    """
    return FEATURE_FLAGS.get(flag, False)


def set_flag(flag: str, value: bool) -> None:
    """
    Sets a feature flag at runtime.
    Useful for tests and debugging.

    Args:
        flag: Name of the feature flag
        value: New value
    """
    FEATURE_FLAGS[flag] = value


def get_all_flags() -> Dict[str, bool]:
    """Returns all feature flags."""
    return FEATURE_FLAGS.copy()
