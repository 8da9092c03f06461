"""
GeoCanvas - Centralized tolerance configuration
===============================================

All numeric thresholds of the construction core in one place.

Tolerance philosophy:
- Hit-testing: radii in screen pixels, divided by the view zoom at query time
- Resolution: 1e-4 world units damps update jitter, it is not a correctness bound
- Root finding: secant iterations are cheap, a loose acceptance keeps drags stable

Usage:
    from config.tolerances import Tolerances

    radius = Tolerances.HIT_POINT_PX / zoom

    # or via the convenience functions
    from config.tolerances import hit_radius
    radius = hit_radius(Tolerances.HIT_POINT_PX, zoom)
"""


class Tolerances:
    """
    Central tolerance constants for GeoCanvas.

    Categories:
    - HIT_*: pointer proximity radii (screen pixels)
    - RESOLVE_*: constraint resolution thresholds (world units)
    - ROOT_*: secant root finder settings (math units)
    - GRID_*/POLYGON_*/ANIMATION_*: construction defaults
    """

    # =========================================================================
    # Hit-testing (screen pixels, divided by zoom)
    # =========================================================================

    # Point pick radius while constructing
    HIT_POINT_PX = 20

    # Point pick radius with the select tool (tighter, curves get a chance)
    HIT_POINT_SELECT_PX = 15

    # Segment / line / ray perpendicular distance
    HIT_LINEAR_PX = 12

    # |dist - radius| for circles and arcs
    HIT_CIRCLE_PX = 10

    # Polygon edge distance, checked before the inside test
    HIT_POLYGON_EDGE_PX = 10

    # Vertical distance to a function graph
    HIT_GRAPH_PX = 20

    # Distance to the coordinate axes
    HIT_AXIS_PX = 12

    # Normalized ellipse equation |value - 1|
    HIT_ELLIPSE_BAND = 0.2

    # Angle marker ring (world units, not scaled)
    HIT_ANGLE_MIN = 10
    HIT_ANGLE_MAX = 40

    # =========================================================================
    # Constraint resolution (world units)
    # =========================================================================

    # Moves smaller than this are not written back
    RESOLVE_UPDATE_EPSILON = 1e-4

    # |det| below this means parallel lines
    RESOLVE_PARALLEL_DET = 1e-9

    # Half length of a constrained (perpendicular/parallel) line
    RESOLVE_LARGE_EXTENT = 2000

    # =========================================================================
    # Secant root finder (math units)
    # =========================================================================

    ROOT_SEED_STEP = 0.1
    ROOT_MAX_ITER = 10
    ROOT_TOLERANCE = 1e-6

    # Residual accepted after the iteration budget is spent
    ROOT_LOOSE_TOLERANCE = 0.1

    # =========================================================================
    # Construction defaults
    # =========================================================================

    # World units per math unit
    GRID_SIZE = 50

    # Implicit cap on polygon vertices
    POLYGON_MAX_VERTICES = 64

    # Animation timer period (~60 Hz)
    ANIMATION_INTERVAL_MS = 16

    # Angles within this many degrees of 90 render as right angles
    RIGHT_ANGLE_TOLERANCE_DEG = 3

    # Function graph sampling for the render boundary
    GRAPH_SAMPLES = 400

    # =========================================================================
    # Numerical epsilons
    # =========================================================================

    # Avoids division by zero
    EPSILON_MATH = 1e-9


# =============================================================================
# Convenience functions
# =============================================================================

def hit_radius(pixels: float, zoom: float) -> float:
    """Converts a pixel radius to world units at the given zoom."""
    if zoom <= 0:
        zoom = 1.0
    return pixels / zoom


def update_epsilon() -> float:
    """Returns the jitter threshold for resolution writes."""
    return Tolerances.RESOLVE_UPDATE_EPSILON


# =============================================================================
# Validation (for debugging)
# =============================================================================

def validate_tolerances():
    """
    Checks that all tolerances have sensible values.
    Useful for tests and debugging.
    """
    issues = []

    if Tolerances.HIT_POINT_SELECT_PX > Tolerances.HIT_POINT_PX:
        issues.append(
            f"HIT_POINT_SELECT_PX ({Tolerances.HIT_POINT_SELECT_PX}) larger than "
            f"HIT_POINT_PX ({Tolerances.HIT_POINT_PX})"
        )

    if Tolerances.ROOT_TOLERANCE >= Tolerances.ROOT_LOOSE_TOLERANCE:
        issues.append("ROOT_TOLERANCE must be stricter than ROOT_LOOSE_TOLERANCE")

    if Tolerances.GRID_SIZE <= 0:
        issues.append(f"GRID_SIZE must be positive: {Tolerances.GRID_SIZE}")

    return issues


_validation_issues = validate_tolerances()
if _validation_issues:
    from loguru import logger
    for issue in _validation_issues:
        logger.warning(f"Tolerance validation: {issue}")
