import pytest

from config.feature_flags import set_flag
from construction.geometry import Point, Segment
from construction.scene import Scene


# Global Feature Flag Defaults - Single Source of Truth for Test Isolation
# ========================================================================
# Every test starts from clean feature flags.
# Keep these defaults in sync with config/feature_flags.py.
FEATURE_FLAG_DEFAULTS = {
    # Debug modes
    "resolver_debug": False,
    "hit_test_debug": False,
    "construction_debug": False,

    # Resolution
    "strict_cycle_check": False,

    # Construction
    "snap_to_graphs": True,
    "snap_to_axes": True,
}


@pytest.fixture(autouse=True)
def _global_feature_flag_isolation():
    """
    Global feature flag isolation.

    Resets every flag before and after each test, so flag mutations in
    one test module never leak into another.
    """
    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)

    yield

    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)


@pytest.fixture(scope="module")
def qapp():
    """Qt application instance for timer / signal tests."""
    from PySide6.QtCore import QCoreApplication
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def scene():
    return Scene()


@pytest.fixture
def segment_scene():
    """A(0, 0) - B(100, 0) with one segment."""
    scene = Scene()
    a = scene.add(Point(0, 0, id="A", label="A"))
    b = scene.add(Point(100, 0, id="B", label="B"))
    scene.add(Segment(start_point_id=a.id, end_point_id=b.id, id="s1"))
    return scene
