"""
Constraint Resolver Tests

Intersections (closed form and root finding), axis / graph points,
rotations, constrained lines, resolution order and cycle handling.
"""

import math

import pytest

from config.feature_flags import set_flag
from construction import commands
from construction.constraints import (
    AXIS_X_ID, AXIS_Y_ID, IntersectionConstraint, LineConstraint, LineConstraintType,
    OnAxisConstraint, OnFunctionGraphConstraint, RotationConstraint,
)
from construction.dependency_graph import DependencyGraph, NODE_LINE, NODE_POINT
from construction.geometry import FunctionGraph, InfiniteLine, Point, Segment
from construction.scene import Scene
from construction.solver import ConstraintCycleError, ConstraintResolver, resolve_constraints
from construction.variables import Variable


def _crossing_segments(scene: Scene):
    """s1: (0,0)-(100,100), s2: (0,100)-(100,0)"""
    scene.add(Point(0, 0, id="A"))
    scene.add(Point(100, 100, id="B"))
    scene.add(Point(0, 100, id="C"))
    scene.add(Point(100, 0, id="D"))
    scene.add(Segment("A", "B", id="s1"))
    scene.add(Segment("C", "D", id="s2"))


# ============================================================================
# INTERSECTIONS
# ============================================================================

class TestLinearIntersection:

    def test_crossing_segments(self, scene):
        _crossing_segments(scene)
        p = scene.add(Point(0, 0, id="P", constraint=IntersectionConstraint("s1", "s2")))

        result = ConstraintResolver().resolve(scene)

        assert (p.x, p.y) == (pytest.approx(50.0), pytest.approx(50.0))
        assert "P" in result.updated

    def test_parallel_lines_leave_point_unchanged(self, scene):
        scene.add(Point(0, 0, id="A"))
        scene.add(Point(100, 0, id="B"))
        scene.add(Point(0, 50, id="C"))
        scene.add(Point(100, 50, id="D"))
        scene.add(Segment("A", "B", id="s1"))
        scene.add(Segment("C", "D", id="s2"))
        p = scene.add(Point(7, 7, id="P", constraint=IntersectionConstraint("s1", "s2")))

        result = ConstraintResolver().resolve(scene)

        assert (p.x, p.y) == (7, 7)
        assert "P" in result.unresolved

    def test_segment_with_x_axis(self, scene):
        scene.add(Point(0, -50, id="A"))
        scene.add(Point(100, 50, id="B"))
        scene.add(Segment("A", "B", id="s1"))
        p = scene.add(Point(0, 0, id="P", constraint=IntersectionConstraint("s1", AXIS_X_ID)))

        ConstraintResolver().resolve(scene)

        assert p.x == pytest.approx(50.0)
        assert p.y == pytest.approx(0.0, abs=1e-9)

    def test_follows_dragged_endpoint(self, scene):
        _crossing_segments(scene)
        scene.add(Point(0, 0, id="P", constraint=IntersectionConstraint("s1", "s2")))
        ConstraintResolver().resolve(scene)

        moved = commands.drag_entities(scene, ["D"], 0, 100)  # s2 becomes horizontal y=100

        assert moved.point("P").as_tuple() == (pytest.approx(100.0), pytest.approx(100.0))

    def test_missing_operand_is_unresolved(self, scene):
        scene.add(Point(3, 4, id="P", constraint=IntersectionConstraint("nope", "s2")))

        result = ConstraintResolver().resolve(scene)

        assert result.unresolved == ["P"]
        assert scene.point("P").as_tuple() == (3, 4)


class TestGraphIntersection:

    def test_graph_with_x_axis(self, scene):
        scene.add(FunctionGraph("x - 1", id="g"))
        p = scene.add(Point(25, 0, id="P", constraint=IntersectionConstraint("g", AXIS_X_ID)))

        ConstraintResolver().resolve(scene)

        assert p.x == pytest.approx(50.0, abs=1e-3)
        assert p.y == pytest.approx(0.0)

    def test_graph_with_y_axis(self, scene):
        scene.add(FunctionGraph("x + 2", id="g"))
        p = scene.add(Point(10, 10, id="P", constraint=IntersectionConstraint(AXIS_Y_ID, "g")))

        ConstraintResolver().resolve(scene)

        assert (p.x, p.y) == (pytest.approx(0.0), pytest.approx(-100.0))

    def test_two_graphs(self, scene):
        scene.add(FunctionGraph("x^2", id="g1"))
        scene.add(FunctionGraph("2", id="g2"))
        p = scene.add(Point(50, 0, id="P", constraint=IntersectionConstraint("g1", "g2")))

        ConstraintResolver().resolve(scene)

        assert p.x == pytest.approx(math.sqrt(2) * 50, abs=0.05)
        assert p.y == pytest.approx(-100.0, abs=0.5)

    def test_graph_with_segment(self, scene):
        scene.add(FunctionGraph("x^2", id="g"))
        scene.add(Point(-100, -50, id="A"))
        scene.add(Point(100, -50, id="B"))
        scene.add(Segment("A", "B", id="s1"))
        p = scene.add(Point(40, 0, id="P", constraint=IntersectionConstraint("g", "s1")))

        ConstraintResolver().resolve(scene)

        assert p.x == pytest.approx(50.0, abs=0.05)
        assert p.y == pytest.approx(-50.0, abs=0.05)

    def test_seed_keeps_branch(self, scene):
        scene.add(FunctionGraph("x^2", id="g1"))
        scene.add(FunctionGraph("2", id="g2"))
        p = scene.add(Point(-50, 0, id="P", constraint=IntersectionConstraint("g1", "g2")))

        ConstraintResolver().resolve(scene)

        assert p.x == pytest.approx(-math.sqrt(2) * 50, abs=0.05)

    def test_no_intersection_keeps_position(self, scene):
        scene.add(FunctionGraph("x^2 + 1", id="g"))
        p = scene.add(Point(12, 34, id="P", constraint=IntersectionConstraint("g", AXIS_X_ID)))

        result = ConstraintResolver().resolve(scene)

        assert (p.x, p.y) == (12, 34)
        assert "P" in result.unresolved


# ============================================================================
# AXIS / GRAPH POINTS
# ============================================================================

class TestPointConstraints:

    def test_on_x_axis_zeroes_y(self, scene):
        p = scene.add(Point(30, 20, constraint=OnAxisConstraint("x")))
        ConstraintResolver().resolve(scene)
        assert (p.x, p.y) == (30, 0)

    def test_on_y_axis_zeroes_x(self, scene):
        p = scene.add(Point(30, 20, constraint=OnAxisConstraint("y")))
        ConstraintResolver().resolve(scene)
        assert (p.x, p.y) == (0, 20)

    def test_invalid_axis(self):
        with pytest.raises(ValueError):
            OnAxisConstraint("z")

    def test_graph_point_from_parameter(self, scene):
        scene.add(FunctionGraph("x^2", id="g"))
        p = scene.add(Point(0, 0, constraint=OnFunctionGraphConstraint("g", 2.0)))

        ConstraintResolver().resolve(scene)

        assert (p.x, p.y) == (pytest.approx(100.0), pytest.approx(-200.0))

    def test_graph_point_keeps_parameter_on_grid_change(self, scene):
        scene.add(FunctionGraph("x^2", id="g"))
        scene.add(Point(0, 0, id="P", constraint=OnFunctionGraphConstraint("g", 2.0)))

        rescaled = commands.set_grid_size(scene, 100)

        p = rescaled.point("P")
        assert p.constraint.x_param == 2.0
        assert (p.x, p.y) == (pytest.approx(200.0), pytest.approx(-400.0))

    def test_graph_point_follows_variable(self, scene):
        var = scene.add_variable(Variable(name="a", value=1.0))
        scene.add(FunctionGraph("a*x", id="g"))
        scene.add(Point(0, 0, id="P", constraint=OnFunctionGraphConstraint("g", 1.0)))

        updated = commands.update_variable(scene, var.id, value=3.0)

        assert updated.point("P").y == pytest.approx(-150.0)

    def test_undefined_graph_value_keeps_position(self, scene):
        scene.add(FunctionGraph("sqrt(x)", id="g"))
        p = scene.add(Point(5, 5, constraint=OnFunctionGraphConstraint("g", -1.0)))

        ConstraintResolver().resolve(scene)

        assert (p.x, p.y) == (5, 5)

    def test_small_moves_are_not_written(self, scene):
        p = scene.add(Point(10, 0.00005, id="P", constraint=OnAxisConstraint("x")))

        result = ConstraintResolver().resolve(scene)

        assert p.y == 0.00005
        assert result.updated == []
        assert not result.changed


class TestRotation:

    def _scene(self, angle="90"):
        scene = Scene()
        scene.add(Point(0, 0, id="O"))
        scene.add(Point(100, 0, id="A"))
        scene.add(Point(0, 0, id="R", constraint=RotationConstraint("O", "A", angle)))
        return scene

    def test_literal_angle(self):
        scene = self._scene()
        ConstraintResolver().resolve(scene)
        assert scene.point("R").as_tuple() == (pytest.approx(0.0, abs=1e-9), pytest.approx(100.0))

    def test_follows_dragged_source(self):
        scene = self._scene()
        ConstraintResolver().resolve(scene)

        moved = commands.drag_entities(scene, ["A"], 0, 50)

        assert moved.point("R").as_tuple() == (pytest.approx(-50.0), pytest.approx(100.0))
        # input scene untouched
        assert scene.point("A").as_tuple() == (100, 0)

    def test_variable_angle(self):
        scene = self._scene("alpha")
        scene.add_variable(Variable(name="alpha", value=180.0))

        ConstraintResolver().resolve(scene)

        assert scene.point("R").as_tuple() == (pytest.approx(-100.0), pytest.approx(0.0, abs=1e-9))

    def test_unknown_variable_is_unresolved(self):
        scene = self._scene("alpha")
        result = ConstraintResolver().resolve(scene)
        assert "R" in result.unresolved
        assert scene.point("R").as_tuple() == (0, 0)

    def test_rotation_of_intersection_in_one_pass(self, scene):
        _crossing_segments(scene)
        # image registered before its source: order must still be source first
        scene.add(Point(0, 0, id="R", constraint=RotationConstraint("A", "P", "180")))
        scene.add(Point(0, 0, id="P", constraint=IntersectionConstraint("s1", "s2")))

        ConstraintResolver().resolve(scene)

        assert scene.point("R").as_tuple() == (pytest.approx(-50.0), pytest.approx(-50.0))


# ============================================================================
# CONSTRAINED LINES
# ============================================================================

class TestConstrainedLines:

    def _scene(self, kind):
        scene = Scene()
        scene.add(Point(0, 0, id="A"))
        scene.add(Point(100, 0, id="B"))
        scene.add(Segment("A", "B", id="s1"))
        scene.add(Point(50, 50, id="C"))
        scene.add(Point(0, 0, id="aux1", hidden=True, auxiliary=True))
        scene.add(Point(0, 0, id="aux2", hidden=True, auxiliary=True))
        scene.add(InfiniteLine("aux1", "aux2", id="L", constraint=LineConstraint(kind, "s1", "C")))
        return scene

    def test_perpendicular(self):
        scene = self._scene(LineConstraintType.PERPENDICULAR)
        ConstraintResolver().resolve(scene)
        assert scene.point("aux1").as_tuple() == (pytest.approx(50.0), pytest.approx(-1950.0))
        assert scene.point("aux2").as_tuple() == (pytest.approx(50.0), pytest.approx(2050.0))

    def test_parallel(self):
        scene = self._scene(LineConstraintType.PARALLEL)
        ConstraintResolver().resolve(scene)
        assert scene.point("aux1").as_tuple() == (pytest.approx(-1950.0), pytest.approx(50.0))
        assert scene.point("aux2").as_tuple() == (pytest.approx(2050.0), pytest.approx(50.0))

    def test_intersection_with_constrained_line(self):
        scene = self._scene(LineConstraintType.PERPENDICULAR)
        scene.add(Point(0, 0, id="F", constraint=IntersectionConstraint("L", "s1")))

        ConstraintResolver().resolve(scene)

        assert scene.point("F").as_tuple() == (pytest.approx(50.0), pytest.approx(0.0, abs=1e-6))

    def test_degenerate_source(self):
        scene = self._scene(LineConstraintType.PARALLEL)
        scene.point("B").x = 0
        result = ConstraintResolver().resolve(scene)
        assert "L" in result.unresolved


# ============================================================================
# ORDER AND CYCLES
# ============================================================================

def _cyclic_scene() -> Scene:
    """Two constrained lines, each using the other as its source."""
    scene = Scene()
    scene.add(Point(10, 10, id="C"))
    for pid in ("a1", "a2", "b1", "b2"):
        scene.add(Point(0, 0, id=pid, auxiliary=True, hidden=True))
    scene.add(InfiniteLine("a1", "a2", id="L1",
                           constraint=LineConstraint(LineConstraintType.PERPENDICULAR, "L2", "C")))
    scene.add(InfiniteLine("b1", "b2", id="L2",
                           constraint=LineConstraint(LineConstraintType.PARALLEL, "L1", "C")))
    return scene


class TestDependencyGraph:

    def test_free_points_are_not_nodes(self, segment_scene):
        graph = DependencyGraph()
        graph.build_from_scene(segment_scene)
        assert len(graph) == 0
        assert graph.evaluation_order() == ([], [])

    def test_lines_before_points(self):
        scene = Scene()
        scene.add(Point(0, 0, id="A"))
        scene.add(Point(100, 0, id="B"))
        scene.add(Segment("A", "B", id="s1"))
        scene.add(Point(50, 50, id="C"))
        scene.add(Point(5, 5, id="Q", constraint=OnAxisConstraint("x")))
        scene.add(Point(0, 0, id="aux1", auxiliary=True))
        scene.add(Point(0, 0, id="aux2", auxiliary=True))
        scene.add(InfiniteLine("aux1", "aux2", id="L",
                               constraint=LineConstraint(LineConstraintType.PARALLEL, "s1", "C")))
        scene.add(Point(0, 0, id="F", constraint=IntersectionConstraint("L", "s1")))

        graph = DependencyGraph()
        graph.build_from_scene(scene)
        order, cycles = graph.evaluation_order()

        assert cycles == []
        assert order == ["L", "Q", "F"]
        assert graph.node_type("L") == NODE_LINE
        assert graph.node_type("F") == NODE_POINT
        assert graph.get_dependents("L") == {"F"}

    def test_cycle_reported(self):
        graph = DependencyGraph()
        graph.build_from_scene(_cyclic_scene())
        order, cycles = graph.evaluation_order()

        assert cycles == [["L1", "L2"]]
        assert order == []

    def test_stats(self):
        graph = DependencyGraph()
        graph.build_from_scene(_cyclic_scene())
        assert graph.get_stats() == {"lines": 2, "points": 0, "edges": 2}


class TestCycles:

    def test_cycle_skipped_by_default(self):
        scene = _cyclic_scene()

        result = ConstraintResolver().resolve(scene)

        assert result.cycles == [["L1", "L2"]]
        assert scene.point("a1").as_tuple() == (0, 0)

    def test_strict_mode_raises(self):
        with pytest.raises(ConstraintCycleError) as exc_info:
            ConstraintResolver().resolve(_cyclic_scene(), strict=True)
        assert exc_info.value.cycles == [["L1", "L2"]]

    def test_strict_flag(self):
        set_flag("strict_cycle_check", True)
        with pytest.raises(ConstraintCycleError):
            ConstraintResolver().resolve(_cyclic_scene())

    def test_functional_form_leaves_input(self, scene):
        _crossing_segments(scene)
        scene.add(Point(0, 0, id="P", constraint=IntersectionConstraint("s1", "s2")))

        resolved, result = resolve_constraints(scene)

        assert scene.point("P").as_tuple() == (0, 0)
        assert resolved.point("P").as_tuple() == (pytest.approx(50.0), pytest.approx(50.0))
        assert result.changed

    def test_debug_logging_does_not_change_result(self, scene):
        set_flag("resolver_debug", True)
        _crossing_segments(scene)
        scene.add(Point(0, 0, id="P", constraint=IntersectionConstraint("s1", "s2")))

        ConstraintResolver().resolve(scene)

        assert scene.point("P").as_tuple() == (pytest.approx(50.0), pytest.approx(50.0))
