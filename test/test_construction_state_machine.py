"""
Construction State Machine Tests

Pointer driven construction per tool, snapping, dialogs, selection and drag.
All coordinates stay away from the axes unless a test is about them.
"""

import pytest

from config.feature_flags import set_flag
from construction.constraints import (
    AXIS_X_ID, IntersectionConstraint, LineConstraintType, OnAxisConstraint,
    OnFunctionGraphConstraint, RotationConstraint,
)
from construction.geometry import (
    Circle, EntityKind, FunctionGraph, Point, Segment, ellipse_axes, ellipse_value,
)
from construction.scene import Scene
from construction.solver import resolve_constraints
from interaction.dialogs import DialogKind, parse_float
from interaction.hit_test import HitResult
from interaction.state_machine import ConstructionStateMachine
from interaction.tools import TOOL_SPECS, PickMode, ToolType


@pytest.fixture
def machine():
    return ConstructionStateMachine()


@pytest.fixture
def segment_machine():
    """A(200, 200) - B(400, 200)"""
    scene = Scene()
    scene.add(Point(200, 200, id="A", label="A"))
    scene.add(Point(400, 200, id="B", label="B"))
    scene.add(Segment("A", "B", id="s1"))
    return ConstructionStateMachine(scene)


def _new_points(machine, known):
    return [p for pid, p in machine.scene.points.items() if pid not in known]


# ============================================================================
# TWO-POINT TOOLS
# ============================================================================

class TestPointTools:

    def test_segment_from_two_clicks(self, machine):
        machine.set_tool(ToolType.SEGMENT)

        assert machine.pointer_down(200, 200) is True
        assert len(machine.state.collected) == 1
        assert machine.pointer_down(300, 200) is True

        segment = next(iter(machine.scene.segments.values()))
        start, end = machine.scene.point(segment.start_point_id), machine.scene.point(segment.end_point_id)
        assert (start.label, end.label) == ("A", "B")
        assert (start.label_offset_x, start.label_offset_y) == (15, -15)
        assert end.as_tuple() == (300, 200)
        assert machine.state.collected == ()

    def test_same_point_twice_creates_nothing(self, machine):
        machine.set_tool(ToolType.SEGMENT)
        machine.pointer_down(200, 200)

        assert machine.pointer_down(205, 200) is False

        assert len(machine.scene.points) == 1
        assert not machine.scene.segments
        assert machine.state.collected == ()

    def test_existing_point_is_reused(self, segment_machine):
        segment_machine.set_tool(ToolType.CIRCLE)
        segment_machine.pointer_down(202, 198)
        segment_machine.pointer_down(398, 203)

        circle = next(iter(segment_machine.scene.circles.values()))
        assert (circle.center_id, circle.radius_point_id) == ("A", "B")
        assert len(segment_machine.scene.points) == 2

    def test_shift_aligns_with_last_point(self, machine):
        machine.set_tool(ToolType.SEGMENT)
        machine.pointer_down(200, 200)
        machine.pointer_down(300, 210, shift=True)

        segment = next(iter(machine.scene.segments.values()))
        assert machine.scene.coords(segment.end_point_id) == (300, 200)

    def test_shift_vertical(self, machine):
        machine.set_tool(ToolType.LINE)
        machine.pointer_down(200, 200)
        machine.pointer_down(210, 300, shift=True)

        line = next(iter(machine.scene.lines.values()))
        assert machine.scene.coords(line.p2_id) == (200, 300)

    def test_shift_ignored_by_circle(self, machine):
        machine.set_tool(ToolType.CIRCLE)
        machine.pointer_down(200, 200)
        machine.pointer_down(300, 210, shift=True)

        circle = next(iter(machine.scene.circles.values()))
        assert machine.scene.coords(circle.radius_point_id) == (300, 210)

    def test_switching_tool_drops_progress(self, machine):
        machine.set_tool(ToolType.SEGMENT)
        machine.pointer_down(200, 200)
        machine.set_tool(ToolType.RAY)
        assert machine.state.collected == ()
        assert machine.state.tool is ToolType.RAY

    def test_cancel_keeps_tool(self, machine):
        machine.set_tool(ToolType.SEGMENT)
        machine.pointer_down(200, 200)
        machine.cancel()
        assert machine.state.collected == ()
        assert machine.state.tool is ToolType.SEGMENT


class TestMultiPointTools:

    def test_polygon_closes_on_first_point(self, machine):
        machine.set_tool(ToolType.POLYGON)
        for x, y in ((200, 200), (300, 200), (300, 300)):
            machine.pointer_down(x, y)
        assert not machine.scene.polygons

        assert machine.pointer_down(202, 202) is True

        polygon = next(iter(machine.scene.polygons.values()))
        assert len(polygon.point_ids) == 3
        assert machine.state.collected == ()

    def test_polygon_repeated_vertex_aborts(self, machine):
        machine.set_tool(ToolType.POLYGON)
        for x, y in ((200, 200), (300, 200), (300, 300), (300, 200)):
            machine.pointer_down(x, y)
        assert not machine.scene.polygons
        assert machine.state.collected == ()

    def test_polygon_needs_three_vertices(self, machine):
        machine.set_tool(ToolType.POLYGON)
        machine.pointer_down(200, 200)
        machine.pointer_down(300, 200)
        machine.pointer_down(200, 200)
        assert not machine.scene.polygons

    def test_arc_end_projected_on_circle(self, machine):
        machine.set_tool(ToolType.ARC)
        for x, y in ((200, 200), (300, 200), (200, 250)):
            machine.pointer_down(x, y)

        arc = next(iter(machine.scene.collection(EntityKind.ARC).values()))
        end = machine.scene.coords(arc.end_point_id)
        assert end == (pytest.approx(200.0), pytest.approx(300.0))

    def test_elliptical_arc_points_on_ellipse(self, machine):
        machine.set_tool(ToolType.ELLIPTICAL_ARC)
        for x, y in ((200, 200), (400, 200), (200, 250), (340, 300), (60, 300)):
            machine.pointer_down(x, y)

        arc = next(iter(machine.scene.collection(EntityKind.ELLIPTICAL_ARC).values()))
        coords = [machine.scene.coords(i) for i in
                  (arc.center_id, arc.major_axis_point_id, arc.minor_axis_point_id)]
        rx, ry, rotation = ellipse_axes(*coords)
        for pid in (arc.start_point_id, arc.end_point_id):
            x, y = machine.scene.coords(pid)
            assert ellipse_value(x, y, coords[0], rx, ry, rotation) == pytest.approx(1.0)

    def test_right_angle_detected(self, machine):
        machine.set_tool(ToolType.ANGLE)
        for x, y in ((300, 200), (200, 200), (201, 300)):
            machine.pointer_down(x, y)

        angle = next(iter(machine.scene.collection(EntityKind.ANGLE).values()))
        assert angle.is_right_angle is True

    def test_oblique_angle(self, machine):
        machine.set_tool(ToolType.ANGLE)
        for x, y in ((300, 200), (200, 200), (300, 300)):
            machine.pointer_down(x, y)

        angle = next(iter(machine.scene.collection(EntityKind.ANGLE).values()))
        assert angle.is_right_angle is False

    def test_cylinder_click_order(self, machine):
        machine.set_tool(ToolType.CYLINDER)
        for x, y in ((200, 200), (200, 100), (250, 200)):
            machine.pointer_down(x, y)

        cyl = next(iter(machine.scene.collection(EntityKind.CYLINDER).values()))
        assert machine.scene.coords(cyl.bottom_center_id) == (200, 200)
        assert machine.scene.coords(cyl.top_center_id) == (200, 100)
        assert machine.scene.coords(cyl.radius_point_id) == (250, 200)

    def test_cone_click_order(self, machine):
        machine.set_tool(ToolType.CONE)
        for x, y in ((200, 100), (200, 200), (250, 200)):
            machine.pointer_down(x, y)

        cone = next(iter(machine.scene.collection(EntityKind.CONE).values()))
        assert machine.scene.coords(cone.apex_id) == (200, 100)
        assert machine.scene.coords(cone.bottom_center_id) == (200, 200)


# ============================================================================
# SNAPPING
# ============================================================================

class TestSnapping:

    def test_point_on_x_axis(self, machine):
        machine.set_tool(ToolType.POINT)
        machine.pointer_down(150, 5)

        point = next(iter(machine.scene.points.values()))
        assert point.as_tuple() == (150, 0)
        assert point.constraint == OnAxisConstraint("x")

    def test_axis_snap_disabled(self, machine):
        set_flag("snap_to_axes", False)
        machine.set_tool(ToolType.POINT)
        machine.pointer_down(150, 5)

        point = next(iter(machine.scene.points.values()))
        assert point.as_tuple() == (150, 5)
        assert point.is_free

    def test_point_on_graph(self, machine):
        machine.scene.add(FunctionGraph("2", id="g"))
        machine.set_tool(ToolType.POINT)
        machine.pointer_down(150, -95)

        point = next(iter(machine.scene.points.values()))
        assert point.as_tuple() == (pytest.approx(150.0), pytest.approx(-100.0))
        assert point.constraint == OnFunctionGraphConstraint("g", 3.0)

    def test_graph_point_unchanged_by_zoom(self, machine):
        machine.scene.add(FunctionGraph("x^2 / 4", id="g"))
        machine.set_tool(ToolType.POINT)
        machine.pointer_down(100, -50)
        point_id = next(iter(machine.scene.points))

        for zoom in (3.0, 0.25):
            machine.zoom = zoom
            resolved, _ = resolve_constraints(machine.scene)
            machine.set_scene(resolved)
            machine.pointer_move(400, 400)

            point = machine.scene.point(point_id)
            assert point.constraint.x_param == pytest.approx(2.0)
            assert point.as_tuple() == (pytest.approx(100.0), pytest.approx(-50.0))

    def test_point_on_segment_is_free(self, segment_machine):
        segment_machine.set_tool(ToolType.POINT)
        segment_machine.pointer_down(300, 208)

        point = _new_points(segment_machine, {"A", "B"})[0]
        assert point.as_tuple() == (pytest.approx(300.0), pytest.approx(200.0))
        assert point.is_free

    def test_point_on_circle(self, segment_machine):
        segment_machine.scene.add(Circle(center_id="A", radius_value=100.0, id="c"))
        segment_machine.set_tool(ToolType.POINT)
        segment_machine.pointer_down(200, 305)

        point = _new_points(segment_machine, {"A", "B"})[0]
        assert point.as_tuple() == (pytest.approx(200.0), pytest.approx(300.0))


# ============================================================================
# SELECTION-BASED TOOLS
# ============================================================================

class TestDerivedTools:

    def test_midpoint_of_two_points(self, segment_machine):
        segment_machine.set_tool(ToolType.MIDPOINT)
        segment_machine.pointer_down(200, 200)
        assert segment_machine.pointer_down(400, 200) is True

        point = _new_points(segment_machine, {"A", "B"})[0]
        assert point.as_tuple() == (300, 200)
        assert point.label == "C"

    def test_midpoint_of_segment(self, segment_machine):
        segment_machine.set_tool(ToolType.MIDPOINT)
        assert segment_machine.pointer_down(300, 205) is True
        assert _new_points(segment_machine, {"A", "B"})[0].as_tuple() == (300, 200)

    def test_midpoint_ignores_empty_space(self, segment_machine):
        segment_machine.set_tool(ToolType.MIDPOINT)
        assert segment_machine.pointer_down(300, 500) is False
        assert len(segment_machine.scene.points) == 2

    def test_intersect_two_segments(self, machine):
        for pid, (x, y) in {"A": (200, 200), "B": (400, 400), "C": (200, 400), "D": (400, 200)}.items():
            machine.scene.add(Point(x, y, id=pid))
        machine.scene.add(Segment("A", "B", id="s1"))
        machine.scene.add(Segment("C", "D", id="s2"))
        machine.set_tool(ToolType.INTERSECT)

        machine.pointer_down(250, 250)
        assert machine.pointer_down(250, 350) is True

        point = _new_points(machine, {"A", "B", "C", "D"})[0]
        assert point.constraint == IntersectionConstraint("s1", "s2")
        assert point.as_tuple() == (pytest.approx(300.0), pytest.approx(300.0))

    def test_intersect_with_axis(self, segment_machine):
        segment_machine.scene.add(Point(300, -100, id="C"))
        segment_machine.scene.add(Point(300, 300, id="D"))
        segment_machine.scene.add(Segment("C", "D", id="s2"))
        segment_machine.set_tool(ToolType.INTERSECT)

        segment_machine.pointer_down(300, 100)
        segment_machine.pointer_down(100, 3)

        point = _new_points(segment_machine, {"A", "B", "C", "D"})[0]
        assert point.constraint == IntersectionConstraint("s2", AXIS_X_ID)
        assert point.as_tuple() == (pytest.approx(300.0), pytest.approx(0.0, abs=1e-9))

    def test_perpendicular(self, segment_machine):
        segment_machine.scene.add(Point(300, 100, id="C"))
        segment_machine.set_tool(ToolType.PERPENDICULAR)

        segment_machine.pointer_down(300, 100)
        assert segment_machine.pointer_down(250, 200) is True

        line = next(iter(segment_machine.scene.lines.values()))
        assert line.constraint.kind is LineConstraintType.PERPENDICULAR
        assert (line.constraint.source_id, line.constraint.through_point_id) == ("s1", "C")
        aux = [segment_machine.scene.point(i) for i in (line.p1_id, line.p2_id)]
        assert all(p.hidden and p.auxiliary for p in aux)
        assert all(p.x == pytest.approx(300.0) for p in aux)

    def test_parallel_line_first(self, segment_machine):
        segment_machine.scene.add(Point(300, 100, id="C"))
        segment_machine.set_tool(ToolType.PARALLEL)

        segment_machine.pointer_down(250, 200)
        segment_machine.pointer_down(300, 100)

        line = next(iter(segment_machine.scene.lines.values()))
        assert line.constraint.kind is LineConstraintType.PARALLEL
        assert segment_machine.scene.point(line.p1_id).y == pytest.approx(100.0)

    def test_central_symmetry(self, segment_machine):
        segment_machine.set_tool(ToolType.SYMMETRY_CENTRAL)
        segment_machine.pointer_down(200, 200)
        assert segment_machine.pointer_down(400, 200) is True

        image = next(p for p in segment_machine.scene.points.values() if p.label == "B'")
        assert image.as_tuple() == (0, 200)

    def test_axial_symmetry(self, segment_machine):
        segment_machine.scene.add(Point(300, 100, id="C", label="C"))
        segment_machine.set_tool(ToolType.SYMMETRY_AXIAL)
        segment_machine.pointer_down(250, 200)
        segment_machine.pointer_down(300, 100)

        image = next(p for p in segment_machine.scene.points.values() if p.label == "C'")
        assert image.as_tuple() == (pytest.approx(300.0), pytest.approx(300.0))


class TestRotateTool:

    def test_rotate_after_angle_dialog(self, segment_machine):
        segment_machine.set_tool(ToolType.ROTATE)
        assert segment_machine.state.dialog.kind is DialogKind.ROTATE
        assert segment_machine.pointer_down(200, 200) is False  # blocked by the dialog

        assert segment_machine.submit_dialog() is False
        assert segment_machine.state.rotation_angle == "90"

        segment_machine.pointer_down(200, 200)
        assert segment_machine.pointer_down(400, 200) is True

        image = _new_points(segment_machine, {"A", "B"})[0]
        assert image.constraint == RotationConstraint("A", "B", "90")
        assert image.as_tuple() == (pytest.approx(200.0), pytest.approx(400.0))

    def test_rotate_without_angle(self, segment_machine):
        segment_machine.set_tool(ToolType.ROTATE)
        segment_machine.cancel_dialog()

        segment_machine.pointer_down(200, 200)
        assert segment_machine.pointer_down(400, 200) is False

        assert segment_machine.status == "Enter a rotation angle first"
        assert len(segment_machine.scene.points) == 2


# ============================================================================
# DIALOGS
# ============================================================================

class TestDialogs:

    def test_point_coordinates(self, machine):
        machine.set_tool(ToolType.POINT_COORD)
        assert machine.state.dialog.values == {"x": "0", "y": "0"}

        assert machine.submit_dialog({"x": "2", "y": "1,5"}) is True

        point = next(iter(machine.scene.points.values()))
        assert point.as_tuple() == (100, -75)
        assert point.show_coord_proj is True
        assert machine.state.dialog is None

    def test_function_graph(self, machine):
        machine.set_tool(ToolType.FUNCTION_GRAPH)
        assert machine.submit_dialog({"formula": "x^2"}) is True

        graph = next(iter(machine.scene.function_graphs.values()))
        assert (graph.formula, graph.color, graph.stroke_width) == ("x^2", "#1565C0", 2)

    def test_empty_formula(self, machine):
        machine.set_tool(ToolType.FUNCTION_GRAPH)
        assert machine.submit_dialog({"formula": "  "}) is False
        assert not machine.scene.function_graphs

    def test_regular_polygon(self, machine):
        machine.set_tool(ToolType.POLYGON_REGULAR)
        assert machine.submit_dialog({"sides": "4", "length": "2"}) is True

        polygon = next(iter(machine.scene.polygons.values()))
        assert polygon.is_regular
        assert len(polygon.point_ids) == 4
        assert machine.scene.coords(polygon.center_id) == (0.0, 0.0)

    def test_regular_polygon_too_many_sides(self, machine):
        machine.set_tool(ToolType.POLYGON_REGULAR)
        assert machine.submit_dialog({"sides": "65"}) is False
        assert machine.status == "Invalid input"

    def test_segment_fixed(self, machine):
        machine.set_tool(ToolType.SEGMENT_FIXED)
        machine.pointer_down(200, 200)
        assert machine.state.dialog.kind is DialogKind.SEGMENT_FIXED

        assert machine.submit_dialog({"length": "2"}) is True

        segment = next(iter(machine.scene.segments.values()))
        assert machine.scene.coords(segment.end_point_id) == (300, 200)

    @pytest.mark.parametrize("length", ["abc", "-1", "0", ""])
    def test_segment_fixed_invalid(self, machine, length):
        machine.set_tool(ToolType.SEGMENT_FIXED)
        machine.pointer_down(200, 200)

        assert machine.submit_dialog({"length": length}) is False

        assert machine.status == "Invalid input"
        assert not machine.scene.segments
        assert machine.state.dialog is None

    def test_circle_fixed(self, machine):
        machine.set_tool(ToolType.CIRCLE_FIXED)
        machine.pointer_down(200, 200)
        assert machine.submit_dialog() is True

        circle = next(iter(machine.scene.circles.values()))
        assert circle.radius_value == 150

    @pytest.mark.parametrize("direction,expected", [("ccw", (200, 100)), ("cw", (200, 300))])
    def test_angle_fixed(self, machine, direction, expected):
        machine.set_tool(ToolType.ANGLE_FIXED)
        machine.pointer_down(300, 200)
        machine.pointer_down(200, 200)
        assert machine.state.dialog.kind is DialogKind.ANGLE_FIXED

        assert machine.submit_dialog({"degrees": "90", "direction": direction}) is True

        angle = next(iter(machine.scene.collection(EntityKind.ANGLE).values()))
        assert machine.scene.coords(angle.center_id) == (200, 200)
        assert machine.scene.coords(angle.point2_id) == (pytest.approx(expected[0]), pytest.approx(expected[1]))

    def test_angle_fixed_same_point_twice_creates_nothing(self, machine):
        machine.set_tool(ToolType.ANGLE_FIXED)
        machine.pointer_down(200, 200)
        machine.pointer_down(200, 200)

        assert machine.state.dialog is None
        assert machine.state.collected == ()
        assert machine.submit_dialog({"degrees": "45"}) is False
        assert not machine.scene.collection(EntityKind.ANGLE)
        assert len(machine.scene.points) == 1

    def test_cancel_dialog(self, machine):
        machine.set_tool(ToolType.CIRCLE_FIXED)
        machine.pointer_down(200, 200)
        machine.cancel_dialog()
        assert machine.state.dialog is None
        assert machine.state.collected == ()
        assert machine.submit_dialog() is False

    def test_dialog_title_translated(self, machine):
        machine.set_tool(ToolType.ROTATE)
        assert machine.state.dialog.title == "Rotation angle (degrees or variable name)"

    def test_parse_float_accepts_comma(self):
        assert parse_float(" 2,5 ") == 2.5
        with pytest.raises(ValueError):
            parse_float("two")


# ============================================================================
# SELECT / DRAG
# ============================================================================

class TestSelectAndDrag:

    def test_drag_point(self, segment_machine):
        segment_machine.pointer_down(200, 200)
        assert segment_machine.selection == [HitResult(EntityKind.POINT, "A")]
        assert segment_machine.is_dragging

        assert segment_machine.pointer_move(250, 230) is True
        assert segment_machine.pointer_up() is True

        assert segment_machine.scene.coords("A") == (250, 230)
        assert not segment_machine.is_dragging

    def test_shift_locks_dominant_axis(self, segment_machine):
        segment_machine.pointer_down(200, 200)
        segment_machine.pointer_move(250, 210, shift=True)
        segment_machine.pointer_up()
        assert segment_machine.scene.coords("A") == (250, 200)

    def test_drag_segment(self, segment_machine):
        segment_machine.pointer_down(300, 200)
        segment_machine.pointer_move(300, 250)
        assert segment_machine.scene.coords("A") == (200, 250)
        assert segment_machine.scene.coords("B") == (400, 250)

    def test_additive_selection_and_delete(self, segment_machine):
        segment_machine.pointer_down(200, 200)
        segment_machine.pointer_up()
        segment_machine.pointer_down(400, 200, additive=True)
        segment_machine.pointer_up()
        assert [s.id for s in segment_machine.selection] == ["A", "B"]

        assert segment_machine.delete_selection() is True

        assert segment_machine.scene.is_empty()
        assert segment_machine.selection == []

    def test_click_empty_clears_selection(self, segment_machine):
        segment_machine.pointer_down(200, 200)
        segment_machine.pointer_up()
        segment_machine.pointer_down(300, 500)
        assert segment_machine.selection == []

    def test_axis_not_deletable(self, segment_machine):
        segment_machine.pointer_down(100, 3)
        assert segment_machine.selection == [HitResult(EntityKind.AXIS, AXIS_X_ID)]
        assert segment_machine.delete_selection() is False

    def test_pointer_up_without_drag(self, segment_machine):
        assert segment_machine.pointer_up() is False

    def test_hover(self, segment_machine):
        segment_machine.set_tool(ToolType.SEGMENT)
        assert segment_machine.pointer_move(300, 205) is False
        assert segment_machine.state.hovered == HitResult(EntityKind.SEGMENT, "s1")
        assert segment_machine.state.cursor == (300, 205)

    def test_set_scene_prunes_selection(self, segment_machine):
        segment_machine.pointer_down(200, 200)
        segment_machine.pointer_up()
        segment_machine.set_scene(Scene())
        assert segment_machine.selection == []


class TestToolTable:

    def test_every_tool_has_rules(self):
        assert set(TOOL_SPECS) == set(ToolType)

    def test_point_tools_need_points(self):
        for tool, spec in TOOL_SPECS.items():
            if spec.pick is PickMode.POINTS:
                assert spec.required >= 1, tool

    def test_debug_logging_does_not_change_result(self, machine):
        set_flag("construction_debug", True)
        machine.set_tool(ToolType.SEGMENT)
        machine.pointer_down(200, 200)
        machine.pointer_down(300, 200)
        assert len(machine.scene.segments) == 1
