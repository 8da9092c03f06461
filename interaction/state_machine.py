"""
GeoCanvas Interaction - Construction state machine
Turns pointer events into scene edits. One machine per canvas; the
scene it owns is replaced (never mutated) on every edit, and every edit
runs a resolution pass.

Usage:
    machine = ConstructionStateMachine(Scene())
    machine.set_tool(ToolType.SEGMENT)
    machine.pointer_down(0, 0)
    machine.pointer_down(100, 0)  # commits the segment
    scene = machine.scene
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from construction import commands
from construction.constraints import (
    AXIS_X_ID, IntersectionConstraint, LineConstraint, LineConstraintType,
    OnAxisConstraint, OnFunctionGraphConstraint,
)
from construction.formula import evaluate_formula, is_defined
from construction.geometry import (
    Angle, Arc, Circle, Cone, Cylinder, Ellipse, EllipticalArc, EntityKind, FunctionGraph,
    InfiniteLine, LINEAR_KINDS, Point, Polygon, Ray, Segment, Sphere, Vec2,
    angle_between, ellipse_axes, new_id, project_onto_circle, project_onto_ellipse,
    project_onto_line, rotate_point, to_world,
)
from construction.regular_polygon import create_regular_polygon
from construction.render_info import circle_radius
from construction.scene import Scene, SceneDelta
from construction.solver import resolve_constraints
from construction.transforms import ReflectionKind, reflect, rotate
from i18n import tr
from .dialogs import DialogKind, DialogRequest, parse_float, parse_int
from .hit_test import HitResult, HitTester
from .tools import PickMode, ToolType, tool_spec

NEW_POINT_LABEL_OFFSET = (15, -15)
GRAPH_COLOR = "#1565C0"


@dataclass
class ConstructionState:
    """
    Per-tool progress.

    collected never holds more than the tool's required count: the machine
    commits (or opens the completion dialog) when it gets there.
    """
    tool: ToolType = ToolType.SELECT
    collected: Tuple[str, ...] = ()
    dialog: Optional[DialogRequest] = None
    rotation_angle: Optional[str] = None
    hovered: Optional[HitResult] = None
    cursor: Optional[Vec2] = None


@dataclass
class DragState:
    ids: List[str]
    last: Vec2


@dataclass
class ConstructionStateMachine:
    """
    Pointer driven construction over a Scene.

    Public state: scene, state, selection, status (last user-facing
    message, translated).
    """
    scene: Scene = field(default_factory=Scene)
    zoom: float = 1.0
    show_hidden: bool = False
    show_axes: bool = True
    view_center: Vec2 = (0.0, 0.0)
    state: ConstructionState = field(default_factory=ConstructionState)
    selection: List[HitResult] = field(default_factory=list)
    status: Optional[str] = None
    _drag: Optional[DragState] = field(default=None, repr=False)

    # =========================================================================
    # Tool lifecycle
    # =========================================================================

    def set_tool(self, tool: ToolType) -> None:
        """Switches tool, abandoning any construction in progress."""
        spec = tool_spec(tool)
        self.state = ConstructionState(tool=tool)
        self._drag = None
        self.status = None
        if tool is not ToolType.SELECT:
            self.selection = []
        if spec.dialog_on_activate is not None:
            self.state.dialog = DialogRequest.open(spec.dialog_on_activate)
        self._trace(f"tool -> {tool.name}")

    def cancel(self) -> None:
        """Drops collected ids and any open dialog, keeps the tool."""
        self.state.collected = ()
        self.state.dialog = None

    def _reset(self) -> None:
        self.state.collected = ()

    def _trace(self, message: str) -> None:
        if is_enabled("construction_debug"):
            logger.debug(f"[Construction] {message}")

    def _tester(self) -> HitTester:
        return HitTester(self.scene, self.zoom, self.show_hidden, self.show_axes)

    def _commit(self, delta: Optional[SceneDelta]) -> bool:
        """Applies a builder delta (atomic + resolve). False for nothing to do."""
        if not delta:
            return False
        self.scene = commands.add_entities(self.scene, delta)
        kinds = ", ".join(sorted({e.kind.value for e in delta.entities}))
        logger.info(f"[Construction] {self.state.tool.name}: added {len(delta.entities)} entities ({kinds})")
        return True

    # =========================================================================
    # Pointer events
    # =========================================================================

    def pointer_down(self, x: float, y: float, shift: bool = False, additive: bool = False) -> bool:
        """
        Click at world (x, y).

        Returns:
            True when the scene was edited
        """
        if self.state.dialog is not None:
            return False
        spec = tool_spec(self.state.tool)
        handler = getattr(self, f"_pick_{spec.pick.name.lower()}")
        return handler(x, y, shift, additive)

    def pointer_move(self, x: float, y: float, shift: bool = False) -> bool:
        """
        Hover tracking, and dragging in the select tool.

        Returns:
            True when the scene was edited (drag)
        """
        if self._drag is not None:
            dx, dy = x - self._drag.last[0], y - self._drag.last[1]
            if shift:
                if abs(dx) > abs(dy):
                    dy = 0.0
                else:
                    dx = 0.0
            self._drag.last = (x, y)
            if dx == 0 and dy == 0:
                return False
            self.scene = commands.drag_entities(self.scene, self._drag.ids, dx, dy, target=(x, y))
            return True

        cx, cy = self._constrain_click(x, y, shift)
        self.state.cursor = (cx, cy)
        self.state.hovered = self._tester().query(cx, cy)
        return False

    def pointer_up(self) -> bool:
        """Ends a drag with a final resolution pass."""
        if self._drag is None:
            return False
        self._drag = None
        self.scene, _ = resolve_constraints(self.scene)
        return True

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    # =========================================================================
    # Click constraints
    # =========================================================================

    def _constrain_click(self, x: float, y: float, shift: bool) -> Vec2:
        """Shift alignment, arc / elliptical arc projection."""
        tool, collected = self.state.tool, self.state.collected
        if not collected:
            return x, y

        if shift and tool_spec(tool).shift_align:
            last = self.scene.point(collected[-1])
            if last is not None:
                if abs(x - last.x) > abs(y - last.y):
                    y = last.y
                else:
                    x = last.x

        if tool is ToolType.ARC and len(collected) == 2:
            center, start = self.scene.coords(collected[0]), self.scene.coords(collected[1])
            if center is not None and start is not None:
                radius = math.hypot(start[0] - center[0], start[1] - center[1])
                x, y = project_onto_circle(x, y, center, radius)

        if tool is ToolType.ELLIPTICAL_ARC and len(collected) in (3, 4):
            coords = [self.scene.coords(pid) for pid in collected[:3]]
            if all(c is not None for c in coords):
                rx, ry, rotation = ellipse_axes(*coords)
                if rx > 0 and ry > 0:
                    x, y = project_onto_ellipse(x, y, coords[0], rx, ry, rotation)
        return x, y

    def _synthesize_point(self, x: float, y: float, hover: Optional[HitResult]) -> Point:
        """New point at the click, snapped to the entity under the pointer."""
        constraint = None
        if hover is not None:
            if hover.kind is EntityKind.FUNCTION_GRAPH and is_enabled("snap_to_graphs"):
                graph = self.scene.get(EntityKind.FUNCTION_GRAPH, hover.id)
                g = self.scene.grid_size
                mx = x / g
                my = evaluate_formula(graph.formula, mx, self.scene.variable_map())
                if is_defined(my):
                    x, y = to_world(mx, my, g)
                    constraint = OnFunctionGraphConstraint(graph_id=graph.id, x_param=mx)
            elif hover.kind is EntityKind.AXIS and is_enabled("snap_to_axes"):
                if hover.id == AXIS_X_ID:
                    y = 0.0
                    constraint = OnAxisConstraint("x")
                else:
                    x = 0.0
                    constraint = OnAxisConstraint("y")
            elif hover.kind in LINEAR_KINDS:
                coords = self.scene.linear_points(hover.id)
                if coords is not None and coords[0] != coords[1]:
                    x, y = project_onto_line(x, y, coords[0], coords[1])
            elif hover.kind is EntityKind.CIRCLE:
                circle = self.scene.get(EntityKind.CIRCLE, hover.id)
                center, radius = self.scene.coords(circle.center_id), circle_radius(self.scene, circle)
                if center is not None and radius is not None:
                    x, y = project_onto_circle(x, y, center, radius)

        return Point(
            x=x, y=y, label=self.scene.next_label(),
            label_offset_x=NEW_POINT_LABEL_OFFSET[0], label_offset_y=NEW_POINT_LABEL_OFFSET[1],
            constraint=constraint,
        )

    def _point_at(self, x: float, y: float) -> str:
        """Id of the point under the pointer, creating (and committing) one if needed."""
        tester = self._tester()
        hit = tester.find_point(x, y)
        if hit is not None:
            return hit.id
        point = self._synthesize_point(x, y, tester.query(x, y))
        self._commit(SceneDelta([point]))
        return point.id

    # =========================================================================
    # Pick modes
    # =========================================================================

    def _pick_none(self, x: float, y: float, shift: bool, additive: bool) -> bool:
        if self.state.tool is not ToolType.SELECT:
            return False
        hit = self._tester().query_selectable(x, y)
        if hit is None:
            if not additive:
                self.selection = []
            return False

        if additive:
            if hit in self.selection:
                self.selection = [s for s in self.selection if s != hit]
                return False
            self.selection = self.selection + [hit]
            drag_ids = [s.id for s in self.selection]
        elif hit not in self.selection:
            self.selection = [hit]
            drag_ids = [hit.id]
        else:
            drag_ids = [s.id for s in self.selection]

        self._drag = DragState(ids=drag_ids, last=(x, y))
        return False

    def _pick_points(self, x: float, y: float, shift: bool, additive: bool) -> bool:
        tool = self.state.tool
        spec = tool_spec(tool)
        x, y = self._constrain_click(x, y, shift)
        before = len(self.scene.points)
        pid = self._point_at(x, y)
        created = len(self.scene.points) != before

        if tool is ToolType.POINT:
            return created

        collected = self.state.collected
        if tool is ToolType.POLYGON and pid in collected:
            if pid == collected[0] and len(collected) >= 3:
                self._reset()
                return self._commit(self._build_polygon(collected)) or created
            self._trace("repeated polygon vertex, construction dropped")
            self._reset()
            return created

        collected = collected + (pid,)
        if len(collected) < spec.required:
            self.state.collected = collected
            return created

        if len(set(collected)) != len(collected):
            self._trace(f"{tool.name} with repeated points, nothing created")
            self._reset()
            return created

        if spec.dialog_on_complete is not None:
            self.state.collected = collected
            self.state.dialog = DialogRequest.open(spec.dialog_on_complete)
            return created

        self._reset()
        builder = getattr(self, f"_build_{tool.name.lower()}")
        return self._commit(builder(collected)) or created

    def _pick_existing_points(self, x: float, y: float, shift: bool, additive: bool) -> bool:
        """Midpoint of two picked points, or of a picked segment."""
        tester = self._tester()
        hit = tester.find_point(x, y)
        if hit is None:
            linear = tester.find_linear(x, y)
            if linear is None or linear.kind is not EntityKind.SEGMENT or self.state.collected:
                return False
            segment = self.scene.get(EntityKind.SEGMENT, linear.id)
            return self._commit(self._midpoint(segment.start_point_id, segment.end_point_id))

        collected = self.state.collected + (hit.id,)
        if len(collected) < 2:
            self.state.collected = collected
            return False
        self._reset()
        if collected[0] == collected[1]:
            return False
        return self._commit(self._midpoint(*collected))

    def _pick_point_and_line(self, x: float, y: float, shift: bool, additive: bool) -> bool:
        tester = self._tester()
        collected = self.state.collected
        hit = tester.find_point(x, y)
        if hit is None or hit.id in collected:
            hit = tester.find_linear(x, y)
        if hit is None or hit.id in collected:
            return False

        collected = collected + (hit.id,)
        if len(collected) < 2:
            self.state.collected = collected
            return False
        self._reset()

        point_id = next((i for i in collected if i in self.scene.points), None)
        line_id = next((i for i in collected if self.scene.kind_of(i) in LINEAR_KINDS), None)
        if point_id is None or line_id is None:
            self._trace(f"{self.state.tool.name} needs a point and a line, got {collected}")
            return False

        kind = (LineConstraintType.PERPENDICULAR if self.state.tool is ToolType.PERPENDICULAR
                else LineConstraintType.PARALLEL)
        delta = SceneDelta()
        aux1 = delta.add(Point(id=new_id("p_aux"), hidden=True, auxiliary=True))
        aux2 = delta.add(Point(id=new_id("p_aux"), hidden=True, auxiliary=True))
        delta.add(InfiniteLine(
            p1_id=aux1.id, p2_id=aux2.id,
            constraint=LineConstraint(kind=kind, source_id=line_id, through_point_id=point_id),
        ))
        return self._commit(delta)

    def _pick_curves(self, x: float, y: float, shift: bool, additive: bool) -> bool:
        hit = self._tester().query_curve(x, y)
        if hit is None or hit.id in self.state.collected:
            return False
        collected = self.state.collected + (hit.id,)
        if len(collected) < 2:
            self.state.collected = collected
            return False
        self._reset()
        point = Point(
            x=x, y=y, label=self.scene.next_label(),
            constraint=IntersectionConstraint(id1=collected[0], id2=collected[1]),
        )
        return self._commit(SceneDelta([point]))

    def _pick_transform(self, x: float, y: float, shift: bool, additive: bool) -> bool:
        tool = self.state.tool
        tester = self._tester()

        if not self.state.collected:
            if tool is ToolType.SYMMETRY_AXIAL:
                reference = tester.find_linear(x, y)
            else:
                reference = tester.find_point(x, y)
            if reference is not None:
                self.state.collected = (reference.id,)
            return False

        reference_id = self.state.collected[0]
        target = tester.query_transform_target(x, y)
        if target is None or target.id == reference_id:
            return False

        if tool is ToolType.ROTATE:
            if not self.state.rotation_angle:
                self.status = tr("Enter a rotation angle first")
                return False
            delta = rotate(reference_id, target.id, target.kind, self.state.rotation_angle, self.scene)
        else:
            kind = ReflectionKind.AXIAL if tool is ToolType.SYMMETRY_AXIAL else ReflectionKind.CENTRAL
            delta = reflect(kind, reference_id, target.id, target.kind, self.scene)
        self._reset()
        return self._commit(delta)

    # =========================================================================
    # Builders (collected ids -> delta)
    # =========================================================================

    def _build_point(self, ids: Sequence[str]) -> Optional[SceneDelta]:
        return None  # the click already created the point

    def _build_segment(self, ids):
        return SceneDelta([Segment(start_point_id=ids[0], end_point_id=ids[1])])

    def _build_line(self, ids):
        return SceneDelta([InfiniteLine(p1_id=ids[0], p2_id=ids[1])])

    def _build_ray(self, ids):
        return SceneDelta([Ray(start_point_id=ids[0], direction_point_id=ids[1])])

    def _build_circle(self, ids):
        return SceneDelta([Circle(center_id=ids[0], radius_point_id=ids[1])])

    def _build_sphere(self, ids):
        return SceneDelta([Sphere(center_id=ids[0], radius_point_id=ids[1])])

    def _build_arc(self, ids):
        return SceneDelta([Arc(center_id=ids[0], start_point_id=ids[1], end_point_id=ids[2])])

    def _build_ellipse(self, ids):
        return SceneDelta([Ellipse(center_id=ids[0], major_axis_point_id=ids[1], minor_axis_point_id=ids[2])])

    def _build_elliptical_arc(self, ids):
        return SceneDelta([EllipticalArc(
            center_id=ids[0], major_axis_point_id=ids[1], minor_axis_point_id=ids[2],
            start_point_id=ids[3], end_point_id=ids[4],
        )])

    def _build_cylinder(self, ids):
        return SceneDelta([Cylinder(bottom_center_id=ids[0], top_center_id=ids[1], radius_point_id=ids[2])])

    def _build_cone(self, ids):
        return SceneDelta([Cone(apex_id=ids[0], bottom_center_id=ids[1], radius_point_id=ids[2])])

    def _build_polygon(self, ids):
        return SceneDelta([Polygon(point_ids=list(ids))])

    def _build_angle(self, ids):
        p1, center, p2 = (self.scene.coords(i) for i in ids)
        degrees = angle_between(p1, center, p2)
        tol = Tolerances.RIGHT_ANGLE_TOLERANCE_DEG
        is_right = abs(degrees - 90) < tol or abs(degrees - 270) < tol
        return SceneDelta([Angle(point1_id=ids[0], center_id=ids[1], point2_id=ids[2], is_right_angle=is_right)])

    def _midpoint(self, id1: str, id2: str) -> Optional[SceneDelta]:
        a, b = self.scene.coords(id1), self.scene.coords(id2)
        if a is None or b is None:
            return None
        return SceneDelta([Point(x=(a[0] + b[0]) / 2, y=(a[1] + b[1]) / 2, label=self.scene.next_label())])

    # =========================================================================
    # Dialogs
    # =========================================================================

    def submit_dialog(self, values: Optional[Mapping[str, object]] = None) -> bool:
        """
        Completes the open dialog with the user's values.

        Invalid input closes the dialog without editing and sets status.

        Returns:
            True when the scene was edited
        """
        dialog = self.state.dialog
        if dialog is None:
            return False
        merged = dialog.merged(values or {})
        collected = self.state.collected
        self.state.dialog = None
        self._reset()

        handler = getattr(self, f"_submit_{dialog.kind.value}")
        try:
            delta = handler(merged, collected)
        except ValueError as e:
            self.status = tr("Invalid input")
            logger.debug(f"[Construction] {dialog.kind.value} dialog rejected: {e}")
            return False
        return self._commit(delta)

    def cancel_dialog(self) -> None:
        self.state.dialog = None
        self._reset()

    def _submit_point_coord(self, values: Dict[str, str], collected) -> SceneDelta:
        mx, my = parse_float(values["x"]), parse_float(values["y"])
        if not (math.isfinite(mx) and math.isfinite(my)):
            raise ValueError("non-finite coordinate")
        x, y = to_world(mx, my, self.scene.grid_size)
        return SceneDelta([Point(x=x, y=y, label=self.scene.next_label(), show_coord_proj=True)])

    def _submit_function_graph(self, values: Dict[str, str], collected) -> Optional[SceneDelta]:
        formula = values["formula"].strip()
        if not formula:
            return None
        return SceneDelta([FunctionGraph(
            formula=formula, color=GRAPH_COLOR, stroke_width=2,
            label_x=self.view_center[0], label_y=self.view_center[1] - 50 / (self.zoom or 1.0),
        )])

    def _submit_polygon_regular(self, values: Dict[str, str], collected) -> SceneDelta:
        sides, length = parse_int(values["sides"]), parse_float(values["length"])
        if sides > Tolerances.POLYGON_MAX_VERTICES:
            raise ValueError(f"too many sides: {sides}")
        return create_regular_polygon(
            sides, length, self.scene.grid_size, self.view_center,
            existing_labels=[p.label for p in self.scene.points.values()],
        )

    def _submit_rotate(self, values: Dict[str, str], collected) -> None:
        angle = values["angle"].strip()
        if not angle:
            raise ValueError("empty angle")
        self.state.rotation_angle = angle
        return None

    def _submit_angle_fixed(self, values: Dict[str, str], collected) -> Optional[SceneDelta]:
        degrees = parse_float(values["degrees"])
        if not math.isfinite(degrees) or len(collected) < 2:
            raise ValueError("angle needs two points and a finite value")
        p1, center = self.scene.point(collected[0]), self.scene.point(collected[1])
        if p1 is None or center is None:
            return None
        theta = math.radians(degrees)
        if values.get("direction", "ccw") != "cw":
            theta = -theta  # y down: positive rotation is clockwise on screen
        x, y = rotate_point(p1.as_tuple(), center.as_tuple(), theta)
        p3 = Point(x=x, y=y, label=self.scene.next_label())
        return SceneDelta([p3, Angle(point1_id=p1.id, center_id=center.id, point2_id=p3.id)])

    def _submit_segment_fixed(self, values: Dict[str, str], collected) -> Optional[SceneDelta]:
        length = parse_float(values["length"])
        if not (math.isfinite(length) and length > 0) or not collected:
            raise ValueError(f"invalid length: {values['length']}")
        start = self.scene.point(collected[0])
        if start is None:
            return None
        end = Point(x=start.x + length * self.scene.grid_size, y=start.y, label=self.scene.next_label())
        return SceneDelta([end, Segment(start_point_id=start.id, end_point_id=end.id)])

    def _submit_circle_fixed(self, values: Dict[str, str], collected) -> Optional[SceneDelta]:
        radius = parse_float(values["radius"])
        if not (math.isfinite(radius) and radius > 0) or not collected:
            raise ValueError(f"invalid radius: {values['radius']}")
        if self.scene.point(collected[0]) is None:
            return None
        return SceneDelta([Circle(center_id=collected[0], radius_value=radius * self.scene.grid_size)])

    # =========================================================================
    # Selection
    # =========================================================================

    def delete_selection(self) -> bool:
        """Cascading delete of the selected entities (axes are not deletable)."""
        ids = [s.id for s in self.selection if s.kind is not EntityKind.AXIS]
        self.selection = []
        if not ids:
            return False
        self.scene = commands.delete_entities(self.scene, ids)
        return True

    def set_scene(self, scene: Scene) -> None:
        """Replaces the scene (undo, import, animation) keeping tool state valid."""
        self.scene = scene
        self.selection = [s for s in self.selection if s.kind is EntityKind.AXIS or scene.find(s.id)]
        self.state.collected = tuple(i for i in self.state.collected if scene.kind_of(i) is not None)
        if self._drag is not None:
            self._drag.ids = [i for i in self._drag.ids if scene.find(i) is not None]


# Every pick mode, point builder and dialog needs its method.
assert all(hasattr(ConstructionStateMachine, f"_pick_{mode.name.lower()}") for mode in PickMode)
assert all(
    hasattr(ConstructionStateMachine, f"_build_{tool.name.lower()}")
    for tool in ToolType
    if tool_spec(tool).pick is PickMode.POINTS and tool_spec(tool).dialog_on_complete is None
)
assert all(hasattr(ConstructionStateMachine, f"_submit_{kind.value}") for kind in DialogKind)
