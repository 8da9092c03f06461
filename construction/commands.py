"""
GeoCanvas Construction - Scene commands
One entry point per edit. Every command is a pure (scene, params) -> scene'
function: the input scene is never mutated, the returned copy is resolved.

Usage:
    from construction import commands

    scene = commands.add_variable(scene, name="a", value=2)
    scene = commands.drag_entities(scene, ["p_1"], dx=10, dy=0)
"""

import math
from typing import Iterable, List, Optional, Sequence

from loguru import logger

from .constraints import OnAxisConstraint, OnFunctionGraphConstraint
from .geometry import Angle, EntityKind, Point, Vec2
from .regular_polygon import regular_polygon_update
from .scene import Scene, SceneDelta
from .solver import ConstraintResolver
from .variables import AnimationDirection, Variable

# Attributes that wire entities together; never changed by a style update
_STRUCTURAL_FIELDS = {"id", "constraint", "x", "y", "point_ids", "is_regular", "center_id"}


def _resolved(scene: Scene) -> Scene:
    ConstraintResolver().resolve(scene)
    return scene


# =============================================================================
# Dragging
# =============================================================================

def _points_to_move(scene: Scene, ids: Sequence[str]) -> List[str]:
    """Points dragged by the selection: points themselves plus defining points of entities."""
    ordered: List[str] = []
    seen = set()

    def push(pid: Optional[str]):
        if pid and pid not in seen and pid in scene.points:
            seen.add(pid)
            ordered.append(pid)

    for entity_id in ids:
        entity = scene.find(entity_id)
        if entity is None:
            continue
        if entity.kind is EntityKind.POINT:
            push(entity.id)
        else:
            for pid in entity.point_refs():
                push(pid)

    # A solid's radius point rides along with the base it belongs to
    for cyl in scene.entities(EntityKind.CYLINDER):
        rad, top, bottom = (scene.point(cyl.radius_point_id), scene.point(cyl.top_center_id),
                            scene.point(cyl.bottom_center_id))
        if rad is None or top is None or bottom is None:
            continue
        dist_top = math.hypot(rad.x - top.x, rad.y - top.y)
        dist_bottom = math.hypot(rad.x - bottom.x, rad.y - bottom.y)
        if top.id in seen and dist_top <= dist_bottom:
            push(rad.id)
        if bottom.id in seen and dist_bottom < dist_top:
            push(rad.id)
    for cone in scene.entities(EntityKind.CONE):
        if cone.bottom_center_id in seen:
            push(cone.radius_point_id)

    return ordered


def _move_point(scene: Scene, point: Point, dx: float, dy: float) -> None:
    """
    Routes a drag write by constraint kind.

    Free and on-axis points move (the axis constraint is reapplied on
    resolution), graph points re-parametrize, intersection and rotation
    points are owned by the resolver and ignore the write.
    """
    constraint = point.constraint
    if constraint is None or isinstance(constraint, OnAxisConstraint):
        point.x += dx
        point.y += dy
    elif isinstance(constraint, OnFunctionGraphConstraint):
        constraint.x_param = (point.x + dx) / scene.grid_size


def _keep_perpendicular(scene: Scene, dragged_id: str) -> None:
    """Radius points of cylinders / cones stay perpendicular to the solid's axis."""
    for cyl in scene.entities(EntityKind.CYLINDER):
        if cyl.radius_point_id == dragged_id:
            _project_on_normal(scene, cyl.radius_point_id, cyl.top_center_id, cyl.bottom_center_id,
                               anchor_id=cyl.top_center_id)
    for cone in scene.entities(EntityKind.CONE):
        if cone.radius_point_id == dragged_id:
            _project_on_normal(scene, cone.radius_point_id, cone.apex_id, cone.bottom_center_id,
                               anchor_id=cone.bottom_center_id)


def _project_on_normal(scene: Scene, radius_id: str, axis_a_id: str, axis_b_id: str, anchor_id: str) -> None:
    rad, a, b, anchor = (scene.point(radius_id), scene.point(axis_a_id),
                         scene.point(axis_b_id), scene.point(anchor_id))
    if rad is None or a is None or b is None or anchor is None or not rad.is_free:
        return
    ax, ay = a.x - b.x, a.y - b.y
    if math.hypot(ax, ay) <= 1e-4:
        return
    nx, ny = -ay, ax
    scale = ((rad.x - anchor.x) * nx + (rad.y - anchor.y) * ny) / (nx * nx + ny * ny)
    rad.x = anchor.x + nx * scale
    rad.y = anchor.y + ny * scale


def drag_entities(scene: Scene, ids: Sequence[str], dx: float, dy: float,
                  target: Optional[Vec2] = None) -> Scene:
    """
    Moves the selection by (dx, dy) world units and resolves.

    Args:
        ids: dragged entity ids (points or entities)
        target: pointer position in world coordinates; required for the
                rigid regular polygon drag of a single vertex / center

    Returns:
        resolved copy of the scene
    """
    scene = scene.copy()

    if len(ids) == 1 and target is not None:
        dragged_id = ids[0]
        for polygon in scene.polygons.values():
            if polygon.is_regular and (dragged_id in polygon.point_ids or dragged_id == polygon.center_id):
                for pid, (x, y) in regular_polygon_update(dragged_id, target[0], target[1], polygon, scene).items():
                    point = scene.point(pid)
                    point.x, point.y = x, y
                return _resolved(scene)

    for pid in _points_to_move(scene, ids):
        _move_point(scene, scene.points[pid], dx, dy)

    if len(ids) == 1:
        _keep_perpendicular(scene, ids[0])

    return _resolved(scene)


def move_point_to(scene: Scene, point_id: str, x: float, y: float) -> Scene:
    """Drags a single point to an absolute position."""
    point = scene.point(point_id)
    if point is None:
        return scene.copy()
    return drag_entities(scene, [point_id], x - point.x, y - point.y, target=(x, y))


# =============================================================================
# Entities
# =============================================================================

def add_entities(scene: Scene, delta: SceneDelta) -> Scene:
    """Commits a builder delta atomically and resolves."""
    scene = scene.copy()
    scene.apply_delta(delta)
    return _resolved(scene)


def delete_entities(scene: Scene, ids: Iterable[str]) -> Scene:
    """Cascading delete: dependents of deleted entities go too."""
    scene = scene.copy()
    deleted = scene.delete(ids)
    logger.info(f"[Commands] Deleted {len(deleted)} entities")
    return _resolved(scene)


def update_entities(scene: Scene, ids: Iterable[str], **attrs) -> Scene:
    """
    Batch style update (color, style, stroke_width, hidden, label, ...).

    Attributes an entity does not have are skipped; wiring attributes
    (ids, constraints, coordinates) cannot be changed this way.

    Raises:
        ValueError: a wiring attribute was passed
    """
    forbidden = _STRUCTURAL_FIELDS.intersection(attrs)
    if forbidden:
        raise ValueError(f"Not a style attribute: {sorted(forbidden)}")

    scene = scene.copy()
    for entity_id in ids:
        entity = scene.find(entity_id)
        if entity is None:
            continue
        for name, value in attrs.items():
            if hasattr(entity, name) and name not in entity.ref_fields:
                setattr(entity, name, value)
    return scene


def set_formula(scene: Scene, graph_id: str, formula: str) -> Scene:
    """Replaces a graph formula; points riding on it follow."""
    scene = scene.copy()
    graph = scene.function_graphs.get(graph_id)
    if graph is not None:
        graph.formula = formula
    return _resolved(scene)


def update_angle(scene: Scene, angle_id: str, degrees: float) -> Scene:
    """Sets an angle by moving its second point around the center (same radius)."""
    scene = scene.copy()
    angle: Optional[Angle] = scene.get(EntityKind.ANGLE, angle_id)
    if angle is None:
        return scene
    center, p1, p2 = scene.point(angle.center_id), scene.point(angle.point1_id), scene.point(angle.point2_id)
    if center is None or p1 is None or p2 is None or not p2.is_free:
        return scene

    theta1 = math.atan2(p1.y - center.y, p1.x - center.x)
    r2 = math.hypot(p2.x - center.x, p2.y - center.y)
    theta2 = theta1 + math.radians(degrees)
    p2.x = center.x + r2 * math.cos(theta2)
    p2.y = center.y + r2 * math.sin(theta2)
    return _resolved(scene)


def set_grid_size(scene: Scene, grid_size: float) -> Scene:
    """
    Changes the math scale. Graph points keep their x_param and move with it.

    Raises:
        ValueError: non-positive grid size
    """
    if grid_size <= 0:
        raise ValueError(f"Grid size must be positive: {grid_size}")
    scene = scene.copy()
    scene.grid_size = grid_size
    return _resolved(scene)


# =============================================================================
# Variables
# =============================================================================

def add_variable(scene: Scene, name: Optional[str] = None, **fields) -> Scene:
    """
    Adds a variable (defaults: value 1, range -10..10, step 0.1).

    Raises:
        ValueError: name already used (case-insensitive)
    """
    scene = scene.copy()
    name = (name or scene.next_variable_name()).strip()
    if scene.variable_by_name(name) is not None:
        raise ValueError(f"Variable '{name}' already exists")
    scene.add_variable(Variable(name=name, **fields))
    return _resolved(scene)


def update_variable(scene: Scene, variable_id: str, **updates) -> Scene:
    """Partial update of a variable, followed by a resolution pass."""
    scene = scene.copy()
    var = scene.variables.get(variable_id)
    if var is None:
        return scene
    for name, value in updates.items():
        if not hasattr(var, name) or name == "id":
            raise ValueError(f"Unknown variable attribute: {name}")
        setattr(var, name, value)
    return _resolved(scene)


def delete_variable(scene: Scene, variable_id: str) -> Scene:
    """Removes a variable; formulas using it become undefined and their points stay put."""
    scene = scene.copy()
    scene.delete_variable(variable_id)
    return _resolved(scene)


def toggle_animation(scene: Scene, variable_id: str, direction: str) -> Scene:
    """
    Starts ('forward' / 'backward') or stops ('stop') a variable animation.

    Raises:
        ValueError: unknown direction
    """
    scene = scene.copy()
    var = scene.variables.get(variable_id)
    if var is None:
        return scene
    if direction == "stop":
        var.is_playing = False
    else:
        var.direction = AnimationDirection(direction)
        var.is_playing = True
    return scene
