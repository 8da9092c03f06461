"""
GeoCanvas Construction - Render info
Resolved drawing geometry per entity, the only view a renderer needs of
the scene. Coordinates are world coordinates (y down).
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from config.tolerances import Tolerances
from .formula import evaluate_formula
from .geometry import EntityKind, Vec2, angle_between, ellipse_axes, to_world


@dataclass
class RenderInfo:
    """
    Drawing geometry of one entity.

    points: named anchor coordinates ("start", "end", "center", ...)
    values: scalar measures ("radius", "rx", "degrees", ...)
    polylines: sampled curves (function graphs), split where undefined
    """
    kind: EntityKind
    id: str
    points: Dict[str, Vec2] = field(default_factory=dict)
    values: Dict[str, float] = field(default_factory=dict)
    polylines: List[List[Vec2]] = field(default_factory=list)
    vertices: List[Vec2] = field(default_factory=list)
    flags: Dict[str, bool] = field(default_factory=dict)


def _coords(scene, *ids) -> Optional[Tuple[Vec2, ...]]:
    coords = tuple(scene.coords(i) for i in ids)
    if any(c is None for c in coords):
        return None
    return coords


def _extend(a: Vec2, b: Vec2, extent: float) -> Optional[Vec2]:
    dx, dy = b[0] - a[0], b[1] - a[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return None
    return a[0] + dx / length * extent, a[1] + dy / length * extent


def _describe_segment(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, entity.start_point_id, entity.end_point_id)
    if coords is None:
        return False
    info.points["start"], info.points["end"] = coords
    return True


def _describe_line(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, entity.p1_id, entity.p2_id)
    if coords is None:
        return False
    a, b = coords
    extent = Tolerances.RESOLVE_LARGE_EXTENT * 2
    forward, backward = _extend(a, b, extent), _extend(b, a, extent)
    if forward is None:
        return False
    info.points["start"], info.points["end"] = backward, forward
    return True


def _describe_ray(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, entity.start_point_id, entity.direction_point_id)
    if coords is None:
        return False
    far = _extend(coords[0], coords[1], Tolerances.RESOLVE_LARGE_EXTENT * 2)
    if far is None:
        return False
    info.points["start"], info.points["end"] = coords[0], far
    return True


def circle_radius(scene, circle) -> Optional[float]:
    """Radius from the radius point, else the fixed radius_value."""
    center = scene.coords(circle.center_id)
    if center is None:
        return None
    rp = scene.coords(circle.radius_point_id)
    if rp is not None:
        return math.hypot(rp[0] - center[0], rp[1] - center[1])
    return circle.radius_value


def _describe_circle(scene, entity, info: RenderInfo) -> bool:
    center = scene.coords(entity.center_id)
    radius = circle_radius(scene, entity)
    if center is None or radius is None:
        return False
    info.points["center"] = center
    info.values["radius"] = radius
    return True


def ellipse_geometry(scene, ellipse) -> Optional[Tuple[Vec2, float, float, float]]:
    """(center, rx, ry, rotation_rad) from defining points or stored values."""
    coords = _coords(scene, ellipse.center_id, ellipse.major_axis_point_id, ellipse.minor_axis_point_id)
    if coords is not None:
        rx, ry, rotation = ellipse_axes(*coords)
        return coords[0], rx, ry, rotation
    if None in (ellipse.cx, ellipse.cy, ellipse.rx, ellipse.ry):
        return None
    return (ellipse.cx, ellipse.cy), ellipse.rx, ellipse.ry, math.radians(ellipse.rotation or 0.0)


def _describe_ellipse(scene, entity, info: RenderInfo) -> bool:
    geometry = ellipse_geometry(scene, entity)
    if geometry is None or geometry[1] <= 0 or geometry[2] <= 0:
        return False
    center, rx, ry, rotation = geometry
    info.points["center"] = center
    info.values.update(rx=rx, ry=ry, rotation=math.degrees(rotation))
    return True


def _describe_arc(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, entity.center_id, entity.start_point_id, entity.end_point_id)
    if coords is None:
        return False
    center, start, end = coords
    info.points.update(center=center, start=start, end=end)
    info.values["radius"] = math.hypot(start[0] - center[0], start[1] - center[1])
    info.values["start_angle"] = math.degrees(math.atan2(start[1] - center[1], start[0] - center[0]))
    info.values["end_angle"] = math.degrees(math.atan2(end[1] - center[1], end[0] - center[0]))
    info.flags["is_major"] = entity.is_major
    return True


def _describe_elliptical_arc(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, entity.center_id, entity.major_axis_point_id, entity.minor_axis_point_id,
                     entity.start_point_id, entity.end_point_id)
    if coords is None:
        return False
    center, major, minor, start, end = coords
    rx, ry, rotation = ellipse_axes(center, major, minor)
    if rx <= 0 or ry <= 0:
        return False
    info.points.update(center=center, start=start, end=end)
    info.values.update(rx=rx, ry=ry, rotation=math.degrees(rotation))
    info.flags["is_major"] = entity.is_major
    return True


def _describe_polygon(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, *entity.point_ids)
    if coords is None or len(coords) < 3:
        return False
    info.vertices = list(coords)
    if entity.center_id:
        center = scene.coords(entity.center_id)
        if center is not None:
            info.points["center"] = center
    return True


def sample_graph(formula: str, variables: Dict[str, float], grid_size: float,
                 x_range: Tuple[float, float], samples: int) -> List[List[Vec2]]:
    """
    Samples y = f(x) over a math x range.

    Returns:
        world coordinate polylines, split at undefined values
    """
    polylines: List[List[Vec2]] = []
    current: List[Vec2] = []
    for mx in np.linspace(x_range[0], x_range[1], samples):
        my = evaluate_formula(formula, float(mx), variables)
        if math.isnan(my):
            if len(current) > 1:
                polylines.append(current)
            current = []
            continue
        current.append(to_world(float(mx), my, grid_size))
    if len(current) > 1:
        polylines.append(current)
    return polylines


def _describe_graph(scene, entity, info: RenderInfo, x_range: Tuple[float, float]) -> bool:
    info.polylines = sample_graph(entity.formula, scene.variable_map(), scene.grid_size,
                                  x_range, Tolerances.GRAPH_SAMPLES)
    if entity.label_x is not None and entity.label_y is not None:
        info.points["label"] = (entity.label_x, entity.label_y)
    return bool(info.polylines)


def _describe_angle(scene, entity, info: RenderInfo) -> bool:
    coords = _coords(scene, entity.point1_id, entity.center_id, entity.point2_id)
    if coords is None:
        return False
    p1, center, p2 = coords
    if center == p1 or center == p2:
        return False
    degrees = angle_between(p1, center, p2)
    info.points.update(point1=p1, center=center, point2=p2)
    info.values["degrees"] = degrees
    info.flags["right_angle"] = (
        entity.is_right_angle or abs(degrees - 90) < Tolerances.RIGHT_ANGLE_TOLERANCE_DEG
    )
    return True


def _describe_solid(names: Tuple[str, ...]) -> Callable:
    def describe_solid(scene, entity, info: RenderInfo) -> bool:
        coords = _coords(scene, *(getattr(entity, n) for n in names))
        if coords is None:
            return False
        for name, coord in zip(names, coords):
            info.points[name[:-3]] = coord  # strip "_id"
        base = coords[0]
        info.values["radius"] = math.hypot(coords[1][0] - base[0], coords[1][1] - base[1])
        return True
    return describe_solid


_DESCRIBERS: Dict[EntityKind, Callable] = {
    EntityKind.SEGMENT: _describe_segment,
    EntityKind.LINE: _describe_line,
    EntityKind.RAY: _describe_ray,
    EntityKind.CIRCLE: _describe_circle,
    EntityKind.ELLIPSE: _describe_ellipse,
    EntityKind.ARC: _describe_arc,
    EntityKind.ELLIPTICAL_ARC: _describe_elliptical_arc,
    EntityKind.POLYGON: _describe_polygon,
    EntityKind.ANGLE: _describe_angle,
    EntityKind.CYLINDER: _describe_solid(("bottom_center_id", "radius_point_id", "top_center_id")),
    EntityKind.CONE: _describe_solid(("bottom_center_id", "radius_point_id", "apex_id")),
    EntityKind.SPHERE: _describe_solid(("center_id", "radius_point_id")),
}


def describe(scene, kind: EntityKind, entity_id: str,
             x_range: Tuple[float, float] = (-20.0, 20.0)) -> Optional[RenderInfo]:
    """
    Resolved geometry of one entity.

    Args:
        x_range: visible math x range, used to sample function graphs

    Returns:
        RenderInfo, or None when the entity or a reference is missing or
        the geometry is undefined (zero length, empty graph, ...)
    """
    entity = scene.get(kind, entity_id)
    if entity is None:
        return None

    info = RenderInfo(kind=kind, id=entity_id)
    if kind is EntityKind.POINT:
        info.points["position"] = (entity.x, entity.y)
        return info
    if kind is EntityKind.FUNCTION_GRAPH:
        return info if _describe_graph(scene, entity, info, x_range) else None
    return info if _DESCRIBERS[kind](scene, entity, info) else None


# Points and graphs are handled inline, AXIS is virtual.
assert set(_DESCRIBERS) == set(EntityKind) - {EntityKind.POINT, EntityKind.FUNCTION_GRAPH, EntityKind.AXIS}
