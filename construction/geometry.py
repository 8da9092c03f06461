"""
GeoCanvas Construction - Geometry primitives
Scene entities (points, linear objects, conics, polygons, solids, graphs)
and the plain 2D helpers shared by resolver, hit-test and transforms.

Entities hold ids of the points they use, never the points themselves.
"""

import math
import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Callable, ClassVar, Dict, List, Optional, Tuple

from .constraints import LineConstraint, PointConstraint, point_constraint_from_dict


Vec2 = Tuple[float, float]


class EntityKind(Enum):
    """Entity kinds; the value is the selection / snapshot type name."""
    POINT = "point"
    SEGMENT = "segment"
    LINE = "line"
    RAY = "ray"
    CIRCLE = "circle"
    ELLIPSE = "ellipse"
    ARC = "arc"
    ELLIPTICAL_ARC = "ellipticalArc"
    POLYGON = "polygon"
    FUNCTION_GRAPH = "functionGraph"
    ANGLE = "angle"
    CYLINDER = "cylinder"
    CONE = "cone"
    SPHERE = "sphere"
    AXIS = "axis"  # pseudo kind, ids 'axis-x' / 'axis-y', never stored


LINEAR_KINDS = (EntityKind.SEGMENT, EntityKind.LINE, EntityKind.RAY)


def new_id(prefix: str = "el") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:9]}"


def to_camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


class SceneEntity:
    """
    Mixin for all stored entities.

    ref_fields names the attributes holding point (or graph) ids; list
    valued attributes are flattened. field_decoders converts snapshot
    values on load.
    """
    kind: ClassVar[EntityKind]
    ref_fields: ClassVar[Tuple[str, ...]] = ()
    field_decoders: ClassVar[Dict[str, Callable]] = {}

    def point_refs(self) -> List[str]:
        refs = []
        for name in self.ref_fields:
            value = getattr(self, name)
            if isinstance(value, (list, tuple)):
                refs.extend(value)
            elif value:
                refs.append(value)
        return refs

    def referenced_ids(self) -> List[str]:
        """All ids this entity depends on (points plus constraint sources)."""
        refs = self.point_refs()
        constraint = getattr(self, "constraint", None)
        if constraint is not None:
            refs.extend(constraint.referenced_ids())
        return refs

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if hasattr(value, "to_dict"):
                value = value.to_dict()
            elif isinstance(value, list):
                value = list(value)
            data[to_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict):
        """
        Builds the entity from a snapshot dict (camelCase keys).

        Raises:
            TypeError: required field missing
            ValueError / KeyError: malformed field value
        """
        kwargs = {}
        for f in fields(cls):
            key = to_camel(f.name)
            if key not in data or data[key] is None:
                continue
            value = data[key]
            decoder = cls.field_decoders.get(f.name)
            kwargs[f.name] = decoder(value) if decoder else value
        return cls(**kwargs)


# =============================================================================
# Points
# =============================================================================

@dataclass
class Point(SceneEntity):
    """Point in world coordinates, optionally derived through a constraint."""
    x: float = 0.0
    y: float = 0.0
    id: str = field(default_factory=lambda: new_id("p"))
    label: Optional[str] = None
    label_offset_x: Optional[float] = None
    label_offset_y: Optional[float] = None
    color: Optional[str] = None
    radius: Optional[float] = None
    hidden: bool = False
    auxiliary: bool = False  # helper point owned by a constrained line
    show_coord_proj: bool = False
    proj_color: Optional[str] = None
    constraint: Optional[PointConstraint] = None

    kind: ClassVar[EntityKind] = EntityKind.POINT
    field_decoders: ClassVar[Dict[str, Callable]] = {
        "x": float,
        "y": float,
        "constraint": point_constraint_from_dict,
    }

    @property
    def is_free(self) -> bool:
        return self.constraint is None

    def as_tuple(self) -> Vec2:
        return (self.x, self.y)

    def __repr__(self):
        return f"P({self.id}: {self.x:.2f}, {self.y:.2f})"


# =============================================================================
# Linear
# =============================================================================

@dataclass
class Segment(SceneEntity):
    start_point_id: str
    end_point_id: str
    id: str = field(default_factory=lambda: new_id("seg"))
    style: str = "solid"
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    arrows: Optional[str] = None  # none | start | end | both
    arrow_size: Optional[float] = None
    marker: Optional[str] = None  # tick1 | tick2 | tick3 | cross | tickCross
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.SEGMENT
    ref_fields: ClassVar[Tuple[str, ...]] = ("start_point_id", "end_point_id")


@dataclass
class InfiniteLine(SceneEntity):
    """Line through two points; may carry a perpendicular/parallel constraint."""
    p1_id: str
    p2_id: str
    id: str = field(default_factory=lambda: new_id("line"))
    style: str = "solid"
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    hidden: bool = False
    constraint: Optional[LineConstraint] = None

    kind: ClassVar[EntityKind] = EntityKind.LINE
    ref_fields: ClassVar[Tuple[str, ...]] = ("p1_id", "p2_id")
    field_decoders: ClassVar[Dict[str, Callable]] = {"constraint": LineConstraint.from_dict}


@dataclass
class Ray(SceneEntity):
    start_point_id: str
    direction_point_id: str
    id: str = field(default_factory=lambda: new_id("ray"))
    style: str = "solid"
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.RAY
    ref_fields: ClassVar[Tuple[str, ...]] = ("start_point_id", "direction_point_id")


# =============================================================================
# Conics
# =============================================================================

@dataclass
class Circle(SceneEntity):
    """Circle through radius_point_id, or with a fixed radius_value (world units)."""
    center_id: str
    id: str = field(default_factory=lambda: new_id("circle"))
    radius_point_id: Optional[str] = None
    radius_value: Optional[float] = None
    color: Optional[str] = None
    fill_color: Optional[str] = None
    fill_style: Optional[str] = None
    fill_opacity: Optional[float] = None
    style: str = "solid"
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.CIRCLE
    ref_fields: ClassVar[Tuple[str, ...]] = ("center_id", "radius_point_id")


@dataclass
class Ellipse(SceneEntity):
    """
    Ellipse defined by center, major axis end and a minor axis point.

    The cx/cy/rx/ry/rotation fields describe ellipses imported without
    defining points.
    """
    center_id: Optional[str] = None
    major_axis_point_id: Optional[str] = None
    minor_axis_point_id: Optional[str] = None
    id: str = field(default_factory=lambda: new_id("ellipse"))
    cx: Optional[float] = None
    cy: Optional[float] = None
    rx: Optional[float] = None
    ry: Optional[float] = None
    rotation: Optional[float] = None  # degrees
    color: Optional[str] = None
    fill_color: Optional[str] = None
    fill_style: Optional[str] = None
    fill_opacity: Optional[float] = None
    style: str = "solid"
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.ELLIPSE
    ref_fields: ClassVar[Tuple[str, ...]] = ("center_id", "major_axis_point_id", "minor_axis_point_id")


@dataclass
class Arc(SceneEntity):
    center_id: str
    start_point_id: str
    end_point_id: str
    id: str = field(default_factory=lambda: new_id("arc"))
    is_major: bool = False
    color: Optional[str] = None
    fill_color: Optional[str] = None
    fill_style: Optional[str] = None
    fill_opacity: Optional[float] = None
    fill_mode: Optional[str] = None  # segment | sector
    stroke_width: Optional[float] = None
    style: str = "solid"
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.ARC
    ref_fields: ClassVar[Tuple[str, ...]] = ("center_id", "start_point_id", "end_point_id")


@dataclass
class EllipticalArc(SceneEntity):
    center_id: str
    major_axis_point_id: str
    minor_axis_point_id: str
    start_point_id: str
    end_point_id: str
    id: str = field(default_factory=lambda: new_id("earc"))
    is_major: bool = False
    color: Optional[str] = None
    fill_color: Optional[str] = None
    fill_style: Optional[str] = None
    fill_opacity: Optional[float] = None
    fill_mode: Optional[str] = None
    stroke_width: Optional[float] = None
    style: str = "solid"
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.ELLIPTICAL_ARC
    ref_fields: ClassVar[Tuple[str, ...]] = (
        "center_id", "major_axis_point_id", "minor_axis_point_id", "start_point_id", "end_point_id",
    )


# =============================================================================
# Polygons, graphs, angles
# =============================================================================

@dataclass
class Polygon(SceneEntity):
    """Ordered vertex list; regular polygons also reference their center point."""
    point_ids: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: new_id("poly"))
    color: Optional[str] = None
    fill_color: Optional[str] = None
    fill_style: Optional[str] = None
    fill_opacity: Optional[float] = None
    stroke_width: Optional[float] = None
    style: Optional[str] = None
    hidden: bool = False
    is_regular: bool = False
    center_id: Optional[str] = None

    kind: ClassVar[EntityKind] = EntityKind.POLYGON
    ref_fields: ClassVar[Tuple[str, ...]] = ("point_ids", "center_id")
    field_decoders: ClassVar[Dict[str, Callable]] = {"point_ids": lambda ids: [str(i) for i in ids]}


@dataclass
class FunctionGraph(SceneEntity):
    formula: str
    id: str = field(default_factory=lambda: new_id("graph"))
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    style: Optional[str] = None
    hidden: bool = False
    label_x: Optional[float] = None
    label_y: Optional[float] = None

    kind: ClassVar[EntityKind] = EntityKind.FUNCTION_GRAPH


@dataclass
class Angle(SceneEntity):
    """Angle point1 - center - point2, measured counter-clockwise on screen."""
    point1_id: str
    center_id: str
    point2_id: str
    id: str = field(default_factory=lambda: new_id("angle"))
    is_right_angle: bool = False
    arc_count: int = 1
    has_tick: bool = False
    show_label: bool = True
    font_size: Optional[float] = None
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.ANGLE
    ref_fields: ClassVar[Tuple[str, ...]] = ("point1_id", "center_id", "point2_id")


# =============================================================================
# Solids (drawn in oblique projection)
# =============================================================================

@dataclass
class Cylinder(SceneEntity):
    bottom_center_id: str
    radius_point_id: str
    top_center_id: str
    id: str = field(default_factory=lambda: new_id("cyl"))
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.CYLINDER
    ref_fields: ClassVar[Tuple[str, ...]] = ("bottom_center_id", "radius_point_id", "top_center_id")


@dataclass
class Cone(SceneEntity):
    bottom_center_id: str
    radius_point_id: str
    apex_id: str
    id: str = field(default_factory=lambda: new_id("cone"))
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.CONE
    ref_fields: ClassVar[Tuple[str, ...]] = ("bottom_center_id", "radius_point_id", "apex_id")


@dataclass
class Sphere(SceneEntity):
    center_id: str
    radius_point_id: str
    id: str = field(default_factory=lambda: new_id("sphere"))
    color: Optional[str] = None
    stroke_width: Optional[float] = None
    hidden: bool = False

    kind: ClassVar[EntityKind] = EntityKind.SPHERE
    ref_fields: ClassVar[Tuple[str, ...]] = ("center_id", "radius_point_id")


ENTITY_CLASSES = {
    cls.kind: cls
    for cls in (Point, Segment, InfiniteLine, Ray, Circle, Ellipse, Arc, EllipticalArc,
                Polygon, FunctionGraph, Angle, Cylinder, Cone, Sphere)
}

# Every stored kind needs a class (AXIS is virtual).
assert set(ENTITY_CLASSES) == set(EntityKind) - {EntityKind.AXIS}


# =============================================================================
# 2D helpers (world coordinates, y down)
# =============================================================================

def distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(bx - ax, by - ay)


def line_coefficients(p1: Vec2, p2: Vec2) -> Tuple[float, float, float]:
    """Implicit line a*x + b*y + c = 0 through p1 and p2."""
    a = p1[1] - p2[1]
    b = p2[0] - p1[0]
    c = -a * p1[0] - b * p1[1]
    return a, b, c


def intersect_lines(l1: Tuple[float, float, float], l2: Tuple[float, float, float],
                    eps: float = 1e-9) -> Optional[Vec2]:
    """Intersection of two implicit lines, None when parallel (|det| < eps)."""
    det = l1[0] * l2[1] - l2[0] * l1[1]
    if abs(det) < eps:
        return None
    x = (l1[1] * l2[2] - l2[1] * l1[2]) / det
    y = (l2[0] * l1[2] - l1[0] * l2[2]) / det
    return x, y


def project_parameter(px: float, py: float, a: Vec2, b: Vec2) -> Optional[float]:
    """Parameter t of the orthogonal projection on a->b, None if a == b."""
    dx, dy = b[0] - a[0], b[1] - a[1]
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return None
    return ((px - a[0]) * dx + (py - a[1]) * dy) / len_sq


def project_onto_line(px: float, py: float, a: Vec2, b: Vec2) -> Vec2:
    t = project_parameter(px, py, a, b)
    if t is None:
        return a
    return a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1])


def project_onto_circle(px: float, py: float, center: Vec2, radius: float) -> Vec2:
    dx, dy = px - center[0], py - center[1]
    d = math.hypot(dx, dy)
    if d == 0:
        return center[0] + radius, center[1]
    return center[0] + dx / d * radius, center[1] + dy / d * radius


def rotate_point(p: Vec2, center: Vec2, angle_rad: float) -> Vec2:
    """Standard rotation in world coordinates (clockwise on screen, y down)."""
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    dx, dy = p[0] - center[0], p[1] - center[1]
    return center[0] + dx * c - dy * s, center[1] + dx * s + dy * c


def reflect_point(p: Vec2, center: Vec2) -> Vec2:
    return 2 * center[0] - p[0], 2 * center[1] - p[1]


def reflect_point_over_line(p: Vec2, a: Vec2, b: Vec2) -> Vec2:
    fx, fy = project_onto_line(p[0], p[1], a, b)
    return 2 * fx - p[0], 2 * fy - p[1]


def angle_between(p1: Vec2, center: Vec2, p2: Vec2) -> float:
    """Angle p1-center-p2 in degrees, 0..360."""
    a1 = math.atan2(p1[1] - center[1], p1[0] - center[0])
    a2 = math.atan2(p2[1] - center[1], p2[0] - center[0])
    deg = math.degrees(a2 - a1)
    if deg < 0:
        deg += 360
    return deg


def ellipse_axes(center: Vec2, major: Vec2, minor: Vec2) -> Tuple[float, float, float]:
    """
    (rx, ry, rotation_rad) from center, major axis end and minor point.

    ry is the distance of the minor point from the major axis line.
    """
    rx = distance(center[0], center[1], major[0], major[1])
    rotation = math.atan2(major[1] - center[1], major[0] - center[0])
    if rx == 0:
        return 0.0, 0.0, rotation
    ux, uy = (major[0] - center[0]) / rx, (major[1] - center[1]) / rx
    ry = abs(-(minor[0] - center[0]) * uy + (minor[1] - center[1]) * ux)
    return rx, ry, rotation


def ellipse_value(px: float, py: float, center: Vec2, rx: float, ry: float, rotation: float) -> float:
    """Normalized implicit value: 1.0 exactly on the ellipse."""
    dx, dy = px - center[0], py - center[1]
    c, s = math.cos(-rotation), math.sin(-rotation)
    lx = dx * c - dy * s
    ly = dx * s + dy * c
    return (lx * lx) / (rx * rx) + (ly * ly) / (ry * ry)


def project_onto_ellipse(px: float, py: float, center: Vec2, rx: float, ry: float, rotation: float) -> Vec2:
    """Radial projection (along the ray from the center) onto the ellipse."""
    dx, dy = px - center[0], py - center[1]
    c, s = math.cos(-rotation), math.sin(-rotation)
    lx = dx * c - dy * s
    ly = dx * s + dy * c
    theta = math.atan2(ly * rx, lx * ry) if (lx or ly) else 0.0
    ex, ey = rx * math.cos(theta), ry * math.sin(theta)
    c, s = math.cos(rotation), math.sin(rotation)
    return center[0] + ex * c - ey * s, center[1] + ex * s + ey * c


def point_in_polygon(px: float, py: float, vertices: List[Vec2]) -> bool:
    """Even-odd ray casting."""
    inside = False
    n = len(vertices)
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > py) != (yj > py) and px < (xj - xi) * (py - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def to_math(x: float, y: float, grid_size: float) -> Vec2:
    """World -> math coordinates (y up, grid_size world units per unit)."""
    return x / grid_size, -y / grid_size


def to_world(mx: float, my: float, grid_size: float) -> Vec2:
    return mx * grid_size, -my * grid_size
