"""
GeoCanvas Construction - Transformation builders
Reflection (central / axial) and rotation images of points, linear
objects and polygons.

Builders are pure: they read the scene and return a SceneDelta with the
new entities, nothing is written until Scene.apply_delta.

Reflection images are one-shot copies joined to their originals by dashed
construction segments. Rotation images carry a live RotationConstraint,
so dragging the source or changing the angle variable moves them.
"""

import copy
import math
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .constraints import RotationConstraint
from .formula import evaluate_scalar, is_defined
from .geometry import (
    EntityKind, LINEAR_KINDS, Point, Polygon, Segment, Vec2, new_id,
    reflect_point, reflect_point_over_line, rotate_point,
)
from .scene import Scene, SceneDelta

CONSTRUCTION_LINK_COLOR = "#94a3b8"
CONSTRUCTION_LINK_WIDTH = 1

TRANSFORMABLE_KINDS = (EntityKind.POINT, EntityKind.POLYGON) + LINEAR_KINDS


class ReflectionKind(Enum):
    CENTRAL = "central"  # about a point
    AXIAL = "axial"  # about a segment / line / ray


def _prime(label: Optional[str]) -> Optional[str]:
    return f"{label}'" if label else None


def _copy_with_points(entity, id_map: dict, prefix: str):
    """Copy of a linear entity / polygon rewired to the image points."""
    clone = copy.deepcopy(entity)
    clone.id = new_id(prefix)
    for name in entity.ref_fields:
        value = getattr(entity, name)
        if isinstance(value, list):
            setattr(clone, name, [id_map[v] for v in value])
        elif value:
            setattr(clone, name, id_map.get(value))
    if isinstance(clone, Polygon):
        # image vertices are plain points, the original center is not theirs
        clone.is_regular = False
        clone.center_id = None
    if getattr(clone, "constraint", None) is not None:
        clone.constraint = None
    return clone


def _source_points(scene: Scene, target_id: str, target_type: EntityKind):
    """Points to transform for a target, None if anything is missing."""
    if target_type not in TRANSFORMABLE_KINDS:
        return None, None
    entity = scene.get(target_type, target_id)
    if entity is None:
        return None, None
    if target_type is EntityKind.POINT:
        return entity, [entity]

    point_ids = entity.point_refs() if target_type in LINEAR_KINDS else list(entity.point_ids)
    points = [scene.point(pid) for pid in point_ids]
    if any(p is None for p in points):
        return None, None
    return entity, points


def _build(scene: Scene, target_id: str, target_type: EntityKind,
           make_point: Callable[[Point], Point], prefix: str,
           link: bool) -> Optional[SceneDelta]:
    entity, sources = _source_points(scene, target_id, target_type)
    if entity is None:
        return None

    delta = SceneDelta()
    id_map = {}
    for source in sources:
        if source.id in id_map:
            continue
        image = delta.add(make_point(source))
        id_map[source.id] = image.id
        if link:
            delta.add(Segment(
                start_point_id=source.id,
                end_point_id=image.id,
                id=new_id("s_dash"),
                style="dashed",
                stroke_width=CONSTRUCTION_LINK_WIDTH,
                color=CONSTRUCTION_LINK_COLOR,
            ))

    if target_type is not EntityKind.POINT:
        delta.add(_copy_with_points(entity, id_map, prefix))
    return delta


def reflect(kind: ReflectionKind, reference_id: str, target_id: str,
            target_type: EntityKind, scene: Scene) -> Optional[SceneDelta]:
    """
    Reflection image of a point / segment / line / ray / polygon.

    Args:
        kind: CENTRAL (reference is a point) or AXIAL (reference is linear)
        reference_id: center point or mirror id
        target_id: entity to reflect, must differ from the reference

    Returns:
        SceneDelta with primed copies, one dashed link per copied point and
        the rewired entity; None when references are missing or degenerate
    """
    if reference_id == target_id:
        return None

    if kind is ReflectionKind.CENTRAL:
        center = scene.coords(reference_id)
        if center is None:
            return None
        mapping: Callable[[Vec2], Vec2] = lambda p: reflect_point(p, center)
    else:
        mirror = scene.linear_points(reference_id)
        if mirror is None or mirror[0] == mirror[1]:
            return None
        mapping = lambda p: reflect_point_over_line(p, mirror[0], mirror[1])

    def make_point(source: Point) -> Point:
        x, y = mapping((source.x, source.y))
        return Point(
            x=x, y=y, id=new_id("p_prime"), label=_prime(source.label),
            color=source.color, radius=source.radius,
        )

    delta = _build(scene, target_id, target_type, make_point, f"{target_type.value}_prime", link=True)
    if delta is not None:
        logger.debug(f"[Transform] {kind.value} reflection of {target_id}: {len(delta.entities)} new entities")
    return delta


def rotate(center_id: str, target_id: str, target_type: EntityKind,
           angle_spec: str, scene: Scene) -> Optional[SceneDelta]:
    """
    Live rotation image about a center point.

    Args:
        angle_spec: degrees as text, a literal ("45") or variable/formula ("alpha")

    Returns:
        SceneDelta whose points carry RotationConstraint; initial positions
        are computed immediately (unresolvable angle: 0)
    """
    if center_id == target_id:
        return None
    center = scene.coords(center_id)
    if center is None:
        return None

    degrees = evaluate_scalar(angle_spec, scene.variable_map())
    if not is_defined(degrees):
        degrees = 0.0
    theta = math.radians(degrees)

    def make_point(source: Point) -> Point:
        x, y = rotate_point((source.x, source.y), center, theta)
        return Point(
            x=x, y=y, id=new_id("p_rot"), label=_prime(source.label),
            color=source.color, radius=source.radius,
            constraint=RotationConstraint(
                center_id=center_id, original_point_id=source.id, angle=str(angle_spec),
            ),
        )

    delta = _build(scene, target_id, target_type, make_point, f"{target_type.value}_rot", link=False)
    if delta is not None:
        logger.debug(f"[Transform] rotation of {target_id} by '{angle_spec}' about {center_id}")
    return delta
