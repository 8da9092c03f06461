"""
GeoCanvas Construction - Regular polygons
Creation from side count / side length and rigid updates while dragging
a vertex or the center.
"""

import math
from typing import Dict, Iterable, Optional

from .geometry import Point, Polygon, Vec2, new_id
from .scene import SceneDelta

_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def circumradius(sides: int, side_length: float) -> float:
    """R = s / (2 sin(pi / n))"""
    return side_length / (2 * math.sin(math.pi / sides))


def create_regular_polygon(sides: int, side_length: float, grid_size: float, center: Vec2,
                           existing_labels: Iterable[Optional[str]] = (),
                           **style) -> SceneDelta:
    """
    Builds center point, vertices and polygon.

    Args:
        sides: number of vertices (>= 3)
        side_length: in math units (grid cells)
        grid_size: world units per math unit
        center: world coordinate of the center
        existing_labels: labels already in use, vertices take the next free letters

    Raises:
        ValueError: fewer than 3 sides or non-positive side length
    """
    if sides < 3:
        raise ValueError(f"A polygon needs at least 3 sides, got {sides}")
    if side_length <= 0:
        raise ValueError(f"Side length must be positive, got {side_length}")

    radius = circumradius(sides, side_length * grid_size)
    delta = SceneDelta()

    center_point = delta.add(Point(
        x=center[0], y=center[1], id=new_id("p_center"),
        radius=3, label_offset_x=10, label_offset_y=10,
    ))

    used = {label for label in existing_labels if label}
    free_labels = (ch for ch in _LETTERS if ch not in used)

    vertex_ids = []
    for i in range(sides):
        angle = 2 * math.pi * i / sides - math.pi / 2  # first vertex on top
        vertex = delta.add(Point(
            x=center[0] + radius * math.cos(angle),
            y=center[1] + radius * math.sin(angle),
            label=next(free_labels, None),
        ))
        vertex_ids.append(vertex.id)

    delta.add(Polygon(
        point_ids=vertex_ids,
        is_regular=True,
        center_id=center_point.id,
        fill_opacity=0.2,
        **style,
    ))
    return delta


def regular_polygon_update(dragged_id: str, new_x: float, new_y: float,
                           polygon: Polygon, scene) -> Dict[str, Vec2]:
    """
    New coordinates for all points of a regular polygon.

    Dragging the center translates the whole polygon. Dragging a vertex
    scales and rotates about the center: every vertex keeps the dragged
    radius at its angular offset k * 2pi / n.

    Returns:
        point id -> (x, y), empty if the polygon is not regular or the
        dragged point does not belong to it
    """
    if not polygon.is_regular or not polygon.center_id:
        return {}
    center = scene.point(polygon.center_id)
    if center is None:
        return {}

    updates: Dict[str, Vec2] = {}

    if dragged_id == polygon.center_id:
        dx, dy = new_x - center.x, new_y - center.y
        updates[center.id] = (new_x, new_y)
        for pid in polygon.point_ids:
            p = scene.point(pid)
            if p is not None:
                updates[pid] = (p.x + dx, p.y + dy)
        return updates

    if dragged_id not in polygon.point_ids:
        return {}

    index = polygon.point_ids.index(dragged_id)
    radius = math.hypot(new_x - center.x, new_y - center.y)
    base_angle = math.atan2(new_y - center.y, new_x - center.x)
    n = len(polygon.point_ids)

    updates[dragged_id] = (new_x, new_y)
    for k, pid in enumerate(polygon.point_ids):
        if pid == dragged_id:
            continue
        angle = base_angle + (k - index) * 2 * math.pi / n
        updates[pid] = (center.x + radius * math.cos(angle), center.y + radius * math.sin(angle))
    return updates
