"""
GeoCanvas Construction - Scene import
Tolerant loading of externally produced scene snapshots, e.g. the JSON
answer of the natural-language sketch service.

Import is all or nothing: a payload is fully validated and built into a
fresh Scene before the caller sees anything.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Union

from loguru import logger

from config.tolerances import Tolerances
from i18n import tr
from .geometry import ENTITY_CLASSES, EntityKind, new_id
from .scene import SNAPSHOT_COLLECTIONS, Scene
from .solver import ConstraintResolver
from .variables import Variable


class SceneImportError(Exception):
    """Rejected import; the message is meant for the user."""

    def __init__(self, message: str, explanation: Optional[str] = None):
        super().__init__(message)
        self.explanation = explanation


@dataclass
class ImportResult:
    scene: Scene
    explanation: str = ""
    renamed_ids: int = 0
    dropped_ids: int = 0


def _load_payload(payload: Union[str, bytes, dict]) -> dict:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise SceneImportError(tr("The drawing data is not valid JSON.")) from e
    if not isinstance(payload, dict):
        raise SceneImportError(tr("The drawing data has an unexpected format."))
    return payload


def _dedupe_ids(data: dict) -> int:
    """
    Assigns ids to entries without one and renames repeated ids.

    References keep binding to the first entry carrying an id.

    Returns:
        number of ids assigned or renamed
    """
    seen: Set[str] = set()
    changed = 0
    for kind, name in SNAPSHOT_COLLECTIONS.items():
        for item in data[name]:
            raw = item.get("id")
            entity_id = str(raw).strip() if raw is not None else ""
            if not entity_id or entity_id in seen:
                if entity_id:
                    logger.warning(f"[Import] Duplicate id '{entity_id}' in {name}, renamed")
                entity_id = new_id(kind.value)
                changed += 1
            item["id"] = entity_id
            seen.add(entity_id)
    return changed


def _normalize(data: dict) -> dict:
    """Shallow copy with every collection present as a list of dict copies."""
    normalized: Dict[str, Any] = {}
    for name in list(SNAPSHOT_COLLECTIONS.values()) + ["variables"]:
        items = data.get(name)
        if items is None:
            items = []
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise SceneImportError(tr("The drawing data has an unexpected format.") + f" ({name})")
        normalized[name] = [dict(i) for i in items]
    normalized["gridSize"] = data.get("gridSize")
    return normalized


def _grid_size(raw: Any) -> float:
    """Payload grid size, the default when absent."""
    if raw is None:
        return Tolerances.GRID_SIZE
    if isinstance(raw, bool):
        raise TypeError(f"gridSize must be a number: {raw!r}")
    value = float(raw)
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"gridSize must be positive: {raw!r}")
    return value


def _drop_dangling(scene: Scene) -> int:
    """Deletes entities referencing ids the payload never defined (cascading)."""
    dangling: List[str] = [
        entity.id
        for entity in scene.all_entities()
        if any(scene.find(ref) is None for ref in entity.referenced_ids())
    ]
    if not dangling:
        return 0
    logger.warning(f"[Import] Dropping entities with unknown references: {dangling}")
    return len(scene.delete(dangling))


def center_points(scene: Scene) -> None:
    """Shifts the drawing so the bounding box of its points is centered on the origin."""
    if not scene.points:
        return
    xs = [p.x for p in scene.points.values()]
    ys = [p.y for p in scene.points.values()]
    cx = (min(xs) + max(xs)) / 2
    cy = (min(ys) + max(ys)) / 2

    for p in scene.points.values():
        p.x -= cx
        p.y -= cy
    for graph in scene.function_graphs.values():
        if graph.label_x is not None:
            graph.label_x -= cx
        if graph.label_y is not None:
            graph.label_y -= cy
    for ellipse in scene.collection(EntityKind.ELLIPSE).values():
        if ellipse.cx is not None:
            ellipse.cx -= cx
        if ellipse.cy is not None:
            ellipse.cy -= cy


def import_scene(payload: Union[str, bytes, dict], *, center: bool = False) -> Scene:
    """
    Builds a Scene from an external snapshot.

    Missing arrays count as empty, absent or repeated ids are assigned,
    entities referencing unknown ids are dropped.

    Raises:
        SceneImportError: malformed payload or no points at all
    """
    return import_with_report(payload, center=center).scene


def import_with_report(payload: Union[str, bytes, dict], *, center: bool = False) -> ImportResult:
    """
    Like import_scene, also unwrapping {"geometry": ..., "explanation": ...}.

    Raises:
        SceneImportError
    """
    data = _load_payload(payload)
    explanation = ""
    if isinstance(data.get("geometry"), dict):
        explanation = str(data.get("explanation") or "")
        data = data["geometry"]

    data = _normalize(data)
    if not data["points"]:
        raise SceneImportError(
            tr("No geometric objects were recognized in the drawing."), explanation=explanation,
        )

    renamed = _dedupe_ids(data)

    try:
        scene = Scene(grid_size=_grid_size(data["gridSize"]))
        for kind, name in SNAPSHOT_COLLECTIONS.items():
            entity_cls = ENTITY_CLASSES[kind]
            for item in data[name]:
                scene.add(entity_cls.from_dict(item))
        for item in data["variables"]:
            if not item.get("id") or item["id"] in scene.variables:
                item["id"] = new_id("var")
            scene.add_variable(Variable.from_dict(item))
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        logger.warning(f"[Import] Rejected malformed drawing: {e}")
        raise SceneImportError(tr("The drawing data is incomplete or malformed."), explanation) from e

    dropped = _drop_dangling(scene)
    if not scene.points:
        raise SceneImportError(tr("No geometric objects were recognized in the drawing."), explanation)

    if center:
        center_points(scene)

    ConstraintResolver().resolve(scene)
    logger.info(f"[Import] Imported {scene!r} (renamed {renamed}, dropped {dropped})")
    return ImportResult(scene=scene, explanation=explanation, renamed_ids=renamed, dropped_ids=dropped)
