"""
GeoCanvas Construction - Scene
Owns every entity in flat, id-keyed collections plus the variables.

Cross references are id lookups only: after a resolution pass every
entity referencing a point sees its new coordinate.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from loguru import logger

from config.tolerances import Tolerances
from .constraints import AXIS_IDS
from .geometry import (
    ENTITY_CLASSES, EntityKind, InfiniteLine, LINEAR_KINDS, Point, SceneEntity, Vec2,
)
from .variables import Variable


# kind -> snapshot array name
SNAPSHOT_COLLECTIONS: Dict[EntityKind, str] = {
    EntityKind.POINT: "points",
    EntityKind.SEGMENT: "segments",
    EntityKind.LINE: "lines",
    EntityKind.RAY: "rays",
    EntityKind.POLYGON: "polygons",
    EntityKind.CIRCLE: "circles",
    EntityKind.ELLIPSE: "ellipses",
    EntityKind.ELLIPTICAL_ARC: "ellipticalArcs",
    EntityKind.FUNCTION_GRAPH: "functionGraphs",
    EntityKind.ANGLE: "angles",
    EntityKind.ARC: "arcs",
    EntityKind.CYLINDER: "cylinders",
    EntityKind.CONE: "cones",
    EntityKind.SPHERE: "spheres",
}

assert set(SNAPSHOT_COLLECTIONS) == set(ENTITY_CLASSES)

_LABEL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


@dataclass
class SceneDelta:
    """New entities produced by a builder, committed with Scene.apply_delta."""
    entities: List[SceneEntity] = field(default_factory=list)

    def add(self, entity: SceneEntity) -> SceneEntity:
        self.entities.append(entity)
        return entity

    def of_kind(self, kind: EntityKind) -> List[SceneEntity]:
        return [e for e in self.entities if e.kind is kind]

    def __bool__(self):
        return bool(self.entities)


class Scene:
    """
    Geometric data model.

    Usage:
        scene = Scene()
        a = scene.add(Point(0, 0, label="A"))
        b = scene.add(Point(100, 0, label="B"))
        scene.add(Segment(a.id, b.id))
    """

    def __init__(self, grid_size: float = Tolerances.GRID_SIZE):
        self.grid_size = grid_size
        self._store: Dict[EntityKind, Dict[str, SceneEntity]] = {kind: {} for kind in ENTITY_CLASSES}
        self.variables: Dict[str, Variable] = {}

    # =========================================================================
    # Collections
    # =========================================================================

    @property
    def points(self) -> Dict[str, Point]:
        return self._store[EntityKind.POINT]

    @property
    def segments(self):
        return self._store[EntityKind.SEGMENT]

    @property
    def lines(self):
        return self._store[EntityKind.LINE]

    @property
    def rays(self):
        return self._store[EntityKind.RAY]

    @property
    def circles(self):
        return self._store[EntityKind.CIRCLE]

    @property
    def polygons(self):
        return self._store[EntityKind.POLYGON]

    @property
    def function_graphs(self):
        return self._store[EntityKind.FUNCTION_GRAPH]

    def collection(self, kind: EntityKind) -> Dict[str, SceneEntity]:
        return self._store[kind]

    def entities(self, kind: EntityKind) -> List[SceneEntity]:
        return list(self._store[kind].values())

    def all_entities(self) -> Iterator[SceneEntity]:
        for items in self._store.values():
            yield from items.values()

    def is_empty(self) -> bool:
        return not any(self._store.values()) and not self.variables

    # =========================================================================
    # Lookup
    # =========================================================================

    def add(self, entity: SceneEntity) -> SceneEntity:
        """
        Adds an entity. Ids are unique across all kinds.

        Raises:
            ValueError: id already in use
        """
        if self.find(entity.id) is not None or entity.id in AXIS_IDS:
            raise ValueError(f"Duplicate entity id: {entity.id}")
        self._store[entity.kind][entity.id] = entity
        return entity

    def get(self, kind: EntityKind, entity_id: Optional[str]) -> Optional[SceneEntity]:
        if kind is EntityKind.AXIS or entity_id is None:
            return None
        return self._store[kind].get(entity_id)

    def find(self, entity_id: Optional[str]) -> Optional[SceneEntity]:
        if entity_id is None:
            return None
        for items in self._store.values():
            entity = items.get(entity_id)
            if entity is not None:
                return entity
        return None

    def kind_of(self, entity_id: str) -> Optional[EntityKind]:
        if entity_id in AXIS_IDS:
            return EntityKind.AXIS
        entity = self.find(entity_id)
        return entity.kind if entity is not None else None

    def point(self, point_id: Optional[str]) -> Optional[Point]:
        if point_id is None:
            return None
        return self.points.get(point_id)

    def coords(self, point_id: Optional[str]) -> Optional[Vec2]:
        p = self.point(point_id)
        return (p.x, p.y) if p is not None else None

    def linear_points(self, entity_id: str) -> Optional[Tuple[Vec2, Vec2]]:
        """
        Two defining coordinates of a segment / line / ray or an axis.

        None when the id is unknown or a defining point is missing.
        """
        if entity_id in AXIS_IDS:
            return ((0.0, 0.0), (1.0, 0.0)) if entity_id == AXIS_IDS[0] else ((0.0, 0.0), (0.0, 1.0))
        entity = self.find(entity_id)
        if entity is None or entity.kind not in LINEAR_KINDS:
            return None
        refs = entity.point_refs()
        a, b = self.coords(refs[0]), self.coords(refs[1])
        if a is None or b is None:
            return None
        return a, b

    # =========================================================================
    # Variables
    # =========================================================================

    def add_variable(self, variable: Variable) -> Variable:
        if variable.id in self.variables:
            raise ValueError(f"Duplicate variable id: {variable.id}")
        self.variables[variable.id] = variable
        return variable

    def variable_by_name(self, name: str) -> Optional[Variable]:
        key = name.strip().lower()
        for var in self.variables.values():
            if var.name.lower() == key:
                return var
        return None

    def variable_map(self) -> Dict[str, float]:
        """Lower-cased name -> value, the binding passed to formulas."""
        return {var.name.lower(): var.value for var in self.variables.values()}

    def next_variable_name(self) -> str:
        used = {var.name.lower() for var in self.variables.values()}
        for ch in "abcdefghijklmnopqrstuvwyz":
            if ch not in used:
                return ch
        return f"v{len(self.variables) + 1}"

    # =========================================================================
    # Mutation
    # =========================================================================

    def delete(self, ids: Iterable[str]) -> Set[str]:
        """
        Cascading delete.

        Every entity referencing a deleted id (vertex, defining point,
        constraint source) is deleted too, transitively. Auxiliary points
        of a deleted constrained line go with it.

        Returns:
            ids actually deleted
        """
        requested = list(ids)
        pending = {i for i in requested if self.find(i) is not None}
        deleted: Set[str] = set()

        while pending:
            for entity_id in pending:
                entity = self.find(entity_id)
                if entity is None:
                    continue
                del self._store[entity.kind][entity_id]
                deleted.add(entity_id)

                if isinstance(entity, InfiniteLine) and entity.constraint is not None:
                    for ref in entity.point_refs():
                        p = self.point(ref)
                        if p is not None and p.auxiliary:
                            del self.points[ref]
                            deleted.add(ref)

            pending = {
                entity.id
                for entity in self.all_entities()
                if any(ref in deleted for ref in entity.referenced_ids())
            }

        if deleted:
            logger.debug(f"[Scene] Deleted {len(deleted)} entities (requested {requested})")
        return deleted

    def delete_variable(self, variable_id: str) -> bool:
        return self.variables.pop(variable_id, None) is not None

    def apply_delta(self, delta: SceneDelta) -> None:
        """
        Commits all entities of a delta or none of them.

        Raises:
            ValueError: an id of the delta is already in use
        """
        ids = [e.id for e in delta.entities]
        clashes = [i for i in ids if self.find(i) is not None]
        if clashes or len(set(ids)) != len(ids):
            raise ValueError(f"Delta ids clash with scene: {clashes or ids}")
        for entity in delta.entities:
            self._store[entity.kind][entity.id] = entity

    def copy(self) -> "Scene":
        return copy.deepcopy(self)

    def next_label(self) -> Optional[str]:
        """First unused capital letter, None once A..Z are taken."""
        used = {p.label for p in self.points.values()}
        for ch in _LABEL_ALPHABET:
            if ch not in used:
                return ch
        return None

    # =========================================================================
    # Snapshot
    # =========================================================================

    def to_dict(self) -> dict:
        data = {
            name: [entity.to_dict() for entity in self._store[kind].values()]
            for kind, name in SNAPSHOT_COLLECTIONS.items()
        }
        data["variables"] = [var.to_dict() for var in self.variables.values()]
        data["gridSize"] = self.grid_size
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Scene":
        """
        Restores a snapshot produced by to_dict. Missing arrays are empty.

        Raises:
            ValueError / KeyError / TypeError: malformed entity data
        """
        scene = cls(grid_size=float(data.get("gridSize") or Tolerances.GRID_SIZE))
        for kind, name in SNAPSHOT_COLLECTIONS.items():
            entity_cls = ENTITY_CLASSES[kind]
            for item in data.get(name) or []:
                scene.add(entity_cls.from_dict(item))
        for item in data.get("variables") or []:
            scene.add_variable(Variable.from_dict(item))
        return scene

    def __repr__(self):
        counts = ", ".join(
            f"{SNAPSHOT_COLLECTIONS[kind]}={len(items)}" for kind, items in self._store.items() if items
        )
        return f"Scene({counts})"
