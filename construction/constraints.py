"""
GeoCanvas Construction - Constraints
Point constraints (exactly one per derived point) and line constraints.

Each variant knows the ids it depends on so that the dependency graph,
cascading delete and import validation never branch on the variant type.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, Optional, Tuple, Type, Union


AXIS_X_ID = "axis-x"
AXIS_Y_ID = "axis-y"
AXIS_IDS = (AXIS_X_ID, AXIS_Y_ID)


class PointConstraintType(Enum):
    INTERSECTION = "intersection"
    ON_AXIS = "onAxis"
    ON_FUNCTION_GRAPH = "onFunctionGraph"
    ROTATION = "rotation"


class LineConstraintType(Enum):
    PERPENDICULAR = "perpendicular"
    PARALLEL = "parallel"


@dataclass
class IntersectionConstraint:
    """Intersection of two curve-like objects (linear, graph or axis)."""
    id1: str
    id2: str

    type: ClassVar[PointConstraintType] = PointConstraintType.INTERSECTION

    def referenced_ids(self) -> Tuple[str, ...]:
        return tuple(i for i in (self.id1, self.id2) if i not in AXIS_IDS)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "id1": self.id1, "id2": self.id2}

    @classmethod
    def from_dict(cls, data: dict) -> "IntersectionConstraint":
        return cls(id1=str(data["id1"]), id2=str(data["id2"]))


@dataclass
class OnAxisConstraint:
    """Forces one coordinate to zero: axis 'x' zeroes y, axis 'y' zeroes x."""
    axis: str

    type: ClassVar[PointConstraintType] = PointConstraintType.ON_AXIS

    def __post_init__(self):
        if self.axis not in ("x", "y"):
            raise ValueError(f"Unknown axis: {self.axis!r}")

    def referenced_ids(self) -> Tuple[str, ...]:
        return ()

    def to_dict(self) -> dict:
        return {"type": self.type.value, "axis": self.axis}

    @classmethod
    def from_dict(cls, data: dict) -> "OnAxisConstraint":
        return cls(axis=str(data["axis"]))


@dataclass
class OnFunctionGraphConstraint:
    """
    Point riding on a function graph.

    x_param is in math units and authoritative: it is only rewritten by a
    drag, never recomputed from the point's world position.
    """
    graph_id: str
    x_param: float

    type: ClassVar[PointConstraintType] = PointConstraintType.ON_FUNCTION_GRAPH

    def referenced_ids(self) -> Tuple[str, ...]:
        return (self.graph_id,)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "graphId": self.graph_id, "xParam": self.x_param}

    @classmethod
    def from_dict(cls, data: dict) -> "OnFunctionGraphConstraint":
        return cls(graph_id=str(data["graphId"]), x_param=float(data.get("xParam", 0.0)))


@dataclass
class RotationConstraint:
    """
    Image of original_point_id rotated about center_id.

    angle is kept as text: a literal number of degrees ("45") or a
    variable name / formula ("alpha", "2*t") re-evaluated on every pass.
    """
    center_id: str
    original_point_id: str
    angle: str

    type: ClassVar[PointConstraintType] = PointConstraintType.ROTATION

    def referenced_ids(self) -> Tuple[str, ...]:
        return (self.center_id, self.original_point_id)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "centerId": self.center_id,
            "originalPointId": self.original_point_id,
            "angle": self.angle,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RotationConstraint":
        return cls(
            center_id=str(data["centerId"]),
            original_point_id=str(data["originalPointId"]),
            angle=str(data.get("angle", "0")),
        )


PointConstraint = Union[
    IntersectionConstraint,
    OnAxisConstraint,
    OnFunctionGraphConstraint,
    RotationConstraint,
]

_POINT_CONSTRAINT_CLASSES: Dict[PointConstraintType, Type] = {
    PointConstraintType.INTERSECTION: IntersectionConstraint,
    PointConstraintType.ON_AXIS: OnAxisConstraint,
    PointConstraintType.ON_FUNCTION_GRAPH: OnFunctionGraphConstraint,
    PointConstraintType.ROTATION: RotationConstraint,
}

# Every variant needs a class; adding a type without one fails at import.
assert set(_POINT_CONSTRAINT_CLASSES) == set(PointConstraintType)


def point_constraint_from_dict(data: Optional[dict]) -> Optional[PointConstraint]:
    """
    Builds a point constraint from its snapshot dict.

    Raises:
        TypeError: not a dict
        ValueError: unknown constraint type
        KeyError: required field missing
    """
    if not data:
        return None
    if not isinstance(data, dict):
        raise TypeError(f"Point constraint must be an object: {data!r}")
    try:
        ctype = PointConstraintType(data.get("type"))
    except ValueError:
        raise ValueError(f"Unknown point constraint type: {data.get('type')!r}")
    return _POINT_CONSTRAINT_CLASSES[ctype].from_dict(data)


@dataclass
class LineConstraint:
    """Infinite line perpendicular / parallel to a linear source through a point."""
    kind: LineConstraintType
    source_id: str
    through_point_id: str

    def referenced_ids(self) -> Tuple[str, ...]:
        return (self.source_id, self.through_point_id)

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "sourceId": self.source_id,
            "throughPointId": self.through_point_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["LineConstraint"]:
        if not data:
            return None
        if not isinstance(data, dict):
            raise TypeError(f"Line constraint must be an object: {data!r}")
        return cls(
            kind=LineConstraintType(data["type"]),
            source_id=str(data["sourceId"]),
            through_point_id=str(data["throughPointId"]),
        )
