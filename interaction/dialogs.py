"""
GeoCanvas Interaction - Dialog requests
The state machine never shows a dialog itself; it publishes a
DialogRequest and waits for submit_dialog / cancel_dialog.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping

from i18n import tr


class DialogKind(Enum):
    POINT_COORD = "point_coord"
    FUNCTION_GRAPH = "function_graph"
    POLYGON_REGULAR = "polygon_regular"
    ROTATE = "rotate"
    ANGLE_FIXED = "angle_fixed"
    SEGMENT_FIXED = "segment_fixed"
    CIRCLE_FIXED = "circle_fixed"


# Initial field values shown to the user
DIALOG_DEFAULTS: Dict[DialogKind, Dict[str, str]] = {
    DialogKind.POINT_COORD: {"x": "0", "y": "0"},
    DialogKind.FUNCTION_GRAPH: {"formula": ""},
    DialogKind.POLYGON_REGULAR: {"sides": "5", "length": "3"},
    DialogKind.ROTATE: {"angle": "90"},
    DialogKind.ANGLE_FIXED: {"degrees": "45", "direction": "ccw"},
    DialogKind.SEGMENT_FIXED: {"length": "5"},
    DialogKind.CIRCLE_FIXED: {"radius": "3"},
}

_TITLES = {
    DialogKind.POINT_COORD: "Point coordinates",
    DialogKind.FUNCTION_GRAPH: "Enter a function formula",
    DialogKind.POLYGON_REGULAR: "Regular polygon",
    DialogKind.ROTATE: "Rotation angle (degrees or variable name)",
    DialogKind.ANGLE_FIXED: "Enter the angle",
    DialogKind.SEGMENT_FIXED: "Segment length",
    DialogKind.CIRCLE_FIXED: "Circle radius",
}

assert set(DIALOG_DEFAULTS) == set(DialogKind) == set(_TITLES)


@dataclass
class DialogRequest:
    """Pending dialog with its current field values (strings, as typed)."""
    kind: DialogKind
    values: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def open(cls, kind: DialogKind) -> "DialogRequest":
        return cls(kind=kind, values=dict(DIALOG_DEFAULTS[kind]))

    @property
    def title(self) -> str:
        return tr(_TITLES[self.kind])

    def merged(self, submitted: Mapping[str, object]) -> Dict[str, str]:
        values = dict(self.values)
        values.update({k: str(v) for k, v in submitted.items()})
        return values


def parse_float(value) -> float:
    """
    Raises:
        ValueError: empty or non-numeric input
    """
    return float(str(value).strip().replace(",", "."))


def parse_int(value) -> int:
    return int(parse_float(value))
