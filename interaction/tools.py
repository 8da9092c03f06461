"""
GeoCanvas Interaction - Tool types
Tool enum and the per-tool collection rules used by the construction
state machine.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional

from config.tolerances import Tolerances
from .dialogs import DialogKind


class ToolType(Enum):
    """Available construction tools"""
    SELECT = auto()
    POINT = auto()
    POINT_COORD = auto()
    SEGMENT = auto()
    SEGMENT_FIXED = auto()
    LINE = auto()
    RAY = auto()
    POLYGON = auto()
    POLYGON_REGULAR = auto()
    CIRCLE = auto()
    CIRCLE_FIXED = auto()
    ELLIPSE = auto()
    ELLIPTICAL_ARC = auto()
    ARC = auto()
    ANGLE = auto()
    ANGLE_FIXED = auto()
    FUNCTION_GRAPH = auto()
    MIDPOINT = auto()
    PERPENDICULAR = auto()
    PARALLEL = auto()
    INTERSECT = auto()
    SYMMETRY_CENTRAL = auto()
    SYMMETRY_AXIAL = auto()
    ROTATE = auto()
    CYLINDER = auto()
    CONE = auto()
    SPHERE = auto()


class PickMode(Enum):
    """What a click contributes to the collected ids"""
    NONE = auto()  # selection / dialog-only tools
    POINTS = auto()  # existing or synthesized point
    EXISTING_POINTS = auto()  # hit points only (midpoint)
    POINT_AND_LINE = auto()  # one point, one segment / line / ray
    CURVES = auto()  # segment / line / ray / graph / axis
    TRANSFORM = auto()  # reference, then target


@dataclass(frozen=True)
class ToolSpec:
    """
    Collection rules of a tool.

    required: ids collected before commit (or before the commit dialog)
    dialog_on_activate: dialog kind opened by set_tool
    dialog_on_complete: dialog kind opened once `required` ids are collected
    shift_align: shift aligns the click with the last collected point
    """
    required: int = 0
    pick: PickMode = PickMode.NONE
    dialog_on_activate: Optional[DialogKind] = None
    dialog_on_complete: Optional[DialogKind] = None
    shift_align: bool = False


TOOL_SPECS: Dict[ToolType, ToolSpec] = {
    ToolType.SELECT: ToolSpec(),
    ToolType.POINT: ToolSpec(required=1, pick=PickMode.POINTS),
    ToolType.POINT_COORD: ToolSpec(dialog_on_activate=DialogKind.POINT_COORD),
    ToolType.SEGMENT: ToolSpec(required=2, pick=PickMode.POINTS, shift_align=True),
    ToolType.SEGMENT_FIXED: ToolSpec(required=1, pick=PickMode.POINTS, dialog_on_complete=DialogKind.SEGMENT_FIXED),
    ToolType.LINE: ToolSpec(required=2, pick=PickMode.POINTS, shift_align=True),
    ToolType.RAY: ToolSpec(required=2, pick=PickMode.POINTS, shift_align=True),
    ToolType.POLYGON: ToolSpec(required=Tolerances.POLYGON_MAX_VERTICES, pick=PickMode.POINTS, shift_align=True),
    ToolType.POLYGON_REGULAR: ToolSpec(dialog_on_activate=DialogKind.POLYGON_REGULAR),
    ToolType.CIRCLE: ToolSpec(required=2, pick=PickMode.POINTS),
    ToolType.CIRCLE_FIXED: ToolSpec(required=1, pick=PickMode.POINTS, dialog_on_complete=DialogKind.CIRCLE_FIXED),
    ToolType.ELLIPSE: ToolSpec(required=3, pick=PickMode.POINTS),
    ToolType.ELLIPTICAL_ARC: ToolSpec(required=5, pick=PickMode.POINTS),
    ToolType.ARC: ToolSpec(required=3, pick=PickMode.POINTS),
    ToolType.ANGLE: ToolSpec(required=3, pick=PickMode.POINTS),
    ToolType.ANGLE_FIXED: ToolSpec(required=2, pick=PickMode.POINTS, dialog_on_complete=DialogKind.ANGLE_FIXED),
    ToolType.FUNCTION_GRAPH: ToolSpec(dialog_on_activate=DialogKind.FUNCTION_GRAPH),
    ToolType.MIDPOINT: ToolSpec(required=2, pick=PickMode.EXISTING_POINTS),
    ToolType.PERPENDICULAR: ToolSpec(required=2, pick=PickMode.POINT_AND_LINE),
    ToolType.PARALLEL: ToolSpec(required=2, pick=PickMode.POINT_AND_LINE),
    ToolType.INTERSECT: ToolSpec(required=2, pick=PickMode.CURVES),
    ToolType.SYMMETRY_CENTRAL: ToolSpec(required=1, pick=PickMode.TRANSFORM),
    ToolType.SYMMETRY_AXIAL: ToolSpec(required=1, pick=PickMode.TRANSFORM),
    ToolType.ROTATE: ToolSpec(required=1, pick=PickMode.TRANSFORM, dialog_on_activate=DialogKind.ROTATE),
    ToolType.CYLINDER: ToolSpec(required=3, pick=PickMode.POINTS, shift_align=True),
    ToolType.CONE: ToolSpec(required=3, pick=PickMode.POINTS, shift_align=True),
    ToolType.SPHERE: ToolSpec(required=2, pick=PickMode.POINTS),
}

assert set(TOOL_SPECS) == set(ToolType)


def tool_spec(tool: ToolType) -> ToolSpec:
    return TOOL_SPECS[tool]
