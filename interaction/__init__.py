"""
GeoCanvas Interaction Module
Pointer driven construction: tools, hit testing and the state machine.
"""

from .tools import ToolType, ToolSpec, PickMode, TOOL_SPECS, tool_spec
from .dialogs import DialogKind, DialogRequest
from .hit_test import HitResult, HitTester
from .state_machine import ConstructionState, ConstructionStateMachine
