"""
GeoCanvas Construction Module
Geometric data model, constraint resolution, transforms and scene commands.
"""

from .geometry import (
    EntityKind, LINEAR_KINDS, Point, Segment, InfiniteLine, Ray, Circle, Ellipse, Arc,
    EllipticalArc, Polygon, FunctionGraph, Angle, Cylinder, Cone, Sphere,
    new_id, to_math, to_world,
)

from .constraints import (
    AXIS_X_ID, AXIS_Y_ID, PointConstraintType, LineConstraintType,
    IntersectionConstraint, OnAxisConstraint, OnFunctionGraphConstraint, RotationConstraint,
    LineConstraint,
)

from .variables import Variable, AnimationDirection
from .scene import Scene, SceneDelta
from .formula import evaluate_formula, evaluate_scalar, is_defined, UNDEFINED
from .solver import ConstraintResolver, ConstraintCycleError, ResolveResult, resolve_constraints
from .transforms import ReflectionKind, reflect, rotate
from .regular_polygon import create_regular_polygon, regular_polygon_update
from .scene_import import SceneImportError, import_scene
from .render_info import RenderInfo, describe
from .animation import tick, is_animating
