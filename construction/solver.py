"""
GeoCanvas Construction - Constraint Resolver
Places every derived point (and constrained line) from the entities it
references: closed form for linear cases, secant root finding for graph
intersections.

One resolution pass per edit. Order comes from the dependency graph, so
chains (a rotated image of an intersection point, a perpendicular through
a derived point) resolve correctly in a single pass.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from .constraints import (
    AXIS_X_ID, AXIS_Y_ID, IntersectionConstraint, LineConstraintType,
    OnAxisConstraint, OnFunctionGraphConstraint, PointConstraintType, RotationConstraint,
)
from .dependency_graph import DependencyGraph, NODE_LINE
from .formula import evaluate_formula, evaluate_scalar, is_defined
from .geometry import (
    FunctionGraph, Point, Vec2,
    intersect_lines, line_coefficients, rotate_point,
)
from .root_finding import find_formula_root, find_root


class ConstraintCycleError(Exception):
    """Constraints depend on each other in a cycle (strict resolution only)."""

    def __init__(self, cycles: List[List[str]]):
        self.cycles = cycles
        super().__init__(f"Constraint cycle(s): {cycles}")


@dataclass
class ResolveResult:
    """Outcome of a resolution pass"""
    updated: List[str] = field(default_factory=list)  # ids whose coordinates were written
    unresolved: List[str] = field(default_factory=list)  # no solution this pass, left in place
    cycles: List[List[str]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated)


class ConstraintResolver:
    """
    Resolves all constraints of a scene in place.

    Usage:
        result = ConstraintResolver().resolve(scene)
        if result.unresolved:
            ...  # points stay at their last position
    """

    def __init__(self):
        self.epsilon = Tolerances.RESOLVE_UPDATE_EPSILON
        self.extent = Tolerances.RESOLVE_LARGE_EXTENT
        self._graph = DependencyGraph()

    def resolve(self, scene, strict: Optional[bool] = None) -> ResolveResult:
        """
        Runs one resolution pass over the scene.

        Args:
            scene: Scene, mutated in place
            strict: raise on cycles instead of reporting them
                    (default: feature flag 'strict_cycle_check')

        Returns:
            ResolveResult

        Raises:
            ConstraintCycleError: strict mode and the constraints contain a cycle
        """
        if strict is None:
            strict = is_enabled("strict_cycle_check")

        self._graph.build_from_scene(scene)
        order, cycles = self._graph.evaluation_order()
        if cycles and strict:
            raise ConstraintCycleError(cycles)

        result = ResolveResult(cycles=cycles)
        variables = scene.variable_map()

        for node_id in order:
            if self._graph.node_type(node_id) == NODE_LINE:
                self._resolve_line(scene, scene.lines[node_id], result)
            else:
                self._resolve_point(scene, scene.points[node_id], variables, result)

        if is_enabled("resolver_debug"):
            logger.debug(
                f"[Resolver] pass: {self._graph.get_stats()} updated={len(result.updated)} "
                f"unresolved={result.unresolved} cycles={cycles}"
            )
        return result

    # =========================================================================
    # Writes
    # =========================================================================

    def _write(self, point: Optional[Point], x: float, y: float, result: ResolveResult) -> None:
        """Writes only finite moves larger than the jitter epsilon."""
        if point is None:
            return
        if not (is_defined(x) and is_defined(y)):
            result.unresolved.append(point.id)
            return
        if abs(point.x - x) > self.epsilon or abs(point.y - y) > self.epsilon:
            point.x = x
            point.y = y
            result.updated.append(point.id)

    # =========================================================================
    # Line constraints
    # =========================================================================

    def _resolve_line(self, scene, line, result: ResolveResult) -> None:
        constraint = line.constraint
        through = scene.coords(constraint.through_point_id)
        source = scene.linear_points(constraint.source_id)
        if through is None or source is None:
            result.unresolved.append(line.id)
            return

        (ax, ay), (bx, by) = source
        dx, dy = bx - ax, by - ay
        if constraint.kind is LineConstraintType.PERPENDICULAR:
            ux, uy = -dy, dx
        else:
            ux, uy = dx, dy

        length = math.hypot(ux, uy)
        if length == 0:
            result.unresolved.append(line.id)
            return
        ux, uy = ux / length, uy / length

        tx, ty = through
        self._write(scene.point(line.p1_id), tx - ux * self.extent, ty - uy * self.extent, result)
        self._write(scene.point(line.p2_id), tx + ux * self.extent, ty + uy * self.extent, result)

    # =========================================================================
    # Point constraints
    # =========================================================================

    def _resolve_point(self, scene, point: Point, variables: Dict[str, float],
                       result: ResolveResult) -> None:
        handler = self._POINT_HANDLERS[point.constraint.type]
        target = handler(self, scene, point, variables)
        if target is None:
            result.unresolved.append(point.id)
            if is_enabled("resolver_debug"):
                logger.debug(f"[Resolver] {point.id} ({point.constraint.type.value}) has no solution")
            return
        self._write(point, target[0], target[1], result)

    def _solve_on_axis(self, scene, point: Point, variables) -> Optional[Vec2]:
        constraint: OnAxisConstraint = point.constraint
        if constraint.axis == "x":
            return point.x, 0.0
        return 0.0, point.y

    def _solve_on_graph(self, scene, point: Point, variables) -> Optional[Vec2]:
        constraint: OnFunctionGraphConstraint = point.constraint
        graph = scene.function_graphs.get(constraint.graph_id)
        if graph is None:
            return None
        y = evaluate_formula(graph.formula, constraint.x_param, variables)
        if not is_defined(y):
            return None
        g = scene.grid_size
        return constraint.x_param * g, -y * g

    def _solve_rotation(self, scene, point: Point, variables) -> Optional[Vec2]:
        constraint: RotationConstraint = point.constraint
        center = scene.coords(constraint.center_id)
        original = scene.coords(constraint.original_point_id)
        if center is None or original is None:
            return None
        degrees = evaluate_scalar(constraint.angle, variables)
        if not is_defined(degrees):
            return None
        return rotate_point(original, center, math.radians(degrees))

    def _solve_intersection(self, scene, point: Point, variables) -> Optional[Vec2]:
        constraint: IntersectionConstraint = point.constraint
        g = scene.grid_size
        graph1 = scene.function_graphs.get(constraint.id1)
        graph2 = scene.function_graphs.get(constraint.id2)

        if graph1 is None and graph2 is None:
            line1 = scene.linear_points(constraint.id1)
            line2 = scene.linear_points(constraint.id2)
            if line1 is None or line2 is None:
                return None
            return intersect_lines(
                line_coefficients(*line1), line_coefficients(*line2), Tolerances.RESOLVE_PARALLEL_DET,
            )

        seed = point.x / g

        if graph1 is not None and graph2 is not None:
            root = find_formula_root(graph1.formula, graph2.formula, seed, variables)
            if root is None:
                return None
            y = evaluate_formula(graph1.formula, root, variables)
            return (root * g, -y * g) if is_defined(y) else None

        graph = graph1 if graph1 is not None else graph2
        other_id = constraint.id2 if graph1 is not None else constraint.id1

        if other_id == AXIS_Y_ID:
            y = evaluate_formula(graph.formula, 0.0, variables)
            return (0.0, -y * g) if is_defined(y) else None

        if other_id == AXIS_X_ID:
            root = find_formula_root(graph.formula, None, seed, variables)
            return (root * g, 0.0) if root is not None else None

        line = scene.linear_points(other_id)
        if line is None:
            return None
        return self._intersect_graph_line(graph, line, seed, g, variables)

    @staticmethod
    def _intersect_graph_line(graph: FunctionGraph, line: Tuple[Vec2, Vec2], seed: float,
                              g: float, variables) -> Optional[Vec2]:
        """Graph against a segment / line / ray, treated as its infinite line."""
        (ax, ay), (bx, by) = line
        # math coordinates
        ax, ay, bx, by = ax / g, -ay / g, bx / g, -by / g

        if abs(bx - ax) < Tolerances.EPSILON_MATH:
            y = evaluate_formula(graph.formula, ax, variables)
            return (ax * g, -y * g) if is_defined(y) else None

        slope = (by - ay) / (bx - ax)
        line_y: Callable[[float], float] = lambda x: ay + slope * (x - ax)
        root = find_root(lambda x: evaluate_formula(graph.formula, x, variables) - line_y(x), seed)
        if root is None:
            return None
        return root * g, -line_y(root) * g

    _POINT_HANDLERS = {
        PointConstraintType.INTERSECTION: _solve_intersection,
        PointConstraintType.ON_AXIS: _solve_on_axis,
        PointConstraintType.ON_FUNCTION_GRAPH: _solve_on_graph,
        PointConstraintType.ROTATION: _solve_rotation,
    }

    assert set(_POINT_HANDLERS) == set(PointConstraintType)


def resolve_constraints(scene, strict: Optional[bool] = None):
    """
    Functional form: resolves a copy and leaves the input untouched.

    Returns:
        (resolved_scene, ResolveResult)
    """
    resolved = scene.copy()
    result = ConstraintResolver().resolve(resolved, strict=strict)
    return resolved, result
