"""
Dependency Graph for constraint resolution order

Tracks which derived entities (constrained points, constrained lines) read
which other derived entities, so that a resolution pass evaluates every
constraint after the constraints it depends on.
"""

import heapq
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from loguru import logger

from .constraints import AXIS_IDS, IntersectionConstraint, RotationConstraint
from .geometry import EntityKind, LINEAR_KINDS

NODE_LINE = "line"
NODE_POINT = "point"

# Ready lines are evaluated before ready points
_NODE_RANK = {NODE_LINE: 0, NODE_POINT: 1}


@dataclass
class NodeInfo:
    """A derived entity in the graph"""
    id: str
    type: str  # 'line' or 'point'
    index: int  # insertion order, tie-break for a stable order
    inputs: Set[str] = field(default_factory=set)

    def __hash__(self):
        return hash(self.id)


class DependencyGraph:
    """
    Dependency graph over constrained lines and points.

    Edges run from an input to the entity reading it. Only derived
    entities are nodes; free points are leaves and never reordered.
    """

    def __init__(self):
        # Node ID -> NodeInfo
        self._nodes: Dict[str, NodeInfo] = {}

        # Node ID -> IDs of nodes reading it
        self._dependents: Dict[str, Set[str]] = {}

    def clear(self):
        """Clear all data"""
        self._nodes.clear()
        self._dependents.clear()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    # =========================================================================
    # Building
    # =========================================================================

    def build_from_scene(self, scene) -> None:
        """Registers every constrained line and point of the scene."""
        self.clear()

        for line in scene.lines.values():
            if line.constraint is None:
                continue
            inputs = self._linear_inputs(scene, line.constraint.source_id)
            inputs.add(line.constraint.through_point_id)
            self.add_node(line.id, NODE_LINE, inputs)

        for point in scene.points.values():
            constraint = point.constraint
            if constraint is None:
                continue
            if isinstance(constraint, IntersectionConstraint):
                inputs = self._linear_inputs(scene, constraint.id1) | self._linear_inputs(scene, constraint.id2)
            elif isinstance(constraint, RotationConstraint):
                inputs = {constraint.center_id, constraint.original_point_id}
            else:
                # onAxis reads its own prior coordinate, onFunctionGraph only the formula
                inputs = set()
            self.add_node(point.id, NODE_POINT, inputs)

        self._build_dependents()

    @staticmethod
    def _linear_inputs(scene, entity_id: str) -> Set[str]:
        """Ids read when a segment / line / ray is used as a curve."""
        if entity_id in AXIS_IDS:
            return set()
        entity = scene.find(entity_id)
        if entity is None or entity.kind not in LINEAR_KINDS:
            return set()
        inputs = set(entity.point_refs())
        if entity.kind is EntityKind.LINE and entity.constraint is not None:
            inputs.add(entity.id)
        return inputs

    def add_node(self, node_id: str, node_type: str, inputs: Set[str]) -> None:
        self._nodes[node_id] = NodeInfo(
            id=node_id, type=node_type, index=len(self._nodes), inputs=set(inputs),
        )

    def _build_dependents(self) -> None:
        """Build node -> dependents adjacency, restricted to node inputs."""
        self._dependents = {node_id: set() for node_id in self._nodes}
        for node in self._nodes.values():
            for input_id in node.inputs:
                if input_id in self._nodes:
                    self._dependents[input_id].add(node.id)

    # =========================================================================
    # Queries
    # =========================================================================

    def node_type(self, node_id: str) -> str:
        return self._nodes[node_id].type

    def get_dependents(self, node_id: str) -> Set[str]:
        """Nodes directly reading node_id."""
        return set(self._dependents.get(node_id, ()))

    def evaluation_order(self) -> Tuple[List[str], List[List[str]]]:
        """
        Topological evaluation order (Kahn's algorithm).

        Ties go to lines first, then insertion order. Nodes on a cycle
        are excluded from the order and reported; nodes merely downstream
        of a cycle are still ordered and read the cycle's last values.

        Returns:
            (order, cycles)
        """
        cycles = self._find_cycles()
        on_cycle = {node_id for cycle in cycles for node_id in cycle}

        in_degree = {node_id: 0 for node_id in self._nodes if node_id not in on_cycle}
        for node_id in in_degree:
            for input_id in self._nodes[node_id].inputs:
                if input_id in in_degree:
                    in_degree[node_id] += 1

        ready = [self._sort_key(node_id) for node_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order: List[str] = []
        while ready:
            _, _, node_id = heapq.heappop(ready)
            order.append(node_id)
            for dependent in self._dependents[node_id]:
                if dependent in on_cycle:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, self._sort_key(dependent))

        if cycles:
            logger.warning(f"[DependencyGraph] {len(cycles)} constraint cycle(s): {cycles}")
        return order, cycles

    def _sort_key(self, node_id: str) -> Tuple[int, int, str]:
        node = self._nodes[node_id]
        return _NODE_RANK[node.type], node.index, node_id

    def _find_cycles(self) -> List[List[str]]:
        """Strongly connected components with more than one node, or a self loop (Tarjan)."""
        index_of: Dict[str, int] = {}
        low: Dict[str, int] = {}
        stack: List[str] = []
        on_stack: Set[str] = set()
        cycles: List[List[str]] = []
        counter = [0]

        def strongconnect(node_id: str):
            index_of[node_id] = low[node_id] = counter[0]
            counter[0] += 1
            stack.append(node_id)
            on_stack.add(node_id)

            for dependent in self._dependents[node_id]:
                if dependent not in index_of:
                    strongconnect(dependent)
                    low[node_id] = min(low[node_id], low[dependent])
                elif dependent in on_stack:
                    low[node_id] = min(low[node_id], index_of[dependent])

            if low[node_id] == index_of[node_id]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                if len(component) > 1 or node_id in self._dependents[node_id]:
                    cycles.append(sorted(component, key=lambda n: self._nodes[n].index))

        for node_id in self._nodes:
            if node_id not in index_of:
                strongconnect(node_id)

        return cycles

    def get_stats(self) -> Dict[str, int]:
        """Statistics for debug logging"""
        return {
            "lines": sum(1 for n in self._nodes.values() if n.type == NODE_LINE),
            "points": sum(1 for n in self._nodes.values() if n.type == NODE_POINT),
            "edges": sum(len(deps) for deps in self._dependents.values()),
        }
