"""
SKILLTREE GRAPH INVARIANTS - The Physics of the Skill Graph

This module decides whether a proposed edge is structurally legal, and can
audit a whole SkillState against the graph invariants.

Invariants:
1. Node ids are pairwise distinct
2. Edge ids are pairwise distinct
3. Every edge references existing nodes
4. No self-loops
5. No duplicate (source, target) pairs
6. The edge relation is acyclic
7. The selection, if any, references an existing node

Design Philosophy:
- The reducer only needs the incremental checks (would_create_cycle,
  check_edge_shape). They are O(V+E) and run on every add-edge.
- The full audit (validate_state) is for diagnostics: data loaded through
  a Load intent is trusted by the reducer, so this is how callers find out
  whether it deserved that trust.
"""
import rustworkx as rx
from typing import Dict, Iterable, List, Optional, Set, Tuple, Any
from dataclasses import dataclass, field
from enum import Enum

from core.ontology import RejectionReason
from core.schemas import SkillEdge, SkillState


# =============================================================================
# INCREMENTAL VALIDATORS (For Pre-Insert Checks)
# =============================================================================

def would_create_cycle(edges: Iterable[SkillEdge], source: str, target: str) -> bool:
    """
    Check if adding edge source->target would close a directed cycle.

    If target can already reach source, the new edge completes a loop.
    Reachability is answered by rx.has_path over a graph of the existing
    edges.

    Self-loops are the job of check_edge_shape; do not rely on this
    function for them.

    Args:
        edges: Existing edges
        source: Proposed edge source id
        target: Proposed edge target id

    Returns:
        True if the edge would create a cycle
    """
    graph = rx.PyDiGraph()
    node_map: Dict[str, int] = {}
    for edge in edges:
        for node_id in (edge.source, edge.target):
            if node_id not in node_map:
                node_map[node_id] = graph.add_node(node_id)
        graph.add_edge(node_map[edge.source], node_map[edge.target], edge.id)

    if source not in node_map or target not in node_map:
        return False
    return rx.has_path(graph, node_map[target], node_map[source])


def check_edge_shape(state: SkillState, source: str, target: str) -> Optional[RejectionReason]:
    """
    Cheap shape checks that run before the cycle search.

    Returns:
        SELF_LOOP or DUPLICATE_EDGE, or None if the shape is legal
    """
    if source == target:
        return RejectionReason.SELF_LOOP
    for edge in state.edges:
        if edge.source == source and edge.target == target:
            return RejectionReason.DUPLICATE_EDGE
    return None


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # State the engine would never produce
    WARNING = "warning"  # Tolerated, but worth surfacing


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str
    severity: InvariantSeverity
    message: str
    nodes_involved: List[str] = field(default_factory=list)
    edges_involved: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]

    def has(self, invariant: str) -> bool:
        """True if any violation of the named invariant was found."""
        return any(v.invariant == invariant for v in self.violations)


# =============================================================================
# STATE INVARIANTS (Full Audit)
# =============================================================================

def _duplicates(values: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    dupes: List[str] = []
    for value in values:
        if value in seen and value not in dupes:
            dupes.append(value)
        seen.add(value)
    return dupes


class StateInvariants:
    """
    Invariant validators for a SkillState.

    All methods are static and return (is_valid, violation or None).
    Acyclicity and connectivity run on a rustworkx PyDiGraph built from
    the state's resolvable, non-self-loop edges.
    """

    @staticmethod
    def build_graph(state: SkillState) -> Tuple[rx.PyDiGraph, Dict[int, str]]:
        """
        Project the state onto a rustworkx graph.

        Dangling edges and self-loops are left out; they have their own
        validators.

        Returns:
            (graph, index -> node id map)
        """
        graph = rx.PyDiGraph(multigraph=False)
        node_map: Dict[str, int] = {}
        inv_map: Dict[int, str] = {}

        for node in state.nodes:
            if node.id in node_map:
                continue
            idx = graph.add_node(node.id)
            node_map[node.id] = idx
            inv_map[idx] = node.id

        for edge in state.edges:
            if edge.source == edge.target:
                continue
            if edge.source not in node_map or edge.target not in node_map:
                continue
            graph.add_edge(node_map[edge.source], node_map[edge.target], edge.id)

        return graph, inv_map

    @staticmethod
    def validate_unique_node_ids(state: SkillState) -> Tuple[bool, Optional[InvariantViolation]]:
        dupes = _duplicates(n.id for n in state.nodes)
        if dupes:
            return False, InvariantViolation(
                invariant="unique_node_ids",
                severity=InvariantSeverity.ERROR,
                message=f"{len(dupes)} node id(s) used more than once",
                nodes_involved=dupes,
            )
        return True, None

    @staticmethod
    def validate_unique_edge_ids(state: SkillState) -> Tuple[bool, Optional[InvariantViolation]]:
        dupes = _duplicates(e.id for e in state.edges)
        if dupes:
            return False, InvariantViolation(
                invariant="unique_edge_ids",
                severity=InvariantSeverity.ERROR,
                message=f"{len(dupes)} edge id(s) used more than once: {dupes[:5]}",
            )
        return True, None

    @staticmethod
    def validate_edge_references(state: SkillState) -> Tuple[bool, Optional[InvariantViolation]]:
        node_ids = set(state.node_ids)
        dangling = [
            (e.source, e.target) for e in state.edges
            if e.source not in node_ids or e.target not in node_ids
        ]
        if dangling:
            return False, InvariantViolation(
                invariant="edge_references",
                severity=InvariantSeverity.ERROR,
                message=f"{len(dangling)} edge(s) reference missing nodes",
                edges_involved=dangling,
            )
        return True, None

    @staticmethod
    def validate_no_self_loops(state: SkillState) -> Tuple[bool, Optional[InvariantViolation]]:
        loops = [(e.source, e.target) for e in state.edges if e.source == e.target]
        if loops:
            return False, InvariantViolation(
                invariant="no_self_loops",
                severity=InvariantSeverity.ERROR,
                message=f"{len(loops)} self-loop edge(s)",
                nodes_involved=[s for s, _ in loops],
                edges_involved=loops,
            )
        return True, None

    @staticmethod
    def validate_unique_pairs(state: SkillState) -> Tuple[bool, Optional[InvariantViolation]]:
        seen: Set[Tuple[str, str]] = set()
        dupes: List[Tuple[str, str]] = []
        for pair in state.edge_pairs:
            if pair in seen and pair not in dupes:
                dupes.append(pair)
            seen.add(pair)
        if dupes:
            return False, InvariantViolation(
                invariant="unique_edge_pairs",
                severity=InvariantSeverity.ERROR,
                message=f"{len(dupes)} (source, target) pair(s) duplicated",
                edges_involved=dupes,
            )
        return True, None

    @staticmethod
    def validate_acyclicity(
        graph: rx.PyDiGraph,
        inv_map: Dict[int, str],
    ) -> Tuple[bool, Optional[InvariantViolation]]:
        """
        The edge relation must be acyclic.

        Uses rx.is_directed_acyclic_graph for the O(V+E) check and a DFS
        only to name the nodes on a cycle when one exists.
        """
        if rx.is_directed_acyclic_graph(graph):
            return True, None

        cycle_nodes = StateInvariants._find_cycle_nodes(graph, inv_map)
        return False, InvariantViolation(
            invariant="acyclicity",
            severity=InvariantSeverity.ERROR,
            message=f"Cycle detected involving {len(cycle_nodes)} nodes",
            nodes_involved=cycle_nodes,
        )

    @staticmethod
    def _find_cycle_nodes(graph: rx.PyDiGraph, inv_map: Dict[int, str]) -> List[str]:
        """Find nodes on one cycle (for error reporting)."""
        WHITE, GRAY, BLACK = 0, 1, 2
        color = {idx: WHITE for idx in graph.node_indices()}
        parent: Dict[int, int] = {}

        for start in graph.node_indices():
            if color[start] != WHITE:
                continue
            stack = [(start, iter(graph.successor_indices(start)))]
            color[start] = GRAY
            while stack:
                node, successors = stack[-1]
                advanced = False
                for succ in successors:
                    if color[succ] == GRAY:
                        # Walk parents back from node to succ
                        cycle = [node]
                        while cycle[-1] != succ:
                            cycle.append(parent[cycle[-1]])
                        return [inv_map[i] for i in reversed(cycle)]
                    if color[succ] == WHITE:
                        color[succ] = GRAY
                        parent[succ] = node
                        stack.append((succ, iter(graph.successor_indices(succ))))
                        advanced = True
                        break
                if not advanced:
                    color[node] = BLACK
                    stack.pop()
        return []

    @staticmethod
    def validate_selection(state: SkillState) -> Tuple[bool, Optional[InvariantViolation]]:
        if state.selected_id is None or state.selected_id in state.node_ids:
            return True, None
        return False, InvariantViolation(
            invariant="selection",
            severity=InvariantSeverity.WARNING,
            message=f"Selected id {state.selected_id!r} is not a node",
            nodes_involved=[state.selected_id],
        )

    @staticmethod
    def compute_metrics(state: SkillState, graph: rx.PyDiGraph) -> Dict[str, Any]:
        return {
            "node_count": len(state.nodes),
            "edge_count": len(state.edges),
            "unlocked_count": sum(1 for n in state.nodes if n.unlocked),
            "root_count": sum(1 for idx in graph.node_indices() if graph.in_degree(idx) == 0),
            "weakly_connected_components": (
                rx.number_weakly_connected_components(graph) if graph.num_nodes() else 0
            ),
        }

    @staticmethod
    def validate_all(state: SkillState) -> InvariantReport:
        """
        Run every validator and return a comprehensive report.

        Returns:
            InvariantReport; valid is False if any ERROR was found
        """
        violations: List[InvariantViolation] = []
        graph, inv_map = StateInvariants.build_graph(state)

        checks = [
            StateInvariants.validate_unique_node_ids(state),
            StateInvariants.validate_unique_edge_ids(state),
            StateInvariants.validate_edge_references(state),
            StateInvariants.validate_no_self_loops(state),
            StateInvariants.validate_unique_pairs(state),
            StateInvariants.validate_acyclicity(graph, inv_map),
            StateInvariants.validate_selection(state),
        ]
        for _, violation in checks:
            if violation:
                violations.append(violation)

        is_valid = all(v.severity != InvariantSeverity.ERROR for v in violations)
        return InvariantReport(
            valid=is_valid,
            violations=violations,
            metrics=StateInvariants.compute_metrics(state, graph),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_state(state: SkillState) -> InvariantReport:
    """Convenience function to audit a state."""
    return StateInvariants.validate_all(state)


def is_acyclic(state: SkillState) -> bool:
    """Quick check that the state's edges form a DAG."""
    graph, _ = StateInvariants.build_graph(state)
    return rx.is_directed_acyclic_graph(graph)
