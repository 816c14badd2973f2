"""
Read-only queries over a SkillState.

Everything here is pure: no function mutates or caches state. Adapters call
these for display; the reducer calls them to check preconditions.
"""
from typing import List, Optional

from core.ontology import normalize_label
from core.schemas import SkillEdge, SkillNode, SkillState


def find_node(state: SkillState, node_id: Optional[str]) -> Optional[SkillNode]:
    """Return the node with the given id, or None."""
    if node_id is None:
        return None
    for node in state.nodes:
        if node.id == node_id:
            return node
    return None


def find_edge(state: SkillState, edge_id: str) -> Optional[SkillEdge]:
    """Return the edge with the given id, or None."""
    for edge in state.edges:
        if edge.id == edge_id:
            return edge
    return None


def find_node_by_label(state: SkillState, label: str) -> Optional[SkillNode]:
    """Case-insensitive exact match on the trimmed label."""
    wanted = normalize_label(label)
    for node in state.nodes:
        if normalize_label(node.label) == wanted:
            return node
    return None


def selected_node(state: SkillState) -> Optional[SkillNode]:
    return find_node(state, state.selected_id)


def incoming_of(state: SkillState, node_id: str) -> List[str]:
    """Direct predecessors: the source of every edge targeting node_id."""
    return [e.source for e in state.edges if e.target == node_id]


def outgoing_of(state: SkillState, node_id: str) -> List[str]:
    """Direct dependents: the target of every edge sourced at node_id."""
    return [e.target for e in state.edges if e.source == node_id]


def has_edge(state: SkillState, source: str, target: str) -> bool:
    return any(e.source == source and e.target == target for e in state.edges)


def missing_prereqs(state: SkillState, node_id: str) -> List[str]:
    """Direct predecessors of node_id that are absent or still locked."""
    missing = []
    for pred_id in incoming_of(state, node_id):
        pred = find_node(state, pred_id)
        if pred is None or not pred.unlocked:
            missing.append(pred_id)
    return missing


def prereqs_met(state: SkillState, node_id: str) -> bool:
    """
    True iff every direct predecessor exists and is unlocked.

    Vacuously true for a node with no incoming edges. Only direct
    predecessors count: with A -> B -> C, unlocking C needs B unlocked,
    not A.
    """
    return not missing_prereqs(state, node_id)
