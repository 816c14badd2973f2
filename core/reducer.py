"""
SKILLTREE REDUCER - The Single Mutation Authority

Every change to the skill graph goes through transition(). It takes the
current SkillState and one intent, and returns the next SkillState. Illegal
intents are no-ops: the prior state comes back unchanged and nothing is
raised, because intents come from interactive gestures where "nothing
happened" is an acceptable outcome.

Callers that need to know *why* nothing happened use apply_intent(), which
returns an Outcome carrying a RejectionReason.

Layout:
- transition / apply_intent: Pure functions (no I/O, no globals)
- seed_state / create_initial_state: Where a session's state comes from
- SkillTreeEngine: Explicit state holder wiring persistence and logging

Thread Safety:
    SkillTreeEngine is NOT thread-safe. State is single-owner.
"""
import logging
import math
from typing import Callable, Dict, Iterable, Optional, Protocol, Type

import msgspec

from core.ontology import DEFAULT_POSITION, IdKind, RejectionReason, is_valid_label
from core.schemas import (
    AddEdge,
    AddNode,
    IdFactory,
    Intent,
    Load,
    MoveNode,
    Outcome,
    RemoveEdge,
    RemoveNode,
    Select,
    SkillEdge,
    SkillNode,
    SkillState,
    ToggleUnlock,
    random_id,
)
from core.selectors import find_node, find_node_by_label, prereqs_met
from core.graph_invariants import check_edge_shape, would_create_cycle

logger = logging.getLogger(__name__)


# =============================================================================
# OUTCOME HELPERS
# =============================================================================

def _applied(state: SkillState, created_id: Optional[str] = None) -> Outcome:
    return Outcome(state=state, applied=True, created_id=created_id)


def _rejected(state: SkillState, reason: RejectionReason) -> Outcome:
    return Outcome(state=state, applied=False, reason=reason)


def _finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


def _fresh_id(new_id: IdFactory, kind: IdKind, taken: Iterable[str]) -> str:
    # Draw again until the id is unused; a counter behind the state catches up
    taken = set(taken)
    candidate = new_id(kind)
    while candidate in taken:
        candidate = new_id(kind)
    return candidate


# =============================================================================
# INTENT HANDLERS
# =============================================================================

def _add_node(state: SkillState, intent: AddNode, new_id: IdFactory) -> Outcome:
    if not is_valid_label(intent.label):
        return _rejected(state, RejectionReason.INVALID_LABEL)
    if find_node_by_label(state, intent.label) is not None:
        return _rejected(state, RejectionReason.DUPLICATE_LABEL)

    x = DEFAULT_POSITION[0] if intent.x is None else intent.x
    y = DEFAULT_POSITION[1] if intent.y is None else intent.y
    if not _finite(x, y):
        return _rejected(state, RejectionReason.INVALID_POSITION)

    node = SkillNode(
        id=_fresh_id(new_id, IdKind.NODE, state.node_ids),
        label=intent.label.strip(),
        unlocked=False,
        x=float(x),
        y=float(y),
    )
    return _applied(
        msgspec.structs.replace(state, nodes=(*state.nodes, node), selected_id=node.id),
        created_id=node.id,
    )


def _add_edge(state: SkillState, intent: AddEdge, new_id: IdFactory) -> Outcome:
    source, target = intent.source, intent.target

    reason = check_edge_shape(state, source, target)
    if reason is not None:
        return _rejected(state, reason)
    if find_node(state, source) is None or find_node(state, target) is None:
        return _rejected(state, RejectionReason.NOT_FOUND)
    if would_create_cycle(state.edges, source, target):
        return _rejected(state, RejectionReason.CYCLE)

    edge = SkillEdge(
        id=_fresh_id(new_id, IdKind.EDGE, (e.id for e in state.edges)),
        source=source,
        target=target,
    )
    return _applied(msgspec.structs.replace(state, edges=(*state.edges, edge)), created_id=edge.id)


def _move_node(state: SkillState, intent: MoveNode, new_id: IdFactory) -> Outcome:
    if find_node(state, intent.id) is None:
        return _rejected(state, RejectionReason.NOT_FOUND)
    if not _finite(intent.x, intent.y):
        return _rejected(state, RejectionReason.INVALID_POSITION)

    nodes = tuple(
        msgspec.structs.replace(n, x=float(intent.x), y=float(intent.y)) if n.id == intent.id else n
        for n in state.nodes
    )
    return _applied(msgspec.structs.replace(state, nodes=nodes))


def _remove_node(state: SkillState, intent: RemoveNode, new_id: IdFactory) -> Outcome:
    node_id = intent.id
    return _applied(msgspec.structs.replace(
        state,
        nodes=tuple(n for n in state.nodes if n.id != node_id),
        edges=tuple(e for e in state.edges if e.source != node_id and e.target != node_id),
        selected_id=None if state.selected_id == node_id else state.selected_id,
    ))


def _remove_edge(state: SkillState, intent: RemoveEdge, new_id: IdFactory) -> Outcome:
    return _applied(msgspec.structs.replace(
        state,
        edges=tuple(e for e in state.edges if e.id != intent.id),
    ))


def _select(state: SkillState, intent: Select, new_id: IdFactory) -> Outcome:
    return _applied(msgspec.structs.replace(state, selected_id=intent.id))


def _toggle_unlock(state: SkillState, intent: ToggleUnlock, new_id: IdFactory) -> Outcome:
    if find_node(state, intent.id) is None:
        return _rejected(state, RejectionReason.NOT_FOUND)
    if not prereqs_met(state, intent.id):
        return _rejected(state, RejectionReason.PREREQS_UNMET)

    nodes = tuple(
        msgspec.structs.replace(n, unlocked=not n.unlocked) if n.id == intent.id else n
        for n in state.nodes
    )
    return _applied(msgspec.structs.replace(state, nodes=nodes))


def _load(state: SkillState, intent: Load, new_id: IdFactory) -> Outcome:
    return _applied(intent.state)


_HANDLERS: Dict[Type, Callable[[SkillState, Intent, IdFactory], Outcome]] = {
    AddNode: _add_node,
    AddEdge: _add_edge,
    MoveNode: _move_node,
    RemoveNode: _remove_node,
    RemoveEdge: _remove_edge,
    Select: _select,
    ToggleUnlock: _toggle_unlock,
    Load: _load,
}


# =============================================================================
# PURE TRANSITION FUNCTIONS
# =============================================================================

def apply_intent(state: SkillState, intent: Intent, id_factory: IdFactory = random_id) -> Outcome:
    """
    Apply one intent and report what happened.

    Args:
        state: Current state (never modified)
        intent: One of the Intent structs
        id_factory: Id source for add-node / add-edge

    Returns:
        Outcome. outcome.state is the next state either way.

    Raises:
        TypeError: If intent is not an Intent struct. This is a programming
            error in the adapter, not a rejected gesture.
    """
    handler = _HANDLERS.get(type(intent))
    if handler is None:
        raise TypeError(f"Unknown intent: {intent!r}")
    return handler(state, intent, id_factory)


def transition(state: SkillState, intent: Intent, id_factory: IdFactory = random_id) -> SkillState:
    """Next state for (state, intent). Rejected intents return state unchanged."""
    return apply_intent(state, intent, id_factory).state


# =============================================================================
# INITIAL STATE
# =============================================================================

def seed_state() -> SkillState:
    """The default graph: HTML and CSS are prerequisites of JS. Fresh each call."""
    return SkillState(
        nodes=(
            SkillNode(id="n1", label="HTML", unlocked=True, x=0.0, y=0.0),
            SkillNode(id="n2", label="CSS", unlocked=False, x=240.0, y=0.0),
            SkillNode(id="n3", label="JS", unlocked=False, x=120.0, y=150.0),
        ),
        edges=(
            SkillEdge(id="e1", source="n1", target="n3"),
            SkillEdge(id="e2", source="n2", target="n3"),
        ),
        selected_id="n3",
    )


class StatePersistence(Protocol):
    """What the engine needs from a persistence adapter."""

    def load(self) -> Optional[SkillState]: ...

    def save(self, state: SkillState) -> bool: ...


class TransitionRecorder(Protocol):
    """What the engine needs from a transition log."""

    def record(self, intent: Intent, outcome: Outcome) -> None: ...


def create_initial_state(persistence: Optional[StatePersistence] = None) -> SkillState:
    """
    Persisted state when one loads and migrates cleanly, otherwise the seed.
    """
    if persistence is not None:
        loaded = persistence.load()
        if loaded is not None:
            logger.info(
                "Restored skill graph from storage (%d nodes, %d edges)",
                len(loaded.nodes), len(loaded.edges),
            )
            return loaded
        logger.info("No usable persisted skill graph, starting from seed")
    return seed_state()


# =============================================================================
# ENGINE (Explicit State Holder)
# =============================================================================

class SkillTreeEngine:
    """
    Holds the current SkillState and applies intents to it.

    Usage:
        engine = SkillTreeEngine(persistence=GraphPersistence(MemoryStorage()))
        engine.dispatch(AddNode(label="React"))
        engine.dispatch(AddEdge(source="n3", target=engine.state.selected_id))

    Every applied intent is saved through the persistence adapter when one
    is configured. Saving is best effort: failures are logged, not raised.
    Rejected intents change nothing and are not saved.
    """

    def __init__(
        self,
        state: Optional[SkillState] = None,
        persistence: Optional[StatePersistence] = None,
        id_factory: IdFactory = random_id,
        transition_log: Optional[TransitionRecorder] = None,
    ):
        self._persistence = persistence
        self._id_factory = id_factory
        self._transition_log = transition_log
        self._state = state if state is not None else create_initial_state(persistence)

    @property
    def state(self) -> SkillState:
        return self._state

    def try_dispatch(self, intent: Intent) -> Outcome:
        """Apply one intent and return the full Outcome."""
        outcome = apply_intent(self._state, intent, self._id_factory)

        if outcome.applied:
            logger.debug("Applied %s", intent.intent_type.value)
            self._state = outcome.state
            self._save()
        else:
            logger.debug(
                "Rejected %s: %s", intent.intent_type.value,
                outcome.reason.value if outcome.reason else "unknown",
            )

        if self._transition_log is not None:
            try:
                self._transition_log.record(intent, outcome)
            except Exception:
                logger.warning("Transition log failed", exc_info=True)

        return outcome

    def dispatch(self, intent: Intent) -> SkillState:
        """Apply one intent and return the resulting state."""
        return self.try_dispatch(intent).state

    def reset(self) -> SkillState:
        """Replace the current graph with the seed graph."""
        logger.info("Resetting skill graph to seed")
        return self.dispatch(Load(state=seed_state()))

    def _save(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save(self._state)
        except Exception:
            # Don't let persistence break graph operations
            logger.warning("Saving skill graph failed", exc_info=True)

    def __repr__(self) -> str:
        return f"SkillTreeEngine(nodes={len(self._state.nodes)}, edges={len(self._state.edges)})"
