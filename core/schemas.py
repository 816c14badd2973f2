"""
SKILLTREE SCHEMAS - The Grammar of the Skill Graph

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure sentences).

This module defines the data structures that flow through the engine:
- SkillNode / SkillEdge: The graph payloads
- SkillState: The immutable snapshot the reducer consumes and produces
- Intent structs: One tagged struct per IntentType
- Outcome: Applied/rejected result of a single intent
- Id factories: Injectable id generation (random or deterministic counter)

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. FROZEN: State is replaced wholesale, never mutated in place
3. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
4. TAGGED INTENTS: Intents decode from JSON by their "type" field
"""
import msgspec
from typing import Callable, ClassVar, Iterable, Optional, Tuple, Union
from datetime import datetime, timezone
import uuid

from core.ontology import IdKind, IntentType, RejectionReason


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class SkillGraphError(Exception):
    """Base exception for skill graph operations."""
    pass


class InvalidIntentError(SkillGraphError):
    """Raised when an intent message from an adapter cannot be decoded."""
    def __init__(self, message: str, raw: Optional[Union[bytes, str]] = None):
        self.raw = raw
        super().__init__(f"Invalid intent: {message}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def now_utc() -> str:
    """Fast UTC timestamp as ISO8601 string."""
    return datetime.now(timezone.utc).isoformat()


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


# =============================================================================
# ID GENERATION
# =============================================================================

IdFactory = Callable[[IdKind], str]


def random_id(kind: IdKind = IdKind.NODE) -> str:
    """
    Generate a short random id (8 base-36 characters).

    Collisions are improbable, not prevented. Pass a CounterIdFactory to the
    engine when ids need to be predictable.
    """
    return _to_base36(uuid.uuid4().int)[:8]


class CounterIdFactory:
    """
    Deterministic id source: n1, n2, ... for nodes and e1, e2, ... for edges.

    Node and edge counters are independent. Useful in tests and for
    scripted graph construction where exact ids are asserted.
    """

    def __init__(self, node_prefix: str = "n", edge_prefix: str = "e", start: int = 1):
        self._prefixes = {IdKind.NODE: node_prefix, IdKind.EDGE: edge_prefix}
        self._next = {IdKind.NODE: start, IdKind.EDGE: start}

    def __call__(self, kind: IdKind = IdKind.NODE) -> str:
        value = self._next[kind]
        self._next[kind] = value + 1
        return f"{self._prefixes[kind]}{value}"

    def peek(self, kind: IdKind = IdKind.NODE) -> str:
        """Return the id the next call would produce, without consuming it."""
        return f"{self._prefixes[kind]}{self._next[kind]}"

    @classmethod
    def after(
        cls,
        state: "SkillState",
        node_prefix: str = "n",
        edge_prefix: str = "e",
    ) -> "CounterIdFactory":
        """
        Factory whose counters continue past the highest ids in state.

        With the seed graph (n1..n3, e1..e2) the next ids are n4 and e3.
        Ids that don't follow the prefix+number pattern are ignored.
        """
        factory = cls(node_prefix=node_prefix, edge_prefix=edge_prefix)
        factory._next[IdKind.NODE] = _next_counter(state.node_ids, node_prefix)
        factory._next[IdKind.EDGE] = _next_counter((e.id for e in state.edges), edge_prefix)
        return factory


def _next_counter(ids: Iterable[str], prefix: str) -> int:
    highest = 0
    for value in ids:
        suffix = value[len(prefix):]
        if value.startswith(prefix) and suffix.isascii() and suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


# =============================================================================
# GRAPH PAYLOADS
# =============================================================================

class SkillNode(msgspec.Struct, kw_only=True, frozen=True):
    """
    A single skill.

    x/y are opaque presentation coordinates; the engine stores them and
    never interprets them.
    """
    id: str
    label: str
    unlocked: bool = False
    x: float = 100.0
    y: float = 100.0


class SkillEdge(msgspec.Struct, kw_only=True, frozen=True):
    """Prerequisite relation: target depends on source."""
    id: str
    source: str
    target: str


class SkillState(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """
    Immutable snapshot of the skill graph.

    nodes and edges keep insertion order. selected_id travels as
    "selectedId" on the wire.
    """
    nodes: Tuple[SkillNode, ...] = ()
    edges: Tuple[SkillEdge, ...] = ()
    selected_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        nodes: Iterable[SkillNode] = (),
        edges: Iterable[SkillEdge] = (),
        selected_id: Optional[str] = None,
    ) -> "SkillState":
        """Factory that normalizes any iterables into tuples."""
        return cls(nodes=tuple(nodes), edges=tuple(edges), selected_id=selected_id)

    @property
    def node_ids(self) -> Tuple[str, ...]:
        return tuple(n.id for n in self.nodes)

    @property
    def edge_pairs(self) -> Tuple[Tuple[str, str], ...]:
        return tuple((e.source, e.target) for e in self.edges)


# =============================================================================
# INTENTS (Tagged by "type")
# =============================================================================

class AddNode(msgspec.Struct, kw_only=True, frozen=True,
              tag_field="type", tag=IntentType.ADD_NODE.value):
    """Create a skill. Position defaults to DEFAULT_POSITION."""
    intent_type: ClassVar[IntentType] = IntentType.ADD_NODE
    label: str
    x: Optional[float] = None
    y: Optional[float] = None


class AddEdge(msgspec.Struct, kw_only=True, frozen=True,
              tag_field="type", tag=IntentType.ADD_EDGE.value):
    intent_type: ClassVar[IntentType] = IntentType.ADD_EDGE
    source: str
    target: str


class MoveNode(msgspec.Struct, kw_only=True, frozen=True,
               tag_field="type", tag=IntentType.MOVE_NODE.value):
    intent_type: ClassVar[IntentType] = IntentType.MOVE_NODE
    id: str
    x: float
    y: float


class RemoveNode(msgspec.Struct, kw_only=True, frozen=True,
                 tag_field="type", tag=IntentType.REMOVE_NODE.value):
    intent_type: ClassVar[IntentType] = IntentType.REMOVE_NODE
    id: str


class RemoveEdge(msgspec.Struct, kw_only=True, frozen=True,
                 tag_field="type", tag=IntentType.REMOVE_EDGE.value):
    intent_type: ClassVar[IntentType] = IntentType.REMOVE_EDGE
    id: str


class Select(msgspec.Struct, kw_only=True, frozen=True,
             tag_field="type", tag=IntentType.SELECT.value):
    """Select a node, or clear the selection when id is None."""
    intent_type: ClassVar[IntentType] = IntentType.SELECT
    id: Optional[str] = None


class ToggleUnlock(msgspec.Struct, kw_only=True, frozen=True,
                   tag_field="type", tag=IntentType.TOGGLE_UNLOCK.value):
    intent_type: ClassVar[IntentType] = IntentType.TOGGLE_UNLOCK
    id: str


class Load(msgspec.Struct, kw_only=True, frozen=True,
           tag_field="type", tag=IntentType.LOAD.value):
    """
    Replace the whole state.

    The value is taken as-is; callers supply a state that already satisfies
    the graph invariants (e.g. the output of core.migration.migrate).
    """
    intent_type: ClassVar[IntentType] = IntentType.LOAD
    state: SkillState


Intent = Union[AddNode, AddEdge, MoveNode, RemoveNode, RemoveEdge, Select, ToggleUnlock, Load]


# =============================================================================
# OUTCOME (Applied vs Rejected)
# =============================================================================

class Outcome(msgspec.Struct, kw_only=True, frozen=True):
    """
    Result of applying one intent.

    state is always the state to use next. When applied is False it is the
    prior state, unchanged, and reason says why.
    """
    state: SkillState
    applied: bool
    reason: Optional[RejectionReason] = None
    created_id: Optional[str] = None     # Id of the node/edge an add created

    @property
    def rejected(self) -> bool:
        return not self.applied


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

_intent_encoder = msgspec.json.Encoder()
_intent_decoder = msgspec.json.Decoder(type=Intent)


def encode_intent(intent: Intent) -> bytes:
    """Serialize an intent to JSON bytes (includes the "type" tag)."""
    return _intent_encoder.encode(intent)


def decode_intent(data: Union[bytes, str]) -> Intent:
    """
    Decode an intent message sent by an adapter.

    Raises:
        InvalidIntentError: If the message is not valid JSON or does not
            match any intent shape.
    """
    try:
        return _intent_decoder.decode(data)
    except (msgspec.ValidationError, msgspec.DecodeError) as e:
        raise InvalidIntentError(str(e), raw=data) from e
