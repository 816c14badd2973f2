"""
SKILLTREE MIGRATION - The Border Checkpoint

Persisted data is the only untrusted input the engine ever sees. This
module defines the versioned on-disk shape and turns arbitrary input into a
SkillState, or refuses it.

Persisted record (version 1):
    {
        "v": 1,
        "nodes": [{"id", "label", "unlocked", "x", "y"}, ...],
        "edges": [{"id", "source", "target"}, ...],
        "selectedId": "..."            # optional
    }

Rules:
- All-or-nothing: one bad node discards the whole record
- Reject, never coerce: msgspec strict conversion ("1" is not 1,
  0 is not False); ints are accepted where a number is expected
- Labels are trimmed, then must be 1-80 characters
- Coordinates must be finite
- selectedId may be absent but not null
- Unknown keys are ignored; unknown version tags are rejected

Adding a version: define PersistedStateV2, register a converter in
_VERSIONS, and write the V1 -> V2 step so old records keep loading.
"""
import math
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Union

import msgspec
from msgspec import Meta

from core.ontology import LABEL_MAX_LENGTH, SCHEMA_VERSION, is_valid_label
from core.schemas import SkillEdge, SkillNode, SkillState

NonEmptyStr = Annotated[str, Meta(min_length=1)]


# =============================================================================
# PERSISTED SHAPE (Version 1)
# =============================================================================

class PersistedNode(msgspec.Struct, kw_only=True):
    id: NonEmptyStr
    label: str
    unlocked: bool
    x: float
    y: float

    def __post_init__(self):
        # Raised errors surface as msgspec.ValidationError during conversion
        self.label = self.label.strip()
        if not is_valid_label(self.label):
            raise ValueError(f"label must be 1-{LABEL_MAX_LENGTH} characters after trimming")
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError("coordinates must be finite")


class PersistedEdge(msgspec.Struct, kw_only=True):
    id: NonEmptyStr
    source: NonEmptyStr
    target: NonEmptyStr


class PersistedStateV1(msgspec.Struct, kw_only=True, rename="camel"):
    v: Literal[1]
    nodes: List[PersistedNode]
    edges: List[PersistedEdge]
    selected_id: Union[str, msgspec.UnsetType] = msgspec.UNSET   # Absent, never null


# =============================================================================
# MIGRATION RESULT (Tagged Sum Type)
# =============================================================================

class MigrationOk(msgspec.Struct, frozen=True, tag="ok"):
    state: SkillState

    @property
    def ok(self) -> bool:
        return True


class MigrationError(msgspec.Struct, frozen=True, tag="error"):
    message: str

    @property
    def ok(self) -> bool:
        return False


MigrationResult = Union[MigrationOk, MigrationError]


# =============================================================================
# CONVERTERS
# =============================================================================

def _from_v1(raw: Any) -> SkillState:
    record = msgspec.convert(raw, type=PersistedStateV1, strict=True)
    return _to_state(record)


def _to_state(record: PersistedStateV1) -> SkillState:
    return SkillState(
        nodes=tuple(
            SkillNode(id=n.id, label=n.label, unlocked=n.unlocked, x=n.x, y=n.y)
            for n in record.nodes
        ),
        edges=tuple(
            SkillEdge(id=e.id, source=e.source, target=e.target)
            for e in record.edges
        ),
        selected_id=None if record.selected_id is msgspec.UNSET else record.selected_id,
    )


# Version tag -> converter producing the current in-memory state
_VERSIONS: Dict[int, Callable[[Any], SkillState]] = {
    1: _from_v1,
}


# =============================================================================
# PUBLIC API
# =============================================================================

def validate_persisted(raw: Any) -> MigrationResult:
    """
    Validate untrusted structured input (already JSON-parsed).

    Never raises.

    Returns:
        MigrationOk with the extracted state, or MigrationError saying
        what was wrong
    """
    if not isinstance(raw, dict):
        return MigrationError(message=f"expected an object, got {type(raw).__name__}")

    version = raw.get("v")
    converter = _VERSIONS.get(version) if type(version) is int else None
    if converter is None:
        return MigrationError(message=f"unsupported schema version: {version!r}")

    try:
        return MigrationOk(state=converter(raw))
    except msgspec.ValidationError as e:
        return MigrationError(message=str(e))


def migrate(raw: Any) -> Optional[SkillState]:
    """The validated state, or None if raw does not match the schema."""
    result = validate_persisted(raw)
    return result.state if isinstance(result, MigrationOk) else None


def decode_persisted(data: Union[bytes, str]) -> MigrationResult:
    """
    Parse JSON text, then validate it.

    Invalid JSON and bytes that are not UTF-8 are a MigrationError.
    """
    try:
        raw = msgspec.json.decode(data)
    except (msgspec.DecodeError, UnicodeDecodeError) as e:
        return MigrationError(message=f"invalid JSON: {e}")
    return validate_persisted(raw)


def serialize_state(state: SkillState) -> Dict[str, Any]:
    """
    JSON-compatible persisted record for a state, tagged with the version.

    selectedId is omitted when nothing is selected.
    """
    record: Dict[str, Any] = {
        "v": SCHEMA_VERSION,
        "nodes": list(msgspec.to_builtins(state.nodes)),
        "edges": list(msgspec.to_builtins(state.edges)),
    }
    if state.selected_id is not None:
        record["selectedId"] = state.selected_id
    return record


_record_encoder = msgspec.json.Encoder()


def encode_state(state: SkillState) -> bytes:
    """Serialize a state to persisted JSON bytes."""
    return _record_encoder.encode(serialize_state(state))
