"""
SKILLTREE TRANSITION LOG - What the engine was asked to do

Records every dispatched intent with its outcome, so a session can be
inspected after the fact ("why didn't my edge appear?").

Architecture:
- TransitionEvent: One record per dispatch (msgspec.Struct)
- TransitionLog: Bounded in-memory ring buffer with simple queries
- export_jsonl: Newline-delimited JSON dump for offline analysis

Usage:
    log = TransitionLog(max_size=500)
    engine = SkillTreeEngine(transition_log=log)
    engine.dispatch(AddEdge(source="n3", target="n1"))
    log.get_rejected()[-1].reason    # "cycle"
"""
import msgspec
from collections import deque
from pathlib import Path
from typing import List, Optional, Union
import threading

from core.schemas import Intent, Outcome, now_utc


class TransitionEvent(msgspec.Struct, kw_only=True, frozen=True):
    """A single dispatched intent and what came of it."""
    sequence: int
    timestamp: str
    intent_type: str
    applied: bool
    reason: Optional[str] = None
    created_id: Optional[str] = None
    node_count: int = 0
    edge_count: int = 0


class TransitionLog:
    """
    Thread-safe ring buffer of TransitionEvents.

    O(1) append; queries are O(n) over the buffer.
    """

    def __init__(self, max_size: int = 1000):
        self._buffer: deque[TransitionEvent] = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._sequence = 0
        self._encoder = msgspec.json.Encoder()

    def record(self, intent: Intent, outcome: Outcome) -> TransitionEvent:
        """Append an event for one dispatch."""
        with self._lock:
            self._sequence += 1
            event = TransitionEvent(
                sequence=self._sequence,
                timestamp=now_utc(),
                intent_type=intent.intent_type.value,
                applied=outcome.applied,
                reason=outcome.reason.value if outcome.reason else None,
                created_id=outcome.created_id,
                node_count=len(outcome.state.nodes),
                edge_count=len(outcome.state.edges),
            )
            self._buffer.append(event)
            return event

    def get_last(self, n: int) -> List[TransitionEvent]:
        """Get the last n events."""
        with self._lock:
            items = list(self._buffer)
            return items[-n:] if n > 0 else []

    def get_rejected(self) -> List[TransitionEvent]:
        with self._lock:
            return [e for e in self._buffer if not e.applied]

    def get_by_type(self, intent_type: str) -> List[TransitionEvent]:
        with self._lock:
            return [e for e in self._buffer if e.intent_type == intent_type]

    def export_jsonl(self, path: Union[Path, str]) -> int:
        """
        Write all buffered events as newline-delimited JSON.

        Returns:
            Number of events written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            events = list(self._buffer)
        with open(path, "wb") as f:
            for event in events:
                f.write(self._encoder.encode(event))
                f.write(b"\n")
        return len(events)

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


def read_jsonl(path: Union[Path, str]) -> List[TransitionEvent]:
    """Read events written by TransitionLog.export_jsonl."""
    decoder = msgspec.json.Decoder(type=TransitionEvent)
    events = []
    with open(path, "rb") as f:
        for line in f:
            line = line.strip()
            if line:
                events.append(decoder.decode(line))
    return events

