"""
SKILLTREE CORE - The skill graph state engine.

This package provides:
- Entity model (SkillNode, SkillEdge, SkillState, intents)
- Selectors (read-only queries)
- Validators (cycle detection, invariant audit)
- The reducer (single mutation authority) and SkillTreeEngine
- Schema & migration for persisted state
"""

from core.ontology import IntentType, RejectionReason
from core.schemas import (
    SkillNode,
    SkillEdge,
    SkillState,
    AddNode,
    AddEdge,
    MoveNode,
    RemoveNode,
    RemoveEdge,
    Select,
    ToggleUnlock,
    Load,
    Intent,
    Outcome,
    CounterIdFactory,
    random_id,
)
from core.selectors import find_node, incoming_of, prereqs_met
from core.graph_invariants import would_create_cycle, validate_state
from core.reducer import (
    transition,
    apply_intent,
    seed_state,
    create_initial_state,
    SkillTreeEngine,
)
from core.migration import migrate, validate_persisted, serialize_state

__all__ = [
    # Vocabulary
    "IntentType",
    "RejectionReason",
    # Entity model
    "SkillNode",
    "SkillEdge",
    "SkillState",
    "AddNode",
    "AddEdge",
    "MoveNode",
    "RemoveNode",
    "RemoveEdge",
    "Select",
    "ToggleUnlock",
    "Load",
    "Intent",
    "Outcome",
    "CounterIdFactory",
    "random_id",
    # Selectors
    "find_node",
    "incoming_of",
    "prereqs_met",
    # Validators
    "would_create_cycle",
    "validate_state",
    # Engine
    "transition",
    "apply_intent",
    "seed_state",
    "create_initial_state",
    "SkillTreeEngine",
    # Schema & migration
    "migrate",
    "validate_persisted",
    "serialize_state",
]
