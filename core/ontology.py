"""
SKILLTREE ONTOLOGY - The Dictionary of the Skill Graph

If schemas.py is the Grammar (how state and intents are structured),
ontology.py is the Dictionary (the words we can use).

This module defines:
- IntentType: The eight kinds of mutation request the engine understands
- RejectionReason: Why an intent left the state unchanged
- Limits and defaults shared by the reducer and the persisted schema

DESIGN PHILOSOPHY (Physics vs Policy):
- PHYSICS: An edge cannot point at itself, cannot duplicate another edge,
  and cannot close a cycle.
- POLICY: A skill may only be unlocked once its direct prerequisites are.

Both are enforced by the reducer. This module only names them.
"""
from typing import Tuple
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class IntentType(str, Enum):
    """Kinds of intent accepted by the state engine."""
    ADD_NODE = "ADD_NODE"            # New skill, label must be unique
    ADD_EDGE = "ADD_EDGE"            # Prerequisite: target depends on source
    MOVE_NODE = "MOVE_NODE"          # Presentation coordinates only
    REMOVE_NODE = "REMOVE_NODE"      # Cascades to incident edges
    REMOVE_EDGE = "REMOVE_EDGE"
    SELECT = "SELECT"                # Set or clear the selection
    TOGGLE_UNLOCK = "TOGGLE_UNLOCK"  # Gated on direct prerequisites
    LOAD = "LOAD"                    # Wholesale replace


class RejectionReason(str, Enum):
    """Why an intent was a no-op."""
    DUPLICATE_LABEL = "duplicate_label"  # Case-insensitive, after trim
    INVALID_LABEL = "invalid_label"      # Empty after trim or too long
    SELF_LOOP = "self_loop"              # source == target
    DUPLICATE_EDGE = "duplicate_edge"    # (source, target) already present
    CYCLE = "cycle"                      # Edge would close a directed cycle
    PREREQS_UNMET = "prereqs_unmet"      # A direct predecessor is locked/missing
    INVALID_POSITION = "invalid_position"  # x or y is not a finite number
    NOT_FOUND = "not_found"              # Referenced node does not exist


class IdKind(str, Enum):
    """What an id is being generated for."""
    NODE = "node"
    EDGE = "edge"


# =============================================================================
# LIMITS AND DEFAULTS
# =============================================================================

LABEL_MIN_LENGTH: int = 1
LABEL_MAX_LENGTH: int = 80

# Position given to a new node when the adapter does not supply one
DEFAULT_POSITION: Tuple[float, float] = (100.0, 100.0)

# Persisted record version tag. Bump together with a new migration step.
SCHEMA_VERSION: int = 1

DEFAULT_STORAGE_KEY: str = "skill-tree:v1"


def normalize_label(label: str) -> str:
    """Canonical form used for duplicate detection."""
    return label.strip().lower()


def is_valid_label(label: str) -> bool:
    """True if the trimmed label fits the persisted schema."""
    trimmed = label.strip()
    return LABEL_MIN_LENGTH <= len(trimmed) <= LABEL_MAX_LENGTH
