"""
Persistence port: load/save a SkillState through any StoragePort.

load() is the only way persisted data re-enters the engine, and it always
goes through core.migration. save() is best effort: a failed write is
logged and reported as False, never raised and never retried.
"""
import logging
from typing import Optional

from core.migration import MigrationOk, decode_persisted, encode_state, validate_persisted
from core.ontology import DEFAULT_STORAGE_KEY
from core.schemas import SkillState
from infrastructure.storage import StorageError, StoragePort

logger = logging.getLogger(__name__)


class GraphPersistence:
    """
    Versioned JSON persistence for the skill graph.

    Usage:
        persistence = GraphPersistence(SqliteStorage("data/skilltree.db"))
        state = persistence.load() or seed_state()
        persistence.save(state)
    """

    def __init__(self, port: StoragePort, key: str = DEFAULT_STORAGE_KEY):
        self.port = port
        self.key = key

    def load(self) -> Optional[SkillState]:
        """
        Read and migrate the stored graph.

        Returns:
            The migrated state, or None when nothing usable is stored
        """
        try:
            raw = self.port.get(self.key)
        except StorageError as e:
            logger.warning("Could not read skill graph: %s", e)
            return None

        if raw is None or raw == "" or raw == b"":
            return None

        if isinstance(raw, (str, bytes, bytearray)):
            result = decode_persisted(bytes(raw) if isinstance(raw, bytearray) else raw)
        else:
            result = validate_persisted(raw)

        if isinstance(result, MigrationOk):
            return result.state

        logger.warning("Discarding persisted skill graph under %r: %s", self.key, result.message)
        return None

    def save(self, state: SkillState) -> bool:
        """
        Write the state as a version-tagged JSON record.

        Returns:
            True if the backend accepted the write
        """
        try:
            self.port.set(self.key, encode_state(state).decode("utf-8"))
        except (StorageError, OSError) as e:
            logger.warning("Could not save skill graph under %r: %s", self.key, e)
            return False
        logger.debug("Saved skill graph (%d nodes, %d edges)", len(state.nodes), len(state.edges))
        return True

    def clear(self) -> None:
        """Overwrite the stored value with an empty string (load() then returns None)."""
        try:
            self.port.set(self.key, "")
        except (StorageError, OSError) as e:
            logger.warning("Could not clear skill graph under %r: %s", self.key, e)
