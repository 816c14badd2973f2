"""
Wire settings into a ready-to-use SkillTreeEngine.

    engine = create_engine_from_settings(load_settings())
"""
import logging
from typing import Optional

from core.reducer import SkillTreeEngine, create_initial_state
from core.schemas import CounterIdFactory, IdFactory, SkillState, random_id
from infrastructure.config import ConfigError, Settings, StorageSettings
from infrastructure.logger import TransitionLog
from infrastructure.persistence import GraphPersistence
from infrastructure.storage import JsonFileStorage, MemoryStorage, SqliteStorage, StoragePort

logger = logging.getLogger(__name__)


def create_storage(settings: StorageSettings) -> StoragePort:
    """
    Factory for the configured storage backend.

    Raises:
        ConfigError: If the backend name is unknown
    """
    backend = settings.backend.lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return JsonFileStorage(settings.path)
    if backend == "sqlite":
        return SqliteStorage(settings.path)
    raise ConfigError(f"Unknown storage backend: {settings.backend!r}")


def create_id_factory(scheme: str, state: Optional[SkillState] = None) -> IdFactory:
    """
    Id source for the configured scheme.

    A counter continues past the ids already in state, so a restored graph
    never receives a second n1.
    """
    if scheme == "counter":
        return CounterIdFactory.after(state) if state is not None else CounterIdFactory()
    if scheme == "random":
        return random_id
    raise ConfigError(f"Unknown id scheme: {scheme!r}")


def create_engine_from_settings(
    settings: Settings,
    storage: Optional[StoragePort] = None,
) -> SkillTreeEngine:
    """
    Build an engine with persistence and a transition log.

    Args:
        settings: Loaded settings
        storage: Optional backend that replaces the configured one
            (tests pass a MemoryStorage here)
    """
    port = storage if storage is not None else create_storage(settings.storage)
    persistence = GraphPersistence(port, key=settings.storage.key)
    initial = create_initial_state(persistence)
    engine = SkillTreeEngine(
        state=initial,
        persistence=persistence,
        id_factory=create_id_factory(settings.engine.id_scheme, initial),
        transition_log=TransitionLog(max_size=settings.engine.log_buffer_size),
    )
    logger.info(
        "Skill tree engine ready (backend=%s, key=%s)",
        type(port).__name__, settings.storage.key,
    )
    return engine
