"""
SKILLTREE INFRASTRUCTURE - Storage, persistence, configuration, logging

This package contains infrastructure components:
- storage: Key-value backends (memory, JSON files, SQLite)
- persistence: Versioned load/save of the skill graph
- config: TOML settings
- logger: Transition log (ring buffer of dispatched intents)
- bootstrap: Builds a configured SkillTreeEngine
"""

from infrastructure.storage import (
    StoragePort,
    StorageError,
    MemoryStorage,
    JsonFileStorage,
    SqliteStorage,
)
from infrastructure.persistence import GraphPersistence
from infrastructure.config import ConfigError, Settings, load_settings
from infrastructure.logger import TransitionLog, TransitionEvent
from infrastructure.bootstrap import create_engine_from_settings, create_storage

__all__ = [
    "StoragePort",
    "StorageError",
    "MemoryStorage",
    "JsonFileStorage",
    "SqliteStorage",
    "GraphPersistence",
    "ConfigError",
    "Settings",
    "load_settings",
    "TransitionLog",
    "TransitionEvent",
    "create_engine_from_settings",
    "create_storage",
]
