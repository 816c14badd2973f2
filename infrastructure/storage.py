"""
Key-value storage backends for the skill graph.

The persistence layer only needs two operations: read the raw value stored
under a key, and store a raw value under a key. StoragePort names that
capability; the classes below are interchangeable implementations.

Backends:
- MemoryStorage: dict-backed, for tests and embedding in another process
- JsonFileStorage: one JSON file per key in a directory
- SqliteStorage: a single key/value table in a SQLite database

Layer: L1 (Storage)
"""
import logging
import os
import re
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage backend cannot complete a read or write."""
    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Storage error for {key!r}: {message}")


@runtime_checkable
class StoragePort(Protocol):
    """Retrieve/store a raw value by key."""

    def get(self, key: str) -> Optional[Any]:
        """Return the raw value for key, or None if nothing is stored."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...


# =============================================================================
# MEMORY
# =============================================================================

class MemoryStorage:
    """
    Dict-backed storage.

    Values are kept exactly as given, so tests can also seed it with
    already-structured data (dicts) to exercise the migration path.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


# =============================================================================
# JSON FILES
# =============================================================================

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStorage:
    """
    Stores each key as <base_dir>/<key>.json.

    Keys are sanitized into file names (":" and other separators become
    "_"). Writes go to a temporary file in the same directory and are
    moved into place with os.replace, so a reader never sees half a file.
    """

    DEFAULT_DIR = Path("data/skilltree")

    def __init__(self, base_dir: Union[Path, str, None] = None):
        self.base_dir = Path(base_dir) if base_dir else self.DEFAULT_DIR
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.base_dir / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(key, str(e)) from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(key, str(e)) from e
        logger.debug("Wrote %d bytes to %s", len(value), path)

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(key, str(e)) from e
        return True


# =============================================================================
# SQLITE
# =============================================================================

class SqliteStorage:
    """SQLite-backed key/value storage."""

    DB_PATH = Path("data/skilltree.db")

    def __init__(self, db_path: Union[Path, str, None] = None):
        """
        Args:
            db_path: Database file (defaults to data/skilltree.db).
                ":memory:" is not supported because each call opens a new
                connection.
        """
        self.db_path = Path(db_path) if db_path else self.DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(key, str(e)) from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        updated_at = datetime.now(timezone.utc).isoformat()
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value, updated_at),
                )
        except sqlite3.Error as e:
            raise StorageError(key, str(e)) from e

    def delete(self, key: str) -> bool:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StorageError(key, str(e)) from e
