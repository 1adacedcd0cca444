"""
Key-value persistence capability.

Defines the KeyValueStore ABC with two backends:
- MemoryKeyValueStore (tests, ephemeral sessions)
- SQLiteKeyValueStore (primary, stdlib sqlite3 in WAL mode)

Backend failures surface as ``PersistenceError``; consumers log and carry on.

Decision: D-006
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from squirt.errors import ConfigurationError, PersistenceError

LOG = logging.getLogger("storage.kv")

# Storage directory name used when no data dir is configured
STORAGE_DIR_NAME = ".squirt"

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""


class KeyValueStore(ABC):
    """Byte values under string keys."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the value for ``key`` or None when absent."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; absent keys are ignored."""

    def close(self) -> None:
        """Release storage resources. Override if needed."""


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed key-value store. One table, WAL journal."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA_SQL)
            self._conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot open key-value store at {db_path}: {exc}", path=str(db_path)) from exc

    @property
    def path(self) -> Path:
        return self._db_path

    def get(self, key: str) -> bytes | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read {key!r}: {exc}", key=key) from exc
        return bytes(row[0]) if row else None

    def set(self, key: str, value: bytes) -> None:
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated) "
                "VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))",
                (key, sqlite3.Binary(value)),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to write {key!r}: {exc}", key=key) from exc

    def remove(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to remove {key!r}: {exc}", key=key) from exc

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            LOG.debug("Closed key-value store %s", self._db_path)


def build_kv_store(backend: str, data_dir: Path | None = None) -> KeyValueStore:
    """
    Factory: create a KeyValueStore of the requested backend type.

    Args:
        backend: "sqlite" or "memory"
        data_dir: Directory holding ``squirt.db`` (sqlite only).
            Defaults to ``./.squirt``.

    Raises:
        ConfigurationError: Unknown backend
        PersistenceError: The SQLite file cannot be opened
    """
    if backend == "memory":
        return MemoryKeyValueStore()

    elif backend == "sqlite":
        storage_dir = data_dir if data_dir is not None else Path(STORAGE_DIR_NAME)
        return SQLiteKeyValueStore(storage_dir / "squirt.db")

    else:
        raise ConfigurationError(
            f"Unknown storage backend: {backend!r}. Supported: 'sqlite', 'memory'", backend=backend
        )
