"""SQLite key-value store for Reading Tracker."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

logger = logging.getLogger(__name__)


class ReadingTrackerError(Exception):
    """Base exception for Reading Tracker errors."""

    pass


class StoreError(ReadingTrackerError):
    """Raised when the durable store fails to read or write.

    Treated as transient: callers log it and retry on the next tick.
    """

    pass


class KeyValueStore(Protocol):
    """String-keyed durable storage. Each write is atomic on its own."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys_with_prefix(self, prefix: str) -> list[str]: ...


class SqliteKeyValueStore:
    """SQLite-backed key-value store.

    Not thread-safe on its own. ReadingTracker serializes access to it.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._init_schema()

    def __enter__(self) -> "SqliteKeyValueStore":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _init_schema(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @classmethod
    def open(cls, path: Path) -> SqliteKeyValueStore:
        """Open or create a database at the given path."""
        # The lifecycle ticker runs on its own thread; access is serialized by the tracker.
        conn = sqlite3.connect(path, check_same_thread=False)
        return cls(conn)

    @classmethod
    def open_in_memory(cls) -> SqliteKeyValueStore:
        """Create an in-memory database for testing."""
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        return cls(conn)

    def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"read failed for {key!r}: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite a value. Commits immediately."""
        try:
            self._conn.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"write failed for {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"delete failed for {key!r}: {e}") from e

    def keys_with_prefix(self, prefix: str) -> list[str]:
        """List keys starting with prefix, in key order.

        Args:
            prefix: Literal, case-sensitive prefix.

        Returns:
            Matching keys sorted ascending.
        """
        # substr() instead of LIKE: LIKE is case-insensitive and needs escaping
        try:
            cursor = self._conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            )
            return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreError(f"key scan failed for {prefix!r}: {e}") from e
