"""Local key-value stores for persisted sync state."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from ..config import Config

__all__ = ["SqliteKeyValueStore", "MemoryKeyValueStore"]

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """SQLite-backed flat key-value store.

    Values are stored as JSON text, so anything ``json.dumps`` accepts
    (strings, numbers, string arrays) round-trips.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        if db_path is None:
            db_path = Config.get_data_dir() / "sync_state.db"

        self.db_path = db_path
        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "connection"):
            self._local.connection = sqlite3.connect(str(self.db_path))
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Context manager for database cursor."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, key: str, default: Any = None) -> Any:
        """Get the value stored under ``key``.

        Args:
            key: Flat key name
            default: Returned when the key is missing

        Returns:
            Decoded value, or ``default``
        """
        with self._cursor() as cursor:
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning(f"Corrupt value for key {key!r}, ignoring")
            return default

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        now = datetime.now(timezone.utc).isoformat()
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), now),
            )

    def delete(self, *keys: str) -> int:
        """Delete keys in a single transaction.

        Returns:
            Number of keys removed
        """
        if not keys:
            return 0

        with self._cursor() as cursor:
            placeholders = ",".join("?" * len(keys))
            cursor.execute(
                f"DELETE FROM kv_store WHERE key IN ({placeholders})",
                keys,
            )
            return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection


class MemoryKeyValueStore:
    """In-process store with the same contract, for tests and dry runs."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            raw = self._data.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = encoded

    def delete(self, *keys: str) -> int:
        with self._lock:
            removed = [k for k in keys if self._data.pop(k, None) is not None]
        return len(removed)

    def close(self) -> None:
        pass
