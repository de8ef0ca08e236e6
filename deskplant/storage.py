"""
DeskPlant Storage - key-value persistence

Every model persists itself as one JSON value under a well-known key.
SQLiteStore is the on-disk default; MemoryStore keeps values in a dict for
ephemeral runs and tests.

Read failures surface as PersistenceReadError so callers can fall back to
defaults instead of building a half-populated record.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from deskplant.config import DEFAULT_DB_PATH
from deskplant.exceptions import PersistenceReadError

logger = logging.getLogger(__name__)

# Well-known keys
PLANT_STATE_KEY = "plantState"
DAILY_STATS_KEY = "dailyStats"
LICENSE_KEY = "license"
DEVICE_ID_KEY = "deviceIdentifier"
ONBOARDING_KEY = "hasCompletedOnboarding"
SOUND_ENABLED_KEY = "notificationSoundEnabled"
LANGUAGE_KEY = "appLanguage"
SESSIONS_COMPLETED_KEY = "sessionsCompleted"
TIMER_DURATIONS_KEY = "timerDurations"

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class KeyValueStore(Protocol):
    """Persistence collaborator: opaque JSON values keyed by string."""

    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Values are round-tripped through JSON like SQLiteStore."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.save(key, value)

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceReadError(f"Corrupt value for '{key}': {e}", key=key) from e

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SQLiteStore:
    """
    SQLite-backed key-value store.

    Usage:
        store = SQLiteStore()
        store.initialize()
        store.save("plantState", {...})

        # Or as a context manager
        with SQLiteStore(path) as store:
            ...
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize store.

        Args:
            db_path: Path to SQLite database file. If None, uses default location.
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> SQLiteStore:
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get database connection, initializing if needed."""
        if self._conn is None:
            self.initialize()
        return self._conn  # type: ignore

    def initialize(self) -> None:
        """Open the database and apply the schema."""
        if self._conn is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(SCHEMA)
        self._conn.commit()
        logger.debug("Opened store at %s", self.db_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def load(self, key: str) -> Any | None:
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise PersistenceReadError(f"Corrupt value for '{key}': {e}", key=key) from e

    def save(self, key: str, value: Any) -> None:
        self.conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                           updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), datetime.now().isoformat()),
        )
        self.conn.commit()

    def delete(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()


def load_or_none(store: KeyValueStore, key: str) -> Any | None:
    """Load a value, treating unreadable data as absent."""
    try:
        return store.load(key)
    except PersistenceReadError as e:
        logger.warning("Ignoring unreadable value: %s", e)
        return None
