"""Repository layer for the persisted resource pool blob."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional, Protocol

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class RepositoryError(Exception):
    """Raised when the backing store cannot be read or written."""


class ResourceRepository(Protocol):
    def load(self) -> Optional[dict[str, Any]]:
        ...

    def save(self, payload: dict[str, Any]) -> None:
        ...


class InMemoryResourceRepository:
    """Keeps the JSON blob in process memory; used by tests and embedded callers."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._blob: Optional[str] = json.dumps(initial) if initial is not None else None
        self.save_count = 0

    def load(self) -> Optional[dict[str, Any]]:
        if self._blob is None:
            return None
        return json.loads(self._blob)

    def save(self, payload: dict[str, Any]) -> None:
        self._blob = json.dumps(payload)
        self.save_count += 1


class SqliteResourceRepository:
    """Stores the pool as a single JSON value under a fixed key."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._key = self._settings.resource_store_key

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        return connection

    def initialize_database(self) -> None:
        """Create the key-value table before the pool is loaded."""
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS KeyValueStore (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.commit()
            logger.info("Resource store initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def load(self) -> Optional[dict[str, Any]]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT value FROM KeyValueStore WHERE key = ?;",
                    (self._key,),
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to read {self._key}: {exc}") from exc

        if row is None:
            return None
        try:
            payload = json.loads(row["value"])
        except json.JSONDecodeError as exc:
            raise RepositoryError(f"Stored {self._key} is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise RepositoryError(f"Stored {self._key} must be a JSON object")
        return payload

    def save(self, payload: dict[str, Any]) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO KeyValueStore (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP;
                    """,
                    (self._key, json.dumps(payload)),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to write {self._key}: {exc}") from exc
