"""SQLite-backed key-value persistence for accounts and task namespaces."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Union

logger = logging.getLogger("taskboard.storage")

MEMORY = ":memory:"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _encode(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class KeyValueStore:
    """Store JSON values under string keys in a single SQLite table.

    Reads never raise: absent keys, undecodable payloads and JSON ``null``
    all resolve to the caller's fallback. Writes overwrite whatever was
    stored under the key before.
    """

    def __init__(self, path: Union[Path, str] = MEMORY) -> None:
        self._shared: Optional[sqlite3.Connection] = None
        if str(path) == MEMORY:
            self._path: Union[Path, str] = MEMORY
            self._shared = sqlite3.connect(MEMORY, check_same_thread=False)
        else:
            self._path = Path(path)
            _ensure_directory(self._path)

    @property
    def path(self) -> Union[Path, str]:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self._shared is not None:
            with self._shared:
                yield self._shared
            return

        conn = sqlite3.connect(self._path, check_same_thread=False)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the backing table if it does not already exist."""

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None

    # ------------------------------------------------------------------
    # Key-value contract
    # ------------------------------------------------------------------
    def get(self, key: str, fallback: Any = None) -> Any:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.DatabaseError:
            logger.warning("Failed to read key %s; using fallback", key, exc_info=True)
            return fallback

        if row is None:
            return fallback

        try:
            value = json.loads(row[0])
        except (TypeError, ValueError, RecursionError):
            logger.warning("Stored value for key %s could not be decoded; using fallback", key)
            return fallback

        return fallback if value is None else value

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, Any]) -> None:
        """Write every key in ``values`` in a single transaction."""

        rows = [(key, _encode(value)) for key, value in values.items()]
        if not rows:
            return
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                rows,
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def get_raw(self, key: str) -> Optional[str]:
        """Return the serialized payload stored under ``key`` without decoding it."""

        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row[0])

    def keys(self, prefix: str = "") -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, length(?)) = ? ORDER BY key",
                (prefix, prefix),
            ).fetchall()
        return [str(row[0]) for row in rows]


__all__ = ["KeyValueStore", "MEMORY"]
