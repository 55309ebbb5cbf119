"""SQLiteEventStore — EventStore implementation on a local SQLite file.

Self-contained: stdlib ``sqlite3`` behind ``asyncio.to_thread``. A single
connection is shared across threads and guarded by a lock.

Schema:
- ``event(id PRIMARY KEY, pubkey, created_at, kind, tags, content, sig)``
- ``tags`` holds the JSON-encoded tag list; tag constraints of a filter are
  evaluated in Python after the indexed columns narrow the rows.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from ppe_relay.event import Event, Filter
from ppe_relay.store import DuplicateEventError, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS event (
    id TEXT PRIMARY KEY,
    pubkey TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    kind INTEGER NOT NULL,
    tags TEXT NOT NULL,
    content TEXT NOT NULL,
    sig TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_event_pubkey ON event (pubkey);
CREATE INDEX IF NOT EXISTS idx_event_kind ON event (kind);
CREATE INDEX IF NOT EXISTS idx_event_created_at ON event (created_at);
"""


def _where(filter: Filter) -> tuple[str, list[Any]]:
    """SQL WHERE clause for the indexed parts of ``filter``."""
    clauses: list[str] = []
    params: list[Any] = []
    for column, values in (
        ("id", filter.ids),
        ("pubkey", filter.authors),
        ("kind", filter.kinds),
    ):
        if values is None:
            continue
        if not values:
            return "WHERE 0", []
        clauses.append(f"{column} IN ({', '.join('?' * len(values))})")
        params.extend(int(v) if column == "kind" else v for v in values)
    if filter.since is not None:
        clauses.append("created_at >= ?")
        params.append(filter.since)
    if filter.until is not None:
        clauses.append("created_at <= ?")
        params.append(filter.until)
    if not clauses:
        return "", params
    return "WHERE " + " AND ".join(clauses), params


def _row_to_event(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        pubkey=row["pubkey"],
        created_at=row["created_at"],
        kind=row["kind"],
        tags=json.loads(row["tags"]),
        content=row["content"],
        sig=row["sig"],
    )


class SQLiteEventStore:
    """Event persistence in a single SQLite database file.

    Implements the ``EventStore`` protocol:

    - ``save_event(event)`` (raises ``DuplicateEventError`` on a known id)
    - ``query_events(filter) -> list[Event]`` newest first
    - ``count_events(filter) -> int``
    - ``delete_event(event_id)``

    Every ``sqlite3.Error`` surfaces as ``StoreError``.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def init(self) -> None:
        """Open the database and create the schema if needed."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self._path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"Could not open event store at {self._path}: {e}") from e
        self._conn = conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Event store is not initialized; call init() first.")
        return self._conn

    # -- blocking helpers (run in a worker thread) ----------------------------

    def _save(self, event: Event) -> None:
        conn = self._connection()
        with self._lock:
            try:
                with conn:
                    conn.execute(
                        "INSERT INTO event (id, pubkey, created_at, kind, tags, content, sig) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (
                            event.id,
                            event.pubkey,
                            event.created_at,
                            event.kind,
                            json.dumps(event.tags),
                            event.content,
                            event.sig,
                        ),
                    )
            except sqlite3.IntegrityError as e:
                raise DuplicateEventError(f"Event {event.id} already stored") from e
            except sqlite3.Error as e:
                raise StoreError(f"Failed to save event {event.id}: {e}") from e

    def _select(self, filter: Filter) -> list[Event]:
        conn = self._connection()
        where, params = _where(filter)
        sql = f"SELECT * FROM event {where} ORDER BY created_at DESC, id ASC"
        with self._lock:
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to query events: {e}") from e

        events = [_row_to_event(row) for row in rows]
        if filter.tags:
            events = [e for e in events if filter.matches(e)]
        if filter.limit is not None:
            events = events[: filter.limit]
        return events

    def _count(self, filter: Filter) -> int:
        if filter.tags or filter.limit is not None:
            return len(self._select(filter))
        conn = self._connection()
        where, params = _where(filter)
        with self._lock:
            try:
                (count,) = conn.execute(f"SELECT COUNT(*) FROM event {where}", params).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to count events: {e}") from e
        return int(count)

    def _delete(self, event_id: str) -> None:
        conn = self._connection()
        with self._lock:
            try:
                with conn:
                    conn.execute("DELETE FROM event WHERE id = ?", (event_id,))
            except sqlite3.Error as e:
                raise StoreError(f"Failed to delete event {event_id}: {e}") from e

    # -- EventStore protocol ---------------------------------------------------

    async def save_event(self, event: Event) -> None:
        await asyncio.to_thread(self._save, event)

    async def query_events(self, filter: Filter) -> list[Event]:
        return await asyncio.to_thread(self._select, filter)

    async def count_events(self, filter: Filter) -> int:
        return await asyncio.to_thread(self._count, filter)

    async def delete_event(self, event_id: str) -> None:
        await asyncio.to_thread(self._delete, event_id)
        logger.info("Deleted event %s", event_id)
