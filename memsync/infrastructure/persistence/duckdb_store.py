"""DuckDB relational store for MemSync.

Ground truth for MemoryRecord and CalendarEvent rows. The vector index is
derived from what is stored here and can always be rebuilt from it.

Every public method is a coroutine that runs its query in the default
executor on a fresh cursor, so concurrent coroutines never share a cursor.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence, TypeVar

import duckdb

from memsync.core.errors import RelationalStoreError
from memsync.core.models import CalendarEvent, CalendarEventCreate, MemoryRecord, ProviderEvent
from memsync.utils.dates import from_db, to_db, utcnow
from memsync.utils.ids import generate_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY_COLUMNS = "id, content, type, user_id, vector_id, created_at, updated_at"

EVENT_COLUMNS = (
    "id, title, start_at, end_at, description, location, is_all_day, user_id, "
    "external_event_id, external_calendar_id, synced, remote_stale, created_at, updated_at"
)

# Python field name -> column name for event updates
EVENT_UPDATABLE_FIELDS = {
    "title": "title",
    "start": "start_at",
    "end": "end_at",
    "description": "description",
    "location": "location",
    "is_all_day": "is_all_day",
    "external_event_id": "external_event_id",
    "external_calendar_id": "external_calendar_id",
    "synced": "synced",
    "remote_stale": "remote_stale",
}


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection, rows: list[tuple]) -> list[dict[str, Any]]:
    columns = [col[0] for col in cursor.description]
    return [dict(zip(columns, row)) for row in rows]


def _memory_from_row(row: dict[str, Any]) -> MemoryRecord:
    return MemoryRecord(
        id=row["id"],
        content=row["content"],
        type=row["type"],
        user_id=row["user_id"],
        vector_id=row["vector_id"],
        created_at=from_db(row["created_at"]),
        updated_at=from_db(row["updated_at"]),
    )


def _event_from_row(row: dict[str, Any]) -> CalendarEvent:
    return CalendarEvent(
        id=row["id"],
        title=row["title"],
        start=from_db(row["start_at"]),
        end=from_db(row["end_at"]),
        description=row["description"],
        location=row["location"],
        is_all_day=bool(row["is_all_day"]),
        user_id=row["user_id"],
        external_event_id=row["external_event_id"],
        external_calendar_id=row["external_calendar_id"],
        synced=bool(row["synced"]),
        remote_stale=bool(row["remote_stale"]),
    )


class DuckDBStore:
    """Typed CRUD for memories and calendar events on DuckDB.

    Usage:
        store = DuckDBStore("data/memsync.duckdb")
        await store.connect()
        record = await store.insert_memory("Favorite color is blue", "preference", "u1")
    """

    def __init__(self, db_path: str = ":memory:"):
        """Initialize the store.

        Args:
            db_path: DuckDB file path, or ':memory:' for an in-process database
        """
        self.db_path = db_path
        self.conn: duckdb.DuckDBPyConnection | None = None
        self._connect_lock: asyncio.Lock | None = None

    # ========== Lifecycle ==========

    async def connect(self) -> None:
        """Open the database and create the schema. Safe to call more than once."""
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()
        async with self._connect_lock:
            if self.conn is not None:
                return

            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            loop = asyncio.get_event_loop()
            try:
                conn = await loop.run_in_executor(None, lambda: duckdb.connect(self.db_path))
                await loop.run_in_executor(None, lambda: self._create_schema(conn))
            except duckdb.Error as e:
                raise RelationalStoreError(f"Failed to open database {self.db_path}: {e}") from e
            self.conn = conn
            logger.info(f"Database initialized: {self.db_path}")

    def _create_schema(self, conn: duckdb.DuckDBPyConnection) -> None:
        """Create tables and indexes if they don't exist."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                id VARCHAR PRIMARY KEY,
                content VARCHAR NOT NULL,
                type VARCHAR NOT NULL,
                user_id VARCHAR,
                vector_id VARCHAR,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)

        # One row per provider event and user; NULL external ids never collide
        conn.execute("""
            CREATE TABLE IF NOT EXISTS calendar_events (
                id VARCHAR PRIMARY KEY,
                title VARCHAR NOT NULL,
                start_at TIMESTAMP NOT NULL,
                end_at TIMESTAMP NOT NULL,
                description VARCHAR,
                location VARCHAR,
                is_all_day BOOLEAN NOT NULL DEFAULT FALSE,
                user_id VARCHAR NOT NULL,
                external_event_id VARCHAR,
                external_calendar_id VARCHAR,
                synced BOOLEAN NOT NULL DEFAULT FALSE,
                remote_stale BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                UNIQUE (external_event_id, user_id)
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_memories_user ON memories(user_id)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_events_user ON calendar_events(user_id)
        """)

    async def close(self) -> None:
        """Close database connection."""
        if self.conn is not None:
            conn = self.conn
            self.conn = None
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, conn.close)

    @contextmanager
    def _cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        if self.conn is None:
            raise RelationalStoreError("Database is not connected; call connect() first")
        cursor = self.conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    async def _run(self, operation: str, fn: Callable[[duckdb.DuckDBPyConnection], T]) -> T:
        """Run ``fn(cursor)`` in the executor, translating DuckDB failures."""

        def call() -> T:
            with self._cursor() as cursor:
                return fn(cursor)

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, call)
        except duckdb.Error as e:
            raise RelationalStoreError(f"{operation} failed: {e}") from e

    # ========== Memories ==========

    async def insert_memory(self, content: str, memory_type: str, user_id: str | None) -> MemoryRecord:
        """Insert a memory row with ``vector_id`` unset."""
        now = to_db(utcnow())
        record_id = generate_id()

        def insert(cur: duckdb.DuckDBPyConnection) -> None:
            cur.execute(
                f"INSERT INTO memories ({MEMORY_COLUMNS}) VALUES (?, ?, ?, ?, NULL, ?, ?)",
                [record_id, content, memory_type, user_id, now, now],
            )

        await self._run("insert_memory", insert)
        return MemoryRecord(
            id=record_id,
            content=content,
            type=memory_type,
            user_id=user_id,
            vector_id=None,
            created_at=from_db(now),
            updated_at=from_db(now),
        )

    async def get_memory(self, memory_id: str) -> MemoryRecord | None:
        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ?", [memory_id]
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        rows = await self._run("get_memory", select)
        return _memory_from_row(rows[0]) if rows else None

    async def get_memories(self, memory_ids: Sequence[str]) -> list[MemoryRecord]:
        """Fetch all rows whose id is in ``memory_ids`` in one query (order unspecified)."""
        ids = list(dict.fromkeys(memory_ids))
        if not ids:
            return []

        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            placeholders = ", ".join("?" for _ in ids)
            rows = cur.execute(
                f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id IN ({placeholders})", ids
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        return [_memory_from_row(row) for row in await self._run("get_memories", select)]

    async def list_memories(self, user_id: str | None = None, limit: int | None = None) -> list[MemoryRecord]:
        """List memories, most recently updated first."""

        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            query = f"SELECT {MEMORY_COLUMNS} FROM memories"
            params: list[Any] = []
            if user_id is not None:
                query += " WHERE user_id = ?"
                params.append(user_id)
            query += " ORDER BY updated_at DESC, id"
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            return _rows_to_dicts(cur, cur.execute(query, params).fetchall())

        return [_memory_from_row(row) for row in await self._run("list_memories", select)]

    async def list_unindexed_memories(self) -> list[MemoryRecord]:
        """Memories whose vector point was never written (or failed to refresh)."""

        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"SELECT {MEMORY_COLUMNS} FROM memories WHERE vector_id IS NULL ORDER BY created_at"
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        return [_memory_from_row(row) for row in await self._run("list_unindexed_memories", select)]

    async def list_memory_ids(self) -> list[str]:
        def select(cur: duckdb.DuckDBPyConnection) -> list[str]:
            return [row[0] for row in cur.execute("SELECT id FROM memories").fetchall()]

        return await self._run("list_memory_ids", select)

    async def update_memory(
        self,
        memory_id: str,
        content: str,
        memory_type: str | None = None,
    ) -> MemoryRecord | None:
        """Replace content (and type if given). ``vector_id`` is left as is.

        Returns:
            The updated record, or None when no row has this id
        """
        now = to_db(utcnow())

        def update(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"""
                UPDATE memories
                SET content = ?, type = COALESCE(?, type), updated_at = ?
                WHERE id = ?
                RETURNING {MEMORY_COLUMNS}
                """,
                [content, memory_type, now, memory_id],
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        rows = await self._run("update_memory", update)
        return _memory_from_row(rows[0]) if rows else None

    async def set_memory_vector_id(self, memory_id: str, vector_id: str | None) -> MemoryRecord | None:
        def update(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"UPDATE memories SET vector_id = ? WHERE id = ? RETURNING {MEMORY_COLUMNS}",
                [vector_id, memory_id],
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        rows = await self._run("set_memory_vector_id", update)
        return _memory_from_row(rows[0]) if rows else None

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory row. Returns False when no row had this id."""

        def delete(cur: duckdb.DuckDBPyConnection) -> bool:
            rows = cur.execute("DELETE FROM memories WHERE id = ? RETURNING id", [memory_id]).fetchall()
            return bool(rows)

        return await self._run("delete_memory", delete)

    # ========== Calendar events ==========

    async def insert_event(self, data: CalendarEventCreate, user_id: str) -> CalendarEvent:
        """Insert a locally created event (unsynced)."""
        now = to_db(utcnow())
        event = CalendarEvent(
            id=generate_id(),
            title=data.title,
            start=data.start,
            end=data.end,
            description=data.description,
            location=data.location,
            is_all_day=data.is_all_day,
            user_id=user_id,
            synced=False,
        )

        def insert(cur: duckdb.DuckDBPyConnection) -> None:
            cur.execute(
                f"INSERT INTO calendar_events ({EVENT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, FALSE, FALSE, ?, ?)",
                [
                    event.id, event.title, to_db(event.start), to_db(event.end),
                    event.description, event.location, event.is_all_day, user_id,
                    now, now,
                ],
            )

        await self._run("insert_event", insert)
        return event

    async def insert_pulled_event(self, remote: ProviderEvent, user_id: str) -> tuple[CalendarEvent, bool]:
        """Mirror a provider event locally under a fresh local id.

        Returns:
            (row, created). When a row for (external_event_id, user_id) already
            exists, nothing is inserted and the existing row is returned with
            created=False.
        """
        now = to_db(utcnow())
        new_id = generate_id()

        def upsert(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            try:
                cur.execute(
                    f"INSERT INTO calendar_events ({EVENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, TRUE, FALSE, ?, ?) "
                    "ON CONFLICT (external_event_id, user_id) DO NOTHING",
                    [
                        new_id, remote.title, to_db(remote.start), to_db(remote.end),
                        remote.description, remote.location, remote.is_all_day, user_id,
                        remote.external_event_id, remote.external_calendar_id,
                        now, now,
                    ],
                )
            except (duckdb.ConstraintException, duckdb.TransactionException) as e:
                # A concurrent pull committed the same row first; read theirs below
                logger.debug(f"Concurrent insert of {remote.external_event_id}: {e}")
            rows = cur.execute(
                f"SELECT {EVENT_COLUMNS} FROM calendar_events "
                "WHERE external_event_id = ? AND user_id = ?",
                [remote.external_event_id, user_id],
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        rows = await self._run("insert_pulled_event", upsert)
        if not rows:
            raise RelationalStoreError(
                f"Pulled event {remote.external_event_id} missing after insert"
            )
        event = _event_from_row(rows[0])
        return event, event.id == new_id

    async def get_event(self, event_id: str) -> CalendarEvent | None:
        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"SELECT {EVENT_COLUMNS} FROM calendar_events WHERE id = ?", [event_id]
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        rows = await self._run("get_event", select)
        return _event_from_row(rows[0]) if rows else None

    async def find_events_in_range(self, user_id: str, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Events of ``user_id`` overlapping [start, end], ordered by start.

        Overlap is three-way: starts in range, ends in range, or spans the range.
        """
        start_db, end_db = to_db(start), to_db(end)

        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"""
                SELECT {EVENT_COLUMNS} FROM calendar_events
                WHERE user_id = ?
                  AND (
                    (start_at >= ? AND start_at <= ?)
                    OR (end_at >= ? AND end_at <= ?)
                    OR (start_at <= ? AND end_at >= ?)
                  )
                ORDER BY start_at ASC, id
                """,
                [user_id, start_db, end_db, start_db, end_db, start_db, end_db],
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        return [_event_from_row(row) for row in await self._run("find_events_in_range", select)]

    async def find_events_by_external_ids(self, user_id: str, external_ids: Sequence[str]) -> list[CalendarEvent]:
        ids = list(dict.fromkeys(external_ids))
        if not ids:
            return []

        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            placeholders = ", ".join("?" for _ in ids)
            rows = cur.execute(
                f"SELECT {EVENT_COLUMNS} FROM calendar_events "
                f"WHERE user_id = ? AND external_event_id IN ({placeholders})",
                [user_id, *ids],
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        return [_event_from_row(row) for row in await self._run("find_events_by_external_ids", select)]

    async def list_events(self, user_id: str | None = None) -> list[CalendarEvent]:
        def select(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            query = f"SELECT {EVENT_COLUMNS} FROM calendar_events"
            params: list[Any] = []
            if user_id is not None:
                query += " WHERE user_id = ?"
                params.append(user_id)
            query += " ORDER BY start_at ASC, id"
            return _rows_to_dicts(cur, cur.execute(query, params).fetchall())

        return [_event_from_row(row) for row in await self._run("list_events", select)]

    async def list_event_ids(self) -> list[str]:
        def select(cur: duckdb.DuckDBPyConnection) -> list[str]:
            return [row[0] for row in cur.execute("SELECT id FROM calendar_events").fetchall()]

        return await self._run("list_event_ids", select)

    async def update_event(self, event_id: str, changes: dict[str, Any]) -> CalendarEvent | None:
        """Apply field changes to an event.

        Args:
            event_id: Local event id
            changes: Mapping of CalendarEvent field names to new values

        Returns:
            The updated event, or None when no row has this id
        """
        unknown = set(changes) - set(EVENT_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")

        assignments = []
        params: list[Any] = []
        for field_name, value in changes.items():
            if field_name in ("start", "end") and value is not None:
                value = to_db(value)
            assignments.append(f"{EVENT_UPDATABLE_FIELDS[field_name]} = ?")
            params.append(value)
        assignments.append("updated_at = ?")
        params.append(to_db(utcnow()))
        params.append(event_id)

        def update(cur: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            rows = cur.execute(
                f"UPDATE calendar_events SET {', '.join(assignments)} "
                f"WHERE id = ? RETURNING {EVENT_COLUMNS}",
                params,
            ).fetchall()
            return _rows_to_dicts(cur, rows)

        rows = await self._run("update_event", update)
        return _event_from_row(rows[0]) if rows else None

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event row. Returns False when no row had this id."""

        def delete(cur: duckdb.DuckDBPyConnection) -> bool:
            rows = cur.execute(
                "DELETE FROM calendar_events WHERE id = ? RETURNING id", [event_id]
            ).fetchall()
            return bool(rows)

        return await self._run("delete_event", delete)
