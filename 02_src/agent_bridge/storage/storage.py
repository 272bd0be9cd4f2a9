"""SQLite store for orchestrator trace events."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import TraceEvent

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_SELECT_EVENTS = "SELECT id, event_type, actor, data, timestamp FROM trace_events"


def _to_db_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _row_to_event(row: Any) -> TraceEvent:
    event_id, event_type, actor, data, timestamp = row
    return TraceEvent(
        id=event_id,
        event_type=event_type,
        actor=actor,
        data=json.loads(data),
        timestamp=datetime.fromisoformat(timestamp).astimezone(timezone.utc),
    )


class IStorage(Protocol):
    """Trace event persistence used by the tracker and the trace API."""

    async def init(self) -> None: ...

    async def close(self) -> None: ...

    async def save_trace_event(self, event: TraceEvent) -> None: ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Newest first, filtered by time, type and actor."""
        ...


class Storage:
    """aiosqlite-backed trace store; ":memory:" keeps traces for the process only."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        await self._conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _connection(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def save_trace_event(self, event: TraceEvent) -> None:
        conn = self._connection()
        await conn.execute(
            "INSERT INTO trace_events (id, event_type, actor, data, timestamp)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, ensure_ascii=False, default=str),
                _to_db_timestamp(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Trace events, newest first."""
        conn = self._connection()

        conditions: list[str] = []
        params: list = []
        if after:
            conditions.append("timestamp > ?")
            params.append(_to_db_timestamp(after))
        if event_types:
            conditions.append(f"event_type IN ({','.join('?' * len(event_types))})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        query = _SELECT_EVENTS
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]
