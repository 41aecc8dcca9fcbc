from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import aiosqlite
import structlog

from lando_db.errors import HistoryWriteError
from lando_db.history.base import DEFAULT_CAPACITY, matches
from lando_db.models.domain import HistoryEntry

logger = structlog.get_logger()

_CREATE_HISTORY_ENTRIES = """
CREATE TABLE IF NOT EXISTS history_entries (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    service_id TEXT NOT NULL,
    query TEXT NOT NULL,
    executed_at TEXT NOT NULL,
    succeeded INTEGER NOT NULL
)
"""

_CREATE_IDX_SERVICE = """
CREATE INDEX IF NOT EXISTS idx_history_service ON history_entries(service_id)
"""

_COLUMNS = "id, service_id, query, executed_at, succeeded"


def _entry_to_row(entry: HistoryEntry) -> dict:
    return {
        "id": entry.id,
        "service_id": entry.service_id,
        "query": entry.query,
        "executed_at": entry.executed_at.isoformat(),
        "succeeded": int(entry.succeeded),
    }


def _row_to_entry(row: aiosqlite.Row) -> HistoryEntry:
    return HistoryEntry(
        id=row[0],
        service_id=row[1],
        query=row[2],
        executed_at=datetime.fromisoformat(row[3]),
        succeeded=bool(row[4]),
    )


class SQLiteHistoryStore:
    """Persistent history backed by SQLite via aiosqlite.

    Insertion order is the autoincrement ``seq`` column, not ``executed_at``,
    so entries recorded within the same clock tick keep their order.
    """

    def __init__(self, db_path: str, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init_db(self) -> None:
        self._db = await aiosqlite.connect(self._db_path)
        await self._db.execute(_CREATE_HISTORY_ENTRIES)
        await self._db.execute(_CREATE_IDX_SERVICE)
        # Trim in case the capacity was lowered since the file was written.
        await self._trim()
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def record(self, service_id: str, query: str, succeeded: bool) -> HistoryEntry:
        entry = HistoryEntry(service_id=service_id, query=query, succeeded=succeeded)
        async with self._write() as db:
            await db.execute(
                f"""INSERT INTO history_entries ({_COLUMNS})
                VALUES (:id, :service_id, :query, :executed_at, :succeeded)""",
                _entry_to_row(entry),
            )
            await self._trim()
        return entry

    async def search(
        self, text: str = "", service_id: str | None = None
    ) -> AsyncIterator[HistoryEntry]:
        assert self._db is not None
        needle = text.casefold()
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM history_entries ORDER BY seq DESC"
        )
        rows = await cursor.fetchall()
        for row in rows:
            entry = _row_to_entry(row)
            if matches(entry, needle, service_id):
                yield entry

    async def remove(self, entry_id: str) -> bool:
        async with self._write() as db:
            cursor = await db.execute(
                "DELETE FROM history_entries WHERE id = ?", (entry_id,)
            )
        return cursor.rowcount > 0

    async def get(self, entry_id: str) -> HistoryEntry:
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM history_entries WHERE id = ?", (entry_id,)
        )
        row = await cursor.fetchone()
        if not row:
            raise KeyError(f"History entry {entry_id} not found")
        return _row_to_entry(row)

    async def list(self, limit: int = 50, offset: int = 0) -> list[HistoryEntry]:
        assert self._db is not None
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM history_entries ORDER BY seq DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    async def count(self) -> int:
        assert self._db is not None
        cursor = await self._db.execute("SELECT COUNT(*) FROM history_entries")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def clear(self) -> None:
        async with self._write() as db:
            await db.execute("DELETE FROM history_entries")

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialize a write, commit it, or roll it back and raise HistoryWriteError."""
        assert self._db is not None
        async with self._lock:
            try:
                yield self._db
                await self._db.commit()
            except aiosqlite.Error as e:
                await self._db.rollback()
                logger.error("history_write_failed", db_path=self._db_path, error=str(e))
                raise HistoryWriteError(f"Could not write history to {self._db_path}: {e}") from e

    async def _trim(self) -> None:
        assert self._db is not None
        await self._db.execute(
            """DELETE FROM history_entries WHERE seq NOT IN (
                SELECT seq FROM history_entries ORDER BY seq DESC LIMIT ?
            )""",
            (self.capacity,),
        )
