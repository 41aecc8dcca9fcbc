from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable

import structlog

from lando_db.history.base import DEFAULT_CAPACITY, matches
from lando_db.models.domain import HistoryEntry

logger = structlog.get_logger()


class InMemoryHistoryStore:
    """FIFO-bounded query history held in process memory.

    Every mutation builds the new entry list, hands it to ``_persist`` and
    only then swaps it in, so a failed write leaves the store unchanged.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        # Oldest first; the tail is the most recent entry.
        self._entries: list[HistoryEntry] = []
        self._lock = asyncio.Lock()

    async def record(self, service_id: str, query: str, succeeded: bool) -> HistoryEntry:
        entry = HistoryEntry(service_id=service_id, query=query, succeeded=succeeded)
        async with self._lock:
            entries = [*self._entries, entry]
            overflow = max(len(entries) - self.capacity, 0)
            evicted, entries = entries[:overflow], entries[overflow:]
            await self._commit(entries)
        if evicted:
            logger.debug("history_evicted", evicted_ids=[e.id for e in evicted])
        return entry

    async def search(
        self, text: str = "", service_id: str | None = None
    ) -> AsyncIterator[HistoryEntry]:
        needle = text.casefold()
        # Iterate a snapshot so concurrent record() calls do not shift the view.
        for entry in reversed(list(self._entries)):
            if matches(entry, needle, service_id):
                yield entry

    async def remove(self, entry_id: str) -> bool:
        async with self._lock:
            entries = [e for e in self._entries if e.id != entry_id]
            if len(entries) == len(self._entries):
                return False
            await self._commit(entries)
        return True

    async def get(self, entry_id: str) -> HistoryEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(f"History entry {entry_id} not found")

    async def list(self, limit: int = 50, offset: int = 0) -> list[HistoryEntry]:
        newest_first = list(reversed(self._entries))
        return newest_first[offset : offset + limit]

    async def count(self) -> int:
        return len(self._entries)

    async def clear(self) -> None:
        async with self._lock:
            await self._commit([])

    async def close(self) -> None:
        return None

    async def _commit(self, entries: list[HistoryEntry]) -> None:
        """Persist ``entries`` and make them current. Called with the lock held."""
        await self._persist(entries)
        self._entries = entries

    def _seed(self, newest_first: Iterable[HistoryEntry]) -> None:
        """Replace contents with previously saved entries, keeping the newest."""
        oldest_first = list(reversed(list(newest_first)))
        self._entries = oldest_first[-self.capacity :]

    async def _persist(self, entries: list[HistoryEntry]) -> None:
        """Hook for durable subclasses; ``entries`` is oldest first."""
        return None
