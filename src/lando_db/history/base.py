from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from lando_db.models.domain import HistoryEntry

DEFAULT_CAPACITY = 50


class HistoryStore(Protocol):
    """Protocol for the bounded query history.

    Entries are kept in insertion order; once ``capacity`` is reached the
    oldest entry is evicted on the next ``record``. Re-running a query appends
    a new entry, it never refreshes an old one.
    """

    capacity: int

    async def record(self, service_id: str, query: str, succeeded: bool) -> HistoryEntry: ...

    def search(
        self, text: str = "", service_id: str | None = None
    ) -> AsyncIterator[HistoryEntry]:
        """Most-recent-first entries whose query contains ``text`` (case-insensitive)."""
        ...

    async def remove(self, entry_id: str) -> bool: ...

    async def get(self, entry_id: str) -> HistoryEntry: ...

    async def list(self, limit: int = 50, offset: int = 0) -> list[HistoryEntry]: ...

    async def count(self) -> int: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...


def matches(entry: HistoryEntry, needle: str, service_id: str | None) -> bool:
    """Shared filter for ``search``; ``needle`` must already be casefolded."""
    if service_id is not None and entry.service_id != service_id:
        return False
    return needle in entry.query.casefold()
