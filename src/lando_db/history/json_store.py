from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from lando_db.errors import HistoryWriteError
from lando_db.history.base import DEFAULT_CAPACITY
from lando_db.history.memory import InMemoryHistoryStore
from lando_db.history.serialization import dump_entries, load_entries
from lando_db.models.domain import HistoryEntry

logger = structlog.get_logger()


def _write_atomic(path: Path, payload: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp.write_text(payload, encoding="utf-8")
    os.replace(tmp, path)


class JsonFileHistoryStore(InMemoryHistoryStore):
    """History kept in memory and rewritten to a JSON file on every mutation."""

    def __init__(self, path: str | Path, capacity: int = DEFAULT_CAPACITY) -> None:
        super().__init__(capacity=capacity)
        self._path = Path(path)

    async def load(self) -> None:
        if not self._path.exists():
            logger.info("history_file_missing", path=str(self._path))
            return
        payload = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        if not payload.strip():
            return
        entries = load_entries(payload)
        async with self._lock:
            self._seed(entries)
        logger.info("history_loaded", path=str(self._path), entry_count=len(self._entries))

    async def _persist(self, entries: list[HistoryEntry]) -> None:
        payload = dump_entries(reversed(entries))
        try:
            await asyncio.to_thread(_write_atomic, self._path, payload)
        except OSError as e:
            logger.error("history_write_failed", path=str(self._path), error=str(e))
            raise HistoryWriteError(f"Could not write history to {self._path}: {e}") from e
