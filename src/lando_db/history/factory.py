from __future__ import annotations

from lando_db.config import HistoryStorage, Settings
from lando_db.history.base import HistoryStore
from lando_db.history.json_store import JsonFileHistoryStore
from lando_db.history.memory import InMemoryHistoryStore
from lando_db.history.sqlite_store import SQLiteHistoryStore


async def create_history_store(settings: Settings) -> HistoryStore:
    """Create and open the history store selected by ``history_storage``."""
    match settings.history_storage:
        case HistoryStorage.SQLITE:
            sqlite_store = SQLiteHistoryStore(
                settings.history_path, capacity=settings.history_capacity
            )
            await sqlite_store.init_db()
            return sqlite_store
        case HistoryStorage.JSON:
            json_store = JsonFileHistoryStore(
                settings.history_path, capacity=settings.history_capacity
            )
            await json_store.load()
            return json_store

    return InMemoryHistoryStore(capacity=settings.history_capacity)
