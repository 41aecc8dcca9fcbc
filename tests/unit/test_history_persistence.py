from __future__ import annotations

import json

import pytest

from lando_db.config import HistoryStorage, Settings
from lando_db.errors import HistoryWriteError
from lando_db.history.factory import create_history_store
from lando_db.history.json_store import JsonFileHistoryStore
from lando_db.history.memory import InMemoryHistoryStore
from lando_db.history.serialization import dump_entries, load_entries
from lando_db.history.sqlite_store import SQLiteHistoryStore
from lando_db.models.domain import HistoryEntry


@pytest.fixture
async def sqlite_history(tmp_path) -> SQLiteHistoryStore:
    store = SQLiteHistoryStore(str(tmp_path / "history.db"))
    await store.init_db()
    yield store
    await store.close()


def test_dump_writes_most_recent_last() -> None:
    newest = HistoryEntry(service_id="database", query="new", succeeded=True)
    oldest = HistoryEntry(service_id="database", query="old", succeeded=False)

    payload = dump_entries([newest, oldest])
    data = json.loads(payload)
    assert [item["query"] for item in data] == ["old", "new"]
    assert set(data[0]) == {"id", "service_id", "query", "executed_at", "succeeded"}

    assert [e.query for e in load_entries(payload)] == ["new", "old"]


@pytest.mark.parametrize("payload", ["not json", '{"query": "x"}', '[{"query": 1}]'])
def test_load_rejects_invalid_files(payload: str) -> None:
    with pytest.raises(ValueError, match="Invalid history file"):
        load_entries(payload)


@pytest.mark.asyncio
async def test_json_store_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "history.json"
    store = JsonFileHistoryStore(path)
    await store.load()
    await store.record("database", "SELECT 1", succeeded=True)
    await store.record("pg", "SELECT 2", succeeded=False)
    assert path.exists()

    reopened = JsonFileHistoryStore(path)
    await reopened.load()
    entries = await reopened.list()
    assert [e.query for e in entries] == ["SELECT 2", "SELECT 1"]
    assert entries[0].succeeded is False


@pytest.mark.asyncio
async def test_json_store_missing_or_empty_file(tmp_path) -> None:
    store = JsonFileHistoryStore(tmp_path / "missing.json")
    await store.load()
    assert await store.count() == 0

    empty = tmp_path / "empty.json"
    empty.write_text("")
    store = JsonFileHistoryStore(empty)
    await store.load()
    assert await store.count() == 0


@pytest.mark.asyncio
async def test_json_store_load_keeps_newest_within_capacity(tmp_path) -> None:
    path = tmp_path / "history.json"
    writer = JsonFileHistoryStore(path, capacity=5)
    for i in range(5):
        await writer.record("database", f"Q{i}", succeeded=True)

    reader = JsonFileHistoryStore(path, capacity=2)
    await reader.load()
    assert [e.query for e in await reader.list()] == ["Q4", "Q3"]


@pytest.mark.asyncio
async def test_json_store_remove_and_clear_rewrite_file(tmp_path) -> None:
    path = tmp_path / "history.json"
    store = JsonFileHistoryStore(path)
    entry = await store.record("database", "SELECT 1", succeeded=True)
    await store.record("database", "SELECT 2", succeeded=True)

    await store.remove(entry.id)
    assert [item["query"] for item in json.loads(path.read_text())] == ["SELECT 2"]

    await store.clear()
    assert json.loads(path.read_text()) == []


@pytest.mark.asyncio
async def test_json_store_failed_write_leaves_memory_and_file_unchanged(tmp_path) -> None:
    path = tmp_path / "history.json"
    store = JsonFileHistoryStore(path, capacity=2)
    first = await store.record("database", "SELECT 1", succeeded=True)
    await store.record("database", "SELECT 2", succeeded=True)
    # A directory where the temp file should go makes every write fail.
    (tmp_path / "history.json.tmp").mkdir()

    with pytest.raises(HistoryWriteError):
        await store.record("database", "SELECT 3", succeeded=True)
    with pytest.raises(HistoryWriteError):
        await store.remove(first.id)
    with pytest.raises(HistoryWriteError):
        await store.clear()

    assert [e.query for e in await store.list()] == ["SELECT 2", "SELECT 1"]
    reopened = JsonFileHistoryStore(path, capacity=2)
    await reopened.load()
    assert [e.id for e in await reopened.list()] == [e.id for e in await store.list()]


@pytest.mark.asyncio
async def test_json_store_rejects_corrupt_file(tmp_path) -> None:
    path = tmp_path / "history.json"
    path.write_text("{not json")
    store = JsonFileHistoryStore(path)
    with pytest.raises(ValueError):
        await store.load()


@pytest.mark.asyncio
async def test_sqlite_fifo_eviction(sqlite_history: SQLiteHistoryStore) -> None:
    for i in range(1, 52):
        await sqlite_history.record("database", f"Q{i}", succeeded=True)

    queries = [e.query async for e in sqlite_history.search()]
    assert len(queries) == 50
    assert queries[0] == "Q51"
    assert queries[-1] == "Q2"
    assert await sqlite_history.count() == 50


@pytest.mark.asyncio
async def test_sqlite_search_and_filter(sqlite_history: SQLiteHistoryStore) -> None:
    await sqlite_history.record("database", "SELECT * FROM users", succeeded=True)
    await sqlite_history.record("pg", "select * from Users", succeeded=False)
    await sqlite_history.record("pg", "SHOW TABLES", succeeded=True)

    hits = [e.query async for e in sqlite_history.search("USERS")]
    assert hits == ["select * from Users", "SELECT * FROM users"]

    pg_hits = [e.query async for e in sqlite_history.search("users", service_id="pg")]
    assert pg_hits == ["select * from Users"]


@pytest.mark.asyncio
async def test_sqlite_get_remove_clear(sqlite_history: SQLiteHistoryStore) -> None:
    entry = await sqlite_history.record("database", "SELECT 1", succeeded=False)
    retrieved = await sqlite_history.get(entry.id)
    assert retrieved.query == "SELECT 1"
    assert retrieved.succeeded is False
    assert retrieved.executed_at == entry.executed_at

    with pytest.raises(KeyError, match="not found"):
        await sqlite_history.get("nonexistent")

    assert await sqlite_history.remove(entry.id) is True
    assert await sqlite_history.remove(entry.id) is False

    await sqlite_history.record("database", "SELECT 2", succeeded=True)
    await sqlite_history.clear()
    assert await sqlite_history.count() == 0


@pytest.mark.asyncio
async def test_sqlite_failed_write_rolls_back(sqlite_history: SQLiteHistoryStore) -> None:
    kept = await sqlite_history.record("database", "SELECT 1", succeeded=True)
    db = sqlite_history._db
    await db.execute(
        "CREATE TRIGGER reject_writes BEFORE INSERT ON history_entries "
        "BEGIN SELECT RAISE(ABORT, 'history is read only'); END"
    )
    await db.execute(
        "CREATE TRIGGER reject_deletes BEFORE DELETE ON history_entries "
        "BEGIN SELECT RAISE(ABORT, 'history is read only'); END"
    )
    await db.commit()

    with pytest.raises(HistoryWriteError, match="read only"):
        await sqlite_history.record("database", "SELECT 2", succeeded=True)
    with pytest.raises(HistoryWriteError):
        await sqlite_history.remove(kept.id)

    assert [e.id for e in await sqlite_history.list()] == [kept.id]


@pytest.mark.asyncio
async def test_sqlite_reopen_and_lowered_capacity(tmp_path) -> None:
    db_path = str(tmp_path / "history.db")
    store = SQLiteHistoryStore(db_path)
    await store.init_db()
    for i in range(5):
        await store.record("database", f"Q{i}", succeeded=True)
    await store.close()

    reopened = SQLiteHistoryStore(db_path, capacity=3)
    await reopened.init_db()
    try:
        assert [e.query for e in await reopened.list()] == ["Q4", "Q3", "Q2"]
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_factory_selects_backend(tmp_path) -> None:
    memory = await create_history_store(Settings(history_storage=HistoryStorage.MEMORY))
    assert type(memory) is InMemoryHistoryStore

    json_store = await create_history_store(
        Settings(history_storage="json", history_path=str(tmp_path / "h.json"))
    )
    assert isinstance(json_store, JsonFileHistoryStore)

    sqlite_store = await create_history_store(
        Settings(
            history_storage=HistoryStorage.SQLITE,
            history_path=str(tmp_path / "h.db"),
            history_capacity=7,
        )
    )
    try:
        assert isinstance(sqlite_store, SQLiteHistoryStore)
        assert sqlite_store.capacity == 7
    finally:
        await sqlite_store.close()
