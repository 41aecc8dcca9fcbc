from __future__ import annotations

import pytest

from lando_db.config import HistoryStorage, Settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HISTORY_STORAGE", raising=False)
    monkeypatch.delenv("DEFAULT_PAGE_SIZE", raising=False)
    settings = Settings()
    assert settings.lando_bin == "lando"
    assert settings.db_user == "root"
    assert settings.query_timeout_seconds == 30.0
    assert settings.history_capacity == 50
    assert settings.history_storage == HistoryStorage.MEMORY
    assert settings.default_page_size == 50


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LANDO_BIN", "/usr/local/bin/lando")
    monkeypatch.setenv("LANDO_PROJECT_PATH", "/srv/myapp")
    monkeypatch.setenv("QUERY_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("HISTORY_STORAGE", "sqlite")
    monkeypatch.setenv("HISTORY_PATH", "/tmp/history.db")
    monkeypatch.setenv("HISTORY_CAPACITY", "20")
    settings = Settings()
    assert settings.lando_bin == "/usr/local/bin/lando"
    assert settings.lando_project_path == "/srv/myapp"
    assert settings.query_timeout_seconds == 5.0
    assert settings.history_storage == HistoryStorage.SQLITE
    assert settings.history_path == "/tmp/history.db"
    assert settings.history_capacity == 20


def test_history_storage_case_insensitive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HISTORY_STORAGE", "JSON")
    settings = Settings()
    assert settings.history_storage == HistoryStorage.JSON


def test_invalid_history_storage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HISTORY_STORAGE", "redis")
    with pytest.raises(ValueError):
        Settings()
