from __future__ import annotations

from enum import Enum

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class HistoryStorage(str, Enum):
    MEMORY = "memory"
    JSON = "json"
    SQLITE = "sqlite"


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Lando
    lando_bin: str = "lando"
    lando_project_path: str = "."
    db_user: str = "root"
    query_timeout_seconds: float = 30.0

    # History
    history_capacity: int = 50
    history_storage: HistoryStorage = HistoryStorage.MEMORY
    history_path: str = "./history.json"

    # Pagination
    default_page_size: int = 50

    # App
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    log_level: str = "INFO"

    @field_validator("history_storage", mode="before")
    @classmethod
    def normalize_storage(cls, v: str) -> str:
        if isinstance(v, str):
            return v.lower()
        return v


def get_settings() -> Settings:
    return Settings()
