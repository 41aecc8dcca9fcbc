from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceKind(str, Enum):
    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"
    MONGO = "mongo"
    REDIS = "redis"
    CASSANDRA = "cassandra"
    UNKNOWN = "unknown"


class ConnectionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = ""
    port: str = ""


class ServiceCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str | None = None
    password: SecretStr | None = None
    database: str | None = None


class ServiceDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: ServiceKind = ServiceKind.UNKNOWN
    image: str = ""
    version: str = ""
    urls: tuple[str, ...] = ()
    connection: ConnectionInfo | None = None
    external_connection: ConnectionInfo | None = None
    credentials: ServiceCredentials | None = None

    @property
    def is_database(self) -> bool:
        return self.kind != ServiceKind.UNKNOWN


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    service_id: str
    query: str
    executed_at: datetime = Field(default_factory=_utcnow)
    succeeded: bool = True


class ResultPage(BaseModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    page_index: int
    page_size: int
    total: int | None = None

    @property
    def has_more(self) -> bool:
        if self.total is None:
            return len(self.rows) == self.page_size
        return (self.page_index + 1) * self.page_size < self.total


class CommandResult(BaseModel):
    command: list[str] = Field(default_factory=list)
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class BackupResult(BaseModel):
    service_id: str
    file_path: str | None = None
    stderr: str = ""
    exit_code: int = 0


class QueryOutcome(BaseModel):
    entry: HistoryEntry
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    rows_affected: int | None = None
    elapsed_ms: float = 0.0
    output: str = ""
    recorded: bool = True


class LandoApp(BaseModel):
    name: str = ""
    location: str = ""
    urls: list[str] = Field(default_factory=list)
    running: bool = False
