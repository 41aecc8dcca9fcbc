from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from lando_db.models.domain import HistoryEntry, ResultPage, ServiceDescriptor


class ServiceResponse(BaseModel):
    name: str
    kind: str
    image: str = ""
    version: str = ""
    host: str = ""
    port: str = ""
    database: str | None = None
    user: str | None = None

    @classmethod
    def from_descriptor(cls, service: ServiceDescriptor) -> ServiceResponse:
        creds = service.credentials
        conn = service.connection
        return cls(
            name=service.name,
            kind=service.kind.value,
            image=service.image,
            version=service.version,
            host=conn.host if conn else "",
            port=conn.port if conn else "",
            database=creds.database if creds else None,
            user=creds.user if creds else None,
        )


class ServicesResponse(BaseModel):
    services: list[ServiceResponse]
    total: int


class PageResponse(BaseModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    page: int
    page_size: int
    total: int | None = None
    has_more: bool = False

    @classmethod
    def from_page(cls, page: ResultPage) -> PageResponse:
        return cls(
            rows=page.rows,
            columns=page.columns,
            page=page.page_index,
            page_size=page.page_size,
            total=page.total,
            has_more=page.has_more,
        )


class QueryResponse(BaseModel):
    history_id: str
    service_id: str
    query: str
    succeeded: bool
    rows_affected: int | None = None
    elapsed_ms: float = 0.0
    result: PageResponse
    output: str = ""
    recorded: bool = True


class TablesResponse(BaseModel):
    service_id: str
    tables: list[str]


class HistoryResponse(BaseModel):
    entries: list[HistoryEntry]
    total: int


class BackupResponse(BaseModel):
    service_id: str
    file_path: str | None = None


class MessageResponse(BaseModel):
    message: str
