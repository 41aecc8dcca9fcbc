from __future__ import annotations

from pydantic import BaseModel, Field

from lando_db.pagination.paginator import MAX_PAGE_SIZE


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=100_000, description="SQL to run via db-cli")
    page: int = Field(default=0, ge=0)
    page_size: int | None = Field(default=None, description=f"Rows per page (10-{MAX_PAGE_SIZE})")
    timeout_seconds: float | None = Field(default=None, gt=0)


class CredentialsRequest(BaseModel):
    user: str | None = None
    password: str | None = None
    database: str | None = None

    def pairs(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class RerunRequest(BaseModel):
    timeout_seconds: float | None = Field(default=None, gt=0)
