from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import structlog

from lando_db.errors import CommandFailed
from lando_db.lando.output import parse_tabular
from lando_db.lando.runner import QueryRunner

logger = structlog.get_logger()


class ResultSource(Protocol):
    """Where the paginator reads rows from."""

    @property
    def columns(self) -> Sequence[str]: ...

    async def total(self) -> int | None:
        """Total row count, or None when the backing command cannot tell."""
        ...

    async def fetch(self, offset: int, limit: int) -> list[dict[str, Any]]: ...


class StaticResultSource:
    """A result that is already fully materialized."""

    def __init__(
        self, rows: list[dict[str, Any]], columns: Sequence[str] | None = None
    ) -> None:
        self._rows = rows
        if columns is None:
            columns = list(rows[0].keys()) if rows else []
        self._columns = list(columns)

    @property
    def columns(self) -> Sequence[str]:
        return self._columns

    async def total(self) -> int | None:
        return len(self._rows)

    async def fetch(self, offset: int, limit: int) -> list[dict[str, Any]]:
        return self._rows[offset : offset + limit]


class CommandResultSource:
    """Re-runs a SELECT through the lando CLI with LIMIT/OFFSET per page. Total is unknown."""

    def __init__(
        self,
        runner: QueryRunner,
        service_id: str,
        base_query: str,
        timeout_seconds: float | None = None,
    ) -> None:
        self._runner = runner
        self._service_id = service_id
        self._base_query = base_query.strip().rstrip(";").strip()
        self._timeout = timeout_seconds
        self._columns: list[str] = []

    @property
    def columns(self) -> Sequence[str]:
        return self._columns

    @property
    def base_query(self) -> str:
        return self._base_query

    def page_query(self, offset: int, limit: int) -> str:
        return f"{self._base_query} LIMIT {int(limit)} OFFSET {int(offset)}"

    async def total(self) -> int | None:
        return None

    async def fetch(self, offset: int, limit: int) -> list[dict[str, Any]]:
        query = self.page_query(offset, limit)
        result = await self._runner.run_query(
            self._service_id, query, timeout=self._timeout
        )
        if not result.succeeded:
            raise CommandFailed(" ".join(result.command), result.exit_code, result.stderr)
        columns, rows = parse_tabular(result.stdout)
        if columns:
            self._columns = columns
        logger.debug(
            "command_page_fetched",
            service_id=self._service_id,
            offset=offset,
            row_count=len(rows),
        )
        return rows
