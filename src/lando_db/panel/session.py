from __future__ import annotations

import asyncio
import re
import time
from collections import defaultdict
from collections.abc import Mapping

import structlog

from lando_db.errors import CommandFailed, HistoryWriteError, TimedOut
from lando_db.history.base import HistoryStore
from lando_db.lando.output import extract_rows_affected, parse_table_names, parse_tabular
from lando_db.lando.runner import CommandRunner
from lando_db.logging import bind_service, unbind_service
from lando_db.models.domain import (
    BackupResult,
    CommandResult,
    HistoryEntry,
    QueryOutcome,
    ServiceDescriptor,
    ServiceKind,
)
from lando_db.observability.metrics import PanelMetrics
from lando_db.pagination.sources import CommandResultSource
from lando_db.registry.service_registry import ServiceRegistry

logger = structlog.get_logger()

TABLE_LISTING_QUERIES: dict[ServiceKind, str] = {
    ServiceKind.MYSQL: "SHOW TABLES",
    ServiceKind.POSTGRES: "SELECT tablename FROM pg_tables WHERE schemaname = 'public'",
    ServiceKind.SQLITE: "SELECT name FROM sqlite_master WHERE type='table'",
}

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)?$")


def validate_identifier(name: str) -> bool:
    """Check that a table name (optionally schema-qualified) is safe to interpolate."""
    return bool(_SAFE_IDENTIFIER_RE.match(name))


class PanelSession:
    """Owns the registry, history and runner for one application lifetime.

    One command runs at a time per service; different services proceed
    independently.
    """

    def __init__(
        self,
        runner: CommandRunner,
        history: HistoryStore,
        registry: ServiceRegistry | None = None,
        metrics: PanelMetrics | None = None,
        default_timeout: float | None = None,
    ) -> None:
        self._runner = runner
        self._history = history
        self._registry = registry or ServiceRegistry()
        self._metrics = metrics or PanelMetrics()
        self._default_timeout = default_timeout
        self._service_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    @property
    def metrics(self) -> PanelMetrics:
        return self._metrics

    async def refresh_services(self) -> list[ServiceDescriptor]:
        raw = await self._runner.discover_services()
        return await self._registry.refresh(raw)

    async def execute_query(
        self, service_id: str, query: str, timeout: float | None = None
    ) -> QueryOutcome:
        """Run ``query`` against a service and record it in history.

        The entry is recorded whatever the outcome; CommandFailed and TimedOut
        are raised after recording so the query can be re-run from history.
        If history cannot be written the outcome is still returned, with
        ``recorded`` set to False.
        """
        query = query.strip()
        if not query:
            raise ValueError("Query is empty")
        self._registry.get(service_id)
        timeout = timeout if timeout is not None else self._default_timeout

        await self._metrics.increment("queries_total", service_id=service_id)
        bind_service(service_id)
        try:
            async with self._service_locks[service_id]:
                started = time.monotonic()
                try:
                    result = await self._runner.run_query(service_id, query, timeout=timeout)
                except TimedOut:
                    await self._record(service_id, query, succeeded=False)
                    await self._metrics.increment("queries_timed_out", service_id=service_id)
                    raise
                elapsed_ms = round((time.monotonic() - started) * 1000, 1)

            entry, recorded = await self._record(service_id, query, succeeded=result.succeeded)
            if not result.succeeded:
                await self._metrics.increment("queries_failed", service_id=service_id)
                logger.warning("query_failed", exit_code=result.exit_code, entry_id=entry.id)
                raise CommandFailed(" ".join(result.command), result.exit_code, result.stderr)

            await self._metrics.increment("queries_succeeded", service_id=service_id)
            await self._metrics.observe_query(service_id, elapsed_ms)
            columns, rows = parse_tabular(result.stdout)
            logger.info("query_executed", row_count=len(rows), elapsed_ms=elapsed_ms)
            return QueryOutcome(
                entry=entry,
                columns=columns,
                rows=rows,
                rows_affected=extract_rows_affected(result.stdout),
                elapsed_ms=elapsed_ms,
                output=result.stdout,
                recorded=recorded,
            )
        finally:
            unbind_service()

    async def _record(
        self, service_id: str, query: str, succeeded: bool
    ) -> tuple[HistoryEntry, bool]:
        """Record a finished statement; on HistoryWriteError return an unsaved entry."""
        try:
            return await self._history.record(service_id, query, succeeded=succeeded), True
        except HistoryWriteError as e:
            await self._metrics.increment("history_write_failures", service_id=service_id)
            logger.error("history_record_failed", error=str(e))
            return HistoryEntry(service_id=service_id, query=query, succeeded=succeeded), False

    async def rerun(self, entry_id: str, timeout: float | None = None) -> QueryOutcome:
        entry = await self._history.get(entry_id)
        return await self.execute_query(entry.service_id, entry.query, timeout=timeout)

    async def list_tables(self, service_id: str) -> list[str]:
        service = self._registry.get(service_id)
        listing = TABLE_LISTING_QUERIES.get(service.kind)
        if listing is None:
            raise ValueError(f"Table listing is not supported for {service.kind.value} services")
        async with self._service_locks[service_id]:
            result = await self._runner.run_query(
                service_id, listing, timeout=self._default_timeout
            )
        if not result.succeeded:
            raise CommandFailed(" ".join(result.command), result.exit_code, result.stderr)
        return parse_table_names(result.stdout)

    def table_source(
        self, service_id: str, table: str, where: str | None = None
    ) -> CommandResultSource:
        """A paginated view over ``SELECT * FROM table``, one lando call per page."""
        service = self._registry.get(service_id)
        if service.kind not in TABLE_LISTING_QUERIES:
            raise ValueError(f"Table browsing is not supported for {service.kind.value} services")
        if not validate_identifier(table):
            raise ValueError(f"Invalid table name: {table}")
        query = f"SELECT * FROM {table}"
        if where and where.strip():
            query += f" WHERE {where.strip()}"
        return CommandResultSource(
            _SerializedRunner(self._runner, self._service_locks[service_id]),
            service_id,
            query,
            timeout_seconds=self._default_timeout,
        )

    async def backup(self, service_id: str) -> BackupResult:
        self._registry.get(service_id)
        async with self._service_locks[service_id]:
            result = await self._runner.export_backup(service_id)
        if result.exit_code != 0:
            raise CommandFailed("db-export", result.exit_code, result.stderr)
        logger.info("backup_exported", service_id=service_id, file_path=result.file_path)
        return result

    async def update_credentials(
        self, service_id: str, pairs: Mapping[str, str]
    ) -> CommandResult:
        self._registry.get(service_id)
        result = await self._runner.update_credentials(service_id, pairs)
        if not result.succeeded:
            raise CommandFailed("config", result.exit_code, result.stderr)
        return result

    async def test_connection(self, service_id: str) -> bool:
        service = self._registry.get(service_id)
        async with self._service_locks[service_id]:
            return await self._runner.test_connection(
                service_id, service.kind, timeout=self._default_timeout
            )

    async def close(self) -> None:
        await self._history.close()


class _SerializedRunner:
    """Routes page fetches through the per-service lock."""

    def __init__(self, runner: CommandRunner, lock: asyncio.Lock) -> None:
        self._runner = runner
        self._lock = lock

    async def run_query(
        self, service_id: str, query: str, timeout: float | None = None
    ) -> CommandResult:
        async with self._lock:
            return await self._runner.run_query(service_id, query, timeout=timeout)
