from __future__ import annotations

import asyncio
import re
from collections.abc import Mapping
from typing import Any
from unittest.mock import patch

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from lando_db.errors import TimedOut
from lando_db.lando.runner import CONNECTION_CHECKS
from lando_db.models.domain import BackupResult, CommandResult, LandoApp, ServiceKind

SAMPLE_SERVICES: list[dict[str, Any]] = [
    {
        "service": "appserver",
        "type": "php",
        "version": "8.1",
        "urls": ["https://myapp.lndo.site/"],
    },
    {
        "service": "database",
        "type": "mysql",
        "version": "8.0",
        "internal_connection": {"host": "database", "port": "3306"},
        "external_connection": {"host": "127.0.0.1", "port": "32768"},
        "creds": {"user": "lamp", "password": "lamp", "database": "lamp"},
    },
    {
        "service": "pg",
        "type": "postgres",
        "version": "14",
        "internal_connection": {"host": "pg", "port": "5432"},
        "creds": {"user": "postgres", "database": "app"},
    },
    {"service": "cache", "type": "redis", "version": "7"},
]

USERS_OUTPUT = "id\tname\n1\tAlice\n2\tBob\n"

_PAGE_RE = re.compile(r"^SELECT \* FROM (\w+)(?: WHERE .+)? LIMIT (\d+) OFFSET (\d+)$")


def tab_output(columns: list[str], rows: list[list[Any]]) -> str:
    lines = ["\t".join(columns)]
    lines += ["\t".join("NULL" if v is None else str(v) for v in row) for row in rows]
    return "\n".join(lines) + "\n"


class FakeLandoRunner:
    """In-memory stand-in for LandoCommandRunner.

    ``responses`` maps exact query text to a CommandResult; ``tables`` maps a
    table name to its rows and answers the paginated SELECTs the panel issues.
    """

    def __init__(self, services: list[Any] | None = None) -> None:
        self.services = SAMPLE_SERVICES if services is None else services
        self.responses: dict[str, CommandResult] = {}
        self.tables: dict[str, list[list[Any]]] = {}
        self.table_columns: dict[str, list[str]] = {}
        self.default_result = CommandResult(
            command=["lando", "db-cli"], stdout=USERS_OUTPUT
        )
        self.queries: list[tuple[str, str]] = []
        self.delay: float = 0.0
        self.timeout_on: set[str] = set()
        self.credential_updates: list[tuple[str, dict[str, str]]] = []
        self.backup_result: BackupResult | None = None
        self.alive = True
        self.connection_checks: list[tuple[str, ServiceKind]] = []

    async def run_query(
        self, service_id: str, query: str, timeout: float | None = None
    ) -> CommandResult:
        self.queries.append((service_id, query))
        if self.delay:
            await asyncio.sleep(self.delay)
        if query in self.timeout_on:
            raise TimedOut("db-cli", timeout or 1.0)
        if query in self.responses:
            return self.responses[query]
        match = _PAGE_RE.match(query)
        if match and match.group(1) in self.tables:
            name, limit, offset = match.group(1), int(match.group(2)), int(match.group(3))
            rows = self.tables[name][offset : offset + limit]
            return CommandResult(
                command=["lando", "db-cli"],
                stdout=tab_output(self.table_columns[name], rows) if rows else "",
            )
        return self.default_result

    async def export_backup(self, service_id: str) -> BackupResult:
        if self.backup_result is not None:
            return self.backup_result
        return BackupResult(service_id=service_id, file_path=f"{service_id}.sql.gz")

    async def update_credentials(
        self, service_id: str, pairs: Mapping[str, str]
    ) -> CommandResult:
        if not pairs:
            raise ValueError("No credentials to update")
        self.credential_updates.append((service_id, dict(pairs)))
        return CommandResult(command=["lando", "config"])

    async def discover_services(self) -> list[Any]:
        return self.services

    async def test_connection(
        self, service_id: str, kind: ServiceKind, timeout: float | None = None
    ) -> bool:
        if kind not in CONNECTION_CHECKS:
            raise ValueError(f"Connection test is not supported for {kind.value} services")
        self.connection_checks.append((service_id, kind))
        return self.alive

    async def list_apps(self) -> list[LandoApp]:
        return [LandoApp(name="myapp", location="/srv/myapp", running=True)]


def failed_result(stderr: str, exit_code: int = 1) -> CommandResult:
    return CommandResult(command=["lando", "db-cli"], stderr=stderr, exit_code=exit_code)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for testing."""
    monkeypatch.setenv("HISTORY_STORAGE", "memory")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("LANDO_BIN", "lando")
    monkeypatch.setenv("DEFAULT_PAGE_SIZE", "50")


@pytest.fixture
def fake_runner() -> FakeLandoRunner:
    return FakeLandoRunner()


@pytest.fixture
async def app(fake_runner: FakeLandoRunner):
    """Create a test FastAPI app whose lando calls go to the fake runner."""
    with patch("lando_db.app.create_runner", return_value=fake_runner):
        from lando_db.app import create_app

        test_app = create_app()
        yield test_app


@pytest.fixture
async def client(app) -> AsyncClient:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with LifespanManager(app):
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
