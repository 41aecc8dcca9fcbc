from __future__ import annotations

import asyncio
import json
import re
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import TypeAdapter, ValidationError

from lando_db.config import Settings
from lando_db.errors import CommandFailed, DiscoveryError, TimedOut
from lando_db.models.domain import BackupResult, CommandResult, LandoApp, ServiceKind

logger = structlog.get_logger()

CREDENTIAL_KEYS = frozenset({"user", "password", "database"})
PROJECT_MARKER = ".lando.yml"

_APPS = TypeAdapter(list[LandoApp])
_DUMP_PATH_RE = re.compile(r"(?P<path>[^\s'\"]+\.sql(?:\.gz)?)")

# Command run inside the service container, and the text a healthy server prints.
CONNECTION_CHECKS: dict[ServiceKind, tuple[str, str]] = {
    ServiceKind.MYSQL: ("mysqladmin -u root ping", "alive"),
    ServiceKind.POSTGRES: ("pg_isready", "accepting connections"),
    ServiceKind.REDIS: ("redis-cli ping", "PONG"),
    ServiceKind.MONGO: ("mongosh --quiet --eval 'db.runCommand({ping: 1}).ok'", "1"),
}


class QueryRunner(Protocol):
    async def run_query(
        self, service_id: str, query: str, timeout: float | None = None
    ) -> CommandResult: ...


class CommandRunner(QueryRunner, Protocol):
    """The subset of the lando CLI the panel depends on."""

    async def export_backup(self, service_id: str) -> BackupResult: ...

    async def update_credentials(
        self, service_id: str, pairs: Mapping[str, str]
    ) -> CommandResult: ...

    async def discover_services(self) -> list[Any]: ...

    async def test_connection(
        self, service_id: str, kind: ServiceKind, timeout: float | None = None
    ) -> bool: ...

    async def list_apps(self) -> list[LandoApp]: ...


def parse_dump_path(stdout: str) -> str | None:
    """Pick the dump file name out of `lando db-export` output."""
    matches = _DUMP_PATH_RE.findall(stdout)
    return matches[-1] if matches else None


def scan_for_projects(root: str | Path, max_depth: int = 3) -> list[Path]:
    """Directories under ``root`` (at most ``max_depth`` levels deep) that hold a .lando.yml."""
    root = Path(root)
    found: list[Path] = []

    def walk(directory: Path, depth: int) -> None:
        if (directory / PROJECT_MARKER).is_file():
            found.append(directory)
        if depth >= max_depth:
            return
        try:
            children = sorted(p for p in directory.iterdir() if p.is_dir())
        except OSError:
            return
        for child in children:
            if not child.name.startswith("."):
                walk(child, depth + 1)

    walk(root, 0)
    return found


class LandoCommandRunner:
    """Runs lando subcommands in a project directory and captures their output.

    Nothing is retried: a failed or timed-out statement is reported back and
    the caller decides whether to run it again.
    """

    def __init__(
        self,
        project_path: str | Path = ".",
        binary: str = "lando",
        db_user: str | None = "root",
        default_timeout: float | None = None,
    ) -> None:
        self._project_path = Path(project_path)
        self._binary = binary
        self._db_user = db_user or None
        self._default_timeout = default_timeout

    @property
    def project_path(self) -> Path:
        return self._project_path

    async def run(self, args: list[str], timeout: float | None = None) -> CommandResult:
        """Run ``lando <args>``; raises TimedOut, never raises on non-zero exit."""
        argv = [self._binary, *args]
        command = " ".join(args[:1]) or self._binary
        timeout = timeout if timeout is not None else self._default_timeout
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self._project_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            logger.error("lando_not_found", binary=self._binary)
            return CommandResult(command=argv, stderr=str(e), exit_code=127)

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            logger.warning("lando_command_timed_out", command=command, timeout=timeout)
            raise TimedOut(command, timeout or 0.0) from None
        except asyncio.CancelledError:
            await self._terminate(proc)
            logger.info("lando_command_cancelled", command=command)
            raise

        result = CommandResult(
            command=argv,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else -1,
        )
        logger.info(
            "lando_command_finished",
            command=command,
            exit_code=result.exit_code,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return result

    async def run_checked(self, args: list[str], timeout: float | None = None) -> CommandResult:
        result = await self.run(args, timeout=timeout)
        if not result.succeeded:
            raise CommandFailed(" ".join(result.command), result.exit_code, result.stderr)
        return result

    async def run_query(
        self, service_id: str, query: str, timeout: float | None = None
    ) -> CommandResult:
        args = ["db-cli", "-s", service_id]
        if self._db_user:
            args += ["-u", self._db_user]
        args += ["-e", query]
        return await self.run(args, timeout=timeout)

    async def export_backup(self, service_id: str) -> BackupResult:
        result = await self.run(["db-export", "-s", service_id])
        return BackupResult(
            service_id=service_id,
            file_path=parse_dump_path(result.stdout) if result.succeeded else None,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )

    async def update_credentials(
        self, service_id: str, pairs: Mapping[str, str]
    ) -> CommandResult:
        unknown = set(pairs) - CREDENTIAL_KEYS
        if unknown:
            raise ValueError(f"Unsupported credential keys: {', '.join(sorted(unknown))}")
        if not pairs:
            raise ValueError("No credentials to update")
        args = ["config"]
        for key, value in pairs.items():
            args += ["--set", f"database.creds.{key}={value}"]
        logger.info("lando_update_credentials", service_id=service_id, keys=sorted(pairs))
        return await self.run(args)

    async def discover_services(self) -> list[Any]:
        result = await self.run_checked(["info", "--format", "json"])
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise DiscoveryError(f"lando info returned invalid JSON: {e}") from e

    async def list_apps(self) -> list[LandoApp]:
        result = await self.run_checked(["list", "--format", "json"])
        try:
            return _APPS.validate_json(result.stdout)
        except ValidationError as e:
            raise DiscoveryError(f"lando list returned unexpected JSON: {e}") from e

    async def test_connection(
        self, service_id: str, kind: ServiceKind, timeout: float | None = None
    ) -> bool:
        check = CONNECTION_CHECKS.get(kind)
        if check is None:
            raise ValueError(f"Connection test is not supported for {kind.value} services")
        command, healthy = check
        result = await self.run(["ssh", "-s", service_id, "-c", command], timeout=timeout)
        return result.succeeded and healthy in result.stdout

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()


def create_runner(settings: Settings) -> LandoCommandRunner:
    return LandoCommandRunner(
        project_path=settings.lando_project_path,
        binary=settings.lando_bin,
        db_user=settings.db_user,
        default_timeout=settings.query_timeout_seconds,
    )
