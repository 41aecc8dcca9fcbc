from __future__ import annotations


class LandoDbError(Exception):
    """Base class for errors surfaced by the database panel."""


class DiscoveryError(LandoDbError):
    """The service list returned by discovery could not be interpreted."""


class InvalidPageSize(LandoDbError):
    def __init__(self, page_size: int, minimum: int, maximum: int) -> None:
        super().__init__(f"Page size {page_size} outside [{minimum}, {maximum}]")
        self.page_size = page_size


class PageOutOfRange(LandoDbError):
    def __init__(self, page_index: int, page_size: int, total: int) -> None:
        super().__init__(
            f"Page {page_index} (size {page_size}) is beyond the {total} available rows"
        )
        self.page_index = page_index
        self.total = total


class TimedOut(LandoDbError):
    def __init__(self, command: str, timeout_seconds: float) -> None:
        super().__init__(f"Command '{command}' timed out after {timeout_seconds}s")
        self.command = command
        self.timeout_seconds = timeout_seconds


class CommandFailed(LandoDbError):
    """Non-zero exit from the lando CLI. Carries the captured stderr."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"Command '{command}' exited with {exit_code}: {stderr.strip()}")
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class HistoryWriteError(LandoDbError):
    """A history backend could not persist a change; the store is left as it was."""
