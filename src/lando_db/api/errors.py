from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lando_db.errors import (
    CommandFailed,
    DiscoveryError,
    HistoryWriteError,
    InvalidPageSize,
    LandoDbError,
    PageOutOfRange,
    TimedOut,
)

_STATUS_CODES: dict[type[LandoDbError], int] = {
    DiscoveryError: 502,
    InvalidPageSize: 422,
    PageOutOfRange: 404,
    TimedOut: 504,
    CommandFailed: 502,
    HistoryWriteError: 503,
}


def status_for(exc: LandoDbError) -> int:
    for error_type, status in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status
    return 500


async def lando_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, LandoDbError)
    body: dict[str, object] = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, CommandFailed):
        body["stderr"] = exc.stderr
        body["exit_code"] = exc.exit_code
    return JSONResponse(status_code=status_for(exc), content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LandoDbError, lando_error_handler)
