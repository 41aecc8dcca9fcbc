from __future__ import annotations

import logging
import sys

import structlog

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def setup_logging(level: str = "INFO", *, json_logs: bool | None = None) -> None:
    """Configure structlog on top of stdlib logging.

    ``json_logs`` forces the renderer; by default a TTY gets the console
    renderer and anything else (uvicorn under a supervisor, CI) gets JSON.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))

    if json_logs is None:
        json_logs = not sys.stderr.isatty()
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_service(service_id: str) -> None:
    """Attach the service being worked on to every log line of the current task."""
    structlog.contextvars.bind_contextvars(service_id=service_id)


def unbind_service() -> None:
    structlog.contextvars.unbind_contextvars("service_id")
