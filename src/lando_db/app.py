from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from lando_db.api.errors import register_error_handlers
from lando_db.api.router import api_router
from lando_db.config import get_settings
from lando_db.errors import LandoDbError
from lando_db.history.factory import create_history_store
from lando_db.lando.runner import create_runner
from lando_db.logging import setup_logging
from lando_db.observability.metrics import PanelMetrics
from lando_db.panel.session import PanelSession
from lando_db.registry.service_registry import ServiceRegistry

logger = structlog.get_logger()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        runner = create_runner(settings)
        history = await create_history_store(settings)

        session = PanelSession(
            runner=runner,
            history=history,
            registry=ServiceRegistry(),
            metrics=PanelMetrics(),
            default_timeout=settings.query_timeout_seconds,
        )

        # Initial discovery; the panel still starts when lando is unavailable.
        try:
            await session.refresh_services()
        except LandoDbError as e:
            logger.warning("initial_discovery_failed", error=str(e))

        app.state.settings = settings
        app.state.session = session

        yield

        await session.close()

    app = FastAPI(
        title="Lando DB Panel",
        version="0.1.0",
        description="Browse Lando database services, run SQL through lando db-cli, and keep a bounded query history",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    register_error_handlers(app)

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "lando_db.app:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )
