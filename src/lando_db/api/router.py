from __future__ import annotations

from fastapi import APIRouter

from lando_db.api.health import router as health_router
from lando_db.api.history import router as history_router
from lando_db.api.maintenance import router as maintenance_router
from lando_db.api.projects import router as projects_router
from lando_db.api.query import router as query_router
from lando_db.api.services import router as services_router
from lando_db.api.tables import router as tables_router

api_router = APIRouter()
api_router.include_router(services_router, tags=["services"])
api_router.include_router(query_router, tags=["query"])
api_router.include_router(tables_router, tags=["tables"])
api_router.include_router(history_router, tags=["history"])
api_router.include_router(maintenance_router, tags=["maintenance"])
api_router.include_router(projects_router, tags=["projects"])
api_router.include_router(health_router, tags=["health"])
