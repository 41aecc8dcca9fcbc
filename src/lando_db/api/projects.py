from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request
from pydantic import BaseModel

from lando_db.lando.runner import scan_for_projects
from lando_db.models.domain import LandoApp

router = APIRouter()


class ProjectsResponse(BaseModel):
    root: str
    projects: list[str]


@router.get("/projects", response_model=ProjectsResponse)
async def list_projects(request: Request, root: str | None = None) -> ProjectsResponse:
    """Find Lando projects (directories with a .lando.yml) under ``root``."""
    root = root or request.app.state.settings.lando_project_path
    projects = await asyncio.to_thread(scan_for_projects, root)
    return ProjectsResponse(root=root, projects=[str(p) for p in projects])


@router.get("/apps", response_model=list[LandoApp])
async def list_apps(request: Request) -> list[LandoApp]:
    """Apps known to lando (`lando list`)."""
    return await request.app.state.session.runner.list_apps()
