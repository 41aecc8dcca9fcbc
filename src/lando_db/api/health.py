from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    services: int
    history_entries: int
    metrics: dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check with query counters."""
    session = request.app.state.session
    stats = await session.metrics.get_stats()
    uptime = stats.pop("uptime_seconds", 0.0)
    return HealthResponse(
        status="ok",
        uptime_seconds=uptime,
        services=len(session.registry),
        history_entries=await session.history.count(),
        metrics=stats,
    )
