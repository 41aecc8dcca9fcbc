from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from lando_db.api.query import build_query_response
from lando_db.models.requests import RerunRequest
from lando_db.models.responses import HistoryResponse, MessageResponse, QueryResponse
from lando_db.pagination.paginator import validate_page_size

router = APIRouter()


@router.get("/history", response_model=HistoryResponse)
async def query_history(
    request: Request,
    q: str = "",
    service_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> HistoryResponse:
    """Search history, most recent first. An empty ``q`` matches everything."""
    store = request.app.state.session.history
    matched = [entry async for entry in store.search(q, service_id=service_id)]
    return HistoryResponse(
        entries=matched[offset : offset + limit],
        total=len(matched),
    )


@router.delete("/history/{entry_id}")
async def remove_entry(entry_id: str, request: Request) -> dict[str, bool]:
    removed = await request.app.state.session.history.remove(entry_id)
    return {"removed": removed}


@router.delete("/history", response_model=MessageResponse)
async def clear_history(request: Request) -> MessageResponse:
    await request.app.state.session.history.clear()
    return MessageResponse(message="History cleared")


@router.post("/history/{entry_id}/rerun", response_model=QueryResponse)
async def rerun_entry(
    entry_id: str, request: Request, body: RerunRequest | None = None
) -> QueryResponse:
    """Run a past query again. The re-run is appended as a new entry."""
    page_size = request.app.state.settings.default_page_size
    validate_page_size(page_size)
    timeout = body.timeout_seconds if body else None
    try:
        outcome = await request.app.state.session.rerun(entry_id, timeout=timeout)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0])
    return await build_query_response(outcome, 0, page_size)
