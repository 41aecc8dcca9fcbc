from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from lando_db.models.domain import QueryOutcome
from lando_db.models.requests import QueryRequest
from lando_db.models.responses import PageResponse, QueryResponse
from lando_db.pagination.paginator import paginate, validate_page_size
from lando_db.pagination.sources import StaticResultSource

router = APIRouter()


async def build_query_response(
    outcome: QueryOutcome, page: int, page_size: int
) -> QueryResponse:
    source = StaticResultSource(outcome.rows, outcome.columns)
    result_page = await paginate(source, page, page_size)
    return QueryResponse(
        history_id=outcome.entry.id,
        service_id=outcome.entry.service_id,
        query=outcome.entry.query,
        succeeded=outcome.entry.succeeded,
        rows_affected=outcome.rows_affected,
        elapsed_ms=outcome.elapsed_ms,
        result=PageResponse.from_page(result_page),
        output=outcome.output if not outcome.columns else "",
        recorded=outcome.recorded,
    )


@router.post("/services/{service_id}/query", response_model=QueryResponse)
async def submit_query(service_id: str, body: QueryRequest, request: Request) -> QueryResponse:
    """Run SQL through `lando db-cli` and return one page of the parsed result.

    Failed and timed-out queries are still recorded in history.
    """
    page_size = body.page_size
    if page_size is None:
        page_size = request.app.state.settings.default_page_size
    validate_page_size(page_size)

    session = request.app.state.session
    try:
        outcome = await session.execute_query(
            service_id, body.query, timeout=body.timeout_seconds
        )
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return await build_query_response(outcome, body.page, page_size)
