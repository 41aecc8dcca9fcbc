from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from lando_db.models.responses import PageResponse, TablesResponse
from lando_db.pagination.paginator import paginate

router = APIRouter()


@router.get("/services/{service_id}/tables", response_model=TablesResponse)
async def list_tables(service_id: str, request: Request) -> TablesResponse:
    try:
        tables = await request.app.state.session.list_tables(service_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TablesResponse(service_id=service_id, tables=tables)


@router.get("/services/{service_id}/tables/{table}", response_model=PageResponse)
async def browse_table(
    service_id: str,
    table: str,
    request: Request,
    page: int = 0,
    page_size: int | None = None,
    where: str | None = None,
) -> PageResponse:
    """Page through a table. Each page is a fresh LIMIT/OFFSET query."""
    if page_size is None:
        page_size = request.app.state.settings.default_page_size
    try:
        source = request.app.state.session.table_source(service_id, table, where=where)
        result_page = await paginate(source, page, page_size)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PageResponse.from_page(result_page)
