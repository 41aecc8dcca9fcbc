from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from lando_db.models.responses import ServiceResponse, ServicesResponse

router = APIRouter()


@router.get("/services", response_model=ServicesResponse)
async def list_services(request: Request, databases_only: bool = False) -> ServicesResponse:
    """List discovered services, optionally only the database ones."""
    registry = request.app.state.session.registry
    services = registry.database_services() if databases_only else registry.services()
    return ServicesResponse(
        services=[ServiceResponse.from_descriptor(s) for s in services],
        total=len(services),
    )


@router.post("/services/refresh", response_model=ServicesResponse)
async def refresh_services(request: Request) -> ServicesResponse:
    """Re-run `lando info` and rebuild the registry."""
    services = await request.app.state.session.refresh_services()
    return ServicesResponse(
        services=[ServiceResponse.from_descriptor(s) for s in services],
        total=len(services),
    )


@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: str, request: Request) -> ServiceResponse:
    try:
        service = request.app.state.session.registry.get(service_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    return ServiceResponse.from_descriptor(service)
