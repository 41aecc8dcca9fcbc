from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from lando_db.models.requests import CredentialsRequest
from lando_db.models.responses import BackupResponse, MessageResponse

router = APIRouter()


@router.post("/services/{service_id}/backup", response_model=BackupResponse)
async def backup_service(service_id: str, request: Request) -> BackupResponse:
    """Export a dump with `lando db-export`."""
    try:
        result = await request.app.state.session.backup(service_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    return BackupResponse(service_id=service_id, file_path=result.file_path)


@router.post("/services/{service_id}/credentials", response_model=MessageResponse)
async def update_credentials(
    service_id: str, body: CredentialsRequest, request: Request
) -> MessageResponse:
    session = request.app.state.session
    try:
        await session.update_credentials(service_id, body.pairs())
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MessageResponse(message="Credentials updated")


@router.post("/services/{service_id}/test-connection", response_model=MessageResponse)
async def test_connection(service_id: str, request: Request) -> MessageResponse:
    try:
        alive = await request.app.state.session.test_connection(service_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not alive:
        raise HTTPException(status_code=503, detail=f"Service {service_id} is not responding")
    return MessageResponse(message="Connection OK")
