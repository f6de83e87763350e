"""
API endpoints for the server registry.
"""
from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.database import get_db
from squadron.core.security import verify_api_key
from squadron.models.server import ServerStatus
from squadron.models.user import User
from squadron.schemas.server import (
    ConnectionCheckResponse,
    ServerCreate,
    ServerResponse,
    ServerUpdate,
)
from squadron.services.audit_service import create_audit_log
from squadron.services.server_service import server_service

router = APIRouter()


@router.get("", response_model=List[ServerResponse])
async def list_servers(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> List[ServerResponse]:
    servers = await server_service.list_servers(db)
    return [ServerResponse.model_validate(s) for s in servers]


@router.post("", response_model=ServerResponse, status_code=status.HTTP_201_CREATED)
async def create_server(
    server_data: ServerCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ServerResponse:
    """
    Register a remote server. It must accept an SSH session first.

    Raises:
        ServerAlreadyExistsError: Name or host already registered (409)
        ServerConnectionError: Probe failed, nothing stored (503)
    """
    server = await server_service.create_server(db, server_data)

    await create_audit_log(
        db=db,
        action="create_server",
        resource_type="server",
        resource_id=server.id,
        user_id=user.id,
        details={"name": server.name, "host": server.host},
        ip_address=request.client.host if request.client else None,
    )
    return ServerResponse.model_validate(server)


@router.get("/{server_id}", response_model=ServerResponse)
async def get_server(
    server_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ServerResponse:
    server = await server_service.get_server(db, server_id)
    return ServerResponse.model_validate(server)


@router.put("/{server_id}", response_model=ServerResponse)
async def update_server(
    server_id: UUID,
    server_data: ServerUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ServerResponse:
    server = await server_service.update_server(db, server_id, server_data)

    await create_audit_log(
        db=db,
        action="update_server",
        resource_type="server",
        resource_id=server.id,
        user_id=user.id,
        # Field names only; the private key must not reach the audit trail
        details={"fields": sorted(server_data.model_dump(exclude_unset=True))},
        ip_address=request.client.host if request.client else None,
    )
    return ServerResponse.model_validate(server)


@router.delete("/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(
    server_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> Response:
    """
    Raises:
        LocalServerProtectedError: The local server cannot be deleted (400)
        ServerInUseError: Resources still target the server (409)
    """
    await server_service.delete_server(db, server_id)

    await create_audit_log(
        db=db,
        action="delete_server",
        resource_type="server",
        resource_id=server_id,
        user_id=user.id,
        ip_address=request.client.host if request.client else None,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{server_id}/check-connection", response_model=ConnectionCheckResponse)
async def check_connection(
    server_id: UUID,
    persist: bool = Query(False, description="Store the outcome as the server's status"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ConnectionCheckResponse:
    """Probe a server now. The stored status only changes when ``persist`` is set."""
    server, reachable = await server_service.check_connection(db, server_id)
    checked_at = datetime.utcnow()
    if persist:
        server = await server_service.set_status(db, server_id, reachable)
        checked_at = server.last_checked_at

    return ConnectionCheckResponse(
        server_id=server.id,
        reachable=reachable,
        status=ServerStatus.ONLINE if reachable else ServerStatus.OFFLINE,
        persisted=persist,
        checked_at=checked_at,
    )
