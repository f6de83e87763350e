"""
API endpoints for environments within a project.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.database import get_db
from squadron.core.security import verify_api_key
from squadron.models.user import User
from squadron.schemas.project import EnvironmentCreate, EnvironmentResponse, EnvironmentUpdate
from squadron.services.audit_service import create_audit_log
from squadron.services.environment_service import environment_service

router = APIRouter()


@router.get("", response_model=List[EnvironmentResponse])
async def list_environments(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> List[EnvironmentResponse]:
    environments = await environment_service.list_environments(db, user.id, project_id)
    return [EnvironmentResponse.from_environment(e) for e in environments]


@router.post("", response_model=EnvironmentResponse, status_code=status.HTTP_201_CREATED)
async def create_environment(
    project_id: UUID,
    environment_data: EnvironmentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> EnvironmentResponse:
    environment = await environment_service.create_environment(db, user.id, project_id, environment_data)

    await create_audit_log(
        db=db,
        action="create_environment",
        resource_type="environment",
        resource_id=environment.id,
        user_id=user.id,
        details={"project_id": str(project_id), "name": environment.name, "type": environment.type},
        ip_address=request.client.host if request.client else None,
    )
    return EnvironmentResponse.from_environment(environment)


@router.get("/{environment_id}", response_model=EnvironmentResponse)
async def get_environment(
    project_id: UUID,
    environment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> EnvironmentResponse:
    environment = await environment_service.get_environment(db, user.id, project_id, environment_id)
    return EnvironmentResponse.from_environment(environment)


@router.put("/{environment_id}", response_model=EnvironmentResponse)
async def update_environment(
    project_id: UUID,
    environment_id: UUID,
    environment_data: EnvironmentUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> EnvironmentResponse:
    environment = await environment_service.update_environment(
        db, user.id, project_id, environment_id, environment_data
    )

    await create_audit_log(
        db=db,
        action="update_environment",
        resource_type="environment",
        resource_id=environment.id,
        user_id=user.id,
        details={"project_id": str(project_id), "fields": sorted(environment_data.model_dump(exclude_unset=True))},
        ip_address=request.client.host if request.client else None,
    )
    return EnvironmentResponse.from_environment(environment)


@router.delete("/{environment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_environment(
    project_id: UUID,
    environment_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> Response:
    await environment_service.delete_environment(db, user.id, project_id, environment_id)

    await create_audit_log(
        db=db,
        action="delete_environment",
        resource_type="environment",
        resource_id=environment_id,
        user_id=user.id,
        details={"project_id": str(project_id)},
        ip_address=request.client.host if request.client else None,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
