"""
API endpoints for projects owned by the caller.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.database import get_db
from squadron.core.security import verify_api_key
from squadron.models.user import User
from squadron.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate
from squadron.services.audit_service import create_audit_log
from squadron.services.project_service import project_service

router = APIRouter()


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> List[ProjectResponse]:
    projects = await project_service.list_projects(db, user.id)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ProjectResponse:
    project = await project_service.create_project(db, user.id, project_data)

    await create_audit_log(
        db=db,
        action="create_project",
        resource_type="project",
        resource_id=project.id,
        user_id=user.id,
        details={"name": project.name},
        ip_address=request.client.host if request.client else None,
    )
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ProjectResponse:
    project = await project_service.get_project(db, user.id, project_id)
    return ProjectResponse.model_validate(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    project_data: ProjectUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ProjectResponse:
    project = await project_service.update_project(db, user.id, project_id, project_data)

    await create_audit_log(
        db=db,
        action="update_project",
        resource_type="project",
        resource_id=project.id,
        user_id=user.id,
        details=project_data.model_dump(mode="json", exclude_unset=True),
        ip_address=request.client.host if request.client else None,
    )
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> Response:
    """
    Raises:
        ProjectNotEmptyError: The project still has resources (409)
    """
    await project_service.delete_project(db, user.id, project_id)

    await create_audit_log(
        db=db,
        action="delete_project",
        resource_type="project",
        resource_id=project_id,
        user_id=user.id,
        ip_address=request.client.host if request.client else None,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
