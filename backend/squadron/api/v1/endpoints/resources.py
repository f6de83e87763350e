"""
API endpoints for resources within a project.

Ownership is enforced by the resource service, not here.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.database import get_db
from squadron.core.security import verify_api_key
from squadron.models.user import User
from squadron.schemas.resource import (
    ResourceCreate,
    ResourceDeployQueued,
    ResourceResponse,
    ResourceStatusResponse,
)
from squadron.services.audit_service import create_audit_log
from squadron.services.resource_service import resource_service

router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post("", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
async def create_resource(
    project_id: UUID,
    resource_data: ResourceCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ResourceResponse:
    """
    Create a resource in ``created`` status.

    Raises:
        InvalidResourceConfigError: Unknown kind or missing kind-specific fields (400)
        ProjectAccessDeniedError: Caller does not own the project (403)
    """
    resource = await resource_service.create_resource(db, user.id, project_id, resource_data)

    await create_audit_log(
        db=db,
        action="create_resource",
        resource_type="resource",
        resource_id=resource.id,
        user_id=user.id,
        details={"project_id": str(project_id), "name": resource.name, "kind": resource.kind},
        ip_address=_client_ip(request),
    )
    return ResourceResponse.from_resource(resource)


@router.get("", response_model=List[ResourceResponse])
async def list_resources(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> List[ResourceResponse]:
    resources = await resource_service.list_resources(db, user.id, project_id)
    return [ResourceResponse.from_resource(r) for r in resources]


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource(
    project_id: UUID,
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ResourceResponse:
    resource = await resource_service.get_resource(db, user.id, project_id, resource_id)
    return ResourceResponse.from_resource(resource)


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_resource(
    project_id: UUID,
    resource_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> Response:
    """
    Remove a resource, stopping its container first.

    If the stop fails the resource is kept and the error is returned.
    """
    await resource_service.remove(db, user.id, project_id, resource_id)

    await create_audit_log(
        db=db,
        action="remove_resource",
        resource_type="resource",
        resource_id=resource_id,
        user_id=user.id,
        details={"project_id": str(project_id)},
        ip_address=_client_ip(request),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{resource_id}/deploy",
    response_model=ResourceResponse,
    responses={status.HTTP_202_ACCEPTED: {"model": ResourceDeployQueued}},
)
async def deploy_resource(
    project_id: UUID,
    resource_id: UUID,
    request: Request,
    background: bool = Query(False, description="Hand the deploy to the worker and return immediately"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
):
    """
    Deploy a resource.

    By default the call returns once the container is running (or the deploy has
    failed and been recorded). With ``background=true`` the ownership and state
    checks run here and the deploy itself runs in the Celery worker.

    Raises:
        InvalidStateTransitionError: Resource is running, deploying or in error (409)
        ServerConnectionError: Target server unreachable (503)
        DeploymentError: Engine rejected the deploy (500)
    """
    if background:
        await resource_service.check_deployable(db, user.id, project_id, resource_id)
        from squadron.worker import deploy_resource_task

        task = deploy_resource_task.delay(str(resource_id), str(project_id), str(user.id))
        await create_audit_log(
            db=db,
            action="queue_deploy_resource",
            resource_type="resource",
            resource_id=resource_id,
            user_id=user.id,
            details={"project_id": str(project_id), "task_id": task.id},
            ip_address=_client_ip(request),
        )
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=ResourceDeployQueued(resource_id=resource_id, task_id=task.id).model_dump(mode="json"),
        )

    resource = await resource_service.deploy(db, user.id, project_id, resource_id)

    await create_audit_log(
        db=db,
        action="deploy_resource",
        resource_type="resource",
        resource_id=resource.id,
        user_id=user.id,
        details={"project_id": str(project_id), "container_id": resource.container_id},
        ip_address=_client_ip(request),
    )
    return ResourceResponse.from_resource(resource)


@router.post("/{resource_id}/stop", response_model=ResourceResponse)
async def stop_resource(
    project_id: UUID,
    resource_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ResourceResponse:
    resource = await resource_service.stop(db, user.id, project_id, resource_id)

    await create_audit_log(
        db=db,
        action="stop_resource",
        resource_type="resource",
        resource_id=resource.id,
        user_id=user.id,
        details={"project_id": str(project_id)},
        ip_address=_client_ip(request),
    )
    return ResourceResponse.from_resource(resource)


@router.get("/{resource_id}/status", response_model=ResourceStatusResponse)
async def get_resource_status(
    project_id: UUID,
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> ResourceStatusResponse:
    resource_status = await resource_service.get_status(db, user.id, project_id, resource_id)
    return ResourceStatusResponse(status=resource_status)


@router.get("/{resource_id}/logs", response_class=PlainTextResponse)
async def get_resource_logs(
    project_id: UUID,
    resource_id: UUID,
    tail: Optional[int] = Query(None, ge=1, description="Number of lines (capped server-side)"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(verify_api_key),
) -> PlainTextResponse:
    logs = await resource_service.get_logs(db, user.id, project_id, resource_id, tail=tail)
    return PlainTextResponse(logs)
