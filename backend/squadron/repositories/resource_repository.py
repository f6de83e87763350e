"""
Repository for Resource entity database operations.

Status writes go through ``transition``, ``claim_for_deploy`` or the bulk
``fail_*`` helpers so ``status_changed_at`` always moves with ``status``.
"""
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update

from squadron.models.resource import Resource, ResourceStatus
from squadron.repositories.base import BaseRepository

_UNSET = object()


class ResourceRepository(BaseRepository[Resource]):
    """Repository for Resource database operations."""

    model = Resource

    async def get_in_project(self, project_id: UUID, resource_id: UUID) -> Optional[Resource]:
        """Get a resource only if it belongs to ``project_id``."""
        result = await self.db.execute(
            select(Resource).where(
                Resource.id == resource_id,
                Resource.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_name(self, project_id: UUID, name: str) -> Optional[Resource]:
        result = await self.db.execute(
            select(Resource).where(Resource.project_id == project_id, Resource.name == name)
        )
        return result.scalar_one_or_none()

    async def list_for_project(self, project_id: UUID) -> List[Resource]:
        return await self.list_where(Resource.project_id == project_id)

    async def count_for_project(self, project_id: UUID) -> int:
        return await self.count_where(Resource.project_id == project_id)

    async def count_for_environment(self, environment_id: UUID) -> int:
        return await self.count_where(Resource.environment_id == environment_id)

    async def count_for_server(self, server_id: UUID) -> int:
        return await self.count_where(Resource.server_id == server_id)

    async def claim_for_deploy(self, resource_id: UUID, from_statuses: Iterable[str]) -> bool:
        """
        Atomically move a resource to ``deploying`` if its status is in ``from_statuses``.

        This is a compare-and-set at the database, so two processes cannot both
        claim the same deploy.

        Returns:
            True if this caller won the claim
        """
        stmt = (
            update(Resource)
            .where(Resource.id == resource_id, Resource.status.in_(list(from_statuses)))
            .values(
                status=ResourceStatus.DEPLOYING.value,
                error=None,
                status_changed_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def current_status(self, resource_id: UUID) -> Optional[str]:
        """Read the committed status, bypassing any copy held by the session."""
        result = await self.db.execute(select(Resource.status).where(Resource.id == resource_id))
        return result.scalar_one_or_none()

    async def reload(self, resource: Resource) -> Resource:
        """Re-read a resource after a bulk UPDATE bypassed the session."""
        await self.db.refresh(resource)
        return resource

    async def transition(
        self,
        resource: Resource,
        status: ResourceStatus,
        *,
        error=_UNSET,
        container_id=_UNSET,
        host_port=_UNSET,
    ) -> Resource:
        """
        Persist a new status plus any of the fields that travel with it.

        Fields left unset keep their current value; pass ``None`` to clear one.
        """
        resource.status = status.value
        resource.status_changed_at = datetime.utcnow()
        if error is not _UNSET:
            resource.error = error
        if container_id is not _UNSET:
            resource.container_id = container_id
        if host_port is not _UNSET:
            resource.host_port = host_port
        return await self.update(resource)

    async def fail_if_in(self, resource_id: UUID, statuses: Iterable[str], error: str) -> bool:
        """Mark one resource failed if it is still in one of ``statuses``."""
        stmt = (
            update(Resource)
            .where(Resource.id == resource_id, Resource.status.in_(list(statuses)))
            .values(
                status=ResourceStatus.FAILED.value,
                error=error,
                container_id=None,
                status_changed_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def delete_if_in(self, resource_id: UUID, statuses: Iterable[str]) -> bool:
        """
        Delete a resource only if its status is still in ``statuses``.

        Guards against another process claiming a deploy between the caller's
        checks and the delete.

        Returns:
            True if the row was deleted
        """
        stmt = (
            delete(Resource)
            .where(Resource.id == resource_id, Resource.status.in_(list(statuses)))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def fail_stuck(self, deadline: datetime, error: str) -> List[UUID]:
        """
        Demote every resource in ``deploying`` since before ``deadline`` to ``failed``.

        Returns:
            IDs of the demoted resources
        """
        stmt = (
            update(Resource)
            .where(
                Resource.status == ResourceStatus.DEPLOYING.value,
                Resource.status_changed_at < deadline,
            )
            .values(
                status=ResourceStatus.FAILED.value,
                error=error,
                container_id=None,
                status_changed_at=datetime.utcnow(),
            )
            .returning(Resource.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        ids = [row[0] for row in result.all()]
        await self.db.commit()
        return ids
