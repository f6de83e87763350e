"""
Project catalog service.

Every project operation is scoped to the calling user. ``get_owned_project`` is
also the ownership gate used by the environment and resource services.
"""
import logging
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.exceptions import (
    ProjectAccessDeniedError,
    ProjectAlreadyExistsError,
    ProjectNotEmptyError,
    ProjectNotFoundError,
)
from squadron.models.project import Project, ProjectStatus
from squadron.repositories.project_repository import ProjectRepository
from squadron.repositories.resource_repository import ResourceRepository
from squadron.schemas.project import ProjectCreate, ProjectUpdate

logger = logging.getLogger(__name__)


class ProjectService:
    """Service for owner-scoped project management."""

    async def get_owned_project(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> Project:
        """
        Load a project and check the caller owns it.

        Raises:
            ProjectNotFoundError: If the project does not exist
            ProjectAccessDeniedError: If the caller is not the owner
        """
        project = await ProjectRepository(db).get_by_id(project_id)
        if not project:
            raise ProjectNotFoundError(str(project_id))
        if not project.is_owned_by(user_id):
            logger.warning(f"User {user_id} denied access to project {project_id}")
            raise ProjectAccessDeniedError(str(project_id))
        return project

    async def create_project(self, db: AsyncSession, user_id: UUID, data: ProjectCreate) -> Project:
        repo = ProjectRepository(db)
        if await repo.get_by_owner_and_name(user_id, data.name):
            raise ProjectAlreadyExistsError(data.name)

        project = await repo.create(Project(
            owner_id=user_id,
            name=data.name,
            description=data.description,
            status=ProjectStatus.ACTIVE.value,
        ))
        logger.info(f"Created project {project.id} ({project.name}) for user {user_id}")
        return project

    async def list_projects(self, db: AsyncSession, user_id: UUID) -> List[Project]:
        return await ProjectRepository(db).list_for_owner(user_id)

    async def get_project(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> Project:
        return await self.get_owned_project(db, user_id, project_id)

    async def update_project(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        data: ProjectUpdate,
    ) -> Project:
        project = await self.get_owned_project(db, user_id, project_id)
        repo = ProjectRepository(db)

        if data.name is not None and data.name != project.name:
            if await repo.get_by_owner_and_name(user_id, data.name):
                raise ProjectAlreadyExistsError(data.name)
            project.name = data.name
        if data.description is not None:
            project.description = data.description
        if data.status is not None:
            project.status = ProjectStatus(data.status).value

        return await repo.update(project)

    async def delete_project(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> None:
        """
        Delete a project and its environments.

        Raises:
            ProjectNotEmptyError: If the project still has resources
        """
        project = await self.get_owned_project(db, user_id, project_id)
        resource_count = await ResourceRepository(db).count_for_project(project.id)
        if resource_count:
            raise ProjectNotEmptyError("project", str(project.id), resource_count)

        await ProjectRepository(db).delete(project)
        logger.info(f"Deleted project {project_id}")


project_service = ProjectService()
