"""
Environment catalog service.
"""
import logging
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.exceptions import (
    EnvironmentAlreadyExistsError,
    EnvironmentNotFoundError,
    ProjectNotEmptyError,
)
from squadron.models.environment import Environment, EnvironmentType
from squadron.repositories.environment_repository import EnvironmentRepository
from squadron.repositories.resource_repository import ResourceRepository
from squadron.schemas.project import EnvironmentCreate, EnvironmentUpdate
from squadron.schemas.variables import dump_variables
from squadron.services.project_service import project_service

logger = logging.getLogger(__name__)


class EnvironmentService:
    """Service for environments inside an owned project."""

    async def get_environment(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        environment_id: UUID,
    ) -> Environment:
        await project_service.get_owned_project(db, user_id, project_id)
        environment = await EnvironmentRepository(db).get_in_project(project_id, environment_id)
        if not environment:
            raise EnvironmentNotFoundError(str(environment_id))
        return environment

    async def list_environments(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> List[Environment]:
        await project_service.get_owned_project(db, user_id, project_id)
        return await EnvironmentRepository(db).list_for_project(project_id)

    async def create_environment(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        data: EnvironmentCreate,
    ) -> Environment:
        await project_service.get_owned_project(db, user_id, project_id)
        repo = EnvironmentRepository(db)
        if await repo.get_by_name(project_id, data.name):
            raise EnvironmentAlreadyExistsError(data.name)

        environment = await repo.create(Environment(
            project_id=project_id,
            name=data.name,
            type=EnvironmentType(data.type).value,
            variables=dump_variables(data.variables),
        ))
        logger.info(f"Created environment {environment.id} ({environment.name}) in project {project_id}")
        return environment

    async def update_environment(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        environment_id: UUID,
        data: EnvironmentUpdate,
    ) -> Environment:
        environment = await self.get_environment(db, user_id, project_id, environment_id)
        repo = EnvironmentRepository(db)

        if data.name is not None and data.name != environment.name:
            if await repo.get_by_name(project_id, data.name):
                raise EnvironmentAlreadyExistsError(data.name)
            environment.name = data.name
        if data.type is not None:
            environment.type = EnvironmentType(data.type).value
        if data.variables is not None:
            environment.variables = dump_variables(data.variables)

        return await repo.update(environment)

    async def delete_environment(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        environment_id: UUID,
    ) -> None:
        """
        Raises:
            ProjectNotEmptyError: If resources are still deployed into the environment
        """
        environment = await self.get_environment(db, user_id, project_id, environment_id)
        resource_count = await ResourceRepository(db).count_for_environment(environment.id)
        if resource_count:
            raise ProjectNotEmptyError("environment", str(environment.id), resource_count)

        await EnvironmentRepository(db).delete(environment)
        logger.info(f"Deleted environment {environment_id} from project {project_id}")


environment_service = EnvironmentService()
