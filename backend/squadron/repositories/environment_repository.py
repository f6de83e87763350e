"""
Repository for Environment entity database operations.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from squadron.models.environment import Environment
from squadron.repositories.base import BaseRepository


class EnvironmentRepository(BaseRepository[Environment]):
    """Repository for Environment database operations."""

    model = Environment

    async def get_in_project(self, project_id: UUID, environment_id: UUID) -> Optional[Environment]:
        """Get an environment only if it belongs to ``project_id``."""
        result = await self.db.execute(
            select(Environment).where(
                Environment.id == environment_id,
                Environment.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_name(self, project_id: UUID, name: str) -> Optional[Environment]:
        result = await self.db.execute(
            select(Environment).where(
                Environment.project_id == project_id,
                Environment.name == name,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_project(self, project_id: UUID) -> List[Environment]:
        return await self.list_where(Environment.project_id == project_id, order_by=Environment.name)
