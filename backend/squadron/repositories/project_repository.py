"""
Repository for Project entity database operations.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from squadron.models.project import Project
from squadron.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project database operations."""

    model = Project

    async def get_by_owner_and_name(self, owner_id: UUID, name: str) -> Optional[Project]:
        result = await self.db.execute(
            select(Project).where(Project.owner_id == owner_id, Project.name == name)
        )
        return result.scalar_one_or_none()

    async def list_for_owner(self, owner_id: UUID) -> List[Project]:
        return await self.list_where(Project.owner_id == owner_id)
