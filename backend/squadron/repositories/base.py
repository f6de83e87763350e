"""
Base repository class with common CRUD operations.

Repositories own persistence only; they never decide lifecycle transitions.
"""
from typing import Any, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

T = TypeVar("T", bound=DeclarativeBase)


class BaseRepository(Generic[T]):
    """
    Generic base repository for CRUD operations.

    Subclass this and set the `model` class attribute to your SQLAlchemy model.
    """

    model: Type[T]

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, id: UUID) -> Optional[T]:
        """
        Get a single record by ID.

        Args:
            id: Record UUID

        Returns:
            Record if found, None otherwise
        """
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def list_where(self, *conditions: Any, order_by: Optional[Any] = None) -> List[T]:
        """
        List records matching all ``conditions``.

        Ordered by ``order_by`` if given, else newest first when the model has
        ``created_at``.
        """
        query = select(self.model)
        if conditions:
            query = query.where(*conditions)

        if order_by is not None:
            query = query.order_by(order_by)
        elif hasattr(self.model, "created_at"):
            query = query.order_by(desc(self.model.created_at), self.model.id)
        else:
            query = query.order_by(self.model.id)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_where(self, *conditions: Any) -> int:
        stmt = select(func.count(self.model.id))
        if conditions:
            stmt = stmt.where(*conditions)
        return (await self.db.execute(stmt)).scalar_one()

    async def create(self, entity: T) -> T:
        """
        Persist a new record.

        Returns:
            Created entity with ID and defaults populated
        """
        self.db.add(entity)
        await self.db.commit()
        await self.db.refresh(entity)
        return entity

    async def update(self, entity: T) -> T:
        """Commit pending changes on ``entity`` and reload it."""
        await self.db.commit()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity: T) -> bool:
        await self.db.delete(entity)
        await self.db.commit()
        return True
