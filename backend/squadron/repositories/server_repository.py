"""
Repository for Server entity database operations.
"""
from typing import List, Optional

from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert

from squadron.models.server import Server, ServerType, ServerStatus
from squadron.repositories.base import BaseRepository


class ServerRepository(BaseRepository[Server]):
    """Repository for Server database operations."""

    model = Server

    async def get_local(self) -> Optional[Server]:
        result = await self.db.execute(
            select(Server).where(Server.type == ServerType.LOCAL.value)
        )
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[Server]:
        result = await self.db.execute(select(Server).where(Server.name == name))
        return result.scalar_one_or_none()

    async def get_by_host(self, host: str) -> Optional[Server]:
        result = await self.db.execute(select(Server).where(Server.host == host))
        return result.scalar_one_or_none()

    async def list_servers(self) -> List[Server]:
        return await self.list_where(order_by=Server.name)

    async def insert_local_if_absent(self, name: str) -> Server:
        """
        Insert the local server unless one exists, then return the local row.

        Concurrent callers race on the partial unique index; the loser's insert is
        a no-op, so every caller ends up with the same row.
        """
        stmt = (
            insert(Server)
            .values(
                name=name,
                type=ServerType.LOCAL.value,
                status=ServerStatus.ONLINE.value,
                supported_types=[],
            )
            .on_conflict_do_nothing(
                index_elements=["type"],
                index_where=text("type = 'local'"),
            )
        )
        await self.db.execute(stmt)
        await self.db.commit()
        return await self.get_local()
