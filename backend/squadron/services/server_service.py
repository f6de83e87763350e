"""
Server registry service.

Maintains the catalog of deployment targets: a single auto-provisioned local
server plus any number of remote servers reached over SSH. Remote servers are
only persisted (or re-addressed) after a successful connectivity probe.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.exceptions import (
    InvalidServerConfigError,
    LocalServerProtectedError,
    ServerAlreadyExistsError,
    ServerConnectionError,
    ServerInUseError,
    ServerNotFoundError,
)
from squadron.models.server import Server, ServerStatus, ServerType
from squadron.repositories.resource_repository import ResourceRepository
from squadron.repositories.server_repository import ServerRepository
from squadron.schemas.server import ServerCreate, ServerUpdate
from squadron.services.remote.gateway import SSHGateway, gateway_for

logger = logging.getLogger(__name__)

LOCAL_SERVER_NAME = "local"

# Fields that decide how a server is reached
CONNECTION_FIELDS = ("host", "ssh_port", "ssh_username", "ssh_private_key")


def _kind_values(kinds) -> List[str]:
    return [getattr(k, "value", k) for k in kinds]


class ServerService:
    """Service for the server registry."""

    async def ensure_local_server(self, db: AsyncSession) -> Server:
        """
        Provision the local server if it does not exist yet.

        Safe to call from several processes at once: the insert is guarded by a
        partial unique index on ``type = 'local'``.

        Returns:
            The local server
        """
        repo = ServerRepository(db)
        server = await repo.get_local()
        if server:
            return server

        server = await repo.insert_local_if_absent(LOCAL_SERVER_NAME)
        logger.info(f"Local server ready: {server.id}")
        return server

    async def list_servers(self, db: AsyncSession) -> List[Server]:
        return await ServerRepository(db).list_servers()

    async def get_server(self, db: AsyncSession, server_id: UUID) -> Server:
        server = await ServerRepository(db).get_by_id(server_id)
        if not server:
            raise ServerNotFoundError(str(server_id))
        return server

    async def _probe_remote(
        self,
        host: str,
        username: str,
        private_key: str,
        port: Optional[int],
    ) -> bool:
        gateway = SSHGateway(host=host, username=username, private_key=private_key, port=port)
        return await gateway.probe()

    async def _check_unique(
        self,
        repo: ServerRepository,
        name: Optional[str] = None,
        host: Optional[str] = None,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        if name is not None:
            existing = await repo.get_by_name(name)
            if existing and existing.id != exclude_id:
                raise ServerAlreadyExistsError("name", name)
        if host is not None:
            existing = await repo.get_by_host(host)
            if existing and existing.id != exclude_id:
                raise ServerAlreadyExistsError("host", host)

    async def create_server(self, db: AsyncSession, data: ServerCreate) -> Server:
        """
        Register a remote server.

        The server is probed with the submitted credentials first; nothing is
        stored if the probe fails.

        Raises:
            InvalidServerConfigError: If a local server is requested
            ServerAlreadyExistsError: If the name or host is taken
            ServerConnectionError: If the server does not accept an SSH session
        """
        if data.type == ServerType.LOCAL:
            raise InvalidServerConfigError("type", "the local server is provisioned automatically")

        repo = ServerRepository(db)
        await self._check_unique(repo, name=data.name, host=data.host)

        if not await self._probe_remote(data.host, data.ssh_username, data.ssh_private_key, data.ssh_port):
            logger.warning(f"Refusing to register server {data.name}: {data.host} is unreachable")
            raise ServerConnectionError(data.host, "SSH connectivity probe failed")

        server = await repo.create(Server(
            name=data.name,
            type=ServerType.REMOTE.value,
            host=data.host,
            ssh_port=data.ssh_port,
            ssh_username=data.ssh_username,
            ssh_private_key=data.ssh_private_key,
            is_build_server=data.is_build_server,
            is_swarm_manager=data.is_swarm_manager,
            is_swarm_worker=data.is_swarm_worker,
            supported_types=_kind_values(data.supported_types),
            status=ServerStatus.ONLINE.value,
            last_checked_at=datetime.utcnow(),
        ))
        logger.info(f"Registered server {server.id} ({server.name} at {server.host})")
        return server

    async def update_server(self, db: AsyncSession, server_id: UUID, data: ServerUpdate) -> Server:
        """
        Update a server.

        The local server keeps its type and connection settings. For a remote
        server, changing any connection field re-probes with the merged
        configuration before anything is written.

        Raises:
            LocalServerProtectedError: If the local server's type or connection would change
            InvalidServerConfigError: If a remote server would become local
            ServerAlreadyExistsError: If the new name or host is taken
            ServerConnectionError: If the new connection settings fail the probe
        """
        server = await self.get_server(db, server_id)
        repo = ServerRepository(db)
        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
        if "type" in changes and changes["type"] is not None:
            changes["type"] = ServerType(changes["type"]).value

        changed = {k: v for k, v in changes.items() if getattr(server, k) != v}

        if server.is_local:
            if "type" in changed:
                raise LocalServerProtectedError("re-typed")
            if any(field in changed for field in CONNECTION_FIELDS):
                raise LocalServerProtectedError("given connection settings")
        elif changed.get("type") == ServerType.LOCAL.value:
            raise InvalidServerConfigError("type", "a remote server cannot become local")

        await self._check_unique(
            repo,
            name=changed.get("name"),
            host=changed.get("host"),
            exclude_id=server.id,
        )

        if not server.is_local and any(field in changed for field in CONNECTION_FIELDS):
            merged = {field: changed.get(field, getattr(server, field)) for field in CONNECTION_FIELDS}
            if not all(merged[f] for f in ("host", "ssh_username", "ssh_private_key")):
                raise InvalidServerConfigError("connection", "host, ssh_username and ssh_private_key are required")
            reachable = await self._probe_remote(
                merged["host"], merged["ssh_username"], merged["ssh_private_key"], merged["ssh_port"]
            )
            if not reachable:
                logger.warning(f"Rejected connection change for server {server.id}: probe failed")
                raise ServerConnectionError(merged["host"], "SSH connectivity probe failed")
            server.status = ServerStatus.ONLINE.value
            server.last_checked_at = datetime.utcnow()

        for field, value in changed.items():
            if field == "supported_types":
                value = _kind_values(value or [])
            setattr(server, field, value)

        server = await repo.update(server)
        logger.info(f"Updated server {server.id}: {sorted(changed)}")
        return server

    async def delete_server(self, db: AsyncSession, server_id: UUID) -> None:
        """
        Raises:
            LocalServerProtectedError: If the server is the local server
            ServerInUseError: If resources still target the server
        """
        server = await self.get_server(db, server_id)
        if server.is_local:
            raise LocalServerProtectedError("deleted")

        resource_count = await ResourceRepository(db).count_for_server(server.id)
        if resource_count:
            raise ServerInUseError(str(server.id), resource_count)

        await ServerRepository(db).delete(server)
        logger.info(f"Deleted server {server_id}")

    async def test_connection(self, server: Server) -> bool:
        """Probe a server. Local servers are always reachable. Never raises."""
        return await gateway_for(server).probe()

    async def check_connection(self, db: AsyncSession, server_id: UUID) -> Tuple[Server, bool]:
        """Probe a server on demand without touching its stored status."""
        server = await self.get_server(db, server_id)
        return server, await self.test_connection(server)

    async def set_status(self, db: AsyncSession, server_id: UUID, online: bool) -> Server:
        """Persist the outcome of a reachability check."""
        server = await self.get_server(db, server_id)
        server.status = (ServerStatus.ONLINE if online else ServerStatus.OFFLINE).value
        server.last_checked_at = datetime.utcnow()
        return await ServerRepository(db).update(server)


server_service = ServerService()
