"""
Resource lifecycle orchestration service.

Coordinates between:
- ResourceRepository for persisted status, error and container fields
- the server registry and an ExecutionGateway for reaching the target server
- a RuntimeAdapter (Docker) for the container engine itself
- a SourceProvider for repository-backed resources

Only this service writes a resource's status. Every failure of a remote step is
recorded on the resource before it is re-raised, so callers can both see the
error and later read the same failure back.
"""
import logging
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.exceptions import (
    ContainerNotFoundError,
    ContainerOperationError,
    DeploymentError,
    DomainException,
    EnvironmentNotFoundError,
    InvalidResourceConfigError,
    InvalidStateTransitionError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    ServerConnectionError,
    ServerNotFoundError,
)
from squadron.core.locks import resource_lock
from squadron.models.resource import Resource, ResourceStatus
from squadron.repositories.environment_repository import EnvironmentRepository
from squadron.repositories.resource_repository import ResourceRepository
from squadron.repositories.server_repository import ServerRepository
from squadron.schemas.resource import ResourceCreate, parse_resource_config
from squadron.schemas.variables import dump_variables
from squadron.services.deployment.docker_adapter import docker_adapter
from squadron.services.deployment.lifecycle import (
    DEPLOYABLE_FROM,
    REMOVABLE_FROM,
    StopAction,
    check_can_deploy,
    check_can_remove,
    deploying_deadline,
    is_stuck,
    plan_stop,
    sanitize_error,
    stuck_error_message,
)
from squadron.services.deployment.runtime_base import ContainerSpec, RuntimeAdapter, build_container_spec
from squadron.services.deployment.source_provider import SourceProvider, source_provider
from squadron.services.project_service import project_service
from squadron.services.remote.gateway import ExecutionGateway, gateway_for

logger = logging.getLogger(__name__)


class ResourceService:
    """
    Orchestration service for resources.

    Every operation first checks the caller owns the resource's project, so a
    non-owner is refused before learning whether the resource exists.
    """

    def __init__(
        self,
        adapter: Optional[RuntimeAdapter] = None,
        sources: Optional[SourceProvider] = None,
        gateway_factory: Optional[Callable[..., ExecutionGateway]] = None,
    ):
        self.adapter = adapter or docker_adapter
        self.sources = sources or source_provider
        self.gateway_factory = gateway_factory or gateway_for

    # -------------------------------------------------------------------------
    # Lookup helpers
    # -------------------------------------------------------------------------

    async def _expire_if_stuck(self, repo: ResourceRepository, resource: Resource) -> Resource:
        """Demote a resource stuck in ``deploying`` past its deadline to ``failed``."""
        if is_stuck(resource):
            logger.warning(f"Resource {resource.id} exceeded the deploy deadline, marking as failed")
            resource = await repo.transition(
                resource,
                ResourceStatus.FAILED,
                error=stuck_error_message(),
                container_id=None,
                host_port=None,
            )
        return resource

    async def _get_owned_resource(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> Resource:
        await project_service.get_owned_project(db, user_id, project_id)
        repo = ResourceRepository(db)
        resource = await repo.get_in_project(project_id, resource_id)
        if not resource:
            raise ResourceNotFoundError(str(resource_id))
        return await self._expire_if_stuck(repo, resource)

    async def _get_server(self, db: AsyncSession, resource: Resource):
        server = await ServerRepository(db).get_by_id(resource.server_id)
        if not server:
            raise ServerNotFoundError(str(resource.server_id))
        return server

    async def _build_spec(self, db: AsyncSession, resource: Resource) -> ContainerSpec:
        environment = await EnvironmentRepository(db).get_by_id(resource.environment_id)
        variables = environment.variables if environment else []
        return build_container_spec(resource, variables)

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    async def create_resource(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        data: ResourceCreate,
    ) -> Resource:
        """
        Validate and persist a new resource in ``created`` status.

        Args:
            db: Database session
            user_id: Caller
            project_id: Owning project
            data: Name, kind, target environment/server, kind config and variables

        Returns:
            Created resource

        Raises:
            ProjectNotFoundError / ProjectAccessDeniedError: Project missing or not owned
            InvalidResourceConfigError: Unknown kind, missing required fields, or a
                kind the target server does not support
            EnvironmentNotFoundError / ServerNotFoundError: Target missing
            ResourceAlreadyExistsError: Name taken in the project
        """
        await project_service.get_owned_project(db, user_id, project_id)
        config = parse_resource_config(data.kind, data.config, data.name)

        environment = await EnvironmentRepository(db).get_in_project(project_id, data.environment_id)
        if not environment:
            raise EnvironmentNotFoundError(str(data.environment_id))

        server = await ServerRepository(db).get_by_id(data.server_id)
        if not server:
            raise ServerNotFoundError(str(data.server_id))
        if server.supported_types and data.kind not in server.supported_types:
            raise InvalidResourceConfigError(
                data.kind, f"server '{server.name}' does not accept {data.kind} resources"
            )

        repo = ResourceRepository(db)
        if await repo.get_by_name(project_id, data.name):
            raise ResourceAlreadyExistsError(data.name)

        resource = await repo.create(Resource(
            project_id=project_id,
            environment_id=environment.id,
            server_id=server.id,
            name=data.name,
            kind=data.kind,
            status=ResourceStatus.CREATED.value,
            config=config.model_dump(mode="json"),
            variables=dump_variables(data.variables),
        ))
        logger.info(f"Created {resource.kind} resource {resource.id} ({resource.name}) in project {project_id}")
        return resource

    async def list_resources(self, db: AsyncSession, user_id: UUID, project_id: UUID) -> List[Resource]:
        await project_service.get_owned_project(db, user_id, project_id)
        repo = ResourceRepository(db)
        resources = await repo.list_for_project(project_id)
        return [await self._expire_if_stuck(repo, r) for r in resources]

    async def get_resource(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> Resource:
        return await self._get_owned_resource(db, user_id, project_id, resource_id)

    async def get_status(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> str:
        resource = await self._get_owned_resource(db, user_id, project_id, resource_id)
        return resource.status

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    async def check_deployable(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> Resource:
        """Run the synchronous checks of ``deploy`` without deploying."""
        resource = await self._get_owned_resource(db, user_id, project_id, resource_id)
        check_can_deploy(resource)
        return resource

    async def deploy(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> Resource:
        """
        Deploy a resource onto its server.

        The ``deploying`` status is committed before any remote call. On success
        the resource is ``running`` with its container id and host port; on any
        failure it is ``failed`` with a redacted error and no container id, and
        the error is re-raised.

        Raises:
            InvalidStateTransitionError: Resource is running, deploying or in error
            ResourceBusyError: Another operation on the resource is in progress
            ServerConnectionError: The target server is unreachable
            DeploymentError: The engine rejected the deploy
        """
        resource = await self._get_owned_resource(db, user_id, project_id, resource_id)
        repo = ResourceRepository(db)

        async with resource_lock(str(resource.id), "deploy"):
            check_can_deploy(resource)
            if not await repo.claim_for_deploy(resource.id, DEPLOYABLE_FROM):
                resource = await repo.reload(resource)
                raise InvalidStateTransitionError(str(resource.id), "deploy", resource.status)
            resource = await repo.reload(resource)
            logger.info(f"Deploying resource {resource.id} ({resource.name})")

            spec: Optional[ContainerSpec] = None
            try:
                server = await self._get_server(db, resource)
                spec = await self._build_spec(db, resource)
                gateway = self.gateway_factory(server)

                if not await gateway.probe():
                    raise ServerConnectionError(server.host or server.name, "Server is unreachable")

                spec.source_dir = await self.sources.materialize(spec)
                result = await self.adapter.deploy(spec, gateway)
            except Exception as e:
                error = sanitize_error(e, spec.secret_values if spec else ())
                await repo.transition(
                    resource,
                    ResourceStatus.FAILED,
                    error=error,
                    container_id=None,
                    host_port=None,
                )
                logger.error(f"Deployment of resource {resource.id} failed: {error}")
                if isinstance(e, DomainException):
                    raise
                raise DeploymentError(str(resource.id), error) from e

            resource = await repo.transition(
                resource,
                ResourceStatus.RUNNING,
                error=None,
                container_id=result.container_id,
                host_port=result.host_port,
            )
            logger.info(f"Resource {resource.id} running in container {result.container_id[:12]}")
            return resource

    async def _stop_container(self, db: AsyncSession, resource: Resource) -> Resource:
        """
        Stop and remove the resource's container.

        On failure the resource moves to ``error`` and keeps its container id so
        the stop can be retried or inspected.
        """
        repo = ResourceRepository(db)
        container_id = resource.container_id
        secrets = ()
        try:
            secrets = (await self._build_spec(db, resource)).secret_values
            server = await self._get_server(db, resource)
            await self.adapter.stop(container_id, self.gateway_factory(server))
        except Exception as e:
            error = sanitize_error(e, secrets)
            await repo.transition(resource, ResourceStatus.ERROR, error=error)
            logger.error(f"Stopping resource {resource.id} failed: {error}")
            if isinstance(e, DomainException):
                raise
            raise ContainerOperationError(container_id, "stop", error) from e

        resource = await repo.transition(
            resource,
            ResourceStatus.STOPPED,
            error=None,
            container_id=None,
            host_port=None,
        )
        logger.info(f"Resource {resource.id} stopped")
        return resource

    async def stop(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> Resource:
        """
        Stop a resource. Stopping an already stopped resource is a no-op.

        Raises:
            ContainerNotFoundError: Resource has no container and is not stopped
            InvalidStateTransitionError: A deploy is in flight
            ContainerOperationError: The engine failed to stop the container
        """
        resource = await self._get_owned_resource(db, user_id, project_id, resource_id)

        async with resource_lock(str(resource.id), "stop"):
            if plan_stop(resource) == StopAction.NOOP:
                logger.info(f"Resource {resource.id} is already stopped")
                return resource
            return await self._stop_container(db, resource)

    async def remove(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
    ) -> None:
        """
        Delete a resource, stopping its container first.

        A failed stop aborts the removal; the resource is left in ``error``. The
        delete itself only matches a row that is not being deployed, so a deploy
        claimed by another process in the meantime wins and the removal fails.

        Raises:
            InvalidStateTransitionError: A deploy is in flight
            ContainerOperationError: The engine failed to stop the container
        """
        resource = await self._get_owned_resource(db, user_id, project_id, resource_id)
        repo = ResourceRepository(db)

        async with resource_lock(str(resource.id), "remove"):
            if check_can_remove(resource):
                resource = await self._stop_container(db, resource)
            if not await repo.delete_if_in(resource.id, REMOVABLE_FROM):
                current = await repo.current_status(resource.id)
                if current is None:
                    raise ResourceNotFoundError(str(resource_id))
                raise InvalidStateTransitionError(str(resource.id), "remove", current)
            logger.info(f"Removed resource {resource_id} from project {project_id}")

    async def get_logs(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: UUID,
        resource_id: UUID,
        tail: Optional[int] = None,
    ) -> str:
        """
        Raises:
            ContainerNotFoundError: Resource has no container, or the engine lost it
        """
        resource = await self._get_owned_resource(db, user_id, project_id, resource_id)
        if not resource.container_id:
            raise ContainerNotFoundError(f"resource {resource.id} has no container")

        server = await self._get_server(db, resource)
        return await self.adapter.get_logs(resource.container_id, self.gateway_factory(server), tail)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def reconcile_stuck_resources(self, db: AsyncSession) -> int:
        """
        Mark every resource stuck in ``deploying`` past the deadline as failed.

        Returns:
            Number of resources demoted
        """
        ids = await ResourceRepository(db).fail_stuck(deploying_deadline(), stuck_error_message())
        for resource_id in ids:
            logger.warning(f"Reconciled stuck resource {resource_id}: deploying -> failed")
        return len(ids)


resource_service = ResourceService()
