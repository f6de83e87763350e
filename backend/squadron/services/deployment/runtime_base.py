"""
Container runtime interface and the resource-to-container translation.

``build_container_spec`` turns a resource (plus its environment) into a
``ContainerSpec``; a ``RuntimeAdapter`` starts that container
on one server.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from squadron.core.config import settings
from squadron.models.resource import ResourceKind
from squadron.schemas.resource import (
    DatabaseConfig,
    DatabaseType,
    ServiceType,
    load_resource_config,
)
from squadron.services.remote.gateway import ExecutionGateway

SERVICE_IMAGES = {
    ServiceType.NODEJS.value: "node:18",
    ServiceType.PYTHON.value: "python:3.12-slim",
    ServiceType.PHP.value: "php:8.2-apache",
}
DEFAULT_SERVICE_IMAGE = "node:18"

DATABASE_IMAGES = {
    DatabaseType.POSTGRESQL.value: "postgres:16",
    DatabaseType.MYSQL.value: "mysql:8.0",
    DatabaseType.MONGODB.value: "mongo:7",
}

DATABASE_PORTS = {
    DatabaseType.POSTGRESQL.value: 5432,
    DatabaseType.MYSQL.value: 3306,
    DatabaseType.MONGODB.value: 27017,
}

WEBSITE_IMAGE = "nginx:alpine"


@dataclass
class EnvEntry:
    key: str
    value: str
    is_secret: bool = False


@dataclass
class ContainerSpec:
    """
    Everything the engine needs to run one resource.

    ``source_dir`` records the workspace the source provider prepared. It is
    informational: the engine always runs ``image`` or ``compose_content``.
    """

    resource_id: UUID
    name: str
    image: str
    container_port: int
    host_port: Optional[int] = None
    env: List[EnvEntry] = field(default_factory=list)
    compose_content: Optional[str] = None
    repository_url: Optional[str] = None
    branch: Optional[str] = None
    source_dir: Optional[str] = None

    @property
    def is_compose(self) -> bool:
        return bool(self.compose_content)

    @property
    def secret_values(self) -> List[str]:
        return [e.value for e in self.env if e.is_secret and e.value]

    def env_file(self) -> str:
        """Render the environment as env-file text, one KEY=value per line."""
        return "".join(f"{e.key}={e.value}\n" for e in self.env)


@dataclass
class DeploymentResult:
    """Result of a successful deploy."""

    container_id: str
    host_port: Optional[int] = None
    image: Optional[str] = None


def container_name(resource_id: UUID, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.CONTAINER_PREFIX}-{resource_id}"


def resolve_image(kind: str, config) -> str:
    """Explicit image reference, else the default image for the kind."""
    if getattr(config, "docker_image_url", None):
        return config.docker_image_url
    if kind == ResourceKind.DATABASE.value:
        return DATABASE_IMAGES[config.database_type]
    if kind == ResourceKind.WEBSITE.value:
        return WEBSITE_IMAGE
    return SERVICE_IMAGES.get(getattr(config, "service_type", None), DEFAULT_SERVICE_IMAGE)


def resolve_container_port(kind: str, config) -> int:
    """Configured port, else the engine port for databases, else 3000 for nodejs and 80 otherwise."""
    port = getattr(config, "port", None)
    if port:
        return port
    if kind == ResourceKind.DATABASE.value:
        return DATABASE_PORTS[config.database_type]
    if getattr(config, "service_type", None) == ServiceType.NODEJS.value:
        return 3000
    return 80


def database_init_env(config: DatabaseConfig) -> List[EnvEntry]:
    """Initialization variables understood by the official database images."""
    name = config.initial_database or config.database_name
    password = config.db_password or ""
    if config.database_type == DatabaseType.MYSQL.value:
        return [
            EnvEntry("MYSQL_DATABASE", name),
            EnvEntry("MYSQL_ROOT_PASSWORD", password, is_secret=True),
        ]
    if config.database_type == DatabaseType.MONGODB.value:
        return [
            EnvEntry("MONGO_INITDB_DATABASE", name),
            EnvEntry("MONGO_INITDB_ROOT_USERNAME", "root"),
            EnvEntry("MONGO_INITDB_ROOT_PASSWORD", password, is_secret=True),
        ]
    return [
        EnvEntry("POSTGRES_DB", name),
        EnvEntry("POSTGRES_PASSWORD", password, is_secret=True),
    ]


def merge_env(*layers: Iterable[Dict[str, Any]]) -> List[EnvEntry]:
    """Merge variable layers in order; a later layer overrides an earlier one by key."""
    merged: Dict[str, EnvEntry] = {}
    for layer in layers:
        for var in layer or []:
            if isinstance(var, EnvEntry):
                merged[var.key] = var
            else:
                merged[var["key"]] = EnvEntry(
                    key=var["key"],
                    value=str(var.get("value", "")),
                    is_secret=bool(var.get("is_secret", False)),
                )
    return list(merged.values())


def build_container_spec(resource, environment_variables: Optional[List[Dict[str, Any]]] = None) -> ContainerSpec:
    """
    Translate a stored resource into a ContainerSpec.

    Environment variables come first and are overridden by the resource's own
    variables with the same key.
    """
    config = load_resource_config(resource.kind, resource.config)

    base_env: List[EnvEntry] = []
    if isinstance(config, DatabaseConfig):
        base_env = database_init_env(config)

    return ContainerSpec(
        resource_id=resource.id,
        name=container_name(resource.id),
        image=resolve_image(resource.kind, config),
        container_port=resolve_container_port(resource.kind, config),
        host_port=config.host_port,
        env=merge_env(base_env, environment_variables, resource.variables),
        compose_content=getattr(config, "docker_compose_content", None),
        repository_url=getattr(config, "repository_url", None),
        branch=getattr(config, "branch", None),
    )


class RuntimeAdapter(ABC):
    """
    Boundary to a server's container engine.

    Adapters return values or raise; they never write resource state.
    """

    @abstractmethod
    async def deploy(self, spec: ContainerSpec, gateway: ExecutionGateway) -> DeploymentResult:
        """
        Create and start the container described by ``spec``.

        Raises:
            DeploymentError: The engine rejected create/start or timed out
        """

    @abstractmethod
    async def stop(self, container_id: str, gateway: ExecutionGateway) -> None:
        """
        Stop then remove a container. A container that no longer exists is not an error.

        Raises:
            ContainerOperationError: The engine failed for any other reason
        """

    @abstractmethod
    async def get_logs(self, container_id: str, gateway: ExecutionGateway, tail: Optional[int] = None) -> str:
        """
        Return the last ``tail`` lines of combined stdout/stderr with timestamps.

        Raises:
            ContainerNotFoundError: The container does not exist
            ContainerOperationError: The engine failed for any other reason
        """
