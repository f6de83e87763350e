"""
Pydantic schemas for Resource.

Each resource kind has its own configuration model. ``RESOURCE_CONFIG_MODELS`` is
the single table that maps a kind to its model; adding a kind means adding a row.
"""
import secrets
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type
from uuid import UUID

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from squadron.core.exceptions import InvalidResourceConfigError
from squadron.models.resource import ResourceKind, ResourceStatus
from squadron.schemas.variables import EnvVar, SECRET_MASK, mask_variables, reject_line_breaks


class DatabaseType(str, Enum):
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MONGODB = "mongodb"


class ServiceType(str, Enum):
    NODEJS = "nodejs"
    PYTHON = "python"
    PHP = "php"
    CUSTOM_DOCKER = "custom_docker"
    SUPABASE = "supabase"
    POCKETBASE = "pocketbase"
    APPWRITE = "appwrite"


class ResourceConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    docker_image_url: Optional[str] = Field(None, max_length=500)
    host_port: Optional[int] = Field(None, ge=1, le=65535)


class DatabaseConfig(ResourceConfigBase):
    database_type: DatabaseType = DatabaseType.POSTGRESQL
    database_name: Optional[str] = Field(None, max_length=255)
    admin_email: Optional[str] = Field(None, max_length=255)
    initial_database: Optional[str] = Field(None, max_length=255)
    db_password: Optional[str] = Field(None, max_length=255)

    @field_validator("database_name", "initial_database", "db_password")
    @classmethod
    def single_line(cls, v: Optional[str]) -> Optional[str]:
        return reject_line_breaks(v)


class ServiceConfig(ResourceConfigBase):
    port: int = Field(..., ge=1, le=65535)
    service_type: ServiceType = ServiceType.NODEJS
    docker_compose_content: Optional[str] = None
    repository_url: Optional[str] = Field(None, max_length=500)
    branch: Optional[str] = Field(None, max_length=255)

    @field_validator("docker_compose_content")
    @classmethod
    def compose_must_declare_services(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            document = yaml.safe_load(v)
        except yaml.YAMLError as e:
            raise ValueError(f"not valid YAML: {e.__class__.__name__}")
        if not isinstance(document, dict) or not isinstance(document.get("services"), dict):
            raise ValueError("compose file must define a services mapping")
        return v


class WebsiteConfig(ResourceConfigBase):
    port: int = Field(default=80, ge=1, le=65535)
    repository_url: Optional[str] = Field(None, max_length=500)
    branch: Optional[str] = Field(None, max_length=255)


class GitConfig(ResourceConfigBase):
    repository_url: str = Field(..., min_length=1, max_length=500)
    branch: str = Field(..., min_length=1, max_length=255)
    service_type: ServiceType = ServiceType.NODEJS
    port: Optional[int] = Field(None, ge=1, le=65535)


RESOURCE_CONFIG_MODELS: Dict[str, Type[ResourceConfigBase]] = {
    ResourceKind.DATABASE.value: DatabaseConfig,
    ResourceKind.SERVICE.value: ServiceConfig,
    ResourceKind.WEBSITE.value: WebsiteConfig,
    ResourceKind.GITHUB.value: GitConfig,
    ResourceKind.GITLAB.value: GitConfig,
    ResourceKind.BITBUCKET.value: GitConfig,
}

# Config fields never echoed back to callers
SECRET_CONFIG_FIELDS = ("db_password",)


def _describe(errors: List[Dict[str, Any]]) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_resource_config(kind: str, config: Optional[Dict[str, Any]], resource_name: str) -> ResourceConfigBase:
    """
    Validate a kind/config pair through the kind table and apply creation defaults.

    Args:
        kind: Resource kind
        config: Raw configuration payload
        resource_name: Used as the default database name

    Returns:
        The kind's configuration model

    Raises:
        InvalidResourceConfigError: If the kind is unknown or required fields are missing
    """
    model = RESOURCE_CONFIG_MODELS.get(kind)
    if model is None:
        raise InvalidResourceConfigError(str(kind), "unknown resource kind")

    try:
        parsed = model.model_validate(config or {})
    except PydanticValidationError as e:
        raise InvalidResourceConfigError(kind, _describe(e.errors()))

    if isinstance(parsed, DatabaseConfig):
        if not parsed.database_name:
            parsed.database_name = resource_name
        if not parsed.db_password:
            parsed.db_password = secrets.token_urlsafe(24)
    return parsed


def load_resource_config(kind: str, config: Dict[str, Any]) -> ResourceConfigBase:
    """Rebuild the config model for a stored resource. Stored rows are already valid."""
    return RESOURCE_CONFIG_MODELS[kind].model_validate(config or {})


def mask_config(config: Dict[str, Any]) -> Dict[str, Any]:
    masked = dict(config or {})
    for field in SECRET_CONFIG_FIELDS:
        if masked.get(field):
            masked[field] = SECRET_MASK
    return masked


class ResourceCreate(BaseModel):
    """Schema for creating a Resource. ``config`` is validated against ``kind``."""
    name: str = Field(..., min_length=1, max_length=255, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
    kind: str = Field(..., max_length=20)
    environment_id: UUID
    server_id: UUID
    config: Dict[str, Any] = Field(default_factory=dict)
    variables: List[EnvVar] = Field(default_factory=list)


class ResourceResponse(BaseModel):
    """Schema for Resource response. Secrets are masked."""
    id: UUID
    project_id: UUID
    environment_id: UUID
    server_id: UUID
    name: str
    kind: str
    status: ResourceStatus
    error: Optional[str] = None
    container_id: Optional[str] = None
    host_port: Optional[int] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    variables: List[Dict[str, Any]] = Field(default_factory=list)
    status_changed_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_resource(cls, resource) -> "ResourceResponse":
        return cls(
            id=resource.id,
            project_id=resource.project_id,
            environment_id=resource.environment_id,
            server_id=resource.server_id,
            name=resource.name,
            kind=resource.kind,
            status=resource.status,
            error=resource.error,
            container_id=resource.container_id,
            host_port=resource.host_port,
            config=mask_config(resource.config),
            variables=mask_variables(resource.variables),
            status_changed_at=resource.status_changed_at,
            created_at=resource.created_at,
            updated_at=resource.updated_at,
        )


class ResourceStatusResponse(BaseModel):
    status: ResourceStatus


class ResourceDeployQueued(BaseModel):
    """Returned when a deploy is handed to the worker."""
    resource_id: UUID
    task_id: str
