"""
Resource model: the unit driven through the deploy/stop/remove lifecycle.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Text, DateTime, Integer, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship, validates

from squadron.core.database import Base


class ResourceStatus(str, Enum):
    """Lifecycle states. DEPLOYING is the only in-flight state."""
    CREATED = "created"
    DEPLOYING = "deploying"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"
    ERROR = "error"


class ResourceKind(str, Enum):
    DATABASE = "database"
    SERVICE = "service"
    WEBSITE = "website"
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


RESOURCE_STATUSES = tuple(s.value for s in ResourceStatus)


class Resource(Base):
    """Resource record."""

    __tablename__ = "resources"
    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_resources_project_name"),
        CheckConstraint(
            "status IN ('created', 'deploying', 'running', 'stopped', 'failed', 'error')",
            name="status_valid",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    environment_id = Column(UUID(as_uuid=True), ForeignKey("environments.id", ondelete="CASCADE"), nullable=False, index=True)
    # Servers cannot be deleted while resources point at them
    server_id = Column(UUID(as_uuid=True), ForeignKey("servers.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ResourceStatus.CREATED.value, index=True)
    error = Column(Text, nullable=True)
    container_id = Column(String(255), nullable=True)
    host_port = Column(Integer, nullable=True)
    config = Column(JSONB, default=dict, nullable=False)
    # Resource-level overrides: list of {"key", "value", "is_secret"}
    variables = Column(JSONB, default=list, nullable=False)
    status_changed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    environment = relationship("Environment")
    server = relationship("Server")

    @validates("status")
    def _validate_status(self, key, value):
        value = value.value if isinstance(value, ResourceStatus) else value
        if value not in RESOURCE_STATUSES:
            raise ValueError(f"Invalid resource status: {value}")
        return value
