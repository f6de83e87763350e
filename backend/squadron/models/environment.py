"""
Environment model. Holds the variables shared by every resource deployed into it.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from squadron.core.database import Base


class EnvironmentType(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"
    TEST = "test"


class Environment(Base):
    """Environment record."""

    __tablename__ = "environments"
    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_environments_project_name"),
        CheckConstraint(
            "type IN ('dev', 'staging', 'prod', 'test')",
            name="type_valid",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False, default=EnvironmentType.DEV.value)
    # Ordered list of {"key", "value", "is_secret"}
    variables = Column(JSONB, default=list, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="environments")
