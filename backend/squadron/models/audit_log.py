"""
Audit Log model for tracking mutating operations.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB, INET

from squadron.core.database import Base


class AuditLog(Base):
    """Audit log for tracking operations."""

    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False)  # 'deploy_resource', 'create_server', ...
    resource_type = Column(String(50), nullable=False)  # 'resource', 'server', 'project', 'environment'
    resource_id = Column(UUID(as_uuid=True), nullable=True)
    details_ = Column("details", JSONB, default=dict, nullable=False)
    ip_address = Column(INET, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
