"""
Server model: a deployment target reachable locally or over SSH.
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, Index, CheckConstraint, text
from sqlalchemy.dialects.postgresql import UUID, JSONB

from squadron.core.database import Base


class ServerType(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class ServerStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class Server(Base):
    """Server record."""

    __tablename__ = "servers"
    __table_args__ = (
        # At most one local server per installation
        Index(
            "uq_servers_single_local",
            "type",
            unique=True,
            postgresql_where=text("type = 'local'"),
        ),
        CheckConstraint("type IN ('local', 'remote')", name="type_valid"),
        CheckConstraint("status IN ('online', 'offline')", name="status_valid"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True, index=True)
    type = Column(String(20), nullable=False, default=ServerType.REMOTE.value)
    host = Column(String(255), nullable=True, unique=True)
    ssh_port = Column(Integer, nullable=True)
    ssh_username = Column(String(255), nullable=True)
    ssh_private_key = Column(Text, nullable=True)
    # Advisory role flags, not used for placement
    is_build_server = Column(Boolean, nullable=False, default=False)
    is_swarm_manager = Column(Boolean, nullable=False, default=False)
    is_swarm_worker = Column(Boolean, nullable=False, default=False)
    supported_types = Column(JSONB, default=list, nullable=False)
    status = Column(String(20), nullable=False, default=ServerStatus.OFFLINE.value)
    last_checked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def is_local(self) -> bool:
        return self.type == ServerType.LOCAL.value

    @property
    def has_private_key(self) -> bool:
        return bool(self.ssh_private_key)
