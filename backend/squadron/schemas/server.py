"""
Pydantic schemas for Server. Private keys are write-only.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from squadron.models.resource import ResourceKind
from squadron.models.server import ServerType, ServerStatus


class ServerCreate(BaseModel):
    """Schema for registering a remote server."""
    name: str = Field(..., min_length=1, max_length=255)
    type: ServerType = ServerType.REMOTE
    host: str = Field(..., min_length=1, max_length=255)
    ssh_port: int = Field(default=22, ge=1, le=65535)
    ssh_username: str = Field(..., min_length=1, max_length=255)
    ssh_private_key: str = Field(..., min_length=1)
    is_build_server: bool = False
    is_swarm_manager: bool = False
    is_swarm_worker: bool = False
    supported_types: List[ResourceKind] = Field(default_factory=list)


class ServerUpdate(BaseModel):
    """Schema for updating a server. Only provided fields change."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[ServerType] = None
    host: Optional[str] = Field(None, min_length=1, max_length=255)
    ssh_port: Optional[int] = Field(None, ge=1, le=65535)
    ssh_username: Optional[str] = Field(None, min_length=1, max_length=255)
    ssh_private_key: Optional[str] = Field(None, min_length=1)
    is_build_server: Optional[bool] = None
    is_swarm_manager: Optional[bool] = None
    is_swarm_worker: Optional[bool] = None
    supported_types: Optional[List[ResourceKind]] = None


class ServerResponse(BaseModel):
    """Schema for Server response."""
    id: UUID
    name: str
    type: ServerType
    host: Optional[str] = None
    ssh_port: Optional[int] = None
    ssh_username: Optional[str] = None
    has_private_key: bool = False
    is_build_server: bool
    is_swarm_manager: bool
    is_swarm_worker: bool
    supported_types: List[str] = Field(default_factory=list)
    status: ServerStatus
    last_checked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ConnectionCheckResponse(BaseModel):
    """Outcome of an on-demand reachability check."""
    server_id: UUID
    reachable: bool
    status: ServerStatus
    persisted: bool = False
    checked_at: datetime
