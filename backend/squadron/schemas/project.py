"""
Pydantic schemas for Project and Environment.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from squadron.models.environment import EnvironmentType
from squadron.models.project import ProjectStatus
from squadron.schemas.variables import EnvVar, mask_variables


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None


class ProjectResponse(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnvironmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: EnvironmentType = EnvironmentType.DEV
    variables: List[EnvVar] = Field(default_factory=list)


class EnvironmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[EnvironmentType] = None
    # Replaces the whole variable list when provided
    variables: Optional[List[EnvVar]] = None


class EnvironmentResponse(BaseModel):
    """Schema for Environment response. Secret values are masked."""
    id: UUID
    project_id: UUID
    name: str
    type: EnvironmentType
    variables: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_environment(cls, environment) -> "EnvironmentResponse":
        return cls(
            id=environment.id,
            project_id=environment.project_id,
            name=environment.name,
            type=environment.type,
            variables=mask_variables(environment.variables),
            created_at=environment.created_at,
            updated_at=environment.updated_at,
        )
