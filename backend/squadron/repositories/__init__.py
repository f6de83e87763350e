"""
Repository layer for database access.
"""
from squadron.repositories.base import BaseRepository
from squadron.repositories.environment_repository import EnvironmentRepository
from squadron.repositories.project_repository import ProjectRepository
from squadron.repositories.resource_repository import ResourceRepository
from squadron.repositories.server_repository import ServerRepository

__all__ = [
    "BaseRepository",
    "ProjectRepository",
    "EnvironmentRepository",
    "ServerRepository",
    "ResourceRepository",
]
