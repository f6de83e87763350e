"""
API v1 router that includes all endpoint routers.
"""
from fastapi import APIRouter

from squadron.api.v1.endpoints import (
    servers,
    projects,
    environments,
    resources,
)

# Create main API router
api_router = APIRouter()

api_router.include_router(
    servers.router,
    prefix="/servers",
    tags=["servers"],
)

api_router.include_router(
    projects.router,
    prefix="/projects",
    tags=["projects"],
)

api_router.include_router(
    environments.router,
    prefix="/projects/{project_id}/environments",
    tags=["environments"],
)

api_router.include_router(
    resources.router,
    prefix="/projects/{project_id}/resources",
    tags=["resources"],
)
