"""
Application configuration using Pydantic Settings.
"""
import os
import tempfile
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "Squadron"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "info"
    DEBUG: bool = False

    # Database Schema
    DB_SCHEMA: str = "squadron"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_STATEMENT_TIMEOUT_SECONDS: int = 60

    # Security
    API_KEY_SALT: str
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost"

    # Celery
    REDIS_URL: str = "redis://redis:6379/0"

    # Container engine
    DOCKER_BINARY: str = "docker"
    CONTAINER_PREFIX: str = "squadron"
    DOCKER_COMMAND_TIMEOUT: int = 30   # stop / rm / inspect / logs
    DOCKER_DEPLOY_TIMEOUT: int = 300   # pull + create + start
    CONTAINER_LOG_TAIL: int = 100
    CONTAINER_LOG_TAIL_MAX: int = 5000

    # Remote servers
    SSH_CONNECT_TIMEOUT: int = 10
    SSH_DEFAULT_PORT: int = 22
    # Relative to the home directory of the user commands run as
    REMOTE_WORKDIR: str = ".squadron"

    # Source workspaces for repository-backed resources
    WORKSPACE_DIR: str = os.path.join(tempfile.gettempdir(), "squadron-workspace")

    # Lifecycle
    DEPLOYING_TIMEOUT_MINUTES: int = 15
    RECONCILE_INTERVAL_SECONDS: int = 60
    RESOURCE_ERROR_MAX_LENGTH: int = 2000

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


settings = Settings()
