"""
Source providers prepare a repository checkout before a resource is deployed.

Fetching and building sources belongs to a build pipeline outside the
orchestrator. ``WorkspaceSourceProvider`` only reserves a clean scratch
directory per resource; a provider that actually clones can replace it without
touching the orchestrator.
"""
import asyncio
import logging
import os
import shutil
from abc import ABC, abstractmethod
from typing import Optional

from squadron.core.config import settings
from squadron.services.deployment.runtime_base import ContainerSpec

logger = logging.getLogger(__name__)


class SourceProvider(ABC):
    """Boundary for materializing a resource's source code."""

    @abstractmethod
    async def materialize(self, spec: ContainerSpec) -> Optional[str]:
        """
        Prepare sources for ``spec``.

        Returns:
            Path of the prepared workspace, or None if the resource has no repository
        """


class WorkspaceSourceProvider(SourceProvider):
    """Creates an empty workspace directory for repository-backed resources."""

    def __init__(self, workspace_dir: Optional[str] = None):
        self.workspace_dir = workspace_dir or settings.WORKSPACE_DIR

    def workspace_for(self, spec: ContainerSpec) -> str:
        return os.path.join(self.workspace_dir, str(spec.resource_id))

    @staticmethod
    def _reset_workspace(path: str) -> None:
        if os.path.exists(path):
            shutil.rmtree(path)
        os.makedirs(path)

    async def materialize(self, spec: ContainerSpec) -> Optional[str]:
        if not spec.repository_url:
            return None

        path = self.workspace_for(spec)
        await asyncio.to_thread(self._reset_workspace, path)

        logger.info(
            f"Prepared workspace {path} for {spec.repository_url}"
            f"{'@' + spec.branch if spec.branch else ''} (no fetch performed)"
        )
        return path


source_provider = WorkspaceSourceProvider()
