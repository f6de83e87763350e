"""
Docker runtime adapter.

Drives the docker CLI (and ``docker compose``) through an execution gateway, so
the same code serves the local server and remote servers. Environment values
are streamed to the engine as an env-file on stdin and never appear in a command
line or a log message.
"""
import logging
from typing import Iterable, List, Optional

import yaml

from squadron.core.config import settings
from squadron.core.exceptions import (
    ContainerNotFoundError,
    ContainerOperationError,
    DeploymentError,
)
from squadron.services.deployment.lifecycle import redact
from squadron.services.deployment.runtime_base import (
    ContainerSpec,
    DeploymentResult,
    RuntimeAdapter,
)
from squadron.services.remote.gateway import ExecutionGateway

logger = logging.getLogger(__name__)

COMPOSE_PREFIX = "compose:"
NOT_FOUND_MARKERS = ("No such container", "No such object")


def _is_not_found(stderr: str) -> bool:
    return any(marker in stderr for marker in NOT_FOUND_MARKERS)


def compose_with_environment(content: str, keys: Iterable[str]) -> str:
    """
    Pass ``keys`` through to every service of a compose file.

    Each service gets a ``KEY: ${KEY}`` entry, so the values come from the
    env-file compose reads on stdin and are never written to the server.
    Entries the compose file already declares are left alone.
    """
    keys = list(keys)
    document = yaml.safe_load(content) or {}
    services = document.get("services") or {}
    if not keys or not services:
        return content

    for name, service in services.items():
        if service is None:
            service = services[name] = {}
        environment = service.get("environment")
        if isinstance(environment, list):
            declared = {str(entry).split("=", 1)[0] for entry in environment}
            environment.extend(f"{key}=${{{key}}}" for key in keys if key not in declared)
        else:
            environment = dict(environment or {})
            for key in keys:
                environment.setdefault(key, f"${{{key}}}")
            service["environment"] = environment
    return yaml.safe_dump(document, sort_keys=False)


class DockerRuntimeAdapter(RuntimeAdapter):
    """
    Runtime adapter for the Docker engine.

    Single-image resources become one container named ``<prefix>-<resource id>``.
    Resources with compose content become a compose project of the same name,
    tracked with the container id ``compose:<name>``.
    """

    def __init__(
        self,
        docker_binary: Optional[str] = None,
        command_timeout: Optional[int] = None,
        deploy_timeout: Optional[int] = None,
    ):
        self.docker = docker_binary or settings.DOCKER_BINARY
        self.command_timeout = command_timeout or settings.DOCKER_COMMAND_TIMEOUT
        self.deploy_timeout = deploy_timeout or settings.DOCKER_DEPLOY_TIMEOUT

    def _build_run_command(self, spec: ContainerSpec) -> List[str]:
        """
        Build the docker run command.

        A missing host port maps to 0 so Docker assigns an ephemeral one.
        """
        port_mapping = f"{spec.host_port or 0}:{spec.container_port}"
        cmd = [
            self.docker, "run",
            "-d",
            "--name", spec.name,
            "--label", f"{settings.CONTAINER_PREFIX}.resource={spec.resource_id}",
            "--restart", "unless-stopped",
            "-p", port_mapping,
        ]
        if spec.env:
            cmd.extend(["--env-file", "/dev/stdin"])
        cmd.append(spec.image)
        return cmd

    def _compose_file(self, project: str) -> str:
        return f"{settings.REMOTE_WORKDIR}/{project}/docker-compose.yml"

    async def _remove_by_name(self, gateway: ExecutionGateway, name: str) -> None:
        """Force-remove a container by name, ignoring a missing one."""
        return_code, _, stderr = await gateway.run(
            [self.docker, "rm", "-f", name], timeout=self.command_timeout
        )
        if return_code == 0:
            logger.info(f"Removed container {name} on {gateway.name}")
        elif not _is_not_found(stderr):
            logger.warning(f"Could not remove container {name} on {gateway.name}: {stderr}")

    async def _get_host_port(self, gateway: ExecutionGateway, container_id: str, container_port: int) -> Optional[int]:
        """
        Read back the host port Docker assigned.

        Output looks like "0.0.0.0:49153" or "[::]:49153", one binding per line.
        """
        return_code, stdout, _ = await gateway.run(
            [self.docker, "port", container_id, str(container_port)],
            timeout=self.command_timeout,
        )
        if return_code != 0 or not stdout:
            return None
        for line in stdout.splitlines():
            if ":" in line:
                try:
                    return int(line.rsplit(":", 1)[1])
                except (ValueError, IndexError):
                    continue
        return None

    async def deploy(self, spec: ContainerSpec, gateway: ExecutionGateway) -> DeploymentResult:
        """
        Create and start the container (or compose stack) for a resource.

        Any stale container with the same name is removed first, and a container
        left behind by a failed run is cleaned up before the error is raised.

        Args:
            spec: What to run
            gateway: Where to run it

        Returns:
            DeploymentResult with the container id and host port

        Raises:
            DeploymentError: The engine rejected the deploy or timed out
        """
        if spec.is_compose:
            return await self._deploy_compose(spec, gateway)

        logger.info(f"Deploying {spec.image} as {spec.name} on {gateway.name}")
        await self._remove_by_name(gateway, spec.name)

        cmd = self._build_run_command(spec)
        return_code, stdout, stderr = await gateway.run(
            cmd,
            timeout=self.deploy_timeout,
            input=spec.env_file() if spec.env else None,
        )

        if return_code != 0:
            reason = redact(stderr or "Unknown error", spec.secret_values)
            logger.error(f"Failed to start container {spec.name} on {gateway.name}: {reason}")
            await self._remove_by_name(gateway, spec.name)
            raise DeploymentError(str(spec.resource_id), reason)

        lines = stdout.splitlines()
        container_id = lines[-1].strip()[:64] if lines else ""
        if not container_id:
            await self._remove_by_name(gateway, spec.name)
            raise DeploymentError(str(spec.resource_id), "Engine did not return a container id")

        host_port = spec.host_port
        if not host_port:
            host_port = await self._get_host_port(gateway, container_id, spec.container_port)
            if not host_port:
                logger.error(f"Failed to get auto-assigned port for container {container_id}")
                await self._remove_by_name(gateway, spec.name)
                raise DeploymentError(
                    str(spec.resource_id), "Failed to retrieve auto-assigned port from Docker"
                )

        logger.info(f"Started container {container_id[:12]} for resource {spec.resource_id} on port {host_port}")
        return DeploymentResult(container_id=container_id, host_port=host_port, image=spec.image)

    async def _deploy_compose(self, spec: ContainerSpec, gateway: ExecutionGateway) -> DeploymentResult:
        project = spec.name
        compose_file = self._compose_file(project)
        logger.info(f"Deploying compose project {project} on {gateway.name}")

        content = compose_with_environment(spec.compose_content, [e.key for e in spec.env])
        return_code, _, stderr = await gateway.write_file(
            compose_file, content, timeout=self.command_timeout
        )
        if return_code != 0:
            raise DeploymentError(
                str(spec.resource_id),
                f"Could not write compose file: {redact(stderr, spec.secret_values)}",
            )

        cmd = [self.docker, "compose", "-p", project, "-f", compose_file]
        if spec.env:
            cmd.extend(["--env-file", "/dev/stdin"])
        cmd.extend(["up", "-d", "--remove-orphans"])

        return_code, _, stderr = await gateway.run(
            cmd,
            timeout=self.deploy_timeout,
            input=spec.env_file() if spec.env else None,
        )
        if return_code != 0:
            reason = redact(stderr or "Unknown error", spec.secret_values)
            logger.error(f"Compose project {project} failed on {gateway.name}: {reason}")
            await gateway.run(
                [self.docker, "compose", "-p", project, "down", "--remove-orphans"],
                timeout=self.command_timeout,
            )
            raise DeploymentError(str(spec.resource_id), reason)

        logger.info(f"Started compose project {project} for resource {spec.resource_id}")
        return DeploymentResult(
            container_id=f"{COMPOSE_PREFIX}{project}",
            host_port=spec.host_port,
            image=None,
        )

    async def stop(self, container_id: str, gateway: ExecutionGateway) -> None:
        """
        Stop and remove a container or compose stack.

        Raises:
            ContainerOperationError: The engine failed for a reason other than
                the container being gone
        """
        if container_id.startswith(COMPOSE_PREFIX):
            project = container_id[len(COMPOSE_PREFIX):]
            return_code, _, stderr = await gateway.run(
                [self.docker, "compose", "-p", project, "down", "--remove-orphans"],
                timeout=self.command_timeout,
            )
            if return_code != 0:
                raise ContainerOperationError(container_id, "stop", stderr or "Unknown error")
            logger.info(f"Stopped compose project {project} on {gateway.name}")
            return

        return_code, _, stderr = await gateway.run(
            [self.docker, "stop", container_id], timeout=self.command_timeout
        )
        if return_code != 0:
            if _is_not_found(stderr):
                logger.warning(f"Container {container_id} not found, considering it stopped")
                return
            logger.error(f"Failed to stop container {container_id}: {stderr}")
            raise ContainerOperationError(container_id, "stop", stderr or "Unknown error")

        return_code, _, stderr = await gateway.run(
            [self.docker, "rm", container_id], timeout=self.command_timeout
        )
        if return_code != 0 and not _is_not_found(stderr):
            logger.error(f"Failed to remove container {container_id}: {stderr}")
            raise ContainerOperationError(container_id, "remove", stderr or "Unknown error")

        logger.info(f"Stopped and removed container {container_id[:12]} on {gateway.name}")

    async def get_logs(self, container_id: str, gateway: ExecutionGateway, tail: Optional[int] = None) -> str:
        """
        Get the tail of a container's logs, stdout and stderr combined.

        ``tail`` is clamped to CONTAINER_LOG_TAIL_MAX.
        """
        tail = max(1, min(tail or settings.CONTAINER_LOG_TAIL, settings.CONTAINER_LOG_TAIL_MAX))

        if container_id.startswith(COMPOSE_PREFIX):
            project = container_id[len(COMPOSE_PREFIX):]
            cmd = [self.docker, "compose", "-p", project, "logs", "--tail", str(tail), "--timestamps", "--no-color"]
        else:
            cmd = [self.docker, "logs", "--tail", str(tail), "--timestamps", container_id]

        return_code, stdout, stderr = await gateway.run(cmd, timeout=self.command_timeout)

        if return_code != 0:
            if _is_not_found(stderr):
                raise ContainerNotFoundError(container_id)
            raise ContainerOperationError(container_id, "logs", stderr or "Unknown error")

        if container_id.startswith(COMPOSE_PREFIX):
            # compose already interleaves its services' streams
            return "\n".join(part for part in (stdout, stderr) if part)

        # Both streams carry RFC 3339 timestamps, so sorting restores the interleaving
        lines = [line for line in (stdout.splitlines() + stderr.splitlines()) if line]
        lines.sort(key=lambda line: line.split(" ", 1)[0])
        return "\n".join(lines[-tail:])


docker_adapter = DockerRuntimeAdapter()
