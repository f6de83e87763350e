"""
Remote execution gateway.

Runs engine commands on a server and proves the server is reachable. The local
server runs commands as subprocesses; remote servers run them over SSH. Every
command is executed from the home directory of the user it runs as, so relative
paths mean the same thing on both.
"""
import asyncio
import logging
import os
import shlex
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import asyncssh

from squadron.core.config import settings

logger = logging.getLogger(__name__)

CommandResult = Tuple[int, str, str]

_WRITE_FILE_SCRIPT = 'mkdir -p "$(dirname "$1")" && cat > "$1"'


class ExecutionGateway(ABC):
    """Executes commands on one server."""

    name: str = "server"

    @abstractmethod
    async def run(
        self,
        cmd: List[str],
        timeout: int,
        input: Optional[str] = None,
    ) -> CommandResult:
        """
        Run a command and collect its output.

        Args:
            cmd: Command arguments, never passed through a local shell
            timeout: Seconds before the command is abandoned
            input: Text written to the command's stdin

        Returns:
            Tuple of (return_code, stdout, stderr). A timeout or transport failure
            is reported as return code -1, never raised.
        """

    @abstractmethod
    async def probe(self, timeout: Optional[int] = None) -> bool:
        """Return True if the server accepts a session. Never raises."""

    async def write_file(self, path: str, content: str, timeout: int) -> CommandResult:
        """Create ``path`` (and its parent directories) with ``content``."""
        return await self.run(["sh", "-c", _WRITE_FILE_SCRIPT, "sh", path], timeout=timeout, input=content)


class LocalGateway(ExecutionGateway):
    """Runs commands on the machine hosting the API."""

    name = "local"

    async def run(
        self,
        cmd: List[str],
        timeout: int,
        input: Optional[str] = None,
    ) -> CommandResult:
        logger.debug(f"Running local command: {shlex.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=os.path.expanduser("~"),
            )
        except OSError as e:
            logger.error(f"Failed to start command {cmd[0]}: {e}")
            return -1, "", str(e)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input.encode() if input is not None else None),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"Local command timed out after {timeout}s: {shlex.join(cmd)}")
            return -1, "", "Command timed out"

        return (
            process.returncode,
            stdout.decode(errors="replace").strip() if stdout else "",
            stderr.decode(errors="replace").strip() if stderr else "",
        )

    async def probe(self, timeout: Optional[int] = None) -> bool:
        return True


class SSHGateway(ExecutionGateway):
    """Runs commands on a remote server over an authenticated SSH session."""

    def __init__(
        self,
        host: str,
        username: str,
        private_key: str,
        port: Optional[int] = None,
        connect_timeout: Optional[int] = None,
    ):
        self.host = host
        self.username = username
        self.private_key = private_key
        self.port = port or settings.SSH_DEFAULT_PORT
        self.connect_timeout = connect_timeout or settings.SSH_CONNECT_TIMEOUT
        self.name = f"{username}@{host}:{self.port}"

    @classmethod
    def from_server(cls, server) -> "SSHGateway":
        return cls(
            host=server.host,
            username=server.ssh_username,
            private_key=server.ssh_private_key,
            port=server.ssh_port,
        )

    def _connect(self, connect_timeout: Optional[int] = None):
        # Raises asyncssh.KeyImportError (a ValueError) on a malformed key
        client_key = asyncssh.import_private_key(self.private_key)
        return asyncssh.connect(
            self.host,
            port=self.port,
            username=self.username,
            client_keys=[client_key],
            known_hosts=None,
            connect_timeout=connect_timeout or self.connect_timeout,
        )

    async def run(
        self,
        cmd: List[str],
        timeout: int,
        input: Optional[str] = None,
    ) -> CommandResult:
        command = shlex.join(cmd)
        logger.debug(f"Running command on {self.name}: {command}")

        try:
            async with self._connect() as conn:
                result = await asyncio.wait_for(
                    conn.run(command, input=input, check=False),
                    timeout=timeout,
                )
        except asyncio.TimeoutError:
            logger.error(f"Command on {self.name} timed out after {timeout}s: {command}")
            return -1, "", "Command timed out"
        except (asyncssh.Error, OSError, ValueError) as e:
            logger.error(f"SSH session to {self.name} failed: {e}")
            return -1, "", f"SSH session failed: {e}"

        stdout = result.stdout or ""
        stderr = result.stderr or ""
        return_code = result.exit_status if result.exit_status is not None else -1
        return return_code, str(stdout).strip(), str(stderr).strip()

    async def probe(self, timeout: Optional[int] = None) -> bool:
        """Open a session, run a no-op and close it cleanly."""
        try:
            async with self._connect(timeout) as conn:
                await asyncio.wait_for(
                    conn.run("echo ok", check=True),
                    timeout=timeout or self.connect_timeout,
                )
            logger.info(f"SSH probe to {self.name} succeeded")
            return True
        except (asyncssh.Error, OSError, ValueError, asyncio.TimeoutError) as e:
            logger.warning(f"SSH probe to {self.name} failed: {type(e).__name__}: {e}")
            return False


def gateway_for(server) -> ExecutionGateway:
    """Pick the gateway for a server record."""
    if server.is_local:
        return LocalGateway()
    return SSHGateway.from_server(server)
