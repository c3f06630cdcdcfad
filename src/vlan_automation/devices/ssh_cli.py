"""Switch configuration session over an SSH CLI.

Works with Cisco-like CLIs (Arista EOS and friends):
- Interactive shell via invoke_shell()
- Prompt ends in '#' (or '>' before enable)
- Config mode entered with 'configure terminal' before the first command
- Commit = 'end' followed by the configured save command
"""
import asyncio
import logging
import re
import time
from typing import Optional

import paramiko

from ..config.schema import DeviceAccess
from ..utils.connection import CommandResult, with_retry
from ..utils.logging_config import timed, perf_logger
from .base import DeviceSession

logger = logging.getLogger(__name__)

# hostname#, hostname(config)#, hostname(config-if-Et26/4)#
PROMPT_PATTERN = re.compile(r"[\w.\-]+(\([\w.\-/]+\))?[#>]\s*$")
MORE_PATTERN = re.compile(r"--More--")
ANSI_PATTERN = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")


class SSHShell:
    """Low-level interactive SSH shell."""

    def __init__(self, host: str, port: int, username: str, password: str, timeout: float = 30):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self._client: Optional[paramiko.SSHClient] = None
        self._shell: Optional[paramiko.Channel] = None

    async def connect(self) -> None:
        """Establish SSH connection with interactive shell."""
        loop = asyncio.get_running_loop()

        def _connect():
            client = paramiko.SSHClient()
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            return client

        self._client = await loop.run_in_executor(None, _connect)

        def _get_shell():
            shell = self._client.invoke_shell(width=511)
            shell.settimeout(self.timeout)
            return shell

        self._shell = await loop.run_in_executor(None, _get_shell)
        await self._read_until_prompt(timeout=10)
        await self.send_command("terminal length 0")

    async def close(self) -> None:
        """Close SSH connection."""
        if self._shell:
            try:
                self._shell.close()
            except (OSError, EOFError) as e:
                logger.debug(f"Error closing shell on {self.host}: {e}")
            self._shell = None
        if self._client:
            self._client.close()
            self._client = None

    async def _read_available(self, timeout: float = 1) -> str:
        """Read available data from shell."""
        if not self._shell:
            raise ConnectionError("Not connected")

        loop = asyncio.get_running_loop()
        shell = self._shell

        def _recv():
            if shell.recv_ready():
                data = shell.recv(65535)
                return ANSI_PATTERN.sub("", data.decode("utf-8", errors="ignore"))
            return ""

        return await asyncio.wait_for(loop.run_in_executor(None, _recv), timeout=timeout)

    async def _read_until_prompt(self, timeout: float = 30) -> str:
        """Read until we see a prompt or timeout."""
        output = ""
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            elapsed = loop.time() - start_time
            if elapsed > timeout:
                raise TimeoutError(f"No prompt from {self.host} after {timeout}s")

            try:
                chunk = await self._read_available(timeout=min(2, timeout - elapsed))
            except asyncio.TimeoutError:
                await asyncio.sleep(0.1)
                continue

            if not chunk:
                await asyncio.sleep(0.1)
                continue

            output += chunk
            if MORE_PATTERN.search(output):
                await self._send_raw(" ")
                output = MORE_PATTERN.sub("", output)
                continue
            if PROMPT_PATTERN.search(output.rstrip()):
                return output

    async def _send_raw(self, data: str) -> None:
        """Send raw string to shell."""
        if not self._shell:
            raise ConnectionError("Not connected")
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._shell.send, data)

    async def send_command(self, command: str, timeout: float = 30) -> str:
        """Send a command and return the output without echo and prompt."""
        await self._send_raw(f"{command}\n")
        output = await self._read_until_prompt(timeout=timeout)

        lines = output.replace("\r", "").split("\n")
        if lines and command in lines[0]:
            lines = lines[1:]
        if lines and PROMPT_PATTERN.search(lines[-1]):
            lines = lines[:-1]
        return "\n".join(lines).strip()


class SSHCLISession(DeviceSession):
    """Configuration session on a switch via SSH CLI."""

    # Error markers printed by the CLI (must appear at line start)
    ERROR_PATTERNS = [
        r"^% ?Invalid input",
        r"^% ?Incomplete command",
        r"^% ?Ambiguous command",
        r"^% ?Error",
        r"^% ?Unavailable command",
        r"^% ?Not supported",
    ]

    def __init__(self, access: DeviceAccess, server_id: int, action_type: str):
        super().__init__(access.switch_id, server_id, action_type)
        self.access = access
        self._ssh: Optional[SSHShell] = None
        self._in_config = False

    def _has_error(self, output: str) -> Optional[str]:
        """Return the first error line in the output, if any."""
        for line in output.split("\n"):
            line_stripped = line.strip()
            if not line_stripped:
                continue
            for pattern in self.ERROR_PATTERNS:
                if re.search(pattern, line_stripped, re.IGNORECASE):
                    return line_stripped
        return None

    @with_retry(max_attempts=3, min_wait=2, max_wait=10)
    @timed("session_open")
    async def open(self) -> None:
        """Connect and log in."""
        logger.info(
            f"Opening session on {self.device_id} at {self.access.host} "
            f"(server {self.server_id}, {self.action_type})"
        )
        self._ssh = SSHShell(
            self.access.host,
            self.access.port,
            self.access.username,
            self.access.get_password(),
            timeout=self.access.timeout,
        )
        # AuthenticationException is not an OSError, so a bad login is not retried
        try:
            await self._ssh.connect()
        except Exception:
            await self._ssh.close()
            self._ssh = None
            raise
        self._open = True

    async def _send(self, command: str) -> CommandResult:
        if not self._ssh:
            raise ConnectionError("Not connected")

        start = time.perf_counter()
        output = await self._ssh.send_command(command, timeout=self.access.timeout)
        elapsed = (time.perf_counter() - start) * 1000

        error = self._has_error(output)
        status = "FAIL" if error else "OK"
        perf_logger.debug(
            f"{'execute':20s} | {self.device_id:15s} | {elapsed:8.2f}ms | "
            f"{status} | cmd={command[:50]}"
        )
        return CommandResult(
            success=error is None,
            output=output,
            error=error or "",
            device_id=self.device_id,
            command=command,
        )

    async def execute(self, command: str) -> CommandResult:
        """Execute one command in config mode."""
        if not self._in_config:
            result = await self._send("configure terminal")
            if result.failed:
                return result
            self._in_config = True
        return await self._send(command)

    @timed("session_commit")
    async def commit(self) -> CommandResult:
        """Leave config mode and save the running config."""
        if self._in_config:
            result = await self._send("end")
            if result.failed:
                return result
            self._in_config = False
        return await self._send(self.access.save_command)

    async def close(self) -> None:
        if self._ssh:
            await self._ssh.close()
            self._ssh = None
        self._open = False
        self._in_config = False
        logger.info(f"Closed session on {self.device_id}")
