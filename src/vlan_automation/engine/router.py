"""External router tool invocation.

Contract:
    <tool> create <gateway/64> <routed subnet> <vlan id>   exit 0 on success
    <tool> delete <gateway/64> <routed subnet> <vlan id>   exit 0 on success
"""
import asyncio
import functools
import logging
import subprocess
from pathlib import Path

from ..config.schema import RouterSettings
from .schema import Direction, RouterResult

logger = logging.getLogger(__name__)

ROUTER_ACTIONS = {
    Direction.CREATE: "create",
    Direction.REMOVE: "delete",
}


class RouterTool:
    """Runs the router provisioning tool. Optional: skipped when not installed."""

    def __init__(self, settings: RouterSettings):
        self.settings = settings

    @property
    def available(self) -> bool:
        return bool(self.settings.path) and Path(self.settings.path).is_file()

    def command(self, direction: Direction, gateway: str, routed: str, vlan_id: int) -> list[str]:
        cmd = [str(self.settings.path), ROUTER_ACTIONS[direction], gateway, routed, str(vlan_id)]
        if self.settings.interpreter:
            cmd.insert(0, self.settings.interpreter)
        return cmd

    def _run_tool(self, cmd: list[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,  # exit code handled by caller
            timeout=self.settings.timeout,
        )

    async def run(self, direction: Direction, gateway: str, routed: str, vlan_id: int) -> RouterResult:
        """Invoke the tool. Never raises; failures are reported in the result."""
        if not self.available:
            logger.info(f"Router tool not installed ({self.settings.path or 'no path'}), skipping")
            return RouterResult(invoked=False, reason="router tool not configured")

        cmd = self.command(direction, gateway, routed, vlan_id)
        args = cmd[-4:]
        logger.info(f"Router: {' '.join(args)}")

        loop = asyncio.get_running_loop()
        try:
            completed = await loop.run_in_executor(None, functools.partial(self._run_tool, cmd))
        except subprocess.TimeoutExpired:
            logger.error(f"Router tool timed out after {self.settings.timeout}s: {' '.join(args)}")
            return RouterResult(invoked=True, args=args, reason="timeout")
        except OSError as e:
            logger.error(f"Router tool could not be started: {e}")
            return RouterResult(invoked=True, args=args, reason=str(e))

        output = (completed.stdout or "") + (completed.stderr or "")
        result = RouterResult(
            invoked=True,
            success=completed.returncode == 0,
            args=args,
            returncode=completed.returncode,
            output=output.strip(),
        )
        if result.success:
            logger.info(f"Router {args[0]} for VLAN {vlan_id} succeeded")
        else:
            result.reason = f"exit code {completed.returncode}"
            logger.error(
                f"Router {args[0]} for VLAN {vlan_id} failed ({result.reason}): {result.output}"
            )
        return result
