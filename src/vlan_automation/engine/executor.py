"""Apply rendered configuration to a switch, one command at a time.

Per switch: Idle -> SessionOpened -> ConfigRendered -> CommandsExecuting
-> Committed | Failed. No retries at this layer.
"""
import logging
from enum import Enum
from typing import Callable, Mapping, Optional

from ..devices.base import DeviceSession
from ..errors import SessionOpenError
from ..utils.logging_config import DUMP_CONFIG_LEVEL, timed_section
from .schema import ApplyResult, CommandFailure, Direction, LacpRole

logger = logging.getLogger(__name__)

COMMENT_MARKER = "!"

SessionFactory = Callable[[int, int, str], DeviceSession]


class ApplyState(str, Enum):
    IDLE = "idle"
    SESSION_OPENED = "session_opened"
    CONFIG_RENDERED = "config_rendered"
    COMMANDS_EXECUTING = "commands_executing"
    COMMITTED = "committed"
    FAILED = "failed"


def config_commands(text: str) -> list[str]:
    """Split rendered text into commands, dropping blank and comment lines."""
    commands = []
    for line in text.splitlines():
        command = line.strip()
        if not command or command.startswith(COMMENT_MARKER):
            continue
        commands.append(command)
    return commands


class ConfigApplicator:
    """Run a rendered configuration against a device session."""

    def __init__(self, session_factory: SessionFactory, debug_level: int = 0):
        """
        Initialize applicator.

        Args:
            session_factory: Called as (switch_id, server_id, action_type)
            debug_level: 3 dumps rendered configs and values to the log
        """
        self.session_factory = session_factory
        self.debug_level = debug_level

    def _transition(self, switch_id: int, state: ApplyState) -> None:
        logger.debug(f"[Switch {switch_id}] -> {state.value}")

    async def open_session(self, switch_id: int, server_id: int, direction: Direction) -> DeviceSession:
        """Open a session and check it with an empty commit.

        Raises:
            SessionOpenError: no access configured, connect failed or the
                empty commit did not succeed
        """
        try:
            session = self.session_factory(switch_id, server_id, direction.action_type)
        except KeyError as e:
            raise SessionOpenError(switch_id, str(e)) from e

        try:
            await session.open()
            initial = await session.commit()
        except Exception as e:
            await session.close()
            raise SessionOpenError(switch_id, f"session open failed: {e}") from e

        if initial.failed:
            await session.close()
            raise SessionOpenError(
                switch_id, f"initial commit failed: {initial.error or initial.output}"
            )
        return session

    async def apply(
        self,
        switch_id: int,
        server_id: int,
        direction: Direction,
        rendered: str,
        values: Optional[Mapping[str, str]] = None,
        role: Optional[LacpRole] = None,
    ) -> ApplyResult:
        """Open a session, execute each command, commit.

        Stops at the first failing command. The commit runs either way and
        the switch only counts as configured when nothing failed and the
        commit went through.

        Raises:
            SessionOpenError: the session itself is unusable
        """
        result = ApplyResult(switch_id=switch_id, role=role)

        session = await self.open_session(switch_id, server_id, direction)
        self._transition(switch_id, ApplyState.SESSION_OPENED)

        try:
            commands = config_commands(rendered)
            result.commands_total = len(commands)
            self._transition(switch_id, ApplyState.CONFIG_RENDERED)
            self._dump(switch_id, rendered, values)
            logger.info(f"[Switch {switch_id}] Executing {len(commands)} commands")

            self._transition(switch_id, ApplyState.COMMANDS_EXECUTING)
            async with timed_section("apply_config", device_id=session.device_id, server=server_id):
                result.failure = await self._execute_commands(session, commands, result)
                result.committed = await self._commit(session)
        finally:
            await session.close()

        result.success = result.failure is None and result.committed
        if result.success:
            self._transition(switch_id, ApplyState.COMMITTED)
            logger.info(
                f"[Switch {switch_id}] Configuration applied "
                f"({len(result.commands_executed)} commands, {direction.value})"
            )
        else:
            self._transition(switch_id, ApplyState.FAILED)
            if result.failure:
                result.error = (
                    f"Command {result.failure.index}/{result.commands_total} "
                    f"'{result.failure.command}' failed: {result.failure.message}"
                )
            else:
                result.error = "Commit failed"
            logger.error(f"[Switch {switch_id}] Server {server_id}: {result.error}")
        return result

    async def _execute_commands(
        self,
        session: DeviceSession,
        commands: list[str],
        result: ApplyResult,
    ) -> Optional[CommandFailure]:
        """Execute commands in order, stopping at the first failure."""
        for index, command in enumerate(commands, start=1):
            result.commands_executed.append(command)
            try:
                outcome = await session.execute(command)
            except Exception as e:
                return CommandFailure(index, command, f"raised: {e}")

            if outcome.failed:
                return CommandFailure(index, command, outcome.error or outcome.output or "failed")
            logger.debug(f"[Switch {session.switch_id}] {index}: {command} OK")
        return None

    async def _commit(self, session: DeviceSession) -> bool:
        try:
            outcome = await session.commit()
        except Exception as e:
            logger.error(f"[Switch {session.switch_id}] Commit raised: {e}")
            return False
        if outcome.failed:
            logger.error(
                f"[Switch {session.switch_id}] Commit failed: {outcome.error or outcome.output}"
            )
            return False
        return True

    def _dump(self, switch_id: int, rendered: str, values: Optional[Mapping[str, str]]) -> None:
        if self.debug_level < DUMP_CONFIG_LEVEL:
            return
        lines = [f"[Switch {switch_id}] Rendered configuration:", rendered]
        if values:
            lines.append("Placeholder values:")
            lines.extend(f"  {name}: {value}" for name, value in values.items())
        logger.debug("\n".join(lines))
