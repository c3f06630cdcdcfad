"""Device sessions for switches."""
from ..config.schema import AutomationConfig
from .base import DeviceSession
from .ssh_cli import SSHCLISession

__all__ = [
    "DeviceSession",
    "SSHCLISession",
    "create_session",
]


def create_session(
    config: AutomationConfig,
    switch_id: int,
    server_id: int,
    action_type: str,
) -> DeviceSession:
    """Factory function to create a session for a configured switch."""
    access = config.devices.get(switch_id)
    if access is None:
        raise KeyError(f"No device access configured for switch {switch_id}")
    return SSHCLISession(access, server_id, action_type)
