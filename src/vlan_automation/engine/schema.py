"""Schema definitions for the provisioning engine.

Request-scoped facts and results. Nothing here is persisted.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Direction(str, Enum):
    """Which way an event moves the server's network state."""
    CREATE = "create"
    REMOVE = "remove"

    @property
    def action_type(self) -> str:
        return "automation" if self is Direction.CREATE else "removal"

    @property
    def payload_key(self) -> str:
        return "addedIps" if self is Direction.CREATE else "deletedIps"


class LacpRole(str, Enum):
    """LACP role of one switch for one VLAN."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Outcome(str, Enum):
    """Overall result of handling one event."""
    COMPLETED = "completed"  # every switch applied
    PARTIAL = "partial"      # some switch, router or deallocation step failed
    SKIPPED = "skipped"      # nothing to do
    FAILED = "failed"


@dataclass(frozen=True)
class ServerAddressingEvent:
    """IP lifecycle event for one server."""
    server_id: int
    ips: tuple[str, ...] = ()
    skip_automation: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any], direction: Direction) -> "ServerAddressingEvent":
        """Build from the platform's event body.

        Each entry of addedIps/deletedIps is either a string or a list
        holding one string.
        """
        ips = []
        for entry in payload.get(direction.payload_key) or []:
            if isinstance(entry, (list, tuple)):
                entry = entry[0] if entry else None
            if entry:
                ips.append(str(entry).strip())

        return cls(
            server_id=int(payload["serverId"]),
            ips=tuple(ips),
            skip_automation=payload.get("performVlanActions") == "none",
        )

    @property
    def ipv6_entries(self) -> list[str]:
        return [ip for ip in self.ips if ":" in ip]


@dataclass(frozen=True)
class MlagPeerInfo:
    """Peer of a managed switch within its configured pair."""
    peer_id: int
    pair_index: int
    position: int
    port_format: str = "#"


@dataclass(frozen=True)
class PortNumbers:
    """Structural parts of an interface name.

    port_string keeps the slash form (26/4), port_number is the combined
    number (264) used as channel group and MLAG id.
    """
    port_string: str
    port_number: str


@dataclass(frozen=True)
class SubnetPair:
    """Host /64 and the optional routed subnet behind it."""
    host: str
    routed: Optional[str] = None
    gateway: str = ""
    host_address: str = ""


@dataclass
class CommandFailure:
    """First failing command of a sequence."""
    index: int  # 1-based
    command: str
    message: str


@dataclass
class ApplyResult:
    """Outcome of configuring one switch."""
    switch_id: int
    success: bool = False
    role: Optional[LacpRole] = None
    commands_total: int = 0
    commands_executed: list[str] = field(default_factory=list)
    failure: Optional[CommandFailure] = None
    committed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "switch_id": self.switch_id,
            "success": self.success,
            "role": self.role.value if self.role else None,
            "commands_total": self.commands_total,
            "commands_executed": len(self.commands_executed),
            "failure": self.failure.__dict__ if self.failure else None,
            "committed": self.committed,
            "error": self.error,
        }


@dataclass
class RouterResult:
    """Outcome of one router tool invocation."""
    invoked: bool
    success: bool = False
    args: list[str] = field(default_factory=list)
    returncode: Optional[int] = None
    output: str = ""
    reason: str = ""


@dataclass
class WorkflowResult:
    """Everything that happened while handling one event."""
    server_id: int
    direction: Direction
    outcome: Outcome = Outcome.FAILED
    reason: str = ""
    vlan_id: Optional[int] = None
    subnets: Optional[SubnetPair] = None
    switches: list[ApplyResult] = field(default_factory=list)
    router: Optional[RouterResult] = None
    deallocated: Optional[bool] = None

    @property
    def success(self) -> bool:
        return self.outcome in (Outcome.COMPLETED, Outcome.SKIPPED)

    def to_dict(self) -> dict:
        return {
            "server_id": self.server_id,
            "direction": self.direction.value,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "vlan_id": self.vlan_id,
            "subnets": self.subnets.__dict__ if self.subnets else None,
            "switches": [s.to_dict() for s in self.switches],
            "router": self.router.__dict__ if self.router else None,
            "deallocated": self.deallocated,
        }
