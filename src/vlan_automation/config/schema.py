"""Configuration dataclasses.

The YAML file is parsed once into an AutomationConfig which is passed
explicitly to every component. All settings are frozen.
"""
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


PORT_FORMAT_SINGLE = "#"
PORT_FORMAT_MODULAR = "#/#"
PORT_FORMATS = (PORT_FORMAT_SINGLE, PORT_FORMAT_MODULAR)

DEFAULT_INTERFACE_PATTERNS = (
    r"^Ethernet(\d+)$",
    r"^Ethernet(\d+)\/(\d+)$",
    r"^Port-Channel(\d+)$",
)


@dataclass(frozen=True)
class ApiSettings:
    """Platform API connection settings."""
    base_url: str
    token: str = ""
    timeout: float = 30
    lookup_timeout: float = 60
    connect_timeout: float = 10
    verify_tls: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    """Log file location and verbosity (debug_level 0-3)."""
    debug_level: int = 0
    log_file: str = "/var/log/vlan-automation/vlan_automation.log"
    max_size_mb: int = 10
    backups: int = 5


@dataclass(frozen=True)
class MlagPair:
    """Two switches forming one MLAG domain.

    switch_a sits at position 0 (even VLANs go active there),
    switch_b at position 1 (odd VLANs).
    """
    switch_a: int
    switch_b: int
    port_format: str = PORT_FORMAT_SINGLE

    @property
    def members(self) -> tuple[int, int]:
        return (self.switch_a, self.switch_b)

    def position(self, switch_id: int) -> Optional[int]:
        """Position of switch_id in the pair, None if not a member."""
        if switch_id == self.switch_a:
            return 0
        if switch_id == self.switch_b:
            return 1
        return None

    def peer_of(self, switch_id: int) -> Optional[int]:
        position = self.position(switch_id)
        if position is None:
            return None
        return self.members[1 - position]


@dataclass(frozen=True)
class LacpRoleSettings:
    """LACP values applied to one side of the pair."""
    lacp_mode: str
    lacp_priority: int
    system_priority: int


@dataclass(frozen=True)
class TemplateBlocks:
    """Inline blocks rendered per role and embedded into device templates."""
    lacp: str = (
        "channel-group {CHANNEL_GROUP} mode {LACP_MODE}\n"
        "   lacp port-priority {LACP_PRIORITY}"
    )
    port_channel: str = (
        "interface Port-Channel{CHANNEL_GROUP}\n"
        "   description Server {SERVER_ID} - VLAN {VLAN_ID}\n"
        "   switchport trunk allowed vlan add {VLAN_ID}\n"
        "   switchport mode trunk\n"
        "   mlag {MLAG_ID}\n"
        "   ip access-group ACL_SERVER_{SERVER_ID}_IN in"
    )
    lacp_removal: str = (
        "no channel-group {CHANNEL_GROUP} mode {LACP_MODE}\n"
        "   no lacp port-priority {LACP_PRIORITY}"
    )
    port_channel_removal: str = "no interface Port-Channel{CHANNEL_GROUP}"


@dataclass(frozen=True)
class MlagSettings:
    """MLAG pairing and per-role LACP settings."""
    enabled: bool = False
    pairs: tuple[MlagPair, ...] = ()
    primary: LacpRoleSettings = LacpRoleSettings("active", 1, 100)
    secondary: LacpRoleSettings = LacpRoleSettings("passive", 100, 101)
    domain: str = "1"
    priority: str = "100"
    blocks: TemplateBlocks = TemplateBlocks()


@dataclass(frozen=True)
class VlanSettings:
    """VLAN lookup and guard settings."""
    reserved: frozenset = frozenset({1})
    lookup_attempts: int = 3
    lookup_delay: float = 2
    # Range used for the removal lookup when the subnet reports none
    removal_range: tuple[int, int] = (100, 4093)


@dataclass(frozen=True)
class RouterSettings:
    """External router tool invocation."""
    path: Optional[str] = None
    interpreter: Optional[str] = None
    timeout: float = 120


@dataclass(frozen=True)
class DeviceAccess:
    """SSH access to one switch, keyed by the platform's switch id."""
    switch_id: int
    host: str
    port: int = 22
    username: str = "admin"
    password: Optional[str] = None
    password_env: str = "SWITCH_PASSWORD"
    timeout: float = 30
    save_command: str = "write memory"

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")


@dataclass(frozen=True)
class AutomationConfig:
    """Complete runtime configuration."""
    api: ApiSettings
    logging: LoggingSettings = LoggingSettings()
    mlag: MlagSettings = MlagSettings()
    vlans: VlanSettings = VlanSettings()
    router: RouterSettings = RouterSettings()
    # vendor key -> template file
    templates: Mapping[str, Path] = field(default_factory=dict)
    removal_templates: Mapping[str, Path] = field(default_factory=dict)
    interface_patterns: tuple[re.Pattern, ...] = tuple(
        re.compile(p) for p in DEFAULT_INTERFACE_PATTERNS
    )
    vendor_suffix: str = "ssh"
    subnet_tag_prefix: str = "routed"
    devices: Mapping[int, DeviceAccess] = field(default_factory=dict)
    source_path: Optional[Path] = None

    @property
    def debug_level(self) -> int:
        return self.logging.debug_level

    def template_map(self, removal: bool) -> Mapping[str, Path]:
        return self.removal_templates if removal else self.templates
