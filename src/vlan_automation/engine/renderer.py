"""Render per-switch configuration from vendor templates and role blocks."""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config.schema import AutomationConfig
from ..errors import VendorUnresolved
from .mlag import role_settings
from .schema import Direction, LacpRole, MlagPeerInfo, PortNumbers, SubnetPair
from .template import TemplateValues, find_placeholders, render

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwitchContext:
    """Everything known about one switch before its config is rendered."""
    switch_id: int
    server_id: int
    vlan_id: int
    port_name: str
    subnets: SubnetPair
    port: Optional[PortNumbers] = None
    peer: Optional[MlagPeerInfo] = None
    role: Optional[LacpRole] = None
    ipv4_address: str = ""

    @property
    def mlag_active(self) -> bool:
        return self.peer is not None and self.port is not None and self.role is not None


class ConfigRenderer:
    """Builds placeholder values and renders device templates."""

    def __init__(self, config: AutomationConfig):
        self.config = config

    def template_path(self, vendor: str, direction: Direction) -> Path:
        templates = self.config.template_map(removal=direction is Direction.REMOVE)
        path = templates.get(vendor)
        if path is None:
            raise VendorUnresolved(vendor, f"No {direction.value} template for vendor '{vendor}'")
        return path

    def load_template(self, vendor: str, direction: Direction) -> str:
        """Read the vendor template for the direction.

        Raises:
            VendorUnresolved: template not registered or unreadable
        """
        path = self.template_path(vendor, direction)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise VendorUnresolved(vendor, f"Cannot read template {path}: {e}") from e

    def role_values(self, ctx: SwitchContext, now: datetime) -> TemplateValues:
        """Values for the LACP and Port-Channel blocks."""
        settings = role_settings(ctx.role, self.config.mlag)
        return TemplateValues(
            CHANNEL_GROUP=ctx.port.port_number,
            PORT_STRING=ctx.port.port_string,
            PORT_NUMBER=ctx.port.port_number,
            MLAG_ID=ctx.port.port_number,
            LACP_MODE=settings.lacp_mode,
            LACP_PRIORITY=settings.lacp_priority,
            SYSTEM_PRIORITY=settings.system_priority,
            SERVER_ID=ctx.server_id,
            VLAN_ID=ctx.vlan_id,
            PORT_NAME=ctx.port_name,
            DATE=now.strftime("%Y-%m-%d"),
        )

    def values(self, ctx: SwitchContext, direction: Direction, now: datetime) -> TemplateValues:
        """All placeholders of the device template, role blocks included."""
        date = now.strftime("%Y-%m-%d")
        port = ctx.port or PortNumbers(port_string="", port_number="")
        values = TemplateValues(
            SERVER_ID=ctx.server_id,
            VLAN_ID=ctx.vlan_id,
            VLAN_NAME=f"VLAN_{ctx.vlan_id}",
            PORT_NAME=ctx.port_name,
            PORT_STRING=port.port_string,
            PORT_NUMBER=port.port_number,
            CHANNEL_GROUP=port.port_number,
            MLAG_ID=port.port_number,
            PORT_DESCRIPTION=f"Server {ctx.server_id} - VLAN {ctx.vlan_id} - {date}",
            IPV4_ADDRESS=ctx.ipv4_address,
            IPV6_ADDRESS=ctx.subnets.host_address,
            IPV6_GATEWAY=ctx.subnets.gateway,
            IPV6_HOST_SUBNET=ctx.subnets.host,
            IPV6_ROUTED_SUBNET=ctx.subnets.routed,
            MLAG_DOMAIN=self.config.mlag.domain,
            MLAG_PRIORITY=self.config.mlag.priority,
            DATE=date,
            TIMESTAMP=now.strftime("%Y-%m-%d %H:%M:%S"),
            LACP_CONFIG="",
            PORT_CHANNEL_CONFIG="",
            LACP_CONFIG_REMOVAL="",
            PORT_CHANNEL_CONFIG_REMOVAL="",
        )

        if ctx.mlag_active:
            blocks = self.config.mlag.blocks
            role_values = self.role_values(ctx, now)
            if direction is Direction.CREATE:
                values.set("LACP_CONFIG", render(blocks.lacp, role_values))
                values.set("PORT_CHANNEL_CONFIG", render(blocks.port_channel, role_values))
            else:
                values.set("LACP_CONFIG_REMOVAL", render(blocks.lacp_removal, role_values))
                values.set(
                    "PORT_CHANNEL_CONFIG_REMOVAL",
                    render(blocks.port_channel_removal, role_values),
                )
        return values

    def render(
        self,
        template: str,
        ctx: SwitchContext,
        direction: Direction,
        now: Optional[datetime] = None,
    ) -> tuple[str, TemplateValues]:
        """Render the device template for one switch.

        Returns:
            Tuple of (rendered text, values used)
        """
        values = self.values(ctx, direction, now or datetime.now())
        text = render(template, values)

        leftover = find_placeholders(text)
        if leftover:
            logger.warning(
                f"[Switch {ctx.switch_id}] Unresolved placeholders in template: {', '.join(leftover)}"
            )
        return text, values
