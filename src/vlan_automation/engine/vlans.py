"""VLAN lookup on switch ports and validation against subnet restrictions."""
import logging
import re
from typing import Optional

from ..client import (
    DeviceDetails,
    DeviceInterface,
    PlatformClient,
    PlatformError,
    PlatformRequestError,
    PlatformResponseError,
    SubnetDetails,
)
from ..config.schema import VlanSettings
from ..errors import VlanLookupError, VlanValidationError
from ..utils.connection import with_retry
from .resolver import alternate_port_name

logger = logging.getLogger(__name__)

# VLANs that must never be provisioned or torn down on a server port
PROTECTED_VLANS = {
    1: "Default VLAN",
}

# Port descriptions are written as "Server 36 - VLAN 101 - 2025-11-29"
DESCRIPTION_VLAN = re.compile(r"VLAN\s+(\d+)")


def vlan_from_description(description: str) -> Optional[int]:
    match = DESCRIPTION_VLAN.search(description or "")
    return int(match.group(1)) if match else None


def _active_vlan(iface: DeviceInterface) -> Optional[int]:
    """Native or access VLAN of a server-facing port."""
    for vlan in iface.vlans:
        if vlan.native or vlan.access:
            return vlan.vlan_id
    return None


def _vlan_in_range(iface: DeviceInterface, start: int, end: int) -> Optional[int]:
    """First tagged, access or native VLAN on the port inside [start, end]."""
    for vlan in iface.vlans:
        if not start <= vlan.vlan_id <= end:
            logger.debug(f"Skipping VLAN {vlan.vlan_id} on {iface.name} (outside {start}-{end})")
            continue
        if vlan.tagged or vlan.access or vlan.native:
            return vlan.vlan_id
    return None


class VlanLocator:
    """Reads the server VLAN from the platform's view of the switch."""

    def __init__(self, client: PlatformClient, settings: VlanSettings):
        self.client = client
        self.settings = settings
        self._fetch_details = with_retry(
            max_attempts=settings.lookup_attempts,
            fixed_wait=settings.lookup_delay,
            exceptions=(PlatformRequestError, PlatformResponseError),
        )(self._get_details)

    async def _get_details(self, switch_id: int) -> DeviceDetails:
        return await self.client.get_device_details(switch_id, lookup=True)

    async def assigned_vlan(self, switch_id: int, port_name: str) -> int:
        """VLAN the platform put on the server port (native or access).

        Transient API failures are retried with a fixed delay.

        Raises:
            VlanLookupError: port missing, no VLAN on it, or API down
        """
        try:
            details = await self._fetch_details(switch_id)
        except PlatformError as e:
            raise VlanLookupError(f"Switch {switch_id}: VLAN lookup failed: {e}") from e

        iface = details.interface(port_name)
        if iface is None:
            raise VlanLookupError(f"Switch {switch_id}: port {port_name} not found")

        vlan_id = _active_vlan(iface)
        if vlan_id is None:
            raise VlanLookupError(f"Switch {switch_id}: port {port_name} has no active VLAN")

        logger.info(f"Switch {switch_id}: found VLAN {vlan_id} on port {port_name}")
        return vlan_id

    async def removal_vlan(
        self,
        switch_id: int,
        port_name: str,
        port_format: str = "#",
        vlan_range: Optional[tuple[int, int]] = None,
    ) -> int:
        """VLAN to tear down, read from a switch that still carries it.

        Looks at the port's VLANs inside the range, then at a "VLAN <n>"
        token in its description, then at the Ethernet/Port-Channel twin
        of the port.

        Raises:
            VlanLookupError: nothing found
        """
        start, end = vlan_range or self.settings.removal_range
        try:
            details = await self._fetch_details(switch_id)
        except PlatformError as e:
            raise VlanLookupError(f"Switch {switch_id}: VLAN lookup failed: {e}") from e

        names = [port_name]
        alternate = alternate_port_name(port_name, port_format)
        if alternate:
            names.append(alternate)

        for name in names:
            iface = details.interface(name)
            if iface is None:
                logger.debug(f"Switch {switch_id}: port {name} not in device details")
                continue

            vlan_id = _vlan_in_range(iface, start, end)
            if vlan_id is not None:
                logger.info(f"Switch {switch_id}: found VLAN {vlan_id} on {name}")
                return vlan_id

            vlan_id = vlan_from_description(iface.description)
            if vlan_id is not None and start <= vlan_id <= end:
                logger.info(
                    f"Switch {switch_id}: VLAN {vlan_id} from description of {name} "
                    f"('{iface.description}')"
                )
                return vlan_id

        raise VlanLookupError(
            f"Switch {switch_id}: no VLAN in {start}-{end} on {' or '.join(names)}"
        )

    async def restrictions(self, server_id: int) -> Optional[SubnetDetails]:
        """VLAN range and trunk list of the server's automated subnet.

        Returns None when they cannot be determined.
        """
        if not self.client.has_token:
            logger.warning("No API token, VLAN restrictions unavailable")
            return None
        try:
            assignments = await self.client.get_ip_assignments(server_id)
            subnet_id = next(
                (a.subnet_id for a in assignments if a.vlan_automation and a.subnet_id is not None),
                None,
            )
            if subnet_id is None:
                logger.info(f"Server {server_id}: no subnet with VLAN automation found")
                return None
            return await self.client.get_subnet_details(subnet_id)
        except PlatformError as e:
            logger.warning(f"Server {server_id}: could not load VLAN restrictions: {e}")
            return None


def check_vlan(vlan_id: int, details: Optional[SubnetDetails]) -> None:
    """Check a VLAN against subnet restrictions.

    Unknown restrictions let the VLAN through; a violation does not.

    Raises:
        VlanValidationError: protected, excluded trunk VLAN, or out of range
    """
    if vlan_id in PROTECTED_VLANS:
        raise VlanValidationError(vlan_id, f"protected ({PROTECTED_VLANS[vlan_id]})")
    if not 1 <= vlan_id <= 4094:
        raise VlanValidationError(vlan_id, "outside 1-4094")

    if details is None:
        logger.info(f"VLAN {vlan_id}: restrictions unavailable, not blocking")
        return

    if vlan_id in details.trunk_vlans:
        raise VlanValidationError(
            vlan_id, f"in trunk VLAN exclusion list of subnet {details.subnet_id}"
        )
    if not details.has_range:
        logger.info(f"Subnet {details.subnet_id} reports no VLAN range, not blocking")
        return
    if not details.range_start <= vlan_id <= details.range_end:
        raise VlanValidationError(
            vlan_id,
            f"outside allowed range {details.range_start}-{details.range_end} "
            f"of subnet {details.subnet_id}",
        )
    logger.info(f"VLAN {vlan_id} within allowed range {details.range_start}-{details.range_end}")
