"""Typed views over platform API responses."""
from dataclasses import dataclass, field
from typing import Any, Optional


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SwitchConnection:
    """A server's link to one switch port."""
    switch_id: int
    port_id: Optional[int] = None
    port_name: Optional[str] = None
    automation_enabled: bool = False
    automation_available: bool = False

    @classmethod
    def from_api(cls, item: dict) -> Optional["SwitchConnection"]:
        """Parse one entry of /servers/{id}/connections.

        Returns None for connections that are not switch ports (PDUs, BMCs).
        """
        related = item.get("related_data") or {}
        meta = related.get("meta") or {}
        if related and related.get("type") != "snmp_switch":
            return None

        switch_id = _int_or_none(meta.get("switchId", item.get("switchId")))
        if switch_id is None:
            return None

        return cls(
            switch_id=switch_id,
            port_id=_int_or_none(
                item.get("snmpPortId", meta.get("portId", item.get("portId")))
            ),
            port_name=meta.get("portName") or item.get("portName") or None,
            automation_enabled=_flag(item.get("automationEnabled", meta.get("automationEnabled"))),
            automation_available=_flag(
                item.get("switchAutomationAvailable", meta.get("switchAutomationAvailable"))
            ),
        )


@dataclass(frozen=True)
class PortVlan:
    """VLAN membership of one interface."""
    vlan_id: int
    name: str = ""
    native: bool = False
    access: bool = False
    tagged: bool = False


@dataclass(frozen=True)
class DeviceInterface:
    """Interface entry from extendedDetails."""
    name: str
    port_type: str = ""
    description: str = ""
    port_id: Optional[int] = None
    vlans: tuple[PortVlan, ...] = ()


@dataclass(frozen=True)
class DeviceDetails:
    """Switch identity and per-port state from /networkDevices/{id}/extendedDetails."""
    switch_id: int
    name: str
    management_vendor: str
    interfaces: tuple[DeviceInterface, ...] = ()

    @classmethod
    def from_api(cls, switch_id: int, result: dict) -> "DeviceDetails":
        extended = result.get("extendedDetails") or {}
        interfaces = []
        for iface in extended.get("interfaces") or []:
            name = iface.get("portName") or iface.get("name")
            if not name:
                continue
            vlans = []
            for vlan in iface.get("vlans") or []:
                vlan_id = _int_or_none(vlan.get("id"))
                if vlan_id is None:
                    continue
                vlans.append(PortVlan(
                    vlan_id=vlan_id,
                    name=vlan.get("name") or "",
                    native=_flag(vlan.get("isNativeVlan")),
                    access=_flag(vlan.get("isAccessVlan")),
                    tagged=_flag(vlan.get("isTaggedVlan")),
                ))
            interfaces.append(DeviceInterface(
                name=name,
                port_type=iface.get("portType") or "",
                description=iface.get("description") or "",
                port_id=_int_or_none(iface.get("snmpPortId", iface.get("portId"))),
                vlans=tuple(vlans),
            ))

        return cls(
            switch_id=switch_id,
            name=result.get("name") or f"switch-{switch_id}",
            management_vendor=result.get("managementVendor") or "",
            interfaces=tuple(interfaces),
        )

    def interface(self, name: str) -> Optional[DeviceInterface]:
        for iface in self.interfaces:
            if iface.name == name:
                return iface
        return None

    def interface_by_port_id(self, port_id: int) -> Optional[DeviceInterface]:
        for iface in self.interfaces:
            if iface.port_id == port_id:
                return iface
        return None


@dataclass(frozen=True)
class IpAssignment:
    """One record from /servers/{id}/ipassignments."""
    ip: str
    is_subnet: bool = False
    subnet_id: Optional[int] = None
    vlan_automation: bool = False

    @classmethod
    def from_api(cls, item: dict) -> "IpAssignment":
        info = item.get("subnetinformation") or {}
        return cls(
            ip=str(item.get("ip", "")),
            is_subnet=_flag(item.get("isSubnet")),
            subnet_id=_int_or_none(info.get("id")),
            vlan_automation=_flag(info.get("vlanAutomationAvailable")),
        )

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.ip

    @property
    def prefixlen(self) -> Optional[int]:
        if "/" not in self.ip:
            return None
        return _int_or_none(self.ip.rsplit("/", 1)[1])


@dataclass(frozen=True)
class SubnetDetails:
    """VLAN restrictions of a subnet from /subnets/{id}/withDetails."""
    subnet_id: int
    range_start: Optional[int] = None
    range_end: Optional[int] = None
    trunk_vlans: frozenset = frozenset()

    @classmethod
    def from_api(cls, subnet_id: int, result: dict) -> "SubnetDetails":
        trunk = set()
        for vlan in result.get("trunk_vlans") or []:
            vlan_id = _int_or_none(vlan.get("id") if isinstance(vlan, dict) else vlan)
            if vlan_id is not None:
                trunk.add(vlan_id)
        return cls(
            subnet_id=subnet_id,
            range_start=_int_or_none(result.get("range_start_access_vlan_id")),
            range_end=_int_or_none(result.get("range_end_access_vlan_id")),
            trunk_vlans=frozenset(trunk),
        )

    @property
    def has_range(self) -> bool:
        return self.range_start is not None and self.range_end is not None


@dataclass(frozen=True)
class SubnetPool:
    """Assignable subnet offered for a server."""
    pool_id: int
    network: str
    prefixlen: int
    divisible: bool = False

    @classmethod
    def from_api(cls, item: dict) -> Optional["SubnetPool"]:
        pool_id = _int_or_none(item.get("id"))
        network = item.get("subnet") or item.get("network") or item.get("ip") or ""
        if pool_id is None or not network:
            return None

        prefixlen = _int_or_none(item.get("cidr"))
        if prefixlen is None and "/" in network:
            prefixlen = _int_or_none(network.rsplit("/", 1)[1])
        if prefixlen is None:
            return None
        if "/" not in network:
            network = f"{network}/{prefixlen}"

        divisible = _flag(item.get("isDivisible")) or str(item.get("type", "")).lower() == "divisible"
        return cls(pool_id=pool_id, network=network, prefixlen=prefixlen, divisible=divisible)


@dataclass
class ServerInfo:
    """Subset of /servers/{id} used here."""
    server_id: int
    hostname: str = ""
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, server_id: int, result: dict) -> "ServerInfo":
        tags = []
        for tag in result.get("tags") or []:
            name = tag.get("name") if isinstance(tag, dict) else tag
            if name:
                tags.append(str(name))
        return cls(server_id=server_id, hostname=result.get("hostname") or "", tags=tags)
