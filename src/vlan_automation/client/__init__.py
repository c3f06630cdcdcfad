"""Platform API client."""
from .errors import (
    PlatformError,
    PlatformParseError,
    PlatformRequestError,
    PlatformResponseError,
)
from .models import (
    DeviceDetails,
    DeviceInterface,
    IpAssignment,
    PortVlan,
    ServerInfo,
    SubnetDetails,
    SubnetPool,
    SwitchConnection,
)
from .platform import PlatformClient, SUPPRESS_VLAN_ACTIONS

__all__ = [
    "PlatformClient",
    "SUPPRESS_VLAN_ACTIONS",
    "PlatformError",
    "PlatformParseError",
    "PlatformRequestError",
    "PlatformResponseError",
    "DeviceDetails",
    "DeviceInterface",
    "IpAssignment",
    "PortVlan",
    "ServerInfo",
    "SubnetDetails",
    "SubnetPool",
    "SwitchConnection",
]
