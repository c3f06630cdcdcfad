"""Exception types raised inside the provisioning workflow.

Expected no-ops (no IPv6, no MLAG peer, ...) are not exceptions; they come
back as SKIPPED results. Everything here is a real failure, except
NoMatchingTag which callers read as "no routed subnet wanted".
"""


class AutomationError(Exception):
    """Base class for provisioning failures."""


class ConfigError(AutomationError):
    """Configuration file is missing or invalid."""


class MisconfigurationError(AutomationError):
    """Platform state makes the event impossible to process safely."""


class VendorUnresolved(AutomationError):
    """No template registered for the device's management vendor."""

    def __init__(self, raw_vendor: str, message: str = ""):
        self.raw_vendor = raw_vendor
        super().__init__(message or f"No template for management vendor '{raw_vendor}'")


class PortUnresolved(AutomationError):
    """Port name matches none of the configured interface patterns."""

    def __init__(self, port_name: str):
        self.port_name = port_name
        super().__init__(f"Cannot extract port number from '{port_name}'")


class VlanLookupError(AutomationError):
    """VLAN could not be read from the switch port."""


class VlanValidationError(AutomationError):
    """VLAN is outside the allowed range or excluded as a trunk VLAN."""

    def __init__(self, vlan_id: int, reason: str):
        self.vlan_id = vlan_id
        self.reason = reason
        super().__init__(f"VLAN {vlan_id} rejected: {reason}")


class SubnetError(AutomationError):
    """Base class for routed subnet allocation failures."""


class NoMatchingTag(SubnetError):
    """Server carries no routed-subnet tag."""


class NoMatchingPool(SubnetError):
    """No assignable pool has the prefix length the tag asks for."""


class PoolExhausted(SubnetError):
    """Parent pool has no free child subnet left."""


class SessionOpenError(AutomationError):
    """Device session could not be opened or failed its initial commit."""

    def __init__(self, switch_id: int, message: str):
        self.switch_id = switch_id
        super().__init__(f"Switch {switch_id}: {message}")
