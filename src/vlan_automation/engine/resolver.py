"""Vendor and interface name resolution."""
import logging
import re
from typing import Iterable, Mapping, Optional

from ..config.schema import PORT_FORMAT_MODULAR
from ..errors import VendorUnresolved
from .schema import PortNumbers

logger = logging.getLogger(__name__)


def resolve_vendor(
    management_vendor: str,
    templates: Mapping[str, object],
    suffix: str = "ssh",
) -> str:
    """Map a management vendor string ("aristaSsh") to a template key ("arista").

    Raises:
        VendorUnresolved: empty result or no template registered for it
    """
    raw = (management_vendor or "").strip()
    vendor = re.sub(f"{re.escape(suffix)}$", "", raw, flags=re.IGNORECASE).lower()
    if not vendor:
        raise VendorUnresolved(raw, f"Cannot determine vendor from management vendor '{raw}'")
    if vendor not in templates:
        raise VendorUnresolved(
            raw, f"No template registered for vendor '{vendor}' (from '{raw}')"
        )
    return vendor


def resolve_port(
    port_name: str,
    patterns: Iterable[re.Pattern],
    port_format: str = "#",
) -> Optional[PortNumbers]:
    """Split an interface name into its slash form and combined number.

    Ethernet26/4 -> (26/4, 264), Ethernet39 -> (39, 39). With the modular
    format a single 3-digit capture is split 2+1: Port-Channel264 -> (26/4, 264).

    Returns:
        PortNumbers, or None if no pattern matches
    """
    for pattern in patterns:
        match = pattern.match(port_name)
        if not match:
            continue

        groups = [g for g in match.groups() if g is not None]
        if not groups:
            continue

        if len(groups) >= 2:
            return PortNumbers(port_string="/".join(groups), port_number="".join(groups))

        value = groups[0]
        if port_format == PORT_FORMAT_MODULAR and len(value) == 3 and value.isdigit():
            return PortNumbers(port_string=f"{value[:2]}/{value[2]}", port_number=value)
        return PortNumbers(port_string=value, port_number=value)

    logger.error(f"Could not extract port number from '{port_name}', no interface pattern matches")
    return None


def alternate_port_name(port_name: str, port_format: str = "#") -> Optional[str]:
    """Ethernet <-> Port-Channel name of the same port.

    Port-Channel264 -> Ethernet26/4 and Ethernet26/4 -> Port-Channel264
    in the modular format; Ethernet39 <-> Port-Channel39 otherwise.
    """
    if port_name.startswith("Port-Channel"):
        number = port_name[len("Port-Channel"):]
        if port_format == PORT_FORMAT_MODULAR and len(number) == 3 and number.isdigit():
            number = f"{number[:2]}/{number[2]}"
        return f"Ethernet{number}"

    if port_name.startswith("Ethernet"):
        number = port_name[len("Ethernet"):]
        if port_format == PORT_FORMAT_MODULAR:
            number = number.replace("/", "")
        return f"Port-Channel{number}"

    return None
