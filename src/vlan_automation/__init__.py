"""VLAN and MLAG provisioning for server IP assignment events."""

__version__ = "0.3.0"
