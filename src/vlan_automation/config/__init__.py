"""Configuration loading."""
from .loader import find_config, load_config, parse_config, validate_pairs
from .schema import AutomationConfig, DeviceAccess, MlagPair

__all__ = [
    "find_config",
    "load_config",
    "parse_config",
    "validate_pairs",
    "AutomationConfig",
    "DeviceAccess",
    "MlagPair",
]
