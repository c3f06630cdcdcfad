"""Load the automation configuration from YAML."""
import logging
import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

import yaml

from ..errors import ConfigError
from .schema import (
    PORT_FORMATS,
    DEFAULT_INTERFACE_PATTERNS,
    ApiSettings,
    AutomationConfig,
    DeviceAccess,
    LacpRoleSettings,
    LoggingSettings,
    MlagPair,
    MlagSettings,
    RouterSettings,
    TemplateBlocks,
    VlanSettings,
)

logger = logging.getLogger(__name__)

CONFIG_ENV = "VLAN_AUTOMATION_CONFIG"


def find_config() -> Path:
    """Find the configuration file in the usual places."""
    search_paths = []
    if os.environ.get(CONFIG_ENV):
        search_paths.append(Path(os.environ[CONFIG_ENV]))
    search_paths += [
        Path.cwd() / "configs" / "vlan_automation.yaml",
        Path.cwd() / "vlan_automation.yaml",
        Path.home() / ".config" / "vlan-automation" / "config.yaml",
        Path("/etc/vlan-automation/config.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    raise ConfigError(
        "Could not find vlan_automation.yaml. "
        "Create one in ./configs/vlan_automation.yaml"
    )


def load_config(config_path: Optional[str] = None) -> AutomationConfig:
    """Load and validate the configuration file.

    Args:
        config_path: Explicit path, otherwise the search paths are tried

    Returns:
        Frozen AutomationConfig

    Raises:
        ConfigError: file missing, unreadable or invalid
    """
    path = Path(config_path) if config_path else find_config()
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config {path} must be a mapping")

    config = parse_config(raw, base_dir=path.parent)
    logger.debug(f"Loaded configuration from {path}")
    return replace(config, source_path=path)


def parse_config(raw: dict[str, Any], base_dir: Optional[Path] = None) -> AutomationConfig:
    """Build an AutomationConfig from an already-parsed mapping."""
    base_dir = base_dir or Path.cwd()

    config = AutomationConfig(
        api=_parse_api(raw.get("api") or {}),
        logging=_parse_logging(raw.get("logging") or {}),
        mlag=_parse_mlag(raw.get("mlag") or {}),
        vlans=_parse_vlans(raw.get("vlans") or {}),
        router=_parse_router(raw.get("router") or {}, base_dir),
        templates=_parse_templates(raw.get("templates") or {}, base_dir),
        removal_templates=_parse_templates(raw.get("removal_templates") or {}, base_dir),
        interface_patterns=_compile_patterns(
            raw.get("interface_patterns") or list(DEFAULT_INTERFACE_PATTERNS)
        ),
        vendor_suffix=str(raw.get("vendor_suffix", "ssh")),
        subnet_tag_prefix=str(raw.get("subnet_tag_prefix", "routed")),
        devices=_parse_devices(raw.get("devices") or {}, raw.get("defaults") or {}),
    )
    _check_template_coverage(config)
    return config


def _parse_api(section: dict) -> ApiSettings:
    base_url = section.get("base_url")
    if not base_url:
        raise ConfigError("api.base_url is required")

    token = section.get("token") or ""
    if not token and section.get("token_env"):
        token = os.environ.get(section["token_env"], "")
    if not token:
        logger.warning("No API token configured, platform calls will be rejected")

    return ApiSettings(
        base_url=str(base_url).rstrip("/"),
        token=token,
        timeout=float(section.get("timeout", 30)),
        lookup_timeout=float(section.get("lookup_timeout", 60)),
        connect_timeout=float(section.get("connect_timeout", 10)),
        verify_tls=bool(section.get("verify_tls", True)),
    )


def _parse_logging(section: dict) -> LoggingSettings:
    level = int(section.get("debug_level", 0))
    if level not in (0, 1, 2, 3):
        raise ConfigError(f"logging.debug_level must be 0-3, got {level}")
    defaults = LoggingSettings()
    return LoggingSettings(
        debug_level=level,
        log_file=str(section.get("log_file", defaults.log_file)),
        max_size_mb=int(section.get("max_size_mb", defaults.max_size_mb)),
        backups=int(section.get("backups", defaults.backups)),
    )


def _parse_role(section: Optional[dict], default: LacpRoleSettings) -> LacpRoleSettings:
    if not section:
        return default
    return LacpRoleSettings(
        lacp_mode=str(section.get("lacp_mode", default.lacp_mode)),
        lacp_priority=int(section.get("lacp_priority", default.lacp_priority)),
        system_priority=int(section.get("system_priority", default.system_priority)),
    )


def _parse_pair(entry: Any) -> MlagPair:
    if isinstance(entry, dict):
        values = [entry.get("switch_a"), entry.get("switch_b"), entry.get("port_format", "#")]
    elif isinstance(entry, (list, tuple)) and len(entry) in (2, 3):
        values = list(entry) + (["#"] if len(entry) == 2 else [])
    else:
        raise ConfigError(f"Invalid MLAG pair entry: {entry!r}")

    try:
        switch_a, switch_b = int(values[0]), int(values[1])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"MLAG pair needs two switch ids: {entry!r}") from e

    port_format = str(values[2])
    if port_format not in PORT_FORMATS:
        raise ConfigError(
            f"MLAG pair {entry!r}: port format must be one of {PORT_FORMATS}"
        )
    return MlagPair(switch_a, switch_b, port_format)


def validate_pairs(pairs: tuple[MlagPair, ...]) -> None:
    """Reject pairs with identical members or switches shared between pairs."""
    seen: dict[int, MlagPair] = {}
    for pair in pairs:
        if pair.switch_a == pair.switch_b:
            raise ConfigError(f"MLAG pair lists switch {pair.switch_a} twice")
        for switch_id in pair.members:
            if switch_id in seen:
                raise ConfigError(
                    f"Switch {switch_id} appears in more than one MLAG pair "
                    f"({seen[switch_id].members} and {pair.members})"
                )
            seen[switch_id] = pair


def _parse_mlag(section: dict) -> MlagSettings:
    pairs = tuple(_parse_pair(entry) for entry in section.get("pairs") or [])
    validate_pairs(pairs)

    defaults = MlagSettings()
    blocks_raw = section.get("blocks") or {}
    blocks = TemplateBlocks(**{
        name: str(blocks_raw.get(name, getattr(defaults.blocks, name)))
        for name in ("lacp", "port_channel", "lacp_removal", "port_channel_removal")
    })

    return MlagSettings(
        enabled=bool(section.get("enabled", False)),
        pairs=pairs,
        primary=_parse_role(section.get("primary"), defaults.primary),
        secondary=_parse_role(section.get("secondary"), defaults.secondary),
        domain=str(section.get("domain", defaults.domain)),
        priority=str(section.get("priority", defaults.priority)),
        blocks=blocks,
    )


def _parse_vlans(section: dict) -> VlanSettings:
    defaults = VlanSettings()
    reserved = section.get("reserved", sorted(defaults.reserved))
    removal_range = section.get("removal_range", list(defaults.removal_range))
    if len(removal_range) != 2 or int(removal_range[0]) > int(removal_range[1]):
        raise ConfigError(f"vlans.removal_range must be [start, end], got {removal_range}")

    return VlanSettings(
        reserved=frozenset(int(v) for v in reserved or []),
        lookup_attempts=int(section.get("lookup_attempts", defaults.lookup_attempts)),
        lookup_delay=float(section.get("lookup_delay", defaults.lookup_delay)),
        removal_range=(int(removal_range[0]), int(removal_range[1])),
    )


def _resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def _parse_router(section: dict, base_dir: Path) -> RouterSettings:
    path = section.get("path")
    return RouterSettings(
        path=str(_resolve_path(path, base_dir)) if path else None,
        interpreter=section.get("interpreter") or None,
        timeout=float(section.get("timeout", 120)),
    )


def _parse_templates(section: dict, base_dir: Path) -> dict[str, Path]:
    return {
        str(vendor).lower(): _resolve_path(str(path), base_dir)
        for vendor, path in section.items()
    }


def _compile_patterns(patterns: list) -> tuple[re.Pattern, ...]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigError(f"Invalid interface pattern {pattern!r}: {e}") from e
    return tuple(compiled)


def _parse_devices(section: dict, defaults: dict) -> dict[int, DeviceAccess]:
    devices = {}
    for switch_id, device_config in section.items():
        merged = {**defaults, **(device_config or {})}
        if "host" not in merged:
            raise ConfigError(f"Device {switch_id} has no host")
        try:
            devices[int(switch_id)] = DeviceAccess(switch_id=int(switch_id), **merged)
        except TypeError as e:
            raise ConfigError(f"Device {switch_id}: {e}") from e
    return devices


def _check_template_coverage(config: AutomationConfig) -> None:
    """Warn about vendors that can be provisioned but not removed, or missing files."""
    for vendor in config.templates:
        if vendor not in config.removal_templates:
            logger.warning(f"Vendor '{vendor}' has no removal template")
    for vendor, path in {**config.templates, **config.removal_templates}.items():
        if not path.exists():
            logger.warning(f"Template for vendor '{vendor}' not found: {path}")
