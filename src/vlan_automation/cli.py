#!/usr/bin/env python3
"""VLAN automation command line entry point.

Usage:
    vlan-automation assign --server-id 36 --ip 2602:f937:1:186::/64
    vlan-automation remove --event deleted.json

Environment variables:
    VLAN_AUTOMATION_CONFIG    Config file (see config.loader.find_config)
    SWITCH_PASSWORD           Default switch credentials
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .client import PlatformClient
from .config import load_config
from .engine import Direction, ProvisioningEngine, ServerAddressingEvent, WorkflowResult
from .errors import ConfigError
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

COMMANDS = {
    "assign": Direction.CREATE,
    "remove": Direction.REMOVE,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vlan-automation",
        description="Provision or tear down server VLANs on MLAG switch pairs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # IP assigned to server 36
    vlan-automation assign --server-id 36 --ip 2602:f937:1:186::/64

    # Replay a platform event body
    vlan-automation remove --event deleted.json

Exit codes:
    0    completed or skipped
    1    failed or partially applied
    2    configuration or usage error
""",
    )
    parser.add_argument(
        "command",
        choices=sorted(COMMANDS),
        help="assign on addedIps events, remove on deletedIps events",
    )
    parser.add_argument("--server-id", type=int, help="Platform server id")
    parser.add_argument(
        "--ip",
        action="append",
        default=[],
        help="Address or CIDR from the event (repeatable)",
    )
    parser.add_argument(
        "--event",
        type=Path,
        help="JSON event body with serverId and addedIps/deletedIps",
    )
    parser.add_argument("--config", type=str, help="Configuration file")
    parser.add_argument(
        "--skip-automation",
        action="store_true",
        help="Treat the event as raised with performVlanActions=none",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the workflow result as JSON",
    )
    return parser


def build_event(args: argparse.Namespace, direction: Direction) -> ServerAddressingEvent:
    """Build the event from --event or from --server-id/--ip.

    Raises:
        ValueError: neither form given, or the event file is unusable
    """
    if args.event:
        try:
            payload = json.loads(args.event.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Cannot read event {args.event}: {e}") from e
        if not isinstance(payload, dict) or "serverId" not in payload:
            raise ValueError(f"Event {args.event} has no serverId")
        if args.skip_automation:
            payload = {**payload, "performVlanActions": "none"}
        return ServerAddressingEvent.from_payload(payload, direction)

    if args.server_id is None:
        raise ValueError("--server-id or --event is required")
    return ServerAddressingEvent(
        server_id=args.server_id,
        ips=tuple(ip.strip() for ip in args.ip if ip.strip()),
        skip_automation=args.skip_automation,
    )


async def run_event(config, event: ServerAddressingEvent, direction: Direction) -> WorkflowResult:
    async with PlatformClient(config.api) as client:
        engine = ProvisioningEngine(config, client)
        return await engine.handle(event, direction)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    direction = COMMANDS[args.command]

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging)
    if config.source_path:
        logger.info(f"Using configuration {config.source_path}")

    try:
        event = build_event(args, direction)
    except ValueError as e:
        logger.error(str(e))
        return 2

    try:
        result = asyncio.run(run_event(config, event, direction))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
