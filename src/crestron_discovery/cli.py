"""
Command-line entry point.

    crestron-discovery adapters
    crestron-discovery local [--adapter eth0 ...]
    crestron-discovery remote 10.0.0.50 --username admin
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from ._types import ActivitySnapshot, DeviceRecord
from .adapters import list_ipv4_adapters
from .config import DiscoveryConfig
from .engine import CrestronDiscovery

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crestron Device Discovery")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--log-level", type=str, default=None, help="Log level")
    parser.add_argument("--timeout", type=float, default=None, help="Listening window in seconds")
    parser.add_argument("--json", action="store_true", help="Print devices as JSON")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("adapters", help="List active IPv4 adapters")

    local = sub.add_parser("local", help="Broadcast discovery on local adapters")
    local.add_argument(
        "--adapter", action="append", default=[],
        help="Interface name to use (repeatable, default: all)",
    )

    remote = sub.add_parser("remote", help="Discovery through a remote control processor")
    remote.add_argument("host", nargs="?", help="Processor IP address or hostname")
    remote.add_argument("--username", "-u", type=str, help="Console username")
    remote.add_argument("--password", "-p", type=str, help="Console password (prompted if omitted)")

    return parser


def load_config(args: argparse.Namespace) -> DiscoveryConfig:
    if args.config:
        config = DiscoveryConfig.from_yaml(Path(args.config))
    else:
        config = DiscoveryConfig.from_env()

    if args.log_level:
        config.log_level = args.log_level
    if args.timeout is not None:
        config.discovery_timeout = args.timeout
    if getattr(args, "adapter", None):
        config.adapter_names = args.adapter

    config.load_credentials()
    return config


def format_devices(devices: list[DeviceRecord], as_json: bool = False) -> str:
    if as_json:
        return json.dumps([d.to_dict() for d in devices], indent=2)

    if not devices:
        return "No Crestron devices found."

    lines = []
    for device in devices:
        lines.append(f"Hostname: {device.hostname}")
        lines.append(f"IP Address: {device.ip_address}")
        lines.append(f"Description: {device.description}")
        lines.append(f"Device Id: {device.device_id}")
        lines.append("-" * 46)
    lines.append(f"Found {len(devices)} devices.")
    return "\n".join(lines)


async def run(args: argparse.Namespace, config: DiscoveryConfig) -> list[DeviceRecord]:
    engine = CrestronDiscovery(config)

    def on_activity(snapshot: ActivitySnapshot) -> None:
        if snapshot.last_error:
            logger.warning(f"Last error: {snapshot.last_error}")

    engine.activity_events.subscribe(on_activity)

    if args.command == "local":
        return await engine.discover_all_local_adapters()

    host = args.host or config.remote_host
    username = args.username or config.remote_username
    password: Optional[str] = args.password or config.remote_password
    if not host or not username:
        raise SystemExit("remote discovery needs a host and a username")
    if password is None:
        password = getpass.getpass("Password: ")
    return await engine.discover_remote(host, username, password)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for crestron-discovery."""
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        return 1

    if args.command == "adapters":
        for i, adapter in enumerate(list_ipv4_adapters(config.adapter_names or None)):
            print(f"{i} - {adapter.local_address} - {adapter.name} (broadcast {adapter.broadcast_address})")
        return 0

    try:
        devices = asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130

    print(format_devices(devices, as_json=args.json))
    return 0


if __name__ == "__main__":
    sys.exit(main())
