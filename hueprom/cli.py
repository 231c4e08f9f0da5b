"""Command line entry point for hueprom."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Any, NoReturn, TextIO

import msgspec
import uvloop

from . import __version__
from .bridge.client import RESOURCES, connect
from .bridge.errors import BridgeApiError, BridgeError
from .config.logging import configure_logging
from .config.settings import RuntimeConfig, load_runtime_config
from .daemon import serve

logger = logging.getLogger("hueprom")

# Maps argparse destinations onto RuntimeConfig keys.
_FLAG_KEYS = {
    "user": "user",
    "bridge_host": "bridge_host",
    "discovery_url": "discovery_url",
    "timeout": "request_timeout",
    "debug": "debug_logging",
    "log_syslog": "log_syslog",
    "port": "port",
    "listen_host": "listen_host",
    "poll": "poll_interval",
    "device_type": "device_type",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hueprom", description="Philips Hue to Prometheus exporter.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--user", help="Hue username")
    parser.add_argument("--bridge-host", help="bridge address; discovered when omitted")
    parser.add_argument("--discovery-url", help="bridge discovery service URL")
    parser.add_argument("--timeout", type=float, help="bridge request timeout in seconds")
    parser.add_argument("--debug", action="store_true", default=None, help="enable debug logging")
    parser.add_argument("--log-syslog", action="store_true", default=None, help="log to syslog")

    commands = parser.add_subparsers(dest="command", required=True)

    cmd_serve = commands.add_parser("serve", help="run the Prometheus metrics exporter")
    cmd_serve.add_argument("--port", type=int, help="HTTP port to listen on")
    cmd_serve.add_argument("--listen-host", help="address to listen on (all interfaces by default)")
    cmd_serve.add_argument("--poll", type=float, help="Hue API polling interval in seconds")

    commands.add_parser("dump", help="dump Hue state")

    cmd_create_user = commands.add_parser(
        "create-user",
        help="create a new user on the bridge; press the link button just before running it",
    )
    cmd_create_user.add_argument("--device-type", help="device type registered with the bridge")
    return parser


def config_from_args(args: argparse.Namespace) -> RuntimeConfig:
    raw: dict[str, Any] = {}
    for dest, key in _FLAG_KEYS.items():
        raw[key] = getattr(args, dest, None)
    return load_runtime_config(raw)


async def dump(config: RuntimeConfig, out: TextIO = sys.stdout) -> None:
    config.require_user()
    async with connect(config) as bridge:
        for resource in RESOURCES:
            payload = await bridge.raw(resource)
            out.write(f"# -------- {resource.capitalize()} --------\n")
            out.write(msgspec.json.format(msgspec.json.encode(payload), indent=2).decode("utf-8"))
            out.write("\n\n")


async def create_user(config: RuntimeConfig, out: TextIO = sys.stdout) -> None:
    async with connect(config) as bridge:
        try:
            user = await bridge.create_user(config.device_type)
        except BridgeApiError as exc:
            if exc.link_button_not_pressed:
                out.write("Press the bridge link button, then run this command again.\n")
            raise
    out.write(f"user: {user}\n")


async def run_command(command: str, config: RuntimeConfig) -> None:
    if command == "serve":
        await serve(config)
    elif command == "dump":
        await dump(config)
    elif command == "create-user":
        await create_user(config)
    else:
        raise ValueError(f"unknown command {command!r}")


def main(argv: Sequence[str] | None = None) -> NoReturn:  # pragma: no cover (Entry point wrapper)
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.exit(2, f"hueprom: {exc}\n")

    configure_logging(config)
    logger.info("Starting hueprom %s (%s)", __version__, args.command)

    try:
        asyncio.run(run_command(args.command, config), loop_factory=uvloop.new_event_loop)
        sys.exit(0)
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        sys.exit(0)
    except BridgeError as exc:
        logger.critical("Bridge error: %s", exc)
        sys.exit(1)
    except ValueError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    except ExceptionGroup as exc_group:
        for group_exc in exc_group.exceptions:
            logger.critical("Fatal error in task group: %s", group_exc, exc_info=group_exc)
        sys.exit(1)
    except OSError as exc:
        logger.critical("System/OS error: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
