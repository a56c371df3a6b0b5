#!/usr/bin/env python3
"""
Evertz VIP-X - JSON-RPC CLI

Command-line interface for VIP-X multiviewer control.

Commands:
  status                       - Show displays, layouts, windows, inputs, snapshots
  watch                        - Live monitoring of cache changes
  call <method> [params]       - Invoke any RPC method (params as JSON)
  fire-snapshot --id N         - Recall a snapshot by id (or --name S)
  set-layout --display N       - Apply a layout to a display (--layout N, omit to clear)

Examples:
  python -m vipx status --host 10.0.0.20
  python -m vipx call get_displays --host 10.0.0.20
  python -m vipx fire-snapshot --name "Show A" --host 10.0.0.20
  python -m vipx watch --json --config vipx.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

import voluptuous as vol

from .client import VipxClient
from .config import (
    CONF_HOST,
    CONF_PORT,
    CONF_RECONNECT,
    CONF_REQUEST_TIMEOUT,
    CONF_SUPPORTED_VERSIONS,
    load_config,
)
from .errors import VipxError
from .models import ConnectionStatus

_LOGGER = logging.getLogger("vipx.cli")

READY_TIMEOUT = 15.0  # seconds


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def print_status(client: VipxClient) -> None:
    """Print the cached device state."""
    print("\n" + "=" * 60)
    print(f"VIP-X {client.host}:{client.port} (interface version {client.handshake_version})")
    print("=" * 60 + "\n")

    print(f"Displays: {len(client.displays)}")
    for display in client.displays:
        print(f"  [{display.id:3d}] {display.name}")
        for window in client.windows.get(display.id, ()):
            print(f"        window [{window.id:3d}] {window.name}")
        inputs = client.inputs.get(display.id, ())
        if inputs:
            print(f"        inputs: {', '.join(f'{i.id}={i.name}' for i in inputs)}")

    print(f"\nLayouts: {len(client.layouts)}")
    for layout in client.layouts:
        print(f"  [{layout.id:3d}] {layout.name}")

    print(f"\nSnapshots: {len(client.snapshots)}")
    for snapshot in client.snapshots:
        print(f"  [{snapshot.id:3d}] {snapshot.name}")

    print()


def print_status_json(client: VipxClient) -> None:
    """Print the cached device state as one JSON document."""
    output = {
        "timestamp": _timestamp(),
        "host": client.host,
        "port": client.port,
        "handshake_version": client.handshake_version,
        **client.cache.as_dict(),
    }
    print(json.dumps(output, ensure_ascii=False, indent=2))


async def watch(client: VipxClient, as_json: bool) -> None:
    """Print the cache every time it changes, until interrupted."""
    changed = asyncio.Event()
    stats = {"updates": 0, "status_changes": 0}

    def on_change() -> None:
        changed.set()

    def on_status(status: ConnectionStatus, message: Optional[str]) -> None:
        stats["status_changes"] += 1
        if as_json:
            print(json.dumps({"timestamp": _timestamp(), "status": status.value, "message": message}))
            sys.stdout.flush()
        else:
            print(f"[{status.value}] {message or ''}")

    remove_cache_listener = client.cache.add_listener(on_change)
    remove_status_listener = client.add_status_listener(on_status)

    _LOGGER.info("WATCH_START | %s:%s", client.host, client.port)
    try:
        while True:
            await changed.wait()
            changed.clear()
            stats["updates"] += 1

            if as_json:
                print(json.dumps({"timestamp": _timestamp(), **client.cache.as_dict()}, ensure_ascii=False))
                sys.stdout.flush()
            else:
                print_status(client)
    finally:
        remove_cache_listener()
        remove_status_listener()
        _LOGGER.info(
            "WATCH_STOP | updates: %d | status changes: %d",
            stats["updates"],
            stats["status_changes"],
        )


def _parse_params(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if raw is None:
        return None
    params = json.loads(raw)
    if not isinstance(params, dict):
        raise ValueError("params must be a JSON object")
    return params


async def run(args: argparse.Namespace, config: dict[str, Any]) -> int:
    client = VipxClient(
        host=config[CONF_HOST],
        port=config[CONF_PORT],
        request_timeout=config[CONF_REQUEST_TIMEOUT],
        supported_versions=config[CONF_SUPPORTED_VERSIONS],
        reconnect=config[CONF_RECONNECT] if args.command == "watch" else False,
    )

    if not args.json:
        print(f"Connecting to {client.host}:{client.port}...")

    client.start()
    try:
        await client.wait_ready(timeout=READY_TIMEOUT)
        if not args.json:
            print(f"✔ Connected (interface version {client.handshake_version})")

        if args.command in ("status", "watch") and not await client.wait_primed():
            await client.refresh_all()

        if args.command == "status":
            if args.json:
                print_status_json(client)
            else:
                print_status(client)

        elif args.command == "watch":
            await watch(client, args.json)

        elif args.command == "call":
            response = await client.call(args.method, _parse_params(args.params))
            print(json.dumps(response, ensure_ascii=False, indent=2))

        elif args.command == "fire-snapshot":
            await client.load_snapshot(snapshot_id=args.id, name=args.name)
            print(f"✔ Snapshot loaded ({client.last_snapshot_loaded})")

        elif args.command == "set-layout":
            layout = None if args.layout is None else {"id": args.layout}
            await client.set_display_layout({"id": args.display}, layout)
            print(f"✔ Display {args.display} layout set to {args.layout if layout else 'clear'}")

        return 0

    finally:
        await client.stop()
        if not args.json:
            print("✔ Disconnected")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vipx",
        description="Evertz VIP-X - JSON-RPC CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status --host 10.0.0.20              Show cached device state
  %(prog)s call get_layouts --host 10.0.0.20    Raw RPC call
  %(prog)s fire-snapshot --id 3 --host 10.0.0.20
  %(prog)s set-layout --display 1 --layout 2 --host 10.0.0.20
  %(prog)s watch --json --config vipx.yaml      Live monitoring (NDJSON)
        """,
    )
    parser.add_argument("--host", help="VIP-X host/IP")
    parser.add_argument("--port", type=int, help="JSON-RPC TCP port (default 31001)")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Output in JSON format")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show device state")
    sub.add_parser("watch", help="Live monitoring of state changes")

    call = sub.add_parser("call", help="Invoke an RPC method")
    call.add_argument("method")
    call.add_argument("params", nargs="?", help="Parameters as a JSON object")

    fire = sub.add_parser("fire-snapshot", help="Recall a snapshot")
    group = fire.add_mutually_exclusive_group(required=True)
    group.add_argument("--id", type=int)
    group.add_argument("--name")

    layout = sub.add_parser("set-layout", help="Apply (or clear) a display layout")
    layout.add_argument("--display", type=int, required=True)
    layout.add_argument("--layout", type=int, help="Layout id (omit to clear)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # JSON mode keeps stdout machine-readable
    if args.json:
        logging.basicConfig(level=logging.CRITICAL + 1)
    elif args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    try:
        config = load_config(
            args.config,
            {CONF_HOST: args.host, CONF_PORT: args.port, CONF_REQUEST_TIMEOUT: args.timeout},
        )
    except (OSError, ValueError, vol.Invalid) as err:
        parser.error(f"invalid configuration: {err}")

    try:
        return asyncio.run(run(args, config))

    except KeyboardInterrupt:
        if not args.json:
            print("\n\n✔ Interrupted by user")
        return 0

    except (VipxError, asyncio.TimeoutError, ValueError) as err:
        message = str(err) or f"Timed out after {READY_TIMEOUT:.0f}s waiting for the device"
        if args.json:
            print(json.dumps({"error": message, "timestamp": _timestamp()}, ensure_ascii=False))
        else:
            print(f"\n❌ Error: {message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
