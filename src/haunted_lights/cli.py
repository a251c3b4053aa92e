"""Command line entry point for haunted_lights.

Usage:
  haunted-lights serve [--host HOST] [--port PORT]
  haunted-lights play --username USER --password PASS [--url URL] [--timeline FILE]
  haunted-lights effect NAME --username USER --password PASS [--url URL]

Credentials may also come from HAUNTED_LIGHTS_USER / HAUNTED_LIGHTS_PASSWORD.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
import logging
import os
import sys

from .api_client import HauntedLightsApi
from .config import Settings
from .const import DEFAULT_APP_URL
from .effects import EFFECT_NAMES
from .exceptions import HauntedLightsException, NoDevicesSelectedError
from .player import TimelinePlayer
from .server import run
from .timeline import TIMELINE, TIMELINE_DURATION, load_timeline

_LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="haunted-lights", description="Haunted house lighting for Tuya devices."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the web API")
    serve.add_argument("--host", help="Bind address (default: $HOST)")
    serve.add_argument("--port", type=int, help="Port (default: $PORT)")

    remote = argparse.ArgumentParser(add_help=False)
    remote.add_argument(
        "--url", default=os.getenv("APP_URL", DEFAULT_APP_URL), help="Server URL"
    )
    remote.add_argument("--username", default=os.getenv("HAUNTED_LIGHTS_USER"))
    remote.add_argument("--password", default=os.getenv("HAUNTED_LIGHTS_PASSWORD"))
    remote.add_argument("--country-code", help="Phone login country code")
    remote.add_argument("--schema", help="smartlife or tuyaSmart")

    play = commands.add_parser("play", parents=[remote], help="Play the timeline")
    play.add_argument("--timeline", help="JSON timeline file")

    effect = commands.add_parser("effect", parents=[remote], help="Test one effect")
    effect.add_argument("name", choices=sorted(EFFECT_NAMES))
    return parser


async def _connect(api: HauntedLightsApi, args: argparse.Namespace) -> list[str]:
    """Log in, discover devices and return the ids of the online ones."""
    if not args.username or not args.password:
        err_msg = "--username and --password are required"
        raise HauntedLightsException(err_msg)
    uid = await api.login(args.username, args.password, args.country_code, args.schema)
    _LOGGER.info("Logged in as %s", uid)
    devices = await api.discover()
    online = [device["id"] for device in devices if device.get("online")]
    _LOGGER.info("%d online / %d total devices", len(online), len(devices))
    for device in devices:
        _LOGGER.info(
            "  %s %s (%s)",
            "●" if device.get("online") else "○",
            device.get("name"),
            device.get("type"),
        )
    return online


async def _play(args: argparse.Namespace) -> int:
    if args.timeline:
        timeline, duration = load_timeline(args.timeline)
    else:
        timeline, duration = TIMELINE, TIMELINE_DURATION

    api = HauntedLightsApi(args.url)
    player = TimelinePlayer(api.trigger, timeline, duration)
    try:
        selected = await _connect(api, args)
        player.start(selected)
        try:
            await player.wait()
        except asyncio.CancelledError:
            await player.stop()
            raise
        finally:
            await player.drain()
    except NoDevicesSelectedError:
        _LOGGER.error("No online devices to play on.")
        return 1
    finally:
        await api.close_session()
    return 0


async def _effect(args: argparse.Namespace) -> int:
    api = HauntedLightsApi(args.url)
    try:
        await _connect(api, args)
        result = await api.trigger(args.name)
    finally:
        await api.close_session()
    if not result.get("success"):
        _LOGGER.error("%s failed: %s", args.name, result.get("error", result))
        return 1
    _LOGGER.info(
        "%s triggered on %s/%s devices",
        args.name,
        result.get("devicesTriggered"),
        result.get("totalDevices"),
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        settings = Settings.from_env()
        if args.host:
            settings = replace(settings, host=args.host)
        if args.port:
            settings = replace(settings, port=args.port)
        run(settings)
        return 0

    handler = _play if args.command == "play" else _effect
    try:
        return asyncio.run(handler(args))
    except KeyboardInterrupt:
        _LOGGER.info("Experience stopped")
        return 130
    except HauntedLightsException as e:
        _LOGGER.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
