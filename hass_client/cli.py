"""Command line interface: ``ha <command> [options]``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Any, NoReturn

import aiohttp

from .api import HassApi
from .config import HassConfig
from .errors import HassClientError

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] -- %(message)s"
LOG_DATE_FORMAT = "%I:%M %p"

USAGE = """\
Usage: ha <command> [options]

Commands:
    shades   - Open / Close shades
    entities - List the entity registry
    help     - List commands

You can also do `ha <command> --help` for more information on a specific command
"""

SHADES_USAGE = """\
Usage: ha shades <command> [options]

Commands:

    list  - List shades
    open  - Open shade
    close - Close shade
"""


class UsageError(Exception):
    """Command line arguments could not be parsed."""

    def __init__(self, message: str, usage: str) -> None:
        super().__init__(message)
        self.usage = usage


class CommandParser(argparse.ArgumentParser):
    """Argument parser that reports errors to ``main`` instead of exiting."""

    def __init__(self, *args: Any, usage_text: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.usage_text = usage_text

    def error(self, message: str) -> NoReturn:
        raise UsageError(message, self.usage_text or self.format_help())


def setup_logging(*, debug: bool = False) -> None:
    """Send package logs to stderr in a short human readable format."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logger = logging.getLogger("hass_client")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def build_parser() -> CommandParser:
    parser = CommandParser(
        prog="ha", usage="ha <command> [options]", add_help=False, usage_text=USAGE
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("help", add_help=False)
    commands.add_parser("entities", help="List the entity registry")

    shades = commands.add_parser(
        "shades",
        help="Open / Close shades",
        usage="ha shades <command> [options]",
        usage_text=SHADES_USAGE,
    )
    actions = shades.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List shades")
    for action in ("open", "close"):
        sub = actions.add_parser(
            action,
            help=f"{action.capitalize()} shade",
            usage=f"ha shades {action} [entity1] [entity2] ...",
        )
        sub.add_argument(
            "-a",
            "--all",
            action="store_true",
            help=f"{action.capitalize()} all shades",
        )
        sub.add_argument("entities", nargs="*")
    return parser


def validate_shade_targets(args: argparse.Namespace) -> str | None:
    """Return an error message when the open/close targets are inconsistent."""
    if args.all and args.entities:
        return "--all and individual entities are mutually exclusive"
    if not args.all and not args.entities:
        return "Provide either --all or at least one entity ID"
    return None


async def run_shades(api: HassApi, args: argparse.Namespace) -> None:
    if args.action == "list":
        for entity_id in await api.list_shades():
            print(entity_id)
        return

    entities = await api.list_shades() if args.all else args.entities
    for entity_id in entities:
        if args.action == "open":
            print(f"Opening {entity_id}...")
            await api.open_shade(entity_id)
        else:
            print(f"Closing {entity_id}...")
            await api.close_shade(entity_id)


async def run_entities(api: HassApi) -> None:
    registry = await api.list_entity_registry()
    for entry in registry.entries:
        print(f"{entry.entity_id}\t{entry.display_name}")


async def run(config: HassConfig, args: argparse.Namespace) -> None:
    async with aiohttp.ClientSession() as http_session:
        api = HassApi(config, http_session)
        try:
            if args.command == "shades":
                await run_shades(api, args)
            else:
                await run_entities(api)
        finally:
            await api.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as err:
        print(f"Error: {err}")
        print(err.usage)
        return 1

    if args.command == "help":
        print(USAGE)
        return 0
    if args.command is None:
        print(USAGE)
        return 1

    setup_logging(debug=args.debug)

    if args.command == "shades" and args.action in ("open", "close"):
        error = validate_shade_targets(args)
        if error is not None:
            print(f"Error: {error}")
            return 1

    try:
        config = HassConfig.from_env()
        asyncio.run(run(config, args))
    except HassClientError as err:
        _LOGGER.error("%s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
