"""
Things Store - administration entry point.

Commands:
- init: Create the database schema
- stats: Print row counts as JSON
- check-access: Run an access check the way the message path does

Usage:
    things-store init
    things-store stats
    things-store check-access --channel <id> --key <thing key>
    things-store check-access --channel <id> --thing <thing id>

Configuration is entirely via THINGS_ environment variables.
See config.py for all available settings.

Invariants:
    - check-access exits 0 when allowed and 1 when denied
    - Configuration errors exit 2 before any database access
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import json_log_formatter
from pydantic import ValidationError

from .config import Settings
from .errors import NotFoundError, ThingsError
from .store import AccessVerifier, Database

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Store settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


async def check_access(database: Database, channel_id: str, key: str | None, thing_id: str | None) -> bool:
    """Run one access check.

    Returns:
        True if the thing may use the channel
    """
    verifier = AccessVerifier(database)
    try:
        if key is not None:
            await verifier.has_thing(channel_id, key)
        else:
            await verifier.has_thing_by_id(channel_id, thing_id or "")
    except NotFoundError:
        return False
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Things store administration tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database schema")
    subparsers.add_parser("stats", help="Print row counts as JSON")

    access_parser = subparsers.add_parser("check-access", help="Check thing access to a channel")
    access_parser.add_argument("--channel", required=True, help="Channel ID")
    identity = access_parser.add_mutually_exclusive_group(required=True)
    identity.add_argument("--key", help="Thing secret key")
    identity.add_argument("--thing", help="Thing ID")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(settings)
    settings.log_config()
    database = Database.from_settings(settings)

    try:
        if args.command == "init":
            asyncio.run(database.initialize())
            print(f"Initialized {database.db_path}")

        elif args.command == "stats":
            stats = asyncio.run(database.get_stats())
            print(json.dumps(stats, indent=2, sort_keys=True))

        elif args.command == "check-access":
            allowed = asyncio.run(check_access(database, args.channel, args.key, args.thing))
            print("allowed" if allowed else "denied")
            sys.exit(0 if allowed else 1)

    except ThingsError as e:
        logger.error(f"Command {args.command} failed: {e.message}", extra={"code": e.code})
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
