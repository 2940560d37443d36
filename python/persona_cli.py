#!/usr/bin/env python3
"""
Persona command line

Runs searches and manages history and guest mode on this device, using the
same storage and provider wiring as the API server. Results print as JSON.

Usage:
    python persona_cli.py search John Doe --age 40 --location "Austin, TX"
    python persona_cli.py history --limit 10
    python persona_cli.py guest on|off|status
    python persona_cli.py --user-id abc123 --email me@example.com history

Without --user-id, commands run in guest mode only when it is enabled.
"""

import sys
import json
import asyncio
import argparse
import logging
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent))

from api.server import Services, build_services
from config_manager import ConfigManager, get_config, setup_logging
from database.connection import DatabaseSessionProvider, DatabaseSettings
from errors import PersonaError
from search.orchestrator import SearchInput
from storage.entities import Identity

logger = logging.getLogger(__name__)


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _identity(args):
    if not args.user_id:
        return None
    return Identity(id=args.user_id, email=args.email)


async def _run_search(services: Services, args) -> None:
    try:
        mode = services.resolver.resolve(_identity(args))
        outcome = await services.orchestrator.search_person(
            SearchInput(args.first_name, args.last_name, args.age, args.location),
            mode
        )
    finally:
        close = getattr(services.provider_client, "aclose", None)
        if close is not None:
            await close()
    _print(outcome.to_dict())


def cmd_search(services: Services, args) -> None:
    asyncio.run(_run_search(services, args))


def cmd_history(services: Services, args) -> None:
    backend = services.resolver.backend(_identity(args))
    limit = args.limit or services.config.search.history_limit
    _print(backend.get_history(backend.owner_id, limit))


def cmd_guest(services: Services, args) -> None:
    session = services.guest_session
    if args.action == "on":
        profile = session.enable()
        _print({"guest_mode": True, "profile": profile.to_dict()})
    elif args.action == "off":
        session.disable()
        _print({"guest_mode": False})
    else:
        _print({"guest_mode": session.is_guest_mode()})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Persona people search")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--user-id", help="Signed-in user id (omit for guest mode)")
    parser.add_argument("--email", help="Signed-in user email")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search for a person")
    search.add_argument("first_name")
    search.add_argument("last_name")
    search.add_argument("--age", type=int)
    search.add_argument("--location")
    search.set_defaults(handler=cmd_search)

    history = sub.add_parser("history", help="Show recent searches")
    history.add_argument("--limit", type=int)
    history.set_defaults(handler=cmd_history)

    guest = sub.add_parser("guest", help="Enable, disable or show guest mode")
    guest.add_argument("action", choices=["on", "off", "status"])
    guest.set_defaults(handler=cmd_guest)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.config:
        # Importing api.server already loaded the default config
        ConfigManager.reset_instance()
    config = get_config(args.config)
    setup_logging(config)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # The engine is created on first use, so guest commands never touch the database
    services = build_services(
        config,
        db_provider=DatabaseSessionProvider(DatabaseSettings.from_config(config.database))
    )
    try:
        args.handler(services, args)
    except PersonaError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1
    finally:
        services.db_provider.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
