"""
Entry point: run research cycles or look up a flight.

Usage::

    python run.py research                      # all due clients
    python run.py research --user USER_ID       # due clients of one user
    python run.py research --client ID --user USER_ID   # on-demand refresh
    python run.py show --client ID --user USER_ID       # stored research
    python run.py flight BA123                  # one flight status lookup
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from salessynth.config import get_settings, validate_env  # noqa: E402
from salessynth.exceptions import (  # noqa: E402
    ConfigurationError,
    RateLimitExceededError,
    SalesSynthError,
    ValidationError,
)

logger = logging.getLogger("run")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SalesSynth research core")
    sub = parser.add_subparsers(dest="command", required=True)

    research = sub.add_parser("research", help="run research cycles")
    research.add_argument("--client", help="refresh a single client")
    research.add_argument("--user", help="owning user id")
    research.add_argument(
        "--all", action="store_true", help="ignore due-client selection"
    )

    show = sub.add_parser("show", help="print stored research")
    show.add_argument("--client", required=True)
    show.add_argument("--user", required=True)

    flight = sub.add_parser("flight", help="look up a flight status")
    flight.add_argument("flight_number")
    return parser


async def _research(args: argparse.Namespace) -> int:
    from salessynth.database import get_db
    from salessynth.research import ResearchManager

    settings = get_settings()
    manager = ResearchManager.from_settings(await get_db(), settings)

    if args.client:
        if not args.user:
            logger.error("--client requires --user")
            return 2
        result = await manager.refresh_client_research(args.client, args.user)
        if result is None:
            return 1
        print(json.dumps(
            {o.source.value: o.status.value for o in result.outcomes}, indent=2
        ))
        return 0

    results = await manager.orchestrate(args.user, only_due=not args.all)
    logger.info("Completed %d research cycles", len(results))
    return 0


async def _show(args: argparse.Namespace) -> int:
    from salessynth.database import get_db
    from salessynth.research import ResearchManager

    manager = ResearchManager.from_settings(await get_db(), get_settings())
    record = await manager.get_client_research(args.client, args.user)
    if record is None:
        logger.warning("No research stored for client %s", args.client)
        return 1
    print(json.dumps(record.to_dict(), indent=2, default=str))
    return 0


async def _flight(args: argparse.Namespace) -> int:
    from salessynth.flights import FlightStatusService

    service = FlightStatusService.from_settings(get_settings())
    try:
        payload = await service.get_status(args.flight_number)
    except ValidationError as exc:
        logger.error("Invalid flight number: %s", exc)
        return 2
    except RateLimitExceededError as exc:
        logger.error("%s", exc)
        return 3
    except SalesSynthError as exc:
        logger.error("Flight lookup failed: %s", exc)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


async def main(argv=None) -> int:
    args = _parser().parse_args(argv)
    _configure_logging(get_settings().log_level)

    if args.command == "flight":
        return await _flight(args)

    try:
        validate_env(strict=True)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    if args.command == "show":
        return await _show(args)
    return await _research(args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
