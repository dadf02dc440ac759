#!/usr/bin/env python3
"""
Squadron Tracker Service - Main entry point

This service polls the War Thunder community site for a squadron's rating
and win/loss counters, infers battles and play sessions from the changes,
and emits events to the message bus for the chat bot to announce.
"""
import asyncio
import argparse
import json
import logging
import signal
import sys

import hupper
from decouple import UndefinedValueError

from squadron_tracker.config import Config, Environment
from squadron_tracker.service import SquadronTrackerService
from squadron_tracker.adapters.warthunder.client import TransientFetchError
from squadron_tracker.application.rank_resolver import TeamNotFoundError


logger = logging.getLogger(__name__)


def setup_logging(config: Config) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Set httpx and httpcore loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def run_service():
    """Run the service (called by hupper in worker process)."""
    asyncio.run(main())


def start_with_reloader():
    """Start the service with hot reload using hupper."""
    # hupper.start_reloader returns a reloader object in the monitor process
    # and returns None in the worker process
    reloader = hupper.start_reloader('squadron_tracker.main.run_service')

    if reloader:
        logger.info("Hot reload enabled, monitoring file changes...")


def load_config() -> Config:
    """Load configuration, exiting with status 1 when it is invalid."""
    try:
        return Config.from_env()
    except (UndefinedValueError, ValueError) as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)


async def main():
    """Main entry point for the Squadron Tracker service."""
    config = load_config()
    setup_logging(config)
    logger.info(f"Starting Squadron Tracker service for {config.squadron_name}")

    service = SquadronTrackerService(config)

    loop = asyncio.get_running_loop()

    def request_shutdown(sig):
        logger.info(f"Received signal {sig.name}, shutting down gracefully...")
        asyncio.ensure_future(service.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_shutdown, sig)

    try:
        await service.start()
    except Exception as e:
        logger.error(f"Service failed with error: {e}")
        await service.stop()
        sys.exit(1)
    finally:
        await service.stop()
        logger.info("Squadron Tracker service stopped")


async def resolve_rank(team_name: str) -> int:
    """One-shot leaderboard lookup printed as JSON."""
    config = load_config()
    setup_logging(config)

    client = SquadronTrackerService.build_client(config)
    resolver = SquadronTrackerService.build_rank_resolver(config, client)
    try:
        result = await resolver.resolve(team_name or config.squadron_name)
        print(json.dumps(result.to_dict(), indent=2))
        return 0
    except TeamNotFoundError as e:
        print(json.dumps({"error": "not_found", "message": str(e)}))
        return 2
    except TransientFetchError as e:
        print(json.dumps({"error": "unavailable", "message": str(e)}))
        return 3
    finally:
        await client.close()


def cli():
    """Console entry point."""
    parser = argparse.ArgumentParser(description='Squadron Tracker Service')
    parser.add_argument(
        '--rank',
        nargs='?',
        const='',
        metavar='SQUADRON',
        help='Resolve the leaderboard position of a squadron (defaults to SQUADRON_NAME) and exit'
    )
    args = parser.parse_args()

    if args.rank is not None:
        sys.exit(asyncio.run(resolve_rank(args.rank)))

    config = load_config()

    # Enable hot reload in development
    if config.environment == Environment.DEVELOPMENT:
        start_with_reloader()
    else:
        asyncio.run(main())


if __name__ == "__main__":
    cli()
