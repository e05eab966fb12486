"""Command line entry point: single passes, the scheduler and schema setup."""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from bumpdispatch.core.config import settings
from bumpdispatch.core.database import init_db
from bumpdispatch.core.redis import close_redis
from bumpdispatch.dispatch.discord import DiscordDispatcher
from bumpdispatch.workers import (
    AutoBumpWorker,
    WatermarkNotifier,
    StatusBoardWorker,
    NEW_LISTING_STREAM,
    BUMP_STREAM
)

logger = logging.getLogger(__name__)

DRIVERS = ("auto-bump", "notify-listings", "notify-bumps", "status-board")


def build_driver(name: str, dispatcher):
    """Build the worker behind a driver name."""
    if name == "auto-bump":
        return AutoBumpWorker()
    if name == "notify-listings":
        return WatermarkNotifier(NEW_LISTING_STREAM, dispatcher)
    if name == "notify-bumps":
        return WatermarkNotifier(BUMP_STREAM, dispatcher)
    if name == "status-board":
        return StatusBoardWorker(dispatcher)
    raise ValueError(f"Unknown driver: {name}")


async def run_pass(name: str, dispatcher=None) -> int:
    """
    Run a single pass of one driver.

    Returns:
        0 when the pass completed (even with per-item failures), 1 when it aborted
    """
    dispatcher = dispatcher or DiscordDispatcher()
    try:
        result = await build_driver(name, dispatcher).run_once()
    finally:
        await dispatcher.close()
        await close_redis()

    logger.info(f"{name} result: {result}")
    if result.aborted:
        logger.error(f"{name} pass aborted: {result.error}")
        return 1
    return 0


async def run_scheduler():
    from bumpdispatch.scheduler.main import DispatchScheduler
    await DispatchScheduler().run()


async def run_init_db():
    await init_db()
    logger.info("Database tables created")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="bumpdispatch",
        description="Bump cooldown and notification dispatch engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One auto-bump pass, e.g. from cron
  bumpdispatch run-once auto-bump

  # Run every driver on its configured cadence
  bumpdispatch scheduler
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_once = subparsers.add_parser("run-once", help="Run a single pass of one driver")
    run_once.add_argument("driver", choices=DRIVERS)
    subparsers.add_parser("scheduler", help="Run all drivers on their schedules")
    subparsers.add_parser("init-db", help="Create database tables")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.command == "run-once":
        return asyncio.run(run_pass(args.driver))
    if args.command == "scheduler":
        asyncio.run(run_scheduler())
        return 0
    asyncio.run(run_init_db())
    return 0


if __name__ == "__main__":
    sys.exit(main())
