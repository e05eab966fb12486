"""Dispatch scheduler running every driver on its own cadence."""
import logging
import asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from bumpdispatch.core.config import settings
from bumpdispatch.core.redis import close_redis
from bumpdispatch.dispatch.discord import DiscordDispatcher
from bumpdispatch.workers import (
    AutoBumpWorker,
    WatermarkNotifier,
    StatusBoardWorker,
    NEW_LISTING_STREAM,
    BUMP_STREAM
)

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class DispatchScheduler:
    """Scheduler for auto-bumps, notification streams and the status board."""

    def __init__(self, dispatcher=None):
        logger.info("Initializing DispatchScheduler...")
        self.scheduler = AsyncIOScheduler()
        self.dispatcher = dispatcher or DiscordDispatcher()
        self.auto_bump_worker = AutoBumpWorker()
        self.listing_notifier = WatermarkNotifier(NEW_LISTING_STREAM, self.dispatcher)
        self.bump_notifier = WatermarkNotifier(BUMP_STREAM, self.dispatcher)
        self.status_worker = StatusBoardWorker(self.dispatcher)
        logger.info("DispatchScheduler initialized")

    async def _run(self, name: str, runner):
        """Run a pass, keeping the scheduler alive whatever it raises."""
        try:
            await runner()
        except Exception as e:
            logger.error(f"Unexpected error in {name} pass: {e}", exc_info=True)

    async def auto_bump(self):
        """Run the auto-bump pass."""
        await self._run("auto-bump", self.auto_bump_worker.run_once)

    async def notify_listings(self):
        """Announce new listings."""
        await self._run("new-listing", self.listing_notifier.run_once)

    async def notify_bumps(self):
        """Announce new bumps."""
        await self._run("bump", self.bump_notifier.run_once)

    async def status_board(self):
        """Refresh the status board."""
        await self._run("status-board", self.status_worker.run_once)

    def _add(self, func, trigger, job_id: str):
        self.scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

    def start(self):
        """Start the scheduler with one job per driver."""
        logger.info("="*60)
        logger.info("Starting dispatch scheduler...")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(f"New listing poll: every {settings.new_listing_poll_seconds} seconds")
        logger.info(f"Bump poll: every {settings.bump_poll_seconds} seconds")
        logger.info(f"Auto-bump check: every {settings.auto_bump_check_minutes} minutes")
        logger.info(f"Status board: every {settings.status_board_minutes} minutes")
        if not self.dispatcher.is_configured:
            logger.warning("DISCORD_BOT_TOKEN not set, notifications will not be sent")
        logger.info("="*60)

        self._add(
            self.notify_listings,
            IntervalTrigger(seconds=settings.new_listing_poll_seconds),
            "notify_new_listings"
        )
        self._add(
            self.notify_bumps,
            IntervalTrigger(seconds=settings.bump_poll_seconds),
            "notify_bumps"
        )
        self._add(
            self.auto_bump,
            IntervalTrigger(minutes=settings.auto_bump_check_minutes),
            "auto_bump"
        )
        self._add(
            self.status_board,
            IntervalTrigger(minutes=settings.status_board_minutes),
            "status_board"
        )

        self.scheduler.start()
        logger.info("All scheduled jobs registered successfully")
        logger.info("="*60)

    async def shutdown(self):
        """Stop jobs and release connections."""
        logger.info("Shutting down scheduler...")
        self.scheduler.shutdown()
        await self.dispatcher.close()
        await close_redis()

    async def run(self):
        """Run scheduler indefinitely."""
        self.start()

        # Publish the board straight away rather than after the first interval
        await self.status_board()

        try:
            while True:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            await self.shutdown()


async def main():
    """Main entry point for scheduler."""
    scheduler = DispatchScheduler()
    await scheduler.run()


if __name__ == "__main__":
    asyncio.run(main())
