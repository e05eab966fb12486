"""Watermark notifier: fans new records out to every registered channel."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.core.config import settings
from bumpdispatch.core.database import AsyncSessionLocal
from bumpdispatch.core.locks import PassLock
from bumpdispatch.dispatch import OutboundDispatcher
from bumpdispatch.dispatch.fanout import fan_out
from bumpdispatch.dispatch.models import Destination, NotificationKind, NotificationPayload
from bumpdispatch.services.bump_service import BumpService
from bumpdispatch.services.destination_service import DestinationService
from bumpdispatch.services.listing_service import ListingService
from bumpdispatch.services.watermark_service import WatermarkService
from bumpdispatch.utils.formatting import render_new_listing, render_bump
from bumpdispatch.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Storage resolution of created_at columns
WATERMARK_STEP = timedelta(microseconds=1)


@dataclass(frozen=True)
class NotificationStream:
    """
    A source of records announced under one watermark.

    fetch returns records created strictly after the watermark and no later
    than the settle horizon, in creation order; created_at, record_id and
    render read a single record.
    """
    name: str
    kind: NotificationKind
    fetch: Callable[[AsyncSession, datetime, datetime], Awaitable[List[Any]]]
    created_at: Callable[[Any], datetime]
    record_id: Callable[[Any], str]
    render: Callable[[Any], NotificationPayload]


NEW_LISTING_STREAM = NotificationStream(
    name="new_listing",
    kind=NotificationKind.NEW_LISTING,
    fetch=ListingService.get_listings_created_after,
    created_at=lambda listing: listing.created_at,
    record_id=lambda listing: str(listing.id),
    render=lambda listing: render_new_listing(listing, settings.brand_name),
)

BUMP_STREAM = NotificationStream(
    name="bump",
    kind=NotificationKind.BUMP,
    fetch=BumpService.get_bumps_after,
    created_at=lambda row: row[0].bumped_at,
    record_id=lambda row: str(row[0].id),
    render=lambda row: render_bump(row[0], row[1], settings.brand_name),
)


@dataclass
class NotificationPassResult:
    stream: str
    records: int = 0
    deliveries_attempted: int = 0
    deliveries_succeeded: int = 0
    deliveries_failed: int = 0
    watermark_before: Optional[datetime] = None
    watermark_after: Optional[datetime] = None
    skipped: bool = False
    aborted: bool = False
    error: Optional[str] = None


class WatermarkNotifier:
    """Worker announcing one stream's new records to its destinations."""

    def __init__(
        self,
        stream: NotificationStream,
        dispatcher: OutboundDispatcher,
        session_factory=AsyncSessionLocal,
        lock: Optional[PassLock] = None
    ):
        self.stream = stream
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.lock = lock or PassLock.for_driver(f"notify_{stream.name}")

    async def _deliver(self, job: Tuple[str, NotificationPayload, Destination]) -> str:
        _, payload, destination = job
        return await self.dispatcher.send(destination, payload)

    async def run_once(self, now: Optional[datetime] = None) -> NotificationPassResult:
        """
        Run one notification pass for the stream.

        Only records at least notification_settle_seconds old are read, so a
        write still in flight when the pass starts is picked up by a later
        pass instead of being overtaken by the watermark. The watermark only
        moves after every (record, destination) pair has been attempted, to
        max(created_at) plus one microsecond.

        Args:
            now: Pass time (defaults to the current UTC time)

        Returns:
            NotificationPassResult
        """
        now = now or utc_now()
        horizon = now - timedelta(seconds=settings.notification_settle_seconds)
        result = NotificationPassResult(stream=self.stream.name)

        if not self.dispatcher.is_configured:
            logger.warning(f"No bot token configured, {self.stream.name} notifications disabled for this pass")
            return result

        async with self.lock.hold() as acquired:
            if not acquired:
                result.skipped = True
                return result

            try:
                async with self.session_factory() as db:
                    watermark = await WatermarkService.get_watermark(db, self.stream.name, now)
                    records = await self.stream.fetch(db, watermark, horizon)
                    rendered = [
                        (self.stream.record_id(r), ensure_utc(self.stream.created_at(r)), self.stream.render(r))
                        for r in records
                    ]
                    destinations = []
                    if rendered:
                        destinations = await DestinationService.get_active_destinations(db, self.stream.kind)
            except Exception as e:
                logger.error(f"{self.stream.name} pass aborted, could not read state: {e}", exc_info=True)
                result.aborted = True
                result.error = str(e)
                return result

            result.watermark_before = watermark
            result.watermark_after = watermark
            result.records = len(rendered)

            if not rendered:
                logger.debug(f"No new {self.stream.name} records since {watermark.isoformat()}")
                return result

            new_watermark = max(created for _, created, _ in rendered) + WATERMARK_STEP

            if not destinations:
                logger.info(f"No {self.stream.kind.value} destinations registered, skipping {len(rendered)} records")
            else:
                jobs = [
                    (record_id, payload, destination)
                    for record_id, _, payload in rendered
                    for destination in destinations
                ]
                result.deliveries_attempted = len(jobs)
                outcomes = await fan_out(jobs, self._deliver, settings.dispatch_concurrency)

                for (record_id, _, destination), outcome in outcomes:
                    if isinstance(outcome, Exception):
                        result.deliveries_failed += 1
                        logger.error(
                            f"Failed to deliver {self.stream.name} {record_id} to {destination.id}: {outcome}"
                        )
                    else:
                        result.deliveries_succeeded += 1

            try:
                async with self.session_factory() as db:
                    result.watermark_after = await WatermarkService.set_watermark(
                        db, self.stream.name, new_watermark, now
                    )
            except Exception as e:
                logger.error(f"Could not advance {self.stream.name} watermark: {e}", exc_info=True)
                result.error = str(e)

        logger.info(
            f"{self.stream.name} pass complete: {result.records} records, "
            f"{result.deliveries_succeeded}/{result.deliveries_attempted} deliveries succeeded"
        )
        return result
