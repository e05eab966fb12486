"""Status board worker: keeps one live status message per channel."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from bumpdispatch.core.config import settings
from bumpdispatch.core.database import AsyncSessionLocal
from bumpdispatch.core.locks import PassLock
from bumpdispatch.core.redis import get_redis
from bumpdispatch.dispatch import OutboundDispatcher
from bumpdispatch.dispatch.fanout import fan_out
from bumpdispatch.dispatch.models import Destination, NotificationKind, NotificationPayload
from bumpdispatch.services.destination_service import DestinationService
from bumpdispatch.services.health_service import HealthService
from bumpdispatch.services.status_message_service import StatusMessageService
from bumpdispatch.utils.formatting import render_status_board
from bumpdispatch.utils.time import utc_now

logger = logging.getLogger(__name__)

UPDATED = "updated"
CREATED = "created"
FAILED = "failed"


@dataclass
class StatusPassResult:
    overall: Optional[str] = None
    uptime: Optional[float] = None
    outcomes: Dict[str, str] = field(default_factory=dict)
    skipped: bool = False
    aborted: bool = False
    error: Optional[str] = None


class StatusBoardWorker:
    """Worker that edits each destination's status message in place."""

    def __init__(
        self,
        dispatcher: OutboundDispatcher,
        health_service: Optional[HealthService] = None,
        session_factory=AsyncSessionLocal,
        lock: Optional[PassLock] = None
    ):
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.health_service = health_service or HealthService.from_settings(session_factory, get_redis)
        self.lock = lock or PassLock.for_driver("status_board")

    async def upsert_message(
        self,
        destination: Destination,
        message_id: Optional[str],
        payload: NotificationPayload
    ) -> Tuple[str, str]:
        """
        Edit the tracked message, or post a new one.

        An edit that fails for any reason (most often the message was deleted
        by a channel admin) falls back to posting a fresh message.

        Returns:
            (outcome, message_id) where outcome is "updated" or "created"
        """
        if message_id:
            try:
                await self.dispatcher.edit(destination, message_id, payload)
                return UPDATED, message_id
            except Exception as e:
                logger.warning(
                    f"Could not edit status message {message_id} in {destination.id}, posting a new one: {e}"
                )

        new_id = await self.dispatcher.send(destination, payload)
        return CREATED, new_id

    async def run_once(self, now: Optional[datetime] = None) -> StatusPassResult:
        """
        Run one status board pass.

        Args:
            now: Pass time (defaults to the current UTC time)

        Returns:
            StatusPassResult with an outcome per destination id
        """
        now = now or utc_now()
        result = StatusPassResult()

        async with self.lock.hold() as acquired:
            if not acquired:
                result.skipped = True
                return result

            report = await self.health_service.run_checks(now)
            result.overall = report.overall

            try:
                async with self.session_factory() as db:
                    await HealthService.record_snapshot(db, report)
                    await db.commit()
                    result.uptime = await HealthService.calculate_uptime(
                        db, now, timedelta(hours=settings.status_uptime_window_hours)
                    )
                    destinations = await DestinationService.get_active_destinations(db, NotificationKind.STATUS)
                    mappings = {}
                    for destination in destinations:
                        mapping = await StatusMessageService.get_mapping(db, destination.id)
                        if mapping is not None:
                            mappings[destination.id] = mapping.message_id
            except Exception as e:
                logger.error(f"Status board pass aborted, could not read state: {e}", exc_info=True)
                result.aborted = True
                result.error = str(e)
                return result

            if not self.dispatcher.is_configured:
                logger.warning("No bot token configured, status board not published this pass")
                return result

            if not destinations:
                logger.info("No status destinations registered")
                return result

            payload = render_status_board(report, result.uptime, settings.brand_name, settings.status_timezone)

            async def upsert(destination: Destination):
                return await self.upsert_message(destination, mappings.get(destination.id), payload)

            outcomes = await fan_out(destinations, upsert, settings.dispatch_concurrency)

            status_data = payload.to_dict()
            for destination, outcome in outcomes:
                if isinstance(outcome, Exception):
                    result.outcomes[destination.id] = FAILED
                    logger.error(f"Failed to publish status board to {destination.id}: {outcome}")
                    continue

                action, message_id = outcome
                try:
                    async with self.session_factory() as db:
                        await StatusMessageService.set_mapping(
                            db, destination.id, destination.channel_id, message_id, status_data, now
                        )
                    result.outcomes[destination.id] = action
                except Exception as e:
                    result.outcomes[destination.id] = FAILED
                    logger.error(f"Could not store status message for {destination.id}: {e}", exc_info=True)

        logger.info(f"Status board pass complete: {result.overall}, outcomes={result.outcomes}")
        return result
