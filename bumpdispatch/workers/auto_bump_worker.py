"""Auto-bump worker: bumps every listing of due subscribers at their tier interval."""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from bumpdispatch.core.config import settings
from bumpdispatch.core.database import AsyncSessionLocal
from bumpdispatch.core.locks import PassLock
from bumpdispatch.services.cooldown import can_act
from bumpdispatch.services.listing_service import ListingService
from bumpdispatch.services.profile_service import ProfileService, AutoBumpCandidate
from bumpdispatch.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SubjectOutcome:
    """What one pass did for one subscriber."""
    user_id: str
    bumped: int = 0
    failed: int = 0
    advanced: bool = False
    note: str = ""


@dataclass
class AutoBumpPassResult:
    subjects_processed: int = 0
    subjects_skipped: int = 0
    listings_bumped: int = 0
    listings_failed: int = 0
    outcomes: List[SubjectOutcome] = field(default_factory=list)
    skipped: bool = False
    aborted: bool = False
    error: Optional[str] = None


class AutoBumpWorker:
    """Worker for tier-scheduled automatic bumps."""

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        lock: Optional[PassLock] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.session_factory = session_factory
        self.lock = lock or PassLock.for_driver("auto_bump")
        self.clock = clock

    def _stamp(self, now: datetime, started: float) -> datetime:
        """
        Pass time moved forward by the time elapsed since the pass started.

        Each bump carries the moment it was written, so a bump committed late
        in a long pass is never older than one the notifier already consumed.
        """
        return now + timedelta(seconds=self.clock() - started)

    def _should_advance(self, outcome: SubjectOutcome) -> bool:
        if outcome.bumped > 0:
            return True
        return outcome.failed > 0 and settings.auto_bump_advance_on_total_failure

    async def _bump_listing(self, user_id: str, listing_id: str, bumped_at: datetime) -> bool:
        """Bump one listing in its own transaction. Returns False on failure."""
        try:
            async with self.session_factory() as db:
                await ListingService.bump_listing(db, listing_id, user_id, "auto", "scheduler", bumped_at)
            return True
        except Exception as e:
            logger.error(f"Auto-bump failed for listing {listing_id} of {user_id}: {e}", exc_info=True)
            return False

    async def process_subject(
        self,
        candidate: AutoBumpCandidate,
        now: datetime,
        started: Optional[float] = None
    ) -> SubjectOutcome:
        """
        Bump all active listings of a due subject, then advance its timer.

        Args:
            candidate: Subject that passed the interval check
            now: Pass time, also the new last_auto_bump_at
            started: Clock reading at pass start (defaults to the current reading)

        Returns:
            SubjectOutcome for the subject
        """
        if started is None:
            started = self.clock()
        outcome = SubjectOutcome(user_id=candidate.user_id)

        try:
            async with self.session_factory() as db:
                listing_ids = await ListingService.get_active_listing_ids(db, candidate.user_id)
        except Exception as e:
            logger.error(f"Could not load listings for {candidate.user_id}: {e}", exc_info=True)
            outcome.note = "listing lookup failed"
            return outcome

        if not listing_ids:
            logger.info(f"No active listings for {candidate.user_id}, skipping")
            outcome.note = "no active listings"
            return outcome

        for listing_id in listing_ids:
            if await self._bump_listing(candidate.user_id, listing_id, self._stamp(now, started)):
                outcome.bumped += 1
            else:
                outcome.failed += 1

        if not self._should_advance(outcome):
            logger.warning(
                f"Every auto-bump failed for {candidate.user_id}, leaving timer so the next pass retries"
            )
            return outcome

        try:
            async with self.session_factory() as db:
                await ProfileService.mark_auto_bumped(db, candidate.user_id, now)
            outcome.advanced = True
        except Exception as e:
            logger.error(f"Could not advance auto-bump timer for {candidate.user_id}: {e}", exc_info=True)

        logger.info(
            f"Auto-bumped {outcome.bumped}/{len(listing_ids)} listings for "
            f"{candidate.user_id} ({candidate.tier.value})"
        )
        return outcome

    async def run_once(self, now: Optional[datetime] = None) -> AutoBumpPassResult:
        """
        Run one auto-bump pass.

        Per-listing failures are logged and counted; only failing to load the
        subscriber set aborts the pass.

        Args:
            now: Pass time (defaults to the current UTC time)

        Returns:
            AutoBumpPassResult
        """
        started = self.clock()
        now = now or utc_now()
        result = AutoBumpPassResult()

        async with self.lock.hold() as acquired:
            if not acquired:
                result.skipped = True
                return result

            try:
                async with self.session_factory() as db:
                    candidates = await ProfileService.get_auto_bump_candidates(db, now)
            except Exception as e:
                logger.error(f"Auto-bump pass aborted, could not load subscribers: {e}", exc_info=True)
                result.aborted = True
                result.error = str(e)
                return result

            logger.info(f"Auto-bump pass: {len(candidates)} eligible subscribers")

            for candidate in candidates:
                if not can_act(candidate.last_auto_bump_at, candidate.interval, now):
                    result.subjects_skipped += 1
                    continue

                outcome = await self.process_subject(candidate, now, started)
                result.subjects_processed += 1
                result.listings_bumped += outcome.bumped
                result.listings_failed += outcome.failed
                result.outcomes.append(outcome)

        logger.info(
            f"Auto-bump pass complete: {result.subjects_processed} processed, "
            f"{result.subjects_skipped} not due, {result.listings_bumped} bumped, "
            f"{result.listings_failed} failed"
        )
        return result
