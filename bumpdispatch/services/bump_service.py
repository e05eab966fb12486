"""Bump service: manual bump gate and bump log queries."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.models import Bump, BumpCooldown, Listing, Profile, SubscriptionTier
from bumpdispatch.services.cooldown import can_act, time_remaining, cooldown_for_tier
from bumpdispatch.services.listing_service import ListingService, ListingNotFoundError
from bumpdispatch.utils.formatting import format_cooldown_message, format_bump_success
from bumpdispatch.utils.time import ensure_utc

logger = logging.getLogger(__name__)


class BumpCooldownError(Exception):
    """Raised when a manual bump is attempted before the cooldown has elapsed."""

    def __init__(self, remaining: timedelta):
        self.remaining = remaining
        super().__init__(format_cooldown_message(remaining))


@dataclass
class BumpStatus:
    """Whether a user may bump a listing right now."""
    can_bump: bool
    remaining: timedelta
    next_bump_at: Optional[datetime]
    cooldown: timedelta


@dataclass
class ManualBumpResult:
    """Outcome of an accepted manual bump."""
    bump: Bump
    listing_name: str
    next_bump_at: datetime
    message: str


class BumpService:
    """Service for manual bumps and bump record lookups."""

    @staticmethod
    async def get_last_action(
        db: AsyncSession,
        user_id: str,
        listing_id: Optional[str] = None,
        bump_type: Optional[str] = "manual"
    ) -> Optional[datetime]:
        """
        Latest bump time for a subject, optionally narrowed to one listing.

        Args:
            db: Database session
            user_id: Subject id
            listing_id: Restrict to this listing
            bump_type: Restrict to this bump type (None for any)

        Returns:
            Time of the latest matching bump, or None
        """
        query = select(func.max(Bump.bumped_at)).where(Bump.user_id == user_id)
        if listing_id is not None:
            query = query.where(Bump.listing_id == listing_id)
        if bump_type is not None:
            query = query.where(Bump.bump_type == bump_type)

        result = await db.execute(query)
        value = result.scalar_one_or_none()
        if isinstance(value, str):
            # SQLite returns aggregates over datetime columns as text
            value = datetime.fromisoformat(value)
        return ensure_utc(value)

    @staticmethod
    async def get_bumps_after(
        db: AsyncSession,
        after: datetime,
        until: Optional[datetime] = None
    ) -> List[Tuple[Bump, Listing]]:
        """
        Get bumps of active listings recorded strictly after a watermark.

        Args:
            db: Database session
            after: Exclusive lower bound on bumped_at
            until: Inclusive upper bound on bumped_at

        Returns:
            (bump, listing) pairs ordered by bump time
        """
        query = (
            select(Bump, Listing)
            .join(Listing, Listing.id == Bump.listing_id)
            .where(Bump.bumped_at > after, Listing.status == "active")
        )
        if until is not None:
            query = query.where(Bump.bumped_at <= until)

        result = await db.execute(query.order_by(Bump.bumped_at, Bump.id))
        return [(bump, listing) for bump, listing in result.all()]

    @staticmethod
    async def _load_listing_and_tier(db: AsyncSession, listing_id: str) -> Tuple[Listing, SubscriptionTier]:
        result = await db.execute(
            select(Listing, Profile.subscription_tier)
            .join(Profile, Profile.id == Listing.user_id)
            .where(Listing.id == listing_id, Listing.status == "active")
        )
        row = result.first()
        if row is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found or not active")
        listing, tier_value = row
        return listing, SubscriptionTier.parse(tier_value)

    @staticmethod
    async def get_bump_status(db: AsyncSession, listing_id: str, user_id: str, now: datetime) -> BumpStatus:
        """
        Check whether a user may bump a listing.

        The cooldown follows the listing owner's tier.

        Raises:
            ListingNotFoundError: If the listing is missing or inactive
        """
        _, tier = await BumpService._load_listing_and_tier(db, listing_id)
        cooldown = cooldown_for_tier(tier)
        last = await BumpService.get_last_action(db, user_id, listing_id)
        remaining = time_remaining(last, cooldown, now)
        allowed = can_act(last, cooldown, now)
        return BumpStatus(
            can_bump=allowed,
            remaining=remaining if not allowed else timedelta(0),
            next_bump_at=None if last is None else last + cooldown,
            cooldown=cooldown
        )

    @staticmethod
    async def claim_cooldown(
        db: AsyncSession,
        listing_id: str,
        user_id: str,
        cooldown: timedelta,
        now: datetime
    ) -> Optional[timedelta]:
        """
        Take the user's manual bump slot for a listing in one guarded write.

        The conditional UPDATE (or the primary key on first insert) lets only
        one of several concurrent requests through. Nothing is committed here;
        the caller commits together with the bump.

        Returns:
            None when the slot was claimed, otherwise the time still remaining

        Raises:
            ListingNotFoundError: If the listing disappeared while claiming
        """
        key = (user_id, listing_id)
        result = await db.execute(
            update(BumpCooldown)
            .where(
                BumpCooldown.user_id == user_id,
                BumpCooldown.listing_id == listing_id,
                BumpCooldown.last_bumped_at <= now - cooldown
            )
            .values(last_bumped_at=now)
        )
        if result.rowcount == 1:
            return None

        existing = await db.get(BumpCooldown, key)
        if existing is None:
            db.add(BumpCooldown(user_id=user_id, listing_id=listing_id, last_bumped_at=now))
            try:
                await db.flush()
                return None
            except IntegrityError:
                # Another request inserted the slot first
                await db.rollback()
                existing = await db.get(BumpCooldown, key)
                if existing is None:
                    raise ListingNotFoundError(f"Listing {listing_id} not found or not active")

        remaining = time_remaining(ensure_utc(existing.last_bumped_at), cooldown, now)
        return max(remaining, timedelta(seconds=1))

    @staticmethod
    async def manual_bump(
        db: AsyncSession,
        listing_id: str,
        user_id: str,
        now: datetime,
        source: str = "website"
    ) -> ManualBumpResult:
        """
        Bump a listing on behalf of a user if their cooldown allows it.

        Args:
            db: Database session
            listing_id: Listing to bump
            user_id: Acting user
            now: Request time
            source: "website" or "discord"

        Returns:
            ManualBumpResult with the user-facing confirmation

        Raises:
            ListingNotFoundError: If the listing is missing or inactive
            BumpCooldownError: If the cooldown has not elapsed
        """
        status = await BumpService.get_bump_status(db, listing_id, user_id, now)
        if not status.can_bump:
            logger.info(f"Bump of {listing_id} by {user_id} rejected, {status.remaining} remaining")
            raise BumpCooldownError(status.remaining)

        remaining = await BumpService.claim_cooldown(db, listing_id, user_id, status.cooldown, now)
        if remaining is not None:
            logger.info(f"Concurrent bump of {listing_id} by {user_id} rejected, {remaining} remaining")
            raise BumpCooldownError(remaining)

        listing = await ListingService.get_listing(db, listing_id)
        listing_name = listing.name
        bump = await ListingService.bump_listing(db, listing_id, user_id, "manual", source, now)
        next_bump_at = now + status.cooldown

        logger.info(f"Listing {listing_id} bumped by {user_id} via {source}")
        return ManualBumpResult(
            bump=bump,
            listing_name=listing_name,
            next_bump_at=next_bump_at,
            message=format_bump_success(listing_name, next_bump_at)
        )
