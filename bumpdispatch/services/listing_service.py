"""Listing service: bump writes and new-listing queries."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.models import Listing, Bump
from bumpdispatch.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)


class ListingNotFoundError(Exception):
    """Raised when a listing is missing or not active."""
    pass


class ListingService:
    """Service for listing reads and the bump write path."""

    @staticmethod
    async def get_listing(db: AsyncSession, listing_id: str) -> Optional[Listing]:
        result = await db.execute(select(Listing).where(Listing.id == listing_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_listing_ids(db: AsyncSession, user_id: str) -> List[str]:
        """
        Get ids of a user's active listings.

        Args:
            db: Database session
            user_id: Owner id

        Returns:
            Listing ids in primary-key order
        """
        result = await db.execute(
            select(Listing.id)
            .where(Listing.user_id == user_id, Listing.status == "active")
            .order_by(Listing.id)
        )
        return [str(row[0]) for row in result.all()]

    @staticmethod
    async def get_listings_created_after(
        db: AsyncSession,
        after: datetime,
        until: Optional[datetime] = None
    ) -> List[Listing]:
        """
        Get active listings created strictly after a watermark.

        Args:
            db: Database session
            after: Exclusive lower bound on created_at
            until: Inclusive upper bound on created_at

        Returns:
            Listings ordered by creation time
        """
        query = select(Listing).where(Listing.created_at > after, Listing.status == "active")
        if until is not None:
            query = query.where(Listing.created_at <= until)

        result = await db.execute(query.order_by(Listing.created_at, Listing.id))
        return list(result.scalars().all())

    @staticmethod
    async def bump_listing(
        db: AsyncSession,
        listing_id: str,
        user_id: str,
        bump_type: str,
        source: str,
        now: datetime
    ) -> Bump:
        """
        Bump an active listing and commit.

        Increments the bump counter in a single UPDATE, stamps last_bumped_at,
        appends the bump record and the analytics event.

        Args:
            db: Database session
            listing_id: Listing to bump
            user_id: Acting subject
            bump_type: "manual" or "auto"
            source: "website", "discord" or "scheduler"
            now: Bump time

        Returns:
            The created Bump

        Raises:
            ListingNotFoundError: If the listing is missing or inactive
        """
        result = await db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.status == "active")
            .values(
                bump_count=Listing.bump_count + 1,
                last_bumped_at=now,
                updated_at=now
            )
        )
        if result.rowcount == 0:
            await db.rollback()
            raise ListingNotFoundError(f"Listing {listing_id} not found or not active")

        bump = Bump(
            listing_id=listing_id,
            user_id=user_id,
            bump_type=bump_type,
            source=source,
            bumped_at=now
        )
        db.add(bump)

        await AnalyticsService.record_listing_event(
            db,
            listing_id,
            "bump",
            {"auto_bump": bump_type == "auto", "source": source},
            now
        )

        await db.commit()
        logger.debug(f"Bumped listing {listing_id} ({bump_type}/{source})")
        return bump
