"""Analytics side effects for listing events."""
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.models import ListingAnalyticsEvent


class AnalyticsService:
    """Appends listing analytics events inside the caller's transaction."""

    @staticmethod
    async def record_listing_event(
        db: AsyncSession,
        listing_id: str,
        event_type: str,
        metadata: Optional[dict],
        now: datetime
    ) -> ListingAnalyticsEvent:
        event = ListingAnalyticsEvent(
            listing_id=listing_id,
            event_type=event_type,
            event_metadata=metadata or {},
            created_at=now
        )
        db.add(event)
        return event
