"""Profile service: auto-bump eligibility and bookkeeping."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.core.config import settings
from bumpdispatch.models import Profile, AutoBumpSettings, SubscriptionTier, AUTO_BUMP_TIERS
from bumpdispatch.utils.time import ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoBumpCandidate:
    """Detached view of a subject that may be due for an auto-bump."""
    user_id: str
    tier: SubscriptionTier
    interval: timedelta
    last_auto_bump_at: Optional[datetime]


def resolve_interval(tier: SubscriptionTier, interval_hours: Optional[int]) -> timedelta:
    """
    Effective auto-bump interval for a tier.

    The stored interval wins but is raised to the tier minimum; an unset
    interval falls back to the tier default.
    """
    default_hours = settings.auto_bump_default_hours.get(tier.value, 24)
    min_hours = settings.auto_bump_min_hours.get(tier.value, default_hours)
    hours = interval_hours if interval_hours else default_hours
    return timedelta(hours=max(hours, min_hours))


class ProfileService:
    """Service for subject lookups used by the auto-bump scheduler."""

    @staticmethod
    async def get_auto_bump_candidates(db: AsyncSession, now: datetime) -> List[AutoBumpCandidate]:
        """
        Get subjects with auto-bump enabled on a capable, unexpired tier.

        Args:
            db: Database session
            now: Reference time for subscription expiry

        Returns:
            Candidates ordered by user id
        """
        result = await db.execute(
            select(
                AutoBumpSettings.user_id,
                Profile.subscription_tier,
                AutoBumpSettings.interval_hours,
                AutoBumpSettings.last_auto_bump_at
            )
            .join(Profile, Profile.id == AutoBumpSettings.user_id)
            .where(
                AutoBumpSettings.enabled == True,
                Profile.subscription_tier.in_([t.value for t in AUTO_BUMP_TIERS]),
                or_(
                    Profile.subscription_expires_at.is_(None),
                    Profile.subscription_expires_at >= now
                )
            )
            .order_by(AutoBumpSettings.user_id)
        )

        candidates = []
        for user_id, tier_value, interval_hours, last_auto_bump_at in result.all():
            tier = SubscriptionTier.parse(tier_value)
            candidates.append(AutoBumpCandidate(
                user_id=str(user_id),
                tier=tier,
                interval=resolve_interval(tier, interval_hours),
                last_auto_bump_at=ensure_utc(last_auto_bump_at)
            ))
        return candidates

    @staticmethod
    async def mark_auto_bumped(db: AsyncSession, user_id: str, now: datetime) -> None:
        """
        Record that an auto-bump pass ran for a subject.

        Args:
            db: Database session
            user_id: Subject id
            now: Pass time
        """
        await db.execute(
            update(AutoBumpSettings)
            .where(AutoBumpSettings.user_id == user_id)
            .values(last_auto_bump_at=now, updated_at=now)
        )
        await db.commit()
