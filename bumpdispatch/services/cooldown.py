"""Cooldown gate: can a subject act now, and how long until it can."""
from datetime import datetime, timedelta
from typing import Optional

from bumpdispatch.core.config import settings
from bumpdispatch.models import SubscriptionTier


def can_act(last_action_at: Optional[datetime], cooldown: timedelta, now: datetime) -> bool:
    """
    Check whether the cooldown since the last action has elapsed.

    A first action (no previous one) is always allowed. A last action in the
    future relative to ``now`` (clock skew or rollback) is never eligible.

    Args:
        last_action_at: Time of the subject's last action, None if it never acted
        cooldown: Minimum gap between two actions
        now: Reference time

    Returns:
        True if the subject may act now
    """
    if last_action_at is None:
        return True

    elapsed = now - last_action_at
    if elapsed < timedelta(0):
        return False
    return elapsed >= cooldown


def time_remaining(last_action_at: Optional[datetime], cooldown: timedelta, now: datetime) -> timedelta:
    """
    Time left until the subject may act again.

    Args:
        last_action_at: Time of the subject's last action, None if it never acted
        cooldown: Minimum gap between two actions
        now: Reference time

    Returns:
        Remaining duration; zero or negative when eligible
    """
    if last_action_at is None:
        return timedelta(0)
    return last_action_at + cooldown - now


def cooldown_for_tier(tier: SubscriptionTier) -> timedelta:
    """Manual bump cooldown for a subscription tier."""
    if tier == SubscriptionTier.PREMIUM:
        return timedelta(minutes=settings.premium_bump_cooldown_minutes)
    return timedelta(minutes=settings.free_bump_cooldown_minutes)
