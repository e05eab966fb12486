"""Time utilities for UTC normalisation and cooldown display."""
from datetime import datetime, timedelta, timezone
from typing import Optional
import pytz


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.

    SQLite hands back naive datetimes for timezone-aware columns; every value
    the engine stores is UTC, so a naive value is tagged as UTC rather than
    converted.

    Args:
        value: Datetime from the store or a caller (None passes through)

    Returns:
        Aware UTC datetime or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_duration(remaining: timedelta) -> str:
    """
    Format a remaining cooldown as hours and minutes.

    Args:
        remaining: Time left; zero or negative means nothing to wait for

    Returns:
        String like "1h 5m" (never negative)
    """
    total_seconds = int(remaining.total_seconds())
    if total_seconds <= 0:
        return "0h 0m"

    hours, rest = divmod(total_seconds, 3600)
    minutes = rest // 60
    if hours == 0 and minutes == 0:
        # Under a minute left still reads as a wait
        return "0h 1m"
    return f"{hours}h {minutes}m"


def format_local(value: datetime, timezone_str: str = "UTC") -> str:
    """
    Render a UTC datetime in a display timezone.

    Args:
        value: Datetime to render
        timezone_str: IANA timezone name

    Returns:
        String like "2025-01-01 09:30 EST"
    """
    tz = pytz.timezone(timezone_str)
    return ensure_utc(value).astimezone(tz).strftime("%Y-%m-%d %H:%M %Z")


def discord_timestamp(value: datetime, style: str = "R") -> str:
    """Discord dynamic timestamp markup, e.g. <t:1735689600:R>."""
    return f"<t:{int(ensure_utc(value).timestamp())}:{style}>"
