"""Notification renderers and user-facing bump messages."""
from datetime import datetime, timedelta
from typing import Optional

from bumpdispatch.dispatch.models import (
    NotificationKind,
    NotificationPayload,
    PayloadField,
    LinkAction,
)
from bumpdispatch.models import Listing, Bump
from bumpdispatch.utils.time import ensure_utc, format_duration, format_local, discord_timestamp


COLOR_PREMIUM = 0xFFD700
COLOR_NEW_LISTING = 0x0099FF
COLOR_BUMP = 0x00FF00

STATUS_EMOJI = {
    "healthy": "🟢",
    "degraded": "🟡",
    "unhealthy": "🔴",
}

STATUS_COLOR = {
    "healthy": 0x00FF00,
    "degraded": 0xFFFF00,
    "unhealthy": 0xFF0000,
}

BUMP_SOURCE_LABELS = {
    "discord": "Discord Bot",
    "website": "Website",
    "scheduler": "Auto-Bump",
}


def _kind_label(listing: Listing) -> str:
    return "Bot" if listing.is_bot else "Server"


def _invite_link(listing: Listing) -> Optional[LinkAction]:
    if not listing.invite_url:
        return None
    return LinkAction(label=f"Join {_kind_label(listing)}", url=listing.invite_url)


def render_new_listing(listing: Listing, brand: str) -> NotificationPayload:
    """
    Render the announcement for a newly created listing.

    Args:
        listing: The new listing
        brand: Footer text

    Returns:
        NotificationPayload for the new listing stream
    """
    return NotificationPayload(
        kind=NotificationKind.NEW_LISTING,
        title=f"✨ New {_kind_label(listing)} Listed!",
        description=f"**{listing.name}** has been added to our listings!\n\n{listing.description or ''}".rstrip(),
        color=COLOR_PREMIUM if listing.premium_featured else COLOR_NEW_LISTING,
        fields=[
            PayloadField("👥 Members", str(listing.member_count or 0)),
            PayloadField("📊 Type", "Discord Bot" if listing.is_bot else "Discord Server"),
            PayloadField("🏷️ Status", "✨ Premium Featured" if listing.premium_featured else "🆕 New Listing"),
        ],
        link=_invite_link(listing),
        thumbnail_url=listing.avatar_url,
        footer=brand,
        timestamp=ensure_utc(listing.created_at),
    )


def render_bump(bump: Bump, listing: Listing, brand: str) -> NotificationPayload:
    """
    Render the announcement for a performed bump.

    Args:
        bump: The bump record
        listing: Listing that was bumped
        brand: Footer text

    Returns:
        NotificationPayload for the bump stream
    """
    return NotificationPayload(
        kind=NotificationKind.BUMP,
        title=f"🚀 {_kind_label(listing)} Bumped!",
        description=f"**{listing.name}** has been bumped to the top!\n\n{listing.description or ''}".rstrip(),
        color=COLOR_PREMIUM if listing.premium_featured else COLOR_BUMP,
        fields=[
            PayloadField("👥 Members", str(listing.member_count or 0)),
            PayloadField("🚀 Total Bumps", str(listing.bump_count or 0)),
            PayloadField("📊 Bump Source", BUMP_SOURCE_LABELS.get(bump.source, bump.source.title())),
        ],
        link=_invite_link(listing),
        thumbnail_url=listing.avatar_url,
        footer=brand,
        timestamp=ensure_utc(bump.bumped_at),
    )


def _check_value(check) -> str:
    if check.healthy or check.status_code is not None:
        return f"⚡ {check.elapsed_ms}ms • Status: {check.status_code or 'OK'}"
    return f"❌ {check.detail or 'Service unavailable'}"


def render_status_board(
    report,
    uptime: Optional[float],
    brand: str,
    timezone_str: str = "UTC"
) -> NotificationPayload:
    """
    Render the status board message from a health report.

    Args:
        report: HealthReport of the pass (checked_at is the pass time)
        uptime: Healthy percentage over the uptime window, None if unknown
        brand: Product name for the footer
        timezone_str: Timezone for the "last updated" footer

    Returns:
        NotificationPayload for status destinations
    """
    overall = report.overall
    fields = [
        PayloadField(f"{STATUS_EMOJI[_check_status(check)]} {check.name}", _check_value(check))
        for check in report.checks
    ]
    fields.append(PayloadField("📊 Uptime", f"{uptime:.1f}%" if uptime is not None else "N/A"))
    fields.append(PayloadField("🕐 Last Check", discord_timestamp(report.checked_at)))

    return NotificationPayload(
        kind=NotificationKind.STATUS,
        title=f"{STATUS_EMOJI[overall]} Site Status - {overall.upper()}",
        description=(
            f"**{overall.upper()}** - {report.healthy_count}/{report.total_count} services operational"
        ),
        color=STATUS_COLOR[overall],
        fields=fields,
        footer=f"{brand} System Monitoring • Last updated: {format_local(report.checked_at, timezone_str)}",
        timestamp=ensure_utc(report.checked_at),
    )


def _check_status(check) -> str:
    return "healthy" if check.healthy else "unhealthy"


def format_cooldown_message(remaining: timedelta) -> str:
    """Rejection shown when a manual bump is still cooling down."""
    return f"⏳ You must wait {format_duration(remaining)} before bumping again."


def format_bump_success(listing_name: str, next_bump_at: datetime) -> str:
    """Confirmation shown after a manual bump."""
    return (
        f"🚀 **{listing_name}** has been bumped to the top!\n\n"
        f"Next bump available {discord_timestamp(next_bump_at)}"
    )
