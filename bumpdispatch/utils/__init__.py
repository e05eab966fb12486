"""Utilities package initialization."""
from bumpdispatch.utils.time import utc_now, ensure_utc, format_duration, format_local, discord_timestamp
from bumpdispatch.utils.formatting import (
    render_new_listing,
    render_bump,
    render_status_board,
    format_cooldown_message,
    format_bump_success
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "format_duration",
    "format_local",
    "discord_timestamp",
    "render_new_listing",
    "render_bump",
    "render_status_board",
    "format_cooldown_message",
    "format_bump_success"
]
