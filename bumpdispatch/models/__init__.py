"""Models package initialization."""
from bumpdispatch.models.profile import Profile, AutoBumpSettings, SubscriptionTier, AUTO_BUMP_TIERS
from bumpdispatch.models.listing import Listing
from bumpdispatch.models.bump import Bump, BumpCooldown, ListingAnalyticsEvent
from bumpdispatch.models.destination import DiscordBotConfig
from bumpdispatch.models.notification_state import NotificationWatermark, StatusMessage, StatusSnapshot

__all__ = [
    "Profile",
    "AutoBumpSettings",
    "SubscriptionTier",
    "AUTO_BUMP_TIERS",
    "Listing",
    "Bump",
    "BumpCooldown",
    "ListingAnalyticsEvent",
    "DiscordBotConfig",
    "NotificationWatermark",
    "StatusMessage",
    "StatusSnapshot"
]
