"""Services package initialization."""
from bumpdispatch.services.cooldown import can_act, time_remaining, cooldown_for_tier
from bumpdispatch.services.analytics_service import AnalyticsService
from bumpdispatch.services.listing_service import ListingService, ListingNotFoundError
from bumpdispatch.services.bump_service import BumpService, BumpCooldownError
from bumpdispatch.services.profile_service import ProfileService
from bumpdispatch.services.destination_service import DestinationService
from bumpdispatch.services.watermark_service import WatermarkService
from bumpdispatch.services.status_message_service import StatusMessageService
from bumpdispatch.services.health_service import HealthService

__all__ = [
    "can_act",
    "time_remaining",
    "cooldown_for_tier",
    "AnalyticsService",
    "ListingService",
    "ListingNotFoundError",
    "BumpService",
    "BumpCooldownError",
    "ProfileService",
    "DestinationService",
    "WatermarkService",
    "StatusMessageService",
    "HealthService"
]
