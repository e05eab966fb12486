"""Destination registry: projects bot configs into routable destinations."""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.dispatch.models import Destination, NotificationKind
from bumpdispatch.models import DiscordBotConfig

logger = logging.getLogger(__name__)


def _channel_for(config: DiscordBotConfig, kind: NotificationKind):
    if kind == NotificationKind.NEW_LISTING:
        return config.listing_channel_id
    if kind == NotificationKind.BUMP:
        return config.bump_channel_id
    # Servers without a dedicated status channel get the board in their bump channel
    return config.status_channel_id or config.bump_channel_id


class DestinationService:
    """Service for looking up active notification destinations."""

    @staticmethod
    async def get_active_destinations(db: AsyncSession, kind: NotificationKind) -> List[Destination]:
        """
        Get every active destination accepting a notification kind.

        Args:
            db: Database session
            kind: Notification kind

        Returns:
            Destinations ordered by server id
        """
        result = await db.execute(
            select(DiscordBotConfig)
            .where(DiscordBotConfig.active == True)
            .order_by(DiscordBotConfig.discord_server_id)
        )

        destinations = []
        for config in result.scalars().all():
            channel_id = _channel_for(config, kind)
            if not channel_id:
                continue
            destinations.append(Destination(
                server_id=str(config.discord_server_id),
                channel_id=str(channel_id),
                kind=kind
            ))

        logger.debug(f"{len(destinations)} active {kind.value} destinations")
        return destinations
