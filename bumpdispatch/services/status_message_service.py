"""Status board message mappings, one per destination."""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.models import StatusMessage


class StatusMessageService:
    """Service for the destination -> live status message mapping."""

    @staticmethod
    async def get_mapping(db: AsyncSession, destination_id: str) -> Optional[StatusMessage]:
        result = await db.execute(
            select(StatusMessage).where(StatusMessage.destination_id == destination_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def set_mapping(
        db: AsyncSession,
        destination_id: str,
        channel_id: str,
        message_id: str,
        status_data: Optional[dict],
        now: datetime
    ) -> StatusMessage:
        """
        Create or replace the mapping for a destination and commit.

        Args:
            db: Database session
            destination_id: Routing id of the destination
            channel_id: Channel holding the message
            message_id: Id of the live status message
            status_data: Payload last written to the message
            now: Write time

        Returns:
            The stored mapping
        """
        mapping = await StatusMessageService.get_mapping(db, destination_id)
        if mapping is None:
            mapping = StatusMessage(
                destination_id=destination_id,
                channel_id=channel_id,
                message_id=message_id,
                status_data=status_data,
                last_updated_at=now,
                created_at=now
            )
            db.add(mapping)
        else:
            mapping.channel_id = channel_id
            mapping.message_id = message_id
            mapping.status_data = status_data
            mapping.last_updated_at = now

        await db.commit()
        return mapping
