"""Per-stream notification watermarks."""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.models import NotificationWatermark
from bumpdispatch.utils.time import ensure_utc

logger = logging.getLogger(__name__)


class WatermarkService:
    """Load-or-default and monotonic advance of stream watermarks."""

    @staticmethod
    async def get_watermark(db: AsyncSession, stream: str, default: datetime) -> datetime:
        """
        Get the watermark for a stream, initialising it on first use.

        Args:
            db: Database session
            stream: Stream name
            default: Value persisted when the stream has no watermark yet

        Returns:
            Current watermark (UTC)
        """
        result = await db.execute(
            select(NotificationWatermark).where(NotificationWatermark.stream == stream)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            return ensure_utc(row.watermark)

        db.add(NotificationWatermark(stream=stream, watermark=default, updated_at=default))
        await db.commit()
        logger.info(f"Initialised {stream} watermark at {default.isoformat()}")
        return default

    @staticmethod
    async def set_watermark(db: AsyncSession, stream: str, value: datetime, now: datetime) -> datetime:
        """
        Advance a stream watermark and commit. Never moves it backwards.

        Args:
            db: Database session
            stream: Stream name
            value: Proposed new watermark
            now: Write time

        Returns:
            The watermark as stored after the call
        """
        result = await db.execute(
            select(NotificationWatermark).where(NotificationWatermark.stream == stream)
        )
        row = result.scalar_one_or_none()

        if row is None:
            row = NotificationWatermark(stream=stream, watermark=value, updated_at=now)
            db.add(row)
        else:
            current = ensure_utc(row.watermark)
            if value <= current:
                logger.debug(f"Ignoring {stream} watermark regression to {value.isoformat()}")
                return current
            row.watermark = value
            row.updated_at = now

        await db.commit()
        return value
