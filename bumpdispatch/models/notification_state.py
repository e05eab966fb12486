"""Persisted driver state: stream watermarks, status message mappings, snapshots."""
from sqlalchemy import Column, String, DateTime, Integer, JSON
from datetime import datetime, timezone
from bumpdispatch.core.database import Base


class NotificationWatermark(Base):
    """Highest processed created-at (plus one microsecond) per notification stream."""

    __tablename__ = "notification_watermarks"

    stream = Column(String, primary_key=True)
    watermark = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class StatusMessage(Base):
    """The single live status board message tracked for a destination."""

    __tablename__ = "site_status_messages"

    destination_id = Column(String, primary_key=True)
    channel_id = Column(String, nullable=False)
    message_id = Column(String, nullable=False)
    status_data = Column(JSON, nullable=True)
    last_updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class StatusSnapshot(Base):
    """Result of one status board pass, kept for uptime statistics."""

    __tablename__ = "status_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    overall = Column(String, nullable=False)  # healthy, degraded, unhealthy
    healthy_count = Column(Integer, nullable=False)
    total_count = Column(Integer, nullable=False)
    checked_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
