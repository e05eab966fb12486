"""Bump log and listing analytics models."""
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid
from bumpdispatch.core.database import Base


class Bump(Base):
    """Append-only record of a performed bump."""

    __tablename__ = "bumps"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id = Column(String, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    bump_type = Column(String, nullable=False)  # manual, auto
    source = Column(String, default="website", nullable=False)  # website, discord, scheduler
    bumped_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    listing = relationship("Listing")


class ListingAnalyticsEvent(Base):
    """Analytics side effect emitted for listing events such as bumps."""

    __tablename__ = "listing_analytics_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id = Column(String, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    event_metadata = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class BumpCooldown(Base):
    """
    Latest manual bump per user and listing.

    The composite key makes claiming the cooldown a single guarded write, so
    concurrent requests cannot both pass the gate.
    """

    __tablename__ = "bump_cooldowns"

    user_id = Column(String, primary_key=True)
    listing_id = Column(String, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True)
    last_bumped_at = Column(DateTime(timezone=True), nullable=False)
