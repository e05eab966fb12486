"""Listing (bump target) model."""
from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, Text
from datetime import datetime, timezone
import uuid
from bumpdispatch.core.database import Base


class Listing(Base):
    """A server or bot listing that can be bumped and announced."""

    __tablename__ = "listings"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="", nullable=False)
    type = Column(String, default="server", nullable=False)  # server, bot
    status = Column(String, default="active", nullable=False, index=True)  # active, inactive
    member_count = Column(Integer, default=0, nullable=False)
    avatar_url = Column(String, nullable=True)
    invite_url = Column(String, nullable=True)
    premium_featured = Column(Boolean, default=False, nullable=False)
    bump_count = Column(Integer, default=0, nullable=False)
    last_bumped_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    @property
    def is_bot(self) -> bool:
        return self.type == "bot"
