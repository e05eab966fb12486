"""Discord bot configuration (notification destinations)."""
from sqlalchemy import Column, String, DateTime, Boolean
from datetime import datetime, timezone
import uuid
from bumpdispatch.core.database import Base


class DiscordBotConfig(Base):
    """Channels a Discord server registered for listing, bump and status posts."""

    __tablename__ = "discord_bot_configs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    discord_server_id = Column(String, nullable=False, unique=True, index=True)
    listing_channel_id = Column(String, nullable=True)
    bump_channel_id = Column(String, nullable=True)
    status_channel_id = Column(String, nullable=True)
    admin_user_id = Column(String, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
