"""Profile (subject) model and auto-bump settings."""
from enum import Enum
from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone
import uuid
from bumpdispatch.core.database import Base


class SubscriptionTier(str, Enum):
    """Ordered subscription levels, lowest first."""

    FREE = "free"
    SMALL = "small"
    MEDIUM = "medium"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return list(SubscriptionTier).index(self)

    @classmethod
    def parse(cls, value) -> "SubscriptionTier":
        """Unknown or empty tiers are treated as free."""
        try:
            return cls(value)
        except ValueError:
            return cls.FREE


# Tiers that may enable auto-bump
AUTO_BUMP_TIERS = (SubscriptionTier.SMALL, SubscriptionTier.MEDIUM, SubscriptionTier.PREMIUM)


class Profile(Base):
    """An account that owns listings and is rate-limited."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, nullable=True)
    subscription_tier = Column(String, default=SubscriptionTier.FREE.value, nullable=False)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    auto_bump_settings = relationship(
        "AutoBumpSettings", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def tier(self) -> SubscriptionTier:
        return SubscriptionTier.parse(self.subscription_tier)

    @validates('subscription_tier')
    def validate_tier(self, key, value):
        """Validate tier is a known subscription level."""
        valid = {t.value for t in SubscriptionTier}
        if value not in valid:
            raise ValueError(f"subscription_tier must be one of {valid}, got {value}")
        return value


class AutoBumpSettings(Base):
    """Per-profile auto-bump configuration and last run marker."""

    __tablename__ = "auto_bump_settings"

    user_id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    enabled = Column(Boolean, default=False, nullable=False)
    interval_hours = Column(Integer, nullable=True)
    last_auto_bump_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationship
    profile = relationship("Profile", back_populates="auto_bump_settings")

    @validates('interval_hours')
    def validate_interval(self, key, value):
        """Validate interval is a reasonable duration."""
        if value is not None and not 1 <= value <= 168:  # Max one week
            raise ValueError(f"interval_hours must be between 1 and 168, got {value}")
        return value
