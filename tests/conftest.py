"""Shared pytest fixtures for the dispatch engine tests."""
import pytest
from datetime import datetime, timezone
from itertools import count
from typing import List, Optional

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from bumpdispatch.core.database import Base
from bumpdispatch.core.locks import PassLock
from bumpdispatch.dispatch import OutboundDispatcher, DispatchError
from bumpdispatch.models import (
    Profile,
    AutoBumpSettings,
    Listing,
    Bump,
    DiscordBotConfig,
)

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

_ids = count(1)


class FakeDispatcher(OutboundDispatcher):
    """In-memory dispatcher recording every send and edit."""

    def __init__(self):
        self.configured = True
        self.sent = []      # (destination_id, message_id, payload)
        self.edited = []    # (destination_id, message_id, payload)
        self.fail_destinations = set()
        self.fail_edits = False
        self.deleted_messages = set()
        self._message_ids = count(1)

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send(self, destination, payload):
        if destination.id in self.fail_destinations:
            raise DispatchError(f"HTTP 500 from {destination.id}", status_code=500, retryable=True)
        message_id = f"msg-{next(self._message_ids)}"
        self.sent.append((destination.id, message_id, payload))
        return message_id

    async def edit(self, destination, message_id, payload):
        if self.fail_edits or message_id in self.deleted_messages:
            raise DispatchError("Unknown Message", status_code=404)
        if destination.id in self.fail_destinations:
            raise DispatchError(f"HTTP 500 from {destination.id}", status_code=500, retryable=True)
        self.edited.append((destination.id, message_id, payload))

    def sent_to(self, destination_id: str) -> List:
        return [entry for entry in self.sent if entry[0] == destination_id]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the in-memory engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def dispatcher():
    """Recording dispatcher."""
    return FakeDispatcher()


@pytest.fixture
def pass_lock():
    """In-process pass lock with no Redis backend."""
    return PassLock("test")


# ============================================================================
# Factories
# ============================================================================

async def create_profile(
    session_factory,
    tier: str = "free",
    expires_at: Optional[datetime] = None,
    auto_bump: bool = False,
    interval_hours: Optional[int] = None,
    last_auto_bump_at: Optional[datetime] = None,
    user_id: Optional[str] = None
) -> str:
    """Create a profile (and auto-bump settings when requested). Returns its id."""
    user_id = user_id or f"user-{next(_ids):04d}"
    async with session_factory() as db:
        db.add(Profile(id=user_id, username=user_id, subscription_tier=tier, subscription_expires_at=expires_at))
        if auto_bump or interval_hours is not None or last_auto_bump_at is not None:
            db.add(AutoBumpSettings(
                user_id=user_id,
                enabled=auto_bump,
                interval_hours=interval_hours,
                last_auto_bump_at=last_auto_bump_at
            ))
        await db.commit()
    return user_id


async def create_listing(
    session_factory,
    user_id: str,
    name: Optional[str] = None,
    created_at: datetime = T0,
    status: str = "active",
    listing_type: str = "server",
    premium_featured: bool = False,
    bump_count: int = 0,
    listing_id: Optional[str] = None
) -> str:
    """Create a listing. Returns its id."""
    listing_id = listing_id or f"listing-{next(_ids):04d}"
    async with session_factory() as db:
        db.add(Listing(
            id=listing_id,
            user_id=user_id,
            name=name or f"Server {listing_id}",
            description="A friendly community",
            type=listing_type,
            status=status,
            member_count=1234,
            invite_url="https://discord.gg/example",
            premium_featured=premium_featured,
            bump_count=bump_count,
            created_at=created_at,
            updated_at=created_at
        ))
        await db.commit()
    return listing_id


async def create_bump(
    session_factory,
    listing_id: str,
    user_id: str,
    bumped_at: datetime,
    bump_type: str = "manual",
    source: str = "website"
) -> str:
    """Append a bump record directly. Returns its id."""
    bump_id = f"bump-{next(_ids):04d}"
    async with session_factory() as db:
        db.add(Bump(
            id=bump_id,
            listing_id=listing_id,
            user_id=user_id,
            bump_type=bump_type,
            source=source,
            bumped_at=bumped_at
        ))
        await db.commit()
    return bump_id


async def create_destination(
    session_factory,
    server_id: str,
    listing_channel: Optional[str] = None,
    bump_channel: Optional[str] = None,
    status_channel: Optional[str] = None,
    active: bool = True
) -> None:
    """Register a Discord server's channels."""
    async with session_factory() as db:
        db.add(DiscordBotConfig(
            discord_server_id=server_id,
            listing_channel_id=listing_channel,
            bump_channel_id=bump_channel,
            status_channel_id=status_channel,
            active=active
        ))
        await db.commit()
