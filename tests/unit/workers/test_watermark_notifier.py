"""Unit tests for the watermark notifier."""
import asyncio
import pytest
from datetime import timedelta
from itertools import count
from unittest.mock import patch

from bumpdispatch.core.locks import PassLock
from bumpdispatch.services.listing_service import ListingService
from bumpdispatch.services.watermark_service import WatermarkService
from bumpdispatch.workers.auto_bump_worker import AutoBumpWorker
from bumpdispatch.workers.watermark_notifier import (
    WatermarkNotifier,
    NEW_LISTING_STREAM,
    BUMP_STREAM,
    WATERMARK_STEP,
)
from tests.conftest import T0, create_profile, create_listing, create_bump, create_destination


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def listing_notifier(session_factory, dispatcher, pass_lock):
    return WatermarkNotifier(NEW_LISTING_STREAM, dispatcher, session_factory=session_factory, lock=pass_lock)


@pytest.fixture
def bump_notifier(session_factory, dispatcher):
    return WatermarkNotifier(BUMP_STREAM, dispatcher, session_factory=session_factory, lock=PassLock("bump"))


async def seed_watermark(session_factory, stream, value):
    async with session_factory() as db:
        await WatermarkService.get_watermark(db, stream, value)


async def read_watermark(session_factory, stream):
    async with session_factory() as db:
        return await WatermarkService.get_watermark(db, stream, T0 - timedelta(days=365))


# ============================================================================
# Tests for the new listing stream
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestNewListingStream:
    """Test announcing new listings."""

    async def test_dispatches_each_record_once_and_advances(self, listing_notifier, session_factory, dispatcher):
        """✅ Three records after T are sent once each; watermark = T+5s+1µs."""
        await seed_watermark(session_factory, "new_listing", T0)
        await create_destination(session_factory, "s1", listing_channel="c1")
        user_id = await create_profile(session_factory)
        for seconds in (1, 2, 5):
            await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=seconds))

        result = await listing_notifier.run_once(T0 + timedelta(seconds=10))

        assert result.records == 3
        assert result.deliveries_succeeded == 3
        assert len(dispatcher.sent) == 3
        expected = T0 + timedelta(seconds=5) + WATERMARK_STEP
        assert result.watermark_after == expected
        assert await read_watermark(session_factory, "new_listing") == expected

    async def test_second_pass_does_not_redispatch(self, listing_notifier, session_factory, dispatcher):
        """✅ Records already announced are never sent again."""
        await seed_watermark(session_factory, "new_listing", T0)
        await create_destination(session_factory, "s1", listing_channel="c1")
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=1))

        await listing_notifier.run_once(T0 + timedelta(seconds=10))
        second = await listing_notifier.run_once(T0 + timedelta(seconds=40))

        assert second.records == 0
        assert len(dispatcher.sent) == 1

    async def test_first_run_initialises_to_now(self, listing_notifier, session_factory, dispatcher):
        """✅ With no stored watermark, older records are not announced."""
        await create_destination(session_factory, "s1", listing_channel="c1")
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 - timedelta(hours=1))

        result = await listing_notifier.run_once(T0)

        assert result.records == 0
        assert dispatcher.sent == []
        assert await read_watermark(session_factory, "new_listing") == T0

    async def test_no_records_leaves_watermark(self, listing_notifier, session_factory):
        """✅ An empty pass does not move the watermark."""
        await seed_watermark(session_factory, "new_listing", T0)

        result = await listing_notifier.run_once(T0 + timedelta(minutes=1))

        assert result.watermark_after == T0
        assert await read_watermark(session_factory, "new_listing") == T0

    async def test_no_destinations_still_advances(self, listing_notifier, session_factory, dispatcher):
        """✅ With no registered channels the records are consumed anyway."""
        await seed_watermark(session_factory, "new_listing", T0)
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=3))

        result = await listing_notifier.run_once(T0 + timedelta(seconds=10))

        assert result.deliveries_attempted == 0
        assert dispatcher.sent == []
        assert result.watermark_after == T0 + timedelta(seconds=3) + WATERMARK_STEP

    async def test_missing_token_is_noop(self, listing_notifier, session_factory, dispatcher):
        """✅ Without a bot token nothing is read, sent or advanced."""
        dispatcher.configured = False
        await seed_watermark(session_factory, "new_listing", T0)
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=3))

        result = await listing_notifier.run_once(T0 + timedelta(seconds=10))

        assert result.records == 0
        assert await read_watermark(session_factory, "new_listing") == T0

    async def test_failed_destination_isolated(self, listing_notifier, session_factory, dispatcher):
        """✅ A failing destination does not stop the others; the watermark still advances."""
        await seed_watermark(session_factory, "new_listing", T0)
        await create_destination(session_factory, "s1", listing_channel="c1")
        await create_destination(session_factory, "s2", listing_channel="c2")
        await create_destination(session_factory, "s3", listing_channel="c3")
        dispatcher.fail_destinations.add("s2:c2")
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=1))
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=2))

        result = await listing_notifier.run_once(T0 + timedelta(seconds=10))

        assert result.deliveries_attempted == 6
        assert result.deliveries_failed == 2
        assert len(dispatcher.sent_to("s1:c1")) == 2
        assert len(dispatcher.sent_to("s3:c3")) == 2
        assert dispatcher.sent_to("s2:c2") == []
        assert result.watermark_after == T0 + timedelta(seconds=2) + WATERMARK_STEP

    async def test_inactive_listings_not_announced(self, listing_notifier, session_factory, dispatcher):
        """✅ Only active listings are announced."""
        await seed_watermark(session_factory, "new_listing", T0)
        await create_destination(session_factory, "s1", listing_channel="c1")
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=1), status="inactive")

        result = await listing_notifier.run_once(T0 + timedelta(seconds=10))

        assert result.records == 0
        assert dispatcher.sent == []

    async def test_cancelled_pass_keeps_watermark(self, listing_notifier, session_factory, dispatcher):
        """✅ A pass cancelled before the barrier leaves the watermark untouched."""
        await seed_watermark(session_factory, "new_listing", T0)
        await create_destination(session_factory, "s1", listing_channel="c1")
        user_id = await create_profile(session_factory)
        await create_listing(session_factory, user_id, created_at=T0 + timedelta(seconds=1))

        async def cancelled_send(destination, payload):
            raise asyncio.CancelledError()

        with patch.object(dispatcher, "send", side_effect=cancelled_send):
            with pytest.raises(asyncio.CancelledError):
                await listing_notifier.run_once(T0 + timedelta(seconds=10))

        assert await read_watermark(session_factory, "new_listing") == T0

    async def test_aborts_when_state_unreadable(self, listing_notifier):
        """✅ Failing to read the watermark aborts the pass."""
        with patch(
            "bumpdispatch.workers.watermark_notifier.WatermarkService.get_watermark",
            side_effect=RuntimeError("db down")
        ):
            result = await listing_notifier.run_once(T0)

        assert result.aborted is True


# ============================================================================
# Tests for the bump stream
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestBumpStream:
    """Test announcing bumps."""

    async def test_announces_bumps_to_bump_channels(self, bump_notifier, session_factory, dispatcher):
        """✅ New bumps go to bump channels with the bump payload."""
        await seed_watermark(session_factory, "bump", T0)
        await create_destination(session_factory, "s1", listing_channel="l1", bump_channel="b1")
        user_id = await create_profile(session_factory)
        listing_id = await create_listing(session_factory, user_id, name="Cozy Corner", bump_count=5)
        await create_bump(session_factory, listing_id, user_id, T0 + timedelta(seconds=4), source="discord")

        result = await bump_notifier.run_once(T0 + timedelta(seconds=30))

        assert result.records == 1
        destination_id, _, payload = dispatcher.sent[0]
        assert destination_id == "s1:b1"
        assert payload.title == "🚀 Server Bumped!"
        assert "**Cozy Corner**" in payload.description
        assert result.watermark_after == T0 + timedelta(seconds=4) + WATERMARK_STEP

    async def test_streams_keep_separate_watermarks(
        self, bump_notifier, listing_notifier, session_factory, dispatcher
    ):
        """✅ Running the bump stream does not move the listing stream."""
        await seed_watermark(session_factory, "bump", T0)
        await seed_watermark(session_factory, "new_listing", T0)
        user_id = await create_profile(session_factory)
        listing_id = await create_listing(session_factory, user_id, created_at=T0 - timedelta(days=1))
        await create_bump(session_factory, listing_id, user_id, T0 + timedelta(seconds=4))

        await bump_notifier.run_once(T0 + timedelta(seconds=30))

        assert await read_watermark(session_factory, "new_listing") == T0


# ============================================================================
# Tests for records still being written
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestInFlightRecords:
    """Test that the watermark never overtakes a write that is still to commit."""

    async def test_records_inside_settle_window_wait_for_next_pass(self, bump_notifier, session_factory, dispatcher):
        """✅ A bump younger than the settle window is left for a later pass."""
        await seed_watermark(session_factory, "bump", T0)
        await create_destination(session_factory, "s1", bump_channel="b1")
        user_id = await create_profile(session_factory)
        listing_id = await create_listing(session_factory, user_id)
        await create_bump(session_factory, listing_id, user_id, T0 + timedelta(seconds=8))

        with patch("bumpdispatch.workers.watermark_notifier.settings.notification_settle_seconds", 5):
            early = await bump_notifier.run_once(T0 + timedelta(seconds=10))
            late = await bump_notifier.run_once(T0 + timedelta(seconds=20))

        assert early.records == 0
        assert early.watermark_after == T0
        assert late.records == 1
        assert len(dispatcher.sent) == 1

    async def test_notifier_pass_inside_auto_bump_pass(self, bump_notifier, session_factory, dispatcher, pass_lock):
        """✅ A notifier pass between two listings of one auto-bump pass loses no bump."""
        await seed_watermark(session_factory, "bump", T0 - timedelta(minutes=1))
        await create_destination(session_factory, "s1", bump_channel="b1")
        user_id = await create_profile(session_factory, tier="premium", auto_bump=True)
        first = await create_listing(session_factory, user_id, listing_id="a-first")
        await create_listing(session_factory, user_id, listing_id="b-second")

        # One second of pass time elapses per clock reading
        ticks = count()
        worker = AutoBumpWorker(session_factory=session_factory, lock=pass_lock, clock=lambda: float(next(ticks)))
        original = ListingService.bump_listing
        interleaved = []

        async def bump_then_notify(db, listing_id, *args, **kwargs):
            bump = await original(db, listing_id, *args, **kwargs)
            if listing_id == first:
                interleaved.append(await bump_notifier.run_once(T0 + timedelta(seconds=6)))
            return bump

        with patch.object(ListingService, "bump_listing", side_effect=bump_then_notify), \
             patch("bumpdispatch.workers.watermark_notifier.settings.notification_settle_seconds", 5):
            auto = await worker.run_once(T0)
            final = await bump_notifier.run_once(T0 + timedelta(seconds=30))

        assert auto.listings_bumped == 2
        assert interleaved[0].records == 1
        assert final.records == 1
        announced = [payload for _, _, payload in dispatcher.sent]
        assert len(announced) == 2
        assert "Server a-first" in announced[0].description
        assert "Server b-second" in announced[1].description
