"""Unit tests for the status board worker."""
import pytest
from datetime import timedelta

from bumpdispatch.services.health_service import HealthService, HealthCheckResult
from bumpdispatch.services.status_message_service import StatusMessageService
from bumpdispatch.workers.status_board_worker import StatusBoardWorker
from tests.conftest import T0, create_destination


# ============================================================================
# Fixtures
# ============================================================================

def stub_check(name: str, healthy: bool = True):
    async def check():
        return HealthCheckResult(
            name=name,
            healthy=healthy,
            elapsed=timedelta(milliseconds=50),
            status_code=200 if healthy else 503,
            detail="" if healthy else "HTTP 503",
        )
    return check


@pytest.fixture
def health_service():
    return HealthService([stub_check("Website"), stub_check("Database")])


@pytest.fixture
def worker(session_factory, dispatcher, health_service, pass_lock):
    return StatusBoardWorker(
        dispatcher,
        health_service=health_service,
        session_factory=session_factory,
        lock=pass_lock,
    )


async def mapped_message(session_factory, destination_id):
    async with session_factory() as db:
        mapping = await StatusMessageService.get_mapping(db, destination_id)
        return mapping.message_id if mapping else None


# ============================================================================
# Tests for edit-or-create
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestStatusBoardUpsert:
    """Test the one-message-per-channel board."""

    async def test_creates_then_edits_same_message(self, worker, session_factory, dispatcher):
        """✅ First pass posts and stores the id; the next pass edits that id."""
        await create_destination(session_factory, "s1", status_channel="status")

        first = await worker.run_once(T0)
        message_id = await mapped_message(session_factory, "s1:status")

        second = await worker.run_once(T0 + timedelta(hours=1))

        assert first.outcomes == {"s1:status": "created"}
        assert second.outcomes == {"s1:status": "updated"}
        assert len(dispatcher.sent) == 1
        assert dispatcher.edited[0][1] == message_id
        assert await mapped_message(session_factory, "s1:status") == message_id

    async def test_stable_message_over_many_passes(self, worker, session_factory, dispatcher):
        """✅ Repeated passes keep a single message."""
        await create_destination(session_factory, "s1", status_channel="status")

        for hour in range(5):
            await worker.run_once(T0 + timedelta(hours=hour))

        assert len(dispatcher.sent) == 1
        assert len(dispatcher.edited) == 4

    async def test_replaced_once_after_external_deletion(self, worker, session_factory, dispatcher):
        """✅ A deleted message is replaced exactly once, then edited again."""
        await create_destination(session_factory, "s1", status_channel="status")
        await worker.run_once(T0)
        original = await mapped_message(session_factory, "s1:status")
        dispatcher.deleted_messages.add(original)

        replaced = await worker.run_once(T0 + timedelta(hours=1))
        replacement = await mapped_message(session_factory, "s1:status")
        after = await worker.run_once(T0 + timedelta(hours=2))

        assert replaced.outcomes == {"s1:status": "created"}
        assert replacement != original
        assert after.outcomes == {"s1:status": "updated"}
        assert len(dispatcher.sent) == 2
        assert await mapped_message(session_factory, "s1:status") == replacement

    async def test_falls_back_to_bump_channel(self, worker, session_factory, dispatcher):
        """✅ Servers without a status channel get the board in their bump channel."""
        await create_destination(session_factory, "s1", bump_channel="bumps")

        result = await worker.run_once(T0)

        assert result.outcomes == {"s1:bumps": "created"}

    async def test_failed_destination_keeps_previous_mapping(self, worker, session_factory, dispatcher):
        """✅ A failing destination does not affect the others or its own mapping."""
        await create_destination(session_factory, "s1", status_channel="a")
        await create_destination(session_factory, "s2", status_channel="b")
        await worker.run_once(T0)
        previous = await mapped_message(session_factory, "s2:b")

        dispatcher.fail_destinations.add("s2:b")
        result = await worker.run_once(T0 + timedelta(hours=1))

        assert result.outcomes == {"s1:a": "updated", "s2:b": "failed"}
        assert await mapped_message(session_factory, "s2:b") == previous

    async def test_new_destination_without_mapping_fails_cleanly(self, worker, session_factory, dispatcher):
        """✅ A destination that cannot be posted to gets no mapping."""
        await create_destination(session_factory, "s1", status_channel="a")
        dispatcher.fail_destinations.add("s1:a")

        result = await worker.run_once(T0)

        assert result.outcomes == {"s1:a": "failed"}
        assert await mapped_message(session_factory, "s1:a") is None


# ============================================================================
# Tests for health and uptime
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestStatusBoardHealth:
    """Test board content and snapshot history."""

    async def test_payload_reflects_checks(self, session_factory, dispatcher, pass_lock):
        """✅ A failing check renders a degraded board."""
        await create_destination(session_factory, "s1", status_channel="status")
        worker = StatusBoardWorker(
            dispatcher,
            health_service=HealthService([stub_check("Website"), stub_check("Redis", healthy=False)]),
            session_factory=session_factory,
            lock=pass_lock,
        )

        result = await worker.run_once(T0)

        payload = dispatcher.sent[0][2]
        assert result.overall == "degraded"
        assert payload.title == "🟡 Site Status - DEGRADED"
        assert "1/2 services operational" in payload.description

    async def test_uptime_from_snapshots(self, session_factory, dispatcher, pass_lock):
        """✅ Uptime is the share of healthy passes in the window."""
        checks = {"healthy": True}

        async def toggling():
            return HealthCheckResult(name="Website", healthy=checks["healthy"], elapsed=timedelta(milliseconds=5))

        worker = StatusBoardWorker(
            dispatcher,
            health_service=HealthService([toggling]),
            session_factory=session_factory,
            lock=pass_lock,
        )

        await worker.run_once(T0)
        checks["healthy"] = False
        await worker.run_once(T0 + timedelta(hours=1))
        checks["healthy"] = True
        await worker.run_once(T0 + timedelta(hours=2))
        result = await worker.run_once(T0 + timedelta(hours=3))

        assert result.uptime == 75.0

    async def test_missing_token_still_records_snapshot(self, worker, session_factory, dispatcher):
        """✅ Without a bot token health is recorded but nothing is posted."""
        await create_destination(session_factory, "s1", status_channel="status")
        dispatcher.configured = False

        result = await worker.run_once(T0)

        assert result.overall == "healthy"
        assert result.outcomes == {}
        assert dispatcher.sent == []
        async with session_factory() as db:
            snapshot = await HealthService.get_latest_snapshot(db)
        assert snapshot.overall == "healthy"

    async def test_overlapping_pass_skipped(self, worker, pass_lock):
        """✅ A pass that cannot take the lock is skipped."""
        async with pass_lock.hold():
            result = await worker.run_once(T0)

        assert result.skipped is True
