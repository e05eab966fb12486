"""Unit tests for time utilities."""
import pytest
from datetime import datetime, timedelta, timezone

from bumpdispatch.utils.time import ensure_utc, format_duration, format_local, discord_timestamp


@pytest.mark.unit
class TestEnsureUtc:
    """Test UTC normalisation."""

    def test_naive_is_tagged_utc(self):
        """✅ Naive values from SQLite are read as UTC."""
        value = ensure_utc(datetime(2025, 1, 1, 12, 0))
        assert value == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_aware_is_converted(self):
        """✅ Aware values in another zone are converted."""
        plus_two = timezone(timedelta(hours=2))
        value = ensure_utc(datetime(2025, 1, 1, 14, 0, tzinfo=plus_two))
        assert value == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert value.tzinfo == timezone.utc

    def test_none_passes_through(self):
        """✅ None stays None."""
        assert ensure_utc(None) is None


@pytest.mark.unit
class TestFormatDuration:
    """Test cooldown duration display."""

    @pytest.mark.parametrize("remaining, expected", [
        (timedelta(hours=1, minutes=5), "1h 5m"),
        (timedelta(hours=2), "2h 0m"),
        (timedelta(minutes=59, seconds=59), "0h 59m"),
        (timedelta(seconds=30), "0h 1m"),
        (timedelta(0), "0h 0m"),
        (timedelta(hours=-1), "0h 0m"),
    ])
    def test_format(self, remaining, expected):
        """✅ Hours and whole minutes, never negative."""
        assert format_duration(remaining) == expected


@pytest.mark.unit
class TestDisplayTimes:
    """Test local and Discord time rendering."""

    def test_format_local(self):
        """✅ UTC rendered in a named timezone."""
        value = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
        assert format_local(value, "Europe/London") == "2025-07-01 13:00 BST"

    def test_discord_timestamp(self):
        """✅ Discord relative timestamp markup."""
        value = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
        assert discord_timestamp(value) == "<t:1735689600:R>"
        assert discord_timestamp(value, "F") == "<t:1735689600:F>"
