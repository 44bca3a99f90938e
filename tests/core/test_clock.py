"""
Tests for the clock abstraction.
"""

from datetime import datetime, timedelta, timezone

from core.clock import MockClock, SystemClock, ensure_utc
from tests.helpers import FIXED_NOW


class TestMockClock:
    """Test MockClock time control."""

    def test_callable_returns_now(self):
        clock = MockClock(FIXED_NOW)
        assert clock() == FIXED_NOW
        assert clock.today() == FIXED_NOW.date()

    def test_advance(self):
        clock = MockClock(FIXED_NOW)
        clock.advance(minutes=10)
        assert clock() == FIXED_NOW + timedelta(minutes=10)

    def test_set_time_normalizes_to_utc(self):
        clock = MockClock(FIXED_NOW)
        clock.set_time(datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))))
        assert clock() == FIXED_NOW
        assert clock().tzinfo == timezone.utc


class TestSystemClock:
    """Test SystemClock."""

    def test_is_timezone_aware(self):
        assert SystemClock()().tzinfo is not None


def test_ensure_utc_tags_naive_values():
    assert ensure_utc(datetime(2026, 3, 1, 12, 0)) == FIXED_NOW
