"""
Clock Tests.
"""

from datetime import datetime, timedelta, timezone

from core.clock import MockClock, SystemClock, from_iso8601


class TestMockClock:
    """Tests for MockClock."""

    def test_naive_time_is_utc(self):
        clock = MockClock(datetime(2024, 3, 1, 12, 0))

        assert clock.now().tzinfo == timezone.utc

    def test_advance(self):
        clock = MockClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))

        clock.advance(90)
        clock.advance(minutes=1)

        assert clock.now() == datetime(2024, 3, 1, 12, 2, 30, tzinfo=timezone.utc)

    def test_seconds_until_next(self):
        clock = MockClock(datetime(2024, 3, 1, 12, 0, 45, tzinfo=timezone.utc))

        assert clock.seconds_until_next(60) == 15
        assert clock.seconds_until_next(3600) == 3600 - 45

    def test_is_minute_multiple(self):
        clock = MockClock(datetime(2024, 3, 1, 12, 20, tzinfo=timezone.utc))

        assert clock.is_minute_multiple(10)
        clock.advance(minutes=1)
        assert not clock.is_minute_multiple(10)


class TestSystemClock:
    """Tests for SystemClock."""

    def test_now_is_utc(self):
        now = SystemClock().now()

        assert now.tzinfo == timezone.utc
        assert abs(datetime.now(timezone.utc) - now) < timedelta(seconds=5)


def test_from_iso8601_accepts_z_suffix():
    parsed = from_iso8601("2024-03-01T12:00:00.000Z")

    assert parsed == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
