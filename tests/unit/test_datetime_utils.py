"""Unit tests for time helpers."""

from datetime import UTC, timedelta

from donation_matrix.utils.datetime_utils import (
    deadline_after,
    utc_now,
    window_start,
)


class TestDatetimeUtils:
    """Test deadline and window helpers."""

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is UTC

    def test_deadline_after_days(self):
        before = utc_now()
        deadline = deadline_after(2)
        assert before + timedelta(days=2) <= deadline
        assert deadline <= utc_now() + timedelta(days=2)

    def test_no_deadline_for_none_or_zero(self):
        assert deadline_after(None) is None
        assert deadline_after(0) is None

    def test_window_start(self):
        start = window_start(24)
        assert utc_now() - timedelta(hours=24, seconds=5) < start
        assert start <= utc_now() - timedelta(hours=24)
