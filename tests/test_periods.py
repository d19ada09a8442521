# =============================================================================
# tests/test_periods.py - Usage Period Tests
# =============================================================================
# Unit tests for lib/periods.py (month and Sunday-based week boundaries).
#
# Run with: pytest tests/test_periods.py -v
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from lib.periods import (
    ensure_utc,
    month_bounds,
    parse_timestamp,
    period_bounds,
    week_bounds,
)


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_trailing_z(self):
        parsed = parse_timestamp("2026-03-18T12:00:00Z")
        assert parsed == datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_timestamp("2026-03-18T14:00:00+02:00")
        assert parsed == datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_empty_values(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_naive_datetime_treated_as_utc(self):
        assert ensure_utc(datetime(2026, 1, 1)).tzinfo == timezone.utc


class TestMonthBounds:
    """Tests for month_bounds()."""

    def test_mid_month(self):
        start, end = month_bounds(datetime(2026, 3, 18, 12, tzinfo=timezone.utc))

        assert start == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 3, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_december_rolls_into_next_year(self):
        start, end = month_bounds(datetime(2026, 12, 31, 23, tzinfo=timezone.utc))

        assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
        assert end + timedelta(microseconds=1) == datetime(2027, 1, 1, tzinfo=timezone.utc)

    def test_february(self):
        _, end = month_bounds(datetime(2026, 2, 10, tzinfo=timezone.utc))
        assert end.day == 28


class TestWeekBounds:
    """Tests for week_bounds()."""

    def test_week_starts_on_sunday(self):
        # 2026-03-18 is a Wednesday
        start, end = week_bounds(datetime(2026, 3, 18, 12, tzinfo=timezone.utc))

        assert start == datetime(2026, 3, 15, tzinfo=timezone.utc)
        assert start.weekday() == 6
        assert end == datetime(2026, 3, 22, tzinfo=timezone.utc)

    def test_sunday_is_its_own_start(self):
        start, _ = week_bounds(datetime(2026, 3, 15, 8, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 15, tzinfo=timezone.utc)


class TestPeriodBounds:
    """Tests for period_bounds()."""

    def test_dispatches_by_type(self, fixed_now):
        assert period_bounds("month", fixed_now) == month_bounds(fixed_now)
        assert period_bounds("week", fixed_now) == week_bounds(fixed_now)

    def test_unknown_type(self, fixed_now):
        with pytest.raises(ValueError):
            period_bounds("year", fixed_now)
