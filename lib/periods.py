# =============================================================================
# lib/periods.py - Usage Period Boundaries
# =============================================================================
# Usage counters are bucketed per calendar month and per week.
# All boundaries are computed in UTC:
# - month: first day 00:00:00 to last day 23:59:59.999999
# - week:  most recent Sunday 00:00:00 to the following Sunday
# =============================================================================

from datetime import datetime, timedelta, timezone
from typing import Literal

PeriodType = Literal["month", "week"]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a timestamp as returned by PostgREST.

    Accepts ISO strings with a trailing "Z" or an explicit offset.
    Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def month_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = ensure_utc(now or utc_now())
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_start = start.replace(year=start.year + 1, month=1)
    else:
        next_start = start.replace(month=start.month + 1)
    return start, next_start - timedelta(microseconds=1)


def week_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = ensure_utc(now or utc_now())
    # Monday is 0 in weekday(); shift so Sunday is the first day
    days_since_sunday = (now.weekday() + 1) % 7
    start = (now - timedelta(days=days_since_sunday)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return start, start + timedelta(days=7)


def period_bounds(period_type: PeriodType, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Get (start, end) for the usage period containing `now`.

    Raises:
        ValueError: If period_type is not "month" or "week"
    """
    if period_type == "month":
        return month_bounds(now)
    if period_type == "week":
        return week_bounds(now)
    raise ValueError(f"Unknown period type: {period_type}")
