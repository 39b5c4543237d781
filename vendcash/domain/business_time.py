"""
Name: Business Day Helpers

Responsibilities:
  - Translate business calendar days (fixed UTC offset, Tashkent by default)
    into inclusive UTC bounds for queries.
  - Normalize operator timestamps to timezone-aware UTC.

Notes:
  - Offsets are fixed (no DST); Uzbekistan does not observe DST.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def business_timezone(offset_hours: int) -> timezone:
    return timezone(timedelta(hours=offset_hours))


def ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start_utc(day: date, offset_hours: int) -> datetime:
    local = datetime.combine(day, time.min, tzinfo=business_timezone(offset_hours))
    return local.astimezone(timezone.utc)


def day_end_utc(day: date, offset_hours: int) -> datetime:
    local = datetime.combine(day, time.max, tzinfo=business_timezone(offset_hours))
    return local.astimezone(timezone.utc)

