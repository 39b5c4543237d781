"""
Name: Business Day Tests

Responsibilities:
  - Validate UTC bounds for business days at UTC+5
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from vendcash.domain.business_time import (
    day_end_utc,
    day_start_utc,
    ensure_utc,
)

pytestmark = pytest.mark.unit


def test_day_bounds_at_plus_five():
    start = day_start_utc(date(2024, 3, 10), 5)
    end = day_end_utc(date(2024, 3, 10), 5)

    assert start == datetime(2024, 3, 9, 19, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 10, 18, 59, 59, 999999, tzinfo=timezone.utc)


def test_ensure_utc_treats_naive_as_utc():
    naive = datetime(2024, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_aware_values():
    tashkent = timezone(timedelta(hours=5))
    local = datetime(2024, 1, 1, 5, 0, tzinfo=tashkent)
    assert ensure_utc(local) == datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
