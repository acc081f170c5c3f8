"""
Date helpers for lifecycle arithmetic.

All lifecycle timestamps are stored as naive UTC datetimes, so every
comparison in the services goes through utcnow() rather than datetime.now().
"""

import math
from datetime import UTC, date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (matches the DB column type)."""
    return datetime.now(UTC).replace(tzinfo=None)


def start_of_day(value: date) -> datetime:
    """Midnight (UTC) at the start of the given date."""
    return datetime.combine(value, time.min)


def add_months(value: datetime, months: int) -> datetime:
    """Calendar-aware month addition (Jan 31 + 1 month = Feb 28/29)."""
    return value + relativedelta(months=months)


def add_years(value: datetime, years: int) -> datetime:
    return value + relativedelta(years=years)


def days_until(target: datetime, now: datetime) -> int:
    """Whole days remaining until target, rounded up. Negative once passed."""
    delta: timedelta = target - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)
