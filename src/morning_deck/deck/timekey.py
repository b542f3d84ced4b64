"""
Day keys for the business calendar.

A day key is the YYYY-MM-DD civil date in the configured business zone. It is
the only identity of "which day's run", so a caller's local zone never moves
the day boundary.
"""

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from ..config import config


@lru_cache(maxsize=8)
def business_zone(name: str | None = None) -> ZoneInfo:
    """Resolve the business zone. Raises ZoneInfoNotFoundError on a bad name."""
    return ZoneInfo(name or config.BUSINESS_TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def business_date(instant: datetime | None = None, tz_name: str | None = None) -> date:
    """Civil date of `instant` (default now) in the business zone.

    Naive instants are taken to be UTC.
    """
    instant = instant or utc_now()
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(business_zone(tz_name)).date()


def day_key(instant: datetime | None = None, tz_name: str | None = None) -> str:
    """YYYY-MM-DD key for `instant` (default now) in the business zone."""
    return business_date(instant, tz_name).isoformat()


def parse_day_key(key: str) -> date:
    """Parse a YYYY-MM-DD key. Raises ValueError for anything else."""
    parsed = date.fromisoformat(key)
    if parsed.isoformat() != key:
        raise ValueError(f'not a YYYY-MM-DD day key: {key!r}')
    return parsed


def shift_day_key(key: str, days: int) -> str:
    """Return the key `days` calendar days after `key` (negative for before)."""
    return (parse_day_key(key) + timedelta(days=days)).isoformat()
