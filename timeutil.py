"""Wall-clock helpers.

Timestamps are stored as naive datetimes in the office's local time, so
"today" and the per-day trend buckets are plain [midnight, next midnight)
ranges. ``configure`` pins the zone; without it the server's local zone is
used.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

_zone: Optional[ZoneInfo] = None


def configure(tz_name: Optional[str]) -> None:
    global _zone
    _zone = ZoneInfo(tz_name) if tz_name else None


def now() -> datetime:
    if _zone is None:
        return datetime.now().replace(microsecond=0)
    return datetime.now(_zone).replace(tzinfo=None, microsecond=0)


def today() -> date:
    return now().date()


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(_zone).replace(tzinfo=None)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)
