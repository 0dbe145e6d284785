"""Time source and calendar-day normalization.

Streak and quota day boundaries are computed in a single configured zone
(``Settings.study_timezone``). Databases without timezone support (SQLite)
hand back naive datetimes; those are stored in UTC and read back as UTC.
"""

from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache(maxsize=8)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def ensure_aware(ts: datetime) -> datetime:
    """Attach UTC to naive timestamps."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def study_date(ts: datetime, tz: ZoneInfo) -> date:
    """Calendar date of a timestamp in the study zone."""
    return ensure_aware(ts).astimezone(tz).date()
