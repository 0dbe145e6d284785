"""Daily study streaks.

A streak counts consecutive calendar days (in the study time zone) with at
least one credited study event. Crediting is a pure function of the stored
counters; the caller reads, computes and writes back inside its transaction.
"""

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from studysage.core.clock import study_date


@dataclass(frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    last_study_date: datetime


def credit_study(
    now: datetime,
    last_study_date: datetime | None,
    current_streak: int,
    longest_streak: int,
    tz: ZoneInfo,
) -> StreakUpdate:
    """Apply a study event happening at ``now`` to the streak counters."""
    new_last = now

    if last_study_date is None:
        new_streak = 1
    else:
        days = (study_date(now, tz) - study_date(last_study_date, tz)).days
        if days == 0:
            # Already credited today
            new_streak = current_streak
        elif days == 1:
            new_streak = current_streak + 1
        elif days > 1:
            new_streak = 1
        else:
            # Event dated before the last credit: leave counters as they are
            new_streak = current_streak
            new_last = last_study_date

    return StreakUpdate(
        current_streak=new_streak,
        longest_streak=max(longest_streak, new_streak),
        last_study_date=new_last,
    )
