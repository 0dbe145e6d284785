"""Free-tier daily usage quotas for AI generation.

Flashcard and quiz generation are metered independently. Counters roll over
lazily: a counter whose ``last_reset`` falls on an earlier study day is
treated as zero, and the next recorded use performs the actual reset.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from studysage.core.clock import study_date


class ResourceType(str, Enum):
    """Metered generation resources."""
    FLASHCARDS = "flashcards"
    QUIZZES = "quizzes"


@dataclass(frozen=True)
class DailyLimits:
    flashcards: int
    quizzes: int

    def for_resource(self, resource: ResourceType) -> int:
        if resource is ResourceType.FLASHCARDS:
            return self.flashcards
        return self.quizzes


@dataclass(frozen=True)
class UsageUpdate:
    flashcards_used: int
    quizzes_used: int
    last_reset: datetime | None


def is_stale(now: datetime, last_reset: datetime | None, tz: ZoneInfo) -> bool:
    """True if the counters belong to an earlier day (or were never reset)."""
    if last_reset is None:
        return True
    return study_date(last_reset, tz) < study_date(now, tz)


def check_limit(
    now: datetime,
    is_premium: bool,
    last_reset: datetime | None,
    used: int,
    limit: int,
    tz: ZoneInfo,
) -> bool:
    """Whether one more generation of a resource is allowed."""
    if is_premium:
        return True
    if is_stale(now, last_reset, tz):
        return True
    return used < limit


def record_usage(
    now: datetime,
    last_reset: datetime | None,
    flashcards_used: int,
    quizzes_used: int,
    resource: ResourceType,
    tz: ZoneInfo,
) -> UsageUpdate:
    """Count one generation of ``resource``, rolling the day over if needed."""
    if is_stale(now, last_reset, tz):
        return UsageUpdate(
            flashcards_used=1 if resource is ResourceType.FLASHCARDS else 0,
            quizzes_used=1 if resource is ResourceType.QUIZZES else 0,
            last_reset=now,
        )

    if resource is ResourceType.FLASHCARDS:
        flashcards_used += 1
    else:
        quizzes_used += 1
    return UsageUpdate(
        flashcards_used=flashcards_used,
        quizzes_used=quizzes_used,
        last_reset=last_reset,
    )


def remaining(
    now: datetime,
    is_premium: bool,
    last_reset: datetime | None,
    used: int,
    limit: int,
    tz: ZoneInfo,
) -> int | None:
    """Generations left today, or None when unlimited."""
    if is_premium:
        return None
    if is_stale(now, last_reset, tz):
        return limit
    return max(limit - used, 0)
