"""Level calculations: cumulative XP <-> level, progress within a level.

Level L starts at ``LEVEL_XP_FACTOR * (L - 1) ** 2`` XP, so with the factor
of 50: level 1 is 0-49, level 2 is 50-199, level 3 is 200-449, and so on.
"""

import math
from dataclasses import dataclass

LEVEL_XP_FACTOR = 50


@dataclass(frozen=True)
class LevelProgress:
    level: int
    xp_into_level: int
    xp_needed: int  # width of the current level band
    percent: float


def xp_for_level(level: int) -> int:
    """Cumulative XP at which a level starts."""
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    return LEVEL_XP_FACTOR * (level - 1) ** 2


def level_from_xp(total_xp: int) -> int:
    """Level reached with a given cumulative XP.

    Integer form of floor(sqrt(xp / K)) + 1, exact for any size of xp.
    """
    if total_xp < 0:
        raise ValueError(f"total_xp must be >= 0, got {total_xp}")
    return math.isqrt(total_xp // LEVEL_XP_FACTOR) + 1


def level_progress(total_xp: int) -> LevelProgress:
    """Progress through the current level band."""
    level = level_from_xp(total_xp)
    floor = xp_for_level(level)
    needed = xp_for_level(level + 1) - floor
    into = total_xp - floor
    percent = 100.0 if needed == 0 else 100 * into / needed
    return LevelProgress(level=level, xp_into_level=into, xp_needed=needed, percent=percent)
