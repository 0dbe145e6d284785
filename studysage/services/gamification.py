"""Gamification service - XP awards, levels and streaks for completed study."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.core.clock import get_zone, utcnow
from studysage.core.config import settings
from studysage.core.errors import ValidationError
from studysage.models.study import (
    QuizAttempt,
    StudySession,
    StudySessionType,
)
from studysage.models.user import User
from studysage.services import quota
from studysage.services.leveling import level_from_xp, level_progress
from studysage.services.locks import UserLocks, run_user_update, user_locks
from studysage.services.streaks import credit_study
from studysage.services.study_content import StudyContentService

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

XP_PER_FLASHCARD = 5
XP_PER_QUIZ_QUESTION = 10
XP_BONUS_PERFECT_QUIZ = 25


def flashcard_session_xp(cards_studied: int) -> int:
    return cards_studied * XP_PER_FLASHCARD


def quiz_xp(score: int, total_questions: int) -> int:
    """XP for a quiz: per correct answer, plus a bonus for a perfect score."""
    is_perfect = total_questions > 0 and score == total_questions
    return score * XP_PER_QUIZ_QUESTION + (XP_BONUS_PERFECT_QUIZ if is_perfect else 0)


@dataclass
class StudyResult:
    """Outcome of one completed study event."""

    xp_earned: int
    user: User
    level_before: int
    level_after: int

    @property
    def leveled_up(self) -> bool:
        return self.level_after > self.level_before


# =============================================================================
# GAMIFICATION SERVICE
# =============================================================================

class GamificationService:
    """Credits completed flashcard sessions and quizzes to user progress."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int | None = None,
        locks: UserLocks = user_locks,
    ):
        self.db = db
        self.clock = clock
        self.tz = get_zone(settings.study_timezone)
        self.max_retries = max_retries or settings.max_update_retries
        self.locks = locks
        self.content = StudyContentService(db, clock=clock, locks=locks)

    def _apply_progress(self, user: User, xp_earned: int, now: datetime) -> int:
        """Add XP, recompute level and credit the streak. Returns the prior level."""
        level_before = user.level
        user.total_xp = (user.total_xp or 0) + xp_earned
        user.level = level_from_xp(user.total_xp)

        streak = credit_study(
            now,
            user.last_study_date,
            user.current_streak or 0,
            user.longest_streak or 0,
            self.tz,
        )
        user.current_streak = streak.current_streak
        user.longest_streak = streak.longest_streak
        user.last_study_date = streak.last_study_date
        return level_before

    async def complete_flashcard_session(
        self,
        user_id: str,
        set_id: int,
        cards_studied: int,
        correct_answers: int,
    ) -> StudyResult:
        """Record a finished flashcard session and award its XP."""
        if cards_studied < 0 or not 0 <= correct_answers <= cards_studied:
            raise ValidationError(
                "cards_studied must be >= 0 and correct_answers between 0 and cards_studied"
            )

        now = self.clock()
        await self.content.get_owned_flashcard_set(set_id, user_id)
        xp_earned = flashcard_session_xp(cards_studied)

        async def apply(user: User) -> StudyResult:
            self.db.add(StudySession(
                user_id=user_id,
                type=StudySessionType.FLASHCARD.value,
                reference_id=set_id,
                xp_earned=xp_earned,
                cards_studied=cards_studied,
                correct_answers=correct_answers,
                completed_at=now,
            ))
            level_before = self._apply_progress(user, xp_earned, now)
            return StudyResult(xp_earned, user, level_before, user.level)

        result = await run_user_update(
            self.db, user_id, apply, max_retries=self.max_retries, locks=self.locks
        )
        logger.info(
            "Flashcard session: user=%s set=%d cards=%d xp=%d level=%d streak=%d",
            user_id, set_id, cards_studied, xp_earned,
            result.level_after, result.user.current_streak,
        )
        return result

    async def complete_quiz(
        self,
        user_id: str,
        quiz_id: int,
        score: int,
        total_questions: int,
    ) -> StudyResult:
        """Record a graded quiz attempt and award its XP."""
        if total_questions < 0 or not 0 <= score <= total_questions:
            raise ValidationError(
                "total_questions must be >= 0 and score between 0 and total_questions"
            )

        now = self.clock()
        await self.content.get_owned_quiz(quiz_id, user_id)
        xp_earned = quiz_xp(score, total_questions)

        async def apply(user: User) -> StudyResult:
            self.db.add(QuizAttempt(
                user_id=user_id,
                quiz_id=quiz_id,
                score=score,
                total_questions=total_questions,
                xp_earned=xp_earned,
                completed_at=now,
            ))
            self.db.add(StudySession(
                user_id=user_id,
                type=StudySessionType.QUIZ.value,
                reference_id=quiz_id,
                xp_earned=xp_earned,
                cards_studied=total_questions,
                correct_answers=score,
                completed_at=now,
            ))
            level_before = self._apply_progress(user, xp_earned, now)
            return StudyResult(xp_earned, user, level_before, user.level)

        result = await run_user_update(
            self.db, user_id, apply, max_retries=self.max_retries, locks=self.locks
        )
        logger.info(
            "Quiz completed: user=%s quiz=%d score=%d/%d xp=%d level=%d",
            user_id, quiz_id, score, total_questions, xp_earned, result.level_after,
        )
        return result

    def get_user_progress(self, user: User) -> dict[str, Any]:
        """Dashboard view of a user's XP, level, streak and today's quota."""
        now = self.clock()
        progress = level_progress(user.total_xp or 0)
        limits = quota.DailyLimits(
            flashcards=settings.free_daily_flashcards,
            quizzes=settings.free_daily_quizzes,
        )

        return {
            "user_id": user.id,
            "total_xp": user.total_xp or 0,
            "level": progress.level,
            "xp_into_level": progress.xp_into_level,
            "xp_needed_for_level": progress.xp_needed,
            "level_progress": progress.percent,
            "current_streak": user.current_streak or 0,
            "longest_streak": user.longest_streak or 0,
            "last_study_date": user.last_study_date.isoformat() if user.last_study_date else None,
            "is_premium": user.is_premium,
            "quota": {
                resource.value: {
                    "used": 0 if quota.is_stale(now, user.last_daily_reset, self.tz) else used,
                    "limit": None if user.is_premium else limits.for_resource(resource),
                    "remaining": quota.remaining(
                        now,
                        user.is_premium,
                        user.last_daily_reset,
                        used,
                        limits.for_resource(resource),
                        self.tz,
                    ),
                }
                for resource, used in (
                    (quota.ResourceType.FLASHCARDS, user.daily_flashcards_used or 0),
                    (quota.ResourceType.QUIZZES, user.daily_quizzes_used or 0),
                )
            },
        }

    async def get_recent_study_sessions(
        self,
        user_id: str,
        limit: int = 10,
    ) -> list[StudySession]:
        """Most recent study events for a user, newest first."""
        result = await self.db.execute(
            select(StudySession)
            .where(StudySession.user_id == user_id)
            .order_by(StudySession.completed_at.desc(), StudySession.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
