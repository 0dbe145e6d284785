"""Quiz endpoints: browse quizzes and submit graded attempts."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.api.auth import get_current_user
from studysage.api.schemas import QuizCompleteRequest, QuizResponse, StudyCompleteResponse
from studysage.core.database import get_db
from studysage.models.user import User
from studysage.services.gamification import GamificationService
from studysage.services.study_content import StudyContentService

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.get("", response_model=list[QuizResponse])
async def list_quizzes(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudyContentService(db)
    return await service.list_quizzes(current_user.id)


@router.get("/{quiz_id}", response_model=QuizResponse)
async def get_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudyContentService(db)
    return await service.get_owned_quiz(quiz_id, current_user.id)


@router.post("/{quiz_id}/complete", response_model=StudyCompleteResponse)
async def complete_quiz(
    quiz_id: int,
    request: QuizCompleteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Record a graded attempt and credit XP (with a bonus for a perfect score)."""
    service = GamificationService(db)
    result = await service.complete_quiz(
        current_user.id,
        quiz_id,
        request.score,
        request.total_questions,
    )
    return {
        "xp_earned": result.xp_earned,
        "leveled_up": result.leveled_up,
        "level_before": result.level_before,
        "level_after": result.level_after,
        "user": result.user,
    }
