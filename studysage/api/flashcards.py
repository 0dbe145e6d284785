"""Flashcard set endpoints: browse sets and complete study sessions."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.api.auth import get_current_user
from studysage.api.schemas import (
    FlashcardCompleteRequest,
    FlashcardSetResponse,
    StudyCompleteResponse,
)
from studysage.core.database import get_db
from studysage.models.user import User
from studysage.services.gamification import GamificationService
from studysage.services.study_content import StudyContentService

router = APIRouter(prefix="/flashcard-sets", tags=["flashcards"])


@router.get("", response_model=list[FlashcardSetResponse])
async def list_flashcard_sets(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudyContentService(db)
    return await service.list_flashcard_sets(current_user.id)


@router.get("/{set_id}", response_model=FlashcardSetResponse)
async def get_flashcard_set(
    set_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudyContentService(db)
    return await service.get_owned_flashcard_set(set_id, current_user.id)


@router.post("/{set_id}/complete", response_model=StudyCompleteResponse)
async def complete_flashcard_set(
    set_id: int,
    request: FlashcardCompleteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Credit a finished flashcard session: XP, level and streak."""
    service = GamificationService(db)
    result = await service.complete_flashcard_session(
        current_user.id,
        set_id,
        request.cards_studied,
        request.correct_answers,
    )
    return {
        "xp_earned": result.xp_earned,
        "leveled_up": result.leveled_up,
        "level_before": result.level_before,
        "level_after": result.level_after,
        "user": result.user,
    }
