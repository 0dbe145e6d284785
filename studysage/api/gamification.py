"""Gamification API endpoints for XP, levels, streaks and study history."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.api.auth import get_current_user
from studysage.api.schemas import ProgressResponse, StudySessionResponse
from studysage.core.database import get_db
from studysage.models.user import User
from studysage.services.gamification import GamificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["gamification"])


@router.get("/gamification/progress", response_model=ProgressResponse)
async def get_progress(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get the current user's level progress, streaks and remaining daily quota."""
    service = GamificationService(db)
    return service.get_user_progress(current_user)


@router.get("/study-sessions", response_model=list[StudySessionResponse])
async def get_study_sessions(
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current user's most recent study sessions."""
    service = GamificationService(db)
    return await service.get_recent_study_sessions(current_user.id, limit)
