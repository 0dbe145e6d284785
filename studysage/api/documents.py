"""Document endpoints: upload text, list, and generate study material."""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.api.auth import get_current_user
from studysage.api.schemas import (
    DocumentCreateRequest,
    DocumentResponse,
    FlashcardSetResponse,
    QuizResponse,
)
from studysage.core.config import settings
from studysage.core.database import get_db
from studysage.models.user import User
from studysage.services.generation import GenerationService
from studysage.services.study_content import StudyContentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


@lru_cache
def get_generation_service() -> GenerationService:
    """Dependency that provides the AI generation client, configured from settings."""
    return GenerationService(
        api_key=settings.anthropic_api_key,
        model=settings.generation_model,
        max_tokens=settings.generation_max_tokens,
        max_input_chars=settings.generation_max_input_chars,
    )


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: DocumentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Store a plain-text document for the current user."""
    service = StudyContentService(db)
    return await service.create_document(current_user.id, request.content, request.title)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The current user's documents, newest first."""
    service = StudyContentService(db)
    return await service.list_documents(current_user.id)


@router.post("/{document_id}/generate-flashcards", response_model=FlashcardSetResponse)
async def generate_flashcards(
    document_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    generator: GenerationService = Depends(get_generation_service),
):
    """Generate a flashcard set from a document. Counts against the daily quota."""
    service = StudyContentService(db, generator)
    return await service.generate_flashcards(current_user, document_id)


@router.post("/{document_id}/generate-quiz", response_model=QuizResponse)
async def generate_quiz(
    document_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    generator: GenerationService = Depends(get_generation_service),
):
    """Generate a quiz from a document. Counts against the daily quota."""
    service = StudyContentService(db, generator)
    return await service.generate_quiz(current_user, document_id)
