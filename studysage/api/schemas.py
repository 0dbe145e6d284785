from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from studysage.models.study import QuestionType


# =============================================================================
# USERS
# =============================================================================

class UserResponse(BaseModel):
    """User record with gamification and quota counters."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    is_premium: bool
    total_xp: int
    level: int
    current_streak: int
    longest_streak: int
    last_study_date: datetime | None
    daily_flashcards_used: int
    daily_quizzes_used: int
    last_daily_reset: datetime | None


class QuotaStatusResponse(BaseModel):
    used: int
    limit: int | None  # None = unlimited (premium)
    remaining: int | None


class ProgressResponse(BaseModel):
    """Level progress, streaks and today's quota."""

    user_id: str
    total_xp: int
    level: int
    xp_into_level: int
    xp_needed_for_level: int
    level_progress: float
    current_streak: int
    longest_streak: int
    last_study_date: str | None
    is_premium: bool
    quota: dict[str, QuotaStatusResponse]


# =============================================================================
# DOCUMENTS
# =============================================================================

class DocumentCreateRequest(BaseModel):
    """Plain-text document upload."""

    content: str = Field(min_length=1, description="Extracted document text")
    title: str | None = Field(default=None, max_length=255)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    file_type: str
    created_at: datetime


# =============================================================================
# FLASHCARDS AND QUIZZES
# =============================================================================

class FlashcardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    front: str
    back: str
    explanation: str | None


class FlashcardSetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    document_id: int | None
    title: str
    description: str | None
    card_count: int
    created_at: datetime
    flashcards: list[FlashcardResponse]


class QuizQuestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: QuestionType
    question: str
    options: list[str] | None
    correct_answer: str
    explanation: str | None


class QuizResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    document_id: int | None
    title: str
    question_count: int
    created_at: datetime
    questions: list[QuizQuestionResponse]


# =============================================================================
# STUDY COMPLETION
# =============================================================================

class FlashcardCompleteRequest(BaseModel):
    """Result of studying a flashcard set."""

    cards_studied: int = Field(ge=0, validation_alias="cardsStudied")
    correct_answers: int = Field(ge=0, validation_alias="correctAnswers")

    model_config = ConfigDict(populate_by_name=True)


class QuizCompleteRequest(BaseModel):
    """Graded quiz result."""

    score: int = Field(ge=0)
    total_questions: int = Field(ge=0, validation_alias="totalQuestions")

    model_config = ConfigDict(populate_by_name=True)


class StudyCompleteResponse(BaseModel):
    xp_earned: int
    leveled_up: bool
    level_before: int
    level_after: int
    user: UserResponse


class StudySessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    reference_id: int | None
    xp_earned: int
    cards_studied: int
    correct_answers: int
    completed_at: datetime
