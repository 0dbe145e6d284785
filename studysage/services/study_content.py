"""Documents, generated flashcard sets and quizzes, and the quota-gated generation flow."""

import logging
from datetime import datetime
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.core.clock import get_zone, utcnow
from studysage.core.config import settings
from studysage.core.errors import (
    AccessDeniedError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from studysage.models.study import (
    Document,
    Flashcard,
    FlashcardSet,
    Quiz,
    QuizQuestion,
)
from studysage.models.user import User
from studysage.services import quota
from studysage.services.generation import (
    GeneratedFlashcard,
    GeneratedQuestion,
    GenerationService,
    MultipleChoiceQuestion,
)
from studysage.services.locks import UserLocks, run_user_update, user_locks

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_DOCUMENT_CHARS = 50
MAX_TITLE_CHARS = 50


def derive_title(content: str) -> str:
    """First non-empty line of the text, shortened to a title."""
    for line in content.splitlines():
        line = line.strip()
        if line:
            if len(line) > MAX_TITLE_CHARS:
                return line[:MAX_TITLE_CHARS - 3].rstrip() + "..."
            return line
    return "Untitled Document"


class StudyContentService:
    """Owner-scoped access to study material plus AI generation under quota."""

    def __init__(
        self,
        db: AsyncSession,
        generator: GenerationService | None = None,
        clock: Callable[[], datetime] = utcnow,
        locks: UserLocks = user_locks,
    ):
        self.db = db
        self.generator = generator
        self.clock = clock
        self.locks = locks
        self.tz = get_zone(settings.study_timezone)
        self.limits = quota.DailyLimits(
            flashcards=settings.free_daily_flashcards,
            quizzes=settings.free_daily_quizzes,
        )

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def create_document(
        self,
        user_id: str,
        content: str,
        title: str | None = None,
    ) -> Document:
        if len(content.strip()) < MIN_DOCUMENT_CHARS:
            raise ValidationError("Document content is too short or empty")

        document = Document(
            user_id=user_id,
            title=(title or "").strip() or derive_title(content),
            content=content,
            file_type="txt",
        )
        self.db.add(document)
        await self.db.commit()
        logger.info("Document %d created for user %s", document.id, user_id)
        return document

    async def list_documents(self, user_id: str) -> list[Document]:
        result = await self.db.execute(
            select(Document)
            .where(Document.user_id == user_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
        )
        return list(result.scalars().all())

    async def _get_owned(self, model: type[T], item_id: int, user_id: str, label: str) -> T:
        result = await self.db.execute(select(model).where(model.id == item_id))
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(f"{label} not found")
        if item.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return item

    async def get_owned_document(self, document_id: int, user_id: str) -> Document:
        return await self._get_owned(Document, document_id, user_id, "Document")

    # -------------------------------------------------------------------------
    # Flashcard sets and quizzes
    # -------------------------------------------------------------------------

    async def get_owned_flashcard_set(self, set_id: int, user_id: str) -> FlashcardSet:
        return await self._get_owned(FlashcardSet, set_id, user_id, "Flashcard set")

    async def list_flashcard_sets(self, user_id: str) -> list[FlashcardSet]:
        result = await self.db.execute(
            select(FlashcardSet)
            .where(FlashcardSet.user_id == user_id)
            .order_by(FlashcardSet.created_at.desc(), FlashcardSet.id.desc())
        )
        return list(result.scalars().all())

    async def get_owned_quiz(self, quiz_id: int, user_id: str) -> Quiz:
        return await self._get_owned(Quiz, quiz_id, user_id, "Quiz")

    async def list_quizzes(self, user_id: str) -> list[Quiz]:
        result = await self.db.execute(
            select(Quiz)
            .where(Quiz.user_id == user_id)
            .order_by(Quiz.created_at.desc(), Quiz.id.desc())
        )
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _ensure_within_limit(self, user: User, resource: quota.ResourceType, now: datetime) -> None:
        used = (
            user.daily_flashcards_used
            if resource is quota.ResourceType.FLASHCARDS
            else user.daily_quizzes_used
        )
        limit = self.limits.for_resource(resource)
        allowed = quota.check_limit(
            now, user.is_premium, user.last_daily_reset, used or 0, limit, self.tz
        )
        if not allowed:
            logger.info("Daily %s limit reached for user %s", resource.value, user.id)
            raise QuotaExceededError(resource.value, limit)

    def _record_usage(self, user: User, resource: quota.ResourceType, now: datetime) -> None:
        usage = quota.record_usage(
            now,
            user.last_daily_reset,
            user.daily_flashcards_used or 0,
            user.daily_quizzes_used or 0,
            resource,
            self.tz,
        )
        user.daily_flashcards_used = usage.flashcards_used
        user.daily_quizzes_used = usage.quizzes_used
        user.last_daily_reset = usage.last_reset

    async def _generate(
        self,
        user: User,
        document_id: int,
        resource: quota.ResourceType,
        produce: Callable[[str], Awaitable[list]],
        store: Callable[[int, str, list], T],
    ) -> T:
        """Ownership check, quota pre-check, AI call, then charge and store atomically."""
        if self.generator is None:
            raise RuntimeError("StudyContentService needs a generator for AI generation")

        now = self.clock()
        user_id = user.id
        document = await self.get_owned_document(document_id, user_id)
        # A retried unit follows a rollback, which expires loaded rows
        title, content = document.title, document.content

        # Fail fast before paying for an AI call; re-checked under the lock below
        self._ensure_within_limit(user, resource, now)

        generated = await produce(content)

        async def apply(locked_user: User) -> T:
            self._ensure_within_limit(locked_user, resource, now)
            self._record_usage(locked_user, resource, now)
            item = store(document_id, title, generated)
            self.db.add(item)
            return item

        return await run_user_update(
            self.db, user_id, apply, max_retries=settings.max_update_retries, locks=self.locks
        )

    async def generate_flashcards(self, user: User, document_id: int) -> FlashcardSet:
        """Generate a flashcard set from one of the user's documents."""
        user_id = user.id

        def store(source_id: int, title: str, cards: list[GeneratedFlashcard]) -> FlashcardSet:
            return FlashcardSet(
                user_id=user_id,
                document_id=source_id,
                title=f"{title} - Flashcards",
                description=f"Generated from {title}",
                card_count=len(cards),
                flashcards=[
                    Flashcard(front=card.front, back=card.back, explanation=card.explanation)
                    for card in cards
                ],
            )

        flashcard_set = await self._generate(
            user,
            document_id,
            quota.ResourceType.FLASHCARDS,
            lambda text: self.generator.generate_flashcards(text, settings.flashcards_per_generation),
            store,
        )
        logger.info(
            "Generated flashcard set %d (%d cards) for user %s",
            flashcard_set.id, flashcard_set.card_count, user_id,
        )
        return flashcard_set

    async def generate_quiz(self, user: User, document_id: int) -> Quiz:
        """Generate a quiz from one of the user's documents."""
        user_id = user.id

        def store(source_id: int, title: str, questions: list[GeneratedQuestion]) -> Quiz:
            return Quiz(
                user_id=user_id,
                document_id=source_id,
                title=f"{title} - Quiz",
                question_count=len(questions),
                questions=[
                    QuizQuestion(
                        type=q.type,
                        question=q.question,
                        options=q.options if isinstance(q, MultipleChoiceQuestion) else None,
                        correct_answer=q.correct_answer,
                        explanation=q.explanation,
                    )
                    for q in questions
                ],
            )

        quiz = await self._generate(
            user,
            document_id,
            quota.ResourceType.QUIZZES,
            lambda text: self.generator.generate_quiz(text, settings.questions_per_generation),
            store,
        )
        logger.info(
            "Generated quiz %d (%d questions) for user %s",
            quiz.id, quiz.question_count, user_id,
        )
        return quiz
