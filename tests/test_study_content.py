"""Tests for documents, ownership checks and quota-gated AI generation.

Covers:
  - Title derivation and document validation
  - Owner-scoped lookups (not found vs access denied)
  - Generation charges the daily quota only after the AI call succeeds
  - Free-tier limits, premium exemption and the reset on a new day
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from studysage.core.errors import (
    AccessDeniedError,
    NotFoundError,
    QuotaExceededError,
    UpstreamGenerationError,
    ValidationError,
)
from studysage.models import Document, Flashcard, FlashcardSet, Quiz, User
from studysage.services.generation import (
    FillBlankQuestion,
    GeneratedFlashcard,
    MultipleChoiceQuestion,
    TrueFalseQuestion,
)
from studysage.services.study_content import StudyContentService, derive_title

NOW = datetime(2024, 3, 10, 15, 30, tzinfo=timezone.utc)
MATERIAL = "Cell Biology\n" + "The mitochondria is the powerhouse of the cell. " * 3

CARDS = [
    GeneratedFlashcard(front="Powerhouse of the cell?", back="Mitochondria"),
    GeneratedFlashcard(front="Unit of life?", back="Cell", explanation="Smallest living unit"),
]


def fixed_clock(ts: datetime = NOW):
    return lambda: ts


async def add_document(session_maker, owner: str = "user-1", content: str = MATERIAL) -> int:
    async with session_maker() as session:
        document = Document(user_id=owner, title="Cell Biology", content=content)
        session.add(document)
        await session.commit()
        return document.id


async def load_user(session_maker, user_id: str = "user-1") -> User:
    async with session_maker() as session:
        return (await session.execute(select(User).where(User.id == user_id))).scalar_one()


async def count_rows(session_maker, model) -> int:
    async with session_maker() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def current_user(db, user_id: str = "user-1") -> User:
    return (await db.execute(select(User).where(User.id == user_id))).scalar_one()


# =============================================================================
# DOCUMENTS
# =============================================================================

class TestDeriveTitle:

    def test_first_non_empty_line(self):
        assert derive_title("\n\n  Chapter 3: Genetics  \nbody text") == "Chapter 3: Genetics"

    def test_long_line_is_shortened(self):
        title = derive_title("A" * 80)
        assert len(title) == 50
        assert title.endswith("...")

    def test_blank_text(self):
        assert derive_title("   \n ") == "Untitled Document"


class TestDocuments:

    async def test_create_document(self, create_user, db):
        await create_user()
        service = StudyContentService(db)

        document = await service.create_document("user-1", MATERIAL)

        assert document.id is not None
        assert document.title == "Cell Biology"
        assert document.file_type == "txt"

    async def test_explicit_title_wins(self, create_user, db):
        await create_user()
        document = await StudyContentService(db).create_document("user-1", MATERIAL, title="My notes")
        assert document.title == "My notes"

    async def test_rejects_short_content(self, db):
        with pytest.raises(ValidationError):
            await StudyContentService(db).create_document("user-1", "too short")

    async def test_lists_only_own_documents(self, session_maker, create_user, db):
        await create_user()
        await create_user("user-2")
        await add_document(session_maker)
        await add_document(session_maker, owner="user-2")

        documents = await StudyContentService(db).list_documents("user-1")

        assert [d.user_id for d in documents] == ["user-1"]


class TestOwnership:

    async def test_missing_document(self, db):
        with pytest.raises(NotFoundError):
            await StudyContentService(db).get_owned_document(404, "user-1")

    async def test_foreign_document(self, session_maker, create_user, db):
        await create_user("user-2")
        document_id = await add_document(session_maker, owner="user-2")

        with pytest.raises(AccessDeniedError):
            await StudyContentService(db).get_owned_document(document_id, "user-1")


# =============================================================================
# GENERATION UNDER QUOTA
# =============================================================================

class TestGenerateFlashcards:

    async def test_stores_set_and_charges_quota(self, session_maker, create_user, db, fake_generator):
        await create_user()
        document_id = await add_document(session_maker)
        fake_generator.generate_flashcards.return_value = CARDS
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        flashcard_set = await service.generate_flashcards(await current_user(db), document_id)

        assert flashcard_set.title == "Cell Biology - Flashcards"
        assert flashcard_set.card_count == 2
        assert [c.front for c in flashcard_set.flashcards] == [c.front for c in CARDS]
        assert fake_generator.generate_flashcards.await_args.args[0] == MATERIAL

        user = await load_user(session_maker)
        assert user.daily_flashcards_used == 1
        assert user.daily_quizzes_used == 0
        assert user.last_daily_reset is not None
        assert await count_rows(session_maker, Flashcard) == 2

    async def test_limit_reached_skips_ai_call(self, session_maker, create_user, db, fake_generator):
        await create_user(daily_flashcards_used=10, last_daily_reset=NOW - timedelta(hours=2))
        document_id = await add_document(session_maker)
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        with pytest.raises(QuotaExceededError) as exc_info:
            await service.generate_flashcards(await current_user(db), document_id)

        assert exc_info.value.limit == 10
        fake_generator.generate_flashcards.assert_not_awaited()
        assert await count_rows(session_maker, FlashcardSet) == 0

    async def test_new_day_resets_counters(self, session_maker, create_user, db, fake_generator):
        await create_user(
            daily_flashcards_used=10,
            daily_quizzes_used=5,
            last_daily_reset=NOW - timedelta(days=1),
        )
        document_id = await add_document(session_maker)
        fake_generator.generate_flashcards.return_value = CARDS
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        await service.generate_flashcards(await current_user(db), document_id)

        user = await load_user(session_maker)
        assert user.daily_flashcards_used == 1
        assert user.daily_quizzes_used == 0

    async def test_premium_is_unlimited(self, session_maker, create_user, db, fake_generator):
        await create_user(is_premium=True, daily_flashcards_used=50, last_daily_reset=NOW)
        document_id = await add_document(session_maker)
        fake_generator.generate_flashcards.return_value = CARDS
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        await service.generate_flashcards(await current_user(db), document_id)

        user = await load_user(session_maker)
        assert user.daily_flashcards_used == 51

    async def test_ai_failure_leaves_quota_untouched(self, session_maker, create_user, db, fake_generator):
        await create_user(daily_flashcards_used=3, last_daily_reset=NOW)
        document_id = await add_document(session_maker)
        fake_generator.generate_flashcards.side_effect = UpstreamGenerationError("model unavailable")
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        with pytest.raises(UpstreamGenerationError):
            await service.generate_flashcards(await current_user(db), document_id)

        user = await load_user(session_maker)
        assert user.daily_flashcards_used == 3
        assert await count_rows(session_maker, FlashcardSet) == 0

    async def test_foreign_document_is_denied(self, session_maker, create_user, db, fake_generator):
        await create_user()
        document_id = await add_document(session_maker, owner="user-2")
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        with pytest.raises(AccessDeniedError):
            await service.generate_flashcards(await current_user(db), document_id)

        fake_generator.generate_flashcards.assert_not_awaited()

    async def test_quota_rechecked_after_generation(self, session_maker, create_user, db, fake_generator):
        """A concurrent request may use the last slot while the AI call is in flight."""
        await create_user(daily_flashcards_used=9, last_daily_reset=NOW)
        document_id = await add_document(session_maker)

        async def use_last_slot(content, count):
            async with session_maker() as other:
                user = (await other.execute(select(User).where(User.id == "user-1"))).scalar_one()
                user.daily_flashcards_used = 10
                await other.commit()
            return CARDS

        fake_generator.generate_flashcards.side_effect = use_last_slot
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        with pytest.raises(QuotaExceededError):
            await service.generate_flashcards(await current_user(db), document_id)

        assert await count_rows(session_maker, FlashcardSet) == 0

    async def test_retries_after_version_conflict(self, session_maker, create_user, db, fake_generator):
        await create_user(daily_flashcards_used=2, last_daily_reset=NOW)
        document_id = await add_document(session_maker)
        fake_generator.generate_flashcards.return_value = CARDS

        real_commit = db.commit
        commits = []

        async def commit_once_stale():
            commits.append(1)
            if len(commits) == 1:
                raise StaleDataError("concurrent update")
            await real_commit()

        db.commit = commit_once_stale
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        flashcard_set = await service.generate_flashcards(await current_user(db), document_id)

        assert len(commits) == 2
        assert flashcard_set.title == "Cell Biology - Flashcards"
        assert flashcard_set.document_id == document_id
        assert flashcard_set.user_id == "user-1"
        fake_generator.generate_flashcards.assert_awaited_once()

        user = await load_user(session_maker)
        assert user.daily_flashcards_used == 3
        assert await count_rows(session_maker, FlashcardSet) == 1
        assert await count_rows(session_maker, Flashcard) == 2

    async def test_requires_generator(self, db):
        with pytest.raises(RuntimeError):
            await StudyContentService(db).generate_flashcards(User(id="user-1"), 1)


class TestGenerateQuiz:

    async def test_stores_questions(self, session_maker, create_user, db, fake_generator):
        await create_user()
        document_id = await add_document(session_maker)
        fake_generator.generate_quiz.return_value = [
            MultipleChoiceQuestion(question="Powerhouse?", options=["Mitochondria", "Nucleus"], correct_answer="Mitochondria"),
            TrueFalseQuestion(question="Cells are alive.", correct_answer="true"),
            FillBlankQuestion(question="The ____ is the unit of life.", correct_answer="cell"),
        ]
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        quiz = await service.generate_quiz(await current_user(db), document_id)

        assert quiz.title == "Cell Biology - Quiz"
        assert quiz.question_count == 3
        assert [q.type for q in quiz.questions] == ["multiple_choice", "true_false", "fill_blank"]
        assert quiz.questions[0].options == ["Mitochondria", "Nucleus"]
        assert quiz.questions[1].options is None
        assert quiz.questions[1].correct_answer == "True"

        user = await load_user(session_maker)
        assert user.daily_quizzes_used == 1
        assert user.daily_flashcards_used == 0

    async def test_quiz_limit(self, session_maker, create_user, db, fake_generator):
        await create_user(daily_quizzes_used=5, last_daily_reset=NOW)
        document_id = await add_document(session_maker)
        service = StudyContentService(db, fake_generator, clock=fixed_clock())

        with pytest.raises(QuotaExceededError):
            await service.generate_quiz(await current_user(db), document_id)

        fake_generator.generate_quiz.assert_not_awaited()
        assert await count_rows(session_maker, Quiz) == 0
