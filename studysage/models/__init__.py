from studysage.models.base import Base
from studysage.models.user import User
from studysage.models.study import (
    Document,
    Flashcard,
    FlashcardSet,
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizQuestion,
    StudySession,
    StudySessionType,
)

__all__ = [
    "Base",
    "User",
    "Document",
    "Flashcard",
    "FlashcardSet",
    "QuestionType",
    "Quiz",
    "QuizAttempt",
    "QuizQuestion",
    "StudySession",
    "StudySessionType",
]
