"""Database layer: SQLAlchemy models and session."""

from server.db.models import (
    Base,
    Flashcard,
    Quiz,
    QuizItemRow,
    QuizResultRow,
    ReviewSession,
    StudyPack,
    UserStreak,
)
from server.db.session import get_db, init_db

__all__ = [
    "Base",
    "Flashcard",
    "Quiz",
    "QuizItemRow",
    "QuizResultRow",
    "ReviewSession",
    "StudyPack",
    "UserStreak",
    "get_db",
    "init_db",
]
