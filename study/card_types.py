"""Grade and question type enumerations for the study engine."""

from enum import Enum


class Grade(str, Enum):
    """Self-assessed recall grade supplied at review time."""
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class QuestionType(str, Enum):
    """Types of quiz questions."""
    MCQ = "mcq"
    SHORT_ANSWER = "short_answer"


# Shortcut keys accepted by the interactive review prompt
GRADE_SHORTCUTS = {
    '1': Grade.AGAIN,
    '2': Grade.HARD,
    '3': Grade.GOOD,
    '4': Grade.EASY,
}


def parse_grade(value) -> Grade:
    """
    Parse a grade from user input. Raises ValueError for anything else.

    Accepts Grade members, their string values (case-insensitive) and the
    1-4 shortcut keys.
    """
    if isinstance(value, Grade):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid grade: {value!r}")
    key = value.strip().lower()
    if key in GRADE_SHORTCUTS:
        return GRADE_SHORTCUTS[key]
    try:
        return Grade(key)
    except ValueError:
        raise ValueError(
            f"Invalid grade: {value!r} (expected one of "
            f"{', '.join(g.value for g in Grade)})"
        ) from None
