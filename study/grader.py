"""Answer grading with typo-tolerant matching for free-text questions."""

import math
import re
from datetime import datetime
from typing import Dict, List, Mapping

from study.card_types import QuestionType
from study.models import (
    DEFAULT_TOPIC,
    GradedAnswer,
    QuizItem,
    QuizResult,
    TopicPerformance,
)


MAX_TYPO_DISTANCE = 2
WEAK_TOPIC_ACCURACY = 70.0

_PUNCTUATION_RE = re.compile(r'[.,!?;:]')
_ARTICLES_RE = re.compile(r'\b(a|an|the)\b', re.IGNORECASE)


def normalize(text: str) -> str:
    return (text or '').lower().strip()


def strip_filler(text: str) -> str:
    """Drop punctuation and whole-word articles, then trim."""
    text = _PUNCTUATION_RE.sub('', text)
    text = _ARTICLES_RE.sub('', text)
    return text.strip()


def levenshtein(s1: str, s2: str) -> int:
    """Edit distance (insert/delete/substitute, unit cost)."""
    if len(s1) < len(s2):
        return levenshtein(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def fuzzy_match(answer: str, correct: str) -> bool:
    """
    Compare two already-normalized strings, most exact test first:
    equality, equality ignoring punctuation and articles, containment in
    either direction, then an edit distance of at most 2.
    """
    if answer == correct:
        return True

    stripped_answer = strip_filler(answer)
    stripped_correct = strip_filler(correct)

    # An empty string is contained in everything
    if not stripped_answer or not stripped_correct:
        return False

    if stripped_answer == stripped_correct:
        return True

    if stripped_correct in stripped_answer or stripped_answer in stripped_correct:
        return True

    return levenshtein(stripped_answer, stripped_correct) <= MAX_TYPO_DISTANCE


def grade_answer(item: QuizItem, user_answer: str) -> bool:
    """Multiple-choice answers must match exactly; free text is fuzzy."""
    correct = normalize(item.answer)
    answer = normalize(user_answer)

    if item.question_type == QuestionType.MCQ.value:
        return answer == correct

    return fuzzy_match(answer, correct)


def grade_attempt(
    items: List[QuizItem],
    answers: Mapping[str, str],
    started_at: datetime,
    now: datetime,
) -> QuizResult:
    """
    Grade a full quiz attempt.

    Args:
        items:      Questions in display order (must be non-empty)
        answers:    question_id -> submitted answer; missing ids count as blank
        started_at: When the attempt began
        now:        Grading time

    Returns:
        QuizResult with score 0-100, whole-second duration, per-question
        verdicts and per-topic accuracy (topics under 70% are weak).

    Raises:
        ValueError if items is empty.
    """
    if not items:
        raise ValueError("Quiz items are required")

    graded: List[GradedAnswer] = []
    topics: Dict[str, TopicPerformance] = {}
    correct_count = 0

    for item in items:
        user_answer = answers.get(item.question_id) or ''
        is_correct = grade_answer(item, user_answer)
        if is_correct:
            correct_count += 1

        graded.append(GradedAnswer(
            question_id=item.question_id,
            user_answer=user_answer,
            is_correct=is_correct,
        ))

        topic = item.topic or DEFAULT_TOPIC
        perf = topics.setdefault(topic, TopicPerformance(topic=topic))
        perf.total += 1
        if is_correct:
            perf.correct += 1

    for perf in topics.values():
        perf.accuracy = perf.correct / perf.total * 100
        perf.is_weak = perf.accuracy < WEAK_TOPIC_ACCURACY

    elapsed = (now - started_at).total_seconds()

    return QuizResult(
        score=correct_count / len(items) * 100,
        duration_seconds=max(0, math.floor(elapsed)),
        taken_at=now,
        answers=graded,
        topic_performance=topics,
    )
