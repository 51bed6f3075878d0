"""Quiz creation, submission, weak-topic practice and history."""

import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

from server.db.models import Quiz, QuizItemRow, QuizResultRow, StudyPack
from server.services.repository import SqlReviewStore, as_utc
from server.services.study_service import require_pack
from study.models import QuizItem
from study.practice import build_weak_topic_quiz
from study.session import submit_quiz as grade_and_record, utcnow
from study.storage import ConflictError


logger = logging.getLogger("studycore.quiz")


def _item_from_row(row: QuizItemRow) -> QuizItem:
    return QuizItem(
        question_id=row.id,
        question=row.question,
        answer=row.answer,
        question_type=row.question_type,
        topic=row.topic,
        options=list(row.options or []),
    )


def _result_to_dict(row: QuizResultRow) -> Dict:
    return {
        'id': row.id,
        'quiz_id': row.quiz_id,
        'score': row.score,
        'duration_s': row.duration_s,
        'taken_at': as_utc(row.taken_at).isoformat(),
        'detail_json': row.detail_json,
    }


def _quiz_to_dict(quiz: Quiz, items: List[QuizItem], weak_topics: Optional[List[str]] = None) -> Dict:
    return {
        'id': quiz.id,
        'study_pack_id': quiz.study_pack_id,
        'items': [item.to_dict() for item in items],
        'is_weak_topic_quiz': weak_topics is not None,
        'weak_topics': list(weak_topics or []),
    }


def require_quiz(store: SqlReviewStore, user_id: str, quiz_id: str) -> Quiz:
    """
    Raises:
        KeyError if the quiz is missing or its pack belongs to someone else.
    """
    quiz = store.db.get(Quiz, quiz_id)
    if quiz is None:
        raise KeyError(f"Quiz not found: {quiz_id}")
    pack = store.db.get(StudyPack, quiz.study_pack_id)
    if pack is None or pack.user_id != user_id:
        raise KeyError(f"Quiz not found: {quiz_id}")
    return quiz


def create_quiz(
    store: SqlReviewStore,
    user_id: str,
    pack_id: str,
    items: List[Dict],
    config: Optional[Dict] = None,
) -> Dict:
    """Store a quiz and its items in the given order. Question ids are assigned here."""
    require_pack(store, user_id, pack_id)
    if not items:
        raise ValueError("Quiz items are required")

    quiz = Quiz(study_pack_id=pack_id, config_json=config or {})
    for position, item in enumerate(items):
        row = QuizItemRow(
            position=position,
            question=item['question'],
            answer=item['answer'],
            question_type=item.get('question_type') or 'short_answer',
            topic=item.get('topic'),
            options=list(item.get('options') or []),
        )
        quiz.items.append(row)
    store.db.add(quiz)
    store.db.commit()
    return _quiz_to_dict(quiz, [_item_from_row(r) for r in quiz.items])


def get_quiz(store: SqlReviewStore, user_id: str, quiz_id: str) -> Dict:
    quiz = require_quiz(store, user_id, quiz_id)
    return _quiz_to_dict(quiz, [_item_from_row(r) for r in quiz.items])


def submit_quiz(
    store: SqlReviewStore,
    user_id: str,
    quiz_id: str,
    answers: Dict[str, str],
    start_time: datetime,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Grade a submitted attempt, save the result and advance the streak.

    Returns:
        {result: {...saved row...}, streak}

    Raises:
        KeyError if the quiz is not found.
        ValueError if the quiz has no items.
        ConflictError if the streak changed concurrently.
    """
    quiz = require_quiz(store, user_id, quiz_id)
    items = [_item_from_row(r) for r in quiz.items]

    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    now = now or utcnow()

    try:
        graded = grade_and_record(store, user_id, items, answers, start_time, now=now)
        result = graded['result']
        row = QuizResultRow(
            quiz_id=quiz.id,
            user_id=user_id,
            score=result.score,
            duration_s=result.duration_seconds,
            taken_at=result.taken_at,
            detail_json=result.detail_dict(),
        )
        store.db.add(row)
        store.db.commit()
    except ConflictError:
        store.db.rollback()
        raise

    streak = graded['streak']
    return {
        'result': _result_to_dict(row),
        'streak': streak.to_dict() if streak else None,
    }


def weak_topic_quiz(
    store: SqlReviewStore,
    user_id: str,
    quiz_id: str,
    weak_topics: List[str],
    max_per_topic: int = 10,
) -> Dict:
    """
    A practice round drawn from a quiz's questions on the given topics.

    Raises:
        ValueError if weak_topics is empty.
        KeyError if the quiz is missing or no question matches.
    """
    if not weak_topics:
        raise ValueError("Weak topics are required")
    quiz = require_quiz(store, user_id, quiz_id)
    items = build_weak_topic_quiz(
        [_item_from_row(r) for r in quiz.items], weak_topics, max_per_topic=max_per_topic,
    )
    if not items:
        raise KeyError("No questions found for the specified weak topics")
    logger.info("Weak-topic quiz for %s from %s: %d question(s) on %s",
                user_id, quiz_id, len(items), ', '.join(weak_topics))
    return _quiz_to_dict(quiz, items, weak_topics=weak_topics)


def quiz_history(
    store: SqlReviewStore,
    user_id: str,
    page: int = 1,
    limit: int = 10,
    quiz_id: Optional[str] = None,
) -> Dict:
    """Paginated quiz results for a user, newest first."""
    page = max(1, page)
    limit = max(1, limit)

    q = store.db.query(QuizResultRow).filter(QuizResultRow.user_id == user_id)
    if quiz_id:
        q = q.filter(QuizResultRow.quiz_id == quiz_id)

    total = q.count()
    rows = (
        q.order_by(QuizResultRow.taken_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        'results': [_result_to_dict(r) for r in rows],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'total_pages': math.ceil(total / limit),
        },
    }
