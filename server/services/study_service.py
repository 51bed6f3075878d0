"""Study pack, flashcard and review-session services -- return JSON-serializable dicts."""

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from server.db.models import ReviewSession, StudyPack
from server.services.repository import SqlReviewStore, as_utc
from study.analytics import compute_stats, topic_breakdown
from study.card_types import Grade
from study.export import flashcards_csv_text
from study.models import MemoryCard
from study.scheduler import select_due_cards
from study.session import review_card, utcnow
from study.storage import ConflictError


logger = logging.getLogger("studycore.review")


def card_to_dict(card: MemoryCard) -> Dict:
    """Convert a MemoryCard to the API's flashcard shape."""
    return {
        'card_id': card.card_id,
        'pack_id': card.pack_id,
        'prompt': card.prompt,
        'answer': card.answer,
        'topic': card.topic,
        'ease': card.ease,
        'interval_days': card.interval_days,
        'due_at': card.due_at.isoformat() if card.due_at else None,
        'reps': card.reps,
        'lapses': card.lapses,
    }


def _session_to_dict(row: ReviewSession) -> Dict:
    return {
        'id': row.id,
        'study_pack_id': row.study_pack_id,
        'topic_filter': row.topic_filter,
        'started_at': as_utc(row.started_at).isoformat(),
        'ended_at': as_utc(row.ended_at).isoformat() if row.ended_at else None,
        'cards_reviewed': row.cards_reviewed,
        'accuracy': row.accuracy,
    }


def require_pack(store: SqlReviewStore, user_id: str, pack_id: str) -> StudyPack:
    """
    Fetch a study pack owned by user_id.

    Raises:
        KeyError if it does not exist or belongs to someone else.
    """
    pack = store.db.get(StudyPack, pack_id)
    if pack is None or pack.user_id != user_id:
        raise KeyError(f"Study pack not found: {pack_id}")
    return pack


def create_pack(store: SqlReviewStore, user_id: str, title: str) -> Dict:
    pack = StudyPack(user_id=user_id, title=title)
    store.db.add(pack)
    store.db.commit()
    return {'id': pack.id, 'title': pack.title}


def add_flashcard(
    store: SqlReviewStore,
    user_id: str,
    pack_id: str,
    prompt: str,
    answer: str,
    topic: Optional[str] = None,
) -> Dict:
    """Create a new card with default scheduling state."""
    require_pack(store, user_id, pack_id)
    card = store.add_card(MemoryCard(
        card_id='', pack_id=pack_id, prompt=prompt, answer=answer, topic=topic,
    ))
    store.db.commit()
    return card_to_dict(card)


def get_due_cards(
    store: SqlReviewStore,
    user_id: str,
    pack_id: str,
    topic: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """Due cards of one pack, new cards first."""
    require_pack(store, user_id, pack_id)
    due = select_due_cards(store.list_cards(pack_id), now or utcnow(), topic=topic)
    return {
        'due_count': len(due),
        'cards': [card_to_dict(c) for c in due],
    }


def get_topics(
    store: SqlReviewStore,
    user_id: str,
    pack_id: str,
    now: Optional[datetime] = None,
) -> Dict:
    require_pack(store, user_id, pack_id)
    return {'topics': topic_breakdown(store.list_cards(pack_id), now or utcnow())}


def review_flashcard(
    store: SqlReviewStore,
    user_id: str,
    card_id: str,
    grade: str,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Apply a graded review to a card and advance the owner's streak.

    Card and streak are written in one transaction: on a conflict neither
    is saved.

    Returns:
        {srs_values, streak}

    Raises:
        ValueError for an unknown grade.
        KeyError if the card does not exist.
        PermissionError if the card's pack belongs to another user.
        ConflictError if the card or streak changed concurrently.
    """
    # Only the four grade names; the 1-4 keys belong to the CLI prompt
    try:
        grade = Grade(grade)
    except ValueError:
        raise ValueError(f"Invalid grade: {grade!r}") from None

    card = store.get_card(card_id)
    if card is None:
        raise KeyError(f"Flashcard not found: {card_id}")
    pack = store.db.get(StudyPack, card.pack_id)
    if pack is None or pack.user_id != user_id:
        raise PermissionError(f"Flashcard {card_id} belongs to another user")

    try:
        receipt = review_card(store, user_id, card_id, grade, now=now)
        store.db.commit()
    except ConflictError:
        store.db.rollback()
        raise

    return {
        'srs_values': receipt.outcome.to_dict(),
        'streak': receipt.streak.to_dict(),
    }


def get_stats(
    store: SqlReviewStore,
    user_id: str,
    pack_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """Progress distribution, streak and due count across the user's cards."""
    if pack_id is not None:
        require_pack(store, user_id, pack_id)
        cards = store.list_cards(pack_id)
    else:
        packs = store.db.query(StudyPack.id).filter(StudyPack.user_id == user_id).all()
        cards = [c for (pid,) in packs for c in store.list_cards(pid)]
    return compute_stats(cards, store.get_streak(user_id), now or utcnow())


def export_flashcards(store: SqlReviewStore, user_id: str, pack_id: str) -> Tuple[str, str]:
    """
    Returns:
        (filename, csv_text)

    Raises:
        KeyError if the pack is missing or has no cards.
    """
    pack = require_pack(store, user_id, pack_id)
    cards = store.list_cards(pack_id)
    if not cards:
        raise KeyError(f"No flashcards available for study pack {pack_id}")
    filename = re.sub(r'[^a-z0-9]', '_', pack.title, flags=re.IGNORECASE) + '_flashcards.csv'
    return filename, flashcards_csv_text(cards)


def start_review_session(
    store: SqlReviewStore,
    user_id: str,
    pack_id: str,
    topic_filter: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    require_pack(store, user_id, pack_id)
    row = ReviewSession(
        user_id=user_id,
        study_pack_id=pack_id,
        topic_filter=topic_filter or None,
        started_at=now or utcnow(),
    )
    store.db.add(row)
    store.db.commit()
    return _session_to_dict(row)


def finish_review_session(
    store: SqlReviewStore,
    user_id: str,
    session_id: str,
    cards_reviewed: int = 0,
    accuracy: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Close a review session with its final stats.

    Raises:
        KeyError if the session is missing or owned by someone else.
    """
    row = store.db.get(ReviewSession, session_id)
    if row is None or row.user_id != user_id:
        raise KeyError(f"Review session not found: {session_id}")
    row.ended_at = now or utcnow()
    row.cards_reviewed = cards_reviewed
    row.accuracy = accuracy
    store.db.commit()
    logger.info("Review session %s closed: %d card(s), accuracy=%s",
                session_id, cards_reviewed, accuracy)
    return _session_to_dict(row)


def list_packs(store: SqlReviewStore, user_id: str) -> List[Dict]:
    rows = store.db.query(StudyPack).filter(
        StudyPack.user_id == user_id).order_by(StudyPack.created_at).all()
    return [{'id': p.id, 'title': p.title} for p in rows]
