"""SQL-backed ReviewStore: conditional writes keyed on a version column."""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from server.db.models import Flashcard, UserStreak
from study.models import MemoryCard, StreakState
from study.storage import ConflictError


logger = logging.getLogger("studycore.store")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def card_from_row(row: Flashcard) -> MemoryCard:
    return MemoryCard(
        card_id=row.id,
        pack_id=row.study_pack_id,
        prompt=row.prompt,
        answer=row.answer,
        topic=row.topic,
        ease=row.ease,
        interval_days=row.interval_days,
        due_at=as_utc(row.due_at),
        reps=row.reps,
        lapses=row.lapses,
        version=row.version,
    )


def streak_from_row(row: UserStreak) -> StreakState:
    return StreakState(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_review_date=row.last_review_date,
        total_reviews=row.total_reviews,
        freezes=row.freezes,
        freeze_just_used=row.freeze_just_used,
        version=row.version,
    )


class SqlReviewStore:
    """
    ReviewStore over a SQLAlchemy session.

    Writes are `UPDATE ... WHERE version = :expected`; zero affected rows
    means another writer got there first and ConflictError is raised.
    The caller owns the transaction (commit/rollback).
    """

    def __init__(self, db: DBSession):
        self.db = db

    # ---- Cards ----

    def get_card(self, card_id: str) -> Optional[MemoryCard]:
        row = self.db.get(Flashcard, card_id, populate_existing=True)
        return card_from_row(row) if row is not None else None

    def add_card(self, card: MemoryCard) -> MemoryCard:
        row = Flashcard(
            study_pack_id=card.pack_id,
            prompt=card.prompt,
            answer=card.answer,
            topic=card.topic,
            ease=card.ease,
            interval_days=card.interval_days,
            due_at=card.due_at,
            reps=card.reps,
            lapses=card.lapses,
            version=0,
        )
        if card.card_id:
            row.id = card.card_id
        self.db.add(row)
        self.db.flush()
        return card_from_row(row)

    def save_card(self, card: MemoryCard, expected_version: int) -> MemoryCard:
        updated = self.db.query(Flashcard).filter(
            Flashcard.id == card.card_id,
            Flashcard.version == expected_version,
        ).update({
            Flashcard.ease: card.ease,
            Flashcard.interval_days: card.interval_days,
            Flashcard.due_at: card.due_at,
            Flashcard.reps: card.reps,
            Flashcard.lapses: card.lapses,
            Flashcard.version: expected_version + 1,
        }, synchronize_session=False)
        if updated == 0:
            actual = self.db.query(Flashcard.version).filter(
                Flashcard.id == card.card_id).scalar()
            if actual is None:
                raise KeyError(f"Card not found: {card.card_id}")
            logger.warning("Card write conflict on %s (%d != %d)",
                           card.card_id, actual, expected_version)
            raise ConflictError('card', card.card_id, expected_version, actual)
        card.version = expected_version + 1
        return card

    def list_cards(self, pack_id: Optional[str] = None) -> List[MemoryCard]:
        q = self.db.query(Flashcard)
        if pack_id is not None:
            q = q.filter(Flashcard.study_pack_id == pack_id)
        return [card_from_row(row) for row in q.order_by(Flashcard.created_at).all()]

    # ---- Streaks ----

    def get_streak(self, user_id: str) -> Optional[StreakState]:
        row = self.db.get(UserStreak, user_id, populate_existing=True)
        return streak_from_row(row) if row is not None else None

    def save_streak(
        self, user_id: str, state: StreakState, expected_version: int,
    ) -> StreakState:
        values = dict(
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_review_date=state.last_review_date,
            total_reviews=state.total_reviews,
            freezes=state.freezes,
            freeze_just_used=state.freeze_just_used,
            version=expected_version + 1,
        )

        if expected_version == 0 and self.db.get(UserStreak, user_id) is None:
            self.db.add(UserStreak(user_id=user_id, **values))
            try:
                self.db.flush()
            except IntegrityError:
                # Someone created the row between our read and insert
                raise ConflictError('streak', user_id, expected_version, 1) from None
        else:
            updated = self.db.query(UserStreak).filter(
                UserStreak.user_id == user_id,
                UserStreak.version == expected_version,
            ).update(values, synchronize_session=False)
            if updated == 0:
                actual = self.db.query(UserStreak.version).filter(
                    UserStreak.user_id == user_id).scalar() or 0
                logger.warning("Streak write conflict for %s (%d != %d)",
                               user_id, actual, expected_version)
                raise ConflictError('streak', user_id, expected_version, actual)

        state.version = expected_version + 1
        return state

    # ---- Reviews ----

    def save_review(
        self, card: MemoryCard, card_version: int,
        user_id: str, streak: StreakState, streak_version: int,
    ) -> Tuple[MemoryCard, StreakState]:
        """Both updates share the session's transaction; a ConflictError
        from either leaves nothing to commit once the caller rolls back."""
        saved = self.save_card(card, expected_version=card_version)
        return saved, self.save_streak(user_id, streak, expected_version=streak_version)
