"""SM-2 spaced repetition scheduler (three-phase variant)."""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from study.card_types import Grade
from study.models import MemoryCard, MIN_EASE, MAX_EASE


class CardPhase(str, Enum):
    """Scheduling regime, derived from the repetition count."""
    NEW = "new"            # reps == 0, first-ever review
    LEARNING = "learning"  # reps == 1, second review
    MATURE = "mature"      # reps >= 2


class ProgressBucket(str, Enum):
    """Dashboard classification of a card."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


MASTERY_REPS = 5
MASTERY_INTERVAL_DAYS = 30


def phase_for(reps: int) -> CardPhase:
    if reps <= 0:
        return CardPhase.NEW
    if reps == 1:
        return CardPhase.LEARNING
    return CardPhase.MATURE


def _round_half_up(x: float) -> int:
    # round() is banker's rounding; intervals round .5 upward
    return int(math.floor(x + 0.5))


def _clamp_ease(ease: float) -> float:
    return round(min(MAX_EASE, max(MIN_EASE, ease)), 4)


@dataclass(frozen=True)
class _Rule:
    interval: Callable[[MemoryCard], int]
    ease_delta: float = 0.0
    lapse: bool = False


def _fixed(days: int) -> Callable[[MemoryCard], int]:
    return lambda card: days


_AGAIN = _Rule(_fixed(0), ease_delta=-0.20, lapse=True)

_TRANSITIONS: Dict[CardPhase, Dict[Grade, _Rule]] = {
    CardPhase.NEW: {
        Grade.AGAIN: _AGAIN,
        Grade.HARD: _Rule(_fixed(1), ease_delta=-0.15),
        Grade.GOOD: _Rule(_fixed(1)),
        Grade.EASY: _Rule(_fixed(4), ease_delta=+0.15),
    },
    CardPhase.LEARNING: {
        Grade.AGAIN: _AGAIN,
        Grade.HARD: _Rule(_fixed(1), ease_delta=-0.15),
        Grade.GOOD: _Rule(_fixed(6)),
        Grade.EASY: _Rule(_fixed(10), ease_delta=+0.15),
    },
    CardPhase.MATURE: {
        Grade.AGAIN: _AGAIN,
        Grade.HARD: _Rule(
            lambda c: _round_half_up(max(1, c.interval_days * 1.2)),
            ease_delta=-0.15,
        ),
        Grade.GOOD: _Rule(lambda c: _round_half_up(c.interval_days * c.ease)),
        Grade.EASY: _Rule(
            lambda c: _round_half_up(c.interval_days * c.ease * 1.3),
            ease_delta=+0.15,
        ),
    },
}


@dataclass(frozen=True)
class ReviewOutcome:
    """New scheduling fields for a card after one review."""
    ease: float
    interval_days: int
    due_at: datetime
    reps: int
    lapses: int

    def to_dict(self) -> Dict:
        return {
            'ease': self.ease,
            'interval_days': self.interval_days,
            'due_at': self.due_at.isoformat(),
            'reps': self.reps,
            'lapses': self.lapses,
        }


def schedule_review(card: MemoryCard, grade: Grade, now: datetime) -> ReviewOutcome:
    """
    Compute the next review for `card` graded `grade` at `now`.

    Interval growth is selected by phase (reps 0 / 1 / >=2). A lapse
    ("again") resets reps to 0 and schedules the card for today. Ease is
    clamped to [1.3, 2.5] after every update. The grade must already be a
    Grade member; parse user input with card_types.parse_grade first.
    """
    rule = _TRANSITIONS[phase_for(card.reps)][grade]

    interval = rule.interval(card)
    if rule.lapse:
        reps = 0
        lapses = card.lapses + 1
    else:
        reps = card.reps + 1
        lapses = card.lapses

    return ReviewOutcome(
        ease=_clamp_ease(card.ease + rule.ease_delta),
        interval_days=interval,
        due_at=now + timedelta(days=interval),
        reps=reps,
        lapses=lapses,
    )


def apply_outcome(card: MemoryCard, outcome: ReviewOutcome) -> MemoryCard:
    """Return a copy of `card` carrying the outcome's scheduling fields."""
    return replace(
        card,
        ease=outcome.ease,
        interval_days=outcome.interval_days,
        due_at=outcome.due_at,
        reps=outcome.reps,
        lapses=outcome.lapses,
    )


def is_due(card: MemoryCard, now: datetime) -> bool:
    return card.due_at is None or card.due_at <= now


def select_due_cards(
    cards: Iterable[MemoryCard],
    now: datetime,
    topic: Optional[str] = None,
) -> List[MemoryCard]:
    """
    Cards due at `now`, optionally restricted to one topic.

    Never-scheduled cards come first, then the rest by due_at ascending.
    """
    due = [
        c for c in cards
        if is_due(c, now) and (topic is None or c.topic == topic)
    ]
    due.sort(key=lambda c: (c.due_at is not None, c.due_at or now))
    return due


def classify_card(card: MemoryCard) -> ProgressBucket:
    if card.reps == 0:
        return ProgressBucket.NEW
    if card.reps < MASTERY_REPS:
        return ProgressBucket.LEARNING
    if card.interval_days < MASTERY_INTERVAL_DAYS:
        return ProgressBucket.REVIEW
    return ProgressBucket.MASTERED


def calculate_progress(cards: Iterable[MemoryCard]) -> Dict[str, int]:
    """Count cards per progress bucket: {new, learning, review, mastered}."""
    counts = {bucket.value: 0 for bucket in ProgressBucket}
    for card in cards:
        counts[classify_card(card).value] += 1
    return counts
