"""Data models for the study engine: cards, streaks and quiz records."""

import hashlib
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, date
from typing import Dict, List, Optional

from study.card_types import QuestionType


DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 2.5
MAX_FREEZES = 2
DEFAULT_TOPIC = 'General'


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


@dataclass
class MemoryCard:
    """
    A single learnable fact with SM-2 scheduling state.

    A card with due_at=None has never been scheduled and is due immediately.
    `version` is bumped by the store on every successful write.
    """
    card_id: str
    pack_id: str = ''
    prompt: str = ''
    answer: str = ''
    topic: Optional[str] = None

    # SM-2 scheduling fields
    ease: float = DEFAULT_EASE
    interval_days: int = 0
    due_at: Optional[datetime] = None
    reps: int = 0
    lapses: int = 0

    version: int = 0

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['due_at'] = self.due_at.isoformat() if self.due_at else None
        return d

    @classmethod
    def from_dict(cls, data: Dict) -> 'MemoryCard':
        known = cls.__dataclass_fields__
        data = {k: v for k, v in data.items() if k in known}
        data['due_at'] = _parse_datetime(data.get('due_at'))
        return cls(**data)


@dataclass
class StreakState:
    """Per-user study streak record."""
    current_streak: int = 0
    longest_streak: int = 0
    last_review_date: Optional[date] = None
    total_reviews: int = 0
    freezes: int = 0
    freeze_just_used: bool = False
    version: int = 0

    def copy(self, **changes) -> 'StreakState':
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['last_review_date'] = (
            self.last_review_date.isoformat() if self.last_review_date else None
        )
        return d

    @classmethod
    def from_dict(cls, data: Dict) -> 'StreakState':
        known = cls.__dataclass_fields__
        data = {k: v for k, v in data.items() if k in known}
        data['last_review_date'] = _parse_date(data.get('last_review_date'))
        return cls(**data)


@dataclass
class QuizItem:
    """One question of a quiz, with its reference answer."""
    question_id: str
    question: str = ''
    answer: str = ''
    question_type: str = QuestionType.SHORT_ANSWER.value
    topic: Optional[str] = None
    options: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'QuizItem':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class GradedAnswer:
    question_id: str
    user_answer: str
    is_correct: bool


@dataclass
class TopicPerformance:
    """Per-topic tally for one quiz attempt."""
    topic: str
    correct: int = 0
    total: int = 0
    accuracy: float = 0.0
    is_weak: bool = False


@dataclass
class QuizResult:
    """Graded quiz attempt, ready for the caller to persist."""
    score: float
    duration_seconds: int
    taken_at: datetime
    answers: List[GradedAnswer] = field(default_factory=list)
    topic_performance: Dict[str, TopicPerformance] = field(default_factory=dict)

    @property
    def weak_topics(self) -> List[str]:
        return [t for t, perf in self.topic_performance.items() if perf.is_weak]

    def detail_dict(self) -> Dict:
        """The JSON document stored alongside the score."""
        return {
            'answers': [asdict(a) for a in self.answers],
            'topic_performance': {
                t: asdict(p) for t, p in self.topic_performance.items()
            },
        }

    def to_dict(self) -> Dict:
        return {
            'score': self.score,
            'duration_seconds': self.duration_seconds,
            'taken_at': self.taken_at.isoformat(),
            **self.detail_dict(),
        }


def make_card_id(pack_id: str, prompt: str) -> str:
    """
    Deterministic card ID from pack + prompt text.
    SHA-256 truncated to 16 hex chars for readability.
    """
    key = pack_id.strip().lower() + '|' + prompt.strip().lower()
    return hashlib.sha256(key.encode('utf-8')).hexdigest()[:16]
