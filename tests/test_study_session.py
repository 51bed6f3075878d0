"""Tests for study/session.py -- review orchestration and the session runner."""

import sys
import tempfile
from pathlib import Path
from datetime import datetime, timedelta, timezone

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from study.card_types import Grade
from study.models import MemoryCard, QuizItem, StreakState
from study.session import review_card, run_review_session, submit_quiz
from study.session_log import read_session_log
from study.storage import CardStore, ConflictError


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _make_due_cards(n=3):
    return [
        MemoryCard(
            card_id=f'session_card_{i}',
            pack_id='p1',
            prompt=f'What is concept {i}?',
            answer=f'Concept {i} is a specific data structure.',
            topic='Biology' if i % 2 == 0 else 'Chemistry',
        )
        for i in range(n)
    ]


def _make_store_with_cards(tmp_dir, cards):
    store = CardStore(Path(tmp_dir) / 'session_test.jsonl')
    for card in cards:
        store.add_card(card)
    return store


def _scripted(replies):
    replies = list(replies)

    def input_fn(prompt):
        return replies.pop(0)
    return input_fn


class _StaleReadStore:
    """Serves a fixed earlier snapshot of one card, like a second request
    that read before the first one wrote."""

    def __init__(self, store, snapshot):
        self._store = store
        self._snapshot = snapshot

    def get_card(self, card_id):
        return MemoryCard.from_dict(self._snapshot.to_dict())

    def __getattr__(self, name):
        return getattr(self._store, name)


# ---- review_card ----

def test_review_card_schedules_and_starts_streak():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, _make_due_cards(1))
        receipt = review_card(store, 'u1', 'session_card_0', 'good', now=NOW)

        assert receipt.outcome.interval_days == 1
        assert receipt.card.reps == 1
        assert receipt.card.version == 1
        assert receipt.streak.current_streak == 1
        assert receipt.streak.total_reviews == 1

        stored = store.get_card('session_card_0')
        assert stored.due_at == NOW + timedelta(days=1)
        assert store.get_streak('u1').current_streak == 1

        d = receipt.to_dict()
        assert d['srs_values']['interval_days'] == 1
        assert d['streak']['current_streak'] == 1


def test_review_card_accepts_shortcut():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, _make_due_cards(1))
        receipt = review_card(store, 'u1', 'session_card_0', '4', now=NOW)
        assert receipt.outcome.interval_days == 4


def test_review_card_invalid_grade():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, _make_due_cards(1))
        with pytest.raises(ValueError):
            review_card(store, 'u1', 'session_card_0', 'perfect', now=NOW)
        assert store.get_card('session_card_0').version == 0
        assert store.get_streak('u1') is None


def test_review_card_unknown_card():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, [])
        with pytest.raises(KeyError):
            review_card(store, 'u1', 'nope', Grade.GOOD, now=NOW)


def test_concurrent_reviews_one_wins():
    """Two reviews computed from the same read: the second is rejected."""
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, _make_due_cards(1))
        snapshot = store.get_card('session_card_0')

        review_card(store, 'u1', 'session_card_0', 'good', now=NOW)
        with pytest.raises(ConflictError):
            review_card(_StaleReadStore(store, snapshot), 'u1', 'session_card_0',
                        'easy', now=NOW)

        stored = store.get_card('session_card_0')
        assert stored.reps == 1
        assert stored.interval_days == 1
        assert store.get_streak('u1').total_reviews == 1


class _StaleStreakStore:
    """Serves a streak read before another review advanced it."""

    def __init__(self, store, snapshot):
        self._store = store
        self._snapshot = snapshot

    def get_streak(self, user_id):
        return StreakState.from_dict(self._snapshot.to_dict())

    def __getattr__(self, name):
        return getattr(self._store, name)


def test_streak_conflict_leaves_card_untouched():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, _make_due_cards(2))
        review_card(store, 'u1', 'session_card_0', 'good', now=NOW)
        snapshot = store.get_streak('u1')
        review_card(store, 'u1', 'session_card_0', 'good', now=NOW)

        with pytest.raises(ConflictError):
            review_card(_StaleStreakStore(store, snapshot), 'u1', 'session_card_1',
                        'good', now=NOW)

        reloaded = CardStore(Path(tmp) / 'session_test.jsonl')
        card = reloaded.get_card('session_card_1')
        assert card.reps == 0
        assert card.version == 0
        assert reloaded.get_streak('u1').total_reviews == 2

        # A fresh retry applies the grade exactly once
        receipt = review_card(store, 'u1', 'session_card_1', 'good', now=NOW)
        assert receipt.card.reps == 1
        assert receipt.streak.total_reviews == 3


def test_reviews_on_consecutive_days_extend_streak():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, _make_due_cards(2))
        review_card(store, 'u1', 'session_card_0', 'good', now=NOW)
        receipt = review_card(store, 'u1', 'session_card_1', 'good',
                              now=NOW + timedelta(days=1))
        assert receipt.streak.current_streak == 2
        assert receipt.streak.version == 2


# ---- submit_quiz ----

def test_submit_quiz_counts_toward_streak():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, [])
        items = [QuizItem(question_id='q1', answer='osmosis', topic='Biology')]
        out = submit_quiz(store, 'u1', items, {'q1': 'osmosis'},
                          NOW - timedelta(seconds=30), now=NOW)
        assert out['result'].score == 100.0
        assert out['result'].duration_seconds == 30
        assert out['streak'].current_streak == 1


def test_submit_quiz_without_streak():
    with tempfile.TemporaryDirectory() as tmp:
        store = _make_store_with_cards(tmp, [])
        items = [QuizItem(question_id='q1', answer='osmosis')]
        out = submit_quiz(store, 'u1', items, {}, NOW, now=NOW, record_streak=False)
        assert out['streak'] is None
        assert store.get_streak('u1') is None


# ---- run_review_session ----

def test_full_session():
    with tempfile.TemporaryDirectory() as tmp:
        cards = _make_due_cards(3)
        store = _make_store_with_cards(tmp, cards)
        log_path = Path(tmp) / 'session_log.jsonl'
        output = []

        summary = run_review_session(
            store, 'u1', cards,
            input_fn=_scripted(['', 'good', '', 'again', 's']),
            output_fn=output.append,
            log_path=log_path,
            now_fn=lambda: NOW,
        )

        assert summary['reviewed'] == 2
        assert summary['correct'] == 1
        assert summary['incorrect'] == 1
        assert summary['skipped'] == 1
        assert summary['grades'] == {'again': 1, 'hard': 0, 'good': 1, 'easy': 0}
        assert summary['streak']['current_streak'] == 1
        assert summary['streak']['total_reviews'] == 2

        assert store.get_card('session_card_0').reps == 1
        assert store.get_card('session_card_1').lapses == 1
        assert store.get_card('session_card_2').version == 0

        records = read_session_log(log_path)
        assert len(records) == 1
        assert records[0]['cards_reviewed'] == 2
        assert any('SESSION COMPLETE' in line for line in output)


def test_invalid_grade_reprompts():
    with tempfile.TemporaryDirectory() as tmp:
        cards = _make_due_cards(1)
        store = _make_store_with_cards(tmp, cards)
        output = []

        summary = run_review_session(
            store, 'u1', cards,
            input_fn=_scripted(['', 'meh', '5', 'easy']),
            output_fn=output.append,
            now_fn=lambda: NOW,
        )
        assert summary['reviewed'] == 1
        assert summary['grades']['easy'] == 1
        assert sum('Enter again, hard, good, easy or 1-4.' in line for line in output) == 2


def test_quit_early():
    with tempfile.TemporaryDirectory() as tmp:
        cards = _make_due_cards(3)
        store = _make_store_with_cards(tmp, cards)

        summary = run_review_session(
            store, 'u1', cards,
            input_fn=_scripted(['', '3', 'q']),
            output_fn=lambda s: None,
            now_fn=lambda: NOW,
        )
        assert summary['reviewed'] == 1
        assert summary['skipped'] == 0


def test_skip_at_grade_prompt():
    with tempfile.TemporaryDirectory() as tmp:
        cards = _make_due_cards(1)
        store = _make_store_with_cards(tmp, cards)
        log_path = Path(tmp) / 'session_log.jsonl'

        summary = run_review_session(
            store, 'u1', cards,
            input_fn=_scripted(['', 's']),
            output_fn=lambda s: None,
            log_path=log_path,
            now_fn=lambda: NOW,
        )
        assert summary['skipped'] == 1
        assert summary['streak'] is None
        # Nothing reviewed, nothing logged
        assert not log_path.exists()


def test_eof_ends_session():
    def input_fn(prompt):
        raise EOFError

    with tempfile.TemporaryDirectory() as tmp:
        cards = _make_due_cards(2)
        store = _make_store_with_cards(tmp, cards)
        summary = run_review_session(store, 'u1', cards, input_fn=input_fn,
                                     output_fn=lambda s: None, now_fn=lambda: NOW)
        assert summary['reviewed'] == 0
