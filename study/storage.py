"""JSONL-backed card and streak storage with optimistic versioning."""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from study.models import MemoryCard, StreakState


logger = logging.getLogger("studycore.store")


class ConflictError(RuntimeError):
    """
    A write raced with another write to the same card or streak.

    The stored version no longer matches the version the caller read.
    Safe to retry from a fresh read.
    """

    def __init__(self, kind: str, key: str, expected: int, actual: int):
        super().__init__(
            f"{kind} {key} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )
        self.kind = kind
        self.key = key
        self.expected = expected
        self.actual = actual


class ReviewStore(Protocol):
    """What the review orchestrator needs from persistence."""

    def get_card(self, card_id: str) -> Optional[MemoryCard]: ...

    def save_card(self, card: MemoryCard, expected_version: int) -> MemoryCard: ...

    def list_cards(self, pack_id: Optional[str] = None) -> List[MemoryCard]: ...

    def get_streak(self, user_id: str) -> Optional[StreakState]: ...

    def save_streak(
        self, user_id: str, state: StreakState, expected_version: int,
    ) -> StreakState: ...

    def save_review(
        self, card: MemoryCard, card_version: int,
        user_id: str, streak: StreakState, streak_version: int,
    ) -> Tuple[MemoryCard, StreakState]: ...


class _JsonlTable:
    """One JSONL file keyed by a string id, loaded fully into memory."""

    def __init__(self, path):
        self.path = Path(path)
        self.rows: Dict[str, Dict] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                self.rows[data['key']] = data['value']

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp, 'w', encoding='utf-8') as f:
            for key, value in self.rows.items():
                f.write(json.dumps({'key': key, 'value': value}, ensure_ascii=False) + '\n')
        tmp.replace(self.path)


class CardStore:
    """
    JSONL-backed card and streak storage.

    Loads both files into memory on init (fine for <10k cards).
    Writes rewrite the file through a temp file and rename. Every save is
    conditional on the caller's expected version; a mismatch raises
    ConflictError and nothing is written.
    """

    def __init__(self, db_path, streak_path=None):
        self.db_path = Path(db_path)
        if streak_path is None:
            streak_path = self.db_path.with_name(self.db_path.stem + '_streaks.jsonl')
        self.streak_path = Path(streak_path)
        self._cards = _JsonlTable(self.db_path)
        self._streaks = _JsonlTable(self.streak_path)
        self._lock = threading.Lock()

    # ---- Cards ----

    def get_card(self, card_id: str) -> Optional[MemoryCard]:
        data = self._cards.rows.get(card_id)
        return MemoryCard.from_dict(data) if data is not None else None

    def add_card(self, card: MemoryCard) -> MemoryCard:
        """Insert a new card. Raises ValueError if the id is taken."""
        with self._lock:
            if card.card_id in self._cards.rows:
                raise ValueError(f"Card already exists: {card.card_id}")
            self._cards.rows[card.card_id] = card.to_dict()
            self._cards.save()
        return card

    def save_card(self, card: MemoryCard, expected_version: int) -> MemoryCard:
        """
        Write back a card read at `expected_version`.

        Returns the stored card with its bumped version.

        Raises:
            KeyError if the card does not exist.
            ConflictError if it changed since it was read.
        """
        with self._lock:
            self._check_card(card.card_id, expected_version)
            card.version = expected_version + 1
            self._cards.rows[card.card_id] = card.to_dict()
            self._cards.save()
        return card

    def _check_card(self, card_id: str, expected_version: int) -> None:
        current = self._cards.rows.get(card_id)
        if current is None:
            raise KeyError(f"Card not found: {card_id}")
        actual = current.get('version', 0)
        if actual != expected_version:
            logger.warning("Card write conflict on %s (%d != %d)",
                           card_id, actual, expected_version)
            raise ConflictError('card', card_id, expected_version, actual)

    def list_cards(self, pack_id: Optional[str] = None) -> List[MemoryCard]:
        cards = [MemoryCard.from_dict(d) for d in self._cards.rows.values()]
        if pack_id is not None:
            cards = [c for c in cards if c.pack_id == pack_id]
        return cards

    def count(self) -> int:
        return len(self._cards.rows)

    # ---- Streaks ----

    def get_streak(self, user_id: str) -> Optional[StreakState]:
        data = self._streaks.rows.get(user_id)
        return StreakState.from_dict(data) if data is not None else None

    def save_streak(
        self, user_id: str, state: StreakState, expected_version: int,
    ) -> StreakState:
        """
        Write back a streak read at `expected_version` (0 for a user with
        no stored streak yet).

        Raises:
            ConflictError if it changed since it was read.
        """
        with self._lock:
            self._check_streak(user_id, expected_version)
            state.version = expected_version + 1
            self._streaks.rows[user_id] = state.to_dict()
            self._streaks.save()
        return state

    def _check_streak(self, user_id: str, expected_version: int) -> None:
        current = self._streaks.rows.get(user_id)
        actual = current.get('version', 0) if current is not None else 0
        if actual != expected_version:
            logger.warning("Streak write conflict for %s (%d != %d)",
                           user_id, actual, expected_version)
            raise ConflictError('streak', user_id, expected_version, actual)

    # ---- Reviews ----

    def save_review(
        self, card: MemoryCard, card_version: int,
        user_id: str, streak: StreakState, streak_version: int,
    ) -> Tuple[MemoryCard, StreakState]:
        """
        Write a rescheduled card and the streak it advanced as one unit.

        Both versions are checked before either file is touched, so a
        ConflictError on either side leaves both unchanged.
        """
        with self._lock:
            self._check_card(card.card_id, card_version)
            self._check_streak(user_id, streak_version)
            card.version = card_version + 1
            streak.version = streak_version + 1
            self._cards.rows[card.card_id] = card.to_dict()
            self._streaks.rows[user_id] = streak.to_dict()
            self._cards.save()
            self._streaks.save()
        return card, streak
