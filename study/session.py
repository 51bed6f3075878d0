"""Review orchestration: schedule, streak, log. Injectable IO."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from study.card_types import Grade, parse_grade
from study.grader import grade_attempt
from study.models import MemoryCard, QuizItem, QuizResult, StreakState
from study.scheduler import ReviewOutcome, apply_outcome, schedule_review
from study.session_log import log_session
from study.storage import ReviewStore
from study.streak import update_streak


logger = logging.getLogger("studycore.review")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReviewReceipt:
    """Everything a caller needs to report back after one card review."""
    card: MemoryCard
    outcome: ReviewOutcome
    streak: StreakState

    def to_dict(self) -> Dict:
        return {
            'card_id': self.card.card_id,
            'srs_values': self.outcome.to_dict(),
            'streak': self.streak.to_dict(),
        }


def advance_streak(
    store: ReviewStore, user_id: str, now: datetime,
) -> Tuple[StreakState, int]:
    """The user's next streak state and the version it was read at."""
    previous = store.get_streak(user_id)
    expected = previous.version if previous is not None else 0
    state = update_streak(previous, now.date())

    if state.freeze_just_used:
        logger.info("Streak freeze used for %s (streak=%d, freezes left=%d)",
                    user_id, state.current_streak, state.freezes)
    if previous is not None and state.freezes > previous.freezes:
        logger.info("Streak freeze awarded to %s at %d days",
                    user_id, state.current_streak)
    return state, expected


def record_activity(store: ReviewStore, user_id: str, now: datetime) -> StreakState:
    """Advance the user's streak for one review-triggering action."""
    state, expected = advance_streak(store, user_id, now)
    return store.save_streak(user_id, state, expected_version=expected)


def review_card(
    store: ReviewStore,
    user_id: str,
    card_id: str,
    grade,
    now: Optional[datetime] = None,
) -> ReviewReceipt:
    """
    Apply one graded review: reschedule the card and advance the streak.

    Both new states are computed first and written together, so a
    conflict on either leaves the card and the streak untouched.

    Raises:
        ValueError for an unknown grade.
        KeyError if the card does not exist.
        ConflictError if the card or streak was written concurrently.
    """
    grade = parse_grade(grade)
    now = now or utcnow()

    card = store.get_card(card_id)
    if card is None:
        raise KeyError(f"Card not found: {card_id}")

    outcome = schedule_review(card, grade, now)
    streak, streak_version = advance_streak(store, user_id, now)
    saved, streak = store.save_review(
        apply_outcome(card, outcome), card.version,
        user_id, streak, streak_version,
    )
    logger.info("Reviewed %s as %s: interval %dd -> %dd, reps=%d",
                card_id, grade.value, card.interval_days,
                outcome.interval_days, outcome.reps)
    return ReviewReceipt(card=saved, outcome=outcome, streak=streak)


def submit_quiz(
    store: ReviewStore,
    user_id: str,
    items: List[QuizItem],
    answers: Mapping[str, str],
    started_at: datetime,
    now: Optional[datetime] = None,
    record_streak: bool = True,
) -> Dict:
    """
    Grade a quiz attempt and, when record_streak is set, count it toward
    the user's streak.

    Returns:
        {result: QuizResult, streak: StreakState or None}
    """
    now = now or utcnow()
    result: QuizResult = grade_attempt(items, answers, started_at, now)
    logger.info("Quiz graded for %s: %.1f%% over %d question(s)",
                user_id, result.score, len(items))

    streak = record_activity(store, user_id, now) if record_streak else None
    return {'result': result, 'streak': streak}


def run_review_session(
    store: ReviewStore,
    user_id: str,
    due_cards: List[MemoryCard],
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
    log_path: Optional[Path] = None,
    now_fn: Callable[[], datetime] = utcnow,
) -> Dict:
    """
    Run an interactive review session over due cards.

    Flow per card:
        1. Show prompt, wait for Enter
        2. Reveal answer
        3. Read a grade (again/hard/good/easy or 1-4); re-prompt on anything else
        4. Reschedule the card and update the streak

    Type 's' at either prompt to skip a card, 'q' to quit.

    Returns:
        Summary dict: {reviewed, correct, incorrect, skipped, grades, streak}
    """
    reviewed = 0
    correct = 0
    incorrect = 0
    skipped = 0
    grades: Dict[str, int] = {g.value: 0 for g in Grade}
    cards_reviewed_log: List[Dict] = []
    streak: Optional[StreakState] = None
    started_at = now_fn()

    output_fn(f"\n{'='*60}")
    output_fn(f"REVIEW SESSION -- {len(due_cards)} card(s) due")
    output_fn(f"{'='*60}")
    output_fn("Grade with again/hard/good/easy (or 1-4). 's' skips, 'q' quits.\n")

    quit_early = False
    for idx, card in enumerate(due_cards, 1):
        output_fn(f"\n--- Card {idx}/{len(due_cards)}"
                  f"{' [' + card.topic + ']' if card.topic else ''} ---")
        output_fn(f"  {card.prompt}")

        try:
            reply = input_fn("\nPress Enter to reveal: ")
        except (EOFError, KeyboardInterrupt):
            output_fn("\nSession ended.")
            break

        command = reply.strip().lower()
        if command == 'q':
            output_fn("Ending session early.")
            break
        if command == 's':
            skipped += 1
            output_fn("  (skipped)")
            continue

        output_fn(f"  Answer: {card.answer[:200]}")

        grade = None
        while grade is None:
            try:
                reply = input_fn("Grade: ")
            except (EOFError, KeyboardInterrupt):
                quit_early = True
                break
            command = reply.strip().lower()
            if command in ('q', 's'):
                break
            try:
                grade = parse_grade(command)
            except ValueError:
                output_fn("  Enter again, hard, good, easy or 1-4.")

        if grade is None:
            if quit_early or command == 'q':
                output_fn("Ending session early.")
                break
            skipped += 1
            output_fn("  (skipped)")
            continue

        receipt = review_card(store, user_id, card.card_id, grade, now=now_fn())
        streak = receipt.streak
        output_fn(f"  Next review: {receipt.outcome.due_at.date().isoformat()} "
                  f"(interval: {receipt.outcome.interval_days}d)")

        grades[grade.value] += 1
        reviewed += 1
        if grade == Grade.AGAIN:
            incorrect += 1
        else:
            correct += 1
        cards_reviewed_log.append({
            'card_id': card.card_id,
            'grade': grade.value,
            'topic': card.topic,
            'interval_days': receipt.outcome.interval_days,
        })

    summary = {
        'reviewed': reviewed,
        'correct': correct,
        'incorrect': incorrect,
        'skipped': skipped,
        'grades': grades,
        'streak': streak.to_dict() if streak else None,
    }

    output_fn(f"\n{'='*60}")
    output_fn("SESSION COMPLETE")
    output_fn(f"  Reviewed: {reviewed}  Correct: {correct}  "
              f"Incorrect: {incorrect}  Skipped: {skipped}")
    if streak is not None:
        line = f"  Streak: {streak.current_streak} day(s)"
        if streak.freeze_just_used:
            line += " (freeze used)"
        output_fn(line)
    output_fn(f"{'='*60}")

    if log_path and cards_reviewed_log:
        log_session(log_path, user_id, summary, cards_reviewed_log,
                    started_at=started_at, ended_at=now_fn())

    return summary
