"""Daily study streak tracking with freeze tokens."""

from datetime import date
from typing import Optional

from study.models import StreakState, MAX_FREEZES


FREEZE_AWARD_EVERY = 7


def empty_streak() -> StreakState:
    """Read view for a user who has never reviewed."""
    return StreakState()


def update_streak(state: Optional[StreakState], today: date) -> StreakState:
    """
    Apply one review-triggering action on `today` to a streak.

    Transitions, by the gap between last_review_date and today:
        no prior review  -> streak starts at 1
        same day         -> only total_reviews increments
        one day          -> streak continues
        two or more days -> a freeze is spent and the streak continues as
                            if the gap were one day; without a freeze the
                            streak restarts at 1

    When the streak advances onto a multiple of 7 a freeze is awarded,
    up to a bank of 2. Returns a new StreakState; `state` is not modified.

    Raises:
        ValueError if today is earlier than the last review date.
    """
    if state is None or state.last_review_date is None:
        base = state or StreakState()
        return base.copy(
            current_streak=1,
            longest_streak=max(1, base.longest_streak),
            last_review_date=today,
            total_reviews=base.total_reviews + 1,
            freeze_just_used=False,
        )

    gap = (today - state.last_review_date).days
    if gap < 0:
        raise ValueError(
            f"Review date {today.isoformat()} precedes last review "
            f"{state.last_review_date.isoformat()}"
        )

    if gap == 0:
        return state.copy(
            total_reviews=state.total_reviews + 1,
            freeze_just_used=False,
        )

    freezes = state.freezes
    freeze_used = False
    if gap >= 2:
        if freezes <= 0:
            return state.copy(
                current_streak=1,
                last_review_date=today,
                total_reviews=state.total_reviews + 1,
                freeze_just_used=False,
            )
        # One freeze covers the whole gap
        freezes -= 1
        freeze_used = True

    current = state.current_streak + 1
    if current % FREEZE_AWARD_EVERY == 0 and freezes < MAX_FREEZES:
        freezes += 1

    return state.copy(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_review_date=today,
        total_reviews=state.total_reviews + 1,
        freezes=freezes,
        freeze_just_used=freeze_used,
    )
