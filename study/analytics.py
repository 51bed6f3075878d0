"""Dashboard aggregates for the study engine."""

from datetime import datetime
from typing import Dict, List, Optional

from study.models import MemoryCard, StreakState
from study.scheduler import calculate_progress, is_due
from study.streak import empty_streak


def topic_breakdown(cards: List[MemoryCard], now: datetime) -> List[Dict]:
    """
    Total and due counts per topic, for cards that have a topic.

    Returns:
        [{topic, total_count, due_count}, ...] in first-seen order
    """
    counts: Dict[str, Dict[str, int]] = {}
    for card in cards:
        if not card.topic:
            continue
        entry = counts.setdefault(card.topic, {'total': 0, 'due': 0})
        entry['total'] += 1
        if is_due(card, now):
            entry['due'] += 1

    return [
        {'topic': topic, 'total_count': c['total'], 'due_count': c['due']}
        for topic, c in counts.items()
    ]


def compute_stats(
    cards: List[MemoryCard],
    streak: Optional[StreakState],
    now: datetime,
) -> Dict:
    """
    Progress distribution, streak and due count for a card collection.

    Returns:
        {progress: {new, learning, review, mastered}, streak: dict,
         total_cards, due_count}
    """
    streak = streak or empty_streak()
    return {
        'progress': calculate_progress(cards),
        'streak': streak.to_dict(),
        'total_cards': len(cards),
        'due_count': sum(1 for c in cards if is_due(c, now)),
    }
