"""Targeted practice quizzes built from a quiz's weak topics."""

import math
from typing import List, Sequence

from study.models import QuizItem


MAX_ITEMS_PER_TOPIC = 10


def build_weak_topic_quiz(
    items: Sequence[QuizItem],
    weak_topics: Sequence[str],
    max_per_topic: int = MAX_ITEMS_PER_TOPIC,
) -> List[QuizItem]:
    """
    Select questions on the given weak topics for a practice round.

    Each topic contributes at most min(max_per_topic, ceil(matching / topics))
    questions, in quiz order, grouped by topic in the order the topics
    were given.

    Raises:
        ValueError if weak_topics is empty.
    """
    if not weak_topics:
        raise ValueError("Weak topics are required")

    wanted = set(weak_topics)
    matching = [item for item in items if item.topic in wanted]
    if not matching:
        return []

    per_topic = min(max_per_topic, math.ceil(len(matching) / len(weak_topics)))

    selected: List[QuizItem] = []
    seen = set()
    for topic in weak_topics:
        if topic in seen:
            continue
        seen.add(topic)
        topic_items = [item for item in matching if item.topic == topic]
        selected.extend(topic_items[:per_topic])
    return selected
