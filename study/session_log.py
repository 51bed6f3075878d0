"""Session logging -- writes a JSONL line after each review session."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional


def log_session(
    log_path: Path,
    user_id: str,
    summary: Dict,
    cards_reviewed: List[Dict],
    started_at: Optional[datetime] = None,
    ended_at: Optional[datetime] = None,
) -> Dict:
    """
    Append a session record to the JSONL log file.

    Args:
        log_path:       Path to the session log file
        user_id:        Who reviewed
        summary:        Summary dict from run_review_session
        cards_reviewed: Per-card dicts with card_id, grade, topic, interval_days
        started_at:     Session start
        ended_at:       Session end

    Returns:
        The session record dict that was written.
    """
    topic_counts: Dict[str, Dict[str, int]] = {}
    for cr in cards_reviewed:
        topic = cr.get('topic') or ''
        if not topic:
            continue
        entry = topic_counts.setdefault(topic, {'reviewed': 0, 'again': 0})
        entry['reviewed'] += 1
        if cr.get('grade') == 'again':
            entry['again'] += 1

    # Topics with the highest share of "again" grades
    weakest_topics = sorted(
        [(t, round(c['again'] / c['reviewed'], 2)) for t, c in topic_counts.items()],
        key=lambda x: -x[1],
    )[:5]

    reviewed = summary.get('reviewed', 0)
    accuracy = None
    if reviewed:
        accuracy = round(summary.get('correct', 0) / reviewed * 100, 1)

    record = {
        'user_id': user_id,
        'started_at': started_at.isoformat() if started_at else None,
        'ended_at': (ended_at or datetime.now(timezone.utc)).isoformat(),
        'cards_reviewed': reviewed,
        'correct': summary.get('correct', 0),
        'incorrect': summary.get('incorrect', 0),
        'skipped': summary.get('skipped', 0),
        'accuracy': accuracy,
        'grade_histogram': summary.get('grades', {}),
        'weakest_topics': weakest_topics,
        'card_details': cards_reviewed,
    }

    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, 'a', encoding='utf-8') as f:
        f.write(json.dumps(record, ensure_ascii=False) + '\n')

    return record


def read_session_log(log_path: Path, user_id: Optional[str] = None) -> List[Dict]:
    """Session records in write order, optionally for one user only."""
    if not log_path.exists():
        return []
    with open(log_path, 'r', encoding='utf-8') as f:
        records = [json.loads(line) for line in f if line.strip()]
    if user_id is not None:
        records = [r for r in records if r.get('user_id') == user_id]
    return records
