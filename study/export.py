"""Export flashcards with their scheduling state to CSV."""

import csv
import io
from pathlib import Path
from typing import List

from study.models import MemoryCard


CSV_COLUMNS = ['prompt', 'answer', 'topic', 'due_at', 'interval_days', 'ease', 'reps', 'lapses']


def _row(card: MemoryCard) -> List:
    return [
        card.prompt,
        card.answer,
        card.topic or '',
        card.due_at.isoformat() if card.due_at else '',
        card.interval_days,
        card.ease,
        card.reps,
        card.lapses,
    ]


def flashcards_csv_text(cards: List[MemoryCard]) -> str:
    """Render cards as CSV text with a header row."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(CSV_COLUMNS)
    for card in cards:
        writer.writerow(_row(card))
    return buf.getvalue()


def export_flashcards_csv(cards: List[MemoryCard], path: Path) -> int:
    """
    Write cards to a CSV file.

    Returns:
        Number of cards exported.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        f.write(flashcards_csv_text(cards))
    return len(cards)
