"""
Study mode CLI.

Usage:
    python -m study.cli --db study_cards.jsonl add "What is ATP?" "energy currency" --topic Biology
    python -m study.cli --db study_cards.jsonl due [--topic Biology]
    python -m study.cli --db study_cards.jsonl review [--topic Biology] [--user me]
    python -m study.cli --db study_cards.jsonl stats [--user me]
    python -m study.cli --db study_cards.jsonl topics
    python -m study.cli --db study_cards.jsonl export --csv out.csv
    python -m study.cli --db study_cards.jsonl quiz attempt.json [--user me]
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from study.analytics import compute_stats, topic_breakdown
from study.export import export_flashcards_csv
from study.models import MemoryCard, QuizItem, make_card_id
from study.scheduler import select_due_cards
from study.session import run_review_session, submit_quiz, utcnow
from study.session_log import read_session_log
from study.storage import CardStore


DEFAULT_USER = 'local'
SESSION_LOG_NAME = 'session_log.jsonl'


def cmd_add(args):
    """Add a new card."""
    store = CardStore(args.db)
    card = MemoryCard(
        card_id=make_card_id(args.pack, args.prompt),
        pack_id=args.pack,
        prompt=args.prompt,
        answer=args.answer,
        topic=args.topic,
    )
    try:
        store.add_card(card)
    except ValueError as e:
        print(str(e))
        sys.exit(1)
    print(f"Added card {card.card_id}")


def cmd_due(args):
    """Show due cards."""
    store = CardStore(args.db)
    due = select_due_cards(store.list_cards(), utcnow(), topic=args.topic)
    if not due:
        print("No cards due today.")
        return
    print(f"\n{len(due)} card(s) due for review:\n")
    for i, card in enumerate(due, 1):
        due_at = card.due_at.date().isoformat() if card.due_at else 'new'
        print(f"  {i}. {card.prompt[:80]}")
        print(f"     due={due_at}  ease={card.ease:.2f}  "
              f"reps={card.reps}  lapses={card.lapses}")


def cmd_review(args):
    """Run interactive review session."""
    store = CardStore(args.db)
    due = select_due_cards(store.list_cards(), utcnow(), topic=args.topic)
    if not due:
        print("No cards due today. Come back later!")
        return
    log_path = Path(args.db).parent / SESSION_LOG_NAME
    run_review_session(store, args.user, due, log_path=log_path)


def cmd_stats(args):
    """Show deck statistics."""
    store = CardStore(args.db)
    stats = compute_stats(store.list_cards(), store.get_streak(args.user), utcnow())

    print(f"\nDeck: {args.db}")
    print(f"  Total cards: {stats['total_cards']}")
    print(f"  Due now:     {stats['due_count']}")
    print("  Progress:")
    for bucket, count in stats['progress'].items():
        print(f"    {bucket}: {count}")

    streak = stats['streak']
    print(f"\n  Streak: {streak['current_streak']} day(s) "
          f"(longest {streak['longest_streak']}, freezes {streak['freezes']})")
    print(f"  Total reviews: {streak['total_reviews']}")

    sessions = read_session_log(Path(args.db).parent / SESSION_LOG_NAME, user_id=args.user)
    if sessions:
        last = sessions[-1]
        accuracy = 'n/a' if last['accuracy'] is None else f"{last['accuracy']}%"
        print(f"  Sessions logged: {len(sessions)} "
              f"(last: {last['cards_reviewed']} card(s), accuracy {accuracy})")


def cmd_topics(args):
    """Show card counts per topic."""
    store = CardStore(args.db)
    topics = topic_breakdown(store.list_cards(), utcnow())
    if not topics:
        print("No topics.")
        return
    for t in topics:
        print(f"  {t['topic']}: {t['due_count']}/{t['total_count']} due")


def cmd_export(args):
    """Export cards to CSV."""
    store = CardStore(args.db)
    n = export_flashcards_csv(store.list_cards(), Path(args.csv))
    print(f"Exported {n} card(s) to {args.csv}")


def cmd_quiz(args):
    """
    Grade a quiz attempt from a JSON file:
        {"items": [...], "answers": {question_id: answer}, "started_at": iso}
    """
    with open(args.attempt_file, 'r', encoding='utf-8') as f:
        data = json.load(f)

    items = [QuizItem.from_dict(d) for d in data.get('items', [])]
    if not items:
        print("Attempt file has no quiz items.")
        sys.exit(1)
    now = utcnow()
    started_at = datetime.fromisoformat(data['started_at']) if data.get('started_at') else now
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)

    store = CardStore(args.db)
    graded = submit_quiz(store, args.user, items, data.get('answers', {}),
                         started_at, now=now)
    result = graded['result']

    print(f"\nScore: {result.score:.1f}%  ({result.duration_seconds}s)")
    for perf in result.topic_performance.values():
        flag = '  <- weak' if perf.is_weak else ''
        print(f"  {perf.topic}: {perf.correct}/{perf.total} "
              f"({perf.accuracy:.0f}%){flag}")


def main():
    parser = argparse.ArgumentParser(
        description="Study mode -- spaced repetition review and quizzes",
        prog="python -m study.cli",
    )
    parser.add_argument(
        '--db', default='study_cards.jsonl',
        help="Path to card storage JSONL file (default: study_cards.jsonl)",
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log review events')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    add_parser = subparsers.add_parser('add', help='Add a card')
    add_parser.add_argument('prompt')
    add_parser.add_argument('answer')
    add_parser.add_argument('--topic', default=None)
    add_parser.add_argument('--pack', default='default', help='Study pack id')

    due_parser = subparsers.add_parser('due', help='Show cards due for review')
    due_parser.add_argument('--topic', default=None, help='Filter by topic')

    review_parser = subparsers.add_parser('review', help='Run interactive review session')
    review_parser.add_argument('--topic', default=None, help='Filter by topic')
    review_parser.add_argument('--user', default=DEFAULT_USER, help='Streak owner')

    stats_parser = subparsers.add_parser('stats', help='Show deck statistics')
    stats_parser.add_argument('--user', default=DEFAULT_USER, help='Streak owner')

    subparsers.add_parser('topics', help='Show cards per topic')

    export_parser = subparsers.add_parser('export', help='Export cards')
    export_parser.add_argument('--csv', required=True, help='Output CSV path')

    quiz_parser = subparsers.add_parser('quiz', help='Grade a quiz attempt file')
    quiz_parser.add_argument('attempt_file', help='JSON file with items and answers')
    quiz_parser.add_argument('--user', default=DEFAULT_USER, help='Streak owner')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == 'add':
        cmd_add(args)
    elif args.command == 'due':
        cmd_due(args)
    elif args.command == 'review':
        cmd_review(args)
    elif args.command == 'stats':
        cmd_stats(args)
    elif args.command == 'topics':
        cmd_topics(args)
    elif args.command == 'export':
        cmd_export(args)
    elif args.command == 'quiz':
        cmd_quiz(args)
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
