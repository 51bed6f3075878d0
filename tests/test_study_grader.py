"""Tests for study/grader.py -- typo-tolerant answer grading."""

import sys
from pathlib import Path
from datetime import datetime, timedelta, timezone

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from study.grader import (
    fuzzy_match,
    grade_answer,
    grade_attempt,
    levenshtein,
    normalize,
    strip_filler,
)
from study.models import QuizItem


START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _short(answer, topic=None, qid='q1') -> QuizItem:
    return QuizItem(question_id=qid, question='?', answer=answer, topic=topic)


def _mcq(answer, qid='q1', topic=None) -> QuizItem:
    return QuizItem(question_id=qid, question='?', answer=answer,
                    question_type='mcq', topic=topic, options=['A', 'B', 'C', 'D'])


# ---- Helpers ----

def test_normalize():
    assert normalize('  The Cell ') == 'the cell'
    assert normalize(None) == ''


def test_strip_filler_removes_articles_and_punctuation():
    assert strip_filler('the theory of an atom.') == 'theory of  atom'
    assert strip_filler('paris!') == 'paris'


def test_strip_filler_keeps_article_letters_inside_words():
    assert strip_filler('theory') == 'theory'
    assert strip_filler('banana') == 'banana'


def test_levenshtein():
    assert levenshtein('kitten', 'sitting') == 3
    assert levenshtein('flaw', 'lawn') == 2
    assert levenshtein('', 'abc') == 3
    assert levenshtein('same', 'same') == 0


# ---- Single answers ----

def test_mcq_exact_ignoring_case_and_space():
    assert grade_answer(_mcq('B'), ' b ') is True
    assert grade_answer(_mcq('B'), 'C') is False


def test_mcq_has_no_typo_tolerance():
    assert grade_answer(_mcq('Paris'), 'Pari') is False


def test_articles_ignored():
    item = _short('cell')
    assert grade_answer(item, 'the cell') is True
    assert grade_answer(item, 'A cell.') is True
    assert grade_answer(_short('the cell'), 'cell') is True


def test_punctuation_ignored():
    assert grade_answer(_short('paris'), 'Paris!') is True


def test_containment_either_way():
    assert grade_answer(_short('photosynthesis'), "it's photosynthesis") is True
    assert grade_answer(_short('light-dependent reactions'), 'reactions') is True


def test_two_typos_accepted():
    assert levenshtein('mitachondrio', 'mitochondria') == 2
    assert grade_answer(_short('mitochondria'), 'mitachondrio') is True


def test_three_typos_rejected():
    assert levenshtein('mitackondrio', 'mitochondria') == 3
    assert grade_answer(_short('mitochondria'), 'mitackondrio') is False


def test_blank_answer_never_correct():
    assert grade_answer(_short('cell'), '') is False
    assert grade_answer(_short('cell'), '   ') is False
    assert grade_answer(_short('cell'), 'the.') is False


def test_filler_only_correct_answer_needs_exact_match():
    assert grade_answer(_short('The'), 'photosynthesis') is False
    assert grade_answer(_short('?'), 'anything') is False
    assert grade_answer(_short('The'), 'the') is True


def test_fuzzy_match_exact():
    assert fuzzy_match('osmosis', 'osmosis') is True


# ---- Full attempts ----

def _attempt_items():
    return [
        _short('mitochondria', topic='Biology', qid='q1'),
        _short('ribosome', topic='Biology', qid='q2'),
        _mcq('B', topic='Chemistry', qid='q3'),
        _short('covalent bond', topic='Chemistry', qid='q4'),
    ]


def test_three_of_four_scores_75():
    answers = {'q1': 'mitochondria', 'q2': 'nucleus', 'q3': 'b', 'q4': 'a covalent bond'}
    result = grade_attempt(_attempt_items(), answers, START, START + timedelta(seconds=90))
    assert result.score == 75.0
    assert [a.is_correct for a in result.answers] == [True, False, True, True]
    assert result.duration_seconds == 90
    assert result.taken_at == START + timedelta(seconds=90)


def test_topic_performance_and_weak_topics():
    answers = {'q1': 'mitochondria', 'q2': 'nucleus', 'q3': 'B', 'q4': 'covalent bond'}
    result = grade_attempt(_attempt_items(), answers, START, START)

    bio = result.topic_performance['Biology']
    assert (bio.correct, bio.total) == (1, 2)
    assert bio.accuracy == 50.0
    assert bio.is_weak is True

    chem = result.topic_performance['Chemistry']
    assert chem.accuracy == 100.0
    assert chem.is_weak is False

    assert result.weak_topics == ['Biology']


def test_seventy_percent_is_not_weak():
    items = [_short(f'answer{i}', topic='T', qid=f'q{i}') for i in range(10)]
    answers = {f'q{i}': f'answer{i}' for i in range(7)}
    result = grade_attempt(items, answers, START, START)
    assert result.topic_performance['T'].accuracy == pytest.approx(70.0)
    assert result.topic_performance['T'].is_weak is False


def test_untagged_items_go_to_general():
    items = [_short('osmosis', qid='q1')]
    result = grade_attempt(items, {'q1': 'osmosis'}, START, START)
    assert list(result.topic_performance) == ['General']


def test_missing_answer_counts_as_wrong():
    result = grade_attempt(_attempt_items(), {}, START, START)
    assert result.score == 0.0
    assert all(a.user_answer == '' for a in result.answers)


def test_duration_floors_to_whole_seconds():
    result = grade_attempt(
        _attempt_items(), {}, START, START + timedelta(seconds=65, milliseconds=900))
    assert result.duration_seconds == 65


def test_duration_never_negative():
    result = grade_attempt(_attempt_items(), {}, START, START - timedelta(seconds=5))
    assert result.duration_seconds == 0


def test_empty_quiz_rejected():
    with pytest.raises(ValueError):
        grade_attempt([], {}, START, START)


def test_detail_dict_shape():
    answers = {'q1': 'mitochondria'}
    result = grade_attempt(_attempt_items(), answers, START, START)
    detail = result.detail_dict()
    assert detail['answers'][0] == {
        'question_id': 'q1', 'user_answer': 'mitochondria', 'is_correct': True,
    }
    assert detail['topic_performance']['Biology']['total'] == 2
