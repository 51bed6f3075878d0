"""Tests for quiz submission, weak-topic practice and history endpoints."""

import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from fastapi.testclient import TestClient
from server.app import app
from server.config import Settings
from server.db.session import init_db, reset_engine
from server.dependencies import get_settings


ALICE = {'X-User-Id': 'alice'}
BOB = {'X-User-Id': 'bob'}


@pytest.fixture
def client():
    with tempfile.TemporaryDirectory() as tmp:
        settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}",
                            history_page_limit=2)
        reset_engine()
        init_db(settings)
        app.dependency_overrides[get_settings] = lambda: settings
        try:
            yield TestClient(app)
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def _items():
    return [
        {'question': 'Powerhouse of the cell?', 'answer': 'mitochondria', 'topic': 'Biology'},
        {'question': 'Protein factory?', 'answer': 'ribosome', 'topic': 'Biology'},
        {'question': 'Bond sharing electrons?', 'answer': 'B', 'question_type': 'mcq',
         'topic': 'Chemistry', 'options': ['ionic', 'covalent', 'metallic', 'hydrogen']},
        {'question': 'Formula of water?', 'answer': 'H2O', 'topic': 'Chemistry'},
    ]


def _make_quiz(client, headers=ALICE):
    """Returns (quiz_id, {'q1': id, ...}) with q1-q4 in item order."""
    pack = client.post('/study-packs', json={'title': 'Science'}, headers=headers).json()
    resp = client.post('/quizzes', json={'study_pack_id': pack['id'], 'items': _items()},
                       headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    ids = {f'q{n}': item['question_id'] for n, item in enumerate(data['items'], 1)}
    return data['id'], ids


def _submit(client, quiz_id, ids, answers, headers=ALICE, seconds=42):
    start = datetime.now(timezone.utc) - timedelta(seconds=seconds)
    return client.post(f'/quizzes/{quiz_id}/submit', json={
        'answers': [{'question_id': ids[k], 'answer': v} for k, v in answers.items()],
        'start_time': start.isoformat(),
    }, headers=headers)


def test_create_and_get_quiz(client):
    quiz_id, ids = _make_quiz(client)
    resp = client.get(f'/quizzes/{quiz_id}', headers=ALICE)
    assert resp.status_code == 200
    data = resp.json()
    assert [i['question_id'] for i in data['items']] == [ids['q1'], ids['q2'], ids['q3'], ids['q4']]
    assert data['items'][2]['options'][1] == 'covalent'
    assert data['is_weak_topic_quiz'] is False

    assert client.get(f'/quizzes/{quiz_id}', headers=BOB).status_code == 404


def test_two_quizzes_get_distinct_question_ids(client):
    _, first = _make_quiz(client)
    _, second = _make_quiz(client)
    assert not set(first.values()) & set(second.values())


def test_create_quiz_requires_items(client):
    pack = client.post('/study-packs', json={'title': 'Science'}, headers=ALICE).json()
    resp = client.post('/quizzes', json={'study_pack_id': pack['id'], 'items': []},
                       headers=ALICE)
    assert resp.status_code == 422


def test_create_quiz_in_foreign_pack(client):
    pack = client.post('/study-packs', json={'title': 'Science'}, headers=ALICE).json()
    resp = client.post('/quizzes', json={'study_pack_id': pack['id'], 'items': _items()},
                       headers=BOB)
    assert resp.status_code == 404


def test_submit_scores_and_flags_weak_topics(client):
    quiz_id, ids = _make_quiz(client)
    resp = _submit(client, quiz_id, ids, {
        'q1': 'the mitocondria', 'q2': 'golgi', 'q3': 'b', 'q4': 'h2o',
    })
    assert resp.status_code == 200
    data = resp.json()
    result = data['result']
    assert result['score'] == 75.0
    assert result['duration_s'] >= 42
    topics = result['detail_json']['topic_performance']
    assert topics['Biology']['accuracy'] == 50.0
    assert topics['Biology']['is_weak'] is True
    assert topics['Chemistry']['is_weak'] is False
    assert data['streak']['current_streak'] == 1


def test_submit_unknown_quiz(client):
    resp = _submit(client, 'nope', {}, {})
    assert resp.status_code == 404


def test_submit_someone_elses_quiz(client):
    quiz_id, ids = _make_quiz(client)
    assert _submit(client, quiz_id, ids, {}, headers=BOB).status_code == 404


def test_weak_topic_quiz(client):
    quiz_id, ids = _make_quiz(client)
    resp = client.post(f'/quizzes/{quiz_id}/weak-topics',
                       json={'weak_topics': ['Biology']}, headers=ALICE)
    assert resp.status_code == 200
    data = resp.json()
    assert data['is_weak_topic_quiz'] is True
    assert data['weak_topics'] == ['Biology']
    assert [i['question_id'] for i in data['items']] == [ids['q1'], ids['q2']]


def test_weak_topic_quiz_validation(client):
    quiz_id, _ = _make_quiz(client)
    resp = client.post(f'/quizzes/{quiz_id}/weak-topics',
                       json={'weak_topics': []}, headers=ALICE)
    assert resp.status_code == 400

    resp = client.post(f'/quizzes/{quiz_id}/weak-topics',
                       json={'weak_topics': ['Physics']}, headers=ALICE)
    assert resp.status_code == 404


def test_history_pagination(client):
    quiz_id, ids = _make_quiz(client)
    for answer in ('mitochondria', 'x', 'y'):
        assert _submit(client, quiz_id, ids, {'q1': answer}).status_code == 200

    resp = client.get('/quiz-results/history', headers=ALICE)
    data = resp.json()
    assert data['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'total_pages': 2}
    assert len(data['results']) == 2

    resp = client.get('/quiz-results/history', params={'page': 2}, headers=ALICE)
    assert len(resp.json()['results']) == 1

    resp = client.get('/quiz-results/history', params={'quiz_id': quiz_id, 'limit': 10},
                      headers=ALICE)
    assert resp.json()['pagination']['total'] == 3

    resp = client.get('/quiz-results/history', headers=BOB)
    assert resp.json()['pagination']['total'] == 0
