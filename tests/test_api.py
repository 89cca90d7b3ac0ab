import pytest

from database import StorageError


def submit(client, **overrides):
    body = {'username': 'Alice', 'score': 500, 'moves': 10, 'time': 42, 'difficulty': 'easy'}
    body.update(overrides)
    return client.post('/api/high-scores', json=body)


def test_index_reports_status(client):
    res = client.get('/')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'ok'
    assert data['stored_scores'] == 0


def test_create_high_score(client):
    res = submit(client)
    assert res.status_code == 201
    data = res.get_json()
    assert data['id'] == 1
    assert data['username'] == 'Alice'
    assert data['score'] == 500
    assert data['moves'] == 10
    assert data['time'] == 42
    assert data['difficulty'] == 'easy'
    assert data['createdAt']


@pytest.mark.parametrize("overrides", [
    {'username': ''},
    {'username': '   '},
    {'username': None},
    {'score': '500'},
    {'moves': 1.5},
    {'time': True},
    {'time': -1},
    {'score': 2 ** 70},
    {'difficulty': 'extreme'},
])
def test_create_high_score_rejects_invalid_fields(client, overrides):
    res = submit(client, **overrides)
    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_create_high_score_rejects_missing_fields(client):
    res = client.post('/api/high-scores', json={'username': 'Alice', 'score': 1})
    assert res.status_code == 400
    assert 'moves' in res.get_json()['error']


def test_create_high_score_rejects_non_json_body(client):
    res = client.post('/api/high-scores', data='not json', content_type='text/plain')
    assert res.status_code == 400


def test_submitted_scores_are_ranked(client):
    submit(client, username='Alice', score=300)
    submit(client, username='Bob', score=900)
    submit(client, username='Carol', score=600)
    submit(client, username='Dave', score=1000, difficulty='hard')

    res = client.get('/api/high-scores?difficulty=easy&limit=10')
    assert res.status_code == 200
    data = res.get_json()
    assert [row['username'] for row in data] == ['Bob', 'Carol', 'Alice']
    assert [row['score'] for row in data] == [900, 600, 300]


def test_list_without_difficulty_is_unfiltered_and_limited(client):
    for score in (10, 40, 30, 20):
        submit(client, score=score, difficulty='medium' if score > 20 else 'easy')

    data = client.get('/api/high-scores').get_json()
    assert [row['score'] for row in data] == [40, 30, 20, 10]

    data = client.get('/api/high-scores?limit=2').get_json()
    assert [row['score'] for row in data] == [40, 30]


def test_equal_scores_keep_submission_order(client):
    submit(client, username='First', score=100)
    submit(client, username='Second', score=100)
    data = client.get('/api/high-scores').get_json()
    assert [row['username'] for row in data] == ['First', 'Second']


@pytest.mark.parametrize("query", [
    'difficulty=extreme',
    'limit=0',
    'limit=51',
    'limit=ten',
])
def test_list_rejects_invalid_query(client, query):
    res = client.get(f'/api/high-scores?{query}')
    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_storage_failure_returns_500(flask_app, client, monkeypatch):
    store = flask_app.extensions['high_score_db']

    def broken(*args, **kwargs):
        raise StorageError("disk on fire")

    monkeypatch.setattr(store, 'create_high_score', broken)
    monkeypatch.setattr(store, 'get_high_scores', broken)

    assert submit(client).status_code == 500
    assert client.get('/api/high-scores').status_code == 500
