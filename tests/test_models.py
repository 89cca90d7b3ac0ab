import pytest

from config import DEFAULT_SETTINGS, load_settings, save_settings
from database import HighScoreDatabase, StorageError
from shared.models import MAX_INT, HighScoreRecord, ValidationError


def test_validate_builds_a_record():
    record = HighScoreRecord.validate(
        {'username': ' Alice ', 'score': 10, 'moves': 3, 'time': 20, 'difficulty': 'hard', 'extra': 1})
    assert record.username == 'Alice'
    assert record.difficulty == 'hard'
    assert record.id is None


@pytest.mark.parametrize("data", [
    None,
    [],
    {'username': 'A', 'score': 1, 'moves': 1, 'time': 1},
    {'username': 'A', 'score': False, 'moves': 1, 'time': 1, 'difficulty': 'easy'},
])
def test_validate_rejects_bad_payloads(data):
    with pytest.raises(ValidationError):
        HighScoreRecord.validate(data)


def test_api_shape_round_trip():
    data = {'id': 3, 'username': 'Bob', 'score': 5, 'moves': 2, 'time': 9,
            'difficulty': 'easy', 'createdAt': '2026-10-19T10:00:00+00:00'}
    assert HighScoreRecord.from_dict(data).to_dict() == data


def test_settings_round_trip(tmp_path):
    path = str(tmp_path / "settings.json")
    assert load_settings(path) == DEFAULT_SETTINGS

    save_settings({'server_url': 'scores.example:8000', 'mode': 'remote'}, path)
    assert load_settings(path) == {'server_url': 'scores.example:8000', 'mode': 'remote'}


def test_malformed_settings_fall_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert load_settings(str(path)) == DEFAULT_SETTINGS


def test_validate_rejects_integers_sqlite_cannot_store():
    data = {'username': 'A', 'score': MAX_INT, 'moves': 1, 'time': 1, 'difficulty': 'easy'}
    assert HighScoreRecord.validate(data).score == MAX_INT

    data['score'] = MAX_INT + 1
    with pytest.raises(ValidationError, match="too large"):
        HighScoreRecord.validate(data)


def test_store_wraps_integer_overflow(tmp_path):
    db = HighScoreDatabase(str(tmp_path / "scores.db"))
    record = HighScoreRecord(username='A', score=2 ** 70, moves=1, time=1, difficulty='easy')
    with pytest.raises(StorageError):
        db.create_high_score(record)
    assert db.get_game_count() == 0
