import os
import random
import sys
from collections import defaultdict

import pytest

# Ensure the project root (containing the game modules) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from classes import GameSession
from server.server import create_app


class TestConfig:
    TESTING = True
    HIGH_SCORE_DB = None
    DEFAULT_LIMIT = 10
    MAX_LIMIT = 50


class FakeTime:
    """Manually advanced monotonic clock."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


def pairs_by_value(snapshot):
    """Map each card value to the ids of its two cards."""
    ids = defaultdict(list)
    for card in snapshot.cards:
        ids[card.value].append(card.id)
    return dict(ids)


@pytest.fixture()
def flask_app(tmp_path):
    class Config(TestConfig):
        HIGH_SCORE_DB = str(tmp_path / "scores.db")

    yield create_app(Config)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def fake_time():
    return FakeTime()


@pytest.fixture()
def session(fake_time):
    return GameSession("easy", player_name="Alice", rng=random.Random(42),
                       time_source=fake_time)
