"""
Configuration for the Memory Match game, its high-score server and client.
"""
import json
import logging
import os

logger = logging.getLogger(__name__)

# Game tunables (seconds / points)
REVEAL_DELAY_SEC = 0.5      # both faces stay visible before match/mismatch is applied
FLIP_BACK_DELAY_SEC = 1.0   # mismatched cards stay marked before flipping back
MATCH_BONUS = 100
MISMATCH_PENALTY = 10
TIME_BONUS_DIVISOR = 2

DEFAULT_DIFFICULTY = "medium"

# Client settings management
SETTINGS_FILE = "settings.json"
DEFAULT_SERVER = "localhost:5000"  # Default server if no settings file exists
DEFAULT_SETTINGS = {"server_url": DEFAULT_SERVER, "mode": "local"}


class Config:
    """Settings for the high-score server, read from the environment."""
    HIGH_SCORE_DB = os.environ.get('HIGH_SCORE_DB') or os.path.join(
        os.path.dirname(os.path.abspath(__file__)), "server", "high_scores.db")
    PORT = int(os.environ.get('PORT', '5000'))
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    # Bounds for GET /api/high-scores?limit=
    DEFAULT_LIMIT = 10
    MAX_LIMIT = 50


def load_settings(path=SETTINGS_FILE):
    """Load client settings from a JSON file, falling back to defaults."""
    settings = dict(DEFAULT_SETTINGS)
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                settings.update(json.load(f))
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed settings file %s", path)
    return settings


def save_settings(settings, path=SETTINGS_FILE):
    """Save client settings to a JSON file."""
    with open(path, 'w') as f:
        json.dump(settings, f)
