"""
Memory Match High-Score Server

A simple Flask server that stores and ranks finished games
for the Memory Match game.
"""
import logging
import os
import sys

from flask import Blueprint, Flask, current_app, jsonify, request

# Add parent directory to path so `python server/server.py` finds the top-level modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import Config
from database import HighScoreDatabase, StorageError
from shared.models import DIFFICULTY_LEVELS, HighScoreRecord, ValidationError

high_scores = Blueprint('high_scores', __name__)


def get_store() -> HighScoreDatabase:
    return current_app.extensions['high_score_db']


@high_scores.route('/', methods=['GET'])
def index():
    """Describe the service; the game client uses this as a health check."""
    try:
        stored = get_store().get_game_count()
    except StorageError as e:
        current_app.logger.error(f"Error counting high scores: {e}")
        stored = None
    return jsonify({
        "service": "memory-match high scores",
        "status": "ok",
        "stored_scores": stored,
        "endpoints": {
            "POST /api/high-scores": "Submit a finished game",
            "GET /api/high-scores?difficulty=<level>&limit=<1..50>": "Ranked scores",
        },
    })


@high_scores.route('/api/high-scores', methods=['POST'])
def create_high_score():
    """Save a finished game sent by a client."""
    data = request.get_json(silent=True)
    try:
        record = HighScoreRecord.validate(data)
    except ValidationError as e:
        current_app.logger.info(f"Rejected high score submission: {e}")
        return jsonify({"error": str(e)}), 400

    try:
        stored = get_store().create_high_score(record)
    except StorageError as e:
        current_app.logger.error(f"Error saving high score: {e}")
        return jsonify({"error": "Failed to save high score"}), 500

    current_app.logger.info(
        f"Saved high score id={stored.id} user={stored.username} "
        f"score={stored.score} difficulty={stored.difficulty}")
    return jsonify(stored.to_dict()), 201


@high_scores.route('/api/high-scores', methods=['GET'])
def list_high_scores():
    """Get ranked high scores, optionally for a single difficulty."""
    difficulty = request.args.get('difficulty')
    if difficulty is not None and difficulty not in DIFFICULTY_LEVELS:
        return jsonify({
            "error": f"difficulty must be one of: {', '.join(DIFFICULTY_LEVELS)}"
        }), 400

    max_limit = current_app.config.get('MAX_LIMIT', 50)
    raw_limit = request.args.get('limit')
    if raw_limit is None:
        limit = current_app.config.get('DEFAULT_LIMIT', 10)
    else:
        try:
            limit = int(raw_limit)
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        if not 1 <= limit <= max_limit:
            return jsonify({"error": f"limit must be between 1 and {max_limit}"}), 400

    try:
        records = get_store().get_high_scores(difficulty, limit)
    except StorageError as e:
        current_app.logger.error(f"Error retrieving high scores: {e}")
        return jsonify({"error": "Failed to retrieve high scores"}), 500

    return jsonify([record.to_dict() for record in records])


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.json.sort_keys = False

    flask_app.extensions['high_score_db'] = HighScoreDatabase(
        flask_app.config['HIGH_SCORE_DB'])
    flask_app.register_blueprint(high_scores)

    return flask_app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=app.config['DEBUG'])
