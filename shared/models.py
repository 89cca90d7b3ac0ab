"""
Shared data models for both the game client and server.
This ensures consistency in data structures across components.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

DIFFICULTY_LEVELS = ("easy", "medium", "hard")

# Fields a client must send when submitting a high score, with their types
REQUIRED_FIELDS = (
    ("username", str),
    ("score", int),
    ("moves", int),
    ("time", int),
    ("difficulty", str),
)

# SQLite stores integers as signed 64-bit values
MAX_INT = 2 ** 63 - 1


class ValidationError(ValueError):
    """Raised when a high-score payload is malformed."""


class ScoreServiceError(Exception):
    """Raised by a high-score service when a submission or query fails."""


def _utcnow_iso():
    return datetime.now(timezone.utc).isoformat()


@dataclass
class HighScoreRecord:
    """A finished game, as submitted to and returned by the high-score service."""
    username: str
    score: int
    moves: int
    time: int
    difficulty: str
    timestamp: str = field(default_factory=_utcnow_iso)
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        """Create a HighScoreRecord from a dictionary (server or client shape)."""
        return cls(
            username=data.get('username', ''),
            score=data.get('score', 0),
            moves=data.get('moves', 0),
            time=data.get('time', 0),
            difficulty=data.get('difficulty', ''),
            timestamp=data.get('timestamp') or data.get('createdAt') or _utcnow_iso(),
            id=data.get('id'),
            created_at=data.get('createdAt'),
        )

    @classmethod
    def validate(cls, data: Any) -> "HighScoreRecord":
        """
        Build a record from an untrusted submission.

        Raises:
            ValidationError: if a field is missing, empty or of the wrong type
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        for name, expected in REQUIRED_FIELDS:
            if name not in data or data[name] is None:
                raise ValidationError(f"Missing required field: {name}")
            value = data[name]
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, expected):
                raise ValidationError(f"Field '{name}' must be of type {expected.__name__}")
            if expected is int and value < 0:
                raise ValidationError(f"Field '{name}' must not be negative")
            if expected is int and value > MAX_INT:
                raise ValidationError(f"Field '{name}' is too large")

        if not data['username'].strip():
            raise ValidationError("Field 'username' must not be empty")
        if data['difficulty'] not in DIFFICULTY_LEVELS:
            raise ValidationError(
                f"Field 'difficulty' must be one of: {', '.join(DIFFICULTY_LEVELS)}")

        return cls(
            username=data['username'].strip(),
            score=data['score'],
            moves=data['moves'],
            time=data['time'],
            difficulty=data['difficulty'],
        )

    def to_submission(self) -> Dict[str, Any]:
        """The body sent with POST /api/high-scores."""
        return {
            'username': self.username,
            'score': self.score,
            'moves': self.moves,
            'time': self.time,
            'difficulty': self.difficulty,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert a stored record to its API representation."""
        data = {'id': self.id}
        data.update(self.to_submission())
        data['createdAt'] = self.created_at
        return data

