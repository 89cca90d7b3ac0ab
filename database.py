import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from shared.models import HighScoreRecord

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the high-score store cannot be read or written."""


class HighScoreDatabase:
    """
    Class to handle SQLite database operations for storing and retrieving
    high scores for the Memory Match game.

    A connection is opened per operation so one instance can be shared by
    the threads of the Flask development server.
    """

    def __init__(self, db_file="high_scores.db"):
        """
        Initialize the database.

        Args:
            db_file: Path to the SQLite database file
        """
        self.db_file = db_file
        self.initialize_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize_db(self) -> None:
        """Create the database and tables if they don't exist."""
        try:
            # Create database directory if it doesn't exist
            db_dir = os.path.dirname(self.db_file)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir)

            conn = self._connect()
            try:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS high_scores (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        username TEXT NOT NULL,
                        score INTEGER NOT NULL,
                        moves INTEGER NOT NULL,
                        time INTEGER NOT NULL,
                        difficulty TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                ''')
                conn.commit()
            finally:
                conn.close()
            logger.info("High-score database initialized at %s", self.db_file)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Database initialization error: {e}") from e

    def create_high_score(self, record: HighScoreRecord) -> HighScoreRecord:
        """
        Store a validated high score.

        Args:
            record: The record to insert; its id and created_at are ignored

        Returns:
            The stored record, with id and created_at filled in
        """
        created_at = datetime.now(timezone.utc).isoformat()
        try:
            conn = self._connect()
            try:
                cursor = conn.execute('''
                    INSERT INTO high_scores
                    (username, score, moves, time, difficulty, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', (
                    record.username, record.score, record.moves,
                    record.time, record.difficulty, created_at
                ))
                conn.commit()
                record_id = cursor.lastrowid
            finally:
                conn.close()
        except (sqlite3.Error, OverflowError) as e:
            raise StorageError(f"Error saving high score: {e}") from e

        return HighScoreRecord(
            username=record.username,
            score=record.score,
            moves=record.moves,
            time=record.time,
            difficulty=record.difficulty,
            timestamp=record.timestamp,
            id=record_id,
            created_at=created_at,
        )

    def get_high_scores(self, difficulty: Optional[str] = None,
                        limit: int = 10) -> List[HighScoreRecord]:
        """
        Get the best scores, highest first.

        Args:
            difficulty: Game difficulty (easy, medium, hard) or None for all
            limit: Maximum number of records to return

        Returns:
            List of stored records
        """
        query = '''
            SELECT id, username, score, moves, time, difficulty, created_at
            FROM high_scores
        '''
        params = []
        if difficulty:
            query += " WHERE difficulty = ?"
            params.append(difficulty)

        # Ties keep submission order
        query += " ORDER BY score DESC, id ASC LIMIT ?"
        params.append(limit)

        try:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Error retrieving high scores: {e}") from e

        return [
            HighScoreRecord(
                username=row['username'],
                score=row['score'],
                moves=row['moves'],
                time=row['time'],
                difficulty=row['difficulty'],
                timestamp=row['created_at'],
                id=row['id'],
                created_at=row['created_at'],
            )
            for row in rows
        ]

    def get_game_count(self) -> int:
        """Get the total number of high scores recorded in the database."""
        try:
            conn = self._connect()
            try:
                return conn.execute("SELECT COUNT(*) FROM high_scores").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Error getting game count: {e}") from e
