"""
High-score services used by the game client.

RemoteHighScores talks to the high-score server over HTTP; LocalHighScores
keeps scores in a local SQLite file. Both expose submit() and
get_high_scores() and raise ScoreServiceError on failure, so the game can
treat any failure as a non-fatal notice.
"""
import logging
from typing import List, Optional

import requests

from database import HighScoreDatabase, StorageError
from shared.models import HighScoreRecord, ScoreServiceError

logger = logging.getLogger(__name__)

SERVER_URL = "http://localhost:5000"
REQUEST_TIMEOUT = 5


class RemoteHighScores:
    """High-score collaborator backed by the Flask high-score server."""

    def __init__(self, server_url=SERVER_URL, timeout=REQUEST_TIMEOUT):
        # Ensure server_url has the correct format with http:// prefix
        if server_url and not server_url.startswith(('http://', 'https://')):
            server_url = 'http://' + server_url

        # Ensure URL ends with a trailing slash for consistency
        if server_url and not server_url.endswith('/'):
            server_url += '/'

        self.server_url = server_url
        self.timeout = timeout
        self.online = False  # Assume offline until we verify connection
        logger.info("Using high-score server at %s", self.server_url)

    @property
    def endpoint(self) -> str:
        return self.server_url + "api/high-scores"

    def check_server_connection(self) -> bool:
        """Check if the server is available."""
        try:
            response = requests.get(self.server_url, timeout=self.timeout)
            self.online = response.status_code == 200
        except requests.exceptions.RequestException as e:
            logger.warning("Server connection failed: %s", e)
            self.online = False
        return self.online

    @staticmethod
    def _error_message(response) -> str:
        try:
            return response.json().get('error') or response.reason
        except (ValueError, AttributeError):
            return response.reason or f"HTTP {response.status_code}"

    def submit(self, record: HighScoreRecord) -> HighScoreRecord:
        """
        Send a finished game to the server.

        Returns:
            The record as stored by the server (with id and createdAt)

        Raises:
            ScoreServiceError: on network errors, a non-201 response or a malformed reply
        """
        try:
            response = requests.post(self.endpoint, json=record.to_submission(),
                                     timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.online = False
            raise ScoreServiceError(f"Server unreachable: {e}") from e

        self.online = True
        if response.status_code != 201:
            raise ScoreServiceError(
                f"Server rejected score ({response.status_code}): {self._error_message(response)}")
        try:
            return HighScoreRecord.from_dict(response.json())
        except (ValueError, AttributeError, TypeError) as e:
            raise ScoreServiceError(f"Malformed server response: {e}") from e

    def get_high_scores(self, difficulty: Optional[str] = None,
                        limit: int = 10) -> List[HighScoreRecord]:
        """
        Get ranked scores from the server.

        Raises:
            ScoreServiceError: on network errors, a non-200 response or a malformed reply
        """
        params = {'limit': limit}
        if difficulty:
            params['difficulty'] = difficulty
        try:
            response = requests.get(self.endpoint, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.online = False
            raise ScoreServiceError(f"Server unreachable: {e}") from e

        self.online = True
        if response.status_code != 200:
            raise ScoreServiceError(
                f"Could not load high scores ({response.status_code}): {self._error_message(response)}")
        try:
            return [HighScoreRecord.from_dict(item) for item in response.json()]
        except (ValueError, AttributeError, TypeError) as e:
            raise ScoreServiceError(f"Malformed server response: {e}") from e


class LocalHighScores:
    """High-score collaborator that stores scores in a local SQLite file."""

    def __init__(self, db_file="memory_game.db"):
        try:
            self.db = HighScoreDatabase(db_file)
        except StorageError as e:
            raise ScoreServiceError(str(e)) from e

    def submit(self, record: HighScoreRecord) -> HighScoreRecord:
        try:
            return self.db.create_high_score(record)
        except StorageError as e:
            raise ScoreServiceError(str(e)) from e

    def get_high_scores(self, difficulty: Optional[str] = None,
                        limit: int = 10) -> List[HighScoreRecord]:
        try:
            return self.db.get_high_scores(difficulty, limit)
        except StorageError as e:
            raise ScoreServiceError(str(e)) from e


def get_score_service(mode="local", server_url=None, db_file="memory_game.db"):
    """
    Factory function to get the appropriate high-score service.

    Args:
        mode: 'local' for a local-only database, 'remote' for the high-score server
        server_url: URL of the remote server, required for 'remote' mode
        db_file: SQLite file used in local mode

    Returns:
        RemoteHighScores when the server answers, LocalHighScores otherwise
    """
    if mode == "remote" and server_url:
        service = RemoteHighScores(server_url)
        if service.check_server_connection():
            return service
        logger.warning("Server %s is offline, falling back to local high scores", server_url)

    return LocalHighScores(db_file)
