"""
Session store - practice history persisted as a single JSON file.

The file holds one key, `chinese-oral-practice-sessions`, whose value is the
list of saved sessions. Reads never fail: a missing or corrupt file is treated
as an empty history.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Optional

from .session import PracticeSession

logger = logging.getLogger(__name__)

SESSIONS_KEY = "chinese-oral-practice-sessions"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class SessionStore:
    """
    Saved practice sessions, newest first.

    Usage:
        store = SessionStore(Path("sessions.json"))
        session = store.save({"imageBase64": ..., "questions": [...]})
        store.get_sessions()
        store.delete(session.id)
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def get_sessions(self) -> list[PracticeSession]:
        """All sessions sorted by timestamp, newest first."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            sessions = [PracticeSession.from_dict(s) for s in data.get(SESSIONS_KEY, [])]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Failed to read sessions from {self.path}: {e}")
            return []
        return sorted(sessions, key=lambda s: s.timestamp, reverse=True)

    def get_session(self, session_id: str) -> Optional[PracticeSession]:
        """Get a session by ID."""
        for session in self.get_sessions():
            if session.id == session_id:
                return session
        return None

    def save(self, session_data: dict) -> PracticeSession:
        """
        Save a new session.

        `session_data` is a session dict without `id`/`timestamp`; both are
        assigned here from the current time in milliseconds.

        Raises:
            OSError: if the file cannot be written
        """
        sessions = self.get_sessions()
        timestamp = _now_ms()
        session_id = str(timestamp)
        existing_ids = {s.id for s in sessions}
        while session_id in existing_ids:
            timestamp += 1
            session_id = str(timestamp)

        new_session = PracticeSession.from_dict({**session_data, "id": session_id, "timestamp": timestamp})

        try:
            self._write([new_session, *sessions])
        except OSError as e:
            logger.error(f"Failed to save session to {self.path}: {e}")
            raise

        logger.info(f"Saved session {new_session.summary()}")
        return new_session

    def delete(self, session_id: str) -> bool:
        """
        Remove a session. Returns True if it existed, False if it did not.

        Raises:
            OSError: if the file cannot be written
        """
        sessions = self.get_sessions()
        remaining = [s for s in sessions if s.id != session_id]
        if len(remaining) == len(sessions):
            return False
        try:
            self._write(remaining)
        except OSError as e:
            logger.error(f"Failed to delete session {session_id}: {e}")
            raise
        logger.info(f"Deleted session {session_id}")
        return True

    def _write(self, sessions: list[PracticeSession]) -> None:
        """Write the whole history atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump({SESSIONS_KEY: [s.to_dict() for s in sessions]}, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)
