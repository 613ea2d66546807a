"""Persistent storage of per-session chat histories."""

import json
import logging
import random
import string
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from ..models.emotion import ChatEntry, Emotion, EmotionResult

logger = logging.getLogger(__name__)

HISTORY_FILENAME = "chat_history.json"


class ChatHistoryStore:
    """Stores each session's chat history as JSON under the data directory."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize history store with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"ChatHistoryStore initialized with data_dir: {self.data_dir}")

    def create_session(self) -> str:
        """Create new session directory with timestamp and random suffix.

        Returns:
            Session ID (timestamp-based with random suffix)
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
        session_id = f"{timestamp}_{random_suffix}"
        session_path = self.sessions_dir / session_id
        session_path.mkdir(exist_ok=True)

        logger.info(f"Created session directory: {session_path}")
        return session_id

    def get_history_path(self, session_id: str) -> Path:
        return self.sessions_dir / session_id / HISTORY_FILENAME

    def append(self, session_id: str, entry: ChatEntry) -> None:
        """Append one entry to the session's history file."""
        entries = self._read_raw(session_id)
        entries.append(self._entry_to_dict(entry))

        history_path = self.get_history_path(session_id)
        history_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = history_path.with_suffix(".json.tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump({"session_id": session_id, "entries": entries}, f, indent=2, ensure_ascii=False)
        tmp_path.replace(history_path)
        logger.debug(f"Saved chat entry #{len(entries)} for session {session_id}")

    def load(self, session_id: str) -> List[ChatEntry]:
        """Load a session's history in order. Missing sessions have no entries."""
        return [self._entry_from_dict(data) for data in self._read_raw(session_id)]

    def list_sessions(self) -> List[str]:
        """List session IDs that have a chat history, oldest first."""
        sessions = [path.name for path in self.sessions_dir.iterdir()
                    if path.is_dir() and (path / HISTORY_FILENAME).exists()]
        sessions.sort()
        logger.debug(f"Found {len(sessions)} sessions")
        return sessions

    def _read_raw(self, session_id: str) -> List[Dict[str, Any]]:
        history_path = self.get_history_path(session_id)
        if not history_path.exists():
            return []
        with open(history_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return data.get("entries", [])

    @staticmethod
    def _entry_to_dict(entry: ChatEntry) -> Dict[str, Any]:
        return {
            "entry_id": entry.entry_id,
            "text": entry.text,
            "timestamp": entry.timestamp.isoformat(),
            "emotion": entry.emotion.label.value,
            "confidence": entry.emotion.confidence,
        }

    @staticmethod
    def _entry_from_dict(data: Dict[str, Any]) -> ChatEntry:
        return ChatEntry(
            text=data["text"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            emotion=EmotionResult(label=Emotion(data["emotion"]), confidence=float(data["confidence"])),
            entry_id=int(data.get("entry_id", 0)),
        )
