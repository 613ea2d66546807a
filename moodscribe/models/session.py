"""Transcription session data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(Enum):
    """Lifecycle of a transcription session.

    Audio capture resources are held if and only if the state is ACTIVE.
    """
    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    ACTIVE = "active"
    ERROR = "error"


class PermissionStatus(Enum):
    """Microphone/speech permission as reported by the permission provider."""
    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


class SessionErrorKind(Enum):
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    RECOGNIZER_FATAL = "recognizer_fatal"


@dataclass(frozen=True)
class SessionError:
    """Why a session is in the ERROR state. Rendered by the presentation layer."""
    kind: SessionErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot published whenever the session state changes."""
    state: SessionState
    error: Optional[SessionError] = None
    transcript: str = ""
