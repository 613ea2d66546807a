"""Data models for the MoodScribe application."""

from .emotion import Emotion, EmotionResult, TokenEncoding, ChatEntry, MODEL_LABELS
from .session import (
    SessionState,
    PermissionStatus,
    SessionErrorKind,
    SessionError,
    SessionStatus,
)
from .events import (
    RecognitionErrorCode,
    PartialTranscript,
    FinalTranscript,
    RecognitionError,
    RecognitionEvent,
)

__all__ = [
    "Emotion",
    "EmotionResult",
    "TokenEncoding",
    "ChatEntry",
    "MODEL_LABELS",
    # Session models
    "SessionState",
    "PermissionStatus",
    "SessionErrorKind",
    "SessionError",
    "SessionStatus",
    # Recognition events
    "RecognitionErrorCode",
    "PartialTranscript",
    "FinalTranscript",
    "RecognitionError",
    "RecognitionEvent",
]
