"""Recognition events delivered from a recognition task to the session.

The recognizer emits exactly one of these per callback:
``PartialTranscript``, ``FinalTranscript`` or ``RecognitionError``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union
import time


class RecognitionErrorCode(Enum):
    """Enumerated recognizer error codes. NONE is the "no error" sentinel."""
    NONE = 0
    NO_SPEECH = 1
    STREAM_TIMEOUT = 2
    SERVICE_UNAVAILABLE = 3
    AUDIO_ENGINE = 4
    UNAUTHENTICATED = 5
    SERVICE_FAILURE = 6


@dataclass(frozen=True)
class PartialTranscript:
    """Current best guess for the running segment; replaces any earlier guess."""
    text: str
    received_at: float = field(default_factory=time.time, compare=False)


@dataclass(frozen=True)
class FinalTranscript:
    """The recognizer closed the running segment with this text."""
    text: str
    received_at: float = field(default_factory=time.time, compare=False)


@dataclass(frozen=True)
class RecognitionError:
    code: RecognitionErrorCode
    message: str = ""
    received_at: float = field(default_factory=time.time, compare=False)


RecognitionEvent = Union[PartialTranscript, FinalTranscript, RecognitionError]
