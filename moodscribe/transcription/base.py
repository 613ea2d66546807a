"""Abstract base class for streaming speech recognizers."""

from abc import ABC, abstractmethod
from typing import Callable
import logging

from ..models.events import RecognitionEvent

logger = logging.getLogger(__name__)

RecognitionSink = Callable[[RecognitionEvent], None]


class AbstractStreamingRecognizer(ABC):
    """Turns a stream of audio buffers into partial/final transcript events.

    Partial results are always reported. Events are handed to the sink on the
    recognizer's own thread; the sink is responsible for moving them onto the
    session's event loop.
    """

    def __init__(self, language: str = "en-US"):
        self.language = language

    @abstractmethod
    def start(self, sink: RecognitionSink) -> None:
        """Begin a recognition task that reports events to ``sink``."""
        pass

    @abstractmethod
    def append(self, buffer: bytes) -> None:
        """Queue an audio buffer. Called from the audio thread; must not block."""
        pass

    @abstractmethod
    def end_audio(self) -> None:
        """Signal that no more audio will be appended."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop the recognition task; no further events are reported."""
        pass
