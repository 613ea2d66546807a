"""Services layer for MoodScribe application logic."""

from .utterance_assembler import UtteranceAssembler
from .emotion_service import EmotionTranscriptionService

__all__ = [
    "UtteranceAssembler",
    "EmotionTranscriptionService",
]
