"""Transcription module for MoodScribe."""

from .base import AbstractStreamingRecognizer, RecognitionSink
from .session import TranscriptionSession, DEFAULT_FATAL_ERROR_CODES

__all__ = [
    "AbstractStreamingRecognizer",
    "RecognitionSink",
    "TranscriptionSession",
    "DEFAULT_FATAL_ERROR_CODES",
]
