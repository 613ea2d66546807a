"""MoodScribe: live speech transcription with per-utterance emotion tagging."""

__version__ = "0.1.0"
