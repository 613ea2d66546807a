"""Terminal user interface."""

from .console_view import ConsoleChatView, EMOTION_STYLES

__all__ = ["ConsoleChatView", "EMOTION_STYLES"]
