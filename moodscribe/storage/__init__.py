"""Storage for chat histories."""

from .history_store import ChatHistoryStore

__all__ = ["ChatHistoryStore"]
