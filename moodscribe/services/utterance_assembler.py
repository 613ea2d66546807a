"""Builds the chat history from finalized utterances."""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pubsub import pub

from ..classification.classifier import EmotionClassifier
from ..classification.scorer import InvalidInputError
from ..inference.base import InferenceEngineError
from ..models.emotion import ChatEntry, EmotionResult
from ..storage.history_store import ChatHistoryStore

logger = logging.getLogger(__name__)


class UtteranceAssembler:
    """Appends one emotion-tagged ChatEntry per finalized utterance.

    Each finalized text is classified directly by the classifier pipeline, not
    via the live scheduler. Utterances are queued and processed one at a time,
    so the history is in finalization order and every entry keeps the
    finalization timestamp.
    """

    def __init__(self,
                 classifier: EmotionClassifier,
                 loop: asyncio.AbstractEventLoop,
                 store: Optional[ChatHistoryStore] = None,
                 session_id: Optional[str] = None,
                 entry_topic: str = "chat_entry",
                 error_topic: str = "emotion_failed"):
        """Initialize assembler.

        Args:
            classifier: Pipeline used to classify each finalized utterance
            loop: Owning event loop
            store: Optional persistent store; entries are saved when given
            session_id: Store session to append to (created if omitted)
            entry_topic: Pub/sub topic for new ChatEntries
            error_topic: Pub/sub topic for InvalidInputError failures
        """
        self.classifier = classifier
        self.loop = loop
        self.store = store
        self.session_id = session_id
        if self.store is not None and self.session_id is None:
            self.session_id = self.store.create_session()
        self.entry_topic = entry_topic
        self.error_topic = error_topic

        self.history: List[ChatEntry] = []
        self.last_error: Optional[Exception] = None
        self._queue: "asyncio.Queue[Tuple[str, datetime]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    def on_utterance_finalized(self, text: str, timestamp: datetime) -> None:
        """Queue a finalized utterance for classification and appending."""
        self._queue.put_nowait((text, timestamp))
        if self._worker is None or self._worker.done():
            self._worker = self.loop.create_task(self._process_queue())

    async def drain(self) -> None:
        """Wait until every queued utterance has been appended."""
        await self._queue.join()

    def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            self._worker = None

    async def _process_queue(self) -> None:
        while not self._queue.empty():
            text, timestamp = await self._queue.get()
            try:
                emotion = await self._resolve_emotion(text)
                self._append(text, timestamp, emotion)
            except Exception as e:
                logger.exception(f"Failed to append utterance '{text[:50]}': {e}")
            finally:
                self._queue.task_done()

    async def _resolve_emotion(self, text: str) -> EmotionResult:
        if not text.strip():
            return EmotionResult.neutral()
        try:
            return await self.classifier.classify_text(text)
        except InferenceEngineError as e:
            logger.warning(f"Inference failed for utterance, using neutral: {e}")
            return EmotionResult.neutral()
        except InvalidInputError as e:
            logger.error(f"Model output rejected for utterance: {e}")
            self.last_error = e
            pub.sendMessage(self.error_topic, error=e)
            return EmotionResult.neutral()
        except Exception as e:
            logger.exception(f"Unexpected classification failure for utterance, using neutral: {e}")
            return EmotionResult.neutral()

    def _append(self, text: str, timestamp: datetime, emotion: EmotionResult) -> None:
        entry = ChatEntry(text=text, timestamp=timestamp, emotion=emotion,
                          entry_id=len(self.history) + 1)
        self.history.append(entry)
        logger.info(f"Chat entry #{entry.entry_id}: {emotion.label.value} "
                    f"({emotion.confidence:.2f}) '{text[:50]}'")

        if self.store is not None:
            try:
                self.store.append(self.session_id, entry)
            except OSError as e:
                logger.error(f"Failed to persist chat entry #{entry.entry_id}: {e}")

        pub.sendMessage(self.entry_topic, entry=entry)
