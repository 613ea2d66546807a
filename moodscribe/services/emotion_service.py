"""Service that builds the transcription/emotion pipeline and wires it over pub/sub."""

import asyncio
import logging
from typing import Any, Dict, Optional

from pubsub import pub

from ..audio.base import AbstractAudioSource
from ..audio.permissions import AbstractPermissionProvider, create_permission_provider
from ..classification.classifier import EmotionClassifier
from ..classification.scheduler import InferenceScheduler
from ..classification.scorer import TemperatureScorer
from ..classification.tokenizer import AbstractTokenizer, PlaceholderTokenizer
from ..config import MoodScribeConfig
from ..inference.base import AbstractInferenceEngine
from ..models.events import RecognitionErrorCode
from ..models.session import SessionState
from ..storage.history_store import ChatHistoryStore
from ..transcription.base import AbstractStreamingRecognizer
from ..transcription.session import TranscriptionSession
from .utterance_assembler import UtteranceAssembler

logger = logging.getLogger(__name__)

SESSION_STATE_TOPIC = "session_state"
TRANSCRIPT_TOPIC = "transcript_changed"
UTTERANCE_TOPIC = "utterance_finalized"
EMOTION_TOPIC = "emotion_classified"
EMOTION_ERROR_TOPIC = "emotion_failed"
CHAT_ENTRY_TOPIC = "chat_entry"


class EmotionTranscriptionService:
    """Owns the session, scheduler and assembler and connects them.

    ``transcript_changed`` feeds the inference scheduler and
    ``utterance_finalized`` feeds the utterance assembler. Every component
    lives on the same event loop.
    """

    def __init__(self,
                 config: MoodScribeConfig,
                 loop: asyncio.AbstractEventLoop,
                 audio_source: AbstractAudioSource,
                 recognizer: AbstractStreamingRecognizer,
                 engine: AbstractInferenceEngine,
                 permissions: Optional[AbstractPermissionProvider] = None,
                 tokenizer: Optional[AbstractTokenizer] = None,
                 store: Optional[ChatHistoryStore] = None):
        """Initialize service.

        Args:
            config: Application configuration
            loop: Owning event loop
            audio_source: Audio source handed to the session
            recognizer: Streaming recognizer handed to the session
            engine: Inference engine shared by scheduler and assembler
            permissions: Permission provider (built from config if omitted)
            tokenizer: Tokenizer (PlaceholderTokenizer from config if omitted)
            store: Optional chat history store
        """
        self.config = config
        self.loop = loop
        self.engine = engine
        self.is_running = False

        tokenizer = tokenizer or PlaceholderTokenizer(
            max_length=config.get('tokenizer.max_length', 128),
            vocab_size=config.get('tokenizer.vocab_size', 30522),
        )
        scorer = TemperatureScorer(
            temperature=config.get('scorer.temperature', 2.0),
            confidence_threshold=config.get('scorer.confidence_threshold', 0.6),
        )
        self.classifier = EmotionClassifier(tokenizer, engine, scorer)

        self.scheduler = InferenceScheduler(
            self.classifier,
            loop,
            debounce_seconds=config.get('scheduler.debounce_seconds', 0.5),
            result_topic=EMOTION_TOPIC,
            error_topic=EMOTION_ERROR_TOPIC,
        )
        self.assembler = UtteranceAssembler(
            self.classifier,
            loop,
            store=store,
            entry_topic=CHAT_ENTRY_TOPIC,
            error_topic=EMOTION_ERROR_TOPIC,
        )
        self.session = TranscriptionSession(
            audio_source,
            recognizer,
            permissions or create_permission_provider(config.get('permissions.microphone', 'prompt')),
            loop,
            fatal_error_codes=self._fatal_error_codes(config),
            state_topic=SESSION_STATE_TOPIC,
            transcript_topic=TRANSCRIPT_TOPIC,
            utterance_topic=UTTERANCE_TOPIC,
        )

    @staticmethod
    def _fatal_error_codes(config: MoodScribeConfig):
        codes = set()
        for name in config.get_fatal_error_codes():
            try:
                codes.add(RecognitionErrorCode[name])
            except KeyError:
                raise ValueError(f"Unknown recognizer error code in transcription.fatal_error_codes: {name}") from None
        return codes

    def start(self) -> Dict[str, Any]:
        """Initialize the engine, subscribe the consumers and start recording.

        Returns:
            Result dictionary with success status
        """
        if not self.is_running:
            if not self.engine.initialize():
                return {"success": False, "error": f"Inference engine '{self.engine.name}' failed to initialize"}

            pub.subscribe(self.scheduler.on_text_changed, TRANSCRIPT_TOPIC)
            pub.subscribe(self.assembler.on_utterance_finalized, UTTERANCE_TOPIC)
            self.is_running = True
            logger.info("Emotion transcription service started")

        self.session.start()
        return {"success": True, "state": self.session.state.value}

    def toggle_recording(self) -> None:
        self.session.toggle()

    async def wait_for_permission(self) -> SessionState:
        """Wait for a pending microphone permission prompt to be answered."""
        state = await self.session.wait_for_permission()
        logger.info(f"Permission settled, session is {state.value}")
        return state

    async def shutdown(self) -> Dict[str, Any]:
        """Stop recording, finish queued utterances and release the engine.

        Returns:
            Result dictionary with success status
        """
        logger.info("Shutting down emotion transcription service...")
        self.session.stop()
        self.scheduler.close()

        if self.is_running:
            try:
                pub.unsubscribe(self.scheduler.on_text_changed, TRANSCRIPT_TOPIC)
                pub.unsubscribe(self.assembler.on_utterance_finalized, UTTERANCE_TOPIC)
            except Exception as e:
                logger.warning(f"Error during unsubscribe: {e}")

            await self.assembler.drain()
            await self.scheduler.wait_idle()
            self.assembler.close()

            try:
                self.engine.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up inference engine: {e}")
            self.is_running = False

        logger.info(f"Service shutdown complete: {len(self.assembler.history)} chat entries")
        return {
            "success": True,
            "chat_entries": len(self.assembler.history),
            "session_id": self.assembler.session_id,
        }
