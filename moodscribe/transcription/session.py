"""Recording/transcription session state machine.

The session owns the audio source and the recognition task. It turns the
recognizer's running best guess into a live transcript and cuts it into
finalized utterances, either when the recognizer closes a segment or when a
sentence terminator followed by whitespace appears in the running text.

All methods must be called on the owning event loop. Recognition events
arrive from the recognizer's thread over an asyncio queue and are handled by
a pump task on that loop.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Iterable, Optional

from pubsub import pub

from ..audio.base import AbstractAudioSource
from ..audio.permissions import AbstractPermissionProvider
from ..models.events import (
    FinalTranscript,
    PartialTranscript,
    RecognitionError,
    RecognitionErrorCode,
    RecognitionEvent,
)
from ..models.session import (
    PermissionStatus,
    SessionError,
    SessionErrorKind,
    SessionState,
    SessionStatus,
)
from .base import AbstractStreamingRecognizer

logger = logging.getLogger(__name__)

DEFAULT_FATAL_ERROR_CODES = frozenset({
    RecognitionErrorCode.AUDIO_ENGINE,
    RecognitionErrorCode.UNAUTHENTICATED,
    RecognitionErrorCode.SERVICE_FAILURE,
})

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+\s+")


class TranscriptionSession:
    """Owns the recording lifecycle and emits transcript events."""

    def __init__(self,
                 audio_source: AbstractAudioSource,
                 recognizer: AbstractStreamingRecognizer,
                 permissions: AbstractPermissionProvider,
                 loop: asyncio.AbstractEventLoop,
                 fatal_error_codes: Iterable[RecognitionErrorCode] = DEFAULT_FATAL_ERROR_CODES,
                 state_topic: str = "session_state",
                 transcript_topic: str = "transcript_changed",
                 utterance_topic: str = "utterance_finalized"):
        """Initialize transcription session.

        Args:
            audio_source: Microphone (or other) audio source; owned exclusively
            recognizer: Streaming speech recognizer fed with the source's buffers
            permissions: Provider answering whether recording is allowed
            loop: Owning event loop
            fatal_error_codes: Recognizer error codes that end the session
            state_topic: Pub/sub topic for SessionStatus snapshots
            transcript_topic: Pub/sub topic for transcript changes
            utterance_topic: Pub/sub topic for finalized utterances
        """
        self.audio_source = audio_source
        self.recognizer = recognizer
        self.permissions = permissions
        self.loop = loop
        self.fatal_error_codes = frozenset(fatal_error_codes)
        self.state_topic = state_topic
        self.transcript_topic = transcript_topic
        self.utterance_topic = utterance_topic

        # Observable state
        self.state = SessionState.IDLE
        self.error: Optional[SessionError] = None
        self.transcript = ""
        self.utterance_count = 0

        # Sentence boundaries of the running segment already finalized
        self._finalized_boundaries = 0
        self._generation = 0
        self._permission_token: Optional[object] = None
        self._permission_waiter: Optional[asyncio.Future] = None
        self._pump_task: Optional[asyncio.Task] = None

        # Resources currently held
        self._context_active = False
        self._recognition_started = False
        self._tap_installed = False
        self._source_started = False

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def held_resources(self) -> int:
        """Number of audio/recognition resources currently acquired."""
        return sum((self._context_active, self._recognition_started,
                    self._tap_installed, self._source_started))

    def status(self) -> SessionStatus:
        return SessionStatus(state=self.state, error=self.error, transcript=self.transcript)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start recording, asking for permission first if it is undetermined."""
        if self.state in (SessionState.ACTIVE, SessionState.REQUESTING_PERMISSION):
            logger.warning(f"Start ignored, session is {self.state.value}")
            return

        permission = self.permissions.status()
        if permission is PermissionStatus.DENIED:
            self._enter_error(SessionErrorKind.PERMISSION_DENIED,
                              "Microphone or speech recognition permission denied")
            return

        if permission is PermissionStatus.UNDETERMINED:
            token = object()
            self._permission_token = token
            self._permission_waiter = self.loop.create_future()
            self._set_state(SessionState.REQUESTING_PERMISSION)
            logger.info("Requesting recording permission")
            self.permissions.request(
                lambda granted: self._post(self._on_permission_result, token, granted))
            return

        self._activate()

    def stop(self) -> None:
        """Stop recording and release every held resource."""
        self._permission_token = None
        if self.state in (SessionState.ACTIVE, SessionState.REQUESTING_PERMISSION):
            logger.info("Stopping transcription session")
            self._release()
            self._set_transcript("")
            self._set_state(SessionState.IDLE)
        else:
            self._release()
        self._settle_permission_waiter()

    def toggle(self) -> None:
        if self.state is SessionState.ACTIVE:
            self.stop()
        else:
            self.start()

    def _on_permission_result(self, token: object, granted: bool) -> None:
        if token is not self._permission_token or self.state is not SessionState.REQUESTING_PERMISSION:
            logger.debug("Ignoring stale permission result")
            return
        self._permission_token = None
        if not granted:
            self._enter_error(SessionErrorKind.PERMISSION_DENIED,
                              "Microphone or speech recognition permission denied")
        else:
            self._activate()
        self._settle_permission_waiter()

    async def wait_for_permission(self) -> SessionState:
        """Wait until a pending permission request is answered or abandoned.

        Returns:
            The session state once no request is pending
        """
        if self._permission_waiter is not None:
            await asyncio.shield(self._permission_waiter)
        return self.state

    def _settle_permission_waiter(self) -> None:
        waiter, self._permission_waiter = self._permission_waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_result(self.state)

    def _activate(self) -> None:
        self.error = None
        self._generation += 1
        generation = self._generation
        events: "asyncio.Queue[RecognitionEvent]" = asyncio.Queue()
        self._finalized_boundaries = 0
        self._set_transcript("")

        try:
            self.audio_source.activate()
            self._context_active = True

            channels = self.audio_source.channel_count
            if channels <= 0:
                raise RuntimeError(f"Audio input has no channels (channel_count={channels})")

            self.recognizer.start(self._make_sink(events))
            self._recognition_started = True

            self.audio_source.install_tap(self.recognizer.append)
            self._tap_installed = True

            self.audio_source.start()
            self._source_started = True
        except Exception as e:
            logger.error(f"Failed to acquire audio resources: {e}")
            self._release()
            self._enter_error(SessionErrorKind.RESOURCE_UNAVAILABLE, str(e))
            return

        self._pump_task = self.loop.create_task(self._pump(events, generation))
        self._set_state(SessionState.ACTIVE)
        logger.info("Transcription session active")

    def _release(self) -> None:
        """Release whatever is held. Safe to call any number of times."""
        self._generation += 1
        self._finalized_boundaries = 0

        if self._pump_task is not None:
            self._pump_task.cancel()
            self._pump_task = None

        if self._source_started:
            self._source_started = False
            self._release_step("stop audio source", self.audio_source.stop)
        if self._tap_installed:
            self._tap_installed = False
            self._release_step("remove audio tap", self.audio_source.remove_tap)
        if self._recognition_started:
            self._recognition_started = False
            self._release_step("end recognizer audio", self.recognizer.end_audio)
            self._release_step("cancel recognition task", self.recognizer.cancel)
        if self._context_active:
            self._context_active = False
            self._release_step("deactivate audio context", self.audio_source.deactivate)

    @staticmethod
    def _release_step(description: str, step) -> None:
        try:
            step()
        except Exception as e:
            logger.error(f"Failed to {description}: {e}")

    # ------------------------------------------------------------------
    # Recognition events
    # ------------------------------------------------------------------

    def _make_sink(self, events: "asyncio.Queue[RecognitionEvent]"):
        def sink(event: RecognitionEvent) -> None:
            # Called on the recognizer's thread.
            try:
                self.loop.call_soon_threadsafe(events.put_nowait, event)
            except RuntimeError:
                logger.debug("Event loop closed, dropping recognition event")
        return sink

    def _post(self, callback, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            logger.debug("Event loop closed, dropping callback")

    async def _pump(self, events: "asyncio.Queue[RecognitionEvent]", generation: int) -> None:
        while True:
            event = await events.get()
            if generation != self._generation or self.state is not SessionState.ACTIVE:
                return
            self._handle_event(event)

    def _handle_event(self, event: RecognitionEvent) -> None:
        if isinstance(event, PartialTranscript):
            tail = self._consume_sentences(event.text)
            self._set_transcript(tail)
        elif isinstance(event, FinalTranscript):
            tail = self._consume_sentences(event.text)
            self._finalize(tail)
            # The recognizer starts a fresh running segment after a final.
            self._finalized_boundaries = 0
            self._set_transcript("")
        elif isinstance(event, RecognitionError):
            self._on_recognition_error(event)
        else:
            logger.warning(f"Unknown recognition event: {event!r}")

    def _consume_sentences(self, running: str) -> str:
        """Finalize complete sentences in ``running`` and return the unfinished tail.

        Recognizers revise earlier words between partials, so finalized text is
        located by counting sentence boundaries, not by character offset.
        """
        boundaries = [match.end() for match in _SENTENCE_BOUNDARY.finditer(running)]
        done = min(self._finalized_boundaries, len(boundaries))
        start = boundaries[done - 1] if done else 0
        for end in boundaries[done:]:
            self._finalize(running[start:end])
            start = end
        self._finalized_boundaries = max(self._finalized_boundaries, len(boundaries))
        return running[start:].strip()

    def _finalize(self, text: str) -> None:
        text = text.strip()
        if not any(ch.isalnum() for ch in text):
            return
        self.utterance_count += 1
        timestamp = datetime.now()
        logger.info(f"Utterance finalized: '{text[:50]}'")
        pub.sendMessage(self.utterance_topic, text=text, timestamp=timestamp)

    def _on_recognition_error(self, event: RecognitionError) -> None:
        if event.code not in self.fatal_error_codes:
            logger.info(f"Recoverable recognizer error {event.code.name}: {event.message}")
            return

        logger.error(f"Fatal recognizer error {event.code.name}: {event.message}")
        self._release()
        self._set_transcript("")
        self._enter_error(SessionErrorKind.RECOGNIZER_FATAL,
                          event.message or f"Recognizer error {event.code.name}")

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        self.state = state
        logger.debug(f"Session state -> {state.value}")
        pub.sendMessage(self.state_topic, status=self.status())

    def _enter_error(self, kind: SessionErrorKind, message: str) -> None:
        self.error = SessionError(kind=kind, message=message)
        logger.warning(f"Session error: {self.error}")
        self._set_state(SessionState.ERROR)

    def _set_transcript(self, text: str) -> None:
        if text == self.transcript:
            return
        self.transcript = text
        pub.sendMessage(self.transcript_topic, text=text)
