"""Google Speech-to-Text streaming recognizer."""

import logging
import queue
import threading
import time
from typing import Iterator, Optional

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

from .base import AbstractStreamingRecognizer, RecognitionSink
from ..models.events import (
    FinalTranscript,
    PartialTranscript,
    RecognitionError,
    RecognitionErrorCode,
    RecognitionEvent,
)

logger = logging.getLogger(__name__)


class _StreamingTask:
    """Per-start state, so a cancelled task can never talk to a newer sink."""

    def __init__(self, sink: RecognitionSink, max_buffered_chunks: int):
        self.sink = sink
        self.audio_queue: "queue.Queue[bytes]" = queue.Queue(maxsize=max_buffered_chunks)
        self.audio_ended = threading.Event()
        self.cancelled = threading.Event()
        self.dropped_chunks = 0

    def emit(self, event: RecognitionEvent) -> None:
        if not self.cancelled.is_set():
            self.sink(event)

    def audio_chunks(self) -> Iterator[bytes]:
        """Yield buffered audio until the audio ends or the task is cancelled."""
        while not self.cancelled.is_set():
            try:
                chunk = self.audio_queue.get(timeout=0.1)
            except queue.Empty:
                if self.audio_ended.is_set():
                    return
                continue

            # Batch whatever else is already waiting into one request.
            chunks = [chunk]
            while True:
                try:
                    chunks.append(self.audio_queue.get_nowait())
                except queue.Empty:
                    break
            yield b"".join(chunks)


class GoogleStreamingRecognizer(AbstractStreamingRecognizer):
    """Google Speech-to-Text streaming API recognizer with interim results."""

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 enable_automatic_punctuation: bool = True,
                 max_buffered_chunks: int = 500,
                 max_stream_restarts: int = 5):
        """Initialize Google streaming recognizer.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the LINEAR16 audio in Hz
            language: Language code (e.g., 'en-US', 'es-ES')
            enable_automatic_punctuation: Enable automatic punctuation
            max_buffered_chunks: Audio buffers held before new ones are dropped
            max_stream_restarts: Consecutive unavailable-service restarts before giving up
        """
        super().__init__(language)
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.max_buffered_chunks = max_buffered_chunks
        self.max_stream_restarts = max_stream_restarts
        self.client: Optional[speech.SpeechClient] = None
        self.project_id = None
        self.task: Optional[_StreamingTask] = None
        self.recognition_thread: Optional[threading.Thread] = None
        self.streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=self.language,
                enable_automatic_punctuation=self.enable_automatic_punctuation,
            ),
            interim_results=True,
        )

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        return True

    def start(self, sink: RecognitionSink) -> None:
        if self.client is None:
            raise RuntimeError("Google streaming recognizer not initialized")
        if self.task is not None and not self.task.cancelled.is_set():
            raise RuntimeError("Recognition task already running")

        task = _StreamingTask(sink, self.max_buffered_chunks)
        self.task = task
        self.recognition_thread = threading.Thread(target=self._run, args=(task,), daemon=True)
        self.recognition_thread.name = "GoogleRecognitionThread"
        self.recognition_thread.start()
        logger.info("Google streaming recognition started")

    def append(self, buffer: bytes) -> None:
        task = self.task
        if task is None or task.audio_ended.is_set():
            return
        try:
            task.audio_queue.put_nowait(buffer)
        except queue.Full:
            task.dropped_chunks += 1

    def end_audio(self) -> None:
        if self.task is not None:
            self.task.audio_ended.set()

    def cancel(self) -> None:
        task, self.task = self.task, None
        if task is None:
            return
        task.audio_ended.set()
        task.cancelled.set()
        # The daemon thread exits on its own once the request stream drains.
        logger.info(f"Google streaming recognition cancelled (dropped chunks: {task.dropped_chunks})")

    def _run(self, task: _StreamingTask) -> None:
        """Recognition loop; restarts the stream after transient failures."""
        restarts = 0
        while not task.cancelled.is_set():
            requests = (speech.StreamingRecognizeRequest(audio_content=chunk)
                        for chunk in task.audio_chunks())
            try:
                responses = self.client.streaming_recognize(config=self.streaming_config, requests=requests)
                for response in responses:
                    if task.cancelled.is_set():
                        return
                    self._handle_response(task, response)
                    restarts = 0
            except (gax_exceptions.OutOfRange, gax_exceptions.DeadlineExceeded) as e:
                # Streaming duration limit reached; open a new stream.
                logger.info(f"Google stream ended, restarting: {e}")
                task.emit(RecognitionError(RecognitionErrorCode.STREAM_TIMEOUT, str(e)))
                continue
            except gax_exceptions.ServiceUnavailable as e:
                restarts += 1
                if restarts > self.max_stream_restarts:
                    logger.error(f"Google STT unavailable after {restarts} attempts")
                    task.emit(RecognitionError(RecognitionErrorCode.SERVICE_FAILURE, str(e)))
                    return
                logger.warning(f"Google STT service unavailable (attempt {restarts}): {e}")
                task.emit(RecognitionError(RecognitionErrorCode.SERVICE_UNAVAILABLE, str(e)))
                time.sleep(min(2.0, 0.25 * restarts))
                continue
            except (gax_exceptions.Unauthenticated, gax_exceptions.PermissionDenied) as e:
                logger.error(f"Google STT rejected credentials: {e}")
                task.emit(RecognitionError(RecognitionErrorCode.UNAUTHENTICATED, str(e)))
                return
            except gax_exceptions.GoogleAPICallError as e:
                logger.error(f"Google STT API call error: {e}")
                task.emit(RecognitionError(RecognitionErrorCode.SERVICE_FAILURE, str(e)))
                return

            if task.audio_ended.is_set():
                return

    @staticmethod
    def _handle_response(task: _StreamingTask, response: speech.StreamingRecognizeResponse) -> None:
        if response.error and response.error.code:
            task.emit(RecognitionError(RecognitionErrorCode.SERVICE_FAILURE, response.error.message))
            return
        if not response.results:
            return

        finals = [result for result in response.results if result.is_final and result.alternatives]
        if finals:
            for result in finals:
                text = result.alternatives[0].transcript.strip()
                logger.debug(f"Final transcript: '{text}'")
                task.emit(FinalTranscript(text))
            return

        text = "".join(result.alternatives[0].transcript
                       for result in response.results if result.alternatives)
        task.emit(PartialTranscript(text.strip()))
