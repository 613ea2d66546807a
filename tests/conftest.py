"""Pytest configuration and fixtures for MoodScribe tests."""

import pytest
import asyncio
import tempfile
import logging
from typing import List, Optional, Sequence

import numpy as np
from pubsub import pub

from moodscribe.audio.base import AbstractAudioSource
from moodscribe.audio.permissions import AbstractPermissionProvider
from moodscribe.inference.base import AbstractInferenceEngine, InferenceEngineError
from moodscribe.models.session import PermissionStatus
from moodscribe.transcription.base import AbstractStreamingRecognizer


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Raw scores in model label order: sadness, joy, love, anger, fear, surprise
JOY_SCORES = [0.1, 5.0, 0.1, 0.1, 0.1, 0.1]
SADNESS_SCORES = [5.0, 0.1, 0.1, 0.1, 0.1, 0.1]
ANGER_SCORES = [0.1, 0.1, 0.1, 5.0, 0.1, 0.1]


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O devices or network")
    config.addinivalue_line("markers", "integration: tests wiring several components together")


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Give every test a clean pub/sub topic tree."""
    yield
    pub.unsubAll()
    topic_mgr = pub.getDefaultTopicMgr()
    for topic in list(topic_mgr.getRootAllTopics().getSubtopics()):
        topic_mgr.delTopic(topic.getName())


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


async def settle(rounds: int = 10) -> None:
    """Let callbacks and tasks already scheduled on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class TopicRecorder:
    """Records every message sent on one of the pipeline's pub/sub topics.

    pypubsub validates listener signatures against the topic's arguments, so
    each topic gets a listener with the matching parameter names.
    """

    def __init__(self, topic: str):
        self.topic = topic
        self.messages: list = []
        listeners = {
            "session_state": self._on_status,
            "transcript_changed": self._on_text,
            "utterance_finalized": self._on_utterance,
            "emotion_classified": self._on_result,
            "emotion_failed": self._on_error,
            "chat_entry": self._on_entry,
        }
        pub.subscribe(listeners[topic], topic)

    @property
    def last(self):
        return self.messages[-1] if self.messages else None

    def _on_status(self, status):
        self.messages.append(status)

    def _on_text(self, text):
        self.messages.append(text)

    def _on_utterance(self, text, timestamp):
        self.messages.append((text, timestamp))

    def _on_result(self, result):
        self.messages.append(result)

    def _on_error(self, error):
        self.messages.append(error)

    def _on_entry(self, entry):
        self.messages.append(entry)


class FakeAudioSource(AbstractAudioSource):
    """Audio source that counts acquisitions instead of touching hardware."""

    def __init__(self, channels: int = 1, fail_on: Optional[str] = None):
        self.channels = channels
        self.fail_on = fail_on
        self.active = False
        self.tap = None
        self.started = False
        self.calls: List[str] = []

    @property
    def held(self) -> int:
        return sum((self.active, self.tap is not None, self.started))

    def _step(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")

    def activate(self) -> None:
        self._step("activate")
        self.active = True

    @property
    def channel_count(self) -> int:
        return self.channels if self.active else 0

    def install_tap(self, callback) -> None:
        self._step("install_tap")
        self.tap = callback

    def start(self) -> None:
        self._step("start")
        self.started = True

    def stop(self) -> None:
        self.calls.append("stop")
        self.started = False

    def remove_tap(self) -> None:
        self.calls.append("remove_tap")
        self.tap = None

    def deactivate(self) -> None:
        self.calls.append("deactivate")
        self.active = False


class FakeRecognizer(AbstractStreamingRecognizer):
    """Recognizer whose events are pushed by the test."""

    def __init__(self, fail_on_start: bool = False):
        super().__init__("en-US")
        self.fail_on_start = fail_on_start
        self.sink = None
        self.start_count = 0
        self.end_audio_count = 0
        self.cancel_count = 0
        self.buffers: List[bytes] = []

    @property
    def running(self) -> bool:
        return self.sink is not None

    def start(self, sink) -> None:
        if self.fail_on_start:
            raise RuntimeError("recognizer unavailable")
        self.start_count += 1
        self.sink = sink

    def append(self, buffer: bytes) -> None:
        self.buffers.append(buffer)

    def end_audio(self) -> None:
        self.end_audio_count += 1

    def cancel(self) -> None:
        self.cancel_count += 1
        self.sink = None

    def emit(self, event) -> None:
        assert self.sink is not None, "recognizer not started"
        self.sink(event)


class FakePermissionProvider(AbstractPermissionProvider):
    """Permission provider whose answer the test delivers explicitly."""

    def __init__(self, status: PermissionStatus = PermissionStatus.GRANTED):
        self._status = status
        self.callbacks = []

    def status(self) -> PermissionStatus:
        return self._status

    def request(self, callback) -> None:
        self.callbacks.append(callback)

    def answer(self, granted: bool) -> None:
        self._status = PermissionStatus.GRANTED if granted else PermissionStatus.DENIED
        for callback in self.callbacks:
            callback(granted)
        self.callbacks.clear()


class FakeInferenceEngine(AbstractInferenceEngine):
    """Engine returning canned scores, optionally picked by text content.

    ``gate``, when set, holds every prediction until the test sets the event.
    """

    def __init__(self, scores: Sequence[float] = JOY_SCORES, error: Optional[Exception] = None):
        super().__init__("fake")
        self.scores = list(scores)
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[np.ndarray] = []
        self.active = 0
        self.max_active = 0
        self.initialized = False
        self.cleaned_up = False

    def initialize(self) -> bool:
        self.initialized = True
        return True

    async def predict(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> Sequence[float]:
        self.calls.append(input_ids)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            return list(self.scores)
        finally:
            self.active -= 1

    def cleanup(self) -> None:
        self.cleaned_up = True


class FakeClassifier:
    """Stands in for EmotionClassifier and records the texts it classified.

    ``failures`` holds exceptions raised by successive calls, one per call,
    before falling back to ``error``/``result``.
    """

    def __init__(self, result=None, error: Optional[Exception] = None):
        from moodscribe.models.emotion import Emotion, EmotionResult
        self.result = result or EmotionResult(label=Emotion.JOY, confidence=0.9)
        self.error = error
        self.failures: List[Exception] = []
        self.gate: Optional[asyncio.Event] = None
        self.texts: List[str] = []
        self.active = 0
        self.max_active = 0

    async def classify_text(self, text: str):
        self.texts.append(text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.failures:
                raise self.failures.pop(0)
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.active -= 1


@pytest.fixture
def audio_source():
    return FakeAudioSource()


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def inference_error():
    return InferenceEngineError("model server down")
