"""Debounced, single-flight scheduling of emotion classification.

Every transcript change supersedes the previous one. A job only runs once its
text has been stable for the debounce delay, at most one job runs against the
inference engine at a time, and a result is published only if no newer text
arrived while it was running. Supersession is a plain sequence-number
comparison; executing engine calls are never interrupted.

All methods must be called on the owning event loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from pubsub import pub

from ..inference.base import InferenceEngineError
from ..models.emotion import EmotionResult
from .classifier import EmotionClassifier
from .scorer import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass
class PendingInferenceJob:
    """A classification request for one text snapshot."""
    sequence: int
    text: str
    cancelled: bool = False
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if self.timer is not None:
            self.timer.cancel()


class InferenceScheduler:
    """Debounces transcript changes and publishes the current classification."""

    def __init__(self,
                 classifier: EmotionClassifier,
                 loop: asyncio.AbstractEventLoop,
                 debounce_seconds: float = 0.5,
                 result_topic: str = "emotion_classified",
                 error_topic: str = "emotion_failed"):
        """Initialize scheduler.

        Args:
            classifier: Pipeline used to classify a text snapshot
            loop: Owning event loop; all state is touched only from it
            debounce_seconds: Quiet period required before a job runs
            result_topic: Pub/sub topic for published EmotionResults
            error_topic: Pub/sub topic for InvalidInputError failures
        """
        if debounce_seconds < 0:
            raise ValueError(f"debounce_seconds must not be negative, got {debounce_seconds}")
        self.classifier = classifier
        self.loop = loop
        self.debounce_seconds = debounce_seconds
        self.result_topic = result_topic
        self.error_topic = error_topic

        self._sequence = 0
        self._pending: Dict[int, PendingInferenceJob] = {}
        self._ready: Optional[PendingInferenceJob] = None
        self._in_flight: Optional[PendingInferenceJob] = None
        self._in_flight_task: Optional[asyncio.Task] = None
        self._closed = False

        # Observable state
        self.current: EmotionResult = EmotionResult.neutral()
        self.last_error: Optional[Exception] = None
        self.executed_count = 0

    @property
    def latest_sequence(self) -> int:
        return self._sequence

    @property
    def is_busy(self) -> bool:
        """True while a job is executing against the inference engine."""
        return self._in_flight is not None

    def on_text_changed(self, text: str) -> Optional[EmotionResult]:
        """Handle a transcript change.

        Returns:
            The neutral result when ``text`` is blank (resolved synchronously),
            otherwise None; the classification is published once the job runs.
        """
        if self._closed:
            logger.debug("Scheduler closed, ignoring text change")
            return None

        self._sequence += 1
        self._cancel_not_started()

        if not text.strip():
            result = EmotionResult.neutral()
            self._publish(result)
            return result

        job = PendingInferenceJob(sequence=self._sequence, text=text)
        job.timer = self.loop.call_later(self.debounce_seconds, self._on_debounce_elapsed, job)
        self._pending[job.sequence] = job
        logger.debug(f"Scheduled job #{job.sequence} in {self.debounce_seconds}s")
        return None

    def close(self) -> None:
        """Cancel every job that has not started and refuse new ones."""
        self._closed = True
        self._sequence += 1
        self._cancel_not_started()

    async def wait_idle(self) -> None:
        """Wait until no job is executing."""
        while self._in_flight_task is not None:
            await asyncio.shield(self._in_flight_task)

    def _cancel_not_started(self) -> None:
        for job in self._pending.values():
            job.cancel()
        if self._pending:
            logger.debug(f"Cancelled {len(self._pending)} pending jobs")
        self._pending.clear()
        if self._ready is not None:
            self._ready.cancel()
            self._ready = None

    def _is_superseded(self, job: PendingInferenceJob) -> bool:
        return job.cancelled or job.sequence != self._sequence

    def _on_debounce_elapsed(self, job: PendingInferenceJob) -> None:
        self._pending.pop(job.sequence, None)
        if self._is_superseded(job):
            return
        if self._in_flight is not None:
            # Single-flight: start once the executing job finishes.
            logger.debug(f"Job #{job.sequence} waiting for job #{self._in_flight.sequence}")
            self._ready = job
            return
        self._launch(job)

    def _launch(self, job: PendingInferenceJob) -> None:
        self._in_flight = job
        self.executed_count += 1
        self._in_flight_task = self.loop.create_task(self._execute(job))

    async def _execute(self, job: PendingInferenceJob) -> None:
        result: Optional[EmotionResult] = None
        error: Optional[InvalidInputError] = None
        try:
            result = await self.classifier.classify_text(job.text)
        except InferenceEngineError as e:
            logger.warning(f"Inference failed for job #{job.sequence}, using neutral: {e}")
            result = EmotionResult.neutral()
        except InvalidInputError as e:
            error = e
        except Exception as e:
            logger.exception(f"Unexpected failure in job #{job.sequence}, using neutral: {e}")
            result = EmotionResult.neutral()
        finally:
            self._in_flight = None
            self._in_flight_task = None

        if self._is_superseded(job):
            logger.debug(f"Discarding result of superseded job #{job.sequence}")
        elif error is not None:
            logger.error(f"Model output rejected for job #{job.sequence}: {error}")
            self.last_error = error
            pub.sendMessage(self.error_topic, error=error)
        else:
            self._publish(result)

        ready, self._ready = self._ready, None
        if ready is not None and not self._is_superseded(ready):
            self._launch(ready)

    def _publish(self, result: EmotionResult) -> None:
        self.current = result
        pub.sendMessage(self.result_topic, result=result)
