"""Inference engine wrapping an in-process, blocking predict function."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

import numpy as np

from .base import AbstractInferenceEngine, InferenceEngineError

logger = logging.getLogger(__name__)

PredictFn = Callable[[np.ndarray, np.ndarray], Sequence[float]]


class CallableInferenceEngine(AbstractInferenceEngine):
    """Runs a blocking model function on a dedicated worker thread.

    The event loop is never blocked by model-speed work. A single worker
    serializes calls into the wrapped model.
    """

    def __init__(self, predict_fn: PredictFn, name: str = "local"):
        super().__init__(name)
        self.predict_fn = predict_fn
        self.executor: Optional[ThreadPoolExecutor] = None

    def initialize(self) -> bool:
        if self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"inference_{self.name}")
        return True

    async def predict(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> Sequence[float]:
        if self.executor is None:
            raise InferenceEngineError(f"Inference engine '{self.name}' not initialized")

        loop = asyncio.get_running_loop()
        try:
            scores = await loop.run_in_executor(self.executor, self._run, input_ids, attention_mask)
        except InferenceEngineError:
            raise
        except Exception as e:
            raise InferenceEngineError(f"Inference engine '{self.name}' failed: {e}") from e
        return scores

    def _run(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> Sequence[float]:
        # Models expect a leading batch dimension of one.
        scores = self.predict_fn(input_ids[np.newaxis, :], attention_mask[np.newaxis, :])
        return np.asarray(scores, dtype=np.float64).ravel().tolist()

    def cleanup(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None
            logger.debug(f"Inference engine '{self.name}' executor shut down")
