"""Inference engine that calls a model server over HTTP."""

import asyncio
import logging
import time
from typing import List

import aiohttp
import numpy as np

from .base import AbstractInferenceEngine, InferenceEngineError

logger = logging.getLogger(__name__)


class HttpInferenceEngine(AbstractInferenceEngine):
    """Posts token tensors to a model server and reads back the logits.

    Request body::

        {"input_ids": [[...]], "attention_mask": [[...]]}

    Expected response body::

        {"logits": [[...]]}   or   {"logits": [...]}
    """

    def __init__(self, url: str, timeout_seconds: float = 5.0):
        """Initialize HTTP inference engine.

        Args:
            url: Prediction endpoint of the model server
            timeout_seconds: Total timeout for one prediction request
        """
        super().__init__("http")
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        logger.info(f"HttpInferenceEngine initialized with url: {url}")

    def initialize(self) -> bool:
        if not self.url.startswith(("http://", "https://")):
            logger.error(f"Invalid inference URL: {self.url}")
            return False
        return True

    async def predict(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> List[float]:
        data = {
            "input_ids": [input_ids.astype(int).tolist()],
            "attention_mask": [attention_mask.astype(int).tolist()],
        }
        start_time = time.time()

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.url, json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise InferenceEngineError(
                            f"Model server error: {response.status} - {error_text}")
                    try:
                        result = await response.json()
                    except ValueError as e:
                        raise InferenceEngineError(f"Model server returned invalid JSON: {e}") from e
        except aiohttp.ClientError as e:
            raise InferenceEngineError(f"Model server request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise InferenceEngineError(f"Model server request timed out after {self.timeout.total}s") from e

        logits = result.get("logits") if isinstance(result, dict) else None
        if logits is None:
            raise InferenceEngineError(f"Model server response has no 'logits': {result}")

        try:
            scores = np.asarray(logits, dtype=np.float64).ravel().tolist()
        except (TypeError, ValueError) as e:
            raise InferenceEngineError(f"Model server returned non-numeric logits: {e}") from e

        logger.debug(f"Prediction took {time.time() - start_time:.3f}s")
        return scores

    def cleanup(self) -> None:
        pass
