"""Abstract base class for ML inference engines."""

from abc import ABC, abstractmethod
from typing import Sequence
import logging

import numpy as np

logger = logging.getLogger(__name__)


class InferenceEngineError(RuntimeError):
    """The engine failed to load, transport or run a prediction."""


class AbstractInferenceEngine(ABC):
    """Runs the emotion model on a pair of fixed-length integer tensors.

    Engines are injected into the classifier; nothing holds a process-wide
    model handle.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def initialize(self) -> bool:
        """Load the model or verify connectivity.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def predict(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> Sequence[float]:
        """Return one raw score per model label.

        Raises:
            InferenceEngineError: On load, transport or runtime failure
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Release engine resources."""
        pass
