"""Temperature-scaled scoring of raw model output."""

import logging
from typing import Sequence, Tuple

import numpy as np
from scipy.special import softmax

from ..models.emotion import Emotion, EmotionResult, MODEL_LABELS

logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    """Raw scores do not match the configured label set (model/config mismatch)."""


class TemperatureScorer:
    """Turns raw logits into an ``EmotionResult`` with a neutral fallback."""

    def __init__(self,
                 labels: Sequence[Emotion] = MODEL_LABELS,
                 temperature: float = 2.0,
                 confidence_threshold: float = 0.6):
        """Initialize scorer.

        Args:
            labels: Labels in the order of the model's output vector
            temperature: Divisor applied to every raw score before softmax
            confidence_threshold: Winning probabilities below this resolve to neutral
        """
        if temperature <= 0:
            raise ValueError(f"temperature must be positive, got {temperature}")
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold must be within [0, 1], got {confidence_threshold}")
        if not labels:
            raise ValueError("labels must not be empty")
        self.labels: Tuple[Emotion, ...] = tuple(labels)
        self.temperature = temperature
        self.confidence_threshold = confidence_threshold

    def probabilities(self, raw_scores: Sequence[float]) -> np.ndarray:
        """Temperature-scaled softmax over the raw scores."""
        scores = np.asarray(raw_scores, dtype=np.float64)
        # Accept a batch-of-one output such as shape (1, 6).
        if scores.ndim == 2 and scores.shape[0] == 1:
            scores = scores[0]
        if scores.ndim != 1 or scores.shape[0] != len(self.labels):
            raise InvalidInputError(
                f"Expected {len(self.labels)} raw scores, got shape {scores.shape}")
        if not np.all(np.isfinite(scores)):
            raise InvalidInputError(f"Raw scores contain non-finite values: {scores.tolist()}")
        return softmax(scores / self.temperature)

    def classify(self, raw_scores: Sequence[float]) -> EmotionResult:
        """Classify raw scores.

        Raises:
            InvalidInputError: If the score vector does not fit the label set
        """
        probabilities = self.probabilities(raw_scores)
        # np.argmax returns the first occurrence, so ties go to the lower index.
        best_index = int(np.argmax(probabilities))
        confidence = float(probabilities[best_index])

        if confidence < self.confidence_threshold:
            logger.debug(f"Best label {self.labels[best_index].value} below threshold "
                         f"({confidence:.3f} < {self.confidence_threshold}), using neutral")
            return EmotionResult.neutral(confidence)

        return EmotionResult(label=self.labels[best_index], confidence=confidence)
