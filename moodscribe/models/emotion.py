"""Emotion classification data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Tuple

import numpy as np


class Emotion(Enum):
    """Closed label set produced by the classifier."""
    SADNESS = "sadness"
    JOY = "joy"
    LOVE = "love"
    ANGER = "anger"
    FEAR = "fear"
    SURPRISE = "surprise"
    NEUTRAL = "neutral"


# Order of the model's output vector. NEUTRAL is not a model output.
MODEL_LABELS: Tuple[Emotion, ...] = (
    Emotion.SADNESS,
    Emotion.JOY,
    Emotion.LOVE,
    Emotion.ANGER,
    Emotion.FEAR,
    Emotion.SURPRISE,
)


@dataclass(frozen=True)
class EmotionResult:
    """A resolved emotion label plus the probability that produced it.

    NEUTRAL is both a genuine prediction and the low-confidence fallback.
    Compare ``confidence`` against the scorer threshold to tell them apart.
    """
    label: Emotion
    confidence: float

    @classmethod
    def neutral(cls, confidence: float = 0.0) -> "EmotionResult":
        return cls(label=Emotion.NEUTRAL, confidence=confidence)


@dataclass(frozen=True)
class TokenEncoding:
    """Fixed-length model input: token ids and the matching attention mask."""
    input_ids: np.ndarray
    attention_mask: np.ndarray
    pad_id: int = 0

    def __post_init__(self):
        if self.input_ids.shape != self.attention_mask.shape:
            raise ValueError(
                f"input_ids shape {self.input_ids.shape} does not match "
                f"attention_mask shape {self.attention_mask.shape}")

    @property
    def max_length(self) -> int:
        return int(self.input_ids.shape[0])

    @property
    def token_count(self) -> int:
        """Number of non-pad positions."""
        return int(self.attention_mask.sum())


@dataclass(frozen=True)
class ChatEntry:
    """One finalized utterance in the chat history. Never mutated."""
    text: str
    timestamp: datetime
    emotion: EmotionResult
    entry_id: int = field(default=0, compare=False)
