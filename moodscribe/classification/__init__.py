"""Emotion classification: tokenizer, scorer, classifier pipeline and scheduler."""

from .tokenizer import AbstractTokenizer, PlaceholderTokenizer, PAD_ID, UNK_ID
from .scorer import TemperatureScorer, InvalidInputError
from .classifier import EmotionClassifier
from .scheduler import InferenceScheduler, PendingInferenceJob

__all__ = [
    "AbstractTokenizer",
    "PlaceholderTokenizer",
    "PAD_ID",
    "UNK_ID",
    "TemperatureScorer",
    "InvalidInputError",
    "EmotionClassifier",
    "InferenceScheduler",
    "PendingInferenceJob",
]
