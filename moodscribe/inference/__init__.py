"""Inference engines that run the emotion model."""

from .base import AbstractInferenceEngine, InferenceEngineError
from .http_engine import HttpInferenceEngine
from .local_engine import CallableInferenceEngine

__all__ = [
    "AbstractInferenceEngine",
    "InferenceEngineError",
    "HttpInferenceEngine",
    "CallableInferenceEngine",
]
