"""Emotion classifier pipeline: tokenizer -> inference engine -> scorer."""

import logging

from ..inference.base import AbstractInferenceEngine
from ..models.emotion import EmotionResult
from .scorer import TemperatureScorer
from .tokenizer import AbstractTokenizer

logger = logging.getLogger(__name__)


class EmotionClassifier:
    """Classifies one text snapshot with an injected inference engine."""

    def __init__(self,
                 tokenizer: AbstractTokenizer,
                 engine: AbstractInferenceEngine,
                 scorer: TemperatureScorer):
        self.tokenizer = tokenizer
        self.engine = engine
        self.scorer = scorer

    async def classify_text(self, text: str) -> EmotionResult:
        """Classify ``text``.

        Raises:
            InferenceEngineError: If the engine call fails
            InvalidInputError: If the engine output does not fit the scorer's labels
        """
        encoding = self.tokenizer.encode(text)
        raw_scores = await self.engine.predict(encoding.input_ids, encoding.attention_mask)
        result = self.scorer.classify(raw_scores)
        logger.debug(f"Classified '{text[:50]}' as {result.label.value} ({result.confidence:.2f})")
        return result
