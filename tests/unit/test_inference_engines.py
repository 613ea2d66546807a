"""Unit tests for the inference engines."""

import json
import asyncio
from unittest.mock import MagicMock, patch

import pytest
import numpy as np

from moodscribe.classification.classifier import EmotionClassifier
from moodscribe.classification.scorer import InvalidInputError, TemperatureScorer
from moodscribe.classification.tokenizer import PlaceholderTokenizer
from moodscribe.inference.base import InferenceEngineError
from moodscribe.inference.http_engine import HttpInferenceEngine
from moodscribe.inference.local_engine import CallableInferenceEngine
from moodscribe.models.emotion import Emotion


def run(coro):
    return asyncio.run(coro)


@pytest.mark.unit
class TestCallableInferenceEngine:
    """Test cases for CallableInferenceEngine."""

    def test_predict_adds_batch_dimension(self):
        seen = {}

        def model(input_ids, attention_mask):
            seen["shape"] = input_ids.shape
            seen["mask_shape"] = attention_mask.shape
            return np.array([[0.1, 0.2, 0.3, 0.4, 0.5, 0.6]])

        engine = CallableInferenceEngine(model)
        assert engine.initialize()
        try:
            scores = run(engine.predict(np.zeros(8, dtype=np.int32), np.zeros(8, dtype=np.int32)))
        finally:
            engine.cleanup()

        assert seen == {"shape": (1, 8), "mask_shape": (1, 8)}
        assert scores == pytest.approx([0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
        assert engine.executor is None

    def test_model_exception_becomes_engine_error(self):
        def model(input_ids, attention_mask):
            raise RuntimeError("CUDA out of memory")

        engine = CallableInferenceEngine(model)
        engine.initialize()
        try:
            with pytest.raises(InferenceEngineError, match="CUDA out of memory"):
                run(engine.predict(np.zeros(4, dtype=np.int32), np.zeros(4, dtype=np.int32)))
        finally:
            engine.cleanup()

    def test_predict_before_initialize_fails(self):
        engine = CallableInferenceEngine(lambda ids, mask: [0.0] * 6)

        with pytest.raises(InferenceEngineError):
            run(engine.predict(np.zeros(4, dtype=np.int32), np.zeros(4, dtype=np.int32)))


@pytest.mark.unit
class TestHttpInferenceEngine:
    """Test cases for HttpInferenceEngine."""

    def test_initialize_checks_url_scheme(self):
        assert HttpInferenceEngine("http://localhost:8080/predict").initialize()
        assert not HttpInferenceEngine("localhost:8080").initialize()

    def _mock_session(self, status=200, payload=None, text="", json_error=None):
        response = MagicMock()
        response.status = status

        async def json_body():
            if json_error is not None:
                raise json_error
            return payload

        async def text_body():
            return text

        response.json = json_body
        response.text = text_body

        post_context = MagicMock()
        post_context.__aenter__.return_value = response
        post_context.__aexit__.return_value = False

        session = MagicMock()
        session.post.return_value = post_context
        session_context = MagicMock()
        session_context.__aenter__.return_value = session
        session_context.__aexit__.return_value = False
        return session_context, session

    def test_predict_posts_tensors_and_reads_logits(self):
        session_context, session = self._mock_session(payload={"logits": [[1.0, 2.0, 3.0, 4.0, 5.0, 6.0]]})
        engine = HttpInferenceEngine("http://model/predict")

        with patch("moodscribe.inference.http_engine.aiohttp.ClientSession", return_value=session_context):
            scores = run(engine.predict(np.array([5, 6, 0], dtype=np.int32), np.array([1, 1, 0], dtype=np.int32)))

        assert scores == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        _, kwargs = session.post.call_args
        assert kwargs["json"] == {"input_ids": [[5, 6, 0]], "attention_mask": [[1, 1, 0]]}

    def test_server_error_raises(self):
        session_context, _ = self._mock_session(status=500, text="internal error")
        engine = HttpInferenceEngine("http://model/predict")

        with patch("moodscribe.inference.http_engine.aiohttp.ClientSession", return_value=session_context):
            with pytest.raises(InferenceEngineError, match="500"):
                run(engine.predict(np.zeros(3, dtype=np.int32), np.zeros(3, dtype=np.int32)))

    def test_missing_logits_raises(self):
        session_context, _ = self._mock_session(payload={"scores": [1, 2]})
        engine = HttpInferenceEngine("http://model/predict")

        with patch("moodscribe.inference.http_engine.aiohttp.ClientSession", return_value=session_context):
            with pytest.raises(InferenceEngineError, match="logits"):
                run(engine.predict(np.zeros(3, dtype=np.int32), np.zeros(3, dtype=np.int32)))

    def test_non_numeric_logits_raise_engine_error(self):
        session_context, _ = self._mock_session(payload={"logits": ["n/a"]})
        engine = HttpInferenceEngine("http://model/predict")

        with patch("moodscribe.inference.http_engine.aiohttp.ClientSession", return_value=session_context):
            with pytest.raises(InferenceEngineError, match="non-numeric"):
                run(engine.predict(np.zeros(3, dtype=np.int32), np.zeros(3, dtype=np.int32)))

    def test_invalid_json_raises_engine_error(self):
        json_error = json.JSONDecodeError("Expecting value", "<html>", 0)
        session_context, _ = self._mock_session(json_error=json_error)
        engine = HttpInferenceEngine("http://model/predict")

        with patch("moodscribe.inference.http_engine.aiohttp.ClientSession", return_value=session_context):
            with pytest.raises(InferenceEngineError, match="invalid JSON"):
                run(engine.predict(np.zeros(3, dtype=np.int32), np.zeros(3, dtype=np.int32)))


@pytest.mark.unit
class TestEmotionClassifier:
    """Tokenizer -> engine -> scorer pipeline."""

    def test_classify_text(self):
        seen = []

        def model(input_ids, attention_mask):
            seen.append(input_ids.copy())
            return [0.1, 0.1, 0.1, 0.1, 0.1, 5.0]

        engine = CallableInferenceEngine(model)
        engine.initialize()
        classifier = EmotionClassifier(PlaceholderTokenizer(max_length=6), engine, TemperatureScorer())
        try:
            result = run(classifier.classify_text("No way, really"))
        finally:
            engine.cleanup()

        assert result.label is Emotion.SURPRISE
        assert seen[0].tolist() == [[2, 3, 4, 0, 0, 0]]

    def test_mismatched_model_output(self):
        engine = CallableInferenceEngine(lambda ids, mask: [1.0, 2.0])
        engine.initialize()
        classifier = EmotionClassifier(PlaceholderTokenizer(max_length=4), engine, TemperatureScorer())
        try:
            with pytest.raises(InvalidInputError):
                run(classifier.classify_text("hello"))
        finally:
            engine.cleanup()
