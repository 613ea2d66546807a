"""Unit tests for temperature-scaled scoring."""

import math

import pytest
import numpy as np

from moodscribe.classification.scorer import InvalidInputError, TemperatureScorer
from moodscribe.models.emotion import Emotion, EmotionResult


@pytest.mark.unit
class TestTemperatureScorer:
    """Test cases for TemperatureScorer."""

    def test_confident_prediction(self):
        scorer = TemperatureScorer()

        result = scorer.classify([0.1, 5.0, 0.1, 0.1, 0.1, 0.1])

        # exp(2.5) / (exp(2.5) + 5 * exp(0.05)) at temperature 2
        expected = math.exp(2.5) / (math.exp(2.5) + 5 * math.exp(0.05))
        assert result.label is Emotion.JOY
        assert result.confidence == pytest.approx(expected)
        assert result.confidence > 0.6

    def test_low_margin_falls_back_to_neutral(self):
        scorer = TemperatureScorer()

        result = scorer.classify([0.1, 4.0, 0.1, 0.1, 0.1, 0.1])

        # Joy wins with p ~= 0.584, which is below the 0.6 threshold.
        assert result.label is Emotion.NEUTRAL
        assert result.confidence == pytest.approx(0.584, abs=1e-3)

    def test_uniform_scores_are_neutral(self):
        scorer = TemperatureScorer()

        result = scorer.classify([1.0] * 6)

        assert result.label is Emotion.NEUTRAL
        assert result.confidence == pytest.approx(1 / 6)

    def test_ties_go_to_lowest_index(self):
        scorer = TemperatureScorer(confidence_threshold=0.0)

        result = scorer.classify([0.0, 3.0, 0.0, 3.0, 0.0, 0.0])

        assert result.label is Emotion.JOY

    def test_threshold_is_inclusive(self):
        scorer = TemperatureScorer(temperature=1.0, confidence_threshold=0.5)
        scorer.labels = (Emotion.SADNESS, Emotion.JOY)

        result = scorer.classify([0.0, 0.0])

        assert result == EmotionResult(label=Emotion.SADNESS, confidence=0.5)

    def test_probabilities_sum_to_one(self):
        scorer = TemperatureScorer()

        probabilities = scorer.probabilities([3.2, -1.0, 0.5, 7.0, 2.2, 0.0])

        assert probabilities.sum() == pytest.approx(1.0)
        assert np.all(probabilities > 0)

    def test_higher_temperature_flattens_distribution(self):
        scores = [0.1, 5.0, 0.1, 0.1, 0.1, 0.1]

        sharp = TemperatureScorer(temperature=1.0).probabilities(scores)
        flat = TemperatureScorer(temperature=4.0).probabilities(scores)

        assert sharp.max() > flat.max()

    def test_accepts_batch_of_one(self):
        scorer = TemperatureScorer()

        result = scorer.classify(np.array([[0.1, 0.1, 0.1, 5.0, 0.1, 0.1]]))

        assert result.label is Emotion.ANGER

    def test_wrong_length_raises(self):
        scorer = TemperatureScorer()

        with pytest.raises(InvalidInputError):
            scorer.classify([0.1, 5.0, 0.1])
        with pytest.raises(InvalidInputError):
            scorer.classify([0.1] * 7)

    def test_non_finite_scores_raise(self):
        scorer = TemperatureScorer()

        with pytest.raises(InvalidInputError):
            scorer.classify([0.1, float("nan"), 0.1, 0.1, 0.1, 0.1])
        with pytest.raises(InvalidInputError):
            scorer.classify([0.1, float("inf"), 0.1, 0.1, 0.1, 0.1])

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            TemperatureScorer(temperature=0)
        with pytest.raises(ValueError):
            TemperatureScorer(confidence_threshold=1.5)
        with pytest.raises(ValueError):
            TemperatureScorer(labels=[])
