"""Unit tests for score aggregation, agreement and uncertainty."""

import pytest

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.models import QualityAssessment, ValidatorResult
from suggestion_ensemble.services import ScoreAggregator


def _results(scores, confidences=None, recommendations=None):
    confidences = confidences or [0.8] * len(scores)
    recommendations = recommendations or [[] for _ in scores]
    return {
        validator_id: ValidatorResult(
            validator_id=validator_id, score=score, confidence=confidence, recommendations=recs
        )
        for validator_id, score, confidence, recs in zip(
            "abcdefgh", scores, confidences, recommendations
        )
    }


@pytest.fixture
def aggregator():
    return ScoreAggregator(EngineSettings())


def test_four_validator_example(aggregator):
    results = _results([0.9, 0.8, 0.5, 0.6], confidences=[0.9, 0.8, 0.6, 0.5])
    weights = {validator_id: 0.25 for validator_id in results}

    aggregate = aggregator.aggregate(results, weights)

    assert aggregate.ensemble_score == pytest.approx(0.70)
    assert aggregate.weighted_confidence == pytest.approx(0.70)
    assert aggregate.uncertainty == pytest.approx(0.1581, abs=1e-4)
    assert aggregate.agreement == pytest.approx(0.6838, abs=1e-4)
    assert aggregate.confidence == pytest.approx(0.6336, abs=1e-4)
    low, high = aggregate.confidence_interval
    assert low == pytest.approx(0.70 - 1.96 * 0.158114, abs=1e-4)
    assert high == 1.0


def test_identical_scores_give_full_agreement(aggregator):
    results = _results([0.6, 0.6, 0.6])
    weights = {"a": 0.5, "b": 0.3, "c": 0.2}

    aggregate = aggregator.aggregate(results, weights)

    assert aggregate.agreement == 1.0
    assert aggregate.uncertainty == 0.0
    assert aggregate.confidence_interval == pytest.approx((0.6, 0.6))
    assert aggregate.confidence == pytest.approx(0.8)


def test_maximal_disagreement(aggregator):
    results = _results([0.0, 1.0], confidences=[0.9, 0.9])

    aggregate = aggregator.aggregate(results, {"a": 0.5, "b": 0.5})

    assert aggregate.agreement == 0.0
    assert aggregate.confidence == pytest.approx(0.9 * 0.7)
    assert aggregate.confidence_interval == (0.0, 1.0)
    assert any("disagree" in s for s in aggregate.improvement_suggestions)


def test_confidence_never_drops_below_minimum(aggregator):
    results = _results([0.0, 1.0], confidences=[0.05, 0.05])

    aggregate = aggregator.aggregate(results, {"a": 0.5, "b": 0.5})

    assert aggregate.confidence == 0.1


def test_single_validator_has_no_spread(aggregator):
    aggregate = aggregator.aggregate(_results([0.3]), {"a": 1.0})

    assert aggregate.ensemble_score == pytest.approx(0.3)
    assert aggregate.agreement == 1.0
    assert aggregate.quality_assessment is QualityAssessment.POOR


def test_empty_results_are_neutral(aggregator):
    aggregate = aggregator.aggregate({}, {})

    assert aggregate.ensemble_score == 0.5
    assert aggregate.confidence == 0.1
    assert aggregate.confidence_interval == (0.5, 0.5)
    assert aggregate.improvement_suggestions


def test_order_of_results_does_not_matter(aggregator):
    results = _results([0.9, 0.2, 0.55], confidences=[0.4, 0.9, 0.7])
    weights = {"a": 0.2, "b": 0.5, "c": 0.3}
    reversed_results = dict(reversed(list(results.items())))

    forward = aggregator.aggregate(results, weights)
    backward = aggregator.aggregate(reversed_results, weights)

    assert forward.ensemble_score == pytest.approx(backward.ensemble_score)
    assert forward.confidence == pytest.approx(backward.confidence)
    assert forward.confidence_interval == pytest.approx(backward.confidence_interval)


def test_recommendations_ranked_by_weight_deduplicated_and_capped(aggregator):
    results = _results(
        [0.7, 0.7, 0.7],
        recommendations=[["y", "z"], ["x", "y"], ["w", "v", "u", "t"]],
    )
    weights = {"a": 0.3, "b": 0.5, "c": 0.2}

    aggregate = aggregator.aggregate(results, weights)

    assert aggregate.recommendations == ["x", "y", "z", "w", "v"]


def test_recommendations_per_validator_limit():
    aggregator = ScoreAggregator(EngineSettings(recommendations_per_validator=1))
    results = _results([0.7, 0.7], recommendations=[["a1", "a2"], ["b1", "b2"]])

    aggregate = aggregator.aggregate(results, {"a": 0.6, "b": 0.4})

    assert aggregate.recommendations == ["a1", "b1"]


def test_explanations_and_contributions(aggregator):
    results = _results([0.8, 0.4], confidences=[0.8, 0.5])
    results["b"] = results["b"].model_copy(update={"error": "RuntimeError: boom"})

    aggregate = aggregator.aggregate(results, {"a": 0.75, "b": 0.25})

    assert aggregate.explanations["a"] == (
        "a contributed 75.0% to the final score with confidence 80.0%"
    )
    assert aggregate.explanations["b"].endswith("(fallback result: RuntimeError: boom)")
    assert aggregate.contributions == pytest.approx({"a": 0.6, "b": 0.1})
    assert any("unavailable validators: b" in s for s in aggregate.improvement_suggestions)


def test_low_scores_suggest_revision_without_touching_recommendations(aggregator):
    results = _results([0.3, 0.4], recommendations=[["shorten it"], []])

    aggregate = aggregator.aggregate(results, {"a": 0.5, "b": 0.5})

    assert aggregate.recommendations == ["shorten it"]
    assert aggregate.improvement_suggestions[0].startswith("Consider revising")


def test_feature_importance_is_weighted(aggregator):
    results = _results([0.5, 0.5])
    results["a"] = results["a"].model_copy(update={"feature_importance": {"latency": 1.0}})
    results["b"] = results["b"].model_copy(
        update={"feature_importance": {"latency": 0.5, "memory": 1.0}}
    )

    aggregate = aggregator.aggregate(results, {"a": 0.6, "b": 0.4})

    assert aggregate.feature_importance == pytest.approx({"latency": 0.8, "memory": 0.4})
