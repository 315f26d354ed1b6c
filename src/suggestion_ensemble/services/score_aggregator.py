"""Aggregation of weighted validator results into one calibrated score."""

from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.models.ensemble import QualityAssessment, ValidatorResult

NEUTRAL_SCORE = 0.5
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
AGREEMENT_SPREAD = 0.5  # score std at which agreement reaches zero
Z_95 = 1.96
REVISION_THRESHOLD = 0.7
LOW_AGREEMENT_THRESHOLD = 0.5


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class AggregateScore:
    """Everything the aggregator derives from one set of results and weights."""

    ensemble_score: float = NEUTRAL_SCORE
    weighted_confidence: float = MIN_CONFIDENCE
    agreement: float = 1.0
    confidence: float = MIN_CONFIDENCE
    uncertainty: float = 0.0
    confidence_interval: tuple[float, float] = (NEUTRAL_SCORE, NEUTRAL_SCORE)
    recommendations: list[str] = field(default_factory=list)
    explanations: dict[str, str] = field(default_factory=dict)
    feature_importance: dict[str, float] = field(default_factory=dict)
    contributions: dict[str, float] = field(default_factory=dict)
    quality_assessment: QualityAssessment = QualityAssessment.FAIR
    improvement_suggestions: list[str] = field(default_factory=list)


class ScoreAggregator:
    """Combines validator results and normalized weights.

    The aggregator is pure: no I/O, no shared state, and the same inputs always
    yield the same output. Aggregation is commutative over the set of
    ``(weight, score)`` pairs, so validator completion order never matters.
    """

    def __init__(self, settings: EngineSettings):
        """Initialize the score aggregator.

        Args:
            settings: Engine settings (recommendation limits)
        """
        self.recommendation_limit = settings.recommendation_limit
        self.recommendations_per_validator = settings.recommendations_per_validator

    def aggregate(
        self,
        results: Mapping[str, ValidatorResult],
        weights: Mapping[str, float],
    ) -> AggregateScore:
        """Aggregate results into score, confidence, agreement and uncertainty.

        Args:
            results: Validator results keyed by validator id
            weights: Normalized weights keyed by validator id

        Returns:
            Aggregate score; the neutral degenerate aggregate when ``results`` is empty
        """
        if not results:
            return AggregateScore(
                improvement_suggestions=["No validator results were available for scoring"]
            )

        ensemble_score = self.weighted_score(results, weights)
        weighted_confidence = self.weighted_confidence(results, weights)
        uncertainty = self.score_spread(results)
        agreement = self.agreement(results)
        confidence = _clamp(
            weighted_confidence * (0.7 + 0.3 * agreement), MIN_CONFIDENCE, MAX_CONFIDENCE
        )

        margin = Z_95 * uncertainty
        interval = (
            _clamp(ensemble_score - margin, 0.0, 1.0),
            _clamp(ensemble_score + margin, 0.0, 1.0),
        )

        return AggregateScore(
            ensemble_score=ensemble_score,
            weighted_confidence=weighted_confidence,
            agreement=agreement,
            confidence=confidence,
            uncertainty=uncertainty,
            confidence_interval=interval,
            recommendations=self.merge_recommendations(results, weights),
            explanations=self.explain(results, weights),
            feature_importance=self.feature_importance(results, weights),
            contributions={
                validator_id: weights.get(validator_id, 0.0) * result.score
                for validator_id, result in results.items()
            },
            quality_assessment=QualityAssessment.from_score(ensemble_score),
            improvement_suggestions=self.improvement_suggestions(
                results, ensemble_score, agreement
            ),
        )

    @staticmethod
    def weighted_score(
        results: Mapping[str, ValidatorResult], weights: Mapping[str, float]
    ) -> float:
        weighted_sum = 0.0
        total_weight = 0.0
        for validator_id, result in results.items():
            if validator_id in weights:
                weight = weights[validator_id]
                weighted_sum += weight * result.score
                total_weight += weight
        if total_weight <= 0:
            return NEUTRAL_SCORE
        return _clamp(weighted_sum / total_weight, 0.0, 1.0)

    @staticmethod
    def weighted_confidence(
        results: Mapping[str, ValidatorResult], weights: Mapping[str, float]
    ) -> float:
        weighted_sum = 0.0
        total_weight = 0.0
        for validator_id, result in results.items():
            if validator_id in weights:
                weight = weights[validator_id]
                weighted_sum += weight * result.confidence
                total_weight += weight
        if total_weight <= 0:
            return NEUTRAL_SCORE
        return _clamp(weighted_sum / total_weight, 0.0, 1.0)

    @staticmethod
    def score_spread(results: Mapping[str, ValidatorResult]) -> float:
        """Population standard deviation of the participating scores."""
        scores = [result.score for result in results.values()]
        if len(scores) < 2:
            return 0.0
        return float(np.std(scores))

    @classmethod
    def agreement(cls, results: Mapping[str, ValidatorResult]) -> float:
        """1.0 when every validator reports the same score, 0.0 once std reaches 0.5."""
        return max(0.0, 1.0 - cls.score_spread(results) / AGREEMENT_SPREAD)

    def merge_recommendations(
        self,
        results: Mapping[str, ValidatorResult],
        weights: Mapping[str, float],
    ) -> list[str]:
        """Deduplicated recommendations ordered by descending validator weight."""
        # sorted() is stable, so equal weights keep registration order
        ordered = sorted(results, key=lambda v: weights.get(v, 0.0), reverse=True)

        merged: list[str] = []
        seen: set[str] = set()
        for validator_id in ordered:
            recommendations = results[validator_id].recommendations
            if self.recommendations_per_validator is not None:
                recommendations = recommendations[: self.recommendations_per_validator]
            for recommendation in recommendations:
                if recommendation not in seen:
                    seen.add(recommendation)
                    merged.append(recommendation)
        return merged[: self.recommendation_limit]

    @staticmethod
    def explain(
        results: Mapping[str, ValidatorResult], weights: Mapping[str, float]
    ) -> dict[str, str]:
        explanations = {}
        for validator_id, result in results.items():
            weight = weights.get(validator_id, 0.0)
            text = (
                f"{validator_id} contributed {weight:.1%} to the final score "
                f"with confidence {result.confidence:.1%}"
            )
            if result.failed:
                text += f" (fallback result: {result.error})"
            explanations[validator_id] = text
        return explanations

    @staticmethod
    def feature_importance(
        results: Mapping[str, ValidatorResult], weights: Mapping[str, float]
    ) -> dict[str, float]:
        importance: dict[str, float] = {}
        for validator_id, result in results.items():
            if not result.feature_importance:
                continue
            weight = weights.get(validator_id, 0.0)
            for feature, value in result.feature_importance.items():
                importance[feature] = importance.get(feature, 0.0) + value * weight
        return importance

    @staticmethod
    def improvement_suggestions(
        results: Mapping[str, ValidatorResult], ensemble_score: float, agreement: float
    ) -> list[str]:
        suggestions = []
        if ensemble_score < REVISION_THRESHOLD:
            suggestions.append(
                "Consider revising the suggestion to improve overall quality score"
            )
        if agreement < LOW_AGREEMENT_THRESHOLD:
            suggestions.append(
                "Validators disagree substantially; review the suggestion manually"
            )
        failed = [validator_id for validator_id, result in results.items() if result.failed]
        if failed:
            suggestions.append(
                f"Fallback scores were used for unavailable validators: {', '.join(failed)}"
            )
        return suggestions
