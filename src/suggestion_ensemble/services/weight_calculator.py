"""Per-call dynamic weighting of validator results."""

from collections.abc import Mapping
from dataclasses import dataclass

from suggestion_ensemble.core.config import DynamicWeightSettings, EngineSettings
from suggestion_ensemble.models.ensemble import (
    EnsembleConfiguration,
    PerformanceMetrics,
    ValidationContext,
    ValidatorResult,
    ValidatorRole,
)


@dataclass(frozen=True)
class WeightFactors:
    """Breakdown of how one validator's weight was derived."""

    base_weight: float
    confidence_factor: float = 1.0
    complexity_factor: float = 1.0
    performance_factor: float = 1.0
    bounded_weight: float = 0.0
    normalized_weight: float = 0.0

    @property
    def adjusted_weight(self) -> float:
        return (
            self.base_weight
            * self.confidence_factor
            * self.complexity_factor
            * self.performance_factor
        )


def normalize_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Scale weights to sum to 1.0.

    A zero total over a non-empty set falls back to a uniform distribution so the
    applied weights always sum to 1.0.
    """
    if not weights:
        return {}
    total = sum(weights.values())
    if total <= 0:
        uniform = 1.0 / len(weights)
        return {key: uniform for key in weights}
    return {key: value / total for key, value in weights.items()}


class WeightCalculator:
    """Turns base weights plus live signals into a normalized weight vector.

    Factors applied per validator, multiplicatively:

    * confidence: ``clamp(confidence * 1.2, 0.5, 1.5)``
    * complexity: specialists favoured on complex systems, the generalist on simple ones
    * performance: smoothed historical score above 0.8 boosts, below 0.6 dampens

    When bounds enforcement is on, the adjusted weight is clamped to the
    configured ``weight_bounds`` before normalization.
    """

    def __init__(self, settings: EngineSettings):
        self.settings = settings

    @property
    def weighting(self) -> DynamicWeightSettings:
        return self.settings.weighting

    def calculate(
        self,
        results: Mapping[str, ValidatorResult],
        configuration: EnsembleConfiguration,
        metrics: PerformanceMetrics | None,
        context: ValidationContext,
    ) -> dict[str, float]:
        """Calculate normalized weights for the validators present in ``results``."""
        factors = self.explain(results, configuration, metrics, context)
        return {validator_id: f.normalized_weight for validator_id, f in factors.items()}

    def explain(
        self,
        results: Mapping[str, ValidatorResult],
        configuration: EnsembleConfiguration,
        metrics: PerformanceMetrics | None,
        context: ValidationContext,
    ) -> dict[str, WeightFactors]:
        """Calculate weights and return the per-validator factor breakdown."""
        dynamic = configuration.enable_dynamic_weighting
        performance = metrics.validator_performance if metrics else {}

        partial: dict[str, WeightFactors] = {}
        for validator_id, result in results.items():
            base = configuration.base_weights.get(validator_id, 0.0)
            if dynamic:
                factors = WeightFactors(
                    base_weight=base,
                    confidence_factor=self.confidence_factor(result.confidence),
                    complexity_factor=self.complexity_factor(
                        result.role, context.complexity_score
                    ),
                    performance_factor=self.performance_factor(performance.get(validator_id)),
                )
            else:
                factors = WeightFactors(base_weight=base)
            partial[validator_id] = factors

        bounded = {
            validator_id: self._apply_bounds(validator_id, f.adjusted_weight, configuration)
            for validator_id, f in partial.items()
        }
        normalized = normalize_weights(bounded)

        return {
            validator_id: WeightFactors(
                base_weight=f.base_weight,
                confidence_factor=f.confidence_factor,
                complexity_factor=f.complexity_factor,
                performance_factor=f.performance_factor,
                bounded_weight=bounded[validator_id],
                normalized_weight=normalized[validator_id],
            )
            for validator_id, f in partial.items()
        }

    def confidence_factor(self, confidence: float) -> float:
        w = self.weighting
        return max(
            w.confidence_factor_min,
            min(w.confidence_factor_max, confidence * w.confidence_multiplier),
        )

    def complexity_factor(self, role: ValidatorRole, complexity: float) -> float:
        w = self.weighting
        if role is ValidatorRole.NEUTRAL:
            return 1.0
        if complexity > w.high_complexity_threshold:
            if role is ValidatorRole.SPECIALIST:
                return w.high_complexity_specialist_factor
            return w.high_complexity_generalist_factor
        if complexity < w.low_complexity_threshold:
            if role is ValidatorRole.SPECIALIST:
                return w.low_complexity_specialist_factor
            return w.low_complexity_generalist_factor
        return 1.0

    def performance_factor(self, performance: float | None) -> float:
        w = self.weighting
        if performance is None:
            return 1.0
        if performance > w.strong_performance_threshold:
            return w.strong_performance_factor
        if performance < w.weak_performance_threshold:
            return w.weak_performance_factor
        return 1.0

    def _apply_bounds(
        self, validator_id: str, weight: float, configuration: EnsembleConfiguration
    ) -> float:
        # Validators without a base weight stay at zero rather than being lifted to a bound
        if not self.settings.enforce_weight_bounds or weight <= 0:
            return weight
        low, high = configuration.bounds_for(validator_id)
        return max(low, min(high, weight))
