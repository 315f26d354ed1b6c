"""Ensemble scoring engine combining many validators into one quality score."""

import asyncio
import time
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

import logfire

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.core.config import settings as default_settings
from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    EnsemblePerformanceReport,
    EnsembleValidationResult,
    PerformanceMetrics,
    TrainingExample,
    ValidationContext,
    ValidatorResult,
    WeightOptimizationReport,
)
from suggestion_ensemble.services.configuration_store import ConfigurationStore
from suggestion_ensemble.services.performance_tracker import PerformanceTracker
from suggestion_ensemble.services.reporting import PerformanceReporter
from suggestion_ensemble.services.score_aggregator import (
    MIN_CONFIDENCE,
    NEUTRAL_SCORE,
    AggregateScore,
    ScoreAggregator,
)
from suggestion_ensemble.services.validator_adapter import ValidatorAdapter
from suggestion_ensemble.services.validator_registry import ValidatorRegistry
from suggestion_ensemble.services.weight_calculator import WeightCalculator
from suggestion_ensemble.services.weight_optimizer import WeightOptimizer


class EnsembleScoringEngine:
    """Scores suggestions by combining every registered validator of a category.

    A scoring call fans out to the validators, weights their results with the
    category's configuration and live performance metrics, and aggregates them
    into an ``EnsembleValidationResult``. Scoring calls run concurrently with
    each other and with weight optimization; the only shared writes are the
    performance update issued after each call and the weight promotion issued
    by the optimizer.
    """

    def __init__(
        self,
        registry: ValidatorRegistry,
        store: ConfigurationStore | None = None,
        settings: EngineSettings | None = None,
        tracker: PerformanceTracker | None = None,
        optimizer: WeightOptimizer | None = None,
    ):
        """Initialize the scoring engine.

        Args:
            registry: Validators per analysis category
            store: Configuration store; loaded from settings when omitted
            settings: Engine settings; the process-wide settings when omitted
            tracker: Performance tracker; a fresh one when omitted
            optimizer: Weight optimizer; one bound to ``store`` when omitted
        """
        self.settings = settings or default_settings
        self.registry = registry
        self.store = store or ConfigurationStore.from_settings(self.settings)
        self.tracker = tracker or PerformanceTracker(self.settings)
        self.optimizer = optimizer or WeightOptimizer(self.store, self.settings)

        self.adapter = ValidatorAdapter(registry, self.settings)
        self.calculator = WeightCalculator(self.settings)
        self.aggregator = ScoreAggregator(self.settings)
        self.reporter = PerformanceReporter(self.tracker, self.store)

        self._pending_updates: set[asyncio.Task[None]] = set()
        self.logger = logfire

    async def score(
        self,
        suggestion_text: str,
        context: ValidationContext | None,
        category: AnalysisCategory,
    ) -> EnsembleValidationResult:
        """Score one suggestion.

        Args:
            suggestion_text: Suggestion to score
            context: Validation context; a neutral context when ``None``
            category: Analysis category selecting validators and weights

        Returns:
            Ensemble result. Validator and internal failures degrade the result
            (``error_message`` set, neutral score) instead of raising.

        Raises:
            ConfigurationMissingError: If the category has no configuration
        """
        configuration = self.store.get(category)
        if context is None:
            context = ValidationContext(analysis_category=category)

        start = time.perf_counter()
        result = EnsembleValidationResult(
            analysis_category=category, suggestion_text=suggestion_text
        )

        with self.logger.span(
            "Ensemble scoring", category=category.value, version=configuration.version
        ):
            try:
                results = await self.adapter.collect(suggestion_text, context, category)
                metrics = (
                    await self.tracker.snapshot(category)
                    if configuration.enable_dynamic_weighting
                    else None
                )
                weights = self.calculator.calculate(results, configuration, metrics, context)
                aggregate = self.aggregator.aggregate(results, weights)
                result = self._apply_aggregate(result, results, weights, aggregate)
            except Exception as e:
                result = EnsembleValidationResult(
                    analysis_category=category,
                    suggestion_text=suggestion_text,
                    validation_start_time=result.validation_start_time,
                    ensemble_score=NEUTRAL_SCORE,
                    confidence=MIN_CONFIDENCE,
                    error_message=str(e),
                    improvement_suggestions=[
                        "Ensemble scoring failed; result is a neutral fallback"
                    ],
                )
                self.logger.exception("Ensemble scoring failed", category=category.value)
            finally:
                result.validation_end_time = datetime.now(UTC)
                result.validation_duration_seconds = time.perf_counter() - start

            self.logger.info(
                "Ensemble scoring completed",
                category=category.value,
                ensemble_score=result.ensemble_score,
                confidence=result.confidence,
                validators=len(result.individual_results),
                duration=result.validation_duration_seconds,
            )

        if result.error_message is None and result.individual_results:
            await self._schedule_performance_update(category, result)
        return result

    async def score_batch(
        self,
        suggestions: Sequence[str],
        context: ValidationContext | None,
        category: AnalysisCategory,
    ) -> list[EnsembleValidationResult]:
        """Score several suggestions concurrently; results keep input order.

        Raises:
            ConfigurationMissingError: If the category has no configuration
        """
        self.store.get(category)
        return list(
            await asyncio.gather(*(self.score(text, context, category) for text in suggestions))
        )

    def aggregate_with_weights(
        self,
        category: AnalysisCategory,
        results: Mapping[str, ValidatorResult],
        weights: Mapping[str, float],
    ) -> EnsembleValidationResult:
        """Aggregate already collected results with already computed weights.

        Feeding back a result's ``individual_results`` and ``weight_distribution``
        reproduces its score, confidence and interval.
        """
        aggregate = self.aggregator.aggregate(results, weights)
        result = EnsembleValidationResult(analysis_category=category)
        return self._apply_aggregate(result, results, weights, aggregate)

    async def optimize_weights(
        self, category: AnalysisCategory, examples: Sequence[TrainingExample]
    ) -> WeightOptimizationReport:
        """Re-tune a category's base weights from labeled examples."""
        return await self.optimizer.optimize(category, examples)

    async def generate_performance_report(self) -> EnsemblePerformanceReport:
        return await self.reporter.generate()

    async def performance_metrics(self, category: AnalysisCategory) -> PerformanceMetrics:
        """Snapshot of the rolling metrics for a category."""
        return await self.tracker.snapshot(category)

    def get_metrics(self) -> dict:
        """Validator call metrics collected by the adapter."""
        return self.adapter.get_metrics()

    async def flush(self) -> None:
        """Wait until every scheduled performance update has been applied."""
        while self._pending_updates:
            await asyncio.gather(*list(self._pending_updates))

    @staticmethod
    def _apply_aggregate(
        result: EnsembleValidationResult,
        results: Mapping[str, ValidatorResult],
        weights: Mapping[str, float],
        aggregate: AggregateScore,
    ) -> EnsembleValidationResult:
        return result.model_copy(
            update={
                "ensemble_score": aggregate.ensemble_score,
                "confidence": aggregate.confidence,
                "weight_distribution": dict(weights),
                "individual_results": dict(results),
                "explanations": aggregate.explanations,
                "feature_importance": aggregate.feature_importance,
                "prediction_uncertainty": aggregate.uncertainty,
                "confidence_interval": aggregate.confidence_interval,
                "recommendations": aggregate.recommendations,
                "quality_assessment": aggregate.quality_assessment,
                "improvement_suggestions": aggregate.improvement_suggestions,
                "validator_agreement": aggregate.agreement,
                "validator_contributions": aggregate.contributions,
            }
        )

    async def _schedule_performance_update(
        self, category: AnalysisCategory, result: EnsembleValidationResult
    ) -> None:
        if not self.settings.background_performance_updates:
            await self._record_performance(category, result)
            return
        task = asyncio.create_task(
            self._record_performance(category, result), name=f"performance:{category.value}"
        )
        self._pending_updates.add(task)
        task.add_done_callback(self._pending_updates.discard)

    async def _record_performance(
        self, category: AnalysisCategory, result: EnsembleValidationResult
    ) -> None:
        try:
            await self.tracker.record(category, result)
        except Exception:
            self.logger.exception("Performance update failed", category=category.value)
