"""Offline re-tuning of ensemble base weights from labeled examples."""

import asyncio
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import logfire
import numpy as np
from sklearn.model_selection import train_test_split

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.core.exceptions import (
    EnsembleError,
    InsufficientTrainingDataError,
    StaleConfigurationError,
)
from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    EnsembleConfiguration,
    OptimizationResult,
    OptimizationStatus,
    OptimizationStrategy,
    TrainingExample,
    WeightOptimizationReport,
)
from suggestion_ensemble.services.configuration_store import ConfigurationStore
from suggestion_ensemble.services.search_strategies import (
    SearchStrategy,
    WeightSearchProblem,
    default_strategies,
)


@dataclass
class _SearchRun:
    candidates: list[OptimizationResult] = field(default_factory=list)
    baseline_accuracy: float = 0.0
    training_samples: int = 0
    validation_samples: int = 0

    @property
    def best(self) -> OptimizationResult | None:
        if not self.candidates:
            return None
        return max(self.candidates, key=lambda c: c.estimated_improvement)


class WeightOptimizer:
    """Searches for better base weights and promotes them through a gate.

    The search runs against a private snapshot of the configuration in a worker
    thread, so it never holds a lock that scoring calls need. Only the final
    promotion goes through the configuration store's atomic update path, and
    only when the holdout improvement clears ``improvement_threshold``.
    """

    def __init__(
        self,
        store: ConfigurationStore,
        settings: EngineSettings,
        strategies: Mapping[OptimizationStrategy, SearchStrategy] | None = None,
    ):
        """Initialize weight optimizer.

        Args:
            store: Configuration store the promotion is written to
            settings: Engine settings (minimum sample size, split, seed)
            strategies: Search strategies keyed by name, in chaining order
        """
        self.store = store
        self.settings = settings
        self.strategies = dict(strategies or default_strategies(settings.random_seed))
        self.logger = logfire

    async def optimize(
        self,
        category: AnalysisCategory,
        examples: Sequence[TrainingExample],
    ) -> WeightOptimizationReport:
        """Run one optimization round for a category.

        Args:
            category: Analysis category whose weights are re-tuned
            examples: Labeled examples; examples of other categories are ignored

        Returns:
            Structured report; failures are reported through ``status`` and
            ``error_message`` rather than raised
        """
        report = WeightOptimizationReport(analysis_category=category)
        start = time.perf_counter()

        with self.logger.span("Optimizing ensemble weights", category=category.value):
            try:
                matching = [e for e in examples if e.analysis_category == category]
                if len(matching) != len(examples):
                    self.logger.warning(
                        "Ignoring training examples from other categories",
                        category=category.value,
                        ignored=len(examples) - len(matching),
                    )
                if len(matching) < self.settings.min_training_examples:
                    raise InsufficientTrainingDataError(
                        category.value, self.settings.min_training_examples, len(matching)
                    )

                configuration = self.store.get(category)
                report.initial_weights = dict(configuration.base_weights)
                report.improvement_threshold = configuration.improvement_threshold

                run = await asyncio.to_thread(self._search, configuration, matching)
                self._apply_run(report, run)

                best = run.best
                threshold = configuration.improvement_threshold
                if best is None or best.estimated_improvement <= threshold:
                    report.status = OptimizationStatus.NO_OP
                    self.logger.info(
                        "Optimized weights below promotion threshold",
                        category=category.value,
                        improvement=report.performance_improvement,
                        threshold=configuration.improvement_threshold,
                    )
                else:
                    await self.store.promote(
                        category,
                        best.candidate_weights,
                        expected_version=configuration.version,
                        method=best.strategy.value,
                        improvement=best.estimated_improvement,
                        sample_size=len(matching),
                    )
                    report.status = OptimizationStatus.PROMOTED
                    report.configuration_updated = True

            except InsufficientTrainingDataError as e:
                report.status = OptimizationStatus.INSUFFICIENT_DATA
                report.error_message = e.message
                self.logger.warning(e.message, category=category.value)
            except StaleConfigurationError as e:
                report.status = OptimizationStatus.STALE
                report.error_message = e.message
                self.logger.warning(e.message, category=category.value)
            except EnsembleError as e:
                report.status = OptimizationStatus.FAILED
                report.error_message = e.message
                self.logger.error(e.message, category=category.value)
            except Exception as e:
                report.status = OptimizationStatus.FAILED
                report.error_message = str(e)
                self.logger.exception("Weight optimization failed", category=category.value)
            finally:
                report.optimization_end_time = datetime.now(UTC)
                report.optimization_duration_seconds = time.perf_counter() - start

        self.logger.info(
            "Weight optimization finished",
            category=category.value,
            status=report.status.value,
            improvement=report.performance_improvement,
            method=report.optimization_method,
        )
        return report

    def _strategy_order(self, configuration: EnsembleConfiguration) -> list[SearchStrategy]:
        if self.settings.run_all_strategies:
            return list(self.strategies.values())
        name = configuration.optimization_strategy
        strategy = self.strategies.get(name)
        if strategy is None:
            raise EnsembleError(
                message=f"No search strategy available for {name.value}",
                error_code="STRATEGY_UNAVAILABLE",
                details={"strategy": name.value},
            )
        return [strategy]

    def _search(
        self, configuration: EnsembleConfiguration, examples: Sequence[TrainingExample]
    ) -> _SearchRun:
        """CPU-bound search over a private configuration snapshot."""
        validator_ids = list(configuration.base_weights)
        bounds = configuration.weight_bounds if self.settings.enforce_weight_bounds else None
        problem = WeightSearchProblem.from_examples(examples, validator_ids, bounds)

        train_idx, holdout_idx = train_test_split(
            np.arange(len(examples)),
            test_size=self.settings.holdout_fraction,
            random_state=self.settings.random_seed,
        )
        train = problem.subset(train_idx)
        holdout = problem.subset(holdout_idx)

        baseline = problem.to_vector(configuration.base_weights)
        baseline_accuracy = holdout.accuracy(baseline)
        run = _SearchRun(
            baseline_accuracy=baseline_accuracy,
            training_samples=len(train_idx),
            validation_samples=len(holdout_idx),
        )

        seed_weights = baseline
        for strategy in self._strategy_order(configuration):
            outcome = strategy.search(train, seed_weights)
            weights = train.project(outcome.weights)
            candidate_accuracy = holdout.accuracy(weights)
            run.candidates.append(
                OptimizationResult(
                    strategy=strategy.strategy,
                    candidate_weights=problem.to_mapping(weights),
                    estimated_improvement=_relative_gain(baseline_accuracy, candidate_accuracy),
                    baseline_accuracy=baseline_accuracy,
                    candidate_accuracy=candidate_accuracy,
                    iterations=outcome.iterations,
                )
            )
            # Each strategy starts from the previous one's best weights
            seed_weights = weights

        return run

    @staticmethod
    def _apply_run(report: WeightOptimizationReport, run: _SearchRun) -> None:
        report.candidates = run.candidates
        report.baseline_accuracy = run.baseline_accuracy
        report.training_samples = run.training_samples
        report.validation_samples = run.validation_samples
        best = run.best
        if best is not None:
            report.optimal_weights = dict(best.candidate_weights)
            report.performance_improvement = best.estimated_improvement
            report.optimization_method = best.strategy.value
            report.validation_accuracy = best.candidate_accuracy


def _relative_gain(baseline: float, candidate: float) -> float:
    if baseline <= 0:
        return candidate - baseline
    return (candidate - baseline) / baseline
