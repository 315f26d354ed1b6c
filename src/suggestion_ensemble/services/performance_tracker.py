"""Rolling per-category performance statistics for dynamic weighting."""

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime

import logfire
import numpy as np

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.core.locks import AsyncReadWriteLock
from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    EnsembleValidationResult,
    PerformanceDataPoint,
    PerformanceMetrics,
)


class PerformanceTracker:
    """Store service for per-category performance metrics.

    Many scoring calls read a category's metrics while each completed call
    writes an update. Every category has its own read/write lock: readers get
    a private copy, writers are serialized so no increment is lost.
    """

    def __init__(self, settings: EngineSettings):
        """Initialize performance tracker.

        Args:
            settings: Engine settings (history limit and EMA decay)
        """
        self.settings = settings
        self._metrics: dict[AnalysisCategory, PerformanceMetrics] = {}
        self._locks: dict[AnalysisCategory, AsyncReadWriteLock] = {}
        self._registry_lock = asyncio.Lock()
        self.logger = logfire

    async def _lock_for(self, category: AnalysisCategory) -> AsyncReadWriteLock:
        lock = self._locks.get(category)
        if lock is None:
            async with self._registry_lock:
                lock = self._locks.setdefault(
                    category, AsyncReadWriteLock(name=f"performance:{category.value}")
                )
        return lock

    async def snapshot(self, category: AnalysisCategory) -> PerformanceMetrics:
        """Return a private copy of the category's metrics (empty if never updated)."""
        lock = await self._lock_for(category)
        async with lock.read_locked():
            metrics = self._metrics.get(category)
            if metrics is None:
                return PerformanceMetrics(analysis_category=category)
            return metrics.model_copy(deep=True)

    async def record(self, category: AnalysisCategory, result: EnsembleValidationResult) -> None:
        """Fold one completed scoring call into the category's metrics."""
        lock = await self._lock_for(category)
        async with lock.write_locked():
            current = self._metrics.get(category) or PerformanceMetrics(
                analysis_category=category
            )
            self._metrics[category] = self._updated(current, result)

        self.logger.debug(
            "Performance metrics updated",
            category=category.value,
            ensemble_score=result.ensemble_score,
        )

    def _updated(
        self, metrics: PerformanceMetrics, result: EnsembleValidationResult
    ) -> PerformanceMetrics:
        n = metrics.total_predictions + 1
        decay = self.settings.weighting.performance_decay

        validator_performance = dict(metrics.validator_performance)
        for validator_id, validator_result in result.individual_results.items():
            previous = validator_performance.get(validator_id)
            if previous is None:
                validator_performance[validator_id] = validator_result.score
            else:
                validator_performance[validator_id] = (
                    previous * decay + validator_result.score * (1 - decay)
                )

        history = metrics.history + [
            PerformanceDataPoint(
                ensemble_score=result.ensemble_score,
                confidence=result.confidence,
                validator_scores={
                    validator_id: r.score for validator_id, r in result.individual_results.items()
                },
                weights_used=dict(result.weight_distribution),
            )
        ]
        history = history[-self.settings.performance_history_limit :]

        return PerformanceMetrics(
            analysis_category=metrics.analysis_category,
            total_predictions=n,
            overall_accuracy=_running_mean(metrics.overall_accuracy, result.ensemble_score, n),
            average_confidence=_running_mean(metrics.average_confidence, result.confidence, n),
            validator_performance=validator_performance,
            last_update_time=datetime.now(UTC),
            history=history,
        )

    async def reset(self, category: AnalysisCategory | None = None) -> None:
        """Forget metrics for one category, or for all categories."""
        targets = [category] if category is not None else list(self._metrics)
        for target in targets:
            lock = await self._lock_for(target)
            async with lock.write_locked():
                self._metrics.pop(target, None)

    async def categories(self) -> list[AnalysisCategory]:
        """Categories that have received at least one update."""
        return list(self._metrics)

    async def snapshot_all(self) -> Mapping[AnalysisCategory, PerformanceMetrics]:
        return {category: await self.snapshot(category) for category in list(self._metrics)}

    @staticmethod
    def accuracy_trend(metrics: PerformanceMetrics) -> float:
        """Least-squares slope of ensemble scores over the recorded history."""
        return _slope([point.ensemble_score for point in metrics.history])

    @staticmethod
    def confidence_trend(metrics: PerformanceMetrics) -> float:
        """Least-squares slope of ensemble confidence over the recorded history."""
        return _slope([point.confidence for point in metrics.history])


def _running_mean(previous: float, value: float, n: int) -> float:
    return min(1.0, max(0.0, (previous * (n - 1) + value) / n))


def _slope(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    x = np.arange(len(values), dtype=float)
    slope, _intercept = np.polyfit(x, np.asarray(values, dtype=float), 1)
    return float(slope)
