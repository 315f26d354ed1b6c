"""Performance reports across every analysis category the engine serves."""

import logfire
import numpy as np

from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    CategoryPerformanceReport,
    EnsembleOverallStatistics,
    EnsemblePerformanceReport,
    PerformanceMetrics,
)
from suggestion_ensemble.services.configuration_store import ConfigurationStore
from suggestion_ensemble.services.performance_tracker import PerformanceTracker

TARGET_ACCURACY = 0.85
TARGET_CONFIDENCE = 0.8


class PerformanceReporter:
    """Builds ``EnsemblePerformanceReport`` instances from tracker and store state."""

    def __init__(self, tracker: PerformanceTracker, store: ConfigurationStore):
        self.tracker = tracker
        self.store = store
        self.logger = logfire

    async def generate(self) -> EnsemblePerformanceReport:
        """Generate a report for every configured or tracked category.

        Returns:
            Report; on failure an empty report with ``error_message`` set
        """
        report = EnsemblePerformanceReport()
        try:
            tracked = await self.tracker.snapshot_all()
            categories = list(self.store.categories())
            categories += [c for c in tracked if c not in categories]

            for category in categories:
                metrics = tracked.get(category) or PerformanceMetrics(analysis_category=category)
                report.category_reports[category] = self._category_report(category, metrics)

            report.overall_statistics = self._overall_statistics(report.category_reports)
            report.system_recommendations = self._system_recommendations(
                report.overall_statistics
            )
        except Exception as e:
            report.error_message = str(e)
            self.logger.exception("Performance report generation failed")
            return report

        self.logger.info(
            "Performance report generated",
            categories=len(report.category_reports),
            total_predictions=report.overall_statistics.total_predictions,
        )
        return report

    def _category_report(
        self, category: AnalysisCategory, metrics: PerformanceMetrics
    ) -> CategoryPerformanceReport:
        configuration = self.store.snapshot().get(category)
        recommendations = []
        if metrics.total_predictions:
            if metrics.overall_accuracy < TARGET_ACCURACY:
                recommendations.append("Consider weight optimization to improve accuracy")
            if metrics.average_confidence < TARGET_CONFIDENCE:
                recommendations.append(
                    "Investigate low confidence predictions for quality improvement"
                )

        return CategoryPerformanceReport(
            analysis_category=category,
            current_accuracy=metrics.overall_accuracy,
            average_confidence=metrics.average_confidence,
            prediction_count=metrics.total_predictions,
            last_update_time=metrics.last_update_time if metrics.total_predictions else None,
            current_weights=dict(configuration.base_weights) if configuration else {},
            weight_optimization_history=self.store.history(category),
            accuracy_trend=PerformanceTracker.accuracy_trend(metrics),
            confidence_trend=PerformanceTracker.confidence_trend(metrics),
            improvement_recommendations=recommendations,
            validator_contributions=dict(metrics.validator_performance),
        )

    @staticmethod
    def _overall_statistics(
        reports: dict[AnalysisCategory, CategoryPerformanceReport],
    ) -> EnsembleOverallStatistics:
        active = {c: r for c, r in reports.items() if r.prediction_count > 0}
        history = [record for r in reports.values() for record in r.weight_optimization_history]

        statistics = EnsembleOverallStatistics(
            total_predictions=sum(r.prediction_count for r in active.values()),
            optimizations_performed=len(history),
        )
        if history:
            statistics.last_optimization = max(h.optimization_date for h in history)
            statistics.average_optimization_improvement = float(
                np.mean([h.performance_improvement for h in history])
            )
        if not active:
            return statistics

        accuracies = np.array([r.current_accuracy for r in active.values()])
        confidences = np.array([r.average_confidence for r in active.values()])
        statistics.average_accuracy = float(accuracies.mean())
        statistics.average_confidence = float(confidences.mean())
        statistics.accuracy_variance = float(accuracies.var())
        statistics.confidence_variance = float(confidences.var())
        statistics.best_performing_category = max(active, key=lambda c: active[c].current_accuracy)
        statistics.worst_performing_category = min(
            active, key=lambda c: active[c].current_accuracy
        )
        return statistics

    @staticmethod
    def _system_recommendations(statistics: EnsembleOverallStatistics) -> list[str]:
        recommendations = []
        if statistics.total_predictions == 0:
            return recommendations
        if statistics.average_accuracy < TARGET_ACCURACY:
            recommendations.append(
                "System-wide accuracy below target - consider comprehensive weight optimization"
            )
        if statistics.average_confidence < TARGET_CONFIDENCE:
            recommendations.append(
                "System-wide confidence below target - review validator calibration"
            )
        if statistics.accuracy_variance > 0.01:
            recommendations.append(
                "Accuracy varies widely between categories - review per-category weights"
            )
        return recommendations
