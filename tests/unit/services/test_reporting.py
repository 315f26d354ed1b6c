"""Unit tests for engine-wide performance reports."""

import pytest

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.models import (
    AnalysisCategory,
    EnsembleConfiguration,
    EnsembleValidationResult,
    ValidatorResult,
)
from suggestion_ensemble.services import ConfigurationStore, PerformanceReporter, PerformanceTracker


def _result(category, score, confidence):
    return EnsembleValidationResult(
        analysis_category=category,
        ensemble_score=score,
        confidence=confidence,
        individual_results={
            "a": ValidatorResult(validator_id="a", score=score, confidence=confidence)
        },
        weight_distribution={"a": 1.0},
    )


@pytest.fixture
def store():
    return ConfigurationStore(
        {
            category: EnsembleConfiguration(analysis_category=category, base_weights={"a": 1.0})
            for category in (AnalysisCategory.PATTERN_DETECTION, AnalysisCategory.CAUSAL_ANALYSIS)
        }
    )


@pytest.mark.asyncio
async def test_report_covers_configured_and_tracked_categories(store):
    tracker = PerformanceTracker(EngineSettings())
    await tracker.record(
        AnalysisCategory.PATTERN_DETECTION, _result(AnalysisCategory.PATTERN_DETECTION, 0.9, 0.9)
    )
    await tracker.record(
        AnalysisCategory.CAUSAL_ANALYSIS, _result(AnalysisCategory.CAUSAL_ANALYSIS, 0.6, 0.5)
    )
    await tracker.record(
        AnalysisCategory.RISK_ASSESSMENT, _result(AnalysisCategory.RISK_ASSESSMENT, 0.7, 0.9)
    )

    report = await PerformanceReporter(tracker, store).generate()

    assert set(report.category_reports) == {
        AnalysisCategory.PATTERN_DETECTION,
        AnalysisCategory.CAUSAL_ANALYSIS,
        AnalysisCategory.RISK_ASSESSMENT,
    }
    pattern = report.category_reports[AnalysisCategory.PATTERN_DETECTION]
    causal = report.category_reports[AnalysisCategory.CAUSAL_ANALYSIS]
    risk = report.category_reports[AnalysisCategory.RISK_ASSESSMENT]
    assert pattern.improvement_recommendations == []
    assert causal.improvement_recommendations == [
        "Consider weight optimization to improve accuracy",
        "Investigate low confidence predictions for quality improvement",
    ]
    assert risk.current_weights == {}
    assert pattern.current_weights == {"a": 1.0}

    overall = report.overall_statistics
    assert overall.total_predictions == 3
    assert overall.average_accuracy == pytest.approx(0.7333, abs=1e-4)
    assert overall.best_performing_category is AnalysisCategory.PATTERN_DETECTION
    assert overall.worst_performing_category is AnalysisCategory.CAUSAL_ANALYSIS
    assert overall.accuracy_variance == pytest.approx(0.015556, abs=1e-5)
    assert report.system_recommendations[0].startswith("System-wide accuracy below target")


@pytest.mark.asyncio
async def test_report_counts_promotions(store):
    tracker = PerformanceTracker(EngineSettings())
    await store.promote(
        AnalysisCategory.CAUSAL_ANALYSIS,
        {"a": 1.0},
        expected_version=1,
        method="grid_search",
        improvement=0.04,
        sample_size=12,
    )

    report = await PerformanceReporter(tracker, store).generate()

    overall = report.overall_statistics
    assert overall.optimizations_performed == 1
    assert overall.average_optimization_improvement == pytest.approx(0.04)
    assert overall.last_optimization is not None
    assert overall.total_predictions == 0
    assert report.system_recommendations == []


@pytest.mark.asyncio
async def test_report_errors_are_captured(store, monkeypatch):
    tracker = PerformanceTracker(EngineSettings())

    async def broken():
        raise RuntimeError("metrics unavailable")

    monkeypatch.setattr(tracker, "snapshot_all", broken)

    report = await PerformanceReporter(tracker, store).generate()

    assert report.error_message == "metrics unavailable"
    assert report.category_reports == {}
