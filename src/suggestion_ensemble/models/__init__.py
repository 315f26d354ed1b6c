"""Data models for the ensemble scoring engine."""

from .ensemble import (
    AnalysisCategory,
    CategoryPerformanceReport,
    ConfigurationCheck,
    EnsembleConfiguration,
    EnsembleOverallStatistics,
    EnsemblePerformanceReport,
    EnsembleValidationResult,
    OptimizationResult,
    OptimizationStatus,
    OptimizationStrategy,
    PerformanceDataPoint,
    PerformanceMetrics,
    QualityAssessment,
    TrainingExample,
    ValidationContext,
    ValidatorResult,
    ValidatorRole,
    WeightOptimizationRecord,
    WeightOptimizationReport,
)

__all__ = [
    "AnalysisCategory",
    "CategoryPerformanceReport",
    "ConfigurationCheck",
    "EnsembleConfiguration",
    "EnsembleOverallStatistics",
    "EnsemblePerformanceReport",
    "EnsembleValidationResult",
    "OptimizationResult",
    "OptimizationStatus",
    "OptimizationStrategy",
    "PerformanceDataPoint",
    "PerformanceMetrics",
    "QualityAssessment",
    "TrainingExample",
    "ValidationContext",
    "ValidatorResult",
    "ValidatorRole",
    "WeightOptimizationRecord",
    "WeightOptimizationReport",
]
