"""Ensemble scoring models for the suggestion validation system."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AnalysisCategory(str, Enum):
    """Class of suggestion that selects validators and weight configuration."""

    PATTERN_DETECTION = "pattern_detection"
    CAUSAL_ANALYSIS = "causal_analysis"
    PERFORMANCE_OPTIMIZATION = "performance_optimization"
    RISK_ASSESSMENT = "risk_assessment"
    SECURITY_ANALYSIS = "security_analysis"
    COMPREHENSIVE_ANALYSIS = "comprehensive_analysis"


class ValidatorRole(str, Enum):
    """How a validator is biased by context complexity."""

    SPECIALIST = "specialist"  # narrow pattern / causal analysis
    GENERALIST = "generalist"  # statistical or learned model
    NEUTRAL = "neutral"


class OptimizationStrategy(str, Enum):
    """Search strategies available to the weight optimizer."""

    GRID_SEARCH = "grid_search"
    GRADIENT_BASED = "gradient_based"
    BAYESIAN_OPTIMIZATION = "bayesian_optimization"


class QualityAssessment(str, Enum):
    """Coarse classification of an ensemble score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_score(cls, score: float) -> "QualityAssessment":
        """Convert an ensemble score to a quality classification."""
        if score >= 0.85:
            return cls.EXCELLENT
        if score >= 0.7:
            return cls.GOOD
        if score >= 0.5:
            return cls.FAIR
        return cls.POOR


class OptimizationStatus(str, Enum):
    """Outcome of a weight optimization run."""

    PROMOTED = "promoted"
    NO_OP = "no_op"
    INSUFFICIENT_DATA = "insufficient_data"
    STALE = "stale"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ValidationContext(BaseModel):
    """Per-call context handed to every validator.

    Only ``complexity_score`` is interpreted by the engine; ``attributes`` is
    passed through to validators unexamined.
    """

    complexity_score: float = Field(
        default=0.5, ge=0.0, le=1.0, description="System complexity on a 0-1 scale"
    )
    analysis_category: AnalysisCategory | None = Field(
        default=None, description="Category the suggestion belongs to"
    )
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Opaque domain fields for validators"
    )


class ValidatorResult(BaseModel):
    """Result from an individual validator within the ensemble."""

    validator_id: str = Field(description="Registered identifier of the validator")
    score: float = Field(ge=0.0, le=1.0, description="Quality score")
    confidence: float = Field(ge=0.0, le=1.0, description="Validator confidence in its score")
    recommendations: list[str] = Field(
        default_factory=list, description="Ordered improvement recommendations"
    )
    feature_importance: dict[str, float] | None = Field(
        default=None, description="Feature name to importance weight"
    )
    error: str | None = Field(
        default=None, description="Failure reason when this is a fallback result"
    )
    role: ValidatorRole = Field(
        default=ValidatorRole.NEUTRAL, description="Complexity role of the validator"
    )
    processing_time_seconds: float = Field(default=0.0, ge=0.0, description="Call duration")
    additional_metrics: dict[str, Any] = Field(
        default_factory=dict, description="Validator-specific metrics"
    )

    @property
    def failed(self) -> bool:
        """Whether this result is a fallback substituted for a failed call."""
        return self.error is not None


class ConfigurationCheck(BaseModel):
    """Outcome of checking an ensemble configuration for consistency."""

    is_valid: bool = Field(default=True)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class EnsembleConfiguration(BaseModel):
    """Per-category ensemble weighting configuration.

    Instances are frozen: a promotion publishes a new instance instead of
    mutating the one concurrent scoring calls may be reading.
    """

    model_config = ConfigDict(frozen=True)

    analysis_category: AnalysisCategory = Field(description="Category this configuration serves")
    base_weights: dict[str, float] = Field(
        default_factory=dict, description="Validator id to static base weight"
    )
    weight_bounds: dict[str, tuple[float, float]] = Field(
        default_factory=dict, description="Validator id to (min, max) weight bounds"
    )
    optimization_strategy: OptimizationStrategy = Field(
        default=OptimizationStrategy.GRADIENT_BASED, description="Preferred search strategy"
    )
    improvement_threshold: float = Field(
        default=0.02, ge=0.0, description="Minimum relative gain required to replace weights"
    )
    last_updated: datetime = Field(default_factory=_utcnow, description="Last promotion time")
    version: int = Field(default=1, ge=1, description="Incremented on every promotion")
    enable_dynamic_weighting: bool = Field(
        default=True, description="Apply confidence, complexity and performance factors"
    )

    @field_validator("base_weights")
    @classmethod
    def _non_negative_weights(cls, v: dict[str, float]) -> dict[str, float]:
        for validator_id, weight in v.items():
            if weight < 0:
                raise ValueError(f"base weight for {validator_id} must be non-negative")
        return v

    @field_validator("weight_bounds")
    @classmethod
    def _ordered_bounds(
        cls, v: dict[str, tuple[float, float]]
    ) -> dict[str, tuple[float, float]]:
        for validator_id, (low, high) in v.items():
            if not 0.0 <= low <= high <= 1.0:
                raise ValueError(
                    f"weight bounds for {validator_id} must satisfy 0 <= min <= max <= 1"
                )
        return v

    def bounds_for(self, validator_id: str) -> tuple[float, float]:
        """Bounds for a validator, unbounded when none are configured."""
        return self.weight_bounds.get(validator_id, (0.0, 1.0))

    def check(self) -> ConfigurationCheck:
        """Check the configuration for soft inconsistencies."""
        check = ConfigurationCheck()
        if not self.base_weights:
            check.errors.append("No base weights configured")
        total = sum(self.base_weights.values())
        if self.base_weights and abs(total - 1.0) > 0.01:
            check.warnings.append(f"Base weights sum to {total:.3f}, expected 1.0")
        for validator_id, weight in self.base_weights.items():
            low, high = self.bounds_for(validator_id)
            if not low <= weight <= high:
                check.warnings.append(
                    f"Base weight {weight:.3f} for {validator_id} outside bounds ({low}, {high})"
                )
        for validator_id in self.weight_bounds:
            if validator_id not in self.base_weights:
                check.warnings.append(f"Bounds configured for unweighted validator {validator_id}")
        check.is_valid = not check.errors
        return check


class PerformanceDataPoint(BaseModel):
    """Single observation recorded after a scoring call."""

    timestamp: datetime = Field(default_factory=_utcnow)
    ensemble_score: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    validator_scores: dict[str, float] = Field(default_factory=dict)
    weights_used: dict[str, float] = Field(default_factory=dict)


class PerformanceMetrics(BaseModel):
    """Rolling per-category statistics used to bias future weighting."""

    analysis_category: AnalysisCategory = Field(description="Category being tracked")
    total_predictions: int = Field(default=0, ge=0, description="Number of scoring calls")
    overall_accuracy: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Running mean of ensemble scores, used as an accuracy proxy",
    )
    average_confidence: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Running mean of ensemble confidence"
    )
    validator_performance: dict[str, float] = Field(
        default_factory=dict, description="Validator id to smoothed average score"
    )
    last_update_time: datetime = Field(default_factory=_utcnow)
    history: list[PerformanceDataPoint] = Field(
        default_factory=list, description="Most recent observations, oldest first"
    )


class EnsembleValidationResult(BaseModel):
    """Externally visible output of one ensemble scoring call."""

    analysis_category: AnalysisCategory
    suggestion_text: str = Field(default="")
    validation_start_time: datetime = Field(default_factory=_utcnow)
    validation_end_time: datetime | None = Field(default=None)
    validation_duration_seconds: float = Field(default=0.0, ge=0.0)

    ensemble_score: float = Field(default=0.5, ge=0.0, le=1.0)
    confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    weight_distribution: dict[str, float] = Field(default_factory=dict)
    individual_results: dict[str, ValidatorResult] = Field(default_factory=dict)

    explanations: dict[str, str] = Field(default_factory=dict)
    feature_importance: dict[str, float] = Field(default_factory=dict)
    prediction_uncertainty: float = Field(default=0.0, ge=0.0)
    confidence_interval: tuple[float, float] = Field(default=(0.5, 0.5))

    recommendations: list[str] = Field(default_factory=list)
    quality_assessment: QualityAssessment = Field(default=QualityAssessment.FAIR)
    improvement_suggestions: list[str] = Field(default_factory=list)

    validator_agreement: float = Field(default=1.0, ge=0.0, le=1.0)
    validator_contributions: dict[str, float] = Field(default_factory=dict)
    error_message: str | None = Field(default=None)

    @model_validator(mode="after")
    def _ordered_interval(self) -> "EnsembleValidationResult":
        lower, upper = self.confidence_interval
        if not 0.0 <= lower <= upper <= 1.0:
            raise ValueError("confidence_interval must satisfy 0 <= lower <= upper <= 1")
        return self


class TrainingExample(BaseModel):
    """Labeled example used to re-tune base weights. Never mutated."""

    model_config = ConfigDict(frozen=True)

    suggestion_text: str = Field(default="")
    actual_quality_score: float = Field(ge=0.0, le=1.0, description="Ground-truth quality")
    analysis_category: AnalysisCategory
    validator_scores: dict[str, float] = Field(default_factory=dict)
    validator_confidences: dict[str, float] = Field(default_factory=dict)
    context: ValidationContext | None = Field(default=None)
    recorded_at: datetime = Field(default_factory=_utcnow)

    @field_validator("validator_scores", "validator_confidences")
    @classmethod
    def _unit_interval(cls, v: dict[str, float]) -> dict[str, float]:
        for validator_id, value in v.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"value for {validator_id} must be within [0, 1]")
        return v


class OptimizationResult(BaseModel):
    """Candidate weight vector produced by one search strategy."""

    strategy: OptimizationStrategy
    candidate_weights: dict[str, float] = Field(default_factory=dict)
    estimated_improvement: float = Field(
        default=0.0, description="Relative holdout accuracy gain over the baseline"
    )
    baseline_accuracy: float = Field(default=0.0)
    candidate_accuracy: float = Field(default=0.0)
    iterations: int = Field(default=0, ge=0)


class WeightOptimizationRecord(BaseModel):
    """History entry written whenever optimized weights are promoted."""

    optimization_date: datetime = Field(default_factory=_utcnow)
    previous_weights: dict[str, float] = Field(default_factory=dict)
    new_weights: dict[str, float] = Field(default_factory=dict)
    performance_improvement: float = Field(default=0.0)
    optimization_method: str = Field(default="")
    sample_size: int = Field(default=0, ge=0)
    version: int = Field(default=1, ge=1)


class WeightOptimizationReport(BaseModel):
    """Structured outcome of a weight optimization run."""

    analysis_category: AnalysisCategory
    status: OptimizationStatus = Field(default=OptimizationStatus.NO_OP)
    optimization_start_time: datetime = Field(default_factory=_utcnow)
    optimization_end_time: datetime | None = Field(default=None)
    optimization_duration_seconds: float = Field(default=0.0, ge=0.0)

    initial_weights: dict[str, float] = Field(default_factory=dict)
    optimal_weights: dict[str, float] = Field(default_factory=dict)
    performance_improvement: float = Field(default=0.0)
    optimization_method: str | None = Field(default=None)
    improvement_threshold: float = Field(default=0.02)

    validation_accuracy: float | None = Field(default=None)
    baseline_accuracy: float | None = Field(default=None)
    configuration_updated: bool = Field(default=False)
    candidates: list[OptimizationResult] = Field(default_factory=list)
    training_samples: int = Field(default=0, ge=0)
    validation_samples: int = Field(default=0, ge=0)
    error_message: str | None = Field(default=None)


class CategoryPerformanceReport(BaseModel):
    """Performance summary for one analysis category."""

    analysis_category: AnalysisCategory
    current_accuracy: float = Field(default=0.0)
    average_confidence: float = Field(default=0.0)
    prediction_count: int = Field(default=0)
    last_update_time: datetime | None = Field(default=None)
    current_weights: dict[str, float] = Field(default_factory=dict)
    weight_optimization_history: list[WeightOptimizationRecord] = Field(default_factory=list)
    accuracy_trend: float = Field(default=0.0)
    confidence_trend: float = Field(default=0.0)
    improvement_recommendations: list[str] = Field(default_factory=list)
    validator_contributions: dict[str, float] = Field(default_factory=dict)


class EnsembleOverallStatistics(BaseModel):
    """Statistics across every tracked analysis category."""

    average_accuracy: float = Field(default=0.0)
    average_confidence: float = Field(default=0.0)
    total_predictions: int = Field(default=0)
    best_performing_category: AnalysisCategory | None = Field(default=None)
    worst_performing_category: AnalysisCategory | None = Field(default=None)
    accuracy_variance: float = Field(default=0.0)
    confidence_variance: float = Field(default=0.0)
    last_optimization: datetime | None = Field(default=None)
    optimizations_performed: int = Field(default=0)
    average_optimization_improvement: float = Field(default=0.0)


class EnsemblePerformanceReport(BaseModel):
    """Engine-wide performance report."""

    generation_time: datetime = Field(default_factory=_utcnow)
    category_reports: dict[AnalysisCategory, CategoryPerformanceReport] = Field(
        default_factory=dict
    )
    overall_statistics: EnsembleOverallStatistics = Field(
        default_factory=EnsembleOverallStatistics
    )
    system_recommendations: list[str] = Field(default_factory=list)
    error_message: str | None = Field(default=None)
