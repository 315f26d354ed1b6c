"""Configuration management for the ensemble scoring engine."""

import os

from pydantic import BaseModel, ConfigDict, Field

from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    EnsembleConfiguration,
    OptimizationStrategy,
)

# Note: .env file is loaded in suggestion_ensemble/core/__init__.py before this module is imported


def _env_str(name: str) -> str | None:
    """Get environment variable as a stripped string, returning None if empty or unset."""
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _env_flag(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from environment variables.

    Accepts: "1", "true", "TRUE", "True" as True.
    """
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip() in {"1", "true", "TRUE", "True"}


def _env_float_default(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_int_default(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError:
        return default


class DynamicWeightSettings(BaseModel):
    """Constants of the per-call weight adjustment."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    confidence_multiplier: float = Field(default=1.2, gt=0.0)
    confidence_factor_min: float = Field(default=0.5, gt=0.0)
    confidence_factor_max: float = Field(default=1.5, gt=0.0)

    high_complexity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    low_complexity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    high_complexity_specialist_factor: float = Field(default=1.1, gt=0.0)
    high_complexity_generalist_factor: float = Field(default=0.9, gt=0.0)
    low_complexity_specialist_factor: float = Field(default=0.9, gt=0.0)
    low_complexity_generalist_factor: float = Field(default=1.2, gt=0.0)

    strong_performance_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    weak_performance_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    strong_performance_factor: float = Field(default=1.1, gt=0.0)
    weak_performance_factor: float = Field(default=0.9, gt=0.0)

    performance_decay: float = Field(
        default=0.9, ge=0.0, lt=1.0, description="EMA weight kept from the previous value"
    )


class EngineSettings(BaseModel):
    """Engine settings with validation."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, extra="forbid")

    validator_timeout_seconds: float = Field(
        default_factory=lambda: _env_float_default("ENSEMBLE_VALIDATOR_TIMEOUT", 30.0),
        gt=0.0,
        description="Per-validator timeout; a timed-out validator gets a fallback result",
    )
    max_concurrent_validators: int = Field(
        default_factory=lambda: _env_int_default("ENSEMBLE_MAX_CONCURRENT_VALIDATORS", 8),
        ge=1,
        description="Upper bound on validator calls in flight per scoring call",
    )

    recommendation_limit: int = Field(default=5, ge=1, description="Ensemble recommendation cap")
    recommendations_per_validator: int | None = Field(
        default=None, ge=1, description="Recommendations taken from each validator (None = all)"
    )

    min_training_examples: int = Field(
        default_factory=lambda: _env_int_default("ENSEMBLE_MIN_TRAINING_EXAMPLES", 10),
        ge=2,
        description="Minimum labeled examples before optimization runs",
    )
    holdout_fraction: float = Field(
        default=0.3, gt=0.0, lt=0.9, description="Share of examples held out for validation"
    )
    random_seed: int = Field(default=42, description="Seed for splits and stochastic search")
    enforce_weight_bounds: bool = Field(
        default_factory=lambda: _env_flag("ENSEMBLE_ENFORCE_WEIGHT_BOUNDS", True),
        description="Clamp adjusted weights to configured bounds before normalizing",
    )
    run_all_strategies: bool = Field(
        default=True, description="Run every search strategy instead of the configured one"
    )

    performance_history_limit: int = Field(default=500, ge=1)
    optimization_history_limit: int = Field(default=50, ge=1)
    background_performance_updates: bool = Field(
        default=True, description="Update performance metrics off the scoring path"
    )

    configuration_path: str | None = Field(
        default_factory=lambda: _env_str("ENSEMBLE_CONFIG_PATH"),
        description="Optional JSON file with per-category ensemble configurations",
    )

    weighting: DynamicWeightSettings = Field(default_factory=DynamicWeightSettings)


def default_ensemble_configurations() -> dict[AnalysisCategory, EnsembleConfiguration]:
    """Built-in configurations for the three primary analysis categories."""
    return {
        AnalysisCategory.PATTERN_DETECTION: EnsembleConfiguration(
            analysis_category=AnalysisCategory.PATTERN_DETECTION,
            base_weights={
                "pattern_validator": 0.35,
                "ml_model": 0.25,
                "causal_validator": 0.15,
                "performance_validator": 0.15,
                "domain_validator": 0.10,
            },
            weight_bounds={
                "pattern_validator": (0.20, 0.50),
                "ml_model": (0.15, 0.40),
                "causal_validator": (0.05, 0.25),
                "performance_validator": (0.05, 0.25),
                "domain_validator": (0.05, 0.20),
            },
            optimization_strategy=OptimizationStrategy.GRADIENT_BASED,
        ),
        AnalysisCategory.CAUSAL_ANALYSIS: EnsembleConfiguration(
            analysis_category=AnalysisCategory.CAUSAL_ANALYSIS,
            base_weights={
                "causal_validator": 0.40,
                "ml_model": 0.25,
                "pattern_validator": 0.15,
                "performance_validator": 0.10,
                "domain_validator": 0.10,
            },
            weight_bounds={
                "causal_validator": (0.25, 0.55),
                "ml_model": (0.15, 0.40),
                "pattern_validator": (0.05, 0.25),
                "performance_validator": (0.05, 0.20),
                "domain_validator": (0.05, 0.20),
            },
            optimization_strategy=OptimizationStrategy.BAYESIAN_OPTIMIZATION,
        ),
        AnalysisCategory.PERFORMANCE_OPTIMIZATION: EnsembleConfiguration(
            analysis_category=AnalysisCategory.PERFORMANCE_OPTIMIZATION,
            base_weights={
                "performance_validator": 0.40,
                "ml_model": 0.25,
                "domain_validator": 0.15,
                "pattern_validator": 0.10,
                "causal_validator": 0.10,
            },
            weight_bounds={
                "performance_validator": (0.25, 0.55),
                "ml_model": (0.15, 0.40),
                "domain_validator": (0.05, 0.25),
                "pattern_validator": (0.05, 0.20),
                "causal_validator": (0.05, 0.20),
            },
            optimization_strategy=OptimizationStrategy.GRID_SEARCH,
        ),
    }


# Global settings instance
settings = EngineSettings()
