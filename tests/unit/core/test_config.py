"""Unit tests for engine settings and built-in configurations."""

import pytest
from pydantic import ValidationError

from suggestion_ensemble.core.config import EngineSettings, default_ensemble_configurations
from suggestion_ensemble.models import AnalysisCategory, OptimizationStrategy


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("ENSEMBLE_VALIDATOR_TIMEOUT", "2.5")
    monkeypatch.setenv("ENSEMBLE_MIN_TRAINING_EXAMPLES", "20")
    monkeypatch.setenv("ENSEMBLE_ENFORCE_WEIGHT_BOUNDS", "false")
    monkeypatch.setenv("ENSEMBLE_CONFIG_PATH", "  ")

    settings = EngineSettings()

    assert settings.validator_timeout_seconds == 2.5
    assert settings.min_training_examples == 20
    assert settings.enforce_weight_bounds is False
    assert settings.configuration_path is None


def test_settings_ignore_malformed_environment(monkeypatch):
    monkeypatch.setenv("ENSEMBLE_VALIDATOR_TIMEOUT", "soon")

    assert EngineSettings().validator_timeout_seconds == 30.0


def test_settings_reject_unknown_fields():
    with pytest.raises(ValidationError):
        EngineSettings(unknown_option=True)


def test_settings_validate_assignment():
    settings = EngineSettings()

    with pytest.raises(ValidationError):
        settings.min_training_examples = 1


def test_dynamic_weighting_defaults():
    weighting = EngineSettings().weighting

    assert weighting.confidence_multiplier == 1.2
    assert (weighting.confidence_factor_min, weighting.confidence_factor_max) == (0.5, 1.5)
    assert weighting.performance_decay == 0.9


def test_default_configurations_are_consistent():
    configurations = default_ensemble_configurations()

    assert set(configurations) == {
        AnalysisCategory.PATTERN_DETECTION,
        AnalysisCategory.CAUSAL_ANALYSIS,
        AnalysisCategory.PERFORMANCE_OPTIMIZATION,
    }
    for configuration in configurations.values():
        check = configuration.check()
        assert check.is_valid
        assert check.warnings == []
        assert sum(configuration.base_weights.values()) == pytest.approx(1.0)

    causal = configurations[AnalysisCategory.CAUSAL_ANALYSIS]
    assert causal.base_weights["causal_validator"] == 0.40
    assert causal.optimization_strategy is OptimizationStrategy.BAYESIAN_OPTIMIZATION
