"""Unit tests for ensemble data models."""

import pytest
from pydantic import ValidationError

from suggestion_ensemble.models import (
    AnalysisCategory,
    EnsembleConfiguration,
    EnsembleValidationResult,
    QualityAssessment,
    TrainingExample,
    ValidationContext,
    ValidatorResult,
)


@pytest.mark.parametrize(
    ("score", "expected"),
    [
        (0.95, QualityAssessment.EXCELLENT),
        (0.85, QualityAssessment.EXCELLENT),
        (0.7, QualityAssessment.GOOD),
        (0.5, QualityAssessment.FAIR),
        (0.49, QualityAssessment.POOR),
    ],
)
def test_quality_assessment_thresholds(score, expected):
    assert QualityAssessment.from_score(score) is expected


def test_validator_result_rejects_out_of_range_score():
    with pytest.raises(ValidationError):
        ValidatorResult(validator_id="a", score=1.2, confidence=0.5)


def test_validator_result_failed_flag():
    ok = ValidatorResult(validator_id="a", score=0.6, confidence=0.5)
    failed = ValidatorResult(validator_id="a", score=0.5, confidence=0.1, error="boom")

    assert not ok.failed
    assert failed.failed


def test_context_defaults_to_neutral_complexity():
    assert ValidationContext().complexity_score == 0.5


def test_configuration_is_frozen():
    configuration = EnsembleConfiguration(
        analysis_category=AnalysisCategory.RISK_ASSESSMENT, base_weights={"a": 1.0}
    )

    with pytest.raises(ValidationError):
        configuration.version = 2


def test_configuration_rejects_negative_weights_and_inverted_bounds():
    with pytest.raises(ValidationError):
        EnsembleConfiguration(
            analysis_category=AnalysisCategory.RISK_ASSESSMENT, base_weights={"a": -0.1}
        )
    with pytest.raises(ValidationError):
        EnsembleConfiguration(
            analysis_category=AnalysisCategory.RISK_ASSESSMENT,
            base_weights={"a": 1.0},
            weight_bounds={"a": (0.6, 0.4)},
        )


def test_configuration_check_reports_soft_problems():
    configuration = EnsembleConfiguration(
        analysis_category=AnalysisCategory.SECURITY_ANALYSIS,
        base_weights={"a": 0.5, "b": 0.2},
        weight_bounds={"a": (0.0, 0.4), "c": (0.1, 0.3)},
    )

    check = configuration.check()

    assert check.is_valid
    assert any("sum to 0.700" in warning for warning in check.warnings)
    assert any("outside bounds" in warning for warning in check.warnings)
    assert any("unweighted validator c" in warning for warning in check.warnings)


def test_empty_configuration_is_invalid():
    check = EnsembleConfiguration(analysis_category=AnalysisCategory.RISK_ASSESSMENT).check()

    assert not check.is_valid
    assert check.errors == ["No base weights configured"]


def test_result_defaults_are_neutral():
    result = EnsembleValidationResult(analysis_category=AnalysisCategory.CAUSAL_ANALYSIS)

    assert result.ensemble_score == 0.5
    assert result.confidence == 0.1
    assert result.confidence_interval == (0.5, 0.5)


def test_result_rejects_inverted_interval():
    with pytest.raises(ValidationError):
        EnsembleValidationResult(
            analysis_category=AnalysisCategory.CAUSAL_ANALYSIS, confidence_interval=(0.8, 0.2)
        )


def test_training_example_validates_scores():
    with pytest.raises(ValidationError):
        TrainingExample(
            actual_quality_score=0.5,
            analysis_category=AnalysisCategory.PATTERN_DETECTION,
            validator_scores={"a": 1.5},
        )
