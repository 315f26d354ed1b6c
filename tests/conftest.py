"""Pytest configuration and fixtures for the ensemble scoring engine tests."""

import asyncio

import pytest

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.core.logging import configure_logging
from suggestion_ensemble.models import (
    AnalysisCategory,
    EnsembleConfiguration,
    ValidationContext,
    ValidatorResult,
    ValidatorRole,
)
from suggestion_ensemble.services import CallableValidator, ConfigurationStore, ValidatorRegistry


@pytest.fixture(scope="session", autouse=True)
def _configure_logfire():
    """Configure logfire once, without exporting anything."""
    configure_logging(send_to_logfire=False)


@pytest.fixture
def engine_settings():
    """Settings with short timeouts and inline performance updates."""
    return EngineSettings(
        validator_timeout_seconds=0.2,
        min_training_examples=10,
        background_performance_updates=False,
        configuration_path=None,
    )


@pytest.fixture
def make_validator():
    """Factory for stub validators with a fixed score, delay or failure."""

    def _make(
        validator_id: str,
        score: float = 0.8,
        confidence: float = 0.8,
        role: ValidatorRole = ValidatorRole.NEUTRAL,
        recommendations: list[str] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> CallableValidator:
        async def validate(suggestion_text: str, context: ValidationContext) -> ValidatorResult:
            if delay:
                await asyncio.sleep(delay)
            if error is not None:
                raise error
            return ValidatorResult(
                validator_id=validator_id,
                score=score,
                confidence=confidence,
                recommendations=list(recommendations or []),
            )

        return CallableValidator(validator_id, validate, role=role)

    return _make


@pytest.fixture
def category():
    return AnalysisCategory.PATTERN_DETECTION


@pytest.fixture
def equal_configuration(category):
    """Four equally weighted validators without bounds."""
    return EnsembleConfiguration(
        analysis_category=category,
        base_weights={"a": 0.25, "b": 0.25, "c": 0.25, "d": 0.25},
    )


@pytest.fixture
def store(equal_configuration):
    return ConfigurationStore({equal_configuration.analysis_category: equal_configuration})


@pytest.fixture
def registry():
    return ValidatorRegistry()
