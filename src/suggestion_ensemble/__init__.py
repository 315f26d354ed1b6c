"""Suggestion Ensemble - weighted multi-validator scoring of suggestions."""

# Note: Environment variables are automatically loaded by core/__init__.py
# before core.config reads its ENSEMBLE_* settings

from .core.config import EngineSettings
from .core.exceptions import ConfigurationMissingError, EnsembleError
from .models import (
    AnalysisCategory,
    EnsembleConfiguration,
    EnsembleValidationResult,
    TrainingExample,
    ValidationContext,
    ValidatorResult,
    ValidatorRole,
)
from .services import (
    CallableValidator,
    ConfigurationStore,
    EnsembleScoringEngine,
    ValidatorRegistry,
)

__version__ = "0.1.0"

__all__ = [
    "AnalysisCategory",
    "CallableValidator",
    "ConfigurationMissingError",
    "ConfigurationStore",
    "EngineSettings",
    "EnsembleConfiguration",
    "EnsembleError",
    "EnsembleScoringEngine",
    "EnsembleValidationResult",
    "TrainingExample",
    "ValidationContext",
    "ValidatorRegistry",
    "ValidatorResult",
    "ValidatorRole",
]
