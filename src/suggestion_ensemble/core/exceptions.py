"""Domain-specific exception hierarchy for the ensemble scoring engine."""

from __future__ import annotations

from typing import Any


class EnsembleError(Exception):
    """Base exception for all expected engine errors."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Serialise the error into a structured payload."""

        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationMissingError(EnsembleError):
    """Raised when no ensemble configuration exists for an analysis category."""

    def __init__(self, analysis_category: str) -> None:
        super().__init__(
            message=f"No ensemble configuration registered for '{analysis_category}'",
            error_code="CONFIGURATION_MISSING",
            details={"analysis_category": analysis_category},
        )


class InvalidConfigurationError(EnsembleError):
    """Raised when an ensemble configuration cannot be loaded or is malformed."""

    def __init__(self, reason: str, **details: Any) -> None:
        super().__init__(
            message=f"Invalid ensemble configuration: {reason}",
            error_code="INVALID_CONFIGURATION",
            details={"reason": reason, **details},
        )


class InsufficientTrainingDataError(EnsembleError):
    """Raised when weight optimization is requested with too few labeled examples."""

    def __init__(self, analysis_category: str, required: int, received: int) -> None:
        super().__init__(
            message=(
                "Insufficient training data for weight optimization. "
                f"Need at least {required} samples, got {received}"
            ),
            error_code="INSUFFICIENT_TRAINING_DATA",
            details={
                "analysis_category": analysis_category,
                "required": required,
                "received": received,
            },
        )
        self.required = required
        self.received = received


class ValidatorRegistrationError(EnsembleError):
    """Raised when a validator cannot be registered or located."""

    def __init__(self, analysis_category: str, validator_id: str, reason: str) -> None:
        super().__init__(
            message=f"Validator '{validator_id}' for '{analysis_category}': {reason}",
            error_code="VALIDATOR_REGISTRATION",
            details={
                "analysis_category": analysis_category,
                "validator_id": validator_id,
                "reason": reason,
            },
        )


class StaleConfigurationError(EnsembleError):
    """Raised when a promotion targets a configuration version that was replaced."""

    def __init__(self, analysis_category: str, expected_version: int, current_version: int) -> None:
        super().__init__(
            message=(
                f"Configuration for '{analysis_category}' changed during optimization "
                f"(expected version {expected_version}, found {current_version})"
            ),
            error_code="STALE_CONFIGURATION",
            details={
                "analysis_category": analysis_category,
                "expected_version": expected_version,
                "current_version": current_version,
            },
        )


__all__ = [
    "EnsembleError",
    "ConfigurationMissingError",
    "InvalidConfigurationError",
    "InsufficientTrainingDataError",
    "ValidatorRegistrationError",
    "StaleConfigurationError",
]
