"""Concurrent fan-out of a suggestion to every registered validator."""

import asyncio
import time
from typing import Any

import logfire
from pydantic import ValidationError

from suggestion_ensemble.core.config import EngineSettings
from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    ValidationContext,
    ValidatorResult,
)
from suggestion_ensemble.services.validator_registry import Validator, ValidatorRegistry

FALLBACK_SCORE = 0.5
FALLBACK_CONFIDENCE = 0.1


def fallback_result(validator: Validator, reason: str, elapsed: float = 0.0) -> ValidatorResult:
    """Neutral result substituted for a validator that failed or timed out."""
    return ValidatorResult(
        validator_id=validator.validator_id,
        score=FALLBACK_SCORE,
        confidence=FALLBACK_CONFIDENCE,
        role=validator.role,
        error=reason,
        processing_time_seconds=elapsed,
    )


class ValidatorAdapter:
    """Invokes every validator of a category concurrently and isolates failures.

    Each validator runs as its own branch of a task group. A branch always
    settles to a result: either the validator's own or a fallback. Siblings
    are never cancelled because one branch failed or was slow.
    """

    def __init__(self, registry: ValidatorRegistry, settings: EngineSettings):
        """Initialize validator adapter.

        Args:
            registry: Registry holding validators per analysis category
            settings: Engine settings (timeout and concurrency limits)
        """
        self.registry = registry
        self.settings = settings
        self.metrics = {
            "validator_calls": 0,
            "validator_failures": 0,
            "validator_timeouts": 0,
            "total_execution_time": 0.0,
        }
        self.logger = logfire

    async def collect(
        self,
        suggestion_text: str,
        context: ValidationContext,
        category: AnalysisCategory,
    ) -> dict[str, ValidatorResult]:
        """Collect one result per registered validator.

        Args:
            suggestion_text: Suggestion to score
            context: Validation context passed through to validators
            category: Analysis category selecting the validators

        Returns:
            Results keyed by validator id, in registration order
        """
        validators = self.registry.validators_for(category)
        if not validators:
            self.logger.warning("No validators registered", category=category.value)
            return {}

        # The concurrency limit applies per scoring call, not across concurrent calls
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_validators)
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(
                    self._run_validator(validator, suggestion_text, context, category, semaphore),
                    name=f"validator:{validator.validator_id}",
                )
                for validator in validators
            ]

        return {task.result().validator_id: task.result() for task in tasks}

    async def _run_validator(
        self,
        validator: Validator,
        suggestion_text: str,
        context: ValidationContext,
        category: AnalysisCategory,
        semaphore: asyncio.Semaphore,
    ) -> ValidatorResult:
        """Run a single validator; never raises except when the call itself is cancelled."""
        async with semaphore:
            self.metrics["validator_calls"] += 1
            start_time = time.perf_counter()
            try:
                result = await asyncio.wait_for(
                    validator.validate(suggestion_text, context),
                    timeout=self.settings.validator_timeout_seconds,
                )
                result = self._normalize_result(validator, result)
            except TimeoutError:
                elapsed = time.perf_counter() - start_time
                self.metrics["validator_timeouts"] += 1
                self.metrics["validator_failures"] += 1
                reason = (
                    f"Validator timed out after {self.settings.validator_timeout_seconds}s"
                )
                self.logger.warning(
                    "Validator timed out",
                    validator_id=validator.validator_id,
                    category=category.value,
                    timeout=self.settings.validator_timeout_seconds,
                )
                return fallback_result(validator, reason, elapsed)
            except asyncio.CancelledError as e:
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    raise
                # Raised by the validator itself; the scoring call is still live
                return self._failure(validator, category, e, start_time)
            except Exception as e:
                return self._failure(validator, category, e, start_time)

            elapsed = time.perf_counter() - start_time
            self.metrics["total_execution_time"] += elapsed
            return result.model_copy(update={"processing_time_seconds": elapsed})

    def _failure(
        self,
        validator: Validator,
        category: AnalysisCategory,
        error: BaseException,
        start_time: float,
    ) -> ValidatorResult:
        elapsed = time.perf_counter() - start_time
        self.metrics["validator_failures"] += 1
        reason = f"{type(error).__name__}: {error}"
        self.logger.warning(
            "Validator failed",
            validator_id=validator.validator_id,
            category=category.value,
            error=reason,
        )
        return fallback_result(validator, reason, elapsed)

    def _normalize_result(self, validator: Validator, result: Any) -> ValidatorResult:
        """Re-key a returned result to the registered id and role.

        Raises:
            TypeError: If the validator returned something other than a result
            ValueError: If the returned result violates the score/confidence ranges
        """
        if not isinstance(result, ValidatorResult):
            raise TypeError(f"expected ValidatorResult, got {type(result).__name__}")
        try:
            # Re-validate: model_construct or attribute mutation can bypass field checks
            return ValidatorResult.model_validate(
                {
                    **result.model_dump(),
                    "validator_id": validator.validator_id,
                    "role": validator.role,
                }
            )
        except ValidationError as e:
            raise ValueError(f"invalid validator result: {e.errors()[0]['msg']}") from e

    def get_metrics(self) -> dict[str, Any]:
        """Get execution metrics.

        Returns:
            Dictionary of metrics
        """
        succeeded = self.metrics["validator_calls"] - self.metrics["validator_failures"]
        return {
            **self.metrics,
            "avg_execution_time": self.metrics["total_execution_time"] / max(succeeded, 1),
        }
