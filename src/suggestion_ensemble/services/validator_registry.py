"""Validator capability interface and per-category registry."""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

import logfire

from suggestion_ensemble.core.exceptions import ValidatorRegistrationError
from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    ValidationContext,
    ValidatorResult,
    ValidatorRole,
)

ValidateFn = Callable[[str, ValidationContext], Awaitable[ValidatorResult]]


@runtime_checkable
class Validator(Protocol):
    """Anything that can score a suggestion independently of the other validators."""

    validator_id: str
    role: ValidatorRole

    async def validate(self, suggestion_text: str, context: ValidationContext) -> ValidatorResult:
        """Score the suggestion. Must raise rather than return out-of-range values."""
        ...


class CallableValidator:
    """Adapts a plain async function to the Validator interface."""

    def __init__(
        self,
        validator_id: str,
        func: ValidateFn,
        role: ValidatorRole = ValidatorRole.NEUTRAL,
    ):
        self.validator_id = validator_id
        self.role = role
        self._func = func

    async def validate(self, suggestion_text: str, context: ValidationContext) -> ValidatorResult:
        return await self._func(suggestion_text, context)

    def __repr__(self) -> str:
        return f"CallableValidator({self.validator_id!r}, role={self.role.value})"


class ValidatorRegistry:
    """Registry of validators keyed by analysis category and validator id.

    Adding a validator is a registration, never a change to dispatch logic.
    Iteration order is registration order.
    """

    def __init__(self) -> None:
        self._validators: dict[AnalysisCategory, dict[str, Validator]] = {}

    def register(self, category: AnalysisCategory, validator: Validator) -> None:
        """Register a validator for a category.

        Raises:
            ValidatorRegistrationError: If the object is not a validator or the id is taken
        """
        validator_id = getattr(validator, "validator_id", None)
        if not isinstance(validator, Validator) or not validator_id:
            raise ValidatorRegistrationError(
                category.value, str(validator_id), "object does not implement Validator"
            )

        by_id = self._validators.setdefault(category, {})
        if validator_id in by_id:
            raise ValidatorRegistrationError(category.value, validator_id, "already registered")

        by_id[validator_id] = validator
        logfire.debug(
            "Validator registered",
            category=category.value,
            validator_id=validator_id,
            role=validator.role.value,
        )

    def register_all(self, category: AnalysisCategory, validators: list[Validator]) -> None:
        """Register several validators for one category."""
        for validator in validators:
            self.register(category, validator)

    def unregister(self, category: AnalysisCategory, validator_id: str) -> Validator:
        """Remove and return a registered validator."""
        by_id = self._validators.get(category, {})
        if validator_id not in by_id:
            raise ValidatorRegistrationError(category.value, validator_id, "not registered")
        validator = by_id.pop(validator_id)
        if not by_id:
            self._validators.pop(category, None)
        return validator

    def validators_for(self, category: AnalysisCategory) -> tuple[Validator, ...]:
        """Validators registered for a category, in registration order."""
        return tuple(self._validators.get(category, {}).values())

    def categories(self) -> list[AnalysisCategory]:
        return list(self._validators)

    def __contains__(self, item: tuple[AnalysisCategory, str]) -> bool:
        category, validator_id = item
        return validator_id in self._validators.get(category, {})

    def __len__(self) -> int:
        return sum(len(by_id) for by_id in self._validators.values())
