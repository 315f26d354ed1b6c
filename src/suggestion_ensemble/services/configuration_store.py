"""Copy-on-write store of per-category ensemble configurations."""

import asyncio
import json
from collections import deque
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

import logfire
from pydantic import ValidationError

from suggestion_ensemble.core.config import EngineSettings, default_ensemble_configurations
from suggestion_ensemble.core.exceptions import (
    ConfigurationMissingError,
    InvalidConfigurationError,
    StaleConfigurationError,
)
from suggestion_ensemble.models.ensemble import (
    AnalysisCategory,
    EnsembleConfiguration,
    WeightOptimizationRecord,
)


class ConfigurationStore:
    """Holds the active ensemble configuration for every analysis category.

    The whole category map is an immutable snapshot. Readers take the current
    snapshot without locking; writers build a new map and swap it in under a
    lock, so a reader never observes a partially updated weight set.
    """

    def __init__(
        self,
        configurations: Mapping[AnalysisCategory, EnsembleConfiguration] | None = None,
        history_limit: int = 50,
    ):
        self._snapshot: Mapping[AnalysisCategory, EnsembleConfiguration] = MappingProxyType(
            dict(configurations or {})
        )
        self._write_lock = asyncio.Lock()
        self._history_limit = history_limit
        self._history: dict[AnalysisCategory, deque[WeightOptimizationRecord]] = {}

    @classmethod
    def from_defaults(cls, history_limit: int = 50) -> "ConfigurationStore":
        return cls(default_ensemble_configurations(), history_limit=history_limit)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], history_limit: int = 50) -> "ConfigurationStore":
        """Build a store from ``{category: configuration-dict}`` data.

        Raises:
            InvalidConfigurationError: If a category or configuration is malformed
        """
        configurations: dict[AnalysisCategory, EnsembleConfiguration] = {}
        for key, raw in data.items():
            try:
                category = AnalysisCategory(key)
                configurations[category] = EnsembleConfiguration.model_validate(
                    {**raw, "analysis_category": category}
                )
            except (TypeError, ValueError) as e:
                # pydantic.ValidationError is a ValueError subclass
                detail = e.errors()[0]["msg"] if isinstance(e, ValidationError) else str(e)
                raise InvalidConfigurationError(detail, analysis_category=key) from e
        return cls(configurations, history_limit=history_limit)

    @classmethod
    def from_file(cls, path: str | Path, history_limit: int = 50) -> "ConfigurationStore":
        """Load configurations from a JSON file."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise InvalidConfigurationError(f"cannot read {path}: {e}", path=str(path)) from e
        if not isinstance(data, dict):
            raise InvalidConfigurationError(
                "top-level JSON value must be an object", path=str(path)
            )
        logfire.info("Loaded ensemble configurations", path=str(path), categories=list(data))
        return cls.from_mapping(data, history_limit=history_limit)

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "ConfigurationStore":
        """Load from ``settings.configuration_path`` when set, otherwise use the defaults."""
        if settings.configuration_path:
            return cls.from_file(
                settings.configuration_path, history_limit=settings.optimization_history_limit
            )
        return cls.from_defaults(history_limit=settings.optimization_history_limit)

    def snapshot(self) -> Mapping[AnalysisCategory, EnsembleConfiguration]:
        """Current immutable map of every configuration."""
        return self._snapshot

    def get(self, category: AnalysisCategory) -> EnsembleConfiguration:
        """Active configuration for a category.

        Raises:
            ConfigurationMissingError: If the category has no configuration
        """
        configuration = self._snapshot.get(category)
        if configuration is None:
            raise ConfigurationMissingError(category.value)
        return configuration

    def __contains__(self, category: AnalysisCategory) -> bool:
        return category in self._snapshot

    def categories(self) -> list[AnalysisCategory]:
        return list(self._snapshot)

    async def put(self, configuration: EnsembleConfiguration) -> None:
        """Install or replace a configuration (setup path)."""
        async with self._write_lock:
            updated = dict(self._snapshot)
            updated[configuration.analysis_category] = configuration
            self._snapshot = MappingProxyType(updated)

    async def promote(
        self,
        category: AnalysisCategory,
        weights: Mapping[str, float],
        *,
        expected_version: int,
        method: str,
        improvement: float,
        sample_size: int,
    ) -> EnsembleConfiguration:
        """Atomically replace a category's base weights.

        Raises:
            ConfigurationMissingError: If the category has no configuration
            StaleConfigurationError: If the configuration changed since ``expected_version``
        """
        async with self._write_lock:
            current = self.get(category)
            if current.version != expected_version:
                raise StaleConfigurationError(category.value, expected_version, current.version)

            promoted = current.model_copy(
                update={
                    "base_weights": dict(weights),
                    "last_updated": datetime.now(UTC),
                    "version": current.version + 1,
                }
            )
            updated = dict(self._snapshot)
            updated[category] = promoted
            self._snapshot = MappingProxyType(updated)

            self._history.setdefault(category, deque(maxlen=self._history_limit)).append(
                WeightOptimizationRecord(
                    previous_weights=dict(current.base_weights),
                    new_weights=dict(weights),
                    performance_improvement=improvement,
                    optimization_method=method,
                    sample_size=sample_size,
                    version=promoted.version,
                )
            )

        logfire.info(
            "Ensemble weights promoted",
            category=category.value,
            version=promoted.version,
            method=method,
            improvement=improvement,
        )
        return promoted

    def history(self, category: AnalysisCategory) -> list[WeightOptimizationRecord]:
        """Promotion records for a category, oldest first."""
        return list(self._history.get(category, ()))
