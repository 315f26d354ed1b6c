"""Services making up the ensemble scoring engine."""

from .configuration_store import ConfigurationStore
from .ensemble_engine import EnsembleScoringEngine
from .performance_tracker import PerformanceTracker
from .reporting import PerformanceReporter
from .score_aggregator import AggregateScore, ScoreAggregator
from .validator_adapter import ValidatorAdapter
from .validator_registry import CallableValidator, Validator, ValidatorRegistry
from .weight_calculator import WeightCalculator, WeightFactors
from .weight_optimizer import WeightOptimizer

__all__ = [
    "AggregateScore",
    "CallableValidator",
    "ConfigurationStore",
    "EnsembleScoringEngine",
    "PerformanceReporter",
    "PerformanceTracker",
    "ScoreAggregator",
    "Validator",
    "ValidatorAdapter",
    "ValidatorRegistry",
    "WeightCalculator",
    "WeightFactors",
    "WeightOptimizer",
]
