"""Search strategies over the weight simplex for ensemble weight optimization.

Every strategy minimises the same objective: the mean absolute error between
the weighted-mean ensemble prediction and the ground-truth quality score of a
set of labeled examples. Candidate weights always lie on the simplex and,
when bounds are supplied, inside the per-validator bounds where that is
feasible.
"""

import itertools
import math
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import ConstantKernel, Matern, WhiteKernel
from sklearn.metrics import mean_absolute_error

from suggestion_ensemble.models.ensemble import OptimizationStrategy, TrainingExample

NEUTRAL_PREDICTION = 0.5


def project_to_simplex(
    weights: np.ndarray,
    lower: np.ndarray | None = None,
    upper: np.ndarray | None = None,
    iterations: int = 60,
) -> np.ndarray:
    """Euclidean projection onto ``{w : sum(w) = 1, lower <= w <= upper}``.

    Solved by bisection on the shift ``tau`` in ``clip(w - tau, lower, upper)``.
    When the bounds admit no point of the simplex, the clipped vector is
    renormalized instead.
    """
    weights = np.asarray(weights, dtype=float)
    n = weights.shape[0]
    lower = np.zeros(n) if lower is None else np.asarray(lower, dtype=float)
    upper = np.ones(n) if upper is None else np.asarray(upper, dtype=float)

    if lower.sum() > 1.0 or upper.sum() < 1.0:
        clipped = np.clip(weights, lower, upper)
        total = clipped.sum()
        return clipped / total if total > 0 else np.full(n, 1.0 / n)

    low_tau = float(np.min(weights - upper))
    high_tau = float(np.max(weights - lower))
    for _ in range(iterations):
        tau = (low_tau + high_tau) / 2
        if np.clip(weights - tau, lower, upper).sum() > 1.0:
            low_tau = tau
        else:
            high_tau = tau
    projected = np.clip(weights - (low_tau + high_tau) / 2, lower, upper)
    # Absorb the residual of the bisection so the weights sum to 1.0 exactly
    return projected / projected.sum()


@dataclass(frozen=True)
class WeightSearchProblem:
    """Labeled validator scores arranged for vectorized objective evaluation."""

    validator_ids: tuple[str, ...]
    scores: np.ndarray  # (n_examples, n_validators), NaN where a validator has no score
    targets: np.ndarray  # (n_examples,)
    lower: np.ndarray
    upper: np.ndarray

    @classmethod
    def from_examples(
        cls,
        examples: Sequence[TrainingExample],
        validator_ids: Sequence[str],
        bounds: Mapping[str, tuple[float, float]] | None = None,
    ) -> "WeightSearchProblem":
        validator_ids = tuple(validator_ids)
        scores = np.array(
            [
                [example.validator_scores.get(v, math.nan) for v in validator_ids]
                for example in examples
            ],
            dtype=float,
        ).reshape(len(examples), len(validator_ids))
        targets = np.array([example.actual_quality_score for example in examples], dtype=float)
        bounds = bounds or {}
        lower = np.array([bounds.get(v, (0.0, 1.0))[0] for v in validator_ids], dtype=float)
        upper = np.array([bounds.get(v, (0.0, 1.0))[1] for v in validator_ids], dtype=float)
        return cls(validator_ids, scores, targets, lower, upper)

    @property
    def dimension(self) -> int:
        return len(self.validator_ids)

    def subset(self, indices: Sequence[int] | np.ndarray) -> "WeightSearchProblem":
        indices = np.asarray(indices, dtype=int)
        return WeightSearchProblem(
            self.validator_ids, self.scores[indices], self.targets[indices], self.lower, self.upper
        )

    def project(self, weights: np.ndarray) -> np.ndarray:
        return project_to_simplex(weights, self.lower, self.upper)

    def to_vector(self, weights: Mapping[str, float]) -> np.ndarray:
        return np.array([weights.get(v, 0.0) for v in self.validator_ids], dtype=float)

    def to_mapping(self, weights: np.ndarray) -> dict[str, float]:
        return {v: float(w) for v, w in zip(self.validator_ids, weights, strict=True)}

    def predict(self, weight_matrix: np.ndarray) -> np.ndarray:
        """Ensemble predictions for one ``(n,)`` or several ``(k, n)`` weight vectors.

        Each prediction is the weighted mean over the validators that scored the
        example; an example no weighted validator scored predicts 0.5.
        """
        weight_matrix = np.atleast_2d(np.asarray(weight_matrix, dtype=float))
        present = ~np.isnan(self.scores)
        filled = np.where(present, self.scores, 0.0)
        numerator = filled @ weight_matrix.T
        denominator = present.astype(float) @ weight_matrix.T
        with np.errstate(divide="ignore", invalid="ignore"):
            predictions = np.where(
                denominator > 0, numerator / denominator, NEUTRAL_PREDICTION
            )
        return predictions

    def error(self, weights: np.ndarray) -> float:
        """Mean absolute error of a single weight vector."""
        return float(mean_absolute_error(self.targets, self.predict(weights)[:, 0]))

    def batch_error(self, weight_matrix: np.ndarray) -> np.ndarray:
        """Mean absolute error of each row of ``weight_matrix``."""
        predictions = self.predict(weight_matrix)
        targets = np.broadcast_to(self.targets[:, None], predictions.shape)
        return np.asarray(
            mean_absolute_error(targets, predictions, multioutput="raw_values"), dtype=float
        )

    def accuracy(self, weights: np.ndarray) -> float:
        return 1.0 - self.error(weights)


@dataclass(frozen=True)
class SearchOutcome:
    """Best weights a strategy found on the training split."""

    weights: np.ndarray
    error: float
    iterations: int


class SearchStrategy(Protocol):
    """A procedure proposing weights that minimise the problem's objective."""

    strategy: OptimizationStrategy

    def search(self, problem: WeightSearchProblem, initial: np.ndarray) -> SearchOutcome: ...


class GridSearchStrategy:
    """Exhaustive search over simplex points with step ``1 / resolution``."""

    strategy = OptimizationStrategy.GRID_SEARCH

    def __init__(self, resolution: int = 10, max_candidates: int = 50_000):
        self.resolution = resolution
        self.max_candidates = max_candidates

    def _grid(self, dimension: int) -> np.ndarray:
        resolution = self.resolution
        while (
            resolution > 1
            and math.comb(resolution + dimension - 1, dimension - 1) > self.max_candidates
        ):
            resolution -= 1

        points = []
        # stars and bars: each choice of dimension-1 separators is one composition
        for separators in itertools.combinations(range(resolution + dimension - 1), dimension - 1):
            edges = (-1, *separators, resolution + dimension - 1)
            points.append([edges[i + 1] - edges[i] - 1 for i in range(dimension)])
        return np.asarray(points, dtype=float) / resolution

    def search(self, problem: WeightSearchProblem, initial: np.ndarray) -> SearchOutcome:
        if problem.dimension == 1:
            weights = np.ones(1)
            return SearchOutcome(weights, problem.error(weights), 1)

        grid = self._grid(problem.dimension)
        tolerance = 1e-9
        feasible = np.all(
            (grid >= problem.lower - tolerance) & (grid <= problem.upper + tolerance), axis=1
        )
        if feasible.any():
            grid = grid[feasible]
        else:
            grid = np.unique(np.round(np.array([problem.project(p) for p in grid]), 9), axis=0)

        candidates = np.vstack([problem.project(initial), grid])
        errors = problem.batch_error(candidates)
        best = int(np.argmin(errors))
        return SearchOutcome(candidates[best], float(errors[best]), len(candidates))


class GradientSearchStrategy:
    """Projected descent using central finite-difference gradients."""

    strategy = OptimizationStrategy.GRADIENT_BASED

    def __init__(
        self,
        learning_rate: float = 0.1,
        max_iterations: int = 200,
        tolerance: float = 1e-6,
        epsilon: float = 1e-3,
    ):
        self.learning_rate = learning_rate
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.epsilon = epsilon

    def _gradient(self, problem: WeightSearchProblem, weights: np.ndarray) -> np.ndarray:
        eye = np.eye(problem.dimension) * self.epsilon
        forward = problem.batch_error(weights + eye)
        backward = problem.batch_error(np.clip(weights - eye, 0.0, None))
        return (forward - backward) / (2 * self.epsilon)

    def search(self, problem: WeightSearchProblem, initial: np.ndarray) -> SearchOutcome:
        weights = problem.project(initial)
        error = problem.error(weights)
        rate = self.learning_rate
        iterations = 0

        while iterations < self.max_iterations and rate > 1e-5:
            iterations += 1
            gradient = self._gradient(problem, weights)
            if not np.any(gradient):
                break
            candidate = problem.project(weights - rate * gradient)
            candidate_error = problem.error(candidate)
            if candidate_error < error - self.tolerance:
                weights, error = candidate, candidate_error
            else:
                rate /= 2

        return SearchOutcome(weights, error, iterations)


class BayesianSearchStrategy:
    """Gaussian-process surrogate search over Dirichlet-sampled weight vectors.

    Each round fits a GP to every evaluated point and evaluates the sampled
    candidate with the lowest lower-confidence bound ``mean - kappa * std``.
    """

    strategy = OptimizationStrategy.BAYESIAN_OPTIMIZATION

    def __init__(
        self,
        n_initial: int = 8,
        n_iterations: int = 20,
        n_candidates: int = 256,
        kappa: float = 1.96,
        seed: int = 42,
    ):
        self.n_initial = n_initial
        self.n_iterations = n_iterations
        self.n_candidates = n_candidates
        self.kappa = kappa
        self.seed = seed

    def _sample(
        self, problem: WeightSearchProblem, rng: np.random.Generator, size: int
    ) -> np.ndarray:
        raw = rng.dirichlet(np.ones(problem.dimension), size=size)
        return np.array([problem.project(row) for row in raw])

    def search(self, problem: WeightSearchProblem, initial: np.ndarray) -> SearchOutcome:
        rng = np.random.default_rng(self.seed)
        observed = np.vstack([problem.project(initial), self._sample(problem, rng, self.n_initial)])
        errors = problem.batch_error(observed)

        if problem.dimension > 1:
            kernel = ConstantKernel(1.0) * Matern(length_scale=0.2, nu=2.5) + WhiteKernel(1e-4)
            for _ in range(self.n_iterations):
                surrogate = GaussianProcessRegressor(
                    kernel=kernel, normalize_y=True, random_state=self.seed
                )
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore", ConvergenceWarning)
                    surrogate.fit(observed, errors)
                candidates = self._sample(problem, rng, self.n_candidates)
                mean, std = surrogate.predict(candidates, return_std=True)
                chosen = candidates[int(np.argmin(mean - self.kappa * std))]
                observed = np.vstack([observed, chosen])
                errors = np.append(errors, problem.error(chosen))

        best = int(np.argmin(errors))
        return SearchOutcome(observed[best], float(errors[best]), len(observed))


def default_strategies(seed: int = 42) -> dict[OptimizationStrategy, SearchStrategy]:
    """One instance of every strategy, in the order they are chained."""
    return {
        OptimizationStrategy.GRID_SEARCH: GridSearchStrategy(),
        OptimizationStrategy.GRADIENT_BASED: GradientSearchStrategy(),
        OptimizationStrategy.BAYESIAN_OPTIMIZATION: BayesianSearchStrategy(seed=seed),
    }
