"""
Regularization path driver.

Solves a penalized model for a sequence of penalty values, warm-starting each
solve from the previous one and handing over the factorization cache, which
is only refactored when ρ changed in between.

References
----------
.. [1] Friedman, J., Hastie, T., & Tibshirani, R. (2010). Regularization paths for
       generalized linear models via coordinate descent. Journal of Statistical
       Software, 33(1), 1-22.
"""

import warnings
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import numpy as np

from ..exceptions import InvalidConfiguration
from .formulation import Splitting
from .iterator import ADMMIterator, Solution, SolverState, SolverStatus
from .problem import Options, Problem


@dataclass
class PathResult:
    """Solutions along a penalty sequence, in the order the penalties were given."""

    penalties: np.ndarray
    solutions: List[Solution] = field(default_factory=list)

    @property
    def coefficients(self) -> np.ndarray:
        """Stacked ``beta`` vectors, shape (n_penalties, n_coefficients)."""
        return np.vstack([solution.beta for solution in self.solutions])

    @property
    def converged(self) -> np.ndarray:
        return np.array([solution.converged for solution in self.solutions])

    @property
    def iterations(self) -> np.ndarray:
        return np.array([solution.iterations for solution in self.solutions])

    def __len__(self) -> int:
        return len(self.solutions)

    def __iter__(self) -> Iterator[Solution]:
        return iter(self.solutions)

    def __getitem__(self, index: int) -> Solution:
        return self.solutions[index]


def penalty_max(problem: Problem, options: Options) -> float:
    """
    Smallest penalty for which all penalized coefficients are zero.

    For the Lasso this is ``||X^T y||_inf / n`` (on centred data when the
    problem has an intercept); the elastic net divides by ``alpha``.
    """
    return Splitting(problem, options).penalty_max()


def penalty_sequence(problem: Problem, options: Options) -> np.ndarray:
    """
    Penalties to solve for: the supplied ones, or a geometric grid.

    The derived grid has ``options.n_penalties`` values from λ_max down to
    ``penalty_min_ratio * λ_max``.
    """
    if options.penalty is not None:
        return np.atleast_1d(np.asarray(options.penalty, dtype=np.float64))

    lam_max = penalty_max(problem, options)
    if lam_max <= 0:
        raise InvalidConfiguration("Cannot derive a penalty sequence: X^T y is zero")

    ratio = options.penalty_min_ratio
    if ratio is None:
        ratio = 1e-4 if problem.n_samples > problem.n_features else 1e-3
    if options.n_penalties == 1:
        return np.array([lam_max])
    return np.geomspace(lam_max, lam_max * ratio, options.n_penalties)


def solve_path(problem: Problem, options: Options, initial_beta: Optional[np.ndarray] = None) -> PathResult:
    """
    Solve a penalized model along a sequence of penalties.

    Parameters
    ----------
    problem : Problem
        Lasso or elastic-net problem.
    options : Options
        ``penalty`` may be a sequence, a single value, or None to derive a
        grid from λ_max.
    initial_beta : ndarray, optional
        Starting point of the first solve.

    Returns
    -------
    PathResult
        One solution per penalty, in input order.

    Raises
    ------
    InvalidConfiguration
        For models without a penalty.
    """
    if not problem.kind.is_penalized:
        raise InvalidConfiguration(f"Regularization paths are not defined for {problem.kind.value}")

    splitting = Splitting(problem, options)
    penalties = penalty_sequence(problem, options)
    if np.any(np.diff(penalties) > 0):
        warnings.warn("Penalties are not in decreasing order; warm starts will be less effective")

    state = SolverState(*splitting.initial_state(initial_beta), rho=options.rho)
    cache = splitting.make_cache()
    result = PathResult(penalties=penalties)

    for penalty in penalties:
        solution = ADMMIterator(splitting, options, float(penalty), state, cache).run()
        result.solutions.append(solution)

        if solution.status is SolverStatus.NUMERICAL_FAILURE and options.reseed_on_failure:
            state = SolverState(*splitting.initial_state(), rho=options.rho)
            cache = splitting.make_cache()
        else:
            state = solution.state.warm_copy()

        if options.verbose:
            print(f"Penalty {penalty:.4g}: {solution.status.value} after {solution.iterations} iterations")

    return result
