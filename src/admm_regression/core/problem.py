"""
Problem and option objects shared by every ADMM entry point.

A :class:`Problem` bundles the data (design matrix and response) with the
model kind; :class:`Options` carries the penalty and solver settings. Both are
validated once, on construction, and are immutable afterwards so that a solve
is a pure function of its inputs.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ..exceptions import InvalidConfiguration


class ModelKind(Enum):
    """Closed set of models the solvers know how to split."""

    LASSO = "lasso"
    ELASTIC_NET = "elastic_net"
    LAD = "lad"
    BASIS_PURSUIT = "basis_pursuit"

    @classmethod
    def coerce(cls, value: Union["ModelKind", str]) -> "ModelKind":
        """Accept either a member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise InvalidConfiguration(f"Unknown model kind '{value}' (expected one of: {valid})") from None

    @property
    def is_penalized(self) -> bool:
        """True for the models that take a penalty (and therefore have a path)."""
        return self in (ModelKind.LASSO, ModelKind.ELASTIC_NET)


class Problem:
    """
    Immutable regression problem.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        Dense design matrix with finite entries.
    y : array-like of shape (n_samples,)
        Response vector with finite entries.
    kind : ModelKind or str, default="lasso"
        Which model to fit.
    intercept : bool, default=False
        Whether to fit an unpenalized intercept. The intercept is reported in
        slot 0 of the solution's ``beta``. Basis pursuit has no intercept.

    Notes
    -----
    The arrays are copied to float64 and marked read-only, so neither the
    caller's arrays nor the problem's own copies can be mutated by a solve.
    """

    def __init__(
        self,
        X: np.ndarray,
        y: np.ndarray,
        kind: Union[ModelKind, str] = ModelKind.LASSO,
        intercept: bool = False
    ):
        self._kind = ModelKind.coerce(kind)
        self._intercept = bool(intercept)
        self._X, self._y = self._validate_inputs(X, y)

        if self._kind is ModelKind.BASIS_PURSUIT and self._intercept:
            raise InvalidConfiguration("Basis pursuit does not support an intercept")

    @staticmethod
    def _validate_inputs(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Validate and copy inputs into read-only float arrays."""
        try:
            X = np.array(X, dtype=np.float64)
            y = np.array(y, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"X and y must be numeric arrays: {exc}") from exc

        if X.ndim != 2:
            raise InvalidConfiguration("X must be a 2D array")
        if y.ndim != 1:
            raise InvalidConfiguration("y must be a 1D array")
        if X.shape[0] != len(y):
            raise InvalidConfiguration("Number of samples in X and y must match")
        if X.shape[0] == 0 or X.shape[1] == 0:
            raise InvalidConfiguration("Empty input data")

        if not np.all(np.isfinite(X)):
            raise InvalidConfiguration("X contains NaN or infinite values")
        if not np.all(np.isfinite(y)):
            raise InvalidConfiguration("y contains NaN or infinite values")

        X.flags.writeable = False
        y.flags.writeable = False
        return X, y

    @property
    def X(self) -> np.ndarray:
        return self._X

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def kind(self) -> ModelKind:
        return self._kind

    @property
    def intercept(self) -> bool:
        return self._intercept

    @property
    def n_samples(self) -> int:
        return self._X.shape[0]

    @property
    def n_features(self) -> int:
        return self._X.shape[1]

    @property
    def n_coefficients(self) -> int:
        """Length of ``beta`` in a solution, intercept slot included."""
        return self.n_features + int(self._intercept)

    def __repr__(self) -> str:
        return (f"Problem(kind={self._kind.value}, n_samples={self.n_samples}, "
                f"n_features={self.n_features}, intercept={self._intercept})")


PenaltyLike = Union[None, float, Sequence[float], np.ndarray]


@dataclass(frozen=True)
class Options:
    """
    Immutable solver configuration.

    Parameters
    ----------
    penalty : float or sequence of float, optional
        Regularization strength (λ). A single value for :func:`solve` and
        :func:`solve_parallel`, a sequence for :func:`solve_path`. Ignored by
        LAD and basis pursuit.
    alpha : float, default=0.5
        Elastic-net mixing: 1.0 is pure L1, 0.0 pure L2.
    rho : float, default=1.0
        Initial augmented-Lagrangian parameter.
    abs_tol, rel_tol : float
        Absolute and relative tolerances of the residual stopping rule.
    max_iter : int, default=1000
        Iteration cap; reaching it is reported, not raised.
    num_blocks : int, default=1
        Number of row blocks used by :func:`solve_parallel`.
    num_workers : int, optional
        Thread count for the block updates (defaults to ``num_blocks``).
    adaptive_rho : bool, default=True
        Rebalance ρ when one residual dominates the other.
    rho_mu, rho_tau : float
        Imbalance factor that triggers an update and the multiplicative step.
    rho_update_limit : int, default=50
        Maximum number of ρ changes within one solve. ρ is held fixed once
        the limit is reached.
    n_penalties : int, default=100
        Length of a derived penalty grid.
    penalty_min_ratio : float, optional
        Smallest derived penalty as a fraction of λ_max. Defaults to 1e-4 when
        there are more samples than features and 1e-3 otherwise.
    standardize : bool, default=False
        Divide each feature by its root-mean-square before fitting a penalized
        model. With an intercept the features are centred first, so this is
        unit variance.
    timeout : float, optional
        Wall-clock budget in seconds, checked at iteration boundaries.
    reseed_on_failure : bool, default=True
        Restart the next path point from zero after a numerical failure.
    verbose : bool, default=False
        Print progress every 100 iterations.
    """

    penalty: PenaltyLike = None
    alpha: float = 0.5
    rho: float = 1.0
    abs_tol: float = 1e-4
    rel_tol: float = 1e-2
    max_iter: int = 1000
    num_blocks: int = 1
    num_workers: Optional[int] = None
    adaptive_rho: bool = True
    rho_mu: float = 10.0
    rho_tau: float = 2.0
    rho_update_limit: int = 50
    n_penalties: int = 100
    penalty_min_ratio: Optional[float] = None
    standardize: bool = False
    timeout: Optional[float] = None
    reseed_on_failure: bool = True
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, "penalty", self._normalize_penalty(self.penalty))
        self._validate_parameters()

    @staticmethod
    def _normalize_penalty(penalty: PenaltyLike) -> Union[None, float, Tuple[float, ...]]:
        if penalty is None:
            return None
        try:
            values = np.asarray(penalty, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"Penalty must be numeric: {exc}") from exc
        if values.ndim == 0:
            return float(values)
        if values.ndim != 1 or values.size == 0:
            raise InvalidConfiguration("Penalty sequence must be a non-empty 1D sequence")
        return tuple(float(v) for v in values)

    def _validate_parameters(self) -> None:
        """Validate every field; raises InvalidConfiguration on the first problem found."""
        if self.penalty is not None:
            values = np.atleast_1d(self.penalty)
            if not np.all(np.isfinite(values)) or np.any(values <= 0):
                raise InvalidConfiguration("Penalty must be positive")
        if not np.isfinite(self.alpha) or not 0 <= self.alpha <= 1:
            raise InvalidConfiguration("Alpha must be between 0 and 1")
        if not np.isfinite(self.rho) or self.rho <= 0:
            raise InvalidConfiguration("Rho must be positive")
        if not (np.isfinite(self.abs_tol) and np.isfinite(self.rel_tol)) \
                or self.abs_tol <= 0 or self.rel_tol <= 0:
            raise InvalidConfiguration("Tolerances must be positive")
        if not _is_integer(self.max_iter) or self.max_iter <= 0:
            raise InvalidConfiguration("Max iterations must be a positive integer")
        if not _is_integer(self.num_blocks) or self.num_blocks < 1:
            raise InvalidConfiguration("Number of blocks must be at least 1")
        if self.num_workers is not None and (not _is_integer(self.num_workers) or self.num_workers < 1):
            raise InvalidConfiguration("Number of workers must be at least 1")
        if not (np.isfinite(self.rho_mu) and np.isfinite(self.rho_tau)) \
                or self.rho_mu <= 1 or self.rho_tau <= 1:
            raise InvalidConfiguration("Rho adaptation factors must be greater than 1")
        if not _is_integer(self.rho_update_limit) or self.rho_update_limit < 0:
            raise InvalidConfiguration("Rho update limit must be a non-negative integer")
        if not _is_integer(self.n_penalties) or self.n_penalties < 1:
            raise InvalidConfiguration("Number of penalties must be at least 1")
        if self.penalty_min_ratio is not None and not 0 < self.penalty_min_ratio < 1:
            raise InvalidConfiguration("Penalty min ratio must be in (0, 1)")
        if self.timeout is not None and (not np.isfinite(self.timeout) or self.timeout <= 0):
            raise InvalidConfiguration("Timeout must be positive")

    @property
    def is_sequence(self) -> bool:
        """True when ``penalty`` holds a sequence rather than a single value."""
        return isinstance(self.penalty, tuple)

    def replace(self, **changes) -> "Options":
        """Return a validated copy with some fields changed."""
        return dataclasses.replace(self, **changes)


def _is_integer(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)
