"""
Cached Cholesky factorizations for the ADMM x-update.

The x-update of every splitting solves a symmetric positive (semi)definite
system built from the design matrix. Factoring it is the dominant cost of a
solve, so the factor is computed once per ``(rho, partition)`` key and reused
until either changes.
"""

import warnings
from typing import Hashable, Optional, Tuple

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from ..exceptions import NumericalDegradationWarning, NumericalFailure

# Squared ratio of the smallest to largest Cholesky diagonal below which a
# factor is treated as numerically singular.
_MIN_RCOND = 1e-12
_RIDGE_SCALE = 1e-10
_RIDGE_GROWTH = 100.0
_MAX_RIDGE_ATTEMPTS = 6


class FactorizationCache:
    """
    Lazily (re)built Cholesky factor of the x-update system.

    Three system kinds are supported:

    - ``"ridge"``: ``X^T X + rho I``. When the matrix is wide (p > n) the
      n x n matrix ``rho I + X X^T`` is factored instead and solves go through
      the matrix-inversion lemma
      ``(X^T X + rho I)^{-1} b = (b - X^T (rho I + X X^T)^{-1} X b) / rho``.
    - ``"gram"``: ``X^T X`` (LAD least-squares step, independent of rho).
    - ``"projection"``: ``X X^T`` (basis-pursuit affine projection,
      independent of rho).

    Parameters
    ----------
    X : ndarray of shape (n, p), optional
        Design matrix (or one row block of it). May be omitted for the
        ``"gram"`` system when ``gram`` is given.
    system : {"ridge", "gram", "projection"}
        Which system to factor.
    partition : hashable, optional
        Identifies the row block the cache belongs to; part of the cache key.
    gram : ndarray of shape (p, p), optional
        Precomputed ``X^T X``, used instead of forming it from ``X``.

    Attributes
    ----------
    degraded : bool
        True once a ridge term had to be added to obtain a usable factor.
    n_factorizations : int
        Number of factorizations performed so far.
    """

    RIDGE = "ridge"
    GRAM = "gram"
    PROJECTION = "projection"

    def __init__(
        self,
        X: Optional[np.ndarray],
        system: str,
        partition: Hashable = None,
        gram: Optional[np.ndarray] = None
    ):
        if system not in (self.RIDGE, self.GRAM, self.PROJECTION):
            raise ValueError(f"Unknown system kind: {system}")
        if X is None and (system != self.GRAM or gram is None):
            raise ValueError("X is required unless a Gram matrix is supplied for the 'gram' system")

        self.X = X
        self.system = system
        self.partition = partition
        self._gram = gram

        self._key: Optional[Tuple] = None
        self._factor = None
        self.degraded = False
        self.n_factorizations = 0

    @property
    def depends_on_rho(self) -> bool:
        return self.system == self.RIDGE

    @property
    def wide(self) -> bool:
        """True when the inversion-lemma form is used (more columns than rows)."""
        return self.system == self.RIDGE and self.X.shape[1] > self.X.shape[0]

    def key_for(self, rho: Optional[float]) -> Tuple:
        return (float(rho) if self.depends_on_rho else None, self.partition)

    def is_valid(self, rho: Optional[float] = None) -> bool:
        return self._factor is not None and self._key == self.key_for(rho)

    def invalidate(self) -> None:
        self._key = None
        self._factor = None

    def ensure(self, rho: Optional[float] = None) -> None:
        """Factor the system for ``rho`` unless a valid factor is cached."""
        if self.depends_on_rho and (rho is None or rho <= 0):
            raise ValueError("Rho must be positive for the ridge system")
        if not self.is_valid(rho):
            self._factor = self._cholesky(self._build_matrix(rho))
            self._key = self.key_for(rho)
            self.n_factorizations += 1

    def solve(self, rhs: np.ndarray, rho: Optional[float] = None) -> np.ndarray:
        """
        Solve the cached system for ``rhs``.

        Refactors first if the cached factor was built for another ``rho``.
        For the ridge system ``rhs`` has length p; for ``"projection"`` it has
        length n; for ``"gram"`` it has length p.
        """
        self.ensure(rho)
        if self.wide:
            X = self.X
            return (rhs - X.T @ cho_solve(self._factor, X @ rhs, check_finite=False)) / rho
        return cho_solve(self._factor, rhs, check_finite=False)

    def _build_matrix(self, rho: Optional[float]) -> np.ndarray:
        if self.system == self.PROJECTION:
            return self.X @ self.X.T
        if self.system == self.GRAM:
            return self._gram if self._gram is not None else self.X.T @ self.X
        if self.wide:
            matrix = self.X @ self.X.T
        else:
            matrix = self._gram.copy() if self._gram is not None else self.X.T @ self.X
        matrix[np.diag_indices_from(matrix)] += rho
        return matrix

    def _cholesky(self, matrix: np.ndarray):
        """Cholesky factor with a growing ridge fallback for near-singular systems."""
        if not np.all(np.isfinite(matrix)):
            raise NumericalFailure("System matrix contains NaN or infinite values")

        dim = matrix.shape[0]
        scale = np.trace(matrix) / dim
        if scale <= 0:
            scale = 1.0

        ridge = 0.0
        for _ in range(_MAX_RIDGE_ATTEMPTS + 1):
            shifted = matrix if ridge == 0.0 else matrix + ridge * np.eye(dim)
            try:
                factor = cho_factor(shifted, lower=True, check_finite=False)
            except LinAlgError:
                factor = None

            if factor is not None and self._well_conditioned(factor[0]):
                if ridge > 0.0:
                    self.degraded = True
                    warnings.warn(
                        f"{self.system} system is numerically singular; "
                        f"added ridge {ridge:.3e} to factor it",
                        NumericalDegradationWarning,
                        stacklevel=3
                    )
                return factor

            ridge = scale * _RIDGE_SCALE if ridge == 0.0 else ridge * _RIDGE_GROWTH

        raise NumericalFailure(f"Could not factor the {self.system} system even with ridge {ridge:.3e}")

    @staticmethod
    def _well_conditioned(lower: np.ndarray) -> bool:
        diag = np.diag(lower)
        if not np.all(np.isfinite(lower)) or np.any(diag <= 0):
            return False
        return (diag.min() / diag.max()) ** 2 >= _MIN_RCOND

    def __repr__(self) -> str:
        return (f"FactorizationCache(system={self.system}, wide={self.wide}, "
                f"key={self._key}, degraded={self.degraded})")
