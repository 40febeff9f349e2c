"""
ADMM splittings for the supported models.

Each model is written as

    minimize f(x) + g(z)  subject to  A x + B z = c

- Lasso:          f = 1/2 ||y - X x||^2, g = λ ||z||_1,                    x - z = 0
- Elastic Net:    f = 1/2 ||y - X x||^2, g = λα ||z||_1 + λ(1-α)/2 ||z||^2, x - z = 0
- LAD:            f = 0,                 g = ||z||_1,                      X x + z = y
- Basis pursuit:  f = indicator{X x = y}, g = ||z||_1,                     x - z = 0

Penalized models minimise the per-sample loss (1/2n)||y - X b||^2 + λ P(b),
so the penalty seen by the splitting is n λ.

:class:`Splitting` owns the preprocessed data, knows which linear system the
x-update solves and which proximal operator realizes the z-update, and
computes residuals and stopping thresholds. It performs no iteration.
"""

from typing import Optional, Tuple

import numpy as np

from ..exceptions import InvalidConfiguration
from .factorization import FactorizationCache
from .problem import ModelKind, Options, Problem
from .proximal import elastic_net_shrink, l1_prox, project_affine, soft_threshold

# Smallest mixing used when deriving λ_max, so that a pure ridge path stays finite.
_MIN_PATH_ALPHA = 1e-3


class Splitting:
    """
    Model-specific pieces of one ADMM solve.

    Parameters
    ----------
    problem : Problem
        The regression problem.
    options : Options
        Solver options; ``alpha`` and ``standardize`` are read here.

    Attributes
    ----------
    X, y : ndarray
        Preprocessed (centred, scaled, or intercept-augmented) data seen by
        the solver.
    n_x : int
        Length of the primal variable ``x``.
    n_z : int
        Length of the split variable ``z`` (n_samples for LAD).
    system : str
        Factorization kind used by the x-update.
    """

    def __init__(self, problem: Problem, options: Options):
        self.problem = problem
        self.kind = problem.kind
        self.alpha = options.alpha if self.kind is ModelKind.ELASTIC_NET else 1.0
        self.n_samples = problem.n_samples

        X, y = problem.X, problem.y
        p = problem.n_features
        self.x_mean = np.zeros(p)
        self.y_mean = 0.0
        self.scale = np.ones(p)

        if self.kind.is_penalized:
            if problem.intercept:
                self.x_mean = X.mean(axis=0)
                self.y_mean = float(y.mean())
                X = X - self.x_mean
                y = y - self.y_mean
            if options.standardize:
                scale = np.sqrt(np.mean(X ** 2, axis=0))
                scale[scale == 0] = 1.0
                self.scale = scale
                X = X / scale
            self.system = FactorizationCache.RIDGE
        elif self.kind is ModelKind.LAD:
            if problem.intercept:
                X = np.hstack([np.ones((X.shape[0], 1)), X])
            self.system = FactorizationCache.GRAM
        else:
            self.system = FactorizationCache.PROJECTION

        self.X = np.ascontiguousarray(X)
        self.y = np.array(y, dtype=np.float64)
        self.X.flags.writeable = False
        self.y.flags.writeable = False

        self.n_x = self.X.shape[1]
        self.n_z = self.X.shape[0] if self.kind is ModelKind.LAD else self.n_x
        self.Xty = self.X.T @ self.y

    def make_cache(self, partition=None) -> FactorizationCache:
        """Fresh, unfactored cache for this splitting's x-update system."""
        return FactorizationCache(self.X, self.system, partition=partition)

    def weights(self, penalty: Optional[float]) -> Tuple[float, float]:
        """L1 and L2 weights of g, in the splitting's (unnormalised) scale."""
        if self.kind is ModelKind.LASSO:
            return self._scaled_penalty(penalty), 0.0
        if self.kind is ModelKind.ELASTIC_NET:
            lam = self._scaled_penalty(penalty)
            return lam * self.alpha, lam * (1.0 - self.alpha)
        return 1.0, 0.0

    def _scaled_penalty(self, penalty: Optional[float]) -> float:
        if penalty is None:
            raise InvalidConfiguration(f"Penalty is required for {self.kind.value}")
        return self.n_samples * float(penalty)

    def penalty_max(self) -> float:
        """Smallest penalty at which every penalized coefficient is zero."""
        if not self.kind.is_penalized:
            raise InvalidConfiguration(f"{self.kind.value} has no penalty")
        alpha = max(self.alpha, _MIN_PATH_ALPHA)
        return float(np.max(np.abs(self.Xty)) / (self.n_samples * alpha))

    # ---- ADMM steps -------------------------------------------------------

    def x_update(self, z: np.ndarray, u: np.ndarray, rho: float, cache: FactorizationCache) -> np.ndarray:
        kind = self.kind
        if kind is ModelKind.LASSO or kind is ModelKind.ELASTIC_NET:
            return cache.solve(self.Xty + rho * (z - u), rho)
        if kind is ModelKind.BASIS_PURSUIT:
            return project_affine(z - u, self.X, self.y, cache.solve)
        if kind is ModelKind.LAD:
            return cache.solve(self.X.T @ (self.y - z - u))
        raise AssertionError(f"Unhandled model kind: {kind}")

    def prox(self, v: np.ndarray, rho: float, penalty: Optional[float], copies: int = 1) -> np.ndarray:
        """
        Apply the proximal operator of ``g / (copies * rho)`` to ``v``.

        ``copies`` is the number of local variables averaged into ``v`` in the
        consensus variant; it is 1 for a sequential solve.
        """
        l1, l2 = self.weights(penalty)
        step = copies * rho
        kind = self.kind
        if kind is ModelKind.LASSO:
            return soft_threshold(v, l1 / step)
        if kind is ModelKind.ELASTIC_NET:
            return elastic_net_shrink(v, l1 / step, l2 / step)
        if kind is ModelKind.BASIS_PURSUIT or kind is ModelKind.LAD:
            return l1_prox(v, l1 / step)
        raise AssertionError(f"Unhandled model kind: {kind}")

    def z_update(self, x: np.ndarray, u: np.ndarray, rho: float, penalty: Optional[float]) -> np.ndarray:
        if self.kind is ModelKind.LAD:
            return self.prox(self.y - self.X @ x - u, rho, penalty)
        return self.prox(x + u, rho, penalty)

    def constraint_residual(self, x: np.ndarray, z: np.ndarray) -> np.ndarray:
        """Primal residual ``A x + B z - c``."""
        if self.kind is ModelKind.LAD:
            return self.X @ x + z - self.y
        return x - z

    def dual_residual(self, z: np.ndarray, z_prev: np.ndarray, rho: float) -> np.ndarray:
        """Dual residual ``rho A^T B (z - z_prev)`` (sign dropped)."""
        if self.kind is ModelKind.LAD:
            return rho * (self.X.T @ (z - z_prev))
        return rho * (z - z_prev)

    def tolerances(
        self,
        x: np.ndarray,
        z: np.ndarray,
        u: np.ndarray,
        rho: float,
        abs_tol: float,
        rel_tol: float
    ) -> Tuple[float, float]:
        """Primal and dual stopping thresholds (ε_pri, ε_dual)."""
        if self.kind is ModelKind.LAD:
            scale_pri = max(np.linalg.norm(self.X @ x), np.linalg.norm(z), np.linalg.norm(self.y))
            scale_dual = np.linalg.norm(rho * (self.X.T @ u))
        else:
            scale_pri = max(np.linalg.norm(x), np.linalg.norm(z))
            scale_dual = rho * np.linalg.norm(u)
        eps_pri = np.sqrt(self.n_z) * abs_tol + rel_tol * scale_pri
        eps_dual = np.sqrt(self.n_x) * abs_tol + rel_tol * scale_dual
        return float(eps_pri), float(eps_dual)

    # ---- coordinates --------------------------------------------------------

    def initial_state(self, beta: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Starting ``(x, z, u)``: zeros, or the solver-space image of ``beta``.

        ``beta`` uses the same layout as :attr:`Solution.beta` (intercept in
        slot 0 when the problem has one). The dual always starts at zero.
        """
        u = np.zeros(self.n_z)
        if beta is None:
            x = np.zeros(self.n_x)
            if self.kind is ModelKind.LAD:
                return x, self.y.copy(), u
            return x, np.zeros(self.n_z), u

        beta = np.asarray(beta, dtype=np.float64)
        if beta.shape != (self.problem.n_coefficients,):
            raise InvalidConfiguration(
                f"Initial beta must have shape ({self.problem.n_coefficients},), got {beta.shape}"
            )
        if not np.all(np.isfinite(beta)):
            raise InvalidConfiguration("Initial beta contains NaN or infinite values")

        if self.kind.is_penalized:
            coef = beta[1:] if self.problem.intercept else beta
            x = coef * self.scale
            return x, x.copy(), u
        if self.kind is ModelKind.LAD:
            x = beta.copy()
            return x, self.y - self.X @ x, u
        return beta.copy(), beta.copy(), u

    def to_beta(self, x: np.ndarray, z: np.ndarray) -> np.ndarray:
        """Map solver iterates back to caller coefficients."""
        if self.kind.is_penalized:
            coef = z / self.scale
            if self.problem.intercept:
                intercept = self.y_mean - float(self.x_mean @ coef)
                return np.concatenate([[intercept], coef])
            return coef
        if self.kind is ModelKind.LAD:
            return x.copy()
        return z.copy()
