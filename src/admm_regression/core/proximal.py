"""
Proximal operators used by the ADMM z-updates.

All functions are pure: they never modify their inputs and keep no state.
Each is the identity at threshold zero and shrinks magnitudes monotonically
as the threshold grows.
"""

from typing import Callable

import numpy as np

from ..exceptions import InvalidConfiguration


def soft_threshold(v: np.ndarray, kappa: float) -> np.ndarray:
    """
    Elementwise soft-thresholding, the proximal operator of ``kappa * ||.||_1``.

    sign(v) * max(|v| - kappa, 0)

    Parameters
    ----------
    v : array-like
        Input vector.
    kappa : float
        Non-negative threshold.

    Returns
    -------
    ndarray
        Thresholded vector; each entry has the sign of ``v`` or is exactly zero.
    """
    if kappa < 0:
        raise InvalidConfiguration("Threshold must be non-negative")
    v = np.asarray(v, dtype=np.float64)
    return np.sign(v) * np.maximum(np.abs(v) - kappa, 0.0)


def elastic_net_shrink(v: np.ndarray, l1: float, l2: float) -> np.ndarray:
    """
    Proximal operator of ``l1 * ||.||_1 + (l2 / 2) * ||.||_2^2``.

    With ``l1 = λα/ρ`` and ``l2 = λ(1-α)/ρ`` this is the elastic-net z-update
    soft_threshold(v, λα/ρ) / (1 + λ(1-α)/ρ).
    """
    if l2 < 0:
        raise InvalidConfiguration("L2 weight must be non-negative")
    return soft_threshold(v, l1) / (1.0 + l2)


def l1_prox(v: np.ndarray, kappa: float) -> np.ndarray:
    """Proximal operator of ``kappa * ||.||_1`` (basis pursuit and LAD residuals)."""
    return soft_threshold(v, kappa)


def project_affine(
    v: np.ndarray,
    X: np.ndarray,
    y: np.ndarray,
    solve: Callable[[np.ndarray], np.ndarray]
) -> np.ndarray:
    """
    Euclidean projection of ``v`` onto ``{x : X x = y}``.

    v - X^T (X X^T)^{-1} (X v - y)

    ``solve`` must apply ``(X X^T)^{-1}``, typically a cached Cholesky solve.
    """
    return v - X.T @ solve(X @ v - y)
