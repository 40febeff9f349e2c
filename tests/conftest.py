"""Shared fixtures and reference solvers for the ADMM test suite."""

import numpy as np
import pytest
from scipy.optimize import linprog


def coordinate_descent_enet(X, y, penalty, alpha=1.0, intercept=True, tolerance=1e-12, max_sweeps=200000):
    """
    Reference coordinate-descent solver for

    (1/2n)||y - b0 - X b||^2 + λ(α||b||_1 + (1-α)/2 ||b||^2)

    Returns ``[b0, b]`` when ``intercept`` is True, otherwise ``b``.
    """
    n, p = X.shape
    if intercept:
        x_mean = X.mean(axis=0)
        y_mean = y.mean()
        Xc = X - x_mean
        yc = y - y_mean
    else:
        Xc, yc = X, y

    col_sq = np.sum(Xc ** 2, axis=0) / n
    coeffs = np.zeros(p)
    residual = yc.copy()

    for _ in range(max_sweeps):
        max_change = 0.0
        for j in range(p):
            old = coeffs[j]
            rho_j = Xc[:, j] @ residual / n + col_sq[j] * old
            new = np.sign(rho_j) * max(abs(rho_j) - penalty * alpha, 0.0) / (col_sq[j] + penalty * (1 - alpha))
            if new != old:
                residual -= Xc[:, j] * (new - old)
                coeffs[j] = new
                max_change = max(max_change, abs(new - old))
        if max_change < tolerance:
            break

    if intercept:
        return np.concatenate([[y_mean - x_mean @ coeffs], coeffs])
    return coeffs


def linprog_lad(X, y):
    """Reference LAD fit via linear programming; returns ``[b0, b]``."""
    n, p = X.shape
    A = np.hstack([np.ones((n, 1)), X])
    k = p + 1
    # variables: [b (free), t_plus, t_minus]
    c = np.concatenate([np.zeros(k), np.ones(2 * n)])
    A_eq = np.hstack([A, np.eye(n), -np.eye(n)])
    bounds = [(None, None)] * k + [(0, None)] * (2 * n)
    result = linprog(c, A_eq=A_eq, b_eq=y, bounds=bounds, method="highs")
    assert result.success
    return result.x[:k]


def linprog_basis_pursuit(X, y):
    """Reference basis pursuit solution via linear programming."""
    n, p = X.shape
    c = np.ones(2 * p)
    A_eq = np.hstack([X, -X])
    result = linprog(c, A_eq=A_eq, b_eq=y, bounds=[(0, None)] * (2 * p), method="highs")
    assert result.success
    return result.x[:p] - result.x[p:]


def sparse_signal(rng, n_features, n_nonzero, signed=False):
    """Sparse vector with ``n_nonzero`` entries drawn uniform on (0, 1)."""
    beta = np.zeros(n_features)
    support = rng.permutation(n_features)[:n_nonzero]
    values = rng.uniform(0, 1, n_nonzero)
    if signed:
        values *= rng.choice([-1.0, 1.0], n_nonzero)
    beta[support] = values
    return beta


@pytest.fixture
def regression_data():
    """n=100, p=20 regression with 5 nonzero coefficients and design N(1.2, 2^2)."""
    rng = np.random.default_rng(123)
    n, p = 100, 20
    X = rng.normal(1.2, 2.0, size=(n, p))
    beta = sparse_signal(rng, p, 5)
    y = X @ beta + rng.normal(size=n)
    return {'X': X, 'y': y, 'beta': beta}


@pytest.fixture
def underdetermined_data():
    """Noiseless n=50, p=100 system with 15 signed nonzeros."""
    rng = np.random.default_rng(2024)
    n, p = 50, 100
    X = rng.normal(size=(n, p))
    beta = sparse_signal(rng, p, 15, signed=True)
    return {'X': X, 'y': X @ beta, 'beta': beta}


@pytest.fixture
def reference_enet():
    return coordinate_descent_enet


@pytest.fixture
def reference_lad():
    return linprog_lad


@pytest.fixture
def reference_basis_pursuit():
    return linprog_basis_pursuit


@pytest.fixture
def make_sparse_signal():
    return sparse_signal
