"""Objective values, sparsity and convergence diagnostics for fitted solutions."""

from typing import Any, Dict, Optional

import numpy as np

from ..core.iterator import Solution
from ..core.problem import ModelKind, Problem


def split_intercept(problem: Problem, beta: np.ndarray):
    """Return ``(intercept, coefficients)`` from a solution-layout ``beta``."""
    beta = np.asarray(beta, dtype=np.float64)
    if problem.intercept:
        return float(beta[0]), beta[1:]
    return 0.0, beta


def objective_value(
    problem: Problem,
    beta: np.ndarray,
    penalty: Optional[float] = None,
    alpha: float = 0.5
) -> float:
    """
    Objective of ``beta`` for the problem's model.

    - Lasso: (1/2n)||y - b0 - X b||^2 + λ||b||_1
    - Elastic Net: (1/2n)||y - b0 - X b||^2 + λ(α||b||_1 + (1-α)/2 ||b||^2)
    - LAD: ||y - b0 - X b||_1
    - Basis pursuit: ||b||_1 (feasibility is not checked)
    """
    intercept, coef = split_intercept(problem, beta)
    residual = problem.y - intercept - problem.X @ coef
    kind = problem.kind

    if kind is ModelKind.LAD:
        return float(np.sum(np.abs(residual)))
    if kind is ModelKind.BASIS_PURSUIT:
        return float(np.sum(np.abs(coef)))

    if penalty is None:
        raise ValueError(f"Penalty is required for the {kind.value} objective")
    if kind is ModelKind.LASSO:
        alpha = 1.0
    data_fit = 0.5 * np.sum(residual ** 2) / problem.n_samples
    l1_penalty = alpha * penalty * np.sum(np.abs(coef))
    l2_penalty = 0.5 * (1 - alpha) * penalty * np.sum(coef ** 2)
    return float(data_fit + l1_penalty + l2_penalty)


def sparsity_analysis(signal: np.ndarray, threshold: float = 1e-6) -> Dict[str, float]:
    """Analyze sparsity properties of a coefficient vector."""
    magnitude = np.abs(np.asarray(signal))
    nonzero_count = int(np.sum(magnitude > threshold))

    # Gini coefficient (inequality measure)
    sorted_vals = np.sort(magnitude)
    n = len(sorted_vals)
    total = np.sum(sorted_vals)
    index = np.arange(1, n + 1)
    gini = (2 * np.sum(index * sorted_vals)) / (n * total) - (n + 1) / n if total > 0 else 0.0

    return {
        'l0_norm': nonzero_count,
        'l1_norm': float(np.sum(magnitude)),
        'sparsity_ratio': 1 - nonzero_count / n,
        'gini_coefficient': float(gini)
    }


def support_recovery(true_signal: np.ndarray, estimated: np.ndarray, threshold: float = 1e-6) -> Dict[str, Any]:
    """
    Compare the support and signs of an estimate with the true coefficients.

    Entries with magnitude at most ``threshold`` count as zero. A sign error is
    any index where the thresholded signs differ, so missed and spurious
    entries are sign errors too.
    """
    true_sign = np.sign(np.where(np.abs(true_signal) > threshold, true_signal, 0.0))
    est_sign = np.sign(np.where(np.abs(estimated) > threshold, estimated, 0.0))

    true_support = true_sign != 0
    est_support = est_sign != 0

    return {
        'true_positives': int(np.sum(true_support & est_support)),
        'false_positives': int(np.sum(~true_support & est_support)),
        'false_negatives': int(np.sum(true_support & ~est_support)),
        'sign_errors': int(np.sum(true_sign != est_sign)),
        'exact_support': bool(np.array_equal(true_support, est_support))
    }


def reconstruction_quality(true_signal: np.ndarray, reconstructed: np.ndarray) -> Dict[str, float]:
    """Calculate reconstruction quality metrics."""
    error = np.asarray(true_signal) - np.asarray(reconstructed)
    norm_true = np.linalg.norm(true_signal)
    return {
        'mse': float(np.mean(error ** 2)),
        'max_abs_error': float(np.max(np.abs(error))),
        'relative_error': float(np.linalg.norm(error) / norm_true) if norm_true > 0 else np.inf
    }


def convergence_summary(solution: Solution) -> Dict[str, Any]:
    """Summarize how a solve ended and how ρ evolved."""
    rho_history = np.asarray(solution.history.rho)
    rho_changes = int(np.sum(rho_history[1:] != rho_history[:-1])) if rho_history.size > 1 else 0
    return {
        'status': solution.status.value,
        'converged': solution.converged,
        'iterations': solution.iterations,
        'primal_residual': solution.primal_residual,
        'dual_residual': solution.dual_residual,
        'final_rho': solution.rho,
        'rho_changes': rho_changes,
        'degraded': solution.degraded,
        'solve_time': solution.solve_time
    }
