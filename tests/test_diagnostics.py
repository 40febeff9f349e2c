"""
Unit tests for objective and convergence diagnostics.
"""

import pytest
import numpy as np

from admm_regression import Options, Problem, solve
from admm_regression.utils.diagnostics import (
    convergence_summary,
    objective_value,
    reconstruction_quality,
    sparsity_analysis,
    split_intercept,
    support_recovery,
)


class TestObjectiveValue:
    """Test suite for objective_value."""

    @pytest.fixture
    def small_data(self):
        X = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        y = np.array([1.0, 2.0, 4.0])
        return X, y

    def test_lasso(self, small_data):
        problem = Problem(*small_data, intercept=True)
        beta = np.array([0.5, 1.0, 2.0])
        # residuals: [1 - 1.5, 2 - 2.5, 4 - 3.5] = [-0.5, -0.5, 0.5]
        expected = 0.5 * 0.75 / 3 + 0.1 * 3.0
        assert objective_value(problem, beta, penalty=0.1) == pytest.approx(expected)

    def test_elastic_net(self, small_data):
        problem = Problem(*small_data, kind="elastic_net")
        beta = np.array([1.0, 2.0])
        residual = np.array([0.0, 0.0, 1.0])
        expected = 0.5 * residual @ residual / 3 + 0.2 * (0.25 * 3.0 + 0.5 * 0.75 * 5.0)
        assert objective_value(problem, beta, penalty=0.2, alpha=0.25) == pytest.approx(expected)

    def test_lad(self, small_data):
        problem = Problem(*small_data, kind="lad", intercept=True)
        assert objective_value(problem, np.array([0.5, 1.0, 2.0])) == pytest.approx(1.5)

    def test_basis_pursuit(self, small_data):
        problem = Problem(*small_data, kind="basis_pursuit")
        assert objective_value(problem, np.array([-1.0, 2.0])) == pytest.approx(3.0)

    def test_penalty_required(self, small_data):
        with pytest.raises(ValueError, match="Penalty is required"):
            objective_value(Problem(*small_data), np.zeros(2))

    def test_split_intercept(self, small_data):
        intercept, coef = split_intercept(Problem(*small_data, intercept=True), [3.0, 1.0, 2.0])
        assert intercept == 3.0
        np.testing.assert_array_equal(coef, [1.0, 2.0])


class TestSparsityMetrics:
    """Test suite for sparsity and recovery metrics."""

    def test_sparsity_analysis(self):
        signal = np.array([0.0, 0.0, 3.0, 0.0, -1.0])
        result = sparsity_analysis(signal)
        assert result['l0_norm'] == 2
        assert result['l1_norm'] == pytest.approx(4.0)
        assert result['sparsity_ratio'] == pytest.approx(0.6)
        assert 0 < result['gini_coefficient'] <= 1

    def test_zero_signal(self):
        result = sparsity_analysis(np.zeros(4))
        assert result['l0_norm'] == 0
        assert result['gini_coefficient'] == 0.0

    def test_support_recovery(self):
        truth = np.array([1.0, 0.0, -2.0, 0.0, 0.5])
        estimate = np.array([0.8, 0.1, 1.0, 0.0, 0.0])
        result = support_recovery(truth, estimate)
        assert result['true_positives'] == 2
        assert result['false_positives'] == 1
        assert result['false_negatives'] == 1
        assert result['sign_errors'] == 3
        assert not result['exact_support']

    def test_exact_support(self):
        truth = np.array([1.0, 0.0, -2.0])
        result = support_recovery(truth, np.array([0.5, 1e-9, -0.1]))
        assert result['exact_support']
        assert result['sign_errors'] == 0

    def test_reconstruction_quality(self):
        result = reconstruction_quality(np.array([3.0, 4.0]), np.array([3.0, 3.0]))
        assert result['mse'] == pytest.approx(0.5)
        assert result['max_abs_error'] == pytest.approx(1.0)
        assert result['relative_error'] == pytest.approx(0.2)


class TestConvergenceSummary:
    """Test suite for convergence_summary."""

    def test_summary_of_solve(self, regression_data):
        problem = Problem(regression_data['X'], regression_data['y'], intercept=True)
        solution = solve(problem, Options(penalty=0.1, rho=1e-3))
        summary = convergence_summary(solution)

        assert summary['status'] == "converged"
        assert summary['converged']
        assert summary['iterations'] == solution.iterations
        assert summary['final_rho'] == solution.rho
        assert summary['rho_changes'] > 0
        assert not summary['degraded']

    def test_summary_without_adaptation(self, regression_data):
        problem = Problem(regression_data['X'], regression_data['y'])
        solution = solve(problem, Options(penalty=0.1, adaptive_rho=False))
        assert convergence_summary(solution)['rho_changes'] == 0
