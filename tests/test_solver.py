"""
Unit tests for the sequential ADMM solve.

Tests cover:
- Agreement with coordinate descent for Lasso and Elastic Net
- Zero-penalty limit (ordinary least squares)
- LAD and basis pursuit against linear-programming references
- Convergence reporting, timeout and numerical failure statuses
- Adaptive rho bookkeeping and configuration errors
"""

import warnings

import pytest
import numpy as np
import numpy.testing as npt

from admm_regression import (
    InvalidConfiguration,
    ModelKind,
    Options,
    Problem,
    SolverStatus,
    solve,
)
from admm_regression.core.formulation import Splitting
from admm_regression.core.iterator import SolverState, adapt_rho
from admm_regression.utils.diagnostics import objective_value, support_recovery

TIGHT = dict(abs_tol=1e-9, rel_tol=1e-9, max_iter=50000)


class TestPenalizedSolve:
    """Lasso and Elastic Net solves."""

    def test_lasso_matches_coordinate_descent(self, regression_data, reference_enet):
        X, y = regression_data['X'], regression_data['y']
        penalty = np.exp(-2)

        solution = solve(Problem(X, y, kind="lasso", intercept=True), Options(penalty=penalty, **TIGHT))
        expected = reference_enet(X, y, penalty, alpha=1.0)

        assert solution.converged
        assert solution.status is SolverStatus.CONVERGED
        assert solution.beta.shape == (21,)
        assert np.max(np.abs(solution.beta - expected)) < 1e-3

    def test_lasso_is_sparse(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=True), Options(penalty=np.exp(-2), **TIGHT))
        coef = solution.beta[1:]
        assert np.sum(coef == 0.0) > 0

    def test_elastic_net_matches_coordinate_descent(self, regression_data, reference_enet):
        X, y = regression_data['X'], regression_data['y']
        penalty, alpha = 0.2, 0.4

        problem = Problem(X, y, kind=ModelKind.ELASTIC_NET, intercept=True)
        solution = solve(problem, Options(penalty=penalty, alpha=alpha, **TIGHT))
        expected = reference_enet(X, y, penalty, alpha=alpha)

        assert solution.converged
        assert np.max(np.abs(solution.beta - expected)) < 1e-3
        assert objective_value(problem, solution.beta, penalty, alpha) <= \
            objective_value(problem, expected, penalty, alpha) + 1e-8

    def test_lasso_without_intercept(self, regression_data, reference_enet):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=False), Options(penalty=0.1, **TIGHT))
        expected = reference_enet(X, y, 0.1, intercept=False)
        assert solution.beta.shape == (20,)
        assert np.max(np.abs(solution.beta - expected)) < 1e-3

    def test_wide_lasso_matches_coordinate_descent(self, reference_enet):
        rng = np.random.default_rng(5)
        X = rng.normal(size=(30, 60))
        beta = np.zeros(60)
        beta[[3, 17, 41]] = [1.5, -2.0, 1.0]
        y = X @ beta + 0.1 * rng.normal(size=30)

        solution = solve(Problem(X, y, intercept=True), Options(penalty=0.1, **TIGHT))
        expected = reference_enet(X, y, 0.1)
        assert solution.converged
        assert np.max(np.abs(solution.beta - expected)) < 1e-3

    def test_standardize_matches_reference_on_scaled_data(self, regression_data, reference_enet):
        X, y = regression_data['X'], regression_data['y']
        X = X * np.linspace(0.5, 5.0, X.shape[1])
        scale = X.std(axis=0)

        solution = solve(Problem(X, y, intercept=True), Options(penalty=0.1, standardize=True, **TIGHT))
        expected = reference_enet(X / scale, y, 0.1)

        npt.assert_allclose(solution.beta[1:] * scale, expected[1:], atol=1e-3)
        npt.assert_allclose(solution.beta[0], expected[0], atol=1e-3)

    def test_standardize_without_intercept_uses_root_mean_square(self, regression_data, reference_enet):
        X, y = regression_data['X'], regression_data['y']
        X = X * np.linspace(0.5, 5.0, X.shape[1])
        rms = np.sqrt(np.mean(X ** 2, axis=0))

        solution = solve(Problem(X, y), Options(penalty=0.1, standardize=True, **TIGHT))
        expected = reference_enet(X / rms, y, 0.1, intercept=False)

        npt.assert_allclose(solution.beta * rms, expected, atol=1e-3)

    @pytest.mark.parametrize("kind", [ModelKind.LASSO, ModelKind.ELASTIC_NET])
    def test_zero_penalty_limit_is_least_squares(self, regression_data, kind):
        X, y = regression_data['X'], regression_data['y']
        design = np.hstack([np.ones((X.shape[0], 1)), X])
        ols, *_ = np.linalg.lstsq(design, y, rcond=None)

        solution = solve(Problem(X, y, kind=kind, intercept=True), Options(penalty=1e-8, **TIGHT))

        assert solution.converged
        assert np.max(np.abs(solution.beta - ols)) < 1e-3

    def test_penalty_above_max_gives_zero(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        lam_max = np.max(np.abs((X - X.mean(0)).T @ (y - y.mean()))) / len(y)
        solution = solve(Problem(X, y, intercept=True), Options(penalty=1.01 * lam_max, **TIGHT))
        npt.assert_array_equal(solution.beta[1:], 0.0)
        assert solution.beta[0] == pytest.approx(y.mean())

    def test_initial_beta_at_solution(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        problem = Problem(X, y, intercept=True)
        options = Options(penalty=0.1, **TIGHT)
        first = solve(problem, options)
        second = solve(problem, options, initial_beta=first.beta)
        assert second.converged
        npt.assert_allclose(second.beta, first.beta, atol=1e-5)

    def test_problem_data_not_mutated(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        X_copy, y_copy = X.copy(), y.copy()
        problem = Problem(X, y, intercept=True)
        solve(problem, Options(penalty=0.1))
        npt.assert_array_equal(problem.X, X_copy)
        npt.assert_array_equal(problem.y, y_copy)
        npt.assert_array_equal(X, X_copy)


class TestUnpenalizedSolve:
    """LAD and basis pursuit solves."""

    def test_lad_matches_linear_program(self, reference_lad):
        rng = np.random.default_rng(17)
        n, p = 200, 5
        X = rng.normal(size=(n, p))
        y = X @ np.array([1.0, -2.0, 0.5, 0.0, 3.0]) + 0.5 + rng.standard_t(df=2, size=n)
        problem = Problem(X, y, kind="lad", intercept=True)

        solution = solve(problem, Options(abs_tol=1e-7, rel_tol=1e-7, max_iter=100000))
        expected = reference_lad(X, y)

        assert solution.converged
        assert solution.beta.shape == (p + 1,)
        admm_obj = objective_value(problem, solution.beta)
        lp_obj = objective_value(problem, expected)
        assert admm_obj == pytest.approx(lp_obj, rel=1e-4)
        assert np.max(np.abs(solution.beta - expected)) < 5e-2

    def test_lad_ignores_penalty(self):
        rng = np.random.default_rng(18)
        X = rng.normal(size=(60, 3))
        y = X @ np.ones(3) + rng.laplace(size=60)
        problem = Problem(X, y, kind="lad")
        a = solve(problem, Options())
        b = solve(problem, Options(penalty=10.0))
        npt.assert_array_equal(a.beta, b.beta)

    @pytest.mark.parametrize("kind", ["lad", "basis_pursuit"])
    def test_unpenalized_models_ignore_penalty_sequence(self, kind):
        rng = np.random.default_rng(20)
        X = rng.normal(size=(20, 30)) if kind == "basis_pursuit" else rng.normal(size=(60, 3))
        y = rng.normal(size=X.shape[0])
        problem = Problem(X, y, kind=kind)

        plain = solve(problem, Options())
        with_sequence = solve(problem, Options(penalty=[0.5, 0.1]))

        npt.assert_array_equal(with_sequence.beta, plain.beta)
        assert with_sequence.penalty is None

    def test_lad_is_robust_to_outliers(self):
        rng = np.random.default_rng(19)
        X = rng.normal(size=(150, 2))
        y = X @ np.array([2.0, -1.0]) + 0.01 * rng.normal(size=150)
        y[:10] += 50.0
        solution = solve(Problem(X, y, kind="lad"), Options(abs_tol=1e-7, rel_tol=1e-7, max_iter=100000))
        npt.assert_allclose(solution.beta, [2.0, -1.0], atol=0.05)

    def test_basis_pursuit_feasible_and_matches_linear_program(self, underdetermined_data, reference_basis_pursuit):
        X, y = underdetermined_data['X'], underdetermined_data['y']
        problem = Problem(X, y, kind=ModelKind.BASIS_PURSUIT)

        solution = solve(problem, Options(abs_tol=1e-9, rel_tol=1e-9, max_iter=100000))
        expected = reference_basis_pursuit(X, y)

        assert solution.converged
        assert np.max(np.abs(X @ solution.beta - y)) < 1e-4
        recovery = support_recovery(expected, solution.beta, threshold=1e-5)
        assert recovery['sign_errors'] == 0
        assert objective_value(problem, solution.beta) == pytest.approx(np.sum(np.abs(expected)), rel=1e-5)

        truth = support_recovery(underdetermined_data['beta'], solution.beta, threshold=1e-5)
        assert truth['sign_errors'] == 0
        assert truth['exact_support']

    def test_basis_pursuit_recovers_sparse_signal(self, make_sparse_signal):
        rng = np.random.default_rng(99)
        n, p = 50, 100
        X = rng.normal(size=(n, p))
        beta = make_sparse_signal(rng, p, 8, signed=True)
        y = X @ beta

        solution = solve(Problem(X, y, kind="basis_pursuit"),
                         Options(abs_tol=1e-9, rel_tol=1e-9, max_iter=100000))

        assert np.max(np.abs(X @ solution.beta - y)) < 1e-4
        recovery = support_recovery(beta, solution.beta, threshold=1e-5)
        assert recovery['sign_errors'] == 0
        assert recovery['exact_support']


class TestStatusReporting:
    """Non-convergence and failure are reported, never raised."""

    def test_max_iter_reached(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=True),
                         Options(penalty=0.1, abs_tol=1e-12, rel_tol=1e-12, max_iter=5))
        assert not solution.converged
        assert solution.status is SolverStatus.MAX_ITER_REACHED
        assert solution.iterations == 5
        assert len(solution.history) == 5
        assert np.all(np.isfinite(solution.beta))

    def test_max_iter_warns_only_when_verbose(self, regression_data):
        problem = Problem(regression_data['X'], regression_data['y'])
        options = Options(penalty=0.1, abs_tol=1e-12, rel_tol=1e-12, max_iter=5)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            quiet = solve(problem, options)
        assert quiet.status is SolverStatus.MAX_ITER_REACHED

        with pytest.warns(UserWarning, match="did not converge after 5 iterations"):
            solve(problem, options.replace(verbose=True))

    def test_timeout_returns_last_iterate(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=True),
                         Options(penalty=0.1, abs_tol=1e-12, rel_tol=1e-12, max_iter=10 ** 7, timeout=1e-9))
        assert solution.status is SolverStatus.MAX_ITER_REACHED
        assert solution.iterations < 10 ** 7
        assert np.all(np.isfinite(solution.beta))

    def test_numerical_failure_is_reported(self, regression_data, monkeypatch):
        X, y = regression_data['X'], regression_data['y']

        def broken_z_update(self, x, u, rho, penalty):
            return np.full_like(x, np.nan)

        monkeypatch.setattr(Splitting, "z_update", broken_z_update)
        with pytest.warns(UserWarning, match="Non-finite iterate"):
            solution = solve(Problem(X, y), Options(penalty=0.1))

        assert solution.status is SolverStatus.NUMERICAL_FAILURE
        assert not solution.converged

    def test_residual_history_recorded(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=True), Options(penalty=0.1))
        history = solution.history.as_arrays()
        assert len(history['primal']) == solution.iterations
        assert history['primal'][-1] <= history['eps_primal'][-1]
        assert history['dual'][-1] <= history['eps_dual'][-1]
        assert solution.primal_residual == history['primal'][-1]

    def test_rho_fixed_when_adaptation_disabled(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=True), Options(penalty=0.1, rho=3.0, adaptive_rho=False))
        assert solution.rho == 3.0
        assert solution.n_factorizations == 1
        assert set(solution.history.rho) == {3.0}

    def test_rho_update_limit(self, regression_data):
        X, y = regression_data['X'], regression_data['y']
        solution = solve(Problem(X, y, intercept=True),
                         Options(penalty=0.1, rho=1e-4, rho_update_limit=3, **TIGHT))
        rho = np.asarray(solution.history.rho)
        assert np.sum(rho[1:] != rho[:-1]) <= 3


class TestAdaptRho:
    """Residual balancing."""

    @pytest.fixture
    def state(self):
        return SolverState(x=np.ones(3), z=np.ones(3), u=np.array([0.5, -1.0, 2.0]), rho=1.0)

    def test_increase_when_primal_dominates(self, state):
        scaled_dual = state.rho * state.u
        factor = adapt_rho(state, r_norm=100.0, s_norm=1.0, options=Options())
        assert factor == 2.0
        assert state.rho == 2.0
        npt.assert_allclose(state.rho * state.u, scaled_dual)

    def test_decrease_when_dual_dominates(self, state):
        scaled_dual = state.rho * state.u
        adapt_rho(state, r_norm=1.0, s_norm=100.0, options=Options())
        assert state.rho == 0.5
        npt.assert_allclose(state.rho * state.u, scaled_dual)

    def test_no_change_when_balanced(self, state):
        assert adapt_rho(state, r_norm=1.0, s_norm=5.0, options=Options()) == 1.0
        assert state.rho == 1.0
        assert state.rho_updates == 0

    def test_limit_respected(self, state):
        options = Options(rho_update_limit=1)
        adapt_rho(state, 100.0, 1.0, options)
        adapt_rho(state, 100.0, 1.0, options)
        assert state.rho == 2.0


class TestConfigurationErrors:
    """Invalid configurations fail before iterating."""

    def test_missing_penalty(self, regression_data):
        with pytest.raises(InvalidConfiguration, match="Penalty is required"):
            solve(Problem(regression_data['X'], regression_data['y']), Options())

    def test_penalty_sequence_rejected(self, regression_data):
        with pytest.raises(InvalidConfiguration, match="solve_path"):
            solve(Problem(regression_data['X'], regression_data['y']), Options(penalty=[0.5, 0.1]))

    def test_initial_beta_wrong_shape(self, regression_data):
        problem = Problem(regression_data['X'], regression_data['y'], intercept=True)
        with pytest.raises(InvalidConfiguration, match="Initial beta"):
            solve(problem, Options(penalty=0.1), initial_beta=np.zeros(20))
