"""
Lasso estimator backed by the ADMM core.

Fits the Lasso

min_{b0, b} (1/2n)||y - b0 - X b||_2^2 + λ||b||_1

by building an immutable :class:`Problem` and :class:`Options` once per
``fit`` and calling :func:`solve` (or :func:`solve_parallel` when more than one
row block is requested). The estimator keeps no solver state other than the
last :class:`Solution`.

References
----------
.. [1] Tibshirani, R. (1996). Regression shrinkage and selection via the lasso.
       Journal of the Royal Statistical Society, 58(1), 267-288.
.. [2] Boyd, S., et al. (2011). Distributed optimization and statistical learning
       via the alternating direction method of multipliers. Foundations and
       Trends in Machine Learning, 3(1), 1-122.
"""

import warnings
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from ..core.consensus import solve_parallel
from ..core.iterator import Solution, solve
from ..core.path import PathResult, solve_path
from ..core.problem import ModelKind, Options, Problem


class AdmmLasso:
    """
    Lasso regression solved with ADMM.

    Parameters
    ----------
    penalty : float, default=0.01
        Regularization parameter (λ) controlling sparsity. Higher values lead
        to sparser solutions.
    rho : float, default=1.0
        Initial augmented-Lagrangian parameter.
    max_iterations : int, default=1000
        Maximum number of ADMM iterations.
    abs_tol : float, default=1e-4
        Absolute tolerance of the residual stopping rule.
    rel_tol : float, default=1e-2
        Relative tolerance of the residual stopping rule.
    intercept : bool, default=True
        Fit an unpenalized intercept.
    standardize : bool, default=False
        Divide each feature by its root-mean-square (its standard deviation
        when ``intercept=True`` centres it) before fitting. Coefficients are
        reported on the original scale.
    num_blocks : int, default=1
        Number of row blocks; values above 1 use the parallel consensus solver.
    adaptive_rho : bool, default=True
        Rebalance ρ during the solve.
    verbose : bool, default=False
        If True, print convergence information during optimization.
    warm_start : bool, default=False
        If True, reuse the solution of the previous call to fit as initialization.

    Attributes
    ----------
    coefficients_ : ndarray of shape (n_features,)
        Estimated coefficients after fitting.
    intercept_ : float
        Estimated intercept (0.0 when ``intercept=False``).
    n_iterations_ : int
        Number of iterations performed during optimization.
    converged_ : bool
        True if the algorithm converged, False otherwise.
    solution_ : Solution
        Full result of the last solve, including residual history.

    Examples
    --------
    >>> import numpy as np
    >>> from admm_regression import AdmmLasso
    >>>
    >>> rng = np.random.default_rng(0)
    >>> X = rng.normal(size=(100, 20))
    >>> beta = np.zeros(20)
    >>> beta[:3] = [1.0, -0.5, 0.25]
    >>> y = X @ beta + 0.1 * rng.normal(size=100)
    >>>
    >>> lasso = AdmmLasso(penalty=0.05).fit(X, y)
    >>> lasso.coefficients_.shape
    (20,)
    """

    _kind = ModelKind.LASSO

    def __init__(
        self,
        penalty: Optional[float] = 0.01,
        rho: float = 1.0,
        max_iterations: int = 1000,
        abs_tol: float = 1e-4,
        rel_tol: float = 1e-2,
        intercept: bool = True,
        standardize: bool = False,
        num_blocks: int = 1,
        adaptive_rho: bool = True,
        verbose: bool = False,
        warm_start: bool = False
    ):
        self.penalty = penalty
        self.rho = rho
        self.max_iterations = max_iterations
        self.abs_tol = abs_tol
        self.rel_tol = rel_tol
        self.intercept = intercept
        self.standardize = standardize
        self.num_blocks = num_blocks
        self.adaptive_rho = adaptive_rho
        self.verbose = verbose
        self.warm_start = warm_start

        # Validate parameters
        self._validate_parameters()

        # Initialize state variables
        self.coefficients_ = None
        self.intercept_ = 0.0
        self.n_iterations_ = 0
        self.converged_ = False
        self.solution_: Optional[Solution] = None

    def _validate_parameters(self) -> None:
        """Validate parameters by building the options they map to."""
        if self._kind.is_penalized and self.penalty is None:
            raise ValueError("Penalty must be positive")
        self._options()

    def _option_values(self) -> Dict[str, Any]:
        return {
            'penalty': self.penalty,
            'rho': self.rho,
            'max_iter': self.max_iterations,
            'abs_tol': self.abs_tol,
            'rel_tol': self.rel_tol,
            'standardize': self.standardize,
            'num_blocks': self.num_blocks,
            'adaptive_rho': self.adaptive_rho,
            'verbose': self.verbose,
        }

    def _options(self, **overrides) -> Options:
        values = self._option_values()
        values.update(overrides)
        return Options(**values)

    def _problem(self, X: np.ndarray, y: np.ndarray) -> Problem:
        return Problem(X, y, kind=self._kind, intercept=self.intercept)

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        warm_start: Optional[bool] = None
    ) -> 'AdmmLasso':
        """
        Fit the model.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Design matrix.
        y : array-like of shape (n_samples,)
            Response vector.
        warm_start : bool, optional
            Override the instance warm_start parameter for this fit.

        Returns
        -------
        self : object
            Returns the instance itself for method chaining.

        Raises
        ------
        InvalidConfiguration
            If input dimensions are incompatible or contain NaN/Inf.
        """
        problem = self._problem(X, y)
        options = self._options()

        if warm_start is None:
            warm_start = self.warm_start

        initial_beta = None
        if warm_start and self.solution_ is not None:
            if len(self.solution_.beta) == problem.n_coefficients:
                initial_beta = self.solution_.beta
            else:
                warnings.warn("Warm start coefficients have wrong shape. Reinitializing.")

        if options.num_blocks > 1:
            solution = solve_parallel(problem, options, initial_beta=initial_beta)
        else:
            solution = solve(problem, options, initial_beta=initial_beta)

        self._store_solution(solution)
        return self

    def fit_path(
        self,
        X: np.ndarray,
        y: np.ndarray,
        penalties: Optional[Union[Sequence[float], np.ndarray]] = None,
        n_penalties: int = 100
    ) -> PathResult:
        """
        Compute the regularization path.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Design matrix.
        y : array-like of shape (n_samples,)
            Response vector.
        penalties : array-like, optional
            Penalty values, solved in the given order. If None, a geometric
            grid from λ_max is used.
        n_penalties : int, default=100
            Grid length when ``penalties`` is None.

        Returns
        -------
        PathResult
            One solution per penalty. The estimator keeps the last one.
        """
        problem = self._problem(X, y)
        options = self._options(penalty=penalties, n_penalties=n_penalties)
        result = solve_path(problem, options)
        self._store_solution(result.solutions[-1])
        return result

    def _store_solution(self, solution: Solution) -> None:
        beta = solution.beta
        self.solution_ = solution
        if self.intercept:
            self.intercept_ = float(beta[0])
            self.coefficients_ = beta[1:].copy()
        else:
            self.intercept_ = 0.0
            self.coefficients_ = beta.copy()
        self.n_iterations_ = solution.iterations
        self.converged_ = solution.converged

    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Predict using the fitted model.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Input data for prediction.

        Returns
        -------
        y_pred : ndarray of shape (n_samples,)
            Predicted values.

        Raises
        ------
        AttributeError
            If the model has not been fitted yet.
        """
        if self.coefficients_ is None:
            raise AttributeError("Model must be fitted before making predictions")

        X = np.asarray(X)
        return X @ self.coefficients_ + self.intercept_

    def score(self, X: np.ndarray, y: np.ndarray) -> float:
        """
        Compute R² coefficient of determination.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Test samples.
        y : array-like of shape (n_samples,)
            True values for X.

        Returns
        -------
        score : float
            R² coefficient of determination.
        """
        y_pred = self.predict(X)
        ss_res = np.sum((y - y_pred) ** 2)
        ss_tot = np.sum((y - np.mean(y)) ** 2)

        if ss_tot == 0:
            return 1.0 if ss_res == 0 else 0.0

        return 1 - (ss_res / ss_tot)

    def set_params(self, **params) -> 'AdmmLasso':
        """Set estimator parameters."""
        valid = self.get_params()
        for key, value in params.items():
            if key in valid:
                setattr(self, key, value)
            else:
                raise ValueError(f"Invalid parameter: {key}")
        self._validate_parameters()
        return self

    def get_params(self) -> Dict[str, Any]:
        """Get estimator parameters."""
        return {
            'penalty': self.penalty,
            'rho': self.rho,
            'max_iterations': self.max_iterations,
            'abs_tol': self.abs_tol,
            'rel_tol': self.rel_tol,
            'intercept': self.intercept,
            'standardize': self.standardize,
            'num_blocks': self.num_blocks,
            'adaptive_rho': self.adaptive_rho,
            'verbose': self.verbose,
            'warm_start': self.warm_start
        }

    def __repr__(self) -> str:
        params = self.get_params()
        param_str = ', '.join(f"{k}={v}" for k, v in params.items())
        return f"{type(self).__name__}({param_str})"
