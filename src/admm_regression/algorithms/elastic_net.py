"""
Elastic Net estimator backed by the ADMM core.

The Elastic Net combines L1 (Lasso) and L2 (Ridge) regularization to handle
correlated features better than the pure Lasso. The optimization problem is:

min_{b0, b} (1/2n)||y - b0 - X b||_2^2 + λ(α||b||_1 + (1-α)/2 ||b||_2^2)

where α controls the balance between L1 and L2 regularization. The ADMM
z-update is the closed-form shrinkage

z = soft_threshold(x + u, nλα/ρ) / (1 + nλ(1-α)/ρ)

References
----------
.. [1] Zou, H., & Hastie, T. (2005). Regularization and variable selection via the
       elastic net. Journal of the Royal Statistical Society, 67(2), 301-320.
"""

from typing import Any, Dict, Optional

from ..core.problem import ModelKind
from .lasso import AdmmLasso


class AdmmElasticNet(AdmmLasso):
    """
    Elastic Net regression solved with ADMM.

    Parameters
    ----------
    penalty : float, default=0.01
        Overall regularization strength (λ in the objective function).
    alpha : float, default=0.5
        Mixing parameter between L1 and L2 regularization:
        - alpha=1.0: Pure Lasso (L1 only)
        - alpha=0.0: Pure Ridge (L2 only)
        - 0 < alpha < 1: Elastic Net combination
    **kwargs
        Remaining parameters as for :class:`AdmmLasso`.

    Examples
    --------
    >>> import numpy as np
    >>> from admm_regression import AdmmElasticNet
    >>>
    >>> rng = np.random.default_rng(1)
    >>> X = rng.normal(size=(80, 30))
    >>> X[:, 1] = 0.9 * X[:, 0] + 0.1 * X[:, 1]  # correlated pair
    >>> y = X[:, 0] + X[:, 1] + 0.05 * rng.normal(size=80)
    >>>
    >>> enet = AdmmElasticNet(penalty=0.05, alpha=0.5).fit(X, y)
    """

    _kind = ModelKind.ELASTIC_NET

    def __init__(
        self,
        penalty: Optional[float] = 0.01,
        alpha: float = 0.5,
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
        # Set alpha before calling super().__init__() because _validate_parameters() needs it
        self.alpha = alpha
        super().__init__(
            penalty=penalty,
            rho=rho,
            max_iterations=max_iterations,
            abs_tol=abs_tol,
            rel_tol=rel_tol,
            intercept=intercept,
            standardize=standardize,
            num_blocks=num_blocks,
            adaptive_rho=adaptive_rho,
            verbose=verbose,
            warm_start=warm_start
        )

    def _option_values(self) -> Dict[str, Any]:
        values = super()._option_values()
        values['alpha'] = self.alpha
        return values

    def get_params(self) -> Dict[str, Any]:
        params = super().get_params()
        params['alpha'] = self.alpha
        return params
