"""
Least Absolute Deviation (LAD) regression backed by the ADMM core.

min_{b0, b} ||y - b0 - X b||_1

ADMM splits on the residual, z = y - X b, so the x-update is an ordinary
least-squares solve against a fixed Gram matrix and the z-update is
soft-thresholding of the residual. The fit is robust to heavy-tailed noise
and outliers in ``y``.
"""

from typing import Any, Dict

from ..core.problem import ModelKind
from .lasso import AdmmLasso


class AdmmLAD(AdmmLasso):
    """
    LAD (median) regression solved with ADMM.

    Takes no penalty; otherwise the parameters and attributes are those of
    :class:`AdmmLasso`. Regularization paths are not defined for this model.
    """

    _kind = ModelKind.LAD

    def __init__(
        self,
        rho: float = 1.0,
        max_iterations: int = 1000,
        abs_tol: float = 1e-4,
        rel_tol: float = 1e-2,
        intercept: bool = True,
        num_blocks: int = 1,
        adaptive_rho: bool = True,
        verbose: bool = False,
        warm_start: bool = False
    ):
        super().__init__(
            penalty=None,
            rho=rho,
            max_iterations=max_iterations,
            abs_tol=abs_tol,
            rel_tol=rel_tol,
            intercept=intercept,
            standardize=False,
            num_blocks=num_blocks,
            adaptive_rho=adaptive_rho,
            verbose=verbose,
            warm_start=warm_start
        )

    def get_params(self) -> Dict[str, Any]:
        params = super().get_params()
        del params['penalty']
        del params['standardize']
        return params
