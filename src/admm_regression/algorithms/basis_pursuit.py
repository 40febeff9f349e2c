"""
Basis pursuit backed by the ADMM core.

min_x ||x||_1  subject to  X x = y

Intended for underdetermined systems (fewer samples than features). The
x-update is the Euclidean projection onto the affine set {x : X x = y},
computed with a cached factorization of X X^T; the z-update is
soft-thresholding. The returned coefficients are the sparse ``z`` iterate.

References
----------
.. [1] Chen, S. S., Donoho, D. L., & Saunders, M. A. (2001). Atomic decomposition
       by basis pursuit. SIAM Review, 43(1), 129-159.
"""

from typing import Any, Dict

from ..core.problem import ModelKind
from .lasso import AdmmLasso


class AdmmBasisPursuit(AdmmLasso):
    """
    Basis pursuit solved with ADMM.

    Takes neither a penalty nor an intercept; otherwise the parameters and
    attributes are those of :class:`AdmmLasso`.
    """

    _kind = ModelKind.BASIS_PURSUIT

    def __init__(
        self,
        rho: float = 1.0,
        max_iterations: int = 1000,
        abs_tol: float = 1e-4,
        rel_tol: float = 1e-2,
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
            intercept=False,
            standardize=False,
            num_blocks=num_blocks,
            adaptive_rho=adaptive_rho,
            verbose=verbose,
            warm_start=warm_start
        )

    def get_params(self) -> Dict[str, Any]:
        params = super().get_params()
        for key in ('penalty', 'intercept', 'standardize'):
            del params[key]
        return params
