"""ADMM solvers for sparse and robust linear regression.

This package implements the Alternating Direction Method of Multipliers
(ADMM) for the Lasso, the Elastic Net, Least Absolute Deviation regression and
Basis Pursuit. Each model has its own variable splitting with a closed-form
proximal step, and the x-update reuses a cached Cholesky factorization across
iterations and along a regularization path.

Modules:
    core: Problem setup, splittings, the ADMM iterator, paths and the parallel variant
    algorithms: Estimator classes with fit/predict/score
    utils: Objective and convergence diagnostics
"""

__version__ = "1.0.0"

from .exceptions import InvalidConfiguration, NumericalFailure, NumericalDegradationWarning
from .core import (
    ModelKind,
    Problem,
    Options,
    Solution,
    SolverStatus,
    PathResult,
    soft_threshold,
    elastic_net_shrink,
    solve,
    solve_path,
    solve_parallel,
    penalty_max,
    penalty_sequence,
)
from .algorithms import (
    AdmmLasso,
    AdmmElasticNet,
    AdmmLAD,
    AdmmBasisPursuit,
)

__all__ = [
    "InvalidConfiguration",
    "NumericalFailure",
    "NumericalDegradationWarning",
    "ModelKind",
    "Problem",
    "Options",
    "Solution",
    "SolverStatus",
    "PathResult",
    "soft_threshold",
    "elastic_net_shrink",
    "solve",
    "solve_path",
    "solve_parallel",
    "penalty_max",
    "penalty_sequence",
    "AdmmLasso",
    "AdmmElasticNet",
    "AdmmLAD",
    "AdmmBasisPursuit",
]
