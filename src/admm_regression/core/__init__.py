"""ADMM solver core: problem setup, splittings, iteration, paths and the parallel variant."""

from .problem import ModelKind, Problem, Options
from .proximal import soft_threshold, elastic_net_shrink, l1_prox, project_affine
from .factorization import FactorizationCache
from .formulation import Splitting
from .iterator import (
    ADMMIterator,
    ResidualHistory,
    Solution,
    SolverState,
    SolverStatus,
    solve,
)
from .path import PathResult, penalty_max, penalty_sequence, solve_path
from .consensus import BlockWorker, ConsensusSolver, partition_rows, solve_parallel

__all__ = [
    "ModelKind",
    "Problem",
    "Options",
    "soft_threshold",
    "elastic_net_shrink",
    "l1_prox",
    "project_affine",
    "FactorizationCache",
    "Splitting",
    "ADMMIterator",
    "ResidualHistory",
    "Solution",
    "SolverState",
    "SolverStatus",
    "solve",
    "PathResult",
    "penalty_max",
    "penalty_sequence",
    "solve_path",
    "BlockWorker",
    "ConsensusSolver",
    "partition_rows",
    "solve_parallel",
]
