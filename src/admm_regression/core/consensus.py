"""
Block-parallel (consensus) ADMM.

The rows of the design matrix are split into ``num_blocks`` contiguous blocks.
Each :class:`BlockWorker` owns its rows, its local iterate and its own
factorization; a coordinator owns the shared variables and ρ. Every iteration
has two concurrent phases separated by barriers:

Lasso, elastic net and basis pursuit (global-variable consensus)::

    phase 1   x_k = argmin f_k(x) + ρ/2 ||x - z + u_k||^2     -> x_k + u_k
    barrier   z   = prox_{g/(Kρ)}(mean_k(x_k + u_k))
    phase 2   u_k = u_k + x_k - z                              -> residual sums
    barrier   stopping check, ρ adaptation

LAD (residual split with message-passed partial sums)::

    phase 1   X_k^T (y_k - z_k - u_k)                          -> partial rhs
    barrier   b = (sum_k X_k^T X_k)^{-1} sum_k partial rhs
    phase 2   z_k, u_k updates                                 -> residual sums
    barrier   stopping check, ρ adaptation

The shared ``z`` and ``ρ`` are only written by the coordinator between phases;
workers only write their own ``(x_k, z_k, u_k)``. Each phase is one
``ThreadPoolExecutor.map`` call, which returns only after every block is done.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional, Tuple

import numpy as np

from ..exceptions import InvalidConfiguration, NumericalFailure
from .factorization import FactorizationCache
from .formulation import Splitting
from .iterator import ResidualHistory, Solution, SolverState, SolverStatus, adapt_rho, iterate
from .problem import ModelKind, Options, Problem
from .proximal import project_affine


def partition_rows(n_samples: int, num_blocks: int) -> List[Tuple[int, int]]:
    """
    Balanced contiguous row blocks as ``(start, stop)`` pairs.

    Block sizes differ by at most one row.
    """
    if num_blocks < 1:
        raise InvalidConfiguration("Number of blocks must be at least 1")
    if num_blocks > n_samples:
        raise InvalidConfiguration(
            f"Number of blocks ({num_blocks}) cannot exceed number of samples ({n_samples})"
        )
    sizes = np.full(num_blocks, n_samples // num_blocks)
    sizes[:n_samples % num_blocks] += 1
    edges = np.concatenate([[0], np.cumsum(sizes)])
    return [(int(start), int(stop)) for start, stop in zip(edges[:-1], edges[1:])]


class BlockWorker:
    """
    Local data, iterate and factorization of one row block.

    Parameters
    ----------
    splitting : Splitting
        Splitting of the full problem; the worker keeps a view of its rows.
    bounds : tuple of int
        ``(start, stop)`` row range.
    num_blocks : int
        Total number of blocks, part of the factorization key.
    """

    def __init__(self, splitting: Splitting, bounds: Tuple[int, int], num_blocks: int):
        start, stop = bounds
        self.splitting = splitting
        self.bounds = bounds
        self.X = splitting.X[start:stop]
        self.y = splitting.y[start:stop]

        if splitting.kind is ModelKind.LAD:
            self.cache = None
            self.x = None
            self.z = self.y.copy()
            self.u = np.zeros(stop - start)
        else:
            self.cache = FactorizationCache(self.X, splitting.system, partition=(start, stop, num_blocks))
            self.Xty = self.X.T @ self.y
            self.x = np.zeros(splitting.n_x)
            self.u = np.zeros(splitting.n_x)

    @property
    def degraded(self) -> bool:
        return self.cache is not None and self.cache.degraded

    @property
    def n_factorizations(self) -> int:
        return self.cache.n_factorizations if self.cache is not None else 0

    def rescale_dual(self, factor: float) -> None:
        self.u = self.u / factor

    # consensus phases

    def local_update(self, z: np.ndarray, rho: float) -> np.ndarray:
        """Local x-update against the shared ``z``; returns ``x_k + u_k``."""
        if self.splitting.kind is ModelKind.BASIS_PURSUIT:
            self.x = project_affine(z - self.u, self.X, self.y, self.cache.solve)
        else:
            self.x = self.cache.solve(self.Xty + rho * (z - self.u), rho)
        return self.x + self.u

    def dual_update(self, z: np.ndarray) -> np.ndarray:
        """Local dual update; returns ``[||x_k - z||^2, ||x_k||^2, ||u_k||^2]``."""
        r = self.x - z
        self.u = self.u + r
        return np.array([r @ r, self.x @ self.x, self.u @ self.u])

    # residual-split (LAD) phases

    def gram(self) -> np.ndarray:
        return self.X.T @ self.X

    def partial_rhs(self) -> np.ndarray:
        return self.X.T @ (self.y - self.z - self.u)

    def residual_update(self, b: np.ndarray, rho: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Local z/u updates for the shared coefficients ``b``.

        Returns the squared norms ``[||r_k||^2, ||X_k b||^2, ||z_k||^2]``,
        ``X_k^T (z_k - z_k_prev)`` and ``X_k^T u_k``.
        """
        Xb = self.X @ b
        z_prev = self.z
        self.z = self.splitting.prox(self.y - Xb - self.u, rho, None)
        r = Xb + self.z - self.y
        self.u = self.u + r
        norms = np.array([r @ r, Xb @ Xb, self.z @ self.z])
        return norms, self.X.T @ (self.z - z_prev), self.X.T @ self.u


@dataclass
class ConsensusState:
    """Coordinator-side state: shared iterate, ρ and the workers' duals."""

    x: np.ndarray
    z: np.ndarray
    rho: float
    workers: List[BlockWorker]
    iteration: int = 0
    rho_updates: int = 0
    history: ResidualHistory = field(default_factory=ResidualHistory)

    def rescale_dual(self, factor: float) -> None:
        for worker in self.workers:
            worker.rescale_dual(factor)


class ConsensusSolver:
    """
    Coordinator of a block-parallel solve.

    Parameters
    ----------
    splitting : Splitting
        Splitting of the full problem.
    options : Options
        ``num_blocks`` and ``num_workers`` control the partition and thread count.
    penalty : float, optional
        Penalty for penalized models.
    initial_beta : ndarray, optional
        Starting coefficients.
    """

    def __init__(
        self,
        splitting: Splitting,
        options: Options,
        penalty: Optional[float] = None,
        initial_beta: Optional[np.ndarray] = None
    ):
        self.splitting = splitting
        self.options = options
        self.penalty = penalty
        self.bounds = partition_rows(splitting.X.shape[0], options.num_blocks)
        self.workers = [BlockWorker(splitting, bounds, options.num_blocks) for bounds in self.bounds]
        self.gram_cache: Optional[FactorizationCache] = None

        x, z, _ = splitting.initial_state(initial_beta)
        if splitting.kind is ModelKind.LAD:
            for worker, (start, stop) in zip(self.workers, self.bounds):
                worker.z = z[start:stop].copy()
        else:
            for worker in self.workers:
                worker.x = x.copy()
        self.state = ConsensusState(x=x, z=z, rho=options.rho, workers=self.workers)

    def run(self) -> Solution:
        max_workers = self.options.num_workers or len(self.workers)
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            if self.splitting.kind is ModelKind.LAD:
                step = partial(self._residual_split_step, executor)
            else:
                step = partial(self._consensus_step, executor)
            status, elapsed = iterate(step, self.state, self.options, f"parallel {self.splitting.kind.value}")
        return self._solution(status, elapsed)

    def _consensus_step(self, executor: ThreadPoolExecutor) -> SolverStatus:
        sp, st, opt = self.splitting, self.state, self.options
        K = len(self.workers)
        z, rho = st.z, st.rho

        local = list(executor.map(lambda worker: worker.local_update(z, rho), self.workers))
        z_new = sp.prox(np.mean(local, axis=0), rho, self.penalty, copies=K)
        if not np.all(np.isfinite(z_new)):
            raise NumericalFailure(f"Non-finite consensus iterate at iteration {st.iteration + 1}")

        sums = np.sum(list(executor.map(lambda worker: worker.dual_update(z_new), self.workers)), axis=0)
        if not np.all(np.isfinite(sums)):
            raise NumericalFailure(f"Non-finite local iterate at iteration {st.iteration + 1}")
        r2, x2, u2 = sums

        st.x = np.mean([worker.x for worker in self.workers], axis=0)
        st.z = z_new
        st.iteration += 1

        r_norm = float(np.sqrt(r2))
        s_norm = float(rho * np.sqrt(K) * np.linalg.norm(z_new - z))
        root = np.sqrt(K * sp.n_x)
        eps_pri = root * opt.abs_tol + opt.rel_tol * max(np.sqrt(x2), np.sqrt(K) * np.linalg.norm(z_new))
        eps_dual = root * opt.abs_tol + opt.rel_tol * rho * np.sqrt(u2)
        return self._check(r_norm, s_norm, float(eps_pri), float(eps_dual))

    def _residual_split_step(self, executor: ThreadPoolExecutor) -> SolverStatus:
        sp, st, opt = self.splitting, self.state, self.options
        rho = st.rho

        if self.gram_cache is None:
            gram = np.sum(list(executor.map(BlockWorker.gram, self.workers)), axis=0)
            self.gram_cache = FactorizationCache(None, FactorizationCache.GRAM,
                                                 partition=tuple(self.bounds), gram=gram)

        rhs = np.sum(list(executor.map(BlockWorker.partial_rhs, self.workers)), axis=0)
        b = self.gram_cache.solve(rhs)
        if not np.all(np.isfinite(b)):
            raise NumericalFailure(f"Non-finite coefficients at iteration {st.iteration + 1}")

        parts = list(executor.map(lambda worker: worker.residual_update(b, rho), self.workers))
        norms = np.sum([part[0] for part in parts], axis=0)
        dz = np.sum([part[1] for part in parts], axis=0)
        Xtu = np.sum([part[2] for part in parts], axis=0)
        if not (np.all(np.isfinite(norms)) and np.all(np.isfinite(Xtu))):
            raise NumericalFailure(f"Non-finite local iterate at iteration {st.iteration + 1}")
        r2, Xb2, z2 = norms

        st.x = b
        st.iteration += 1

        r_norm = float(np.sqrt(r2))
        s_norm = float(rho * np.linalg.norm(dz))
        eps_pri = (np.sqrt(sp.n_z) * opt.abs_tol
                   + opt.rel_tol * max(np.sqrt(Xb2), np.sqrt(z2), np.linalg.norm(sp.y)))
        eps_dual = np.sqrt(sp.n_x) * opt.abs_tol + opt.rel_tol * rho * np.linalg.norm(Xtu)
        return self._check(r_norm, s_norm, float(eps_pri), float(eps_dual))

    def _check(self, r_norm: float, s_norm: float, eps_pri: float, eps_dual: float) -> SolverStatus:
        st = self.state
        st.history.append(r_norm, s_norm, eps_pri, eps_dual, st.rho)
        if r_norm <= eps_pri and s_norm <= eps_dual:
            return SolverStatus.CONVERGED
        adapt_rho(st, r_norm, s_norm, self.options)
        return SolverStatus.RUNNING

    def _solution(self, status: SolverStatus, elapsed: float) -> Solution:
        st = self.state
        history = st.history
        if self.splitting.kind is ModelKind.LAD:
            z = np.concatenate([worker.z for worker in self.workers])
            u = np.concatenate([worker.u for worker in self.workers])
        else:
            z = st.z
            u = np.mean([worker.u for worker in self.workers], axis=0)

        caches = [worker.cache for worker in self.workers if worker.cache is not None]
        if self.gram_cache is not None:
            caches.append(self.gram_cache)

        return Solution(
            beta=self.splitting.to_beta(st.x, z),
            status=status,
            iterations=st.iteration,
            primal_residual=history.primal[-1] if len(history) else np.inf,
            dual_residual=history.dual[-1] if len(history) else np.inf,
            penalty=self.penalty,
            rho=st.rho,
            degraded=any(cache.degraded for cache in caches),
            n_factorizations=sum(cache.n_factorizations for cache in caches),
            solve_time=elapsed,
            history=history,
            state=SolverState(st.x, z, u, st.rho, st.iteration, st.rho_updates, history),
        )


def solve_parallel(problem: Problem, options: Options, initial_beta: Optional[np.ndarray] = None) -> Solution:
    """
    Solve one problem for a single penalty with block-parallel ADMM.

    Same contract as :func:`solve`; ``options.num_blocks`` sets the number of
    row blocks. With one block the iterates coincide with the sequential solve
    for every model.

    Raises
    ------
    InvalidConfiguration
        If the options do not fit the problem, including more blocks than rows.
    """
    if options.is_sequence and problem.kind.is_penalized:
        raise InvalidConfiguration("solve_parallel expects a single penalty value")

    splitting = Splitting(problem, options)
    penalty = options.penalty if problem.kind.is_penalized else None
    splitting.weights(penalty)

    return ConsensusSolver(splitting, options, penalty, initial_beta).run()
