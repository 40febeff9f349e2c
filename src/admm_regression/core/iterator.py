"""
Core ADMM iteration.

The iterator repeats, in order: x-update (cached linear solve), z-update
(proximal operator), scaled dual update, residual computation, stopping
check, and optional ρ adaptation. Non-convergence and numerical trouble are
reported through :class:`SolverStatus` rather than raised.

References
----------
.. [1] Boyd, S., Parikh, N., Chu, E., Peleato, B., & Eckstein, J. (2011).
       Distributed optimization and statistical learning via the alternating
       direction method of multipliers. Foundations and Trends in Machine
       Learning, 3(1), 1-122.
"""

import time
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ..exceptions import InvalidConfiguration, NumericalFailure
from .factorization import FactorizationCache
from .formulation import Splitting
from .problem import Options, Problem


class SolverStatus(Enum):
    RUNNING = "running"
    CONVERGED = "converged"
    MAX_ITER_REACHED = "max_iter_reached"
    NUMERICAL_FAILURE = "numerical_failure"


@dataclass
class ResidualHistory:
    """Per-iteration residual norms, thresholds and ρ."""

    primal: List[float] = field(default_factory=list)
    dual: List[float] = field(default_factory=list)
    eps_primal: List[float] = field(default_factory=list)
    eps_dual: List[float] = field(default_factory=list)
    rho: List[float] = field(default_factory=list)

    def append(self, primal: float, dual: float, eps_primal: float, eps_dual: float, rho: float) -> None:
        self.primal.append(primal)
        self.dual.append(dual)
        self.eps_primal.append(eps_primal)
        self.eps_dual.append(eps_dual)
        self.rho.append(rho)

    def as_arrays(self) -> Dict[str, np.ndarray]:
        return {
            'primal': np.asarray(self.primal),
            'dual': np.asarray(self.dual),
            'eps_primal': np.asarray(self.eps_primal),
            'eps_dual': np.asarray(self.eps_dual),
            'rho': np.asarray(self.rho),
        }

    def __len__(self) -> int:
        return len(self.primal)


@dataclass
class SolverState:
    """Mutable iterate of one solve: ``(x, z, u)``, ρ and bookkeeping."""

    x: np.ndarray
    z: np.ndarray
    u: np.ndarray
    rho: float
    iteration: int = 0
    rho_updates: int = 0
    history: ResidualHistory = field(default_factory=ResidualHistory)

    def warm_copy(self) -> "SolverState":
        """Fresh state seeded with this one's final iterate and ρ."""
        return SolverState(self.x.copy(), self.z.copy(), self.u.copy(), self.rho)

    def rescale_dual(self, factor: float) -> None:
        self.u = self.u / factor


@dataclass
class Solution:
    """
    Result of one ADMM solve.

    Attributes
    ----------
    beta : ndarray
        Coefficients, with the intercept in slot 0 when one was requested.
    status : SolverStatus
        ``CONVERGED``, ``MAX_ITER_REACHED`` or ``NUMERICAL_FAILURE``.
    iterations : int
        Iterations performed.
    primal_residual, dual_residual : float
        Residual norms at the last iteration.
    penalty : float or None
        Penalty the solution was computed for.
    rho : float
        Final augmented-Lagrangian parameter.
    degraded : bool
        True if a ridge fallback was needed to factor the x-update system.
    n_factorizations : int
        Factorizations performed by this solve (0 when a cached factor was reused).
    """

    beta: np.ndarray
    status: SolverStatus
    iterations: int
    primal_residual: float
    dual_residual: float
    penalty: Optional[float] = None
    rho: float = 1.0
    degraded: bool = False
    n_factorizations: int = 0
    solve_time: float = 0.0
    history: ResidualHistory = field(default_factory=ResidualHistory, repr=False)
    state: Optional[SolverState] = field(default=None, repr=False)

    @property
    def converged(self) -> bool:
        return self.status is SolverStatus.CONVERGED


class ADMMIterator:
    """
    Runs the ADMM loop for one splitting and one penalty value.

    Parameters
    ----------
    splitting : Splitting
        Model-specific updates.
    options : Options
        Tolerances, iteration cap and ρ adaptation settings.
    penalty : float, optional
        Penalty for penalized models.
    state : SolverState, optional
        Starting iterate; zeros at ``options.rho`` when omitted.
    cache : FactorizationCache, optional
        Factorization to reuse. It is refactored lazily if its key does not
        match the current ρ.
    """

    def __init__(
        self,
        splitting: Splitting,
        options: Options,
        penalty: Optional[float] = None,
        state: Optional[SolverState] = None,
        cache: Optional[FactorizationCache] = None
    ):
        self.splitting = splitting
        self.options = options
        self.penalty = penalty
        if state is None:
            state = SolverState(*splitting.initial_state(), rho=options.rho)
        self.state = state
        self.cache = cache if cache is not None else splitting.make_cache()
        self._factorizations_at_start = self.cache.n_factorizations

    def step(self) -> SolverStatus:
        """Perform one iteration; returns ``CONVERGED`` or ``RUNNING``."""
        sp, st, opt = self.splitting, self.state, self.options

        x = sp.x_update(st.z, st.u, st.rho, self.cache)
        z = sp.z_update(x, st.u, st.rho, self.penalty)
        r = sp.constraint_residual(x, z)
        u = st.u + r
        s = sp.dual_residual(z, st.z, st.rho)

        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(z)) and np.all(np.isfinite(u))):
            raise NumericalFailure(f"Non-finite iterate at iteration {st.iteration + 1}")

        st.x, st.z, st.u = x, z, u
        st.iteration += 1

        r_norm = float(np.linalg.norm(r))
        s_norm = float(np.linalg.norm(s))
        eps_pri, eps_dual = sp.tolerances(x, z, u, st.rho, opt.abs_tol, opt.rel_tol)
        st.history.append(r_norm, s_norm, eps_pri, eps_dual, st.rho)

        if r_norm <= eps_pri and s_norm <= eps_dual:
            return SolverStatus.CONVERGED

        adapt_rho(st, r_norm, s_norm, opt)
        return SolverStatus.RUNNING

    def run(self) -> Solution:
        """Iterate until convergence, the iteration cap, the timeout, or a failure."""
        status, elapsed = iterate(self.step, self.state, self.options, self.splitting.kind.value)
        return self._solution(status, elapsed)

    def _solution(self, status: SolverStatus, elapsed: float) -> Solution:
        st = self.state
        history = st.history
        return Solution(
            beta=self.splitting.to_beta(st.x, st.z),
            status=status,
            iterations=st.iteration,
            primal_residual=history.primal[-1] if len(history) else np.inf,
            dual_residual=history.dual[-1] if len(history) else np.inf,
            penalty=self.penalty,
            rho=st.rho,
            degraded=self.cache.degraded,
            n_factorizations=self.cache.n_factorizations - self._factorizations_at_start,
            solve_time=elapsed,
            history=history,
            state=st,
        )


def iterate(
    step: Callable[[], SolverStatus],
    state,
    options: Options,
    label: str
) -> Tuple[SolverStatus, float]:
    """
    Drive ``step`` until it reports a terminal status.

    The iteration cap and the timeout are checked at iteration boundaries;
    either one ends the loop with ``MAX_ITER_REACHED`` and leaves the last
    completed iterate in ``state``. A :class:`NumericalFailure` raised by
    ``step`` ends it with ``NUMERICAL_FAILURE``.

    Returns the final status and the elapsed wall-clock time.
    """
    start = time.perf_counter()
    status = SolverStatus.RUNNING

    try:
        while status is SolverStatus.RUNNING:
            if state.iteration >= options.max_iter:
                status = SolverStatus.MAX_ITER_REACHED
                break
            if options.timeout is not None and time.perf_counter() - start >= options.timeout:
                status = SolverStatus.MAX_ITER_REACHED
                break

            status = step()

            if options.verbose and state.iteration % 100 == 0:
                print(f"Iteration {state.iteration}: primal = {state.history.primal[-1]:.3e}, "
                      f"dual = {state.history.dual[-1]:.3e}, rho = {state.rho:.3g}")
    except NumericalFailure as exc:
        status = SolverStatus.NUMERICAL_FAILURE
        warnings.warn(f"{label} solve stopped: {exc}")

    if status is SolverStatus.MAX_ITER_REACHED and options.verbose:
        warnings.warn(f"ADMM did not converge after {state.iteration} iterations")

    return status, time.perf_counter() - start


def adapt_rho(state, r_norm: float, s_norm: float, options: Options) -> float:
    """
    Residual balancing: scale ρ by ``rho_tau`` when one residual exceeds the
    other by more than ``rho_mu``. The scaled dual is rescaled so that
    ``rho * u`` is unchanged. Returns the factor applied (1.0 if none).

    ``state`` needs ``rho``, ``rho_updates`` and ``rescale_dual(factor)``.
    """
    if not options.adaptive_rho or state.rho_updates >= options.rho_update_limit:
        return 1.0
    if r_norm > options.rho_mu * s_norm:
        factor = options.rho_tau
    elif s_norm > options.rho_mu * r_norm:
        factor = 1.0 / options.rho_tau
    else:
        return 1.0

    state.rho *= factor
    state.rho_updates += 1
    state.rescale_dual(factor)
    return factor


def solve(problem: Problem, options: Options, initial_beta: Optional[np.ndarray] = None) -> Solution:
    """
    Solve one problem for a single penalty value.

    Parameters
    ----------
    problem : Problem
        Data and model kind.
    options : Options
        Solver options; ``penalty`` must be a single value for penalized models.
    initial_beta : ndarray, optional
        Starting coefficients in the layout of :attr:`Solution.beta`.

    Returns
    -------
    Solution

    Raises
    ------
    InvalidConfiguration
        If the options do not fit the problem.
    """
    if options.is_sequence and problem.kind.is_penalized:
        raise InvalidConfiguration("solve expects a single penalty value; use solve_path for a sequence")

    splitting = Splitting(problem, options)
    penalty = options.penalty if problem.kind.is_penalized else None
    splitting.weights(penalty)

    x, z, u = splitting.initial_state(initial_beta)
    state = SolverState(x, z, u, rho=options.rho)
    return ADMMIterator(splitting, options, penalty, state).run()
