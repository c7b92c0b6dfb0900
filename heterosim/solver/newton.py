# heterosim/solver/newton.py
# Damped Newton–Raphson for the coupled finite-volume system.
# Uses the block-tridiagonal Thomas solver (no SciPy dependency).

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..utils import diagnostics as diag
from .linear import scale_rows, solve_block_tridiagonal

__all__ = ["NewtonControl", "SolveResult", "solve"]


@dataclass
class NewtonControl:
    """
    Knobs for one Newton solve.

    Convergence is declared on the update norm ||δu||_inf: below
    `tol_absolute`, below `tol_relative` times the first update, or when it
    stalls under `tol_round` for `max_round` iterations (round-off floor).
    """
    max_iterations: int = 100
    tol_absolute: float = 1e-10
    tol_relative: float = 1e-10
    tol_round: float = 1e-8
    max_round: int = 3
    damp_initial: float = 1.0
    damp_growth: float = 1.21
    max_step: float = 0.5           # [V] per-entry clip of the Newton update
    handle_exceptions: bool = False
    verbose: bool = False


@dataclass
class SolveResult:
    x: np.ndarray           # final unknowns (slots, nodes)
    residual: np.ndarray    # final residual
    iters: int
    converged: bool
    update_norm: float = np.inf
    message: str = ""


def _inf_norm(x: np.ndarray) -> float:
    return float(np.linalg.norm(x.ravel(), ord=np.inf))


def _psi_range(system, x: np.ndarray) -> tuple[float, float]:
    psi = x[system.ipsi]
    return float(psi.min()), float(psi.max())


def solve(system, x0: np.ndarray, control: Optional[NewtonControl] = None,
          U_old: Optional[np.ndarray] = None, tstep: float = np.inf) -> SolveResult:
    """Newton solve of system.residual(U) = 0 starting from x0.

    Parameters
    ----------
    system : object with API
        - residual(U, U_old, tstep) -> ndarray (slots, nodes)
        - jacobian(U, U_old, tstep, R0) -> BlockTridiagonal
        - ipsi: slot index of the electrostatic potential
    x0 : initial guess, not modified
    control : NewtonControl, defaults if None
    U_old, tstep : previous time level for implicit Euler (tstep=inf: stationary)
    """
    ctl = control or NewtonControl()
    x = np.array(x0, dtype=np.float64, copy=True)
    damping = float(ctl.damp_initial)

    resid = system.residual(x, U_old, tstep)
    if ctl.verbose:
        lo, hi = _psi_range(system, x)
        diag.log_solver_start(solver="Newton", res_inf=_inf_norm(resid),
                              psi_min=lo, psi_max=hi, damping=damping)

    norm0: Optional[float] = None
    prev = np.inf
    stalled = 0
    norm = np.inf
    it = 0
    for it in range(1, int(ctl.max_iterations) + 1):
        try:
            J = system.jacobian(x, U_old, tstep, resid)
            rhs = -resid
            scale_rows(J, rhs)
            delta = solve_block_tridiagonal(J, rhs)
        except np.linalg.LinAlgError as exc:
            return SolveResult(x=x, residual=resid, iters=it, converged=False,
                               update_norm=norm, message=f"linear solve failed: {exc}")
        np.clip(delta, -ctl.max_step, ctl.max_step, out=delta)

        # shrink the step until the residual is finite again
        local = damping
        while True:
            x_trial = x + local * delta
            resid_t = system.residual(x_trial, U_old, tstep)
            if np.all(np.isfinite(resid_t)):
                break
            local *= 0.5
            if local < 1e-12:
                return SolveResult(x=x, residual=resid, iters=it, converged=False,
                                   update_norm=norm, message="non-finite residual")
        x, resid = x_trial, resid_t
        damping = min(1.0, local * ctl.damp_growth)

        norm = _inf_norm(local * delta)
        if norm0 is None:
            norm0 = max(norm, 1e-300)

        if ctl.verbose:
            lo, hi = _psi_range(system, x)
            diag.log_solver_iter(solver="Newton", it=it, res_inf=_inf_norm(resid),
                                 damping=local, max_du=norm, psi_min=lo, psi_max=hi)

        if norm < ctl.tol_absolute or norm < ctl.tol_relative * norm0:
            return _done(ctl, x, resid, it, norm)
        stalled = stalled + 1 if (norm < ctl.tol_round and norm >= 0.5 * prev) else 0
        if stalled >= ctl.max_round:
            return _done(ctl, x, resid, it, norm)
        prev = norm

    if ctl.verbose:
        diag.log_convergence_summary(solver="Newton", converged=False, iters=it, update_norm=norm)
    return SolveResult(x=x, residual=resid, iters=it, converged=False, update_norm=norm,
                       message=f"no convergence in {ctl.max_iterations} iterations")


def _done(ctl: NewtonControl, x, resid, it: int, norm: float) -> SolveResult:
    if ctl.verbose:
        diag.log_convergence_summary(solver="Newton", converged=True, iters=it, update_norm=norm)
    return SolveResult(x=x, residual=resid, iters=it, converged=True, update_norm=norm)
