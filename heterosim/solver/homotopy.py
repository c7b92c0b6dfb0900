"""
heterosim/solver/homotopy.py

Continuation driver: embedding homotopy to thermodynamic equilibrium, then a
caller-defined bias / generation / time-step ramp.

Phase A (equilibrium):
    λ1 runs over [0, 10^-n, ..., 10^-1, 1] starting from the zero vector; each
    step reuses the previous converged solution as its initial guess.

Phase B (operating points):
    the state leaves equilibrium once; every RampPoint applies its contact
    voltage / λ2 / time step, solves, records the terminal current and
    forwards the solution.

Typical loop:
    eq = equilibrium_solve(system, control)
    res = ramp(system, linear_bias_ramp(1.2, 13), contact=1, initial_guess=eq)

Non-convergence is never skipped: the driver stops at the failing step and
raises ConvergenceError naming what to adjust.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..utils import diagnostics as diag
from ..utils.errors import ConfigurationError, ConvergenceError, ConvergenceFailure
from .newton import NewtonControl

__all__ = [
    "lambda_schedule",
    "equilibrium_solve",
    "RampPoint",
    "RampResult",
    "ramp",
    "linear_bias_ramp",
    "vshape_scan",
    "generation_ramp",
]


def lambda_schedule(nonlinear_steps: int) -> np.ndarray:
    """[0] + [10^-k for k = n..0]: monotone, starts at 0, ends exactly at 1."""
    if isinstance(nonlinear_steps, bool) or not isinstance(nonlinear_steps, numbers.Integral):
        raise ConfigurationError(f"nonlinear_steps must be an integer (got {nonlinear_steps!r})")
    if nonlinear_steps < 0:
        raise ConfigurationError(f"nonlinear_steps must be >= 0 (got {nonlinear_steps})")
    k = np.arange(int(nonlinear_steps), -1, -1)
    return np.concatenate(([0.0], 10.0 ** (-k.astype(np.float64))))


def equilibrium_solve(system, control: Optional[NewtonControl] = None,
                      nonlinear_steps: int = 20,
                      initial_guess: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Phase A. `system` needs `.state`, `.unknowns()` and `.solve(guess, control)`.
    The continuation starts from `initial_guess` (default: `system.unknowns()`).
    Returns the converged λ1 = 1 solution and marks the state as done.
    """
    ctl = control or NewtonControl()
    schedule = lambda_schedule(nonlinear_steps)
    state = system.state
    state.require_equilibrium()
    state.equilibrium_done = False

    solution = system.unknowns() if initial_guess is None else initial_guess
    for step, lam in enumerate(schedule):
        state.set_lambda("lambda1", float(lam))
        try:
            solution = system.solve(solution, ctl)
        except ConvergenceError as exc:
            if not ctl.handle_exceptions:
                raise
            raise ConvergenceError(ConvergenceFailure(
                kind="equilibrium",
                message=f"equilibrium continuation diverged: {exc.failure.message}",
                step=step, parameter="lambda1", value=float(lam),
                tunables=("nonlinear_steps", "damp_initial", "damp_growth"),
                iterations=exc.failure.iterations, update_norm=exc.failure.update_norm,
            )) from exc
        if ctl.verbose:
            info = system.last_result
            diag.log_continuation_step(phase="equilibrium", step=step, parameter="λ1",
                                       value=float(lam), iters=info.iters,
                                       update_norm=info.update_norm)
    state.equilibrium_done = True
    return solution


@dataclass(frozen=True)
class RampPoint:
    """One schedule point: bias (None keeps the contact), time step, λ2."""
    bias: Optional[float] = None
    tstep: float = np.inf
    lambda2: Optional[float] = None


@dataclass
class RampResult:
    voltages: List[float] = field(default_factory=list)
    currents: List[float] = field(default_factory=list)
    solutions: List[np.ndarray] = field(default_factory=list)
    times: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.voltages)


def ramp(system, schedule: Sequence[RampPoint], contact: int = 1,
         initial_guess: Optional[np.ndarray] = None,
         control: Optional[NewtonControl] = None) -> RampResult:
    """
    Phase B. Leaves equilibrium, then performs exactly one solve per point.
    A finite `tstep` switches that point to implicit Euler (Transient).
    """
    ctl = control or NewtonControl()
    state = system.state
    if not state.equilibrium_done and state.in_equilibrium:
        raise ConfigurationError("run equilibrium_solve before ramping the operating point")
    state.leave_equilibrium()

    solution = system.unknowns() if initial_guess is None else np.array(initial_guess, copy=True)
    out = RampResult()
    t = 0.0
    for step, point in enumerate(schedule):
        if point.lambda2 is not None:
            state.set_lambda("lambda2", float(point.lambda2))
        if point.bias is not None:
            system.set_contact(contact, float(point.bias))
        transient = np.isfinite(point.tstep)
        state.model_type = "Transient" if transient else "Stationary"
        previous = solution
        try:
            solution = system.solve(previous, ctl, tstep=point.tstep)
        except ConvergenceError as exc:
            if not ctl.handle_exceptions:
                raise
            if point.bias is not None:
                param, value = "bias", point.bias
            elif point.lambda2 is not None:
                param, value = "lambda2", point.lambda2
            else:
                param, value = "tstep", point.tstep
            raise ConvergenceError(ConvergenceFailure(
                kind="ramp",
                message=f"operating-point ramp diverged: {exc.failure.message}",
                step=step, parameter=param, value=value,
                tunables=("damp_initial", "damp_growth", "max_iterations"),
                iterations=exc.failure.iterations, update_norm=exc.failure.update_norm,
            )) from exc
        if transient:
            t += point.tstep
        I = system.get_current(solution, previous=previous if transient else None,
                               tstep=point.tstep, bregion=contact)
        out.voltages.append(float(system.ctx.params.contact_voltage[contact]))
        out.currents.append(float(I))
        out.solutions.append(solution.copy())
        out.times.append(t)
        if ctl.verbose:
            info = system.last_result
            label, value = ("Δu", out.voltages[-1]) if point.bias is not None else ("λ2", state.lambda2)
            diag.log_continuation_step(phase="ramp", step=step, parameter=label, value=value,
                                       iters=info.iters, update_norm=info.update_norm,
                                       tstep=point.tstep)
    return out


# ---------------------------------------------------------------------
# Schedule builders
# ---------------------------------------------------------------------


def linear_bias_ramp(v_end: float, steps: int, v_start: float = 0.0,
                     tstep: float = np.inf) -> List[RampPoint]:
    """`steps` evenly spaced biases from v_start to v_end inclusive."""
    if steps < 1:
        raise ConfigurationError(f"steps must be >= 1 (got {steps})")
    return [RampPoint(bias=float(v), tstep=tstep) for v in np.linspace(v_start, v_end, int(steps))]


def vshape_scan(v_end: float, steps: int, scan_rate: float) -> List[RampPoint]:
    """Forward scan 0 → v_end then reverse to 0; Δt = |ΔV| / scan_rate."""
    if steps < 2:
        raise ConfigurationError(f"steps must be >= 2 (got {steps})")
    if scan_rate <= 0.0:
        raise ConfigurationError(f"scan_rate must be > 0 (got {scan_rate})")
    fwd = np.linspace(0.0, v_end, int(steps))
    biases = np.concatenate((fwd[1:], fwd[-2::-1]))
    dt = abs(fwd[1] - fwd[0]) / scan_rate
    return [RampPoint(bias=float(v), tstep=float(dt)) for v in biases]


def generation_ramp(steps: int, tstep: float = np.inf) -> List[RampPoint]:
    """λ2 = 10^-k for k = steps-1..0 (ending at 1), bias unchanged."""
    if steps < 1:
        raise ConfigurationError(f"steps must be >= 1 (got {steps})")
    k = np.arange(int(steps) - 1, -1, -1)
    return [RampPoint(bias=None, tstep=tstep, lambda2=float(10.0 ** -kk)) for kk in k]
