# heterosim/models/device.py
"""
DeviceSystem: one configured device ready for continuation solves.

Construction freezes configuration + parameters into a PhysicsContext, builds
the finite-volume system, enables species per region and installs 0 V on
both outer contacts. Afterwards only the ContinuationState (λ's, modes) and
the contact voltages change between solves.

Usage
-----
    dev = DeviceSystem(grid, cfg, params)
    eq = dev.equilibrium_solve(NewtonControl(), nonlinear_steps=20)
    res = ramp(dev, linear_bias_ramp(1.2, 13), contact=1, initial_guess=eq)

Public API (stable):
    DeviceSystem(grid, config, params, nodal=None, unknown_storage="dense")
        .unknowns()
        .slot(carrier, region)
        .set_contact(bregion, delta_u)
        .solve(initial_guess, control=None, tstep=inf)
        .equilibrium_solve(control=None, nonlinear_steps=20)
        .get_current(solution, previous=None, tstep=inf, bregion=0)
        .compute_densities(solution)
        .compute_energies(solution)
        .electroneutral_solution()
        .charge_density(solution)
"""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ..boundaries.electrical import set_contact
from ..discretization.assemble import FVSystem
from ..geometry.builder import Grid1D
from ..physics import charge
from ..solver import homotopy, newton
from ..solver.newton import NewtonControl, SolveResult
from ..utils import diagnostics as diag
from ..utils.errors import ConfigurationError, ConvergenceError, ConvergenceFailure
from .config import ContinuationState, ModelConfig, freeze
from .params import Params, ParamsNodal

__all__ = ["DeviceSystem"]

_STORAGE = ("dense", "sparse")


class DeviceSystem:
    """Frozen physics + FV system + mutable continuation state."""

    def __init__(
        self,
        grid: Grid1D,
        config: ModelConfig,
        params: Params,
        nodal: Optional[ParamsNodal] = None,
        unknown_storage: str = "dense",
    ):
        if unknown_storage not in _STORAGE:
            raise ConfigurationError(
                f"unknown_storage must be one of {_STORAGE} (got {unknown_storage!r})"
            )
        self.grid = grid
        self.config = config
        self.unknown_storage = unknown_storage
        self.ctx = freeze(config, params, nodal, grid)
        self.state = ContinuationState(
            calculation_type=config.calculation_type,
            model_type=config.model_type,
        )
        self.fv = FVSystem(self.ctx, self.state)
        self.last_result: Optional[SolveResult] = None
        for b in range(min(2, grid.num_bregions)):
            self.set_contact(b, 0.0)

    # ------------------------------------------------------------------
    # Unknown layout
    # ------------------------------------------------------------------

    @property
    def num_slots(self) -> int:
        return self.ctx.num_slots

    @property
    def ipsi(self) -> int:
        return self.ctx.index_psi

    def slot(self, carrier: int, region: int) -> int:
        """Unknown slot of (carrier, region); raises if the carrier is absent there."""
        nc, nr = self.ctx.slot_map.shape
        if not (0 <= carrier < nc and 0 <= region < nr):
            raise ConfigurationError(f"(carrier={carrier}, region={region}) out of range")
        s = int(self.ctx.slot_map[carrier, region])
        if s < 0 or not self.ctx.enabled[carrier, region]:
            raise ConfigurationError(f"carrier {carrier} is not enabled in region {region}")
        return s

    def unknowns(self) -> np.ndarray:
        """Fresh zero unknowns (slots, nodes); NaN at inactive entries if sparse."""
        U = self.fv.initial_guess()
        if self.unknown_storage == "sparse":
            U[~self.fv.active] = np.nan
        return U

    def _dense(self, U: np.ndarray) -> np.ndarray:
        X = np.array(U, dtype=np.float64, copy=True)
        if X.shape != (self.num_slots, self.grid.num_nodes):
            raise ConfigurationError(
                f"unknowns must have shape {(self.num_slots, self.grid.num_nodes)} (got {X.shape})"
            )
        X[~self.fv.active] = 0.0
        return X

    def _storage(self, X: np.ndarray) -> np.ndarray:
        if self.unknown_storage == "sparse":
            X = X.copy()
            X[~self.fv.active] = np.nan
        return X

    # ------------------------------------------------------------------
    # Contacts / solves
    # ------------------------------------------------------------------

    def set_contact(self, bregion: int, delta_u: float) -> None:
        set_contact(self.fv, bregion, delta_u)

    def solve(self, initial_guess: np.ndarray, control: Optional[NewtonControl] = None,
              tstep: float = np.inf, previous: Optional[np.ndarray] = None) -> np.ndarray:
        """
        One nonlinear solve. In transient mode `previous` (default: the
        initial guess) is the last time level. Raises ConvergenceError.
        """
        X0 = self._dense(initial_guess)
        U_old = None
        if self.state.transient and np.isfinite(tstep):
            U_old = X0 if previous is None else self._dense(previous)
        res = newton.solve(self.fv, X0, control, U_old=U_old, tstep=tstep)
        self.last_result = res
        if not res.converged:
            raise ConvergenceError(ConvergenceFailure(
                kind="newton",
                message=res.message or "Newton did not converge",
                tunables=("max_iterations", "damp_initial", "damp_growth"),
                iterations=res.iters,
                update_norm=res.update_norm,
            ))
        return self._storage(res.x)

    def equilibrium_solve(self, control: Optional[NewtonControl] = None,
                          nonlinear_steps: int = 20) -> np.ndarray:
        U = homotopy.equilibrium_solve(self, control, nonlinear_steps,
                                       initial_guess=self.equilibrium_guess())
        if control is not None and control.verbose:
            diag.log_contacts_summary(contacts=[
                (b, self.ctx.boundary_type[b], float(self.ctx.params.contact_voltage[b]))
                for b in range(min(2, self.grid.num_bregions))
            ])
        return U

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    def get_current(self, solution: np.ndarray, previous: Optional[np.ndarray] = None,
                    tstep: float = np.inf, bregion: int = 0) -> float:
        """Total current density [A/m^2] through an outer contact."""
        if bregion not in (0, 1):
            raise ConfigurationError(f"get_current needs an outer boundary region (got {bregion})")
        U = self._dense(solution)
        U_old = None if previous is None else self._dense(previous)
        return self.fv.contact_current(U, bregion, U_old, tstep)

    def compute_densities(self, solution: np.ndarray) -> np.ndarray:
        return charge.compute_densities(self.ctx, self._dense(solution))

    def compute_energies(self, solution: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return charge.compute_energies(self.ctx, self._dense(solution))

    def electroneutral_solution(self) -> np.ndarray:
        """Unknowns with ψ from local neutrality and all φ = 0."""
        U = self.fv.initial_guess()
        U[self.ipsi] = charge.electroneutral_solution(self.ctx)
        return self._storage(U)

    def equilibrium_guess(self) -> np.ndarray:
        """φ = 0 and ψ neutral for the electron/hole pair alone."""
        U = self.fv.initial_guess()
        U[self.ipsi] = charge.neutral_potential(self.ctx, (self.ctx.iphin, self.ctx.iphip))
        return self._storage(U)

    def charge_density(self, solution: np.ndarray) -> np.ndarray:
        return charge.charge_density(self.ctx, self._dense(solution))
