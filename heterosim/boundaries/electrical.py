# heterosim/boundaries/electrical.py
"""
Electrical contact models for the drift–diffusion system (1D, SI units).

Outer boundary regions (0 = left, 1 = right) carry one of:

- **OhmicContact**: the quasi-Fermi potentials of electrons, holes and any
  other free carrier are pinned to the applied voltage Δu (Dirichlet). The
  electrostatic potential is fixed by a stiff local charge-neutrality
  penalty built from the boundary parameters (b_density_of_states,
  b_band_edge_energy, b_doping):
        f_ψ = −(q / ε_pen) Σ_α z_α (n_α,b − C_α,b),   ε_pen = 1e-10

- **SchottkyContact**: ψ is Dirichlet,
        ψ_S = −(Φ_B − E_c,b)/q + Δu,
  and carriers leave through thermionic emission
        f_α = z_α q v_α (n_α − n_α,eq),
  with n_α,eq evaluated at φ_α = Δu. Out of equilibrium only.

- **SchottkyBarrierLowering**: as Schottky, but ψ is pinned through a
  penalty row and the emission densities are raised by image-force lowering
        ΔΦ = sqrt(q |E| / (4π ε0 ε_if)),   n_eq → n_eq exp(ΔΦ/U_T),
  with |E| taken from the boundary edge.

- **InterfaceModelNone**: homogeneous Neumann (insulating).

Public API
----------
    BoundaryCondition
    contact_conditions(ctx, bregion, delta_u) -> list[BoundaryCondition]
    set_contact(system, bregion, delta_u)
    schottky_potential(ctx, bregion, delta_u)
    BOUNDARY_REACTION, BOUNDARY_FLUX   (model name → evaluator)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

import numpy as np

from ..models.config import ContinuationState, PhysicsContext
from ..physics.interfaces import surface_recombination
from ..utils.constants import EPS0, PI, Q
from ..utils.errors import ConfigurationError

if TYPE_CHECKING:
    from ..physics.evaluators import BoundaryNode, PhysicsFunctionSet

__all__ = [
    "BoundaryCondition",
    "contact_conditions",
    "set_contact",
    "schottky_potential",
    "BOUNDARY_REACTION",
    "BOUNDARY_FLUX",
    "PENALTY",
]

PENALTY = 1.0e-10


@dataclass(frozen=True, slots=True)
class BoundaryCondition:
    """Dirichlet pin of one unknown slot at one node: u[slot, node] = value."""
    slot: int
    node: int
    value: float


def schottky_potential(ctx: PhysicsContext, bregion: int, delta_u: float) -> float:
    """ψ_S = −(Φ_B − E_c,b)/q + Δu."""
    p = ctx.params
    Ec = p.b_band_edge_energy[ctx.iphin, bregion]
    return float(-(p.schottky_barrier[bregion] - Ec) / Q + delta_u)


def _free_carriers(ctx: PhysicsContext, region: int) -> List[int]:
    out = [ctx.iphin, ctx.iphip]
    for icc in range(ctx.num_carriers):
        if icc in out or icc in ctx.ionic or icc in ctx.trap_carriers:
            continue
        if ctx.enabled[icc, region]:
            out.append(icc)
    return out


def contact_conditions(ctx: PhysicsContext, bregion: int, delta_u: float) -> List[BoundaryCondition]:
    """Dirichlet pins implied by the contact model of an outer boundary region."""
    grid = ctx.grid
    if not 0 <= bregion < grid.num_bregions:
        raise ConfigurationError(
            f"boundary region {bregion} out of range [0, {grid.num_bregions})"
        )
    if bregion >= 2:
        raise ConfigurationError(f"boundary region {bregion} is an inner interface, not a contact")
    model = ctx.boundary_type[bregion]
    node = int(grid.bregion_node[bregion])
    region = grid.adjacent_region(bregion)

    if model == "OhmicContact":
        return [BoundaryCondition(int(ctx.slot_map[icc, region]), node, float(delta_u))
                for icc in _free_carriers(ctx, region)]
    if model == "SchottkyContact":
        return [BoundaryCondition(ctx.index_psi, node, schottky_potential(ctx, bregion, delta_u))]
    # barrier lowering pins ψ through its boundary reaction; Neumann otherwise
    return []


def set_contact(system, bregion: int, delta_u: float) -> None:
    """
    Record Δu for `bregion` and install the matching Dirichlet pins on
    `system` (anything exposing `.ctx` and a `.dirichlet` dict).
    """
    ctx = system.ctx
    conds = contact_conditions(ctx, bregion, delta_u)
    ctx.params.contact_voltage[bregion] = float(delta_u)
    if ctx.boundary_type[bregion] in ("SchottkyContact", "SchottkyBarrierLowering"):
        _store_equilibrium_densities(ctx, bregion, delta_u)
    system.dirichlet[bregion] = conds


def _store_equilibrium_densities(ctx: PhysicsContext, bregion: int, delta_u: float) -> None:
    p = ctx.params
    psi = schottky_potential(ctx, bregion, delta_u)
    for icc in (ctx.iphin, ctx.iphip):
        eta = p.charge_numbers[icc] / p.UT * ((delta_u - psi) + p.b_band_edge_energy[icc, bregion] / Q)
        p.b_densities_eq[icc, bregion] = p.b_density_of_states[icc, bregion] * float(ctx.statistics[icc](eta))


# ---------------------------------------------------------------------
# Boundary evaluators (rows: carriers 0..nc-1, ψ last)
# ---------------------------------------------------------------------


def _ohmic_reaction(fs: "PhysicsFunctionSet", u: np.ndarray, bnode: "BoundaryNode",
                    state: ContinuationState) -> np.ndarray:
    f = np.zeros_like(u)
    ctx = fs.ctx
    z = ctx.params.charge_numbers
    rho = np.zeros(u.shape[1:], dtype=np.float64)
    for icc in range(fs.nc):
        if ctx.enabled[icc, bnode.region]:
            rho += z[icc] * (fs.boundary_density(icc, u, bnode) - fs.boundary_doping(icc, bnode))
    f[fs.ipsi] = -Q / PENALTY * rho
    return f


def _thermionic(fs: "PhysicsFunctionSet", u: np.ndarray, bnode: "BoundaryNode",
                enhancement: np.ndarray) -> np.ndarray:
    f = np.zeros_like(u)
    ctx = fs.ctx
    p, b = ctx.params, bnode.bregion
    phi_c = np.full(u.shape[1:], p.contact_voltage[b])
    for icc in (ctx.iphin, ctx.iphip):
        n = fs.boundary_density(icc, u, bnode)
        n_eq = fs.boundary_density(icc, u, bnode, phi=phi_c) * enhancement
        f[icc] = p.charge_numbers[icc] * Q * p.b_velocity[icc, b] * (n - n_eq)
    return f


def _schottky_reaction(fs: "PhysicsFunctionSet", u: np.ndarray, bnode: "BoundaryNode",
                       state: ContinuationState) -> np.ndarray:
    if state.in_equilibrium:
        return np.zeros_like(u)
    return _thermionic(fs, u, bnode, np.ones(u.shape[1:]))


def _lowering_reaction(fs: "PhysicsFunctionSet", u: np.ndarray, bnode: "BoundaryNode",
                       state: ContinuationState) -> np.ndarray:
    f = np.zeros_like(u)
    b = bnode.bregion
    psi_s = schottky_potential(fs.ctx, b, fs.ctx.params.contact_voltage[b])
    f[fs.ipsi] = (u[fs.ipsi] - psi_s) / PENALTY
    return f


def _lowering_flux(fs: "PhysicsFunctionSet", u_pair: np.ndarray, bnode: "BoundaryNode",
                   state: ContinuationState) -> np.ndarray:
    u_b, u_in = u_pair[0], u_pair[1]
    if state.in_equilibrium:
        return np.zeros_like(u_b)
    p = fs.ctx.params
    eps_if = p.dielectric_constant_image_force[bnode.region]
    if eps_if <= 0.0:
        eps_if = p.dielectric_constant[bnode.region]
    field = np.abs(u_b[fs.ipsi] - u_in[fs.ipsi]) / bnode.h
    dphi = np.sqrt(Q * field / (4.0 * PI * EPS0 * eps_if))
    return _thermionic(fs, u_b, bnode, np.exp(dphi / p.UT))


BOUNDARY_REACTION = {
    "OhmicContact": _ohmic_reaction,
    "SchottkyContact": _schottky_reaction,
    "SchottkyBarrierLowering": _lowering_reaction,
    "InterfaceModelSurfaceReco": surface_recombination,
}

BOUNDARY_FLUX = {
    "SchottkyBarrierLowering": _lowering_flux,
}
