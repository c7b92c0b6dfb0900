# heterosim/physics/interfaces.py
"""Inner-interface models (1D heterojunction nodes).

Two interface mechanisms are provided:
- Surface SRH recombination through recombination velocities at a
  continuous interface (`InterfaceModelSurfaceReco`).
- Carrier transfer between the two sides of a discontinuous quasi-Fermi
  potential (`InterfaceModelDiscontqF`). Each side keeps its own unknown; the
  coupling term acts like an edge flux of zero length.

Units
-----
- Velocities [m/s], densities [1/m^3], rates per area [1/m^2/s].
- Returned residual contributions are current densities [A/m^2].
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

import numpy as np

from ..models.config import ContinuationState
from ..utils.constants import Q
from .recombination import excess_product, surface_srh_rate

if TYPE_CHECKING:
    from .evaluators import BoundaryNode, PhysicsFunctionSet

__all__ = ["surface_recombination", "discontinuous_transfer"]


def surface_recombination(fs: "PhysicsFunctionSet", u: np.ndarray, bnode: "BoundaryNode",
                          state: ContinuationState) -> np.ndarray:
    """Surface SRH at an interface node; electron/hole rows get z q R_s."""
    f = np.zeros_like(u)
    if state.in_equilibrium:
        return f
    ctx = fs.ctx
    p, b = ctx.params, bnode.bregion
    iphin, iphip = ctx.iphin, ctx.iphip
    n = fs.boundary_density(iphin, u, bnode)
    pp = fs.boundary_density(iphip, u, bnode)
    excess = excess_product(n, pp, u[iphin], u[iphip], p.UT)
    R_s = surface_srh_rate(
        n, pp, excess,
        p.b_recombination_SRH_trap_density[iphin, b],
        p.b_recombination_SRH_trap_density[iphip, b],
        p.recombination_SRH_velocity[iphin, b],
        p.recombination_SRH_velocity[iphip, b],
    )
    f[iphin] = p.charge_numbers[iphin] * Q * R_s
    f[iphip] = p.charge_numbers[iphip] * Q * R_s
    return f


def discontinuous_transfer(
    fs: "PhysicsFunctionSet",
    u_left: np.ndarray,
    u_right: np.ndarray,
    left: "BoundaryNode",
    right: "BoundaryNode",
    state: ContinuationState,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Interface transfer z q v (n_L − n_R) for each discontinuous carrier present
    on both sides, added to the left slot row and subtracted from the right.
    `left.region` / `right.region` select the bulk parameters of each side.
    """
    f_left = np.zeros_like(u_left)
    f_right = np.zeros_like(u_right)
    if state.in_equilibrium:
        return f_left, f_right
    ctx = fs.ctx
    p, b = ctx.params, left.bregion
    node = np.array([left.node])
    for icc in np.flatnonzero(ctx.discontinuous):
        if not (ctx.enabled[icc, left.region] and ctx.enabled[icc, right.region]):
            continue
        n_L = fs.density(icc, u_left, node, left.region)
        n_R = fs.density(icc, u_right, node, right.region)
        j = p.charge_numbers[icc] * Q * p.b_velocity[icc, b] * (n_L - n_R)
        f_left[icc] = j
        f_right[icc] = -j
    return f_left, f_right
