# heterosim/physics/charge.py
"""
Charge and post-processing helpers on a solved unknown array (SI units).

    n_α      = N_α F_α(z_α/U_T ((φ_α − ψ) + E_α/q))
    ρ        = q Σ_α z_α (n_α − C_α)
    E_band,α = E_α − q ψ,     E_F,α = −q φ_α

Node attribution: a heterojunction node belongs to the region on its left
(Grid1D.node_region), so nodal densities/energies there use the left-hand
parameters. Region integrals (`charge_density`) use the control-volume share
of each region and are exact.

All arrays are float64 & C-contiguous. Shapes follow (carriers, nodes).
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ..models.config import PhysicsContext
from ..utils.constants import Q
from ..utils.errors import ConfigurationError

__all__ = [
    "region_densities",
    "compute_densities",
    "compute_energies",
    "charge_density",
    "electroneutral_solution",
    "neutral_potential",
]


def _local(ctx: PhysicsContext, U: np.ndarray, region: int, nodes: np.ndarray) -> np.ndarray:
    nc = ctx.num_carriers
    u = np.zeros((nc + 1, nodes.size), dtype=np.float64)
    for icc in range(nc):
        s = ctx.slot_map[icc, region]
        if s >= 0 and ctx.enabled[icc, region]:
            u[icc] = U[s, nodes]
    u[nc] = U[ctx.index_psi, nodes]
    return u


def region_densities(ctx: PhysicsContext, U: np.ndarray, region: int,
                     nodes: np.ndarray) -> np.ndarray:
    """(carriers, len(nodes)) densities with the parameters of `region`."""
    p, nd = ctx.params, ctx.nodal
    u = _local(ctx, U, region, nodes)
    out = np.zeros((ctx.num_carriers, nodes.size), dtype=np.float64)
    for icc in range(ctx.num_carriers):
        if not ctx.enabled[icc, region]:
            continue
        E = p.band_edge_energy[icc, region] + nd.band_edge_energy[icc, nodes]
        N = p.density_of_states[icc, region] + nd.density_of_states[icc, nodes]
        eta = p.charge_numbers[icc] / p.UT * ((u[icc] - u[-1]) + E / Q)
        out[icc] = N * ctx.statistics[icc](eta)
    return out


def compute_densities(ctx: PhysicsContext, U: np.ndarray) -> np.ndarray:
    """Carrier densities per node [1/m^3]; zero where a carrier is disabled."""
    grid = ctx.grid
    out = np.zeros((ctx.num_carriers, grid.num_nodes), dtype=np.float64)
    for r in range(grid.num_regions):
        nodes = np.flatnonzero(grid.node_region == r)
        if nodes.size:
            out[:, nodes] = region_densities(ctx, U, r, nodes)
    return out


def compute_energies(ctx: PhysicsContext, U: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Band-edge energies E_α − qψ and quasi-Fermi energies −qφ_α [J], shape
    (carriers, nodes). Disabled (carrier, node) pairs are NaN.
    """
    grid = ctx.grid
    p, nd = ctx.params, ctx.nodal
    N = grid.num_nodes
    band = np.full((ctx.num_carriers, N), np.nan)
    fermi = np.full((ctx.num_carriers, N), np.nan)
    psi = U[ctx.index_psi]
    for r in range(grid.num_regions):
        nodes = np.flatnonzero(grid.node_region == r)
        for icc in range(ctx.num_carriers):
            if not ctx.enabled[icc, r] or nodes.size == 0:
                continue
            E = p.band_edge_energy[icc, r] + nd.band_edge_energy[icc, nodes]
            band[icc, nodes] = E - Q * psi[nodes]
            fermi[icc, nodes] = -Q * U[ctx.slot_map[icc, r], nodes]
    return band, fermi


def charge_density(ctx: PhysicsContext, U: np.ndarray) -> np.ndarray:
    """Space charge integrated per region [C/m^2] (1D: per unit area)."""
    grid = ctx.grid
    p, nd = ctx.params, ctx.nodal
    out = np.zeros(grid.num_regions, dtype=np.float64)
    for r in range(grid.num_regions):
        nodes = grid.region_nodes(r)
        dens = region_densities(ctx, U, r, nodes)
        rho = np.zeros(nodes.size)
        for icc in range(ctx.num_carriers):
            if ctx.enabled[icc, r]:
                C = p.doping[icc, r] + nd.doping[icc, nodes]
                rho += p.charge_numbers[icc] * (dens[icc] - C)
        out[r] = Q * float(np.sum(rho * grid.Vr[r, nodes]))
    return out


def electroneutral_solution(ctx: PhysicsContext, max_iter: int = 200) -> np.ndarray:
    """
    ψ per node such that Σ z (n − C) = 0 with all φ = 0 (local neutrality).

    Supports exactly two carriers of opposite charge; the net charge is then
    strictly monotone in ψ and vectorized bisection converges per node.
    """
    if ctx.num_carriers != 2:
        raise ConfigurationError(
            f"electroneutral_solution supports exactly 2 carriers (got {ctx.num_carriers})"
        )
    return neutral_potential(ctx, (0, 1), max_iter)


def neutral_potential(ctx: PhysicsContext, pair: Tuple[int, int], max_iter: int = 200) -> np.ndarray:
    """
    Local-neutrality ψ counting only the two carriers in `pair` (all φ = 0).
    With (iphin, iphip) it is the equilibrium starting guess for any carrier set.
    """
    p, nd, grid = ctx.params, ctx.nodal, ctx.grid
    z = p.charge_numbers[list(pair)]
    if z[0] * z[1] >= 0.0:
        raise ConfigurationError("electroneutral_solution needs carriers of opposite charge")
    reg = grid.node_region
    sel = list(pair)
    E = p.band_edge_energy[sel][:, reg] + nd.band_edge_energy[sel]
    Ndos = p.density_of_states[sel][:, reg] + nd.density_of_states[sel]
    C = p.doping[sel][:, reg] + nd.doping[sel]
    stats = [ctx.statistics[icc] for icc in sel]

    def rho(psi: np.ndarray) -> np.ndarray:
        total = np.zeros_like(psi)
        for j in range(2):
            eta = z[j] / p.UT * (-psi + E[j] / Q)
            total += z[j] * (Ndos[j] * stats[j](eta) - C[j])
        return total

    span = 80.0 * p.UT
    lo = np.min(E, axis=0) / Q - span
    hi = np.max(E, axis=0) / Q + span
    # widen until the bracket contains the root everywhere
    for _ in range(60):
        r_lo, r_hi = rho(lo), rho(hi)
        bad = np.sign(r_lo) == np.sign(r_hi)
        if not np.any(bad):
            break
        lo = np.where(bad, lo - span, lo)
        hi = np.where(bad, hi + span, hi)
    else:
        raise FloatingPointError("electroneutral_solution: could not bracket the neutral potential")

    s_lo = np.sign(rho(lo))
    for _ in range(max_iter):
        mid = 0.5 * (lo + hi)
        s_mid = np.sign(rho(mid))
        left = s_mid == s_lo
        lo = np.where(left, mid, lo)
        hi = np.where(left, hi, mid)
        if np.max(hi - lo) < 1e-14:
            break
    return np.ascontiguousarray(0.5 * (lo + hi))
