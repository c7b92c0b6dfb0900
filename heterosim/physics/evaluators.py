# heterosim/physics/evaluators.py
"""
Physics function set consumed by the finite-volume assembler.

Residual convention (per species row, per control volume):
    ∂s(u)/∂t + Σ_edges f(u_k, u_l) / h + r(u) = 0
with local layout rows 0..nc-1 = carrier quasi-Fermi potentials φ_α and
row nc = electrostatic potential ψ.

    η_α = z_α/U_T ((φ_α − ψ) + E_α/q),   n_α = N_α F_α(η_α)

- flux:      ψ row ε(ψ_k − ψ_l)/h; carrier rows z q μ U_T j/h from the
             carrier's flux scheme (out of equilibrium only).
- reaction:  ψ row −q λ1 Σ z (n − C); carrier rows pin φ = 0 in equilibrium,
             otherwise z q (R − λ2 G) for the electron/hole reference carriers
             and q (R_n − R_p) for trap occupancies.
- storage:   z q n for enabled carriers in transient mode, else zero.
- boundary:  per boundary model, see boundaries/electrical.py and
             physics/interfaces.py; bstorage is identically zero.

A carrier disabled in a region contributes exactly zero there and its
distribution function is never evaluated.

Public API (stable):
    EdgeBatch, NodeBatch, BoundaryNode
    PhysicsFunctionSet(ctx)
        .flux(uk, ul, edges, state)
        .reaction(u, nodes, state)
        .storage(u, nodes, state)
        .breaction(u, bnode, state)
        .bflux(u_b, u_in, bnode, state)
        .bstorage(u, bnode, state)
        .density(icc, u, nodes, region)
        .boundary_density(icc, u, bnode, phi=None)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ..models.config import ContinuationState, PhysicsContext
from ..utils.constants import EPS0, Q
from .recombination import (
    auger_rate,
    excess_product,
    generation_beer_lambert,
    generation_uniform,
    radiative_rate,
    srh_rate,
    trap_capture_rates,
)

__all__ = ["EdgeBatch", "NodeBatch", "BoundaryNode", "PhysicsFunctionSet"]


@dataclass(frozen=True, slots=True)
class EdgeBatch:
    """All edges (cells) of one region: k → l with length h."""
    k: np.ndarray
    l: np.ndarray
    h: np.ndarray
    region: int


@dataclass(frozen=True, slots=True)
class NodeBatch:
    """Nodes with a control-volume share in one region."""
    nodes: np.ndarray
    region: int


@dataclass(frozen=True, slots=True)
class BoundaryNode:
    """
    One boundary node. `region` is the bulk region whose parameters/slots the
    boundary sees; `neighbor`/`h` locate the interior node of an outer contact.
    """
    node: int
    bregion: int
    region: int
    neighbor: int = -1
    h: float = 0.0


BoundaryFn = Callable[["PhysicsFunctionSet", np.ndarray, BoundaryNode, ContinuationState], np.ndarray]


class PhysicsFunctionSet:
    """Pure evaluators over a frozen PhysicsContext."""

    def __init__(self, ctx: PhysicsContext):
        self.ctx = ctx
        self.nc = ctx.num_carriers
        self.ipsi = self.nc
        # resolved once; boundary models register their evaluators here
        from ..boundaries.electrical import BOUNDARY_FLUX, BOUNDARY_REACTION
        self._breaction: Dict[int, BoundaryFn] = {
            b: BOUNDARY_REACTION[m] for b, m in enumerate(ctx.boundary_type) if m in BOUNDARY_REACTION
        }
        self._bflux: Dict[int, BoundaryFn] = {
            b: BOUNDARY_FLUX[m] for b, m in enumerate(ctx.boundary_type) if m in BOUNDARY_FLUX
        }
        self._transported = tuple(
            icc for icc in range(self.nc) if icc not in ctx.trap_carriers
        )

    # -----------------------------------------------------------------
    # Densities
    # -----------------------------------------------------------------

    def _eta(self, icc: int, phi, psi, E) -> np.ndarray:
        p = self.ctx.params
        return p.charge_numbers[icc] / p.UT * ((phi - psi) + E / Q)

    def density(self, icc: int, u: np.ndarray, nodes: np.ndarray, region: int) -> np.ndarray:
        """n_α at `nodes` with region parameters plus nodal overrides."""
        ctx = self.ctx
        if not ctx.enabled[icc, region]:
            return np.zeros(nodes.size, dtype=np.float64)
        p, nd = ctx.params, ctx.nodal
        E = p.band_edge_energy[icc, region] + nd.band_edge_energy[icc, nodes]
        N = p.density_of_states[icc, region] + nd.density_of_states[icc, nodes]
        return N * ctx.statistics[icc](self._eta(icc, u[icc], u[self.ipsi], E))

    def doping(self, icc: int, nodes: np.ndarray, region: int) -> np.ndarray:
        ctx = self.ctx
        if not ctx.enabled[icc, region]:
            return np.zeros(nodes.size, dtype=np.float64)
        return ctx.params.doping[icc, region] + ctx.nodal.doping[icc, nodes]

    def boundary_density(
        self, icc: int, u: np.ndarray, bnode: BoundaryNode, phi: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """n_α at a boundary node from boundary-region parameters (φ override optional)."""
        ctx = self.ctx
        if not ctx.enabled[icc, bnode.region]:
            return np.zeros(1, dtype=np.float64)
        p, nd, b, i = ctx.params, ctx.nodal, bnode.bregion, bnode.node
        E = p.b_band_edge_energy[icc, b] + nd.band_edge_energy[icc, i]
        N = p.b_density_of_states[icc, b] + nd.density_of_states[icc, i]
        phi_v = u[icc] if phi is None else phi
        return N * ctx.statistics[icc](self._eta(icc, phi_v, u[self.ipsi], E))

    def boundary_doping(self, icc: int, bnode: BoundaryNode) -> float:
        ctx = self.ctx
        if not ctx.enabled[icc, bnode.region]:
            return 0.0
        return float(ctx.params.b_doping[icc, bnode.bregion] + ctx.nodal.doping[icc, bnode.node])

    # -----------------------------------------------------------------
    # Interior evaluators
    # -----------------------------------------------------------------

    def flux(self, uk: np.ndarray, ul: np.ndarray, edges: EdgeBatch,
             state: ContinuationState) -> np.ndarray:
        ctx = self.ctx
        p, nd = ctx.params, ctx.nodal
        r, k, l, h = edges.region, edges.k, edges.l, edges.h
        f = np.zeros_like(uk)
        ipsi = self.ipsi

        eps = EPS0 * (p.dielectric_constant[r] + 0.5 * (nd.dielectric_constant[k] + nd.dielectric_constant[l]))
        f[ipsi] = eps * (uk[ipsi] - ul[ipsi]) / h

        if state.in_equilibrium:
            return f

        UT = p.UT
        for icc in self._transported:
            if not ctx.enabled[icc, r] or (icc in ctx.ionic and not state.transient):
                continue
            mu = p.mobility[icc, r] + 0.5 * (nd.mobility[icc, k] + nd.mobility[icc, l])
            if not np.any(mu):
                continue
            z = p.charge_numbers[icc]
            scheme = ctx.fluxes[icc]
            E_k = p.band_edge_energy[icc, r] + nd.band_edge_energy[icc, k]
            E_l = p.band_edge_energy[icc, r] + nd.band_edge_energy[icc, l]
            N_k = p.density_of_states[icc, r] + nd.density_of_states[icc, k]
            N_l = p.density_of_states[icc, r] + nd.density_of_states[icc, l]
            drift = z * (ul[ipsi] - uk[ipsi]) / UT
            if scheme.graded:
                drift = drift - z * (E_l - E_k) / (Q * UT) - np.log(N_l / N_k)
            else:
                E_k = E_l = 0.5 * (E_k + E_l)
                N_k = N_l = 0.5 * (N_k + N_l)
            eta_k = self._eta(icc, uk[icc], uk[ipsi], E_k)
            eta_l = self._eta(icc, ul[icc], ul[ipsi], E_l)
            j = scheme(ctx.statistics[icc], eta_k, eta_l, N_k, N_l, drift, p.gamma)
            f[icc] = z * Q * mu * UT * j / h
        return f

    def reaction(self, u: np.ndarray, batch: NodeBatch, state: ContinuationState) -> np.ndarray:
        ctx = self.ctx
        p = ctx.params
        r, nodes = batch.region, batch.nodes
        f = np.zeros_like(u)
        ipsi = self.ipsi

        dens = [self.density(icc, u, nodes, r) for icc in range(self.nc)]
        rho = np.zeros(nodes.size, dtype=np.float64)
        for icc in range(self.nc):
            if ctx.enabled[icc, r]:
                rho += p.charge_numbers[icc] * (dens[icc] - self.doping(icc, nodes, r))
        f[ipsi] = -Q * state.lambda1 * rho

        if state.in_equilibrium:
            for icc in range(self.nc):
                if ctx.enabled[icc, r]:
                    f[icc] = u[icc]
            return f

        if not state.transient:
            # stationary: ion distribution stays at its equilibrium quasi-Fermi level
            for icc in ctx.ionic:
                if ctx.enabled[icc, r]:
                    f[icc] = u[icc]

        iphin, iphip = ctx.iphin, ctx.iphip
        if not (ctx.enabled[iphin, r] and ctx.enabled[iphip, r]):
            return f
        n, pp = dens[iphin], dens[iphip]
        excess = excess_product(n, pp, u[iphin], u[iphip], p.UT)
        R_bulk = (radiative_rate(excess, p.recombination_radiative[r])
                  + auger_rate(n, pp, excess, p.recombination_Auger[iphin, r], p.recombination_Auger[iphip, r]))
        tau_n = p.recombination_SRH_lifetime[iphin, r]
        tau_p = p.recombination_SRH_lifetime[iphip, r]
        n_tau = p.recombination_SRH_trap_density[iphin, r]
        p_tau = p.recombination_SRH_trap_density[iphip, r]

        traps_here = [t for t in ctx.trap_carriers if ctx.trap_enabled[t, r]]
        if traps_here:
            R_n = R_bulk.copy()
            R_p = R_bulk.copy()
            for t in traps_here:
                N_t = p.density_of_states[t, r] + ctx.nodal.density_of_states[t, nodes]
                Rn_t, Rp_t = trap_capture_rates(n, pp, dens[t], N_t, n_tau, p_tau,
                                                tau_n, tau_p, p.charge_numbers[t])
                R_n += p.prefactor_SRH * Rn_t
                R_p += p.prefactor_SRH * Rp_t
                f[t] = Q * p.prefactor_SRH * (Rn_t - Rp_t)
        else:
            R_n = R_p = R_bulk + srh_rate(n, pp, excess, n_tau, p_tau, tau_n, tau_p, p.prefactor_SRH)

        G = self.generation(nodes, r, state)
        f[iphin] += p.charge_numbers[iphin] * Q * (R_n - G)
        f[iphip] += p.charge_numbers[iphip] * Q * (R_p - G)
        return f

    def generation(self, nodes: np.ndarray, region: int, state: ContinuationState) -> np.ndarray:
        ctx = self.ctx
        p = ctx.params
        model = ctx.generation_model
        if model == "GenerationUniform":
            return np.full(nodes.size, generation_uniform(p.generation_uniform[region], state.lambda2))
        if model == "GenerationBeerLambert":
            return generation_beer_lambert(
                ctx.grid.z[nodes],
                p.generation_incident_photon_flux[region],
                p.generation_absorption[region],
                p.generation_peak,
                p.inverted_illumination,
                state.lambda2,
            )
        return np.zeros(nodes.size, dtype=np.float64)

    def storage(self, u: np.ndarray, batch: NodeBatch, state: ContinuationState) -> np.ndarray:
        f = np.zeros_like(u)
        if not state.transient or state.in_equilibrium:
            return f
        z = self.ctx.params.charge_numbers
        for icc in range(self.nc):
            if self.ctx.enabled[icc, batch.region]:
                f[icc] = z[icc] * Q * self.density(icc, u, batch.nodes, batch.region)
        return f

    # -----------------------------------------------------------------
    # Boundary evaluators
    # -----------------------------------------------------------------

    def breaction(self, u: np.ndarray, bnode: BoundaryNode, state: ContinuationState) -> np.ndarray:
        fn = self._breaction.get(bnode.bregion)
        if fn is None:
            return np.zeros_like(u)
        return fn(self, u, bnode, state)

    def bflux(self, u_b: np.ndarray, u_in: np.ndarray, bnode: BoundaryNode,
              state: ContinuationState) -> np.ndarray:
        fn = self._bflux.get(bnode.bregion)
        if fn is None:
            return np.zeros_like(u_b)
        return fn(self, np.stack((u_b, u_in)), bnode, state)

    def bstorage(self, u: np.ndarray, bnode: BoundaryNode, state: ContinuationState) -> np.ndarray:
        return np.zeros_like(u)

    def has_bflux(self, bregion: int) -> bool:
        return bregion in self._bflux
