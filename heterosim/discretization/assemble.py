# heterosim/discretization/assemble.py
# Finite-volume assembly of the coupled drift–diffusion system in 1-D.
#
# Unknowns are stored slot-major, U[slot, node], with ψ in the last slot.
# Continuous carriers own one slot over the whole device; a discontinuous
# carrier owns one slot per region it lives in, so an interface node carries
# two values that are coupled only through the interface model.
#
# Residual rows are integrated over control volumes:
#   R[k] += f(u_k, u_l)        R[l] -= f(u_k, u_l)        (edges)
#   R[i] += V_r,i (r(u_i) + (s(u_i) − s(u_i^old)) / Δt)    (per region share)
#   R[b] += breaction + bflux                               (boundary nodes)
# followed by identity rows for inactive (slot, node) pairs and Dirichlet
# replacement u − value for pinned entries.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..boundaries.electrical import BoundaryCondition
from ..models.config import ContinuationState, PhysicsContext
from ..physics.evaluators import BoundaryNode, EdgeBatch, NodeBatch, PhysicsFunctionSet
from ..physics.interfaces import discontinuous_transfer
from ..solver.linear import BlockTridiagonal
from ..utils.constants import EPS0

__all__ = ["FVSystem", "FD_STEP"]

FD_STEP = 1.0e-8


@dataclass(frozen=True)
class _RegionCache:
    region: int
    slots: Tuple[Tuple[int, int], ...]   # (carrier, slot) enabled here
    k: np.ndarray
    l: np.ndarray
    h: np.ndarray
    nodes: np.ndarray
    V: np.ndarray


@dataclass
class FVSystem:
    """Discrete residual + colored finite-difference Jacobian for one device."""

    ctx: PhysicsContext
    state: ContinuationState
    dirichlet: Dict[int, List[BoundaryCondition]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.physics = PhysicsFunctionSet(self.ctx)
        grid = self.ctx.grid
        self.nc = self.ctx.num_carriers
        self.num_slots = self.ctx.num_slots
        self.num_nodes = grid.num_nodes
        self.ipsi = self.ctx.index_psi

        self._regions: List[_RegionCache] = []
        for r in range(grid.num_regions):
            cells = grid.region_cells(r)
            nodes = grid.region_nodes(r)
            slots = tuple((icc, int(self.ctx.slot_map[icc, r]))
                          for icc in range(self.nc) if self.ctx.enabled[icc, r])
            self._regions.append(_RegionCache(
                region=r, slots=slots, k=cells, l=cells + 1, h=grid.dz[cells],
                nodes=nodes, V=grid.Vr[r, nodes],
            ))

        self.active = np.zeros((self.num_slots, self.num_nodes), dtype=bool)
        self.active[self.ipsi] = True
        for rc in self._regions:
            for _, s in rc.slots:
                self.active[s, rc.nodes] = True

        self._bnodes: List[BoundaryNode] = []
        self._ifaces: List[Tuple[BoundaryNode, BoundaryNode]] = []
        N = self.num_nodes
        for b in range(grid.num_bregions):
            node = int(grid.bregion_node[b])
            if b < 2:
                region = grid.adjacent_region(b)
                neighbor = 1 if node == 0 else N - 2
                h = float(grid.dz[0] if node == 0 else grid.dz[-1])
                self._bnodes.append(BoundaryNode(node, b, region, neighbor, h))
                continue
            left, right = (int(x) for x in grid.bregion_regions[b])
            model = self.ctx.boundary_type[b]
            if model == "InterfaceModelDiscontqF":
                self._ifaces.append((BoundaryNode(node, b, left), BoundaryNode(node, b, right)))
            elif model != "InterfaceModelNone":
                self._bnodes.append(BoundaryNode(node, b, left))

    # ------------------------------------------------------------------
    # Gather / scatter between slot storage and per-region local layout
    # ------------------------------------------------------------------

    def _gather(self, U: np.ndarray, rc: _RegionCache, nodes: np.ndarray) -> np.ndarray:
        u = np.zeros((self.nc + 1, nodes.size), dtype=np.float64)
        for icc, s in rc.slots:
            u[icc] = U[s, nodes]
        u[self.nc] = U[self.ipsi, nodes]
        return u

    def _scatter(self, R: np.ndarray, F: np.ndarray, rc: _RegionCache,
                 nodes: np.ndarray, weight=1.0) -> None:
        for icc, s in rc.slots:
            np.add.at(R[s], nodes, weight * F[icc])
        np.add.at(R[self.ipsi], nodes, weight * F[self.nc])

    # ------------------------------------------------------------------
    # Residual
    # ------------------------------------------------------------------

    def initial_guess(self) -> np.ndarray:
        return np.zeros((self.num_slots, self.num_nodes), dtype=np.float64)

    def bulk_residual(self, U: np.ndarray, U_old: Optional[np.ndarray] = None,
                      tstep: float = np.inf) -> np.ndarray:
        """Edge, reaction and storage terms only (no boundary models, no pins)."""
        R = np.zeros_like(U, dtype=np.float64)
        fs, state = self.physics, self.state
        timed = state.transient and np.isfinite(tstep) and U_old is not None
        for rc in self._regions:
            if rc.k.size:
                F = fs.flux(self._gather(U, rc, rc.k), self._gather(U, rc, rc.l),
                            EdgeBatch(rc.k, rc.l, rc.h, rc.region), state)
                self._scatter(R, F, rc, rc.k)
                self._scatter(R, F, rc, rc.l, -1.0)
            u = self._gather(U, rc, rc.nodes)
            batch = NodeBatch(rc.nodes, rc.region)
            self._scatter(R, fs.reaction(u, batch, state), rc, rc.nodes, rc.V)
            if timed:
                s_new = fs.storage(u, batch, state)
                s_old = fs.storage(self._gather(U_old, rc, rc.nodes), batch, state)
                self._scatter(R, (s_new - s_old) / tstep, rc, rc.nodes, rc.V)
        return R

    def residual(self, U: np.ndarray, U_old: Optional[np.ndarray] = None,
                 tstep: float = np.inf) -> np.ndarray:
        R = self.bulk_residual(U, U_old, tstep)
        fs, state = self.physics, self.state

        for bn in self._bnodes:
            rc = self._regions[bn.region]
            idx = np.array([bn.node])
            u = self._gather(U, rc, idx)
            self._scatter(R, fs.breaction(u, bn, state), rc, idx)
            self._scatter(R, fs.bstorage(u, bn, state), rc, idx)
            if bn.bregion < 2 and fs.has_bflux(bn.bregion):
                u_in = self._gather(U, rc, np.array([bn.neighbor]))
                self._scatter(R, fs.bflux(u, u_in, bn, state), rc, idx)

        for left, right in self._ifaces:
            idx = np.array([left.node])
            rl, rr = self._regions[left.region], self._regions[right.region]
            f_l, f_r = discontinuous_transfer(
                fs, self._gather(U, rl, idx), self._gather(U, rr, idx), left, right, state)
            self._scatter(R, f_l, rl, idx)
            self._scatter(R, f_r, rr, idx)

        R[~self.active] = U[~self.active]
        for conds in self.dirichlet.values():
            for bc in conds:
                R[bc.slot, bc.node] = U[bc.slot, bc.node] - bc.value
        return R

    # ------------------------------------------------------------------
    # Jacobian
    # ------------------------------------------------------------------

    def jacobian(self, U: np.ndarray, U_old: Optional[np.ndarray] = None,
                 tstep: float = np.inf, R0: Optional[np.ndarray] = None) -> BlockTridiagonal:
        """
        Colored forward differences: nodes sharing `index mod 3` are perturbed
        together per slot, since every term couples at most nearest neighbours.
        """
        S, N = self.num_slots, self.num_nodes
        if R0 is None:
            R0 = self.residual(U, U_old, tstep)
        J = BlockTridiagonal.zeros(N, S)
        idx = np.arange(N)
        for s in range(S):
            for c in range(3):
                cols = idx[idx % 3 == c]
                if cols.size == 0:
                    continue
                step = FD_STEP * np.maximum(1.0, np.abs(U[s, cols]))
                Up = U.copy()
                Up[s, cols] += step
                dR = self.residual(Up, U_old, tstep) - R0      # (S, N)
                inv = np.zeros(N)
                inv[cols] = 1.0 / step
                # rows i whose own node was perturbed
                J.diag[cols, :, s] = (dR[:, cols] * inv[cols]).T
                # rows i with perturbed left neighbour i-1
                rows = cols + 1
                rows = rows[rows < N]
                J.lower[rows, :, s] = (dR[:, rows] * inv[rows - 1]).T
                # rows i with perturbed right neighbour i+1
                rows = cols - 1
                rows = rows[rows >= 0]
                J.upper[rows, :, s] = (dR[:, rows] * inv[rows + 1]).T
        return J

    # ------------------------------------------------------------------
    # Terminal current
    # ------------------------------------------------------------------

    def contact_current(self, U: np.ndarray, bregion: int, U_old: Optional[np.ndarray] = None,
                        tstep: float = np.inf) -> float:
        """
        Total current density [A/m^2] leaving the contact node into the
        device: carrier rows of the bulk residual at that node, plus the
        displacement term between U_old and U in transient mode.
        """
        grid = self.ctx.grid
        node = int(grid.bregion_node[bregion])
        rc = self._regions[grid.adjacent_region(bregion)]
        R = self.bulk_residual(U, U_old, tstep)
        I = 0.0
        for icc, s in rc.slots:
            if icc not in self.ctx.trap_carriers:
                I += float(R[s, node])
        if self.state.transient and np.isfinite(tstep) and U_old is not None:
            nb = 1 if node == 0 else node - 1
            h = grid.dz[0] if node == 0 else grid.dz[-1]
            eps = self._edge_permittivity(rc.region, node, nb)
            d_new = eps * (U[self.ipsi, node] - U[self.ipsi, nb]) / h
            d_old = eps * (U_old[self.ipsi, node] - U_old[self.ipsi, nb]) / h
            I += (d_new - d_old) / tstep
        return I

    def _edge_permittivity(self, region: int, k: int, l: int) -> float:
        p, nd = self.ctx.params, self.ctx.nodal
        return float(EPS0 * (p.dielectric_constant[region]
                             + 0.5 * (nd.dielectric_constant[k] + nd.dielectric_constant[l])))
