# heterosim/models/psc_device.py
"""
Three-layer perovskite solar cell: ETL | perovskite (mobile anion vacancies) | HTL.

- Ohmic contacts on both sides, bias applied at the HTL (right) contact
- Anion vacancies only in the perovskite layer, Fermi–Dirac(−1) statistics
  bounding their accumulation, background vacancy doping C0
- Excess-chemical-potential fluxes for all carriers
- Beer–Lambert generation in the perovskite, switched on through λ2 during
  the forward scan
- Transient forward/reverse I–V protocol at a fixed scan rate

Run:
    heterosim psc --help
    heterosim psc --n 2 --steps 21 --csv psc_iv.csv
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..geometry.builder import Grid1D, LayerSpec, MeshSpec, StackSpec, build_grid
from ..solver.homotopy import RampPoint, RampResult, ramp
from ..solver.newton import NewtonControl
from ..utils.constants import CM, EV
from .config import BulkRecombination, IonicCarriers, ModelConfig
from .device import DeviceSystem
from .params import Params

__all__ = [
    "PSCParams",
    "PSCResult",
    "build_psc_device",
    "psc_scan_schedule",
    "run_psc",
]

IPHIN, IPHIP, IPHIA = 0, 1, 2
DONOR, INTRINSIC, ACCEPTOR = 0, 1, 2
BREGION_DONOR, BREGION_ACCEPTOR = 0, 1


# -----------------------------------------------------------------------------
# Dataclasses
# -----------------------------------------------------------------------------

@dataclass(slots=True)
class PSCParams:
    """Layer data per (ETL, perovskite, HTL); energies in eV, densities in cm^-3."""
    n: int = 2                         # mesh refinement level
    T_K: float = 298.0

    h_nm: Tuple[float, float, float] = (99.0, 402.0, 199.0)
    Ec_eV: Tuple[float, float, float] = (-4.0, -3.7, -3.4)
    Ev_eV: Tuple[float, float, float] = (-5.8, -5.4, -5.1)
    Nc_cm3: Tuple[float, float, float] = (5.0e19, 8.1e18, 5.0e19)
    Nv_cm3: Tuple[float, float, float] = (5.0e19, 5.8e18, 5.0e19)
    mu_n_cm2: Tuple[float, float, float] = (3.89, 66.2, 0.389)
    mu_p_cm2: Tuple[float, float, float] = (3.89, 66.2, 0.389)
    eps_r: Tuple[float, float, float] = (10.0, 24.1, 3.0)
    tau_n_s: Tuple[float, float, float] = (1.0e100, 3.0e-9, 1.0e100)
    tau_p_s: Tuple[float, float, float] = (1.0e100, 3.0e-7, 1.0e100)
    Et_eV: Tuple[float, float, float] = (-5.0, -4.55, -4.1)

    N_anion_cm3: float = 1.0e21
    Ea_eV: float = -4.45
    mu_a_cm2: float = 3.93e-12
    C0_cm3: float = 1.6e19
    Nd_cm3: float = 1.0e18
    Na_cm3: float = 1.0e18

    photon_flux_m2_s: float = 1.4e21
    absorption_1_m: float = 1.3e7

    v_end: float = 1.2
    scan_rate: float = 1.0             # [V/s]
    number_tsteps: int = 21


@dataclass(slots=True)
class PSCResult:
    grid: Grid1D
    device: DeviceSystem
    equilibrium: np.ndarray
    forward: RampResult
    reverse: RampResult

    def mean_value(self) -> float:
        """Mean of the final unknowns, ignoring inactive (NaN) entries."""
        x = self.reverse.solutions[-1]
        return float(np.nanmean(x))


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------

def _psc_grid(p: PSCParams) -> Grid1D:
    delta = 4 * int(p.n)
    layers = [
        LayerSpec(name="ETL", thickness=p.h_nm[0] * 1e-9, region=DONOR),
        LayerSpec(name="perovskite", thickness=p.h_nm[1] * 1e-9, region=INTRINSIC),
        LayerSpec(name="HTL", thickness=p.h_nm[2] * 1e-9, region=ACCEPTOR),
    ]
    mesh = MeshSpec(
        per_layer_N=(3 * delta, 6 * delta, 3 * delta),
        refine_interfaces=True,
        stretch_ratio=1.15,
        stretch_cells=delta,
    )
    return build_grid(StackSpec(layers=layers), mesh)


def build_psc_device(p: Optional[PSCParams] = None) -> DeviceSystem:
    p = p or PSCParams()
    grid = _psc_grid(p)
    cm3 = CM ** -3
    cm2 = CM ** 2

    params = Params(grid.num_regions, grid.num_bregions, 3, temperature=p.T_K)
    params.charge_numbers[:] = (-1.0, 1.0, 1.0)
    for ireg in range(3):
        params.dielectric_constant[ireg] = p.eps_r[ireg]
        params.density_of_states[IPHIN, ireg] = p.Nc_cm3[ireg] * cm3
        params.density_of_states[IPHIP, ireg] = p.Nv_cm3[ireg] * cm3
        params.band_edge_energy[IPHIN, ireg] = p.Ec_eV[ireg] * EV
        params.band_edge_energy[IPHIP, ireg] = p.Ev_eV[ireg] * EV
        params.mobility[IPHIN, ireg] = p.mu_n_cm2[ireg] * cm2
        params.mobility[IPHIP, ireg] = p.mu_p_cm2[ireg] * cm2
        params.recombination_SRH_lifetime[IPHIN, ireg] = p.tau_n_s[ireg]
        params.recombination_SRH_lifetime[IPHIP, ireg] = p.tau_p_s[ireg]
        for icc in (IPHIN, IPHIP):
            params.recombination_SRH_trap_density[icc, ireg] = params.trap_density(
                icc, ireg, p.Et_eV[ireg] * EV)

    params.density_of_states[IPHIA, INTRINSIC] = p.N_anion_cm3 * cm3
    params.band_edge_energy[IPHIA, INTRINSIC] = p.Ea_eV * EV
    params.mobility[IPHIA, INTRINSIC] = p.mu_a_cm2 * cm2

    params.generation_incident_photon_flux[INTRINSIC] = p.photon_flux_m2_s
    params.generation_absorption[INTRINSIC] = p.absorption_1_m
    params.generation_peak = p.h_nm[0] * 1e-9

    params.doping[IPHIN, DONOR] = p.Nd_cm3 * cm3
    params.doping[IPHIA, INTRINSIC] = p.C0_cm3 * cm3
    params.doping[IPHIP, ACCEPTOR] = p.Na_cm3 * cm3
    params.fill_boundary_from_regions(grid.bregion_regions)

    config = ModelConfig.for_grid(
        grid, 3,
        statistics=["Boltzmann", "Boltzmann", "FermiDiracMinusOne"],
        flux_approximation=["ExcessChemicalPotential"] * 3,
        bulk_recombination=BulkRecombination(iphin=IPHIN, iphip=IPHIP,
                                             SRH=True, radiative=True, Auger=True),
        ionic_carriers=IonicCarriers(carriers=(IPHIA,), regions=(INTRINSIC,)),
        generation_model="GenerationBeerLambert",
        model_type="Transient",
    )
    return DeviceSystem(grid, config, params, unknown_storage="sparse")


def psc_scan_schedule(p: Optional[PSCParams] = None) -> Tuple[List[RampPoint], List[RampPoint]]:
    """
    Forward scan with generation switched on geometrically (λ2 → 1 at the
    last point), then the reverse scan back to the first nonzero bias.
    """
    p = p or PSCParams()
    tend = p.v_end / p.scan_rate
    t = np.linspace(0.0, tend, int(p.number_tsteps))
    last = len(t) - 1
    forward = [
        RampPoint(bias=float(t[i] * p.scan_rate), tstep=float(t[i] - t[i - 1]),
                  lambda2=float(10.0 ** -(last - i)))
        for i in range(1, len(t))
    ]
    reverse = [
        RampPoint(bias=float(t[i] * p.scan_rate), tstep=float(t[i] - t[i - 1]))
        for i in range(last, 0, -1)
    ]
    return forward, reverse


def run_psc(p: Optional[PSCParams] = None, control: Optional[NewtonControl] = None) -> PSCResult:
    p = p or PSCParams()
    ctl = control or NewtonControl(max_iterations=300, damp_initial=0.5, damp_growth=1.21,
                                   handle_exceptions=True, max_round=5, tol_round=1e-10)
    dev = build_psc_device(p)
    eq = dev.equilibrium_solve(ctl, nonlinear_steps=20)
    forward, reverse = psc_scan_schedule(p)
    fwd = ramp(dev, forward, contact=BREGION_ACCEPTOR, initial_guess=eq, control=ctl)
    rev = ramp(dev, reverse, contact=BREGION_ACCEPTOR, initial_guess=fwd.solutions[-1], control=ctl)
    return PSCResult(grid=dev.grid, device=dev, equilibrium=eq, forward=fwd, reverse=rev)
