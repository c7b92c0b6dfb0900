# heterosim/models/pin_diode.py
"""
Three-layer donor | intrinsic | acceptor diode with optional mobile ions.

- Band edges referenced to midgap (E_c = +Eg/2, E_v = −Eg/2 per layer),
  optional band offsets per layer for heterojunctions
- Ohmic contacts by default; the right contact may be Schottky
- Optional ionic species enabled only in the intrinsic layer
- Equilibrium via λ1 embedding, then an optional linear bias ramp

Run:
    heterosim pin --help
    heterosim pin --v-end 1.2 --steps 13 --csv pin_iv.csv
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..geometry.builder import Grid1D, LayerSpec, MeshSpec, StackSpec, build_grid
from ..solver.homotopy import RampResult, linear_bias_ramp, ramp
from ..solver.newton import NewtonControl
from ..utils.constants import EV
from .config import BulkRecombination, IonicCarriers, ModelConfig
from .device import DeviceSystem
from .params import Params

__all__ = [
    "PINParams",
    "PINResult",
    "build_pin_device",
    "solve_pin",
]

IPHIN, IPHIP, IPHIA = 0, 1, 2
DONOR, INTRINSIC, ACCEPTOR = 0, 1, 2


# -----------------------------------------------------------------------------
# Dataclasses
# -----------------------------------------------------------------------------

@dataclass(slots=True)
class PINParams:
    """Inputs for a midgap-referenced p-i-n stack (SI units)."""
    h_m: Tuple[float, float, float] = (100e-9, 200e-9, 100e-9)
    N_layer: Tuple[int, int, int] = (20, 40, 20)
    T_K: float = 300.0

    Eg_eV: Tuple[float, float, float] = (1.2, 1.2, 1.2)
    offset_eV: Tuple[float, float, float] = (0.0, 0.0, 0.0)   # rigid shift of both edges
    dos_m3: float = 1.0e25
    mobility_m2_Vs: float = 1.0e-4
    eps_r: Tuple[float, float, float] = (10.0, 10.0, 10.0)
    Nd_m3: float = 1.0e23
    Na_m3: float = 1.0e23
    radiative_m3_s: float = 1.0e-17   # intrinsic layer only

    with_ions: bool = False
    ion_dos_m3: float = 1.0e22
    ion_band_edge_eV: float = 1.5
    ion_mobility_m2_Vs: float = 0.0
    ion_doping_m3: float = 1.0e22

    right_contact: str = "OhmicContact"
    schottky_barrier_eV: float = 0.4  # E_c at the contact above the Fermi level
    schottky_velocity_m_s: float = 1.0e5

    model_type: str = "Stationary"


@dataclass(slots=True)
class PINResult:
    """Equilibrium fields plus the (optional) bias ramp."""
    z_m: np.ndarray
    psi_V: np.ndarray
    E_C_J: np.ndarray
    E_V_J: np.ndarray
    n_m3: np.ndarray
    p_m3: np.ndarray
    equilibrium: np.ndarray
    sweep: Optional[RampResult]


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------

def _pin_grid(p: PINParams) -> Grid1D:
    layers = [
        LayerSpec(name="donor", thickness=p.h_m[0], region=DONOR),
        LayerSpec(name="intrinsic", thickness=p.h_m[1], region=INTRINSIC),
        LayerSpec(name="acceptor", thickness=p.h_m[2], region=ACCEPTOR),
    ]
    return build_grid(StackSpec(layers=layers), MeshSpec(per_layer_N=p.N_layer))


def build_pin_device(p: Optional[PINParams] = None) -> DeviceSystem:
    p = p or PINParams()
    grid = _pin_grid(p)
    nc = 3 if p.with_ions else 2

    params = Params(grid.num_regions, grid.num_bregions, nc, temperature=p.T_K)
    params.charge_numbers[:2] = (-1.0, 1.0)
    for ireg in range(3):
        half = 0.5 * p.Eg_eV[ireg]
        params.dielectric_constant[ireg] = p.eps_r[ireg]
        params.band_edge_energy[IPHIN, ireg] = (p.offset_eV[ireg] + half) * EV
        params.band_edge_energy[IPHIP, ireg] = (p.offset_eV[ireg] - half) * EV
        for icc in (IPHIN, IPHIP):
            params.density_of_states[icc, ireg] = p.dos_m3
            params.mobility[icc, ireg] = p.mobility_m2_Vs
            params.recombination_SRH_lifetime[icc, ireg] = 1.0e100
            params.recombination_SRH_trap_density[icc, ireg] = p.dos_m3
    params.doping[IPHIN, DONOR] = p.Nd_m3
    params.doping[IPHIP, ACCEPTOR] = p.Na_m3
    params.recombination_radiative[INTRINSIC] = p.radiative_m3_s

    ionic = None
    if p.with_ions:
        params.charge_numbers[IPHIA] = 1.0
        params.density_of_states[IPHIA, INTRINSIC] = p.ion_dos_m3
        params.band_edge_energy[IPHIA, INTRINSIC] = p.ion_band_edge_eV * EV
        params.mobility[IPHIA, INTRINSIC] = p.ion_mobility_m2_Vs
        params.doping[IPHIA, INTRINSIC] = p.ion_doping_m3
        ionic = IonicCarriers(carriers=(IPHIA,), regions=(INTRINSIC,))

    boundary_type = ["OhmicContact", p.right_contact] + ["InterfaceModelNone"] * (grid.num_bregions - 2)
    if p.right_contact in ("SchottkyContact", "SchottkyBarrierLowering"):
        params.schottky_barrier[1] = p.schottky_barrier_eV * EV
        params.b_velocity[:2, 1] = p.schottky_velocity_m_s
    params.fill_boundary_from_regions(grid.bregion_regions)

    config = ModelConfig.for_grid(
        grid, nc,
        statistics=["Boltzmann", "Boltzmann", "FermiDiracMinusOne"][:nc],
        flux_approximation=["ScharfetterGummel", "ScharfetterGummel", "ExcessChemicalPotential"][:nc],
        boundary_type=boundary_type,
        bulk_recombination=BulkRecombination(iphin=IPHIN, iphip=IPHIP,
                                             SRH=False, radiative=True, Auger=False),
        ionic_carriers=ionic,
        model_type=p.model_type,
    )
    return DeviceSystem(grid, config, params)


def solve_pin(p: Optional[PINParams] = None, v_end: Optional[float] = None, steps: int = 13,
              control: Optional[NewtonControl] = None) -> PINResult:
    """
    Equilibrium solve, then (if `v_end` is given) a linear ramp on the right
    contact. Band edges and densities are reported at equilibrium.
    """
    dev = build_pin_device(p)
    eq = dev.equilibrium_solve(control, nonlinear_steps=20)
    band, _fermi = dev.compute_energies(eq)
    dens = dev.compute_densities(eq)

    sweep = None
    if v_end is not None:
        sweep = ramp(dev, linear_bias_ramp(v_end, steps), contact=1,
                     initial_guess=eq, control=control)

    return PINResult(
        z_m=dev.grid.z.copy(),
        psi_V=np.array(eq[dev.ipsi], copy=True),
        E_C_J=band[IPHIN],
        E_V_J=band[IPHIP],
        n_m3=dens[IPHIN],
        p_m3=dens[IPHIP],
        equilibrium=eq,
        sweep=sweep,
    )
