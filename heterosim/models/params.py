# heterosim/models/params.py
"""
Parameter store: region- and boundary-region-indexed physical constants.

- SI units throughout (energies in J, densities in 1/m^3, mobilities in m^2/(V s)).
- Every table is pre-sized to zero from grid-derived counts; callers fill the
  entries they need before building a DeviceSystem.
- ParamsNodal holds additive per-node corrections (graded profiles).

Public API (stable):
    Params(number_of_regions, number_of_boundary_regions, number_of_carriers)
    Params.get(field, carrier=None, region=None)
    Params.set(field, value, carrier=None, region=None)
    Params.trap_density(carrier, region, trap_energy)
    Params.fill_boundary_from_regions(bregion_regions)
    Params.check(enabled, iphin, iphip, srh_on)
    Params.show() -> pandas.DataFrame
    ParamsNodal(number_of_nodes, number_of_carriers)
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from typing import Optional

import numpy as np
import pandas as pd

from ..utils.constants import K_B, Q
from ..utils.errors import ConfigurationError

__all__ = ["Params", "ParamsNodal", "REGION_TABLES", "BOUNDARY_TABLES"]

# (carrier, region) tables
REGION_TABLES = (
    "density_of_states",
    "band_edge_energy",
    "mobility",
    "doping",
    "recombination_SRH_lifetime",
    "recombination_SRH_trap_density",
    "recombination_Auger",
)
# (region,) vectors
REGION_VECTORS = (
    "dielectric_constant",
    "dielectric_constant_image_force",
    "recombination_radiative",
    "generation_uniform",
    "generation_incident_photon_flux",
    "generation_absorption",
)
# (carrier, boundary region) tables
BOUNDARY_TABLES = (
    "b_density_of_states",
    "b_band_edge_energy",
    "b_mobility",
    "b_doping",
    "b_velocity",
    "b_densities_eq",
    "recombination_SRH_velocity",
    "b_recombination_SRH_trap_density",
)
# (boundary region,) vectors
BOUNDARY_VECTORS = ("schottky_barrier", "contact_voltage")


@dataclass
class Params:
    number_of_regions: int
    number_of_boundary_regions: int
    number_of_carriers: int

    temperature: float = 300.0
    UT: float = field(init=False)
    gamma: float = 0.27              # Blakemore constant
    r0: float = 0.0                  # electrochemical reaction prefactor (λ3 ramps, reserved)
    prefactor_SRH: float = 1.0
    generation_peak: float = 0.0     # [m] position where Beer–Lambert starts
    inverted_illumination: int = 1   # +1 left→right, -1 right→left

    charge_numbers: np.ndarray = field(init=False)

    density_of_states: np.ndarray = field(init=False)
    band_edge_energy: np.ndarray = field(init=False)
    mobility: np.ndarray = field(init=False)
    doping: np.ndarray = field(init=False)
    recombination_SRH_lifetime: np.ndarray = field(init=False)
    recombination_SRH_trap_density: np.ndarray = field(init=False)
    recombination_Auger: np.ndarray = field(init=False)

    dielectric_constant: np.ndarray = field(init=False)        # relative, ε = ε_r ε0
    dielectric_constant_image_force: np.ndarray = field(init=False)
    recombination_radiative: np.ndarray = field(init=False)
    generation_uniform: np.ndarray = field(init=False)
    generation_incident_photon_flux: np.ndarray = field(init=False)
    generation_absorption: np.ndarray = field(init=False)

    b_density_of_states: np.ndarray = field(init=False)
    b_band_edge_energy: np.ndarray = field(init=False)
    b_mobility: np.ndarray = field(init=False)
    b_doping: np.ndarray = field(init=False)
    b_velocity: np.ndarray = field(init=False)
    b_densities_eq: np.ndarray = field(init=False)
    recombination_SRH_velocity: np.ndarray = field(init=False)
    b_recombination_SRH_trap_density: np.ndarray = field(init=False)

    schottky_barrier: np.ndarray = field(init=False)
    contact_voltage: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        nc, nr, nb = self.number_of_carriers, self.number_of_regions, self.number_of_boundary_regions
        if nc < 1 or nr < 1 or nb < 0:
            raise ConfigurationError(
                f"invalid counts: carriers={nc}, regions={nr}, boundary regions={nb}"
            )
        self.UT = K_B * self.temperature / Q
        self.charge_numbers = np.zeros(nc, dtype=np.float64)
        for name in REGION_TABLES:
            setattr(self, name, np.zeros((nc, nr), dtype=np.float64))
        for name in REGION_VECTORS:
            setattr(self, name, np.zeros(nr, dtype=np.float64))
        for name in BOUNDARY_TABLES:
            setattr(self, name, np.zeros((nc, nb), dtype=np.float64))
        for name in BOUNDARY_VECTORS:
            setattr(self, name, np.zeros(nb, dtype=np.float64))

    # -----------------------------------------------------------------
    # Access
    # -----------------------------------------------------------------

    def set_temperature(self, T: float) -> None:
        if T <= 0.0:
            raise ConfigurationError(f"temperature must be > 0 K (got {T})")
        self.temperature = float(T)
        self.UT = K_B * self.temperature / Q

    def _table(self, name: str) -> np.ndarray:
        if name not in _ARRAY_FIELDS:
            raise KeyError(f"unknown parameter field {name!r}")
        return getattr(self, name)

    def _index(self, name: str, carrier: Optional[int], region: Optional[int]):
        arr = self._table(name)
        idx = tuple(i for i in (carrier, region) if i is not None)
        if len(idx) != arr.ndim:
            raise IndexError(f"{name} has shape {arr.shape}; got index {idx}")
        for i, n in zip(idx, arr.shape):
            if not 0 <= i < n:
                raise IndexError(f"{name}: index {i} out of range [0, {n})")
        return arr, idx

    def get(self, name: str, carrier: Optional[int] = None, region: Optional[int] = None) -> float:
        """Read one entry. `region` is a boundary-region index for b_* fields."""
        arr, idx = self._index(name, carrier, region)
        return float(arr[idx])

    def set(self, name: str, value: float, carrier: Optional[int] = None,
            region: Optional[int] = None) -> None:
        arr, idx = self._index(name, carrier, region)
        arr[idx] = float(value)

    def copy(self) -> "Params":
        return copy.deepcopy(self)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def trap_density(self, carrier: int, region: int, trap_energy: float) -> float:
        """
        Equilibrium density of `carrier` with its band edge at the trap level:
            n_τ = N exp(z (E − E_t) / (k_B T))
        """
        N = self.density_of_states[carrier, region]
        E = self.band_edge_energy[carrier, region]
        z = self.charge_numbers[carrier]
        return float(N * np.exp(z * (E - trap_energy) / (K_B * self.temperature)))

    def fill_boundary_from_regions(self, bregion_regions: np.ndarray) -> None:
        """
        Copy adjacent-region values into unset (zero) b_* entries of the outer
        contacts: density of states, band edge, doping and mobility.
        `bregion_regions` is the grid's (num_bregions, 2) adjacency table.
        """
        pairs = (("b_density_of_states", "density_of_states"),
                 ("b_band_edge_energy", "band_edge_energy"),
                 ("b_doping", "doping"),
                 ("b_mobility", "mobility"))
        for b in range(min(2, self.number_of_boundary_regions)):
            left, right = (int(r) for r in bregion_regions[b])
            ireg = left if left >= 0 else right
            for bname, rname in pairs:
                barr, rarr = getattr(self, bname), getattr(self, rname)
                unset = barr[:, b] == 0.0
                barr[unset, b] = rarr[unset, ireg]

    def check(self, enabled: np.ndarray, iphin: int, iphip: int, srh_on: bool) -> None:
        """
        Fail fast on unset or inconsistent entries. `enabled` is the boolean
        (carriers, regions) presence mask.
        """
        nc, nr = self.number_of_carriers, self.number_of_regions
        if self.temperature <= 0.0:
            raise ConfigurationError(f"temperature must be > 0 K (got {self.temperature})")
        for name in REGION_TABLES:
            if getattr(self, name).shape != (nc, nr):
                raise ConfigurationError(f"{name} must have shape {(nc, nr)}")
        if enabled.shape != (nc, nr):
            raise ConfigurationError(f"carrier mask must have shape {(nc, nr)}")
        bad = np.flatnonzero(self.dielectric_constant <= 0.0)
        if bad.size:
            raise ConfigurationError(f"dielectric_constant must be > 0 in regions {bad.tolist()}")
        for icc in (iphin, iphip):
            if not 0 <= icc < nc:
                raise ConfigurationError(f"reference carrier index {icc} out of range [0, {nc})")
        if self.charge_numbers[iphin] == 0.0 or self.charge_numbers[iphip] == 0.0:
            raise ConfigurationError("electron and hole charge numbers must be nonzero")
        dos_bad = np.argwhere(enabled & ~(self.density_of_states > 0.0))
        if dos_bad.size:
            icc, ireg = dos_bad[0]
            raise ConfigurationError(
                f"density_of_states must be > 0 for enabled carrier {icc} in region {ireg}"
            )
        if not np.all(np.isfinite(self.band_edge_energy[enabled])):
            raise ConfigurationError("band_edge_energy has non-finite entries for enabled carriers")
        if srh_on:
            for icc in (iphin, iphip):
                tau = self.recombination_SRH_lifetime[icc]
                if np.any(tau <= 0.0):
                    ireg = int(np.flatnonzero(tau <= 0.0)[0])
                    raise ConfigurationError(
                        f"SRH is enabled but recombination_SRH_lifetime[{icc}, {ireg}] <= 0"
                    )

    def show(self) -> pd.DataFrame:
        """Tabulate per-carrier region and boundary tables (one row per field/carrier)."""
        rows = []
        for name in REGION_TABLES + BOUNDARY_TABLES:
            arr = getattr(self, name)
            for icc in range(arr.shape[0]):
                rows.append({"field": name, "carrier": icc,
                             **{f"[{j}]": v for j, v in enumerate(arr[icc])}})
        for name in REGION_VECTORS + BOUNDARY_VECTORS + ("charge_numbers",):
            arr = getattr(self, name)
            rows.append({"field": name, "carrier": None,
                         **{f"[{j}]": v for j, v in enumerate(arr)}})
        return pd.DataFrame(rows)


_ARRAY_FIELDS = frozenset(REGION_TABLES + REGION_VECTORS + BOUNDARY_TABLES
                          + BOUNDARY_VECTORS + ("charge_numbers",))


@dataclass
class ParamsNodal:
    """
    Per-node additive corrections. Created once at setup, may change between
    solves, read-only during a solve.
    """
    number_of_nodes: int
    number_of_carriers: int
    dielectric_constant: np.ndarray = field(init=False)
    doping: np.ndarray = field(init=False)
    mobility: np.ndarray = field(init=False)
    density_of_states: np.ndarray = field(init=False)
    band_edge_energy: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        nc, N = self.number_of_carriers, self.number_of_nodes
        self.dielectric_constant = np.zeros(N, dtype=np.float64)
        for f in fields(self):
            if f.name in ("doping", "mobility", "density_of_states", "band_edge_energy"):
                setattr(self, f.name, np.zeros((nc, N), dtype=np.float64))

    def is_trivial(self) -> bool:
        return not any(np.any(getattr(self, n) != 0.0) for n in
                       ("dielectric_constant", "doping", "mobility",
                        "density_of_states", "band_edge_energy"))
