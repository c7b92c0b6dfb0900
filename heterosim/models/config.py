# heterosim/models/config.py
"""
Model configuration: per-carrier law selection, per-boundary models, bulk
recombination toggles, ionic carriers and traps, calculation/time modes.

Usage
-----
    cfg = ModelConfig.for_grid(grid, number_of_carriers=3)
    cfg.statistics[2] = "FermiDiracMinusOne"
    cfg.ionic_carriers = IonicCarriers(carriers=(2,), regions=(1,))
    ctx = freeze(cfg, params, nodal, grid)   # immutable PhysicsContext

Closed sets are Literal aliases; every name is resolved to a function exactly
once in `freeze` so evaluators never branch on strings per call.

Public API (stable):
    BoundaryName, CalculationType, ModelType, GenerationModel
    BulkRecombination, IonicCarriers, Traps
    ModelConfig
    ContinuationState
    PhysicsContext, freeze(config, params, nodal, grid)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence, Tuple

import numpy as np

from ..discretization.fluxes import FLUX_NAMES, FluxScheme, resolve_flux
from ..geometry.builder import Grid1D
from ..physics.carriers.statistics import Distribution, make_distribution
from ..utils.errors import ConfigurationError
from .params import Params, ParamsNodal

__all__ = [
    "BoundaryName",
    "BOUNDARY_NAMES",
    "CalculationType",
    "ModelType",
    "GenerationModel",
    "BulkRecombination",
    "IonicCarriers",
    "Traps",
    "ModelConfig",
    "ContinuationState",
    "PhysicsContext",
    "freeze",
]

BoundaryName = Literal[
    "OhmicContact",
    "SchottkyContact",
    "SchottkyBarrierLowering",
    "InterfaceModelNone",
    "InterfaceModelDiscontqF",
    "InterfaceModelSurfaceReco",
]
BOUNDARY_NAMES: Tuple[str, ...] = (
    "OhmicContact",
    "SchottkyContact",
    "SchottkyBarrierLowering",
    "InterfaceModelNone",
    "InterfaceModelDiscontqF",
    "InterfaceModelSurfaceReco",
)
OUTER_MODELS = ("OhmicContact", "SchottkyContact", "SchottkyBarrierLowering", "InterfaceModelNone")
INNER_MODELS = ("InterfaceModelNone", "InterfaceModelDiscontqF", "InterfaceModelSurfaceReco")

CalculationType = Literal["InEquilibrium", "OutOfEquilibrium"]
ModelType = Literal["Stationary", "Transient"]
GenerationModel = Literal["GenerationNone", "GenerationUniform", "GenerationBeerLambert"]
_GENERATION = ("GenerationNone", "GenerationUniform", "GenerationBeerLambert")


# ---------------------------------------------------------------------
# Sub-model records
# ---------------------------------------------------------------------


@dataclass(slots=True)
class BulkRecombination:
    """
    Mechanism toggles plus the electron/hole reference carrier indices.
    Toggles are read once when the physics context is frozen.
    """
    iphin: int = 0
    iphip: int = 1
    SRH: bool = True
    radiative: bool = True
    Auger: bool = True


@dataclass(slots=True)
class IonicCarriers:
    """Mobile ionic species and the regions they live in."""
    carriers: Sequence[int]
    regions: Sequence[int]


@dataclass(slots=True)
class Traps:
    """Trap-state carriers (occupancy unknowns) and their regions."""
    carriers: Sequence[int]
    regions: Sequence[int]


@dataclass
class ModelConfig:
    number_of_carriers: int
    number_of_boundary_regions: int
    statistics: List[str] = field(default_factory=list)
    flux_approximation: List[str] = field(default_factory=list)
    is_continuous: List[bool] = field(default_factory=list)
    boundary_type: List[str] = field(default_factory=list)
    bulk_recombination: BulkRecombination = field(default_factory=BulkRecombination)
    ionic_carriers: Optional[IonicCarriers] = None
    traps: Optional[Traps] = None
    generation_model: str = "GenerationNone"
    calculation_type: str = "InEquilibrium"
    model_type: str = "Stationary"

    def __post_init__(self) -> None:
        nc, nb = self.number_of_carriers, self.number_of_boundary_regions
        if not self.statistics:
            self.statistics = ["Boltzmann"] * nc
        if not self.flux_approximation:
            self.flux_approximation = ["ScharfetterGummel"] * nc
        if not self.is_continuous:
            self.is_continuous = [True] * nc
        if not self.boundary_type:
            self.boundary_type = ["OhmicContact" if b < 2 else "InterfaceModelNone" for b in range(nb)]

    @classmethod
    def for_grid(cls, grid: Grid1D, number_of_carriers: int, **kwargs) -> "ModelConfig":
        return cls(number_of_carriers=number_of_carriers,
                   number_of_boundary_regions=grid.num_bregions, **kwargs)

    def validate(self, num_regions: int) -> None:
        nc, nb = self.number_of_carriers, self.number_of_boundary_regions
        for name, seq, n in (("statistics", self.statistics, nc),
                             ("flux_approximation", self.flux_approximation, nc),
                             ("is_continuous", self.is_continuous, nc),
                             ("boundary_type", self.boundary_type, nb)):
            if len(seq) != n:
                raise ConfigurationError(f"{name} needs {n} entries (got {len(seq)})")
        for b, model in enumerate(self.boundary_type):
            allowed = OUTER_MODELS if b < 2 else INNER_MODELS
            if model not in allowed:
                raise ConfigurationError(
                    f"boundary region {b}: model {model!r} not allowed here; choose one of {allowed}"
                )
        for name in self.flux_approximation:
            if name not in FLUX_NAMES:
                raise ConfigurationError(f"unknown flux approximation {name!r}")
        if self.generation_model not in _GENERATION:
            raise ConfigurationError(f"unknown generation model {self.generation_model!r}")
        if self.calculation_type not in ("InEquilibrium", "OutOfEquilibrium"):
            raise ConfigurationError(f"unknown calculation type {self.calculation_type!r}")
        if self.model_type not in ("Stationary", "Transient"):
            raise ConfigurationError(f"unknown model type {self.model_type!r}")

        br = self.bulk_recombination
        if br.iphin == br.iphip:
            raise ConfigurationError("iphin and iphip must be distinct carriers")
        for icc in (br.iphin, br.iphip):
            if not 0 <= icc < nc:
                raise ConfigurationError(f"carrier index {icc} out of range [0, {nc})")
        if self.traps is not None and self.traps.carriers and not br.SRH:
            raise ConfigurationError("trap carriers are charged through SRH capture; enable SRH")

        seen: set[int] = {br.iphin, br.iphip}
        for label, sub in (("ionic carrier", self.ionic_carriers), ("trap", self.traps)):
            if sub is None:
                continue
            for icc in sub.carriers:
                if not 0 <= icc < nc:
                    raise ConfigurationError(f"{label} index {icc} out of range [0, {nc})")
                if icc in seen:
                    raise ConfigurationError(f"{label} index {icc} already used by another carrier")
                seen.add(icc)
            for ireg in sub.regions:
                if not 0 <= ireg < num_regions:
                    raise ConfigurationError(f"{label} region {ireg} out of range [0, {num_regions})")


# ---------------------------------------------------------------------
# Mutable per-run state
# ---------------------------------------------------------------------


@dataclass
class ContinuationState:
    """
    The only state mutated between solver calls.

    λ1: Poisson space-charge embedding, λ2: generation embedding,
    λ3: reserved for interface-reaction ramps.
    """
    calculation_type: str = "InEquilibrium"
    model_type: str = "Stationary"
    lambda1: float = 1.0
    lambda2: float = 1.0
    lambda3: float = 1.0
    equilibrium_done: bool = False

    @property
    def in_equilibrium(self) -> bool:
        return self.calculation_type == "InEquilibrium"

    @property
    def transient(self) -> bool:
        return self.model_type == "Transient"

    def set_lambda(self, name: str, value: float) -> None:
        if name not in ("lambda1", "lambda2", "lambda3"):
            raise KeyError(f"unknown embedding parameter {name!r}")
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name} must lie in [0, 1] (got {value})")
        setattr(self, name, float(value))

    def leave_equilibrium(self) -> None:
        """InEquilibrium → OutOfEquilibrium; idempotent once out."""
        self.calculation_type = "OutOfEquilibrium"

    def require_equilibrium(self) -> None:
        if not self.in_equilibrium:
            raise ConfigurationError(
                "state is already OutOfEquilibrium; it never returns to equilibrium within a run"
            )


# ---------------------------------------------------------------------
# Frozen physics context
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class PhysicsContext:
    grid: Grid1D
    params: Params
    nodal: ParamsNodal
    statistics: Tuple[Distribution, ...]
    fluxes: Tuple[FluxScheme, ...]
    boundary_type: Tuple[str, ...]
    generation_model: str
    enabled: np.ndarray        # (carriers, regions) bool
    trap_enabled: np.ndarray   # (carriers, regions) bool, trap rows only
    ionic: Tuple[int, ...]
    trap_carriers: Tuple[int, ...]
    slot_map: np.ndarray       # (carriers, regions) -> unknown slot, -1 absent
    num_slots: int
    iphin: int
    iphip: int
    discontinuous: Tuple[bool, ...]

    @property
    def num_carriers(self) -> int:
        return len(self.statistics)

    @property
    def index_psi(self) -> int:
        return self.num_slots - 1

    @property
    def z(self) -> np.ndarray:
        return self.params.charge_numbers

    @property
    def has_discontinuous(self) -> bool:
        return any(self.discontinuous)


def _enabled_mask(config: ModelConfig, num_regions: int) -> tuple[np.ndarray, np.ndarray]:
    nc = config.number_of_carriers
    enabled = np.ones((nc, num_regions), dtype=bool)
    trap_enabled = np.zeros((nc, num_regions), dtype=bool)
    for sub, is_trap in ((config.ionic_carriers, False), (config.traps, True)):
        if sub is None:
            continue
        for icc in sub.carriers:
            enabled[icc, :] = False
            enabled[icc, list(sub.regions)] = True
            if is_trap:
                trap_enabled[icc, list(sub.regions)] = True
    return enabled, trap_enabled


def _slot_table(config: ModelConfig, enabled: np.ndarray) -> tuple[np.ndarray, int]:
    """(carrier, region) → slot; continuous carriers share one slot, ψ is last."""
    nc, nr = enabled.shape
    slot_map = np.full((nc, nr), -1, dtype=np.int64)
    s = 0
    for icc in range(nc):
        if config.is_continuous[icc]:
            slot_map[icc, :] = s
            s += 1
        else:
            for ireg in np.flatnonzero(enabled[icc]):
                slot_map[icc, ireg] = s
                s += 1
    return slot_map, s + 1


def _apply_toggles(config: ModelConfig, params: Params) -> Params:
    """Zero disabled mechanisms on a private copy (SRH gets NaN-safe placeholders)."""
    p = params.copy()
    br = config.bulk_recombination
    if not br.Auger:
        p.recombination_Auger[...] = 0.0
    if not br.radiative:
        p.recombination_radiative[...] = 0.0
    if not br.SRH:
        p.prefactor_SRH = 0.0
        for icc in (br.iphin, br.iphip):
            p.recombination_SRH_trap_density[icc, :] = 1.0
            p.recombination_SRH_lifetime[icc, :] = 1.0
    if config.generation_model == "GenerationNone":
        p.generation_uniform[...] = 0.0
        p.generation_incident_photon_flux[...] = 0.0
    return p


def _check_boundaries(config: ModelConfig, params: Params, grid: Grid1D,
                      iphin: int, iphip: int) -> None:
    for b, model in enumerate(config.boundary_type):
        if model in ("OhmicContact", "SchottkyContact", "SchottkyBarrierLowering"):
            for icc in (iphin, iphip):
                if not params.b_density_of_states[icc, b] > 0.0:
                    raise ConfigurationError(
                        f"boundary region {b} ({model}) needs b_density_of_states[{icc}, {b}] > 0; "
                        "call Params.fill_boundary_from_regions or set it explicitly"
                    )
        if model in ("SchottkyContact", "SchottkyBarrierLowering"):
            for icc in (iphin, iphip):
                if not params.b_velocity[icc, b] > 0.0:
                    raise ConfigurationError(
                        f"boundary region {b} ({model}) needs b_velocity[{icc}, {b}] > 0"
                    )
        if model == "InterfaceModelSurfaceReco":
            for icc in (iphin, iphip):
                if not params.recombination_SRH_velocity[icc, b] > 0.0:
                    raise ConfigurationError(
                        f"interface {b} uses surface recombination but "
                        f"recombination_SRH_velocity[{icc}, {b}] <= 0"
                    )
                if not params.b_density_of_states[icc, b] > 0.0:
                    raise ConfigurationError(
                        f"interface {b} uses surface recombination but "
                        f"b_density_of_states[{icc}, {b}] <= 0"
                    )


def freeze(
    config: ModelConfig,
    params: Params,
    nodal: Optional[ParamsNodal],
    grid: Grid1D,
) -> PhysicsContext:
    """Validate configuration + parameters and build the immutable context."""
    nr = grid.num_regions
    if params.number_of_regions != nr:
        raise ConfigurationError(
            f"params sized for {params.number_of_regions} regions, grid has {nr}"
        )
    if params.number_of_boundary_regions != grid.num_bregions:
        raise ConfigurationError(
            f"params sized for {params.number_of_boundary_regions} boundary regions, "
            f"grid has {grid.num_bregions}"
        )
    if config.number_of_boundary_regions != grid.num_bregions:
        raise ConfigurationError("config boundary region count does not match grid")
    if params.number_of_carriers != config.number_of_carriers:
        raise ConfigurationError("params and config disagree on the number of carriers")
    config.validate(nr)

    enabled, trap_enabled = _enabled_mask(config, nr)
    br = config.bulk_recombination
    params.check(enabled, br.iphin, br.iphip, srh_on=br.SRH)

    nc = config.number_of_carriers
    if nodal is None:
        nodal = ParamsNodal(grid.num_nodes, nc)
    elif nodal.number_of_nodes != grid.num_nodes or nodal.number_of_carriers != nc:
        raise ConfigurationError("nodal override table does not match grid/carriers")

    discontinuous = tuple(not c for c in config.is_continuous)
    has_discont_iface = "InterfaceModelDiscontqF" in config.boundary_type
    if any(discontinuous) and not has_discont_iface:
        raise ConfigurationError(
            "discontinuous carriers need InterfaceModelDiscontqF at the inner interfaces"
        )
    if has_discont_iface and not any(discontinuous):
        raise ConfigurationError(
            "InterfaceModelDiscontqF requires at least one carrier with is_continuous=False"
        )
    for b in range(2, grid.num_bregions):
        left, right = (int(r) for r in grid.bregion_regions[b])
        for icc in np.flatnonzero(discontinuous):
            if (enabled[icc, left] and enabled[icc, right]
                    and config.boundary_type[b] != "InterfaceModelDiscontqF"):
                raise ConfigurationError(
                    f"carrier {icc} is discontinuous but interface {b} uses "
                    f"{config.boundary_type[b]!r}"
                )

    _check_boundaries(config, params, grid, br.iphin, br.iphip)

    frozen_params = _apply_toggles(config, params)
    stats = tuple(make_distribution(name, frozen_params.gamma) for name in config.statistics)
    fluxes = tuple(
        resolve_flux(f, s) for f, s in zip(config.flux_approximation, config.statistics)
    )
    slot_map, num_slots = _slot_table(config, enabled)

    return PhysicsContext(
        grid=grid,
        params=frozen_params,
        nodal=nodal,
        statistics=stats,
        fluxes=fluxes,
        boundary_type=tuple(config.boundary_type),
        generation_model=config.generation_model,
        enabled=enabled,
        trap_enabled=trap_enabled,
        ionic=tuple(config.ionic_carriers.carriers) if config.ionic_carriers else (),
        trap_carriers=tuple(config.traps.carriers) if config.traps else (),
        slot_map=slot_map,
        num_slots=num_slots,
        iphin=br.iphin,
        iphip=br.iphip,
        discontinuous=discontinuous,
    )
