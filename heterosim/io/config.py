# heterosim/io/config.py
# -*- coding: utf-8 -*-
"""
YAML → device, mesh and ramp-schedule helpers.

Schema (example, units in the key suffixes):

temperature_K: 300
carriers:
  - { name: n, charge: -1, statistics: Boltzmann, flux: ScharfetterGummel }
  - { name: p, charge: 1 }
  - { name: a, charge: 1, statistics: FermiDiracMinusOne,
      flux: ExcessChemicalPotential, ionic_layers: [intrinsic] }
electron: n          # reference carriers for recombination
hole: p

geometry:
  layers:
    - name: donor
      thickness_nm: 100
      eps_r: 10
      radiative_m3_s: 0.0
      carriers:
        n: { dos_m3: 5.0e25, band_edge_eV: -4.0, mobility_m2_Vs: 1.0e-5, doping_m3: 2.1e24, tau_s: 1.0e100 }
        p: { dos_m3: 5.0e25, band_edge_eV: -5.8, mobility_m2_Vs: 1.0e-5, tau_s: 1.0e100 }

mesh: { per_layer_N: [30, 60, 30] }

contacts:
  left:  { model: OhmicContact }
  right: { model: SchottkyContact, barrier_eV: 0.6, velocity_m_s: 1.0e5 }
interfaces: [ { model: InterfaceModelNone } ]      # optional, one per inner interface

recombination: { SRH: true, radiative: true, Auger: false }
generation: { model: GenerationNone }
solver: { nonlinear_steps: 20, max_iterations: 100, damp_initial: 0.5, damp_growth: 1.21 }
sweep: { kind: linear, v_end: 1.2, steps: 13, contact: right }
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Sequence, Tuple

import yaml

from ..geometry.builder import Grid1D, LayerSpec, MeshSpec, StackSpec, build_grid
from ..models.config import BulkRecombination, IonicCarriers, ModelConfig, Traps
from ..models.device import DeviceSystem
from ..models.params import Params
from ..solver.homotopy import RampPoint, generation_ramp, linear_bias_ramp, vshape_scan
from ..solver.newton import NewtonControl
from ..utils.constants import EV, NM

__all__ = [
    "RunConfig",
    "load_config",
    "apply_overrides",
    "build_stack",
    "build_mesh",
    "build_device",
    "build_control",
    "build_schedule",
]

_CONTACT_INDEX = {"left": 0, "right": 1}

# layer-carrier key → (Params table, unit factor)
_CARRIER_KEYS = {
    "dos_m3": ("density_of_states", 1.0),
    "band_edge_eV": ("band_edge_energy", EV),
    "mobility_m2_Vs": ("mobility", 1.0),
    "doping_m3": ("doping", 1.0),
    "tau_s": ("recombination_SRH_lifetime", 1.0),
    "srh_trap_density_m3": ("recombination_SRH_trap_density", 1.0),
    "auger_m6_s": ("recombination_Auger", 1.0),
}
# layer key → (Params vector, unit factor)
_LAYER_KEYS = {
    "eps_r": ("dielectric_constant", 1.0),
    "eps_image_force": ("dielectric_constant_image_force", 1.0),
    "radiative_m3_s": ("recombination_radiative", 1.0),
    "generation_m3_s": ("generation_uniform", 1.0),
    "photon_flux_m2_s": ("generation_incident_photon_flux", 1.0),
    "absorption_1_m": ("generation_absorption", 1.0),
}


@dataclass
class RunConfig:
    raw: dict
    path: Path


def load_config(path: Path) -> RunConfig:
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("Top-level YAML must be a mapping")
    _validate_minimum(data)
    return RunConfig(raw=data, path=Path(path))


def apply_overrides(cfg: RunConfig, overrides: Sequence[str]) -> RunConfig:
    """
    Return a copy with `key.path=value` overrides applied. Values are parsed as
    YAML scalars; integer path parts index into lists.
    """
    raw = copy.deepcopy(cfg.raw)
    for item in overrides:
        if "=" not in item:
            raise ValueError(f"override {item!r} is not of the form key.path=value")
        key, text = item.split("=", 1)
        parts = key.strip().split(".")
        node: Any = raw
        for part in parts[:-1]:
            node = node[int(part)] if isinstance(node, list) else node.setdefault(part, {})
        last = parts[-1]
        value = yaml.safe_load(text)
        if isinstance(node, list):
            node[int(last)] = value
        else:
            node[last] = value
    _validate_minimum(raw)
    return RunConfig(raw=raw, path=cfg.path)


def _require(d: dict, key: str, where: str) -> Any:
    if key not in d:
        raise ValueError(f"Missing key: {where}.{key}")
    return d[key]


def build_stack(cfg: RunConfig) -> StackSpec:
    layers_yaml = cfg.raw["geometry"].get("layers", [])
    if not layers_yaml:
        raise ValueError("geometry.layers is empty")
    layers: list[LayerSpec] = []
    for i, row in enumerate(layers_yaml):
        name = str(_require(row, "name", f"geometry.layers[{i}]"))
        thickness_m = float(_require(row, "thickness_nm", f"geometry.layers[{i}]")) * NM
        region = row.get("region")
        layers.append(LayerSpec(name=name, thickness=thickness_m,
                                region=None if region is None else int(region)))
    return StackSpec(layers=tuple(layers))


def build_mesh(cfg: RunConfig) -> MeshSpec:
    m = cfg.raw["mesh"]
    per_layer_N = m.get("per_layer_N")
    hz_max_nm = m.get("hz_max_nm")
    N_total = m.get("N_total")
    return MeshSpec(
        N_total=int(N_total) if N_total is not None else None,
        hz_max=float(hz_max_nm) * NM if hz_max_nm is not None else None,
        per_layer_N=list(map(int, per_layer_N)) if per_layer_N is not None else None,
        refine_interfaces=bool(m.get("refine_interfaces", False)),
        stretch_ratio=float(m.get("stretch_ratio", 1.0)),
        stretch_cells=int(m.get("stretch_cells", 0)),
    )


def _carrier_index(names: List[str], name: str, where: str) -> int:
    if name not in names:
        raise ValueError(f"{where}: unknown carrier {name!r} (known: {names})")
    return names.index(name)


def _layer_regions(cfg: RunConfig, names: Sequence[str], where: str) -> List[int]:
    layers = cfg.raw["geometry"]["layers"]
    layer_names = [str(ly["name"]) for ly in layers]
    out = []
    for name in names:
        if name not in layer_names:
            raise ValueError(f"{where}: unknown layer {name!r}")
        i = layer_names.index(name)
        region = layers[i].get("region")
        out.append(i if region is None else int(region))
    return out


def build_device(cfg: RunConfig) -> Tuple[DeviceSystem, Grid1D]:
    """Params + ModelConfig + grid from the YAML mapping, frozen into a DeviceSystem."""
    raw = cfg.raw
    grid = build_grid(build_stack(cfg), build_mesh(cfg))
    carriers = _require(raw, "carriers", "")
    names = [str(_require(c, "name", f"carriers[{i}]")) for i, c in enumerate(carriers)]
    nc = len(names)
    iphin = _carrier_index(names, str(raw.get("electron", names[0])), "electron")
    iphip = _carrier_index(names, str(raw.get("hole", names[1 if nc > 1 else 0])), "hole")

    params = Params(grid.num_regions, grid.num_bregions, nc,
                    temperature=float(raw.get("temperature_K", 300.0)))
    for icc, c in enumerate(carriers):
        params.charge_numbers[icc] = float(_require(c, "charge", f"carriers[{icc}]"))

    for i, row in enumerate(raw["geometry"]["layers"]):
        reg = i if row.get("region") is None else int(row["region"])
        for key, (table, unit) in _LAYER_KEYS.items():
            if key in row:
                getattr(params, table)[reg] = float(row[key]) * unit
        for cname, entries in (row.get("carriers") or {}).items():
            icc = _carrier_index(names, str(cname), f"geometry.layers[{i}].carriers")
            for key, value in entries.items():
                if key not in _CARRIER_KEYS:
                    raise ValueError(f"geometry.layers[{i}].carriers.{cname}: unknown key {key!r}")
                table, unit = _CARRIER_KEYS[key]
                getattr(params, table)[icc, reg] = float(value) * unit

    ionic = [(icc, c["ionic_layers"]) for icc, c in enumerate(carriers) if c.get("ionic_layers")]
    traps = [(icc, c["trap_layers"]) for icc, c in enumerate(carriers) if c.get("trap_layers")]
    ionic_cfg = None
    if ionic:
        regions = sorted({r for icc, lys in ionic for r in _layer_regions(cfg, lys, "ionic_layers")})
        ionic_cfg = IonicCarriers(carriers=tuple(icc for icc, _ in ionic), regions=tuple(regions))
    trap_cfg = None
    if traps:
        regions = sorted({r for icc, lys in traps for r in _layer_regions(cfg, lys, "trap_layers")})
        trap_cfg = Traps(carriers=tuple(icc for icc, _ in traps), regions=tuple(regions))

    contacts = _require(raw, "contacts", "")
    boundary = ["InterfaceModelNone"] * grid.num_bregions
    for side, b in _CONTACT_INDEX.items():
        entry = _require(contacts, side, "contacts")
        boundary[b] = str(_require(entry, "model", f"contacts.{side}"))
        if "barrier_eV" in entry:
            params.schottky_barrier[b] = float(entry["barrier_eV"]) * EV
        if "velocity_m_s" in entry:
            params.b_velocity[[iphin, iphip], b] = float(entry["velocity_m_s"])
    for j, entry in enumerate(raw.get("interfaces") or []):
        b = 2 + j
        if b >= grid.num_bregions:
            raise ValueError(f"interfaces[{j}]: grid has only {grid.num_bregions - 2} inner interfaces")
        boundary[b] = str(_require(entry, "model", f"interfaces[{j}]"))
        if "velocity_m_s" in entry:
            params.b_velocity[:, b] = float(entry["velocity_m_s"])
        if "srh_velocity_m_s" in entry:
            params.recombination_SRH_velocity[[iphin, iphip], b] = float(entry["srh_velocity_m_s"])
        if "srh_trap_density_m3" in entry:
            params.b_recombination_SRH_trap_density[[iphin, iphip], b] = float(entry["srh_trap_density_m3"])
        if entry.get("model") == "InterfaceModelSurfaceReco":
            left = int(grid.bregion_regions[b, 0])
            params.b_density_of_states[:, b] = params.density_of_states[:, left]
            params.b_band_edge_energy[:, b] = params.band_edge_energy[:, left]
    params.fill_boundary_from_regions(grid.bregion_regions)

    rec = raw.get("recombination") or {}
    gen = raw.get("generation") or {}
    params.generation_peak = float(gen.get("peak_nm", 0.0)) * NM
    params.inverted_illumination = -1 if gen.get("inverted", False) else 1

    config = ModelConfig(
        number_of_carriers=nc,
        number_of_boundary_regions=grid.num_bregions,
        statistics=[str(c.get("statistics", "Boltzmann")) for c in carriers],
        flux_approximation=[str(c.get("flux", "ScharfetterGummel")) for c in carriers],
        is_continuous=[bool(c.get("continuous", True)) for c in carriers],
        boundary_type=boundary,
        bulk_recombination=BulkRecombination(
            iphin=iphin, iphip=iphip,
            SRH=bool(rec.get("SRH", True)),
            radiative=bool(rec.get("radiative", True)),
            Auger=bool(rec.get("Auger", True)),
        ),
        ionic_carriers=ionic_cfg,
        traps=trap_cfg,
        generation_model=str(gen.get("model", "GenerationNone")),
        model_type=str(raw.get("model_type", "Stationary")),
    )
    dev = DeviceSystem(grid, config, params,
                       unknown_storage=str(raw.get("unknown_storage", "dense")))
    return dev, grid


def build_control(cfg: RunConfig) -> Tuple[NewtonControl, int]:
    """NewtonControl from `solver:` plus the equilibrium step count."""
    s = dict(cfg.raw.get("solver") or {})
    steps = int(s.pop("nonlinear_steps", 20))
    defaults = NewtonControl()
    kwargs = {}
    for key, value in s.items():
        if not hasattr(defaults, key):
            raise ValueError(f"solver: unknown key {key!r}")
        default = getattr(defaults, key)
        # PyYAML reads "1e-10" as a string; cast to the field's type
        kwargs[key] = bool(value) if isinstance(default, bool) else type(default)(value)
    return NewtonControl(**kwargs), steps


def build_schedule(cfg: RunConfig) -> Tuple[List[RampPoint], int]:
    """(ramp points, biased boundary region) from `sweep:`; empty when absent."""
    sw = cfg.raw.get("sweep")
    if not sw:
        return [], 1
    contact = _CONTACT_INDEX.get(str(sw.get("contact", "right")))
    if contact is None:
        raise ValueError("sweep.contact must be 'left' or 'right'")
    kind = str(_require(sw, "kind", "sweep"))
    if kind == "linear":
        pts = linear_bias_ramp(float(_require(sw, "v_end", "sweep")), int(_require(sw, "steps", "sweep")),
                               v_start=float(sw.get("v_start", 0.0)),
                               tstep=float(sw.get("tstep_s", float("inf"))))
    elif kind == "vshape":
        pts = vshape_scan(float(_require(sw, "v_end", "sweep")), int(_require(sw, "steps", "sweep")),
                          float(_require(sw, "scan_rate_V_s", "sweep")))
    elif kind == "generation":
        pts = generation_ramp(int(_require(sw, "steps", "sweep")),
                              tstep=float(sw.get("tstep_s", float("inf"))))
    else:
        raise ValueError(f"sweep.kind must be linear, vshape or generation (got {kind!r})")
    return pts, contact


def _validate_minimum(cfg: dict) -> None:
    for key in ("geometry", "mesh", "carriers", "contacts"):
        if key not in cfg:
            raise ValueError(f"Missing top-level key: {key}")
