# -*- coding: utf-8 -*-
"""
Single-run workflow wiring config → device → continuation → results.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np

from ..io.config import RunConfig, build_control, build_device, build_schedule, load_config
from ..io.results import save_fields_npz, write_iv_csv, write_metrics
from ..solver.homotopy import RampResult, ramp
from ..utils import diagnostics as diag
from ..utils import logger

__all__ = ["run_config", "run_from_config"]


def run_config(cfg: RunConfig, out_dir: Path) -> RampResult:
    """Equilibrium + configured sweep for an already-loaded config."""
    dev, grid = build_device(cfg)
    control, steps = build_control(cfg)
    logger.info(f"[run] {grid.num_nodes} nodes, {grid.num_regions} regions, "
                f"{dev.num_slots} unknown slots")

    eq = dev.equilibrium_solve(control, nonlinear_steps=steps)
    names = [str(c["name"]) for c in cfg.raw["carriers"]]
    diag.log_state_summary(psi=eq[dev.ipsi],
                           densities=dict(zip(names, dev.compute_densities(eq))))
    rho = dev.charge_density(eq)
    neutral = diag.check_neutrality(rho_Cm3=rho, Vi=np.ones_like(rho),
                                    scale_C=float(np.max(np.abs(rho))) or 1.0)

    schedule, contact = build_schedule(cfg)
    result = ramp(dev, schedule, contact=contact, initial_guess=eq, control=control) \
        if schedule else RampResult(solutions=[eq])
    final = result.solutions[-1] if result.solutions else eq

    band, fermi = dev.compute_energies(final)
    save_fields_npz(out_dir, z=grid.z, unknowns=final, equilibrium=eq,
                    densities=dev.compute_densities(final), band=band, fermi=fermi)
    metrics = {
        "equilibrium_neutral": bool(neutral),
        "charge_per_region_C_m2": [float(x) for x in rho],
        "steps": len(result),
    }
    if len(result):
        write_iv_csv(out_dir, result)
        metrics["final_voltage_V"] = result.voltages[-1]
        metrics["final_current_A_m2"] = result.currents[-1]
    write_metrics(out_dir, metrics)
    logger.info(f"[run] wrote results to: {out_dir}")
    return result


def run_from_config(cfg_path: Path, out_dir: Optional[Path] = None) -> RampResult:
    cfg = load_config(cfg_path)
    return run_config(cfg, out_dir or Path("runs") / Path(cfg_path).stem)
