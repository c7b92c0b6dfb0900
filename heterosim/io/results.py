# -*- coding: utf-8 -*-
"""
Results IO helpers.

Write:
  * metrics.json  (run-level KPIs)
  * fields.npz    (grid + unknowns + post-processed fields)
  * iv.csv        (ramp voltages, currents, times)

Read:
  * measured I–V CSV (columns V, I) for validation

This keeps on-disk layout stable for post-processing and reports.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd

__all__ = ["write_metrics", "save_fields_npz", "iv_frame", "write_iv_csv", "load_iv"]


def write_metrics(run_dir: Path, metrics: Dict[str, Any]) -> Path:
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "metrics.json"
    with open(out, "w") as f:
        json.dump(metrics, f, indent=2, sort_keys=True)
    return out


def save_fields_npz(run_dir: Path, **arrays) -> Path:
    """
    Save arrays for post-processing (e.g., z, psi, phi, densities, band, fermi).
    """
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "fields.npz"
    np.savez_compressed(out, **arrays)
    return out


def iv_frame(ramp_result) -> pd.DataFrame:
    """RampResult → DataFrame with V [V], I [A/m^2], t [s]."""
    return pd.DataFrame({
        "V": np.asarray(ramp_result.voltages, dtype=np.float64),
        "I": np.asarray(ramp_result.currents, dtype=np.float64),
        "t": np.asarray(ramp_result.times, dtype=np.float64),
    })


def write_iv_csv(run_dir: Path, ramp_result) -> Path:
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "iv.csv"
    iv_frame(ramp_result).to_csv(out, index=False)
    return out


def load_iv(csv_path: Path) -> pd.DataFrame:
    df = pd.read_csv(csv_path)
    if not {"V", "I"}.issubset(df.columns):
        raise ValueError("IV CSV must have V,I columns")
    return df
