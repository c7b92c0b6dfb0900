# -*- coding: utf-8 -*-
"""
Parameter sweep / DOE.

Each variant is the base YAML with one group of `key=value` overrides applied;
variants run sequentially and write into runs/<stem>/variant_XX.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from ..io.config import apply_overrides, load_config
from ..utils import logger
from ..utils.errors import ConvergenceError
from .run_dc import run_config

__all__ = ["run_sweep"]


def run_sweep(cfg_path: Path, variants: Sequence[Sequence[str]],
              out_dir: Optional[Path] = None) -> pd.DataFrame:
    """Run every override group; returns one summary row per variant."""
    base = load_config(cfg_path)
    root = out_dir or Path("runs") / Path(cfg_path).stem
    logger.info(f"[sweep] base={cfg_path}, variants={len(variants)}")
    rows: List[dict] = []
    for i, overrides in enumerate(variants):
        cfg = apply_overrides(base, overrides)
        row = {"variant": i, "overrides": ";".join(overrides)}
        try:
            res = run_config(cfg, root / f"variant_{i:02d}")
        except ConvergenceError as exc:
            logger.warn(f"[sweep] variant {i} failed: {exc}")
            row.update(converged=False, error=str(exc))
        else:
            row.update(converged=True,
                       V_final=res.voltages[-1] if len(res) else None,
                       I_final=res.currents[-1] if len(res) else None)
        rows.append(row)
    df = pd.DataFrame(rows)
    root.mkdir(parents=True, exist_ok=True)
    df.to_csv(root / "sweep.csv", index=False)
    return df
