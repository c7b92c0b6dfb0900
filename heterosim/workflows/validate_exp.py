# -*- coding: utf-8 -*-
"""
Compare a simulated I–V ramp against measured data and summarize errors.
"""
from pathlib import Path

import numpy as np

from ..io.results import iv_frame, load_iv, write_metrics


def validate_iv(ramp_result, exp_csv: Path, out_dir: Path, current_scale: float = 1.0):
    """
    Interpolate the simulated current onto the measured voltages. The
    simulation returns A/m^2; `current_scale` converts to the measured unit
    (e.g. device area in m^2 for currents in A).
    """
    sim = iv_frame(ramp_result).drop_duplicates("V").sort_values("V")
    exp = load_iv(exp_csv).sort_values("V")
    I_sim_on_exp = np.interp(exp["V"].values, sim["V"].values, current_scale * sim["I"].values)
    rmse = float(np.sqrt(np.mean((I_sim_on_exp - exp["I"].values) ** 2)))
    mae = float(np.mean(np.abs(I_sim_on_exp - exp["I"].values)))
    write_metrics(out_dir, {"IV_RMSE": rmse, "IV_MAE": mae})
    return rmse, mae
