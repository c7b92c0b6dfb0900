# -*- coding: utf-8 -*-
"""
Results files, I–V validation and the command-line entry points.
"""
import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from heterosim.io.results import iv_frame, load_iv, save_fields_npz, write_iv_csv, write_metrics
from heterosim.main import main
from heterosim.solver.homotopy import RampResult
from heterosim.workflows.validate_exp import validate_iv

EXAMPLE = Path(__file__).resolve().parents[2] / "configs" / "pin_diode.yaml"


def _ramp_result():
    return RampResult(voltages=[0.0, 0.5, 1.0], currents=[0.0, -2.0, -8.0],
                      solutions=[], times=[0.0, 0.0, 0.0])


def test_iv_frame_and_csv_roundtrip(tmp_path):
    df = iv_frame(_ramp_result())
    assert list(df.columns) == ["V", "I", "t"]
    out = write_iv_csv(tmp_path / "run", _ramp_result())
    back = load_iv(out)
    assert np.allclose(back["I"], [0.0, -2.0, -8.0])


def test_load_iv_requires_columns(tmp_path):
    path = tmp_path / "bad.csv"
    pd.DataFrame({"volts": [0.0], "amps": [1.0]}).to_csv(path, index=False)
    with pytest.raises(ValueError):
        load_iv(path)


def test_metrics_and_fields(tmp_path):
    m = write_metrics(tmp_path / "a", {"x": 1.5, "ok": True})
    assert json.loads(m.read_text()) == {"ok": True, "x": 1.5}
    f = save_fields_npz(tmp_path / "a", z=np.arange(3.0))
    with np.load(f) as data:
        assert data["z"].tolist() == [0.0, 1.0, 2.0]


def test_validate_iv_interpolates_onto_measured_voltages(tmp_path):
    exp = tmp_path / "measured.csv"
    pd.DataFrame({"V": [0.25, 0.75], "I": [-1.0, -5.0]}).to_csv(exp, index=False)
    rmse, mae = validate_iv(_ramp_result(), exp, tmp_path / "cmp")
    assert rmse == pytest.approx(0.0)
    assert mae == pytest.approx(0.0)
    # area scaling applies to the simulated current
    rmse, _ = validate_iv(_ramp_result(), exp, tmp_path / "cmp", current_scale=2.0)
    assert rmse == pytest.approx(np.sqrt((1.0 + 25.0) / 2.0))
    assert (tmp_path / "cmp" / "metrics.json").exists()


def test_cli_pin_equilibrium_writes_profiles(tmp_path):
    out = tmp_path / "eq.csv"
    main(["pin", "--N", "10", "--csv", str(out)])
    df = pd.read_csv(out)
    assert list(df.columns) == ["z_m", "psi_V", "E_C_J", "E_V_J", "n_m3", "p_m3"]
    assert len(df) == 38
    assert df["n_m3"].iloc[0] == pytest.approx(1e23, rel=1e-6)
    assert not (tmp_path / "pin_iv.csv").exists()


def test_cli_pin_ramp_writes_iv(tmp_path):
    out = tmp_path / "eq.csv"
    main(["pin", "--N", "10", "--v-end", "0.6", "--steps", "4", "--csv", str(out)])
    iv = pd.read_csv(tmp_path / "pin_iv.csv")
    assert iv["V"].tolist() == pytest.approx([0.0, 0.2, 0.4, 0.6])
    assert np.all(np.isfinite(iv["I"]))


def test_cli_run_from_config(tmp_path):
    main(["run", str(EXAMPLE), "--out", str(tmp_path / "run")])
    metrics = json.loads((tmp_path / "run" / "metrics.json").read_text())
    assert metrics["equilibrium_neutral"] is True
    assert metrics["steps"] == 13
    assert metrics["final_voltage_V"] == pytest.approx(1.2)
    iv = load_iv(tmp_path / "run" / "iv.csv")
    assert len(iv) == 13


def test_cli_sweep_runs_each_variant(tmp_path):
    main(["sweep", str(EXAMPLE),
          "--set", "sweep.v_end=0.4,sweep.steps=3",
          "--set", "sweep.v_end=0.6,sweep.steps=3",
          "--out", str(tmp_path / "sw")])
    df = pd.read_csv(tmp_path / "sw" / "sweep.csv")
    assert df["converged"].tolist() == [True, True]
    assert df["V_final"].tolist() == pytest.approx([0.4, 0.6])


def test_cli_reports_configuration_errors(tmp_path, capsys):
    with pytest.raises(SystemExit) as info:
        main(["pin", "--N", "10", "--T", "-5", "--csv", str(tmp_path / "x.csv")])
    assert info.value.code == 1
    assert "ERROR" in capsys.readouterr().err
