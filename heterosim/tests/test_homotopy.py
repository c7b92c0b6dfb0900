# -*- coding: utf-8 -*-
"""
Continuation driver: λ1 schedule, ramp bookkeeping and failure reporting.
Uses a recording stand-in for the device so only the driver logic runs.
"""
from types import SimpleNamespace

import numpy as np
import pytest

from heterosim.models.config import ContinuationState
from heterosim.solver.homotopy import (
    RampPoint,
    equilibrium_solve,
    generation_ramp,
    lambda_schedule,
    linear_bias_ramp,
    ramp,
    vshape_scan,
)
from heterosim.solver.newton import NewtonControl, SolveResult
from heterosim.utils.errors import ConfigurationError, ConvergenceError, ConvergenceFailure


class _Recorder:
    """Minimal system: solve() returns its guess + 1 and logs the state."""

    def __init__(self, fail_at=None):
        self.state = ContinuationState()
        self.ctx = SimpleNamespace(params=SimpleNamespace(contact_voltage=np.zeros(2)))
        self.log = []
        self.fail_at = fail_at
        self.last_result = SolveResult(x=None, residual=None, iters=1, converged=True, update_norm=0.0)

    def unknowns(self):
        return np.zeros((2, 3))

    def solve(self, guess, control=None, tstep=np.inf, previous=None):
        self.log.append((self.state.lambda1, self.state.lambda2, self.state.model_type, tstep))
        if self.fail_at is not None and len(self.log) - 1 == self.fail_at:
            raise ConvergenceError(ConvergenceFailure(kind="newton", message="diverged"))
        return guess + 1.0

    def set_contact(self, bregion, delta_u):
        self.ctx.params.contact_voltage[bregion] = delta_u

    def get_current(self, solution, previous=None, tstep=np.inf, bregion=0):
        return float(solution.sum())


def test_lambda_schedule_is_monotone_from_zero_to_one():
    lam = lambda_schedule(20)
    assert lam.size == 22
    assert lam[0] == 0.0 and lam[-1] == 1.0
    assert np.all(np.diff(lam) > 0.0)
    assert np.isclose(lam[1], 1e-20)
    assert lambda_schedule(0).tolist() == [0.0, 1.0]


@pytest.mark.parametrize("bad", [-1, 2.5, True, "10", None])
def test_lambda_schedule_rejects_non_integer_counts(bad):
    with pytest.raises(ConfigurationError):
        lambda_schedule(bad)


def test_lambda_schedule_accepts_numpy_integers():
    assert lambda_schedule(np.int64(3)).size == 5


def test_equilibrium_solve_walks_lambda1_and_marks_done():
    sys_ = _Recorder()
    out = equilibrium_solve(sys_, nonlinear_steps=3)
    assert [entry[0] for entry in sys_.log] == lambda_schedule(3).tolist()
    assert sys_.state.equilibrium_done
    assert sys_.state.in_equilibrium
    assert np.all(out == 5.0)          # one solve per schedule point


def test_equilibrium_failure_reports_step_and_tunables():
    sys_ = _Recorder(fail_at=2)
    ctl = NewtonControl(handle_exceptions=True)
    with pytest.raises(ConvergenceError) as info:
        equilibrium_solve(sys_, ctl, nonlinear_steps=5)
    f = info.value.failure
    assert f.kind == "equilibrium"
    assert f.step == 2 and f.parameter == "lambda1"
    assert "nonlinear_steps" in f.tunables
    assert not sys_.state.equilibrium_done


def test_equilibrium_failure_propagates_raw_without_handling():
    sys_ = _Recorder(fail_at=0)
    with pytest.raises(ConvergenceError) as info:
        equilibrium_solve(sys_, NewtonControl(), nonlinear_steps=2)
    assert info.value.failure.kind == "newton"


def test_ramp_requires_equilibrium_first():
    with pytest.raises(ConfigurationError):
        ramp(_Recorder(), linear_bias_ramp(1.0, 3))


def test_ramp_leaves_equilibrium_and_records_each_point():
    sys_ = _Recorder()
    equilibrium_solve(sys_, nonlinear_steps=1)
    sys_.log.clear()
    res = ramp(sys_, linear_bias_ramp(1.2, 13), contact=1, initial_guess=np.zeros((2, 3)))
    assert not sys_.state.in_equilibrium
    assert len(res) == 13
    assert np.allclose(res.voltages, np.linspace(0.0, 1.2, 13))
    assert all(entry[2] == "Stationary" for entry in sys_.log)
    assert res.times == [0.0] * 13
    # a second ramp continues without another equilibrium solve
    assert len(ramp(sys_, linear_bias_ramp(0.0, 2, v_start=1.2), contact=1)) == 2


def test_transient_points_switch_model_type_and_advance_time():
    sys_ = _Recorder()
    equilibrium_solve(sys_, nonlinear_steps=1)
    sys_.log.clear()
    pts = [RampPoint(bias=0.1, tstep=0.5), RampPoint(bias=0.2), RampPoint(bias=0.3, tstep=0.25)]
    res = ramp(sys_, pts)
    assert [entry[2] for entry in sys_.log] == ["Transient", "Stationary", "Transient"]
    assert res.times == [0.5, 0.5, 0.75]


def test_generation_points_set_lambda2_and_keep_bias():
    sys_ = _Recorder()
    equilibrium_solve(sys_, nonlinear_steps=1)
    sys_.set_contact(1, 0.4)
    sys_.log.clear()
    res = ramp(sys_, generation_ramp(4), contact=1)
    assert np.allclose([entry[1] for entry in sys_.log], [1e-3, 1e-2, 1e-1, 1.0])
    assert res.voltages == [0.4] * 4


def test_ramp_failure_names_bias_point():
    sys_ = _Recorder()
    equilibrium_solve(sys_, nonlinear_steps=1)
    sys_.fail_at = len(sys_.log) + 2
    with pytest.raises(ConvergenceError) as info:
        ramp(sys_, linear_bias_ramp(1.0, 5), control=NewtonControl(handle_exceptions=True))
    f = info.value.failure
    assert f.kind == "ramp" and f.step == 2
    assert f.parameter == "bias" and np.isclose(f.value, 0.5)


def test_ramp_failure_names_time_step_when_nothing_else_moves():
    sys_ = _Recorder()
    equilibrium_solve(sys_, nonlinear_steps=1)
    sys_.fail_at = len(sys_.log) + 1
    pts = [RampPoint(bias=None, tstep=0.5), RampPoint(bias=None, tstep=0.25)]
    with pytest.raises(ConvergenceError) as info:
        ramp(sys_, pts, control=NewtonControl(handle_exceptions=True))
    f = info.value.failure
    assert f.step == 1
    assert f.parameter == "tstep" and f.value == 0.25


def test_equilibrium_solve_starts_from_given_guess():
    sys_ = _Recorder()
    out = equilibrium_solve(sys_, nonlinear_steps=1, initial_guess=np.full((2, 3), 10.0))
    assert np.all(out == 13.0)


def test_schedule_builders():
    pts = vshape_scan(1.0, 5, scan_rate=2.0)
    assert [p.bias for p in pts] == [0.25, 0.5, 0.75, 1.0, 0.75, 0.5, 0.25, 0.0]
    assert all(np.isclose(p.tstep, 0.125) for p in pts)
    with pytest.raises(ConfigurationError):
        vshape_scan(1.0, 5, scan_rate=0.0)
    with pytest.raises(ConfigurationError):
        linear_bias_ramp(1.0, 0)
