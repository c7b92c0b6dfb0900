# -*- coding: utf-8 -*-
"""
Perovskite cell builder and its forward/reverse scan protocol.
"""
import numpy as np
import pytest

from heterosim.models.psc_device import (
    INTRINSIC,
    IPHIA,
    PSCParams,
    build_psc_device,
    psc_scan_schedule,
    run_psc,
)
from heterosim.utils.constants import EV


def test_scan_schedule_forward_then_reverse():
    forward, reverse = psc_scan_schedule(PSCParams())
    assert len(forward) == 20 and len(reverse) == 20
    assert all(pt.tstep == pytest.approx(0.06) for pt in forward + reverse)
    assert forward[0].bias == pytest.approx(0.06)
    assert forward[-1].bias == pytest.approx(1.2)
    assert reverse[0].bias == pytest.approx(1.2)
    assert reverse[-1].bias == pytest.approx(0.06)
    assert np.all(np.diff([pt.bias for pt in forward]) > 0.0)
    # generation reaches full strength only at the end of the forward scan
    assert forward[0].lambda2 == pytest.approx(1e-19)
    assert forward[-1].lambda2 == 1.0
    assert all(pt.lambda2 is None for pt in reverse)


def test_scan_rate_sets_time_step():
    forward, _ = psc_scan_schedule(PSCParams(scan_rate=0.1, number_tsteps=5, v_end=1.0))
    assert [pt.bias for pt in forward] == pytest.approx([0.25, 0.5, 0.75, 1.0])
    assert all(pt.tstep == pytest.approx(2.5) for pt in forward)


def test_device_layout():
    dev = build_psc_device(PSCParams(n=1))
    grid, p = dev.grid, dev.ctx.params
    assert grid.num_regions == 3
    assert dev.num_slots == 4 and dev.ipsi == 3
    assert dev.state.in_equilibrium
    # anion vacancies live in the perovskite only
    assert dev.ctx.enabled[IPHIA].tolist() == [False, True, False]
    assert np.isclose(p.band_edge_energy[IPHIA, INTRINSIC], -4.45 * EV)
    assert np.isclose(p.doping[IPHIA, INTRINSIC], 1.6e25)
    U = dev.unknowns()
    s = dev.slot(IPHIA, INTRINSIC)
    assert np.isnan(U[s, 0]) and np.isnan(U[s, -1])
    assert not np.isnan(U[:2]).any() and not np.isnan(U[dev.ipsi]).any()


def test_generation_only_in_absorber():
    dev = build_psc_device(PSCParams(n=1))
    p = dev.ctx.params
    assert p.generation_incident_photon_flux.tolist() == [0.0, 1.4e21, 0.0]
    assert np.isclose(p.generation_peak, 99e-9)
    assert dev.config.generation_model == "GenerationBeerLambert"


def test_equilibrium_guess_is_neutral_at_contacts():
    dev = build_psc_device(PSCParams(n=1))
    guess = dev.equilibrium_guess()
    assert np.allclose(guess[:2], 0.0)
    dens = dev.compute_densities(guess)
    assert np.isclose(dens[0, 0], 1e24, rtol=1e-6)      # ETL donors
    assert np.isclose(dens[1, -1], 1e24, rtol=1e-6)     # HTL acceptors
    # absolute band edges put the neutral potential near -4 V
    assert -4.5 < guess[dev.ipsi, 0] < -3.9


def test_forward_reverse_scan_converges():
    res = run_psc(PSCParams(n=1, number_tsteps=5))
    assert res.device.state.equilibrium_done
    assert np.all(np.isfinite(res.equilibrium[~np.isnan(res.equilibrium)]))
    assert len(res.forward) == 4 and len(res.reverse) == 4
    assert res.forward.voltages == pytest.approx([0.3, 0.6, 0.9, 1.2])
    assert res.reverse.voltages == pytest.approx([1.2, 0.9, 0.6, 0.3])
    assert np.all(np.isfinite(res.forward.currents))
    assert np.all(np.isfinite(res.reverse.currents))
    assert res.device.state.transient
    assert res.forward.times[-1] == pytest.approx(1.2)
    assert np.isfinite(res.mean_value())
