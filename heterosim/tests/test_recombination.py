# -*- coding: utf-8 -*-
"""
Bulk and surface rate laws plus generation profiles.
"""
import numpy as np

from heterosim.physics.recombination import (
    auger_rate,
    excess_product,
    generation_beer_lambert,
    generation_uniform,
    radiative_rate,
    srh_rate,
    surface_srh_rate,
    trap_capture_rates,
)


def test_rates_vanish_for_equal_quasi_fermi_levels():
    n, p = np.array([1e20, 1e23]), np.array([1e22, 1e10])
    ex = excess_product(n, p, np.array([0.3, -0.1]), np.array([0.3, -0.1]), 0.0259)
    assert np.all(ex == 0.0)
    assert np.all(srh_rate(n, p, ex, 1e15, 1e15, 1e-9, 1e-9) == 0.0)
    assert np.all(radiative_rate(ex, 1e-17) == 0.0)
    assert np.all(auger_rate(n, p, ex, 1e-42, 1e-42) == 0.0)


def test_forward_splitting_gives_positive_recombination():
    UT = 0.0259
    # φ_n < φ_p corresponds to n p > n_i^2 in this sign convention
    ex = excess_product(1e22, 1e22, -0.2, 0.2, UT)
    assert ex > 0.0
    assert radiative_rate(ex, 1e-17) > 0.0


def test_trap_steady_state_reproduces_srh():
    n, p = 3e21, 2e20
    n_tau, p_tau = 1e18, 5e17
    tau_n, tau_p = 1e-8, 4e-8
    N_t = 1e22
    # electron occupancy where capture balances
    f = N_t * (n * tau_p + p_tau * tau_n) / (tau_p * (n + n_tau) + tau_n * (p + p_tau))
    R_n, R_p = trap_capture_rates(n, p, f, N_t, n_tau, p_tau, tau_n, tau_p, z_trap=-1.0)
    assert np.isclose(R_n, R_p, rtol=1e-12)
    srh = (n * p - n_tau * p_tau) / (tau_p * (n + n_tau) + tau_n * (p + p_tau))
    assert np.isclose(R_n, srh, rtol=1e-12)
    # a hole-counting trap with the complementary occupancy gives the same rates
    R_n2, R_p2 = trap_capture_rates(n, p, N_t - f, N_t, n_tau, p_tau, tau_n, tau_p, z_trap=1.0)
    assert np.isclose(R_n2, R_n) and np.isclose(R_p2, R_p)


def test_surface_rate_is_limited_by_velocities():
    ex = 1e40
    slow = surface_srh_rate(1e20, 1e20, ex, 0.0, 0.0, 1.0, 1.0)
    fast = surface_srh_rate(1e20, 1e20, ex, 0.0, 0.0, 1e5, 1e5)
    assert np.isclose(fast / slow, 1e5)


def test_beer_lambert_profile():
    x = np.linspace(0.0, 500e-9, 6)
    G = generation_beer_lambert(x, 1e21, 1e7, 100e-9, 1, 1.0)
    assert np.isclose(G[1], 1e28)                           # at the peak: F0 α
    assert np.all(np.diff(G) < 0.0)
    G_rev = generation_beer_lambert(x, 1e21, 1e7, 400e-9, -1, 1.0)
    assert np.all(np.diff(G_rev) > 0.0)
    assert np.allclose(generation_beer_lambert(x, 1e21, 1e7, 100e-9, 1, 0.1), 0.1 * G)


def test_uniform_generation_scales_with_lambda2():
    assert np.isclose(generation_uniform(2.5e27, 0.2), 0.5e27)
