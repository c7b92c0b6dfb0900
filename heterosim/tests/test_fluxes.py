# -*- coding: utf-8 -*-
"""
Flux schemes: zero current in thermodynamic equilibrium, Bernoulli limits,
and the generalized SG fixed point.
"""
import numpy as np
import pytest

from heterosim.discretization.fluxes import (
    FLUX_NAMES,
    bern,
    bern_derivative,
    generalized_sg,
    resolve_flux,
)
from heterosim.physics.carriers.statistics import make_distribution
from heterosim.utils.errors import ConfigurationError


def test_bernoulli_limits():
    assert np.isclose(bern(0.0), 1.0)
    assert np.isclose(bern(np.array([1e-6]))[0], 1.0 - 0.5e-6)
    x = np.array([-50.0, 50.0, 800.0])
    B = bern(x)
    assert np.isclose(B[0], 50.0, rtol=1e-12)
    assert B[1] < 1e-18 and B[2] == 0.0
    assert np.all(np.isfinite(B))


def test_bernoulli_derivative_matches_finite_difference():
    x = np.array([-3.0, -1e-5, 0.0, 2e-5, 0.7, 4.0])
    h = 1e-6
    fd = (bern(x + h) - bern(x - h)) / (2 * h)
    assert np.allclose(bern_derivative(x), fd, atol=1e-7)


@pytest.mark.parametrize("stat", ["Boltzmann", "FermiDiracMinusOne", "Blakemore",
                                  "FermiDiracOneHalfBednarczyk"])
@pytest.mark.parametrize("scheme", ["ScharfetterGummel", "ExcessChemicalPotential",
                                    "DiffusionEnhanced"])
def test_equilibrium_flux_vanishes(stat, scheme):
    """Constant quasi-Fermi level across the edge: η_l − η_k = −drift."""
    if stat != "Boltzmann" and scheme == "ScharfetterGummel":
        pytest.skip("plain SG is only thermodynamically consistent for Boltzmann")
    d = make_distribution(stat)
    f = resolve_flux(scheme, stat)
    eta_k = np.array([-4.0, -1.0, 0.5, 2.0])
    dpsi = np.array([0.3, -0.8, 1.5, -2.0])       # reduced potential drop
    eta_l = eta_k - dpsi
    j = f(d, eta_k, eta_l, 1.0, 1.0, dpsi, 0.27)
    assert np.allclose(j, 0.0, atol=1e-10)


def test_generalized_sg_satisfies_implicit_law():
    d = make_distribution("Blakemore")
    eta_k = np.array([-2.0, 0.0, 1.0])
    eta_l = np.array([-1.0, -0.5, 1.5])
    drift = np.array([0.4, -0.2, 1.0])
    gamma = 0.27
    j = generalized_sg(d, eta_k, eta_l, 1.0, 1.0, drift, gamma)
    a = drift + gamma * j
    rhs = bern(a) * np.exp(eta_k) - bern(-a) * np.exp(eta_l)
    assert np.allclose(j, rhs, rtol=1e-10)


def test_generalized_sg_requires_blakemore():
    with pytest.raises(ConfigurationError):
        resolve_flux("GeneralizedSG", "Boltzmann")


def test_all_flux_names_resolve():
    for name in FLUX_NAMES:
        stat = "Blakemore" if name == "GeneralizedSG" else "Boltzmann"
        assert resolve_flux(name, stat).name == name
    with pytest.raises(ConfigurationError):
        resolve_flux("Upwind", "Boltzmann")
