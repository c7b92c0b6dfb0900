# heterosim/physics/recombination.py
"""
Recombination–generation models (SI units, vectorized).

Included:
  • Stationary SRH through a single trap level with lifetimes τ_n, τ_p and
    trap densities n_τ, p_τ.
  • Trap-assisted capture/emission rates when the trap occupancy is an unknown.
  • Radiative recombination (bimolecular) and Auger recombination (cubic).
  • Surface SRH through surface recombination velocities.
  • Generation: uniform or Beer–Lambert exponential absorption.

Conventions
-----------
- Rates are volumetric [1/m^3/s]; surface rates are areal [1/m^2/s].
- The mass-action excess is written with quasi-Fermi potentials,
      n p − n_i² = n p (1 − exp((φ_n − φ_p)/U_T)),
  so no intrinsic density has to be formed per region.

Public API (stable):
    excess_product(n, p, phin, phip, UT)
    srh_rate(n, p, excess, n_tau, p_tau, tau_n, tau_p, prefactor=1.0)
    radiative_rate(excess, coefficient)
    auger_rate(n, p, excess, C_n, C_p)
    trap_capture_rates(n, p, t, N_t, n_tau, p_tau, tau_n, tau_p, z_trap)
    surface_srh_rate(n, p, excess, n_tau, p_tau, v_n, v_p)
    generation_uniform(G, lambda2)
    generation_beer_lambert(x, photon_flux, absorption, peak, inverted, lambda2)
"""
from __future__ import annotations

from typing import Tuple

import numpy as np

__all__ = [
    "excess_product",
    "srh_rate",
    "radiative_rate",
    "auger_rate",
    "trap_capture_rates",
    "surface_srh_rate",
    "generation_uniform",
    "generation_beer_lambert",
]


def excess_product(n, p, phin, phip, UT: float) -> np.ndarray:
    """n p (1 − exp((φ_n − φ_p)/U_T)); zero in thermodynamic equilibrium."""
    arg = np.clip((np.asarray(phin) - np.asarray(phip)) / UT, -300.0, 300.0)
    return n * p * (1.0 - np.exp(arg))


def srh_rate(n, p, excess, n_tau, p_tau, tau_n, tau_p, prefactor: float = 1.0) -> np.ndarray:
    """Stationary SRH: excess / (τ_p (n + n_τ) + τ_n (p + p_τ))."""
    return prefactor * excess / (tau_p * (n + n_tau) + tau_n * (p + p_tau))


def radiative_rate(excess, coefficient) -> np.ndarray:
    return coefficient * excess


def auger_rate(n, p, excess, C_n, C_p) -> np.ndarray:
    return (C_n * n + C_p * p) * excess


def trap_capture_rates(
    n, p, t, N_t, n_tau, p_tau, tau_n, tau_p, z_trap: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Net electron (R_n) and hole (R_p) capture rates into a trap level with
    density N_t and occupancy unknown t. For z_trap < 0 the trap counts
    electrons; otherwise it counts holes.

        R_n = (n (N_t − f) − n_τ f) / (τ_n N_t)
        R_p = (p f − p_τ (N_t − f)) / (τ_p N_t)
    with f the electron occupancy. In steady state R_n = R_p reproduces
    stationary SRH.
    """
    f = t if z_trap < 0 else N_t - t
    R_n = (n * (N_t - f) - n_tau * f) / (tau_n * N_t)
    R_p = (p * f - p_tau * (N_t - f)) / (tau_p * N_t)
    return R_n, R_p


def surface_srh_rate(n, p, excess, n_tau, p_tau, v_n, v_p) -> np.ndarray:
    """Surface SRH per area: excess / ((n + n_τ)/v_p + (p + p_τ)/v_n)."""
    return excess / ((n + n_tau) / v_p + (p + p_tau) / v_n)


def generation_uniform(G, lambda2: float) -> np.ndarray:
    return lambda2 * np.asarray(G, dtype=np.float64)


def generation_beer_lambert(
    x, photon_flux, absorption, peak: float, inverted: int, lambda2: float,
) -> np.ndarray:
    """G(x) = λ2 F0 α exp(−s α (x − x_peak)), s = +1 (left) or −1 (right illumination)."""
    x = np.asarray(x, dtype=np.float64)
    return lambda2 * photon_flux * absorption * np.exp(-inverted * absorption * (x - peak))
