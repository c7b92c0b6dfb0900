# heterosim/physics/carriers/statistics.py
"""
Carrier statistics: distribution functions F(η) mapping a reduced chemical
potential η to a relative density n/N.

- SI units throughout.
- Vectorized over numpy arrays.
- Every distribution ships with its derivative dF/dη so flux schemes can form
  the diffusion enhancement g(η) = F/F' without finite differences.

Public API (stable):
    Distribution
    boltzmann(eta), fermi_dirac_minus_one(eta), blakemore(eta, gamma)
    fermi_dirac_one_half_bednarczyk(eta), fermi_dirac_one_half_tesca(eta)
    make_distribution(name, gamma=0.27) -> Distribution
    STATISTICS_NAMES
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Literal, Tuple

import numpy as np

from ...utils.errors import ConfigurationError

PI = np.pi
SQRT_PI = np.sqrt(np.pi)

__all__ = [
    "StatisticsName",
    "STATISTICS_NAMES",
    "Distribution",
    "boltzmann",
    "fermi_dirac_minus_one",
    "blakemore",
    "fermi_dirac_one_half_bednarczyk",
    "fermi_dirac_one_half_tesca",
    "make_distribution",
]

StatisticsName = Literal[
    "Boltzmann",
    "FermiDiracOneHalfBednarczyk",
    "FermiDiracOneHalfTeSCA",
    "FermiDiracMinusOne",
    "Blakemore",
]
STATISTICS_NAMES: Tuple[str, ...] = (
    "Boltzmann",
    "FermiDiracOneHalfBednarczyk",
    "FermiDiracOneHalfTeSCA",
    "FermiDiracMinusOne",
    "Blakemore",
)

# exp() argument clip; keeps N·exp(η) finite for any Newton iterate
EXP_CLIP = 300.0

# TeSCA branch point: Blakemore tail and Sommerfeld head agree here
_TESCA_ETA = 1.1967
_SOMMERFELD_A = 4.0 / (3.0 * SQRT_PI)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _c64(x):
    """float64 array; scalars stay 0-d."""
    return np.asarray(x, dtype=np.float64)


def _exp_safe(x: np.ndarray, clip: float = EXP_CLIP) -> np.ndarray:
    """exp(x) with symmetric clipping to avoid overflow/underflow."""
    return np.exp(np.clip(x, -clip, clip))


# ---------------------------------------------------------------------
# Distribution functions (value, derivative)
# ---------------------------------------------------------------------
def boltzmann(eta) -> Tuple[np.ndarray, np.ndarray]:
    e = _exp_safe(_c64(eta))
    return e, e


def fermi_dirac_minus_one(eta) -> Tuple[np.ndarray, np.ndarray]:
    """Fermi–Dirac integral of order −1: F = 1/(exp(−η) + 1)."""
    F = 1.0 / (_exp_safe(-_c64(eta)) + 1.0)
    return F, F * (1.0 - F)


def blakemore(eta, gamma: float = 0.27) -> Tuple[np.ndarray, np.ndarray]:
    """Blakemore approximation: F = 1/(exp(−η) + γ)."""
    em = _exp_safe(-_c64(eta))
    F = 1.0 / (em + gamma)
    return F, em * F * F


def fermi_dirac_one_half_bednarczyk(eta) -> Tuple[np.ndarray, np.ndarray]:
    """
    Bednarczyk approximation of the normalized F_{1/2}:
        F = 1/(exp(−η) + ξ(η)),  ξ = (3√π/4) a^{-3/8},
        a = η^4 + 33.6 η (1 − 0.68 exp(−0.17 (η+1)^2)) + 50
    """
    x = _c64(eta)
    g = np.exp(-0.17 * (x + 1.0) ** 2)
    a = x ** 4 + 33.6 * x * (1.0 - 0.68 * g) + 50.0
    da = 4.0 * x ** 3 + 33.6 * (1.0 - 0.68 * g) + 33.6 * x * 0.2312 * (x + 1.0) * g
    xi = 0.75 * SQRT_PI * a ** (-0.375)
    dxi = -0.375 * 0.75 * SQRT_PI * a ** (-1.375) * da
    em = _exp_safe(-x)
    den = em + xi
    F = 1.0 / den
    return F, (em - dxi) / (den * den)


def fermi_dirac_one_half_tesca(eta) -> Tuple[np.ndarray, np.ndarray]:
    """
    Piecewise F_{1/2} (TeSCA style): Blakemore tail (γ=0.27) below the branch
    point, Sommerfeld head (4/(3√π)) (η² + π²/6)^{3/4} above it.
    """
    x = _c64(eta)
    F_low, dF_low = blakemore(x, 0.27)
    s = x * x + PI * PI / 6.0
    F_high = _SOMMERFELD_A * s ** 0.75
    dF_high = (2.0 * x / SQRT_PI) * s ** (-0.25)
    head = x >= _TESCA_ETA
    return np.where(head, F_high, F_low), np.where(head, dF_high, dF_low)


@dataclass(frozen=True, slots=True)
class Distribution:
    """
    A resolved statistics function.

    value_and_derivative(eta) -> (F, dF/dη)
    """
    name: str
    value_and_derivative: Callable[[np.ndarray], Tuple[np.ndarray, np.ndarray]]

    def __call__(self, eta) -> np.ndarray:
        return self.value_and_derivative(eta)[0]

    def derivative(self, eta) -> np.ndarray:
        return self.value_and_derivative(eta)[1]

    def enhancement(self, eta) -> np.ndarray:
        """Diffusion enhancement g(η) = F(η)/F'(η) (1 for Boltzmann)."""
        F, dF = self.value_and_derivative(eta)
        return F / dF

    @property
    def is_boltzmann(self) -> bool:
        return self.name == "Boltzmann"


def make_distribution(name: str, gamma: float = 0.27) -> Distribution:
    """Resolve a statistics name once; Blakemore closes over γ."""
    table: Dict[str, Callable[[np.ndarray], Tuple[np.ndarray, np.ndarray]]] = {
        "Boltzmann": boltzmann,
        "FermiDiracOneHalfBednarczyk": fermi_dirac_one_half_bednarczyk,
        "FermiDiracOneHalfTeSCA": fermi_dirac_one_half_tesca,
        "FermiDiracMinusOne": fermi_dirac_minus_one,
        "Blakemore": lambda eta: blakemore(eta, gamma),
    }
    try:
        fn = table[name]
    except KeyError:
        raise ConfigurationError(
            f"unknown statistics function {name!r}; choose one of {STATISTICS_NAMES}"
        ) from None
    return Distribution(name=name, value_and_derivative=fn)
