# heterosim/utils/constants.py
from __future__ import annotations

__all__ = ["Q", "K_B", "EPS0", "PI", "EV", "CM", "NM"]

# Fundamental constants (SI)
Q    = 1.602176634e-19       # elementary charge [C]
K_B  = 1.380649e-23          # Boltzmann constant [J/K]
EPS0 = 8.8541878128e-12      # vacuum permittivity [F/m]
PI   = 3.141592653589793

# Unit factors (multiply to get SI)
EV = Q                       # electron volt [J]
CM = 1.0e-2                  # centimeter [m]
NM = 1.0e-9                  # nanometer [m]
