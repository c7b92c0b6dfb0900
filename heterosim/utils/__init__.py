# heterosim/utils/__init__.py
from __future__ import annotations
from .constants import Q, K_B, EPS0, PI, EV, CM, NM
from .errors import ConfigurationError, ConvergenceError, ConvergenceFailure

__all__ = [
    "Q", "K_B", "EPS0", "PI", "EV", "CM", "NM",
    "ConfigurationError", "ConvergenceError", "ConvergenceFailure",
]
