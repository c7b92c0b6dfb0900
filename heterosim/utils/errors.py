# heterosim/utils/errors.py
"""
Error taxonomy for device setup and continuation solves.

- ConfigurationError: inconsistent or unset parameters, carrier index misuse,
  unsupported carrier counts for analytical helpers. Raised before any solve.
- ConvergenceError: a nonlinear solve did not meet tolerance within its
  iteration budget. Carries a ConvergenceFailure record naming the tunables
  the caller may adjust; no partial solution is attached.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

__all__ = ["ConfigurationError", "ConvergenceFailure", "ConvergenceError"]

FailureKind = Literal["newton", "equilibrium", "ramp"]


class ConfigurationError(ValueError):
    """Fatal setup error (reported before any solve attempt)."""


@dataclass(frozen=True, slots=True)
class ConvergenceFailure:
    kind: FailureKind
    message: str
    step: Optional[int] = None
    parameter: Optional[str] = None       # e.g. "lambda1", "bias"
    value: Optional[float] = None
    tunables: Tuple[str, ...] = field(default_factory=tuple)
    iterations: Optional[int] = None
    update_norm: Optional[float] = None

    def describe(self) -> str:
        where = ""
        if self.step is not None:
            where = f" at step {self.step}"
            if self.parameter is not None and self.value is not None:
                where += f" ({self.parameter}={self.value:g})"
        hint = f"; try to adjust {', '.join(self.tunables)}" if self.tunables else ""
        return f"{self.kind} failed{where}: {self.message}{hint}"


class ConvergenceError(RuntimeError):
    """Non-convergent nonlinear solve with a structured failure payload."""

    def __init__(self, failure: ConvergenceFailure):
        super().__init__(failure.describe())
        self.failure = failure
