"""
heterosim/utils/diagnostics.py

Targeted, low-noise diagnostics to understand why a solve fails.
Import and call these from solvers/workflows when verbose/debug is set.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

import numpy as np


def _fmt_range(x: np.ndarray, name: str) -> str:
    x = x[np.isfinite(x)]
    if x.size == 0:
        return f"{name}: (empty)"
    return f"{name}∈[{np.min(x):+.3e},{np.max(x):+.3e}]"


def log_state_summary(
    *,
    psi: np.ndarray,
    densities: Optional[Mapping[str, np.ndarray]] = None,
    resid: Optional[np.ndarray] = None,
    prefix: str = "[diag]",
) -> None:
    """Print compact ranges for ψ and any carrier densities."""
    msg = [prefix, _fmt_range(psi, "ψ")]
    for name, arr in (densities or {}).items():
        msg.append(_fmt_range(arr, name))
    if resid is not None:
        msg.append(f"||res||_inf={float(np.linalg.norm(resid.ravel(), ord=np.inf)):.3e}")
    print(" | ".join(msg))


def check_neutrality(
    *,
    rho_Cm3: np.ndarray,
    Vi: np.ndarray,
    scale_C: float,
    tol_rel: float = 1e-3,
    prefix: str = "[diag]",
) -> bool:
    """
    Report total space charge per unit area in the domain (useful at equilibrium).
    Returns True when |Q_total| < tol_rel * scale_C.
    """
    total = float(np.sum(rho_Cm3 * Vi))
    ok = abs(total) < tol_rel * scale_C
    print(f"{prefix} charge audit: Q_total={total:+.3e} C/m^2 "
          f"(scale={scale_C:.3e}) | ok={ok}")
    return ok


def log_continuation_step(
    *,
    phase: str,
    step: int,
    parameter: str,
    value: float,
    iters: int,
    update_norm: float,
    tstep: float = np.inf,
    prefix: str = "[hom]",
) -> None:
    """Compact log for each continuation step. Called by solver/homotopy.py."""
    t_txt = "" if not np.isfinite(tstep) else f" Δt={tstep:.2e}s"
    print(
        f"{prefix} {phase} step {step:02d} | {parameter}={value:g}{t_txt} | "
        f"iters={iters} | ||δu||_inf={update_norm:.3e}"
    )


def log_solver_start(
    *,
    solver: str,
    res_inf: float,
    psi_min: float,
    psi_max: float,
    damping: float,
    prefix: str = "[sol]",
) -> None:
    print(
        f"{prefix} {solver} start | ||res||_inf={res_inf:.3e} | "
        f"ψ∈[{psi_min:+.3e},{psi_max:+.3e}] V | damping={damping:.2e}"
    )


def log_solver_iter(
    *,
    solver: str,
    it: int,
    res_inf: float,
    damping: float,
    max_du: float,
    psi_min: float,
    psi_max: float,
    prefix: str = "[sol]",
) -> None:
    print(
        f"{prefix} {solver} iter {it:02d} | ||res||_inf={res_inf:.3e} | "
        f"damping={damping:.2e} | max|δu|={max_du:.3e} V | "
        f"ψ∈[{psi_min:+.3e},{psi_max:+.3e}] V"
    )


def log_convergence_summary(
    *,
    solver: str,
    converged: bool,
    iters: int,
    update_norm: float,
    prefix: str = "[sol]",
) -> None:
    status = "converged" if converged else "NOT converged"
    print(f"{prefix} {solver} {status} after {iters} iters | ||δu||_inf={update_norm:.3e}")


def log_contacts_summary(
    *,
    contacts: Sequence[tuple[int, str, float]],
    prefix: str = "[diag]",
) -> None:
    """contacts: (boundary region, model name, applied voltage) triples."""
    parts = [f"b{b}:{model}@{v:+.3f}V" for b, model, v in contacts]
    print(f"{prefix} contacts | " + " ".join(parts))
