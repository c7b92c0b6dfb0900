# heterosim/main.py
"""
HeteroSim main entrypoint.

Default subcommand: pin
Usage examples:
    python -m heterosim
    python -m heterosim pin --v-end 1.2 --steps 13
    python -m heterosim run configs/pin_diode.yaml --out runs/pin
    python -m heterosim sweep configs/pin_diode.yaml \
        --set contacts.right.barrier_eV=0.3 --set contacts.right.barrier_eV=0.5
    python -m heterosim psc --n 2 --csv psc_iv.csv
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
import argparse
import sys

import numpy as np
import pandas as pd

from .models.pin_diode import PINParams, solve_pin
from .models.psc_device import PSCParams, run_psc
from .solver.newton import NewtonControl
from .utils import logger
from .utils.errors import ConfigurationError, ConvergenceError
from .workflows.run_dc import run_from_config
from .workflows.sweep import run_sweep

__all__ = ["main"]


# ------------------------------ PIN subcommand ------------------------------


@dataclass(slots=True)
class _PINArgs:
    Nd_m3: float
    Na_m3: float
    N: int
    T_K: float
    v_end: Optional[float]
    steps: int
    right_contact: str
    ions: bool
    verbose: bool
    csv_out: str


def _add_pin_subparser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("pin", help="Donor/intrinsic/acceptor diode (equilibrium + ramp)")
    p.add_argument("--Nd", type=float, default=1e23, help="Donor doping [1/m^3]")
    p.add_argument("--Na", type=float, default=1e23, help="Acceptor doping [1/m^3]")
    p.add_argument("--N", type=int, default=20, help="Nodes per doped layer (intrinsic gets 2x)")
    p.add_argument("--T", type=float, default=300.0, help="Temperature [K]")
    p.add_argument("--v-end", type=float, default=None, help="Final right-contact bias [V]")
    p.add_argument("--steps", type=int, default=13, help="Ramp points")
    p.add_argument(
        "--right-contact", default="OhmicContact",
        choices=["OhmicContact", "SchottkyContact", "SchottkyBarrierLowering"],
    )
    p.add_argument("--ions", action="store_true", help="Add an immobile ionic species")
    p.add_argument("--verbose", action="store_true", help="Per-iteration solver prints")
    p.add_argument("--csv", default="pin_equilibrium.csv", help="CSV output path")
    p.set_defaults(cmd="pin")
    return p


def _pin_args(ns: argparse.Namespace) -> _PINArgs:
    return _PINArgs(
        Nd_m3=ns.Nd,
        Na_m3=ns.Na,
        N=ns.N,
        T_K=ns.T,
        v_end=ns.v_end,
        steps=ns.steps,
        right_contact=str(ns.right_contact),
        ions=bool(ns.ions),
        verbose=bool(ns.verbose),
        csv_out=str(ns.csv),
    )


def _run_pin(args: _PINArgs) -> None:
    params = PINParams(
        N_layer=(args.N, 2 * args.N, args.N),
        T_K=args.T_K,
        Nd_m3=args.Nd_m3,
        Na_m3=args.Na_m3,
        with_ions=args.ions,
        right_contact=args.right_contact,
    )
    res = solve_pin(params, v_end=args.v_end, steps=args.steps,
                    control=NewtonControl(verbose=args.verbose))

    arr = np.column_stack([res.z_m, res.psi_V, res.E_C_J, res.E_V_J, res.n_m3, res.p_m3])
    header = "z_m,psi_V,E_C_J,E_V_J,n_m3,p_m3"
    np.savetxt(args.csv_out, arr, delimiter=",", header=header, comments="")
    logger.info(f"[ok] wrote {args.csv_out}")

    if res.sweep is not None:
        iv_out = str(Path(args.csv_out).with_name("pin_iv.csv"))
        pd.DataFrame({"V": res.sweep.voltages, "I": res.sweep.currents}).to_csv(iv_out, index=False)
        logger.info(f"[ok] wrote {iv_out}  (V_end={res.sweep.voltages[-1]:.3f} V, "
                    f"I={res.sweep.currents[-1]:.4e} A/m^2)")


# ------------------------------ PSC subcommand ------------------------------


def _add_psc_subparser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("psc", help="Perovskite cell with mobile anions (I–V hysteresis scan)")
    p.add_argument("--n", type=int, default=2, help="Mesh refinement level")
    p.add_argument("--steps", type=int, default=21, help="Time levels per scan direction")
    p.add_argument("--scan-rate", type=float, default=1.0, help="Scan rate [V/s]")
    p.add_argument("--v-end", type=float, default=1.2, help="Turning voltage [V]")
    p.add_argument("--verbose", action="store_true")
    p.add_argument("--csv", default="psc_iv.csv", help="I–V output path")
    p.set_defaults(cmd="psc")
    return p


def _run_psc(ns: argparse.Namespace) -> None:
    params = PSCParams(n=ns.n, number_tsteps=ns.steps, scan_rate=ns.scan_rate, v_end=ns.v_end)
    control = NewtonControl(max_iterations=300, damp_initial=0.5, damp_growth=1.21,
                            tol_round=1e-10, max_round=5, handle_exceptions=True,
                            verbose=bool(ns.verbose))
    res = run_psc(params, control)
    frames = []
    for direction, sweep in (("forward", res.forward), ("reverse", res.reverse)):
        frames.append(pd.DataFrame({"direction": direction, "V": sweep.voltages,
                                    "I": sweep.currents, "t": sweep.times}))
    pd.concat(frames, ignore_index=True).to_csv(ns.csv, index=False)
    logger.info(f"[ok] wrote {ns.csv}  (mean unknown={res.mean_value():.6f})")


# ---------------------------- config subcommands -----------------------------


def _add_run_subparser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("run", help="Equilibrium + sweep from a YAML config")
    p.add_argument("config", type=Path)
    p.add_argument("--out", type=Path, default=None, help="Output directory (default runs/<stem>)")
    p.set_defaults(cmd="run")
    return p


def _add_sweep_subparser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("sweep", help="Run one variant per --set group")
    p.add_argument("config", type=Path)
    p.add_argument(
        "--set", dest="variants", action="append", default=[], metavar="K=V[,K=V...]",
        help="Comma-separated overrides for one variant (repeatable)",
    )
    p.add_argument("--out", type=Path, default=None)
    p.set_defaults(cmd="sweep")
    return p


def _parse_variants(groups: Sequence[str]) -> List[List[str]]:
    return [[item.strip() for item in g.split(",") if item.strip()] for g in groups] or [[]]


# --------------------------------- main() ------------------------------------


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="HeteroSim: heterojunction drift-diffusion")
    sub = parser.add_subparsers(dest="cmd")

    pin_parser = _add_pin_subparser(sub)
    _add_psc_subparser(sub)
    _add_run_subparser(sub)
    _add_sweep_subparser(sub)

    argv = sys.argv[1:] if argv is None else list(argv)
    # If no subcommand given, default to 'pin' with defaults
    ns = pin_parser.parse_args([]) if not argv else parser.parse_args(argv)

    try:
        if ns.cmd == "pin":
            _run_pin(_pin_args(ns))
        elif ns.cmd == "psc":
            _run_psc(ns)
        elif ns.cmd == "run":
            run_from_config(ns.config, ns.out)
        elif ns.cmd == "sweep":
            df = run_sweep(ns.config, _parse_variants(ns.variants), ns.out)
            logger.info(f"[sweep] {int(df['converged'].sum())}/{len(df)} variants converged")
        else:
            parser.error("Unknown command (try: pin, psc, run, sweep)")
    except (ConfigurationError, ConvergenceError) as exc:
        logger.error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
