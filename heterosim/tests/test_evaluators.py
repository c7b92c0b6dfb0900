# -*- coding: utf-8 -*-
"""
Physics function set: disabled carriers, equilibrium pinning, ionic carriers,
trap rows and generation, evaluated directly on local node batches.
"""
import numpy as np

from heterosim.geometry.builder import uniform_grid
from heterosim.models.config import BulkRecombination, ModelConfig, Traps
from heterosim.models.device import DeviceSystem
from heterosim.models.params import Params
from heterosim.models.pin_diode import PINParams, build_pin_device
from heterosim.physics.evaluators import EdgeBatch, NodeBatch
from heterosim.physics.recombination import trap_capture_rates
from heterosim.utils.constants import EV, Q

ION = 2


def _local(nc, n_nodes, seed=0):
    rng = np.random.default_rng(seed)
    u = np.zeros((nc + 1, n_nodes))
    u[:nc] = rng.uniform(-0.1, 0.1, size=(nc, n_nodes))
    u[nc] = rng.uniform(-0.3, 0.3, size=n_nodes)
    return u


def _edges(grid, region):
    cells = grid.region_cells(region)
    return EdgeBatch(cells, cells + 1, grid.dz[cells], region)


def test_disabled_carrier_contributes_nothing():
    dev = build_pin_device(PINParams(with_ions=True, ion_mobility_m2_Vs=1e-10,
                                     model_type="Transient"))
    dev.state.leave_equilibrium()
    fs, grid, state = dev.fv.physics, dev.grid, dev.state
    nodes = grid.region_nodes(0)
    u = _local(3, nodes.size)
    batch = NodeBatch(nodes, 0)

    assert np.all(fs.density(ION, u, nodes, 0) == 0.0)
    assert np.all(fs.doping(ION, nodes, 0) == 0.0)
    assert np.all(fs.reaction(u, batch, state)[ION] == 0.0)
    assert np.all(fs.storage(u, batch, state)[ION] == 0.0)
    e = _edges(grid, 0)
    F = fs.flux(u[:, :-1], u[:, 1:], e, state)
    assert np.all(F[ION] == 0.0)

    # the ion unknown is inactive at donor-only nodes: identity rows
    s = dev.slot(ION, 1)
    donor_only = np.flatnonzero(grid.Vr[1] == 0.0)
    assert not dev.fv.active[s, donor_only].any()
    U = dev.unknowns()
    U[s] = 0.37
    R = dev.fv.residual(U)
    assert np.allclose(R[s, donor_only], 0.37)


def test_equilibrium_pins_carriers_and_drops_carrier_flux():
    dev = build_pin_device()
    fs, grid, state = dev.fv.physics, dev.grid, dev.state
    assert state.in_equilibrium
    nodes = grid.region_nodes(1)
    u = _local(2, nodes.size, seed=1)
    f = fs.reaction(u, NodeBatch(nodes, 1), state)
    assert np.array_equal(f[:2], u[:2])
    F = fs.flux(u[:, :-1], u[:, 1:], _edges(grid, 1), state)
    assert np.all(F[:2] == 0.0)
    assert np.any(F[2] != 0.0)


def test_poisson_reaction_scales_with_lambda1():
    dev = build_pin_device()
    fs, grid, state = dev.fv.physics, dev.grid, dev.state
    nodes = grid.region_nodes(0)
    u = _local(2, nodes.size, seed=2)
    state.set_lambda("lambda1", 1.0)
    full = fs.reaction(u, NodeBatch(nodes, 0), state)[2]
    state.set_lambda("lambda1", 0.25)
    quarter = fs.reaction(u, NodeBatch(nodes, 0), state)[2]
    assert np.allclose(quarter, 0.25 * full)
    state.set_lambda("lambda1", 0.0)
    assert np.all(fs.reaction(u, NodeBatch(nodes, 0), state)[2] == 0.0)


def test_stationary_ions_hold_their_quasi_fermi_level():
    dev = build_pin_device(PINParams(with_ions=True, ion_mobility_m2_Vs=1e-10))
    dev.state.leave_equilibrium()
    fs, grid, state = dev.fv.physics, dev.grid, dev.state
    nodes = grid.region_nodes(1)
    u = _local(3, nodes.size, seed=3)
    assert np.array_equal(fs.reaction(u, NodeBatch(nodes, 1), state)[ION], u[ION])
    F = fs.flux(u[:, :-1], u[:, 1:], _edges(grid, 1), state)
    assert np.all(F[ION] == 0.0)

    state.model_type = "Transient"
    F = fs.flux(u[:, :-1], u[:, 1:], _edges(grid, 1), state)
    assert np.any(F[ION] != 0.0)
    assert np.all(fs.reaction(u, NodeBatch(nodes, 1), state)[ION] == 0.0)


def test_storage_only_in_transient_mode():
    dev = build_pin_device()
    dev.state.leave_equilibrium()
    fs, grid, state = dev.fv.physics, dev.grid, dev.state
    nodes = grid.region_nodes(0)
    u = _local(2, nodes.size, seed=4)
    assert np.all(fs.storage(u, NodeBatch(nodes, 0), state) == 0.0)
    state.model_type = "Transient"
    s = fs.storage(u, NodeBatch(nodes, 0), state)
    n = fs.density(0, u, nodes, 0)
    assert np.allclose(s[0], -Q * n)
    assert np.all(s[2] == 0.0)


# ---------------------------------------------------------------------
# single-layer devices with traps / generation
# ---------------------------------------------------------------------


def _single_layer(nc=2, traps=None, generation="GenerationNone", statistics=None,
                  recombination=None, tune=None):
    grid = uniform_grid(100e-9, 11)
    p = Params(1, 2, nc)
    p.charge_numbers[:2] = (-1.0, 1.0)
    p.dielectric_constant[0] = 10.0
    p.density_of_states[:2, 0] = 1e25
    p.band_edge_energy[0, 0] = 0.6 * EV
    p.band_edge_energy[1, 0] = -0.6 * EV
    p.recombination_SRH_lifetime[:2, 0] = (1e-8, 4e-8)
    p.recombination_SRH_trap_density[:2, 0] = (1e18, 5e17)
    p.generation_uniform[0] = 1e27
    if nc > 2:
        p.charge_numbers[2] = -1.0
        p.density_of_states[2, 0] = 1e21
        p.band_edge_energy[2, 0] = 0.1 * EV
    if tune is not None:
        tune(p)
    p.fill_boundary_from_regions(grid.bregion_regions)
    cfg = ModelConfig.for_grid(
        grid, nc,
        statistics=statistics or ["Boltzmann"] * nc,
        bulk_recombination=recombination or BulkRecombination(SRH=True, radiative=False, Auger=False),
        traps=traps,
        generation_model=generation,
    )
    return DeviceSystem(grid, cfg, p)


def test_trap_rows_follow_capture_rates():
    dev = _single_layer(nc=3, traps=Traps(carriers=(2,), regions=(0,)),
                        statistics=["Boltzmann", "Boltzmann", "FermiDiracMinusOne"])
    dev.state.leave_equilibrium()
    fs, state = dev.fv.physics, dev.state
    nodes = np.arange(dev.grid.num_nodes)
    u = _local(3, nodes.size, seed=5)
    f = fs.reaction(u, NodeBatch(nodes, 0), state)

    n = fs.density(0, u, nodes, 0)
    p = fs.density(1, u, nodes, 0)
    t = fs.density(2, u, nodes, 0)
    R_n, R_p = trap_capture_rates(n, p, t, 1e21, 1e18, 5e17, 1e-8, 4e-8, -1.0)
    assert np.allclose(f[2], Q * (R_n - R_p))
    assert np.allclose(f[0], -Q * R_n)
    assert np.allclose(f[1], Q * R_p)


def test_uniform_generation_enters_carrier_rows():
    dev = _single_layer(generation="GenerationUniform")
    dev.state.leave_equilibrium()
    fs, state = dev.fv.physics, dev.state
    nodes = np.arange(dev.grid.num_nodes)
    u = np.zeros((3, nodes.size))                 # φ_n = φ_p: no recombination
    state.set_lambda("lambda2", 0.5)
    f = fs.reaction(u, NodeBatch(nodes, 0), state)
    assert np.allclose(f[0], Q * 0.5e27)          # z_n q (R − G) with z_n = −1
    assert np.allclose(f[1], -Q * 0.5e27)


def test_trap_row_scales_with_srh_prefactor():
    def half(p):
        p.prefactor_SRH = 0.5

    dev = _single_layer(nc=3, traps=Traps(carriers=(2,), regions=(0,)),
                        statistics=["Boltzmann", "Boltzmann", "FermiDiracMinusOne"], tune=half)
    dev.state.leave_equilibrium()
    fs, state = dev.fv.physics, dev.state
    nodes = np.arange(dev.grid.num_nodes)
    u = _local(3, nodes.size, seed=5)
    f = fs.reaction(u, NodeBatch(nodes, 0), state)

    n = fs.density(0, u, nodes, 0)
    p = fs.density(1, u, nodes, 0)
    t = fs.density(2, u, nodes, 0)
    R_n, R_p = trap_capture_rates(n, p, t, 1e21, 1e18, 5e17, 1e-8, 4e-8, -1.0)
    assert np.allclose(f[2], 0.5 * Q * (R_n - R_p))
    assert np.allclose(f[0], -0.5 * Q * R_n)
    assert np.allclose(f[1], 0.5 * Q * R_p)
    # captured carriers balance the trap charge
    assert np.allclose(f[0] + f[1] + f[2], 0.0, atol=1e-12 * np.max(np.abs(f[:3])))


def test_disabled_recombination_ignores_its_coefficients():
    off = BulkRecombination(SRH=False, radiative=False, Auger=False)

    def other(p):
        p.recombination_SRH_lifetime[:2, 0] = (3e-6, 7e-9)
        p.recombination_SRH_trap_density[:2, 0] = (4e20, 2e15)
        p.recombination_radiative[0] = 1e-16
        p.recombination_Auger[:2, 0] = (1e-40, 3e-41)

    rows = []
    for tune in (None, other):
        dev = _single_layer(recombination=off, tune=tune)
        dev.state.leave_equilibrium()
        nodes = np.arange(dev.grid.num_nodes)
        u = _local(2, nodes.size, seed=11)
        rows.append(dev.fv.physics.reaction(u, NodeBatch(nodes, 0), dev.state))
    assert np.array_equal(rows[0][:2], rows[1][:2])
    assert not np.any(rows[0][:2])
