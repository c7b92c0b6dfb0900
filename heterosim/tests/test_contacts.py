# -*- coding: utf-8 -*-
"""
Contact model dispatch: Dirichlet pins per model, Schottky potential and
equilibrium densities, boundary-region validation.
"""
import numpy as np
import pytest

from heterosim.boundaries.electrical import (
    BoundaryCondition,
    contact_conditions,
    schottky_potential,
)
from heterosim.models.pin_diode import PINParams, build_pin_device
from heterosim.utils.errors import ConfigurationError


def test_ohmic_pins_electron_and_hole_slots_at_applied_voltage():
    dev = build_pin_device()
    N = dev.grid.num_nodes
    conds = contact_conditions(dev.ctx, 1, 0.7)
    assert conds == [BoundaryCondition(0, N - 1, 0.7), BoundaryCondition(1, N - 1, 0.7)]


def test_set_contact_records_voltage_and_pins():
    dev = build_pin_device()
    dev.set_contact(0, -0.2)
    assert dev.ctx.params.contact_voltage[0] == -0.2
    assert all(bc.value == -0.2 and bc.node == 0 for bc in dev.fv.dirichlet[0])
    U = dev.unknowns()
    R = dev.fv.residual(U)
    assert np.allclose(R[:2, 0], 0.2)              # u − value


def test_ohmic_ignores_ionic_carriers():
    dev = build_pin_device(PINParams(with_ions=True))
    slots = {bc.slot for bc in contact_conditions(dev.ctx, 0, 0.0)}
    assert slots == {0, 1}


def test_schottky_pins_psi_at_barrier_potential():
    dev = build_pin_device(PINParams(right_contact="SchottkyContact", schottky_barrier_eV=0.4))
    # E_c at the acceptor contact is +0.6 eV: ψ_S = −(0.4 − 0.6) + Δu
    assert np.isclose(schottky_potential(dev.ctx, 1, 0.0), 0.2)
    conds = contact_conditions(dev.ctx, 1, 0.3)
    assert len(conds) == 1
    assert conds[0].slot == dev.ipsi
    assert np.isclose(conds[0].value, 0.5)


def test_schottky_equilibrium_density_is_bias_independent():
    dev = build_pin_device(PINParams(right_contact="SchottkyContact", schottky_barrier_eV=0.4))
    p = dev.ctx.params
    UT = p.UT
    expect = 1e25 * np.exp(-0.4 / UT)
    assert np.isclose(p.b_densities_eq[0, 1], expect, rtol=1e-10)
    dev.set_contact(1, 0.5)
    assert np.isclose(p.b_densities_eq[0, 1], expect, rtol=1e-10)


def test_barrier_lowering_uses_no_dirichlet_pins():
    dev = build_pin_device(PINParams(right_contact="SchottkyBarrierLowering"))
    assert contact_conditions(dev.ctx, 1, 0.1) == []
    assert dev.fv.physics.has_bflux(1)
    assert not dev.fv.physics.has_bflux(0)


@pytest.mark.parametrize("bregion", [2, 3, 9, -1])
def test_contacts_only_on_outer_boundary_regions(bregion):
    dev = build_pin_device()
    with pytest.raises(ConfigurationError):
        contact_conditions(dev.ctx, bregion, 0.0)


def test_get_current_rejects_inner_interfaces():
    dev = build_pin_device()
    with pytest.raises(ConfigurationError):
        dev.get_current(dev.unknowns(), bregion=2)


def test_slot_lookup_and_storage_modes():
    dev = build_pin_device(PINParams(with_ions=True))
    assert dev.num_slots == 4 and dev.ipsi == 3
    assert dev.slot(2, 1) == 2
    with pytest.raises(ConfigurationError):
        dev.slot(2, 0)
    with pytest.raises(ConfigurationError):
        dev.slot(5, 0)
    assert not np.isnan(dev.unknowns()).any()


def test_invalid_unknown_storage():
    from heterosim.models.device import DeviceSystem
    dev = build_pin_device()
    with pytest.raises(ConfigurationError):
        DeviceSystem(dev.grid, dev.config, dev.ctx.params, unknown_storage="csr")
