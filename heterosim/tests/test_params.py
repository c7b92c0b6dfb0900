# -*- coding: utf-8 -*-
"""
Parameter store: shapes, indexed access, boundary fill and validation.
"""
import numpy as np
import pytest

from heterosim.geometry.builder import LayerSpec, MeshSpec, StackSpec, build_grid
from heterosim.models.params import Params, ParamsNodal
from heterosim.utils.constants import EV, K_B, Q
from heterosim.utils.errors import ConfigurationError


def _two_region_params():
    p = Params(number_of_regions=2, number_of_boundary_regions=3, number_of_carriers=2)
    p.charge_numbers[:] = (-1.0, 1.0)
    p.dielectric_constant[:] = 12.0
    p.density_of_states[:] = 1e25
    p.band_edge_energy[0] = (0.6 * EV, 0.8 * EV)
    p.band_edge_energy[1] = (-0.6 * EV, -0.5 * EV)
    p.doping[0, 0] = 1e23
    p.recombination_SRH_lifetime[:] = 1e-9
    return p


def test_shapes_follow_counts():
    p = _two_region_params()
    assert p.density_of_states.shape == (2, 2)
    assert p.b_density_of_states.shape == (2, 3)
    assert p.contact_voltage.shape == (3,)
    assert np.isclose(p.UT, K_B * 300.0 / Q)


def test_get_set_round_trip_and_index_checks():
    p = _two_region_params()
    p.set("mobility", 0.14, carrier=0, region=1)
    assert p.get("mobility", carrier=0, region=1) == 0.14
    p.set("dielectric_constant", 3.9, region=1)
    assert p.dielectric_constant[1] == 3.9
    with pytest.raises(IndexError):
        p.get("mobility", carrier=2, region=0)
    with pytest.raises(IndexError):
        p.get("mobility", carrier=0)
    with pytest.raises(KeyError):
        p.get("work_function", region=0)


def test_copy_is_deep():
    p = _two_region_params()
    q = p.copy()
    q.doping[0, 0] = 0.0
    assert p.doping[0, 0] == 1e23


def test_temperature_updates_thermal_voltage():
    p = _two_region_params()
    p.set_temperature(400.0)
    assert np.isclose(p.UT, K_B * 400.0 / Q)
    with pytest.raises(ConfigurationError):
        p.set_temperature(0.0)


def test_trap_density_places_band_edge_at_trap_level():
    p = _two_region_params()
    # trap at the band edge: n_tau = N
    assert np.isclose(p.trap_density(0, 0, 0.6 * EV), 1e25)
    # electrons: trap 0.3 eV below E_c gives N exp(-0.3 eV / kT)
    expect = 1e25 * np.exp(-0.3 * EV / (K_B * 300.0))
    assert np.isclose(p.trap_density(0, 0, 0.3 * EV), expect)


def test_fill_boundary_from_regions_copies_adjacent_region():
    grid = build_grid(
        StackSpec(layers=(LayerSpec("a", 50e-9), LayerSpec("b", 50e-9))),
        MeshSpec(per_layer_N=(6, 6)),
    )
    p = _two_region_params()
    p.b_density_of_states[1, 1] = 7e24          # explicit value survives
    p.fill_boundary_from_regions(grid.bregion_regions)
    assert p.b_band_edge_energy[0, 0] == p.band_edge_energy[0, 0]
    assert p.b_band_edge_energy[0, 1] == p.band_edge_energy[0, 1]
    assert p.b_doping[0, 0] == 1e23
    assert p.b_density_of_states[1, 1] == 7e24
    # inner interface untouched
    assert p.b_density_of_states[0, 2] == 0.0


def test_check_rejects_unset_entries():
    p = _two_region_params()
    enabled = np.ones((2, 2), dtype=bool)
    p.check(enabled, 0, 1, srh_on=True)

    bad = p.copy()
    bad.density_of_states[1, 1] = 0.0
    with pytest.raises(ConfigurationError):
        bad.check(enabled, 0, 1, srh_on=True)

    bad = p.copy()
    bad.recombination_SRH_lifetime[0, 0] = 0.0
    with pytest.raises(ConfigurationError):
        bad.check(enabled, 0, 1, srh_on=True)
    bad.check(enabled, 0, 1, srh_on=False)

    bad = p.copy()
    bad.dielectric_constant[0] = 0.0
    with pytest.raises(ConfigurationError):
        bad.check(enabled, 0, 1, srh_on=False)


def test_disabled_carrier_may_leave_entries_unset():
    p = _two_region_params()
    p.density_of_states[1, 1] = 0.0
    enabled = np.array([[True, True], [True, False]])
    p.check(enabled, 0, 1, srh_on=True)


def test_invalid_counts_raise():
    with pytest.raises(ConfigurationError):
        Params(number_of_regions=0, number_of_boundary_regions=2, number_of_carriers=2)


def test_show_tabulates_fields():
    df = _two_region_params().show()
    row = df[(df["field"] == "doping") & (df["carrier"] == 0)].iloc[0]
    assert row["[0]"] == 1e23


def test_nodal_overrides_start_trivial():
    nd = ParamsNodal(number_of_nodes=10, number_of_carriers=2)
    assert nd.doping.shape == (2, 10)
    assert nd.is_trivial()
    nd.doping[0, 3] = 1e20
    assert not nd.is_trivial()
