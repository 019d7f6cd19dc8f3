import types

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.integrate import quad

from fourier import Fourier
from fourier.config import FourierConfig
from fourier.errors import ConfigurationError
from fourier.hmcode import (DELTA_C0, DELTA_V0, Delta_v_mead, delta_c_mead, growth_history, growth_lcdm,
                            make_hmcode, sheth_tormen, window_nfw)


def test_nfw_window_limits():
    rv = np.array([1.0, 2.0])
    c = np.array([4.0, 8.0])
    W = window_nfw(np.array([1e-4, 1.0, 100.0]), rv, c)
    assert W.shape == (2, 3)
    assert_allclose(W[:, 0], 1, rtol=1e-5)
    assert np.all(W[:, 2] < W[:, 1])
    assert np.all(np.abs(W) <= 1 + 1e-8)


def test_sheth_tormen_normalised():
    total = quad(sheth_tormen, 0, 1)[0] + quad(sheth_tormen, 1, np.inf)[0]
    assert_allclose(total, 1, rtol=1e-3)


def test_lcdm_growth():
    assert_allclose(growth_lcdm(0.3, 0.0), 1.0)
    # Einstein-de Sitter: D = a
    assert_allclose(growth_lcdm(1.0, 1.0), 0.5, rtol=1e-4)


@pytest.fixture(scope="module")
def hmcode_versions(cosmology):
    return {version: Fourier(*cosmology, method="hmcode", hmcode_version=version, z_max_pk=1.0)
            for version in ["2015", "2020_unfitted", "2020_baryonic"]}


def test_hmcode_linear_on_large_scales(fourier_hmcode, hmcode_versions):
    for fourier in [fourier_hmcode] + list(hmcode_versions.values()):
        pk_nl, _ = fourier.pk_at_k_and_z(0.01, 0.0, "nonlinear")
        pk_lin, _ = fourier.pk_at_k_and_z(0.01, 0.0)
        assert_allclose(pk_nl, pk_lin, rtol=0.05)


def test_hmcode_enhancement(fourier_hmcode, fourier_halofit):
    for k in [0.3, 1.0]:
        pk_nl, _ = fourier_hmcode.pk_at_k_and_z(k, 0.0, "nonlinear")
        pk_lin, _ = fourier_hmcode.pk_at_k_and_z(k, 0.0)
        pk_halofit, _ = fourier_halofit.pk_at_k_and_z(k, 0.0, "nonlinear")
        assert pk_nl > pk_lin
        assert 0.7 < pk_nl / pk_halofit < 1.4
    k_nl = fourier_hmcode.k_nl_at_z(0.0)[0]
    assert 0.05 < k_nl < 2.0


def test_baryons_suppress_small_scales(fourier_hmcode, hmcode_versions):
    pk_dmo, _ = fourier_hmcode.pk_at_k_and_z(5.0, 0.0, "nonlinear")
    pk_baryons, _ = hmcode_versions["2020_baryonic"].pk_at_k_and_z(5.0, 0.0, "nonlinear")
    assert pk_baryons < pk_dmo


def test_agn_feedback_2015(cosmology, hmcode_versions):
    agn = Fourier(*cosmology, method="hmcode", hmcode_version="2015", feedback="owls_agn", z_max_pk=1.0)
    pk_agn, _ = agn.pk_at_k_and_z(5.0, 0.0, "nonlinear")
    pk_dmo, _ = hmcode_versions["2015"].pk_at_k_and_z(5.0, 0.0, "nonlinear")
    assert pk_agn < pk_dmo


def test_user_defined_feedback(cosmology):
    with pytest.raises(ConfigurationError):
        Fourier(*cosmology, method="hmcode", feedback="user_defined", c_min=3.0)
    fourier = Fourier(*cosmology, method="hmcode", hmcode_version="2015", feedback="user_defined",
                      c_min=3.13, eta_0=0.603, z_max_pk=0.5)
    reference = Fourier(*cosmology, method="hmcode", hmcode_version="2015", z_max_pk=0.5)
    assert_allclose(fourier.pk_at_z(0.0, "nonlinear")[0], reference.pk_at_z(0.0, "nonlinear")[0])


def test_hmcode_2020_builds_nowiggle(fourier_hmcode):
    assert fourier_hmcode.config.has_pk_numerical_nowiggle
    pk_nw, _ = fourier_hmcode.pk_at_z(0.0, "numerical_nowiggle")
    assert np.all(pk_nw > 0)


def test_correction_factor_tends_to_one(fourier_hmcode, hmcode_versions):
    for fourier in [fourier_hmcode] + list(hmcode_versions.values()):
        factor = fourier.nonlinear.nl_corr_density.values[0, -1]
        assert_allclose(factor[:10], 1, rtol=1e-2)


def test_growth_history_einstein_de_sitter():
    g, G = growth_history(1.0, -1.0, 0.0, [0.0, 1.0, 3.0])
    assert_allclose(g, [1.0, 0.5, 0.25], rtol=1e-5)
    assert_allclose(G, [1.0, 0.5, 0.25], rtol=1e-5)


def test_mead_collapse_fits():
    # Einstein-de Sitter values
    assert_allclose(delta_c_mead(1.0, 0.0, 1.0, 1.0), DELTA_C0 * 1.0001)
    assert_allclose(delta_c_mead(1.0, 0.0, 1.0, 1.0), 1.6866, rtol=1e-4)
    assert_allclose(Delta_v_mead(1.0, 0.0, 1.0, 1.0), DELTA_V0)
    # Planck-like LCDM today, g/a = 0.78718 and G/a = 0.93328
    assert_allclose(delta_c_mead(0.3153, 0.0, 0.78718, 0.93328), 1.67576, rtol=1e-4)
    assert_allclose(Delta_v_mead(0.3153, 0.0, 0.78718, 0.93328), 301.93, rtol=1e-4)
    # neutrino terms
    assert_allclose(delta_c_mead(0.3, 0.1, 0.8, 0.9) / delta_c_mead(0.3, 0.0, 0.8, 0.9), 1 - 0.0041)
    assert_allclose(Delta_v_mead(0.3, 0.1, 0.8, 0.9) / Delta_v_mead(0.3, 0.0, 0.8, 0.9), 1.0763)


def test_hmcode_2020_collapse_parameters(cosmology):
    background = cosmology[0]
    hm = make_hmcode(FourierConfig(method="hmcode", hmcode_version="2020").validate())
    hm.prepare(background, None)
    g_a, G_a = hm.growth_over_a(0.0)
    assert_allclose(g_a, 0.787, rtol=1e-2)
    assert_allclose(G_a, 0.933, rtol=1e-2)
    # an early time is close to Einstein-de Sitter
    assert_allclose(hm.growth_over_a(50.0), [1.0, 1.0], rtol=2e-3)

    hmi = types.SimpleNamespace(z=0.0, cosmology=types.SimpleNamespace(Omega_m=background.Omega0_m))
    assert 1.66 < hm.delta_c(hmi) < 1.686
    # well above the 18 pi^2 Omega_m^-0.352 scaling of the 2015 version
    assert 280 < hm.Delta_v(hmi) < 325
    assert hm.dolag == 1.0


def test_dolag_power_2020(cosmology_factory):
    background = cosmology_factory(w0=-0.8, nk=40, nz=8)[0]
    versions = {}
    for version in ["2015", "2020"]:
        hm = make_hmcode(FourierConfig(method="hmcode", hmcode_version=version).validate())
        hm.prepare(background, None)
        versions[version] = hm.dolag
    assert versions["2015"] > 1
    assert_allclose(versions["2020"], versions["2015"]**1.5)
