import numpy as np
import pytest
from numpy.testing import assert_allclose

from fourier import Fourier

hmcode = pytest.importorskip("pyhmcode")

Z = np.linspace(0.0, 1.0, 5)


def pyhmcode_cosmology(fourier):
    background = fourier.background
    h = background.h
    c = hmcode.Cosmology()
    c.om_m = background.Omega0_m
    c.om_b = background.Omega0_b
    c.om_v = 1 - background.Omega0_m
    c.h = h
    c.ns = fourier.primordial.modes[0][1]
    c.sig8 = fourier.sigma8[fourier.indices.index_pk_total]
    c.m_nu = background.mnu

    pk_lin = fourier.pks_at_kvec_and_zvec(fourier.k, Z)[0]
    c.set_linear_power_spectrum(fourier.k / h, Z, pk_lin * h**3)
    return c


def pyhmcode_power(fourier, model, log10T_heat=7.8):
    c = pyhmcode_cosmology(fourier)
    c.theat = 10**log10T_heat
    hmod = hmcode.Halomodel(model, verbose=False)
    return hmcode.calculate_nonlinear_power_spectrum(c, hmod, verbose=False) / fourier.background.h**3


@pytest.fixture(scope="module")
def fourier_baryonic(cosmology):
    return Fourier(*cosmology, method="hmcode", hmcode_version="2020_baryonic", z_max_pk=1.0)


def test_hmcode_2020_matches_pyhmcode(fourier_hmcode):
    fourier = fourier_hmcode
    k_h = fourier.k / fourier.background.h
    select = (k_h > 0.01) & (k_h < 1.0)
    pk_ours = fourier.pks_at_kvec_and_zvec(fourier.k, Z, "nonlinear")[0]
    pk_reference = pyhmcode_power(fourier, hmcode.HMcode2020)
    assert pk_reference.shape == pk_ours.shape
    assert_allclose(pk_ours[:, select], pk_reference[:, select], rtol=0.05)


def test_hmcode_2020_baryonic_suppression_matches_pyhmcode(fourier_hmcode, fourier_baryonic):
    k_h = fourier_hmcode.k / fourier_hmcode.background.h
    select = (k_h > 0.01) & (k_h < 1.0)
    ratio_ours = (fourier_baryonic.pks_at_kvec_and_zvec(fourier_baryonic.k, Z, "nonlinear")[0]
                  / fourier_hmcode.pks_at_kvec_and_zvec(fourier_hmcode.k, Z, "nonlinear")[0])
    ratio_reference = (pyhmcode_power(fourier_baryonic, hmcode.HMcode2020_feedback)
                       / pyhmcode_power(fourier_hmcode, hmcode.HMcode2020))
    assert_allclose(ratio_ours[:, select], ratio_reference[:, select], atol=0.03)
