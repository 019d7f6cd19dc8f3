import numpy as np
import pytest
from numpy.testing import assert_allclose

from fourier import Fourier, FourierConfig
from fourier.grids import build_tau_grid
from fourier.pk_eq import (EffectiveDarkEnergyTable, build_pk_eq_table, conformal_distance_constant_w,
                           index_pk_eq_Omega_m, index_pk_eq_w)


@pytest.fixture(scope="module")
def w0wa_cosmology(cosmology_factory):
    return cosmology_factory(w0=-0.9, wa=-0.3, nk=100, nz=12)


def test_distance_matches_background_for_lambda(cosmology):
    background, thermodynamics = cosmology[0], cosmology[1]
    z_rec = thermodynamics.z_rec
    distance = conformal_distance_constant_w(0.0, z_rec, background, -1.0)
    expected = background.tau_of_z(0.0) - background.tau_of_z(z_rec)
    assert_allclose(distance, expected, rtol=1e-3)


def test_effective_w_table(w0wa_cosmology):
    background, thermodynamics, perturbations, _ = w0wa_cosmology
    config = FourierConfig(method="halofit", pk_eq=True, z_max_pk=2.0).validate()
    tau_grid = build_tau_grid(perturbations, background, config)
    table = build_pk_eq_table(config, background, thermodynamics, tau_grid)
    assert isinstance(table, EffectiveDarkEnergyTable)
    values = table.pk_eq_w_and_Omega
    assert values.shape == (tau_grid.ln_tau_size, 2)
    # the effective w is an average of w(z) between z and recombination
    assert np.all(values[:, index_pk_eq_w] < -0.9)
    assert np.all(values[:, index_pk_eq_w] > -1.2)
    assert np.all((values[:, index_pk_eq_Omega_m] > 0) & (values[:, index_pk_eq_Omega_m] < 1))
    w, Omega_m = table.at_tau(tau_grid.tau[-1])
    assert_allclose(w, values[-1, index_pk_eq_w])
    assert_allclose(Omega_m, background.Omega0_m, rtol=1e-6)


def test_pk_eq_not_needed(cosmology):
    background, thermodynamics, perturbations, _ = cosmology
    config = FourierConfig(method="halofit", pk_eq=False).validate()
    assert build_pk_eq_table(config, background, thermodynamics, None) is None
    config = FourierConfig(method="halofit", pk_eq=True).validate()
    with pytest.warns(UserWarning):
        assert build_pk_eq_table(config, background, thermodynamics, None) is None


def test_pk_eq_changes_halofit(w0wa_cosmology):
    plain = Fourier(*w0wa_cosmology, method="halofit", z_max_pk=1.5)
    mapped = Fourier(*w0wa_cosmology, method="halofit", pk_eq=True, z_max_pk=1.5)
    assert mapped.pk_eq is not None
    assert plain.pk_eq is None
    pk_plain, _ = plain.pk_at_k_and_z(1.0, 1.0, "nonlinear")
    pk_mapped, _ = mapped.pk_at_k_and_z(1.0, 1.0, "nonlinear")
    assert pk_plain != pk_mapped
    assert_allclose(pk_plain, pk_mapped, rtol=0.1)
    # the linear spectrum is untouched
    assert plain.pk_at_k_and_z(1.0, 1.0)[0] == mapped.pk_at_k_and_z(1.0, 1.0)[0]
