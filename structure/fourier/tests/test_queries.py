import numpy as np
import pytest
from numpy.testing import assert_allclose

from fourier import Fourier, FourierConfig
from fourier.errors import FourierError, InvalidArgumentError, OutOfRangeError

N_S = 0.9649


def test_single_k_matches_table(fourier_linear):
    k = fourier_linear.k
    pk, _ = fourier_linear.pk_at_z(0.0)
    for i in [3, 70, 140]:
        assert_allclose(fourier_linear.pk_at_k_and_z(k[i], 0.0)[0], pk[i], rtol=1e-10)


def test_vector_query_shapes(fourier_linear, k_test):
    z = np.array([0.0, 0.5, 2.0])
    pk, pk_cb = fourier_linear.pks_at_kvec_and_zvec(k_test, z)
    assert pk.shape == (3, 20)
    assert pk_cb is None
    for i, zi in enumerate(z):
        expected = [fourier_linear.pk_at_k_and_z(k, zi)[0] for k in k_test]
        assert_allclose(pk[i], expected, rtol=1e-12)


def test_logarithmic_mode(fourier_linear):
    pk, _ = fourier_linear.pk_at_z(1.0)
    ln_pk, _ = fourier_linear.pk_at_z(1.0, mode="logarithmic")
    assert_allclose(np.exp(ln_pk), pk)
    with pytest.raises(InvalidArgumentError):
        fourier_linear.pk_at_z(1.0, mode="log")


def test_below_smallest_k(fourier_linear):
    k_min = fourier_linear.k[0]
    pk_min, _ = fourier_linear.pk_at_k_and_z(k_min, 0.5)
    pk_low, _ = fourier_linear.pk_at_k_and_z(k_min / 10, 0.5)
    assert_allclose(pk_low, pk_min * 0.1 * 0.1**(N_S - 1), rtol=1e-8)


def test_tilt(fourier_linear):
    k_min = fourier_linear.k[0]
    # P ~ k^n_s on scales beyond the horizon
    assert_allclose(fourier_linear.pk_tilt_at_k_and_z(k_min / 100, 0.0), N_S, atol=1e-6)
    k, z, step = 0.1, 0.7, 1e-4
    numeric = (np.log(fourier_linear.pk_at_k_and_z(k * np.exp(step), z)[0])
               - np.log(fourier_linear.pk_at_k_and_z(k * np.exp(-step), z)[0])) / (2 * step)
    assert_allclose(fourier_linear.pk_tilt_at_k_and_z(k, z), numeric, atol=1e-3)
    # beyond the native range the linear spectrum falls steeply
    assert fourier_linear.pk_tilt_at_k_and_z(100.0, 0.0) < -2


def test_extended_range(fourier_linear):
    grid = fourier_linear.k_grid
    k_max = grid.k_max
    below, _ = fourier_linear.pk_at_k_and_z(k_max * (1 - 1e-9), 0.3)
    above, _ = fourier_linear.pk_at_k_and_z(k_max * (1 + 1e-9), 0.3)
    assert_allclose(above, below, rtol=1e-6)
    assert fourier_linear.pk_at_k_and_z(grid.k_max_extra, 0.3)[0] > 0
    with pytest.raises(OutOfRangeError):
        fourier_linear.pk_at_k_and_z(grid.k_max_extra * 1.01, 0.3)


def test_nonlinear_only_on_native_range(fourier_halofit):
    k_max = fourier_halofit.k_grid.k_max
    fourier_halofit.pk_at_k_and_z(k_max, 0.0, "nonlinear")
    with pytest.raises(OutOfRangeError):
        fourier_halofit.pk_at_k_and_z(2 * k_max, 0.0, "nonlinear")
    with pytest.raises(OutOfRangeError):
        fourier_halofit.pks_at_kvec_and_zvec([0.1, 2 * k_max], [0.0], "nonlinear")


def test_redshift_range(fourier_linear):
    fourier_linear.pk_at_z(3.0)
    with pytest.raises(OutOfRangeError):
        fourier_linear.pk_at_z(3.5)
    with pytest.raises(OutOfRangeError):
        fourier_linear.pk_at_k_and_z(0.1, -0.1)
    with pytest.raises(OutOfRangeError):
        fourier_linear.k_nl_at_z(4.0)


def test_bad_arguments(fourier_linear):
    with pytest.raises(InvalidArgumentError):
        fourier_linear.pk_at_k_and_z(-0.1, 0.0)
    with pytest.raises(InvalidArgumentError):
        fourier_linear.pk_at_z(0.0, index_pk=1)
    with pytest.raises(FourierError):
        fourier_linear.pk_at_z(0.0, pk_output="quasilinear")


def test_k_nl_without_correction(fourier_linear):
    assert fourier_linear.k_nl_at_z(0.5) == (np.inf, None)
    pk_nl, _ = fourier_linear.pk_at_z(0.5, "nonlinear")
    assert_allclose(pk_nl, fourier_linear.pk_at_z(0.5)[0])


def test_k_nl_interpolation(fourier_halofit):
    grid = fourier_halofit.tau_grid
    table = fourier_halofit.nonlinear.k_nl.values[0]
    i = grid.ln_tau_size - 3
    assert_allclose(fourier_halofit.k_nl_at_z(grid.z[i])[0], table[i], rtol=1e-6)
    between = fourier_halofit.k_nl_at_z(0.5 * (grid.z[i] + grid.z[i + 1]))[0]
    assert min(table[i], table[i + 1]) <= between <= max(table[i], table[i + 1])


def test_single_redshift(cosmology):
    fourier = Fourier(*cosmology, method="halofit", z_max_pk=0.0)
    assert fourier.tau_grid.single_time
    pk, _ = fourier.pk_at_z(0.0, "nonlinear")
    assert np.all(pk > 0)
    assert np.isfinite(fourier.k_nl_at_z(0.0)[0])
    with pytest.raises(OutOfRangeError):
        fourier.pk_at_z(0.1)


def test_free(cosmology):
    fourier = Fourier(*cosmology, config=FourierConfig(z_max_pk=1.0))
    assert fourier.is_allocated
    fourier.free()
    assert not fourier.is_allocated
    assert fourier.linear is None
    fourier.free()
    with pytest.raises(FourierError):
        fourier.pk_at_z(0.0)
    with pytest.raises(FourierError):
        fourier.k_nl_at_z(0.0)


def test_config_or_keywords(cosmology):
    with pytest.raises(InvalidArgumentError):
        Fourier(*cosmology, config=FourierConfig(), method="halofit")


def test_tilt_continuous_at_native_k_max(fourier_linear):
    k_max = fourier_linear.k_grid.k_max
    for z in [0.0, 1.0]:
        below = fourier_linear.pk_tilt_at_k_and_z(k_max * (1 - 1e-6), z)
        above = fourier_linear.pk_tilt_at_k_and_z(k_max * (1 + 1e-6), z)
        assert_allclose(above, below, rtol=2e-3)
