import numpy as np
import pytest

from fourier import (Fourier, FlatBackground, SimpleThermodynamics, PowerLawPrimordial,
                     EisensteinHuPerturbations)

# Planck 2018-like cosmology
H0 = 0.6736
OMEGA_M = 0.3153
OMEGA_B = 0.0493
A_S = 2.1e-9
N_S = 0.9649


def make_cosmology(mnu=0.0, w0=-1.0, wa=0.0, A_s=A_S, isocurvature=None, ic_names=("ad",),
                   nk=150, k_max=20.0, z_max=3.2, nz=25):
    background = FlatBackground(h=H0, Omega_m=OMEGA_M, Omega_b=OMEGA_B, mnu=mnu, w0=w0, wa=wa)
    thermodynamics = SimpleThermodynamics(background)
    primordial = PowerLawPrimordial(A_s, N_S, isocurvature=isocurvature)
    perturbations = EisensteinHuPerturbations(background, k_min=1e-4, k_max=k_max, nk=nk,
                                              z_max=z_max, nz=nz, ic_names=ic_names)
    return background, thermodynamics, perturbations, primordial


@pytest.fixture(scope="session")
def cosmology():
    return make_cosmology()


@pytest.fixture(scope="session")
def cosmology_mnu():
    return make_cosmology(mnu=0.3)


@pytest.fixture(scope="session")
def fourier_linear(cosmology):
    return Fourier(*cosmology, method="none", z_max_pk=3.0)


@pytest.fixture(scope="session")
def fourier_halofit(cosmology):
    return Fourier(*cosmology, method="halofit", z_max_pk=3.0)


@pytest.fixture(scope="session")
def fourier_hmcode(cosmology):
    return Fourier(*cosmology, method="hmcode", hmcode_version="2020", z_max_pk=3.0)


@pytest.fixture(scope="session")
def fourier_nowiggle(cosmology):
    return Fourier(*cosmology, method="none", z_max_pk=3.0,
                   has_pk_numerical_nowiggle=True, has_pk_analytic_nowiggle=True)


@pytest.fixture(scope="session")
def fourier_mnu(cosmology_mnu):
    return Fourier(*cosmology_mnu, method="halofit", z_max_pk=3.0)


@pytest.fixture
def k_test():
    return np.logspace(-3, 0.5, 20)


@pytest.fixture(scope="session")
def cosmology_factory():
    return make_cosmology
