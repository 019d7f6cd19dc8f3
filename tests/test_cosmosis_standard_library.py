#!/usr/bin/env python
import numpy as np
import pytest
import os

pytest.importorskip("cosmosis")
from cosmosis import run_cosmosis  # noqa: E402


def load_grid(section):
    base = os.path.join("output/fourier", section)
    return [np.loadtxt(os.path.join(base, name + ".txt")) for name in ["z", "k_h", "p_k"]]


def test_fourier_halofit(capsys):
    run_cosmosis("examples/fourier.ini")
    z, k_h, p_lin = load_grid("matter_power_lin")
    _, _, p_nl = load_grid("matter_power_nl")
    assert p_lin.shape == p_nl.shape == (z.size, k_h.size)
    assert np.all(p_nl[:, k_h > 1] > p_lin[:, k_h > 1])
    assert os.path.exists("output/fourier/cdm_baryon_power_nl/p_k.txt")
    assert os.path.exists("output/fourier/nonlinear_scale/k_nl.txt")


@pytest.mark.parametrize("version", ["2015", "2020", "2020_baryonic"])
def test_fourier_hmcode(capsys, version):
    run_cosmosis("examples/fourier.ini", override={
        ("fourier", "method"): "hmcode",
        ("fourier", "hmcode_version"): version,
        ("fourier", "nz"): "10",
        })
    z, k_h, p_nl = load_grid("matter_power_nl")
    assert p_nl.shape == (10, k_h.size)


def test_fourier_nowiggle_w0wa(capsys):
    run_cosmosis("examples/fourier.ini", override={
        ("fourier", "has_pk_numerical_nowiggle"): "T",
        ("fourier", "pk_eq"): "T",
        ("fourier", "nz"): "10",
        }, variables={
        ("cosmological_parameters", "w"): "-0.9",
        ("cosmological_parameters", "wa"): "-0.3",
        })
    assert os.path.exists("output/fourier/matter_power_no_wiggle/p_k.txt")
    assert os.path.exists("output/fourier/matter_power_no_wiggle_analytic/p_k.txt")
