import numpy as np
import pytest
from numpy.testing import assert_allclose

from fourier import splines
from fourier.errors import InvalidArgumentError


def test_linear_function_has_zero_curvature():
    x = np.linspace(0, 1, 10)
    dd = splines.second_derivatives(x, 3 * x + 1)
    assert_allclose(dd, 0, atol=1e-12)


def test_interpolates_knots_and_smooth_function():
    x = np.linspace(0, 2 * np.pi, 60)
    y = np.sin(x)
    dd = splines.second_derivatives(x, y)
    assert_allclose(splines.evaluate(x, y, dd, x), y, atol=1e-12)
    x_new = np.linspace(0.5, 5.5, 37)
    assert_allclose(splines.evaluate(x, y, dd, x_new), np.sin(x_new), atol=1e-4)
    assert_allclose(splines.evaluate_derivative(x, y, dd, x_new), np.cos(x_new), atol=2e-3)


def test_vectorised_over_other_axes():
    x = np.linspace(0, 1, 20)
    y = np.array([x**2, np.exp(x), np.cos(x)])
    dd = splines.second_derivatives(x, y, axis=1)
    assert dd.shape == y.shape
    values = splines.evaluate(x, y, dd, 0.37, axis=1)
    assert values.shape == (3,)
    assert_allclose(values, [0.37**2, np.exp(0.37), np.cos(0.37)], rtol=1e-4)
    for row in range(3):
        assert_allclose(dd[row], splines.second_derivatives(x, y[row]))


def test_bad_knots():
    with pytest.raises(InvalidArgumentError):
        splines.second_derivatives([0.0, 1.0], [1.0, 2.0])
    with pytest.raises(InvalidArgumentError):
        splines.second_derivatives([0.0, 2.0, 1.0], [1.0, 2.0, 3.0])


def test_outside_range():
    x = np.linspace(0, 1, 5)
    dd = splines.second_derivatives(x, x)
    with pytest.raises(InvalidArgumentError):
        splines.evaluate(x, x, dd, 1.5)
