"""
Natural cubic splines stored as tables of second derivatives.

The tables are kept alongside the values they interpolate (rather than as
scipy spline objects) so that one second-derivative table can serve every
spectrum type, initial condition pair and wavenumber at once.
"""
import numpy as np
from scipy.linalg import solve_banded

from .errors import InvalidArgumentError


def check_knots(x):
    x = np.asarray(x, dtype=float)
    if x.ndim != 1 or x.size < 3:
        raise InvalidArgumentError("A spline needs at least 3 knots, got {}".format(x.size))
    if np.any(np.diff(x) <= 0):
        raise InvalidArgumentError("Spline knots must be strictly increasing")
    return x


def second_derivatives(x, y, axis=0):
    """
    Second derivatives of the natural cubic spline through y(x) along the given
    axis of y.  All other axes are treated as independent curves.
    """
    x = check_knots(x)
    y = np.asarray(y, dtype=float)
    n = x.size
    if y.shape[axis] != n:
        raise InvalidArgumentError("Spline values have {} points along axis {} but there are {} knots".format(
            y.shape[axis], axis, n))

    yy = np.moveaxis(y, axis, 0)
    shape = yy.shape
    yy = yy.reshape(n, -1)

    h = np.diff(x)
    slope = np.diff(yy, axis=0) / h[:, None]
    rhs = 6.0 * (slope[1:] - slope[:-1])

    # Tridiagonal system for the interior knots, natural boundary conditions
    ab = np.zeros((3, n - 2))
    ab[0, 1:] = h[1:-1]
    ab[1, :] = 2.0 * (h[:-1] + h[1:])
    ab[2, :-1] = h[1:-1]

    dd = np.zeros_like(yy)
    dd[1:-1] = solve_banded((1, 1), ab, rhs)

    dd = dd.reshape(shape)
    return np.moveaxis(dd, 0, axis)


def _locate(x, x_new):
    x_new = np.asarray(x_new, dtype=float)
    tol = 1.0e-10 * (x[-1] - x[0])
    if np.any(x_new < x[0] - tol) or np.any(x_new > x[-1] + tol):
        raise InvalidArgumentError("Spline evaluated at {} outside its range [{}, {}]".format(
            x_new, x[0], x[-1]))
    index = np.searchsorted(x, x_new, side="right") - 1
    index = np.clip(index, 0, x.size - 2)
    h = x[index + 1] - x[index]
    a = (x[index + 1] - x_new) / h
    b = 1.0 - a
    return index, h, a, b


def _expand(coeff, ndim_extra):
    return np.reshape(coeff, np.shape(coeff) + (1,) * ndim_extra)


def evaluate(x, y, dd, x_new, axis=0):
    """
    Evaluate the spline (x, y, dd) at x_new.  The axis of y being
    interpolated is replaced by the shape of x_new.
    """
    x = np.asarray(x, dtype=float)
    axis = axis % np.ndim(y)
    y = np.moveaxis(np.asarray(y, dtype=float), axis, 0)
    dd = np.moveaxis(np.asarray(dd, dtype=float), axis, 0)
    index, h, a, b = _locate(x, x_new)

    extra = y.ndim - 1
    h_, a_, b_ = _expand(h, extra), _expand(a, extra), _expand(b, extra)
    result = (a_ * y[index] + b_ * y[index + 1]
              + ((a_**3 - a_) * dd[index] + (b_**3 - b_) * dd[index + 1]) * h_**2 / 6.0)
    if extra and np.ndim(x_new):
        result = np.moveaxis(result, list(range(np.ndim(x_new))),
                             list(range(axis, axis + np.ndim(x_new))))
    return result


def evaluate_derivative(x, y, dd, x_new, axis=0):
    """First derivative dy/dx of the spline (x, y, dd) at x_new."""
    x = np.asarray(x, dtype=float)
    axis = axis % np.ndim(y)
    y = np.moveaxis(np.asarray(y, dtype=float), axis, 0)
    dd = np.moveaxis(np.asarray(dd, dtype=float), axis, 0)
    index, h, a, b = _locate(x, x_new)

    extra = y.ndim - 1
    h_, a_, b_ = _expand(h, extra), _expand(a, extra), _expand(b, extra)
    result = ((y[index + 1] - y[index]) / h_
              - (3.0 * a_**2 - 1.0) / 6.0 * h_ * dd[index]
              + (3.0 * b_**2 - 1.0) / 6.0 * h_ * dd[index + 1])
    if extra and np.ndim(x_new):
        result = np.moveaxis(result, list(range(np.ndim(x_new))),
                             list(range(axis, axis + np.ndim(x_new))))
    return result
