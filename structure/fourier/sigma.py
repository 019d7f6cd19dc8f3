"""
Variance of the linear density field smoothed on a scale R.

sigma^2(R) = \\int d ln k  k^3 P(k) / (2 pi^2)  W^2(kR)

The integral is done with Simpson's rule in ln k on a grid with a fixed
number of points per decade across the whole (extended) k range.
"""
import numpy as np
from scipy.integrate import simpson

from . import splines
from .config import SigmaOutput, get_choice
from .errors import InvalidArgumentError


def window_tophat(x):
    x = np.asarray(x, dtype=float)
    small = x < 1e-3
    xs = np.where(small, 1.0, x)
    w = 3 * (np.sin(xs) - xs * np.cos(xs)) / xs**3
    return np.where(small, 1 - x**2 / 10., w)


def window_tophat_derivative(x):
    x = np.asarray(x, dtype=float)
    small = x < 1e-3
    xs = np.where(small, 1.0, x)
    dw = 3 * ((xs**2 - 3) * np.sin(xs) + 3 * xs * np.cos(xs)) / xs**4
    return np.where(small, -x / 5., dw)


def window_gaussian(x):
    return np.exp(-0.5 * np.asarray(x, dtype=float)**2)


def window_gaussian_derivative(x):
    x = np.asarray(x, dtype=float)
    return -x * np.exp(-0.5 * x**2)


windows = {
    "tophat": (window_tophat, window_tophat_derivative),
    "gaussian": (window_gaussian, window_gaussian_derivative),
}

default_windows = {
    SigmaOutput.sigma: "tophat",
    SigmaOutput.sigma_prime: "gaussian",
    SigmaOutput.sigma_disp: "gaussian",
}


def quadrature_ln_k(ln_k_min, ln_k_max, k_per_decade):
    decades = (ln_k_max - ln_k_min) / np.log(10.)
    n = max(int(np.ceil(k_per_decade * decades)), 3)
    return np.linspace(ln_k_min, ln_k_max, n)


def sigma_integrals(R, ln_k, ln_pk, output=SigmaOutput.sigma, window=None):
    """
    The requested moment for each smoothing scale R (Mpc), given ln P
    sampled on the quadrature grid ln_k.
    """
    output = get_choice(SigmaOutput, "sigma_output", output)
    if window is None:
        window = default_windows[output]
    if window not in windows:
        raise InvalidArgumentError("Unknown window {}; choose from {}".format(window, list(windows)))
    W, dW = windows[window]

    R = np.asarray(R, dtype=float)
    if np.any(R <= 0) or not np.all(np.isfinite(R)):
        raise InvalidArgumentError("The smoothing scale R must be positive, not {}".format(R))
    scalar = R.ndim == 0
    R = np.atleast_1d(R)

    k = np.exp(ln_k)
    pk = np.exp(ln_pk)
    x = k[None, :] * R[:, None]
    delta2 = k**3 * pk / (2 * np.pi**2)

    sigma2 = simpson(delta2 * W(x)**2, x=ln_k, axis=-1)
    if output == SigmaOutput.sigma:
        result = np.sqrt(sigma2)
    elif output == SigmaOutput.sigma_prime:
        dsigma2 = simpson(delta2 * 2 * W(x) * dW(x) * x, x=ln_k, axis=-1)
        result = 0.5 * dsigma2 / sigma2
    else:
        result = np.sqrt(simpson(k * pk * W(x)**2, x=ln_k, axis=-1) / (6 * np.pi**2))

    if scalar:
        return result[0]
    return result


def sigma_from_table(R, ln_k_table, ln_pk_table, k_per_decade, output=SigmaOutput.sigma, window=None):
    """Resample a ln P(ln k) table onto the quadrature grid and integrate"""
    ln_k_table = np.asarray(ln_k_table, dtype=float)
    ln_k = quadrature_ln_k(ln_k_table[0], ln_k_table[-1], k_per_decade)
    dd = splines.second_derivatives(ln_k_table, ln_pk_table)
    ln_pk = splines.evaluate(ln_k_table, ln_pk_table, dd, ln_k)
    return sigma_integrals(R, ln_k, ln_pk, output=output, window=window)
