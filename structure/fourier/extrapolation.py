"""
Tail laws used to continue the perturbation sources beyond the largest
wavenumber at which they were computed.

Each law takes the last two native values of the source, S(k_max) and
S(k_max-1), and returns the source at the requested k > k_max.  The power
spectrum then follows from the source in the usual way, so the laws are
effectively extrapolating ln P.  Sources may carry any number of leading
axes; the last axis is wavenumber.
"""
import numpy as np

from .config import ExtrapolationMethod
from .errors import ConfigurationError, NumericalError


def extrapolate_zero(k, k_max, source_max, source_max_m1, **kwargs):
    return np.zeros(np.broadcast(source_max[..., None], k).shape)


def extrapolate_only_max(k, k_max, source_max, source_max_m1, **kwargs):
    return source_max[..., None] * np.log(k) / np.log(k_max)


def extrapolate_only_max_units(k, k_max, source_max, source_max_m1, h=1.0, **kwargs):
    return source_max[..., None] * np.log(k / h) / np.log(k_max / h)


def extrapolate_max_scaled(k, k_max, source_max, source_max_m1, k_max_m1=None, **kwargs):
    """
    S(k) = S_max ln(a k) / ln(a k_max), with the scale a chosen so that the
    law also passes through the second-to-last native point.
    """
    ln_k_max = np.log(k_max)
    ln_k_max_m1 = np.log(k_max_m1)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = source_max / source_max_m1
        ln_a = (ln_k_max - ratio * ln_k_max_m1) / (ratio - 1.0)
        result = source_max[..., None] * (ln_a[..., None] + np.log(k)) / (ln_a[..., None] + ln_k_max)
    # A flat source (ratio 1) is the limit a -> infinity of the law
    flat = ~np.isfinite(ln_a) | (np.abs(ratio - 1.0) < 1e-12)
    result = np.where(flat[..., None], source_max[..., None], result)
    if not np.all(np.isfinite(result)):
        raise NumericalError("max_scaled extrapolation of the sources gave non-finite values")
    return result


def extrapolate_hmcode(k, k_max, source_max, source_max_m1, h=1.0, Omega0_m=0.3, T_cmb=2.7255, **kwargs):
    """Asymptotic shape of the Eisenstein & Hu transfer function"""
    theta = T_cmb / 2.7
    scale = theta**2 / (Omega0_m * h**2)
    q = k * scale
    q_max = k_max * scale
    return source_max[..., None] * np.log(2 * np.e + 1.8 * q) / np.log(2 * np.e + 1.8 * q_max)


def extrapolate_user_defined(k, k_max, source_max, source_max_m1, function=None, **kwargs):
    if function is None:
        raise ConfigurationError("extrapolation_method=user_defined needs an extrapolation_function")
    result = function(k, k_max, source_max[..., None], source_max_m1[..., None])
    return np.broadcast_to(result, np.broadcast(source_max[..., None], k).shape).astype(float)


extrapolation_laws = {
    ExtrapolationMethod.zero: extrapolate_zero,
    ExtrapolationMethod.only_max: extrapolate_only_max,
    ExtrapolationMethod.only_max_units: extrapolate_only_max_units,
    ExtrapolationMethod.max_scaled: extrapolate_max_scaled,
    ExtrapolationMethod.hmcode: extrapolate_hmcode,
    ExtrapolationMethod.user_defined: extrapolate_user_defined,
}


def extrapolate_source(method, k_native, source, k_extra, background=None, function=None):
    """
    Continue source (shape [..., k_size]) onto the wavenumbers k_extra, all
    of which lie beyond k_native[-1].
    """
    k_native = np.asarray(k_native, dtype=float)
    source = np.asarray(source, dtype=float)
    k_extra = np.asarray(k_extra, dtype=float)
    if k_extra.size == 0:
        return np.zeros(source.shape[:-1] + (0,))

    law = extrapolation_laws[method]
    kwargs = {"k_max_m1": k_native[-2], "function": function}
    if background is not None:
        kwargs.update(h=background.h, Omega0_m=background.Omega0_m, T_cmb=background.T_cmb)
    return law(k_extra, k_native[-1], np.asarray(source[..., -1]), np.asarray(source[..., -2]), **kwargs)
