"""
Smooth ("no-wiggle") versions of the linear power spectrum, with the baryon
acoustic oscillations removed.

The analytic version is the Eisenstein & Hu zero-baryon-oscillation shape
normalised to the computed spectrum on large scales.  The numerical version
smooths the ratio of the computed spectrum to the analytic one with a
Gaussian filter in ln k, which removes the oscillations while keeping the
broadband shape of the true spectrum.
"""
import numpy as np
from scipy.ndimage import gaussian_filter1d

from . import eisenstein_hu
from . import splines
from .errors import ConfigurationError


def analytic_nowiggle(k_grid, linear, indices, primordial, background, index_pk):
    """
    ln P_an on the extended k grid, normalised to the linear spectrum of
    index_pk at the smallest k at the latest time.
    """
    k = k_grid.k
    omhh = background.Omega0_m * background.h**2
    obhh = background.Omega0_b * background.h**2
    T = eisenstein_hu.transfer_nowiggle(k, omhh, obhh, background.T_cmb)
    ln_P_R = np.asarray(primordial.spectrum_at_k(k_grid.ln_k))[:, indices.index_ic_ic(0, 0)]
    # 2 pi^2 / k^3 (k^2 T)^2 P_R, up to a constant
    ln_pk = np.log(k) + 2 * np.log(T) + ln_P_R
    ln_pk_lin = linear.ln_pk_l_extra.get(pk=index_pk, tau=linear.ln_pk_l_extra.size("tau") - 1, k=0)
    return ln_pk + (ln_pk_lin - ln_pk[0])


def numerical_nowiggle(k_grid, ln_pk_l_extra, ln_pk_an_extra, nk_wiggle, filter_width):
    """
    De-wiggle every row of ln_pk_l_extra (shape [tau, k_extra]).  The ratio
    to the analytic curve is resampled onto nk_wiggle points uniform in ln k,
    smoothed, and mapped back onto the extended k grid.
    """
    ln_k = k_grid.ln_k
    ln_k_uniform = np.linspace(ln_k[0], ln_k[-1], nk_wiggle)
    dln_k = ln_k_uniform[1] - ln_k_uniform[0]

    ln_ratio = ln_pk_l_extra - ln_pk_an_extra[None, :]
    dd_ratio = splines.second_derivatives(ln_k, ln_ratio, axis=-1)
    ratio_uniform = splines.evaluate(ln_k, ln_ratio, dd_ratio, ln_k_uniform, axis=-1)

    smoothed = gaussian_filter1d(ratio_uniform, filter_width / dln_k, axis=-1, mode="nearest")

    dd_smoothed = splines.second_derivatives(ln_k_uniform, smoothed, axis=-1)
    smoothed_extra = splines.evaluate(ln_k_uniform, smoothed, dd_smoothed, ln_k, axis=-1)
    return ln_pk_an_extra[None, :] + smoothed_extra


class NoWiggleTables:
    def __init__(self, config, k_grid, tau_grid, linear, indices, primordial, background):
        self.has_analytic = config.has_pk_analytic_nowiggle
        self.has_numerical = config.has_pk_numerical_nowiggle
        # The no-wiggle spectrum is built from cb when it exists
        self.pk_l_nw_index = indices.index_pk_cluster

        self.ln_pk_l_an_extra = None
        self.ddln_pk_l_an_extra = None
        self.ln_pk_l_nw_extra = None
        self.ddln_pk_l_nw_extra = None
        self.ddln_pk_l_nw_extra_lnk = None

        if not (self.has_analytic or self.has_numerical):
            return

        ln_k = k_grid.ln_k
        self.ln_pk_l_an_extra = analytic_nowiggle(k_grid, linear, indices, primordial, background,
                                                  self.pk_l_nw_index)
        self.ddln_pk_l_an_extra = splines.second_derivatives(ln_k, self.ln_pk_l_an_extra)

        if self.has_numerical:
            ln_pk = linear.ln_pk_l_extra.get(pk=self.pk_l_nw_index)
            self.ln_pk_l_nw_extra = numerical_nowiggle(k_grid, ln_pk, self.ln_pk_l_an_extra,
                                                       config.nk_wiggle, config.nowiggle_filter_width)
            if not tau_grid.single_time:
                self.ddln_pk_l_nw_extra = splines.second_derivatives(tau_grid.ln_tau, self.ln_pk_l_nw_extra, axis=0)
            self.ddln_pk_l_nw_extra_lnk = splines.second_derivatives(ln_k, self.ln_pk_l_nw_extra[-1])

    def require(self, numerical):
        if numerical and not self.has_numerical:
            raise ConfigurationError("The numerical no-wiggle spectrum was not computed; "
                                     "set has_pk_numerical_nowiggle=T")
        if not numerical and not self.has_analytic:
            raise ConfigurationError("The analytic no-wiggle spectrum was not computed; "
                                     "set has_pk_analytic_nowiggle=T")
