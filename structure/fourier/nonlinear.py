"""
Driver for the nonlinear correction: choose a strategy from the options,
apply it at each output time from today backwards, and store the result as
the correction factor sqrt(P_NL / P_L) on the native k grid.
"""
import numpy as np

from . import splines
from .config import NonLinearMethod
from .halofit import Halofit
from .hmcode import make_hmcode
from .tables import Table


class NoCorrection:
    """Linear spectrum throughout; k_nl is infinite"""
    name = "none"

    def __init__(self, config):
        pass

    def prepare(self, background, k_grid):
        pass

    def correct(self, inputs):
        return np.exp(inputs.ln_pk_extra[:inputs.k.size]), np.inf


def make_strategy(config):
    if config.method == NonLinearMethod.halofit:
        return Halofit(config)
    if config.method == NonLinearMethod.hmcode:
        return make_hmcode(config)
    return NoCorrection(config)


class TimeCosmology:
    """Omega_m, Omega_de and w at one time, as seen by the fitting functions"""
    def __init__(self, z, Omega_m, Omega_de, w):
        self.z = z
        self.Omega_m = Omega_m
        self.Omega_de = Omega_de
        self.w = w


def cosmology_at(background, pk_eq_table, tau, z):
    if pk_eq_table is not None:
        w, Omega_m = pk_eq_table.at_tau(tau)
        return TimeCosmology(z, Omega_m, 1 - Omega_m, w)
    return TimeCosmology(z, float(background.Omega_m(z)), float(background.Omega_de(z)), float(background.w_de(z)))


class NonlinearInputs:
    """Everything a strategy needs at one time for one spectrum type"""
    def __init__(self, index_pk, z, k, ln_k_extra, ln_pk_extra, ln_pk_nw_extra, cosmology, is_cb=False):
        self.index_pk = index_pk
        self.is_cb = is_cb
        self.z = z
        self.k = k
        self.ln_k_extra = ln_k_extra
        self.ln_pk_extra = ln_pk_extra
        self.ln_pk_nw_extra = ln_pk_nw_extra
        self.cosmology = cosmology


class NonlinearTables:
    def __init__(self, nl_corr_density, k_nl, ln_pk_l, index_tau_min_nl, ln_tau):
        self.nl_corr_density = Table.from_array("nl_corr_density", ("pk", "tau", "k"), nl_corr_density)
        self.k_nl = Table.from_array("k_nl", ("pk", "tau"), k_nl)
        self.ln_pk_nl = Table.from_array("ln_pk_nl", ("pk", "tau", "k"),
                                         ln_pk_l + 2 * np.log(nl_corr_density))
        self.index_tau_min_nl = index_tau_min_nl
        self.ddln_pk_nl = None
        # Time splines only over the corrected times
        if ln_tau.size - index_tau_min_nl >= 3:
            self.ddln_pk_nl = splines.second_derivatives(ln_tau[index_tau_min_nl:],
                                                         self.ln_pk_nl.values[:, index_tau_min_nl:], axis=1)


def compute_nonlinear(strategy, config, indices, k_grid, tau_grid, linear, nowiggle, background, pk_eq_table):
    """
    Apply the strategy from the latest time backwards.  The first time
    (going back) at which the correction cannot be computed, and every
    earlier one, keep the linear spectrum; the returned tables carry
    index_tau_min_nl raised to the first time that was corrected.  The tau
    grid itself is left untouched.
    """
    strategy.prepare(background, k_grid)
    shape = (indices.pk_size, tau_grid.ln_tau_size)
    nl_corr = np.ones(shape + (k_grid.k_size,))
    k_nl = np.full(shape, np.inf)

    index_tau_min_nl = tau_grid.index_tau_min_nl
    for index_pk in range(indices.pk_size):
        for index_tau in range(tau_grid.ln_tau_size - 1, tau_grid.index_tau_min_nl - 1, -1):
            z = tau_grid.z[index_tau]
            ln_pk_extra = linear.ln_pk_l_extra.get(pk=index_pk, tau=index_tau)
            ln_pk_nw_extra = None
            if nowiggle.ln_pk_l_nw_extra is not None:
                # transfer the smooth/wiggly ratio of the no-wiggle spectrum type to this one
                ln_pk_ref = linear.ln_pk_l_extra.get(pk=nowiggle.pk_l_nw_index, tau=index_tau)
                ln_pk_nw_extra = ln_pk_extra + nowiggle.ln_pk_l_nw_extra[index_tau] - ln_pk_ref
            inputs = NonlinearInputs(index_pk, z, k_grid.k_native, k_grid.ln_k, ln_pk_extra, ln_pk_nw_extra,
                                     cosmology_at(background, pk_eq_table, tau_grid.tau[index_tau], z),
                                     is_cb=index_pk == indices.index_pk_cb)
            result = strategy.correct(inputs)
            if result is None:
                if config.verbose > 0:
                    print("Fourier: {} correction not computable at z = {:.4f} for spectrum {}; "
                          "earlier times stay linear".format(strategy.name, z, index_pk))
                index_tau_min_nl = max(index_tau_min_nl, index_tau + 1)
                break
            pk_nl, k_nl_value = result
            pk_lin = np.exp(ln_pk_extra[:k_grid.k_size])
            nl_corr[index_pk, index_tau] = np.sqrt(pk_nl / pk_lin)
            k_nl[index_pk, index_tau] = k_nl_value

    # All types share one validity range
    nl_corr[:, :index_tau_min_nl] = 1.0
    k_nl[:, :index_tau_min_nl] = np.inf
    if config.verbose > 0:
        print("Fourier: nonlinear correction ({}) computed for {} of {} times".format(
            strategy.name, tau_grid.ln_tau_size - index_tau_min_nl, tau_grid.ln_tau_size))
    return NonlinearTables(nl_corr, k_nl, linear.ln_pk_l.values, index_tau_min_nl, tau_grid.ln_tau)
