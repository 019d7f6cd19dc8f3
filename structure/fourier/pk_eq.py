"""
Effective constant equation of state for time-varying dark energy
(the "pk-eq" method of Casarini et al. 2009, 2016).

The nonlinear fitting functions are calibrated on constant-w models.  At
each redshift we find the constant w that gives the same conformal
distance to the last scattering surface, keeping Omega_m and h fixed, and
use that w and the matching Omega_m(z) in the nonlinear correction.
"""
import warnings

import numpy as np
from scipy.integrate import quad
from scipy.optimize import brentq

from . import splines
from .errors import ConvergenceError

index_pk_eq_w = 0
index_pk_eq_Omega_m = 1

W_MIN = -4.0
W_MAX = 0.0


def _E2_constant_w(z, background, w):
    a = 1. / (1. + z)
    return (background.Omega0_r * a**-4 + background.Omega0_m * a**-3
            + background.Omega0_de * a**(-3 * (1 + w)))


def conformal_distance_constant_w(z1, z2, background, w):
    """Conformal distance in Mpc between z1 < z2 for a constant w"""
    def integrand(z):
        return 1. / np.sqrt(_E2_constant_w(z, background, w))
    result, _ = quad(integrand, z1, z2, limit=200, epsrel=1e-9)
    return result / background.H0


class EffectiveDarkEnergyTable:
    def __init__(self, background, thermodynamics, tau_grid, tol=1e-7, verbose=0):
        self.pk_eq_tau = tau_grid.tau.copy()
        z_rec = thermodynamics.z_rec
        tau_rec = background.tau_of_z(z_rec)
        table = np.zeros((self.pk_eq_tau.size, 2))

        for index_tau, (tau, z) in enumerate(zip(self.pk_eq_tau, tau_grid.z)):
            target = tau - tau_rec

            def distance_mismatch(w):
                return conformal_distance_constant_w(z, z_rec, background, w) - target

            f_min = distance_mismatch(W_MIN)
            f_max = distance_mismatch(W_MAX)
            if f_min * f_max > 0:
                raise ConvergenceError(
                    "pk_eq: no constant w in [{}, {}] matches the distance to recombination at z={:.3f}".format(
                        W_MIN, W_MAX, z))
            w_eff = brentq(distance_mismatch, W_MIN, W_MAX, xtol=tol)
            Omega_m = background.Omega0_m * (1 + z)**3 / _E2_constant_w(z, background, w_eff)
            table[index_tau, index_pk_eq_w] = w_eff
            table[index_tau, index_pk_eq_Omega_m] = Omega_m
            if verbose > 1:
                print("pk_eq: z = {:.4f}  w_eff = {:.5f}  Omega_m_eff = {:.5f}".format(z, w_eff, Omega_m))

        self.pk_eq_w_and_Omega = table
        self.pk_eq_ddw_and_ddOmega = None
        if self.pk_eq_tau.size >= 3:
            self.pk_eq_ddw_and_ddOmega = splines.second_derivatives(self.pk_eq_tau, table, axis=0)

    def at_tau(self, tau):
        """(w_eff, Omega_m_eff) at conformal time tau"""
        if self.pk_eq_ddw_and_ddOmega is None:
            index = int(np.argmin(np.abs(self.pk_eq_tau - tau)))
            values = self.pk_eq_w_and_Omega[index]
        else:
            values = splines.evaluate(self.pk_eq_tau, self.pk_eq_w_and_Omega, self.pk_eq_ddw_and_ddOmega, tau)
        return values[index_pk_eq_w], values[index_pk_eq_Omega_m]


def build_pk_eq_table(config, background, thermodynamics, tau_grid):
    """The table, or None when the mapping is not needed"""
    if not config.pk_eq:
        return None
    if background.wa == 0:
        if background.is_lambda:
            warnings.warn("pk_eq was requested but the dark energy is a cosmological constant; ignoring it")
        return None
    if config.verbose > 0:
        print("Fourier: computing the effective constant-w mapping (pk_eq)")
    return EffectiveDarkEnergyTable(background, thermodynamics, tau_grid, tol=config.pk_eq_tol,
                                    verbose=config.verbose)
