"""
Halofit nonlinear correction.

Original paper : Takahashi et al. (2012)
https://arxiv.org/abs/1208.2701
DOI : 10.1088/0004-637X/761/2/152

with the massive neutrino terms of Bird, Viel & Haehnelt (2012)
https://arxiv.org/abs/1109.4416
"""
import warnings

import numpy as np
from scipy.integrate import simpson

from . import splines
from .errors import ConvergenceError
from .sigma import quadrature_ln_k


def _sigma_sums(ln_k, Delta_L, R):
    """
    The three Gaussian-window integrals of the linear power:
    sum1 = sigma^2(R) and the two that give its first and second log derivatives.
    """
    x2 = (np.exp(ln_k) * R)**2
    integrand = Delta_L * np.exp(-x2)
    sum1 = simpson(integrand, x=ln_k)
    sum2 = simpson(integrand * 2 * x2, x=ln_k)
    sum3 = simpson(integrand * 4 * x2 * (1 - x2), x=ln_k)
    return sum1, sum2, sum3


def _get_neff_C(sum1, sum2, sum3):
    d1 = -sum2 / sum1
    d2 = -sum2**2 / sum1**2 - sum3 / sum1
    return -3. - d1, -d2


def _get_coeffs(neff, C, Omdez, w, fnu0):
    an = 10.**(1.5222 + 2.8553*neff + 2.3706*neff**2 + 0.9903*neff**3 + 0.2250*neff**4 - 0.6038*C
               + 0.1749*Omdez*(1.+w))
    bn = 10.**(-0.5642 + 0.5864*neff + 0.5716*neff**2 - 1.5474*C + 0.2279*Omdez*(1.+w))
    cn = 10.**(0.3698 + 2.0404*neff + 0.8161*neff**2 + 0.5869*C)
    gamman = 0.1971 - 0.0843*neff + 0.8460*C
    alphan = abs(6.0835 + 1.3373*neff - 0.1959*neff**2 - 5.5274*C)
    betan = 2.0379 - 0.7354*neff + 0.3157*neff**2 + 1.2490*neff**3 + 0.3980*neff**4 - 0.1682*C \
        + fnu0*(1.081 + 0.395*neff**2)
    mun = 0.
    nun = 10.**(5.2105 + 3.6902*neff)
    return an, bn, cn, gamman, alphan, betan, mun, nun


def _get_f123(Ommz, Omdez):
    if abs(1 - Ommz) <= 0.01:
        return 1., 1., 1.
    f1b, f2b, f3b = Ommz**-0.0307, Ommz**-0.0585, Ommz**0.0743
    f1a, f2a, f3a = Ommz**-0.0732, Ommz**-0.1423, Ommz**0.0725
    frac = Omdez/(1-Ommz)
    return frac*f1b+(1-frac)*f1a, frac*f2b+(1-frac)*f2a, frac*f3b+(1-frac)*f3a


def get_pkhalo(k, Delta_L, R_sigma, Ommz, Omdez, Omm0, fnu0, h, coeffs):
    """Halofit P(k) in Mpc^3 for k in 1/Mpc"""
    an, bn, cn, gamman, alphan, betan, mun, nun = coeffs
    y = k * R_sigma
    f = y/4. + y**2/8.
    f1, f2, f3 = _get_f123(Ommz, Omdez)
    kh = k / h
    Delta_Laa = Delta_L*(1.+fnu0*47.48*kh**2/(1.+1.5*kh**2))
    Delta_Q = Delta_L * ((1.+Delta_Laa)**betan)/(1.+alphan*Delta_Laa) * np.exp(-f)
    Delta_H = an*y**(3.*f1) / (1.+bn*y**f2 + (cn*y*f3)**(3.-gamman))
    Delta_H = Delta_H / (1. + mun/y + nun/y**2) * (1+fnu0*(0.977-18.015*(Omm0-0.3)))
    return (Delta_Q + Delta_H) * (2.*np.pi**2) / k**3


class Halofit:
    name = "halofit"

    def __init__(self, config):
        self.min_k_nonlinear = config.halofit_min_k_nonlinear
        self.min_k_max = config.halofit_min_k_max
        self.tol_sigma = config.halofit_tol_sigma
        self.sigma_precision = config.halofit_sigma_precision
        self.max_iterations = config.halofit_max_iterations
        self.k_per_decade = config.k_per_decade_for_sigma
        self.verbose = config.verbose

    def prepare(self, background, k_grid):
        self.fnu0 = background.Omega0_ncdm / background.Omega0_m
        self.Omm0 = background.Omega0_m
        self.h = background.h
        if k_grid.k_max < self.min_k_max:
            warnings.warn("Halofit needs the linear spectrum up to k = {} 1/Mpc for accurate results, "
                          "but it is only available up to {:.3g}".format(self.min_k_max, k_grid.k_max))

    def find_R_sigma(self, ln_k, Delta_L, z, k_max):
        """
        Bisection in log10 R for sigma(R) = 1, between the smallest scale the
        k range can resolve and 1/halofit_min_k_nonlinear.  Returns None when
        sigma is below one even at the smallest scale.
        """
        R_min = np.sqrt(-np.log(self.sigma_precision)) / k_max
        R_max = 1. / self.min_k_nonlinear
        if _sigma_sums(ln_k, Delta_L, R_min)[0] < 1:
            return None
        if _sigma_sums(ln_k, Delta_L, R_max)[0] > 1:
            raise ConvergenceError("Halofit: sigma(R) > 1 even at R = {:.3g} Mpc at z = {:.4f}".format(R_max, z))

        log_lo = np.log10(R_min)
        log_hi = np.log10(R_max)
        for iteration in range(self.max_iterations):
            log_mid = 0.5 * (log_lo + log_hi)
            sigma = np.sqrt(_sigma_sums(ln_k, Delta_L, 10.**log_mid)[0])
            if abs(sigma - 1) < self.tol_sigma:
                return 10.**log_mid
            if sigma > 1:
                log_lo = log_mid
            else:
                log_hi = log_mid
        raise ConvergenceError(
            "Halofit: sigma(R) = 1 not found to tolerance {} after {} iterations at z = {:.4f}".format(
                self.tol_sigma, self.max_iterations, z))

    def correct(self, inputs):
        k = inputs.k
        ln_k_native = np.log(k)
        ln_pk_native = inputs.ln_pk_extra[:k.size]

        ln_k = quadrature_ln_k(ln_k_native[0], ln_k_native[-1], self.k_per_decade)
        dd = splines.second_derivatives(ln_k_native, ln_pk_native)
        ln_pk = splines.evaluate(ln_k_native, ln_pk_native, dd, ln_k)
        Delta_L = np.exp(3 * ln_k + ln_pk) / (2 * np.pi**2)

        R_sigma = self.find_R_sigma(ln_k, Delta_L, inputs.z, k[-1])
        if R_sigma is None:
            return None
        neff, C = _get_neff_C(*_sigma_sums(ln_k, Delta_L, R_sigma))

        cosmo = inputs.cosmology
        # no neutrinos in the cdm+baryon spectrum
        fnu0 = 0. if inputs.is_cb else self.fnu0
        coeffs = _get_coeffs(neff, C, cosmo.Omega_de, cosmo.w, fnu0)
        Delta_L_native = np.exp(3 * ln_k_native + ln_pk_native) / (2 * np.pi**2)
        pk_nl = get_pkhalo(k, Delta_L_native, R_sigma, cosmo.Omega_m, cosmo.Omega_de, self.Omm0,
                           fnu0, self.h, coeffs)
        pk_nl = np.where(k > self.min_k_nonlinear, pk_nl, np.exp(ln_pk_native))

        if self.verbose > 1:
            print("Halofit: z = {:.4f}  k_nl = {:.4g} 1/Mpc  n_eff = {:.4f}  C = {:.4f}".format(
                inputs.z, 1. / R_sigma, neff, C))
        return pk_nl, 1. / R_sigma
