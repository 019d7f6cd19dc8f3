"""
HMcode: the halo model with fitted modifications for the nonlinear matter
power spectrum.

Original papers :
Mead et al. (2015) https://arxiv.org/abs/1505.07833
Mead et al. (2016) https://arxiv.org/abs/1602.02154  (version "2015")
Mead (2017) https://arxiv.org/abs/1606.05345  (delta_c and Delta_v of the 2020 versions)
Mead et al. (2021) https://arxiv.org/abs/2009.01858  (versions "2020*")

Everything here works in Mpc and solar masses; the published fitting
formulae in h/Mpc are converted where they appear.
"""
import numpy as np
from scipy.integrate import simpson, solve_ivp
from scipy.special import sici

from . import splines
from .config import FeedbackModel, HMcodeVersion, SigmaOutput
from .errors import ConfigurationError, ConvergenceError
from .sigma import quadrature_ln_k, sigma_integrals

# Mean density today for Omega_m = 1, in h^2 M_sun / Mpc^3
RHO_CRITICAL = 2.775e11

# Sheth & Tormen (1999) mass function
ST_A = 0.2162
ST_a = 0.707
ST_p = 0.3

# Bullock et al. (2001) formation mass fraction
F_FORMATION = 0.01

# Spherical collapse threshold and virial overdensity in Einstein-de Sitter
DELTA_C0 = 0.15 * (12 * np.pi)**(2. / 3.)
DELTA_V0 = 18 * np.pi**2

# (c_min, eta_0) for the HMcode 2016 feedback calibrations
feedback_parameters = {
    FeedbackModel.emu_dmonly: (3.13, 0.603),
    FeedbackModel.owls_dmonly: (3.43, 0.64),
    FeedbackModel.owls_ref: (3.91, 0.68),
    FeedbackModel.owls_agn: (2.32, 0.76),
    FeedbackModel.owls_dblim: (3.01, 0.70),
}


def sheth_tormen(nu):
    # ST_A includes the sqrt(2 a / pi) factor, so g integrates to one over nu
    return ST_A * (1 + (ST_a * nu**2)**-ST_p) * np.exp(-0.5 * ST_a * nu**2)


def window_nfw(k, rv, c):
    """
    Normalised Fourier transform of a truncated NFW profile.
    k has shape (nk,) or (nm, nk), rv and c have shape (nm,); the result is (nm, nk).
    """
    rs = (rv / c)[:, None]
    c = c[:, None]
    ks = np.atleast_2d(k) * rs
    si1, ci1 = sici(ks)
    si2, ci2 = sici((1 + c) * ks)
    norm = np.log(1 + c) - c / (1 + c)
    w = (np.sin(ks) * (si2 - si1) + np.cos(ks) * (ci2 - ci1) - np.sin(c * ks) / ((1 + c) * ks))
    return w / norm


def mead_fit(x, y, p0, p1, p2, p3):
    """
    Growth-dependent form of the Mead (2017) delta_c and Delta_v fits, with
    x = g/a and y = G/a.  Both are 1 in Einstein-de Sitter.
    """
    return p0 + p1 * (1 - x) + p2 * (1 - x)**2 + p3 * (1 - y)


def delta_c_mead(Omega_m, f_nu, g_a, G_a):
    """Mead (2017) linear collapse threshold, with the Mead et al. (2021) neutrino term"""
    lg = np.log10(Omega_m)
    dc = 1 + mead_fit(g_a, G_a, -0.0069, -0.0208, 0.0312, 0.0021) * lg \
        + mead_fit(g_a, G_a, 0.0001, -0.0647, -0.0417, 0.0646)
    return DELTA_C0 * dc * (1 - 0.041 * f_nu)


def Delta_v_mead(Omega_m, f_nu, g_a, G_a):
    """Mead (2017) virial overdensity relative to the mean matter density"""
    lg = np.log10(Omega_m)
    dv = 1 + mead_fit(g_a, G_a, -0.79, -10.17, 2.51, 6.51) * lg \
        + mead_fit(g_a, G_a, -1.89, 0.38, 18.8, -15.87) * lg**2
    return DELTA_V0 * dv * (1 + 0.763 * f_nu)


def growth_history(Omega_m, w0, wa, z):
    """
    Growth g (g = a at early times) and accumulated growth
    G = int_0^a g(a')/a' da' at redshifts z, for flat matter plus w0-wa dark
    energy without radiation.
    """
    def derivs(ln_a, y):
        a = np.exp(ln_a)
        X = (1 - Omega_m) * a**(-3 * (1 + w0 + wa)) * np.exp(-3 * wa * (1 - a))
        E2 = Omega_m * a**-3 + X
        w = w0 + wa * (1 - a)
        dlnE2 = -3 * (Omega_m * a**-3 + (1 + w) * X) / E2
        return [y[1], -(2 + 0.5 * dlnE2) * y[1] + 1.5 * Omega_m * a**-3 / E2 * y[0], y[0]]

    a_init = 1e-3
    ln_a = -np.log1p(np.atleast_1d(np.asarray(z, dtype=float)))
    t_eval = np.unique(np.append(ln_a, 0.0))
    solution = solve_ivp(derivs, (np.log(a_init), 0.0), [a_init, a_init, a_init],
                         t_eval=t_eval, rtol=1e-8, atol=1e-12)
    if not solution.success:
        raise ConvergenceError("HMcode: growth integration failed: {}".format(solution.message))
    index = np.searchsorted(t_eval, ln_a)
    return solution.y[0][index], solution.y[2][index]


def growth_lcdm(Omega_m, z):
    """Growth factor, normalised to 1 today, of flat LCDM with the same Omega_m"""
    g, _ = growth_history(Omega_m, -1.0, 0.0, [z, 0.0])
    return g[0] / g[1]


class HaloModelInputs:
    """Quantities derived from the linear spectrum at one time, shared by every version"""
    def __init__(self, hm, inputs):
        self.z = inputs.z
        self.k = inputs.k
        self.cosmology = inputs.cosmology
        ln_k_extra = inputs.ln_k_extra
        self.ln_k = quadrature_ln_k(ln_k_extra[0], ln_k_extra[-1], hm.k_per_decade)
        dd = splines.second_derivatives(ln_k_extra, inputs.ln_pk_extra)
        self.ln_pk = splines.evaluate(ln_k_extra, inputs.ln_pk_extra, dd, self.ln_k)
        self.pk_lin = np.exp(inputs.ln_pk_extra[:self.k.size])

        if inputs.ln_pk_nw_extra is not None:
            self.pk_nw = np.exp(inputs.ln_pk_nw_extra[:self.k.size])
        else:
            self.pk_nw = None

        self.sigma_R = sigma_integrals(hm.R, self.ln_k, self.ln_pk)
        self.sigma8 = sigma_integrals(8. / hm.h, self.ln_k, self.ln_pk)

    def sigma(self, R, output=SigmaOutput.sigma, window="tophat"):
        return sigma_integrals(R, self.ln_k, self.ln_pk, output=output, window=window)

    def sigma_v(self, R=None):
        """One-dimensional displacement dispersion, in Mpc, smoothed with a top-hat of radius R"""
        if R is None:
            k = np.exp(self.ln_k)
            return np.sqrt(simpson(k * np.exp(self.ln_pk), x=self.ln_k) / (6 * np.pi**2))
        return self.sigma(R, output=SigmaOutput.sigma_disp, window="tophat")


class HMcodeBase:
    """
    The halo-model calculation common to all versions.  Subclasses choose
    the fitted parameters and the two-halo and one-halo modifications.
    """
    name = "hmcode"
    dolag_power = 1.0

    def __init__(self, config):
        self.config = config
        self.z_infinity = config.z_infinity
        self.k_per_decade = config.k_per_decade_for_sigma
        self.nm = config.hmcode_nm
        self.log10m = np.linspace(config.hmcode_log10m_min, config.hmcode_log10m_max, config.hmcode_nm)
        self.verbose = config.verbose

    def prepare(self, background, k_grid):
        h = background.h
        self.h = h
        self.background = background
        self.Omega0_m = background.Omega0_m
        self.Omega0_b = background.Omega0_b
        self.Omega0_cdm = background.Omega0_cdm
        self.w0 = background.w0
        self.wa = background.wa
        self.f_nu = background.Omega0_ncdm / background.Omega0_m
        self.rho_bar = RHO_CRITICAL * h**2 * background.Omega0_m
        # masses in M_sun (the grid is in M_sun/h)
        self.M = 10**self.log10m / h
        self.R = (3 * self.M / (4 * np.pi * self.rho_bar))**(1. / 3.)

        # growth for inverting D(z_f)
        self.z_growth = np.expm1(np.linspace(0.0, np.log(1 + 200.), 400))
        self.D_growth = background.growth_factor(self.z_growth)

        if background.is_lambda:
            self.dolag = 1.0
        else:
            g, _ = growth_history(self.Omega0_m, self.w0, self.wa, [self.z_infinity, 0.0])
            g_w = g[0] / g[1]
            g_lcdm = growth_lcdm(background.Omega0_m, self.z_infinity)
            self.dolag = (g_w / g_lcdm)**self.dolag_power

    def growth_over_a(self, z):
        """g/a and G/a at redshift z"""
        g, G = growth_history(self.Omega0_m, self.w0, self.wa, z)
        return float(g[0] * (1 + z)), float(G[0] * (1 + z))

    # Parameters; each version overrides some of these
    def delta_c(self, hmi):
        raise NotImplementedError()

    def Delta_v(self, hmi):
        raise NotImplementedError()

    def parameters(self, hmi, neff, sigma_v):
        """Dictionary with the concentration amplitude B, bloating eta,
        two-halo damping and one-halo suppression parameters, and alpha"""
        raise NotImplementedError()

    def two_halo(self, hmi, params, sigma_v):
        raise NotImplementedError()

    def one_halo_damping(self, hmi, params):
        raise NotImplementedError()

    def halo_windows(self, hmi, params, W_nfw):
        return W_nfw

    def formation_redshift(self, hmi, delta_c):
        """Bullock et al. (2001) formation redshift for each mass in the grid"""
        R_f = (3 * F_FORMATION * self.M / (4 * np.pi * self.rho_bar))**(1. / 3.)
        sigma_f = hmi.sigma(R_f)
        D_z = self.background.growth_factor(hmi.z)
        D_target = D_z * delta_c / sigma_f
        # D_growth decreases with z
        z_f = np.interp(D_target, self.D_growth[::-1], self.z_growth[::-1])
        return np.where(sigma_f < delta_c, hmi.z, np.maximum(z_f, hmi.z))

    def find_R_nl(self, nu):
        """Radius where nu = 1, or None if the mass range does not reach it"""
        if nu.min() > 1 or nu.max() < 1:
            return None
        return np.exp(np.interp(0.0, np.log(nu), np.log(self.R)))

    def correct(self, inputs):
        hmi = HaloModelInputs(self, inputs)
        z = hmi.z
        k = hmi.k

        delta_c = self.delta_c(hmi)
        Delta_v = self.Delta_v(hmi)
        nu = delta_c / hmi.sigma_R
        R_nl = self.find_R_nl(nu)
        if R_nl is None:
            return None

        neff = -3. - 2. * hmi.sigma(R_nl, output=SigmaOutput.sigma_prime, window="tophat")
        sigma_v = hmi.sigma_v()
        params = self.parameters(hmi, neff, sigma_v)

        z_f = self.formation_redshift(hmi, delta_c)
        c = params["B"] * (1 + z_f) / (1 + z) * self.dolag
        rv = (3 * self.M / (4 * np.pi * self.rho_bar * Delta_v))**(1. / 3.)

        k_bloated = k[None, :] * (nu**params["eta"])[:, None]
        W = self.halo_windows(hmi, params, window_nfw(k_bloated, rv, c))

        integrand = (self.M / self.rho_bar)[:, None] * W**2 * sheth_tormen(nu)[:, None]
        pk_1h = simpson(integrand, x=nu, axis=0) * self.one_halo_damping(hmi, params)
        pk_2h = self.two_halo(hmi, params, sigma_v)

        Delta2_1h = k**3 * pk_1h / (2 * np.pi**2)
        Delta2_2h = k**3 * pk_2h / (2 * np.pi**2)
        alpha = params["alpha"]
        Delta2 = (np.abs(Delta2_2h)**alpha + np.abs(Delta2_1h)**alpha)**(1. / alpha)
        pk_nl = Delta2 * 2 * np.pi**2 / k**3

        if not np.all(np.isfinite(pk_nl)) or np.any(pk_nl <= 0):
            raise ConvergenceError("HMcode {}: the halo model integrals are not finite at z = {:.4f}".format(
                self.version.value, z))

        if self.verbose > 1:
            print("HMcode {}: z = {:.4f}  k_nl = {:.4g} 1/Mpc  n_eff = {:.4f}  alpha = {:.4f}".format(
                self.version.value, z, 1. / R_nl, neff, alpha))
        return pk_nl, 1. / R_nl


class HMcode2015(HMcodeBase):
    """Mead et al. (2016), with the feedback calibrations of that paper"""
    version = HMcodeVersion.v2015

    def __init__(self, config):
        super().__init__(config)
        if config.feedback == FeedbackModel.user_defined:
            if config.c_min is None or config.eta_0 is None:
                raise ConfigurationError("HMcode feedback=user_defined needs both c_min and eta_0")
            self.c_min, self.eta_0 = config.c_min, config.eta_0
        else:
            self.c_min, self.eta_0 = feedback_parameters[config.feedback]

    def delta_c(self, hmi):
        Om = hmi.cosmology.Omega_m
        return (1.59 + 0.0314 * np.log(hmi.sigma8)) * (1 + 0.0123 * np.log10(Om))

    def Delta_v(self, hmi):
        return 418. * hmi.cosmology.Omega_m**-0.352

    def parameters(self, hmi, neff, sigma_v):
        # sigma_v(100 Mpc/h) in Mpc/h
        sigma_v100 = hmi.sigma_v(100. / self.h) * self.h
        f = np.clip(0.0095 * sigma_v100**1.37, 1e-3, 0.99)
        return {
            "B": self.c_min,
            "eta": self.eta_0 - 0.3 * hmi.sigma8,
            "f": f,
            "k_star": 0.584 / sigma_v,
            "alpha": float(np.clip(3.24 * 1.85**neff, 0.5, 2.0)),
        }

    def two_halo(self, hmi, params, sigma_v):
        f = params["f"]
        return hmi.pk_lin * (1 - f * np.tanh(hmi.k * sigma_v / np.sqrt(f))**2)

    def one_halo_damping(self, hmi, params):
        return 1 - np.exp(-(hmi.k / params["k_star"])**2)


class HMcode2020(HMcodeBase):
    """Mead et al. (2021), with a de-wiggled linear spectrum in the two-halo term"""
    version = HMcodeVersion.v2020
    dolag_power = 1.5

    def __init__(self, config):
        super().__init__(config)
        self.B_override = None
        self.eta_override = None
        if config.feedback == FeedbackModel.user_defined:
            if config.c_min is None or config.eta_0 is None:
                raise ConfigurationError("HMcode feedback=user_defined needs both c_min and eta_0")
            self.B_override, self.eta_override = config.c_min, config.eta_0

    def delta_c(self, hmi):
        g_a, G_a = self.growth_over_a(hmi.z)
        return delta_c_mead(hmi.cosmology.Omega_m, self.f_nu, g_a, G_a)

    def Delta_v(self, hmi):
        g_a, G_a = self.growth_over_a(hmi.z)
        return Delta_v_mead(hmi.cosmology.Omega_m, self.f_nu, g_a, G_a)

    def parameters(self, hmi, neff, sigma_v):
        s8 = hmi.sigma8
        params = {
            "B": 5.196,
            "eta": 0.1281 * s8**-0.3644,
            "f": 0.2696 * s8**0.9403,
            "k_d": 0.05699 * s8**-1.089 * self.h,
            "n_d": 2.853,
            "k_star": 0.05618 * s8**-1.013 * self.h,
            "alpha": 1.875 * 1.603**neff,
        }
        if self.B_override is not None:
            params["B"] = self.B_override
            params["eta"] = self.eta_override
        return params

    def dewiggled(self, hmi, sigma_v):
        if hmi.pk_nw is None:
            raise ConfigurationError("HMcode {} needs the numerical no-wiggle spectrum".format(self.version.value))
        return hmi.pk_nw + (hmi.pk_lin - hmi.pk_nw) * np.exp(-(hmi.k * sigma_v)**2)

    def two_halo(self, hmi, params, sigma_v):
        x = (hmi.k / params["k_d"])**params["n_d"]
        return self.dewiggled(hmi, sigma_v) * (1 - params["f"] * x / (1 + x))

    def one_halo_damping(self, hmi, params):
        x = (hmi.k / params["k_star"])**4
        return x / (1 + x)


class HMcode2020Unfitted(HMcode2020):
    """The 2020 halo model ingredients without the fitted smoothing parameters"""
    version = HMcodeVersion.v2020_unfitted

    def parameters(self, hmi, neff, sigma_v):
        # one-halo damping at the 2015 displacement scale
        params = {"B": 4.0, "eta": 0.0, "f": 0.0, "k_d": 1.0, "n_d": 0.0, "k_star": 0.584 / sigma_v,
                  "alpha": 1.0}
        if self.B_override is not None:
            params["B"] = self.B_override
            params["eta"] = self.eta_override
        return params

    def two_halo(self, hmi, params, sigma_v):
        return self.dewiggled(hmi, sigma_v)


class HMcode2020Baryonic(HMcode2020):
    """The 2020 model with gas expulsion and a stellar component set by the AGN temperature"""
    version = HMcodeVersion.v2020_baryonic

    def __init__(self, config):
        super().__init__(config)
        theta = config.log10T_heat - 7.8
        self.B0 = 3.44 - 0.496 * theta
        self.Bz = -0.0671 - 0.0371 * theta
        self.f_star0 = 0.0201 - 0.0030 * theta
        self.f_starz = 0.409 + 0.0224 * theta
        self.log10M_b0 = 13.87 + 1.81 * theta
        self.M_bz = -0.108 + 0.195 * theta
        self.beta = 2.0

    def parameters(self, hmi, neff, sigma_v):
        params = super().parameters(hmi, neff, sigma_v)
        z = hmi.z
        if self.B_override is None:
            params["B"] = self.B0 * 10**(z * self.Bz)
        params["f_star"] = self.f_star0 * 10**(z * self.f_starz)
        # M_b is in M_sun/h
        params["M_b"] = 10**(self.log10M_b0 + z * self.M_bz) / self.h
        return params

    def halo_windows(self, hmi, params, W_nfw):
        f_star = params["f_star"]
        x = (self.M / params["M_b"])**self.beta
        f_gas = (self.Omega0_b / self.Omega0_m - f_star) * x / (1 + x)
        return (self.Omega0_cdm / self.Omega0_m + f_gas)[:, None] * W_nfw + f_star


hmcode_versions = {
    HMcodeVersion.v2015: HMcode2015,
    HMcodeVersion.v2020: HMcode2020,
    HMcodeVersion.v2020_unfitted: HMcode2020Unfitted,
    HMcodeVersion.v2020_baryonic: HMcode2020Baryonic,
}


def make_hmcode(config):
    return hmcode_versions[config.hmcode_version](config)
