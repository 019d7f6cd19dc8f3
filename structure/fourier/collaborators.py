"""
Light-weight implementations of the objects the Fourier module reads from:
the background expansion, the thermal history, the perturbation sources and
the primordial spectrum.

Any object with the same attributes can be used instead; in a full
pipeline they would be wrappers around a Boltzmann code.  These versions
use a flat w0-wa background and the Eisenstein & Hu transfer functions, or
a linear P(k,z) table computed upstream.
"""
import numpy as np
from scipy.integrate import cumulative_trapezoid, solve_ivp
from scipy.interpolate import InterpolatedUnivariateSpline as ius

from . import eisenstein_hu
from .errors import ConfigurationError, InvalidArgumentError, OutOfRangeError

# c / (100 km/s/Mpc) in Mpc
HUBBLE_DISTANCE = 2997.92458
# Omega_nu h^2 for one eV of summed neutrino mass
NEUTRINO_MASS_FACTOR = 93.14


class FlatBackground:
    """
    Flat cosmology with photons, massless neutrinos, matter (massive
    neutrinos counted as matter) and w0-wa dark energy.
    """
    def __init__(self, h, Omega_m, Omega_b, mnu=0.0, w0=-1.0, wa=0.0, T_cmb=2.7255, N_eff=3.046,
                 a_min=1e-8, n_a=4000):
        if not (0 < Omega_b < Omega_m < 1):
            raise ConfigurationError("Need 0 < Omega_b < Omega_m < 1, got Omega_b={} Omega_m={}".format(
                Omega_b, Omega_m))
        self.h = h
        self.Omega0_m = Omega_m
        self.Omega0_b = Omega_b
        self.mnu = mnu
        self.Omega0_ncdm = mnu / (NEUTRINO_MASS_FACTOR * h**2)
        self.Omega0_cdm = Omega_m - Omega_b - self.Omega0_ncdm
        if self.Omega0_cdm <= 0:
            raise ConfigurationError("Neutrino mass {} eV leaves no cold dark matter".format(mnu))
        self.T_cmb = T_cmb
        self.N_eff = N_eff
        self.w0 = w0
        self.wa = wa
        self.Omega0_g = 4.48e-7 * T_cmb**4 / h**2
        self.Omega0_r = self.Omega0_g * (1. + 0.2271 * N_eff)
        self.Omega0_de = 1. - Omega_m - self.Omega0_r
        # H0 / c in 1/Mpc
        self.H0 = h / HUBBLE_DISTANCE

        self._setup_conformal_time(a_min, n_a)
        self._setup_growth()

    @property
    def is_lambda(self):
        return self.w0 == -1 and self.wa == 0

    def _de_density(self, a):
        return a**(-3 * (1 + self.w0 + self.wa)) * np.exp(-3 * self.wa * (1 - a))

    def E2(self, a):
        return self.Omega0_r * a**-4 + self.Omega0_m * a**-3 + self.Omega0_de * self._de_density(a)

    def dlnE2_dlna(self, a):
        w = self.w0 + self.wa * (1 - a)
        return (-4 * self.Omega0_r * a**-4 - 3 * self.Omega0_m * a**-3
                - 3 * (1 + w) * self.Omega0_de * self._de_density(a)) / self.E2(a)

    def _setup_conformal_time(self, a_min, n_a):
        ln_a = np.linspace(np.log(a_min), 0.0, n_a)
        a = np.exp(ln_a)
        integrand = 1.0 / (a * self.H0 * np.sqrt(self.E2(a)))
        # radiation domination below a_min
        tau_min = a_min / (self.H0 * np.sqrt(self.Omega0_r))
        tau = tau_min + cumulative_trapezoid(integrand, ln_a, initial=0.0)
        self.conformal_age = tau[-1]
        self._ln_a_of_ln_tau = ius(np.log(tau), ln_a)
        self._ln_tau_of_ln_a = ius(ln_a, np.log(tau))

    def _setup_growth(self):
        def derivs(ln_a, y):
            a = np.exp(ln_a)
            D, dD = y
            Om = self.Omega0_m * a**-3 / self.E2(a)
            return [dD, -(2 + 0.5 * self.dlnE2_dlna(a)) * dD + 1.5 * Om * D]

        # start deep in matter domination, where D = a
        ln_a = np.linspace(np.log(1e-3), 0.0, 500)
        a_init = ln_a[0]
        solution = solve_ivp(derivs, (a_init, 0.0), [np.exp(a_init), np.exp(a_init)],
                             t_eval=ln_a, rtol=1e-8, atol=1e-12)
        if not solution.success:
            raise ConfigurationError("Growth factor integration failed: {}".format(solution.message))
        self._ln_D = ius(ln_a, np.log(solution.y[0]))

    def tau_of_z(self, z):
        return np.exp(self._ln_tau_of_ln_a(-np.log1p(z)))

    def z_of_tau(self, tau):
        tau = np.asarray(tau, dtype=float)
        if np.any(tau > self.conformal_age * (1 + 1e-10)):
            raise OutOfRangeError("Conformal time {} is after today ({})".format(tau, self.conformal_age))
        ln_a = np.minimum(self._ln_a_of_ln_tau(np.log(tau)), 0.0)
        return np.exp(-ln_a) - 1

    def growth_factor(self, z):
        """Linear growth D(z), normalised to D = a deep in matter domination"""
        ln_a = -np.log1p(np.asarray(z, dtype=float))
        if np.any(ln_a < np.log(1e-3)):
            raise OutOfRangeError("Growth factor requested at z={} beyond z=999".format(z))
        return np.exp(self._ln_D(ln_a))

    def Omega_m(self, z):
        a = 1 / (1 + np.asarray(z, dtype=float))
        return self.Omega0_m * a**-3 / self.E2(a)

    def Omega_de(self, z):
        a = 1 / (1 + np.asarray(z, dtype=float))
        return self.Omega0_de * self._de_density(a) / self.E2(a)

    def w_de(self, z):
        a = 1 / (1 + np.asarray(z, dtype=float))
        return self.w0 + self.wa * (1 - a)

    def __repr__(self):
        return "FlatBackground(h={}, Omega_m={}, Omega_b={}, mnu={}, w0={}, wa={})".format(
            self.h, self.Omega0_m, self.Omega0_b, self.mnu, self.w0, self.wa)


class SimpleThermodynamics:
    """Drag and recombination epochs from fitting formulae"""
    def __init__(self, background):
        omhh = background.Omega0_m * background.h**2
        obhh = background.Omega0_b * background.h**2
        self.z_drag = eisenstein_hu.get_z_drag(omhh, obhh)
        self.rs_drag = eisenstein_hu.get_sound_horizon(omhh, obhh, background.T_cmb)
        self.z_rec = eisenstein_hu.get_z_rec(omhh, obhh)


class PowerLawPrimordial:
    """
    Power-law primordial curvature spectrum with optional running,
    P_R(k) = A_s (k/k_pivot)^(n_s - 1 + alpha_s/2 ln(k/k_pivot)).

    A second, cold dark matter isocurvature, initial condition can be
    added with isocurvature={"amplitude_ratio": ..., "n_s": ..., "correlation": ...};
    its amplitude is relative to A_s and the correlation coefficient with the
    adiabatic mode lies in [-1, 1].
    """
    def __init__(self, A_s, n_s, k_pivot=0.05, alpha_s=0.0, isocurvature=None):
        if A_s <= 0:
            raise ConfigurationError("A_s must be positive, not {}".format(A_s))
        self.k_pivot = k_pivot
        self.modes = [(A_s, n_s, alpha_s)]
        self.ic_names = ["ad"]
        self.correlation = 0.0
        if isocurvature is not None:
            self.modes.append((A_s * isocurvature.get("amplitude_ratio", 1.0),
                               isocurvature.get("n_s", 1.0), 0.0))
            self.ic_names.append("cdi")
            self.correlation = isocurvature.get("correlation", 0.0)
            if abs(self.correlation) > 1:
                raise ConfigurationError("Isocurvature correlation must be in [-1, 1], not {}".format(
                    self.correlation))

        self.ic_size = len(self.modes)
        self.ic_ic_size = self.ic_size * (self.ic_size + 1) // 2
        self.is_non_zero = [True] * self.ic_ic_size
        if self.ic_size == 2:
            self.is_non_zero[1] = self.correlation != 0

    def ln_spectrum(self, ln_k, index_ic=0):
        A, n, alpha = self.modes[index_ic]
        x = np.asarray(ln_k) - np.log(self.k_pivot)
        return np.log(A) + (n - 1 + 0.5 * alpha * x) * x

    def spectrum_at_k(self, ln_k):
        """
        Logarithmic mode: ln P_R on the diagonal pairs and the correlation
        coefficient on the off-diagonal ones, shape (n_k, ic_ic_size).
        """
        ln_k = np.atleast_1d(np.asarray(ln_k, dtype=float))
        out = np.empty((ln_k.size, self.ic_ic_size))
        index = 0
        for ic1 in range(self.ic_size):
            for ic2 in range(ic1, self.ic_size):
                if ic1 == ic2:
                    out[:, index] = self.ln_spectrum(ln_k, ic1)
                else:
                    out[:, index] = self.correlation
                index += 1
        return out


class EisensteinHuPerturbations:
    """
    Density sources from the Eisenstein & Hu transfer function and the
    background growth factor.

    The source is the density contrast per unit primordial curvature,
    delta(k, z) = 2/5 k^2 T(k) D(z) / (Omega_m H0^2), so that
    P(k) = 2 pi^2 / k^3 delta^2 P_R(k).  With massive neutrinos a
    separate cold dark matter + baryon source is provided, and the
    neutrino density is suppressed below the free-streaming scale.
    """
    def __init__(self, background, k_min=1e-5, k_max=10.0, nk=200, z_max=4.0, nz=100,
                 ic_names=("ad",), wiggles=True):
        if nz < 3:
            raise InvalidArgumentError("Need at least 3 redshifts for the perturbation sources, got {}".format(nz))
        self.background = background
        self.k = np.logspace(np.log10(k_min), np.log10(k_max), nk)
        z = np.linspace(0.0, z_max, nz)[::-1]
        self.tau_sampling = background.tau_of_z(z)
        self.tau_sampling[-1] = min(self.tau_sampling[-1], background.conformal_age)
        self.z_sampling = z
        self.ic_names = list(ic_names)
        self.has_cb = background.Omega0_ncdm > 0

        omhh = background.Omega0_m * background.h**2
        obhh = background.Omega0_b * background.h**2
        if wiggles:
            T = eisenstein_hu.transfer_full(self.k, omhh, obhh, background.T_cmb)
        else:
            T = eisenstein_hu.transfer_nowiggle(self.k, omhh, obhh, background.T_cmb)
        D = background.growth_factor(z)
        norm = 0.4 * self.k**2 * T / (background.Omega0_m * background.H0**2)
        delta_cb = D[:, None] * norm[None, :]

        f_nu = background.Omega0_ncdm / background.Omega0_m
        if self.has_cb:
            # free-streaming scale for three degenerate species, in 1/Mpc
            E = np.sqrt(background.E2(1 / (1 + z)))
            k_fs = 0.82 * E / (1 + z)**2 * (background.mnu / 3.) * background.h
            delta_nu = delta_cb / (1 + (self.k[None, :] / k_fs[:, None])**2)
            delta_m = (1 - f_nu) * delta_cb + f_nu * delta_nu
        else:
            delta_m = delta_cb

        k_eq = eisenstein_hu.get_k_eq(omhh, background.T_cmb)
        iso_factor = (k_eq / (self.k + k_eq))**2 * background.Omega0_cdm / background.Omega0_m
        self._sources = {}
        for index_ic, name in enumerate(self.ic_names):
            if name == "ad":
                factor = 1.0
            elif name == "cdi":
                factor = iso_factor[None, :]
            else:
                raise ConfigurationError("Unknown initial condition {}; use ad or cdi".format(name))
            self._sources[index_ic, "delta_m"] = delta_m * factor
            if self.has_cb:
                self._sources[index_ic, "delta_cb"] = delta_cb * factor

    def source(self, index_ic, source_type, index_tau):
        try:
            return self._sources[index_ic, source_type][index_tau]
        except KeyError:
            raise ConfigurationError("No {} source for initial condition {}".format(source_type, index_ic))


class TabulatedPerturbations:
    """
    Sources reconstructed from a linear matter power spectrum tabulated on
    a (z, k) grid, k in 1/Mpc and P in Mpc^3, such as the output of a
    Boltzmann code run earlier in a pipeline.
    """
    def __init__(self, k, z, P, background, primordial):
        k = np.asarray(k, dtype=float)
        z = np.asarray(z, dtype=float)
        P = np.asarray(P, dtype=float)
        if P.shape != (z.size, k.size):
            raise InvalidArgumentError("P(k,z) has shape {} but there are {} z and {} k values".format(
                P.shape, z.size, k.size))
        if np.any(P <= 0):
            raise InvalidArgumentError("The tabulated linear power spectrum must be positive")
        if primordial.ic_size != 1:
            raise ConfigurationError("A tabulated power spectrum only describes one initial condition")

        # latest time last
        order = np.argsort(z)[::-1]
        z = z[order]
        P = P[order]
        self.k = k
        self.z_sampling = z
        self.tau_sampling = np.minimum(background.tau_of_z(z), background.conformal_age)
        self.ic_names = ["ad"]
        self.has_cb = False
        ln_P_R = primordial.ln_spectrum(np.log(k))
        self._delta_m = np.sqrt(P * k**3 / (2 * np.pi**2) / np.exp(ln_P_R))

    def source(self, index_ic, source_type, index_tau):
        if index_ic != 0 or source_type != "delta_m":
            raise ConfigurationError("No {} source for initial condition {}".format(source_type, index_ic))
        return self._delta_m[index_tau]
