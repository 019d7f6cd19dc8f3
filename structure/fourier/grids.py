"""
The wavenumber and conformal time grids on which all the tables are stored.
"""
import numpy as np

from .config import ExtrapolationMethod
from .errors import ConfigurationError, InvalidArgumentError, OutOfRangeError

# Largest number of points we are prepared to add beyond the computed k range
MAX_NUM_EXTRAPOLATION = 100000


class KGrid:
    """
    Wavenumbers in 1/Mpc.  The first k_size values are the native grid on
    which the sources were computed; the rest, up to k_size_extra, are the
    logarithmically spaced extension.
    """
    def __init__(self, k, k_size):
        self.k = np.asarray(k, dtype=float)
        self.ln_k = np.log(self.k)
        self.k_size = int(k_size)
        self.k_size_extra = self.k.size

    @property
    def k_native(self):
        return self.k[:self.k_size]

    @property
    def ln_k_native(self):
        return self.ln_k[:self.k_size]

    @property
    def k_min(self):
        return self.k[0]

    @property
    def k_max(self):
        return self.k[self.k_size - 1]

    @property
    def k_max_extra(self):
        return self.k[-1]

    @property
    def extended(self):
        return self.k_size_extra > self.k_size

    def __repr__(self):
        return "KGrid(k_size={}, k_size_extra={}, k_min={:.3e}, k_max={:.3e}, k_max_extra={:.3e})".format(
            self.k_size, self.k_size_extra, self.k_min, self.k_max, self.k_max_extra)


def build_k_grid(k_native, config):
    k_native = np.asarray(k_native, dtype=float)
    if k_native.ndim != 1 or k_native.size < 3:
        raise InvalidArgumentError("The native k grid needs at least 3 points")
    if np.any(k_native <= 0) or np.any(np.diff(k_native) <= 0):
        raise InvalidArgumentError("The native k grid must be positive and strictly increasing")

    k_size = k_native.size
    if config.extrapolation_method == ExtrapolationMethod.zero or config.k_max_extra_factor <= 1:
        return KGrid(k_native.copy(), k_size)

    ln_k_max = np.log(k_native[-1])
    ln_factor = np.log(config.k_max_extra_factor)
    n_extra = int(np.ceil(ln_factor / np.log(10.) * config.k_per_decade_for_pk - 1e-9))
    n_extra = max(n_extra, 1)
    if n_extra > MAX_NUM_EXTRAPOLATION:
        raise ConfigurationError(
            "Extending the k grid by a factor {} with {} points per decade needs {} points; "
            "the maximum is {}".format(config.k_max_extra_factor, config.k_per_decade_for_pk,
                                      n_extra, MAX_NUM_EXTRAPOLATION))

    ln_k_extra = ln_k_max + ln_factor * np.arange(1, n_extra + 1) / n_extra
    k = np.concatenate([k_native, np.exp(ln_k_extra)])
    return KGrid(k, k_size)


class TauGrid:
    """
    The late-time conformal times (in Mpc) at which the tables are stored,
    the corresponding redshifts, and the first time index at which the
    nonlinear correction is computed.
    """
    def __init__(self, tau, z, index_tau_offset, index_tau_min_nl):
        self.tau = np.asarray(tau, dtype=float)
        self.ln_tau = np.log(self.tau)
        self.z = np.asarray(z, dtype=float)
        # position of tau[0] in the perturbations' time sampling
        self.index_tau_offset = index_tau_offset
        self.index_tau_min_nl = index_tau_min_nl

    @property
    def ln_tau_size(self):
        return self.tau.size

    @property
    def ln_tau_size_nl(self):
        return self.tau.size - self.index_tau_min_nl

    @property
    def single_time(self):
        return self.tau.size == 1

    def __repr__(self):
        return "TauGrid(ln_tau_size={}, z_max={:.3f}, index_tau_min_nl={})".format(
            self.ln_tau_size, self.z[0], self.index_tau_min_nl)


def _bracketing_index(tau_sampling, tau_target):
    """Largest index i with tau_sampling[i] <= tau_target"""
    return max(int(np.searchsorted(tau_sampling, tau_target, side="right")) - 1, 0)


def build_tau_grid(perturbations, background, config):
    tau_sampling = np.asarray(perturbations.tau_sampling, dtype=float)
    if tau_sampling.ndim != 1 or tau_sampling.size < 1 or np.any(np.diff(tau_sampling) <= 0):
        raise InvalidArgumentError("The perturbation time sampling must be strictly increasing")

    n = tau_sampling.size
    if config.z_max_pk == 0:
        index_first = n - 1
    else:
        tau_max_pk = background.tau_of_z(config.z_max_pk)
        if tau_max_pk < tau_sampling[0] * (1 - 1e-10):
            raise OutOfRangeError(
                "z_max_pk={} is earlier than the first time at which the perturbations were sampled "
                "(z={:.3f})".format(config.z_max_pk, float(background.z_of_tau(tau_sampling[0]))))
        index_first = _bracketing_index(tau_sampling, tau_max_pk)

        if n - index_first == 1 and index_first > 0:
            index_first -= 1
        if n - index_first == 2:
            # Splines need three times
            if index_first == 0:
                raise ConfigurationError(
                    "Only two perturbation times are available below z_max_pk={}; "
                    "at least three are needed".format(config.z_max_pk))
            index_first -= 1

    tau = tau_sampling[index_first:]
    z = np.maximum(np.atleast_1d(background.z_of_tau(tau)), 0.0)
    if tau.size == 1:
        z = np.zeros(1)

    z_max_nl = min(config.z_max_nl, config.z_max_pk)
    if tau.size == 1:
        index_tau_min_nl = 0
    else:
        tau_min_nl = background.tau_of_z(z_max_nl)
        index_tau_min_nl = _bracketing_index(tau, tau_min_nl)

    return TauGrid(tau, z, index_first, index_tau_min_nl)
