"""
The Fourier context: builds the linear and nonlinear power spectrum tables
from the collaborators and answers queries for P(k, z), sigma(R, z), the
local spectral tilt and k_nl(z).

Wavenumbers are in 1/Mpc, power spectra in Mpc^3 and lengths in Mpc.
"""
import numpy as np

from . import splines
from .config import FourierConfig, NonLinearMethod, PkOutput, SigmaOutput, get_choice
from .errors import FourierError, InvalidArgumentError, OutOfRangeError
from .grids import build_k_grid, build_tau_grid
from .indices import build_indices
from .linear import assemble_linear, ic_components, total_from_ic
from .nonlinear import compute_nonlinear, make_strategy
from .nowiggle import NoWiggleTables
from .pk_eq import build_pk_eq_table
from .sigma import sigma_from_table

# names of the tables released by free()
_TABLES = ["indices", "k_grid", "tau_grid", "linear", "nowiggle", "pk_eq", "nonlinear", "sigma8",
           "ddln_pk_ic_l", "ddln_pk_l", "ddln_pk_l_extra", "ddln_pk_ic_l_extra", "ddln_pk_l_extra_lnk"]


class Fourier:
    """
    Build every table once, in order: indices, grids, linear spectrum,
    splines, no-wiggle spectra, effective dark energy mapping, nonlinear
    correction and sigma8.  The object is read-only afterwards.

    Example::

        background = FlatBackground(h=0.67, Omega_m=0.31, Omega_b=0.049)
        perturbations = EisensteinHuPerturbations(background)
        fourier = Fourier(background, SimpleThermodynamics(background), perturbations,
                          PowerLawPrimordial(2.1e-9, 0.965), method="halofit")
        P, _ = fourier.pk_at_k_and_z(0.1, 0.5, "nonlinear")
    """
    def __init__(self, background, thermodynamics, perturbations, primordial, config=None, **kwargs):
        if config is None:
            config = FourierConfig(**kwargs)
        elif kwargs:
            raise InvalidArgumentError("Pass either a FourierConfig or keyword options, not both")
        self.config = config.validate()
        self.background = background
        self.thermodynamics = thermodynamics
        self.perturbations = perturbations
        self.primordial = primordial
        self.is_allocated = False
        for name in _TABLES:
            setattr(self, name, None)

        try:
            self._build()
        except Exception:
            self._release()
            raise
        self.is_allocated = True

    def _build(self):
        config = self.config
        verbose = config.verbose
        if verbose > 0:
            print("Fourier: {}".format(config))

        self.indices = build_indices(self.perturbations, self.primordial)
        self.k_grid = build_k_grid(self.perturbations.k, config)
        self.tau_grid = build_tau_grid(self.perturbations, self.background, config)
        if verbose > 0:
            print("Fourier: {}".format(self.indices))
            print("Fourier: {}".format(self.k_grid))
            print("Fourier: {}".format(self.tau_grid))

        self.linear = assemble_linear(self.indices, self.k_grid, self.tau_grid, self.perturbations,
                                      self.primordial, self.background, config)
        self._spline_linear()

        self.nowiggle = NoWiggleTables(config, self.k_grid, self.tau_grid, self.linear, self.indices,
                                       self.primordial, self.background)
        if verbose > 0 and (self.nowiggle.has_analytic or self.nowiggle.has_numerical):
            print("Fourier: built no-wiggle spectra (analytic={}, numerical={})".format(
                self.nowiggle.has_analytic, self.nowiggle.has_numerical))

        self.pk_eq = None
        if config.method != NonLinearMethod.none:
            self.pk_eq = build_pk_eq_table(config, self.background, self.thermodynamics, self.tau_grid)

        strategy = make_strategy(config)
        self.nonlinear = compute_nonlinear(strategy, config, self.indices, self.k_grid, self.tau_grid,
                                           self.linear, self.nowiggle, self.background, self.pk_eq)

        latest = self.tau_grid.ln_tau_size - 1
        self.sigma8 = np.array([
            sigma_from_table(8.0 / self.background.h, self.k_grid.ln_k,
                             self.linear.ln_pk_l_extra.get(pk=index_pk, tau=latest),
                             config.k_per_decade_for_sigma)
            for index_pk in range(self.indices.pk_size)])
        if verbose > 0:
            print("Fourier: sigma8 = {}".format(self.sigma8))

    def _spline_linear(self):
        ln_tau = self.tau_grid.ln_tau
        if not self.tau_grid.single_time:
            self.ddln_pk_ic_l = splines.second_derivatives(ln_tau, self.linear.ln_pk_ic_l.values, axis=1)
            self.ddln_pk_l = splines.second_derivatives(ln_tau, self.linear.ln_pk_l.values, axis=1)
            self.ddln_pk_l_extra = splines.second_derivatives(ln_tau, self.linear.ln_pk_l_extra.values, axis=1)
            self.ddln_pk_ic_l_extra = splines.second_derivatives(ln_tau, self.linear.ln_pk_ic_l_extra.values,
                                                                 axis=1)
        self.ddln_pk_l_extra_lnk = splines.second_derivatives(
            self.k_grid.ln_k, self.linear.ln_pk_l_extra.values[:, -1, :], axis=-1)

    def _release(self):
        for name in _TABLES:
            setattr(self, name, None)

    def free(self):
        """Release all the tables.  Calling it again does nothing."""
        self._release()
        self.is_allocated = False

    # Checks shared by the queries
    def _check_allocated(self):
        if not self.is_allocated:
            raise FourierError("This Fourier context has been freed")

    def _index_pk(self, index_pk):
        if index_pk is None:
            return self.indices.index_pk_total
        return self.indices.check_index_pk(index_pk)

    def _ln_tau_at_z(self, z):
        z = float(z)
        z_max = self.config.z_max_pk
        if z < 0 or z > z_max * (1 + 1e-10) + 1e-12:
            raise OutOfRangeError("Redshift z={} is outside the range [0, {}] of the power spectrum tables".format(
                z, z_max))
        tau = self.tau_grid.tau
        if self.tau_grid.single_time:
            return np.log(tau[-1])
        return np.log(np.clip(self.background.tau_of_z(z), tau[0], tau[-1]))

    def _at_time(self, values, dd, ln_tau, axis=1):
        if self.tau_grid.single_time:
            return np.take(values, 0, axis=axis)
        return splines.evaluate(self.tau_grid.ln_tau, values, dd, ln_tau, axis=axis)

    def _is_latest(self, ln_tau):
        return ln_tau >= self.tau_grid.ln_tau[-1]

    # Tables at one time
    def _ln_pk_linear_extra(self, ln_tau, index_pk):
        if self._is_latest(ln_tau):
            return self.linear.ln_pk_l_extra.get(pk=index_pk, tau=self.tau_grid.ln_tau_size - 1)
        return self._at_time(self.linear.ln_pk_l_extra.values[index_pk], self.ddln_pk_l_extra[index_pk],
                             ln_tau, axis=0)

    def _ln_pk_nonlinear(self, ln_tau, index_pk):
        ln_pk_l = self._at_time(self.linear.ln_pk_l.values[index_pk], self._dd(self.ddln_pk_l, index_pk),
                                ln_tau, axis=0)
        index_min = self.nonlinear.index_tau_min_nl
        ln_tau_nl = self.tau_grid.ln_tau[index_min:]
        if ln_tau_nl.size == 0 or ln_tau < ln_tau_nl[0]:
            # not corrected this early
            return ln_pk_l
        values = self.nonlinear.ln_pk_nl.values[index_pk, index_min:]
        if ln_tau_nl.size >= 3:
            return splines.evaluate(ln_tau_nl, values, self.nonlinear.ddln_pk_nl[index_pk], ln_tau, axis=0)
        if ln_tau_nl.size == 2:
            weight = (ln_tau - ln_tau_nl[0]) / (ln_tau_nl[1] - ln_tau_nl[0])
            return (1 - weight) * values[0] + weight * values[1]
        return values[0]

    def _nl_factor(self, ln_tau, index_pk):
        """ln(P_NL / P_L) on the native grid"""
        ln_pk_l = self._at_time(self.linear.ln_pk_l.values[index_pk], self._dd(self.ddln_pk_l, index_pk),
                                ln_tau, axis=0)
        return self._ln_pk_nonlinear(ln_tau, index_pk) - ln_pk_l

    def _dd(self, table, index_pk):
        return None if table is None else table[index_pk]

    def _ln_pk_nowiggle_extra(self, ln_tau, index_pk, numerical):
        self.nowiggle.require(numerical)
        ln_pk = self._ln_pk_linear_extra(ln_tau, index_pk)
        if numerical:
            nw = self.nowiggle
            ln_pk_nw = self._at_time(nw.ln_pk_l_nw_extra, nw.ddln_pk_l_nw_extra, ln_tau, axis=0)
            ln_pk_ref = self._ln_pk_linear_extra(ln_tau, nw.pk_l_nw_index)
            return ln_pk + ln_pk_nw - ln_pk_ref
        ln_an = self.nowiggle.ln_pk_l_an_extra
        return ln_an + (ln_pk[0] - ln_an[0])

    def _ln_pk_extra(self, ln_tau, pk_output, index_pk):
        """ln P on the extended grid for the outputs that have one"""
        if pk_output == PkOutput.linear:
            return self._ln_pk_linear_extra(ln_tau, index_pk)
        if pk_output == PkOutput.numerical_nowiggle:
            return self._ln_pk_nowiggle_extra(ln_tau, index_pk, True)
        if pk_output == PkOutput.analytic_nowiggle:
            return self._ln_pk_nowiggle_extra(ln_tau, index_pk, False)
        raise OutOfRangeError("The nonlinear spectrum is only available up to k = {} 1/Mpc".format(
            self.k_grid.k_max))

    def _ln_pk_native(self, ln_tau, pk_output, index_pk):
        if pk_output == PkOutput.nonlinear:
            return self._ln_pk_nonlinear(ln_tau, index_pk)
        return self._ln_pk_extra(ln_tau, pk_output, index_pk)[:self.k_grid.k_size]

    def _ln_pk_ic_native(self, ln_tau, pk_output, index_pk):
        """Per initial condition log-mode table (ln P_ii, cos_ij) on the native grid"""
        ln_pk_ic = self._at_time(self.linear.ln_pk_ic_l.values[index_pk], self._dd(self.ddln_pk_ic_l, index_pk),
                                 ln_tau, axis=0)
        if pk_output == PkOutput.nonlinear:
            factor = self._nl_factor(ln_tau, index_pk)
            ln_pk_ic = ln_pk_ic.copy()
            for ic in range(self.indices.ic_size):
                ln_pk_ic[:, self.indices.index_ic_ic(ic, ic)] += factor
        return ln_pk_ic

    def _ln_pk_ic_extra(self, ln_tau, index_pk):
        if self._is_latest(ln_tau) or self.tau_grid.single_time:
            return self.linear.ln_pk_ic_l_extra.get(pk=index_pk, tau=self.tau_grid.ln_tau_size - 1)
        return splines.evaluate(self.tau_grid.ln_tau, self.linear.ln_pk_ic_l_extra.values[index_pk],
                                self.ddln_pk_ic_l_extra[index_pk], ln_tau, axis=0)

    def _has_ic(self, pk_output):
        return self.indices.ic_size > 1 and pk_output in (PkOutput.linear, PkOutput.nonlinear)

    # Public queries
    def pk_at_z(self, z, pk_output=PkOutput.linear, index_pk=None, mode="linear"):
        """
        P(k) (mode="linear") or ln P(k) (mode="logarithmic") on the native k
        grid at redshift z, and the per initial condition values (or None
        with a single initial condition).  In logarithmic mode the per-IC
        values are ln P_ii on the diagonal and cos_ij off it; in linear mode
        P_ii and cos_ij sqrt(P_ii P_jj).
        """
        self._check_allocated()
        pk_output = get_choice(PkOutput, "pk_output", pk_output)
        if mode not in ("linear", "logarithmic"):
            raise InvalidArgumentError("mode must be linear or logarithmic, not {}".format(mode))
        index_pk = self._index_pk(index_pk)
        ln_tau = self._ln_tau_at_z(z)

        ln_pk = self._ln_pk_native(ln_tau, pk_output, index_pk)
        ln_pk_ic = self._ln_pk_ic_native(ln_tau, pk_output, index_pk) if self._has_ic(pk_output) else None
        if mode == "logarithmic":
            return ln_pk, ln_pk_ic
        pk_ic = None if ln_pk_ic is None else ic_components(ln_pk_ic, self.indices)
        return np.exp(ln_pk), pk_ic

    def pks_at_z(self, z, pk_output=PkOutput.linear, mode="linear"):
        """(P_total, per-IC total, P_cb, per-IC cb); the cb entries are None without a cb spectrum"""
        self._check_allocated()
        pk, pk_ic = self.pk_at_z(z, pk_output, self.indices.index_pk_total, mode)
        pk_cb = pk_ic_cb = None
        if self.indices.has_pk_cb:
            pk_cb, pk_ic_cb = self.pk_at_z(z, pk_output, self.indices.index_pk_cb, mode)
        return pk, pk_ic, pk_cb, pk_ic_cb

    def _pk_at_kvec(self, kvec, ln_tau, pk_output, index_pk):
        k = np.atleast_1d(np.asarray(kvec, dtype=float))
        if np.any(k <= 0) or not np.all(np.isfinite(k)):
            raise InvalidArgumentError("Wavenumbers must be positive, not {}".format(kvec))
        grid = self.k_grid
        if np.any(k > grid.k_max_extra * (1 + 1e-10)):
            raise OutOfRangeError("k = {} is beyond the largest tabulated k = {} 1/Mpc".format(
                k.max(), grid.k_max_extra))
        ln_k = np.log(k)
        ln_k_native = grid.ln_k_native
        below = ln_k < ln_k_native[0]
        above = ln_k > ln_k_native[-1]
        native = ~(below | above)
        has_ic = self._has_ic(pk_output)

        ln_pk = np.zeros(k.size)
        ln_pk_ic = np.zeros((k.size, self.indices.ic_ic_size)) if has_ic else None

        values = self._ln_pk_native(ln_tau, pk_output, index_pk)
        dd = splines.second_derivatives(ln_k_native, values)
        values_ic = dd_ic = None
        if has_ic:
            values_ic = self._ln_pk_ic_native(ln_tau, pk_output, index_pk)
            dd_ic = splines.second_derivatives(ln_k_native, values_ic, axis=0)

        if np.any(native):
            ln_pk[native] = splines.evaluate(ln_k_native, values, dd, ln_k[native])
            if has_ic:
                ln_pk_ic[native] = splines.evaluate(ln_k_native, values_ic, dd_ic, ln_k[native], axis=0)

        if np.any(above):
            if pk_output == PkOutput.nonlinear:
                raise OutOfRangeError("The nonlinear spectrum is only available up to k = {} 1/Mpc".format(
                    grid.k_max))
            values_extra = self._ln_pk_extra(ln_tau, pk_output, index_pk)
            if pk_output == PkOutput.linear and self._is_latest(ln_tau):
                dd_extra = self.ddln_pk_l_extra_lnk[index_pk]
            else:
                dd_extra = splines.second_derivatives(grid.ln_k, values_extra)
            ln_pk[above] = splines.evaluate(grid.ln_k, values_extra, dd_extra, ln_k[above])
            if has_ic:
                values_ic_extra = self._ln_pk_ic_extra(ln_tau, index_pk)
                dd_ic_extra = splines.second_derivatives(grid.ln_k, values_ic_extra, axis=0)
                ln_pk_ic[above] = splines.evaluate(grid.ln_k, values_ic_extra, dd_ic_extra, ln_k[above], axis=0)

        if np.any(below):
            # P(k) = P(k_min) (k / k_min) P_R(k) / P_R(k_min), mode by mode
            ln_k_below = ln_k[below]
            primordial_below = np.asarray(self.primordial.spectrum_at_k(ln_k_below))
            primordial_min = np.asarray(self.primordial.spectrum_at_k(ln_k_native[:1]))[0]
            index_00 = self.indices.index_ic_ic(0, 0)
            if has_ic:
                ln_pk_ic_min = values_ic[0]
                block = np.tile(ln_pk_ic_min, (ln_k_below.size, 1))
                for ic in range(self.indices.ic_size):
                    index = self.indices.index_ic_ic(ic, ic)
                    block[:, index] += (ln_k_below - ln_k_native[0]
                                        + primordial_below[:, index] - primordial_min[index])
                ln_pk_ic[below] = block
                ln_pk[below] = np.log(total_from_ic(block, self.indices))
            else:
                ln_pk[below] = (values[0] + ln_k_below - ln_k_native[0]
                                + primordial_below[:, index_00] - primordial_min[index_00])
        return ln_pk, ln_pk_ic

    def pk_at_k_and_z(self, k, z, pk_output=PkOutput.linear, index_pk=None):
        """P(k, z) in Mpc^3 for one k in 1/Mpc, and the per-IC contributions (or None)"""
        self._check_allocated()
        pk_output = get_choice(PkOutput, "pk_output", pk_output)
        index_pk = self._index_pk(index_pk)
        ln_pk, ln_pk_ic = self._pk_at_kvec([k], self._ln_tau_at_z(z), pk_output, index_pk)
        pk_ic = None if ln_pk_ic is None else ic_components(ln_pk_ic[0], self.indices)
        return float(np.exp(ln_pk[0])), pk_ic

    def pks_at_k_and_z(self, k, z, pk_output=PkOutput.linear):
        """(P_total, per-IC total, P_cb, per-IC cb) at one k"""
        self._check_allocated()
        pk, pk_ic = self.pk_at_k_and_z(k, z, pk_output, self.indices.index_pk_total)
        pk_cb = pk_ic_cb = None
        if self.indices.has_pk_cb:
            pk_cb, pk_ic_cb = self.pk_at_k_and_z(k, z, pk_output, self.indices.index_pk_cb)
        return pk, pk_ic, pk_cb, pk_ic_cb

    def pks_at_kvec_and_zvec(self, kvec, zvec, pk_output=PkOutput.linear):
        """
        Total and cb spectra on the grid of zvec (first axis) and kvec
        (second axis); the cb array is None without a cb spectrum.
        """
        self._check_allocated()
        pk_output = get_choice(PkOutput, "pk_output", pk_output)
        kvec = np.atleast_1d(kvec)
        zvec = np.atleast_1d(zvec)
        pk = np.zeros((zvec.size, kvec.size))
        pk_cb = np.zeros((zvec.size, kvec.size)) if self.indices.has_pk_cb else None
        for i, z in enumerate(zvec):
            ln_tau = self._ln_tau_at_z(z)
            pk[i] = np.exp(self._pk_at_kvec(kvec, ln_tau, pk_output, self.indices.index_pk_total)[0])
            if pk_cb is not None:
                pk_cb[i] = np.exp(self._pk_at_kvec(kvec, ln_tau, pk_output, self.indices.index_pk_cb)[0])
        return pk, pk_cb

    def sigmas_at_z(self, R, z, index_pk=None, sigma_output=SigmaOutput.sigma, pk_output=PkOutput.linear,
                    window=None):
        """
        sigma(R), d ln sigma / d ln R or the displacement dispersion, for R in
        Mpc, from the linear or the numerical no-wiggle spectrum.
        """
        self._check_allocated()
        pk_output = get_choice(PkOutput, "pk_output", pk_output)
        if pk_output not in (PkOutput.linear, PkOutput.numerical_nowiggle):
            raise InvalidArgumentError("sigma can only be computed from the linear or numerical_nowiggle "
                                       "spectrum, not {}".format(pk_output.value))
        index_pk = self._index_pk(index_pk)
        ln_pk = self._ln_pk_extra(self._ln_tau_at_z(z), pk_output, index_pk)
        return sigma_from_table(R, self.k_grid.ln_k, ln_pk, self.config.k_per_decade_for_sigma,
                                output=sigma_output, window=window)

    def sigma_at_z(self, R, z, index_pk=None):
        return self.sigmas_at_z(R, z, index_pk)

    def pk_tilt_at_k_and_z(self, k, z, pk_output=PkOutput.linear, index_pk=None):
        """Local slope d ln P / d ln k"""
        self._check_allocated()
        pk_output = get_choice(PkOutput, "pk_output", pk_output)
        index_pk = self._index_pk(index_pk)
        ln_tau = self._ln_tau_at_z(z)
        grid = self.k_grid
        if k <= 0:
            raise InvalidArgumentError("Wavenumbers must be positive, not {}".format(k))
        ln_k = np.log(k)

        if ln_k < grid.ln_k_native[0]:
            step = 1e-3
            ln_pk, _ = self._pk_at_kvec(np.exp([ln_k - step, ln_k + step]), ln_tau, pk_output, index_pk)
            return float((ln_pk[1] - ln_pk[0]) / (2 * step))
        if ln_k <= grid.ln_k_native[-1]:
            values = self._ln_pk_native(ln_tau, pk_output, index_pk)
            dd = splines.second_derivatives(grid.ln_k_native, values)
            return float(splines.evaluate_derivative(grid.ln_k_native, values, dd, ln_k))
        if k > grid.k_max_extra * (1 + 1e-10):
            raise OutOfRangeError("k = {} is beyond the largest tabulated k = {} 1/Mpc".format(k, grid.k_max_extra))
        values = self._ln_pk_extra(ln_tau, pk_output, index_pk)
        dd = splines.second_derivatives(grid.ln_k, values)
        return float(splines.evaluate_derivative(grid.ln_k, values, dd, ln_k))

    def k_nl_at_z(self, z):
        """
        Nonlinear wavenumber in 1/Mpc for the total and the cb spectra
        (None without cb); infinite where no nonlinear scale was computed.
        """
        self._check_allocated()
        ln_tau = self._ln_tau_at_z(z)
        index_min = self.nonlinear.index_tau_min_nl
        ln_tau_nl = self.tau_grid.ln_tau[index_min:]

        def interpolate(index_pk):
            if self.config.method == NonLinearMethod.none or ln_tau_nl.size == 0 or ln_tau < ln_tau_nl[0]:
                return np.inf
            k_nl = self.nonlinear.k_nl.values[index_pk, index_min:]
            if ln_tau_nl.size == 1:
                return float(k_nl[0])
            return float(np.exp(np.interp(ln_tau, ln_tau_nl, np.log(k_nl))))

        k_nl = interpolate(self.indices.index_pk_total)
        k_nl_cb = interpolate(self.indices.index_pk_cb) if self.indices.has_pk_cb else None
        return k_nl, k_nl_cb

    # Convenience accessors
    @property
    def k(self):
        self._check_allocated()
        return self.k_grid.k_native

    @property
    def z(self):
        self._check_allocated()
        return self.tau_grid.z
