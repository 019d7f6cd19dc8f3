"""
Assembly of the linear power spectrum from the perturbation sources and the
primordial spectrum.

For each pair of initial conditions the diagonal entries hold
ln P_ii = ln(2 pi^2 / k^3 S_i^2 P_R,ii) and the off-diagonal entries the
cosine of the correlation angle between the two modes.  The total spectrum
sums the auto spectra and twice the correlated cross terms.
"""
import numpy as np

from .errors import ConfigurationError, NumericalError
from .extrapolation import extrapolate_source
from .tables import Table


def total_from_ic(ln_pk_ic, indices):
    """
    Combine the per-initial-condition table (last axis ic_ic) into the total
    power (not its log).
    """
    ln_pk_ic = np.asarray(ln_pk_ic)
    total = np.zeros(ln_pk_ic.shape[:-1])
    for index_ic1 in range(indices.ic_size):
        total += np.exp(ln_pk_ic[..., indices.index_ic_ic(index_ic1, index_ic1)])
    for index_ic1 in range(indices.ic_size):
        for index_ic2 in range(index_ic1 + 1, indices.ic_size):
            index = indices.index_ic_ic(index_ic1, index_ic2)
            if not indices.is_non_zero[index]:
                continue
            p11 = ln_pk_ic[..., indices.index_ic_ic(index_ic1, index_ic1)]
            p22 = ln_pk_ic[..., indices.index_ic_ic(index_ic2, index_ic2)]
            total += 2 * ln_pk_ic[..., index] * np.exp(0.5 * (p11 + p22))
    return total


def ic_components(ln_pk_ic, indices):
    """
    Per pair contributions to the total power: P_ii on the diagonal and
    cos_ij sqrt(P_ii P_jj) off it.
    """
    ln_pk_ic = np.asarray(ln_pk_ic)
    out = np.zeros(ln_pk_ic.shape)
    for index, (ic1, ic2) in enumerate(indices.pairs):
        if ic1 == ic2:
            out[..., index] = np.exp(ln_pk_ic[..., index])
        elif indices.is_non_zero[index]:
            p11 = ln_pk_ic[..., indices.index_ic_ic(ic1, ic1)]
            p22 = ln_pk_ic[..., indices.index_ic_ic(ic2, ic2)]
            out[..., index] = ln_pk_ic[..., index] * np.exp(0.5 * (p11 + p22))
    return out


def read_sources(perturbations, indices, tau_grid, index_pk):
    """Sources for one spectrum type, shape (ic, tau, k_native)"""
    source_type = indices.source_type(index_pk)
    sources = []
    for index_ic in range(indices.ic_size):
        per_time = []
        for index_tau in range(tau_grid.ln_tau_size):
            source = perturbations.source(index_ic, source_type, tau_grid.index_tau_offset + index_tau)
            if source is None:
                raise ConfigurationError("The perturbations provide no {} source for initial condition {}".format(
                    source_type, index_ic))
            per_time.append(source)
        sources.append(per_time)
    return np.array(sources, dtype=float)


class LinearTables:
    """
    ln_pk_ic_l[pk, tau, k, ic_ic] and ln_pk_l[pk, tau, k] on the native k
    grid, and the extended ln_pk_l_extra[pk, tau, k_extra] with its per-IC
    counterpart.
    """
    def __init__(self, ln_pk_ic_extra, ln_pk_extra, k_size):
        self.ln_pk_ic_l_extra = Table.from_array("ln_pk_ic_l_extra", ("pk", "tau", "k", "ic_ic"), ln_pk_ic_extra)
        self.ln_pk_l_extra = Table.from_array("ln_pk_l_extra", ("pk", "tau", "k"), ln_pk_extra)
        self.ln_pk_ic_l = Table.from_array("ln_pk_ic_l", ("pk", "tau", "k", "ic_ic"),
                                           ln_pk_ic_extra[:, :, :k_size, :])
        self.ln_pk_l = Table.from_array("ln_pk_l", ("pk", "tau", "k"), ln_pk_extra[:, :, :k_size])


def assemble_linear(indices, k_grid, tau_grid, perturbations, primordial, background, config):
    k = k_grid.k
    ln_k = k_grid.ln_k
    k_extension = k[k_grid.k_size:]
    primordial_table = np.asarray(primordial.spectrum_at_k(ln_k), dtype=float)
    if primordial_table.shape != (k.size, indices.ic_ic_size):
        raise ConfigurationError("The primordial spectrum has shape {}, expected {}".format(
            primordial_table.shape, (k.size, indices.ic_ic_size)))

    shape = (indices.pk_size, tau_grid.ln_tau_size, k_grid.k_size_extra)
    ln_pk_ic = np.zeros(shape + (indices.ic_ic_size,))
    ln_pk = np.zeros(shape)

    for index_pk in range(indices.pk_size):
        sources = read_sources(perturbations, indices, tau_grid, index_pk)
        if sources.shape[-1] != k_grid.k_size:
            raise ConfigurationError("The perturbation sources have {} wavenumbers but the k grid has {}".format(
                sources.shape[-1], k_grid.k_size))
        if k_grid.extended:
            tail = extrapolate_source(config.extrapolation_method, k_grid.k_native, sources, k_extension,
                                      background=background, function=config.extrapolation_function)
            sources = np.concatenate([sources, tail], axis=-1)

        with np.errstate(divide="ignore"):
            ln_abs_source = np.log(np.abs(sources))
        sign = np.sign(sources)

        for index_ic_ic, (ic1, ic2) in enumerate(indices.pairs):
            if ic1 == ic2:
                if not np.all(np.isfinite(ln_abs_source[ic1])):
                    raise NumericalError("Non-positive linear power for spectrum {} and initial condition {}".format(
                        index_pk, ic1))
                ln_pk_ic[index_pk, :, :, index_ic_ic] = (np.log(2 * np.pi**2) - 3 * ln_k
                                                         + 2 * ln_abs_source[ic1]
                                                         + primordial_table[:, index_ic_ic])
            elif indices.is_non_zero[index_ic_ic]:
                ln_pk_ic[index_pk, :, :, index_ic_ic] = (primordial_table[:, index_ic_ic]
                                                         * sign[ic1] * sign[ic2])

        total = total_from_ic(ln_pk_ic[index_pk], indices)
        if np.any(total <= 0) or not np.all(np.isfinite(total)):
            raise NumericalError("Non-positive total linear power for spectrum {}".format(index_pk))
        ln_pk[index_pk] = np.log(total)

    return LinearTables(ln_pk_ic, ln_pk, k_grid.k_size)
