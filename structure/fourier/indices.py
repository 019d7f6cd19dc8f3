"""
Index bookkeeping: which power spectrum types we compute and how the pairs of
initial conditions are enumerated.
"""
from .errors import ConfigurationError, InvalidArgumentError


def index_symmetric_matrix(index_ic1, index_ic2, ic_size):
    """
    Position of the pair (ic1, ic2) in the list of pairs with ic2 >= ic1,
    enumerated row by row: (0,0), (0,1), ..., (0,N-1), (1,1), (1,2), ...
    The pair is symmetric so the order of the arguments does not matter.
    """
    if index_ic1 > index_ic2:
        index_ic1, index_ic2 = index_ic2, index_ic1
    return index_ic2 + index_ic1 * ic_size - (index_ic1 * (index_ic1 + 1)) // 2


class SpectrumIndices:
    """
    Stable indices for the spectrum types (total matter "m" and, when the
    perturbations provide it, cold dark matter plus baryons "cb") and for
    the ordered pairs of initial conditions.
    """

    def __init__(self, has_pk_m, has_pk_cb, ic_size, is_non_zero=None):
        if not (has_pk_m or has_pk_cb):
            raise ConfigurationError("No matter power spectrum type was requested")
        if ic_size < 1:
            raise ConfigurationError("The perturbations provide no initial condition")

        self.has_pk_m = bool(has_pk_m)
        self.has_pk_cb = bool(has_pk_cb)

        index = 0
        self.index_pk_m = None
        self.index_pk_cb = None
        if self.has_pk_m:
            self.index_pk_m = index
            index += 1
        if self.has_pk_cb:
            self.index_pk_cb = index
            index += 1
        self.pk_size = index

        # The two redundant aliases.  "total" is used for lensing, "cluster"
        # for galaxy clustering.
        self.index_pk_total = self.index_pk_m if self.has_pk_m else self.index_pk_cb
        self.index_pk_cluster = self.index_pk_cb if self.has_pk_cb else self.index_pk_m

        self.ic_size = ic_size
        self.ic_ic_size = (ic_size * (ic_size + 1)) // 2
        self.pairs = [(ic1, ic2) for ic1 in range(ic_size) for ic2 in range(ic1, ic_size)]

        if is_non_zero is None:
            is_non_zero = [True] * self.ic_ic_size
        if len(is_non_zero) != self.ic_ic_size:
            raise ConfigurationError(
                "Expected {} correlation flags for {} initial conditions, got {}".format(
                    self.ic_ic_size, ic_size, len(is_non_zero)))
        self.is_non_zero = [bool(flag) for flag in is_non_zero]
        # Auto-correlations are always present
        for ic in range(ic_size):
            self.is_non_zero[self.index_ic_ic(ic, ic)] = True

    def index_ic_ic(self, index_ic1, index_ic2):
        return index_symmetric_matrix(index_ic1, index_ic2, self.ic_size)

    def is_diagonal(self, index_ic1_ic2):
        ic1, ic2 = self.pairs[index_ic1_ic2]
        return ic1 == ic2

    def check_index_pk(self, index_pk):
        if index_pk is None or not (0 <= index_pk < self.pk_size):
            raise InvalidArgumentError(
                "Spectrum index {} is not valid; there are {} spectrum types".format(index_pk, self.pk_size))
        return index_pk

    def source_type(self, index_pk):
        """Name of the perturbation source used for spectrum type index_pk"""
        if index_pk == self.index_pk_cb:
            return "delta_cb"
        return "delta_m"

    def __repr__(self):
        return "SpectrumIndices(pk_size={}, index_pk_m={}, index_pk_cb={}, ic_size={}, ic_ic_size={})".format(
            self.pk_size, self.index_pk_m, self.index_pk_cb, self.ic_size, self.ic_ic_size)


def build_indices(perturbations, primordial):
    """Index Builder: read the counts from the collaborators."""
    ic_size = len(perturbations.ic_names)
    if primordial.ic_size != ic_size:
        raise ConfigurationError(
            "The perturbations have {} initial conditions but the primordial spectrum has {}".format(
                ic_size, primordial.ic_size))
    return SpectrumIndices(True, perturbations.has_cb, ic_size, primordial.is_non_zero)
