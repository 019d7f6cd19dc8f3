import pytest

from fourier.errors import ConfigurationError, InvalidArgumentError
from fourier.indices import SpectrumIndices, index_symmetric_matrix


def test_symmetric_index_enumerates_upper_triangle():
    n = 3
    expected = [(0, 0), (0, 1), (0, 2), (1, 1), (1, 2), (2, 2)]
    for position, (ic1, ic2) in enumerate(expected):
        assert index_symmetric_matrix(ic1, ic2, n) == position
        assert index_symmetric_matrix(ic2, ic1, n) == position


def test_matter_only():
    indices = SpectrumIndices(True, False, 1)
    assert indices.pk_size == 1
    assert indices.index_pk_m == 0
    assert indices.index_pk_cb is None
    assert indices.index_pk_total == 0
    assert indices.index_pk_cluster == 0
    assert indices.source_type(0) == "delta_m"


def test_with_cb():
    indices = SpectrumIndices(True, True, 2)
    assert indices.pk_size == 2
    assert indices.index_pk_total == indices.index_pk_m == 0
    assert indices.index_pk_cluster == indices.index_pk_cb == 1
    assert indices.source_type(1) == "delta_cb"
    assert indices.ic_ic_size == 3
    assert indices.pairs == [(0, 0), (0, 1), (1, 1)]
    assert indices.is_diagonal(0) and not indices.is_diagonal(1)


def test_diagonal_always_non_zero():
    indices = SpectrumIndices(True, False, 2, is_non_zero=[False, False, False])
    assert indices.is_non_zero == [True, False, True]


def test_invalid_index_pk():
    indices = SpectrumIndices(True, False, 1)
    with pytest.raises(InvalidArgumentError):
        indices.check_index_pk(1)
    with pytest.raises(InvalidArgumentError):
        indices.check_index_pk(-1)


def test_no_spectrum_or_ic():
    with pytest.raises(ConfigurationError):
        SpectrumIndices(False, False, 1)
    with pytest.raises(ConfigurationError):
        SpectrumIndices(True, False, 0)
