import numpy as np
import pytest

from fourier.errors import InvalidArgumentError
from fourier.tables import Table


def test_named_access():
    table = Table("ln_pk", ("pk", "tau", "k"), (2, 3, 4))
    table.set(1.5, pk=1, tau=2)
    assert table.get(pk=1, tau=2).shape == (4,)
    assert np.all(table.get(pk=1, tau=2) == 1.5)
    assert np.all(table.get(pk=0) == 0)
    assert table.size("k") == 4


def test_bounds_checked():
    table = Table("ln_pk", ("pk", "tau"), (1, 3))
    with pytest.raises(InvalidArgumentError):
        table.get(tau=3)
    with pytest.raises(InvalidArgumentError):
        table.get(tau=-1)
    with pytest.raises(InvalidArgumentError):
        table.get(ic=0)


def test_from_array_checks_dimensions():
    with pytest.raises(InvalidArgumentError):
        Table.from_array("bad", ("pk", "tau"), np.zeros(3))
