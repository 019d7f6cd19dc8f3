"""
A small container for the multi-dimensional tables built by the module.

The tables are plain numpy arrays, but each one remembers the names of its
dimensions (for example ``("pk", "tau", "k", "ic_ic")``) so that code can
select slices by name, and every index is checked against the size of its
dimension rather than silently wrapping around as negative numpy indices do.
"""
import numpy as np

from .errors import AllocationError, InvalidArgumentError


class Table:
    def __init__(self, name, dims, shape, fill=0.0):
        if len(dims) != len(shape):
            raise InvalidArgumentError("Table {} has {} dimension names but shape {}".format(name, len(dims), shape))
        self.name = name
        self.dims = tuple(dims)
        try:
            self.values = np.full(tuple(int(n) for n in shape), fill, dtype=float)
        except MemoryError as error:
            raise AllocationError("Could not allocate table {} with shape {}".format(name, shape)) from error

    @classmethod
    def from_array(cls, name, dims, array):
        table = cls.__new__(cls)
        table.name = name
        table.dims = tuple(dims)
        table.values = np.asarray(array, dtype=float)
        if table.values.ndim != len(table.dims):
            raise InvalidArgumentError(
                "Table {} has dimensions {} but the array has {} axes".format(name, dims, table.values.ndim))
        return table

    @property
    def shape(self):
        return self.values.shape

    def size(self, dim):
        return self.values.shape[self.axis(dim)]

    def axis(self, dim):
        try:
            return self.dims.index(dim)
        except ValueError:
            raise InvalidArgumentError("Table {} has no dimension {}; it has {}".format(self.name, dim, self.dims))

    def _key(self, indices):
        key = [slice(None)] * len(self.dims)
        for dim, index in indices.items():
            axis = self.axis(dim)
            n = self.values.shape[axis]
            if isinstance(index, slice):
                key[axis] = index
                continue
            index = int(index)
            if index < 0 or index >= n:
                raise InvalidArgumentError(
                    "Index {}={} is out of range for table {} (size {})".format(dim, index, self.name, n))
            key[axis] = index
        return tuple(key)

    def get(self, **indices):
        """Return the (view of the) sub-array selected by named indices."""
        return self.values[self._key(indices)]

    def set(self, value, **indices):
        self.values[self._key(indices)] = value

    def __repr__(self):
        dims = ", ".join("{}={}".format(d, n) for d, n in zip(self.dims, self.values.shape))
        return "<Table {} ({})>".format(self.name, dims)
