"""
Exceptions raised while building or querying the Fourier power spectrum tables.

Every exception carries a ``kind`` string so that the cosmosis interface (or
any other caller) can report what went wrong without inspecting the class.
"""


class FourierError(Exception):
    kind = "fourier"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return "[fourier:{}] {}".format(self.kind, self.message)


class OutOfRangeError(FourierError, ValueError):
    kind = "out_of_range"


class AllocationError(FourierError, MemoryError):
    kind = "allocation"


class ConfigurationError(FourierError, ValueError):
    kind = "inconsistent_configuration"


class ConvergenceError(FourierError, RuntimeError):
    kind = "non_convergence"


class InvalidArgumentError(FourierError, ValueError):
    kind = "invalid_argument"


class NumericalError(FourierError, RuntimeError):
    kind = "numerical"
