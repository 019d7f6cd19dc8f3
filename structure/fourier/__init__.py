"""
Linear and nonlinear matter power spectrum tables, with Halofit, HMcode,
no-wiggle spectra, sigma(R) and k_nl(z), and the cosmosis module that runs
them (fourier_interface.py).
"""
from .config import (FourierConfig, NonLinearMethod, ExtrapolationMethod, HMcodeVersion, FeedbackModel,
                     PkOutput, SigmaOutput)
from .errors import (FourierError, OutOfRangeError, AllocationError, ConfigurationError, ConvergenceError,
                     InvalidArgumentError, NumericalError)
from .collaborators import (FlatBackground, SimpleThermodynamics, PowerLawPrimordial, EisensteinHuPerturbations,
                            TabulatedPerturbations)
from .fourier import Fourier
