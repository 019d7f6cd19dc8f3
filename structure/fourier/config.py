"""
Options controlling the Fourier module.

The choices for the nonlinear method, the high-k extrapolation law, the
HMcode version and the HMcode feedback model are enumerations whose values
are the strings used in cosmosis ini files.
"""
from enum import Enum
import warnings

from .errors import ConfigurationError


class NonLinearMethod(Enum):
    none = "none"
    halofit = "halofit"
    hmcode = "hmcode"


class ExtrapolationMethod(Enum):
    zero = "zero"
    only_max = "only_max"
    only_max_units = "only_max_units"
    max_scaled = "max_scaled"
    hmcode = "hmcode"
    user_defined = "user_defined"


class HMcodeVersion(Enum):
    v2015 = "2015"
    v2020 = "2020"
    v2020_unfitted = "2020_unfitted"
    v2020_baryonic = "2020_baryonic"


class FeedbackModel(Enum):
    emu_dmonly = "emu_dmonly"
    owls_dmonly = "owls_dmonly"
    owls_ref = "owls_ref"
    owls_agn = "owls_agn"
    owls_dblim = "owls_dblim"
    user_defined = "user_defined"


class PkOutput(Enum):
    linear = "linear"
    nonlinear = "nonlinear"
    numerical_nowiggle = "numerical_nowiggle"
    analytic_nowiggle = "analytic_nowiggle"


class SigmaOutput(Enum):
    sigma = "sigma"
    sigma_prime = "sigma_prime"
    sigma_disp = "sigma_disp"


def get_choice(enum_class, name, value):
    """Convert a string (or enum member) into a member of enum_class."""
    if isinstance(value, enum_class):
        return value
    # ini files often give numbers for the version choice
    value = str(value).strip()
    for member in enum_class:
        if member.value == value:
            return member
    valid = [member.value for member in enum_class]
    raise ConfigurationError(
        "Parameter setting '{}' in fourier must be one of: {}.  You tried: {}".format(name, valid, value))


class FourierConfig:
    """
    All the settings for one Fourier calculation.

    Defaults are class attributes; any of them can be overridden with keyword
    arguments.  Call validate() (the Fourier context does this for you)
    before use.
    """
    method = NonLinearMethod.none
    extrapolation_method = ExtrapolationMethod.max_scaled
    extrapolation_function = None

    feedback = FeedbackModel.emu_dmonly
    hmcode_version = HMcodeVersion.v2020
    c_min = None
    eta_0 = None
    z_infinity = 10.0
    nk_wiggle = 512
    log10T_heat = 7.8

    has_pk_analytic_nowiggle = False
    has_pk_numerical_nowiggle = False
    nowiggle_filter_width = 0.25

    pk_eq = False
    pk_eq_tol = 1.0e-7

    z_max_pk = 3.0
    z_max_nl = None

    k_per_decade_for_pk = 10.0
    k_max_extra_factor = 1.0e3
    k_per_decade_for_sigma = 80.0

    halofit_min_k_nonlinear = 0.0035
    halofit_min_k_max = 5.0
    halofit_tol_sigma = 1.0e-6
    halofit_sigma_precision = 0.05
    halofit_max_iterations = 1000

    hmcode_nm = 128
    hmcode_log10m_min = 2.0
    hmcode_log10m_max = 18.0

    verbose = 0

    _choices = {
        "method": NonLinearMethod,
        "extrapolation_method": ExtrapolationMethod,
        "feedback": FeedbackModel,
        "hmcode_version": HMcodeVersion,
    }

    def __init__(self, **kwargs):
        for key, value in kwargs.items():
            if not hasattr(FourierConfig, key) or key.startswith("_"):
                raise ConfigurationError("Unknown fourier option: {}".format(key))
            if key in self._choices:
                value = get_choice(self._choices[key], key, value)
            setattr(self, key, value)

    @classmethod
    def from_options(cls, options, section):
        """Read the settings from a cosmosis options block."""
        kwargs = {
            "method": options.get_string(section, "method", default=cls.method.value),
            "extrapolation_method": options.get_string(section, "extrapolation_method",
                                                       default=cls.extrapolation_method.value),
            "feedback": options.get_string(section, "feedback", default=cls.feedback.value),
            "hmcode_version": options.get_string(section, "hmcode_version", default=cls.hmcode_version.value),
            "z_infinity": options.get_double(section, "z_infinity", default=cls.z_infinity),
            "nk_wiggle": options.get_int(section, "nk_wiggle", default=cls.nk_wiggle),
            "log10T_heat": options.get_double(section, "log10T_heat", default=cls.log10T_heat),
            "has_pk_analytic_nowiggle": options.get_bool(section, "has_pk_analytic_nowiggle",
                                                         default=cls.has_pk_analytic_nowiggle),
            "has_pk_numerical_nowiggle": options.get_bool(section, "has_pk_numerical_nowiggle",
                                                          default=cls.has_pk_numerical_nowiggle),
            "nowiggle_filter_width": options.get_double(section, "nowiggle_filter_width",
                                                        default=cls.nowiggle_filter_width),
            "pk_eq": options.get_bool(section, "pk_eq", default=cls.pk_eq),
            "z_max_pk": options.get_double(section, "z_max_pk", default=cls.z_max_pk),
            "k_per_decade_for_pk": options.get_double(section, "k_per_decade_for_pk",
                                                      default=cls.k_per_decade_for_pk),
            "k_max_extra_factor": options.get_double(section, "k_max_extra_factor",
                                                     default=cls.k_max_extra_factor),
            "k_per_decade_for_sigma": options.get_double(section, "k_per_decade_for_sigma",
                                                         default=cls.k_per_decade_for_sigma),
            "halofit_min_k_nonlinear": options.get_double(section, "halofit_min_k_nonlinear",
                                                          default=cls.halofit_min_k_nonlinear),
            "halofit_tol_sigma": options.get_double(section, "halofit_tol_sigma", default=cls.halofit_tol_sigma),
            "halofit_sigma_precision": options.get_double(section, "halofit_sigma_precision",
                                                          default=cls.halofit_sigma_precision),
            "halofit_max_iterations": options.get_int(section, "halofit_max_iterations",
                                                      default=cls.halofit_max_iterations),
            "verbose": options.get_int(section, "verbose", default=cls.verbose),
        }
        # These have no sensible default value, so we only pass them on if set
        for name in ["c_min", "eta_0", "z_max_nl"]:
            if options.has_value(section, name):
                kwargs[name] = options.get_double(section, name)
        return cls(**kwargs)

    def validate(self):
        """
        Check that the combination of options makes sense, filling in the
        options that other choices imply.
        """
        if self.z_max_pk < 0:
            raise ConfigurationError("z_max_pk must be non-negative, not {}".format(self.z_max_pk))
        if self.z_max_nl is None:
            self.z_max_nl = self.z_max_pk
        if self.k_per_decade_for_pk <= 0 or self.k_per_decade_for_sigma <= 0:
            raise ConfigurationError("k_per_decade_for_pk and k_per_decade_for_sigma must be positive")
        if self.k_max_extra_factor < 1:
            raise ConfigurationError("k_max_extra_factor must be at least 1, not {}".format(self.k_max_extra_factor))
        if self.nk_wiggle < 16:
            raise ConfigurationError("nk_wiggle must be at least 16, not {}".format(self.nk_wiggle))

        if self.method == NonLinearMethod.hmcode:
            self.validate_hmcode()

        if self.has_pk_numerical_nowiggle and not self.has_pk_analytic_nowiggle:
            # The numerical de-wiggling divides out the analytic shape first
            self.has_pk_analytic_nowiggle = True

        if self.extrapolation_method == ExtrapolationMethod.zero and self.needs_extrapolation:
            raise ConfigurationError(
                "extrapolation_method=zero cannot be used with HMcode or no-wiggle spectra, "
                "which need the power spectrum beyond the computed k range")

        if self.extrapolation_method == ExtrapolationMethod.user_defined and self.extrapolation_function is None:
            raise ConfigurationError(
                "extrapolation_method=user_defined needs an extrapolation_function(k, k_max, source_max, source_max_m1)")

        if self.pk_eq and self.method == NonLinearMethod.none:
            warnings.warn("pk_eq has no effect when method=none")
        return self

    def validate_hmcode(self):
        if self.feedback == FeedbackModel.user_defined:
            missing = [name for name in ["c_min", "eta_0"] if getattr(self, name) is None]
            if missing:
                raise ConfigurationError(
                    "HMcode feedback=user_defined needs these parameters to be set: {}".format(", ".join(missing)))
        if self.hmcode_version != HMcodeVersion.v2015:
            # HMcode 2020 damps the BAO using the de-wiggled linear spectrum
            self.has_pk_numerical_nowiggle = True
            self.has_pk_analytic_nowiggle = True
            if self.feedback not in (FeedbackModel.emu_dmonly, FeedbackModel.user_defined):
                warnings.warn("HMcode {} ignores feedback={}; use hmcode_version=2020_baryonic "
                              "and log10T_heat instead".format(self.hmcode_version.value, self.feedback.value))
        if self.z_infinity <= 0:
            raise ConfigurationError("z_infinity must be positive, not {}".format(self.z_infinity))

    @property
    def needs_extrapolation(self):
        return (self.method == NonLinearMethod.hmcode
                or self.has_pk_numerical_nowiggle
                or self.has_pk_analytic_nowiggle)

    def __repr__(self):
        settings = ", ".join("{}={}".format(key, getattr(self, key)) for key in [
            "method", "extrapolation_method", "hmcode_version", "feedback",
            "has_pk_analytic_nowiggle", "has_pk_numerical_nowiggle", "pk_eq", "z_max_pk"])
        return "FourierConfig({})".format(settings)
