import pytest

from fourier.config import (ExtrapolationMethod, FeedbackModel, FourierConfig, HMcodeVersion, NonLinearMethod,
                            get_choice)
from fourier.errors import ConfigurationError


def test_defaults():
    config = FourierConfig().validate()
    assert config.method == NonLinearMethod.none
    assert config.extrapolation_method == ExtrapolationMethod.max_scaled
    assert config.z_max_nl == config.z_max_pk
    assert not config.needs_extrapolation


def test_choices_from_strings():
    config = FourierConfig(method="hmcode", hmcode_version=2015, feedback="owls_agn")
    assert config.method == NonLinearMethod.hmcode
    assert config.hmcode_version == HMcodeVersion.v2015
    assert config.feedback == FeedbackModel.owls_agn


def test_bad_choice_lists_valid_values():
    with pytest.raises(ConfigurationError) as error:
        get_choice(NonLinearMethod, "method", "halofitt")
    assert "halofit" in str(error.value)
    assert error.value.kind == "inconsistent_configuration"


def test_unknown_option():
    with pytest.raises(ConfigurationError):
        FourierConfig(methd="halofit")


def test_user_defined_feedback_needs_parameters():
    config = FourierConfig(method="hmcode", feedback="user_defined", c_min=3.0)
    with pytest.raises(ConfigurationError):
        config.validate()
    FourierConfig(method="hmcode", feedback="user_defined", c_min=3.0, eta_0=0.6).validate()


def test_zero_extrapolation_conflicts():
    with pytest.raises(ConfigurationError):
        FourierConfig(method="hmcode", extrapolation_method="zero").validate()
    with pytest.raises(ConfigurationError):
        FourierConfig(has_pk_analytic_nowiggle=True, extrapolation_method="zero").validate()
    FourierConfig(method="halofit", extrapolation_method="zero").validate()


def test_user_defined_extrapolation_needs_function():
    with pytest.raises(ConfigurationError):
        FourierConfig(extrapolation_method="user_defined").validate()


def test_numerical_nowiggle_implies_analytic():
    config = FourierConfig(has_pk_numerical_nowiggle=True).validate()
    assert config.has_pk_analytic_nowiggle


def test_hmcode_2020_needs_nowiggle():
    config = FourierConfig(method="hmcode", hmcode_version="2020").validate()
    assert config.has_pk_numerical_nowiggle
    assert config.has_pk_analytic_nowiggle
    config = FourierConfig(method="hmcode", hmcode_version="2015").validate()
    assert not config.has_pk_numerical_nowiggle
    assert config.needs_extrapolation
