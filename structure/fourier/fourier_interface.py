"""
CosmoSIS module computing the linear and nonlinear matter power spectra with
the fourier package.

The linear spectrum either comes from Eisenstein & Hu transfer functions
computed here, or (use_block_linear_power = T) from a matter_power_lin grid
already in the block, for example from camb run without its own nonlinear
correction.  The nonlinear correction (halofit or hmcode), the no-wiggle
spectra, sigma_8(z) and k_nl(z) are written back to the block.
"""
import os
import sys
import traceback

import numpy as np
from cosmosis.datablock import names, option_section

dirname = os.path.split(__file__)[0]
sys.path.insert(0, os.path.join(dirname, ".."))
from fourier import (Fourier, FourierConfig, FourierError, FlatBackground, SimpleThermodynamics,
                     PowerLawPrimordial, EisensteinHuPerturbations, TabulatedPerturbations,
                     NonLinearMethod, PkOutput)

cosmo = names.cosmological_parameters


def setup(options):
    config = FourierConfig.from_options(options, option_section)
    config.validate()

    more_config = {}
    more_config["use_block_linear_power"] = options.get_bool(option_section, "use_block_linear_power",
                                                             default=False)
    more_config["input_section"] = options.get_string(option_section, "input_section",
                                                      default=names.matter_power_lin)
    # wavenumbers in h/Mpc, as everywhere in the block
    more_config["kmin"] = options.get_double(option_section, "kmin", default=1e-4)
    more_config["kmax"] = options.get_double(option_section, "kmax", default=10.0)
    more_config["nk"] = options.get_int(option_section, "nk", default=200)
    more_config["nz"] = options.get_int(option_section, "nz", default=50)
    more_config["output_linear_section"] = options.get_string(option_section, "output_linear_section",
                                                              default=names.matter_power_lin)
    more_config["output_nonlinear_section"] = options.get_string(option_section, "output_nonlinear_section",
                                                                 default=names.matter_power_nl)
    more_config["output_nowiggle_section"] = options.get_string(option_section, "output_nowiggle_section",
                                                                default="matter_power_no_wiggle")
    more_config["output_analytic_nowiggle_section"] = options.get_string(
        option_section, "output_analytic_nowiggle_section", default="matter_power_no_wiggle_analytic")
    more_config["output_k_nl_section"] = options.get_string(option_section, "output_k_nl_section",
                                                            default="nonlinear_scale")
    more_config["max_printed_errors"] = options.get_int(option_section, "max_printed_errors", default=20)
    more_config["n_printed_errors"] = 0

    if config.verbose > 0:
        print("Fourier module settings: {}".format(config))
    return config, more_config


def make_collaborators(block, config, more_config):
    h = block[cosmo, "h0"]
    background = FlatBackground(
        h=h,
        Omega_m=block[cosmo, "omega_m"],
        Omega_b=block[cosmo, "omega_b"],
        mnu=block.get_double(cosmo, "mnu", default=0.0),
        w0=block.get_double(cosmo, "w", default=-1.0),
        wa=block.get_double(cosmo, "wa", default=0.0),
        T_cmb=block.get_double(cosmo, "TCMB", default=2.7255),
        N_eff=block.get_double(cosmo, "nnu", default=3.046),
    )
    thermodynamics = SimpleThermodynamics(background)
    primordial = PowerLawPrimordial(
        A_s=block[cosmo, "A_s"],
        n_s=block[cosmo, "n_s"],
        alpha_s=block.get_double(cosmo, "n_run", default=0.0),
    )

    if more_config["use_block_linear_power"]:
        z, k_h, p_k = block.get_grid(more_config["input_section"], "z", "k_h", "p_k")
        perturbations = TabulatedPerturbations(k_h * h, z, p_k / h**3, background, primordial)
    else:
        # sample a little beyond z_max_pk so the last redshift is bracketed
        z_max = config.z_max_pk * 1.1 + 0.1
        perturbations = EisensteinHuPerturbations(
            background, k_min=more_config["kmin"] * h, k_max=more_config["kmax"] * h,
            nk=more_config["nk"], z_max=z_max, nz=more_config["nz"])
    return background, thermodynamics, perturbations, primordial


def save_power(block, fourier, section, section_cb, z, pk_output, h):
    k = fourier.k
    pk, pk_cb = fourier.pks_at_kvec_and_zvec(k, z, pk_output)
    block.put_grid(section, "z", z, "k_h", k / h, "p_k", pk * h**3)
    if pk_cb is not None and section_cb is not None:
        block.put_grid(section_cb, "z", z, "k_h", k / h, "p_k", pk_cb * h**3)


def save_outputs(block, fourier, config, more_config):
    h = fourier.background.h
    z = np.linspace(0.0, config.z_max_pk, more_config["nz"])

    if not more_config["use_block_linear_power"]:
        save_power(block, fourier, more_config["output_linear_section"], "cdm_baryon_power_lin",
                   z, PkOutput.linear, h)

    if config.method != NonLinearMethod.none:
        z_nl = z[z <= config.z_max_nl]
        save_power(block, fourier, more_config["output_nonlinear_section"], "cdm_baryon_power_nl",
                   z_nl, PkOutput.nonlinear, h)
        k_nl = np.array([fourier.k_nl_at_z(zi)[0] for zi in z_nl])
        block[more_config["output_k_nl_section"], "z"] = z_nl
        block[more_config["output_k_nl_section"], "k_nl"] = k_nl / h

    if config.has_pk_numerical_nowiggle:
        save_power(block, fourier, more_config["output_nowiggle_section"], None,
                   z, PkOutput.numerical_nowiggle, h)
    if config.has_pk_analytic_nowiggle:
        save_power(block, fourier, more_config["output_analytic_nowiggle_section"], None,
                   z, PkOutput.analytic_nowiggle, h)

    sigma_8 = np.array([fourier.sigma_at_z(8.0 / h, zi) for zi in z])
    block[names.growth_parameters, "z"] = z
    block[names.growth_parameters, "sigma_8"] = sigma_8
    block[cosmo, "sigma_8"] = fourier.sigma8[fourier.indices.index_pk_total]


def execute(block, config):
    config, more_config = config
    fourier = None
    try:
        collaborators = make_collaborators(block, config, more_config)
        fourier = Fourier(*collaborators, config=config)
        save_outputs(block, fourier, config, more_config)
    except FourierError as error:
        if more_config["n_printed_errors"] <= more_config["max_printed_errors"]:
            print("Fourier error caught ({}): {}".format(error.kind, error.message))
            print(traceback.format_exc())
            if more_config["n_printed_errors"] == more_config["max_printed_errors"]:
                print("\nFurther errors will not be printed.")
            more_config["n_printed_errors"] += 1
        return 1
    finally:
        if fourier is not None:
            fourier.free()
    return 0


def cleanup(config):
    return 0
