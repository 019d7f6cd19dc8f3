"""
Eisenstein & Hu (1998) fitting formulae for the matter transfer function.

Original paper : Eisenstein & Hu (1998)
https://arxiv.org/abs/astro-ph/9709112
DOI : 10.1086/305424

All wavenumbers are in 1/Mpc (not h/Mpc).
"""
import numpy as np


def _theta(T_cmb):
    return T_cmb / 2.7


def get_z_eq(omhh, T_cmb):
    return 2.50e4 * omhh * _theta(T_cmb)**-4


def get_k_eq(omhh, T_cmb):
    return 7.46e-2 * omhh * _theta(T_cmb)**-2


def get_z_drag(omhh, obhh):
    b1 = 0.313 * omhh**-0.419 * (1. + 0.607 * omhh**0.674)
    b2 = 0.238 * omhh**0.223
    return 1291. * omhh**0.251 / (1. + 0.659 * omhh**0.828) * (1. + b1 * obhh**b2)


def get_z_rec(omhh, obhh):
    """Redshift of recombination, Hu & Sugiyama (1996) fit"""
    g1 = 0.0783 * obhh**-0.238 / (1. + 39.5 * obhh**0.763)
    g2 = 0.560 / (1. + 21.1 * obhh**1.81)
    return 1048. * (1. + 0.00124 * obhh**-0.738) * (1. + g1 * omhh**g2)


def _baryon_to_photon(obhh, T_cmb, z):
    return 31.5 * obhh * _theta(T_cmb)**-4 * (1000. / z)


def get_sound_horizon(omhh, obhh, T_cmb):
    """Comoving sound horizon at the drag epoch in Mpc"""
    z_eq = get_z_eq(omhh, T_cmb)
    k_eq = get_k_eq(omhh, T_cmb)
    z_d = get_z_drag(omhh, obhh)
    R_d = _baryon_to_photon(obhh, T_cmb, z_d)
    R_eq = _baryon_to_photon(obhh, T_cmb, z_eq)
    return 2. / (3. * k_eq) * np.sqrt(6. / R_eq) * np.log(
        (np.sqrt(1. + R_d) + np.sqrt(R_d + R_eq)) / (1. + np.sqrt(R_eq)))


def get_sound_horizon_nowiggle(omhh, obhh):
    """Approximate sound horizon used by the zero-baryon-oscillation form, in Mpc"""
    return 44.5 * np.log(9.83 / omhh) / np.sqrt(1. + 10. * obhh**0.75)


def _T0(q, alpha, beta):
    L = np.log(np.e + 1.8 * beta * q)
    C = 14.2 / alpha + 386. / (1. + 69.9 * q**1.08)
    return L / (L + C * q**2)


def transfer_nowiggle(k, omhh, obhh, T_cmb=2.7255):
    """
    The Eisenstein & Hu transfer function with the baryon acoustic
    oscillations removed but the baryon suppression of small-scale power
    kept.
    """
    k = np.asarray(k, dtype=float)
    f_b = obhh / omhh
    s = get_sound_horizon_nowiggle(omhh, obhh)
    alpha_gamma = 1. - 0.328 * np.log(431. * omhh) * f_b + 0.38 * np.log(22.3 * omhh) * f_b**2
    gamma_eff = omhh * (alpha_gamma + (1. - alpha_gamma) / (1. + (0.43 * k * s)**4))
    q = k * _theta(T_cmb)**2 / gamma_eff
    L0 = np.log(2. * np.e + 1.8 * q)
    C0 = 14.2 + 731. / (1. + 62.5 * q)
    return L0 / (L0 + C0 * q**2)


def transfer_full(k, omhh, obhh, T_cmb=2.7255):
    """The full Eisenstein & Hu transfer function, including the BAO wiggles"""
    k = np.asarray(k, dtype=float)
    f_b = obhh / omhh
    f_c = 1. - f_b

    z_eq = get_z_eq(omhh, T_cmb)
    k_eq = get_k_eq(omhh, T_cmb)
    z_d = get_z_drag(omhh, obhh)
    R_d = _baryon_to_photon(obhh, T_cmb, z_d)
    s = get_sound_horizon(omhh, obhh, T_cmb)
    k_silk = 1.6 * obhh**0.52 * omhh**0.73 * (1. + (10.4 * omhh)**-0.95)

    a1 = (46.9 * omhh)**0.670 * (1. + (32.1 * omhh)**-0.532)
    a2 = (12.0 * omhh)**0.424 * (1. + (45.0 * omhh)**-0.582)
    alpha_c = a1**-f_b * a2**(-f_b**3)
    b1 = 0.944 / (1. + (458. * omhh)**-0.708)
    b2 = (0.395 * omhh)**-0.0266
    beta_c = 1. / (1. + b1 * (f_c**b2 - 1.))

    y = (1. + z_eq) / (1. + z_d)
    G = y * (-6. * np.sqrt(1. + y) + (2. + 3. * y) * np.log((np.sqrt(1. + y) + 1.) / (np.sqrt(1. + y) - 1.)))
    alpha_b = 2.07 * k_eq * s * (1. + R_d)**-0.75 * G
    beta_node = 8.41 * omhh**0.435
    beta_b = 0.5 + f_b + (3. - 2. * f_b) * np.sqrt((17.2 * omhh)**2 + 1.)

    q = k / (13.41 * k_eq)
    ks = k * s

    f = 1. / (1. + (ks / 5.4)**4)
    T_c = f * _T0(q, 1., beta_c) + (1. - f) * _T0(q, alpha_c, beta_c)

    s_tilde = s / (1. + (beta_node / ks)**3)**(1. / 3.)
    T_b = (_T0(q, 1., 1.) / (1. + (ks / 5.2)**2)
           + alpha_b / (1. + (beta_b / ks)**3) * np.exp(-(k / k_silk)**1.4)) * np.sinc(k * s_tilde / np.pi)

    return f_b * T_b + f_c * T_c
