"""
Script housing physical constants and small numerical helpers
"""

# Imports
import numpy as np
from typing import Union

# Physical constants (SI)
CLIGHT = 299792458.0
AU = 1.49597870660e11
AU_SECONDS = AU / CLIGHT
YEAR = 3.15581498e7
TSUN = 4.9169e-6
PC = 3.0856775807e16

# Instrument constants for the analytic noise curve
LARM = 2.5e9
FSTAR = CLIGHT / (2.0 * np.pi * LARM)
SPS = 8.321e-23
SACC = 9.0e-30
SLOC = 2.89e-24

# Peak of the SNR prior
SNRPEAK = 5.0

PI2 = 2.0 * np.pi


def wrap_angle(x: Union[float, np.ndarray], period: float = PI2) -> Union[float, np.ndarray]:
    """Wrap an angle into [0, period)."""
    wrapped = np.mod(x, period)
    # np.mod can return `period` itself for tiny negative inputs
    wrapped = np.where(wrapped >= period, 0.0, wrapped)
    if np.ndim(wrapped) == 0:
        return float(wrapped)
    return wrapped


def next_power_of_two(x: float) -> int:
    """Smallest power of two >= x, or 1 for x <= 1."""
    if x <= 1.0:
        return 1
    return int(2 ** int(np.ceil(np.log2(x))))


def largest_power_of_two(n: int) -> int:
    """Largest power of two <= n."""
    if n < 1:
        raise ValueError(f"n must be positive, got {n}.")
    return int(2 ** int(np.log2(n)))


def fourier_nwip(a: np.ndarray, b: np.ndarray, inv_psd: np.ndarray) -> float:
    """
    Noise weighted inner product of two frequency series.

    Inputs
    ------
    a, b : complex arrays of matching shape
    inv_psd : array broadcastable to a, 1/S_n per bin

    Returns
    -------
    (a|b) = sum Re(a conj(b)) / S_n, the quadratic form of the Whittle
    log-likelihood
    """
    return float(np.sum(np.real(a * np.conj(b)) * inv_psd))


def analytic_snr(amp: float, sn: float, sf: float, sqrt_T: float) -> float:
    """Analytic SNR approximation, A sqrt(T) S_f / sqrt(S_n)."""
    return amp * sqrt_T * sf / np.sqrt(sn)


def snr_prior(snr: float) -> float:
    """
    Prior density on the signal to noise ratio.

    p(rho) = 3 rho / (4 rho_*^2 (1 + rho / (4 rho_*))^5)
    """
    dfac = 1.0 + snr / (4.0 * SNRPEAK)
    return 3.0 * snr / (4.0 * SNRPEAK * SNRPEAK * dfac**5)


def ucb_fdot(mc: float, f0: float) -> float:
    """GR-driven frequency derivative [Hz/s] for chirp mass mc [Msun] at f0 [Hz]."""
    m = mc * TSUN
    return 96.0 / 5.0 * (np.pi**8 * m**5 * f0**11) ** (1.0 / 3.0)


def ucb_chirpmass(f0: float, fdot: float) -> float:
    """Chirp mass [Msun] implied by GR-driven evolution."""
    pi83 = np.pi ** (8.0 / 3.0)
    return (fdot / (96.0 / 5.0) / pi83 / f0 ** (11.0 / 3.0)) ** (3.0 / 5.0) / TSUN


def ucb_distance(f0: float, fdot: float, amp: float) -> float:
    """Luminosity distance [pc] assuming GR-driven orbital evolution."""
    return (5.0 / 48.0) * (fdot / (np.pi**2 * f0**3 * amp)) * CLIGHT / PC


def lisa_ae_noise(f: np.ndarray, L: float = LARM, fstar: float = FSTAR) -> np.ndarray:
    """
    Analytic A/E channel instrument noise PSD.

    Parameters
    ----------
    f : array
        Frequencies [Hz], strictly positive
    L : float
        Arm length [m]
    fstar : float
        Transfer frequency [Hz]

    Returns
    -------
    psd : array
        Noise power spectral density at f
    """
    f = np.asarray(f, dtype=float)
    x = f / fstar
    red = 16.0 * (1.0e-4 / f) ** 2
    acc = SLOC / 2.0 + SACC / (PI2 * f) ** 4 * (1.0 + red)
    return (
        16.0 / 3.0 * np.sin(x) ** 2
        * ((2.0 + np.cos(x)) * (SPS + SLOC) + 2.0 * (3.0 + 2.0 * np.cos(x) + np.cos(2.0 * x)) * acc)
        / (2.0 * L) ** 2
    )
