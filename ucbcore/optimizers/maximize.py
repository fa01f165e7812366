"""
Local maximization of the extrinsic parameters of a single source.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from scipy.optimize import minimize

from ucbcore.calibration.calibration import CalibrationModel, apply_calibration_model
from ucbcore.core.data import FrequencyData
from ucbcore.core.source import ParameterCodec
from ucbcore.likelihoods.gaussian import calibrated_residual, residual_quadratic_term
from ucbcore.utils.logging import get_logger
from ucbcore.utils.tools import PI2, wrap_angle
from ucbcore.waveforms.ucb import generate_signal_model, ucb_alignment

logger = get_logger(__name__)


def _source_log_likelihood(params: np.ndarray, data: FrequencyData, noise, calibration, codec: ParameterCodec) -> float:
    """Full-band log-likelihood of ``data`` given a single source."""
    source = codec.decode(params)
    template = generate_signal_model(source, data)
    sl = slice(source.qmin - data.qmin, source.qmax - data.qmin)

    empty = np.zeros_like(data.values)
    base = residual_quadratic_term(calibrated_residual(data.values, empty, calibration), noise.inverse_psd)
    base += float(-0.5 * np.sum(np.log(2.0 * np.pi * noise.psd)))

    d = data.values[:, sl]
    inverse_psd = noise.inverse_psd[:, sl]
    with_source = residual_quadratic_term(calibrated_residual(d, template, calibration), inverse_psd)
    without = residual_quadratic_term(calibrated_residual(d, np.zeros_like(template), calibration), inverse_psd)
    return base + with_source - without


def maximize_signal_model(
    params: np.ndarray,
    data: FrequencyData,
    noise,
    calibration: Optional[CalibrationModel] = None,
    max_iter: int = 200,
) -> Tuple[np.ndarray, float]:
    """
    Maximize the likelihood over the extrinsic parameters of one source.

    The intrinsic entries of ``params`` (frequency, sky location, frequency
    derivative) are held fixed. Amplitude and initial phase enter the
    template as a single complex scale ``A exp(-i phi0)`` and are solved in
    closed form; inclination and polarization are searched with bounded
    Nelder-Mead capped at ``max_iter`` iterations.

    Parameters
    ----------
    params : (K,) array
        Starting source parameters; the extrinsic entries are the start point
    data : FrequencyData
        Data the source is fitted to (other sources already subtracted)
    noise : NoiseModel
    calibration : CalibrationModel, optional
    max_iter : int
        Iteration cap of the iterative stage

    Returns
    -------
    best_params : (K,) array
        Improved parameters, or a copy of ``params`` if no improvement was found
    log_likelihood : float
        Log-likelihood at ``best_params``; never lower than at ``params``

    Raises
    ------
    DomainViolation
        If the source does not fit inside the data band
    """
    if max_iter < 1:
        raise ValueError(f"max_iter must be positive, got {max_iter}.")

    codec = ParameterCodec(data.T)
    start = codec.wrap(np.asarray(params, dtype=float))
    start_log_likelihood = _source_log_likelihood(start, data, noise, calibration, codec)

    # Span depends on intrinsic parameters only
    unit = codec.decode(start)
    ucb_alignment(unit, data)
    sl = slice(unit.qmin - data.qmin, unit.qmax - data.qmin)
    inverse_psd = noise.inverse_psd[:, sl]

    d = data.values[:, sl]
    target = "signal" if calibration is None else calibration.target
    y = d if target == "signal" else apply_calibration_model(d, calibration)

    def profile(x: np.ndarray) -> Tuple[float, complex]:
        unit.amp, unit.phi0 = 1.0, 0.0
        unit.cosi = float(np.clip(x[0], -1.0, 1.0))
        unit.psi = float(x[1])
        g = generate_signal_model(unit, data, span=(unit.qmin, unit.qmax))
        if target == "signal":
            g = apply_calibration_model(g, calibration)
        gg = float(np.sum((g.real**2 + g.imag**2) * inverse_psd))
        if gg <= 0.0:
            return 0.0, 0.0j
        gy = complex(np.sum(np.conj(g) * y * inverse_psd))
        return 0.5 * abs(gy) ** 2 / gg, gy / gg

    x0 = np.array([np.clip(start[4], -1.0, 1.0), start[5]])
    result = minimize(
        lambda x: -profile(x)[0],
        x0,
        method="Nelder-Mead",
        bounds=[(-1.0, 1.0), (0.0, np.pi)],
        options={"maxiter": max_iter, "xatol": 1e-6, "fatol": 1e-8},
    )
    cosi, psi = float(np.clip(result.x[0], -1.0, 1.0)), float(result.x[1])
    _, scale = profile(np.array([cosi, psi]))

    if scale == 0 or not np.isfinite(scale):
        logger.debug("Extrinsic maximization found no signal power; keeping start point")
        return start, start_log_likelihood

    best = start.copy()
    best[3] = np.log(abs(scale))
    best[4] = cosi
    best[5] = wrap_angle(psi, np.pi)
    best[6] = wrap_angle(-np.angle(scale), PI2)
    best_log_likelihood = _source_log_likelihood(best, data, noise, calibration, codec)

    if not np.isfinite(best_log_likelihood) or best_log_likelihood <= start_log_likelihood:
        logger.debug(
            "Extrinsic maximization did not improve (%.6f <= %.6f) after %d iterations",
            best_log_likelihood, start_log_likelihood, result.nit,
        )
        return start, start_log_likelihood

    logger.debug(
        "Extrinsic maximization improved log-likelihood %.6f -> %.6f in %d iterations",
        start_log_likelihood, best_log_likelihood, result.nit,
    )
    return best, best_log_likelihood
