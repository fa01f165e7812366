"""
Frequency-domain waveform for slowly evolving, circular ultra-compact binaries.

The template is built with a fast/slow decomposition: the slowly varying part
of the signal (amplitude evolution, antenna-pattern and Doppler modulation
from the detector's yearly orbit) is sampled on ``bandwidth`` points across
the observation, heterodyned by the carrier bin ``q = floor(f0 T)`` and
Fourier transformed. The result populates the bins
``[q - bandwidth/2, q + bandwidth/2)`` and is zero elsewhere.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ucbcore.core.data import FrequencyData
from ucbcore.core.errors import DomainViolation
from ucbcore.core.model import Model, ModelStatus, SignalUpdate
from ucbcore.core.source import UCB_MODEL_NP, ParameterCodec, Source
from ucbcore.utils.logging import get_logger
from ucbcore.utils.tools import (
    AU_SECONDS,
    PI2,
    YEAR,
    fourier_nwip,
    largest_power_of_two,
    next_power_of_two,
)

logger = get_logger(__name__)

MIN_HALF_BANDWIDTH = 16


def ucb_bandwidth(f0: float, fdot: float, costheta: float, T: float, n_bin: int, min_half_bandwidth: int = MIN_HALF_BANDWIDTH) -> int:
    """
    Number of bins occupied by a source.

    Half-width is the power of two covering the Doppler spread from the
    yearly orbit plus the drift from frequency evolution, clamped to
    ``[min_half_bandwidth, largest power of two <= n_bin/2]``. Returns the
    full (even) width.
    """
    n_max = largest_power_of_two(max(n_bin // 2, 1))
    sintheta = np.sqrt(max(0.0, 1.0 - costheta * costheta))
    bw = 2.0 * T * ((4.0 + PI2 * f0 * AU_SECONDS * sintheta) / YEAR + abs(fdot) * T)
    half = min(next_power_of_two(bw), n_max)
    half = max(half, min_half_bandwidth)
    return 2 * half


def ucb_alignment(source: Source, data: FrequencyData) -> Tuple[int, int]:
    """
    Place the source in the data band.

    Sets ``source.bandwidth``, ``source.qmin`` and ``source.qmax``.

    Raises:
        DomainViolation: If the span leaves the data band.
    """
    bandwidth = ucb_bandwidth(source.f0, source.fdot, source.costheta, data.T, data.n_bin)
    q = int(np.floor(source.f0 * data.T))
    qmin = q - bandwidth // 2
    qmax = qmin + bandwidth
    if not data.contains(qmin, qmax):
        raise DomainViolation(qmin, qmax, data.qmin, data.qmax)
    source.bandwidth = bandwidth
    source.qmin = qmin
    source.qmax = qmax
    return qmin, qmax


def antenna_patterns(costheta: float, phi: float, psi: float, alpha: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Plus and cross antenna patterns for detector orientation ``alpha``.

    ``alpha`` may be any shape; returned arrays match it.
    """
    ang = 2.0 * (phi - alpha)
    a = 0.5 * (1.0 + costheta * costheta) * np.cos(ang)
    b = costheta * np.sin(ang)
    cos2psi = np.cos(2.0 * psi)
    sin2psi = np.sin(2.0 * psi)
    fplus = a * cos2psi - b * sin2psi
    fcross = a * sin2psi + b * cos2psi
    return fplus, fcross


def ucb_waveform(source: Source, T: float, t0: float, bandwidth: int, n_channel: int) -> np.ndarray:
    """
    Render the template of ``source`` over ``bandwidth`` bins.

    Parameters
    ----------
    source : Source
        Physical parameters of the binary
    T : float
        Observation time [s]
    t0 : float
        Start time [s]
    bandwidth : int
        Even number of bins to render, centred on the carrier bin
    n_channel : int
        Number of data channels; channel c sees the detector rotated by c*pi/4

    Returns
    -------
    template : (n_channel, bandwidth) complex array
    """
    f0 = source.f0
    fdot = source.fdot
    q = np.floor(f0 * T)

    t = t0 + T * np.arange(bandwidth) / bandwidth
    orbit_phase = PI2 * t / YEAR

    sintheta = np.sqrt(max(0.0, 1.0 - source.costheta**2))
    doppler = PI2 * f0 * AU_SECONDS * sintheta * np.cos(orbit_phase - source.phi)

    # carrier removed in bin units to keep the phase well conditioned
    phase = PI2 * (f0 * T - q) * t / T + np.pi * fdot * t * t + doppler - source.phi0
    phase = phase + PI2 * q * t0 / T
    aevol = 1.0 + 2.0 / 3.0 * fdot / f0 * t

    aplus = source.amp * (1.0 + source.cosi**2)
    across = -2.0 * source.amp * source.cosi

    alpha = orbit_phase[np.newaxis, :] + (np.pi / 4.0) * np.arange(n_channel)[:, np.newaxis]
    fplus, fcross = antenna_patterns(source.costheta, source.phi, source.psi, alpha)

    slow = 0.5 * aevol * (aplus * fplus - 1j * across * fcross) * np.exp(1j * phase)
    spectrum = np.fft.fftshift(np.fft.fft(slow, axis=1), axes=1)
    return spectrum * (np.sqrt(T) / bandwidth)


def generate_signal_model(source: Source, data: FrequencyData, span: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """
    Render ``source`` into its occupied bins of ``data``'s band.

    The span is computed by ``ucb_alignment`` unless ``span=(qmin, qmax)`` is
    given, in which case the template is rendered on that fixed span (used
    for numerical derivatives). The template is cached on the source.

    Raises:
        DomainViolation: If the span leaves the data band.
    """
    if span is None:
        ucb_alignment(source, data)
    else:
        qmin, qmax = span
        if not data.contains(qmin, qmax):
            raise DomainViolation(qmin, qmax, data.qmin, data.qmax)
        source.qmin, source.qmax, source.bandwidth = qmin, qmax, qmax - qmin

    template = ucb_waveform(source, data.T, data.t0, source.bandwidth, data.n_channel)
    if span is not None:
        # shift from the natural carrier-centred placement to the requested span
        natural_qmin = int(np.floor(source.f0 * data.T)) - source.bandwidth // 2
        template = np.roll(template, natural_qmin - span[0], axis=1)
    source.template = template
    return template


def _accumulate(model: Model, source: Source, sign: float) -> None:
    if source is None or not source.has_template:
        return
    model.signal[:, model.band_slice(source.qmin, source.qmax)] += sign * source.template


def generate_model_signal(model: Model, data: FrequencyData) -> np.ndarray:
    """
    Rebuild the summed signal of every live source from scratch.

    Raises:
        DomainViolation: If any live source leaves the data band.
    """
    signal = np.zeros((data.n_channel, data.n_bin), dtype=np.complex128)
    for source in model:
        generate_signal_model(source, data)
        signal[:, model.band_slice(source.qmin, source.qmax)] += source.template
    model.signal = signal
    model.last_update = None
    model.status = ModelStatus.SYNTHESIZED
    return signal


def update_signal_model(
    model: Model,
    index: Optional[int],
    new_params: Optional[np.ndarray],
    data: FrequencyData,
    codec: Optional[ParameterCodec] = None,
) -> SignalUpdate:
    """
    Replace a single source and patch the model signal over its bins only.

    ``index`` names the slot to change. A dead slot (or ``None``) with
    ``new_params`` adds a source; ``new_params=None`` removes the live source
    at ``index``. The model is left untouched if the new source cannot be
    rendered.

    Returns:
        The ``SignalUpdate`` recorded on ``model.last_update``.

    Raises:
        DomainViolation: If the new source leaves the data band.
        SchemaMismatch: If ``new_params`` has the wrong length.
    """
    if codec is None:
        codec = ParameterCodec(data.T)
    if index is not None and not 0 <= index < len(model.sources):
        raise IndexError(f"Slot {index} does not exist (arena size {len(model.sources)}).")

    new_source = None
    if new_params is not None:
        new_source = codec.decode(new_params)
        generate_signal_model(new_source, data)
    elif index is None or not model.is_live(index):
        raise ValueError("Removing a source needs the index of a live slot.")

    if index is None:
        index = model.allocate()
    old_source = model.sources[index] if model.is_live(index) else None

    _accumulate(model, old_source, -1.0)
    _accumulate(model, new_source, +1.0)

    if old_source is not None:
        model.remove_source(index)
    if new_source is not None:
        model.add_source(new_source, index)

    update = SignalUpdate(
        index=index,
        old_qmin=old_source.qmin if old_source is not None else 0,
        old_qmax=old_source.qmax if old_source is not None else 0,
        old_template=old_source.template if old_source is not None else None,
        new_qmin=new_source.qmin if new_source is not None else 0,
        new_qmax=new_source.qmax if new_source is not None else 0,
        new_template=new_source.template if new_source is not None else None,
    )
    model.last_update = update
    model.status = ModelStatus.SYNTHESIZED
    return update


def _band_template(source: Source, data: FrequencyData) -> np.ndarray:
    full = np.zeros((data.n_channel, data.n_bin), dtype=np.complex128)
    full[:, source.qmin - data.qmin:source.qmax - data.qmin] = source.template
    return full


def _overlaps(a: Source, b: Source, data: FrequencyData, noise) -> Tuple[float, float, float]:
    ha = _band_template(a, data)
    hb = _band_template(b, data)
    inv = noise.inverse_psd
    return fourier_nwip(ha, ha, inv), fourier_nwip(hb, hb, inv), fourier_nwip(ha, hb, inv)


def snr(source: Source, noise) -> float:
    """Optimal SNR, sqrt((h|h)), of a rendered source."""
    if not source.has_template:
        raise ValueError("Source has no rendered template.")
    sl = slice(source.qmin - noise.qmin, source.qmax - noise.qmin)
    return float(np.sqrt(fourier_nwip(source.template, source.template, noise.inverse_psd[:, sl])))


def waveform_match(a: Source, b: Source, data: FrequencyData, noise) -> float:
    """Normalised overlap (a|b) / sqrt((a|a)(b|b))."""
    aa, bb, ab = _overlaps(a, b, data, noise)
    return ab / np.sqrt(aa * bb)


def waveform_distance(a: Source, b: Source, data: FrequencyData, noise) -> float:
    """Distance (a-b|a-b)/4 between two rendered sources."""
    aa, bb, ab = _overlaps(a, b, data, noise)
    return (aa + bb - 2.0 * ab) / 4.0


def ucb_fisher(source: Source, data: FrequencyData, noise, epsilon: float = 1.0e-6) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Fisher information matrix of the flat parameters by one-sided differencing.

    Derivatives are taken on the source's current span so all perturbed
    templates share the same bins.

    Returns
    -------
    fisher : (K, K) array
    evalues : (K,) array, eigenvalues of ``fisher``
    evectors : (K, K) array, eigenvectors as columns
    """
    codec = ParameterCodec(data.T)
    if not source.has_template:
        generate_signal_model(source, data)
    params = source.params if source.params is not None else codec.encode(source)
    span = (source.qmin, source.qmax)
    sl = slice(span[0] - data.qmin, span[1] - data.qmin)
    inv = noise.inverse_psd[:, sl]

    derivatives = []
    for i in range(UCB_MODEL_NP):
        perturbed = np.array(params, dtype=float)
        perturbed[i] += epsilon
        # cosines at the top of their range take a backward step
        if i in (1, 4) and perturbed[i] > 1.0:
            perturbed[i] = params[i] - epsilon
        step = perturbed[i] - params[i]
        wave = codec.decode(perturbed)
        generate_signal_model(wave, data, span=span)
        derivatives.append((wave.template - source.template) / step)

    fisher = np.empty((UCB_MODEL_NP, UCB_MODEL_NP))
    for i in range(UCB_MODEL_NP):
        for j in range(i, UCB_MODEL_NP):
            fisher[i, j] = fisher[j, i] = fourier_nwip(derivatives[i], derivatives[j], inv)

    evalues, evectors = np.linalg.eigh(fisher)
    return fisher, evalues, evectors
