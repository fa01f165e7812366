"""
Noise power spectral density models
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np
from scipy.interpolate import CubicSpline

from ucbcore.core.config import NoiseConfig
from ucbcore.core.data import FrequencyData
from ucbcore.core.errors import NonPositivePSD
from ucbcore.utils.logging import get_logger
from ucbcore.utils.tools import lisa_ae_noise

logger = get_logger(__name__)


def _per_channel(values: Optional[Sequence[float]], n_channel: int, default: float) -> np.ndarray:
    """Broadcast a scalar or per-channel sequence to shape (n_channel,)."""
    if values is None:
        return np.full(n_channel, default, dtype=float)
    arr = np.atleast_1d(np.asarray(values, dtype=float))
    if arr.size == 1:
        return np.full(n_channel, arr.item())
    if arr.shape != (n_channel,):
        raise ValueError(f"Expected 1 or {n_channel} values, got shape {arr.shape}.")
    return arr.copy()


class NoiseModel(ABC):
    """
    Base class for noise models over a fixed data band.

    Subclasses implement ``_compute_psd`` and the handling of their sampled
    parameters. The PSD is recomputed and validated on construction and on
    every ``update``; ``version`` is bumped each time so cached likelihood
    normalizations can be invalidated.
    """

    kind = "base"

    def __init__(self, data: FrequencyData):
        self.qmin = data.qmin
        self.T = data.T
        self.n_channel = data.n_channel
        self.frequencies = data.frequencies
        self.version = 0
        self.psd = np.empty((0, 0))

    @abstractmethod
    def _compute_psd(self) -> np.ndarray:
        """PSD over the band, shape (n_channel, n_bin)."""

    @property
    @abstractmethod
    def parameters(self) -> np.ndarray:
        """Flat array of the sampled noise parameters."""

    @abstractmethod
    def _set_parameters(self, values: np.ndarray) -> None:
        ...

    def _refresh(self) -> None:
        psd = np.asarray(self._compute_psd(), dtype=float)
        bad = ~np.isfinite(psd) | (psd <= 0)
        if np.any(bad):
            channel, n = np.argwhere(bad)[0]
            raise NonPositivePSD(
                f"{self.kind} noise model gives PSD {psd[channel, n]!r} at bin {self.qmin + n}, "
                f"channel {channel}; {int(bad.sum())} invalid bin(s) in total."
            )
        self.psd = psd
        self.inverse_psd = 1.0 / psd
        self.version += 1

    def evaluate(self, bin: int, channel: int = 0) -> float:
        """PSD at absolute bin ``bin`` (always > 0)."""
        n = bin - self.qmin
        if n < 0 or n >= self.psd.shape[1]:
            raise IndexError(f"Bin {bin} outside noise band [{self.qmin}, {self.qmin + self.psd.shape[1]}).")
        return float(self.psd[channel, n])

    def update(self, values: np.ndarray) -> None:
        """
        Replace the sampled parameters and recompute the PSD in place.

        Raises:
            NonPositivePSD: If the new parameters give an invalid PSD. The
                model keeps its previous parameters, PSD and version.
        """
        values = np.asarray(values, dtype=float)
        previous = self.parameters
        if values.size != previous.size:
            raise ValueError(
                f"{self.kind} noise model takes {previous.size} parameters, got {values.size}."
            )
        self._set_parameters(values.reshape(previous.shape))
        try:
            self._refresh()
        except NonPositivePSD:
            self._set_parameters(previous)
            raise
        logger.debug("%s noise model updated to version %d", self.kind, self.version)

    def copy(self) -> "NoiseModel":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n_channel={self.n_channel}, n_bin={self.psd.shape[1]}, version={self.version})"


class FlatNoiseModel(NoiseModel):
    """Constant PSD level per channel."""

    kind = "flat"

    def __init__(self, data: FrequencyData, levels: Optional[Sequence[float]] = None):
        super().__init__(data)
        self.levels = _per_channel(levels, data.n_channel, 1.0)
        self._n_bin = data.n_bin
        self._refresh()

    def _compute_psd(self) -> np.ndarray:
        return np.repeat(self.levels[:, np.newaxis], self._n_bin, axis=1)

    @property
    def parameters(self) -> np.ndarray:
        return self.levels.copy()

    def _set_parameters(self, values: np.ndarray) -> None:
        self.levels = values.astype(float).copy()


class SplineNoiseModel(NoiseModel):
    """
    Smooth PSD from a natural cubic spline through log-PSD control points.

    Control-point frequencies stay fixed; the log-PSD values at them are the
    sampled parameters, shape (n_channel, n_spline).
    """

    kind = "spline"

    def __init__(self, data: FrequencyData, spline_frequencies: np.ndarray, spline_log_psd: np.ndarray):
        super().__init__(data)
        x = np.asarray(spline_frequencies, dtype=float)
        if x.ndim != 1 or x.size < 2:
            raise ValueError("spline_frequencies must be a 1D array with at least 2 points.")
        if np.any(np.diff(x) <= 0):
            raise ValueError("spline_frequencies must be strictly increasing.")
        y = np.asarray(spline_log_psd, dtype=float)
        if y.ndim == 1:
            y = np.repeat(y[np.newaxis, :], data.n_channel, axis=0)
        if y.shape != (data.n_channel, x.size):
            raise ValueError(
                f"spline_log_psd must have shape ({data.n_channel}, {x.size}), got {y.shape}."
            )
        self.spline_frequencies = x
        self.spline_log_psd = y.copy()
        self._refresh()

    def _compute_psd(self) -> np.ndarray:
        spline = CubicSpline(self.spline_frequencies, self.spline_log_psd, axis=1, bc_type="natural")
        return np.exp(spline(self.frequencies))

    @property
    def parameters(self) -> np.ndarray:
        return self.spline_log_psd.copy()

    def _set_parameters(self, values: np.ndarray) -> None:
        self.spline_log_psd = values.astype(float).copy()


class BaselineNoiseModel(NoiseModel):
    """
    Fixed PSD shape scaled by a per-channel level ``eta``.

    The shape is either supplied by the caller or taken from the analytic
    instrument noise curve.
    """

    kind = "baseline"

    def __init__(self, data: FrequencyData, psd: Optional[np.ndarray] = None, eta: Optional[Sequence[float]] = None):
        super().__init__(data)
        if psd is None:
            if np.any(self.frequencies <= 0):
                raise ValueError("Analytic instrument noise needs strictly positive frequencies.")
            shape = np.repeat(lisa_ae_noise(self.frequencies)[np.newaxis, :], data.n_channel, axis=0)
        else:
            shape = np.asarray(psd, dtype=float)
            if shape.ndim == 1:
                shape = np.repeat(shape[np.newaxis, :], data.n_channel, axis=0)
            if shape.shape != data.values.shape:
                raise ValueError(f"Baseline PSD must have shape {data.values.shape}, got {shape.shape}.")
        self.baseline = shape.copy()
        self.eta = _per_channel(eta, data.n_channel, 1.0)
        self._refresh()

    def _compute_psd(self) -> np.ndarray:
        return self.baseline * self.eta[:, np.newaxis]

    @property
    def parameters(self) -> np.ndarray:
        return self.eta.copy()

    def _set_parameters(self, values: np.ndarray) -> None:
        self.eta = values.astype(float).copy()


def generate_noise_model(config: NoiseConfig, data: FrequencyData) -> NoiseModel:
    """
    Build the initial noise model described by ``config`` over ``data``'s band.

    Raises:
        NonPositivePSD: If the configured PSD is not strictly positive.
    """
    if config.kind == "flat":
        model = FlatNoiseModel(data, levels=config.levels)

    elif config.kind == "spline":
        if config.spline_frequencies is None:
            f = data.frequencies
            x = np.linspace(f[0], f[-1], config.n_spline)
        else:
            x = np.asarray(config.spline_frequencies, dtype=float)
        if config.spline_log_psd is None:
            if np.any(x <= 0):
                raise ValueError("Default spline fit needs strictly positive control frequencies.")
            y = np.log(lisa_ae_noise(x))
        else:
            y = config.spline_log_psd
        model = SplineNoiseModel(data, spline_frequencies=x, spline_log_psd=y)

    else:
        model = BaselineNoiseModel(data, psd=config.psd, eta=config.eta)

    logger.debug("Generated %r", model)
    return model
