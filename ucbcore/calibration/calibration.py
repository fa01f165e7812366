"""
Instrument calibration model: per-channel amplitude and phase corrections.
"""

from __future__ import annotations

import copy
from typing import Optional, Sequence

import numpy as np

from ucbcore.core.config import CalibrationConfig


class CalibrationModel:
    """
    Complex correction factor ``(1 + dA) * exp(i dphi)`` for each channel.

    Attributes:
        amplitude (np.ndarray): amplitude corrections dA, shape (n_channel,).
        phase (np.ndarray): phase corrections dphi [rad], shape (n_channel,).
        target (str): "signal" or "data", the series the factors multiply.
    """

    def __init__(self, amplitude: Sequence[float], phase: Sequence[float], target: str = "signal"):
        amplitude = np.atleast_1d(np.asarray(amplitude, dtype=float))
        phase = np.atleast_1d(np.asarray(phase, dtype=float))
        if amplitude.ndim != 1 or amplitude.shape != phase.shape:
            raise ValueError(
                f"amplitude and phase must be 1D arrays of equal length, got {amplitude.shape} and {phase.shape}."
            )
        if target not in ("signal", "data"):
            raise ValueError(f"target must be 'signal' or 'data', got {target!r}.")
        self.amplitude = amplitude
        self.phase = phase
        self.target = target
        self._update_factors()

    def _update_factors(self) -> None:
        self.factors = (1.0 + self.amplitude) * (np.cos(self.phase) + 1j * np.sin(self.phase))

    @property
    def n_channel(self) -> int:
        return self.amplitude.shape[0]

    @property
    def is_identity(self) -> bool:
        return bool(np.all(self.amplitude == 0.0) and np.all(self.phase == 0.0))

    @property
    def parameters(self) -> np.ndarray:
        """Sampled parameters as [dA_0, dphi_0, dA_1, dphi_1, ...]."""
        return np.column_stack((self.amplitude, self.phase)).reshape(-1)

    def update(self, values: np.ndarray) -> None:
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.size != 2 * self.n_channel:
            raise ValueError(f"Expected {2 * self.n_channel} calibration parameters, got {values.size}.")
        pairs = values.reshape(self.n_channel, 2)
        self.amplitude = pairs[:, 0].copy()
        self.phase = pairs[:, 1].copy()
        self._update_factors()

    def copy(self) -> "CalibrationModel":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"CalibrationModel(n_channel={self.n_channel}, target={self.target!r})"


def generate_calibration_model(config: CalibrationConfig, n_channel: int, rng: Optional[np.random.Generator] = None) -> CalibrationModel:
    """
    Build the initial calibration model.

    Starts at the uninformative default (unit amplitude, zero phase) unless
    explicit corrections are configured. With ``config.randomize`` the
    corrections are drawn from zero-mean Gaussians of width
    ``sigma_amplitude`` and ``sigma_phase`` using ``rng``.
    """
    if n_channel < 1:
        raise ValueError(f"n_channel must be positive, got {n_channel}.")

    amplitude = np.zeros(n_channel) if config.amplitude is None else np.asarray(config.amplitude, dtype=float)
    phase = np.zeros(n_channel) if config.phase is None else np.asarray(config.phase, dtype=float)

    if config.randomize:
        if rng is None:
            raise ValueError("A random number generator is required when randomize=True.")
        amplitude = amplitude + config.sigma_amplitude * rng.standard_normal(n_channel)
        phase = phase + config.sigma_phase * rng.standard_normal(n_channel)

    if amplitude.shape != (n_channel,) or phase.shape != (n_channel,):
        raise ValueError(f"Calibration corrections must have shape ({n_channel},).")

    return CalibrationModel(amplitude, phase, target=config.target)


def apply_calibration_model(series: np.ndarray, calibration: Optional[CalibrationModel]) -> np.ndarray:
    """
    Multiply each channel of ``series`` by its calibration factor.

    ``series`` has shape (n_channel, n_bin). Returns a new array; the input
    is never modified. ``None`` or an identity calibration returns a copy.
    """
    series = np.asarray(series)
    if calibration is None or calibration.is_identity:
        return series.copy()
    if series.ndim != 2 or series.shape[0] != calibration.n_channel:
        raise ValueError(
            f"Series must have shape ({calibration.n_channel}, n_bin), got {series.shape}."
        )
    return series * calibration.factors[:, np.newaxis]
