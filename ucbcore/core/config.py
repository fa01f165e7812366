"""
Configuration records for the noise and calibration models.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

NOISE_KINDS = ("flat", "spline", "baseline")
CALIBRATION_TARGETS = ("signal", "data")


@dataclass
class NoiseConfig:
    """
    Settings used by ``generate_noise_model``.

    Attributes:
        kind (str):
            One of "flat", "spline" or "baseline".

        levels (Optional[Sequence[float]]):
            Flat PSD level per channel. A single value is broadcast to all
            channels. Default: None (1.0 per channel).

        spline_frequencies (Optional[np.ndarray]):
            Control-point frequencies [Hz] for the spline model. Default:
            ``n_spline`` points evenly spaced over the data band.

        spline_log_psd (Optional[np.ndarray]):
            Natural-log PSD at the control points, shape (n_channel, n_spline)
            or (n_spline,). Default: fitted to the analytic instrument noise.

        n_spline (int):
            Number of control points when ``spline_frequencies`` is not given.

        psd (Optional[np.ndarray]):
            Externally supplied baseline PSD, shape (n_channel, n_bin) or
            (n_bin,). Default: analytic instrument noise.

        eta (Optional[Sequence[float]]):
            Per-channel multiplicative level for the baseline model.
    """

    kind: str = "flat"
    levels: Optional[Sequence[float]] = None
    spline_frequencies: Optional[np.ndarray] = None
    spline_log_psd: Optional[np.ndarray] = None
    n_spline: int = 9
    psd: Optional[np.ndarray] = None
    eta: Optional[Sequence[float]] = None

    def __post_init__(self) -> None:
        if self.kind not in NOISE_KINDS:
            raise ValueError(f"Noise kind must be one of {NOISE_KINDS}, got {self.kind!r}.")
        if self.n_spline < 2:
            raise ValueError(f"n_spline must be at least 2, got {self.n_spline}.")


@dataclass
class CalibrationConfig:
    """
    Settings used by ``generate_calibration_model``.

    ``target`` selects which series the correction is applied to. It is
    applied to exactly one of them.
    """

    sigma_amplitude: float = 0.1
    sigma_phase: float = 0.1
    target: str = "signal"
    randomize: bool = False
    amplitude: Optional[Sequence[float]] = field(default=None)
    phase: Optional[Sequence[float]] = field(default=None)

    def __post_init__(self) -> None:
        if self.target not in CALIBRATION_TARGETS:
            raise ValueError(
                f"Calibration target must be one of {CALIBRATION_TARGETS}, got {self.target!r}."
            )
        if self.sigma_amplitude < 0 or self.sigma_phase < 0:
            raise ValueError("Calibration prior widths must be non-negative.")
