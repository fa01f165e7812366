"""
Frequency-domain data container.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class FrequencyData:
    """
    Complex frequency series over a contiguous band of Fourier bins.

    Attributes:
        values (np.ndarray):
            Complex data, shape (n_channel, n_bin). A 1D array is promoted to
            a single channel.

        T (float):
            Observation time [s]. Bin q sits at frequency q / T.

        qmin (int):
            Absolute index of the first bin in ``values``.

        t0 (float):
            Start time of the observation [s]. Default: 0.
    """

    values: np.ndarray
    T: float
    qmin: int
    t0: float = 0.0

    def __post_init__(self) -> None:
        values = np.asarray(self.values)
        if values.ndim == 1:
            values = values[np.newaxis, :]
        if values.ndim != 2:
            raise ValueError(f"values must have shape (n_channel, n_bin), got {values.shape}.")
        if values.shape[1] == 0:
            raise ValueError("values must contain at least one frequency bin.")
        if self.T <= 0:
            raise ValueError(f"Observation time must be positive, got {self.T}.")
        if self.qmin < 0:
            raise ValueError(f"qmin must be non-negative, got {self.qmin}.")
        self.values = values.astype(np.complex128)
        self.qmin = int(self.qmin)

    @property
    def n_channel(self) -> int:
        return self.values.shape[0]

    @property
    def n_bin(self) -> int:
        return self.values.shape[1]

    @property
    def qmax(self) -> int:
        """One past the last absolute bin index."""
        return self.qmin + self.n_bin

    @property
    def frequencies(self) -> np.ndarray:
        return np.arange(self.qmin, self.qmax) / self.T

    def contains(self, qmin: int, qmax: int) -> bool:
        """Whether bins [qmin, qmax) lie inside the band."""
        return qmin >= self.qmin and qmax <= self.qmax

    def copy(self) -> "FrequencyData":
        return FrequencyData(values=self.values.copy(), T=self.T, qmin=self.qmin, t0=self.t0)

    @classmethod
    def zeros(cls, T: float, qmin: int, n_bin: int, n_channel: int = 2, t0: float = 0.0) -> "FrequencyData":
        """Empty (noise and signal free) data band."""
        return cls(values=np.zeros((n_channel, n_bin), dtype=np.complex128), T=T, qmin=qmin, t0=t0)
