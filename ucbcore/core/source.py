"""
Source record and the bijection between sources and flat parameter arrays.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from typing import Optional, Tuple

import numpy as np

from ucbcore.core.errors import SchemaMismatch
from ucbcore.utils.tools import PI2, wrap_angle

# Ordered parameter schema of the flat array
PARAMETER_NAMES: Tuple[str, ...] = (
    "f0T",
    "costheta",
    "phi",
    "logA",
    "cosi",
    "psi",
    "phi0",
    "fdotT2",
)
UCB_MODEL_NP = len(PARAMETER_NAMES)

INTRINSIC_INDICES = (0, 1, 2, 7)
EXTRINSIC_INDICES = (3, 4, 5, 6)

# Canonical periods of the angular entries
ANGLE_PERIODS = {2: PI2, 5: np.pi, 6: PI2}


@dataclass
class Source:
    """
    A single ultra-compact binary.

    Attributes:
        f0 (float): GW frequency at the start of the observation [Hz].
        fdot (float): Frequency derivative [Hz/s].
        costheta (float): Cosine of the ecliptic co-latitude.
        phi (float): Ecliptic longitude [rad].
        amp (float): GW amplitude.
        cosi (float): Cosine of the inclination.
        psi (float): Polarization angle [rad].
        phi0 (float): Initial phase [rad].

    Cached (not part of equality):
        params: flat parameter array the source was decoded from.
        qmin, qmax, bandwidth: occupied absolute bin span [qmin, qmax).
        template: rendered waveform over the span, shape (n_channel, bandwidth).
    """

    f0: float
    fdot: float
    costheta: float
    phi: float
    amp: float
    cosi: float
    psi: float
    phi0: float

    params: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    qmin: int = field(default=0, compare=False)
    qmax: int = field(default=0, compare=False)
    bandwidth: int = field(default=0, compare=False)
    template: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    @property
    def span(self) -> Tuple[int, int]:
        return self.qmin, self.qmax

    @property
    def has_template(self) -> bool:
        return self.template is not None and self.bandwidth > 0

    def copy(self) -> "Source":
        return copy.deepcopy(self)

    def allclose(self, other: "Source", rtol: float = 1e-12, atol: float = 1e-14) -> bool:
        """Compare physical parameters, treating wrapped angles as equal."""
        for f in fields(self):
            if not f.compare:
                continue
            a = getattr(self, f.name)
            b = getattr(other, f.name)
            if f.name in ("phi", "phi0"):
                a, b = wrap_angle(a), wrap_angle(b)
                d = abs(a - b)
                if min(d, PI2 - d) > atol + rtol * PI2:
                    return False
            elif f.name == "psi":
                a, b = wrap_angle(a, np.pi), wrap_angle(b, np.pi)
                d = abs(a - b)
                if min(d, np.pi - d) > atol + rtol * np.pi:
                    return False
            elif not np.isclose(a, b, rtol=rtol, atol=atol):
                return False
        return True


class ParameterCodec:
    """
    Bijective mapping between a ``Source`` and its flat parameter array.

    Frequency entries are scaled by the observation time (``f0 * T``,
    ``fdot * T**2``) and the amplitude is stored as ``log(A)``. Angles are
    wrapped on decode; no other range checks are made.
    """

    n_params = UCB_MODEL_NP
    names = PARAMETER_NAMES

    def __init__(self, T: float):
        if T <= 0:
            raise ValueError(f"Observation time must be positive, got {T}.")
        self.T = float(T)

    def encode(self, source: Source) -> np.ndarray:
        """Source -> float64 array of length ``UCB_MODEL_NP``."""
        T = self.T
        return np.array(
            [
                source.f0 * T,
                source.costheta,
                source.phi,
                np.log(source.amp),
                source.cosi,
                source.psi,
                source.phi0,
                source.fdot * T * T,
            ],
            dtype=np.float64,
        )

    def decode(self, params: np.ndarray) -> Source:
        """Float array of length ``UCB_MODEL_NP`` -> Source."""
        params = np.asarray(params, dtype=np.float64).reshape(-1)
        if params.shape[0] != self.n_params:
            raise SchemaMismatch(self.n_params, params.shape[0])

        params = self.wrap(params)
        T = self.T
        return Source(
            f0=params[0] / T,
            costheta=params[1],
            phi=params[2],
            amp=float(np.exp(params[3])),
            cosi=params[4],
            psi=params[5],
            phi0=params[6],
            fdot=params[7] / (T * T),
            params=params,
        )

    def wrap(self, params: np.ndarray) -> np.ndarray:
        """Copy of ``params`` with angular entries in their canonical range."""
        params = np.array(params, dtype=np.float64)
        for i, period in ANGLE_PERIODS.items():
            params[i] = wrap_angle(params[i], period)
        return params

    # Names kept for callers that think in terms of the array layout
    def map_params_to_array(self, source: Source) -> np.ndarray:
        return self.encode(source)

    def map_array_to_params(self, params: np.ndarray) -> Source:
        return self.decode(params)
