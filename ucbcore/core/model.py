"""
Model container for the likelihood machinery.

A ``Model`` is an arena of ``Source`` slots with stable indices and a live
bitmap, the summed signal those sources produce over the data band, and the
noise and calibration models it is scored against. The sampler creates a
candidate model per iteration by copying the current one and mutating it.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional, Protocol, runtime_checkable

import numpy as np

from ucbcore.core.data import FrequencyData
from ucbcore.core.source import Source


class ModelStatus(Enum):
    """Lifecycle of a candidate model."""

    PROPOSED = "proposed"
    SYNTHESIZED = "synthesized"
    SCORED = "scored"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@runtime_checkable
class NoiseModelProtocol(Protocol):
    """
    Interface shared by all noise model representations.

    ``psd`` holds the noise PSD over the data band, shape (n_channel, n_bin);
    ``version`` changes whenever ``psd`` does.
    """

    psd: np.ndarray
    version: int

    def evaluate(self, bin: int, channel: int = 0) -> float:
        """PSD at absolute bin index ``bin``."""
        ...


@dataclass
class SignalUpdate:
    """Record of the last single-source change applied to a model's signal."""

    index: int
    old_qmin: int
    old_qmax: int
    old_template: Optional[np.ndarray]
    new_qmin: int
    new_qmax: int
    new_template: Optional[np.ndarray]

    @property
    def qmin(self) -> int:
        """First bin touched by the update (union of old and new spans)."""
        spans = [q for q, t in ((self.old_qmin, self.old_template), (self.new_qmin, self.new_template)) if t is not None]
        return min(spans) if spans else 0

    @property
    def qmax(self) -> int:
        spans = [q for q, t in ((self.old_qmax, self.old_template), (self.new_qmax, self.new_template)) if t is not None]
        return max(spans) if spans else 0


class Model:
    """
    Variable-dimension collection of sources scored against one data band.

    Attributes:
        sources: slot arena; retired slots hold None.
        live: boolean bitmap over the slots.
        signal: summed model signal over the data band, shape (n_channel, n_bin).
        noise: active noise model (read-shared by all sources).
        calibration: active calibration model.
        log_likelihood: cached total log-likelihood (None until scored).
        max_log_likelihood: running maximum at the time of scoring.
        status: ``ModelStatus`` of this candidate.
        last_update: ``SignalUpdate`` of the most recent single-source change.
        violation: ``DomainViolation`` that stopped the last proposal, if any.
    """

    def __init__(self, data: FrequencyData, noise: Any, calibration: Any):
        self.qmin = data.qmin
        self.n_channel = data.n_channel
        self.n_bin = data.n_bin
        self.sources: List[Optional[Source]] = []
        self.live = np.zeros(0, dtype=bool)
        self.signal = np.zeros((data.n_channel, data.n_bin), dtype=np.complex128)
        self.noise = noise
        self.calibration = calibration
        self.log_likelihood: Optional[float] = None
        self.max_log_likelihood: float = -np.inf
        self.status = ModelStatus.PROPOSED
        self.last_update: Optional[SignalUpdate] = None
        self.violation: Optional[Exception] = None

    # ==================== Arena ====================
    @property
    def n_live(self) -> int:
        return int(np.count_nonzero(self.live))

    def __len__(self) -> int:
        return self.n_live

    def __iter__(self) -> Iterator[Source]:
        for i in self.live_indices():
            yield self.sources[i]

    def live_indices(self) -> np.ndarray:
        return np.flatnonzero(self.live)

    def is_live(self, index: int) -> bool:
        return 0 <= index < len(self.sources) and bool(self.live[index])

    def allocate(self) -> int:
        """Return the lowest free slot, growing the arena if needed."""
        dead = np.flatnonzero(~self.live)
        if dead.size > 0:
            return int(dead[0])
        self.sources.append(None)
        self.live = np.append(self.live, False)
        return len(self.sources) - 1

    def add_source(self, source: Source, index: Optional[int] = None) -> int:
        """Place ``source`` in a free slot and mark it live."""
        if index is None:
            index = self.allocate()
        elif index >= len(self.sources):
            raise IndexError(f"Slot {index} does not exist (arena size {len(self.sources)}).")
        elif self.live[index]:
            raise ValueError(f"Slot {index} is already live.")
        self.sources[index] = source
        self.live[index] = True
        return index

    def remove_source(self, index: int) -> Source:
        """Retire slot ``index`` and return the source it held."""
        if not self.is_live(index):
            raise IndexError(f"Slot {index} is not live.")
        source = self.sources[index]
        self.sources[index] = None
        self.live[index] = False
        return source

    def source(self, index: int) -> Source:
        if not self.is_live(index):
            raise IndexError(f"Slot {index} is not live.")
        return self.sources[index]

    # ==================== Signal ====================
    def band_slice(self, qmin: int, qmax: int) -> slice:
        """Slice of the data band covering absolute bins [qmin, qmax)."""
        return slice(qmin - self.qmin, qmax - self.qmin)

    def copy(self) -> "Model":
        """
        Independent copy for use as a candidate.

        Sources and signal are deep copied. Noise and calibration models are
        shared; replace them on the copy before mutating.
        """
        new = copy.copy(self)
        new.sources = [None if s is None else s.copy() for s in self.sources]
        new.live = self.live.copy()
        new.signal = self.signal.copy()
        new.last_update = None
        new.violation = None
        new.status = ModelStatus.PROPOSED
        return new

    def __repr__(self) -> str:
        ll = f"{self.log_likelihood:.4f}" if self.log_likelihood is not None else "?"
        return f"Model(n_live={self.n_live}, log_likelihood={ll}, status={self.status.value})"
