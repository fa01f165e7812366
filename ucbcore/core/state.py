"""
Per-chain context for the likelihood machinery.

This module provides the ChainContext dataclass which carries everything a
single chain owns: the data it analyses, its noise and calibration models,
its random number generator, iteration counters and the best model it has
seen. It is passed explicitly to every call that needs chain state.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from ucbcore.core.data import FrequencyData


@dataclass
class ChainContext:
    """
    State owned by one chain.

    Independent chains (e.g. rungs of a parallel-tempering ladder) each hold
    their own context. Nothing in a context is shared across chains; handing
    a model to another chain means handing over a copy.

    Attributes:
        data (FrequencyData):
            Frequency-domain data analysed by this chain.

        noise (Any):
            Active noise model (see ``NoiseModelProtocol``).

        calibration (Any):
            Active calibration model.

        rng (np.random.Generator):
            Random number generator for this chain. Default: unseeded.

        beta (float):
            Inverse temperature applied to likelihood ratios. Default: 1.

        iteration (int):
            Number of candidates scored so far.

        n_accepted (int):
            Number of accepted candidates.

        max_log_likelihood (float):
            Largest log-likelihood seen by this chain. Default: -inf.

        best_model (Optional[Model]):
            Snapshot of the model that achieved ``max_log_likelihood``.

        metadata (Dict[str, Any]):
            Free-form bookkeeping for the driving sampler.
    """

    data: FrequencyData
    noise: Any
    calibration: Any
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    beta: float = 1.0
    iteration: int = 0
    n_accepted: int = 0
    max_log_likelihood: float = -np.inf
    best_model: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.data, FrequencyData):
            raise TypeError(f"data must be a FrequencyData, got {type(self.data).__name__}.")
        if not isinstance(self.rng, np.random.Generator):
            raise TypeError("rng must be a numpy.random.Generator.")
        if self.beta < 0:
            raise ValueError(f"beta must be non-negative, got {self.beta}.")
        psd = getattr(self.noise, "psd", None)
        if psd is not None and psd.shape != self.data.values.shape:
            raise ValueError(
                f"Noise PSD shape {psd.shape} does not match data shape {self.data.values.shape}."
            )

    @property
    def acceptance_rate(self) -> float:
        if self.iteration == 0:
            return 0.0
        return self.n_accepted / self.iteration

    def __repr__(self) -> str:
        return (
            f"ChainContext(n_channel={self.data.n_channel}, n_bin={self.data.n_bin}, "
            f"iteration={self.iteration}, max_log_likelihood={self.max_log_likelihood:.4f})"
        )
