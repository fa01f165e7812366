"""
Gaussian (Whittle) log-likelihood of frequency-domain data.

For residual r = d - C s (or C d - s when the calibration targets the data)

    log L = -0.5 * sum_bins ( |r|^2 / S + log(2 pi S) )

summed over channels and bins of the data band. The first term depends on
the signal, the second only on the noise model and is cached between calls
while the noise model is unchanged.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ucbcore.calibration.calibration import apply_calibration_model
from ucbcore.core.data import FrequencyData
from ucbcore.core.errors import NonFiniteLikelihood
from ucbcore.core.model import Model, ModelStatus
from ucbcore.core.state import ChainContext
from ucbcore.utils.logging import get_logger

logger = get_logger(__name__)


def calibrated_residual(data_values: np.ndarray, signal: np.ndarray, calibration) -> np.ndarray:
    """Residual with the calibration applied to whichever series it targets."""
    if calibration is None or calibration.target == "signal":
        return data_values - apply_calibration_model(signal, calibration)
    return apply_calibration_model(data_values, calibration) - signal


def residual_quadratic_term(residual: np.ndarray, inverse_psd: np.ndarray) -> float:
    """-0.5 * sum |r|^2 / S over the given bins."""
    return float(-0.5 * np.sum((residual.real**2 + residual.imag**2) * inverse_psd))


class LikelihoodEvaluator:
    """
    Scores models against one data band.

    The normalization ``-0.5 * sum log(2 pi S)`` is cached for the last noise
    model seen and recomputed when a different noise model, or a new
    ``version`` of the same one, is used.
    """

    def __init__(self, data: FrequencyData):
        self.data = data
        self._norm_noise = None
        self._norm_version: Optional[int] = None
        self._norm_value: float = 0.0

    # ==================== Normalization ====================
    def normalization(self, noise, recompute: bool = False) -> float:
        """Cached ``-0.5 * sum log(2 pi S)`` for ``noise``."""
        stale = noise is not self._norm_noise or noise.version != self._norm_version
        if recompute or stale:
            self._norm_value = float(-0.5 * np.sum(np.log(2.0 * np.pi * noise.psd)))
            self._norm_noise = noise
            self._norm_version = noise.version
        return self._norm_value

    def invalidate(self) -> None:
        """Drop the cached normalization."""
        self._norm_noise = None
        self._norm_version = None

    # ==================== Full evaluation ====================
    def residual(self, model: Model) -> np.ndarray:
        return calibrated_residual(self.data.values, model.signal, model.calibration)

    def gaussian_log_likelihood(self, model: Model) -> float:
        """Signal-dependent part, ``-0.5 * sum |r|^2 / S``, without normalization."""
        return residual_quadratic_term(self.residual(model), model.noise.inverse_psd)

    def gaussian_log_likelihood_constant_norm(self, model: Model) -> float:
        """
        Full log-likelihood reusing the cached normalization.

        Use when many signal proposals are scored against the same noise
        model. Stores the result on ``model.log_likelihood``.
        """
        value = self.gaussian_log_likelihood(model) + self.normalization(model.noise)
        return self._store(model, value)

    def gaussian_log_likelihood_model_norm(self, model: Model) -> float:
        """
        Full log-likelihood with the normalization recomputed.

        Use when the noise model itself changed. Stores the result on
        ``model.log_likelihood``.
        """
        value = self.gaussian_log_likelihood(model) + self.normalization(model.noise, recompute=True)
        return self._store(model, value)

    def _store(self, model: Model, value: float) -> float:
        model.log_likelihood = value
        model.status = ModelStatus.SCORED
        return value

    # ==================== Incremental evaluation ====================
    def delta_log_likelihood(self, model: Model, index: int) -> float:
        """
        Change in log-likelihood caused by the last update of source ``index``.

        Only the bins covered by the old and new spans of that source are
        visited. If ``model.log_likelihood`` holds the value from before the
        update it is advanced by the returned delta.

        Raises:
            ValueError: If the model's last update is not for ``index``.
        """
        update = model.last_update
        if update is None or update.index != index:
            raise ValueError(f"Model has no pending signal update for source {index}.")

        qmin, qmax = update.qmin, update.qmax
        if qmax <= qmin:
            delta = 0.0
        else:
            sl = model.band_slice(qmin, qmax)
            new_signal = model.signal[:, sl]
            old_signal = new_signal.copy()
            if update.new_template is not None:
                old_signal[:, update.new_qmin - qmin:update.new_qmax - qmin] -= update.new_template
            if update.old_template is not None:
                old_signal[:, update.old_qmin - qmin:update.old_qmax - qmin] += update.old_template

            data_values = self.data.values[:, sl]
            inverse_psd = model.noise.inverse_psd[:, sl]
            new_term = residual_quadratic_term(calibrated_residual(data_values, new_signal, model.calibration), inverse_psd)
            old_term = residual_quadratic_term(calibrated_residual(data_values, old_signal, model.calibration), inverse_psd)
            delta = new_term - old_term

        if model.log_likelihood is not None:
            model.log_likelihood = model.log_likelihood + delta
            model.status = ModelStatus.SCORED
        return delta

    # ==================== Bookkeeping ====================
    @staticmethod
    def check_finite(value: float) -> float:
        """Return ``value`` or raise ``NonFiniteLikelihood``."""
        if not np.isfinite(value):
            raise NonFiniteLikelihood(f"Log-likelihood is not finite: {value!r}.")
        return value

    def update_max_log_likelihood(self, model: Model, context: ChainContext) -> bool:
        return update_max_log_likelihood(model, context)


def update_max_log_likelihood(model: Model, context: ChainContext) -> bool:
    """
    Raise the chain's running maximum to ``model.log_likelihood`` if larger.

    The maximum only changes on a strictly greater, finite value, in which
    case a snapshot of ``model`` becomes ``context.best_model``.

    Returns:
        Whether the maximum changed.
    """
    value = model.log_likelihood
    improved = value is not None and np.isfinite(value) and value > context.max_log_likelihood
    if improved:
        context.max_log_likelihood = float(value)
        context.best_model = model.copy()
        context.best_model.log_likelihood = value
        context.best_model.status = model.status
        logger.info("New maximum log-likelihood %.6f with %d source(s)", value, model.n_live)
    model.max_log_likelihood = context.max_log_likelihood
    return bool(improved)
