"""
Class file for the per-chain model engine.

The engine is the surface the outer sampler talks to. Each call works on
one candidate model and moves it through

    PROPOSED -> SYNTHESIZED -> SCORED -> ACCEPTED | REJECTED

Structural errors (wrong parameter length, non-positive PSD) propagate.
Sources that leave the data band and non-finite likelihoods are scored as
-inf so the sampler simply rejects them.
"""

from typing import Iterable, Optional

import numpy as np

from ucbcore.core.data import FrequencyData
from ucbcore.core.errors import DomainViolation, NonFiniteLikelihood
from ucbcore.core.model import Model, ModelStatus
from ucbcore.core.source import ParameterCodec
from ucbcore.core.state import ChainContext
from ucbcore.kernels.comparison import PriorSpec, compare_model
from ucbcore.likelihoods.gaussian import LikelihoodEvaluator, update_max_log_likelihood
from ucbcore.optimizers.maximize import maximize_signal_model
from ucbcore.utils.logging import UCBLogger
from ucbcore.waveforms.ucb import generate_model_signal, update_signal_model


class ChainEngine:
    """
    Model synthesis, scoring and comparison for a single chain.

    Attributes:
        context (ChainContext): State owned by this chain.
        codec (ParameterCodec): Parameter array <-> source mapping.
        evaluator (LikelihoodEvaluator): Likelihood with cached normalization.
        current (Optional[Model]): Last accepted model.
    """

    def __init__(self, context: ChainContext, log_level: Optional[int] = None, log_file: Optional[str] = None):
        self.context = context
        self.codec = ParameterCodec(context.data.T)
        self.evaluator = LikelihoodEvaluator(context.data)
        self.logger = UCBLogger.get_logger(level=log_level, log_file=log_file)
        self.current: Optional[Model] = None

    @property
    def data(self) -> FrequencyData:
        return self.context.data

    def initialize(self, params_list: Iterable[np.ndarray] = ()) -> Model:
        """
        Build, score and accept the starting model.

        Raises:
            DomainViolation: If a starting source leaves the data band.
        """
        model = Model(self.data, self.context.noise, self.context.calibration)
        for params in params_list:
            model.add_source(self.codec.decode(params))
        generate_model_signal(model, self.data)
        self.evaluator.gaussian_log_likelihood_model_norm(model)
        self.evaluator.check_finite(model.log_likelihood)
        model.status = ModelStatus.ACCEPTED
        self.current = model
        update_max_log_likelihood(model, self.context)
        self.logger.info(
            "Initialized chain model with %d source(s), log-likelihood %.6f",
            model.n_live, model.log_likelihood,
        )
        return model

    # ==================== Proposals ====================
    def propose(self, model: Model, index: Optional[int], new_params: Optional[np.ndarray]) -> Model:
        """
        Candidate equal to ``model`` with source ``index`` set to ``new_params``.

        ``index=None`` (or a dead slot) adds a source, ``new_params=None``
        removes one. Only the changed source is re-rendered.
        """
        candidate = self._candidate(model)
        try:
            update_signal_model(candidate, index, new_params, self.data, self.codec)
        except DomainViolation as err:
            self.logger.debug("Rejecting out-of-band proposal: %s", err)
            candidate.violation = err
            candidate.status = ModelStatus.SYNTHESIZED
        return candidate

    def _candidate(self, model: Model) -> Model:
        """Copy of ``model`` whose cached score is kept only if it describes its signal."""
        candidate = model.copy()
        scored = model.status in (ModelStatus.SCORED, ModelStatus.ACCEPTED) and model.violation is None
        if not scored or candidate.log_likelihood is None or not np.isfinite(candidate.log_likelihood):
            candidate.log_likelihood = None
        return candidate

    def perturb(self, model: Model, index: int, delta: np.ndarray) -> Model:
        """Candidate with ``delta`` added to the parameters of source ``index``."""
        source = model.source(index)
        params = source.params if source.params is not None else self.codec.encode(source)
        return self.propose(model, index, params + np.asarray(delta, dtype=float))

    def propose_birth(self, model: Model, params: np.ndarray) -> Model:
        return self.propose(model, None, params)

    def propose_death(self, model: Model, index: int) -> Model:
        return self.propose(model, index, None)

    def propose_noise(self, model: Model, values: np.ndarray) -> Model:
        """
        Candidate with updated noise parameters.

        Raises:
            NonPositivePSD: If the new parameters give an invalid PSD.
        """
        candidate = model.copy()
        candidate.log_likelihood = None
        candidate.noise = model.noise.copy()
        candidate.noise.update(values)
        candidate.status = ModelStatus.SYNTHESIZED
        return candidate

    def propose_calibration(self, model: Model, values: np.ndarray) -> Model:
        """Candidate with updated calibration corrections."""
        if model.calibration is None:
            raise ValueError("Model has no calibration model to update.")
        candidate = model.copy()
        candidate.log_likelihood = None
        candidate.calibration = model.calibration.copy()
        candidate.calibration.update(values)
        candidate.status = ModelStatus.SYNTHESIZED
        return candidate

    # ==================== Scoring ====================
    def evaluate(self, candidate: Model) -> float:
        """
        Log-likelihood of ``candidate``.

        Single-source updates use the incremental path; anything else (noise
        or calibration changes, rebuilt models) is scored in full. Non-finite
        values are returned as -inf.
        """
        if candidate.status == ModelStatus.SCORED:
            return candidate.log_likelihood

        if candidate.violation is not None:
            candidate.log_likelihood = -np.inf
            candidate.status = ModelStatus.SCORED
            self.context.iteration += 1
            return candidate.log_likelihood

        try:
            if candidate.last_update is not None and candidate.log_likelihood is not None:
                self.evaluator.delta_log_likelihood(candidate, candidate.last_update.index)
            elif candidate.noise is self.context.noise:
                self.evaluator.gaussian_log_likelihood_constant_norm(candidate)
            else:
                self.evaluator.gaussian_log_likelihood_model_norm(candidate)
            self.evaluator.check_finite(candidate.log_likelihood)
        except NonFiniteLikelihood as err:
            self.logger.warning("Scoring degenerate candidate as rejection: %s", err)
            candidate.log_likelihood = -np.inf
            candidate.status = ModelStatus.SCORED

        self.context.iteration += 1
        update_max_log_likelihood(candidate, self.context)
        return candidate.log_likelihood

    def compare(self, candidate: Model, current: Model, prior: PriorSpec, log_jacobian: float = 0.0) -> float:
        """Log acceptance ratio at this chain's temperature."""
        return compare_model(candidate, current, prior, log_jacobian=log_jacobian, beta=self.context.beta)

    # ==================== Decisions ====================
    def accept(self, candidate: Model) -> Model:
        """Make ``candidate`` the chain's current model."""
        if candidate.status != ModelStatus.SCORED:
            raise ValueError(f"Only scored models can be accepted, got status {candidate.status.value!r}.")
        candidate.status = ModelStatus.ACCEPTED
        candidate.last_update = None
        self.context.n_accepted += 1
        self.context.noise = candidate.noise
        self.context.calibration = candidate.calibration
        self.current = candidate
        return candidate

    def reject(self, candidate: Model) -> Optional[Model]:
        """Discard ``candidate`` and return the unchanged current model."""
        candidate.status = ModelStatus.REJECTED
        return self.current

    def best_model_so_far(self) -> Optional[Model]:
        """Snapshot of the highest-likelihood model this chain has scored."""
        best = self.context.best_model
        if best is None:
            return None
        snapshot = best.copy()
        snapshot.status = best.status
        return snapshot

    # ==================== Maximization ====================
    def maximize_source(self, model: Model, index: int, max_iter: int = 200) -> Model:
        """
        Scored candidate with the extrinsic parameters of source ``index``
        maximized against the data minus every other source.
        """
        source = model.source(index)
        others = model.signal.copy()
        others[:, model.band_slice(source.qmin, source.qmax)] -= source.template

        calibration = model.calibration
        if calibration is None or calibration.is_identity:
            values = self.data.values - others
        elif calibration.target == "signal":
            values = self.data.values - others * calibration.factors[:, np.newaxis]
        else:
            values = self.data.values - others / calibration.factors[:, np.newaxis]
        residual = FrequencyData(values=values, T=self.data.T, qmin=self.data.qmin, t0=self.data.t0)

        params = source.params if source.params is not None else self.codec.encode(source)
        best, _ = maximize_signal_model(params, residual, model.noise, calibration, max_iter=max_iter)
        candidate = self.propose(model, index, best)
        self.evaluate(candidate)
        return candidate
