"""
Class file for model comparison scores
"""

# Imports
from typing import Callable, Tuple, Union

import numpy as np

from ucbcore.core.model import Model
from ucbcore.utils.logging import get_logger

logger = get_logger(__name__)

PriorSpec = Union[Callable[[Model], float], Tuple[float, float]]


def _log_priors(prior: PriorSpec, candidate: Model, current: Model) -> Tuple[float, float]:
    if callable(prior):
        return float(prior(candidate)), float(prior(current))
    log_prior_candidate, log_prior_current = prior
    return float(log_prior_candidate), float(log_prior_current)


def compare_model(candidate: Model, current: Model, prior: PriorSpec, log_jacobian: float = 0.0, beta: float = 1.0) -> float:
    """
    Log acceptance ratio of ``candidate`` against ``current``.

    score = beta * (logL_candidate - logL_current)
            + (log_prior_candidate - log_prior_current) + log_jacobian

    ``prior`` is either a callable returning the log prior of a model or a
    ``(candidate, current)`` pair of log priors. ``log_jacobian`` carries the
    Jacobian and proposal-ratio terms of dimension-changing moves.

    Returns -inf when either likelihood is missing or not finite, or when the
    score itself is NaN. Neither model is modified and no random draw is made.
    """
    log_l_candidate = candidate.log_likelihood
    log_l_current = current.log_likelihood
    if log_l_candidate is None or log_l_current is None:
        return -np.inf
    if not (np.isfinite(log_l_candidate) and np.isfinite(log_l_current)):
        logger.debug("Non-finite log-likelihood in comparison; scoring as rejection")
        return -np.inf

    log_prior_candidate, log_prior_current = _log_priors(prior, candidate, current)
    score = beta * (log_l_candidate - log_l_current) + (log_prior_candidate - log_prior_current) + log_jacobian
    if np.isnan(score):
        return -np.inf
    return float(score)


def acceptance_probability(score: float) -> float:
    """Metropolis-Hastings acceptance probability min(1, exp(score))."""
    if np.isnan(score) or score == -np.inf:
        return 0.0
    if score >= 0:
        return 1.0
    return float(np.exp(score))
