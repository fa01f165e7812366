"""
Tests for model comparison scores
"""

import numpy as np
import pytest

from ucbcore.kernels.comparison import acceptance_probability, compare_model


@pytest.fixture
def pair(one_source_model):
    current = one_source_model
    current.log_likelihood = -100.0
    candidate = current.copy()
    candidate.log_likelihood = -98.0
    return candidate, current


def test_score_with_prior_pair(pair):
    candidate, current = pair
    assert compare_model(candidate, current, (-1.0, -0.5)) == pytest.approx(2.0 - 0.5)


def test_score_with_prior_callable(pair):
    candidate, current = pair
    prior = lambda model: -0.5 if model is candidate else -1.5
    assert compare_model(candidate, current, prior) == pytest.approx(2.0 + 1.0)


def test_score_with_jacobian_and_temperature(pair):
    candidate, current = pair
    score = compare_model(candidate, current, (0.0, 0.0), log_jacobian=0.25, beta=0.5)
    assert score == pytest.approx(0.5 * 2.0 + 0.25)


def test_equal_models_score_zero(pair):
    _, current = pair
    assert compare_model(current, current, (-3.0, -3.0)) == 0.0


@pytest.mark.parametrize("value", [None, np.nan, np.inf, -np.inf])
def test_non_finite_candidate_is_rejected(pair, value):
    candidate, current = pair
    candidate.log_likelihood = value
    assert compare_model(candidate, current, (0.0, 0.0)) == -np.inf


def test_non_finite_current_is_rejected(pair):
    candidate, current = pair
    current.log_likelihood = np.nan
    assert compare_model(candidate, current, (0.0, 0.0)) == -np.inf


def test_nan_score_is_rejected(pair):
    candidate, current = pair
    assert compare_model(candidate, current, (np.inf, np.inf)) == -np.inf


def test_impossible_prior_is_rejected(pair):
    candidate, current = pair
    assert compare_model(candidate, current, (-np.inf, 0.0)) == -np.inf


def test_models_not_mutated(pair):
    candidate, current = pair
    signal = candidate.signal.copy()
    compare_model(candidate, current, (0.0, 0.0))
    assert candidate.log_likelihood == -98.0
    assert current.log_likelihood == -100.0
    assert np.array_equal(candidate.signal, signal)
    assert candidate.n_live == current.n_live == 1


@pytest.mark.parametrize(
    "score, expected",
    [(0.0, 1.0), (3.0, 1.0), (np.log(0.25), 0.25), (-np.inf, 0.0), (np.nan, 0.0)],
)
def test_acceptance_probability(score, expected):
    assert acceptance_probability(score) == pytest.approx(expected)
