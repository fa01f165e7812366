"""
Unit tests for the ChainEngine.
"""

import logging

import numpy as np
import pytest

from conftest import make_params
from ucbcore.core.errors import DomainViolation, NonPositivePSD, SchemaMismatch
from ucbcore.core.model import Model, ModelStatus
from ucbcore.core.source import INTRINSIC_INDICES, Source
from ucbcore.core.state import ChainContext
from ucbcore.samplers import ChainEngine
from ucbcore.waveforms.ucb import generate_model_signal


# --------------------------------------------------
# Fixtures
# --------------------------------------------------
@pytest.fixture
def context(noisy_data, flat_noise, identity_calibration):
    return ChainContext(
        data=noisy_data,
        noise=flat_noise,
        calibration=identity_calibration,
        rng=np.random.default_rng(42),
    )


@pytest.fixture
def engine(context):
    return ChainEngine(context, log_level=logging.WARNING)


@pytest.fixture
def current(engine):
    return engine.initialize([make_params(amp=3e-21, cosi=-0.2, psi=1.9, phi0=0.4)])


def _full(engine, model):
    return engine.evaluator.gaussian_log_likelihood_model_norm(model.copy())


# --------------------------------------------------
# Initialization
# --------------------------------------------------
def test_initialize(engine, current, context):
    assert current.status == ModelStatus.ACCEPTED
    assert current.n_live == 1
    assert np.isfinite(current.log_likelihood)
    assert engine.current is current
    assert context.max_log_likelihood == current.log_likelihood
    assert context.best_model is not None


def test_initialize_empty(engine):
    model = engine.initialize()
    assert model.n_live == 0
    assert not np.any(model.signal)


def test_initialize_out_of_band_raises(engine):
    with pytest.raises(DomainViolation):
        engine.initialize([make_params(f_offset=-120.0)])


def test_initialize_wrong_length_raises(engine):
    with pytest.raises(SchemaMismatch):
        engine.initialize([np.zeros(3)])


# --------------------------------------------------
# Proposals and scoring
# --------------------------------------------------
def test_propose_does_not_touch_current(engine, current):
    signal = current.signal.copy()
    candidate = engine.propose(current, 0, make_params(phi0=1.3))
    assert candidate is not current
    assert candidate.status == ModelStatus.SYNTHESIZED
    assert np.array_equal(current.signal, signal)
    assert current.status == ModelStatus.ACCEPTED


def test_incremental_score_matches_full(engine, current):
    candidate = engine.propose(current, 0, make_params(f_offset=1.1, phi0=1.3))
    value = engine.evaluate(candidate)
    assert candidate.status == ModelStatus.SCORED
    assert value == pytest.approx(_full(engine, candidate), rel=1e-9)


def test_perturb(engine, current):
    delta = np.zeros(8)
    delta[6] = 0.5
    candidate = engine.perturb(current, 0, delta)
    assert candidate.source(0).phi0 == pytest.approx(current.source(0).phi0 + 0.5)
    assert engine.evaluate(candidate) == pytest.approx(_full(engine, candidate), rel=1e-9)


def test_birth_and_death(engine, current):
    born = engine.propose_birth(current, make_params(f_offset=-40.1, amp=1e-21))
    engine.evaluate(born)
    assert born.n_live == 2
    assert born.log_likelihood == pytest.approx(_full(engine, born), rel=1e-9)

    engine.accept(born)
    dead = engine.propose_death(born, 0)
    engine.evaluate(dead)
    assert dead.n_live == 1
    assert dead.log_likelihood == pytest.approx(_full(engine, dead), rel=1e-9)


def test_out_of_band_proposal_scores_minus_infinity(engine, current):
    candidate = engine.propose(current, 0, make_params(f_offset=-120.0))
    assert engine.evaluate(candidate) == -np.inf
    assert candidate.status == ModelStatus.SCORED
    assert engine.compare(candidate, current, (0.0, 0.0)) == -np.inf
    assert current.n_live == 1


def test_non_finite_likelihood_scores_minus_infinity(engine, current, monkeypatch):
    candidate = engine.propose_noise(current, current.noise.parameters)
    monkeypatch.setattr(engine.evaluator, "gaussian_log_likelihood", lambda model: np.nan)
    assert engine.evaluate(candidate) == -np.inf
    assert candidate.status == ModelStatus.SCORED


def test_evaluate_counts_iterations(engine, current, context):
    for k in range(3):
        engine.evaluate(engine.propose(current, 0, make_params(phi0=0.1 * k)))
    assert context.iteration == 3


def test_evaluate_tracks_maximum(engine, current, context, params):
    candidate = engine.propose(current, 0, params)
    value = engine.evaluate(candidate)
    assert value > current.log_likelihood
    assert context.max_log_likelihood == value
    assert candidate.max_log_likelihood == value


def test_structural_errors_propagate(engine, current):
    with pytest.raises(SchemaMismatch):
        engine.propose(current, 0, np.zeros(4))
    with pytest.raises(NonPositivePSD):
        engine.propose_noise(current, [-1.0, 1.0])


# --------------------------------------------------
# Noise and calibration moves
# --------------------------------------------------
def test_noise_proposal(engine, current, context):
    levels = 1.5 * current.noise.parameters
    candidate = engine.propose_noise(current, levels)
    assert candidate.noise is not current.noise
    assert current.noise.parameters[0] != levels[0]

    value = engine.evaluate(candidate)
    assert value == pytest.approx(_full(engine, candidate), rel=1e-12)
    engine.accept(candidate)
    assert context.noise is candidate.noise


def test_calibration_proposal(engine, current, context):
    candidate = engine.propose_calibration(current, [0.02, 0.01, -0.01, 0.03])
    assert current.calibration.is_identity
    value = engine.evaluate(candidate)
    assert value == pytest.approx(_full(engine, candidate), rel=1e-12)
    engine.accept(candidate)
    assert context.calibration is candidate.calibration


# --------------------------------------------------
# Decisions
# --------------------------------------------------
def test_compare_uses_chain_temperature(engine, current, context):
    candidate = engine.propose(current, 0, make_params(phi0=1.0))
    engine.evaluate(candidate)
    context.beta = 0.5
    score = engine.compare(candidate, current, (0.0, 0.0))
    assert score == pytest.approx(0.5 * (candidate.log_likelihood - current.log_likelihood))


def test_accept_and_reject(engine, current, context):
    candidate = engine.propose(current, 0, make_params(phi0=1.0))
    engine.evaluate(candidate)
    assert engine.reject(candidate) is current
    assert candidate.status == ModelStatus.REJECTED

    candidate = engine.propose(current, 0, make_params(phi0=1.0))
    engine.evaluate(candidate)
    assert engine.accept(candidate) is candidate
    assert candidate.status == ModelStatus.ACCEPTED
    assert candidate.last_update is None
    assert engine.current is candidate
    assert context.n_accepted == 1


def test_accept_requires_scored_model(engine, current):
    candidate = engine.propose(current, 0, make_params(phi0=1.0))
    with pytest.raises(ValueError):
        engine.accept(candidate)


def test_best_model_so_far_is_a_copy(engine, current, params):
    engine.evaluate(engine.propose(current, 0, params))
    best = engine.best_model_so_far()
    assert best.log_likelihood == engine.context.max_log_likelihood
    best.remove_source(0)
    assert engine.best_model_so_far().n_live == 1


def test_best_model_before_initialize(engine):
    assert engine.best_model_so_far() is None


def test_short_chain(engine, current, context):
    """A few Metropolis steps keep the cached likelihood consistent."""
    model = current
    for _ in range(20):
        delta = np.zeros(8)
        delta[3:7] = 0.05 * context.rng.standard_normal(4)
        candidate = engine.perturb(model, 0, delta)
        engine.evaluate(candidate)
        score = engine.compare(candidate, model, (0.0, 0.0))
        if np.log(context.rng.uniform()) < score:
            model = engine.accept(candidate)
        else:
            engine.reject(candidate)
    assert model.log_likelihood == pytest.approx(_full(engine, model), rel=1e-9)
    assert context.iteration == 20


# --------------------------------------------------
# Maximization
# --------------------------------------------------
def test_maximize_source(engine, current):
    candidate = engine.maximize_source(current, 0)
    assert candidate.status == ModelStatus.SCORED
    assert candidate.log_likelihood > current.log_likelihood
    assert candidate.log_likelihood == pytest.approx(_full(engine, candidate), rel=1e-9)
    for i in INTRINSIC_INDICES:
        assert candidate.source(0).params[i] == current.source(0).params[i]


def test_maximize_source_with_other_sources(engine, current):
    born = engine.propose_birth(current, make_params(f_offset=-40.1, amp=1e-21))
    engine.evaluate(born)
    engine.accept(born)
    candidate = engine.maximize_source(born, 0)
    assert candidate.log_likelihood >= born.log_likelihood
    assert candidate.n_live == 2
    assert candidate.log_likelihood == pytest.approx(_full(engine, candidate), rel=1e-9)


# --------------------------------------------------
# Chained proposals
# --------------------------------------------------
def test_stacked_source_moves(engine):
    model = engine.initialize([
        make_params(amp=3e-21, cosi=-0.2, psi=1.9, phi0=0.4),
        make_params(f_offset=-40.1, amp=1e-21),
    ])
    first = engine.propose(model, 0, make_params(phi0=1.3))
    second = engine.propose(first, 1, make_params(f_offset=-40.1, amp=2e-21, phi0=0.9))
    assert engine.evaluate(second) == pytest.approx(_full(engine, second), rel=1e-9)

    # a scored parent keeps its score for the next incremental step
    engine.evaluate(first)
    third = engine.propose(first, 1, make_params(f_offset=-40.1, amp=2e-21, phi0=0.9))
    assert third.log_likelihood == first.log_likelihood
    assert engine.evaluate(third) == pytest.approx(_full(engine, third), rel=1e-9)


def test_signal_move_after_noise_move(engine, current):
    noisy = engine.propose_noise(current, 1.5 * current.noise.parameters)
    candidate = engine.propose(noisy, 0, make_params(phi0=1.3))
    assert candidate.log_likelihood is None
    assert engine.evaluate(candidate) == pytest.approx(_full(engine, candidate), rel=1e-9)

    engine.evaluate(noisy)
    candidate = engine.propose(noisy, 0, make_params(phi0=1.3))
    assert engine.evaluate(candidate) == pytest.approx(_full(engine, candidate), rel=1e-9)


def test_signal_move_after_calibration_move(engine, current):
    calibrated = engine.propose_calibration(current, [0.02, 0.01, -0.01, 0.03])
    candidate = engine.propose(calibrated, 0, make_params(phi0=1.3))
    assert engine.evaluate(candidate) == pytest.approx(_full(engine, candidate), rel=1e-9)


def test_move_after_out_of_band_proposal(engine, current, context):
    rejected = engine.propose(current, 0, make_params(f_offset=-120.0))
    candidate = engine.propose(rejected, 0, make_params(phi0=1.3))
    assert candidate.violation is None
    assert engine.evaluate(candidate) == pytest.approx(_full(engine, candidate), rel=1e-9)
    assert engine.evaluate(rejected) == -np.inf
    assert context.iteration == 2


# --------------------------------------------------
# Sources added without a parameter array
# --------------------------------------------------
@pytest.fixture
def bare_model(engine, context):
    """Accepted model whose source was built from its fields."""
    ref = engine.codec.decode(make_params(amp=3e-21, cosi=-0.2, psi=1.9, phi0=0.4))
    source = Source(
        f0=ref.f0, fdot=ref.fdot, costheta=ref.costheta, phi=ref.phi,
        amp=ref.amp, cosi=ref.cosi, psi=ref.psi, phi0=ref.phi0,
    )
    model = Model(context.data, context.noise, context.calibration)
    model.add_source(source)
    generate_model_signal(model, context.data)
    engine.evaluator.gaussian_log_likelihood_model_norm(model)
    model.status = ModelStatus.ACCEPTED
    return model


def test_perturb_source_without_params(engine, bare_model):
    assert bare_model.source(0).params is None
    delta = np.zeros(8)
    delta[6] = 0.5
    candidate = engine.perturb(bare_model, 0, delta)
    assert candidate.source(0).phi0 == pytest.approx(bare_model.source(0).phi0 + 0.5)
    assert engine.evaluate(candidate) == pytest.approx(_full(engine, candidate), rel=1e-9)


def test_maximize_source_without_params(engine, bare_model):
    start = engine.codec.encode(bare_model.source(0))
    candidate = engine.maximize_source(bare_model, 0)
    assert candidate.log_likelihood >= bare_model.log_likelihood
    for i in INTRINSIC_INDICES:
        assert candidate.source(0).params[i] == start[i]
