import numpy as np
import pytest
from numpy import testing
from scipy import sparse

import sagreg as sr
from sagreg import utils
from sagreg.learning_rate import (AnnealingLearningRate, FixedLearningRate,
                                  LineSearchLearningRate)
from sagreg.stopping import BetaChangeStoppingCriterion
from sagreg.updater import LazySagUpdater, SagUpdaterFactory, SGDUpdaterFactory

np.random.seed(0)
n_samples, n_features = 100, 3
X = np.random.randn(n_samples, n_features)
w_true = np.array([1.0, -2.0, 0.5])
y = (X.dot(w_true) + 0.3 > 0).astype(int)
data = sr.TrainingData(X, y)


def accuracy(w, data):
    # two classes: the first one wins whenever its score is positive
    scores = data.design_matrix().dot(w.T)[:, 0]
    pred = np.where(scores > 0, 0, 1)
    return np.mean(pred == data.targets)


all_priors = (
    ["uniform", lambda n: sr.UniformPrior()],
    ["gauss", lambda n: sr.GaussPrior(1.0, n)],
    ["laplace", lambda n: sr.LaplacePrior(1.0, n)],
)


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
@pytest.mark.parametrize("factory", [SagUpdaterFactory(data), SGDUpdaterFactory()])
@pytest.mark.parametrize("lazy", [False, True])
@pytest.mark.parametrize("name_prior, make_prior", all_priors)
def test_optimize(factory, lazy, name_prior, make_prior):
    opt = sr.minimize_sg(
        data, 50, updater_factory=factory, prior=make_prior(data.n_rows),
        learning_rate=FixedLearningRate(0.1), lazy=lazy, random_state=0)
    assert opt.x.shape == (1, n_features + 1)
    assert accuracy(opt.x, data) >= 0.95, name_prior


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
@pytest.mark.parametrize("make_lr", [
    lambda: AnnealingLearningRate(0.5, 5.0),
    lambda: LineSearchLearningRate(data, sr.MultinomialLoss()),
])
def test_learning_rates(make_lr):
    opt = sr.minimize_sg(data, 30, learning_rate=make_lr(), random_state=0)
    assert accuracy(opt.x, data) >= 0.95


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_multiclass():
    rng = np.random.RandomState(1)
    centers = np.array([[4.0, 0.0], [0.0, 4.0], [-4.0, -4.0]])
    labels = rng.randint(3, size=150)
    X_blobs = centers[labels] + rng.randn(150, 2)
    blobs = sr.TrainingData(X_blobs, labels)
    opt = sr.minimize_sg(
        blobs, 100, prior=sr.GaussPrior(1.0, blobs.n_rows),
        learning_rate=FixedLearningRate(0.02), sampling="permutation",
        stopping_criterion=BetaChangeStoppingCriterion(1e-4), random_state=0)
    scores = np.hstack((blobs.design_matrix().dot(opt.x.T), np.zeros((150, 1))))
    assert np.mean(np.argmax(scores, axis=1) == blobs.targets) >= 0.95


def test_single_class():
    single = sr.TrainingData(X, np.zeros(n_samples))
    opt = sr.minimize_sg(single, 10, random_state=0)
    assert opt.success
    assert opt.nit == 1
    assert opt.x.shape == (0, n_features + 1)


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
@pytest.mark.parametrize("sampling", ["with_replacement", "permutation"])
def test_deterministic(sampling):
    results = []
    for _ in range(2):
        opt = sr.minimize_sg(
            sr.TrainingData(X, y), 5, learning_rate=FixedLearningRate(0.1),
            sampling=sampling, random_state=42)
        results.append(opt.x)
    testing.assert_array_equal(results[0], results[1])


class _ScaleRecorder(LazySagUpdater):
    """Record the scale of the weights at the start of every iteration."""

    def __init__(self, *args):
        super().__init__(*args)
        self.scales = []
        self._flushing = False

    def lazy_update(self, beta, indices, iteration):
        if not self._flushing:
            self.scales.append(beta.scale_factor)
        super().lazy_update(beta, indices, iteration)

    def reset_jit_system(self, beta, iteration):
        self._flushing = True
        super().reset_jit_system(beta, iteration)
        self._flushing = False


class _RecorderFactory(SagUpdaterFactory):
    def create(self, lazy=False):
        self.updater = _ScaleRecorder(self.n_rows, self.n_features, self.n_categories)
        return self.updater


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_lazy_matches_eager_with_renormalization():
    small = sr.TrainingData(X[:20], y[:20])
    # every step shrinks the weights by a factor 10
    prior = sr.GaussPrior(1.0 / (20 * 9), 20)
    recorder = _RecorderFactory(small)
    results = []
    for lazy in (False, True):
        factory = recorder if lazy else SagUpdaterFactory(small)
        opt = sr.minimize_sg(
            small, 3, updater_factory=factory, prior=prior,
            learning_rate=FixedLearningRate(0.1), sampling="permutation",
            stopping_criterion=BetaChangeStoppingCriterion(0), lazy=lazy,
            random_state=0)
        results.append(opt.x)
    testing.assert_allclose(results[0], results[1], rtol=1e-8, atol=1e-12)

    scales = np.abs(recorder.updater.scales)
    assert len(scales) == 3 * 20
    assert np.all(scales <= utils.MAX_SCALE)
    assert np.all(scales >= utils.MIN_SCALE)
    # renormalization did take place
    assert scales.min() < 1e-8


@pytest.mark.filterwarnings("ignore::RuntimeWarning")
def test_lazy_matches_eager_when_prior_zeroes_weights():
    rng = np.random.RandomState(0)
    X_sparse = sparse.random(20, 5, density=0.3, format="csr", random_state=rng)
    y_sparse = rng.randint(2, size=20)
    sparse_data = sr.TrainingData(X_sparse, y_sparse)
    # step_size * strength == 1, every shrink sets the weights to zero
    prior = sr.GaussPrior(0.5 / 20, 20)
    assert 1 - 0.5 * prior.strength == 0
    results = []
    for lazy in (False, True):
        opt = sr.minimize_sg(
            sparse_data, 3, prior=prior, learning_rate=FixedLearningRate(0.5),
            sampling="permutation", stopping_criterion=BetaChangeStoppingCriterion(0),
            lazy=lazy, random_state=0)
        results.append(opt.x)
    assert np.any(results[0] != 0)
    testing.assert_allclose(results[0], results[1], rtol=1e-10, atol=1e-14)


def test_callback_cancels():
    calls = []

    def callback(kw):
        calls.append(kw["epoch"])
        return False

    opt = sr.minimize_sg(data, 10, callback=callback, random_state=0)
    assert calls == [0]
    assert not opt.success
    assert opt.nit == 1
    assert "cancelled" in opt.message


def test_trace():
    trace = utils.Trace(lambda w: np.abs(w).sum())
    with pytest.warns(RuntimeWarning):
        sr.minimize_sg(
            data, 5, learning_rate=FixedLearningRate(0.1),
            stopping_criterion=BetaChangeStoppingCriterion(0),
            callback=trace, random_state=0)
    assert len(trace.trace_fx) == 5
    assert trace.trace_step_size == [0.1] * 5
    assert np.all(np.diff(trace.trace_time) >= 0)


def test_not_converged_warns():
    with pytest.warns(RuntimeWarning):
        opt = sr.minimize_sg(
            data, 1, stopping_criterion=BetaChangeStoppingCriterion(0),
            random_state=0)
    assert not opt.success
    assert opt.nit == 1
    assert "did not reach convergence" in opt.message


@pytest.mark.parametrize("kwargs", [
    {"max_epoch": 0},
    {"sampling": "cyclic"},
    {"weight_vector": "dense"},
    {"lazy": True, "weight_vector": "simple"},
])
def test_invalid_arguments(kwargs):
    params = {"max_epoch": 5}
    params.update(kwargs)
    with pytest.raises(ValueError):
        sr.minimize_sg(data, **params)
