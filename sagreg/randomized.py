"""Module that contains the stochastic gradient (SGD / SAG) optimizers."""
import warnings

import numpy as np
from scipy import optimize
from sklearn.utils import check_random_state

from sagreg import utils
from sagreg.index_cache import FullIndexCache, SparseIndexCache
from sagreg.learning_rate import FixedLearningRate, LineSearchLearningRate
from sagreg.loss import MultinomialLoss
from sagreg.penalty import (EagerRegularizationUpdater,
                            LazyRegularizationUpdater, UniformPrior)
from sagreg.stopping import BetaChangeStoppingCriterion
from sagreg.updater import SagUpdaterFactory
from sagreg.weight_vector import ScaledWeightVector, SimpleWeightVector

SAMPLING_POLICIES = ("with_replacement", "permutation")
WEIGHT_VECTORS = {"scaled": ScaledWeightVector, "simple": SimpleWeightVector}


class _EagerVariant:
    """Every update is written to the weights as soon as it is computed."""

    def create_index_cache(self, n_features):
        return FullIndexCache(n_features)

    def create_regularization_updater(self, prior, data):
        return EagerRegularizationUpdater(prior)

    def prepare_iteration(self, beta, row, updater, reg_updater, iteration, index_cache):
        pass

    def regularize(self, beta, updater, reg_updater, step_size, iteration):
        reg_updater.update(beta, step_size, iteration)

    def perform_update(self, row, updater, gradient, beta, step_size, iteration, index_cache):
        updater.update(row, gradient, beta, step_size, iteration, index_cache)

    def normalize(self, beta, updater, reg_updater, iteration):
        pass

    def post_process_epoch(self, beta, updater, reg_updater, n_iterations):
        pass


class _LazyVariant(_EagerVariant):
    """Columns are only brought up to date when a row touches them."""

    def create_index_cache(self, n_features):
        return SparseIndexCache(n_features)

    def create_regularization_updater(self, prior, data):
        return LazyRegularizationUpdater(prior, data.n_features, data.n_rows)

    def prepare_iteration(self, beta, row, updater, reg_updater, iteration, index_cache):
        updater.lazy_update(beta, index_cache.indices, iteration)
        reg_updater.lazy_update(beta, index_cache.indices, iteration)

    def regularize(self, beta, updater, reg_updater, step_size, iteration):
        if 1 - step_size * reg_updater.prior.strength == 0:
            # the shrink zeroes the weights, owed steps must land before it
            updater.reset_jit_system(beta, iteration)
            reg_updater.reset_jit_system(beta, iteration)
        reg_updater.update(beta, step_size, iteration)

    def normalize(self, beta, updater, reg_updater, iteration):
        # deferred steps are expressed in the current scale, settle them first
        updater.reset_jit_system(beta, iteration + 1)
        reg_updater.reset_jit_system(beta, iteration + 1)

    def post_process_epoch(self, beta, updater, reg_updater, n_iterations):
        updater.reset_jit_system(beta, n_iterations)
        reg_updater.reset_jit_system(beta, n_iterations)


def _epoch_rows(data, sampling, rng):
    if sampling == "permutation":
        data.permute(rng)
        return iter(data)
    return (data.random_row(rng) for _ in range(data.n_rows))


def minimize_sg(
    data,
    max_epoch,
    loss=None,
    updater_factory=None,
    prior=None,
    learning_rate=None,
    stopping_criterion=None,
    lazy=False,
    sampling="with_replacement",
    random_state=None,
    weight_vector="scaled",
    callback=None,
    verbose=0,
):
    r"""Stochastic gradient optimizer for multinomial logistic regression.

    Each epoch performs ``n_rows`` iterations. Every iteration draws a
    row, computes its gradient at the current weights, applies the prior
    and then the row's update as given by the updater (plain SGD or SAG).

    Args:
      data: TrainingData
          Rows to learn from.

      max_epoch: int
          Maximum number of epochs.

      loss: MultinomialLoss, optional

      updater_factory: SGDUpdaterFactory or SagUpdaterFactory, optional
          Defaults to SAG.

      prior: UniformPrior, GaussPrior or LaplacePrior, optional
          Defaults to no regularization.

      learning_rate: learning rate strategy, optional
          Defaults to a fixed learning rate of 0.01.

      stopping_criterion: optional
          Checked once per epoch, defaults to
          ``BetaChangeStoppingCriterion(1e-5)``.

      lazy: bool
          Whether to defer the updates of the columns a row does not touch.

      sampling: {"with_replacement", "permutation"}
          "with_replacement" draws every row uniformly at random,
          "permutation" visits each row once per epoch in random order.

      random_state: int, RandomState instance or None
          Source of randomness for the row sampling.

      weight_vector: {"scaled", "simple"}
          Representation of the weights. The lazy variant requires "scaled".

      callback: callable, optional
          Called with ``locals()`` at the end of every epoch. The
          optimization stops if it returns False.

      verbose: int
          Verbosity level.

    Returns:
      opt: OptimizeResult
          The optimization result represented as a
          ``scipy.optimize.OptimizeResult`` object. Important attributes are:
          ``x`` the weight matrix of shape (n_categories - 1, n_features + 1),
          ``success`` a Boolean flag indicating if the stopping criterion was
          met and ``message`` which describes the cause of the termination.
    """
    if not max_epoch > 0:
        raise ValueError("max_epoch must be greater than 0, got %s" % max_epoch)
    if sampling not in SAMPLING_POLICIES:
        raise ValueError(
            "sampling must be one of %s, got %r" % (SAMPLING_POLICIES, sampling))
    if weight_vector not in WEIGHT_VECTORS:
        raise ValueError(
            "weight_vector must be one of %s, got %r" % (tuple(WEIGHT_VECTORS), weight_vector))
    if lazy and weight_vector != "scaled":
        raise ValueError("Lazy updates require a scaled weight vector")

    if loss is None:
        loss = MultinomialLoss()
    if updater_factory is None:
        updater_factory = SagUpdaterFactory(data)
    if prior is None:
        prior = UniformPrior()
    if learning_rate is None:
        learning_rate = FixedLearningRate(0.01)
    if stopping_criterion is None:
        stopping_criterion = BetaChangeStoppingCriterion()

    rng = check_random_state(random_state)
    variant = _LazyVariant() if lazy else _EagerVariant()
    beta = WEIGHT_VECTORS[weight_vector](data.n_features, data.n_categories)
    updater = updater_factory.create(lazy)
    reg_updater = variant.create_regularization_updater(prior, data)
    index_cache = variant.create_index_cache(data.n_features)
    n_rows = data.n_rows

    success = False
    message = ""
    step_size = None
    epoch = 0
    pbar = utils.progress_bar(max_epoch, verbose)
    for epoch in pbar:
        learning_rate.start_new_epoch(epoch)
        for iteration, row in enumerate(_epoch_rows(data, sampling, rng)):
            index_cache.prepare(row)
            variant.prepare_iteration(
                beta, row, updater, reg_updater, iteration, index_cache)
            prediction = beta.predict(row)
            gradient = loss.gradient(row, prediction)
            step_size = learning_rate.get_current_learning_rate(
                row, prediction, gradient)
            variant.regularize(beta, updater, reg_updater, step_size, iteration)
            variant.perform_update(
                row, updater, gradient, beta, step_size, iteration, index_cache)
            if utils.needs_normalization(beta.scale_factor):
                variant.normalize(beta, updater, reg_updater, iteration)
                beta.normalize()
        variant.post_process_epoch(beta, updater, reg_updater, n_rows)

        converged = stopping_criterion.check_convergence(beta)
        pbar.set_description("Epoch %i" % epoch)
        pbar.set_postfix(step_size=step_size)
        if callback is not None and callback(locals()) is False:
            message = "Optimization cancelled by the callback at epoch %i" % epoch
            break
        if converged:
            success = True
            message = "Converged after %i epochs" % (epoch + 1)
            if verbose:
                pbar.write(message)
            break
    else:
        message = (
            "The algorithm did not reach convergence after %i epochs" % max_epoch)
        warnings.warn(message, RuntimeWarning)
    pbar.close()
    return optimize.OptimizeResult(
        x=beta.weight_vector, success=success, nit=epoch + 1, message=message)


def _cyclic_rows(data, rng):
    """Endless iterator over the data, reshuffled after every pass."""
    while True:
        data.permute(rng)
        for row in data:
            yield row


def minimize_sag(
    data,
    loss=None,
    max_iter=10000,
    lambda_=0.0,
    learning_rate=None,
    tol=1e-3,
    random_state=None,
    callback=None,
    verbose=0,
):
    r"""Stochastic average gradient (SAG) algorithm.

    Standalone implementation, independent of :func:`minimize_sg`. Solves

        minimize_beta (1/n) \sum_i f(beta, x_i, y_i) + (lambda / 2) ||beta||^2

    keeping in memory the last gradient of each row.

    Args:
      data: TrainingData

      loss: MultinomialLoss, optional

      max_iter: int
          Maximum number of iterations, one iteration processes one row.

      lambda_: float
          Strength of the L2 weight decay.

      learning_rate: learning rate strategy, optional
          Defaults to ``LineSearchLearningRate(data, loss, lambda_)``.

      tol: float
          Checked after every pass through the data. The algorithm stops
          when ``max|beta - beta_old| / max|beta| < tol``.

      random_state: int, RandomState instance or None

      callback: callable, optional
          Called with ``locals()`` after every pass through the data. The
          optimization stops if it returns False.

      verbose: int

    Returns:
      opt: OptimizeResult
          ``x`` is the weight matrix of shape
          (n_categories - 1, n_features + 1).

    References:
      Le Roux, Nicolas, Mark Schmidt, and Francis Bach. "A stochastic
      gradient method with an exponential convergence rate for finite
      training sets." Advances in Neural Information Processing Systems
      (2012).
    """
    if not max_iter > 0:
        raise ValueError("max_iter must be greater than 0, got %s" % max_iter)
    if lambda_ < 0:
        raise ValueError("lambda_ must be non-negative, got %s" % lambda_)
    if loss is None:
        loss = MultinomialLoss()
    if learning_rate is None:
        learning_rate = LineSearchLearningRate(data, loss, lambda_)
    rng = check_random_state(random_state)

    n_rows = data.n_rows
    beta = ScaledWeightVector(data.n_features, data.n_categories)
    # .. memory terms ..
    memory_gradient = np.zeros((data.n_categories - 1, n_rows))
    gradient_sum = np.zeros(beta.shape)
    seen = np.zeros(n_rows, dtype=bool)
    n_covered = 0

    beta_old = beta.weight_vector
    rows = _cyclic_rows(data, rng)
    success = False
    message = ""
    step_size = None
    it = 0
    pbar = utils.progress_bar(max_iter, verbose)
    for it in pbar:
        if it % n_rows == 0:
            learning_rate.start_new_epoch(it // n_rows)
        row = next(rows)
        prediction = beta.predict(row)
        gradient = loss.gradient(row, prediction)

        # .. update memory terms ..
        i = row.row_id
        diff = gradient - memory_gradient[:, i]
        gradient_sum[:, row.indices] += np.outer(diff, row.values)
        memory_gradient[:, i] = gradient
        if not seen[i]:
            seen[i] = True
            n_covered += 1

        step_size = learning_rate.get_current_learning_rate(row, prediction, gradient)
        beta.scale(1 - step_size * lambda_)
        beta.update(-step_size / n_covered * gradient_sum)
        if utils.needs_normalization(beta.scale_factor):
            beta.normalize()

        if (it + 1) % n_rows == 0:
            beta_new = beta.weight_vector
            max_change, max_weight = utils.max_relative_change(beta_old, beta_new)
            # all-zero weights give nan or inf, which never stops the loop
            with np.errstate(divide="ignore", invalid="ignore"):
                ratio = np.divide(max_change, max_weight)
            beta_old = beta_new
            pbar.set_postfix(tol=ratio, step_size=step_size)
            if callback is not None and callback(locals()) is False:
                message = "Optimization cancelled by the callback at iteration %i" % it
                break
            if ratio < tol:
                success = True
                message = "Converged after %i iterations" % (it + 1)
                if verbose:
                    pbar.write(message)
                break
    else:
        message = (
            "The algorithm did not reach convergence after %i iterations" % max_iter)
        warnings.warn(message, RuntimeWarning)
    pbar.close()
    return optimize.OptimizeResult(
        x=beta.weight_vector, success=success, nit=it + 1, message=message)
