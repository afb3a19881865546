"""Rules folding the gradient of one row into the weights.

Every updater implements

  update(row, gradient, beta, step_size, iteration, index_cache)
  lazy_update(beta, indices, iteration)
  reset_jit_system(beta, iteration)

Eager updaters write all their changes in ``update``. Lazy updaters only
write the columns of the current row and settle the other columns in
``lazy_update`` (when the column is touched again) or ``reset_jit_system``
(at the end of an epoch or before a renormalization).
"""
import numpy as np

from sagreg.utils import CumulativeSteps


class SGDUpdater:
    """Plain stochastic gradient step, only the row's columns change."""

    def update(self, row, gradient, beta, step_size, iteration, index_cache):
        beta.update(-step_size * np.outer(gradient, row.values), row.indices)

    def lazy_update(self, beta, indices, iteration):
        pass

    def reset_jit_system(self, beta, iteration):
        pass


class EagerSagUpdater:
    """Stochastic average gradient (SAG) step.

    Keeps the last gradient of every row in ``memory_gradient`` and the
    sum of ``x_i * memory_gradient[:, i]`` over visited rows in
    ``gradient_sum``. The weights move along the average of that sum over
    the ``n_covered`` rows seen so far.

    References:
      Le Roux, Nicolas, Mark Schmidt, and Francis Bach. "A stochastic
      gradient method with an exponential convergence rate for finite
      training sets." Advances in Neural Information Processing Systems
      (2012).
    """

    def __init__(self, n_rows, n_features, n_categories):
        self.memory_gradient = np.zeros((n_categories - 1, n_rows))
        self.gradient_sum = np.zeros((n_categories - 1, n_features + 1))
        self._seen = np.zeros(n_rows, dtype=bool)
        self.n_covered = 0

    def _remember(self, row, gradient):
        i = row.row_id
        diff = gradient - self.memory_gradient[:, i]
        self.gradient_sum[:, row.indices] += np.outer(diff, row.values)
        self.memory_gradient[:, i] = gradient
        if not self._seen[i]:
            self._seen[i] = True
            self.n_covered += 1

    def update(self, row, gradient, beta, step_size, iteration, index_cache):
        self._remember(row, gradient)
        indices = index_cache.indices
        beta.update(
            -step_size / self.n_covered * self.gradient_sum[:, indices], indices)

    def lazy_update(self, beta, indices, iteration):
        pass

    def reset_jit_system(self, beta, iteration):
        pass


class LazySagUpdater(EagerSagUpdater):
    """SAG step that defers the columns the current row does not touch.

    The entries of ``gradient_sum`` only change on the row's columns, so
    the step owed by an untouched column is its (constant) entry times the
    sum of ``step_size / n_covered`` since its last visit. The sum is kept
    in units of the unscaled coefficients so that weight decay applied
    through the vector's scale in the meantime is accounted for.
    """

    def __init__(self, n_rows, n_features, n_categories):
        super().__init__(n_rows, n_features, n_categories)
        self._steps = CumulativeSteps(n_features + 1, n_rows)
        self._all = np.arange(n_features + 1)

    def update(self, row, gradient, beta, step_size, iteration, index_cache):
        self._remember(row, gradient)
        rate = step_size / self.n_covered
        beta.update(-rate * self.gradient_sum[:, row.indices], row.indices)
        self._steps.record(iteration, rate / beta.scale_factor)
        self._steps.mark(row.indices, iteration + 1)

    def lazy_update(self, beta, indices, iteration):
        owed = self._steps.pending(indices, iteration)
        if np.any(owed):
            beta.update(
                -self.gradient_sum[:, indices] * owed * beta.scale_factor,
                indices)

    def reset_jit_system(self, beta, iteration):
        self.lazy_update(beta, self._all, iteration)
        self._steps.rebase(iteration)


class SGDUpdaterFactory:
    def create(self, lazy=False):
        return SGDUpdater()


class SagUpdaterFactory:
    def __init__(self, data):
        self.n_rows = data.n_rows
        self.n_features = data.n_features
        self.n_categories = data.n_categories

    def create(self, lazy=False):
        cls = LazySagUpdater if lazy else EagerSagUpdater
        return cls(self.n_rows, self.n_features, self.n_categories)
