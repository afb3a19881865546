"""Regularization priors and the updaters that apply them."""
import numpy as np

from sagreg.utils import CumulativeSteps


class UniformPrior:
    """Flat prior, that is, no regularization."""

    is_coordinatewise = False
    strength = 0.0

    def update(self, beta, step_size, indices=None):
        pass


class GaussPrior:
    """Gaussian prior, equivalent to an L2 penalty:

    .. math::
        \\frac{1}{2 \\sigma^2 n}\\|\\beta\\|^2

    Args:
        variance: float
            variance of the prior, must be positive

        n_rows: int
            number of training rows, the penalty is spread over them
    """

    is_coordinatewise = False

    def __init__(self, variance, n_rows):
        if not variance > 0:
            raise ValueError("The prior variance must be positive, got %s" % variance)
        self.variance = variance
        self.strength = 1.0 / (variance * n_rows)

    def __call__(self, beta):
        return 0.5 * self.strength * np.sum(beta * beta)

    def update(self, beta, step_size, indices=None):
        # an L2 step shrinks every coefficient by the same factor
        beta.scale(1 - step_size * self.strength)


class LaplacePrior:
    """Laplace prior, equivalent to an L1 penalty.

    Each update is a sub-gradient step of size ``step_size * factor``
    with ``factor = sqrt(2) / (sqrt(variance) * n_rows)``. In clip mode a
    coefficient that would cross zero is set to zero instead.

    Args:
        variance: float
            variance of the prior, must be positive

        n_rows: int
            number of training rows

        clip: bool
            whether to clip updates at zero
    """

    is_coordinatewise = True
    strength = 0.0

    def __init__(self, variance, n_rows, clip=True):
        if not variance > 0:
            raise ValueError("The prior variance must be positive, got %s" % variance)
        self.variance = variance
        self.clip = clip
        self.factor = np.sqrt(2) / (np.sqrt(variance) * n_rows)

    def __call__(self, beta):
        return self.factor * np.abs(beta).sum()

    def update(self, beta, step_size, indices=None):
        """Apply one step to the given columns of ``beta``.

        ``step_size`` may be an array with one entry per column.
        """
        shrink = np.asarray(step_size) * self.factor
        clip = self.clip

        def _step(values):
            out = values - shrink * np.sign(values)
            if clip:
                out[values * out < 0] = 0.0
            return out

        beta.apply(_step, indices)


class EagerRegularizationUpdater:
    """Apply the prior to every coefficient at each iteration."""

    def __init__(self, prior):
        self.prior = prior

    def update(self, beta, step_size, iteration):
        self.prior.update(beta, step_size)

    def lazy_update(self, beta, indices, iteration):
        pass

    def reset_jit_system(self, beta, iteration):
        pass


class LazyRegularizationUpdater:
    """Defer coordinate-wise priors until a column is touched again.

    Priors acting on all coefficients at once (like :class:`GaussPrior`
    on a scaled weight vector) are cheap and applied immediately.
    """

    def __init__(self, prior, n_features, n_iterations):
        self.prior = prior
        self._steps = CumulativeSteps(n_features + 1, n_iterations)
        self._all = np.arange(n_features + 1)

    def update(self, beta, step_size, iteration):
        if self.prior.is_coordinatewise:
            self._steps.record(iteration, step_size)
        else:
            self.prior.update(beta, step_size)

    def lazy_update(self, beta, indices, iteration):
        if not self.prior.is_coordinatewise:
            return
        owed = self._steps.pending(indices, iteration)
        if np.any(owed):
            self.prior.update(beta, owed, indices)

    def reset_jit_system(self, beta, iteration):
        self.lazy_update(beta, self._all, iteration)
        self._steps.rebase(iteration)
