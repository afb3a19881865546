import numpy as np

from sagreg.utils import max_relative_change


class BetaChangeStoppingCriterion:
    """Stop when the weights barely changed during the last epoch.

    Converged when ``max|beta - beta_old| / max|beta| < epsilon``, or when
    the weights did not change at all.
    """

    def __init__(self, epsilon=1e-5):
        if epsilon < 0:
            raise ValueError("epsilon must be non-negative")
        self.epsilon = epsilon
        self._old = None
        self.relative_change = np.inf

    def check_convergence(self, beta):
        new = beta.weight_vector
        old = self._old
        self._old = new
        if old is None:
            old = np.zeros_like(new)
        max_change, max_weight = max_relative_change(old, new)
        if max_change == 0:
            self.relative_change = 0.0
            return True
        if max_weight == 0:
            self.relative_change = np.inf
            return False
        self.relative_change = max_change / max_weight
        return self.relative_change < self.epsilon
