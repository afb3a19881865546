"""Step-size schedules for the stochastic optimizers."""
import warnings

import numpy as np

STEP_SIZE_TYPES = ("default", "strong_convexity")


class FixedLearningRate:
    def __init__(self, learning_rate):
        if not learning_rate > 0:
            raise ValueError("The learning rate must be positive, got %s" % learning_rate)
        self.learning_rate = learning_rate

    def start_new_epoch(self, epoch):
        pass

    def get_current_learning_rate(self, row, prediction, gradient):
        return self.learning_rate


class AnnealingLearningRate:
    """Learning rate ``initial_rate / (1 + epoch / decay)``."""

    def __init__(self, initial_rate, decay):
        if not initial_rate > 0:
            raise ValueError("The initial learning rate must be positive, got %s" % initial_rate)
        if not decay > 0:
            raise ValueError("The learning rate decay must be positive, got %s" % decay)
        self.initial_rate = initial_rate
        self.decay = decay
        self._current = initial_rate

    def start_new_epoch(self, epoch):
        self._current = self.initial_rate / (1.0 + epoch / self.decay)

    def get_current_learning_rate(self, row, prediction, gradient):
        return self._current


class LineSearchLearningRate:
    """Step size from an adaptive estimate of the Lipschitz constant.

    Before every step the estimate ``L`` is decreased by a factor
    ``2 ** (-1 / n_rows)`` and then doubled until the loss of the current
    row verifies the sufficient decrease condition

    .. math::
        f_i(x - g_i / L) \\leq f_i(x) - \\frac{\\|g_i\\|^2}{2 L}

    Args:
      data: TrainingData

      loss: MultinomialLoss

      lambda_: float
          strong convexity constant contributed by the regularization.

      step_size_type: {"default", "strong_convexity"}
          "default" returns 1 / (L + lambda_), "strong_convexity" returns
          2 / (L + n_rows * lambda_).

      max_iter_backtracking: int

    References:
      Schmidt, Mark, Nicolas Le Roux, and Francis Bach. "Minimizing finite
      sums with the stochastic average gradient." Mathematical Programming
      (2017).
    """

    def __init__(self, data, loss, lambda_=0.0, step_size_type="default",
                 max_iter_backtracking=100, lipschitz=1.0):
        if step_size_type not in STEP_SIZE_TYPES:
            raise ValueError(
                "step_size_type must be one of %s, got %r" % (STEP_SIZE_TYPES, step_size_type))
        if not max_iter_backtracking > 0:
            raise ValueError("Line search iterations need to be greater than 0")
        self.loss = loss
        self.lambda_ = lambda_
        self.step_size_type = step_size_type
        self.max_iter_backtracking = max_iter_backtracking
        self.n_rows = data.n_rows
        self.lipschitz = lipschitz
        self._decrease = 2 ** (-1.0 / self.n_rows)

    def start_new_epoch(self, epoch):
        pass

    def get_current_learning_rate(self, row, prediction, gradient):
        self.lipschitz *= self._decrease
        grad_sq = gradient.dot(gradient) * row.squared_norm
        if grad_sq > 1e-8:
            f_current = self.loss.evaluate(row, prediction)
            for _ in range(self.max_iter_backtracking):
                # a step -g/L on the coefficients moves the scores by -g ||x||^2 / L
                shifted = prediction - gradient * row.squared_norm / self.lipschitz
                f_shifted = self.loss.evaluate(row, shifted)
                if f_shifted <= f_current - grad_sq / (2 * self.lipschitz):
                    break
                self.lipschitz *= 2
            else:
                warnings.warn("Maxium number of line-search iterations reached",
                              RuntimeWarning)
        if self.step_size_type == "strong_convexity":
            return 2.0 / (self.lipschitz + self.n_rows * self.lambda_)
        return 1.0 / (self.lipschitz + self.lambda_)
