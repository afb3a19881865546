import os
from datetime import datetime

import numpy as np
from tqdm import trange

DISABLE_TQDM = bool(os.environ.get("DISABLE_TQDM", False))

# bounds outside of which a scaled weight vector has to be renormalized
MAX_SCALE = 1e10
MIN_SCALE = 1e-10


def needs_normalization(scale):
    """Whether the scale of a weight vector drifted out of [1e-10, 1e10]."""
    abs_scale = abs(scale)
    return abs_scale > MAX_SCALE or (abs_scale != 0 and abs_scale < MIN_SCALE)


def progress_bar(n_iter, verbose):
    return trange(n_iter, disable=(verbose == 0 or DISABLE_TQDM))


def max_relative_change(old, new):
    """Return max|new - old| and max|new|, the two terms of the convergence ratio."""
    max_change = np.max(np.abs(new - old)) if new.size else 0.0
    max_weight = np.max(np.abs(new)) if new.size else 0.0
    return max_change, max_weight


class CumulativeSteps:
    """Running sum of per-iteration steps and the last visit of every column.

    Used by the lazy updaters: the step owed to a column is the difference
    of the running sum between now and the last time it was brought up to
    date. Iterations are counted from the last call to :meth:`rebase`.
    """

    def __init__(self, n_columns, n_iterations):
        self.n_iterations = n_iterations
        self._cum = np.zeros(n_iterations + 1)
        self._last = np.zeros(n_columns, dtype=np.int64)
        self._offset = 0

    def record(self, iteration, value):
        k = iteration - self._offset
        self._cum[k + 1] = self._cum[k] + value

    def pending(self, indices, iteration):
        """Return the steps owed to ``indices`` and mark them as visited."""
        k = iteration - self._offset
        owed = self._cum[k] - self._cum[self._last[indices]]
        self._last[indices] = k
        return owed

    def mark(self, indices, iteration):
        self._last[indices] = iteration - self._offset

    def rebase(self, iteration):
        """Start a new running sum at ``iteration``.

        Iterations restart at 0 with every epoch, so a rebase at
        ``n_iterations`` starts the next epoch.
        """
        self._offset = iteration % self.n_iterations
        self._cum[:] = 0.0
        self._last[:] = 0


class Trace:
    """Callback that records the weights after every epoch.

    If ``f`` is given, ``f(weights)`` is stored instead of the weights.
    """

    def __init__(self, f=None, freq=1):
        self.trace_x = []
        self.trace_time = []
        self.trace_fx = []
        self.trace_step_size = []
        self.start = datetime.now()
        self._counter = 0
        self.freq = int(freq)
        self.f = f

    def __call__(self, dl):
        if self._counter % self.freq == 0:
            weights = dl["beta"].weight_vector
            if self.f is not None:
                self.trace_fx.append(self.f(weights))
            else:
                self.trace_x.append(weights)
            delta = (datetime.now() - self.start).total_seconds()
            self.trace_time.append(delta)
            self.trace_step_size.append(dl["step_size"])
        self._counter += 1
