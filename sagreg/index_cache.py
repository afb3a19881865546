"""Columns of the weight matrix touched while processing a row."""
import numpy as np


class FullIndexCache:
    """Every column, for the eager variants that write the full matrix."""

    def __init__(self, n_features):
        self.indices = np.arange(n_features + 1)

    def prepare(self, row):
        pass


class SparseIndexCache:
    """Non-zero columns of the current row, memoized by row id."""

    def __init__(self, n_features):
        self.n_features = n_features
        self.indices = np.zeros(0, dtype=np.int64)
        self._cache = {}

    def prepare(self, row):
        indices = self._cache.get(row.row_id)
        if indices is None:
            indices = np.asarray(row.indices, dtype=np.int64)
            self._cache[row.row_id] = indices
        self.indices = indices
