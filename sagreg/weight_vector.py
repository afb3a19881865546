"""Coefficients of the multinomial linear model.

The matrix has one row per non-reference category and one column per
feature, plus the intercept in column 0.
"""
import numpy as np


class WeightVector:
    """Interface shared by :class:`SimpleWeightVector` and :class:`ScaledWeightVector`."""

    def __init__(self, n_features, n_categories):
        if n_categories < 1:
            raise ValueError("At least one target category is required")
        self.shape = (n_categories - 1, n_features + 1)
        self._data = np.zeros(self.shape)

    def predict(self, row):
        return self.scale_factor * self._data[:, row.indices].dot(row.values)

    def update(self, delta, indices=None):
        """Add ``delta`` to the (true) coefficients of the given columns."""
        if indices is None:
            self._data += delta / self.scale_factor
        else:
            self._data[:, indices] += delta / self.scale_factor

    def apply(self, func, indices=None):
        """Replace the coefficients ``v`` of the given columns by ``func(v)``."""
        s = self.scale_factor
        if indices is None:
            self._data[:] = func(s * self._data) / s
        else:
            self._data[:, indices] = func(s * self._data[:, indices]) / s

    @property
    def weight_vector(self):
        return self.scale_factor * self._data

    @property
    def scale_factor(self):
        return 1.0

    def scale(self, factor):
        raise NotImplementedError

    def normalize(self):
        raise NotImplementedError


class SimpleWeightVector(WeightVector):
    """Dense coefficients, every call to scale touches the whole matrix."""

    def scale(self, factor):
        self._data *= factor

    def normalize(self):
        pass


class ScaledWeightVector(WeightVector):
    """Coefficients stored as ``scale * raw`` so that scaling is O(1).

    The scale drifts with repeated weight decay and must be folded back
    into the coefficients with :meth:`normalize` from time to time.
    """

    def __init__(self, n_features, n_categories):
        super().__init__(n_features, n_categories)
        self._scale = 1.0

    @property
    def scale_factor(self):
        return self._scale

    def scale(self, factor):
        if factor == 0:
            self._data[:] = 0
            self._scale = 1.0
        else:
            self._scale *= factor

    def normalize(self):
        self._data *= self._scale
        self._scale = 1.0
