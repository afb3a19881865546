"""Training data seen by the optimizers, one sparse row at a time."""
import numpy as np
from scipy import sparse
from sklearn.preprocessing import LabelEncoder
from sklearn.utils import check_random_state


class TrainingRow:
    """One observation.

    Column 0 is the intercept (always 1.0); feature ``j`` of the input
    matrix is stored in column ``j + 1``. Only non-zero columns are kept.
    """

    __slots__ = ("row_id", "target", "indices", "values", "squared_norm")

    def __init__(self, row_id, target, indices, values):
        self.row_id = row_id
        self.target = target
        self.indices = indices
        self.values = values
        self.squared_norm = float(values.dot(values))
        indices.setflags(write=False)
        values.setflags(write=False)

    def get_feature(self, idx):
        pos = np.searchsorted(self.indices, idx)
        if pos < self.indices.size and self.indices[pos] == idx:
            return self.values[pos]
        return 0.0

    def __repr__(self):
        return "TrainingRow(row_id=%s, target=%s, nnz=%s)" % (
            self.row_id, self.target, self.indices.size)


class TrainingData:
    """Finite collection of :class:`TrainingRow`.

    Args:
      X: array-like or scipy.sparse matrix, shape (n_rows, n_features)

      y: array-like, shape (n_rows,)
          Class labels.

      reference_category: label, optional
          Category whose coefficients are implicitly zero. It is moved to
          the last position of ``classes_``. Defaults to the last category.

      sort_categories: bool
          Order the categories by label (True) or by first appearance in
          ``y`` (False).
    """

    def __init__(self, X, y, reference_category=None, sort_categories=True):
        X = sparse.csr_matrix(X, dtype=np.float64, copy=True)
        X.eliminate_zeros()
        X.sort_indices()
        y = np.asarray(y).ravel()
        if X.shape[0] == 0:
            raise ValueError("Training data must contain at least one row")
        if X.shape[0] != y.size:
            raise ValueError(
                "Dimensions of X and y do not coincide: %s rows vs %s labels"
                % (X.shape[0], y.size))
        encoder = LabelEncoder()
        encoded = encoder.fit_transform(y)
        order = np.arange(encoder.classes_.size)
        if not sort_categories:
            _, first_seen = np.unique(encoded, return_index=True)
            order = np.argsort(first_seen, kind="stable")
        if reference_category is not None:
            matches = np.flatnonzero(encoder.classes_[order] == reference_category)
            if matches.size == 0:
                raise ValueError(
                    "Reference category %r is not among the labels %s"
                    % (reference_category, encoder.classes_))
            order = np.append(np.delete(order, matches[0]), order[matches[0]])
        # position of every encoded label in the final category order
        position = np.empty_like(order)
        position[order] = np.arange(order.size)

        self.classes_ = encoder.classes_[order]
        self.targets = position[encoded]
        self.X = X
        self.n_features = X.shape[1]
        self.n_categories = self.classes_.size
        self._rows = []
        for i in range(X.shape[0]):
            low, high = X.indptr[i], X.indptr[i + 1]
            indices = np.concatenate(([0], X.indices[low:high] + 1))
            values = np.concatenate(([1.0], X.data[low:high]))
            self._rows.append(
                TrainingRow(i, int(self.targets[i]), indices, values))
        self._order = np.arange(len(self._rows))

    @property
    def n_rows(self):
        return len(self._rows)

    def __len__(self):
        return len(self._rows)

    def __iter__(self):
        for i in self._order:
            yield self._rows[i]

    def get_row(self, row_id):
        return self._rows[row_id]

    def permute(self, random_state=None):
        """Shuffle the iteration order in place."""
        rng = check_random_state(random_state)
        rng.shuffle(self._order)

    def random_row(self, random_state=None):
        """Draw a row uniformly at random (with replacement)."""
        rng = check_random_state(random_state)
        return self._rows[rng.randint(len(self._rows))]

    def design_matrix(self):
        """Dense matrix of all rows, intercept column first."""
        return np.hstack((np.ones((self.n_rows, 1)), self.X.toarray()))
