import numpy as np


class MultinomialLoss:
    r"""Multinomial logistic (cross-entropy) loss.

  For a row with features :math:`x` and linear scores
  :math:`z_c = \beta_c^T x` of the non-reference categories, the loss is

  .. math::
      \log(1 + \sum_c e^{z_c}) - z_{y}

  where the reference category has an implicit score of zero (and so
  :math:`z_y = 0` when :math:`y` is the reference category).

  The class holds no state, a single instance can be shared freely.
  """

    def log_sum_exp(self, prediction):
        """Compute log(1 + sum(exp(prediction))) without overflow.

        The running maximum starts at 1.0 so that the implicit zero score
        of the reference category always enters as exp(-max).
        """
        m = 1.0
        if prediction.size:
            m = max(m, prediction.max())
        return m + np.log(np.exp(-m) + np.exp(prediction - m).sum())

    def evaluate(self, row, prediction):
        lse = self.log_sum_exp(prediction)
        if row.target < prediction.size:
            return lse - prediction[row.target]
        return lse

    def probabilities(self, prediction):
        """Probabilities of the non-reference categories (softmax)."""
        return np.exp(prediction - self.log_sum_exp(prediction))

    def gradient(self, row, prediction):
        """Derivative of the loss with respect to each linear score."""
        probs = self.probabilities(prediction)
        assert np.all((probs >= 0) & (probs <= 1)), probs
        grad = probs.copy()
        if row.target < grad.size:
            grad[row.target] -= 1
        return grad

    def hessian(self, data, beta):
        """Second derivative of the summed loss over all rows.

        Coefficients are ordered category-major, that is, entry
        ``c * (n_features + 1) + f`` corresponds to ``beta[c, f]``.

        Args:
          data: TrainingData

          beta: array of shape (n_categories - 1, n_features + 1)

        Returns:
          H: array of shape (n_params, n_params) with
          n_params = (n_categories - 1) * (n_features + 1)
        """
        beta = np.asarray(beta)
        X = data.design_matrix()
        n_classes, dim = beta.shape
        scores = X.dot(beta.T)
        probs = np.array([self.probabilities(z) for z in scores])
        H = np.zeros((n_classes * dim, n_classes * dim))
        for i in range(n_classes):
            for j in range(i, n_classes):
                if i == j:
                    w = probs[:, i] * (1 - probs[:, i])
                else:
                    w = -probs[:, i] * probs[:, j]
                block = (X * w[:, np.newaxis]).T.dot(X)
                H[i * dim:(i + 1) * dim, j * dim:(j + 1) * dim] = block
                if i != j:
                    H[j * dim:(j + 1) * dim, i * dim:(i + 1) * dim] = block.T
        return H
