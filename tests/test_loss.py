import numpy as np
import pytest
from numpy import testing
from scipy import optimize

import sagreg as sr

np.random.seed(0)
n_samples, n_features, n_categories = 30, 3, 3
X = np.random.randn(n_samples, n_features)
y = np.random.randint(n_categories, size=n_samples)
y[:n_categories] = np.arange(n_categories)
data = sr.TrainingData(X, y)
loss = sr.MultinomialLoss()


def test_gradient_sums_to_zero():
    """Probabilities including the reference category sum to one."""
    prediction = np.zeros(n_categories - 1)
    for row in data:
        grad = loss.gradient(row, prediction)
        p_ref = 1 - loss.probabilities(prediction).sum()
        ref_term = p_ref - (row.target == n_categories - 1)
        assert abs(grad.sum() + ref_term) < 1e-12


@pytest.mark.parametrize("prediction", [
    np.zeros(2),
    np.array([-3.0, 0.5]),
    np.array([1000.0, -1000.0]),
    np.array([-1000.0, -1000.0]),
    np.array([0.2]),
    np.random.randn(5) * 10,
])
def test_log_sum_exp_bounds(prediction):
    lse = loss.log_sum_exp(prediction)
    lower = max(0.0, prediction.max())
    assert np.isfinite(lse)
    assert lse >= lower
    assert lse <= lower + np.log(prediction.size + 1) + 1e-12


def test_log_sum_exp_reference_only():
    # only the reference category, with its implicit zero score
    assert abs(loss.log_sum_exp(np.zeros(0))) < 1e-15
    testing.assert_allclose(loss.log_sum_exp(np.zeros(1)), np.log(2))


def test_loss_grad():
    for row in data:
        err = optimize.check_grad(
            lambda z: loss.evaluate(row, z),
            lambda z: loss.gradient(row, z),
            np.random.randn(n_categories - 1))
        assert err < 1e-6


def test_evaluate_reference_target():
    row = next(r for r in data if r.target == n_categories - 1)
    prediction = np.array([0.3, -1.2])
    testing.assert_allclose(
        loss.evaluate(row, prediction), loss.log_sum_exp(prediction))


def _summed_gradient(beta_flat):
    beta = beta_flat.reshape((n_categories - 1, n_features + 1))
    grad = np.zeros_like(beta)
    for row in data:
        g = loss.gradient(row, beta[:, row.indices].dot(row.values))
        grad[:, row.indices] += np.outer(g, row.values)
    return grad.ravel()


def test_hessian():
    beta = 0.3 * np.random.randn(n_categories - 1, n_features + 1)
    H = loss.hessian(data, beta)
    dim = beta.size
    assert H.shape == (dim, dim)
    testing.assert_allclose(H, H.T)
    assert np.linalg.eigvalsh(H).min() > -1e-10
    for k in range(dim):
        err = optimize.check_grad(
            lambda b: _summed_gradient(b)[k],
            lambda b: loss.hessian(data, b.reshape(beta.shape))[k],
            beta.ravel())
        assert err < 1e-5
