"""Post-hoc statistics of a fitted multinomial model."""
import warnings

import numpy as np
from scipy import linalg, stats

from sagreg.loss import MultinomialLoss


def log_likelihood(data, beta, loss=None):
    """Log-likelihood of the training data under the weights ``beta``."""
    if loss is None:
        loss = MultinomialLoss()
    beta = np.asarray(beta)
    total = 0.0
    for row in data:
        total -= loss.evaluate(row, beta[:, row.indices].dot(row.values))
    return total


def covariance_matrix(data, beta, loss=None):
    """Estimated covariance of the coefficients.

    This is the inverse of the Hessian of the negative log-likelihood, with
    coefficients in the category-major order of
    :meth:`MultinomialLoss.hessian`. A singular Hessian (for example with
    perfectly separable data) is inverted with the pseudo-inverse.
    """
    if loss is None:
        loss = MultinomialLoss()
    H = loss.hessian(data, beta)
    try:
        return linalg.inv(H)
    except linalg.LinAlgError:
        warnings.warn(
            "The Hessian is singular, using its pseudo-inverse for the covariance",
            RuntimeWarning)
        return linalg.pinvh(H)


def standard_errors(data, beta, covariance=None):
    """Standard error of every coefficient, shaped like ``beta``."""
    beta = np.asarray(beta)
    if covariance is None:
        covariance = covariance_matrix(data, beta)
    variances = np.clip(np.diag(covariance), 0, None)
    return np.sqrt(variances).reshape(beta.shape)


def z_scores(data, beta, covariance=None):
    beta = np.asarray(beta)
    se = standard_errors(data, beta, covariance)
    with np.errstate(divide="ignore", invalid="ignore"):
        return beta / se


def p_values(data, beta, covariance=None):
    """Two-sided p-values of the Wald test ``beta == 0``."""
    z = z_scores(data, beta, covariance)
    return 2 * stats.norm.sf(np.abs(z))
