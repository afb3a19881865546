"""Scikit-learn compatible learner built on :func:`sagreg.minimize_sg`."""
import numpy as np
from scipy import special
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.utils.extmath import safe_sparse_dot
from sklearn.utils.validation import check_array, check_is_fitted

from sagreg import statistics
from sagreg.data import TrainingData
from sagreg.learning_rate import (AnnealingLearningRate, FixedLearningRate,
                                  LineSearchLearningRate)
from sagreg.loss import MultinomialLoss
from sagreg.penalty import GaussPrior, LaplacePrior, UniformPrior
from sagreg.randomized import minimize_sg
from sagreg.stopping import BetaChangeStoppingCriterion
from sagreg.updater import SagUpdaterFactory, SGDUpdaterFactory

SOLVERS = ("sag", "sgd")
PRIORS = ("uniform", "gauss", "laplace")
LEARNING_RATE_STRATEGIES = ("fixed", "annealing", "line_search")


class SagLogisticRegression(ClassifierMixin, BaseEstimator):
    """Multinomial logistic regression fitted by stochastic gradient methods.

    The reference category comes last in ``classes_``, its coefficients
    are implicitly zero and not part of ``coef_``.

    Args:
      solver: {"sag", "sgd"}
          Stochastic average gradient or plain stochastic gradient descent.

      max_epoch: int
          Maximum number of passes over the data.

      epsilon: float
          Relative change of the coefficients below which the optimization
          is considered converged.

      lazy: bool
          Defer the updates of the columns a row does not touch. Only
          supported by the "sag" solver.

      learning_rate_strategy: {"fixed", "annealing", "line_search"}

      initial_learning_rate: float
          Learning rate of the "fixed" strategy and starting rate of the
          "annealing" strategy.

      learning_rate_decay: float
          Decay of the "annealing" strategy.

      prior: {"uniform", "gauss", "laplace"}
          Prior on the coefficients (no, L2 or L1 regularization).

      prior_variance: float
          Variance of the "gauss" and "laplace" priors.

      sampling: {"with_replacement", "permutation"}

      reference_category: label, optional
          Class with implicitly zero coefficients. Defaults to the last class.

      sort_categories: bool
          Order the classes by label (True) or by first appearance (False).

      random_state: int, RandomState instance or None

      verbose: int

    Attributes:
      coef_: array of shape (n_classes - 1, n_features + 1)
          Coefficients, intercept in the first column.

      classes_: array of shape (n_classes,)

      n_iter_: int
          Number of epochs run.

      warning_message_: str or None
          Set when the optimization did not converge.
    """

    def __init__(self, solver="sag", max_epoch=100, epsilon=1e-5, lazy=False,
                 learning_rate_strategy="fixed", initial_learning_rate=0.01,
                 learning_rate_decay=1.0, prior="uniform", prior_variance=0.1,
                 sampling="with_replacement", reference_category=None,
                 sort_categories=True, random_state=None, verbose=0):
        self.solver = solver
        self.max_epoch = max_epoch
        self.epsilon = epsilon
        self.lazy = lazy
        self.learning_rate_strategy = learning_rate_strategy
        self.initial_learning_rate = initial_learning_rate
        self.learning_rate_decay = learning_rate_decay
        self.prior = prior
        self.prior_variance = prior_variance
        self.sampling = sampling
        self.reference_category = reference_category
        self.sort_categories = sort_categories
        self.random_state = random_state
        self.verbose = verbose

    def _check_params(self):
        if self.solver not in SOLVERS:
            raise ValueError("solver must be one of %s, got %r" % (SOLVERS, self.solver))
        if self.prior not in PRIORS:
            raise ValueError("prior must be one of %s, got %r" % (PRIORS, self.prior))
        if self.learning_rate_strategy not in LEARNING_RATE_STRATEGIES:
            raise ValueError(
                "learning_rate_strategy must be one of %s, got %r"
                % (LEARNING_RATE_STRATEGIES, self.learning_rate_strategy))
        if self.lazy and self.solver != "sag":
            raise ValueError("Lazy calculation is only supported by the sag solver")

    def _make_prior(self, data):
        if self.prior == "gauss":
            return GaussPrior(self.prior_variance, data.n_rows)
        if self.prior == "laplace":
            return LaplacePrior(self.prior_variance, data.n_rows, clip=True)
        return UniformPrior()

    def _make_learning_rate(self, data, loss, prior):
        if self.learning_rate_strategy == "annealing":
            return AnnealingLearningRate(
                self.initial_learning_rate, self.learning_rate_decay)
        if self.learning_rate_strategy == "line_search":
            return LineSearchLearningRate(data, loss, lambda_=prior.strength)
        return FixedLearningRate(self.initial_learning_rate)

    def fit(self, X, y):
        self._check_params()
        data = TrainingData(
            X, y, reference_category=self.reference_category,
            sort_categories=self.sort_categories)
        loss = MultinomialLoss()
        prior = self._make_prior(data)
        if self.solver == "sag":
            updater_factory = SagUpdaterFactory(data)
        else:
            updater_factory = SGDUpdaterFactory()

        opt = minimize_sg(
            data,
            self.max_epoch,
            loss=loss,
            updater_factory=updater_factory,
            prior=prior,
            learning_rate=self._make_learning_rate(data, loss, prior),
            stopping_criterion=BetaChangeStoppingCriterion(self.epsilon),
            lazy=self.lazy,
            sampling=self.sampling,
            random_state=self.random_state,
            verbose=self.verbose,
        )
        self.coef_ = opt.x
        self.classes_ = data.classes_
        self.n_iter_ = opt.nit
        self.warning_message_ = None if opt.success else opt.message
        self._data = data
        return self

    def decision_function(self, X):
        """Linear scores of the non-reference classes."""
        check_is_fitted(self, "coef_")
        X = check_array(X, accept_sparse="csr", dtype=np.float64)
        if X.shape[1] != self.coef_.shape[1] - 1:
            raise ValueError(
                "X has %s features, expected %s" % (X.shape[1], self.coef_.shape[1] - 1))
        scores = safe_sparse_dot(X, self.coef_[:, 1:].T, dense_output=True)
        return np.asarray(scores) + self.coef_[:, 0]

    def predict_proba(self, X):
        scores = self.decision_function(X)
        # the reference class has score zero and comes last
        scores = np.hstack((scores, np.zeros((scores.shape[0], 1))))
        return np.exp(scores - special.logsumexp(scores, axis=1, keepdims=True))

    def predict(self, X):
        return self.classes_[np.argmax(self.predict_proba(X), axis=1)]

    def covariance(self):
        check_is_fitted(self, "coef_")
        return statistics.covariance_matrix(self._data, self.coef_)

    def standard_errors(self):
        return statistics.standard_errors(self._data, self.coef_, self.covariance())

    def p_values(self):
        return statistics.p_values(self._data, self.coef_, self.covariance())

    def z_scores(self):
        return statistics.z_scores(self._data, self.coef_, self.covariance())

    def log_likelihood(self):
        """Log-likelihood of the training data under the fitted model."""
        check_is_fitted(self, "coef_")
        return statistics.log_likelihood(self._data, self.coef_)
