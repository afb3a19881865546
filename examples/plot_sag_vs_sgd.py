"""
SAG vs SGD
===========================================

A comparison between plain stochastic gradient descent and the stochastic
average gradient (SAG), both implemented in :func:`sagreg.minimize_sg`, on
an L2-regularized multinomial logistic regression.
"""
import matplotlib.pyplot as plt
import numpy as np

import sagreg as sr
from sagreg.learning_rate import FixedLearningRate
from sagreg.stopping import BetaChangeStoppingCriterion
from sagreg.updater import SagUpdaterFactory, SGDUpdaterFactory

# .. construct (random) dataset ..
n_samples, n_features, n_categories = 500, 20, 3
np.random.seed(0)
X = np.random.randn(n_samples, n_features)
W = np.random.randn(n_categories, n_features)
y = np.argmax(X.dot(W.T) + np.random.gumbel(size=(n_samples, n_categories)), axis=1)
data = sr.TrainingData(X, y)

# .. objective function ..
loss = sr.MultinomialLoss()
prior = sr.GaussPrior(1.0, n_samples)


def objective(beta):
    return -sr.statistics.log_likelihood(data, beta, loss) / n_samples + prior(beta)


# .. callbacks to track progress ..
cb_sag = sr.utils.Trace(objective)
cb_sgd = sr.utils.Trace(objective)

# .. run SAG and SGD with the same step size ..
for factory, cb in ((SagUpdaterFactory(data), cb_sag), (SGDUpdaterFactory(), cb_sgd)):
    sr.minimize_sg(
        data,
        50,
        loss=loss,
        updater_factory=factory,
        prior=prior,
        learning_rate=FixedLearningRate(0.01),
        stopping_criterion=BetaChangeStoppingCriterion(0),
        random_state=0,
        callback=cb,
    )

# .. plot the result ..
fmin = min(np.min(cb_sag.trace_fx), np.min(cb_sgd.trace_fx))
plt.title("Comparison of stochastic optimizers")
plt.plot(np.array(cb_sag.trace_fx) - fmin, lw=4, label="SAG")
plt.plot(np.array(cb_sgd.trace_fx) - fmin, lw=4, label="SGD")
plt.ylabel("Function suboptimality", fontweight="bold")
plt.xlabel("number of epochs", fontweight="bold")
plt.yscale("log")
plt.legend()
plt.grid()
plt.show()
