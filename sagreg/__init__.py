"""sagreg: stochastic gradient multinomial logistic regression in Python."""
__version__ = "0.1.0"  # if you modify this, change it also in setup.py

from . import statistics
from . import utils
from .data import TrainingData
from .logistic import SagLogisticRegression
from .loss import MultinomialLoss
from .penalty import GaussPrior, LaplacePrior, UniformPrior
from .randomized import minimize_sag
from .randomized import minimize_sg
