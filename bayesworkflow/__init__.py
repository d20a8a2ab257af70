"""
bayesworkflow: Bayesian Regression Workflow

Simulate regression data, then fit the same models three ways: least
squares, a high-level Bayesian regression wrapper, and hand-written
declarative model specifications sampled with PyMC's NUTS.
"""

from .version import __version__, __author__, __description__
from .config import SamplerConfig
from .exceptions import (
    BayesWorkflowError,
    ConvergenceWarning,
    SamplerError,
    SamplerTimeout,
    SchemaMismatch,
    ValidationError,
)
from .observations import ObservationSet, drop_missing, load_snapshot
from .simulate import simulate_counts, simulate_linear
from .specification import (
    ModelSpecification,
    Prior,
    gaussian_linear_model,
    poisson_log_linear_model,
)
from .sampling import PosteriorSampleSet, prepare_data, sample
from .least_squares import fit_least_squares, fit_poisson_mle
from .regression import BayesianRegression

__all__ = [
    'BayesWorkflowError',
    'BayesianRegression',
    'ConvergenceWarning',
    'ModelSpecification',
    'ObservationSet',
    'PosteriorSampleSet',
    'Prior',
    'SamplerConfig',
    'SamplerError',
    'SamplerTimeout',
    'SchemaMismatch',
    'ValidationError',
    'drop_missing',
    'fit_least_squares',
    'fit_poisson_mle',
    'gaussian_linear_model',
    'load_snapshot',
    'poisson_log_linear_model',
    'prepare_data',
    'sample',
    'simulate_counts',
    'simulate_linear',
    '__version__',
    '__author__',
    '__description__',
]
