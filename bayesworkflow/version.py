"""Version information for bayesworkflow."""

__version__ = "0.1.0"
__author__ = "bayesworkflow contributors"
__email__ = "bayesworkflow@users.noreply.github.com"
__description__ = (
    "Bayesian regression workflow: simulate, fit by least squares, "
    "fit by MCMC from declarative model specifications"
)
__url__ = "https://github.com/bayesworkflow/bayesworkflow"
