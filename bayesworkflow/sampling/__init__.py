"""Sampling driver, posterior sample sets and convergence diagnostics"""

from .driver import prepare_data, sample
from .posterior import PosteriorSampleSet
from .diagnostics import assess_convergence, count_divergences, diagnostics_table

__all__ = [
    'PosteriorSampleSet',
    'assess_convergence',
    'count_divergences',
    'diagnostics_table',
    'prepare_data',
    'sample',
]
