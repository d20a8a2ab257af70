"""Declarative model specifications"""

from .components import (
    DataField,
    FieldKind,
    Likelihood,
    Parameter,
    Prior,
    Support,
)
from .model import ModelSpecification
from .library import gaussian_linear_model, poisson_log_linear_model

__all__ = [
    'DataField',
    'FieldKind',
    'Likelihood',
    'ModelSpecification',
    'Parameter',
    'Prior',
    'Support',
    'gaussian_linear_model',
    'poisson_log_linear_model',
]
