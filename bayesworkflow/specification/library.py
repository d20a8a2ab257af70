"""
Ready-made specifications for the two reference models.

* Gaussian linear model: ``y ~ Normal(intercept + slope * x, sigma)``
* Poisson log-linear model: ``Ozone ~ Poisson(exp(a + b * Temp))``
"""

from typing import Optional

from .components import DataField, FieldKind, Likelihood, Parameter, Prior, Support
from .model import ModelSpecification


def gaussian_linear_model(
    predictor: str = 'x',
    response: str = 'y',
    coefficient_prior: Optional[Prior] = None,
    sigma_prior: Optional[Prior] = None
) -> ModelSpecification:
    """
    Gaussian linear regression with one predictor.

    Unknowns: ``intercept`` and ``slope`` (real, Normal(0, 1) by default)
    and ``sigma`` (non-negative, Exponential(1) by default).
    """
    coefficient_prior = coefficient_prior or Prior.normal(0, 1)
    sigma_prior = sigma_prior or Prior.exponential(1)

    return ModelSpecification(
        name='gaussian_linear',
        fields=(DataField(predictor), DataField(response)),
        parameters=(
            Parameter('intercept', Support.REAL, coefficient_prior),
            Parameter('slope', Support.REAL, coefficient_prior),
            Parameter('sigma', Support.NON_NEGATIVE, sigma_prior),
        ),
        likelihood=Likelihood(
            'normal',
            response=response,
            intercept='intercept',
            terms=(('slope', predictor),),
            scale='sigma',
        ),
    )


def poisson_log_linear_model(
    predictor: str = 'Temp',
    response: str = 'Ozone',
    coefficient_prior: Optional[Prior] = None
) -> ModelSpecification:
    """
    Poisson regression with a log link.

    Unknowns: ``a`` and ``b`` (real, weak Normal(0, 100) priors by default).
    The response must be a non-negative integer count.
    """
    coefficient_prior = coefficient_prior or Prior.normal(0, 100)

    return ModelSpecification(
        name='poisson_log_linear',
        fields=(DataField(predictor), DataField(response, FieldKind.COUNT)),
        parameters=(
            Parameter('a', Support.REAL, coefficient_prior),
            Parameter('b', Support.REAL, coefficient_prior),
        ),
        likelihood=Likelihood(
            'poisson',
            response=response,
            intercept='a',
            terms=(('b', predictor),),
        ),
    )
