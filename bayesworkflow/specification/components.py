"""
Building blocks of a model specification.

Each block is a frozen dataclass: a specification is authored once and never
mutated. Priors and likelihoods are tagged variants (a family name plus its
fixed hyperparameters) that ``ModelSpecification.build`` turns into PyMC
random variables.

"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np
import pymc as pm


class Support(str, Enum):
    """Domain of an unknown parameter."""

    REAL = "real"
    NON_NEGATIVE = "non_negative"


class FieldKind(str, Enum):
    """Type of an observed data field."""

    REAL = "real"
    COUNT = "count"  # non-negative integer


# family -> (required hyperparameters, support of the family)
PRIOR_FAMILIES: Dict[str, Tuple[Tuple[str, ...], Support]] = {
    'normal': (('mu', 'sigma'), Support.REAL),
    'exponential': (('lam',), Support.NON_NEGATIVE),
    'half_normal': (('sigma',), Support.NON_NEGATIVE),
}

LIKELIHOOD_FAMILIES = {
    'normal': 'identity',
    'poisson': 'log',
}


@dataclass(frozen=True)
class Prior:
    """
    Prior distribution: a family and its fixed hyperparameters.

    Use the constructors ``Prior.normal``, ``Prior.exponential`` and
    ``Prior.half_normal`` rather than spelling out hyperparameter names.
    """

    family: str
    hyperparameters: Tuple[Tuple[str, float], ...]

    def __post_init__(self):
        if self.family not in PRIOR_FAMILIES:
            raise ValueError(
                f"Unknown prior family '{self.family}'. "
                f"Choose from {sorted(PRIOR_FAMILIES)}"
            )

        required, _ = PRIOR_FAMILIES[self.family]
        names = tuple(name for name, _ in self.hyperparameters)
        if sorted(names) != sorted(required):
            raise ValueError(
                f"Prior '{self.family}' needs hyperparameters {required}, got {names}"
            )

        params = self.params
        for name in ('sigma', 'lam'):
            if name in params and params[name] <= 0:
                raise ValueError(
                    f"Prior '{self.family}': {name} must be positive. Got: {params[name]}"
                )

    @classmethod
    def normal(cls, mu: float = 0.0, sigma: float = 1.0) -> "Prior":
        return cls('normal', (('mu', float(mu)), ('sigma', float(sigma))))

    @classmethod
    def exponential(cls, lam: float = 1.0) -> "Prior":
        """Exponential prior parameterised by its rate."""
        return cls('exponential', (('lam', float(lam)),))

    @classmethod
    def half_normal(cls, sigma: float = 1.0) -> "Prior":
        return cls('half_normal', (('sigma', float(sigma)),))

    @property
    def params(self) -> Dict[str, float]:
        return dict(self.hyperparameters)

    @property
    def support(self) -> Support:
        return PRIOR_FAMILIES[self.family][1]

    def to_text(self) -> str:
        """Render as ``family(h1, h2)``, e.g. ``normal(0, 1)``."""
        values = ", ".join(f"{value:g}" for _, value in self.hyperparameters)
        return f"{self.family}({values})"


@dataclass(frozen=True)
class Parameter:
    """A named unknown scalar with a declared support and prior."""

    name: str
    support: Support
    prior: Prior

    def __post_init__(self):
        if not self.name.isidentifier():
            raise ValueError(f"Parameter name must be an identifier, got '{self.name}'")
        if self.support is Support.REAL and self.prior.support is not Support.REAL:
            raise ValueError(
                f"Parameter '{self.name}' has real support but a "
                f"{self.prior.family} prior, which only covers non-negative values"
            )

    def build(self):
        """
        Create the PyMC random variable (inside an active ``pm.Model``).

        Non-negative parameters are sampled on a log-transformed scale by
        PyMC, so every draw respects the support without filtering.
        """
        params = self.prior.params

        if self.prior.family == 'normal':
            if self.support is Support.NON_NEGATIVE:
                return pm.TruncatedNormal(
                    self.name, mu=params['mu'], sigma=params['sigma'], lower=0.0
                )
            return pm.Normal(self.name, mu=params['mu'], sigma=params['sigma'])

        if self.prior.family == 'exponential':
            return pm.Exponential(self.name, lam=params['lam'])

        return pm.HalfNormal(self.name, sigma=params['sigma'])

    def to_text(self) -> str:
        bound = "<lower=0>" if self.support is Support.NON_NEGATIVE else ""
        return f"real{bound} {self.name};"


@dataclass(frozen=True)
class DataField:
    """An observed field: a name and a kind."""

    name: str
    kind: FieldKind = FieldKind.REAL

    def __post_init__(self):
        if not self.name.isidentifier():
            raise ValueError(f"Field name must be an identifier, got '{self.name}'")

    def to_text(self) -> str:
        if self.kind is FieldKind.COUNT:
            return f"array[N] int<lower=0> {self.name};"
        return f"vector[N] {self.name};"


@dataclass(frozen=True)
class Likelihood:
    """
    Distribution of the response given parameters and predictors.

    The linear predictor is ``intercept + sum(coef * predictor for coef,
    predictor in terms)``. The family fixes the link: ``normal`` uses the
    identity, ``poisson`` the log link, so the Poisson rate is
    ``exp(linear predictor)`` and stays positive for any parameter values.

    Parameters
    ----------
    family : str
        'normal' or 'poisson'
    response : str
        Name of the response data field
    intercept : str
        Name of the intercept parameter
    terms : tuple of (str, str)
        (coefficient parameter, predictor field) pairs
    scale : str, optional
        Name of the standard deviation parameter ('normal' only)
    """

    family: str
    response: str
    intercept: str
    terms: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    scale: Optional[str] = None

    def __post_init__(self):
        if self.family not in LIKELIHOOD_FAMILIES:
            raise ValueError(
                f"Unknown likelihood family '{self.family}'. "
                f"Choose from {sorted(LIKELIHOOD_FAMILIES)}"
            )
        if self.family == 'normal' and self.scale is None:
            raise ValueError("A normal likelihood needs a scale parameter")
        if self.family == 'poisson' and self.scale is not None:
            raise ValueError("A poisson likelihood has no scale parameter")

    @property
    def link(self) -> str:
        return LIKELIHOOD_FAMILIES[self.family]

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        names = (self.intercept,) + tuple(coef for coef, _ in self.terms)
        if self.scale is not None:
            names += (self.scale,)
        return names

    @property
    def predictor_names(self) -> Tuple[str, ...]:
        return tuple(predictor for _, predictor in self.terms)

    def linear_predictor(self, parameters: Dict, data: Dict):
        """Compute the linear predictor from parameter values and data arrays."""
        eta = parameters[self.intercept]
        for coef, predictor in self.terms:
            eta = eta + parameters[coef] * data[predictor]
        return eta

    def mean(self, parameters: Dict, data: Dict):
        """Expected response, i.e. the inverse link applied to the linear predictor."""
        eta = self.linear_predictor(parameters, data)
        if self.link == 'log':
            return np.exp(eta)
        return eta

    def build(self, parameters: Dict, data: Dict, observed: np.ndarray):
        """Create the observed PyMC variable (inside an active ``pm.Model``)."""
        eta = self.linear_predictor(parameters, data)

        if self.family == 'normal':
            return pm.Normal(
                self.response, mu=eta, sigma=parameters[self.scale], observed=observed
            )

        # Poisson with log link: rate = exp(eta)
        return pm.Poisson(self.response, mu=pm.math.exp(eta), observed=observed)

    def to_text(self) -> str:
        eta = " + ".join(
            [self.intercept] + [f"{coef} * {pred}" for coef, pred in self.terms]
        )
        if self.family == 'normal':
            return f"{self.response} ~ normal({eta}, {self.scale});"
        return f"{self.response} ~ poisson_log({eta});"
