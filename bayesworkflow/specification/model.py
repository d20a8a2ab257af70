"""
Declarative Model Specification

A ``ModelSpecification`` ties together the observed-data schema, the unknown
parameters with their priors, and the likelihood. It is immutable, can be
rendered as a three-section text document (data / parameters / model), and
compiles to a fresh ``pm.Model`` for every sampling run.

"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pymc as pm

from ..exceptions import ValidationError
from .components import DataField, FieldKind, Likelihood, Parameter, Support


@dataclass(frozen=True)
class ModelSpecification:
    """
    Observation schema + parameters + likelihood.

    Parameters
    ----------
    name : str
        Human-readable model name
    fields : tuple of DataField
        Declared observed fields
    parameters : tuple of Parameter
        Declared unknowns, each with support and prior
    likelihood : Likelihood
        Distribution of the response given parameters and predictors

    Raises
    ------
    ValidationError
        If the likelihood references an undeclared parameter or field, a
        declared parameter is unused, the scale parameter is not
        non-negative, or a Poisson response is not a count field.

    Examples
    --------
    >>> spec = ModelSpecification(
    ...     name='gaussian_linear',
    ...     fields=(DataField('x'), DataField('y')),
    ...     parameters=(
    ...         Parameter('intercept', Support.REAL, Prior.normal(0, 1)),
    ...         Parameter('slope', Support.REAL, Prior.normal(0, 1)),
    ...         Parameter('sigma', Support.NON_NEGATIVE, Prior.exponential(1)),
    ...     ),
    ...     likelihood=Likelihood('normal', response='y', intercept='intercept',
    ...                           terms=(('slope', 'x'),), scale='sigma'),
    ... )
    >>> print(spec.to_text())
    """

    name: str
    fields: Tuple[DataField, ...]
    parameters: Tuple[Parameter, ...]
    likelihood: Likelihood

    def __post_init__(self):
        # Accept lists but store tuples so the specification stays hashable
        object.__setattr__(self, 'fields', tuple(self.fields))
        object.__setattr__(self, 'parameters', tuple(self.parameters))
        self._validate()

    def _validate(self):
        field_names = [f.name for f in self.fields]
        param_names = [p.name for p in self.parameters]

        if len(set(field_names)) != len(field_names):
            raise ValidationError(f"Duplicate data fields: {field_names}")
        if len(set(param_names)) != len(param_names):
            raise ValidationError(f"Duplicate parameters: {param_names}")

        clash = set(field_names) & set(param_names)
        if clash:
            raise ValidationError(f"Names used for both data and parameters: {sorted(clash)}")

        lik = self.likelihood

        undeclared = [n for n in lik.parameter_names if n not in param_names]
        if undeclared:
            raise ValidationError(f"Likelihood uses undeclared parameters: {undeclared}")

        unused = [n for n in param_names if n not in lik.parameter_names]
        if unused:
            raise ValidationError(f"Declared parameters never used by the likelihood: {unused}")

        referenced = (lik.response,) + lik.predictor_names
        undeclared = [n for n in referenced if n not in field_names]
        if undeclared:
            raise ValidationError(f"Likelihood uses undeclared data fields: {undeclared}")

        if lik.scale is not None and self.parameter(lik.scale).support is not Support.NON_NEGATIVE:
            raise ValidationError(
                f"Scale parameter '{lik.scale}' must have non-negative support"
            )

        if lik.family == 'poisson' and self.field(lik.response).kind is not FieldKind.COUNT:
            raise ValidationError(
                f"Poisson response '{lik.response}' must be declared as a count field"
            )

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def parameter_names(self) -> List[str]:
        return [p.name for p in self.parameters]

    @property
    def response(self) -> str:
        return self.likelihood.response

    @property
    def predictors(self) -> List[str]:
        return list(self.likelihood.predictor_names)

    def field(self, name: str) -> DataField:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def parameter(self, name: str) -> Parameter:
        for p in self.parameters:
            if p.name == name:
                return p
        raise KeyError(name)

    def build(self, data: Dict[str, np.ndarray]) -> pm.Model:
        """
        Compile to a new PyMC model bound to ``data``.

        Parameters
        ----------
        data : Dict[str, np.ndarray]
            Data bundle from ``prepare_data``: 'N' plus one array per field

        Returns
        -------
        model : pm.Model
            PyMC model object
        """
        with pm.Model() as model:
            rvs = {p.name: p.build() for p in self.parameters}
            self.likelihood.build(rvs, data, observed=data[self.response])

        return model

    def to_text(self) -> str:
        """Render the specification as data / parameters / model sections."""
        lines = ["data {", "  int<lower=1> N;"]
        lines += [f"  {f.to_text()}" for f in self.fields]
        lines += ["}", "parameters {"]
        lines += [f"  {p.to_text()}" for p in self.parameters]
        lines += ["}", "model {"]
        lines += [f"  {p.name} ~ {p.prior.to_text()};" for p in self.parameters]
        lines += [f"  {self.likelihood.to_text()}", "}"]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.to_text()
