"""BayesianRegression - high-level fit/predict interface"""

import pickle
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .config import SamplerConfig
from .least_squares import fit_least_squares, fit_poisson_mle
from .observations import ObservationSet
from .sampling import PosteriorSampleSet, diagnostics_table, sample
from .specification import (
    DataField,
    FieldKind,
    Likelihood,
    ModelSpecification,
    Parameter,
    Prior,
    Support,
)

FAMILIES = ('gaussian', 'poisson')


def parse_formula(formula: str) -> Tuple[str, List[str]]:
    """
    Split a formula such as ``'y ~ x'`` or ``'y ~ x1 + x2'``.

    Returns
    -------
    response : str
    predictors : List[str]
    """
    if formula.count('~') != 1:
        raise ValueError(f"Formula must look like 'response ~ predictor', got '{formula}'")

    lhs, rhs = (side.strip() for side in formula.split('~'))
    predictors = [term.strip() for term in rhs.split('+') if term.strip()]

    if not lhs or not predictors:
        raise ValueError(f"Formula must look like 'response ~ predictor', got '{formula}'")
    for name in [lhs] + predictors:
        if not name.isidentifier():
            raise ValueError(f"Formula terms must be plain column names, got '{name}'")
    if len(set(predictors)) != len(predictors) or lhs in predictors:
        raise ValueError(f"Formula repeats a column: '{formula}'")

    return lhs, predictors


class BayesianRegression:
    """
    Bayesian GLM fitted by MCMC from a formula and a DataFrame.

    Builds a ``ModelSpecification`` for the requested family with
    weakly informative priors scaled to the data, then runs the sampling
    driver on it.

    Parameters
    ----------
    family : str, default='gaussian'
        'gaussian' (identity link, parameters intercept / beta_<x> / sigma)
        or 'poisson' (log link, parameters intercept / beta_<x>).

    priors : dict of {str: Prior}, optional
        Overrides of the default priors. Keys: 'intercept', 'coefficients'
        (shared by every beta_<x>) and, for gaussian, 'sigma'.

    quick_mode : bool, default=False
        If True, uses faster MCMC settings for prototyping.
        Set False for final analyses.

    random_seed : int, optional
        Random seed for reproducibility. Overrides the seed in ``config``;
        when omitted the config seed (42 by default) is used.

    config : SamplerConfig, optional
        Full sampler settings. Takes precedence over quick_mode.

    Examples
    --------
    >>> from bayesworkflow import BayesianRegression, simulate_linear
    >>>
    >>> data = simulate_linear(n=100)
    >>> model = BayesianRegression(family='gaussian')
    >>> model.fit(data, 'y ~ x')
    >>> model.summary()
    >>>
    >>> # Posterior of the expected response with uncertainty
    >>> predictions = model.predict(pd.DataFrame({'x': [-1.0, 0.0, 1.0]}))
    """

    def __init__(
        self,
        family: str = 'gaussian',
        priors: Optional[Dict[str, Prior]] = None,
        quick_mode: bool = False,
        random_seed: Optional[int] = None,
        config: Optional[SamplerConfig] = None
    ):
        if family not in FAMILIES:
            raise ValueError(f"family must be one of {FAMILIES}, got '{family}'")

        allowed = {'intercept', 'coefficients'} | ({'sigma'} if family == 'gaussian' else set())
        unknown = set(priors or {}) - allowed
        if unknown:
            raise ValueError(
                f"Unknown prior keys {sorted(unknown)} for family '{family}'. "
                f"Allowed: {sorted(allowed)}"
            )

        self.family = family
        self.priors = dict(priors or {})
        self.quick_mode = quick_mode

        if config is None:
            config = SamplerConfig.quick() if quick_mode else SamplerConfig()
        self.config = config.with_overrides(random_seed=random_seed)
        self.random_seed = self.config.random_seed

        # Will be initialized during fit()
        self.response = None
        self.predictors = None
        self.specification_ = None
        self.samples_ = None
        self.data_ = None
        self.n_dropped_ = None

    def fit(
        self,
        data: pd.DataFrame,
        formula: str,
        validate_convergence: bool = False,
        verbose: bool = True
    ) -> 'BayesianRegression':
        """
        Fit the model by MCMC.

        Rows with a missing response or predictor are dropped, never imputed.

        Parameters
        ----------
        data : pd.DataFrame
            Observed data containing every column named in the formula.

        formula : str
            'response ~ predictor' or 'response ~ x1 + x2'.

        validate_convergence : bool, default=False
            If True, raises RuntimeError if convergence checks fail instead
            of only warning.

        verbose : bool, default=True
            If True, print progress.

        Returns
        -------
        self : BayesianRegression
            Fitted model.
        """
        response, predictors = parse_formula(formula)
        missing = [c for c in [response] + predictors if c not in data.columns]
        if missing:
            raise ValueError(f"Columns {missing} not found in data")

        observations = ObservationSet.from_frame(
            data, predictors + [response], dropna=True, verbose=verbose
        )
        self.response = response
        self.predictors = predictors
        self.data_ = observations.to_frame()
        self.n_dropped_ = observations.n_dropped

        if verbose:
            print(f"\n{'='*70}")
            print(f"BayesianRegression ({self.family}): {formula}")
            print(f"{'='*70}")
            print(f"✓ {len(observations)} complete observations "
                  f"({self.n_dropped_} dropped for missing values)")

        self.specification_ = self._build_specification(self.data_)

        if verbose:
            print("\nModel specification:")
            print(self.specification_.to_text())

        self.samples_ = sample(
            self.specification_, observations, self.config, verbose=verbose
        )

        if validate_convergence:
            self._validate_convergence(verbose=verbose)

        if verbose:
            print(f"\n✓ BayesianRegression fitted")

        return self

    def predict(
        self,
        X: pd.DataFrame,
        return_uncertainty: bool = True,
        n_posterior_samples: Optional[int] = 1000
    ) -> pd.DataFrame:
        """
        Posterior of the expected response at new predictor values.

        Parameters
        ----------
        X : pd.DataFrame
            New data with the predictor columns used in fit().

        return_uncertainty : bool, default=True
            If True, adds posterior std and the 90% credible interval.

        n_posterior_samples : int, optional, default=1000
            Number of posterior draws to use. None uses every draw.

        Returns
        -------
        predictions : pd.DataFrame
            DataFrame with columns:
            - prediction: Posterior mean of the expected response
            - posterior_std: Posterior standard deviation (if return_uncertainty)
            - lower_90: 5th percentile
            - upper_90: 95th percentile
        """
        self._check_fitted()

        missing = [p for p in self.predictors if p not in X.columns]
        if missing:
            raise ValueError(f"Columns {missing} not found in X")

        posterior = self.samples_.expected_response(
            {p: X[p].to_numpy(dtype=float) for p in self.predictors},
            n_samples=n_posterior_samples,
            random_seed=self.random_seed
        )

        predictions = pd.DataFrame({'prediction': posterior['mean']}, index=X.index)

        if return_uncertainty:
            predictions['posterior_std'] = posterior['std']
            predictions['lower_90'] = posterior['lower_90']
            predictions['upper_90'] = posterior['upper_90']

        return predictions

    def summary(self, hdi_prob: float = 0.94) -> pd.DataFrame:
        """ArviZ summary of the posterior."""
        self._check_fitted()
        return self.samples_.summary(hdi_prob=hdi_prob)

    def get_convergence_diagnostics(self) -> pd.DataFrame:
        """
        Return MCMC convergence diagnostics (R̂, ESS).

        Returns
        -------
        diagnostics : pd.DataFrame
            DataFrame with columns: parameter, r_hat, ess_bulk, ess_tail
        """
        self._check_fitted()
        return diagnostics_table(self.samples_.trace, self.specification_.parameter_names)

    def compare_least_squares(self) -> pd.DataFrame:
        """
        Posterior means next to the frequentist estimates.

        Returns
        -------
        comparison : pd.DataFrame
            Indexed by parameter, with columns least_squares,
            least_squares_se, posterior_mean, posterior_sd
        """
        self._check_fitted()

        if self.family == 'gaussian':
            freq = fit_least_squares(self.data_, self.predictors, self.response)
        else:
            freq = fit_poisson_mle(self.data_, self.predictors, self.response)

        # term names -> parameter names
        freq = freq.rename(index={p: self._coef_name(p) for p in self.predictors})
        params = self.specification_.parameter_names

        return pd.DataFrame({
            'least_squares': freq['estimate'].reindex(params),
            'least_squares_se': freq['std_error'].reindex(params),
            'posterior_mean': self.samples_.mean(),
            'posterior_sd': self.samples_.sd(),
        })

    def save(self, filepath: str):
        """Save fitted model to disk (pickle)."""
        with open(filepath, 'wb') as f:
            pickle.dump(self, f)
        print(f"✓ BayesianRegression saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'BayesianRegression':
        """Load fitted model from disk."""
        with open(filepath, 'rb') as f:
            model = pickle.load(f)
        print(f"✓ BayesianRegression loaded from {filepath}")
        return model

    @property
    def samples(self) -> PosteriorSampleSet:
        self._check_fitted()
        return self.samples_

    # ---- Private methods ----

    @staticmethod
    def _coef_name(predictor: str) -> str:
        return f"beta_{predictor}"

    def _check_fitted(self):
        if self.samples_ is None:
            raise RuntimeError("Model not fitted. Call .fit() first.")

    def _default_priors(self, data: pd.DataFrame) -> Dict[str, Prior]:
        """
        Weakly informative priors scaled to the data.

        Gaussian: intercept ~ Normal(mean(y), 2.5 sd(y)),
        coefficients ~ Normal(0, 2.5 sd(y) / sd(x)), sigma ~ Exponential(1 / sd(y)).
        Poisson: intercept ~ Normal(0, 2.5), coefficients ~ Normal(0, 2.5 / sd(x)).
        A single shared coefficient prior uses the widest of the per-predictor scales.
        """
        x_sd = max(min(float(data[p].std(ddof=0)) for p in self.predictors), 1e-8)

        if self.family == 'gaussian':
            y = data[self.response]
            y_sd = float(y.std(ddof=0)) if len(y) > 1 else 1.0
            y_sd = y_sd if y_sd > 0 else 1.0
            return {
                'intercept': Prior.normal(float(y.mean()), 2.5 * y_sd),
                'coefficients': Prior.normal(0.0, 2.5 * y_sd / x_sd),
                'sigma': Prior.exponential(1.0 / y_sd),
            }

        return {
            'intercept': Prior.normal(0.0, 2.5),
            'coefficients': Prior.normal(0.0, 2.5 / x_sd),
        }

    def _build_specification(self, data: pd.DataFrame) -> ModelSpecification:
        priors = self._default_priors(data)
        priors.update(self.priors)

        response_kind = FieldKind.COUNT if self.family == 'poisson' else FieldKind.REAL
        fields = [DataField(p) for p in self.predictors]
        fields.append(DataField(self.response, response_kind))

        parameters = [Parameter('intercept', Support.REAL, priors['intercept'])]
        parameters += [
            Parameter(self._coef_name(p), Support.REAL, priors['coefficients'])
            for p in self.predictors
        ]

        terms = tuple((self._coef_name(p), p) for p in self.predictors)

        if self.family == 'gaussian':
            parameters.append(Parameter('sigma', Support.NON_NEGATIVE, priors['sigma']))
            likelihood = Likelihood(
                'normal', response=self.response, intercept='intercept',
                terms=terms, scale='sigma'
            )
        else:
            likelihood = Likelihood(
                'poisson', response=self.response, intercept='intercept', terms=terms
            )

        return ModelSpecification(
            name=f"{self.family}_regression",
            fields=tuple(fields),
            parameters=tuple(parameters),
            likelihood=likelihood,
        )

    def _validate_convergence(self, verbose: bool = True):
        """Raise RuntimeError if the convergence checks failed."""
        diagnostics = self.samples_.diagnostics

        if not diagnostics['all_ok']:
            raise RuntimeError(
                "MCMC convergence failed!\n"
                + "\n".join(f"  - {w}" for w in self.samples_.warnings)
                + "\n\nTry increasing MCMC draws: BayesianRegression(quick_mode=False)"
            )

        if verbose:
            print(f"  ✓ Convergence validated (max R̂ = {diagnostics['rhat_max']:.4f}, "
                  f"min ESS = {min(diagnostics['ess_bulk_min'], diagnostics['ess_tail_min']):.0f})")
