"""
Posterior Sample Sets

Read-only view over the draws produced by one sampling run: a table with one
row per joint draw, summaries, convergence diagnostics and posterior
predictions of the expected response.

"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import arviz as az
import numpy as np
import pandas as pd

from ..config import SamplerConfig
from ..specification import ModelSpecification
from .diagnostics import assess_convergence, diagnostics_table

# Engine statistics copied into the draws table: PyMC name -> column name
DIAGNOSTIC_COLUMNS = {'lp': 'lp', 'diverging': 'diverging'}


class PosteriorSampleSet:
    """
    Posterior draws for one model specification.

    Parameters
    ----------
    trace : az.InferenceData
        Output of the sampler, with ``posterior`` and ``sample_stats`` groups
    specification : ModelSpecification
        Specification the draws were produced from
    diagnostics : Dict[str, float], optional
        Output of ``assess_convergence``
    warnings : List[str], optional
        Convergence problems detected for this run

    Attributes
    ----------
    trace : az.InferenceData
        Posterior samples from MCMC
    specification : ModelSpecification
        Model the draws belong to
    diagnostics : Dict[str, float]
        Convergence diagnostics (R̂, ESS, divergences)
    warnings : List[str]
        Convergence warnings raised while this set was produced

    Examples
    --------
    >>> samples = sample(gaussian_linear_model(), observations)
    >>> samples.draws.head()
    >>> samples.mean()
    intercept    2.01
    slope        2.97
    sigma        1.03
    dtype: float64
    """

    def __init__(
        self,
        trace: az.InferenceData,
        specification: ModelSpecification,
        diagnostics: Optional[Dict[str, float]] = None,
        warnings: Optional[List[str]] = None
    ):
        self.trace = trace
        self.specification = specification
        self.diagnostics = diagnostics or {}
        self.warnings = list(warnings or [])

    @property
    def parameters(self) -> List[str]:
        return self.specification.parameter_names

    @property
    def n_chains(self) -> int:
        return int(self.trace.posterior.sizes['chain'])

    @property
    def n_draws(self) -> int:
        """Draws per chain."""
        return int(self.trace.posterior.sizes['draw'])

    @property
    def converged(self) -> bool:
        return len(self.warnings) == 0

    def __len__(self) -> int:
        return self.n_chains * self.n_draws

    def __repr__(self) -> str:
        return (
            f"PosteriorSampleSet(model='{self.specification.name}', "
            f"chains={self.n_chains}, draws={self.n_draws}, "
            f"warnings={len(self.warnings)})"
        )

    @property
    def draws(self) -> pd.DataFrame:
        """
        One row per joint draw, indexed by (chain, draw).

        Columns: every declared parameter, followed by the engine's
        diagnostic columns ``lp`` (log density) and ``diverging``.
        """
        frame = self.parameter_draws()

        for stat, column in DIAGNOSTIC_COLUMNS.items():
            if stat in self.trace.sample_stats:
                frame[column] = self.trace.sample_stats[stat].values.reshape(-1)

        return frame

    def parameter_draws(self) -> pd.DataFrame:
        """Draws table restricted to the declared parameters."""
        index = pd.MultiIndex.from_product(
            [range(self.n_chains), range(self.n_draws)], names=['chain', 'draw']
        )
        columns = {
            name: self.trace.posterior[name].values.reshape(-1)
            for name in self.parameters
        }
        return pd.DataFrame(columns, index=index)

    def mean(self) -> pd.Series:
        """Posterior mean per parameter."""
        return self.parameter_draws().mean()

    def sd(self) -> pd.Series:
        """Posterior standard deviation per parameter."""
        return self.parameter_draws().std()

    def interval(self, prob: float = 0.90) -> pd.DataFrame:
        """Equal-tailed credible interval per parameter (columns 'lower', 'upper')."""
        if not 0 < prob < 1:
            raise ValueError(f"prob must be in (0,1), got {prob}")

        tail = (1 - prob) / 2
        draws = self.parameter_draws()
        return pd.DataFrame({
            'lower': draws.quantile(tail),
            'upper': draws.quantile(1 - tail),
        })

    def summary(self, hdi_prob: float = 0.94) -> pd.DataFrame:
        """ArviZ summary table (mean, sd, HDI, MCSE, ESS, R-hat) per parameter."""
        return az.summary(self.trace, var_names=self.parameters, hdi_prob=hdi_prob)

    def convergence_table(self) -> pd.DataFrame:
        """Per-parameter R-hat and ESS."""
        return diagnostics_table(self.trace, self.parameters)

    def expected_response(
        self,
        data: Mapping[str, np.ndarray],
        n_samples: Optional[int] = None,
        random_seed: Optional[int] = None
    ) -> Dict[str, np.ndarray]:
        """
        Posterior distribution of the expected response at new predictor values.

        Parameters
        ----------
        data : Mapping[str, np.ndarray]
            One array per predictor field, all of length n_new
        n_samples : int, optional
            Number of posterior draws to use. Defaults to all of them
        random_seed : int, optional
            Seed for subsampling draws

        Returns
        -------
        predictions : Dict[str, np.ndarray]
            Dictionary containing:
            - 'mean': Posterior mean, shape (n_new,)
            - 'std': Posterior standard deviation, shape (n_new,)
            - 'lower_90': 5th percentile, shape (n_new,)
            - 'upper_90': 95th percentile, shape (n_new,)
            - 'samples': Draws of the expected response, shape (n_samples, n_new)
        """
        missing = [p for p in self.specification.predictors if p not in data]
        if missing:
            raise KeyError(f"Predictor values missing for: {missing}")

        draws = self.parameter_draws()

        if n_samples is not None and n_samples < len(draws):
            rng = np.random.default_rng(random_seed)
            idx = rng.choice(len(draws), size=n_samples, replace=False)
            draws = draws.iloc[idx]

        # (n_samples, 1) parameters against (1, n_new) predictors
        params = {name: draws[name].to_numpy()[:, None] for name in self.parameters}
        new_data = {
            name: np.asarray(data[name], dtype=float)[None, :]
            for name in self.specification.predictors
        }
        samples = self.specification.likelihood.mean(params, new_data)

        return {
            'mean': samples.mean(axis=0),
            'std': samples.std(axis=0),
            'lower_90': np.percentile(samples, 5, axis=0),
            'upper_90': np.percentile(samples, 95, axis=0),
            'samples': samples,
        }

    def save(
        self,
        filepath: Union[str, Path],
        verbose: bool = True
    ) -> None:
        """
        Save the trace to NetCDF format.

        The specification is not stored; pass it again to ``load``.
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        self.trace.to_netcdf(str(filepath))

        if verbose:
            print(f"\n✓ Trace saved to {filepath}")
            print(f"  File size: {filepath.stat().st_size / 1e6:.1f} MB")

    @classmethod
    def load(
        cls,
        filepath: Union[str, Path],
        specification: ModelSpecification,
        config: Optional[SamplerConfig] = None,
        verbose: bool = True
    ) -> "PosteriorSampleSet":
        """
        Load a trace saved with ``save`` and re-run the convergence checks.

        Raises
        ------
        FileNotFoundError
            If filepath doesn't exist
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"Trace file not found: {filepath}")

        trace = az.from_netcdf(str(filepath))
        diagnostics, problems = assess_convergence(
            trace, specification.parameter_names, config, emit=False
        )
        samples = cls(trace, specification, diagnostics, problems)

        if verbose:
            print(f"✓ Trace loaded from {filepath}")
            print(f"  Chains: {samples.n_chains}")
            print(f"  Draws per chain: {samples.n_draws}")
            print(f"  Total samples: {len(samples)}")

        return samples
