"""MCMC convergence diagnostics."""

import warnings
from typing import Dict, List, Optional, Sequence, Tuple

import arviz as az
import numpy as np
import pandas as pd

from ..config import SamplerConfig
from ..exceptions import ConvergenceWarning


def _extract_values(dataset) -> np.ndarray:
    """Flatten every variable of an xarray Dataset into one array."""
    values = []
    for var in dataset.data_vars:
        values.extend(np.asarray(dataset[var].values).flatten())
    return np.asarray(values, dtype=float)


def count_divergences(trace: az.InferenceData) -> int:
    """Number of post-warmup divergent transitions across all chains."""
    try:
        return int(np.sum(trace.sample_stats['diverging'].values))
    except (AttributeError, KeyError):
        return 0


def assess_convergence(
    trace: az.InferenceData,
    var_names: Optional[Sequence[str]] = None,
    config: Optional[SamplerConfig] = None,
    emit: bool = True,
    verbose: bool = False
) -> Tuple[Dict[str, float], List[str]]:
    """
    Check completed chains for signs the draws are unreliable.

    Must only be called once every chain has finished: split R-hat and ESS
    compare whole chains.

    Diagnostics applied:
    - Split R-hat: between-chain vs within-chain variance. Values above
      ``config.max_rhat`` suggest chains have not mixed.
    - Bulk and tail ESS: effective sample size. Values below
      ``config.min_ess`` indicate high autocorrelation or short chains.
    - Divergent transitions: the sampler hit regions it could not integrate
      accurately; estimates may be biased.

    Parameters
    ----------
    trace : az.InferenceData
        Posterior draws with sample statistics
    var_names : sequence of str, optional
        Parameters to check. Defaults to every posterior variable
    config : SamplerConfig, optional
        Supplies the thresholds. Defaults to ``SamplerConfig()``
    emit : bool, optional (default=True)
        If True, raise each problem as a ``ConvergenceWarning``
    verbose : bool, optional (default=False)
        If True, print a diagnostics report

    Returns
    -------
    diagnostics : Dict[str, float]
        'rhat_max', 'ess_bulk_min', 'ess_tail_min', 'divergences' and the
        flags 'rhat_ok', 'ess_ok', 'divergences_ok', 'all_ok'
    problems : List[str]
        One message per failed check (empty when all checks pass)
    """
    config = config or SamplerConfig()
    var_names = list(var_names) if var_names is not None else None

    rhat_max = float(np.nanmax(_extract_values(az.rhat(trace, var_names=var_names))))
    ess_bulk_min = float(np.nanmin(_extract_values(
        az.ess(trace, var_names=var_names, method='bulk')
    )))
    ess_tail_min = float(np.nanmin(_extract_values(
        az.ess(trace, var_names=var_names, method='tail')
    )))
    divergences = count_divergences(trace)

    rhat_ok = rhat_max < config.max_rhat
    ess_ok = min(ess_bulk_min, ess_tail_min) > config.min_ess
    divergences_ok = divergences <= config.max_divergences

    problems = []
    if not rhat_ok:
        problems.append(
            f"R-hat = {rhat_max:.4f} exceeds {config.max_rhat}: chains have not "
            "converged to the same distribution"
        )
    if not ess_ok:
        problems.append(
            f"Effective sample size = {min(ess_bulk_min, ess_tail_min):.0f} is below "
            f"{config.min_ess:.0f}: draws are highly autocorrelated"
        )
    if not divergences_ok:
        n_total = trace.posterior.sizes['chain'] * trace.posterior.sizes['draw']
        problems.append(
            f"{divergences} divergent transitions in {n_total} draws: the posterior "
            "may be biased. Reparameterize or raise target_accept"
        )

    if emit:
        for message in problems:
            warnings.warn(message, ConvergenceWarning, stacklevel=3)

    if verbose:
        def flag(ok: bool) -> str:
            return '✓ PASS' if ok else '✗ FAIL'

        print(f"\n{'=' * 80}")
        print("CONVERGENCE DIAGNOSTICS")
        print(f"{'=' * 80}")
        print(f"  Max R̂:          {rhat_max:.4f}  {flag(rhat_ok)}")
        print(f"  Min ESS (bulk): {ess_bulk_min:.0f}  {flag(ess_ok)}")
        print(f"  Min ESS (tail): {ess_tail_min:.0f}")
        print(f"  Divergences:    {divergences}  {flag(divergences_ok)}")

    diagnostics = {
        'rhat_max': rhat_max,
        'ess_bulk_min': ess_bulk_min,
        'ess_tail_min': ess_tail_min,
        'divergences': divergences,
        'rhat_ok': bool(rhat_ok),
        'ess_ok': bool(ess_ok),
        'divergences_ok': bool(divergences_ok),
        'all_ok': bool(rhat_ok and ess_ok and divergences_ok),
    }

    return diagnostics, problems


def diagnostics_table(
    trace: az.InferenceData,
    var_names: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """Per-parameter R-hat and ESS as a DataFrame (parameter, r_hat, ess_bulk, ess_tail)."""
    summary = az.summary(trace, var_names=list(var_names) if var_names else None)

    summary = summary.reset_index()
    summary = summary.rename(columns={'index': 'parameter'})

    cols = ['parameter', 'r_hat', 'ess_bulk', 'ess_tail']
    return summary[cols]
