"""
Sampling Driver

Maps observations onto the fields a ``ModelSpecification`` declares and runs
PyMC's NUTS sampler on the compiled model.

Chains are independent: PyMC derives one random stream per chain from
``random_seed`` and, with ``cores > 1``, runs each chain in its own process.
The call blocks until every chain has finished; convergence diagnostics are
computed only afterwards. Nothing is retried: re-running a sampler that did
not converge with identical inputs reproduces the same failure.

"""

import time
from typing import Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd
import pymc as pm

from ..config import SamplerConfig
from ..exceptions import (
    BayesWorkflowError,
    SamplerError,
    SamplerTimeout,
    SchemaMismatch,
    ValidationError,
)
from ..observations import ObservationSet
from ..specification import FieldKind, ModelSpecification
from .diagnostics import assess_convergence
from .posterior import PosteriorSampleSet

ObservationsLike = Union[ObservationSet, pd.DataFrame, Mapping[str, np.ndarray]]


def _check_numeric(specification: ModelSpecification, frame: pd.DataFrame):
    if len(frame) == 0:
        return  # emptiness is reported by ObservationSet
    for name in specification.field_names:
        dtype = frame[name].dtype
        if pd.api.types.is_bool_dtype(dtype) or not pd.api.types.is_numeric_dtype(dtype):
            raise SchemaMismatch(
                f"Field '{name}' must be numeric, got dtype {dtype}"
            )


def _as_observation_set(
    specification: ModelSpecification,
    observations: ObservationsLike
) -> ObservationSet:
    """Coerce supported inputs to an ObservationSet holding the declared fields."""
    declared = specification.field_names

    if isinstance(observations, ObservationSet):
        absent = [f for f in declared if f not in observations]
        if absent:
            raise SchemaMismatch(
                f"Model '{specification.name}' declares fields {absent} "
                f"that the observations do not supply ({observations.fields})"
            )
        return ObservationSet(observations.to_frame(), declared, observations.n_dropped)

    if isinstance(observations, pd.DataFrame):
        absent = [f for f in declared if f not in observations.columns]
        if absent:
            raise SchemaMismatch(
                f"Model '{specification.name}' declares fields {absent} "
                f"that the data do not supply ({list(observations.columns)})"
            )
        _check_numeric(specification, observations)
        return ObservationSet(observations, declared)

    if isinstance(observations, Mapping):
        absent = [f for f in declared if f not in observations]
        if absent:
            raise SchemaMismatch(
                f"Model '{specification.name}' declares fields {absent} "
                f"that the data do not supply ({list(observations)})"
            )

        columns = {f: np.asarray(observations[f]) for f in declared}
        for name, values in columns.items():
            if values.ndim != 1:
                raise SchemaMismatch(
                    f"Field '{name}' must be one-dimensional, got shape {values.shape}"
                )

        lengths = {name: len(values) for name, values in columns.items()}
        if len(set(lengths.values())) > 1:
            raise SchemaMismatch(f"Fields have different lengths: {lengths}")

        if 'N' in observations and int(observations['N']) != next(iter(lengths.values())):
            raise SchemaMismatch(
                f"Declared N = {observations['N']} but fields have length "
                f"{next(iter(lengths.values()))}"
            )

        try:
            frame = pd.DataFrame(columns)
        except (TypeError, ValueError) as exc:
            raise SchemaMismatch(f"Cannot tabulate observations: {exc}") from exc
        _check_numeric(specification, frame)
        return ObservationSet(frame, declared)

    raise ValidationError(
        "Observations must be an ObservationSet, a DataFrame or a mapping of "
        f"field name to array, got {type(observations).__name__}"
    )


def prepare_data(
    specification: ModelSpecification,
    observations: ObservationsLike
) -> Dict[str, np.ndarray]:
    """
    Build the data bundle a specification declares.

    Parameters
    ----------
    specification : ModelSpecification
        Model whose fields are to be supplied
    observations : ObservationSet, pd.DataFrame or mapping of arrays
        Observed data. Extra fields are ignored

    Returns
    -------
    data : Dict[str, np.ndarray]
        'N' (sample size) plus one array per declared field: float64 for
        real fields, int64 for count fields

    Raises
    ------
    ValidationError
        If the observation set is empty, non-numeric or has missing values
    SchemaMismatch
        If a declared field is absent, lengths disagree, a real field holds
        non-finite values, or a count field holds negative or fractional values
    """
    observations = _as_observation_set(specification, observations)

    data = {'N': len(observations)}

    for field in specification.fields:
        values = observations[field.name].astype(np.float64)

        if not np.all(np.isfinite(values)):
            raise SchemaMismatch(f"Field '{field.name}' contains non-finite values")

        if field.kind is FieldKind.COUNT:
            # int64 cannot hold 2**63 and above
            bad = (values < 0) | (values != np.floor(values)) | (values >= 2.0 ** 63)
            if np.any(bad):
                idx = np.flatnonzero(bad)
                raise SchemaMismatch(
                    f"Count field '{field.name}' must hold non-negative integers below 2**63; "
                    f"{len(idx)} invalid values at rows {idx[:10].tolist()} "
                    f"(e.g. {values[idx[0]]})"
                )
            data[field.name] = values.astype(np.int64)
        else:
            data[field.name] = values

    return data


def _deadline_callback(deadline: float, timeout: float):
    """PyMC per-draw callback that aborts sampling once the deadline passes."""
    def callback(trace, draw):
        if time.monotonic() > deadline:
            raise SamplerTimeout(
                f"Sampling exceeded the {timeout:g}s timeout; no draws are returned"
            )
    return callback


def sample(
    specification: ModelSpecification,
    observations: ObservationsLike,
    config: Optional[SamplerConfig] = None,
    *,
    chains: Optional[int] = None,
    tune: Optional[int] = None,
    draws: Optional[int] = None,
    cores: Optional[int] = None,
    random_seed: Optional[int] = None,
    timeout: Optional[float] = None,
    verbose: bool = True
) -> PosteriorSampleSet:
    """
    Draw posterior samples for a specification given observed data.

    Keyword arguments override the matching ``config`` fields.

    Parameters
    ----------
    specification : ModelSpecification
        Model to fit
    observations : ObservationSet, pd.DataFrame or mapping of arrays
        Observed data supplying every declared field
    config : SamplerConfig, optional
        Sampler settings. Defaults to ``SamplerConfig()``
    chains, tune, draws, cores, random_seed, timeout : optional
        Per-call overrides of the config
    verbose : bool, optional (default=True)
        If True, print progress and the convergence report

    Returns
    -------
    samples : PosteriorSampleSet
        Posterior draws. ``samples.warnings`` lists any convergence problems,
        each of which was also raised as a ``ConvergenceWarning``

    Raises
    ------
    ValidationError
        Empty or malformed observation set
    SchemaMismatch
        Data do not match the declared fields/types (checked before sampling)
    SamplerTimeout
        Sampling exceeded ``timeout`` seconds
    SamplerError
        The sampling engine failed
    """
    config = (config or SamplerConfig()).with_overrides(
        chains=chains, tune=tune, draws=draws, cores=cores,
        random_seed=random_seed, timeout=timeout
    )

    data = prepare_data(specification, observations)

    if verbose:
        print(f"\n{'=' * 80}")
        print(f"MCMC SAMPLING: {specification.name}")
        print(f"{'=' * 80}")
        print(f"Observations (N): {data['N']}")
        print(f"Parameters: {', '.join(specification.parameter_names)}")
        print(f"\nMCMC Configuration:")
        print(f"  Chains: {config.chains}")
        print(f"  Draws per chain: {config.draws}")
        print(f"  Warmup iterations: {config.tune}")
        print(f"  Target acceptance: {config.target_accept}")
        if config.timeout is not None:
            print(f"  Timeout: {config.timeout:g}s")

    started = time.monotonic()
    callback = None
    if config.timeout is not None:
        callback = _deadline_callback(started + config.timeout, config.timeout)

    model = specification.build(data)
    try:
        with model:
            trace = pm.sample(
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                cores=config.cores,
                target_accept=config.target_accept,
                random_seed=config.random_seed,
                callback=callback,
                progressbar=verbose,
                compute_convergence_checks=False,
                return_inferencedata=True,
            )
    except BayesWorkflowError:
        raise
    except Exception as exc:
        raise SamplerError(
            f"Sampling failed for model '{specification.name}': {exc}"
        ) from exc

    elapsed = time.monotonic() - started
    if config.timeout is not None and elapsed > config.timeout:
        raise SamplerTimeout(
            f"Sampling took {elapsed:.1f}s, exceeding the {config.timeout:g}s timeout"
        )

    completed = int(trace.posterior.sizes['chain'])
    if completed != config.chains:
        raise SamplerError(
            f"Expected {config.chains} completed chains, got {completed}"
        )

    # All chains are complete: safe to compare them
    diagnostics, problems = assess_convergence(
        trace, specification.parameter_names, config, verbose=verbose
    )

    if verbose:
        print(f"\n✓ MCMC sampling completed in {elapsed:.1f}s")
        print(f"  Total samples: {config.total_draws}")
        print(f"  Warmup samples (discarded): {config.chains * config.tune}")

    return PosteriorSampleSet(trace, specification, diagnostics, problems)
