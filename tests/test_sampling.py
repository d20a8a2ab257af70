"""
Unit Tests for the Sampling Driver
==================================

Test suite covering:
- Data bundle preparation and schema checks
- Posterior sample sets (draws table, summaries, predictions)
- Convergence diagnostics and ConvergenceWarning
- End-to-end sampling: support, calibration, reproducibility
- Failure modes: SamplerError, SamplerTimeout
"""

import warnings

import pytest
import pandas as pd
import numpy as np
import arviz as az
import pymc as pm

from bayesworkflow import (
    ConvergenceWarning,
    ObservationSet,
    PosteriorSampleSet,
    SamplerConfig,
    SamplerError,
    SamplerTimeout,
    SchemaMismatch,
    ValidationError,
    gaussian_linear_model,
    poisson_log_linear_model,
    prepare_data,
    sample,
)
from bayesworkflow.sampling import assess_convergence, count_divergences
from bayesworkflow.simulate import simulate_counts, simulate_linear


# ============================================================================
# Test Fixtures
# ============================================================================

def quick_config(**overrides):
    """Fast single-process settings for tests."""
    settings = dict(cores=1, random_seed=123)
    settings.update(overrides)
    return SamplerConfig.quick(**settings)


def fake_trace(n_chains=2, n_draws=200, offset=0.0, n_divergent=0, seed=0):
    """InferenceData for the Gaussian linear model without running a sampler."""
    rng = np.random.default_rng(seed)
    shift = offset * np.arange(n_chains)[:, None]
    diverging = np.zeros((n_chains, n_draws), dtype=bool)
    diverging.flat[:n_divergent] = True

    return az.from_dict(
        posterior={
            'intercept': rng.normal(2.0, 0.1, (n_chains, n_draws)) + shift,
            'slope': rng.normal(3.0, 0.1, (n_chains, n_draws)),
            'sigma': rng.gamma(50.0, 0.02, (n_chains, n_draws)),
        },
        sample_stats={
            'lp': rng.normal(-50.0, 1.0, (n_chains, n_draws)),
            'diverging': diverging,
        },
    )


@pytest.fixture(scope="module")
def linear_data():
    return simulate_linear(n=30, seed=2007)


@pytest.fixture(scope="module")
def gaussian_samples(linear_data):
    """Gaussian linear model fitted once for the module."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return sample(gaussian_linear_model(), linear_data, quick_config(), verbose=False)


# ============================================================================
# Test 1: Data Preparation
# ============================================================================

def test_prepare_data_bundle(linear_data):
    data = prepare_data(gaussian_linear_model(), linear_data)

    assert set(data) == {'N', 'x', 'y'}
    assert data['N'] == 30
    assert data['x'].dtype == np.float64
    assert len(data['y']) == 30


def test_prepare_data_from_observation_set(linear_data):
    obs = ObservationSet.from_frame(linear_data.assign(extra=0.0))
    data = prepare_data(gaussian_linear_model(), obs)

    assert set(data) == {'N', 'x', 'y'}


def test_prepare_data_from_mapping():
    data = prepare_data(
        gaussian_linear_model(),
        {'N': 3, 'x': [0.0, 1.0, 2.0], 'y': [1.0, 2.0, 3.0]}
    )
    assert data['N'] == 3


def test_count_field_cast_to_integers():
    frame = pd.DataFrame({'Temp': [60.0, 70.0], 'Ozone': [3.0, 10.0]})
    data = prepare_data(poisson_log_linear_model(), frame)

    assert data['Ozone'].dtype == np.int64
    np.testing.assert_array_equal(data['Ozone'], [3, 10])


def test_missing_declared_field_raises_schema_mismatch(linear_data):
    with pytest.raises(SchemaMismatch, match="declares fields"):
        prepare_data(poisson_log_linear_model(), linear_data)


def test_length_mismatch_raises_schema_mismatch():
    with pytest.raises(SchemaMismatch, match="different lengths"):
        prepare_data(gaussian_linear_model(), {'x': [0.0, 1.0], 'y': [1.0]})


def test_declared_n_mismatch_raises_schema_mismatch():
    with pytest.raises(SchemaMismatch, match="Declared N"):
        prepare_data(gaussian_linear_model(), {'N': 5, 'x': [0.0, 1.0], 'y': [1.0, 2.0]})


def test_two_dimensional_field_raises_schema_mismatch():
    with pytest.raises(SchemaMismatch, match="one-dimensional"):
        prepare_data(gaussian_linear_model(), {'x': np.ones((2, 2)), 'y': np.ones(2)})


def test_non_numeric_field_raises_schema_mismatch():
    frame = pd.DataFrame({'x': ['a', 'b'], 'y': [1.0, 2.0]})

    with pytest.raises(SchemaMismatch, match="numeric"):
        prepare_data(gaussian_linear_model(), frame)


def test_infinite_value_raises_schema_mismatch():
    frame = pd.DataFrame({'x': [0.0, np.inf], 'y': [1.0, 2.0]})

    with pytest.raises(SchemaMismatch, match="non-finite"):
        prepare_data(gaussian_linear_model(), frame)


@pytest.mark.parametrize("bad_value", [-1, 2.5])
def test_invalid_count_raises_before_sampling(monkeypatch, bad_value):
    """Test that negative or fractional counts fail before the sampler runs."""
    def sampler_must_not_run(*args, **kwargs):
        pytest.fail("pm.sample was called with invalid counts")

    monkeypatch.setattr(pm, "sample", sampler_must_not_run)
    frame = pd.DataFrame({'Temp': [60.0, 70.0, 80.0], 'Ozone': [4, bad_value, 9]})

    with pytest.raises(SchemaMismatch, match="non-negative integers"):
        sample(poisson_log_linear_model(), frame, quick_config(), verbose=False)


def test_count_too_large_for_int64_raises():
    """Test that counts beyond the int64 range are rejected rather than wrapped."""
    frame = pd.DataFrame({'Temp': [1.0, 2.0, 3.0], 'Ozone': [1e19, 2.0, 3.0]})

    with pytest.raises(SchemaMismatch, match="non-negative integers"):
        prepare_data(poisson_log_linear_model(), frame)


def test_boolean_field_raises_schema_mismatch():
    frame = pd.DataFrame({'Temp': [60.0, 70.0, 80.0], 'Ozone': [True, False, True]})

    with pytest.raises(SchemaMismatch, match="numeric"):
        prepare_data(poisson_log_linear_model(), frame)


def test_empty_data_raises_validation_error():
    empty = pd.DataFrame({'x': [], 'y': []})

    with pytest.raises(ValidationError):
        sample(gaussian_linear_model(), empty, quick_config(), verbose=False)


def test_missing_values_raise_validation_error():
    frame = pd.DataFrame({'Temp': [60.0, np.nan], 'Ozone': [4.0, 5.0]})

    with pytest.raises(ValidationError, match="missing values"):
        prepare_data(poisson_log_linear_model(), frame)


def test_dropped_rows_leave_valid_bundle():
    """Test that the drop policy yields a bundle with zero missing values."""
    counts = simulate_counts(n=60, missing_fraction=0.25, seed=3)
    obs = ObservationSet.from_frame(counts, ['Temp', 'Ozone'], dropna=True)
    data = prepare_data(poisson_log_linear_model(), obs)

    assert data['N'] == len(counts.dropna())
    assert not np.isnan(data['Temp']).any()


def test_unsupported_input_type_raises():
    with pytest.raises(ValidationError):
        prepare_data(gaussian_linear_model(), [1.0, 2.0])


# ============================================================================
# Test 2: Posterior Sample Sets
# ============================================================================

def test_draws_table_layout():
    samples = PosteriorSampleSet(fake_trace(n_chains=2, n_draws=50), gaussian_linear_model())
    draws = samples.draws

    assert draws.shape == (100, 5)
    assert list(draws.columns) == ['intercept', 'slope', 'sigma', 'lp', 'diverging']
    assert draws.index.names == ['chain', 'draw']
    assert len(samples) == 100


def test_parameter_draws_has_one_column_per_parameter():
    samples = PosteriorSampleSet(fake_trace(), gaussian_linear_model())
    assert list(samples.parameter_draws().columns) == ['intercept', 'slope', 'sigma']


def test_draws_keep_chain_order():
    trace = fake_trace(n_chains=2, n_draws=10, offset=100.0)
    draws = PosteriorSampleSet(trace, gaussian_linear_model()).draws

    np.testing.assert_allclose(
        draws.loc[1, 'intercept'].to_numpy(),
        trace.posterior['intercept'].values[1]
    )


def test_mean_sd_and_interval():
    samples = PosteriorSampleSet(fake_trace(n_draws=2000), gaussian_linear_model())

    assert abs(samples.mean()['slope'] - 3.0) < 0.02
    assert abs(samples.sd()['slope'] - 0.1) < 0.02

    interval = samples.interval(0.90)
    assert (interval['lower'] < samples.mean()).all()
    assert (interval['upper'] > samples.mean()).all()


def test_interval_probability_validation():
    samples = PosteriorSampleSet(fake_trace(), gaussian_linear_model())

    with pytest.raises(ValueError):
        samples.interval(1.5)


def test_expected_response_shapes():
    samples = PosteriorSampleSet(fake_trace(), gaussian_linear_model())
    result = samples.expected_response({'x': np.array([0.0, 1.0, 2.0])}, n_samples=100)

    assert result['samples'].shape == (100, 3)
    assert result['mean'].shape == (3,)
    np.testing.assert_allclose(result['mean'], [2.0, 5.0, 8.0], atol=0.1)
    assert (result['lower_90'] <= result['upper_90']).all()


def test_expected_response_missing_predictor_raises():
    samples = PosteriorSampleSet(fake_trace(), gaussian_linear_model())

    with pytest.raises(KeyError):
        samples.expected_response({'z': np.array([0.0])})


def test_save_and_load_trace(tmp_path):
    spec = gaussian_linear_model()
    samples = PosteriorSampleSet(fake_trace(), spec)
    path = tmp_path / "traces" / "gaussian.nc"

    samples.save(path, verbose=False)
    loaded = PosteriorSampleSet.load(path, spec, verbose=False)

    assert path.exists()
    assert len(loaded) == len(samples)
    pd.testing.assert_series_equal(loaded.mean(), samples.mean())
    assert 'rhat_max' in loaded.diagnostics


def test_load_nonexistent_trace_raises():
    with pytest.raises(FileNotFoundError):
        PosteriorSampleSet.load('/nonexistent/trace.nc', gaussian_linear_model())


# ============================================================================
# Test 3: Convergence Diagnostics
# ============================================================================

def test_diverged_chains_raise_convergence_warning():
    """Test that chains stuck in different places are surfaced, not swallowed."""
    trace = fake_trace(n_chains=2, n_draws=200, offset=5.0)

    with pytest.warns(ConvergenceWarning, match="R-hat"):
        diagnostics, problems = assess_convergence(trace, ['intercept', 'slope', 'sigma'])

    assert not diagnostics['rhat_ok']
    assert not diagnostics['all_ok']
    assert any("R-hat" in p for p in problems)


def test_divergent_transitions_raise_convergence_warning():
    trace = fake_trace(n_draws=1000, n_divergent=3)

    with pytest.warns(ConvergenceWarning, match="divergent"):
        diagnostics, problems = assess_convergence(trace)

    assert diagnostics['divergences'] == 3
    assert not diagnostics['divergences_ok']


def test_well_mixed_chains_pass():
    trace = fake_trace(n_chains=4, n_draws=1000)

    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        diagnostics, problems = assess_convergence(trace)

    assert diagnostics['all_ok']
    assert problems == []


def test_emit_false_still_reports_problems():
    trace = fake_trace(offset=5.0)

    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        diagnostics, problems = assess_convergence(trace, emit=False)

    assert len(problems) > 0


def test_thresholds_come_from_config():
    trace = fake_trace(n_draws=1000, n_divergent=3)
    config = SamplerConfig(max_divergences=5)

    diagnostics, _ = assess_convergence(trace, config=config, emit=False)

    assert diagnostics['divergences_ok']


def test_count_divergences_without_sample_stats():
    trace = az.from_dict(posterior={'a': np.zeros((2, 10))})
    assert count_divergences(trace) == 0


# ============================================================================
# Test 4: End-to-end Sampling
# ============================================================================

def test_gaussian_sample_set_shape(gaussian_samples):
    """Test rows = chains x draws and exactly the three declared parameters."""
    assert len(gaussian_samples) == 2 * 500
    assert gaussian_samples.n_chains == 2
    assert list(gaussian_samples.parameter_draws().columns) == ['intercept', 'slope', 'sigma']


def test_gaussian_draws_include_engine_columns(gaussian_samples):
    draws = gaussian_samples.draws

    assert 'lp' in draws.columns
    assert 'diverging' in draws.columns
    assert np.isfinite(draws['lp']).all()


def test_every_sigma_draw_is_positive(gaussian_samples):
    assert (gaussian_samples.draws['sigma'] > 0).all()


def test_sample_set_records_diagnostics(gaussian_samples):
    assert {'rhat_max', 'ess_bulk_min', 'divergences', 'all_ok'} <= set(gaussian_samples.diagnostics)
    assert isinstance(gaussian_samples.warnings, list)


def test_convergence_problems_reach_caller(monkeypatch, linear_data):
    """Test that problems found after sampling are warned about and kept on the result."""
    monkeypatch.setattr(pm, "sample", lambda *args, **kwargs: fake_trace(offset=5.0))

    with pytest.warns(ConvergenceWarning, match="R-hat"):
        samples = sample(gaussian_linear_model(), linear_data, quick_config(), verbose=False)

    assert samples.converged is False
    assert any("R-hat" in message for message in samples.warnings)
    assert samples.diagnostics['all_ok'] is False


def test_summary_and_convergence_table(gaussian_samples):
    summary = gaussian_samples.summary()
    table = gaussian_samples.convergence_table()

    assert set(summary.index) == {'intercept', 'slope', 'sigma'}
    assert set(table['parameter']) == {'intercept', 'slope', 'sigma'}
    assert (table['ess_bulk'] > 0).all()


def test_calibration_recovers_generating_process():
    """Test posterior means lie within 3 posterior sd of intercept=2, slope=3."""
    data = simulate_linear(n=1000, intercept=2.0, slope=3.0, sigma=1.0, seed=99)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        samples = sample(gaussian_linear_model(), data, quick_config(), verbose=False)

    mean, sd = samples.mean(), samples.sd()
    assert abs(mean['slope'] - 3.0) < 3 * sd['slope']
    assert abs(mean['intercept'] - 2.0) < 3 * sd['intercept']


def test_same_seed_reproduces_summaries(linear_data):
    """Test that re-running with the same seed and data gives matching summaries."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        first = sample(gaussian_linear_model(), linear_data, quick_config(random_seed=5),
                       verbose=False)
        second = sample(gaussian_linear_model(), linear_data, quick_config(random_seed=5),
                        verbose=False)

    np.testing.assert_allclose(first.mean(), second.mean(), rtol=1e-6)
    np.testing.assert_allclose(first.sd(), second.sd(), rtol=1e-6)


def test_single_observation_is_sampled():
    """Test the lower boundary N = 1 end to end."""
    single = pd.DataFrame({'x': [0.5], 'y': [1.5]})

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        samples = sample(gaussian_linear_model(), single, quick_config(),
                         draws=100, tune=200, verbose=False)

    draws = samples.parameter_draws()
    assert draws.shape == (200, 3)
    assert (draws['sigma'] > 0).all()


def test_keyword_overrides(linear_data):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        samples = sample(gaussian_linear_model(), linear_data, quick_config(),
                         chains=1, draws=100, tune=100, verbose=False)

    assert len(samples) == 100


def test_poisson_sampling_on_cleaned_counts():
    counts = simulate_counts(n=120, a=1.0, b=0.5, temp_mean=2.0, temp_sd=1.0,
                             missing_fraction=0.1, seed=21)
    obs = ObservationSet.from_frame(counts, ['Temp', 'Ozone'], dropna=True)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        samples = sample(poisson_log_linear_model(), obs,
                         quick_config(), verbose=False)

    assert list(samples.parameter_draws().columns) == ['a', 'b']
    assert abs(samples.mean()['b'] - 0.5) < 0.15
    assert samples.trace.posterior.sizes['chain'] == 2


# ============================================================================
# Test 5: Failure Modes
# ============================================================================

def test_engine_failure_becomes_sampler_error(monkeypatch, linear_data):
    def broken_sampler(*args, **kwargs):
        raise RuntimeError("worker process died")

    monkeypatch.setattr(pm, "sample", broken_sampler)

    with pytest.raises(SamplerError, match="worker process died") as excinfo:
        sample(gaussian_linear_model(), linear_data, quick_config(), verbose=False)

    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_incomplete_chains_raise_sampler_error(monkeypatch, linear_data):
    """Test that a trace with fewer chains than requested is not trusted."""
    monkeypatch.setattr(pm, "sample", lambda *args, **kwargs: fake_trace(n_chains=1))

    with pytest.raises(SamplerError, match="completed chains"):
        sample(gaussian_linear_model(), linear_data, quick_config(chains=2), verbose=False)


def test_timeout_raises_sampler_timeout(linear_data):
    with pytest.raises(SamplerTimeout):
        sample(gaussian_linear_model(), linear_data,
               quick_config(chains=1, timeout=1e-6), verbose=False)


def test_sampler_timeout_is_a_sampler_error():
    assert issubclass(SamplerTimeout, SamplerError)


def test_invalid_config_raises():
    with pytest.raises(ValueError):
        SamplerConfig(chains=0)
    with pytest.raises(ValueError):
        SamplerConfig(target_accept=1.5)
    with pytest.raises(ValueError):
        SamplerConfig(timeout=0)
