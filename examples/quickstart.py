"""
bayesworkflow Quickstart Example
================================

This example demonstrates the complete workflow:
1. Simulate data from a known Gaussian linear model
2. Fit it three ways: least squares, BayesianRegression, hand-written spec
3. Check convergence diagnostics
4. Fit a Poisson log-linear model to count data with missing values
5. Save and reload the posterior

NOTE: The count data are simulated to stand in for a real air-quality
snapshot. Replace with load_snapshot('airquality.csv', 'Temp', 'Ozone',
dropna=True) to use your own CSV file.
"""

import pandas as pd

from bayesworkflow import (
    BayesianRegression,
    PosteriorSampleSet,
    SamplerConfig,
    fit_least_squares,
    fit_poisson_mle,
    gaussian_linear_model,
    poisson_log_linear_model,
    sample,
    simulate_counts,
    simulate_linear,
)

print("="*70)
print("bayesworkflow Quickstart Example")
print("="*70)

# ===== 1. Simulate Data =====
print("\n[Step 1] Simulating data: y = 2 + 3x + Normal(0, 1)\n")

linear_data = simulate_linear(n=30, intercept=2.0, slope=3.0, sigma=1.0)
print(linear_data.head())


# ===== 2a. Least Squares =====
print("\n" + "="*70)
print("[Step 2a] Ordinary least squares")
print("="*70 + "\n")

ols = fit_least_squares(linear_data, 'x', 'y')
print(ols.round(3))


# ===== 2b. High-level Bayesian Regression =====
print("\n" + "="*70)
print("[Step 2b] BayesianRegression wrapper")
print("="*70)

model = BayesianRegression(family='gaussian', quick_mode=True, random_seed=42)
model.fit(linear_data, 'y ~ x')

print("\nPosterior vs least squares:")
print(model.compare_least_squares().round(3))


# ===== 2c. Hand-written Model Specification =====
print("\n" + "="*70)
print("[Step 2c] Hand-written model specification")
print("="*70 + "\n")

spec = gaussian_linear_model()
print(spec.to_text())

config = SamplerConfig(chains=4, draws=1000, tune=1000, random_seed=2020)
samples = sample(spec, linear_data, config)

print("\nFirst draws (parameters + engine diagnostics):")
print(samples.draws.head())
print("\nPosterior summary:")
print(samples.summary().round(3))


# ===== 3. Convergence Diagnostics =====
print("\n" + "="*70)
print("[Step 3] MCMC Convergence Diagnostics")
print("="*70 + "\n")

diagnostics = samples.convergence_table()
print(diagnostics)
print(f"\n✓ Max R̂: {diagnostics['r_hat'].max():.4f} (should be < 1.01)")
print(f"✓ Min ESS: {diagnostics['ess_bulk'].min():.0f} (should be > 400)")

if samples.warnings:
    print("\n⚠ Convergence warnings:")
    for message in samples.warnings:
        print(f"  - {message}")


# ===== 4. Poisson Log-Linear Model =====
print("\n" + "="*70)
print("[Step 4] Poisson log-linear model for ozone counts")
print("="*70 + "\n")

counts = simulate_counts(n=153, missing_fraction=0.2)
print(f"Rows: {len(counts)}, missing values: {counts.isna().sum().to_dict()}")

# Policy: drop rows with a missing predictor or response, never impute
complete = counts.dropna(subset=['Temp', 'Ozone'])
print(f"Complete rows: {len(complete)}")

print("\nMaximum likelihood:")
print(fit_poisson_mle(complete, 'Temp', 'Ozone').round(4))

poisson_spec = poisson_log_linear_model()
print("\n" + poisson_spec.to_text())

poisson_samples = sample(poisson_spec, complete, config)
print("\nPosterior summary:")
print(poisson_samples.summary().round(4))

new_temps = pd.DataFrame({'Temp': [60.0, 75.0, 90.0]})
expected = poisson_samples.expected_response({'Temp': new_temps['Temp'].to_numpy()})
print("\nExpected ozone at 60 / 75 / 90 °F:")
print(pd.DataFrame({
    'Temp': new_temps['Temp'],
    'mean': expected['mean'],
    'lower_90': expected['lower_90'],
    'upper_90': expected['upper_90'],
}).round(2).to_string(index=False))


# ===== 5. Save and Reload =====
print("\n" + "="*70)
print("[Step 5] Saving the posterior")
print("="*70)

samples.save('gaussian_linear_trace.nc')
reloaded = PosteriorSampleSet.load('gaussian_linear_trace.nc', spec)
print(reloaded)


# ===== Summary =====
print("\n" + "="*70)
print("✅ Quickstart Complete!")
print("="*70 + "\n")
