"""
Synthetic Data Generation

Draw regression data sets from known generating processes, so fitted
estimates can be checked against the true parameter values.

"""

from typing import Optional

import numpy as np
import pandas as pd


def simulate_linear(
    n: int = 30,
    intercept: float = 2.0,
    slope: float = 3.0,
    sigma: float = 1.0,
    seed: Optional[int] = 2007,
    predictor: str = 'x',
    response: str = 'y'
) -> pd.DataFrame:
    """
    Simulate data from a Gaussian linear model.

    x ~ Normal(0, 1) and y ~ Normal(intercept + slope * x, sigma).
    The defaults give the 30-row ``simple_linear_model`` teaching data set.

    Parameters
    ----------
    n : int, optional (default=30)
        Number of observations
    intercept, slope : float, optional (defaults 2.0 and 3.0)
        True regression coefficients
    sigma : float, optional (default=1.0)
        True residual standard deviation
    seed : int, optional (default=2007)
        Seed for the random generator
    predictor, response : str, optional
        Column names

    Returns
    -------
    data : pd.DataFrame, shape (n, 2)
        Columns [predictor, response]
    """
    if n < 1:
        raise ValueError(f"n must be >= 1. Got: {n}")
    if sigma <= 0:
        raise ValueError(f"sigma must be positive. Got: {sigma}")

    rng = np.random.default_rng(seed)
    x = rng.normal(0.0, 1.0, size=n)
    y = rng.normal(intercept + slope * x, sigma)

    return pd.DataFrame({predictor: x, response: y})


def simulate_counts(
    n: int = 150,
    a: float = 0.0,
    b: float = 0.045,
    temp_mean: float = 78.0,
    temp_sd: float = 9.5,
    missing_fraction: float = 0.0,
    seed: Optional[int] = 42,
    predictor: str = 'Temp',
    response: str = 'Ozone'
) -> pd.DataFrame:
    """
    Simulate data from a Poisson log-linear model.

    Temp ~ Normal(temp_mean, temp_sd), rounded to whole degrees, and
    Ozone ~ Poisson(exp(a + b * Temp)). The defaults mimic the scale of daily
    air-quality readings (temperatures in °F, ozone in ppb).

    Parameters
    ----------
    n : int, optional (default=150)
        Number of observations
    a, b : float, optional
        True intercept and slope on the log scale
    temp_mean, temp_sd : float, optional
        Distribution of the predictor
    missing_fraction : float, optional (default=0.0)
        Fraction of cells in each column blanked out (set to NaN), to
        exercise the drop-missing policy
    seed : int, optional (default=42)
        Seed for the random generator
    predictor, response : str, optional
        Column names

    Returns
    -------
    data : pd.DataFrame, shape (n, 2)
        Columns [predictor, response]. The response is integer unless
        missing values were introduced, in which case it is float with NaN
    """
    if n < 1:
        raise ValueError(f"n must be >= 1. Got: {n}")
    if not 0 <= missing_fraction < 1:
        raise ValueError(f"missing_fraction must be in [0,1), got {missing_fraction}")

    rng = np.random.default_rng(seed)
    temp = np.round(rng.normal(temp_mean, temp_sd, size=n))
    ozone = rng.poisson(np.exp(a + b * temp))

    data = pd.DataFrame({predictor: temp, response: ozone})

    if missing_fraction > 0:
        n_missing = int(round(missing_fraction * n))
        for col in (predictor, response):
            idx = rng.choice(n, size=n_missing, replace=False)
            data[col] = data[col].astype(float)
            data.loc[idx, col] = np.nan

    return data
