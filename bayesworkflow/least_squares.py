"""
Frequentist Fits

Ordinary least squares for the Gaussian linear model and unpenalised
maximum likelihood for the Poisson log-linear model, as a reference point
for the posterior estimates.

"""

from typing import List, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.linear_model import LinearRegression, PoissonRegressor

from .exceptions import ValidationError
from .observations import drop_missing


def _design(
    frame: pd.DataFrame,
    predictors: Union[str, Sequence[str]],
    response: str
):
    predictors = [predictors] if isinstance(predictors, str) else list(predictors)
    frame, _ = drop_missing(frame, predictors + [response])

    if len(frame) <= len(predictors) + 1:
        raise ValidationError(
            f"Need more than {len(predictors) + 1} complete observations, got {len(frame)}"
        )

    X = frame[predictors].to_numpy(dtype=np.float64)
    y = frame[response].to_numpy(dtype=np.float64)
    return X, y, predictors


def _coefficient_table(
    names: List[str],
    estimates: np.ndarray,
    std_errors: np.ndarray,
    critical: float
) -> pd.DataFrame:
    return pd.DataFrame(
        {
            'estimate': estimates,
            'std_error': std_errors,
            'lower_95': estimates - critical * std_errors,
            'upper_95': estimates + critical * std_errors,
        },
        index=pd.Index(names, name='term'),
    )


def fit_least_squares(
    frame: pd.DataFrame,
    predictors: Union[str, Sequence[str]] = 'x',
    response: str = 'y'
) -> pd.DataFrame:
    """
    Fit a Gaussian linear model by ordinary least squares.

    Rows with a missing predictor or response are dropped.

    Parameters
    ----------
    frame : pd.DataFrame
        Observed data
    predictors : str or sequence of str, optional (default='x')
        Predictor column(s)
    response : str, optional (default='y')
        Response column

    Returns
    -------
    table : pd.DataFrame
        Indexed by term ('intercept', then one row per predictor, then
        'sigma'), with columns estimate, std_error, lower_95, upper_95.
        The 'sigma' row holds the residual standard error
        sqrt(RSS / (n - p - 1)) and has no standard error or interval.
    """
    X, y, predictors = _design(frame, predictors, response)
    n, p = X.shape

    lr = LinearRegression()
    lr.fit(X, y)

    residuals = y - lr.predict(X)
    dof = n - p - 1
    sigma = np.sqrt(np.sum(residuals ** 2) / dof)

    # Covariance of (intercept, coefficients): sigma^2 (X'X)^-1
    design = np.column_stack([np.ones(n), X])
    cov = sigma ** 2 * np.linalg.inv(design.T @ design)

    estimates = np.concatenate([[lr.intercept_], lr.coef_])
    table = _coefficient_table(
        ['intercept'] + predictors,
        estimates,
        np.sqrt(np.diag(cov)),
        stats.t.ppf(0.975, dof),
    )
    table.loc['sigma'] = [sigma, np.nan, np.nan, np.nan]

    return table


def fit_poisson_mle(
    frame: pd.DataFrame,
    predictors: Union[str, Sequence[str]] = 'Temp',
    response: str = 'Ozone'
) -> pd.DataFrame:
    """
    Fit a Poisson log-linear model by maximum likelihood.

    Uses scikit-learn's PoissonRegressor with no regularization (alpha=0)
    to obtain true maximum likelihood estimates. Standard errors come from
    the Fisher information X' diag(mu) X.

    Returns
    -------
    table : pd.DataFrame
        Indexed by term ('intercept', then one row per predictor), with
        columns estimate, std_error, lower_95, upper_95 (Wald intervals)
    """
    X, y, predictors = _design(frame, predictors, response)

    if np.any(y < 0) or np.any(y != np.floor(y)):
        raise ValidationError(f"Response '{response}' must hold non-negative integer counts")

    glm = PoissonRegressor(alpha=0.0, solver='newton-cholesky', max_iter=1000)
    glm.fit(X, y)

    mu = glm.predict(X)
    design = np.column_stack([np.ones(len(X)), X])
    cov = np.linalg.inv(design.T @ (design * mu[:, None]))

    estimates = np.concatenate([[glm.intercept_], glm.coef_])
    return _coefficient_table(
        ['intercept'] + predictors,
        estimates,
        np.sqrt(np.diag(cov)),
        stats.norm.ppf(0.975),
    )
