"""
extensions.py

Supplementary models:

- fit_interaction_model:
    Continuous predictor x origin interactions, with per-coefficient t tests
    and a nested partial F test against the main-effects model.
- fit_power_variance_irls:
    Iteratively reweighted least squares with Var(y) proportional to
    mean^power, for the untransformed response.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from constants import ALPHA
from modelling import (
    RegressionResults,
    prepare_modelling_data,
    run_ols_regression,
    summarise_model,
)

logger = logging.getLogger(__name__)


# ---------- Interactions ---------- #

@dataclass(frozen=True)
class InteractionResult:
    results: RegressionResults
    main_effects: RegressionResults
    interaction_table: pd.DataFrame
    significant: List[str]
    f_stat: float
    f_p_value: float
    alpha: float


def partial_f_test(reduced: RegressionResults, full: RegressionResults):
    """F test of the extra columns in `full` over the nested `reduced` model."""
    q = full.k - reduced.k
    if q <= 0:
        raise ValueError("Full model must have more parameters than the reduced model")
    f_stat = ((reduced.ssr - full.ssr) / q) / (full.ssr / full.df_resid)
    return float(f_stat), float(stats.f.sf(f_stat, q, full.df_resid))


def fit_interaction_model(
    df: pd.DataFrame,
    response: str,
    continuous_vars: List[str],
    categorical_var: str,
    interact_with: List[str],
    alpha: float = ALPHA,
) -> InteractionResult:
    missing = [c for c in interact_with if c not in continuous_vars]
    if missing:
        raise ValueError(f"Interaction predictors must be in the model: {missing}")
    if not interact_with:
        raise ValueError("Choose at least one predictor to interact with")

    X0, y0 = prepare_modelling_data(df, response, continuous_vars, [categorical_var])
    main = run_ols_regression(X0, y0)

    pairs = [(c, categorical_var) for c in interact_with]
    X, y = prepare_modelling_data(df, response, continuous_vars, [categorical_var], interactions=pairs)
    full = run_ols_regression(X, y)

    table = summarise_model(full, alpha=alpha)
    table = table[table.index.str.contains(":")]
    significant = table[table["p_value"] < alpha].index.tolist()

    f_stat, f_p = partial_f_test(main, full)
    logger.info(
        "Interaction model: partial F %.3f (p=%.4g), significant terms %s",
        f_stat, f_p, significant or "none",
    )

    return InteractionResult(
        results=full,
        main_effects=main,
        interaction_table=table,
        significant=significant,
        f_stat=f_stat,
        f_p_value=f_p,
        alpha=alpha,
    )


# ---------- Power-of-the-mean variance (IRLS) ---------- #

@dataclass(frozen=True)
class IRLSResult:
    results: RegressionResults
    power: float
    power_estimated: bool
    iterations: int
    converged: bool
    pearson_residuals: pd.Series


def estimate_variance_power(results: RegressionResults) -> float:
    """Slope of log(e²) on log(fitted): Var(y) ∝ mean^power."""
    fitted = results.y_hat.values
    resid_sq = results.residuals.values ** 2
    if np.any(fitted <= 0):
        raise ValueError("Variance power needs strictly positive fitted values")
    keep = resid_sq > 0
    slope, _ = np.polyfit(np.log(fitted[keep]), np.log(resid_sq[keep]), 1)
    return float(slope)


def fit_power_variance_irls(
    df: pd.DataFrame,
    response: str,
    continuous_vars: List[str],
    categorical_vars: List[str],
    power: Optional[float] = None,
    max_iter: int = 50,
    tol: float = 1e-6,
) -> IRLSResult:
    """
    Weighted least squares with weights 1 / mean^power, iterated until the
    coefficients settle.

    Parameters
    ----------
    power : float, optional
        Variance power; estimated from the OLS residuals when None.
        power = 0 reproduces OLS, power = 2 means a constant coefficient
        of variation.
    """
    X, y = prepare_modelling_data(df, response, continuous_vars, categorical_vars)
    current = run_ols_regression(X, y)

    estimated = power is None
    if estimated:
        power = estimate_variance_power(current)
        logger.info("Estimated variance power %.3f", power)

    converged = False
    iterations = 0
    for iterations in range(1, max_iter + 1):
        mu = current.y_hat.values
        if np.any(mu <= 0):
            raise ValueError("IRLS produced non-positive fitted means")
        weights = pd.Series(1.0 / mu**power, index=X.index)
        updated = run_ols_regression(X, y, weights=weights)

        change = np.max(np.abs(updated.beta.values - current.beta.values) / (np.abs(current.beta.values) + tol))
        current = updated
        if change < tol:
            converged = True
            break

    if converged:
        logger.info("IRLS converged after %d iteration(s)", iterations)
    else:
        logger.warning("IRLS did not converge in %d iterations", max_iter)

    mu = current.y_hat
    pearson = ((y - mu) / mu ** (power / 2.0)).rename("pearson_residual")

    return IRLSResult(
        results=current,
        power=float(power),
        power_estimated=estimated,
        iterations=iterations,
        converged=converged,
        pearson_residuals=pearson,
    )
