"""
transformations.py

Box-Cox search for a response transformation.

The profile log-likelihood of the linear model for the transformed
response is evaluated over a grid of λ:

    llf(λ) = -n/2 * log(RSS_λ / n) + (λ - 1) * sum(log y)

The analyst reads the curve and decides; suggest_transformation only
proposes a round value.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from constants import (
    BOX_COX_LAMBDA_MAX,
    BOX_COX_LAMBDA_MIN,
    BOX_COX_LAMBDA_STEP,
    BOX_COX_ROUND_LAMBDAS,
    LOG_TARGET_COLUMN,
    TARGET_COLUMN,
)
from data_loading import add_log_response

logger = logging.getLogger(__name__)

RESPONSE_TRANSFORMS = ("none", "log", "box-cox")


@dataclass(frozen=True)
class BoxCoxResult:
    lambdas: np.ndarray
    log_likelihood: np.ndarray
    optimal_lambda: float
    max_log_likelihood: float
    ci_lower: float
    ci_upper: float
    suggested_lambda: float

    def curve(self) -> pd.DataFrame:
        return pd.DataFrame({"lambda": self.lambdas, "log_likelihood": self.log_likelihood})

    def contains(self, lam: float) -> bool:
        return self.ci_lower <= lam <= self.ci_upper


def box_cox_transform(y, lam: float) -> np.ndarray:
    y = np.asarray(y, dtype=float)
    if np.any(y <= 0):
        raise ValueError("Box-Cox requires a strictly positive response")
    if abs(lam) < 1e-12:
        return np.log(y)
    return (y**lam - 1.0) / lam


def inverse_box_cox(z, lam: float) -> np.ndarray:
    z = np.asarray(z, dtype=float)
    if abs(lam) < 1e-12:
        return np.exp(z)
    return np.power(lam * z + 1.0, 1.0 / lam)


def default_lambda_grid() -> np.ndarray:
    n_steps = int(round((BOX_COX_LAMBDA_MAX - BOX_COX_LAMBDA_MIN) / BOX_COX_LAMBDA_STEP))
    return np.round(np.linspace(BOX_COX_LAMBDA_MIN, BOX_COX_LAMBDA_MAX, n_steps + 1), 10)


def _nearest_round_lambda(optimal: float, interval: Tuple[float, float]) -> float:
    candidates = np.asarray(BOX_COX_ROUND_LAMBDAS)
    inside = candidates[(candidates >= interval[0]) & (candidates <= interval[1])]
    pool = inside if inside.size else candidates
    return float(pool[np.argmin(np.abs(pool - optimal))])


def box_cox_search(
    y: pd.Series,
    X: pd.DataFrame,
    lambdas: Optional[Sequence[float]] = None,
    confidence: float = 0.95,
) -> BoxCoxResult:
    """
    Profile log-likelihood of the Box-Cox transformed linear model.

    Parameters
    ----------
    y : Series
        Untransformed positive response.
    X : DataFrame
        Design matrix (with intercept) from prepare_modelling_data.
    lambdas : sequence of float, optional
        Grid to search; defaults to -2..2 in steps of 0.01.
    confidence : float
        Level of the likelihood-ratio interval for λ.
    """
    y_vec = np.asarray(y, dtype=float)
    if np.any(y_vec <= 0):
        raise ValueError("Box-Cox requires a strictly positive response")

    grid = default_lambda_grid() if lambdas is None else np.asarray(lambdas, dtype=float)
    n = len(y_vec)
    log_y_sum = np.log(y_vec).sum()

    # Residual sums of squares for every λ via one QR of X
    Q, _ = np.linalg.qr(X.values.astype(float))
    Z = np.column_stack([box_cox_transform(y_vec, lam) for lam in grid])
    rss = (Z**2).sum(axis=0) - ((Q.T @ Z) ** 2).sum(axis=0)

    llf = -0.5 * n * np.log(rss / n) + (grid - 1.0) * log_y_sum

    best = int(np.argmax(llf))
    cutoff = llf[best] - 0.5 * stats.chi2.ppf(confidence, 1)
    inside = grid[llf >= cutoff]
    interval = (float(inside.min()), float(inside.max()))

    result = BoxCoxResult(
        lambdas=grid,
        log_likelihood=llf,
        optimal_lambda=float(grid[best]),
        max_log_likelihood=float(llf[best]),
        ci_lower=interval[0],
        ci_upper=interval[1],
        suggested_lambda=_nearest_round_lambda(float(grid[best]), interval),
    )
    logger.info(
        "Box-Cox: optimal lambda %.2f (%.0f%% CI %.2f..%.2f), suggested %.1f",
        result.optimal_lambda, confidence * 100, result.ci_lower, result.ci_upper,
        result.suggested_lambda,
    )
    return result


def suggest_transformation(result: BoxCoxResult, tolerance: float = 0.2) -> str:
    """
    Propose 'log', 'none' or 'box-cox' from a Box-Cox search.

    'log' when the suggested round λ is 0 or the optimum is within
    `tolerance` of 0; 'none' when λ = 1 is inside the interval.
    """
    if result.suggested_lambda == 0.0 or abs(result.optimal_lambda) < tolerance:
        return "log"
    if result.contains(1.0):
        return "none"
    return "box-cox"


def apply_response_transform(
    df: pd.DataFrame,
    decision: str,
    column: str = TARGET_COLUMN,
    lam: Optional[float] = None,
) -> Tuple[pd.DataFrame, str]:
    """
    Append the transformed response and return (df, response column name).

    decision: 'none' keeps `column`, 'log' adds log_<column>, 'box-cox'
    adds boxcox_<column> using `lam`.
    """
    if decision not in RESPONSE_TRANSFORMS:
        raise ValueError(f"Unknown response transform {decision!r}; expected one of {RESPONSE_TRANSFORMS}")

    if decision == "none":
        return df, column

    if decision == "log":
        new_col = LOG_TARGET_COLUMN if column == TARGET_COLUMN else f"log_{column}"
        return add_log_response(df, column, new_col), new_col

    if lam is None:
        raise ValueError("A Box-Cox transform needs lambda")
    values = df[column].astype(float)
    present = values.notna()
    new_col = f"boxcox_{column}"
    df = df.copy()
    df[new_col] = np.nan
    df.loc[present, new_col] = box_cox_transform(values[present], lam)
    return df, new_col


def inverse_response_transform(decision: str, lam: Optional[float] = None):
    """Callable mapping transformed fitted values back to the original scale."""
    if decision == "none":
        return None
    if decision == "log":
        return np.exp
    return lambda z: inverse_box_cox(z, lam)
