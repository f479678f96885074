"""
modelling.py

OLS regression utilities WITHOUT statsmodels.

Implements:

- prepare_modelling_data:
    Build design matrix X (with intercept, dummies, optional interactions)
    and response y.
- run_ols_regression:
    Run (weighted) OLS using NumPy linear algebra.
- fit_ols:
    prepare_modelling_data + run_ols_regression in one call.
- summarise_model / fit_statistics:
    Coefficient table and one-row goodness-of-fit summary.
- model_diagnostics:
    Leverage, standardized / studentized residuals, Cook's distance.
- rank_extreme_observations:
    Top tail of observations by |standardized residual| and by leverage.
- residual_fitted_correlation:
    Correlation between |residual| and fitted value (funnel check).
- qq_points:
    Data for a normal Q-Q plot.
- add_fitted_column:
    Append a model's predictions to the observation table.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

logger = logging.getLogger(__name__)


# ---------- Result containers ---------- #

@dataclass(frozen=True)
class RegressionResults:
    """Immutable output of one least-squares fit."""

    beta: pd.Series
    se: pd.Series
    t: pd.Series
    p: pd.Series
    y_hat: pd.Series
    residuals: pd.Series
    r2: float
    adj_r2: float
    n: int
    k: int
    sigma2: float
    f_stat: float
    f_p_value: float
    log_likelihood: float
    XtX_inv: np.ndarray
    X: pd.DataFrame
    y: pd.Series
    weights: Optional[pd.Series] = None

    @property
    def df_resid(self) -> int:
        return self.n - self.k

    @property
    def ssr(self) -> float:
        return float(self.sigma2 * self.df_resid)

    @property
    def aic(self) -> float:
        # k coefficients plus the error variance
        return -2.0 * self.log_likelihood + 2.0 * (self.k + 1)

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.n) * (self.k + 1)

    @property
    def predictors(self) -> List[str]:
        return [c for c in self.X.columns if c != "const"]


@dataclass(frozen=True)
class ModelDiagnostics:
    fitted: pd.Series
    residuals: pd.Series
    leverage: pd.Series
    standardized_residuals: pd.Series
    studentized_residuals: pd.Series
    cooks_distance: pd.Series

    def to_frame(self) -> pd.DataFrame:
        return pd.concat(
            [
                self.fitted,
                self.residuals,
                self.leverage,
                self.standardized_residuals,
                self.studentized_residuals,
                self.cooks_distance,
            ],
            axis=1,
        )


# ---------- Data preparation ---------- #

def prepare_modelling_data(
    df: pd.DataFrame,
    dependent_var: str,
    continuous_vars: List[str],
    categorical_vars: List[str],
    interactions: Optional[List[Tuple[str, str]]] = None,
    drop_na: bool = True,
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Prepare X and y for OLS regression.

    - continuous_vars: numeric predictors (will be cast to float)
    - categorical_vars: converted to dummies (drop_first=True)
    - interactions: (continuous, categorical) pairs; each adds one product
      column per non-reference dummy, named 'weight:origin_2'
    - Adds a constant term named 'const' as the first column.

    Returns
    -------
    X : DataFrame (n x k)
    y : Series (n,)
    """
    interactions = interactions or []
    cols_needed = [dependent_var] + list(continuous_vars) + list(categorical_vars)
    for cont, cat in interactions:
        cols_needed += [cont, cat]
    cols_needed = list(dict.fromkeys(cols_needed))

    unknown = [c for c in cols_needed if c not in df.columns]
    if unknown:
        raise ValueError(f"Unknown column(s) for model: {unknown}")

    df_model = df[cols_needed].copy()

    if drop_na:
        df_model = df_model.dropna(subset=cols_needed)

    # Continuous
    X_cont = df_model[continuous_vars].astype(float) if continuous_vars else pd.DataFrame(index=df_model.index)

    # Categorical → dummies
    if categorical_vars:
        X_cat = pd.get_dummies(
            df_model[categorical_vars], columns=categorical_vars, drop_first=True, dummy_na=False
        ).astype(float)
    else:
        X_cat = pd.DataFrame(index=df_model.index)

    # Interactions
    inter_cols = []
    for cont, cat in interactions:
        dummies = pd.get_dummies(df_model[cat], prefix=cat, drop_first=True).astype(float)
        for dummy in dummies.columns:
            inter_cols.append(
                (df_model[cont].astype(float) * dummies[dummy]).rename(f"{cont}:{dummy}")
            )
    X_int = pd.concat(inter_cols, axis=1) if inter_cols else pd.DataFrame(index=df_model.index)

    # Intercept
    X_const = pd.Series(1.0, index=df_model.index, name="const")

    # Combine
    X = pd.concat([X_const, X_cont, X_cat, X_int], axis=1)
    y = df_model[dependent_var].astype(float)

    return X, y


# ---------- OLS using NumPy ---------- #

def run_ols_regression(
    X: pd.DataFrame,
    y: pd.Series,
    weights: Optional[pd.Series] = None,
) -> RegressionResults:
    """
    Run OLS (or WLS when weights are given) using NumPy.

    Weighted fits minimise sum(w_i * e_i^2); residuals and fitted values
    are reported on the original scale, R² is the weighted R².
    """
    X_mat = X.values.astype(float)
    y_vec = y.values.astype(float).reshape(-1, 1)

    n, k = X_mat.shape  # n observations, k parameters

    if weights is None:
        w = np.ones(n)
    else:
        w = np.asarray(weights, dtype=float)
        if np.any(w <= 0):
            raise ValueError("Weights must be strictly positive")
    W_sqrt = np.sqrt(w).reshape(-1, 1)

    # Whitened system
    Xw = X_mat * W_sqrt
    yw = y_vec * W_sqrt

    # (X'WX)^-1 X'Wy
    XtX = Xw.T @ Xw
    XtX_inv = np.linalg.inv(XtX)
    XtY = Xw.T @ yw
    beta = XtX_inv @ XtY  # (k, 1)

    # Predictions & residuals
    y_hat = X_mat @ beta
    residuals = y_vec - y_hat
    w_col = w.reshape(-1, 1)

    # Sum of squares (weighted)
    ssr = float((w_col * residuals**2).sum())
    y_bar = float((w_col * y_vec).sum() / w.sum())
    sst = float((w_col * (y_vec - y_bar) ** 2).sum())

    r2 = 1.0 - ssr / sst if sst > 0 else np.nan
    adj_r2 = 1.0 - (1.0 - r2) * (n - 1) / (n - k) if n > k else np.nan

    # Residual variance
    sigma2 = ssr / (n - k) if n > k else np.nan

    # Var(beta) = sigma^2 (X'WX)^-1
    var_beta = sigma2 * XtX_inv
    se = np.sqrt(np.diag(var_beta)).reshape(-1, 1)

    # t-stats & p-values on n - k degrees of freedom
    t_flat = (beta / se).flatten()
    p_vals = 2 * stats.t.sf(np.abs(t_flat), df=n - k)

    # Overall F test of all slopes
    if k > 1 and n > k and ssr > 0:
        f_stat = ((sst - ssr) / (k - 1)) / (ssr / (n - k))
        f_p = float(stats.f.sf(f_stat, k - 1, n - k))
    else:
        f_stat, f_p = np.nan, np.nan

    # Gaussian log-likelihood at the MLE of sigma^2
    log_lik = -0.5 * n * (np.log(2 * np.pi) + np.log(ssr / n) + 1) + 0.5 * np.log(w).sum()

    # Wrap into Series
    beta_s = pd.Series(beta.flatten(), index=X.columns, name="coef")
    se_s = pd.Series(se.flatten(), index=X.columns, name="std_err")
    t_s = pd.Series(t_flat, index=X.columns, name="t_stat")
    p_s = pd.Series(p_vals, index=X.columns, name="p_value")

    # Fitted & residuals as Series
    y_hat_s = pd.Series(y_hat.flatten(), index=X.index, name="fitted")
    resid_s = pd.Series(residuals.flatten(), index=X.index, name="residual")

    return RegressionResults(
        beta=beta_s,
        se=se_s,
        t=t_s,
        p=p_s,
        y_hat=y_hat_s,
        residuals=resid_s,
        r2=r2,
        adj_r2=adj_r2,
        n=n,
        k=k,
        sigma2=sigma2,
        f_stat=float(f_stat),
        f_p_value=f_p,
        log_likelihood=float(log_lik),
        XtX_inv=XtX_inv,
        X=X,
        y=y.astype(float),
        weights=None if weights is None else pd.Series(w, index=X.index, name="weight"),
    )


def fit_ols(
    df: pd.DataFrame,
    dependent_var: str,
    continuous_vars: List[str],
    categorical_vars: List[str],
    interactions: Optional[List[Tuple[str, str]]] = None,
) -> RegressionResults:
    X, y = prepare_modelling_data(df, dependent_var, continuous_vars, categorical_vars, interactions)
    results = run_ols_regression(X, y)
    logger.info(
        "OLS %s ~ %s: n=%d, k=%d, R2=%.4f",
        dependent_var, " + ".join(results.predictors), results.n, results.k, results.r2,
    )
    return results


# ---------- Summaries & diagnostics ---------- #

def summarise_model(results: RegressionResults, alpha: float = 0.05) -> pd.DataFrame:
    """
    Build a coefficient table.
    Columns: coef, std_err, t_stat, p_value, ci_lower, ci_upper
    """
    coef_df = pd.concat(
        [results.beta, results.se, results.t, results.p],
        axis=1
    )
    coef_df.columns = ["coef", "std_err", "t_stat", "p_value"]

    t_crit = stats.t.ppf(1 - alpha / 2, results.df_resid)
    coef_df["ci_lower"] = coef_df["coef"] - t_crit * coef_df["std_err"]
    coef_df["ci_upper"] = coef_df["coef"] + t_crit * coef_df["std_err"]
    return coef_df


def fit_statistics(results: RegressionResults, label: Optional[str] = None) -> pd.DataFrame:
    row = {
        "n": results.n,
        "k": results.k,
        "r2": results.r2,
        "adj_r2": results.adj_r2,
        "sigma": float(np.sqrt(results.sigma2)),
        "f_stat": results.f_stat,
        "f_p_value": results.f_p_value,
        "aic": results.aic,
        "bic": results.bic,
    }
    return pd.DataFrame([row], index=[label or "model"])


def model_diagnostics(results: RegressionResults) -> ModelDiagnostics:
    """
    Leverage (hat values), standardized and studentized residuals and
    Cook's distance.

    h_ii = x_i' (X'WX)^-1 x_i * w_i
    r_i  = e_i sqrt(w_i) / (s sqrt(1 - h_ii))
    D_i  = r_i^2 h_ii / (k (1 - h_ii))
    """
    X_mat = results.X.values.astype(float)
    n, k = results.n, results.k
    w = np.ones(n) if results.weights is None else results.weights.values

    # Row-wise diag of X (X'X)^-1 X' without building the n x n matrix
    h_ii = np.einsum("ij,jk,ik->i", X_mat, results.XtX_inv, X_mat) * w

    resid = results.residuals.values * np.sqrt(w)
    s = np.sqrt(results.sigma2)
    std_resid = resid / (s * np.sqrt(1 - h_ii))

    # Leave-one-out variance for externally studentized residuals
    dof = n - k - 1
    s2_loo = (results.sigma2 * (n - k) - resid**2 / (1 - h_ii)) / dof
    stud_resid = resid / np.sqrt(s2_loo * (1 - h_ii))

    cooks = std_resid**2 * h_ii / (k * (1 - h_ii))

    index = results.X.index
    return ModelDiagnostics(
        fitted=results.y_hat.rename("fitted"),
        residuals=results.residuals.rename("residual"),
        leverage=pd.Series(h_ii, index=index, name="leverage"),
        standardized_residuals=pd.Series(std_resid, index=index, name="std_residual"),
        studentized_residuals=pd.Series(stud_resid, index=index, name="studentized_residual"),
        cooks_distance=pd.Series(cooks, index=index, name="cooks_distance"),
    )


def rank_extreme_observations(
    diagnostics: ModelDiagnostics,
    top_n: int = 5,
    df: Optional[pd.DataFrame] = None,
    id_cols: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Observations in the top tail by |standardized residual| or by leverage.

    Parameters
    ----------
    diagnostics : ModelDiagnostics
        Output of model_diagnostics.
    top_n : int
        How many observations to take from each ranking.
    df : DataFrame, optional
        Observation table; id_cols from it are shown alongside.
    id_cols : list of str, optional
        Columns of df to show as identifiers.

    Returns
    -------
    DataFrame with fitted, residual, std_residual, leverage, cooks_distance,
    rank columns and a flag ('large residual', 'high leverage', 'both'),
    sorted by |std_residual| descending.
    """
    diag_df = diagnostics.to_frame()
    abs_resid = diag_df["std_residual"].abs()

    top_resid = abs_resid.nlargest(top_n).index
    top_lev = diag_df["leverage"].nlargest(top_n).index
    keep = top_resid.union(top_lev)

    out = diag_df.loc[keep].copy()
    out["residual_rank"] = abs_resid.rank(ascending=False, method="first").loc[keep].astype(int)
    out["leverage_rank"] = diag_df["leverage"].rank(ascending=False, method="first").loc[keep].astype(int)

    in_resid = out.index.isin(top_resid)
    in_lev = out.index.isin(top_lev)
    out["flag"] = np.select(
        [in_resid & in_lev, in_resid, in_lev],
        ["both", "large residual", "high leverage"],
        default="",
    )

    if df is not None and id_cols:
        cols = [c for c in id_cols if c in df.columns]
        out = df.loc[keep, cols].join(out)

    return out.reindex(abs_resid.loc[keep].sort_values(ascending=False).index)


def leverage_cutoff(results: RegressionResults) -> float:
    """Conventional 2k/n threshold for high leverage."""
    return 2.0 * results.k / results.n


def residual_fitted_correlation(results: RegressionResults) -> float:
    """Pearson correlation of |residual| with the fitted value."""
    return float(np.corrcoef(results.residuals.abs().values, results.y_hat.values)[0, 1])


def qq_points(residuals: pd.Series) -> pd.DataFrame:
    """Theoretical normal quantiles against sorted standardized residuals."""
    values = np.sort(np.asarray(residuals, dtype=float))
    n = len(values)
    probs = (np.arange(1, n + 1) - 0.5) / n
    scaled = (values - values.mean()) / values.std(ddof=1)
    return pd.DataFrame({"theoretical": stats.norm.ppf(probs), "sample": scaled})


def add_fitted_column(
    df: pd.DataFrame,
    results: RegressionResults,
    label: str,
    inverse: Optional[Callable[[np.ndarray], np.ndarray]] = None,
) -> pd.DataFrame:
    """
    Append results' fitted values to a copy of df as 'fitted_<label>'.

    Rows dropped from the fit (missing values) get NaN. `inverse` maps the
    fitted values back to the original response scale (e.g. np.exp).
    """
    fitted = results.y_hat
    if inverse is not None:
        fitted = pd.Series(inverse(fitted.values), index=fitted.index)

    df = df.copy()
    df[f"fitted_{label}"] = fitted.reindex(df.index)
    return df
