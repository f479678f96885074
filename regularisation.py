"""
regularisation.py

LASSO fit over a geometric penalty path with k-fold cross-validation.

Design columns are standardised before fitting; coefficients are reported
both on the standardised scale and mapped back to the original units.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.linear_model import Lasso, LassoCV, lasso_path
from sklearn.model_selection import KFold
from sklearn.preprocessing import StandardScaler

from constants import CV_FOLDS, RANDOM_STATE

logger = logging.getLogger(__name__)

LASSO_RULES = ("min", "1se")


@dataclass(frozen=True)
class LassoResult:
    alpha: float
    rule: str
    alpha_min: float
    alpha_1se: float
    alphas: np.ndarray
    cv_mse: np.ndarray
    cv_se: np.ndarray
    coefficients: pd.Series
    std_coefficients: pd.Series
    zero_coefficients: List[str]
    y_hat: pd.Series
    residuals: pd.Series
    r2: float
    n_folds: int

    def cv_curve(self) -> pd.DataFrame:
        return pd.DataFrame({"alpha": self.alphas, "mse": self.cv_mse, "se": self.cv_se})


def _features(X: pd.DataFrame) -> List[str]:
    return [c for c in X.columns if c != "const"]


def penalty_path(Xs: np.ndarray, y: np.ndarray, n_alphas: int = 100, eps: float = 1e-3) -> np.ndarray:
    """Geometric grid from the smallest all-zero penalty down to eps times it."""
    n = Xs.shape[0]
    alpha_max = np.max(np.abs(Xs.T @ (y - y.mean()))) / n
    return np.geomspace(alpha_max, alpha_max * eps, n_alphas)


def fit_lasso_cv(
    X: pd.DataFrame,
    y: pd.Series,
    n_folds: int = CV_FOLDS,
    n_alphas: int = 100,
    eps: float = 1e-3,
    random_state: Optional[int] = RANDOM_STATE,
    rule: str = "min",
) -> LassoResult:
    """
    Cross-validated LASSO.

    Parameters
    ----------
    X : DataFrame
        Design matrix from prepare_modelling_data ('const' is ignored).
    y : Series
        Response.
    n_folds : int
        Number of shuffled K folds.
    rule : {"min", "1se"}
        "min" picks the penalty with the lowest mean CV error, "1se" the
        largest penalty within one standard error of that minimum.
    """
    if rule not in LASSO_RULES:
        raise ValueError(f"Unknown penalty rule {rule!r}; expected one of {LASSO_RULES}")
    if n_folds < 2:
        raise ValueError("Cross-validation needs at least 2 folds")

    features = _features(X)
    scaler = StandardScaler()
    Xs = scaler.fit_transform(X[features].values.astype(float))
    y_vec = y.values.astype(float)

    alphas = penalty_path(Xs, y_vec, n_alphas=n_alphas, eps=eps)
    folds = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    cv_model = LassoCV(alphas=alphas, cv=folds, max_iter=100000).fit(Xs, y_vec)

    # LassoCV keeps alphas in decreasing order
    cv_alphas = cv_model.alphas_
    cv_mse = cv_model.mse_path_.mean(axis=1)
    cv_se = cv_model.mse_path_.std(axis=1, ddof=1) / np.sqrt(n_folds)

    best = int(np.argmin(cv_mse))
    alpha_min = float(cv_alphas[best])
    within = np.where(cv_mse <= cv_mse[best] + cv_se[best])[0]
    alpha_1se = float(cv_alphas[within].max())
    alpha = alpha_min if rule == "min" else alpha_1se

    model = Lasso(alpha=alpha, max_iter=100000).fit(Xs, y_vec)

    std_coef = pd.Series(model.coef_, index=features, name="coef")
    orig_coef = std_coef / scaler.scale_
    intercept = float(model.intercept_ - (orig_coef * scaler.mean_).sum())
    coefficients = pd.concat([pd.Series({"const": intercept}), orig_coef]).rename("coef")

    y_hat = model.predict(Xs)
    residuals = y_vec - y_hat
    ssr = float((residuals**2).sum())
    sst = float(((y_vec - y_vec.mean()) ** 2).sum())
    r2 = 1.0 - ssr / sst if sst > 0 else np.nan

    zeros = std_coef[std_coef == 0.0].index.tolist()
    logger.info(
        "LASSO (%s rule): alpha %.5f, R2 %.4f, zeroed %s", rule, alpha, r2, zeros or "none"
    )

    return LassoResult(
        alpha=alpha,
        rule=rule,
        alpha_min=alpha_min,
        alpha_1se=alpha_1se,
        alphas=cv_alphas,
        cv_mse=cv_mse,
        cv_se=cv_se,
        coefficients=coefficients,
        std_coefficients=std_coef,
        zero_coefficients=zeros,
        y_hat=pd.Series(y_hat, index=X.index, name="fitted"),
        residuals=pd.Series(residuals, index=X.index, name="residual"),
        r2=r2,
        n_folds=n_folds,
    )


def lasso_path_coefficients(
    X: pd.DataFrame,
    y: pd.Series,
    alphas: Optional[np.ndarray] = None,
    n_alphas: int = 100,
    eps: float = 1e-3,
) -> pd.DataFrame:
    """Standardised coefficient trajectories; index is the penalty."""
    features = _features(X)
    Xs = StandardScaler().fit_transform(X[features].values.astype(float))
    y_vec = y.values.astype(float)
    if alphas is None:
        alphas = penalty_path(Xs, y_vec, n_alphas=n_alphas, eps=eps)

    # lasso_path fits no intercept; the columns are already centred
    path_alphas, coefs, _ = lasso_path(Xs, y_vec - y_vec.mean(), alphas=alphas, max_iter=100000)
    return pd.DataFrame(coefs.T, index=pd.Index(path_alphas, name="alpha"), columns=features)
