"""
selection.py

Collinearity diagnostics and predictor selection.

- variance_inflation_factors:
    VIF = 1 / (1 - R²_j) for every non-constant design column.
- generalised_vif:
    Per-term GVIF (Fox & Monette); equals VIF for one-column terms.
- eliminate_by_vif:
    Drop the numeric predictor with the largest VIF until all are under
    a threshold.
- stepwise_aic:
    Add/drop search over terms minimising AIC.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from constants import VIF_THRESHOLD
from modelling import RegressionResults, prepare_modelling_data, run_ols_regression

logger = logging.getLogger(__name__)

STEPWISE_DIRECTIONS = ("both", "forward", "backward")


# ---------- VIF ---------- #

def variance_inflation_factors(X: pd.DataFrame) -> pd.Series:
    """
    VIF for every column of X except 'const'.

    Each column is regressed on all remaining columns (with intercept).
    A design with a single predictor gets VIF 1.
    """
    predictors = [c for c in X.columns if c != "const"]
    vifs = {}
    for col in predictors:
        others = [c for c in X.columns if c != col]
        if others == ["const"] or not others:
            vifs[col] = 1.0
            continue
        X_other = X[others]
        if "const" not in X_other.columns:
            X_other = X_other.assign(const=1.0)
        r2 = run_ols_regression(X_other, X[col]).r2
        vifs[col] = np.inf if r2 >= 1.0 else 1.0 / (1.0 - r2)
    return pd.Series(vifs, name="vif", dtype=float)


def term_columns(
    X: pd.DataFrame,
    continuous_vars: Sequence[str],
    categorical_vars: Sequence[str],
) -> Dict[str, List[str]]:
    """Map each model term to the design columns it expands into."""
    mapping = {}
    for col in continuous_vars:
        if col in X.columns:
            mapping[col] = [col]
    for cat in categorical_vars:
        cols = [c for c in X.columns if c.startswith(f"{cat}_") and ":" not in c]
        if cols:
            mapping[cat] = cols
    return mapping


def generalised_vif(X: pd.DataFrame, terms: Dict[str, List[str]]) -> pd.DataFrame:
    """
    GVIF per term: det(R_11) det(R_22) / det(R), R the correlation matrix
    of the non-constant columns, R_11 the block of the term's columns.

    Columns: gvif, df, gvif_adj (GVIF^(1/(2 df))).
    """
    predictors = [c for c in X.columns if c != "const"]
    R = np.corrcoef(X[predictors].values, rowvar=False)
    R = np.atleast_2d(R)
    det_R = np.linalg.det(R)

    rows = {}
    for term, cols in terms.items():
        idx = [predictors.index(c) for c in cols]
        rest = [i for i in range(len(predictors)) if i not in idx]
        det_term = np.linalg.det(R[np.ix_(idx, idx)])
        det_rest = np.linalg.det(R[np.ix_(rest, rest)]) if rest else 1.0
        gvif = det_term * det_rest / det_R
        rows[term] = {
            "gvif": gvif,
            "df": len(cols),
            "gvif_adj": gvif ** (1.0 / (2 * len(cols))),
        }
    return pd.DataFrame.from_dict(rows, orient="index")


def collinear_predictors(vif_table: pd.Series, threshold: float = VIF_THRESHOLD) -> List[str]:
    return vif_table[vif_table > threshold].sort_values(ascending=False).index.tolist()


# ---------- Manual elimination ---------- #

@dataclass(frozen=True)
class EliminationResult:
    retained: List[str]
    dropped: List[str]
    steps: pd.DataFrame
    vif_history: List[pd.Series]
    final_vif: pd.Series
    results: RegressionResults
    threshold: float


def eliminate_by_vif(
    df: pd.DataFrame,
    response: str,
    continuous_vars: List[str],
    categorical_vars: List[str],
    threshold: float = VIF_THRESHOLD,
) -> EliminationResult:
    """
    Iteratively drop the numeric predictor with the highest VIF.

    VIFs are recomputed on the design with the categorical dummies present
    after every removal; stops once every numeric predictor is at or under
    `threshold` (or a single numeric predictor is left).
    """
    if not continuous_vars:
        raise ValueError("VIF elimination needs at least one numeric predictor")

    retained = list(continuous_vars)
    dropped: List[str] = []
    step_rows = []
    history: List[pd.Series] = []

    while True:
        X, _ = prepare_modelling_data(df, response, retained, categorical_vars)
        vif = variance_inflation_factors(X)[retained]
        history.append(vif)

        worst = vif.idxmax()
        if vif[worst] <= threshold or len(retained) <= 1:
            break

        retained.remove(worst)
        dropped.append(worst)
        step_rows.append({"step": len(dropped), "dropped": worst, "vif": float(vif[worst])})
        logger.info("VIF elimination: dropped %s (VIF %.2f)", worst, vif[worst])

    X, y = prepare_modelling_data(df, response, retained, categorical_vars)
    results = run_ols_regression(X, y)

    return EliminationResult(
        retained=retained,
        dropped=dropped,
        steps=pd.DataFrame(step_rows, columns=["step", "dropped", "vif"]),
        vif_history=history,
        final_vif=history[-1],
        results=results,
        threshold=threshold,
    )


# ---------- Stepwise AIC ---------- #

@dataclass(frozen=True)
class StepwiseResult:
    selected_terms: List[str]
    history: pd.DataFrame
    results: RegressionResults
    vif: pd.Series
    collinear: List[str] = field(default_factory=list)
    continuous_vars: List[str] = field(default_factory=list)
    categorical_vars: List[str] = field(default_factory=list)

    @property
    def aic(self) -> float:
        return self.results.aic


def _fit_terms(
    df: pd.DataFrame,
    response: str,
    terms: Sequence[str],
    categorical_vars: Sequence[str],
) -> RegressionResults:
    cont = [t for t in terms if t not in categorical_vars]
    cat = [t for t in terms if t in categorical_vars]
    X, y = prepare_modelling_data(df, response, cont, cat)
    return run_ols_regression(X, y)


def stepwise_aic(
    df: pd.DataFrame,
    response: str,
    continuous_vars: List[str],
    categorical_vars: List[str],
    start: Optional[List[str]] = None,
    direction: str = "both",
    max_steps: int = 100,
    threshold: float = VIF_THRESHOLD,
) -> StepwiseResult:
    """
    Stepwise term selection by AIC.

    Every step evaluates each single drop of an included term and each
    single addition of an excluded term (as allowed by `direction`), applies
    the move with the lowest AIC, and stops when no move lowers the current
    AIC. Categorical variables enter and leave as a whole term.

    Parameters
    ----------
    start : list of str, optional
        Initial terms; defaults to all terms (the full model).
    direction : {"both", "forward", "backward"}
    threshold : float
        VIF above which a selected predictor is reported in `collinear`.
    """
    if direction not in STEPWISE_DIRECTIONS:
        raise ValueError(f"Unknown direction {direction!r}; expected one of {STEPWISE_DIRECTIONS}")

    all_terms = list(continuous_vars) + list(categorical_vars)
    if start is None:
        start = all_terms if direction != "forward" else []
    unknown = [t for t in start if t not in all_terms]
    if unknown:
        raise ValueError(f"Start terms not in scope: {unknown}")

    # Every candidate model is fitted on the same rows
    data = df.dropna(subset=[response] + all_terms)

    current = [t for t in all_terms if t in start]
    current_fit = _fit_terms(data, response, current, categorical_vars)
    rows = [{"step": 0, "action": "start", "term": None, "aic": current_fit.aic}]

    for step in range(1, max_steps + 1):
        candidates = []
        if direction in ("both", "backward"):
            for term in current:
                terms = [t for t in current if t != term]
                candidates.append(("drop", term, terms))
        if direction in ("both", "forward"):
            for term in all_terms:
                if term not in current:
                    terms = [t for t in all_terms if t in current or t == term]
                    candidates.append(("add", term, terms))

        best = None
        for action, term, terms in candidates:
            fit = _fit_terms(data, response, terms, categorical_vars)
            if best is None or fit.aic < best[3].aic:
                best = (action, term, terms, fit)

        if best is None or best[3].aic >= current_fit.aic:
            break

        action, term, current, current_fit = best
        rows.append({"step": step, "action": action, "term": term, "aic": current_fit.aic})
        logger.info("Stepwise AIC: %s %s -> AIC %.2f", action, term, current_fit.aic)

    vif = variance_inflation_factors(current_fit.X)
    collinear = collinear_predictors(vif, threshold)
    if collinear:
        logger.warning(
            "Stepwise model keeps collinear predictors (VIF > %.1f): %s",
            threshold, ", ".join(f"{c} {vif[c]:.1f}" for c in collinear),
        )

    return StepwiseResult(
        selected_terms=current,
        history=pd.DataFrame(rows, columns=["step", "action", "term", "aic"]),
        results=current_fit,
        vif=vif,
        collinear=collinear,
        continuous_vars=[t for t in current if t not in categorical_vars],
        categorical_vars=[t for t in current if t in categorical_vars],
    )
