"""
exploration.py

Descriptive statistics and pairwise relationships for the observation table.
"""

from typing import Optional

import pandas as pd

from constants import ORIGIN_LABELS, TARGET_COLUMN


def _numeric_view(df: pd.DataFrame) -> pd.DataFrame:
    """All numeric columns, with categoricals replaced by their numeric codes."""
    out = df.copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.CategoricalDtype):
            out[col] = pd.to_numeric(out[col].astype(object), errors="coerce")
    return out.select_dtypes("number")


def summary_statistics(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per numeric column: count, missing, mean, std, min, quartiles, median,
    max, range.
    """
    num = _numeric_view(df)
    summary = num.describe().T
    summary.insert(1, "missing", num.isna().sum())
    summary["median"] = num.median()
    summary["range"] = summary["max"] - summary["min"]
    return summary


def correlation_matrix(df: pd.DataFrame, method: str = "pearson") -> pd.DataFrame:
    return _numeric_view(df).corr(method=method)


def strongest_correlations(
    df: pd.DataFrame,
    target: str = TARGET_COLUMN,
    top_n: Optional[int] = None,
) -> pd.Series:
    """Predictors ordered by |correlation| with the target (sign kept)."""
    corr = correlation_matrix(df)[target].drop(target)
    ordered = corr.reindex(corr.abs().sort_values(ascending=False).index)
    return ordered.head(top_n) if top_n else ordered


def category_counts(df: pd.DataFrame, column: str = "origin") -> pd.DataFrame:
    counts = df[column].value_counts(sort=False).rename("count").to_frame()
    if column == "origin":
        counts["label"] = [ORIGIN_LABELS.get(int(level), str(level)) for level in counts.index]
    return counts
