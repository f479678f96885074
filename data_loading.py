"""
data_loading.py

Load and type the Auto MPG dataset.

- load_auto_mpg:
    Read the raw whitespace-delimited file, name and type the columns,
    drop the car name identifier.
- ensure_numeric:
    Coerce columns to numbers, placeholders become NaN.
- add_log_response:
    Append a log-transformed copy of the target.
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from constants import (
    AUTO_MPG_URL,
    HORSEPOWER_POLICIES,
    ID_COLUMN,
    LOG_TARGET_COLUMN,
    NUMERIC_COERCE_COLUMNS,
    ORIGIN_LEVELS,
    RAW_COLUMNS,
    TARGET_COLUMN,
)

logger = logging.getLogger(__name__)


class SchemaError(ValueError):
    """Raised when the raw file does not have the expected layout."""


def ensure_numeric(df: pd.DataFrame, cols: List[str]) -> pd.DataFrame:
    df = df.copy()
    for c in cols:
        if c in df.columns:
            before = df[c].isna().sum()
            df[c] = pd.to_numeric(df[c], errors="coerce")
            coerced = int(df[c].isna().sum() - before)
            if coerced:
                logger.warning("Coerced %d non-numeric value(s) in %r to NaN", coerced, c)
    return df


def _apply_horsepower_policy(df: pd.DataFrame, policy: str) -> pd.DataFrame:
    if policy not in HORSEPOWER_POLICIES:
        raise ValueError(
            f"Unknown horsepower policy {policy!r}; expected one of {HORSEPOWER_POLICIES}"
        )

    missing = df["horsepower"].isna()
    if policy == "drop":
        df = df[~missing].copy()
        logger.info("Dropped %d row(s) with missing horsepower", int(missing.sum()))
    elif policy == "median":
        fill = df["horsepower"].median()
        df = df.copy()
        df["horsepower"] = df["horsepower"].fillna(fill)
        logger.info("Imputed %d horsepower value(s) with median %.1f", int(missing.sum()), fill)
    return df


def load_auto_mpg(source=AUTO_MPG_URL, horsepower_policy: str = "keep") -> pd.DataFrame:
    """
    Load the Auto MPG table.

    Parameters
    ----------
    source : str, path or file-like
        URL or local copy of ``auto-mpg.data``.
    horsepower_policy : {"keep", "drop", "median"}
        What to do with rows whose horsepower is the '?' placeholder.
        "keep" leaves NaN in the table; model fitting then drops those
        rows listwise.

    Returns
    -------
    DataFrame with columns mpg, cylinders, displacement, horsepower,
    weight, acceleration, model_year, origin (categorical 1/2/3).
    """
    df = pd.read_csv(source, sep=r"\s+", header=None, quotechar='"')

    if df.shape[1] != len(RAW_COLUMNS):
        raise SchemaError(
            f"Expected {len(RAW_COLUMNS)} columns, found {df.shape[1]}"
        )
    df.columns = RAW_COLUMNS

    df = ensure_numeric(df, NUMERIC_COERCE_COLUMNS)

    bad_origin = ~df["origin"].isin(ORIGIN_LEVELS)
    if bad_origin.any():
        found = sorted(df.loc[bad_origin, "origin"].astype(str).unique())
        raise SchemaError(f"Unexpected origin code(s): {found}")
    df["origin"] = pd.Categorical(df["origin"].astype(int), categories=ORIGIN_LEVELS)

    df = df.drop(columns=[ID_COLUMN])
    df = _apply_horsepower_policy(df, horsepower_policy)

    logger.info("Loaded %d rows x %d columns", df.shape[0], df.shape[1])
    return df


def add_log_response(
    df: pd.DataFrame,
    column: str = TARGET_COLUMN,
    new_column: Optional[str] = None,
) -> pd.DataFrame:
    """Return a copy of df with log(column) appended."""
    new_column = new_column or (LOG_TARGET_COLUMN if column == TARGET_COLUMN else f"log_{column}")
    values = df[column].astype(float)
    if (values.dropna() <= 0).any():
        raise ValueError(f"Cannot log-transform {column!r}: non-positive values present")

    df = df.copy()
    df[new_column] = np.log(values)
    return df
