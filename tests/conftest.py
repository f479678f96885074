import numpy as np
import pandas as pd
import pytest

from constants import ORIGIN_LEVELS


RAW_SAMPLE = """\
18.0   8   307.0      130.0      3504.      12.0   70  1\t"chevrolet chevelle malibu"
15.0   8   350.0      165.0      3693.      11.5   70  1\t"buick skylark 320"
25.0   4   98.00      ?          2046.      19.0   71  1\t"ford pinto"
24.0   4   113.0      95.00      2372.      15.0   70  3\t"toyota corona mark ii"
26.0   4   97.00      46.00      1835.      20.5   70  2\t"volkswagen 1131 deluxe sedan"
31.0   4   71.00      65.00      1773.      19.0   71  3\t"toyota corolla 1200"
"""


def make_auto_like(n: int = 398, seed: int = 0) -> pd.DataFrame:
    """
    Synthetic table shaped like Auto MPG.

    cylinders, displacement, weight and horsepower are strongly collinear;
    log(mpg) is linear in weight, model year and origin with Gaussian
    noise, so mpg has multiplicative errors.
    """
    rng = np.random.default_rng(seed)

    origin = rng.choice(ORIGIN_LEVELS, size=n, p=[0.62, 0.18, 0.20])
    cylinders = np.where(
        origin == 1,
        rng.choice([4, 6, 8], size=n, p=[0.3, 0.3, 0.4]),
        rng.choice([4, 6], size=n, p=[0.85, 0.15]),
    )
    displacement = np.clip(40.0 * cylinders + rng.normal(0, 15, n), 60, None)
    horsepower = 35.0 + 0.3 * displacement + rng.normal(0, 10, n)
    weight = 1500.0 + 6.0 * displacement + rng.normal(0, 150, n)
    acceleration = 20.0 - 0.04 * horsepower + rng.normal(0, 1.5, n)
    model_year = rng.integers(70, 83, size=n)

    log_mpg = (
        4.6
        - 0.0005 * weight
        + 0.03 * (model_year - 76)
        + 0.05 * (origin == 3)
        + rng.normal(0, 0.08, n)
    )

    return pd.DataFrame(
        {
            "mpg": np.exp(log_mpg),
            "cylinders": cylinders,
            "displacement": displacement,
            "horsepower": horsepower,
            "weight": weight,
            "acceleration": acceleration,
            "model_year": model_year,
            "origin": pd.Categorical(origin, categories=ORIGIN_LEVELS),
        }
    )


@pytest.fixture
def auto_df():
    return make_auto_like()


@pytest.fixture
def raw_file(tmp_path):
    path = tmp_path / "auto-mpg.data"
    path.write_text(RAW_SAMPLE)
    return path


@pytest.fixture
def simple_df():
    """Small exactly-specified data: y = 1 + 2a - 3b + noise."""
    rng = np.random.default_rng(1)
    n = 120
    a = rng.normal(0, 1, n)
    b = rng.normal(0, 1, n)
    origin = np.tile(ORIGIN_LEVELS, n // 3)
    y = 1.0 + 2.0 * a - 3.0 * b + rng.normal(0, 0.01, n)
    return pd.DataFrame(
        {
            "y": y,
            "a": a,
            "b": b,
            "origin": pd.Categorical(origin, categories=ORIGIN_LEVELS),
        }
    )


@pytest.fixture
def collinear_response_df():
    """Auto-like table whose log(mpg) needs weight, displacement and cylinders."""
    df = make_auto_like(seed=0)
    rng = np.random.default_rng(11)
    log_mpg = (
        4.0
        - 0.0003 * df["weight"]
        - 0.002 * df["displacement"]
        - 0.1 * df["cylinders"]
        + 0.03 * (df["model_year"] - 76)
        + rng.normal(0, 0.03, len(df))
    )
    df["mpg"] = np.exp(log_mpg)
    return df
