import numpy as np
import pandas as pd
import pytest

from data_loading import SchemaError, add_log_response, ensure_numeric, load_auto_mpg


def test_load_names_and_types_columns(raw_file):
    df = load_auto_mpg(raw_file)

    assert list(df.columns) == [
        "mpg", "cylinders", "displacement", "horsepower",
        "weight", "acceleration", "model_year", "origin",
    ]
    assert "car_name" not in df.columns
    assert df.shape == (6, 8)
    assert isinstance(df["origin"].dtype, pd.CategoricalDtype)
    assert list(df["origin"].cat.categories) == [1, 2, 3]
    assert pd.api.types.is_float_dtype(df["horsepower"])


def test_placeholder_horsepower_becomes_nan(raw_file):
    df = load_auto_mpg(raw_file)

    assert df["horsepower"].isna().sum() == 1
    assert np.isnan(df.loc[2, "horsepower"])


def test_horsepower_policy_drop(raw_file):
    df = load_auto_mpg(raw_file, horsepower_policy="drop")

    assert len(df) == 5
    assert df["horsepower"].notna().all()


def test_horsepower_policy_median(raw_file):
    df = load_auto_mpg(raw_file, horsepower_policy="median")

    assert len(df) == 6
    assert df.loc[2, "horsepower"] == pytest.approx(95.0)


def test_unknown_horsepower_policy(raw_file):
    with pytest.raises(ValueError):
        load_auto_mpg(raw_file, horsepower_policy="mean")


def test_column_count_drift_is_schema_error(tmp_path):
    path = tmp_path / "wide.data"
    path.write_text(
        '18.0 8 307.0 130.0 3504. 12.0 70 1 9 "chevrolet chevelle malibu"\n'
        '15.0 8 350.0 165.0 3693. 11.5 70 1 9 "buick skylark 320"\n'
    )

    with pytest.raises(SchemaError):
        load_auto_mpg(path)


def test_unknown_origin_is_schema_error(tmp_path):
    path = tmp_path / "origin.data"
    path.write_text('18.0 8 307.0 130.0 3504. 12.0 70 4 "mystery car"\n')

    with pytest.raises(SchemaError, match="origin"):
        load_auto_mpg(path)


def test_ensure_numeric_coerces_tokens():
    df = pd.DataFrame({"x": ["1.5", "?", "3"], "name": ["a", "b", "c"]})

    out = ensure_numeric(df, ["x", "missing_column"])

    assert out["x"].isna().sum() == 1
    assert out["x"].iloc[0] == 1.5
    assert df["x"].iloc[1] == "?"


def test_add_log_response(auto_df):
    out = add_log_response(auto_df)

    assert "log_mpg" in out.columns
    assert "log_mpg" not in auto_df.columns
    np.testing.assert_allclose(np.exp(out["log_mpg"]), auto_df["mpg"])


def test_add_log_response_rejects_non_positive():
    df = pd.DataFrame({"mpg": [10.0, 0.0]})

    with pytest.raises(ValueError):
        add_log_response(df)
