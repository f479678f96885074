import numpy as np
import pandas as pd
import pytest

from modelling import prepare_modelling_data
from transformations import (
    BoxCoxResult,
    apply_response_transform,
    box_cox_search,
    box_cox_transform,
    default_lambda_grid,
    inverse_box_cox,
    inverse_response_transform,
    suggest_transformation,
)

CONTINUOUS = ["cylinders", "displacement", "horsepower", "weight", "acceleration", "model_year"]


def _result(optimal, lower, upper, suggested):
    grid = np.array([lower, optimal, upper])
    return BoxCoxResult(
        lambdas=grid,
        log_likelihood=np.array([-1.0, 0.0, -1.0]),
        optimal_lambda=optimal,
        max_log_likelihood=0.0,
        ci_lower=lower,
        ci_upper=upper,
        suggested_lambda=suggested,
    )


def test_transform_and_inverse():
    y = np.array([1.5, 10.0, 30.0])

    np.testing.assert_allclose(box_cox_transform(y, 0.0), np.log(y))
    np.testing.assert_allclose(box_cox_transform(y, 1.0), y - 1.0)
    for lam in (-0.5, 0.0, 0.5, 2.0):
        np.testing.assert_allclose(inverse_box_cox(box_cox_transform(y, lam), lam), y)


def test_transform_rejects_non_positive():
    with pytest.raises(ValueError):
        box_cox_transform([1.0, -2.0], 0.5)


def test_default_grid_contains_round_values():
    grid = default_lambda_grid()

    assert grid[0] == -2.0 and grid[-1] == 2.0
    assert 0.0 in grid and -0.5 in grid and 1.0 in grid


def test_round_lambda_reaches_grid_edge():
    rng = np.random.default_rng(3)
    x = rng.uniform(0, 10, 200)
    y = pd.Series(np.sqrt(5.0 + 3.0 * x + rng.normal(0, 0.3, 200)), name="y")
    X = pd.DataFrame({"const": 1.0, "x": x})

    result = box_cox_search(y, X)

    assert result.optimal_lambda > 1.5
    assert result.suggested_lambda == 2.0


def test_search_curve_and_interval(auto_df):
    X, y = prepare_modelling_data(auto_df, "mpg", CONTINUOUS, ["origin"])
    result = box_cox_search(y, X)

    assert len(result.lambdas) == len(result.log_likelihood)
    assert result.max_log_likelihood == pytest.approx(result.log_likelihood.max())
    assert result.ci_lower <= result.optimal_lambda <= result.ci_upper
    assert result.contains(result.optimal_lambda)
    assert result.curve().shape == (len(result.lambdas), 2)


def test_search_finds_log_for_multiplicative_errors(auto_df):
    X, y = prepare_modelling_data(auto_df, "mpg", CONTINUOUS, ["origin"])
    result = box_cox_search(y, X)

    assert abs(result.optimal_lambda) < 0.5


def test_search_finds_square_root_scale():
    rng = np.random.default_rng(3)
    x = rng.uniform(1, 10, 300)
    y = (2.0 + 1.5 * x + rng.normal(0, 0.05, 300)) ** 2
    X = pd.DataFrame({"const": 1.0, "x": x})

    result = box_cox_search(pd.Series(y), X)

    assert result.optimal_lambda == pytest.approx(0.5, abs=0.1)
    assert result.suggested_lambda == 0.5


def test_search_rejects_non_positive_response():
    X = pd.DataFrame({"const": [1.0, 1.0, 1.0]})
    with pytest.raises(ValueError):
        box_cox_search(pd.Series([1.0, 0.0, 2.0]), X)


def test_suggestions():
    assert suggest_transformation(_result(0.05, -0.3, 0.4, 0.0)) == "log"
    assert suggest_transformation(_result(-0.15, -0.6, -0.4, -0.5)) == "log"
    assert suggest_transformation(_result(0.9, 0.6, 1.2, 1.0)) == "none"
    assert suggest_transformation(_result(-0.6, -0.8, -0.4, -0.5)) == "box-cox"


def test_apply_response_transform(auto_df):
    out, col = apply_response_transform(auto_df, "log")
    assert col == "log_mpg"
    np.testing.assert_allclose(out[col], np.log(auto_df["mpg"]))

    same, col = apply_response_transform(auto_df, "none")
    assert col == "mpg" and same is auto_df

    out, col = apply_response_transform(auto_df, "box-cox", lam=-0.5)
    assert col == "boxcox_mpg"
    np.testing.assert_allclose(out[col], (auto_df["mpg"] ** -0.5 - 1) / -0.5)


def test_apply_response_transform_errors(auto_df):
    with pytest.raises(ValueError):
        apply_response_transform(auto_df, "sqrt")
    with pytest.raises(ValueError):
        apply_response_transform(auto_df, "box-cox")


def test_inverse_response_transform():
    assert inverse_response_transform("none") is None
    assert inverse_response_transform("log")(np.log(5.0)) == pytest.approx(5.0)
    z = box_cox_transform([4.0], -0.5)
    assert inverse_response_transform("box-cox", -0.5)(z)[0] == pytest.approx(4.0)
