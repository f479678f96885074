import plotly.graph_objects as go

from data_loading import add_log_response
from exploration import correlation_matrix
from modelling import fit_ols, leverage_cutoff, model_diagnostics, qq_points
from regularisation import fit_lasso_cv, lasso_path_coefficients
from selection import stepwise_aic, variance_inflation_factors
from transformations import box_cox_search
from visualisations import (
    box_cox_curve,
    boxplot_by_origin,
    cooks_distance_bar,
    correlation_heatmap,
    lasso_cv_plot,
    lasso_path_plot,
    leverage_plot,
    qq_plot,
    residual_histogram,
    residual_plot,
    scatter_matrix,
    scatter_with_trend,
    stepwise_aic_plot,
    vif_bar,
)

CONTINUOUS = ["cylinders", "displacement", "horsepower", "weight", "acceleration", "model_year"]


def test_exploratory_figures(auto_df):
    figs = [
        scatter_matrix(auto_df, ["mpg", "weight", "horsepower"]),
        correlation_heatmap(correlation_matrix(auto_df)),
        scatter_with_trend(auto_df, "weight", "mpg", color="origin"),
        boxplot_by_origin(auto_df, "mpg"),
    ]

    for fig in figs:
        assert isinstance(fig, go.Figure)
        assert len(fig.data) >= 1


def test_trend_line_added(auto_df):
    fig = scatter_with_trend(auto_df, "weight", "mpg")

    assert fig.data[-1].name == "OLS line"


def test_diagnostic_figures(auto_df):
    results = fit_ols(auto_df, "mpg", CONTINUOUS, ["origin"])
    diag = model_diagnostics(results)

    figs = [
        residual_plot(diag.fitted, diag.residuals),
        residual_histogram(diag.residuals),
        qq_plot(qq_points(diag.standardized_residuals)),
        leverage_plot(diag, cutoff=leverage_cutoff(results)),
        cooks_distance_bar(diag.cooks_distance, top_n=10),
        vif_bar(variance_inflation_factors(results.X), threshold=5.0),
        box_cox_curve(box_cox_search(results.y, results.X)),
    ]

    for fig in figs:
        assert isinstance(fig, go.Figure)
        assert len(fig.data) >= 1
    assert len(figs[4].data[0].x) == 10


def test_selection_and_lasso_figures(auto_df):
    df = add_log_response(auto_df)
    step = stepwise_aic(df, "log_mpg", CONTINUOUS, ["origin"])
    results = fit_ols(df, "log_mpg", CONTINUOUS, ["origin"])
    lasso = fit_lasso_cv(results.X, results.y, n_folds=5)
    path = lasso_path_coefficients(results.X, results.y, alphas=lasso.alphas)

    aic_fig = stepwise_aic_plot(step.history)
    path_fig = lasso_path_plot(path, lasso.alpha)
    cv_fig = lasso_cv_plot(lasso)

    assert len(aic_fig.data[0].y) == len(step.history)
    assert len(path_fig.data) == path.shape[1]
    assert isinstance(cv_fig, go.Figure)
