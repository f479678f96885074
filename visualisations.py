"""
visualisations.py

Plotly visualisations for:

- Pairwise scatter matrix and correlation heatmap
- Predictor vs mpg (with regression line)
- Boxplot: mpg by origin
- Residual vs fitted plot
- Residual histogram and normal Q-Q plot
- Leverage vs standardized residual, Cook's distance bar chart
- Box-Cox log-likelihood curve
- VIF bar chart
- Stepwise AIC trace
- LASSO coefficient path and cross-validation curve

All functions return Plotly Figure objects that are Streamlit-compatible.
"""

from typing import List, Optional

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from constants import ORIGIN_LABELS
from modelling import ModelDiagnostics
from regularisation import LassoResult
from transformations import BoxCoxResult


def _origin_labels(df: pd.DataFrame, color: Optional[str]) -> pd.DataFrame:
    if color == "origin" and "origin" in df.columns:
        df = df.copy()
        df["origin"] = df["origin"].astype(object).map(lambda v: ORIGIN_LABELS.get(int(v), str(v)))
    return df


# ---------------------------------------------------------------------
# Exploratory plots
# ---------------------------------------------------------------------

def scatter_matrix(
    df: pd.DataFrame,
    dimensions: List[str],
    color: Optional[str] = "origin",
    title: str = "Pairwise relationships",
) -> go.Figure:
    df_plot = _origin_labels(df, color)
    fig = px.scatter_matrix(
        df_plot,
        dimensions=dimensions,
        color=color,
        title=title,
    )
    fig.update_traces(diagonal_visible=False, marker=dict(size=3, opacity=0.6))
    fig.update_layout(height=900, margin=dict(l=40, r=20, t=60, b=40))
    return fig


def correlation_heatmap(
    corr: pd.DataFrame,
    title: str = "Correlation matrix",
) -> go.Figure:
    fig = go.Figure(
        data=go.Heatmap(
            z=corr.values,
            x=corr.columns,
            y=corr.index,
            zmin=-1,
            zmax=1,
            colorscale="RdBu",
            text=np.round(corr.values, 2),
            texttemplate="%{text}",
            colorbar=dict(title="r"),
        )
    )
    fig.update_layout(
        title=title,
        margin=dict(l=80, r=20, t=60, b=40),
    )
    return fig


def scatter_with_trend(
    df: pd.DataFrame,
    x: str,
    y: str,
    color: Optional[str] = None,
    title: str = "",
    x_title: Optional[str] = None,
    y_title: Optional[str] = None,
) -> go.Figure:
    """
    Scatter plot with a manually computed regression line (overall).
    """
    df_plot = _origin_labels(df.dropna(subset=[x, y]), color)
    fig = px.scatter(
        df_plot,
        x=x,
        y=y,
        color=color,
        title=title,
    )

    # Fit simple linear regression line globally (not by group)
    x_vals = df_plot[x].values.astype(float)
    y_vals = df_plot[y].values.astype(float)
    if len(x_vals) > 1:
        slope, intercept = np.polyfit(x_vals, y_vals, 1)
        x_line = np.linspace(x_vals.min(), x_vals.max(), 50)
        fig.add_trace(
            go.Scatter(
                x=x_line,
                y=slope * x_line + intercept,
                mode="lines",
                name="OLS line",
                line=dict(dash="dash"),
            )
        )

    fig.update_layout(
        xaxis_title=x_title or x,
        yaxis_title=y_title or y,
        legend_title_text=color if color else "",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def boxplot_by_origin(
    df: pd.DataFrame,
    y: str,
    title: Optional[str] = None,
) -> go.Figure:
    df_plot = _origin_labels(df.dropna(subset=[y, "origin"]), "origin")
    fig = px.box(
        df_plot,
        x="origin",
        y=y,
        points="outliers",
        title=title or f"{y} by origin",
    )
    fig.update_layout(
        xaxis_title="Origin",
        yaxis_title=y,
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


# ---------------------------------------------------------------------
# Regression diagnostics
# ---------------------------------------------------------------------

def residual_plot(
    fitted: pd.Series,
    residuals: pd.Series,
    title: str = "Residuals vs fitted values",
) -> go.Figure:
    """
    Scatter of fitted values vs residuals with zero line.
    """
    fig = go.Figure()

    fig.add_trace(
        go.Scatter(
            x=fitted,
            y=residuals,
            mode="markers",
            name="Residuals",
            marker=dict(opacity=0.6),
            text=[str(i) for i in residuals.index],
        )
    )

    fig.add_hline(
        y=0,
        line=dict(dash="dash"),
        annotation_text="0",
        annotation_position="top left",
    )

    fig.update_layout(
        title=title,
        xaxis_title="Fitted values",
        yaxis_title="Residuals",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def residual_histogram(
    residuals: pd.Series,
    title: str = "Distribution of residuals",
) -> go.Figure:
    fig = px.histogram(
        residuals,
        nbins=30,
        title=title,
    )
    fig.update_layout(
        xaxis_title="Residual",
        yaxis_title="Frequency",
        showlegend=False,
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def qq_plot(
    qq: pd.DataFrame,
    title: str = "Normal Q-Q plot of residuals",
) -> go.Figure:
    """
    Theoretical vs sample quantiles (output of modelling.qq_points) with
    the y = x reference line.
    """
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=qq["theoretical"],
            y=qq["sample"],
            mode="markers",
            name="Residuals",
            marker=dict(opacity=0.6),
        )
    )
    lo = float(min(qq["theoretical"].min(), qq["sample"].min()))
    hi = float(max(qq["theoretical"].max(), qq["sample"].max()))
    fig.add_trace(
        go.Scatter(x=[lo, hi], y=[lo, hi], mode="lines", name="y = x", line=dict(dash="dash"))
    )
    fig.update_layout(
        title=title,
        xaxis_title="Theoretical quantiles",
        yaxis_title="Standardized residuals",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def leverage_plot(
    diagnostics: ModelDiagnostics,
    cutoff: Optional[float] = None,
    title: str = "Standardized residuals vs leverage",
) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=diagnostics.leverage,
            y=diagnostics.standardized_residuals,
            mode="markers",
            name="Observations",
            marker=dict(
                opacity=0.7,
                color=diagnostics.cooks_distance,
                colorscale="Viridis",
                colorbar=dict(title="Cook's D"),
            ),
            text=[str(i) for i in diagnostics.leverage.index],
        )
    )
    fig.add_hline(y=0, line=dict(dash="dot"))
    if cutoff is not None:
        fig.add_vline(
            x=cutoff,
            line=dict(dash="dash"),
            annotation_text="2k/n",
            annotation_position="top right",
        )
    fig.update_layout(
        title=title,
        xaxis_title="Leverage",
        yaxis_title="Standardized residual",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def cooks_distance_bar(
    cooks_distance: pd.Series,
    top_n: int = 20,
    title: str = "Top observations by Cook's distance",
) -> go.Figure:
    """
    Bar chart of the top-N most influential observations (Cook's distance).
    """
    cd = cooks_distance.sort_values(ascending=False).head(top_n)
    fig = go.Figure(
        data=[
            go.Bar(
                x=cd.index.astype(str),
                y=cd.values,
                name="Cook's distance",
            )
        ]
    )
    fig.update_layout(
        title=title,
        xaxis_title="Observation index",
        yaxis_title="Cook's distance",
        margin=dict(l=40, r=20, t=60, b=80),
        xaxis=dict(tickangle=45),
    )
    return fig


# ---------------------------------------------------------------------
# Transformation & selection
# ---------------------------------------------------------------------

def box_cox_curve(
    result: BoxCoxResult,
    title: str = "Box-Cox profile log-likelihood",
) -> go.Figure:
    curve = result.curve()
    fig = go.Figure(
        data=[
            go.Scatter(
                x=curve["lambda"],
                y=curve["log_likelihood"],
                mode="lines",
                name="log-likelihood",
            )
        ]
    )
    fig.add_vline(
        x=result.optimal_lambda,
        line=dict(dash="dash"),
        annotation_text=f"λ = {result.optimal_lambda:.2f}",
        annotation_position="top right",
    )
    fig.add_vrect(x0=result.ci_lower, x1=result.ci_upper, opacity=0.15, line_width=0)
    fig.update_layout(
        title=title,
        xaxis_title="λ",
        yaxis_title="Log-likelihood",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def vif_bar(
    vif: pd.Series,
    threshold: Optional[float] = None,
    title: str = "Variance inflation factors",
) -> go.Figure:
    vif = vif.sort_values(ascending=False)
    fig = go.Figure(data=[go.Bar(x=vif.index.astype(str), y=vif.values, name="VIF")])
    if threshold is not None:
        fig.add_hline(
            y=threshold,
            line=dict(dash="dash"),
            annotation_text=f"threshold {threshold:g}",
            annotation_position="top left",
        )
    fig.update_layout(
        title=title,
        xaxis_title="Predictor",
        yaxis_title="VIF",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def stepwise_aic_plot(
    history: pd.DataFrame,
    title: str = "Stepwise AIC trace",
) -> go.Figure:
    labels = [
        "start" if row.action == "start" else f"{row.action} {row.term}"
        for row in history.itertuples()
    ]
    fig = go.Figure(
        data=[go.Scatter(x=labels, y=history["aic"], mode="lines+markers", name="AIC")]
    )
    fig.update_layout(
        title=title,
        xaxis_title="Step",
        yaxis_title="AIC",
        margin=dict(l=40, r=20, t=60, b=80),
    )
    return fig


# ---------------------------------------------------------------------
# LASSO
# ---------------------------------------------------------------------

def lasso_path_plot(
    path: pd.DataFrame,
    selected_alpha: Optional[float] = None,
    title: str = "LASSO coefficient path",
) -> go.Figure:
    """Standardized coefficients against log10(penalty)."""
    log_alpha = np.log10(path.index.values)
    fig = go.Figure()
    for col in path.columns:
        fig.add_trace(go.Scatter(x=log_alpha, y=path[col], mode="lines", name=col))
    if selected_alpha is not None:
        fig.add_vline(x=np.log10(selected_alpha), line=dict(dash="dash"))
    fig.update_layout(
        title=title,
        xaxis_title="log10(λ)",
        yaxis_title="Standardized coefficient",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig


def lasso_cv_plot(
    result: LassoResult,
    title: str = "Cross-validated mean squared error",
) -> go.Figure:
    curve = result.cv_curve()
    fig = go.Figure(
        data=[
            go.Scatter(
                x=np.log10(curve["alpha"]),
                y=curve["mse"],
                mode="markers+lines",
                name="CV MSE",
                error_y=dict(type="data", array=curve["se"], visible=True),
            )
        ]
    )
    fig.add_vline(x=np.log10(result.alpha_min), line=dict(dash="dash"), annotation_text="min")
    fig.add_vline(x=np.log10(result.alpha_1se), line=dict(dash="dot"), annotation_text="1se")
    fig.update_layout(
        title=title,
        xaxis_title="log10(λ)",
        yaxis_title="Mean squared error",
        margin=dict(l=40, r=20, t=60, b=40),
    )
    return fig
