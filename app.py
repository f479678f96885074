import logging

import pandas as pd
import streamlit as st

from constants import (
    AUTO_MPG_URL,
    CONTINUOUS_COLUMNS,
    CV_FOLDS,
    HORSEPOWER_POLICIES,
    INTERACTION_DEFAULTS,
    ORIGIN_LABELS,
    TARGET_COLUMN,
    VIF_THRESHOLD,
)
from data_loading import SchemaError, load_auto_mpg
from exploration import category_counts, strongest_correlations
from modelling import (
    fit_statistics,
    leverage_cutoff,
    qq_points,
    residual_fitted_correlation,
    summarise_model,
)
from pipeline import AnalysisDecisions, run_analysis
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

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

COEF_FORMAT = {
    "coef": "{:.4f}",
    "std_err": "{:.4f}",
    "t_stat": "{:.2f}",
    "p_value": "{:.4f}",
    "ci_lower": "{:.4f}",
    "ci_upper": "{:.4f}",
}


# ============================================================
# Helpers
# ============================================================

@st.cache_data(show_spinner=False)
def cached_load(source: str, horsepower_policy: str) -> pd.DataFrame:
    return load_auto_mpg(source, horsepower_policy=horsepower_policy)


def show_model(results, label: str) -> None:
    """Fit statistics and coefficient table for one model."""
    col_a, col_b, col_c = st.columns(3)
    with col_a:
        st.metric("R-squared", f"{results.r2:.3f}")
    with col_b:
        st.metric("Adjusted R-squared", f"{results.adj_r2:.3f}")
    with col_c:
        st.metric("AIC", f"{results.aic:.1f}")

    st.dataframe(summarise_model(results).style.format(COEF_FORMAT))
    st.caption(
        f"{label}: n = {results.n}, k = {results.k}, "
        f"F = {results.f_stat:.1f} (p = {results.f_p_value:.2g})"
    )


def show_diagnostics(results, diagnostics, extremes, label: str) -> None:
    col_a, col_b = st.columns(2)
    with col_a:
        st.plotly_chart(
            residual_plot(diagnostics.fitted, diagnostics.residuals, title=f"{label}: residuals vs fitted"),
            use_container_width=True,
        )
    with col_b:
        st.plotly_chart(
            qq_plot(qq_points(diagnostics.standardized_residuals), title=f"{label}: normal Q-Q"),
            use_container_width=True,
        )

    col_c, col_d = st.columns(2)
    with col_c:
        st.plotly_chart(
            leverage_plot(diagnostics, cutoff=leverage_cutoff(results)),
            use_container_width=True,
        )
    with col_d:
        st.plotly_chart(residual_histogram(diagnostics.residuals), use_container_width=True)

    st.markdown(
        f"Correlation of |residual| with fitted value: "
        f"**{residual_fitted_correlation(results):.3f}**"
    )
    st.markdown("**Extreme observations (largest |standardized residual| and leverage)**")
    st.dataframe(extremes)
    st.plotly_chart(cooks_distance_bar(diagnostics.cooks_distance, top_n=15), use_container_width=True)


# ============================================================
# Streamlit UI
# ============================================================

st.set_page_config(page_title="Auto MPG Regression Report", layout="wide")
st.title("Fuel Efficiency of 1970s-80s Cars – Linear Regression Report (NumPy OLS)")

st.markdown(
    """
The report loads the Auto MPG dataset, fits a full OLS model for `mpg`,
chooses a response transformation from the Box-Cox curve, reduces
collinearity (VIF elimination and stepwise AIC), fits a cross-validated
LASSO and finishes with an interaction model and a variance-weighted refit.

Each modelling decision is set in the sidebar and shown next to the
evidence it rests on.
"""
)

# --- Sidebar: data and decisions ---
st.sidebar.header("Data")
source = st.sidebar.text_input("Dataset URL or path", value=AUTO_MPG_URL)
horsepower_policy = st.sidebar.selectbox(
    "Rows with missing horsepower ('?')",
    HORSEPOWER_POLICIES,
    help="keep: leave NaN and drop listwise at fit time; drop: remove at load; median: impute",
)

st.sidebar.header("Decisions")
response_transform = st.sidebar.radio(
    "Response transformation",
    ["log", "none", "box-cox"],
    help="Read the Box-Cox curve in the Transformation tab before changing this.",
)
box_cox_lambda = None
if response_transform == "box-cox":
    box_cox_lambda = st.sidebar.number_input("Box-Cox λ", value=-0.5, step=0.1)

reduction = st.sidebar.radio("Reduced model", ["stepwise", "vif"], format_func=lambda s: {
    "stepwise": "Stepwise AIC",
    "vif": "Manual VIF elimination",
}[s])
vif_threshold = st.sidebar.slider("VIF threshold", min_value=2.0, max_value=10.0, value=VIF_THRESHOLD, step=0.5)
lasso_rule = st.sidebar.radio("LASSO penalty", ["min", "1se"], format_func=lambda s: {
    "min": "Minimum CV error",
    "1se": "One-standard-error rule",
}[s])
cv_folds = st.sidebar.slider("CV folds", min_value=3, max_value=20, value=CV_FOLDS)
interaction_terms = st.sidebar.multiselect(
    "Interact with origin",
    CONTINUOUS_COLUMNS,
    default=INTERACTION_DEFAULTS,
)
estimate_power = st.sidebar.checkbox("Estimate variance power", value=True)
variance_power = None
if not estimate_power:
    variance_power = st.sidebar.number_input("Variance power", value=2.0, step=0.25)

# --- Load ---
try:
    with st.spinner("Loading dataset..."):
        df = cached_load(source, horsepower_policy)
except SchemaError as exc:
    st.error(f"Dataset layout is not as expected: {exc}")
    st.stop()
except (OSError, ValueError) as exc:
    st.error(f"Could not load dataset: {exc}")
    st.stop()

st.success(f"Dataset loaded – {df.shape[0]} rows, {df.shape[1]} columns")

decisions = AnalysisDecisions(
    response_transform=response_transform,
    box_cox_lambda=box_cox_lambda,
    reduction=reduction,
    vif_threshold=vif_threshold,
    lasso_rule=lasso_rule,
    cv_folds=cv_folds,
    interaction_terms=interaction_terms,
    variance_power=variance_power,
)

with st.spinner("Fitting models..."):
    report = run_analysis(df, decisions)

tab_data, tab_full, tab_transform, tab_collinear, tab_lasso, tab_ext = st.tabs(
    [
        "Data overview",
        "Full model",
        "Transformation",
        "Collinearity",
        "LASSO",
        "Extensions",
    ]
)

# ---------------- Data overview ----------------
with tab_data:
    st.subheader("Preview")
    st.dataframe(df.head(50))

    st.subheader("Summary statistics")
    st.dataframe(report.summary)

    missing_hp = int(df["horsepower"].isna().sum())
    if missing_hp:
        st.info(f"{missing_hp} row(s) have no horsepower and are left out of every model fit.")

    st.subheader("Cars per origin")
    st.dataframe(category_counts(df))

    st.subheader("Correlation with mpg")
    st.dataframe(strongest_correlations(df).to_frame("r"))

    st.plotly_chart(correlation_heatmap(report.correlations), use_container_width=True)
    st.plotly_chart(
        scatter_matrix(df, [TARGET_COLUMN] + CONTINUOUS_COLUMNS),
        use_container_width=True,
    )

    col_a, col_b = st.columns(2)
    with col_a:
        st.plotly_chart(
            scatter_with_trend(df, "weight", TARGET_COLUMN, color="origin", title="Weight vs mpg"),
            use_container_width=True,
        )
    with col_b:
        st.plotly_chart(boxplot_by_origin(df, TARGET_COLUMN), use_container_width=True)

# ---------------- Full model ----------------
with tab_full:
    st.subheader("OLS on all predictors")
    show_model(report.full, "Full model")

    st.subheader("Variance inflation factors")
    st.plotly_chart(vif_bar(report.full_vif, threshold=vif_threshold), use_container_width=True)
    col_v, col_g = st.columns(2)
    with col_v:
        st.dataframe(report.full_vif.to_frame())
    with col_g:
        st.dataframe(report.full_gvif.style.format({"gvif": "{:.2f}", "df": "{:.0f}", "gvif_adj": "{:.2f}"}))
        st.caption("Per-term GVIF; compare GVIF^(1/(2 df)) with the square root of the VIF threshold.")

    st.subheader("Residual diagnostics")
    show_diagnostics(report.full, report.full_diagnostics, report.full_extremes, "Full model")

# ---------------- Transformation ----------------
with tab_transform:
    bc = report.box_cox
    st.subheader("Box-Cox search")
    st.plotly_chart(box_cox_curve(bc), use_container_width=True)
    st.markdown(
        f"Optimal λ = **{bc.optimal_lambda:.2f}**, 95% interval "
        f"[{bc.ci_lower:.2f}, {bc.ci_upper:.2f}], nearest round value "
        f"**{bc.suggested_lambda:g}** → suggestion: **{report.suggested_transform}**"
    )
    if not report.transform_matches_suggestion:
        st.warning(
            f"The chosen transformation ({response_transform}) differs from the "
            f"Box-Cox suggestion ({report.suggested_transform})."
        )

    st.subheader(f"Refit with response `{report.response}`")
    show_model(report.transformed, "Transformed model")
    show_diagnostics(
        report.transformed,
        report.transformed_diagnostics,
        report.transformed_extremes,
        "Transformed model",
    )

    st.markdown(
        f"|residual|–fitted correlation: full model "
        f"**{residual_fitted_correlation(report.full):.3f}**, transformed model "
        f"**{residual_fitted_correlation(report.transformed):.3f}**"
    )

# ---------------- Collinearity ----------------
with tab_collinear:
    elim = report.elimination
    step = report.stepwise

    st.subheader("Manual VIF elimination")
    if elim.dropped:
        st.dataframe(elim.steps)
    else:
        st.info("No predictor exceeded the VIF threshold.")
    st.plotly_chart(
        vif_bar(elim.final_vif, threshold=elim.threshold, title="VIF after elimination"),
        use_container_width=True,
    )
    show_model(elim.results, "VIF-reduced model")

    st.subheader("Stepwise AIC (both directions)")
    st.plotly_chart(stepwise_aic_plot(step.history), use_container_width=True)
    st.dataframe(step.history)
    st.markdown(f"Selected terms: **{', '.join(step.selected_terms)}**")
    if step.collinear:
        st.warning(
            f"The stepwise model keeps predictors with VIF above {vif_threshold:g}: "
            f"{', '.join(step.collinear)}"
        )
    show_model(step.results, "Stepwise model")
    st.plotly_chart(
        vif_bar(step.vif, threshold=vif_threshold, title="VIF of the stepwise model"),
        use_container_width=True,
    )

    st.subheader("Comparison")
    st.dataframe(
        pd.concat(
            [
                fit_statistics(report.transformed, "transformed full"),
                fit_statistics(elim.results, "VIF elimination"),
                fit_statistics(step.results, "stepwise AIC"),
            ]
        )
    )
    st.caption(f"Carried forward: {'stepwise AIC' if reduction == 'stepwise' else 'VIF elimination'}")
    if report.reduced_collinear:
        st.warning(
            "The carried-forward model is not free of collinearity: "
            f"{', '.join(report.reduced_collinear)}"
        )
    else:
        st.success(f"Every predictor of the carried-forward model has VIF at or below {vif_threshold:g}.")

# ---------------- LASSO ----------------
with tab_lasso:
    lasso = report.lasso
    st.subheader("Cross-validated LASSO")
    col_a, col_b = st.columns(2)
    with col_a:
        st.plotly_chart(lasso_cv_plot(lasso), use_container_width=True)
    with col_b:
        st.plotly_chart(lasso_path_plot(report.lasso_path, lasso.alpha), use_container_width=True)

    st.markdown(
        f"Selected λ = **{lasso.alpha:.5f}** ({lasso.rule} rule, {lasso.n_folds} folds), "
        f"R² = **{lasso.r2:.3f}** (stepwise R² = {report.stepwise.results.r2:.3f})"
    )
    st.dataframe(
        pd.concat(
            [lasso.coefficients.rename("coef"), lasso.std_coefficients.rename("std_coef")],
            axis=1,
        )
    )
    if lasso.zero_coefficients:
        st.info(f"Shrunk to exactly zero: {', '.join(lasso.zero_coefficients)}")
    else:
        st.info("No coefficient is exactly zero at this penalty.")

# ---------------- Extensions ----------------
with tab_ext:
    st.subheader("Interactions with origin")
    if report.interaction is None:
        st.info("Select at least one predictor to interact with origin.")
    else:
        inter = report.interaction
        labels = ", ".join(f"{k} = {v}" for k, v in ORIGIN_LABELS.items())
        st.caption(f"Origin codes: {labels}; American is the reference level.")
        st.dataframe(inter.interaction_table.style.format(COEF_FORMAT))
        st.markdown(
            f"Partial F test against the main-effects model: F = **{inter.f_stat:.2f}**, "
            f"p = **{inter.f_p_value:.3g}**"
        )
        if inter.significant:
            st.markdown(f"Significant at {inter.alpha}: {', '.join(inter.significant)}")

    st.subheader("Variance-weighted refit of untransformed mpg (IRLS)")
    irls = report.irls
    st.markdown(
        f"Variance power **{irls.power:.2f}** "
        f"({'estimated' if irls.power_estimated else 'fixed'}), "
        f"{irls.iterations} iteration(s), "
        f"{'converged' if irls.converged else 'did not converge'}"
    )
    if not irls.converged:
        st.warning("IRLS did not converge; treat these estimates with caution.")
    show_model(irls.results, "IRLS model")
    st.plotly_chart(
        residual_plot(irls.results.y_hat, irls.pearson_residuals, title="Pearson residuals vs fitted"),
        use_container_width=True,
    )
