"""
pipeline.py

Runs the whole report in order: explore, full model, Box-Cox, transformed
refit, collinearity reduction, LASSO, extensions.

Every judgement call is a field of AnalysisDecisions so the report shows
what was decided next to the evidence for it.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from constants import (
    CONTINUOUS_COLUMNS,
    CV_FOLDS,
    INTERACTION_DEFAULTS,
    NOMINAL_COLUMNS,
    RANDOM_STATE,
    TARGET_COLUMN,
    TOP_N_EXTREME,
    VIF_THRESHOLD,
)
from exploration import correlation_matrix, summary_statistics
from extensions import IRLSResult, InteractionResult, fit_interaction_model, fit_power_variance_irls
from modelling import (
    ModelDiagnostics,
    RegressionResults,
    add_fitted_column,
    fit_ols,
    model_diagnostics,
    prepare_modelling_data,
    rank_extreme_observations,
)
from regularisation import LassoResult, fit_lasso_cv, lasso_path_coefficients
from selection import (
    EliminationResult,
    StepwiseResult,
    collinear_predictors,
    eliminate_by_vif,
    generalised_vif,
    stepwise_aic,
    term_columns,
    variance_inflation_factors,
)
from transformations import (
    RESPONSE_TRANSFORMS,
    BoxCoxResult,
    apply_response_transform,
    box_cox_search,
    inverse_response_transform,
    suggest_transformation,
)

logger = logging.getLogger(__name__)

REDUCTION_STRATEGIES = ("stepwise", "vif")


@dataclass
class AnalysisDecisions:
    """
    Analyst choices for one run of the report.

    response_transform : 'log', 'none' or 'box-cox'
        Applied after reading the Box-Cox curve. The report flags it when
        it disagrees with the curve's suggestion.
    box_cox_lambda : float, optional
        λ for 'box-cox'; the suggested round λ when None.
    reduction : 'stepwise' or 'vif'
        Which reduced model carries forward as the selected one.
    variance_power : float, optional
        Power for the IRLS refit; estimated from residuals when None.
    """

    response_transform: str = "log"
    box_cox_lambda: Optional[float] = None
    reduction: str = "stepwise"
    vif_threshold: float = VIF_THRESHOLD
    lasso_rule: str = "min"
    cv_folds: int = CV_FOLDS
    random_state: Optional[int] = RANDOM_STATE
    interaction_terms: List[str] = field(default_factory=lambda: list(INTERACTION_DEFAULTS))
    variance_power: Optional[float] = None
    top_n_extreme: int = TOP_N_EXTREME

    def validate(self) -> None:
        if self.response_transform not in RESPONSE_TRANSFORMS:
            raise ValueError(
                f"Unknown response transform {self.response_transform!r}; expected one of {RESPONSE_TRANSFORMS}"
            )
        if self.reduction not in REDUCTION_STRATEGIES:
            raise ValueError(
                f"Unknown reduction strategy {self.reduction!r}; expected one of {REDUCTION_STRATEGIES}"
            )
        if self.vif_threshold <= 1:
            raise ValueError("VIF threshold must be greater than 1")


@dataclass(frozen=True)
class AnalysisReport:
    data: pd.DataFrame
    decisions: AnalysisDecisions
    summary: pd.DataFrame
    correlations: pd.DataFrame
    full: RegressionResults
    full_diagnostics: ModelDiagnostics
    full_extremes: pd.DataFrame
    full_vif: pd.Series
    full_gvif: pd.DataFrame
    box_cox: BoxCoxResult
    suggested_transform: str
    response: str
    transformed: RegressionResults
    transformed_diagnostics: ModelDiagnostics
    transformed_extremes: pd.DataFrame
    elimination: EliminationResult
    stepwise: StepwiseResult
    lasso: LassoResult
    lasso_path: pd.DataFrame
    interaction: Optional[InteractionResult]
    irls: IRLSResult

    @property
    def reduced(self) -> RegressionResults:
        if self.decisions.reduction == "vif":
            return self.elimination.results
        return self.stepwise.results

    @property
    def reduced_collinear(self) -> List[str]:
        """Predictors of the carried-forward model with VIF over the threshold."""
        if self.decisions.reduction == "vif":
            return collinear_predictors(self.elimination.final_vif, self.decisions.vif_threshold)
        return self.stepwise.collinear

    @property
    def transform_matches_suggestion(self) -> bool:
        return self.decisions.response_transform == self.suggested_transform


def run_analysis(
    df: pd.DataFrame,
    decisions: Optional[AnalysisDecisions] = None,
    continuous_vars: Optional[List[str]] = None,
    categorical_vars: Optional[List[str]] = None,
) -> AnalysisReport:
    decisions = decisions or AnalysisDecisions()
    decisions.validate()
    continuous_vars = list(continuous_vars or CONTINUOUS_COLUMNS)
    categorical_vars = list(categorical_vars or NOMINAL_COLUMNS)

    # 1. Exploration
    summary = summary_statistics(df)
    correlations = correlation_matrix(df)

    # 2. Full model on the raw response
    full = fit_ols(df, TARGET_COLUMN, continuous_vars, categorical_vars)
    full_diag = model_diagnostics(full)
    full_extremes = rank_extreme_observations(full_diag, top_n=decisions.top_n_extreme)
    full_vif = variance_inflation_factors(full.X)
    full_gvif = generalised_vif(full.X, term_columns(full.X, continuous_vars, categorical_vars))
    data = add_fitted_column(df, full, "full")

    # 3. Box-Cox and the transformed refit
    X, y = prepare_modelling_data(df, TARGET_COLUMN, continuous_vars, categorical_vars)
    box_cox = box_cox_search(y, X)
    suggestion = suggest_transformation(box_cox)
    lam = decisions.box_cox_lambda if decisions.box_cox_lambda is not None else box_cox.suggested_lambda
    if decisions.response_transform != suggestion:
        logger.warning(
            "Response transform %r differs from the Box-Cox suggestion %r",
            decisions.response_transform, suggestion,
        )

    data, response = apply_response_transform(data, decisions.response_transform, lam=lam)
    transformed = fit_ols(data, response, continuous_vars, categorical_vars)
    transformed_diag = model_diagnostics(transformed)
    transformed_extremes = rank_extreme_observations(transformed_diag, top_n=decisions.top_n_extreme)

    # 4. Collinearity reduction, both strategies
    elimination = eliminate_by_vif(
        data, response, continuous_vars, categorical_vars, threshold=decisions.vif_threshold
    )
    stepwise = stepwise_aic(
        data, response, continuous_vars, categorical_vars, threshold=decisions.vif_threshold
    )
    inverse = inverse_response_transform(decisions.response_transform, lam)
    data = add_fitted_column(data, stepwise.results, "stepwise", inverse=inverse)

    # 5. LASSO on the transformed model's design
    lasso = fit_lasso_cv(
        transformed.X,
        transformed.y,
        n_folds=decisions.cv_folds,
        random_state=decisions.random_state,
        rule=decisions.lasso_rule,
    )
    path = lasso_path_coefficients(transformed.X, transformed.y, alphas=lasso.alphas)

    # 6. Extensions
    interaction = None
    if decisions.interaction_terms and categorical_vars:
        interaction = fit_interaction_model(
            data, response, continuous_vars, categorical_vars[0], decisions.interaction_terms
        )
    irls = fit_power_variance_irls(
        data, TARGET_COLUMN, continuous_vars, categorical_vars, power=decisions.variance_power
    )

    return AnalysisReport(
        data=data,
        decisions=decisions,
        summary=summary,
        correlations=correlations,
        full=full,
        full_diagnostics=full_diag,
        full_extremes=full_extremes,
        full_vif=full_vif,
        full_gvif=full_gvif,
        box_cox=box_cox,
        suggested_transform=suggestion,
        response=response,
        transformed=transformed,
        transformed_diagnostics=transformed_diag,
        transformed_extremes=transformed_extremes,
        elimination=elimination,
        stepwise=stepwise,
        lasso=lasso,
        lasso_path=path,
        interaction=interaction,
        irls=irls,
    )
