"""
Survival analysis.

Public API:
    kaplan_meier(time, event) -> KMSolution
    km_curve(design, group) -> SurvivalCurve
    survdiff(time, event, group) -> LogRankSolution
    coxph(time, event, X) -> CoxSolution
    prop_odds(time, event, X) -> POSolution
    cure_phph(time, event, X) -> CureSolution
    survival_curve(fit, x) -> SurvivalCurve
    compare_models(design) -> ModelComparison
"""

from survcompare.survival.design import SurvivalDesign
from survcompare.survival._common import Coefficient, SurvivalCurve
from survcompare.survival._compare import ModelComparison
from survcompare.survival.solvers import (
    compare_models,
    coxph,
    cure_phph,
    kaplan_meier,
    km_curve,
    prop_odds,
    survdiff,
    survival_curve,
)
from survcompare.survival.solution import (
    CoxSolution,
    CureSolution,
    KMSolution,
    LogRankSolution,
    POSolution,
)

__all__ = [
    "SurvivalDesign",
    "Coefficient",
    "SurvivalCurve",
    "ModelComparison",
    "compare_models",
    "coxph",
    "cure_phph",
    "kaplan_meier",
    "km_curve",
    "prop_odds",
    "survdiff",
    "survival_curve",
    "CoxSolution",
    "CureSolution",
    "KMSolution",
    "LogRankSolution",
    "POSolution",
]
