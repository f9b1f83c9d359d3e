"""
survcompare: survival model comparison for two-group time-to-event data.

Fits Kaplan-Meier, Cox proportional hazards, proportional odds and PHPH
mixture cure models to the same censored dataset and projects each
group's fitted survival curve over the shared event-time grid.

Submodules:
    survival: Estimators, fitted-model solutions and curve projection
    core: Result envelope, exceptions, validation, Newton-Raphson
"""

__version__ = "0.1.0"

from survcompare import core
from survcompare import survival
from survcompare.survival import (
    SurvivalDesign,
    compare_models,
    coxph,
    cure_phph,
    kaplan_meier,
    km_curve,
    prop_odds,
    survdiff,
    survival_curve,
)

__all__ = [
    "__version__",
    "core",
    "survival",
    "SurvivalDesign",
    "compare_models",
    "coxph",
    "cure_phph",
    "kaplan_meier",
    "km_curve",
    "prop_odds",
    "survdiff",
    "survival_curve",
]
