"""
Group curve projection: turn a fitted model into a survival step curve.

Dispatch is on the payload's ``model`` tag:

    "ph"    S(t | x) = exp(-H0(t) exp(x @ β))
    "po"    S(t | x) = exp(x @ β) / (exp(x @ β) - log S0(t))
    "cure"  S(t | x) = exp(-θ (1 - S_b(t) ** η))

For the cure model θ = exp(intercept + x_long @ β_long) and
η = exp(x @ β_short); at x = 0 this is exp(-exp(intercept) (1 - S_b(t))).

Every curve starts at (0, 1) and then steps at each event-time grid time.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from survcompare.core.exceptions import DimensionError, ValidationError
from survcompare.survival._common import (
    CoxParams,
    CureParams,
    POParams,
    SurvivalCurve,
)


def project(
    params: CoxParams | POParams | CureParams,
    x,
    *,
    x_long=None,
    group: str | None = None,
) -> SurvivalCurve:
    """Survival curve of a fitted model for one covariate profile.

    Parameters
    ----------
    params : CoxParams, POParams or CureParams
        Fitted model payload.
    x : float or array-like
        Group value (single covariate) or covariate vector.
    x_long : float or array-like, optional
        Long-term covariates for the cure model. Defaults to ``x``.
    group : str, optional
        Group label; defaults to ``"group=<x>"``.

    Returns
    -------
    SurvivalCurve
    """
    model = getattr(params, "model", None)

    if model == "ph":
        x = _profile(x, len(params.coefficients), "x")
        survival = _ph_survival(params, x)
    elif model == "po":
        x = _profile(x, len(params.coefficients), "x")
        survival = _po_survival(params, x)
    elif model == "cure":
        x = _profile(x, len(params.short_names), "x")
        x_long = x if x_long is None else x_long
        x_long = _profile(x_long, len(params.long_names), "x_long")
        survival = _cure_survival(params, x, x_long)
    elif model == "km":
        raise ValidationError(
            "Kaplan-Meier fits have no covariates to project; "
            "use km_curve() for group curves"
        )
    else:
        raise ValidationError(f"Unknown fitted model type: {type(params).__name__}")

    if group is None:
        group = _default_label(x)

    return SurvivalCurve(
        time=np.concatenate([[0.0], params.event_times]),
        survival=np.concatenate([[1.0], survival]),
        group=group,
        model=model,
    )


def _ph_survival(params: CoxParams, x: NDArray) -> NDArray:
    return np.exp(-params.baseline_cumhaz * np.exp(x @ params.coefficients))


def _po_survival(params: POParams, x: NDArray) -> NDArray:
    odds = np.exp(x @ params.coefficients)
    return odds / (odds - np.log(params.baseline_survival))


def cure_fraction(params: CureParams, x_long) -> float:
    """Long-run survival exp(-θ) of the cure model for covariates ``x_long``.

    Raises
    ------
    DimensionError
        If ``x_long`` does not have one value per long-term covariate.
    """
    x_long = _profile(x_long, len(params.long_names), "x_long")
    return float(np.exp(-_theta(params, x_long)))


def _theta(params: CureParams, x_long: NDArray) -> NDArray:
    return np.exp(params.cure_intercept + x_long @ params.long_term)


def _cure_survival(params: CureParams, x: NDArray, x_long: NDArray) -> NDArray:
    theta = _theta(params, x_long)
    eta = np.exp(x @ params.short_term)
    return np.exp(-theta * (1.0 - params.baseline_survival ** eta))


def _profile(x, p: int, name: str) -> NDArray:
    x = np.atleast_1d(np.asarray(x, dtype=np.float64))
    if x.ndim != 1 or len(x) != p:
        raise DimensionError(
            f"{name} must have {p} covariate value(s), got shape {x.shape}"
        )
    if not np.all(np.isfinite(x)):
        raise ValidationError(f"{name} contains non-finite values")
    return x


def _default_label(x: NDArray) -> str:
    if len(x) == 1:
        return f"group={x[0]:g}"
    return "x=(" + ", ".join(f"{v:g}" for v in x) + ")"
