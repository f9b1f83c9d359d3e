"""
Public API for survival analysis.

    kaplan_meier(time, event) → KMSolution
    km_curve(design, group) → SurvivalCurve
    survdiff(time, event, group) → LogRankSolution
    coxph(time, event, X) → CoxSolution
    prop_odds(time, event, X) → POSolution
    cure_phph(time, event, X) → CureSolution
    survival_curve(fit, x) → SurvivalCurve
    compare_models(design) → ModelComparison

Each fitting function validates inputs, creates a SurvivalDesign, runs the
fitter and wraps the Result in a Solution. Iterative fits either converge
or raise ConvergenceError; there is no unconverged result.
"""

from __future__ import annotations

import dataclasses
import warnings
from typing import Literal, Sequence

import numpy as np

from survcompare.core.compute.optimization import (
    COX_CONTROL,
    DEFAULT_CONTROL,
    NewtonControl,
)
from survcompare.core.compute.timing import Timer
from survcompare.core.exceptions import ValidationError
from survcompare.core.result import Result
from survcompare.survival._common import SurvivalCurve
from survcompare.survival._compare import MODELS, ModelComparison
from survcompare.survival._cox import cox_fit
from survcompare.survival._cure import cure_fit
from survcompare.survival._km import group_mask, kaplan_meier_fit, km_curve
from survcompare.survival._logrank import logrank_test
from survcompare.survival._po import prop_odds_fit
from survcompare.survival._project import project
from survcompare.survival.design import SurvivalDesign
from survcompare.survival.solution import (
    CoxSolution,
    CureSolution,
    KMSolution,
    LogRankSolution,
    POSolution,
)


def kaplan_meier(
    time,
    event,
    *,
    conf_level: float = 0.95,
    conf_type: Literal["log", "plain", "log-log"] = "log",
) -> KMSolution:
    """Kaplan-Meier survival curve estimation.

    Matches R's survival::survfit(Surv(time, event) ~ 1).

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    conf_level : float
        Confidence level for CI (default 0.95).
    conf_type : str
        CI transformation: "log" (R default), "plain", "log-log".

    Returns
    -------
    KMSolution
    """
    design = SurvivalDesign.for_survival(time, event)

    if conf_level <= 0 or conf_level >= 1:
        raise ValidationError(
            f"conf_level must be in (0, 1), got {conf_level}"
        )

    if conf_type not in ("log", "plain", "log-log"):
        raise ValidationError(
            f"conf_type must be 'log', 'plain', or 'log-log', "
            f"got '{conf_type}'"
        )

    timer = Timer()
    timer.start()

    params = kaplan_meier_fit(
        design.time, design.event,
        conf_level=conf_level,
        conf_type=conf_type,
    )

    timer.stop()

    warnings_list = []
    if params.n_events_total == 0:
        warnings_list.append("No events observed: survival is 1 throughout")

    result = Result(
        params=params,
        info={"method": "Kaplan-Meier"},
        timing=timer.result(),
        backend_name="cpu_km",
        warnings=tuple(warnings_list),
    )

    return KMSolution(_result=result)


def survdiff(
    time,
    event,
    group,
    *,
    rho: float = 0.0,
) -> LogRankSolution:
    """Log-rank test (and G-rho family).

    Matches R's survival::survdiff().

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    group : array-like
        Group labels (e.g. treated vs untreated).
    rho : float
        G-rho weight parameter. rho=0 (default) gives the standard
        log-rank test. rho=1 gives Peto & Peto / Gehan-Wilcoxon.

    Returns
    -------
    LogRankSolution
    """
    design = SurvivalDesign.for_survival(time, event)
    group = np.asarray(group).ravel()

    if len(group) != design.n:
        raise ValidationError(
            f"group must have {design.n} elements to match time, "
            f"got {len(group)}"
        )
    if rho < 0:
        raise ValidationError(f"rho must be non-negative, got {rho}")

    timer = Timer()
    timer.start()

    params = logrank_test(
        design.time, design.event, group,
        rho=rho,
    )

    timer.stop()

    result = Result(
        params=params,
        info={"method": "Log-rank test", "rho": rho},
        timing=timer.result(),
        backend_name="cpu_logrank",
        warnings=(),
    )

    return LogRankSolution(_result=result)


def coxph(
    time,
    event,
    X,
    *,
    names: Sequence[str] | None = None,
    ties: Literal["breslow", "efron"] = "breslow",
    tol: float | None = None,
    max_iter: int | None = None,
    control: NewtonControl | None = None,
) -> CoxSolution:
    """Cox proportional hazards model.

    Matches R's survival::coxph(ties="breslow") by default.

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    X : array-like
        Covariate matrix (n, p), or a 1D group indicator. No intercept.
    names : sequence of str, optional
        Covariate names.
    ties : str
        Method for handling tied event times: "breslow" (default) or "efron".
    tol : float, optional
        Score tolerance; shortcut for ``control.score_tol``.
    max_iter : int, optional
        Iteration budget; shortcut for ``control.max_iter``.
    control : NewtonControl, optional
        Newton-Raphson settings. Defaults to COX_CONTROL.

    Returns
    -------
    CoxSolution

    Raises
    ------
    DegenerateDataError
        If there are no events.
    ConvergenceError
        If Newton-Raphson does not converge.
    """
    design = _regression_design(time, event, X, names, "coxph")

    if ties not in ("efron", "breslow"):
        raise ValidationError(
            f"ties must be 'efron' or 'breslow', got '{ties}'"
        )

    control = _resolve_control(control, COX_CONTROL, tol=tol, max_iter=max_iter)

    timer = Timer()
    timer.start()

    with timer.section('newton_raphson'):
        params = cox_fit(
            design.time, design.event, design.X, design.names,
            ties=ties,
            control=control,
        )

    timer.stop()

    result = Result(
        params=params,
        info={
            "method": "Cox PH",
            "ties": ties,
            "converged": True,
            "n_iter": params.n_iter,
        },
        timing=timer.result(),
        backend_name="cpu_cox",
        warnings=(),
    )

    return CoxSolution(_result=result)


def prop_odds(
    time,
    event,
    X,
    *,
    names: Sequence[str] | None = None,
    control: NewtonControl | None = None,
) -> POSolution:
    """Proportional odds model with a non-parametric step baseline.

    The odds of surviving past t are ``exp(x @ coef) / A(t)`` with
    ``A(t) = -log S0(t)``; baseline and coefficients are estimated jointly
    by full maximum likelihood.

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    X : array-like
        Covariate matrix (n, p), or a 1D group indicator. No intercept.
    names : sequence of str, optional
        Covariate names.
    control : NewtonControl, optional
        Newton-Raphson settings. Defaults to DEFAULT_CONTROL.

    Returns
    -------
    POSolution

    Raises
    ------
    DegenerateDataError
        If there are no events.
    ConvergenceError
        If Newton-Raphson does not converge (e.g. a group with no events).
    """
    design = _regression_design(time, event, X, names, "prop_odds")
    control = _resolve_control(control, DEFAULT_CONTROL)

    timer = Timer()
    timer.start()

    with timer.section('newton_raphson'):
        params = prop_odds_fit(
            design.time, design.event, design.X, design.names,
            control=control,
        )

    timer.stop()

    result = Result(
        params=params,
        info={
            "method": "Proportional odds",
            "converged": True,
            "n_iter": params.n_iter,
            "n_baseline_jumps": len(params.event_times),
        },
        timing=timer.result(),
        backend_name="cpu_po",
        warnings=(),
    )

    return POSolution(_result=result)


def cure_phph(
    time,
    event,
    X,
    X_long=None,
    *,
    names: Sequence[str] | None = None,
    long_names: Sequence[str] | None = None,
    control: NewtonControl | None = None,
) -> CureSolution:
    """PHPH mixture cure model.

    Population survival ``exp(-theta (1 - S_b(t) ** eta))`` with
    ``theta = exp(intercept + X_long @ long_term)`` (cure fraction
    ``exp(-theta)``) and ``eta = exp(X @ short_term)``.

    Parameters
    ----------
    time : array-like
        Time to event or censoring.
    event : array-like
        Event indicator (1=event, 0=censored).
    X : array-like
        Short-term covariates (n, p_short), or a 1D group indicator.
    X_long : array-like, optional
        Long-term covariates. Defaults to ``X``.
    names, long_names : sequence of str, optional
        Covariate names; ``long_names`` defaults to ``names`` when
        ``X_long`` is not given.
    control : NewtonControl, optional
        Newton-Raphson settings. Defaults to DEFAULT_CONTROL.

    Returns
    -------
    CureSolution

    Raises
    ------
    DegenerateDataError
        If there are no events.
    ConvergenceError
        If Newton-Raphson does not converge.
    """
    design = _regression_design(time, event, X, names, "cure_phph")

    if X_long is None:
        if long_names is not None:
            raise ValidationError("long_names given without X_long")
        long_design = design
    else:
        long_design = _regression_design(time, event, X_long, long_names, "cure_phph")

    control = _resolve_control(control, DEFAULT_CONTROL)

    warnings_list = []
    last_event = np.max(design.time[design.event == 1]) if design.n_events else None
    if last_event is not None and not np.any(design.time > last_event):
        msg = (
            "No follow-up extends beyond the last event time; "
            "the cure fraction is not identified by the data"
        )
        warnings.warn(msg, RuntimeWarning, stacklevel=2)
        warnings_list.append(msg)

    timer = Timer()
    timer.start()

    with timer.section('newton_raphson'):
        params = cure_fit(
            design.time, design.event, design.X, long_design.X,
            design.names, long_design.names,
            control=control,
        )

    timer.stop()

    result = Result(
        params=params,
        info={
            "method": "PHPH cure",
            "converged": True,
            "n_iter": params.n_iter,
            "n_baseline_jumps": len(params.event_times) - 1,
        },
        timing=timer.result(),
        backend_name="cpu_cure",
        warnings=tuple(warnings_list),
    )

    return CureSolution(_result=result)


def survival_curve(
    fit,
    x,
    *,
    x_long=None,
    group: str | None = None,
) -> SurvivalCurve:
    """Project a fitted regression model to a group survival curve.

    Parameters
    ----------
    fit : CoxSolution, POSolution, CureSolution or their params
        Fitted model.
    x : float or array-like
        Group value or covariate vector.
    x_long : float or array-like, optional
        Long-term covariates (cure model only). Defaults to ``x``.
    group : str, optional
        Label for the curve.

    Returns
    -------
    SurvivalCurve
    """
    params = getattr(fit, "params", fit)
    return project(params, x, x_long=x_long, group=group)


def compare_models(
    design: SurvivalDesign,
    *,
    column: int | str = 0,
    groups: Sequence[float] = (0.0, 1.0),
    models: Sequence[str] = MODELS,
    ties: Literal["breslow", "efron"] = "breslow",
    rho: float = 0.0,
    control: NewtonControl | None = None,
) -> ModelComparison:
    """Fit several survival models and project each group's curve.

    Every regression model is fitted on the single group covariate
    ``column``; all curves share the dataset's event-time grid.

    Parameters
    ----------
    design : SurvivalDesign
        Dataset with a group covariate.
    column : int or str
        Group covariate, by position or name.
    groups : sequence of float
        Group values to project (default treated 1 / untreated 0).
    models : sequence of str
        Any of "km", "ph", "po", "cure".
    ties : str
        Tie handling for the Cox fit.
    rho : float
        G-rho weight of the log-rank test across ``groups``.
    control : NewtonControl, optional
        Newton-Raphson settings for PO and cure (Cox keeps COX_CONTROL
        unless given).

    Returns
    -------
    ModelComparison

    Raises
    ------
    EmptyGroupError
        If a group has no observations.
    DegenerateDataError
        If there are no events.
    ConvergenceError
        If any regression fit fails.
    """
    unknown = [m for m in models if m not in MODELS]
    if unknown:
        raise ValidationError(
            f"unknown model(s) {unknown}; choose from {list(MODELS)}"
        )

    g = design.covariate(column)
    name = column if isinstance(column, str) else design.names[column]
    groups = tuple(float(v) for v in groups)
    compared = np.zeros(design.n, dtype=bool)
    for v in groups:
        compared |= group_mask(design, v, column)

    logrank = None
    if len(set(groups)) > 1:
        logrank = survdiff(design.time[compared], design.event[compared],
                           g[compared], rho=rho)

    fitters = {
        "ph": lambda: coxph(design.time, design.event, g, names=[name],
                            ties=ties, control=control),
        "po": lambda: prop_odds(design.time, design.event, g, names=[name],
                                control=control),
        "cure": lambda: cure_phph(design.time, design.event, g, names=[name],
                                  control=control),
    }

    curves: dict[str, dict[float, SurvivalCurve]] = {}
    fits = {}
    for model in models:
        if model == "km":
            curves["km"] = {
                v: km_curve(design, v, column=column) for v in groups
            }
            continue
        fit = fitters[model]()
        fits[model] = fit
        curves[model] = {v: fit.curve(v) for v in groups}

    return ModelComparison(groups=groups, curves=curves, fits=fits,
                           logrank=logrank)


def _regression_design(time, event, X, names, caller: str) -> SurvivalDesign:
    if X is None:
        raise ValidationError(f"X (covariates) is required for {caller}()")
    design = SurvivalDesign.for_survival(time, event, X, names=names)
    if design.p == 0:
        raise ValidationError(f"X must have at least one column for {caller}()")
    return design


def _resolve_control(
    control: NewtonControl | None,
    default: NewtonControl,
    *,
    tol: float | None = None,
    max_iter: int | None = None,
) -> NewtonControl:
    control = default if control is None else control
    overrides = {}
    if tol is not None:
        overrides["score_tol"] = tol
    if max_iter is not None:
        overrides["max_iter"] = max_iter
    return dataclasses.replace(control, **overrides) if overrides else control
