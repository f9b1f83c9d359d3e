"""
Kaplan-Meier product-limit estimator.

Matches R's survival::survfit(Surv(time, event) ~ 1):

    S(t)      = ∏_{t_j <= t} (1 - d_j / n_j)
    Var(S(t)) = S(t)^2 Σ_{t_j <= t} d_j / (n_j (n_j - d_j))      (Greenwood)

with pointwise intervals on the log (R default), plain or log-log scale.

Group curves (km_curve) are evaluated on the event-time grid of the whole
dataset so that every model's curve shares the same support. Each group is
estimated from its own observations only.

References:
    Kaplan, E. L., & Meier, P. (1958). Nonparametric estimation from
        incomplete observations. JASA, 53(282), 457-481.
    R Core Team. survival::survfit.formula
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from survcompare.core.exceptions import EmptyGroupError
from survcompare.survival._common import KMParams, SurvivalCurve
from survcompare.survival._grid import event_time_grid, step_values
from survcompare.survival.design import SurvivalDesign


class _ProductLimit(NamedTuple):
    time: NDArray        # distinct event times
    n_risk: NDArray      # at risk just before each time (time >= t_j)
    n_events: NDArray
    n_censored: NDArray  # censored in [t_{j-1}, t_j)
    survival: NDArray


def _product_limit(time: NDArray, event: NDArray) -> _ProductLimit:
    is_event = event == 1
    times = np.unique(time[is_event])

    n_risk = len(time) - np.searchsorted(np.sort(time), times, side="left")
    n_events = np.bincount(np.searchsorted(times, time[is_event]),
                           minlength=len(times))
    # A censoring tied with an event time belongs to the following interval,
    # as in R.
    cens_before = np.searchsorted(np.sort(time[~is_event]), times, side="left")
    n_censored = np.diff(cens_before, prepend=0)

    n_risk = n_risk.astype(np.float64)
    n_events = n_events.astype(np.float64)
    return _ProductLimit(
        time=times,
        n_risk=n_risk,
        n_events=n_events,
        n_censored=n_censored.astype(np.float64),
        survival=np.cumprod(1.0 - n_events / n_risk),
    )


def kaplan_meier_fit(
    time: NDArray,
    event: NDArray,
    conf_level: float,
    conf_type: str,
) -> KMParams:
    """Product-limit estimate with Greenwood errors and pointwise intervals.

    With no events the curve is empty (S = 1 throughout).
    """
    pl = _product_limit(time, event)

    # n_j == d_j (everyone at risk fails) adds nothing to the Greenwood sum;
    # S is 0 from there on anyway.
    at_risk_after = pl.n_risk - pl.n_events
    increments = np.divide(
        pl.n_events, pl.n_risk * at_risk_after,
        out=np.zeros_like(pl.n_events), where=at_risk_after > 0,
    )
    se = pl.survival * np.sqrt(np.cumsum(increments))

    z = stats.norm.ppf(0.5 + conf_level / 2.0)
    ci_lower, ci_upper = _confidence_band(pl.survival, se, z, conf_type)

    return KMParams(
        time=pl.time,
        survival=pl.survival,
        n_risk=pl.n_risk,
        n_events=pl.n_events,
        n_censored=pl.n_censored,
        se=se,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        conf_level=conf_level,
        conf_type=conf_type,
        n_observations=len(time),
        n_events_total=int(np.sum(event)),
    )


def group_mask(design: SurvivalDesign, value: float, column: int | str = 0) -> NDArray:
    """Boolean mask of observations whose covariate equals ``value``."""
    mask = design.covariate(column) == value
    if not mask.any():
        raise EmptyGroupError(
            f"group {value!r} has no observations in covariate "
            f"'{column if isinstance(column, str) else design.names[column]}'",
            group=value,
            column=column if isinstance(column, int) else design.names.index(column),
        )
    return mask


def km_curve(
    design: SurvivalDesign,
    value: float,
    *,
    column: int | str = 0,
    label: str | None = None,
) -> SurvivalCurve:
    """Kaplan-Meier curve of one group on the dataset's event-time grid.

    The curve is flat at grid times where the group has no event and stops
    at the last grid time not after the group's largest observed time.

    Raises
    ------
    EmptyGroupError
        If no observation has covariate value ``value``.
    DegenerateDataError
        If the dataset has no events at all.
    """
    grid = event_time_grid(design.time, design.event)
    mask = group_mask(design, value, column)

    pl = _product_limit(design.time[mask], design.event[mask])
    times = grid.times[grid.times <= design.time[mask].max()]

    return SurvivalCurve(
        time=np.concatenate([[0.0], times]),
        survival=np.concatenate([[1.0], step_values(pl.time, pl.survival, times)]),
        group=label if label is not None else _group_label(value),
        model="km",
    )


def _group_label(value: float) -> str:
    return f"group={value:g}"


def _confidence_band(
    survival: NDArray,
    se: NDArray,
    z: float,
    conf_type: str,
) -> tuple[NDArray, NDArray]:
    """Pointwise (lower, upper) limits for S(t), clipped to [0, 1].

    Where the transform is undefined (S = 0, or S = 1 on the log-log
    scale) the limits fall back to 0 and 1.
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        if conf_type == "plain":
            half = z * se
            lower, upper = survival - half, survival + half
        elif conf_type == "log":
            half = z * se / survival
            lower = survival * np.exp(-half)
            upper = survival * np.exp(half)
        elif conf_type == "log-log":
            log_s = np.log(survival)
            half = z * se / (survival * np.abs(log_s))
            lower = np.exp(-np.exp(np.log(-log_s) + half))
            upper = np.exp(-np.exp(np.log(-log_s) - half))
        else:
            raise ValueError(
                f"Unknown conf_type '{conf_type}'. "
                f"Choose from 'log', 'plain', 'log-log'."
            )

    lower = np.where(np.isnan(lower), 0.0, np.clip(lower, 0.0, 1.0))
    upper = np.where(np.isnan(upper), 1.0, np.clip(upper, 0.0, 1.0))
    return lower, upper
