"""
Parameter payloads for survival analysis results.

Each dataclass is a frozen payload carried inside a Result[P] envelope.
The fitted-model payloads form a tagged union over ``model``:

    "km"    KMParams
    "ph"    CoxParams
    "po"    POParams
    "cure"  CureParams
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from survcompare.core.exceptions import ValidationError


@dataclass(frozen=True)
class Coefficient:
    """One named regression coefficient with its Wald test.

    ``(name, estimate, exp_estimate, p_value)`` is the row consumed by
    tabular reports.
    """

    name: str
    estimate: float
    exp_estimate: float
    se: float
    z: float
    p_value: float

    def as_row(self) -> tuple[str, float, float, float]:
        return (self.name, self.estimate, self.exp_estimate, self.p_value)


@dataclass(frozen=True)
class SurvivalCurve:
    """Right-continuous survival step function for one group.

    ``time[0]`` is the origin 0 with ``survival[0] == 1``; the remaining
    entries are the event-time grid and the survival probability from each
    grid time up to the next.
    """

    time: NDArray
    survival: NDArray
    group: str
    model: str

    def __post_init__(self) -> None:
        # Frozen arrays: the curve is shared by reference once produced.
        self.time.setflags(write=False)
        self.survival.setflags(write=False)

    def pairs(self) -> list[tuple[float, float]]:
        """Ordered (time, probability) pairs for step-plot rendering."""
        return [(float(t), float(s)) for t, s in zip(self.time, self.survival)]

    def at(self, t) -> NDArray:
        """Evaluate S(t); times before the origin are not allowed."""
        t = np.asarray(t, dtype=np.float64)
        if np.any(t < 0):
            raise ValidationError(
                f"survival curve is defined for t >= 0 only, got min {float(np.min(t))}"
            )
        idx = np.searchsorted(self.time, t, side="right") - 1
        return self.survival[idx]

    @property
    def label(self) -> str:
        """Legend label, e.g. ``"cure: treated"``."""
        return f"{self.model}: {self.group}"

    def __len__(self) -> int:
        return len(self.time)


def wald_table(
    estimates: NDArray,
    covariance: NDArray,
) -> tuple[NDArray, NDArray, NDArray]:
    """Standard errors, z statistics and two-sided Wald p-values."""
    se = np.sqrt(np.maximum(np.diag(covariance), 0.0))
    z = np.where(se > 0, estimates / np.where(se > 0, se, 1.0), 0.0)
    p_values = 2.0 * stats.norm.sf(np.abs(z))
    return se, z, p_values


def coefficient_rows(
    names: tuple[str, ...],
    estimates: NDArray,
    se: NDArray,
    z: NDArray,
    p_values: NDArray,
) -> tuple[Coefficient, ...]:
    return tuple(
        Coefficient(
            name=names[j],
            estimate=float(estimates[j]),
            exp_estimate=float(np.exp(estimates[j])),
            se=float(se[j]),
            z=float(z[j]),
            p_value=float(p_values[j]),
        )
        for j in range(len(estimates))
    )


@dataclass(frozen=True)
class KMParams:
    """Kaplan-Meier survival curve parameters.

    Matches the output of R's survival::survfit().
    """

    time: NDArray                # (m,) unique event times
    survival: NDArray            # (m,) S(t) at each event time
    n_risk: NDArray              # (m,) number at risk just before each time
    n_events: NDArray            # (m,) events at each time
    n_censored: NDArray          # (m,) censored in [previous time, this time)
    se: NDArray                  # (m,) Greenwood standard error
    ci_lower: NDArray            # (m,) lower CI for S(t)
    ci_upper: NDArray            # (m,) upper CI for S(t)
    conf_level: float            # confidence level (e.g. 0.95)
    conf_type: str               # CI type: "log" (default), "plain", "log-log"
    n_observations: int          # total n
    n_events_total: int          # total events
    model: str = "km"


@dataclass(frozen=True)
class LogRankParams:
    """Log-rank test parameters.

    Matches the output of R's survival::survdiff().
    """

    statistic: float             # chi-squared statistic
    df: int                      # degrees of freedom (n_groups - 1)
    p_value: float
    n_groups: int
    observed: NDArray            # (n_groups,) observed events per group
    expected: NDArray            # (n_groups,) expected events per group
    n_per_group: NDArray         # (n_groups,) subjects per group
    rho: float                   # weight parameter (0=log-rank, 1=Peto-Peto)
    group_labels: NDArray        # unique group labels


@dataclass(frozen=True)
class CoxParams:
    """Cox proportional hazards model parameters.

    Matches the output of R's survival::coxph() and basehaz().
    """

    coefficients: NDArray        # (p,) log hazard ratios
    hazard_ratios: NDArray       # (p,) exp(coef)
    standard_errors: NDArray     # (p,) from observed information matrix
    z_statistics: NDArray        # (p,) coef / se
    p_values: NDArray            # (p,) two-sided Wald test
    covariance: NDArray          # (p, p) inverse information
    loglik: tuple[float, float]  # (null log-lik, model log-lik)
    concordance: float           # Harrell's C-statistic
    event_times: NDArray         # (m,) event-time grid
    baseline_cumhaz: NDArray     # (m,) H0(t) at each grid time
    names: tuple[str, ...]
    n_events: int
    n_observations: int
    n_iter: int                  # Newton-Raphson iterations
    ties: str                    # "breslow" or "efron"
    model: str = "ph"


@dataclass(frozen=True)
class POParams:
    """Proportional odds model parameters.

    Survival odds for covariates x are ``exp(x @ coef) / A(t)`` with
    ``A(t) = -log S0(t)``; ``baseline_survival`` is S0 on the grid.
    """

    coefficients: NDArray        # (p,) log odds ratios of survival
    odds_ratios: NDArray         # (p,) exp(coef)
    standard_errors: NDArray
    z_statistics: NDArray
    p_values: NDArray
    covariance: NDArray          # (p, p) coefficient block of inverse information
    loglik: float
    event_times: NDArray         # (m,)
    baseline_decrements: NDArray # (m,) S0(t_k) / S0(t_{k-1}), in (0, 1)
    baseline_survival: NDArray   # (m,) cumulative product of decrements
    names: tuple[str, ...]
    n_events: int
    n_observations: int
    n_iter: int
    model: str = "po"


@dataclass(frozen=True)
class CureParams:
    """PHPH mixture cure model parameters.

    ``coefficients`` is ordered ``[intercept, long-term..., short-term...]``;
    the properties slice it. Population survival is
    ``exp(-theta * (1 - S_b(t) ** eta))`` with
    ``theta = exp(intercept + x_long @ long_term)`` and
    ``eta = exp(x_short @ short_term)``.
    """

    coefficients: NDArray        # (1 + p_long + p_short,)
    standard_errors: NDArray
    z_statistics: NDArray
    p_values: NDArray
    covariance: NDArray          # coefficient block of inverse information
    loglik: float
    event_times: NDArray         # (m,)
    baseline_decrements: NDArray # (m,) last entry is 0
    baseline_survival: NDArray   # (m,) proper: ends at 0
    long_names: tuple[str, ...]
    short_names: tuple[str, ...]
    n_events: int
    n_observations: int
    n_iter: int
    model: str = "cure"
    names: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "names",
            ("cure.(Intercept)",)
            + tuple(f"long.{nm}" for nm in self.long_names)
            + tuple(f"short.{nm}" for nm in self.short_names),
        )

    @property
    def cure_intercept(self) -> float:
        return float(self.coefficients[0])

    @property
    def long_term(self) -> NDArray:
        return self.coefficients[1:1 + len(self.long_names)]

    @property
    def short_term(self) -> NDArray:
        return self.coefficients[1 + len(self.long_names):]
