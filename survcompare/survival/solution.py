"""
Solution wrappers for survival analysis results.

Each Solution wraps a Result[Params] and exposes its fields as read-only
properties, with an R-style summary(). The envelope fields (info, warnings,
timing, backend) live on _ResultView; the Wald-table accessors shared by the
Cox, proportional odds and cure fits live on _RegressionView, whose curve()
hands the payload to the group curve projector.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from survcompare.core.result import Result
from survcompare.survival._common import (
    Coefficient,
    CoxParams,
    CureParams,
    KMParams,
    LogRankParams,
    POParams,
    SurvivalCurve,
    coefficient_rows,
)
from survcompare.survival._project import cure_fraction, project


_STARS = ((0.001, "***"), (0.01, "**"), (0.05, "*"), (0.1, "."))
_SIGNIF_LEGEND = "  Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1"


def _significance_stars(p: float) -> str:
    for cutoff, stars in _STARS:
        if p < cutoff:
            return stars
    return " "


def _coefficient_lines(rows: tuple[Coefficient, ...]) -> list[str]:
    """coef / exp(coef) / se(coef) / z / Pr(>|z|) table, as printed by R."""
    width = max([10] + [len(r.name) for r in rows])
    header = "  ".join([
        f"{'':>{width}s}", f"{'coef':>10s}", f"{'exp(coef)':>10s}",
        f"{'se(coef)':>10s}", f"{'z':>10s}", f"{'Pr(>|z|)':>12s}",
    ])
    lines = [f"  {header}"]
    for r in rows:
        cells = "  ".join([
            f"{r.name:>{width}s}", f"{r.estimate:10.6f}",
            f"{r.exp_estimate:10.6f}", f"{r.se:10.6f}", f"{r.z:10.4f}",
            f"{r.p_value:12.4g}",
        ])
        lines.append(f"  {cells} {_significance_stars(r.p_value)}")
    lines += ["  ---", _SIGNIF_LEGEND]
    return lines


class _ResultView:
    """Access to the Result envelope shared by every solution."""

    __slots__ = ('_result',)

    def __init__(self, _result: Result) -> None:
        self._result = _result

    @property
    def params(self):
        return self._result.params

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing


class _RegressionView(_ResultView):
    """Coefficients, likelihood and curves of a fitted regression model."""

    __slots__ = ()

    _call = ""

    @property
    def names(self) -> tuple[str, ...]:
        return self.params.names

    @property
    def coefficients(self) -> NDArray:
        return self.params.coefficients

    @property
    def standard_errors(self) -> NDArray:
        return self.params.standard_errors

    @property
    def z_statistics(self) -> NDArray:
        return self.params.z_statistics

    @property
    def p_values(self) -> NDArray:
        return self.params.p_values

    @property
    def covariance(self) -> NDArray:
        """Inverse observed information, coefficient block."""
        return self.params.covariance

    @property
    def event_times(self) -> NDArray:
        return self.params.event_times

    @property
    def n_events(self) -> int:
        return self.params.n_events

    @property
    def n_observations(self) -> int:
        return self.params.n_observations

    @property
    def n_iter(self) -> int:
        return self.params.n_iter

    def coef_table(self) -> tuple[Coefficient, ...]:
        p = self.params
        return coefficient_rows(
            p.names, p.coefficients, p.standard_errors,
            p.z_statistics, p.p_values,
        )

    def curve(self, x, *, group: str | None = None) -> SurvivalCurve:
        """Fitted survival of covariate profile ``x`` as a step curve."""
        return project(self.params, x, group=group)

    def _footer(self) -> list[str]:
        return []

    def summary(self) -> str:
        lines = [
            f"Call: {self._call}",
            "",
            f"  n= {self.n_observations}, number of events= {self.n_events}",
            "",
            *_coefficient_lines(self.coef_table()),
            "",
            *self._footer(),
        ]
        lines += [f"  Warning: {w}" for w in self.warnings]
        return "\n".join(lines)


class KMSolution(_ResultView):
    """Kaplan-Meier product-limit fit, laid out like R's survfit()."""

    __slots__ = ()

    @property
    def params(self) -> KMParams:
        return self._result.params

    @property
    def time(self) -> NDArray:
        """Distinct event times."""
        return self.params.time

    @property
    def survival(self) -> NDArray:
        return self.params.survival

    @property
    def n_risk(self) -> NDArray:
        return self.params.n_risk

    @property
    def n_events(self) -> NDArray:
        return self.params.n_events

    @property
    def n_censored(self) -> NDArray:
        return self.params.n_censored

    @property
    def se(self) -> NDArray:
        """Greenwood standard error."""
        return self.params.se

    @property
    def ci_lower(self) -> NDArray:
        return self.params.ci_lower

    @property
    def ci_upper(self) -> NDArray:
        return self.params.ci_upper

    @property
    def conf_level(self) -> float:
        return self.params.conf_level

    @property
    def conf_type(self) -> str:
        return self.params.conf_type

    @property
    def n_observations(self) -> int:
        return self.params.n_observations

    @property
    def n_events_total(self) -> int:
        return self.params.n_events_total

    @property
    def median_survival(self) -> float | None:
        """First event time with S(t) <= 0.5; None if S stays above."""
        below = np.flatnonzero(self.survival <= 0.5)
        return float(self.time[below[0]]) if len(below) else None

    def curve(self, group: str = "all") -> SurvivalCurve:
        """The fit as a step curve starting at (0, 1)."""
        return SurvivalCurve(
            time=np.concatenate([[0.0], self.time]),
            survival=np.concatenate([[1.0], self.survival]),
            group=group,
            model="km",
        )

    def summary(self, max_rows: int = 20) -> str:
        median = self.median_survival
        pct = f"{self.conf_level:.0%}"
        lines = [
            "Call: kaplan_meier()",
            "",
            f"  n={self.n_observations}, events={self.n_events_total}, "
            f"median survival = {'NA' if median is None else f'{median:.4g}'}",
            "",
            f"  {'time':>8s}  {'n.risk':>8s}  {'n.event':>8s}  {'survival':>10s}  "
            f"{'std.err':>10s}  {'lower ' + pct:>10s}  {'upper ' + pct:>10s}",
        ]
        rows = zip(self.time, self.n_risk, self.n_events, self.survival,
                   self.se, self.ci_lower, self.ci_upper)
        for k, (t, nr, d, s, se, lo, hi) in enumerate(rows):
            if k == max_rows:
                lines.append(f"  ... ({len(self.time) - max_rows} more rows)")
                break
            lines.append(
                f"  {t:8.4g}  {nr:8.0f}  {d:8.0f}  {s:10.6f}  "
                f"{se:10.6f}  {lo:10.6f}  {hi:10.6f}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"KMSolution(n={self.n_observations}, "
            f"events={self.n_events_total}, median={self.median_survival})"
        )


class LogRankSolution(_ResultView):
    """Log-rank (G-rho) comparison of group survival, as R's survdiff()."""

    __slots__ = ()

    @property
    def params(self) -> LogRankParams:
        return self._result.params

    @property
    def statistic(self) -> float:
        """Chi-squared statistic."""
        return self.params.statistic

    @property
    def df(self) -> int:
        return self.params.df

    @property
    def p_value(self) -> float:
        return self.params.p_value

    @property
    def n_groups(self) -> int:
        return self.params.n_groups

    @property
    def observed(self) -> NDArray:
        return self.params.observed

    @property
    def expected(self) -> NDArray:
        return self.params.expected

    @property
    def n_per_group(self) -> NDArray:
        return self.params.n_per_group

    @property
    def rho(self) -> float:
        return self.params.rho

    @property
    def group_labels(self) -> NDArray:
        return self.params.group_labels

    def test_line(self) -> str:
        """One-line chi-squared result, as printed under R's table."""
        return (
            f"Chisq= {self.statistic:.4f} on {self.df} degrees of freedom, "
            f"p= {self.p_value:.4g}"
        )

    def summary(self) -> str:
        lines = [
            "Call: survdiff()",
            "",
            f"  {'':>12s}  {'N':>6s}  {'Observed':>10s}  "
            f"{'Expected':>10s}  {'(O-E)^2/E':>10s}",
        ]
        for label, n, o, e in zip(self.group_labels, self.n_per_group,
                                  self.observed, self.expected):
            contribution = (o - e) ** 2 / e if e > 0 else 0.0
            lines.append(
                f"  {'group=' + str(label):>12s}  {n:6.0f}  {o:10.1f}  "
                f"{e:10.1f}  {contribution:10.3f}"
            )
        lines += ["", f"  {self.test_line()}"]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"LogRankSolution(chisq={self.statistic:.4f}, "
            f"df={self.df}, p={self.p_value:.4g})"
        )


class CoxSolution(_RegressionView):
    """Cox proportional hazards fit.

    Mirrors R's coxph(); ``baseline_cumhaz`` is basehaz(fit, centered=FALSE)
    on the event-time grid.
    """

    __slots__ = ()

    @property
    def _call(self) -> str:
        return f'coxph(ties="{self.ties}")'

    @property
    def params(self) -> CoxParams:
        return self._result.params

    @property
    def hazard_ratios(self) -> NDArray:
        return self.params.hazard_ratios

    @property
    def loglik(self) -> tuple[float, float]:
        """(null, fitted) partial log-likelihood."""
        return self.params.loglik

    @property
    def concordance(self) -> float:
        return self.params.concordance

    @property
    def baseline_cumhaz(self) -> NDArray:
        """Breslow cumulative hazard at x = 0."""
        return self.params.baseline_cumhaz

    @property
    def ties(self) -> str:
        return self.params.ties

    def _footer(self) -> list[str]:
        lr = 2.0 * (self.loglik[1] - self.loglik[0])
        return [
            f"  Concordance= {self.concordance:.4f}",
            f"  Likelihood ratio test= {lr:.4f} on {len(self.coefficients)} df",
            f"  Newton-Raphson iterations: {self.n_iter}",
        ]

    def __repr__(self) -> str:
        return (
            f"CoxSolution(n={self.n_observations}, events={self.n_events}, "
            f"concordance={self.concordance:.4f})"
        )


class POSolution(_RegressionView):
    """Proportional odds fit.

    exp(coef) multiplies the odds of surviving past every time t.
    """

    __slots__ = ()

    _call = "prop_odds()"

    @property
    def params(self) -> POParams:
        return self._result.params

    @property
    def odds_ratios(self) -> NDArray:
        return self.params.odds_ratios

    @property
    def loglik(self) -> float:
        return self.params.loglik

    @property
    def baseline_survival(self) -> NDArray:
        """S0 on the event-time grid; survival odds at x = 0 are 1 / -log S0."""
        return self.params.baseline_survival

    def _footer(self) -> list[str]:
        return [
            f"  Log-likelihood= {self.loglik:.4f}",
            f"  Baseline jumps= {len(self.event_times)}, "
            f"Newton-Raphson iterations: {self.n_iter}",
        ]

    def __repr__(self) -> str:
        return (
            f"POSolution(n={self.n_observations}, events={self.n_events}, "
            f"loglik={self.loglik:.4f})"
        )


class CureSolution(_RegressionView):
    """PHPH mixture cure fit.

    Long-term coefficients act on θ, so the cured fraction is exp(-θ);
    short-term coefficients act on the timing of events among the uncured.
    ``coefficients`` is ordered [intercept, long-term..., short-term...].
    """

    __slots__ = ()

    _call = "cure_phph()"

    @property
    def params(self) -> CureParams:
        return self._result.params

    @property
    def cure_intercept(self) -> float:
        return self.params.cure_intercept

    @property
    def long_term(self) -> NDArray:
        return self.params.long_term

    @property
    def short_term(self) -> NDArray:
        return self.params.short_term

    @property
    def loglik(self) -> float:
        return self.params.loglik

    @property
    def baseline_survival(self) -> NDArray:
        """Proper baseline S_b on the event-time grid (last value 0)."""
        return self.params.baseline_survival

    def cure_fraction(self, x_long) -> float:
        """exp(-θ) for long-term covariates ``x_long``."""
        return cure_fraction(self.params, x_long)

    def curve(self, x, *, x_long=None, group: str | None = None) -> SurvivalCurve:
        """Population survival exp(-θ (1 - S_b(t) ** η)) as a step curve."""
        return project(self.params, x, x_long=x_long, group=group)

    def _footer(self) -> list[str]:
        base = np.exp(-np.exp(self.cure_intercept))
        return [
            f"  Baseline cure fraction exp(-exp(intercept))= {base:.4f}",
            f"  Log-likelihood= {self.loglik:.4f}",
            f"  Newton-Raphson iterations: {self.n_iter}",
        ]

    def __repr__(self) -> str:
        return (
            f"CureSolution(n={self.n_observations}, events={self.n_events}, "
            f"loglik={self.loglik:.4f})"
        )
