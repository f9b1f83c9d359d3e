"""
Side-by-side comparison of fitted group survival curves.

A ModelComparison holds, for each requested model, the survival curve of
every group projected over the shared event-time grid, plus the fitted
solutions. The Kaplan-Meier curves serve as the non-parametric reference
that the regression models are measured against, and a log-rank test over
the compared groups says whether their survival differs at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from survcompare.survival._common import SurvivalCurve
from survcompare.survival.solution import LogRankSolution


MODELS = ("km", "ph", "po", "cure")


@dataclass(frozen=True)
class ModelComparison:
    """Group curves and fits for several survival models on one dataset.

    Attributes
    ----------
    groups : tuple of float
        Group values, in the order curves were produced.
    curves : dict
        ``curves[model][group]`` is the SurvivalCurve of that group.
    fits : dict
        ``fits[model]`` is the fitted Solution (regression models only).
    logrank : LogRankSolution or None
        Log-rank test across ``groups``; None when a single group is
        compared.
    """

    groups: tuple[float, ...]
    curves: dict[str, dict[float, SurvivalCurve]]
    fits: dict[str, Any]
    logrank: LogRankSolution | None = None

    @property
    def models(self) -> tuple[str, ...]:
        return tuple(self.curves)

    def curve(self, model: str, group: float) -> SurvivalCurve:
        return self.curves[model][group]

    def coefficient_table(self) -> list[tuple[str, str, float, float, float]]:
        """Rows ``(model, name, estimate, exp(estimate), p_value)``."""
        rows = []
        for model, fit in self.fits.items():
            for coef in fit.coef_table():
                rows.append((model, *coef.as_row()))
        return rows

    def max_deviation(self, model: str) -> dict[float, float]:
        """Largest |S_model(t) - S_KM(t)| per group.

        Taken over the KM curve's support, so times past a group's last
        follow-up do not count.
        """
        if "km" not in self.curves:
            raise KeyError("comparison has no Kaplan-Meier reference curves")
        out = {}
        for g in self.groups:
            km = self.curves["km"][g]
            fitted = self.curves[model][g]
            out[g] = float(np.max(np.abs(fitted.at(km.time) - km.survival)))
        return out

    def summary(self) -> str:
        lines = ["Survival model comparison", "=" * 60, ""]
        lines.append(
            f"  {'model':<6s}  {'term':<20s}  {'estimate':>10s}  "
            f"{'exp(est)':>10s}  {'p':>10s}"
        )
        for model, name, est, exp_est, p in self.coefficient_table():
            lines.append(
                f"  {model:<6s}  {name:<20s}  {est:10.4f}  "
                f"{exp_est:10.4f}  {p:10.4g}"
            )
        if "km" in self.curves:
            lines.append("")
            lines.append("  Max |S - S_KM| by group:")
            for model in self.models:
                if model == "km":
                    continue
                dev = self.max_deviation(model)
                cells = ", ".join(f"{g:g}: {d:.4f}" for g, d in dev.items())
                lines.append(f"    {model:<6s}  {cells}")
        if self.logrank is not None:
            lines.append("")
            lines.append(f"  Log-rank test: {self.logrank.test_line()}")
        return "\n".join(lines)
