"""
Tests for compare_models(): all four models on one two-group dataset.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from survcompare.core.exceptions import EmptyGroupError
from survcompare.survival import (
    CoxSolution,
    CureSolution,
    ModelComparison,
    POSolution,
    SurvivalDesign,
    LogRankSolution,
    compare_models,
    km_curve,
    survdiff,
)


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def cure_design(cure_data):
    time, event, group = cure_data
    return SurvivalDesign.for_survival(time, event, group, names=["group"])


@pytest.fixture
def comparison(cure_design):
    return compare_models(cure_design)


# ═══════════════════════════════════════════════════════════════════════
# Structure
# ═══════════════════════════════════════════════════════════════════════


class TestCompareModels:

    def test_all_models(self, comparison):
        assert isinstance(comparison, ModelComparison)
        assert comparison.models == ("km", "ph", "po", "cure")
        assert comparison.groups == (0.0, 1.0)
        for model in comparison.models:
            assert set(comparison.curves[model]) == {0.0, 1.0}

    def test_fits(self, comparison):
        assert set(comparison.fits) == {"ph", "po", "cure"}
        assert isinstance(comparison.fits["ph"], CoxSolution)
        assert isinstance(comparison.fits["po"], POSolution)
        assert isinstance(comparison.fits["cure"], CureSolution)

    def test_curves_share_grid(self, comparison, cure_design):
        grid = np.unique(cure_design.time[cure_design.event == 1])
        for model in ("ph", "po", "cure"):
            for g in comparison.groups:
                curve = comparison.curve(model, g)
                assert curve.model == model
                assert_allclose(curve.time[1:], grid)

    def test_km_curves_match_km_curve(self, comparison, cure_design):
        for g in comparison.groups:
            np.testing.assert_array_equal(
                comparison.curve("km", g).survival,
                km_curve(cure_design, g).survival,
            )

    def test_curves_match_fits(self, comparison):
        fit = comparison.fits["cure"]
        np.testing.assert_array_equal(
            comparison.curve("cure", 1.0).survival,
            fit.curve(1.0).survival,
        )

    def test_subset_of_models(self, cure_design):
        comp = compare_models(cure_design, models=("km", "ph"))
        assert comp.models == ("km", "ph")
        assert set(comp.fits) == {"ph"}

    def test_column_by_name(self, cure_design):
        comp = compare_models(cure_design, column="group", models=("ph",))
        assert comp.fits["ph"].names == ("group",)


# ═══════════════════════════════════════════════════════════════════════
# Coefficients and deviations
# ═══════════════════════════════════════════════════════════════════════


class TestComparisonOutput:

    def test_coefficient_table(self, comparison):
        rows = comparison.coefficient_table()
        assert [(r[0], r[1]) for r in rows] == [
            ("ph", "group"),
            ("po", "group"),
            ("cure", "cure.(Intercept)"),
            ("cure", "long.group"),
            ("cure", "short.group"),
        ]
        for model, name, est, exp_est, p in rows:
            assert exp_est == pytest.approx(np.exp(est))
            assert 0.0 <= p <= 1.0

    def test_max_deviation(self, comparison):
        for model in ("ph", "po", "cure"):
            dev = comparison.max_deviation(model)
            assert set(dev) == {0.0, 1.0}
            assert all(0.0 <= d < 1.0 for d in dev.values())

    def test_max_deviation_of_km_is_zero(self, comparison):
        assert comparison.max_deviation("km") == {0.0: 0.0, 1.0: 0.0}

    def test_cure_tracks_km_plateau(self, comparison):
        """Data simulated from a cure mixture: the cure curves stay close
        to Kaplan-Meier."""
        dev = comparison.max_deviation("cure")
        assert max(dev.values()) < 0.1

    def test_max_deviation_needs_km(self, cure_design):
        comp = compare_models(cure_design, models=("ph",))
        with pytest.raises(KeyError):
            comp.max_deviation("ph")

    def test_summary(self, comparison):
        s = comparison.summary()
        assert "Survival model comparison" in s
        assert "long.group" in s
        assert "Max |S - S_KM|" in s
        assert "Log-rank test: Chisq=" in s


class TestComparisonLogRank:
    """The comparison carries a log-rank test across the compared groups."""

    def test_matches_survdiff(self, comparison, cure_data):
        time, event, group = cure_data
        direct = survdiff(time, event, group)
        assert isinstance(comparison.logrank, LogRankSolution)
        assert comparison.logrank.statistic == pytest.approx(direct.statistic,
                                                             rel=1e-12)
        assert comparison.logrank.df == 1

    def test_groups_differ(self, comparison):
        """Cured fractions 0.5 vs 0.3 on 400 subjects are detectable."""
        assert comparison.logrank.p_value < 0.05

    def test_only_compared_groups_enter(self):
        design = SurvivalDesign.for_survival(
            [1, 2, 3, 4, 5, 6, 7, 8, 9],
            [1, 1, 0, 1, 0, 1, 1, 1, 0],
            [0, 0, 0, 1, 1, 1, 2, 2, 2],
        )
        comp = compare_models(design, groups=(0.0, 1.0), models=("km",))
        assert comp.logrank.n_groups == 2
        assert_allclose(comp.logrank.n_per_group, [3, 3])
        assert_allclose(comp.logrank.group_labels, [0.0, 1.0])

    def test_rho_passed_through(self, cure_design):
        comp = compare_models(cure_design, models=("km",), rho=1.0)
        assert comp.logrank.rho == 1.0

    def test_single_group_has_no_test(self, cure_design):
        comp = compare_models(cure_design, groups=(1.0,), models=("km",))
        assert comp.logrank is None
        assert "Log-rank" not in comp.summary()


# ═══════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════


class TestCompareErrors:

    def test_unknown_model(self, cure_design):
        with pytest.raises(ValueError, match="unknown model"):
            compare_models(cure_design, models=("km", "weibull"))

    def test_empty_group(self, cure_design):
        with pytest.raises(EmptyGroupError):
            compare_models(cure_design, groups=(0.0, 2.0), models=("km",))

    def test_empty_group_without_km(self, cure_design):
        """An absent group value is rejected before any model is fitted."""
        with pytest.raises(EmptyGroupError) as exc_info:
            compare_models(cure_design, groups=(0.0, 2.0), models=("ph",))
        assert exc_info.value.group == 2.0

    def test_no_covariates(self):
        design = SurvivalDesign.for_survival([1, 2, 3], [1, 0, 1])
        with pytest.raises(ValueError, match="no covariates"):
            compare_models(design)
