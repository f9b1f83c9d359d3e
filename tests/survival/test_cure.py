"""
Tests for cure_phph(): PHPH mixture cure model.

Population survival is exp(-theta (1 - S_b(t) ** eta)) with a proper
baseline S_b that reaches 0 at the last event time, so every fitted curve
levels off at exactly exp(-theta), the cured fraction.

Comparable R code:
    library(nltm)
    nltm(Surv(time, event) ~ group, nlt.model="PHPHC", data=...)
"""

import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose

from survcompare.core.compute.optimization import NewtonControl
from survcompare.core.exceptions import (
    ConvergenceError,
    DegenerateDataError,
    DimensionError,
    ValidationError,
)
from survcompare.survival import CureSolution, cure_phph
from survcompare.survival._cure import (
    _baseline_start,
    _design_matrices,
    _score_and_information,
)
from survcompare.survival._grid import event_time_grid


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def cure_solution(cure_data):
    time, event, group = cure_data
    return cure_phph(time, event, group, names=["group"])


# ═══════════════════════════════════════════════════════════════════════
# Likelihood derivatives
# ═══════════════════════════════════════════════════════════════════════


class TestCureDerivatives:
    """Analytic score and information agree with finite differences."""

    @pytest.fixture
    def setup(self, small_mixed_data):
        time, event, group = small_mixed_data
        z = np.linspace(-1.0, 1.0, len(group))
        X_short = np.column_stack([group, z])
        X_long = group.reshape(-1, 1)

        grid = event_time_grid(time, event)
        data = _design_matrices(grid, event, X_short, X_long)

        rng = np.random.default_rng(5)
        phi = np.concatenate([
            np.log(0.15) + 0.3 * rng.standard_normal(grid.m - 1),
            [0.3, 0.4, -0.3, 0.2],
        ])
        return phi, data

    def test_score_matches_loglik_differences(self, setup):
        phi, data = setup
        _, score, _ = _score_and_information(phi, data)

        h = 1e-6
        numeric = np.empty_like(phi)
        for j in range(len(phi)):
            e = np.zeros_like(phi)
            e[j] = h
            up = _score_and_information(phi + e, data)[0]
            down = _score_and_information(phi - e, data)[0]
            numeric[j] = (up - down) / (2 * h)

        assert_allclose(score, numeric, rtol=1e-5, atol=1e-6)

    def test_information_matches_score_differences(self, setup):
        phi, data = setup
        _, _, info = _score_and_information(phi, data)

        h = 1e-6
        numeric = np.empty((len(phi), len(phi)))
        for j in range(len(phi)):
            e = np.zeros_like(phi)
            e[j] = h
            up = _score_and_information(phi + e, data)[1]
            down = _score_and_information(phi - e, data)[1]
            numeric[:, j] = -(up - down) / (2 * h)

        assert_allclose(info, numeric, rtol=1e-5, atol=1e-6)

    def test_information_symmetric(self, setup):
        phi, data = setup
        _, _, info = _score_and_information(phi, data)
        assert_allclose(info, info.T, atol=0)

    def test_overflowing_point_is_silent(self, setup):
        """A huge intercept overflows theta; the result is non-finite and
        no floating-point warning escapes."""
        phi, data = setup
        phi = phi.copy()
        phi[data.below_cur.shape[1]] = 800.0
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            loglik, score, info = _score_and_information(phi, data)
        assert not np.isfinite(loglik)


class TestBaselineStart:

    def test_start_matches_scaled_nelson_aalen(self, small_mixed_data):
        """exp(-Σ exp(γ)) reproduces S_b = 1 - H_NA / H_NA(last)."""
        time, event, _ = small_mixed_data
        grid = event_time_grid(time, event)
        H = grid.nelson_aalen()

        gamma = _baseline_start(grid)
        assert len(gamma) == grid.m - 1
        assert_allclose(np.cumprod(np.exp(-np.exp(gamma))),
                        1.0 - H[:-1] / H[-1], rtol=1e-12)


# ═══════════════════════════════════════════════════════════════════════
# Fitting
# ═══════════════════════════════════════════════════════════════════════


class TestCureFit:

    def test_returns_solution(self, cure_solution, cure_data):
        time, event, _ = cure_data
        assert isinstance(cure_solution, CureSolution)
        assert cure_solution.info["converged"] is True
        assert cure_solution.n_observations == len(time)
        assert cure_solution.n_events == int(event.sum())
        assert cure_solution.warnings == ()

    def test_names(self, cure_solution):
        assert cure_solution.names == (
            "cure.(Intercept)", "long.group", "short.group",
        )
        assert len(cure_solution.coefficients) == 3

    def test_score_zero_at_estimate(self, cure_solution, cure_data):
        time, event, group = cure_data
        X = group.reshape(-1, 1)
        grid = event_time_grid(time, event)
        data = _design_matrices(grid, event, X, X)

        decrements = cure_solution.params.baseline_decrements[:-1]
        phi = np.concatenate([np.log(-np.log(decrements)),
                              cure_solution.coefficients])
        loglik, score, _ = _score_and_information(phi, data)
        assert np.max(np.abs(score)) < 1e-6
        assert loglik == pytest.approx(cure_solution.loglik, rel=1e-10)

    def test_proper_baseline(self, cure_solution):
        S_b = cure_solution.baseline_survival
        assert S_b[-1] == 0.0
        assert cure_solution.params.baseline_decrements[-1] == 0.0
        assert np.all(S_b[:-1] > 0)
        assert np.all(np.diff(S_b) < 0)

    def test_cure_fractions_recovered(self, cure_solution):
        """Simulated cured fractions are 0.5 (untreated) and 0.3 (treated)."""
        assert cure_solution.cure_fraction(0.0) == pytest.approx(0.5, abs=0.1)
        assert cure_solution.cure_fraction(1.0) == pytest.approx(0.3, abs=0.1)
        assert cure_solution.long_term[0] > 0

    def test_wald_consistency(self, cure_solution):
        assert_allclose(cure_solution.standard_errors,
                        np.sqrt(np.diag(cure_solution.covariance)), rtol=1e-12)

    @pytest.mark.filterwarnings("error::RuntimeWarning")
    def test_fit_emits_no_runtime_warnings(self, cure_data):
        time, event, group = cure_data
        fit = cure_phph(time, event, group)
        assert fit.info["converged"] is True

    def test_deterministic(self, cure_data):
        time, event, group = cure_data
        a = cure_phph(time, event, group)
        b = cure_phph(time, event, group)
        assert a.coefficients.tobytes() == b.coefficients.tobytes()
        assert a.baseline_survival.tobytes() == b.baseline_survival.tobytes()

    def test_separate_long_term_covariates(self, cure_data):
        time, event, group = cure_data
        rng = np.random.default_rng(11)
        age = rng.normal(0.0, 1.0, size=len(time))
        fit = cure_phph(time, event, group, np.column_stack([group, age]),
                        names=["group"], long_names=["group", "age"])
        assert fit.names == (
            "cure.(Intercept)", "long.group", "long.age", "short.group",
        )
        assert len(fit.long_term) == 2
        assert len(fit.short_term) == 1

    def test_group_without_events_raises(self, small_mixed_data):
        time, event, group = small_mixed_data
        event = np.where(group == 1, 0.0, event)
        with pytest.raises(ConvergenceError):
            cure_phph(time, event, group)

    def test_no_events_raises(self):
        with pytest.raises(DegenerateDataError):
            cure_phph([1, 2, 3, 4], [0, 0, 0, 0], [0, 0, 1, 1])

    def test_long_names_without_x_long(self, cure_data):
        time, event, group = cure_data
        with pytest.raises(ValueError, match="long_names"):
            cure_phph(time, event, group, long_names=["group"])


class TestCureFollowUpWarning:

    def test_warns_when_last_time_is_event(self, small_mixed_data):
        """Nobody is followed past the last event: the plateau is unseen."""
        time, event, group = small_mixed_data
        event = event.copy()
        event[np.argmax(time)] = 1.0

        with pytest.warns(RuntimeWarning, match="follow-up"):
            with pytest.raises(ConvergenceError):
                cure_phph(time, event, group, control=NewtonControl(max_iter=1))


# ═══════════════════════════════════════════════════════════════════════
# Curves and output
# ═══════════════════════════════════════════════════════════════════════


class TestCureCurve:

    @pytest.mark.parametrize("g", [0.0, 1.0])
    def test_plateau_is_cure_fraction(self, cure_solution, g):
        curve = cure_solution.curve(g)
        assert curve.survival[-1] == pytest.approx(
            cure_solution.cure_fraction(g), rel=1e-14)

    def test_untreated_curve_formula(self, cure_solution):
        """At x = 0: exp(-exp(intercept) (1 - S_b(t)))."""
        theta0 = np.exp(cure_solution.cure_intercept)
        expected = np.exp(-theta0 * (1.0 - cure_solution.baseline_survival))
        assert_allclose(cure_solution.curve(0.0).survival[1:], expected,
                        rtol=1e-14)

    def test_curves_non_increasing(self, cure_solution):
        for g in (0.0, 1.0):
            curve = cure_solution.curve(g)
            assert curve.pairs()[0] == (0.0, 1.0)
            assert np.all(np.diff(curve.survival) <= 0)
            assert curve.model == "cure"

    def test_x_long_defaults_to_x(self, cure_solution):
        assert_allclose(cure_solution.curve(1.0).survival,
                        cure_solution.curve(1.0, x_long=1.0).survival)


class TestCureFraction:
    """cure_fraction(x) = exp(-exp(intercept + x @ long_term)), the plateau."""

    @pytest.mark.parametrize("g", [0.0, 1.0])
    def test_closed_form(self, cure_solution, g):
        expected = np.exp(-np.exp(cure_solution.cure_intercept
                                  + g * cure_solution.long_term[0]))
        assert cure_solution.cure_fraction(g) == pytest.approx(expected, rel=1e-14)
        assert cure_solution.cure_fraction(g) == pytest.approx(
            cure_solution.curve(g).survival[-1], rel=1e-14)

    def test_treated_cure_fraction_lower(self, cure_solution):
        assert cure_solution.cure_fraction(1.0) < cure_solution.cure_fraction(0.0)

    def test_wrong_length(self, cure_solution):
        with pytest.raises(DimensionError, match="x_long"):
            cure_solution.cure_fraction([0.0, 1.0])

    def test_non_finite(self, cure_solution):
        with pytest.raises(ValidationError, match="non-finite"):
            cure_solution.cure_fraction(np.inf)


class TestCureSolution:

    def test_summary(self, cure_solution):
        s = cure_solution.summary()
        assert "cure_phph()" in s
        assert "cure.(Intercept)" in s
        assert "long.group" in s
        assert "short.group" in s
        assert "Baseline cure fraction" in s

    def test_repr(self, cure_solution):
        assert "CureSolution" in repr(cure_solution)

    def test_backend_and_info(self, cure_solution):
        assert cure_solution.backend_name == "cpu_cure"
        assert (cure_solution.info["n_baseline_jumps"]
                == len(cure_solution.event_times) - 1)
