"""
Tests for the shared Newton-Raphson routine.

Objectives here are small closed-form log-likelihoods whose maximizers
(or lack of one) are known exactly.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from survcompare.core.compute.optimization import (
    COX_CONTROL,
    DEFAULT_CONTROL,
    NewtonControl,
    NewtonResult,
    newton_raphson,
)
from survcompare.core.exceptions import ConvergenceError, ValidationError


# ── Objectives ───────────────────────────────────────────────────────

A_QUAD = np.array([[2.0, 0.5], [0.5, 1.0]])
C_QUAD = np.array([1.0, -2.0])


def quadratic(theta):
    """L = -(θ - c)' A (θ - c) / 2, maximized at c with information A."""
    r = theta - C_QUAD
    return -0.5 * r @ A_QUAD @ r, -A_QUAD @ r, A_QUAD.copy()


def poisson_like(theta):
    """L = 2θ - exp(θ), maximized at log 2."""
    e = np.exp(theta[0])
    return 2.0 * theta[0] - e, np.array([2.0 - e]), np.array([[e]])


def monotone(theta):
    """L = -log(1 + exp(-θ)): increasing in θ with no maximizer."""
    t = theta[0]
    e = np.exp(-t)
    loglik = -np.log1p(e)
    score = e / (1.0 + e)
    info = e / (1.0 + e) ** 2
    return loglik, np.array([score]), np.array([[info]])


def convex(theta):
    """L = θ², information -2."""
    return theta[0] ** 2, np.array([2.0 * theta[0]]), np.array([[-2.0]])


def far_quadratic(theta):
    """L = -(θ - 100)² / 2 from 0 needs many capped steps."""
    r = theta[0] - 100.0
    return -0.5 * r * r, np.array([-r]), np.array([[1.0]])


# ═══════════════════════════════════════════════════════════════════════
# Convergence
# ═══════════════════════════════════════════════════════════════════════


class TestNewtonConvergence:

    def test_quadratic_one_step(self):
        """A quadratic is maximized by a single Newton step."""
        res = newton_raphson(quadratic, np.zeros(2))
        assert isinstance(res, NewtonResult)
        assert res.n_iter == 1
        assert_allclose(res.theta, C_QUAD, atol=1e-12)
        assert_allclose(res.covariance, np.linalg.inv(A_QUAD), rtol=1e-12)
        assert_allclose(res.information, A_QUAD)

    def test_poisson_like_maximum(self):
        res = newton_raphson(poisson_like, np.array([0.0]))
        assert_allclose(res.theta, [np.log(2.0)], rtol=1e-10)
        assert np.max(np.abs(res.score)) < DEFAULT_CONTROL.score_tol
        assert_allclose(res.covariance, [[0.5]], rtol=1e-8)

    def test_loglik_trace_non_decreasing(self):
        res = newton_raphson(poisson_like, np.array([-3.0]))
        trace = np.array(res.loglik_trace)
        assert len(trace) == res.n_iter + 1
        assert np.all(np.diff(trace) >= -1e-12)

    def test_start_not_modified(self):
        start = np.zeros(2)
        newton_raphson(quadratic, start)
        assert_allclose(start, [0.0, 0.0])

    def test_step_is_capped(self):
        """max_step bounds each step, so reaching θ = 100 takes 20+ steps."""
        res = newton_raphson(far_quadratic, np.array([0.0]),
                             NewtonControl(max_iter=50, max_step=5.0))
        assert res.n_iter >= 20
        assert_allclose(res.theta, [100.0], atol=1e-9)

    def test_deterministic(self):
        a = newton_raphson(poisson_like, np.array([1.5]))
        b = newton_raphson(poisson_like, np.array([1.5]))
        assert a.theta.tobytes() == b.theta.tobytes()
        assert a.loglik_trace == b.loglik_trace


# ═══════════════════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════════════════


class TestNewtonFailures:

    def test_monotone_likelihood_raises(self):
        """Score vanishes but steps do not: no finite maximizer."""
        with pytest.raises(ConvergenceError) as exc_info:
            newton_raphson(monotone, np.array([0.0]), NewtonControl(max_iter=25))
        assert exc_info.value.reason == "max_iterations"
        assert exc_info.value.iterations == 25

    def test_not_positive_definite_raises(self):
        with pytest.raises(ConvergenceError) as exc_info:
            newton_raphson(convex, np.array([1.0]))
        assert exc_info.value.reason == "not_positive_definite"
        assert exc_info.value.final_change == pytest.approx(-2.0)

    def test_non_finite_start_raises(self):
        def bad(theta):
            return np.nan, np.array([0.0]), np.array([[1.0]])

        with pytest.raises(ConvergenceError) as exc_info:
            newton_raphson(bad, np.array([0.0]))
        assert exc_info.value.reason == "non_finite"
        assert exc_info.value.iterations == 0

    def test_iteration_budget_exhausted(self):
        with pytest.raises(ConvergenceError, match="did not converge in 3"):
            newton_raphson(far_quadratic, np.array([0.0]), NewtonControl(max_iter=3))


# ═══════════════════════════════════════════════════════════════════════
# NewtonControl
# ═══════════════════════════════════════════════════════════════════════


class TestNewtonControl:

    def test_defaults(self):
        assert DEFAULT_CONTROL.score_tol == 1e-8
        assert DEFAULT_CONTROL.step_tol == 1e-6
        assert DEFAULT_CONTROL.max_iter == 50
        assert COX_CONTROL.max_iter == 30

    @pytest.mark.parametrize("kwargs, match", [
        ({"score_tol": 0.0}, "score_tol"),
        ({"step_tol": -1e-6}, "step_tol"),
        ({"max_iter": 0}, "max_iter"),
        ({"max_iter": 2.5}, "max_iter"),
        ({"max_step": 0.0}, "max_step"),
        ({"max_halving": -1}, "max_halving"),
    ])
    def test_invalid_settings_rejected(self, kwargs, match):
        with pytest.raises(ValidationError, match=match):
            NewtonControl(**kwargs)

    def test_frozen(self):
        with pytest.raises(Exception):
            DEFAULT_CONTROL.max_iter = 5
