"""
PHPH (proportional hazards / proportional hazards) mixture cure model.

Model (Tsodikov's bounded cumulative hazard formulation):
    θ(x) = exp(α + x_long @ β_long)       long-term effect, cure fraction exp(-θ)
    η(x) = exp(x_short @ β_short)         short-term effect on timing
    S(t | x) = exp(-θ (1 - S_b(t) ** η))

S_b is a proper discrete baseline distribution on the event-time grid:
one positive log-decrement a_k = exp(γ_k) at each event time except the
last, where S_b drops to zero. With A(t) = -log S_b(t),

    H(t | x) = -log S(t | x) = θ (1 - exp(-η A(t)))

and H = θ from the last event time on, so the population curve levels
off at exactly exp(-θ), the cured fraction.

Full discrete likelihood over φ = (γ_1..γ_{m-1}, α, β_long, β_short):
    event at t_k:     S(t_{k-1}) - S(t_k)
    censored at t:    S(t)

Score and information are assembled analytically. H is written as a
function of three inner variables u = (A, λ = log θ, ν = log η) whose
derivatives are closed form; the chain rule to φ is linear except for
the diagonal second derivative of A in γ.

References:
    Tsodikov, A. (1998). A proportional hazards model taking account of
        long-term survivors. Biometrics, 54(4), 1508-1516.
    Tsodikov, A., Ibrahim, J. G. & Yakovlev, A. Y. (2003). Estimating cure
        rates from survival data: an alternative to two-component mixture
        models. JASA, 98(464), 1063-1078.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial

import numpy as np
from numpy.typing import NDArray

from survcompare.core.compute.optimization import (
    DEFAULT_CONTROL,
    NewtonControl,
    newton_raphson,
)
from survcompare.survival._common import CureParams, wald_table
from survcompare.survival._cox import cox_fit
from survcompare.survival._grid import EventGrid, event_time_grid


def cure_fit(
    time: NDArray,
    event: NDArray,
    X: NDArray,
    X_long: NDArray,
    names: tuple[str, ...],
    long_names: tuple[str, ...],
    control: NewtonControl = DEFAULT_CONTROL,
) -> CureParams:
    """Fit the PHPH cure model by full maximum likelihood.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    X : NDArray
        (n, p_short) short-term covariates.
    X_long : NDArray
        (n, p_long) long-term (cure fraction) covariates, without intercept.
    names, long_names : tuple of str
        Short-term and long-term covariate names.
    control : NewtonControl
        Newton-Raphson tolerances and iteration budget.

    Returns
    -------
    CureParams

    Raises
    ------
    DegenerateDataError
        If there are no events.
    ConvergenceError
        If Newton-Raphson fails, for the starting Cox fit or the cure fit.
    """
    n, p_short = X.shape
    p_long = X_long.shape[1]
    grid = event_time_grid(time, event)
    m1 = grid.m - 1

    data = _design_matrices(grid, event, X, X_long)
    objective = partial(_score_and_information, data=data)

    start = np.concatenate([
        _baseline_start(grid),
        [np.log(grid.nelson_aalen()[-1])],
        np.zeros(p_long),
        cox_fit(time, event, X, names).coefficients,
    ])

    nr = newton_raphson(objective, start, control)

    jumps = np.exp(nr.theta[:m1])
    decrements = np.concatenate([np.exp(-jumps), [0.0]])

    coef = nr.theta[m1:]
    covariance = nr.covariance[m1:, m1:]
    se, z, p_values = wald_table(coef, covariance)

    return CureParams(
        coefficients=coef,
        standard_errors=se,
        z_statistics=z,
        p_values=p_values,
        covariance=covariance,
        loglik=nr.loglik,
        event_times=grid.times,
        baseline_decrements=decrements,
        baseline_survival=np.cumprod(decrements),
        long_names=long_names,
        short_names=names,
        n_events=int(np.sum(event)),
        n_observations=n,
        n_iter=nr.n_iter,
    )


def _baseline_start(grid: EventGrid) -> NDArray:
    """Log-jumps of S_b(t_k) = 1 - H_NA(t_k) / H_NA(t_m), k < m."""
    H = grid.nelson_aalen()
    log_sb = np.log1p(-H[:-1] / H[-1])
    jumps = -np.diff(np.concatenate([[0.0], log_sb]))
    return np.log(jumps)


@dataclass(frozen=True)
class _CureData:
    """Parameter-free pieces of the likelihood.

    Each observation is evaluated at its own time ("current" point) and,
    for events, at the previous grid time.
    """
    below_cur: NDArray       # (n, m-1) baseline jump l at or before t_i
    below_prev: NDArray      # (n, m-1) same, one grid time earlier
    at_end: NDArray          # (n,) t_i at or after the last event time
    is_event: NDArray        # (n,) bool
    J_lam: NDArray           # (n, P) d log θ_i / dφ
    J_nu: NDArray            # (n, P) d log η_i / dφ
    X_long: NDArray
    X_short: NDArray


def _design_matrices(
    grid: EventGrid,
    event: NDArray,
    X: NDArray,
    X_long: NDArray,
) -> _CureData:
    n, p_short = X.shape
    p_long = X_long.shape[1]
    m1 = grid.m - 1
    P = m1 + 1 + p_long + p_short

    free = np.arange(m1)[np.newaxis, :]
    k_cur = grid.position[:, np.newaxis]
    k_prev = np.maximum(grid.position - 1, 0)[:, np.newaxis]

    J_lam = np.zeros((n, P), dtype=np.float64)
    J_lam[:, m1] = 1.0
    J_lam[:, m1 + 1:m1 + 1 + p_long] = X_long
    J_nu = np.zeros((n, P), dtype=np.float64)
    J_nu[:, m1 + 1 + p_long:] = X

    return _CureData(
        below_cur=(free < k_cur).astype(np.float64),
        below_prev=(free < k_prev).astype(np.float64),
        at_end=grid.position == grid.m,
        is_event=event == 1,
        J_lam=J_lam,
        J_nu=J_nu,
        X_long=X_long,
        X_short=X,
    )


@dataclass(frozen=True)
class _Point:
    """H = -log S at one time per observation, with derivatives in φ.

    ``hu`` and ``huu`` are the gradient and Hessian of H in the inner
    variables (A, log θ, log η); ``grad`` is the gradient in φ.
    """
    H: NDArray               # (n,)
    grad: NDArray            # (n, P)
    hu: NDArray              # (n, 3)
    huu: NDArray             # (n, 3, 3)
    jac: tuple[NDArray, NDArray, NDArray]
    dA: NDArray              # (n, m-1) dA_i / dγ_l

    def weighted_hessian(self, weights: NDArray) -> NDArray:
        """Σ_i weights_i * d²H_i / dφ dφ'."""
        P = self.grad.shape[1]
        out = np.zeros((P, P), dtype=np.float64)
        for r in range(3):
            for s in range(3):
                w = weights * self.huu[:, r, s]
                out += self.jac[r].T @ (w[:, np.newaxis] * self.jac[s])
        # d²A/dγ_l² = dA/dγ_l
        m1 = self.dA.shape[1]
        idx = np.arange(m1)
        out[idx, idx] += self.dA.T @ (weights * self.hu[:, 0])
        return out


def _point(
    below: NDArray,
    at_end: NDArray,
    a: NDArray,
    lam: NDArray,
    nu: NDArray,
    J_lam: NDArray,
    J_nu: NDArray,
) -> _Point:
    n, P = J_lam.shape
    m1 = below.shape[1]

    dA = below * a[np.newaxis, :]
    # S_b = 0 from the last event time on: A = inf, exp(-η A) = 0.
    # Products with A are masked to avoid inf * 0.
    A = np.where(at_end, 0.0, dA.sum(axis=1))
    theta = np.exp(lam)
    eta = np.exp(nu)
    w = np.where(at_end, 0.0, np.exp(-eta * A))
    Aw = A * w
    A2w = A * Aw
    te = theta * eta

    H = theta * (1.0 - w)

    hu = np.column_stack([te * w, H, te * Aw])

    huu = np.empty((n, 3, 3), dtype=np.float64)
    huu[:, 0, 0] = -te * eta * w
    huu[:, 0, 1] = huu[:, 1, 0] = te * w
    huu[:, 0, 2] = huu[:, 2, 0] = te * (w - eta * Aw)
    huu[:, 1, 1] = H
    huu[:, 1, 2] = huu[:, 2, 1] = te * Aw
    huu[:, 2, 2] = te * (Aw - eta * A2w)

    J_A = np.zeros((n, P), dtype=np.float64)
    J_A[:, :m1] = dA
    jac = (J_A, J_lam, J_nu)

    grad = hu[:, 0:1] * J_A + hu[:, 1:2] * J_lam + hu[:, 2:3] * J_nu

    return _Point(H=H, grad=grad, hu=hu, huu=huu, jac=jac, dA=dA)


def _score_and_information(
    phi: NDArray,
    data: _CureData,
) -> tuple[float, NDArray, NDArray]:
    """Full log-likelihood, score and observed information at φ.

    Trial points rejected by step halving may overflow; the result is then
    non-finite and Newton-Raphson discards it, so floating-point warnings
    are silenced for the whole evaluation.
    """
    with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
        return _evaluate(phi, data)


def _evaluate(phi: NDArray, data: _CureData) -> tuple[float, NDArray, NDArray]:
    m1 = data.below_cur.shape[1]
    p_long = data.X_long.shape[1]

    a = np.exp(phi[:m1])
    lam = phi[m1] + data.X_long @ phi[m1 + 1:m1 + 1 + p_long]
    nu = data.X_short @ phi[m1 + 1 + p_long:]

    cur = _point(data.below_cur, data.at_end, a, lam, nu, data.J_lam, data.J_nu)
    prev = _point(data.below_prev, np.zeros_like(data.at_end), a, lam, nu,
                  data.J_lam, data.J_nu)

    ev = data.is_event
    dH = cur.H - prev.H

    # Event term log(S_prev - S_cur) = -H_prev + log(1 - exp(-dH));
    # rho = exp(-dH) / (1 - exp(-dH)).
    rho = np.where(ev, 1.0 / np.expm1(np.where(ev, dH, 1.0)), 0.0)
    log_drop = np.log(-np.expm1(-dH[ev]))

    loglik = float(-np.sum(cur.H[~ev]) - np.sum(prev.H[ev]) + np.sum(log_drop))

    w_cur = np.where(ev, rho, -1.0)
    w_prev = np.where(ev, -(1.0 + rho), 0.0)

    score = cur.grad.T @ w_cur + prev.grad.T @ w_prev

    d_grad = cur.grad - prev.grad
    outer_w = np.where(ev, rho * (1.0 + rho), 0.0)
    info = (
        d_grad.T @ (outer_w[:, np.newaxis] * d_grad)
        - cur.weighted_hessian(w_cur)
        - prev.weighted_hessian(w_prev)
    )
    info = (info + info.T) / 2.0

    return loglik, score, info
