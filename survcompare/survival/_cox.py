"""
Cox Proportional Hazards model via Newton-Raphson.

Implements Breslow's (default) and Efron's methods for tied event times,
matching R's survival::coxph(ties="breslow") and basehaz(centered=FALSE).

Algorithm:
    Initialize β = 0
    Maximize the partial log-likelihood with the shared Newton-Raphson
    loop, supplying L(β), score U(β) and information I(β).
    Baseline cumulative hazard by the Breslow estimator at the MLE.

Breslow's partial likelihood:
    L(β) = Σ_{j: event times} [ Σ_{i ∈ D_j} x_i @ β
            - d_j * log(Σ_{l ∈ R_j} exp(x_l @ β)) ]

Efron's partial likelihood:
    L(β) = Σ_j [ Σ_{i ∈ D_j} x_i @ β
            - Σ_{s=0}^{d_j-1} log(Σ_{l ∈ R_j} exp(x_l @ β)
                - (s/d_j) * Σ_{i ∈ D_j} exp(x_i @ β)) ]

    where D_j = set of events at time t_j, d_j = |D_j|,
          R_j = risk set at time t_j (alive just before t_j).

Breslow baseline cumulative hazard:
    H0(t) = Σ_{t_j <= t} d_j / Σ_{l ∈ R_j} exp(x_l @ β)

References:
    Cox, D. R. (1972). Regression models and life-tables. JRSS-B, 34(2), 187-220.
    Breslow, N. (1974). Covariance analysis of censored survival data.
        Biometrics, 30(1), 89-99.
    Efron, B. (1977). The efficiency of Cox's likelihood function for
        censored data. JASA, 72(359), 557-565.
    R Core Team. survival::coxph, agreg.fit
"""

from __future__ import annotations

from functools import partial

import numpy as np
from numpy.typing import NDArray

from survcompare.core.compute.optimization import (
    COX_CONTROL,
    NewtonControl,
    newton_raphson,
)
from survcompare.survival._common import CoxParams, wald_table
from survcompare.survival._grid import event_time_grid


def cox_fit(
    time: NDArray,
    event: NDArray,
    X: NDArray,
    names: tuple[str, ...],
    ties: str = "breslow",
    control: NewtonControl = COX_CONTROL,
) -> CoxParams:
    """Fit Cox proportional hazards model.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    X : NDArray
        (n, p) covariate matrix (NO intercept).
    names : tuple of str
        Covariate names.
    ties : str
        Method for handling tied event times: "breslow" (default) or "efron".
    control : NewtonControl
        Newton-Raphson tolerances and iteration budget.

    Returns
    -------
    CoxParams

    Raises
    ------
    DegenerateDataError
        If there are no events.
    ConvergenceError
        If Newton-Raphson fails (e.g. monotone likelihood when one group
        has no events).
    """
    n, p = X.shape
    grid = event_time_grid(time, event)

    objective = partial(
        _score_and_information,
        time=time, event=event, X=X,
        unique_event_times=grid.times, ties=ties,
    )

    start = np.zeros(p, dtype=np.float64)
    null_loglik = objective(start)[0]

    nr = newton_raphson(objective, start, control)
    beta = nr.theta

    se, z, p_values = wald_table(beta, nr.covariance)

    return CoxParams(
        coefficients=beta,
        hazard_ratios=np.exp(beta),
        standard_errors=se,
        z_statistics=z,
        p_values=p_values,
        covariance=nr.covariance,
        loglik=(float(null_loglik), nr.loglik),
        concordance=_concordance(beta, time, event, X),
        event_times=grid.times,
        baseline_cumhaz=baseline_cumhaz(beta, time, event, X, grid.times, ties),
        names=names,
        n_events=int(np.sum(event)),
        n_observations=n,
        n_iter=nr.n_iter,
        ties=ties,
    )


def _score_and_information(
    beta: NDArray,
    time: NDArray,
    event: NDArray,
    X: NDArray,
    unique_event_times: NDArray,
    ties: str,
) -> tuple[float, NDArray, NDArray]:
    """Compute partial log-likelihood, score vector, and observed information.

    Returns
    -------
    (loglik, score, info_matrix)
        loglik : float
        score : (p,) gradient of log-likelihood
        info_matrix : (p, p) negative Hessian (observed information)
    """
    n, p = X.shape
    eta = X @ beta

    # Center eta for numerical stability (cancels in the partial likelihood)
    eta_c = eta - np.max(eta)
    exp_eta = np.exp(eta_c)

    loglik = 0.0
    score = np.zeros(p, dtype=np.float64)
    info_matrix = np.zeros((p, p), dtype=np.float64)

    for t_j in unique_event_times:
        risk_mask = time >= t_j
        risk_exp = exp_eta[risk_mask]
        risk_X = X[risk_mask]

        # Weighted sums over risk set
        S0 = np.sum(risk_exp)                          # scalar
        S1 = risk_X.T @ risk_exp                       # (p,)
        S2 = (risk_X * risk_exp[:, np.newaxis]).T @ risk_X  # (p, p)

        event_at_tj = (time == t_j) & (event == 1)
        d_j = int(np.sum(event_at_tj))

        event_X = X[event_at_tj]
        event_X_sum = np.sum(event_X, axis=0)  # (p,)
        event_eta_c_sum = np.sum(eta_c[event_at_tj])

        if ties == "breslow" or d_j == 1:
            # Breslow (or single event, both give the same result)
            loglik += event_eta_c_sum - d_j * np.log(S0)
            score += event_X_sum - d_j * S1 / S0
            info_matrix += d_j * (S2 / S0 - np.outer(S1, S1) / S0**2)

        else:
            event_exp = exp_eta[event_at_tj]
            death_S0 = np.sum(event_exp)
            death_S1 = event_X.T @ event_exp
            death_S2 = (event_X * event_exp[:, np.newaxis]).T @ event_X

            loglik += event_eta_c_sum
            score += event_X_sum

            for s in range(d_j):
                frac = s / d_j
                denom = S0 - frac * death_S0
                mean = (S1 - frac * death_S1) / denom

                loglik -= np.log(denom)
                score -= mean
                info_matrix += (S2 - frac * death_S2) / denom - np.outer(mean, mean)

    return loglik, score, info_matrix


def baseline_cumhaz(
    beta: NDArray,
    time: NDArray,
    event: NDArray,
    X: NDArray,
    unique_event_times: NDArray,
    ties: str,
) -> NDArray:
    """Baseline cumulative hazard H0 at each event time, for x = 0.

    Breslow increments d_j / S0_j; with Efron ties the increments are
    Σ_s 1 / (S0_j - (s/d_j) * D0_j), matching R's survfit.coxph.
    """
    exp_eta = np.exp(X @ beta)
    increments = np.empty(len(unique_event_times), dtype=np.float64)

    for j, t_j in enumerate(unique_event_times):
        S0 = np.sum(exp_eta[time >= t_j])
        event_at_tj = (time == t_j) & (event == 1)
        d_j = int(np.sum(event_at_tj))

        if ties == "breslow" or d_j == 1:
            increments[j] = d_j / S0
        else:
            death_S0 = np.sum(exp_eta[event_at_tj])
            fracs = np.arange(d_j) / d_j
            increments[j] = np.sum(1.0 / (S0 - fracs * death_S0))

    return np.cumsum(increments)


def _concordance(
    beta: NDArray,
    time: NDArray,
    event: NDArray,
    X: NDArray,
) -> float:
    """Harrell's concordance statistic (C-statistic).

    C = P(risk_i > risk_j | T_i < T_j, event_i = 1)
    """
    eta = X @ beta

    concordant = 0
    discordant = 0
    tied_risk = 0

    for i in np.flatnonzero(event == 1):
        later = time > time[i]
        concordant += int(np.sum(eta[i] > eta[later]))
        discordant += int(np.sum(eta[i] < eta[later]))
        tied_risk += int(np.sum(eta[i] == eta[later]))

    total = concordant + discordant + tied_risk
    if total == 0:
        return 0.5

    return (concordant + 0.5 * tied_risk) / total
