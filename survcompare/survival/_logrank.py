"""
Log-rank test of equal group survival, with Fleming-Harrington weights.

On the event-time grid let n_kj / d_kj be the number at risk / failing in
group k at t_j, N_j and D_j the pooled totals, and w_j the weight. Then

    O_k = Σ_j w_j d_kj                 E_k = Σ_j w_j n_kj D_j / N_j
    V   = Σ_j w_j² D_j (N_j - D_j) / (N_j² (N_j - 1)) · (N_j diag(n_j) - n_j n_j')

and (O - E)' V⁻ (O - E), over the first K - 1 groups, is chi-squared on
K - 1 degrees of freedom. w_j = 1 is the Mantel-Haenszel log-rank test;
w_j = S(t_j-)^rho, with S the pooled Kaplan-Meier curve, gives the G-rho
family (rho = 1: Peto & Peto). Values agree with R's survival::survdiff().

References:
    Harrington, D. P. & Fleming, T. R. (1982). A class of rank test
        procedures for censored survival data. Biometrika, 69(3), 553-566.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from survcompare.core.exceptions import ValidationError
from survcompare.survival._common import LogRankParams
from survcompare.survival._grid import EventGrid, event_time_grid


def logrank_test(
    time: NDArray,
    event: NDArray,
    group: NDArray,
    rho: float = 0.0,
) -> LogRankParams:
    """Weighted log-rank comparison of the groups in ``group``.

    Raises
    ------
    ValidationError
        If fewer than two groups are present.
    DegenerateDataError
        If there are no events.
    """
    labels, member = np.unique(group, return_inverse=True)
    if len(labels) < 2:
        raise ValidationError(
            f"Need at least 2 groups for log-rank test, got {len(labels)}"
        )

    grid = event_time_grid(time, event)
    at_risk, failed = _group_counts(grid, time, event, member, len(labels))

    D, N = grid.n_events, grid.n_risk
    if rho == 0.0:
        w = np.ones(grid.m)
    else:
        pooled_before = np.cumprod(np.concatenate([[1.0], 1.0 - D / N]))[:-1]
        w = pooled_before ** rho

    observed = w @ failed
    expected = w @ (at_risk * (D / N)[:, np.newaxis])

    # Hypergeometric variance; zero where only one subject is at risk.
    c = np.divide(w ** 2 * D * (N - D), N ** 2 * (N - 1.0),
                  out=np.zeros(grid.m), where=N > 1)
    V = np.diag((c * N) @ at_risk) - at_risk.T @ (c[:, np.newaxis] * at_risk)

    # Σ_k (O_k - E_k) = 0: the last group is redundant.
    df = len(labels) - 1
    u = (observed - expected)[:df]
    V = V[:df, :df]
    statistic = 0.0 if not V.any() else float(u @ np.linalg.pinv(V) @ u)

    return LogRankParams(
        statistic=statistic,
        df=df,
        p_value=float(stats.chi2.sf(statistic, df)),
        n_groups=len(labels),
        observed=observed,
        expected=expected,
        n_per_group=np.bincount(member).astype(np.float64),
        rho=rho,
        group_labels=labels,
    )


def _group_counts(
    grid: EventGrid,
    time: NDArray,
    event: NDArray,
    member: NDArray,
    n_groups: int,
) -> tuple[NDArray, NDArray]:
    """(m, K) numbers at risk and failing per grid time and group."""
    at_risk = np.empty((grid.m, n_groups))
    failed = np.zeros((grid.m, n_groups))
    for k in range(n_groups):
        times_k = np.sort(time[member == k])
        at_risk[:, k] = len(times_k) - np.searchsorted(times_k, grid.times)
        hit = (member == k) & (event == 1)
        np.add.at(failed[:, k], grid.position[hit] - 1, 1.0)
    return at_risk, failed
