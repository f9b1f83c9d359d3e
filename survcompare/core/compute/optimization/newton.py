"""
Newton-Raphson maximization shared by the iterative survival fitters.

Each model family supplies an objective callable returning the
log-likelihood, score vector and observed information matrix at a
parameter vector. The loop here is family-agnostic:

    For iteration 1..max_iter:
        (L, U, I) = objective(θ)
        Cholesky-factor I (must be positive definite)
        step = I^{-1} U, capped at max_step in max-norm
        Halve step until L(θ + step) >= L(θ) (at most max_halving times)
        Converged when max|U| < score_tol and max|step| < step_tol

Both conditions are required: on a monotone likelihood (e.g. a group with
no events under Cox) the score shrinks toward zero while the steps stay of
order one, and that case must surface as a ConvergenceError rather than
an estimate at some arbitrary point along the ridge.

References:
    Therneau, T. M. & Grambsch, P. M. (2000). Modeling Survival Data:
        Extending the Cox Model. Springer. Section 3.5.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import solve_triangular

from survcompare.core.exceptions import ConvergenceError, ValidationError


Objective = Callable[[NDArray], tuple[float, NDArray, NDArray]]


@dataclass(frozen=True)
class NewtonControl:
    """Convergence settings for Newton-Raphson.

    Attributes:
        score_tol: Max-norm of the score vector at convergence.
        step_tol: Max-norm of the final Newton step at convergence.
        max_iter: Iteration budget. The fit fails once it is exhausted.
        max_step: Cap on the max-norm of a single step, to keep exp() of
            linear predictors from overflowing on the first iterations.
        max_halving: Step-halving attempts before declaring divergence.
    """
    score_tol: float = 1e-8
    step_tol: float = 1e-6
    max_iter: int = 50
    max_step: float = 5.0
    max_halving: int = 20

    def __post_init__(self) -> None:
        if not self.score_tol > 0:
            raise ValidationError(
                f"score_tol must be positive, got {self.score_tol}"
            )
        if not self.step_tol > 0:
            raise ValidationError(
                f"step_tol must be positive, got {self.step_tol}"
            )
        if int(self.max_iter) != self.max_iter or self.max_iter < 1:
            raise ValidationError(
                f"max_iter must be a positive integer, got {self.max_iter}"
            )
        if not self.max_step > 0:
            raise ValidationError(
                f"max_step must be positive, got {self.max_step}"
            )
        if int(self.max_halving) != self.max_halving or self.max_halving < 0:
            raise ValidationError(
                f"max_halving must be a non-negative integer, "
                f"got {self.max_halving}"
            )


DEFAULT_CONTROL = NewtonControl()

# Cox partial likelihood is concave with one parameter per covariate;
# R's coxph uses 20 iterations, a few more costs nothing.
COX_CONTROL = NewtonControl(max_iter=30)


@dataclass(frozen=True)
class NewtonResult:
    """Converged Newton-Raphson state."""
    theta: NDArray
    loglik: float
    score: NDArray
    information: NDArray
    covariance: NDArray
    n_iter: int
    loglik_trace: tuple[float, ...]


def newton_raphson(
    objective: Objective,
    start: NDArray,
    control: NewtonControl = DEFAULT_CONTROL,
) -> NewtonResult:
    """Maximize a log-likelihood by Newton-Raphson.

    Parameters
    ----------
    objective : callable
        ``objective(theta) -> (loglik, score, information)`` where
        information is the negative Hessian of the log-likelihood.
    start : NDArray
        (q,) starting parameter vector.
    control : NewtonControl
        Tolerances and iteration budget.

    Returns
    -------
    NewtonResult

    Raises
    ------
    ConvergenceError
        If the information matrix is not positive definite, the objective
        becomes non-finite, no ascent step can be found, or the iteration
        budget is exhausted.
    """
    theta = np.array(start, dtype=np.float64, copy=True)

    loglik, score, info = objective(theta)
    _check_finite(loglik, score, info, iteration=0)
    trace = [float(loglik)]

    for iteration in range(1, control.max_iter + 1):
        chol = _cholesky(info, iteration)
        step = _cho_solve(chol, score)

        max_step = np.max(np.abs(step))
        if max_step > control.max_step:
            step = step * (control.max_step / max_step)

        if (np.max(np.abs(score)) < control.score_tol
                and np.max(np.abs(step)) < control.step_tol):
            covariance = _cho_inverse(chol)
            return NewtonResult(
                theta=theta,
                loglik=float(loglik),
                score=score,
                information=info,
                covariance=covariance,
                n_iter=iteration - 1,
                loglik_trace=tuple(trace),
            )

        # Step halving: never accept a step that lowers the log-likelihood.
        # Ties within rounding count as ascent so the final quadratic steps
        # are not rejected.
        slack = 1e-12 * (abs(loglik) + 1.0)
        for _ in range(control.max_halving + 1):
            candidate = theta + step
            new_loglik, new_score, new_info = objective(candidate)
            if np.isfinite(new_loglik) and new_loglik >= loglik - slack:
                break
            step = step / 2.0
        else:
            raise ConvergenceError(
                f"Newton-Raphson could not increase the log-likelihood "
                f"after {control.max_halving} step halvings "
                f"(iteration {iteration}, loglik={loglik:.6g})",
                iterations=iteration,
                final_change=float(np.max(np.abs(score))),
                reason="diverging",
                threshold=control.score_tol,
            )

        theta = candidate
        loglik, score, info = new_loglik, new_score, new_info
        _check_finite(loglik, score, info, iteration)
        trace.append(float(loglik))

    raise ConvergenceError(
        f"Newton-Raphson did not converge in {control.max_iter} iterations "
        f"(max|score|={np.max(np.abs(score)):.3g}, "
        f"score_tol={control.score_tol:g})",
        iterations=control.max_iter,
        final_change=float(np.max(np.abs(score))),
        reason="max_iterations",
        threshold=control.score_tol,
    )


def _check_finite(
    loglik: float,
    score: NDArray,
    info: NDArray,
    iteration: int,
) -> None:
    if not (np.isfinite(loglik)
            and np.all(np.isfinite(score))
            and np.all(np.isfinite(info))):
        raise ConvergenceError(
            f"Non-finite log-likelihood, score or information "
            f"at iteration {iteration}",
            iterations=iteration,
            reason="non_finite",
        )


def _cholesky(info: NDArray, iteration: int) -> NDArray:
    """Lower Cholesky factor of the information matrix."""
    try:
        return np.linalg.cholesky(info)
    except np.linalg.LinAlgError:
        min_eig = float(np.min(np.linalg.eigvalsh(info)))
        raise ConvergenceError(
            f"Information matrix is not positive definite at iteration "
            f"{iteration} (min eigenvalue {min_eig:.3g})",
            iterations=iteration,
            final_change=min_eig,
            reason="not_positive_definite",
        ) from None


def _cho_solve(chol: NDArray, b: NDArray) -> NDArray:
    y = solve_triangular(chol, b, lower=True)
    return solve_triangular(chol.T, y, lower=False)


def _cho_inverse(chol: NDArray) -> NDArray:
    """Inverse of L L^T given its lower factor L."""
    l_inv = solve_triangular(chol, np.eye(chol.shape[0]), lower=True)
    return l_inv.T @ l_inv
