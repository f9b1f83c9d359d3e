"""
Exception hierarchy for survcompare.

All exceptions inherit from SurvCompareError to allow catching any
library-specific error. Domain-specific exceptions inherit from the
appropriate base class here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class SurvCompareError(Exception):
    """Base exception for all survcompare errors."""
    pass


class ValidationError(SurvCompareError, ValueError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks. Subclasses
    ValueError so that argument misuse can be caught the usual way.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class EmptyGroupError(ValidationError):
    """
    A requested group has no observations.

    Attributes:
        group: The group value that was requested
        column: Covariate column the group was selected on
    """

    def __init__(
        self,
        message: str,
        group: float | None = None,
        column: int | None = None,
    ):
        super().__init__(message)
        self.group = group
        self.column = column


class DegenerateDataError(ValidationError):
    """
    The data cannot support any model fit.

    Raised when the event-time grid is empty (no events anywhere in the
    dataset).

    Attributes:
        n_observations: Number of observations in the dataset
        n_events: Number of observed events (0 for an empty grid)
    """

    def __init__(
        self,
        message: str,
        n_observations: int | None = None,
        n_events: int | None = None,
    ):
        super().__init__(message)
        self.n_observations = n_observations
        self.n_events = n_events


class ConvergenceError(SurvCompareError):
    """
    Iterative algorithm failed to converge.

    Raised when Newton-Raphson fails to meet its convergence criteria
    within the iteration budget, or when the information matrix stops
    being positive definite along the way.

    Attributes:
        iterations: Number of iterations completed
        final_change: Final score norm or parameter change
        reason: Why convergence failed ('max_iterations', 'diverging',
            'not_positive_definite', 'non_finite')
        threshold: The convergence threshold that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold
