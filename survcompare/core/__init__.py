"""
Core infrastructure for survcompare.

This module provides shared abstractions and utilities used by the
survival model fitters.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing, Newton-Raphson
"""

from survcompare.core.result import Result
from survcompare.core.exceptions import (
    SurvCompareError,
    ValidationError,
    DimensionError,
    EmptyGroupError,
    DegenerateDataError,
    ConvergenceError,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "SurvCompareError",
    "ValidationError",
    "DimensionError",
    "EmptyGroupError",
    "DegenerateDataError",
    "ConvergenceError",
]
