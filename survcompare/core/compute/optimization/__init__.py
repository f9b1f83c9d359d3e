"""
Optimization utilities for survcompare.

Provides the Newton-Raphson loop shared by the Cox, proportional-odds
and cure-model fitters, together with its convergence settings.
"""

from survcompare.core.compute.optimization.newton import (
    COX_CONTROL,
    DEFAULT_CONTROL,
    NewtonControl,
    NewtonResult,
    newton_raphson,
)

__all__ = [
    "COX_CONTROL",
    "DEFAULT_CONTROL",
    "NewtonControl",
    "NewtonResult",
    "newton_raphson",
]
