"""
Shared compute infrastructure for survcompare.

IMPORTANT: This is NOT where model-specific likelihoods live. Those go in
survival/. This module contains shared NUMERIC infrastructure.

Submodules:
    timing: Execution timing utilities
    optimization: Newton-Raphson loop and its convergence settings
"""

from survcompare.core.compute.timing import Timer, timed
from survcompare.core.compute.optimization import (
    NewtonControl,
    NewtonResult,
    newton_raphson,
)

__all__ = [
    # Timing
    "Timer",
    "timed",
    # Optimization
    "NewtonControl",
    "NewtonResult",
    "newton_raphson",
]
