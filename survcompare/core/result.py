"""
Generic result container for all survcompare computations.

The Result class provides a standardized envelope that every fitted model
uses. This enables shared tooling for timing, warnings and reproducibility
while allowing each model family to define its own parameter structure.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (converged, iterations, diagnostics)
    - timing is optional (don't burden unit tests)
    - provenance records library versions for reproducibility
    - Immutable (frozen=True) for reproducibility
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


def _default_provenance() -> dict[str, str]:
    """Versions of the libraries that produced a result."""
    import numpy
    import scipy

    from survcompare import __version__

    return {
        'survcompare_version': __version__,
        'numpy_version': numpy.__version__,
        'scipy_version': scipy.__version__,
    }


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for survival model fits.

    Type Parameters:
        P: The model-specific parameter payload type

    Attributes:
        params: Model-specific parameters (coefficients, baseline, etc.)
        info: Structured metadata (method, convergence, diagnostics)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the routine that produced this result
        warnings: Non-fatal issues encountered during computation
        provenance: Library versions, filled in automatically

    Examples:
        >>> # Direct method (no convergence notion)
        >>> Result(
        ...     params=KMParams(...),
        ...     info={'method': 'Kaplan-Meier'},
        ...     timing={'total_seconds': 0.01},
        ...     backend_name='cpu_km'
        ... )

        >>> # Iterative method
        >>> Result(
        ...     params=CureParams(...),
        ...     info={'method': 'PHPH cure', 'converged': True, 'n_iter': 9},
        ...     timing={'total_seconds': 0.5},
        ...     backend_name='cpu_cure'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
    provenance: dict[str, str] = field(default_factory=_default_provenance)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
