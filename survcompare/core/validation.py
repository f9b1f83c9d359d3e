"""
Input validators for survival data.

Each validator checks one property of one input and raises on the first
violation, naming the offending argument and showing the bad values.
Nothing is repaired silently: a negative follow-up time or an event code
of 2 is an error, never clipped or recoded.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from survcompare.core.exceptions import ValidationError, DimensionError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Convert an array-like of numbers (or booleans) to a float64 array.

    Args:
        array: Times, event flags or covariates as given by the caller
        name: Argument name for error messages

    Returns:
        float64 copy of the input; True/False become 1.0/0.0

    Raises:
        ValidationError: If the input is ragged, mixed or non-numeric
    """
    try:
        arr = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    kind = arr.dtype.kind
    if kind == "O":
        raise ValidationError(
            f"{name}: got object dtype; every entry must be a number"
        )
    if kind not in "biuf":
        raise ValidationError(
            f"{name}: non-numeric dtype {arr.dtype}; "
            f"encode groups and events as numbers"
        )

    return arr.astype(np.float64)


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Reject NaN and infinite entries.

    Raises:
        ValidationError: Reporting how many NaN and Inf values were found
    """
    finite = np.isfinite(array)
    if finite.all():
        return
    n_nan = int(np.isnan(array).sum())
    n_inf = int(np.isinf(array).sum())
    raise ValidationError(
        f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf); "
        f"missing follow-up must be dropped before fitting"
    )


def check_consistent_length(
    *arrays: NDArray[np.floating[Any]],
    names: tuple[str, ...]
) -> None:
    """
    Require every array to have the same number of rows.

    Raises:
        ValueError: If ``names`` does not name every array
        DimensionError: If the row counts differ
    """
    if len(arrays) != len(names):
        raise ValueError(
            f"Number of arrays ({len(arrays)}) must match number of names ({len(names)})"
        )

    rows = [(nm, arr.shape[0]) for nm, arr in zip(names, arrays)]
    if len({r for _, r in rows}) > 1:
        details = ", ".join(f"{nm}={r}" for nm, r in rows)
        raise DimensionError(f"Inconsistent lengths: {details}")


def check_positive(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify every element is strictly positive.

    Raises:
        ValidationError: If any element is <= 0
    """
    bad = np.flatnonzero(array <= 0)
    if len(bad) > 0:
        raise ValidationError(
            f"{name}: must be strictly positive, got {len(bad)} value(s) <= 0 "
            f"(first at index {int(bad[0])}: {array[bad[0]]})"
        )


def check_binary(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array contains only 0 and 1.

    Raises:
        ValidationError: If any other value is present
    """
    unique = np.unique(array)
    if not np.all(np.isin(unique, [0.0, 1.0])):
        raise ValidationError(
            f"{name}: must contain only 0 and 1, "
            f"got unique values: {unique}"
        )
