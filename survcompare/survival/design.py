"""
SurvivalDesign: immutable container for time-to-event data.

Wraps time, event indicator, covariates (the binary treatment group being
the usual single column) and record identifiers. Validates inputs at
construction time; all downstream code trusts clean data.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from survcompare.core.exceptions import DimensionError, ValidationError
from survcompare.core.validation import (
    check_array,
    check_binary,
    check_consistent_length,
    check_finite,
    check_positive,
)

if TYPE_CHECKING:
    import pandas as pd


@dataclass(frozen=True)
class SurvivalDesign:
    """Immutable survival data container.

    Parameters
    ----------
    time : NDArray
        (n,) months to event or censoring. Strictly positive.
    event : NDArray
        (n,) event indicator: 1 = event observed, 0 = censored.
    X : NDArray or None
        (n, p) covariate matrix. None for KM / log-rank.
    names : tuple of str
        Covariate names, one per column of X.
    ids : tuple
        Record identifiers, one per observation.
    """

    time: NDArray
    event: NDArray
    X: NDArray | None
    names: tuple[str, ...]
    ids: tuple[Hashable, ...]

    @classmethod
    def for_survival(
        cls,
        time,
        event,
        X=None,
        *,
        names: Sequence[str] | None = None,
        ids: Sequence[Hashable] | None = None,
    ) -> SurvivalDesign:
        """Create and validate survival data.

        Parameters
        ----------
        time : array-like
            Time to event or censoring.
        event : array-like
            Event indicator (0/1 or bool).
        X : array-like or None
            Optional covariate matrix; a 1D array is one covariate.
        names : sequence of str or None
            Covariate names. Defaults to "x0", "x1", ...
        ids : sequence or None
            Record identifiers. Defaults to 0..n-1.

        Returns
        -------
        SurvivalDesign

        Raises
        ------
        ValidationError
            If inputs are invalid.
        """
        time = check_array(time, "time").ravel()
        event = check_array(event, "event").ravel()

        n = len(time)

        if n == 0:
            raise ValidationError("time must have at least one observation")

        if len(event) != n:
            raise DimensionError(
                f"time and event must have the same length: "
                f"got {n} and {len(event)}"
            )

        check_finite(time, "time")
        check_positive(time, "time")
        check_binary(event, "event")

        X_arr = None
        if X is not None:
            X_arr = check_array(X, "X")
            if X_arr.ndim == 1:
                X_arr = X_arr.reshape(-1, 1)
            if X_arr.ndim != 2:
                raise DimensionError(
                    f"X must be 1D or 2D, got {X_arr.ndim}D"
                )
            if X_arr.shape[0] != n:
                raise DimensionError(
                    f"X must have {n} rows to match time, "
                    f"got {X_arr.shape[0]}"
                )
            check_finite(X_arr, "X")

        p = X_arr.shape[1] if X_arr is not None else 0
        if names is None:
            names_t = tuple(f"x{j}" for j in range(p))
        else:
            names_t = tuple(str(nm) for nm in names)
            if len(names_t) != p:
                raise DimensionError(
                    f"names must have {p} entries to match X, "
                    f"got {len(names_t)}"
                )

        ids_t = tuple(range(n)) if ids is None else tuple(ids)
        if len(ids_t) != n:
            raise DimensionError(
                f"ids must have {n} entries to match time, got {len(ids_t)}"
            )

        return cls(
            time=time,
            event=event,
            X=X_arr,
            names=names_t,
            ids=ids_t,
        )

    @classmethod
    def from_records(
        cls,
        records: Mapping[Hashable, Any],
        *,
        covariates: Sequence[str] = ("group",),
    ) -> SurvivalDesign:
        """Build a design from a mapping of record-id to observation.

        Each value is either a sequence ``(time, event, cov_1, ..., cov_p,
        ...)`` where trailing extra fields are ignored, or a mapping with
        ``"time"``, ``"event"`` and one key per covariate name (other keys
        ignored). Records keep the mapping's iteration order.

        Parameters
        ----------
        records : Mapping
            record-id -> observation.
        covariates : sequence of str
            Covariate names, in column order.

        Returns
        -------
        SurvivalDesign
        """
        if len(records) == 0:
            raise ValidationError("records must contain at least one observation")

        p = len(covariates)
        ids = []
        rows = []
        for rid, rec in records.items():
            if isinstance(rec, Mapping):
                missing = [k for k in ("time", "event", *covariates) if k not in rec]
                if missing:
                    raise ValidationError(
                        f"record {rid!r}: missing field(s) {missing}"
                    )
                row = [rec["time"], rec["event"]] + [rec[c] for c in covariates]
            else:
                rec = tuple(rec)
                if len(rec) < 2 + p:
                    raise ValidationError(
                        f"record {rid!r}: expected at least {2 + p} fields "
                        f"(time, event, {', '.join(covariates)}), got {len(rec)}"
                    )
                row = list(rec[:2 + p])
            ids.append(rid)
            rows.append(row)

        data = check_array(rows, "records")
        return cls.for_survival(
            data[:, 0],
            data[:, 1],
            data[:, 2:] if p > 0 else None,
            names=covariates,
            ids=ids,
        )

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        *,
        time: str = "time",
        event: str = "event",
        covariates: Sequence[str] = ("group",),
    ) -> SurvivalDesign:
        """Build a design from named columns of a pandas DataFrame.

        The DataFrame index supplies the record identifiers; other columns
        are ignored.
        """
        missing = [c for c in (time, event, *covariates) if c not in df.columns]
        if missing:
            raise ValidationError(f"DataFrame is missing column(s) {missing}")

        X = df[list(covariates)].to_numpy() if covariates else None
        return cls.for_survival(
            df[time].to_numpy(),
            df[event].to_numpy(),
            X,
            names=covariates,
            ids=df.index.tolist(),
        )

    @property
    def n(self) -> int:
        """Number of observations."""
        return len(self.time)

    @property
    def p(self) -> int | None:
        """Number of covariates (None if no covariates)."""
        return self.X.shape[1] if self.X is not None else None

    @property
    def n_events(self) -> int:
        """Number of observed events."""
        return int(np.sum(self.event))

    def covariate(self, column: int | str = 0) -> NDArray:
        """One covariate column, by position or name."""
        if self.X is None:
            raise ValidationError("design has no covariates")
        if isinstance(column, str):
            if column not in self.names:
                raise ValidationError(
                    f"unknown covariate '{column}', have {list(self.names)}"
                )
            column = self.names.index(column)
        return self.X[:, column]

    def subset(self, mask: NDArray) -> SurvivalDesign:
        """Observations selected by a boolean mask, as a new design."""
        mask = np.asarray(mask, dtype=bool)
        check_consistent_length(self.time, mask, names=("time", "mask"))
        return SurvivalDesign.for_survival(
            self.time[mask],
            self.event[mask],
            self.X[mask] if self.X is not None else None,
            names=self.names if self.X is not None else None,
            ids=[rid for rid, keep in zip(self.ids, mask) if keep],
        )
