"""
Event-time grid shared by every model.

The grid is the sorted set of distinct times at which an event occurs.
Baseline step functions are stored as arrays aligned with it (index k is
the k-th event time), and each observation is located on it by

    k(i) = #{grid times <= t_i}

so that k(i) - 1 is the grid index of the last event time not after t_i,
and k(i) = 0 means t_i precedes the first event.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from survcompare.core.exceptions import DegenerateDataError


@dataclass(frozen=True)
class EventGrid:
    """Event-time grid with per-time counts.

    Attributes
    ----------
    times : NDArray
        (m,) strictly increasing distinct event times.
    n_events : NDArray
        (m,) number of events at each grid time.
    n_risk : NDArray
        (m,) number at risk just before each grid time (time >= t).
    position : NDArray
        (n,) k(i) for each observation: count of grid times <= t_i.
    """

    times: NDArray
    n_events: NDArray
    n_risk: NDArray
    position: NDArray

    @property
    def m(self) -> int:
        return len(self.times)

    def nelson_aalen(self) -> NDArray:
        """(m,) Nelson-Aalen cumulative hazard at each grid time."""
        return np.cumsum(self.n_events / self.n_risk)


def event_time_grid(time: NDArray, event: NDArray) -> EventGrid:
    """Build the event-time grid for a dataset.

    Parameters
    ----------
    time : NDArray
        (n,) time to event or censoring.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).

    Returns
    -------
    EventGrid

    Raises
    ------
    DegenerateDataError
        If there are no events.
    """
    times = np.unique(time[event == 1])
    if len(times) == 0:
        raise DegenerateDataError(
            f"No events among {len(time)} observations; "
            f"the event-time grid is empty and no model can be fit",
            n_observations=len(time),
            n_events=0,
        )

    # Events sit exactly on the grid, so searchsorted with side="left"
    # gives each event's grid index.
    event_idx = np.searchsorted(times, time[event == 1], side="left")
    n_events = np.bincount(event_idx, minlength=len(times)).astype(np.float64)

    sorted_time = np.sort(time)
    n_before = np.searchsorted(sorted_time, times, side="left")
    n_risk = (len(time) - n_before).astype(np.float64)

    position = np.searchsorted(times, time, side="right")

    return EventGrid(
        times=times,
        n_events=n_events,
        n_risk=n_risk,
        position=position,
    )


def step_values(grid_times: NDArray, values: NDArray, at: NDArray,
                origin: float = 1.0) -> NDArray:
    """Evaluate a right-continuous step function defined on a grid.

    ``values[k]`` holds on [grid_times[k], grid_times[k+1]); before the
    first grid time the function equals ``origin``.
    """
    at = np.asarray(at, dtype=np.float64)
    idx = np.searchsorted(grid_times, at, side="right")
    padded = np.concatenate([[origin], values])
    return padded[idx]
