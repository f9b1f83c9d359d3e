"""
Wall-clock timing for model fits.

Every fitter records its total run time, and the time spent in named
phases such as ``'newton_raphson'``, in ``Result.timing``.
"""

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Total elapsed time plus accumulated per-phase times.

    Usage:
        timer = Timer()
        timer.start()
        with timer.section('newton_raphson'):
            nr = newton_raphson(objective, start)
        timer.stop()
        timer.result()   # {'total_seconds': ..., 'newton_raphson': ...}

    A phase entered more than once accumulates; phases may overlap.
    """

    def __init__(self) -> None:
        self._sections: dict[str, float] = {}
        self._t0: float | None = None
        self._total: float | None = None

    def start(self) -> None:
        self._t0 = time.perf_counter()

    def stop(self) -> None:
        if self._t0 is None:
            raise RuntimeError("Timer.stop() called before start()")
        self._total = time.perf_counter() - self._t0

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        """Add the time spent in the block to phase ``name``."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._sections[name] = (
                self._sections.get(name, 0.0) + time.perf_counter() - t0
            )

    def result(self) -> dict[str, float]:
        """``{'total_seconds': total, <phase>: seconds, ...}``."""
        if self._total is None:
            raise RuntimeError("Timer.result() called before stop()")
        return {'total_seconds': self._total, **self._sections}


@contextmanager
def timed() -> Iterator[Timer]:
    """
    Time a block with a started Timer that stops on exit.

    Usage:
        with timed() as timer:
            fit = cure_phph(time, event, group)
        timer.result()['total_seconds']
    """
    timer = Timer()
    timer.start()
    try:
        yield timer
    finally:
        timer.stop()
