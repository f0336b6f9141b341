"""Per-step progress and ETA estimation."""

import math
import time
from typing import Callable

from vidsplice.models import Progress

UNKNOWN_ETA = "unknown"


def estimate_eta(elapsed: float, fraction: float) -> float | None:
    """Seconds remaining given wall-clock *elapsed* and completion *fraction*.

    Returns None while nothing has completed yet.
    """
    if fraction <= 0:
        return None
    return max(elapsed / fraction - elapsed, 0.0)


def format_eta(eta_seconds: float | None) -> str:
    """Bucket an ETA into whole hours, minutes or seconds (floored)."""
    if eta_seconds is None:
        return UNKNOWN_ETA
    eta_seconds = max(eta_seconds, 0.0)
    if eta_seconds >= 3600:
        return f"{math.floor(eta_seconds / 3600)}h"
    if eta_seconds >= 60:
        return f"{math.floor(eta_seconds / 60)}m"
    return f"{math.floor(eta_seconds)}s"


class ProgressTracker:
    """Turns a step's progress fractions into a :class:`Progress` value.

    Elapsed time is measured from :meth:`start_step`; call it at the start of
    every pipeline step so each step is tracked independently.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started: float | None = None
        self.progress = Progress()

    def start_step(self) -> Progress:
        self._started = self._clock()
        self.progress = Progress()
        return self.progress

    def update(self, fraction: float) -> Progress:
        if self._started is None:
            self.start_step()
        fraction = min(max(fraction, 0.0), 1.0)
        elapsed = self._clock() - self._started
        self.progress = Progress(
            percent=math.floor(fraction * 100 + 0.5),
            eta_seconds=estimate_eta(elapsed, fraction),
        )
        return self.progress

    def complete_step(self) -> Progress:
        self.progress = Progress(percent=100, eta_seconds=0.0)
        return self.progress
