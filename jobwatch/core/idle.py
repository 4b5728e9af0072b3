"""Idle-timeout tracking for the discovery loop."""

from __future__ import annotations

import time
from typing import Callable, Optional


class IdleClock:
    """
    Monotonic stopwatch measuring time since the last new-job detection.

    Elapsed time starts at construction and restarts on every `reset()`. No I/O.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._since = self._clock()

    def reset(self) -> None:
        self._since = self._clock()

    def elapsed(self) -> float:
        return max(0.0, self._clock() - self._since)

    def expired(self, threshold_seconds: float) -> bool:
        return self.elapsed() >= float(threshold_seconds)
