"""Serial fixed-interval scheduler for the upload cycle."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

LOG = logging.getLogger(__name__)


class PeriodicRunner:
    """Call ``job`` now and then every ``interval_s`` seconds until stopped.

    The next run is scheduled only after the current one returns, so runs
    never overlap. A slow job delays later ticks instead of stacking them.
    """

    def __init__(
        self,
        job: Callable[[], None],
        interval_s: float,
        *,
        max_runs: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._job = job
        self._interval_s = interval_s
        self._max_runs = max_runs
        self._stop = stop_event or threading.Event()
        self.runs = 0

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_forever(self) -> int:
        """Block until stopped or ``max_runs`` is reached; return the run count."""
        next_due = time.monotonic()
        while not self._stop.is_set():
            try:
                self._job()
            except Exception:
                LOG.exception("Scheduled job failed")
            self.runs += 1
            if self._max_runs is not None and self.runs >= self._max_runs:
                break
            next_due += self._interval_s
            delay = max(0.0, next_due - time.monotonic())
            if delay == 0.0:
                next_due = time.monotonic()
            if self._stop.wait(delay):
                break
        return self.runs


__all__ = ["PeriodicRunner"]
