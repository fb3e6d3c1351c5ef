"""
Cooperative cancellation for long-running report computations.

A CancellationToken is shared between the caller and a running report.
The caller (or an elapsed timeout) flips it; the computation polls it at
stage boundaries and periodically while processing rows, then raises
ReportCancelledError. Nothing partial is ever returned.
"""

from __future__ import annotations

import threading

from analytics_kernel.domain.clock import Clock, SystemClock
from analytics_kernel.exceptions import ReportCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional deadline.

    Guarantees:
        - ``cancel()`` is idempotent and may be called from any thread.
        - Once cancelled (or past its deadline) the token stays cancelled.
    """

    def __init__(self, clock: Clock | None = None, deadline: float | None = None):
        self._event = threading.Event()
        self._clock = clock or SystemClock()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float, clock: Clock | None = None) -> CancellationToken:
        """Token that reports cancellation once ``seconds`` have elapsed."""
        if seconds < 0:
            raise ValueError(f"Timeout must be non-negative, got {seconds}")
        clock = clock or SystemClock()
        return cls(clock=clock, deadline=clock.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and self._clock.monotonic() >= self._deadline

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set() or self.timed_out

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise ReportCancelledError if cancelled or timed out."""
        if self._event.is_set():
            raise ReportCancelledError(stage=stage, reason="cancelled")
        if self.timed_out:
            raise ReportCancelledError(stage=stage, reason="timed out")
