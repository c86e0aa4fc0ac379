"""Wall-clock abstractions used for schedule evaluation and validity windows.

Timers never read the wall clock; they run on the event loop's monotonic
time. The wall clock only answers "what instant is it", which is what the
recurrence evaluator and media validity checks need.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol, runtime_checkable


@runtime_checkable
class WallClock(Protocol):
    """Protocol implemented by wall-clock providers."""

    def now_utc(self) -> datetime:
        """Return the current instant as an aware UTC datetime."""


class SystemClock:
    """Wall clock backed by the operating system."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class SteppedClock:
    """Deterministic wall clock used for tests.

    Time advances only when :meth:`advance` is called (directly, or by a
    :class:`~marquee.runtime.event_loop.ManualEventLoop` it is attached to).
    """

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None or start.tzinfo.utcoffset(start) is None:
            raise ValueError("Datetime must be timezone-aware")
        self._current = start.astimezone(timezone.utc)
        self._lock = Lock()

    def now_utc(self) -> datetime:
        with self._lock:
            return self._current

    def advance(self, seconds: float) -> datetime:
        """Advance the clock by ``seconds`` (must be non-negative)."""
        if seconds < 0.0:
            raise ValueError("seconds must be non-negative")
        with self._lock:
            self._current += timedelta(seconds=seconds)
            return self._current

    def set(self, instant: datetime) -> None:
        """Jump to ``instant``; jumping backwards is allowed for tests."""
        if instant.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware")
        with self._lock:
            self._current = instant.astimezone(timezone.utc)
