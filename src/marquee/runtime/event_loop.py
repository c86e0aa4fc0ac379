"""Single logical thread for timers and completion callbacks.

Every duration timer, completion signal, evaluation tick and configuration
result runs on one event loop, so components never race each other. Two
implementations share the timer heap:

- ``ThreadedEventLoop`` runs callbacks on one daemon thread (production).
- ``ManualEventLoop`` runs callbacks only when :meth:`advance` is called
  (tests; no sleeping).

The call_soon/call_later/TimerHandle surface deliberately matches asyncio's,
so an asyncio loop can be dropped in where the caller already owns one.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import Executor, Future
from typing import Any, Callable, Protocol

from .clock import SteppedClock

Callback = Callable[..., Any]

_logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled callback. Cancelling is idempotent."""

    __slots__ = ("when", "_seq", "_callback", "_args", "_cancelled")

    def __init__(self, when: float, seq: int, callback: Callback, args: tuple[Any, ...]) -> None:
        self.when = when
        self._seq = seq
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._callback = None  # type: ignore[assignment]
        self._args = ()

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        if self._cancelled:
            return
        callback, args = self._callback, self._args
        # A handle fires at most once.
        self._cancelled = True
        callback(*args)

    def __lt__(self, other: TimerHandle) -> bool:
        return (self.when, self._seq) < (other.when, other._seq)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "pending"
        return f"<TimerHandle when={self.when:.3f} {state}>"


class EventLoop(Protocol):
    """What the engines need from an event loop."""

    def time(self) -> float:
        """Monotonic loop time in seconds."""
        ...

    def call_soon(self, callback: Callback, *args: Any) -> TimerHandle:
        ...

    def call_later(self, delay: float, callback: Callback, *args: Any) -> TimerHandle:
        ...

    def call_soon_threadsafe(self, callback: Callback, *args: Any) -> TimerHandle:
        ...


class _TimerHeap:
    """Timer heap shared by both loop implementations."""

    def __init__(self) -> None:
        self._heap: list[TimerHandle] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def time(self) -> float:
        raise NotImplementedError

    def _wakeup(self) -> None:
        """Hook for loops that block while idle."""

    def call_later(self, delay: float, callback: Callback, *args: Any) -> TimerHandle:
        if delay < 0:
            delay = 0.0
        with self._lock:
            handle = TimerHandle(self.time() + delay, next(self._seq), callback, args)
            heapq.heappush(self._heap, handle)
        self._wakeup()
        return handle

    def call_soon(self, callback: Callback, *args: Any) -> TimerHandle:
        return self.call_later(0.0, callback, *args)

    def call_soon_threadsafe(self, callback: Callback, *args: Any) -> TimerHandle:
        return self.call_later(0.0, callback, *args)

    @property
    def pending_count(self) -> int:
        """Number of scheduled, not-yet-cancelled callbacks."""
        with self._lock:
            return sum(1 for handle in self._heap if not handle.cancelled())

    def _pop_due(self, now: float) -> TimerHandle | None:
        with self._lock:
            while self._heap and self._heap[0].cancelled():
                heapq.heappop(self._heap)
            if self._heap and self._heap[0].when <= now:
                return heapq.heappop(self._heap)
            return None

    def _next_deadline(self) -> float | None:
        with self._lock:
            while self._heap and self._heap[0].cancelled():
                heapq.heappop(self._heap)
            return self._heap[0].when if self._heap else None

    @staticmethod
    def _run_handle(handle: TimerHandle) -> None:
        try:
            handle._run()
        except Exception:
            _logger.exception("Event loop callback failed")


class ManualEventLoop(_TimerHeap):
    """Deterministic loop: time stands still until :meth:`advance` is called.

    When a :class:`SteppedClock` is attached, the wall clock advances in
    lockstep with loop time, so validity windows and recurrence evaluation
    see the same "now" as the timers.
    """

    def __init__(self, start: float = 0.0, clock: SteppedClock | None = None) -> None:
        super().__init__()
        self._now = start
        self._clock = clock

    def time(self) -> float:
        return self._now

    def run_pending(self) -> int:
        """Run every callback due at the current time; returns how many ran."""
        return self.advance(0.0)

    def advance(self, seconds: float) -> int:
        """Move time forward, running due callbacks in (deadline, FIFO) order."""
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        target = self._now + seconds
        ran = 0
        while True:
            handle = self._pop_due(target)
            if handle is None:
                break
            self._move_to(max(handle.when, self._now))
            self._run_handle(handle)
            ran += 1
        self._move_to(target)
        return ran

    def _move_to(self, when: float) -> None:
        delta = when - self._now
        if delta > 0:
            if self._clock is not None:
                self._clock.advance(delta)
            self._now = when


class ThreadedEventLoop(_TimerHeap):
    """Runs callbacks on a single daemon thread."""

    def __init__(self, name: str = "marquee-loop") -> None:
        super().__init__()
        self._name = name
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def time(self) -> float:
        return time.monotonic()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
        self._thread.start()
        _logger.info("EventLoop: started (%s)", self._name)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop thread; pending callbacks are dropped."""
        self._stop_event.set()
        self._wake.set()
        if self._thread is not None:
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout)
            self._thread = None
        _logger.info("EventLoop: stopped (%s)", self._name)

    def in_loop_thread(self) -> bool:
        return self._thread is threading.current_thread()

    def run_sync(self, callback: Callback, *args: Any, timeout: float = 5.0) -> Any:
        """Run ``callback`` on the loop thread and return its result.

        Runs inline when the loop is not running or the caller is already on
        the loop thread. Raises ``concurrent.futures.TimeoutError`` when the
        loop does not get to it within ``timeout`` seconds.
        """
        if not self.is_running or self.in_loop_thread():
            return callback(*args)
        future: Future = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(callback(*args))
            except Exception as exc:
                future.set_exception(exc)

        self.call_soon_threadsafe(_run)
        return future.result(timeout=timeout)

    def _wakeup(self) -> None:
        self._wake.set()

    def _run_loop(self) -> None:
        """Background loop: run due callbacks -> sleep until next deadline."""
        while not self._stop_event.is_set():
            handle = self._pop_due(self.time())
            if handle is not None:
                self._run_handle(handle)
                continue
            deadline = self._next_deadline()
            timeout = None if deadline is None else max(0.0, deadline - self.time())
            self._wake.wait(timeout=timeout)
            self._wake.clear()


class InlineExecutor(Executor):
    """Executor that runs work immediately in the caller's thread.

    Pairs with ManualEventLoop so background fetches become deterministic.
    """

    def submit(self, fn, /, *args, **kwargs) -> Future:  # type: ignore[override]
        future: Future = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future
