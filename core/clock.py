"""
clock.py — Time source and cancellable absolute-time callbacks.

Every timer wait in the engine (the one-minute countdown tick and the daily
wake-up) goes through ``Clock.call_at``.  The production ``SystemClock``
runs each pending callback on its own daemon thread blocked on a
``threading.Event``, so cancellation is instant with no busy-loop.  Waits are
cut into slices of at most ``MAX_WAIT_S`` so a suspend/resume is noticed:
a due call fires once on wake-up, and a repeating call skips the periods
it slept through instead of replaying them.
"""
from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from core.logger import get_logger

_LOGGER = get_logger()

ONE_DAY = timedelta(days=1)

# Longest single wait before the wall clock is checked again
MAX_WAIT_S = 30.0


class ScheduledCall:
    """A callback pending at an absolute time, optionally repeating.

    Usage::

        call = ScheduledCall(my_fn, fire_at=datetime.now() + timedelta(minutes=1))
        call.start()
        # … later …
        call.cancel()
    """

    def __init__(
        self,
        callback: Callable[[], None],
        fire_at: datetime,
        interval: Optional[timedelta] = None,
        now: Callable[[], datetime] = datetime.now,
        max_wait_s: float = MAX_WAIT_S,
    ) -> None:
        if interval is not None and interval.total_seconds() <= 0:
            raise ValueError("interval must be positive")
        self._callback = callback
        self._interval = interval
        self._now = now
        self._max_wait_s = max_wait_s
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.fire_at = fire_at

    # ── Public API ─────────────────────────────────────────────────────────
    def start(self) -> None:
        if self.is_active:
            raise RuntimeError("Call is already pending; cancel() it first")
        self._cancel_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="sleep-timer")
        self._thread.start()

    def cancel(self) -> None:
        """Cancel the pending call. Safe to call more than once."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def is_active(self) -> bool:
        """True while the background thread is alive (i.e. a call is pending)."""
        return self._thread is not None and self._thread.is_alive()

    # ── Internal ───────────────────────────────────────────────────────────
    def _run(self) -> None:
        while not self._cancel_event.is_set():
            # Event.wait runs on the monotonic clock, which stops while the
            # machine is suspended: wait in slices and re-read the wall clock.
            delay_s = (self.fire_at - self._now()).total_seconds()
            if delay_s > 0:
                if self._cancel_event.wait(timeout=min(delay_s, self._max_wait_s)):
                    return
                continue

            try:
                self._callback()
            except Exception:
                _LOGGER.exception("Scheduled callback failed")
            if self._interval is None:
                return
            self._skip_past(self._now())

    def _skip_past(self, now: datetime) -> None:
        """Move ``fire_at`` to the first period after *now*; missed ones are dropped."""
        missed = (now - self.fire_at) // self._interval
        self.fire_at += self._interval * (max(missed, 0) + 1)


class Clock(Protocol):
    """What the engine needs from a time source."""

    def now(self) -> datetime: ...

    def call_at(
        self,
        fire_at: datetime,
        callback: Callable[[], None],
        interval: Optional[timedelta] = None,
    ) -> "ScheduledCall": ...


class SystemClock:
    """Real wall clock. ``call_at`` starts a daemon thread per pending call."""

    def now(self) -> datetime:
        return datetime.now()

    def call_at(
        self,
        fire_at: datetime,
        callback: Callable[[], None],
        interval: Optional[timedelta] = None,
    ) -> ScheduledCall:
        call = ScheduledCall(callback, fire_at=fire_at, interval=interval, now=self.now)
        call.start()
        _LOGGER.debug("Scheduled call at {} (interval={})", fire_at, interval)
        return call
