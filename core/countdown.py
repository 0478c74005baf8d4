"""
countdown.py — The sleep countdown and its event contract.

A ``CountdownTimer`` holds one countdown measured in whole minutes.  It is
created once by the owner process and handed to whoever needs it; there is
no module-level instance.

States::

    Stopped --start / toggle_timer--> Running --tick to 0 / stop_timer--> Stopped

Ticks run at a fixed one-minute interval counted from the moment the
countdown starts (not aligned to the wall-clock minute), so a countdown of
N minutes completes N minutes after it was started.

Listeners see three event types, always in this order within one cycle:
``Activated`` once, then ``RemainingChanged`` with strictly decreasing
values, then ``Invalidated`` once.  All transitions and emissions happen
under one re-entrant lock; listeners may call back into the timer.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional, Union

from core.clock import Clock
from core.logger import get_logger
from core.settings import validate_minutes

_LOGGER = get_logger()

TICK_INTERVAL = timedelta(minutes=1)


# ── Events ─────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Activated:
    total_minutes: int


@dataclass(frozen=True)
class RemainingChanged:
    minutes: int


@dataclass(frozen=True)
class Invalidated:
    """``did_complete`` is True on natural expiry, False on cancellation."""

    did_complete: bool


TimerEvent = Union[Activated, RemainingChanged, Invalidated]
Listener = Callable[[TimerEvent], None]


# ── Timer ──────────────────────────────────────────────────────────────────
class CountdownTimer:
    """Single countdown with observer notifications.

    Usage::

        timer = CountdownTimer(clock=SystemClock())
        timer.on_invalidated(lambda done: put_to_sleep() if done else None)
        timer.set(45)
        timer.toggle_timer()        # start
        # … later …
        timer.toggle_timer()        # cancel → Invalidated(did_complete=False)
    """

    def __init__(self, clock: Clock, tick_interval: timedelta = TICK_INTERVAL) -> None:
        self._clock = clock
        self._tick_interval = tick_interval
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._total = 0
        self._remaining = 0
        self._running = False
        self._generation = 0
        self._tick_call = None

    # ── State inspection ───────────────────────────────────────────────────
    @property
    def total_minutes(self) -> int:
        return self._total

    @property
    def remaining_minutes(self) -> int:
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._running

    # ── Subscriptions ──────────────────────────────────────────────────────
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for every event. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def on_activated(self, callback: Callable[[], None]) -> Callable[[], None]:
        def listener(event: TimerEvent) -> None:
            if isinstance(event, Activated):
                callback()
        return self.subscribe(listener)

    def on_remaining_time_change(self, callback: Callable[[int], None]) -> Callable[[], None]:
        def listener(event: TimerEvent) -> None:
            if isinstance(event, RemainingChanged):
                callback(event.minutes)
        return self.subscribe(listener)

    def on_invalidated(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        def listener(event: TimerEvent) -> None:
            if isinstance(event, Invalidated):
                callback(event.did_complete)
        return self.subscribe(listener)

    # ── Public API ─────────────────────────────────────────────────────────
    def set(self, minutes: int) -> None:
        """Set the countdown length. Ignored while running."""
        validate_minutes(minutes)
        with self._lock:
            if self._running:
                _LOGGER.debug("set({}) ignored: countdown already running", minutes)
                return
            self._total = minutes
            self._remaining = minutes

    def toggle_timer(self) -> None:
        """Start when stopped, cancel when running."""
        with self._lock:
            if self._running:
                self.stop_timer(did_complete=False)
            else:
                self.start()

    def start(self) -> None:
        """Start a new cycle from ``total_minutes``. No-op if running or zero."""
        with self._lock:
            if self._running:
                return
            if self._total == 0:
                _LOGGER.debug("start ignored: countdown length is 0")
                return
            self._remaining = self._total
            self._running = True
            self._generation += 1
            generation = self._generation
            self._tick_call = self._clock.call_at(
                self._clock.now() + self._tick_interval,
                lambda: self._tick(generation),
                interval=self._tick_interval,
            )
            _LOGGER.info("Countdown started: {} min", self._total)
            self._emit(Activated(self._total))

    def arm(self, minutes: int) -> bool:
        """Set and start in one step unless a countdown is already running.

        Returns True if a new countdown is now running.
        """
        with self._lock:
            if self._running:
                return False
            self.set(minutes)
            self.start()
            return self._running

    def stop_timer(self, did_complete: bool) -> None:
        """Stop the countdown. Calling it while stopped does nothing."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._tick_call is not None:
                self._tick_call.cancel()
                self._tick_call = None
            _LOGGER.info("Countdown {}", "completed" if did_complete else "cancelled")
            self._emit(Invalidated(did_complete))

    # ── Internal ───────────────────────────────────────────────────────────
    def _tick(self, generation: int) -> None:
        with self._lock:
            # A tick queued before stop_timer() belongs to a finished cycle.
            if not self._running or generation != self._generation:
                return
            self._remaining -= 1
            try:
                self._emit(RemainingChanged(self._remaining))
            finally:
                # Completion must not depend on every listener succeeding.
                if self._running and generation == self._generation and self._remaining <= 0:
                    self.stop_timer(did_complete=True)

    def _emit(self, event: TimerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
