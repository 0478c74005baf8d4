"""
conftest.py — Shared fixtures.

``ManualClock`` stands in for ``SystemClock``: nothing fires until a test
calls ``advance()``, which runs every due callback in time order.  No
threads, no sleeping.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, List, Optional

import pytest

from core.countdown import CountdownTimer, TimerEvent


class ManualCall:
    def __init__(
        self,
        fire_at: datetime,
        callback: Callable[[], None],
        interval: Optional[timedelta],
    ) -> None:
        self.fire_at   = fire_at
        self.callback  = callback
        self.interval  = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    def __init__(self, start: datetime) -> None:
        self._now = start
        self.calls: List[ManualCall] = []

    def now(self) -> datetime:
        return self._now

    def call_at(
        self,
        fire_at: datetime,
        callback: Callable[[], None],
        interval: Optional[timedelta] = None,
    ) -> ManualCall:
        call = ManualCall(fire_at, callback, interval)
        self.calls.append(call)
        return call

    def pending(self) -> List[ManualCall]:
        return [c for c in self.calls if not c.cancelled]

    def advance(self, minutes: float = 0, **kwargs: float) -> None:
        """Move time forward, firing whatever falls due on the way."""
        target = self._now + timedelta(minutes=minutes, **kwargs)
        while True:
            due = [c for c in self.pending() if c.fire_at <= target]
            if not due:
                break
            call = min(due, key=lambda c: c.fire_at)
            self._now = call.fire_at
            if call.interval is None:
                call.cancelled = True     # one-shot: done once fired
            else:
                call.fire_at += call.interval
            call.callback()
        self._now = target


class EventLog:
    """Listener that records every countdown event."""

    def __init__(self) -> None:
        self.events: List[TimerEvent] = []

    def __call__(self, event: TimerEvent) -> None:
        self.events.append(event)

    def of_type(self, kind: type) -> list:
        return [e for e in self.events if isinstance(e, kind)]


# ── Fixtures ───────────────────────────────────────────────────────────────
@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2024, 1, 1, 9, 0))


@pytest.fixture
def timer(clock: ManualClock) -> CountdownTimer:
    return CountdownTimer(clock=clock)


@pytest.fixture
def log(timer: CountdownTimer) -> EventLog:
    recorder = EventLog()
    timer.subscribe(recorder)
    return recorder
