"""
recurrence.py — Daily auto-sleep: arm the countdown ahead of a target time.

Given a wall-clock target such as 23:30 and a lead time (30 min by default):

* inside the lead window   → arm the countdown right now with the minutes
                             left until the target;
* outside it               → register a wake-up at ``target - lead`` that
                             repeats every 24 h and arms a ``lead``-minute
                             countdown each time it fires.

Everything is computed at minute granularity.  A target equal to the current
minute counts as already passed and rolls to tomorrow, so the occurrence is
always in the future.  Seconds in ``now`` are truncated away when the
distance to the target is measured, never rounded.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, Optional, Tuple

from core.clock import ONE_DAY, Clock
from core.countdown import CountdownTimer
from core.logger import get_logger
from core.settings import DEFAULT_LEAD_MINUTES, validate_lead_minutes, validate_time_of_day

_LOGGER = get_logger()


def next_occurrence(target_time: Tuple[int, int], now: datetime) -> datetime:
    """The next datetime after *now* whose clock time is *target_time*."""
    target_hour, target_minute = validate_time_of_day(*target_time)
    selected_day = now.date()
    if target_hour < now.hour or (target_hour == now.hour and target_minute <= now.minute):
        selected_day += timedelta(days=1)
    return datetime.combine(selected_day, time(target_hour, target_minute), tzinfo=now.tzinfo)


@dataclass(frozen=True)
class SchedulePlan:
    """Outcome of one schedule computation (no side effects)."""

    occurrence: datetime
    diff_hours: int
    diff_minutes: int
    immediate: bool
    wake_at: datetime     # first firing of the recurring wake-up

    @property
    def total_minutes(self) -> int:
        return self.diff_hours * 60 + self.diff_minutes


def plan(target_time: Tuple[int, int], now: datetime, lead_minutes: int) -> SchedulePlan:
    occurrence = next_occurrence(target_time, now)
    whole_minutes = int((occurrence - now).total_seconds() // 60)
    diff_hours, diff_minutes = divmod(whole_minutes, 60)
    immediate = diff_hours == 0 and diff_minutes <= lead_minutes
    lead = timedelta(minutes=lead_minutes)
    if immediate:
        wake_at = occurrence + ONE_DAY - lead
    else:
        wake_at = occurrence - lead
    return SchedulePlan(occurrence, diff_hours, diff_minutes, immediate, wake_at)


class DailyRecurrenceScheduler:
    """Arms a ``CountdownTimer`` every day ahead of a target time.

    Args:
        timer:        The countdown to arm.  Shared with the owner.
        clock:        Time source and deferred-call primitive.
        target_time:  ``(hour, minute)``, 24h.
        lead_minutes: How long before the target the countdown starts.
        on_armed:     Called with the countdown length each time this
                      scheduler starts the countdown (the owner uses it to
                      tell the user sleep is coming).
    """

    def __init__(
        self,
        timer: CountdownTimer,
        clock: Clock,
        target_time: Tuple[int, int],
        lead_minutes: int = DEFAULT_LEAD_MINUTES,
        on_armed: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._timer = timer
        self._clock = clock
        self._on_armed = on_armed
        self._lock = threading.Lock()
        self._wake_call = None
        self.target_time = validate_time_of_day(*target_time)
        self.lead_minutes = validate_lead_minutes(lead_minutes)

    # ── Public API ─────────────────────────────────────────────────────────
    @property
    def next_wake_at(self) -> Optional[datetime]:
        """When the recurring wake-up fires next, or None if nothing is pending."""
        call = self._wake_call
        return None if call is None or call.cancelled else call.fire_at

    def next_occurrence(self, now: Optional[datetime] = None) -> datetime:
        return next_occurrence(self.target_time, now or self._clock.now())

    def plan(self, now: Optional[datetime] = None) -> SchedulePlan:
        return plan(self.target_time, now or self._clock.now(), self.lead_minutes)

    def compute_and_arm(self, now: Optional[datetime] = None) -> SchedulePlan:
        """Replace any pending wake-up with one computed from *now*.

        Arms the countdown immediately when the target is inside the lead
        window.  The daily wake-up is registered in both cases.
        """
        decision = self.plan(now)
        with self._lock:
            self._cancel_locked()
            self._wake_call = self._clock.call_at(
                decision.wake_at,
                self._on_wake,
                interval=ONE_DAY,
            )
        _LOGGER.info(
            "Auto sleep at {} is {}h{:02d}m away; daily wake-up at {}",
            decision.occurrence, decision.diff_hours, decision.diff_minutes,
            decision.wake_at.strftime("%H:%M"),
        )
        if decision.immediate:
            self.arm_and_start(decision.diff_minutes)
        return decision

    def configure(self, target_time: Tuple[int, int], lead_minutes: Optional[int] = None) -> SchedulePlan:
        """Replace the whole schedule (target and lead) and recompute it."""
        target_time = validate_time_of_day(*target_time)
        if lead_minutes is not None:
            lead_minutes = validate_lead_minutes(lead_minutes)
        with self._lock:
            self.target_time = target_time
            if lead_minutes is not None:
                self.lead_minutes = lead_minutes
        return self.compute_and_arm()

    def cancel(self) -> None:
        """Drop the recurring wake-up. A running countdown is left alone."""
        with self._lock:
            self._cancel_locked()

    def arm_and_start(self, minutes: int) -> bool:
        """Start a *minutes* countdown unless one is already running."""
        if minutes <= 0:
            _LOGGER.warning("Target time is less than a minute away; skipping today's auto sleep")
            return False
        if not self._timer.arm(minutes):
            _LOGGER.info("Countdown already running; auto sleep wake-up skipped")
            return False
        if self._on_armed is not None:
            self._on_armed(minutes)
        return True

    # ── Internal ───────────────────────────────────────────────────────────
    def _on_wake(self) -> None:
        self.arm_and_start(self.lead_minutes)

    def _cancel_locked(self) -> None:
        if self._wake_call is not None:
            self._wake_call.cancel()
            self._wake_call = None
