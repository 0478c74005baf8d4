"""
test_recurrence.py — Unit tests for core/recurrence.py.

Scenarios pin "now" on the ManualClock and check both the pure plan and
what compute_and_arm does to the shared countdown.
"""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from core.countdown import Activated, CountdownTimer, Invalidated
from core.recurrence import DailyRecurrenceScheduler, next_occurrence, plan
from core.settings import InvalidConfiguration

from tests.conftest import ManualClock


def at(hour: int, minute: int, second: int = 0, day: int = 1) -> datetime:
    return datetime(2024, 1, day, hour, minute, second)


def make_scheduler(
    clock: ManualClock,
    timer: CountdownTimer,
    target=(9, 0),
    lead_minutes: int = 30,
    armed=None,
) -> DailyRecurrenceScheduler:
    return DailyRecurrenceScheduler(
        timer=timer,
        clock=clock,
        target_time=target,
        lead_minutes=lead_minutes,
        on_armed=None if armed is None else armed.append,
    )


# ── next_occurrence ────────────────────────────────────────────────────────
class TestNextOccurrence:
    def test_later_today(self) -> None:
        assert next_occurrence((22, 30), at(21, 0)) == at(22, 30)

    def test_earlier_hour_rolls_to_tomorrow(self) -> None:
        assert next_occurrence((8, 0), at(9, 0)) == at(8, 0, day=2)

    def test_same_minute_rolls_to_tomorrow(self) -> None:
        assert next_occurrence((9, 0), at(9, 0)) == at(9, 0, day=2)

    def test_same_hour_earlier_minute_rolls(self) -> None:
        assert next_occurrence((9, 10), at(9, 20)) == at(9, 10, day=2)

    def test_same_hour_later_minute_is_today(self) -> None:
        assert next_occurrence((9, 21), at(9, 20, 59)) == at(9, 21)

    def test_month_rollover(self) -> None:
        assert next_occurrence((0, 15), datetime(2024, 1, 31, 23, 45)) == datetime(2024, 2, 1, 0, 15)

    @pytest.mark.parametrize("target", [(24, 0), (-1, 0), (12, 60), (12, -5)])
    def test_rejects_out_of_range(self, target) -> None:
        with pytest.raises(InvalidConfiguration):
            next_occurrence(target, at(9, 0))


# ── plan ───────────────────────────────────────────────────────────────────
class TestPlan:
    def test_equal_time_is_a_full_day_away(self) -> None:
        p = plan((9, 0), at(9, 0), 30)
        assert p.total_minutes == 1440
        assert not p.immediate
        assert p.wake_at == at(9, 0) + timedelta(minutes=1410)

    def test_inside_lead_window(self) -> None:
        p = plan((9, 0), at(8, 50), 30)
        assert p.total_minutes == 10
        assert p.immediate
        assert p.wake_at == at(8, 30, day=2)

    def test_boundary_equal_to_lead_is_immediate(self) -> None:
        p = plan((0, 15), at(23, 45), 30)
        assert p.occurrence == at(0, 15, day=2)
        assert (p.diff_hours, p.diff_minutes) == (0, 30)
        assert p.immediate

    def test_one_past_lead_is_deferred(self) -> None:
        p = plan((9, 0), at(8, 29), 30)
        assert p.total_minutes == 31
        assert not p.immediate
        assert p.wake_at == at(8, 30)

    def test_seconds_are_truncated(self) -> None:
        p = plan((9, 0), at(8, 50, 30), 30)
        assert p.total_minutes == 9

    def test_hour_component(self) -> None:
        p = plan((23, 30), at(21, 10), 30)
        assert (p.diff_hours, p.diff_minutes) == (2, 20)
        assert not p.immediate


# ── compute_and_arm ────────────────────────────────────────────────────────
class TestComputeAndArm:
    def test_immediate_arm(self, clock: ManualClock, timer: CountdownTimer, log) -> None:
        clock.advance(minutes=-10)          # 08:50
        armed = []
        s = make_scheduler(clock, timer, target=(9, 0), armed=armed)
        s.compute_and_arm()
        assert timer.is_running
        assert timer.total_minutes == 10
        assert log.events == [Activated(10)]
        assert armed == [10]

    def test_midnight_boundary(self) -> None:
        clock = ManualClock(at(23, 45))
        timer = CountdownTimer(clock=clock)
        s = make_scheduler(clock, timer, target=(0, 15))
        s.compute_and_arm()
        assert timer.is_running
        assert timer.total_minutes == 30

    def test_deferred_wake_up(self, clock: ManualClock, timer: CountdownTimer) -> None:
        s = make_scheduler(clock, timer, target=(9, 0))
        decision = s.compute_and_arm()
        assert not decision.immediate
        assert not timer.is_running
        assert s.next_wake_at == clock.now() + timedelta(minutes=1410)

    def test_wake_up_arms_lead_countdown(self, clock: ManualClock, timer: CountdownTimer, log) -> None:
        armed = []
        s = make_scheduler(clock, timer, target=(23, 0), armed=armed)
        s.compute_and_arm()
        clock.advance(minutes=(22 * 60 + 30) - (9 * 60) - 1)   # 22:29
        assert not timer.is_running
        clock.advance(minutes=1)                                # 22:30
        assert timer.is_running
        assert timer.total_minutes == 30
        assert armed == [30]

    def test_wake_up_recurs_daily(self, clock: ManualClock, timer: CountdownTimer, log) -> None:
        s = make_scheduler(clock, timer, target=(23, 0))
        s.compute_and_arm()
        clock.advance(minutes=3 * 24 * 60)
        assert log.of_type(Invalidated) == [Invalidated(True)] * 3
        assert s.next_wake_at == at(22, 30, day=4)

    def test_immediate_arm_also_schedules_following_days(
        self, clock: ManualClock, timer: CountdownTimer, log
    ) -> None:
        clock.advance(minutes=-10)          # 08:50
        s = make_scheduler(clock, timer, target=(9, 0))
        s.compute_and_arm()
        assert s.next_wake_at == at(8, 30, day=2)
        clock.advance(minutes=24 * 60 + 10)     # 09:00 next day
        assert log.of_type(Invalidated) == [Invalidated(True)] * 2

    def test_wake_up_skipped_when_manual_countdown_runs(
        self, clock: ManualClock, timer: CountdownTimer, log
    ) -> None:
        armed = []
        s = make_scheduler(clock, timer, target=(10, 0), armed=armed)
        s.compute_and_arm()
        timer.set(120)
        timer.toggle_timer()
        clock.advance(minutes=30)           # 09:30 wake-up while 120-min countdown runs
        assert armed == []
        assert timer.total_minutes == 120

    def test_less_than_a_minute_away_skips_today(self) -> None:
        clock = ManualClock(at(8, 59, 30))
        timer = CountdownTimer(clock=clock)
        s = make_scheduler(clock, timer, target=(9, 0))
        decision = s.compute_and_arm()
        assert decision.immediate
        assert decision.total_minutes == 0
        assert not timer.is_running
        assert s.next_wake_at == at(8, 30, day=2)

    def test_recompute_replaces_previous_wake_up(self, clock: ManualClock, timer: CountdownTimer) -> None:
        s = make_scheduler(clock, timer, target=(23, 0))
        s.compute_and_arm()
        s.compute_and_arm()
        assert len(clock.pending()) == 1


# ── configure / cancel ─────────────────────────────────────────────────────
class TestReconfigure:
    def test_configure_replaces_schedule(self, clock: ManualClock, timer: CountdownTimer) -> None:
        s = make_scheduler(clock, timer, target=(23, 0))
        s.compute_and_arm()
        s.configure((22, 0), lead_minutes=15)
        assert s.target_time == (22, 0)
        assert s.lead_minutes == 15
        assert s.next_wake_at == at(21, 45)
        assert len(clock.pending()) == 1

    def test_configure_rejects_bad_target(self, clock: ManualClock, timer: CountdownTimer) -> None:
        s = make_scheduler(clock, timer, target=(23, 0))
        s.compute_and_arm()
        with pytest.raises(InvalidConfiguration):
            s.configure((25, 0))
        assert s.target_time == (23, 0)
        assert len(clock.pending()) == 1

    def test_cancel_drops_wake_up(self, clock: ManualClock, timer: CountdownTimer) -> None:
        s = make_scheduler(clock, timer, target=(23, 0))
        s.compute_and_arm()
        s.cancel()
        s.cancel()   # should not raise
        assert s.next_wake_at is None
        clock.advance(minutes=2 * 24 * 60)
        assert not timer.is_running

    def test_cancel_leaves_running_countdown(self, clock: ManualClock, timer: CountdownTimer) -> None:
        clock.advance(minutes=-10)
        s = make_scheduler(clock, timer, target=(9, 0))
        s.compute_and_arm()
        s.cancel()
        assert timer.is_running

    @pytest.mark.parametrize("lead", [0, 60, -1])
    def test_rejects_bad_lead(self, clock: ManualClock, timer: CountdownTimer, lead: int) -> None:
        with pytest.raises(InvalidConfiguration):
            make_scheduler(clock, timer, lead_minutes=lead)

    def test_rejects_bad_target(self, clock: ManualClock, timer: CountdownTimer) -> None:
        with pytest.raises(InvalidConfiguration):
            make_scheduler(clock, timer, target=(9, 75))
