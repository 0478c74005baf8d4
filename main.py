"""
main.py — Entry point for the sleep timer.

Flow
----
1. Configure logging and load settings (first launch writes defaults).
2. Build the engine once: a SystemClock, a CountdownTimer and, when auto
   sleep is enabled, a DailyRecurrenceScheduler sharing that same timer.
3. React to countdown events:
     Activated             → show the minutes in the tray
     RemainingChanged(n)   → update the tray; at n == warning_minutes send a
                             "n mins to sleep" notification
     Invalidated(True)     → put the machine to sleep
     Invalidated(False)    → clear the tray
4. If no countdown is running, preload the default manual length.
5. Keep running until "Quit" is picked in the tray menu.
"""
from __future__ import annotations

import threading
from typing import Callable, Optional

from core import logger as app_logger
from core import settings as settings_mod
from core import sleep
from core.clock import Clock, SystemClock
from core.countdown import CountdownTimer
from core.recurrence import DailyRecurrenceScheduler
from core.settings import SleepSettings

_LOGGER = app_logger.get_logger()


class SleepApp:
    """Owns the engine and turns its events into tray updates and sleep.

    Args:
        clock:        Time source shared by the countdown and the scheduler.
        tray:         Anything with ``show_remaining(minutes)`` and
                      ``notify(title, message)``; may be attached later.
        sleep_action: What to run when a countdown completes.
    """

    def __init__(
        self,
        clock: Clock,
        tray=None,
        sleep_action: Callable[[], None] = sleep.execute_sleep,
    ) -> None:
        self.clock = clock
        self.tray = tray
        self.timer = CountdownTimer(clock=clock)
        self.scheduler: Optional[DailyRecurrenceScheduler] = None
        self.settings = SleepSettings()
        self._sleep_action = sleep_action
        self.quit_event = threading.Event()

        self.timer.on_activated(self._on_activated)
        self.timer.on_remaining_time_change(self._on_remaining_change)
        self.timer.on_invalidated(self._on_invalidated)

    # ── Settings ───────────────────────────────────────────────────────────
    def apply_settings(self, settings: SleepSettings) -> None:
        """Rebuild the daily schedule from *settings* (full replacement)."""
        settings.validate()
        self.settings = settings

        if settings.auto_sleep_enabled:
            if self.scheduler is None:
                self.scheduler = DailyRecurrenceScheduler(
                    timer=self.timer,
                    clock=self.clock,
                    target_time=settings.target_time,
                    lead_minutes=settings.lead_minutes,
                    on_armed=self._on_auto_armed,
                )
                self.scheduler.compute_and_arm()
            else:
                self.scheduler.configure(settings.target_time, settings.lead_minutes)
        elif self.scheduler is not None:
            self.scheduler.cancel()
            self.scheduler = None
            _LOGGER.info("Auto sleep disabled")

        if not self.timer.is_running:
            self.timer.set(settings.default_manual_minutes)

    # ── User actions ───────────────────────────────────────────────────────
    def can_toggle(self) -> bool:
        """False when idle with a zero default: starting would do nothing."""
        return self.timer.is_running or self.settings.default_manual_minutes > 0

    def toggle(self) -> None:
        """Start a manual countdown of the default length, or cancel one."""
        if not self.can_toggle():
            return
        if not self.timer.is_running:
            self.timer.set(self.settings.default_manual_minutes)
        self.timer.toggle_timer()

    def quit(self) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel()
        self.timer.stop_timer(did_complete=False)
        self.quit_event.set()

    # ── Engine event handlers ──────────────────────────────────────────────
    def _on_activated(self) -> None:
        self._show(self.timer.total_minutes)

    def _on_remaining_change(self, minutes: int) -> None:
        self._show(minutes)
        if minutes == self.settings.warning_minutes:
            self._send_notification(minutes)

    def _on_invalidated(self, did_complete: bool) -> None:
        self._show(None)
        if not did_complete:
            return
        try:
            self._sleep_action()
        except OSError:
            _LOGGER.exception("Sleep action failed")

    def _on_auto_armed(self, minutes: int) -> None:
        self._send_notification(minutes)

    # ── Helpers ────────────────────────────────────────────────────────────
    def _show(self, minutes: Optional[int]) -> None:
        if self.tray is not None:
            self.tray.show_remaining(minutes)

    def _send_notification(self, minutes: int) -> None:
        if self.tray is None:
            return
        self.tray.notify(
            f"{minutes} mins to zzz",
            f"Sleep Timer will put your computer to sleep in {minutes} mins. "
            "Pick \"Stop timer\" in the tray menu to cancel.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Entry
# ══════════════════════════════════════════════════════════════════════════
def main() -> None:
    from gui.tray import SleepTray

    app_logger.configure()
    app = SleepApp(clock=SystemClock())
    app.tray = SleepTray(
        on_toggle=app.toggle,
        on_quit=app.quit,
        is_running=lambda: app.timer.is_running,
        can_toggle=app.can_toggle,
        default_minutes=lambda: app.settings.default_manual_minutes,
    )
    app.tray.start()
    app.apply_settings(settings_mod.load_settings())

    # Keep main thread alive (tray + timers run as daemons)
    app.quit_event.wait()


if __name__ == "__main__":
    main()
