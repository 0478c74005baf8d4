"""
tray.py — System-tray icon for the sleep timer.

The icon is a minimal moon image generated with Pillow (no external asset
files needed).  The tooltip shows the minutes left while a countdown runs;
the menu can start or stop the countdown and quit the app.  The tray only
renders what the owner tells it and forwards clicks; it never touches the
countdown itself.
"""
from __future__ import annotations

import threading
from typing import Callable, Optional

import pystray
from PIL import Image, ImageDraw

_TITLE = "Sleep Timer"


# ── Icon drawing ───────────────────────────────────────────────────────────
def _make_icon_image(size: int = 64, active: bool = False) -> Image.Image:
    """Draw a crescent moon; filled brighter while a countdown runs."""
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    r = size // 2 - 2
    cx, cy = size // 2, size // 2
    moon = (250, 220, 120) if active else (180, 180, 220)
    draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=moon)
    # Bite out of the disc leaves the crescent
    off = r // 2
    draw.ellipse([cx - r + off, cy - r - off // 2, cx + r + off, cy + r - off // 2], fill=(0, 0, 0, 0))
    return img


def format_title(minutes: Optional[int]) -> str:
    """Tooltip text: plain title when idle, remaining minutes otherwise."""
    if minutes is None:
        return _TITLE
    return f"{_TITLE} — {minutes} min left"


# ── Tray class ─────────────────────────────────────────────────────────────
class SleepTray:
    """Manages the system-tray icon.

    Args:
        on_toggle: Called when the user picks Start/Stop in the menu.
        on_quit:   Called when the user picks Quit, after the icon is gone.
        is_running: Returns whether a countdown is active (menu label).
        can_toggle: Returns whether Start/Stop would do anything (greyed out otherwise).
        default_minutes: Returns the manual countdown length (menu label).
    """

    def __init__(
        self,
        on_toggle:       Callable[[], None],
        on_quit:         Callable[[], None],
        is_running:      Callable[[], bool],
        can_toggle:      Callable[[], bool],
        default_minutes: Callable[[], int],
    ) -> None:
        self._on_toggle       = on_toggle
        self._on_quit         = on_quit
        self._is_running      = is_running
        self._can_toggle      = can_toggle
        self._default_minutes = default_minutes
        self._icon: Optional[pystray.Icon] = None
        self._thread: Optional[threading.Thread] = None

    # ── Public API ─────────────────────────────────────────────────────────
    def start(self) -> None:
        """Start the tray icon in a daemon thread."""
        self._icon = pystray.Icon(
            name="sleep-timer",
            icon=_make_icon_image(),
            title=_TITLE,
            menu=self._build_menu(),
        )
        self._thread = threading.Thread(
            target=self._icon.run,
            daemon=True,
            name="tray-icon",
        )
        self._thread.start()

    def stop(self) -> None:
        """Remove the tray icon."""
        if self._icon is not None:
            self._icon.stop()
            self._icon = None

    def show_remaining(self, minutes: Optional[int]) -> None:
        """Update tooltip and icon. ``None`` means no countdown is running."""
        if self._icon is None:
            return
        self._icon.title = format_title(minutes)
        self._icon.icon = _make_icon_image(active=minutes is not None)
        self._icon.update_menu()

    def notify(self, title: str, message: str) -> None:
        if self._icon is not None:
            self._icon.notify(message, title)

    # ── Menu ───────────────────────────────────────────────────────────────
    def _build_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem(
                self._toggle_label,
                self._handle_toggle,
                default=True,
                enabled=self._toggle_enabled,
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._handle_quit),
        )

    def _toggle_label(self, _item: pystray.MenuItem) -> str:
        if self._is_running():
            return "Stop timer"
        return f"Start {self._default_minutes()} min timer"

    def _toggle_enabled(self, _item: pystray.MenuItem) -> bool:
        return self._can_toggle()

    def _handle_toggle(self, _icon: pystray.Icon, _item: pystray.MenuItem) -> None:
        self._on_toggle()

    def _handle_quit(self, _icon: pystray.Icon, _item: pystray.MenuItem) -> None:
        self.stop()
        self._on_quit()
