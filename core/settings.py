"""
settings.py — Configuration snapshot handed to the scheduling engine.

Layout
------
  %LOCALAPPDATA%\\SleepTimer\\settings.json

    {"auto_sleep_enabled": false, "target_time": "00:00",
     "default_manual_minutes": 0, "lead_minutes": 30, "warning_minutes": 5}

The engine itself never reads this file: the owner loads a ``SleepSettings``
once and passes the values in.  A missing file means first launch, so the
defaults are written out.  A file that cannot be parsed is replaced with the
defaults; values that parse but are out of range raise
``InvalidConfiguration``.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping, Tuple

from core.logger import APP_DIR, get_logger

_LOGGER = get_logger()

# ── Storage location ───────────────────────────────────────────────────────
_APP_DIR       = APP_DIR
_SETTINGS_FILE = _APP_DIR / "settings.json"

DEFAULT_LEAD_MINUTES    = 30
DEFAULT_WARNING_MINUTES = 5


class InvalidConfiguration(ValueError):
    """Rejected configuration value. Fix the input; retrying will not help."""


# ── Validation helpers ─────────────────────────────────────────────────────
def validate_time_of_day(hour: Any, minute: Any) -> Tuple[int, int]:
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise InvalidConfiguration(f"hour must be an integer in 0..23, got {hour!r}")
    if isinstance(minute, bool) or not isinstance(minute, int) or not 0 <= minute <= 59:
        raise InvalidConfiguration(f"minute must be an integer in 0..59, got {minute!r}")
    return hour, minute


def validate_minutes(minutes: Any, name: str = "minutes") -> int:
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 0:
        raise InvalidConfiguration(f"{name} must be a non-negative integer, got {minutes!r}")
    return minutes


def validate_lead_minutes(lead_minutes: Any) -> int:
    validate_minutes(lead_minutes, "lead_minutes")
    if not 1 <= lead_minutes <= 59:
        raise InvalidConfiguration(f"lead_minutes must be in 1..59, got {lead_minutes!r}")
    return lead_minutes


def parse_time_of_day(raw: str) -> Tuple[int, int]:
    """Parse ``"HH:MM"`` (24h) into ``(hour, minute)``."""
    parts = str(raw).strip().split(":")
    if len(parts) != 2:
        raise InvalidConfiguration(f'Could not parse "{raw}". Use HH:MM (24h format).')
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        raise InvalidConfiguration(f'Could not parse "{raw}". Use HH:MM (24h format).') from None
    return validate_time_of_day(hour, minute)


def format_time_of_day(target_time: Tuple[int, int]) -> str:
    return f"{target_time[0]:02d}:{target_time[1]:02d}"


# ── Snapshot ───────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SleepSettings:
    auto_sleep_enabled: bool = False
    target_time: Tuple[int, int] = field(default=(0, 0))
    default_manual_minutes: int = 0
    lead_minutes: int = DEFAULT_LEAD_MINUTES
    warning_minutes: int = DEFAULT_WARNING_MINUTES

    def validate(self) -> "SleepSettings":
        """Return self if every field is in range, else raise InvalidConfiguration."""
        if not isinstance(self.auto_sleep_enabled, bool):
            raise InvalidConfiguration("auto_sleep_enabled must be true or false")
        if not isinstance(self.target_time, tuple) or len(self.target_time) != 2:
            raise InvalidConfiguration(f"target_time must be (hour, minute), got {self.target_time!r}")
        validate_time_of_day(*self.target_time)
        validate_minutes(self.default_manual_minutes, "default_manual_minutes")
        validate_lead_minutes(self.lead_minutes)
        validate_minutes(self.warning_minutes, "warning_minutes")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SleepSettings":
        """Build settings from the persisted JSON form, filling in defaults."""
        defaults = cls()
        raw_time = data.get("target_time", format_time_of_day(defaults.target_time))
        return cls(
            auto_sleep_enabled=data.get("auto_sleep_enabled", defaults.auto_sleep_enabled),
            target_time=parse_time_of_day(raw_time),
            default_manual_minutes=data.get("default_manual_minutes", defaults.default_manual_minutes),
            lead_minutes=data.get("lead_minutes", defaults.lead_minutes),
            warning_minutes=data.get("warning_minutes", defaults.warning_minutes),
        ).validate()

    def to_mapping(self) -> dict:
        data = asdict(self)
        data["target_time"] = format_time_of_day(self.target_time)
        return data


# ── Persistence ────────────────────────────────────────────────────────────
def save_settings(settings: SleepSettings) -> None:
    """Validate *settings* and write them to storage."""
    settings.validate()
    _APP_DIR.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(json.dumps(settings.to_mapping(), indent=2), encoding="utf-8")


def load_settings() -> SleepSettings:
    """Read settings from storage, writing first-launch defaults if absent."""
    if not _SETTINGS_FILE.exists():
        _LOGGER.info("No settings at {}; writing first-launch defaults", _SETTINGS_FILE)
        settings = SleepSettings()
        save_settings(settings)
        return settings

    try:
        data = json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Unreadable settings file {} ({}); restoring defaults", _SETTINGS_FILE, exc)
        settings = SleepSettings()
        save_settings(settings)
        return settings

    if not isinstance(data, dict):
        raise InvalidConfiguration(f"{_SETTINGS_FILE} must contain a JSON object")
    return SleepSettings.from_mapping(data)


# ── Test-friendly path overrides ───────────────────────────────────────────
def _override_paths(app_dir: Path, settings_file: Path) -> None:  # pragma: no cover – test helper
    """Redirect storage to a temp directory during unit tests."""
    global _APP_DIR, _SETTINGS_FILE
    _APP_DIR       = app_dir
    _SETTINGS_FILE = settings_file
