# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""User-editable settings: detection sensitivity and the auto-tracking schedule.

Stored as YAML in the data directory and edited through the API.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

MIN_SENSITIVITY = 1
MAX_SENSITIVITY = 10
DEFAULT_SENSITIVITY = 5


class DetectionMode(Enum):
    """How tracking sessions are started."""

    MANUAL = "manual"  # User starts and stops tracking
    AUTO = "auto"  # Scheduler starts and stops tracking


def _parse_hhmm(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    parts = value.split(":")
    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 else 0
    return hour * 60 + minute


@dataclass
class Schedule:
    """Auto-tracking window.

    Attributes:
        start_time: Start time in HH:MM format (24-hour)
        end_time: End time in HH:MM format (24-hour)
        weekdays: Seven flags, Sunday first
    """
    start_time: str = "22:00"
    end_time: str = "07:00"
    weekdays: List[bool] = field(default_factory=lambda: [True] * 7)

    def is_in_window(self, hour: int, minute: int = 0) -> bool:
        """Check if a time of day falls inside the window.

        Handles overnight ranges (e.g., 22:00-07:00). Both ends are inclusive.
        """
        current = hour * 60 + minute
        start = _parse_hhmm(self.start_time)
        end = _parse_hhmm(self.end_time)

        if start <= end:
            # Same day range (e.g., 09:00-17:00)
            return start <= current <= end
        else:
            # Overnight range (e.g., 22:00-07:00)
            return current >= start or current <= end

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Check whether tracking should be running at `now`."""
        now = now or datetime.now()
        # datetime.weekday() is Monday=0; flags are Sunday first
        day_index = (now.weekday() + 1) % 7
        if not self.weekdays[day_index]:
            return False
        return self.is_in_window(now.hour, now.minute)


@dataclass
class UserSettings:
    """Settings the user can change while the service runs."""
    sensitivity: int = DEFAULT_SENSITIVITY
    detection_mode: DetectionMode = DetectionMode.MANUAL
    schedule: Schedule = field(default_factory=Schedule)
    data_retention_days: int = 30

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a YAML/JSON-serializable dictionary."""
        return {
            "sensitivity": self.sensitivity,
            "detection_mode": self.detection_mode.value,
            "schedule": {
                "start_time": self.schedule.start_time,
                "end_time": self.schedule.end_time,
                "weekdays": list(self.schedule.weekdays),
            },
            "data_retention_days": self.data_retention_days,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserSettings":
        """Create from dictionary, validating as it goes."""
        if not data:
            return cls()

        schedule_data = data.get("schedule") or {}
        schedule = Schedule(
            start_time=schedule_data.get("start_time", "22:00"),
            end_time=schedule_data.get("end_time", "07:00"),
            weekdays=[bool(d) for d in schedule_data.get("weekdays", [True] * 7)],
        )

        settings = cls(
            sensitivity=int(data.get("sensitivity", DEFAULT_SENSITIVITY)),
            detection_mode=DetectionMode(data.get("detection_mode", "manual")),
            schedule=schedule,
            data_retention_days=int(data.get("data_retention_days", 30)),
        )
        _validate_user_settings(settings)
        return settings


def _validate_user_settings(settings: UserSettings) -> None:
    """Validate user settings.

    Raises:
        ValueError: If the schedule is malformed
    """
    if not MIN_SENSITIVITY <= settings.sensitivity <= MAX_SENSITIVITY:
        logger.warning(
            f"sensitivity must be {MIN_SENSITIVITY}-{MAX_SENSITIVITY}, clamping to valid range"
        )
        settings.sensitivity = max(MIN_SENSITIVITY, min(MAX_SENSITIVITY, settings.sensitivity))

    if len(settings.schedule.weekdays) != 7:
        raise ValueError("schedule.weekdays must have exactly 7 entries (Sunday first)")

    for name in ("start_time", "end_time"):
        value = getattr(settings.schedule, name)
        try:
            minutes = _parse_hhmm(value)
        except ValueError:
            raise ValueError(f"schedule.{name} must be HH:MM, got {value!r}")
        if not 0 <= minutes < 24 * 60:
            raise ValueError(f"schedule.{name} out of range: {value!r}")

    if settings.data_retention_days < 1:
        logger.warning("data_retention_days must be at least 1, using 1")
        settings.data_retention_days = 1


class UserSettingsStore:
    """Loads and saves UserSettings as YAML.

    Acts as the read-only settings source for the tracking controller.
    """

    def __init__(self, path: Optional[Path] = None):
        """Initialize the store.

        Args:
            path: YAML file location. None keeps settings in memory only.
        """
        self.path = Path(path) if path else None
        self._settings = self._load()

    def _load(self) -> UserSettings:
        if self.path is None or not self.path.exists():
            return UserSettings()
        with open(self.path, 'r') as f:
            data = yaml.safe_load(f)
        try:
            settings = UserSettings.from_dict(data)
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid user settings in {self.path}, using defaults: {e}")
            return UserSettings()
        logger.info(f"Loaded user settings from {self.path}")
        return settings

    @property
    def settings(self) -> UserSettings:
        return self._settings

    def get_sensitivity(self) -> int:
        """Current sensitivity level (1-10)."""
        return self._settings.sensitivity

    def update(self, data: Dict[str, Any]) -> UserSettings:
        """Merge `data` into the current settings and save.

        Raises:
            ValueError: If the merged settings are invalid
        """
        merged = self._settings.to_dict()
        for key, value in data.items():
            if key == "schedule" and isinstance(value, dict):
                merged["schedule"].update(value)
            else:
                merged[key] = value

        self._settings = UserSettings.from_dict(merged)
        self.save()
        return self._settings

    def save(self) -> None:
        """Write settings to disk (no-op when memory-only)."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            yaml.safe_dump(self._settings.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved user settings to {self.path}")
