"""
Sunset Trigger Gate

Decides whether a dusk transition should start now. The window check is a
pure function so any polling driver can use it. TriggerGate adds the sunset
lookup and the once-per-day ledger on top.
"""

import json
import logging
import os
import threading
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from .exceptions import ConfigurationError, SunCalcError
from .settings import AppConfig, DeviceTarget
from .sun import device_sunset

logger = logging.getLogger(__name__)

SunsetLookup = Callable[[DeviceTarget, date, str], datetime]


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes are read as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def should_fire(now: datetime, sunset: datetime, window_seconds: int = 60) -> bool:
    """True iff sunset <= now < sunset + window_seconds."""
    now_utc = _as_utc(now)
    sunset_utc = _as_utc(sunset)
    return sunset_utc <= now_utc < sunset_utc + timedelta(seconds=window_seconds)


class FiredLedger:
    """Remembers the last local date each device fired.

    Persisted as a small JSON object {device_id: "YYYY-MM-DD"} when a path
    is given, otherwise kept in memory.
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path) if path else None
        self.lock = threading.Lock()
        self._fired: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable trigger ledger {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring trigger ledger {self.path}: expected an object, got {type(data).__name__}")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self) -> None:
        if self.path is None:
            return
        tmp_path = self.path.parent / (self.path.name + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(self._fired, f, indent=2)
        os.replace(tmp_path, self.path)

    def has_fired(self, device_id: str, day: date) -> bool:
        with self.lock:
            return self._fired.get(device_id) == day.isoformat()

    def mark_fired(self, device_id: str, day: date) -> None:
        with self.lock:
            self._fired[device_id] = day.isoformat()
            self._save()
        logger.debug(f"Marked {device_id} as fired on {day}")

    def last_fired(self, device_id: str) -> Optional[date]:
        with self.lock:
            value = self._fired.get(device_id)
        return date.fromisoformat(value) if value else None


class TriggerGate:
    """Sunset window check with per-device daily deduplication."""

    def __init__(self, ledger: FiredLedger, sunset_lookup: SunsetLookup = device_sunset):
        self.ledger = ledger
        self.sunset_lookup = sunset_lookup

    def local_date(self, device: DeviceTarget, now: datetime, config: AppConfig) -> date:
        return _as_utc(now).astimezone(device.tzinfo(config.timezone)).date()

    def refusal(self, device: DeviceTarget, now: datetime, config: AppConfig) -> Optional[str]:
        """Return why the device's dusk transition should not start now, or None if it should.

        Sunset lookup failures never raise, they close the gate.
        """
        try:
            day = self.local_date(device, now, config)
            sunset = self.sunset_lookup(device, day, config.timezone)
        except (SunCalcError, ConfigurationError) as e:
            logger.warning(f"Not firing {device.name}: {e}")
            return "sunset unavailable"

        if not should_fire(now, sunset, config.trigger_window_seconds):
            logger.debug(f"{device.name}: outside window (sunset {sunset.isoformat()})")
            return "outside sunset window"

        if self.ledger.has_fired(device.id, day):
            logger.info(f"{device.name}: already fired on {day}")
            return "already fired today"

        return None

    def evaluate(self, device: DeviceTarget, now: datetime, config: AppConfig) -> bool:
        """Return True if the device's dusk transition should start now."""
        return self.refusal(device, now, config) is None

    def mark_fired(self, device: DeviceTarget, now: datetime, config: AppConfig) -> None:
        self.ledger.mark_fired(device.id, self.local_date(device, now, config))
