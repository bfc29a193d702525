"""
Dusklight Configuration Settings

Read-only snapshots of the lighting configuration.
The document is JSON shaped (config.json), YAML is accepted for development.
"""

import json
import logging
import os
import re
import threading
from dataclasses import dataclass, field, replace
from datetime import timedelta, tzinfo
from datetime import timezone as fixed_offset
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError, InvalidProfileError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.lifx.com/v1/lights/"
DEFAULT_CONFIG_PATH = "./config.json"

# Beta playback always precomputes this many intermediate states
BETA_STEP_CAP = 8

AUTO_STRATEGIES = ("none", "dusk", "duskBasic", "duskBeta")


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _to_int(value: Any, key: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")


@dataclass(frozen=True)
class DuskProfile:
    """Parameters of the gradual evening transition."""

    color_start: int  # Kelvin at the first step
    color_end: int  # Kelvin at the last step
    steps: int
    duration_minutes: int  # Time spent fading through all steps
    turn_off_jitter_minutes: int = 0  # Width of the random window around the off time

    def validate(self) -> None:
        """Raise InvalidProfileError if no plan can be built from this profile."""
        if self.steps <= 0:
            raise InvalidProfileError(f"steps must be >= 1, got {self.steps}")
        if self.color_start <= 0 or self.color_end <= 0:
            raise InvalidProfileError(
                f"Colors must be positive Kelvin values, got {self.color_start} -> {self.color_end}"
            )
        if self.duration_minutes <= 0:
            raise InvalidProfileError(f"duration must be positive, got {self.duration_minutes}")
        if self.turn_off_jitter_minutes < 0:
            raise InvalidProfileError(
                f"turn off jitter must be non-negative, got {self.turn_off_jitter_minutes}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "DuskProfile":
        """Create from dictionary."""
        converted = {_camel_to_snake(k): v for k, v in data.items()}

        # Handle legacy key names
        if "duration" in converted:
            converted["duration_minutes"] = converted.pop("duration")
        if "turn_off_range" in converted:
            converted["turn_off_jitter_minutes"] = converted.pop("turn_off_range")

        try:
            return cls(
                color_start=_to_int(converted["color_start"], "colorStart"),
                color_end=_to_int(converted["color_end"], "colorEnd"),
                steps=_to_int(converted["steps"], "steps"),
                duration_minutes=_to_int(converted["duration_minutes"], "duration"),
                turn_off_jitter_minutes=_to_int(
                    converted.get("turn_off_jitter_minutes", 0), "turnOffJitterMinutes"
                ),
            )
        except KeyError as e:
            raise ConfigurationError(f"Dusk profile is missing {e}")

    def to_dict(self) -> dict:
        return {
            "colorStart": self.color_start,
            "colorEnd": self.color_end,
            "steps": self.steps,
            "durationMinutes": self.duration_minutes,
            "turnOffJitterMinutes": self.turn_off_jitter_minutes,
        }


@dataclass(frozen=True)
class Coordinates:
    latitude: float = 0.0
    longitude: float = 0.0

    @property
    def is_set(self) -> bool:
        return not (self.latitude == 0.0 and self.longitude == 0.0)


@dataclass(frozen=True)
class DeviceTarget:
    """A device or group of devices addressed by a selector."""

    id: str  # Lighting API selector, e.g. "id:d073d5000000" or "group:Kitchen"
    name: str
    coordinates: Coordinates = field(default_factory=Coordinates)
    timezone: Optional[str] = None  # IANA zone used for sunset and midnight
    utc_offset: Optional[float] = None  # Fixed offset in hours when no zone is given

    def tzinfo(self, default: str = "UTC") -> tzinfo:
        """Resolve the civil time zone of this device.

        Raises:
            ConfigurationError: If the zone name is unknown
        """
        if self.timezone:
            return _zone(self.timezone)
        if self.utc_offset is not None:
            return fixed_offset(timedelta(hours=self.utc_offset))
        return _zone(default)

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceTarget":
        """Create from dictionary."""
        converted = {_camel_to_snake(k): v for k, v in data.items()}
        coords = converted.pop("coordinates", None) or {}
        if "id" not in converted or "name" not in converted:
            raise ConfigurationError(f"Device needs an id and a name: {data}")

        try:
            offset = converted.get("utc_offset")
            return cls(
                id=str(converted["id"]),
                name=str(converted["name"]),
                coordinates=Coordinates(
                    latitude=float(coords.get("latitude", 0.0)),
                    longitude=float(coords.get("longitude", 0.0)),
                ),
                timezone=converted.get("timezone") or None,
                utc_offset=float(offset) if offset is not None else None,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Device {converted['name']} has invalid values: {e}")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "coordinates": {
                "latitude": self.coordinates.latitude,
                "longitude": self.coordinates.longitude,
            },
        }
        if self.timezone:
            data["timezone"] = self.timezone
        if self.utc_offset is not None:
            data["utcOffset"] = self.utc_offset
        return data


def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Unknown time zone: {name}")


@dataclass(frozen=True)
class AppConfig:
    """Complete configuration snapshot."""

    token: str
    default_color: int
    dusk: DuskProfile
    devices: tuple[DeviceTarget, ...] = ()
    timezone: str = "UTC"
    trigger_window_seconds: int = 60
    poll_interval_seconds: int = 30
    auto_strategy: str = "none"
    base_url: str = DEFAULT_BASE_URL

    def find_device(self, name_or_id: str) -> Optional[DeviceTarget]:
        """Find a device by name, falling back to its selector id."""
        for device in self.devices:
            if device.name == name_or_id:
                return device
        return next((d for d in self.devices if d.id == name_or_id), None)

    def with_device(self, device: DeviceTarget) -> "AppConfig":
        """Return a copy with the device added, replacing one of the same name."""
        others = tuple(d for d in self.devices if d.name != device.name)
        return replace(self, devices=others + (device,))

    def validate(self) -> None:
        """Check the snapshot before it is used for triggers.

        Raises:
            ConfigurationError: If any value is unusable
        """
        if not self.token:
            raise ConfigurationError("Lighting API token is not configured")
        if self.default_color <= 0:
            raise ConfigurationError(f"defaultColor must be positive, got {self.default_color}")
        try:
            self.dusk.validate()
        except InvalidProfileError as e:
            raise ConfigurationError(f"Invalid dusk profile: {e}") from e
        if self.auto_strategy not in AUTO_STRATEGIES:
            raise ConfigurationError(
                f"autoStrategy must be one of {AUTO_STRATEGIES}, got {self.auto_strategy!r}"
            )
        if self.trigger_window_seconds <= 0:
            raise ConfigurationError("triggerWindowSeconds must be positive")
        if not 0 < self.poll_interval_seconds < self.trigger_window_seconds:
            raise ConfigurationError(
                f"pollIntervalSeconds must be positive and below triggerWindowSeconds "
                f"({self.trigger_window_seconds}), got {self.poll_interval_seconds}"
            )
        names = [d.name for d in self.devices]
        if len(names) != len(set(names)):
            raise ConfigurationError("Device names must be unique")
        for device in self.devices:
            device.tzinfo(self.timezone)

        if self.dusk.steps != BETA_STEP_CAP:
            logger.warning(
                f"Dusk steps is {self.dusk.steps} but beta playback always sends "
                f"{BETA_STEP_CAP} intermediate states interpolated over {self.dusk.steps} steps"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")
        converted = {_camel_to_snake(k): v for k, v in data.items()}
        if "dusk" not in converted:
            raise ConfigurationError("Configuration has no dusk profile")

        devices = tuple(DeviceTarget.from_dict(d) for d in converted.get("devices") or [])
        return cls(
            token=str(converted.get("token", "")).strip(),
            default_color=_to_int(converted.get("default_color", 2700), "defaultColor"),
            dusk=DuskProfile.from_dict(converted["dusk"]),
            devices=devices,
            timezone=converted.get("timezone", "UTC"),
            trigger_window_seconds=_to_int(
                converted.get("trigger_window_seconds", 60), "triggerWindowSeconds"
            ),
            poll_interval_seconds=_to_int(
                converted.get("poll_interval_seconds", 30), "pollIntervalSeconds"
            ),
            auto_strategy=converted.get("auto_strategy", "none"),
            base_url=converted.get("base_url", DEFAULT_BASE_URL),
        )

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "defaultColor": self.default_color,
            "dusk": self.dusk.to_dict(),
            "devices": [d.to_dict() for d in self.devices],
            "timezone": self.timezone,
            "triggerWindowSeconds": self.trigger_window_seconds,
            "pollIntervalSeconds": self.poll_interval_seconds,
            "autoStrategy": self.auto_strategy,
            "baseUrl": self.base_url,
        }


def config_path_from_env() -> Path:
    """Resolve the configuration path from the environment or a .env file."""
    load_dotenv()
    return Path(os.getenv("DUSKLIGHT_CONFIG", DEFAULT_CONFIG_PATH))


def _read_document(path: Path) -> Any:
    if not path.exists():
        raise ConfigurationError(f"No configuration file found at {path}")

    try:
        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
            return json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Configuration file not valid: {e}") from e


def load_config(path: Path | str) -> AppConfig:
    """Load and validate a configuration file.

    A LIFX_TOKEN environment variable replaces the token from the file.

    Args:
        path: JSON file, or YAML when the suffix is .yaml/.yml

    Returns:
        Validated configuration snapshot

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    data = _read_document(path)

    token_override = os.getenv("LIFX_TOKEN")
    if token_override and isinstance(data, dict):
        data = {**data, "token": token_override}

    config = AppConfig.from_dict(data)
    config.validate()
    logger.info(f"Loaded configuration with {len(config.devices)} device(s) from {path}")
    return config


def save_config(config: AppConfig, path: Path | str) -> None:
    """Write the configuration as JSON."""
    path = Path(path)
    tmp_path = path.parent / (path.name + ".tmp")
    with open(tmp_path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
    os.replace(tmp_path, path)
    logger.info(f"Saved configuration to {path}")


class ConfigStore:
    """Holds the current configuration snapshot.

    Readers take a snapshot and keep using it for the whole trigger cycle.
    Reloads build a new snapshot and swap the reference.
    """

    def __init__(self, config: AppConfig, path: Optional[Path | str] = None):
        self._config = config
        self.path = Path(path) if path else None
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Path | str) -> "ConfigStore":
        return cls(load_config(path), path)

    def snapshot(self) -> AppConfig:
        return self._config

    def reload(self) -> AppConfig:
        """Reload from disk. The previous snapshot stays active on failure."""
        if self.path is None:
            raise ConfigurationError("Configuration store has no file to reload from")
        config = load_config(self.path)
        with self._lock:
            self._config = config
        return config

    def _token_on_file(self, config: AppConfig) -> str:
        # The environment override is never written back to the file
        if not self.path.exists():
            return config.token
        data = _read_document(self.path)
        if not isinstance(data, dict):
            return config.token
        return str(data.get("token", "")).strip()

    def add_device(self, device: DeviceTarget) -> AppConfig:
        """Register a device and persist the configuration."""
        with self._lock:
            config = self._config.with_device(device)
            config.validate()
            if self.path is not None:
                save_config(replace(config, token=self._token_on_file(config)), self.path)
            self._config = config
        logger.info(f"Registered device {device.name} ({device.id})")
        return config
