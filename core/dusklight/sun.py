"""Sunrise and sunset lookup using the astral library."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from astral import LocationInfo
from astral.sun import sun

from .exceptions import SunCalcError
from .settings import Coordinates, DeviceTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SunEvents:
    sunrise: datetime
    sunset: datetime


def sun_events(latitude: float, longitude: float, day: date, tz: tzinfo) -> SunEvents:
    """
    Compute sunrise and sunset for a location.

    Args:
        latitude: Latitude in degrees (-90 to 90)
        longitude: Longitude in degrees (-180 to 180)
        day: Civil date in the given zone
        tz: Zone the returned datetimes are expressed in

    Returns:
        Timezone-aware sunrise and sunset

    Raises:
        SunCalcError: If coordinates are missing or the sun does not rise/set that day
    """
    if not Coordinates(latitude, longitude).is_set:
        raise SunCalcError("Coordinates are not configured")

    location = LocationInfo(latitude=latitude, longitude=longitude)
    try:
        times = sun(location.observer, date=day, tzinfo=tz)
    except ValueError as e:
        # Polar day or night
        raise SunCalcError(f"No sunset at ({latitude}, {longitude}) on {day}: {e}") from e

    return SunEvents(sunrise=times["sunrise"], sunset=times["sunset"])


def sunset(latitude: float, longitude: float, day: date, tz: tzinfo) -> datetime:
    return sun_events(latitude, longitude, day, tz).sunset


def device_sunset(device: DeviceTarget, day: date, default_tz: str = "UTC") -> datetime:
    """Sunset for a device, evaluated in the device's own civil time."""
    tz = device.tzinfo(default_tz)
    return sunset(device.coordinates.latitude, device.coordinates.longitude, day, tz)
