"""Tests for the astral sunset lookup."""

from datetime import date, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from core.dusklight.exceptions import SunCalcError
from core.dusklight.settings import Coordinates, DeviceTarget
from core.dusklight.sun import device_sunset, sun_events, sunset


def test_stockholm_midsummer():
    tz = ZoneInfo("Europe/Stockholm")
    events = sun_events(59.33, 18.07, date(2024, 6, 21), tz)

    assert events.sunrise < events.sunset
    assert events.sunset.date() == date(2024, 6, 21)
    assert 21 <= events.sunset.astimezone(tz).hour <= 22


def test_missing_coordinates_raise():
    with pytest.raises(SunCalcError):
        sunset(0.0, 0.0, date(2024, 6, 21), timezone.utc)


def test_device_without_coordinates_raises():
    assert not Coordinates().is_set
    with pytest.raises(SunCalcError, match="not configured"):
        device_sunset(DeviceTarget("id:1", "a"), date(2024, 6, 21))


def test_polar_day_raises():
    with pytest.raises(SunCalcError):
        sunset(78.22, 15.65, date(2024, 6, 21), timezone.utc)


def test_device_offset_changes_reported_zone_not_instant():
    base = DeviceTarget("id:1", "a", Coordinates(59.33, 18.07), utc_offset=2.0)
    utc = DeviceTarget("id:1", "a", Coordinates(59.33, 18.07), timezone="UTC")

    local = device_sunset(base, date(2024, 3, 1))
    reference = device_sunset(utc, date(2024, 3, 1))

    assert local.utcoffset() == timedelta(hours=2)
    assert abs((local - reference).total_seconds()) < 60
