"""Tests for the sunset trigger gate and fired ledger."""

import json
from datetime import date, datetime, timedelta, timezone

from conftest import SUNSET

from core.dusklight.exceptions import SunCalcError
from core.dusklight.gate import FiredLedger, TriggerGate, should_fire
from core.dusklight.settings import DeviceTarget


class TestShouldFire:

    def test_fires_exactly_at_sunset(self):
        assert should_fire(SUNSET, SUNSET) is True

    def test_not_before_sunset(self):
        assert should_fire(SUNSET - timedelta(seconds=1), SUNSET) is False

    def test_window_end_is_exclusive(self):
        assert should_fire(SUNSET + timedelta(seconds=59), SUNSET, 60) is True
        assert should_fire(SUNSET + timedelta(seconds=60), SUNSET, 60) is False

    def test_compares_across_time_zones(self):
        local = SUNSET.astimezone(timezone(timedelta(hours=2)))
        assert local.hour == 21
        assert should_fire(local, SUNSET) is True
        assert should_fire(local - timedelta(minutes=5), SUNSET) is False

    def test_naive_is_read_as_utc(self):
        naive = SUNSET.replace(tzinfo=None) + timedelta(seconds=10)
        assert should_fire(naive, SUNSET) is True


class TestFiredLedger:

    def test_in_memory(self):
        ledger = FiredLedger()
        day = date(2024, 6, 21)

        assert ledger.has_fired("id:1", day) is False
        ledger.mark_fired("id:1", day)
        assert ledger.has_fired("id:1", day) is True
        assert ledger.has_fired("id:1", day + timedelta(days=1)) is False
        assert ledger.has_fired("id:2", day) is False
        assert ledger.last_fired("id:1") == day

    def test_persists_between_instances(self, tmp_path):
        path = tmp_path / "fired.json"
        FiredLedger(path).mark_fired("id:1", date(2024, 6, 21))

        assert json.loads(path.read_text()) == {"id:1": "2024-06-21"}
        assert FiredLedger(path).has_fired("id:1", date(2024, 6, 21)) is True

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / "fired.json"
        path.write_text("{not json")
        assert FiredLedger(path).last_fired("id:1") is None

    def test_non_object_file_starts_empty(self, tmp_path):
        path = tmp_path / "fired.json"
        path.write_text("[1, 2]")

        ledger = FiredLedger(path)
        assert ledger.last_fired("id:1") is None
        ledger.mark_fired("id:1", date(2024, 6, 21))
        assert json.loads(path.read_text()) == {"id:1": "2024-06-21"}

    def test_directory_in_place_of_file_starts_empty(self, tmp_path):
        path = tmp_path / "fired.json"
        path.mkdir()
        assert FiredLedger(path).last_fired("id:1") is None


class TestTriggerGate:

    def test_opens_once_per_day(self, gate, device, config):
        now = SUNSET + timedelta(seconds=5)

        assert gate.evaluate(device, now, config) is True
        gate.mark_fired(device, now, config)
        assert gate.evaluate(device, now + timedelta(seconds=30), config) is False

    def test_closed_outside_window(self, gate, device, config):
        assert gate.evaluate(device, SUNSET - timedelta(hours=1), config) is False
        assert gate.evaluate(device, SUNSET + timedelta(minutes=2), config) is False

    def test_sun_calc_failure_closes_gate(self, device, config):
        def failing_lookup(device, day, tz):
            raise SunCalcError("polar night")

        gate = TriggerGate(FiredLedger(), sunset_lookup=failing_lookup)
        assert gate.evaluate(device, SUNSET, config) is False

    def test_looks_up_sunset_for_device_local_date(self, device, config):
        seen = []

        def lookup(device, day, tz):
            seen.append(day)
            return SUNSET

        tokyo = DeviceTarget(device.id, device.name, device.coordinates, timezone="Asia/Tokyo")
        gate = TriggerGate(FiredLedger(), sunset_lookup=lookup)
        gate.evaluate(tokyo, datetime(2024, 6, 21, 20, 0, tzinfo=timezone.utc), config)

        assert seen == [date(2024, 6, 22)]

    def test_refusal_reasons(self, gate, device, config):
        now = SUNSET + timedelta(seconds=5)

        assert gate.refusal(device, SUNSET - timedelta(hours=1), config) == "outside sunset window"
        assert gate.refusal(device, now, config) is None
        gate.mark_fired(device, now, config)
        assert gate.refusal(device, now, config) == "already fired today"

        def failing_lookup(device, day, tz):
            raise SunCalcError("polar night")

        assert TriggerGate(FiredLedger(), failing_lookup).refusal(device, now, config) == "sunset unavailable"
