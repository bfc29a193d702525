"""Shared fixtures for Dusklight tests."""

import random
from datetime import datetime, timezone

import pytest

from core.dusklight.exceptions import LightingClientError
from core.dusklight.gate import FiredLedger, TriggerGate
from core.dusklight.settings import AppConfig, ConfigStore, Coordinates, DeviceTarget, DuskProfile

SUNSET = datetime(2024, 6, 21, 19, 30, 0, tzinfo=timezone.utc)


class RecordingClient:
    """Stands in for LifxClient and records every call."""

    def __init__(self, fail_at=None, fail_times=1):
        self.states = []
        self.cycles = []
        self.toggles = []
        self.fail_at = fail_at  # index of put_state call that fails
        self.fail_times = fail_times
        self._calls = 0

    def put_state(self, command):
        index = self._calls
        self._calls += 1
        if self.fail_at is not None and index >= self.fail_at and self.fail_times > 0:
            self.fail_times -= 1
            raise LightingClientError("502 Bad Gateway")
        self.states.append(command)

    def post_cycle(self, selector, commands):
        self.cycles.append((selector, list(commands)))

    def toggle(self, selector):
        self.toggles.append(selector)

    def list_lights(self, selector="all"):
        return [{"id": "d073d5000001", "label": "Kitchen", "power": "on"}]


@pytest.fixture
def profile():
    return DuskProfile(color_start=2200, color_end=4000, steps=4, duration_minutes=40, turn_off_jitter_minutes=10)


@pytest.fixture
def device():
    return DeviceTarget(
        id="id:d073d5000001",
        name="Kitchen",
        coordinates=Coordinates(59.33, 18.07),
        timezone="UTC",
    )


@pytest.fixture
def config(profile, device):
    return AppConfig(token="secret", default_color=2700, dusk=profile, devices=(device,))


@pytest.fixture
def config_store(config):
    return ConfigStore(config)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def client():
    return RecordingClient()


@pytest.fixture
def gate():
    return TriggerGate(FiredLedger(), sunset_lookup=lambda device, day, tz: SUNSET)
