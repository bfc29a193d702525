"""Tests for inbound light actions and the sunset watcher."""

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest
from conftest import SUNSET

from core.dusklight.actions import LightActions
from core.dusklight.exceptions import DeviceNotFoundError, InvalidProfileError, UnknownActionError
from core.dusklight.player import TransitionPlayer
from core.dusklight.scheduler import TransitionScheduler
from core.dusklight.settings import ConfigStore, DuskProfile
from core.dusklight.sunset_watcher import SunsetWatcher


def make_actions(config_store, client, gate, rng, now=SUNSET + timedelta(seconds=5)):
    scheduler = TransitionScheduler(TransitionPlayer(client))
    return LightActions(config_store, client, scheduler, gate, rng=rng, clock=lambda: now)


async def wait_until(predicate):
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


class TestDusk:

    @pytest.mark.asyncio
    async def test_fires_once_in_window(self, config_store, client, gate, rng, device):
        actions = make_actions(config_store, client, gate, rng)

        outcome = await actions.dusk(device)
        assert outcome.fired is True
        assert len(outcome.plan) == 5
        assert actions.scheduler.is_active(device.id)

        await actions.scheduler.cancel_all()
        again = await actions.dusk(device)
        assert again.fired is False

    @pytest.mark.asyncio
    async def test_outside_window(self, config_store, client, gate, rng, device):
        actions = make_actions(config_store, client, gate, rng, now=SUNSET - timedelta(hours=2))

        outcome = await actions.dusk(device)

        assert outcome.fired is False
        assert outcome.plan is None
        assert client.states == []

    @pytest.mark.asyncio
    async def test_force_skips_gate(self, config_store, client, gate, rng, device):
        actions = make_actions(config_store, client, gate, rng, now=SUNSET - timedelta(hours=2))

        outcome = await actions.dusk(device, "basic", force=True)
        await wait_until(lambda: client.states)

        assert outcome.fired is True
        assert client.states[0].color == "kelvin:4000"

    @pytest.mark.asyncio
    async def test_forced_run_leaves_todays_sunset_trigger(self, config_store, client, gate, rng, device):
        forced = make_actions(config_store, client, gate, rng, now=SUNSET - timedelta(hours=8))
        outcome = await forced.dusk_basic(device, force=True)
        await wait_until(lambda: client.states)

        assert outcome.plan.strategy == "basic"
        assert not gate.ledger.has_fired(device.id, SUNSET.date())

        at_sunset = make_actions(config_store, client, gate, rng)
        fired = await at_sunset.dusk(device)
        await at_sunset.scheduler.cancel_all()

        assert fired.fired is True
        assert gate.ledger.has_fired(device.id, SUNSET.date())

    @pytest.mark.asyncio
    async def test_refusal_reason_is_reported(self, config_store, client, gate, rng, device):
        actions = make_actions(config_store, client, gate, rng)

        await actions.dusk(device)
        await actions.scheduler.cancel_all()
        again = await actions.dusk(device)

        assert again.fired is False
        assert again.reason == "already fired today"

    @pytest.mark.asyncio
    async def test_tail_counts_down_to_device_midnight(self, config_store, client, gate, rng, device):
        actions = make_actions(config_store, client, gate, rng)

        outcome = await actions.dusk(device)
        await actions.scheduler.cancel_all()

        # Sunset at 19:30 UTC leaves about 4.5 hours to midnight
        tail = outcome.plan.entries[-2].sleep_after
        assert 16195 - 300 <= tail < 16195 + 300

    @pytest.mark.asyncio
    async def test_invalid_profile_sends_nothing(self, config, client, gate, rng, device):
        store = ConfigStore(replace(config, dusk=DuskProfile(2200, 4000, 0, 40, 10)))
        actions = make_actions(store, client, gate, rng)

        with pytest.raises(InvalidProfileError):
            await actions.dusk(device)
        assert client.states == []
        assert not gate.ledger.has_fired(device.id, SUNSET.date())

    @pytest.mark.asyncio
    async def test_beta_submits_one_cycle(self, config_store, client, gate, rng, device):
        actions = make_actions(config_store, client, gate, rng)

        await actions.dusk_beta(device)
        await wait_until(lambda: client.cycles)

        assert len(client.cycles) == 1
        assert len(client.cycles[0][1]) == 10


class TestRun:

    @pytest.mark.asyncio
    async def test_power_actions(self, config_store, client, gate, rng):
        actions = make_actions(config_store, client, gate, rng)

        await actions.run("on", "Kitchen")
        await actions.run("off", "Kitchen")
        await actions.run("toggle", "Kitchen")

        on, off = client.states
        assert (on.power, on.brightness, on.color) == ("on", 1.0, "kelvin:2700")
        assert (off.power, off.brightness) == ("off", 0.0)
        assert client.toggles == ["id:d073d5000001"]

    @pytest.mark.asyncio
    async def test_state_lists_lights(self, config_store, client, gate, rng):
        actions = make_actions(config_store, client, gate, rng)
        lights = await actions.run("state", "")
        assert lights[0]["label"] == "Kitchen"

    @pytest.mark.asyncio
    async def test_unknown_action_and_device(self, config_store, client, gate, rng):
        actions = make_actions(config_store, client, gate, rng)

        with pytest.raises(UnknownActionError):
            await actions.run("dance", "Kitchen")
        with pytest.raises(DeviceNotFoundError):
            await actions.run("on", "Garage")

    @pytest.mark.asyncio
    async def test_dusk_action_names(self, config_store, client, gate, rng):
        actions = make_actions(config_store, client, gate, rng)

        outcome = await actions.run("duskBasic", "Kitchen")
        await actions.scheduler.cancel_all()

        assert outcome.plan.strategy == "basic"


class TestSunsetWatcher:

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, config_store, client, gate, rng):
        watcher = SunsetWatcher(make_actions(config_store, client, gate, rng))
        assert await watcher.check_devices() == []

    @pytest.mark.asyncio
    async def test_fires_configured_strategy_once(self, config, client, gate, rng):
        store = ConfigStore(replace(config, auto_strategy="duskBeta"))
        watcher = SunsetWatcher(make_actions(store, client, gate, rng))

        assert await watcher.check_devices() == ["Kitchen"]
        await wait_until(lambda: client.cycles)
        assert await watcher.check_devices() == []
        assert len(client.cycles) == 1

    @pytest.mark.asyncio
    async def test_start_stop(self, config_store, client, gate, rng):
        watcher = SunsetWatcher(make_actions(config_store, client, gate, rng), poll_interval_seconds=60)

        await watcher.start()
        await watcher.stop()
        await watcher.stop()
