"""
Light Actions

One entry point per inbound action. The web router resolves a device name
and an action and calls LightActions.run().
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .exceptions import DeviceNotFoundError, UnknownActionError
from .gate import TriggerGate
from .lifx_client import LifxClient
from .models import LightCommand, Strategy, TriggerOutcome, kelvin
from .planner import plan, seconds_until_midnight
from .scheduler import TransitionScheduler
from .settings import AppConfig, ConfigStore, DeviceTarget

logger = logging.getLogger(__name__)

ACTIONS = ("state", "toggle", "on", "off", "dusk", "duskBasic", "duskBeta")

# Inbound dusk action -> planner strategy
DUSK_STRATEGIES: dict[str, Strategy] = {
    "dusk": "stepped",
    "duskBasic": "basic",
    "duskBeta": "beta",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LightActions:
    """Inbound actions for configured devices."""

    def __init__(
        self,
        config_store: ConfigStore,
        client: LifxClient,
        scheduler: TransitionScheduler,
        gate: TriggerGate,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.config_store = config_store
        self.client = client
        self.scheduler = scheduler
        self.gate = gate
        self.rng = rng or random.Random()
        self.clock = clock

    def resolve(self, name: str, config: Optional[AppConfig] = None) -> DeviceTarget:
        config = config or self.config_store.snapshot()
        device = config.find_device(name)
        if device is None:
            raise DeviceNotFoundError(f"Selector not found: {name}")
        return device

    async def run(self, action: str, name: str, force: bool = False) -> Any:
        """Dispatch an action for the named device."""
        if action not in ACTIONS:
            raise UnknownActionError(f"No action found for {action}")

        if action == "state":
            return await self.state()

        config = self.config_store.snapshot()
        device = self.resolve(name, config)

        if action == "toggle":
            await self.toggle(device)
        elif action == "on":
            await self.on(device, config)
        elif action == "off":
            await self.off(device, config)
        else:
            return await self.dusk(device, DUSK_STRATEGIES[action], force=force, config=config)
        return {"device": device.name, "action": action}

    async def state(self) -> list[dict]:
        return await asyncio.to_thread(self.client.list_lights)

    async def toggle(self, device: DeviceTarget) -> None:
        await asyncio.to_thread(self.client.toggle, device.id)

    async def set_power(self, device: DeviceTarget, power: str, brightness: float, config: AppConfig) -> None:
        command = LightCommand(device.id, power, kelvin(config.default_color), brightness, 0.0, False)
        await asyncio.to_thread(self.client.put_state, command)

    async def on(self, device: DeviceTarget, config: Optional[AppConfig] = None) -> None:
        await self.set_power(device, "on", 1.0, config or self.config_store.snapshot())

    async def off(self, device: DeviceTarget, config: Optional[AppConfig] = None) -> None:
        await self.set_power(device, "off", 0.0, config or self.config_store.snapshot())

    async def dusk(
        self,
        device: DeviceTarget,
        strategy: Strategy = "stepped",
        force: bool = False,
        config: Optional[AppConfig] = None,
    ) -> TriggerOutcome:
        """Start a dusk transition if the device is at its sunset window.

        Planning errors propagate before anything is sent. With force the
        sunset window and the daily check are skipped, and the day is not
        marked as fired.
        """
        config = config or self.config_store.snapshot()
        now = self.clock()

        if not force:
            reason = self.gate.refusal(device, now, config)
            if reason is not None:
                return TriggerOutcome(fired=False, reason=reason)

        local_now = now.astimezone(device.tzinfo(config.timezone))
        transition = plan(
            strategy,
            config.dusk,
            device,
            seconds_until_midnight(local_now),
            self.rng,
            config.default_color,
        )

        if not await self.scheduler.start(transition):
            return TriggerOutcome(fired=False, reason="transition already running", plan=transition)

        if not force:
            self.gate.mark_fired(device, now, config)
        logger.info(f"Dusk {strategy} started for {device.name}")
        return TriggerOutcome(fired=True, reason="started", plan=transition)

    async def dusk_basic(self, device: DeviceTarget, force: bool = False) -> TriggerOutcome:
        return await self.dusk(device, "basic", force=force)

    async def dusk_beta(self, device: DeviceTarget, force: bool = False) -> TriggerOutcome:
        return await self.dusk(device, "beta", force=force)
