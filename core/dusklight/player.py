"""
Transition Player

Delivers a TransitionPlan to the lighting API, either one state at a time
with waits in between, or as a single cycle the device plays on its own.
"""

import asyncio
import logging
from typing import Optional

from .exceptions import DispatchError, LightingClientError, PlanCapacityError
from .lifx_client import LifxClient
from .models import (
    MAX_CYCLE_STATES,
    LightCommand,
    PlannedCommand,
    PlaybackMode,
    PlaybackResult,
    TransitionPlan,
    kelvin,
)

logger = logging.getLogger(__name__)


class TransitionPlayer:
    """Executes plans against a LIFX client.

    Client calls block, so they run in a worker thread and never stall the
    event loop. A stepped play can take hours, callers are expected to run
    it as a background task.
    """

    def __init__(
        self,
        client: LifxClient,
        max_attempts: int = 1,
        retry_delay: float = 2.0,
        safety_off: bool = False,
        off_color: int = 2700,
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.safety_off = safety_off
        self.off_color = off_color

    async def execute(
        self,
        plan: TransitionPlan,
        mode: Optional[PlaybackMode] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> PlaybackResult:
        """Play a plan.

        Args:
            plan: Plan to deliver
            mode: "stepped" or "batch", defaults to the plan's own mode
            cancel: Set to abort a stepped play before its next dispatch

        Raises:
            DispatchError: If a command cannot be delivered
            PlanCapacityError: If a batch plan exceeds the cycle limit
        """
        mode = mode or plan.mode
        if mode == "batch":
            return await self._execute_batch(plan)
        if mode == "stepped":
            return await self._execute_stepped(plan, cancel or asyncio.Event())
        raise ValueError(f"Unknown playback mode: {mode}")

    async def _execute_batch(self, plan: TransitionPlan) -> PlaybackResult:
        if len(plan) > MAX_CYCLE_STATES:
            raise PlanCapacityError(f"Plan has {len(plan)} commands, cycle limit is {MAX_CYCLE_STATES}")

        try:
            await asyncio.to_thread(self.client.post_cycle, plan.device_id, plan.commands)
        except LightingClientError as e:
            logger.error(f"Cycle for {plan.device_id} failed: {e}")
            raise DispatchError(0, str(e)) from e

        return PlaybackResult(plan.device_id, dispatched=len(plan))

    async def _execute_stepped(self, plan: TransitionPlan, cancel: asyncio.Event) -> PlaybackResult:
        logger.info(f"Playing {plan.strategy} plan on {plan.device_id}: {len(plan)} steps")

        last = len(plan) - 1
        for index, entry in enumerate(plan.entries):
            if cancel.is_set() or not await self._send(index, entry.command, cancel):
                return await self._abort(plan, index)

            # Nothing is left to cancel once the final command is out
            if index < last and await self._wait(_delay(entry), cancel):
                return await self._abort(plan, index + 1)

        logger.info(f"Finished {plan.strategy} plan on {plan.device_id}")
        return PlaybackResult(plan.device_id, dispatched=len(plan))

    async def _send(self, index: int, command: LightCommand, cancel: asyncio.Event) -> bool:
        """Deliver one command. Returns False if cancelled while waiting to retry."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                await asyncio.to_thread(self.client.put_state, command)
                return True
            except LightingClientError as e:
                if attempt == self.max_attempts:
                    logger.error(f"Step {index} on {command.selector} failed, aborting plan: {e}")
                    raise DispatchError(index, str(e)) from e
                logger.warning(f"Step {index} on {command.selector} failed (attempt {attempt}), retrying: {e}")
                if await self._wait(self.retry_delay, cancel):
                    return False
        return False

    @staticmethod
    async def _wait(seconds: float, cancel: asyncio.Event) -> bool:
        """Sleep unless cancelled. Returns True when cancelled."""
        if seconds <= 0:
            return cancel.is_set()
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _abort(self, plan: TransitionPlan, dispatched: int) -> PlaybackResult:
        logger.warning(f"Plan on {plan.device_id} cancelled after {dispatched} of {len(plan)} steps")
        if self.safety_off and dispatched < len(plan):
            off = LightCommand(plan.device_id, "off", kelvin(self.off_color), 0.0, 0.0, False)
            try:
                await asyncio.to_thread(self.client.put_state, off)
            except LightingClientError as e:
                logger.error(f"Safety power off for {plan.device_id} failed: {e}")
        return PlaybackResult(plan.device_id, dispatched=dispatched, aborted=True)


def _delay(entry: PlannedCommand) -> float:
    # Cycle entries carry no sleep, their fade time is the spacing
    if entry.position is not None:
        return entry.command.duration
    return entry.sleep_after
