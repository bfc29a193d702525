"""
Sunset Watcher Service

Background service that polls the sunset window for every configured device
and starts the configured automatic dusk strategy when it opens.
"""

import asyncio
import logging

from .actions import DUSK_STRATEGIES, LightActions
from .exceptions import DusklightError

logger = logging.getLogger(__name__)


class SunsetWatcher:
    """
    Periodic driver for the trigger gate.

    The poll interval should stay below the trigger window so no sunset is
    skipped. The ledger inside the gate keeps faster polling from firing
    twice.
    """

    def __init__(self, actions: LightActions, poll_interval_seconds: int = 30):
        self.actions = actions
        self.poll_interval_seconds = poll_interval_seconds

        self._task: asyncio.Task | None = None
        self._running = False

    async def start(self):
        """Start the sunset watcher."""
        if self._running:
            logger.warning("Sunset watcher already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Sunset watcher started, polling every {self.poll_interval_seconds} seconds")

    async def stop(self):
        """Stop the sunset watcher."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Sunset watcher stopped")

    async def _run_loop(self):
        """Main polling loop. Polls run on a fixed schedule, not fixed gaps."""
        loop = asyncio.get_running_loop()
        next_poll = loop.time()
        while self._running:
            try:
                await self.check_devices()
            except Exception as e:
                logger.error(f"Error in sunset watcher loop: {e}", exc_info=True)

            next_poll += self.poll_interval_seconds
            delay = next_poll - loop.time()
            if delay < 0:
                logger.warning(f"Sunset watcher fell {-delay:.1f}s behind schedule")
                next_poll = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def check_devices(self) -> list[str]:
        """Evaluate every device once. Returns the names that fired."""
        config = self.actions.config_store.snapshot()
        if config.auto_strategy == "none":
            return []

        strategy = DUSK_STRATEGIES[config.auto_strategy]
        fired = []
        for device in config.devices:
            try:
                outcome = await self.actions.dusk(device, strategy, config=config)
            except DusklightError as e:
                logger.error(f"Automatic dusk for {device.name} failed: {e}")
                continue
            if outcome.fired:
                fired.append(device.name)
        return fired
