"""
Transition Scheduler

Runs plans as background tasks, decoupled from the request that triggered
them. Keeps at most one active transition per device.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .exceptions import DusklightError
from .models import PlaybackMode, PlaybackResult, TransitionPlan
from .player import TransitionPlayer

logger = logging.getLogger(__name__)


@dataclass
class ActiveTransition:
    """A running plan and its cancellation handle."""

    plan: TransitionPlan
    mode: PlaybackMode
    cancel: asyncio.Event
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    task: Optional[asyncio.Task] = None

    def to_dict(self) -> dict:
        return {
            **self.plan.summary(),
            "mode": self.mode,
            "started_at": self.started_at.isoformat(),
        }


class TransitionScheduler:
    """Background transition table keyed by device id."""

    def __init__(self, player: TransitionPlayer):
        self.player = player
        self._active: dict[str, ActiveTransition] = {}
        self._lock = asyncio.Lock()
        self.results: dict[str, PlaybackResult] = {}

    async def start(
        self,
        plan: TransitionPlan,
        mode: Optional[PlaybackMode] = None,
        replace: bool = False,
    ) -> bool:
        """Start a plan in the background.

        Returns False if the device already has an active transition and
        replace is not set. With replace the running one is cancelled first.
        """
        async with self._lock:
            current = self._active.get(plan.device_id)
            if current is not None:
                if not replace:
                    logger.warning(f"Transition already running on {plan.device_id}, not starting another")
                    return False
                await self._stop(current)

            entry = ActiveTransition(plan=plan, mode=mode or plan.mode, cancel=asyncio.Event())
            entry.task = asyncio.create_task(self._run(entry), name=f"transition-{plan.device_id}")
            self._active[plan.device_id] = entry

        logger.info(f"Started {plan.strategy} transition on {plan.device_id} ({entry.mode})")
        return True

    async def _run(self, entry: ActiveTransition) -> None:
        device_id = entry.plan.device_id
        try:
            result = await self.player.execute(entry.plan, entry.mode, entry.cancel)
            self.results[device_id] = result
        except DusklightError as e:
            logger.error(f"Transition on {device_id} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error in transition on {device_id}: {e}", exc_info=True)
        finally:
            if self._active.get(device_id) is entry:
                del self._active[device_id]

    @staticmethod
    async def _stop(entry: ActiveTransition) -> None:
        entry.cancel.set()
        if entry.task is not None:
            await entry.task

    async def cancel(self, device_id: str) -> bool:
        """Abort the device's transition. Returns False if none was running."""
        async with self._lock:
            entry = self._active.get(device_id)
            if entry is None:
                return False
            await self._stop(entry)

        logger.info(f"Cancelled transition on {device_id}")
        return True

    async def cancel_all(self) -> None:
        async with self._lock:
            entries = list(self._active.values())
            for entry in entries:
                entry.cancel.set()
            await asyncio.gather(*(e.task for e in entries if e.task is not None))

        if entries:
            logger.info(f"Cancelled {len(entries)} running transition(s)")

    def is_active(self, device_id: str) -> bool:
        return device_id in self._active

    def active(self) -> list[dict]:
        return [entry.to_dict() for entry in self._active.values()]
