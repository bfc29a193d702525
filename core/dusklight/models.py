"""
Dusklight Data Models

Lighting commands and the transition plans built from them.
"""

from dataclasses import dataclass
from typing import Literal, Optional

Power = Literal["on", "off"]
Strategy = Literal["stepped", "basic", "beta"]
PlaybackMode = Literal["stepped", "batch"]

# Maximum number of states the lighting API accepts in one cycle call
MAX_CYCLE_STATES = 50


def kelvin(value: int) -> str:
    """Format a color temperature as a lighting API color string."""
    return f"kelvin:{value}"


@dataclass(frozen=True)
class LightCommand:
    """One lighting state sent to a selector."""

    selector: str
    power: Power
    color: str  # e.g. "kelvin:2700"
    brightness: float  # 0.0 - 1.0
    duration: float = 0.0  # Fade time in seconds
    fast: bool = False  # Skip state checks and response body on the remote side

    def to_form(self) -> dict[str, str]:
        """Form fields for a single state PUT."""
        return {
            "power": self.power,
            "color": self.color,
            "brightness": f"{self.brightness:.6f}",
            "duration": f"{self.duration:.6f}",
            "fast": "true" if self.fast else "false",
        }

    def to_dict(self) -> dict:
        """JSON object for one entry of a cycle."""
        return {
            "selector": self.selector,
            "power": self.power,
            "color": self.color,
            "brightness": self.brightness,
            "duration": self.duration,
            "fast": self.fast,
        }


@dataclass(frozen=True)
class PlannedCommand:
    """A command with its dispatch offset.

    Stepped plans send the command and then wait ``sleep_after`` seconds.
    Batch plans carry the ``position`` in the pre-timed cycle instead.
    """

    command: LightCommand
    sleep_after: float = 0.0
    position: Optional[int] = None


@dataclass(frozen=True)
class TransitionPlan:
    """Ordered, immutable list of commands for one trigger event."""

    device_id: str
    strategy: Strategy
    mode: PlaybackMode
    entries: tuple[PlannedCommand, ...]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def commands(self) -> list[LightCommand]:
        return [entry.command for entry in self.entries]

    @property
    def total_seconds(self) -> float:
        """Intended wall clock length of the transition."""
        if self.mode == "batch":
            return sum(entry.command.duration for entry in self.entries)
        return sum(entry.sleep_after for entry in self.entries)

    def summary(self) -> dict:
        return {
            "device_id": self.device_id,
            "strategy": self.strategy,
            "mode": self.mode,
            "commands": len(self.entries),
            "total_seconds": self.total_seconds,
        }


@dataclass(frozen=True)
class PlaybackResult:
    """Outcome of one player execution."""

    device_id: str
    dispatched: int
    aborted: bool = False


@dataclass(frozen=True)
class TriggerOutcome:
    """What an inbound dusk action did."""

    fired: bool
    reason: str
    plan: Optional[TransitionPlan] = None

    def to_dict(self) -> dict:
        data = {"fired": self.fired, "reason": self.reason}
        if self.plan is not None:
            data["plan"] = self.plan.summary()
        return data
