"""
Dusk Transition Planner

Pure functions turning a dusk profile into an ordered list of lighting
commands. Three strategies are supported:

- stepped: gradual steps sent one by one, then a jittered wait and power off
- basic: a single long fade to the end color
- beta: eight precomputed states played back by the device as one cycle

Nothing here talks to the network or sleeps.
"""

import logging
import random
from datetime import datetime, timedelta, timezone

from .exceptions import InvalidProfileError, PlanCapacityError
from .models import MAX_CYCLE_STATES, LightCommand, PlannedCommand, Strategy, TransitionPlan, kelvin
from .settings import BETA_STEP_CAP, DeviceTarget, DuskProfile

logger = logging.getLogger(__name__)

# Color of the closing power-off state in beta cycles
BETA_OFF_KELVIN = 2700

STRATEGIES: tuple[Strategy, ...] = ("stepped", "basic", "beta")


def seconds_until_midnight(now: datetime) -> int:
    """Whole seconds from now until the next midnight in now's zone."""
    tomorrow = (now + timedelta(days=1)).date()
    midnight = datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=now.tzinfo)
    if now.tzinfo is None:
        return int((midnight - now).total_seconds())
    # Subtract in UTC so DST changes are counted
    return int((midnight.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds())


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


def step_kelvin(profile: DuskProfile, n: int) -> int:
    return profile.color_start + _trunc_div((profile.color_end - profile.color_start) * n, profile.steps)


def step_brightness(n: int) -> float:
    """Brightness of stepped step n: 2% per step, clamped to [0, 1]."""
    return min(1.0, max(0.0, (2 * n) / 100))


def step_seconds(profile: DuskProfile) -> int:
    return profile.duration_minutes * 60 // profile.steps


def jittered_tail(profile: DuskProfile, seconds_to_midnight: int, rng: random.Random) -> int:
    """Dwell time after the last step before lights off.

    Centered on midnight, spread uniformly over turn_off_jitter_minutes.
    """
    jitter_seconds = profile.turn_off_jitter_minutes * 60
    offset = rng.randrange(jitter_seconds) if jitter_seconds > 0 else 0
    return max(0, seconds_to_midnight - profile.turn_off_jitter_minutes * 30 + offset)


def _power_off(selector: str, default_color: int) -> LightCommand:
    return LightCommand(selector, "off", kelvin(default_color), 0.0, 0.0, False)


def plan_stepped(
    profile: DuskProfile,
    target: DeviceTarget,
    seconds_to_midnight: int,
    rng: random.Random,
    default_color: int = 2700,
) -> TransitionPlan:
    """Gradual transition sent step by step.

    Every step fades for duration/steps seconds and the player waits the same
    amount before the next one. After the last step the player waits the
    jittered tail, then powers the device off.
    """
    profile.validate()
    duration = step_seconds(profile)

    entries = []
    for n in range(1, profile.steps + 1):
        command = LightCommand(
            selector=target.id,
            power="on",
            color=kelvin(step_kelvin(profile, n)),
            brightness=step_brightness(n),
            duration=float(duration),
            fast=True,
        )
        sleep_after = duration
        if n == profile.steps:
            sleep_after = jittered_tail(profile, seconds_to_midnight, rng)
        entries.append(PlannedCommand(command, sleep_after=float(sleep_after)))

    entries.append(PlannedCommand(_power_off(target.id, default_color)))
    return TransitionPlan(target.id, "stepped", "stepped", tuple(entries))


def plan_basic(profile: DuskProfile, target: DeviceTarget) -> TransitionPlan:
    """Single fade to the end color over the whole duration."""
    profile.validate()
    command = LightCommand(
        selector=target.id,
        power="on",
        color=kelvin(profile.color_end),
        brightness=1.0,
        duration=float(profile.duration_minutes * 60),
        fast=True,
    )
    return TransitionPlan(target.id, "basic", "stepped", (PlannedCommand(command),))


def plan_beta(
    profile: DuskProfile,
    target: DeviceTarget,
    seconds_to_midnight: int,
    rng: random.Random,
) -> TransitionPlan:
    """Precomputed cycle played back by the device itself.

    Always BETA_STEP_CAP intermediate states, interpolated over the
    configured number of steps, then a hold until around midnight and an
    off state.
    """
    profile.validate()
    duration = float(step_seconds(profile))

    commands = []
    brightness = 0.0
    for n in range(1, BETA_STEP_CAP + 1):
        brightness = min(1.0, n / 10)
        commands.append(
            LightCommand(target.id, "on", kelvin(step_kelvin(profile, n)), brightness, duration, True)
        )

    tail = float(jittered_tail(profile, seconds_to_midnight, rng))
    commands.append(LightCommand(target.id, "on", kelvin(profile.color_end), brightness, tail, True))
    commands.append(LightCommand(target.id, "off", kelvin(BETA_OFF_KELVIN), 0.0, 0.0, True))

    if len(commands) > MAX_CYCLE_STATES:
        raise PlanCapacityError(f"Cycle has {len(commands)} states, limit is {MAX_CYCLE_STATES}")

    entries = tuple(PlannedCommand(c, position=i) for i, c in enumerate(commands))
    return TransitionPlan(target.id, "beta", "batch", entries)


def plan(
    strategy: Strategy,
    profile: DuskProfile,
    target: DeviceTarget,
    seconds_to_midnight: int,
    rng: random.Random,
    default_color: int = 2700,
) -> TransitionPlan:
    """Build a plan for one of the named strategies.

    Raises:
        InvalidProfileError: If the profile is unusable or the strategy unknown
    """
    if strategy == "stepped":
        result = plan_stepped(profile, target, seconds_to_midnight, rng, default_color)
    elif strategy == "basic":
        result = plan_basic(profile, target)
    elif strategy == "beta":
        result = plan_beta(profile, target, seconds_to_midnight, rng)
    else:
        raise InvalidProfileError(f"Unknown dusk strategy: {strategy}")

    logger.debug(f"Planned {strategy} transition for {target.name}: {len(result)} commands")
    return result
