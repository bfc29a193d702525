"""Dusklight sunset lighting transitions package."""

# Define public API
__all__ = [
    "AppConfig",
    "ConfigStore",
    "DeviceTarget",
    "DuskProfile",
    "LightCommand",
    "TransitionPlan",
    "LifxClient",
    "TransitionPlayer",
    "TransitionScheduler",
    "TriggerGate",
    "FiredLedger",
    "LightActions",
    "SunsetWatcher",
    "should_fire",
]

# Import settings
from .settings import AppConfig, ConfigStore, DeviceTarget, DuskProfile

# Import models
from .models import LightCommand, TransitionPlan

# Import LIFX client
from .lifx_client import LifxClient

# Import scheduling
from .gate import FiredLedger, TriggerGate, should_fire
from .player import TransitionPlayer
from .scheduler import TransitionScheduler
from .actions import LightActions
from .sunset_watcher import SunsetWatcher
