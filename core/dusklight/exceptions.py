"""
Dusklight Custom Exceptions

Simple exception hierarchy for error handling.
"""


class DusklightError(Exception):
    """Base exception for Dusklight."""

    pass


class ConfigurationError(DusklightError):
    """Configuration is missing or invalid."""

    pass


class InvalidProfileError(DusklightError):
    """Dusk profile parameters cannot produce a plan."""

    pass


class SunCalcError(DusklightError):
    """Sunset could not be computed for a device."""

    pass


class LightingClientError(DusklightError):
    """Lighting API request failed."""

    pass


class DispatchError(DusklightError):
    """A planned command could not be delivered."""

    def __init__(self, step_index: int, message: str):
        super().__init__(f"Step {step_index}: {message}")
        self.step_index = step_index


class PlanCapacityError(DusklightError):
    """Plan is larger than the lighting API accepts in one cycle."""

    pass


class DeviceNotFoundError(DusklightError):
    """No configured device matches the selector."""

    pass


class UnknownActionError(DusklightError):
    """Inbound action name is not supported."""

    pass
