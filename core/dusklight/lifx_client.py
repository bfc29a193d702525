"""
Simple LIFX HTTP API Client for Dusklight

Minimal client for setting states, playing cycles and toggling power.
"""

import logging
from typing import Any, Sequence

import requests

from .exceptions import LightingClientError, PlanCapacityError
from .models import MAX_CYCLE_STATES, LightCommand

logger = logging.getLogger(__name__)


class LifxClient:
    """Simple LIFX REST API client."""

    def __init__(self, token: str, base_url: str = "https://api.lifx.com/v1/lights/", timeout: float = 5):
        """Initialize LIFX client.

        Args:
            token: LIFX personal access token
            base_url: Lights endpoint (e.g., "https://api.lifx.com/v1/lights/")
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        # Create a session for connection pooling
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})
        self.timeout = timeout

    def _url(self, selector: str, endpoint: str = "") -> str:
        url = f"{self.base_url}/{selector}"
        return f"{url}/{endpoint}" if endpoint else url

    def list_lights(self, selector: str = "all") -> list[dict[str, Any]]:
        """List lights matching a selector.

        Raises:
            LightingClientError: If the request fails
        """
        try:
            response = self.session.get(self._url(selector), timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise LightingClientError(f"Failed to list lights for {selector}: {e}") from e

    def put_state(self, command: LightCommand) -> None:
        """Set one state on a selector (form-encoded PUT).

        Raises:
            LightingClientError: If the request fails
        """
        url = self._url(command.selector, "state")
        data = command.to_form()

        try:
            logger.debug(f"PUT {url} with data: {data}")
            response = self.session.put(url, data=data, timeout=self.timeout)
            response.raise_for_status()
            logger.info(
                f"Set {command.selector} {command.power} {command.color} "
                f"@ {command.brightness:.2f} over {command.duration:.0f}s - Response: {response.status_code}"
            )
        except requests.exceptions.RequestException as e:
            raise LightingClientError(f"Failed to set state for {command.selector}: {e}") from e

    def post_cycle(self, selector: str, commands: Sequence[LightCommand]) -> None:
        """Submit an ordered list of states for the device to play back.

        Raises:
            PlanCapacityError: If there are more states than the API accepts
            LightingClientError: If the request fails
        """
        if len(commands) > MAX_CYCLE_STATES:
            raise PlanCapacityError(
                f"Cycle for {selector} has {len(commands)} states, limit is {MAX_CYCLE_STATES}"
            )

        url = self._url(selector, "cycle")
        payload = {"states": [c.to_dict() for c in commands]}

        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            logger.info(f"Started {len(commands)}-state cycle on {selector} - Response: {response.status_code}")
            logger.debug(f"Response body: {response.text}")
        except requests.exceptions.RequestException as e:
            raise LightingClientError(f"Failed to start cycle for {selector}: {e}") from e

    def toggle(self, selector: str) -> None:
        """Toggle power on a selector.

        Raises:
            LightingClientError: If the request fails
        """
        try:
            response = self.session.post(self._url(selector, "toggle"), timeout=self.timeout)
            response.raise_for_status()
            logger.info(f"Toggled {selector}")
        except requests.exceptions.RequestException as e:
            raise LightingClientError(f"Failed to toggle {selector}: {e}") from e
