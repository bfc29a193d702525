"""
Dusklight API Endpoints
"""

import os
import sys
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger
from pydantic import BaseModel

# Add core to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.dusklight.actions import LightActions
from core.dusklight.exceptions import (
    ConfigurationError,
    DeviceNotFoundError,
    DispatchError,
    InvalidProfileError,
    LightingClientError,
    PlanCapacityError,
    UnknownActionError,
)
from core.dusklight.settings import Coordinates, DeviceTarget

router = APIRouter()

# Set by app.py during startup
actions: Optional[LightActions] = None


class CoordinatesRequest(BaseModel):
    latitude: float
    longitude: float


class DeviceRequest(BaseModel):
    """Request body for registering a device."""
    id: str
    name: str
    coordinates: CoordinatesRequest
    timezone: Optional[str] = None
    utc_offset: Optional[float] = None


def _require_actions() -> LightActions:
    if actions is None:
        raise HTTPException(status_code=503, detail="Dusklight not initialized")
    return actions


@router.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "Dusklight",
        "version": "0.1.0",
        "configured": actions is not None,
    }


@router.get("/api/devices")
async def get_devices():
    """Get all configured devices."""
    config = _require_actions().config_store.snapshot()
    return {"devices": [device.to_dict() for device in config.devices]}


@router.post("/api/devices")
async def add_device(request: DeviceRequest):
    """Register a device or group and persist the configuration."""
    light_actions = _require_actions()
    device = DeviceTarget(
        id=request.id,
        name=request.name,
        coordinates=Coordinates(request.coordinates.latitude, request.coordinates.longitude),
        timezone=request.timezone,
        utc_offset=request.utc_offset,
    )
    try:
        light_actions.config_store.add_device(device)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"device": device.to_dict()}


@router.get("/bulb/{selector}/{action}")
async def bulb_action(selector: str, action: str, force: bool = Query(False)):
    """Run an action on a configured bulb or group.

    Dusk actions only start a background transition and return right away.
    """
    light_actions = _require_actions()

    try:
        result = await light_actions.run(action, selector, force=force)
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except UnknownActionError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except InvalidProfileError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except (LightingClientError, DispatchError, PlanCapacityError) as e:
        logger.error(f"Action {action} on {selector} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e

    if hasattr(result, "to_dict"):
        result = result.to_dict()

    return {
        "selector": selector,
        "action": action,
        "result": result,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/api/transitions")
async def get_transitions():
    """List transitions currently playing."""
    return {"transitions": _require_actions().scheduler.active()}


@router.delete("/api/transitions/{selector}")
async def cancel_transition(selector: str):
    """Abort the running transition of a device."""
    light_actions = _require_actions()
    try:
        device = light_actions.resolve(selector)
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    if not await light_actions.scheduler.cancel(device.id):
        raise HTTPException(status_code=404, detail=f"No transition running on {selector}")
    return {"cancelled": device.id}


@router.post("/api/config/reload")
async def reload_config():
    """Reload the configuration file. The old snapshot stays active on error."""
    light_actions = _require_actions()
    try:
        config = light_actions.config_store.reload()
    except ConfigurationError as e:
        logger.error(f"Config reload failed: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(f"Reloaded configuration with {len(config.devices)} device(s)")
    return {"devices": len(config.devices), "auto_strategy": config.auto_strategy}
