"""
Dusklight Backend Application

FastAPI application that owns the transition scheduler and the sunset watcher.
"""

import os
import sys
from contextlib import asynccontextmanager

import log_config  # noqa: F401
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from loguru import logger

# Add core to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Import API router
import api
from api import router as api_router

from core.dusklight.actions import LightActions
from core.dusklight.gate import FiredLedger, TriggerGate
from core.dusklight.lifx_client import LifxClient
from core.dusklight.player import TransitionPlayer
from core.dusklight.scheduler import TransitionScheduler
from core.dusklight.settings import ConfigStore, config_path_from_env
from core.dusklight.sunset_watcher import SunsetWatcher


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    # Startup. A broken configuration is fatal here.
    logger.info("Dusklight starting")
    config_store = ConfigStore.from_file(config_path_from_env())
    config = config_store.snapshot()

    client = LifxClient(config.token, base_url=config.base_url)
    player = TransitionPlayer(
        client,
        max_attempts=int(os.environ.get("DUSKLIGHT_MAX_ATTEMPTS", "1")),
        safety_off=os.environ.get("DUSKLIGHT_SAFETY_OFF", "false").lower() == "true",
        off_color=config.default_color,
    )
    scheduler = TransitionScheduler(player)
    gate = TriggerGate(FiredLedger(os.environ.get("DUSKLIGHT_LEDGER", "./fired.json")))
    actions = LightActions(config_store, client, scheduler, gate)

    # Make actions available to API
    api.actions = actions

    watcher = SunsetWatcher(actions, poll_interval_seconds=config.poll_interval_seconds)
    await watcher.start()
    if config.auto_strategy == "none":
        logger.info("Automatic dusk disabled, transitions start only from /bulb requests")

    yield

    # Shutdown
    logger.info("Dusklight shutting down")
    await watcher.stop()
    await scheduler.cancel_all()
    api.actions = None


# Create FastAPI application
app = FastAPI(
    title="Dusklight API",
    description="Sunset lighting transitions for LIFX devices",
    version="0.1.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "message": "Internal server error",
        },
    )


# Include API router
app.include_router(api_router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
