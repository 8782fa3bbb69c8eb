"""FastAPI application for the robot inspection overlay."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from overlay.bootstrap import load_cookie_jar, resolve_credentials
from overlay.connection import ConnectionController
from overlay.machines.factory import connect_machine
from overlay.models import ConnectionState
from overlay.session import InspectionSession, ViewState

from .config import Settings
from .events import EventBus
from .routers.overlay import close_peer_connections
from .ui import WebUI

logger = logging.getLogger("server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect to the machine on startup, tear the session down on shutdown.

    Credential resolution failures propagate and abort startup.
    """
    settings: Settings = app.state.settings
    bus = EventBus()
    ui = WebUI(bus, containers={settings.container})
    view = ViewState()
    controller = ConnectionController(ui, view)
    controller.lock_controls()

    cookies = load_cookie_jar(settings.cookie_file) if settings.cookie_file else None
    credentials = resolve_credentials(
        api_key_id=settings.api_key_id,
        api_key=settings.api_key,
        host=settings.machine_host,
        machine_path=settings.machine_path,
        cookies=cookies,
    )

    machine = await connect_machine(
        credentials,
        backend=settings.machine_backend,
        camera_device=settings.camera_device,
        width=settings.stream_width,
        height=settings.stream_height,
        jpeg_quality=settings.jpeg_quality,
    )
    # Unlock before subscribing so it never depends on event timing
    controller.update(ConnectionState.CONNECTED)
    controller.observe(machine)

    session = InspectionSession(machine, ui, settings.session_config(), view)

    app.state.event_bus = bus
    app.state.ui = ui
    app.state.controller = controller
    app.state.machine = machine
    app.state.session = session
    logger.info(f"Connected to {credentials.host}")
    yield

    await session.close()
    await close_peer_connections()
    await machine.close()
    logger.info("Machine connection closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Robot Inspection Overlay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routers
    from .routers.events import router as events_router
    from .routers.overlay import router as overlay_router

    app.include_router(overlay_router)
    app.include_router(events_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


def main():
    """Entry point for `inspection-overlay`."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    settings = Settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)
