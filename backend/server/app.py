"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (UI sink, settings store, session controller)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from services.settings_store import SettingsStore
from session.controller import SessionController
from session.ui_sink import QueueSink

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    sink: QueueSink | None = None,
    controller: SessionController | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations (an injected controller must
      emit into the injected sink)
    - ASGI server compatibility
    """
    if config is None:
        config = AppConfig.load_from_env()

    app = FastAPI(title="Live Session API")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One live session per process
    if sink is None:
        sink = QueueSink()
    if controller is None:
        controller = SessionController(
            sink=sink,
            settings_store=SettingsStore(config.settings_path),
        )
    app.state.sink = sink
    app.state.controller = controller

    # Routes
    register_routes(app)

    return app
