"""
Route registration for the live session API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire the gateway to the WebSocket lifecycle
- Push sink events to the connected UI
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from observability.logger import log_event
from session.controller import SessionController
from session.gateway import GatewayResult, SessionGateway
from session.ui_sink import QueueSink


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/session")
    async def session() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        controller: SessionController = app.state.controller
        return {"state": controller.state.value, **controller.session_data()}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        controller: SessionController = app.state.controller
        sink: QueueSink = app.state.sink

        gateway = SessionGateway(controller=controller, config=app.state.config)
        send_lock = asyncio.Lock()
        pusher = asyncio.create_task(_push_sink_events(ws, sink, send_lock))

        try:
            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect()

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                    await _flush_gateway_result(ws, result, send_lock)

                elif msg.get("bytes") is not None:
                    result = await gateway.on_binary_message(msg["bytes"])
                    await _flush_gateway_result(ws, result, send_lock)

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": controller.session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")

        finally:
            pusher.cancel()


async def _push_sink_events(ws: WebSocket, sink: QueueSink, lock: asyncio.Lock) -> None:
    """Forward sink events as {type: <channel>, ...payload} until cancelled."""
    try:
        while True:
            channel, payload = await sink.get()
            async with lock:
                await ws.send_text(json.dumps({"type": channel, **payload}))
    except asyncio.CancelledError:
        return
    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_event({
            "event_type": "WS_PUSH_FAILED",
            "exception": type(exc).__name__,
            "message": str(exc),
        })


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
    lock: asyncio.Lock,
) -> None:
    async with lock:
        for msg in result.outbound_json:
            await ws.send_text(json.dumps(msg))
