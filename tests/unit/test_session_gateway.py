# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

import session.gateway as gateway_mod
from adapters.transport.base import AudioChunk, TextInput
from config import AppConfig
from server.app import create_app
from services.settings_store import SettingsStore
from session.controller import SessionController
from session.gateway import SessionGateway
from session.session_state import SessionState
from session.ui_sink import QueueSink

from fakes import FakeSleep, TransportFactory


def make_app_config(tmp_path: Path, **overrides: Any) -> AppConfig:
    values: dict[str, Any] = {
        "env": "test",
        "log_level": "INFO",
        "host": "127.0.0.1",
        "port": 0,
        "settings_path": str(tmp_path / "settings.json"),
    }
    values.update(overrides)
    return AppConfig(**values)


def make_gateway(
    tmp_path: Path,
    **config_overrides: Any,
) -> tuple[SessionGateway, SessionController, TransportFactory]:
    config = make_app_config(tmp_path, **config_overrides)
    factory = TransportFactory()
    controller = SessionController(
        sink=QueueSink(),
        transport_factory=factory,
        settings_store=SettingsStore(config.settings_path),
        sleep=FakeSleep(),
    )
    return SessionGateway(controller=controller, config=config), controller, factory


def only(result) -> dict[str, Any]:
    assert len(result.outbound_json) == 1
    return result.outbound_json[0]


# ---------------------------------------------------------------------
# Gateway routing
# ---------------------------------------------------------------------

def test_initialize_uses_env_credential_when_ui_sends_none(tmp_path: Path):
    gw, controller, factory = make_gateway(tmp_path, gemini_api_key="env-key")

    async def scenario():
        reply = only(await gw.on_json_message(json.dumps({
            "type": "initialize",
            "config": {"provider": "gemini", "profile": "exam"},
        })))
        await controller.close()
        return reply

    reply = asyncio.run(scenario())

    assert reply == {"type": "result", "request": "initialize", "ok": True, "state": "connected"}
    assert factory.created[0].opened_with is not None
    assert factory.created[0].opened_with.api_key == "env-key"


def test_initialize_falls_back_to_stored_settings(tmp_path: Path):
    gw, controller, factory = make_gateway(tmp_path)
    SettingsStore(tmp_path / "settings.json").save({"provider": "openai", "apiKey": "stored"})

    reply = only(asyncio.run(gw.on_json_message(json.dumps({"type": "initialize"}))))

    assert reply["ok"] is True
    assert controller.state is SessionState.CONNECTED
    assert factory.providers[0].value == "openai"


def test_invalid_config_is_a_bad_request(tmp_path: Path):
    gw, _, factory = make_gateway(tmp_path)

    reply = only(asyncio.run(gw.on_json_message(json.dumps({
        "type": "initialize",
        "config": {"provider": "nope"},
    }))))

    assert reply["ok"] is False
    assert reply["errorType"] == "BadRequest"
    assert factory.created == []


def test_text_and_audio_are_routed(tmp_path: Path):
    gw, controller, factory = make_gateway(tmp_path)

    async def scenario():
        await gw.on_json_message(json.dumps({
            "type": "initialize",
            "config": {"provider": "gemini", "apiKey": "k"},
        }))
        text = only(await gw.on_json_message(json.dumps({"type": "send_text", "text": "hi"})))
        audio = await gw.on_binary_message(b"\x00\x01")
        await controller.close()
        return text, audio

    text, audio = asyncio.run(scenario())

    assert text["ok"] is True
    assert audio.outbound_json == ()
    sent = factory.created[0].sent
    assert TextInput("hi") in sent
    assert sent[-1] == AudioChunk(b"\x00\x01")


def test_send_before_initialize_reports_not_connected(tmp_path: Path):
    gw, _, _ = make_gateway(tmp_path)

    async def scenario():
        return (
            only(await gw.on_json_message(json.dumps({"type": "send_text", "text": "hi"}))),
            only(await gw.on_binary_message(b"\x00\x00")),
        )

    text, audio = asyncio.run(scenario())

    assert text["errorType"] == "NotConnectedError"
    assert audio["request"] == "send_audio"
    assert audio["ok"] is False


def test_stored_config_hides_credential(tmp_path: Path):
    gw, _, _ = make_gateway(tmp_path)
    SettingsStore(tmp_path / "settings.json").save({"provider": "claude", "apiKey": "secret"})

    reply = only(asyncio.run(gw.on_json_message(json.dumps({"type": "get_stored_config"}))))

    assert reply["config"] == {"provider": "claude", "hasApiKey": True}


def test_new_session_and_get_session(tmp_path: Path):
    gw, controller, _ = make_gateway(tmp_path)

    async def scenario():
        new = only(await gw.on_json_message(json.dumps({"type": "new_session"})))
        data = only(await gw.on_json_message(json.dumps({"type": "get_session"})))
        return new, data

    new, data = asyncio.run(scenario())

    assert new["sessionId"] == controller.session_id
    assert data["session"] == {"sessionId": controller.session_id, "history": []}


def test_bad_messages_are_logged_and_answered(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)
    gw, _, _ = make_gateway(tmp_path)

    async def scenario():
        return (
            only(await gw.on_json_message("{not json")),
            only(await gw.on_json_message(json.dumps({"type": "MIC_START"}))),
        )

    invalid, unknown = asyncio.run(scenario())

    assert invalid["ok"] is False and invalid["request"] is None
    assert unknown["request"] == "MIC_START" and unknown["ok"] is False
    assert [e["event_type"] for e in emitted] == ["JSON_DECODE_ERROR", "UNKNOWN_MESSAGE_TYPE"]


def test_ui_disconnect_closes_the_session(tmp_path: Path):
    gw, controller, _ = make_gateway(tmp_path)

    async def scenario():
        await gw.on_json_message(json.dumps({
            "type": "initialize",
            "config": {"provider": "gemini", "apiKey": "k"},
        }))
        await gw.on_ws_disconnect(reason="client_disconnect")

    asyncio.run(scenario())

    assert controller.state is SessionState.CLOSED


# ---------------------------------------------------------------------
# HTTP / WebSocket surface
# ---------------------------------------------------------------------

def make_client(tmp_path: Path) -> TestClient:
    config = make_app_config(tmp_path)
    sink = QueueSink()
    controller = SessionController(
        sink=sink,
        transport_factory=TransportFactory(),
        settings_store=SettingsStore(config.settings_path),
    )
    return TestClient(create_app(config, sink=sink, controller=controller))


def test_health_and_session_endpoints(tmp_path: Path):
    client = make_client(tmp_path)

    assert client.get("/health").json() == {"status": "ok"}

    body = client.get("/session").json()
    assert body["state"] == "idle"
    assert body["history"] == []
    assert body["sessionId"].startswith("sess_")


def test_websocket_initialize_pushes_status_and_result(tmp_path: Path):
    client = make_client(tmp_path)

    with client.websocket_connect("/ws") as ws:
        ws.send_text(json.dumps({
            "type": "initialize",
            "config": {"provider": "gemini", "apiKey": "k"},
        }))
        messages = [ws.receive_json() for _ in range(3)]

    results = [m for m in messages if m["type"] == "result"]
    statuses = [m["status"] for m in messages if m["type"] == "status"]

    assert len(results) == 1 and results[0]["ok"] is True
    assert statuses == ["initializing", "connected"]
