"""
UI session gateway.

Responsibilities:
- Route inbound JSON control messages -> SessionController calls
- Route inbound binary frames (PCM16 audio chunks) -> send_audio
- Fill in provider credentials from the environment when the UI sends none
- Turn every SessionResult into one {"type": "result", ...} reply

NOT responsible for:
- Any state machine logic (SessionController)
- Pushing sink events to the UI (server/routes.py)
- WebSocket I/O
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from typing import Any, Mapping, TYPE_CHECKING

from observability.logger import log_event
from session.controller import SessionController, SessionResult
from session.session_config import SessionConfig

if TYPE_CHECKING:
    from config import AppConfig


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _public_settings(settings: Mapping[str, Any]) -> dict[str, Any]:
    """Stored settings minus the credential itself."""
    public = {k: v for k, v in settings.items() if k != "apiKey"}
    public["hasApiKey"] = bool(settings.get("apiKey"))
    return public


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to the UI
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


def _reply(request: str | None, result: SessionResult, **extra: Any) -> GatewayResult:
    msg: dict[str, Any] = {
        "type": "result",
        "request": request,
        "ok": result.ok,
        "state": result.state.value,
    }
    if result.error is not None:
        msg["error"] = result.reason
        msg["errorType"] = type(result.error).__name__
    msg.update(extra)
    return GatewayResult(outbound_json=(msg,))


def _bad_request(request: str | None, error: str) -> GatewayResult:
    return GatewayResult(outbound_json=({
        "type": "result",
        "request": request,
        "ok": False,
        "error": error,
        "errorType": "BadRequest",
    },))


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """
    Adapter between one UI connection and the process-wide controller.

    Inbound message types:
        initialize {config?}   (falls back to the stored settings)
        send_text {text}
        send_image {data}      (base64 JPEG)
        set_verbosity {verbosity}
        close
        new_session
        get_session
        get_stored_config
    """

    def __init__(self, *, controller: SessionController, config: AppConfig) -> None:
        self._controller = controller
        self._config = config

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route one inbound JSON message."""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self._controller.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return _bad_request(None, "invalid json")

        if not isinstance(data, dict):
            return _bad_request(None, "message must be a JSON object")

        msg_type = data.get("type")
        ctl = self._controller

        if msg_type == "initialize":
            return await self._initialize(data.get("config"))

        if msg_type == "send_text":
            return _reply(msg_type, await ctl.send_text(str(data.get("text") or "")))

        if msg_type == "send_image":
            return _reply(msg_type, await ctl.send_image(str(data.get("data") or "")))

        if msg_type == "set_verbosity":
            return _reply(msg_type, await ctl.set_verbosity(str(data.get("verbosity"))))

        if msg_type == "close":
            return _reply(msg_type, await ctl.close())

        if msg_type == "new_session":
            session_id = ctl.start_new_session()
            return _reply(
                msg_type,
                SessionResult(ok=True, state=ctl.state),
                sessionId=session_id,
            )

        if msg_type == "get_session":
            return _reply(
                msg_type,
                SessionResult(ok=True, state=ctl.state),
                session=ctl.session_data(),
            )

        if msg_type == "get_stored_config":
            return _reply(
                msg_type,
                SessionResult(ok=True, state=ctl.state),
                config=_public_settings(ctl.stored_config()),
            )

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "UNKNOWN_MESSAGE_TYPE",
            "msg_type": msg_type,
            "session_id": ctl.session_id,
        })
        return _bad_request(msg_type if isinstance(msg_type, str) else None, "unknown message type")

    async def on_binary_message(self, data: bytes) -> GatewayResult:
        """
        Forward one audio chunk.

        Only failures are answered; a reply per chunk would flood the UI.
        """
        result = await self._controller.send_audio(data)
        if result.ok:
            return GatewayResult()
        return _reply("send_audio", result)

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """A UI going away ends the live connection (history is kept)."""
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "UI_DISCONNECTED",
            "session_id": self._controller.session_id,
            "reason": reason,
        })
        await self._controller.close()
        return GatewayResult()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _initialize(self, raw_config: Any) -> GatewayResult:
        if raw_config is None:
            raw_config = self._controller.stored_config()

        if not isinstance(raw_config, Mapping):
            return _bad_request("initialize", "config must be an object")

        try:
            config = SessionConfig.from_mapping(raw_config)
        except ValueError as e:
            return _bad_request("initialize", f"invalid config: {e}")

        config = self._with_env_credential(config)
        return _reply("initialize", await self._controller.initialize(config))

    def _with_env_credential(self, config: SessionConfig) -> SessionConfig:
        if config.api_key:
            return config
        fallback = self._config.api_key_for(config.provider)
        if not fallback:
            return config
        return replace(config, api_key=fallback)
