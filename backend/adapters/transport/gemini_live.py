"""
Gemini Live transport (BidiGenerateContent over a raw websocket).

Core model:
- One websocket per connection attempt; opened by open(), never reopened
  here. Reconnection is the session's job.
- open() returns only after the backend acknowledged the setup message
  (setupComplete). A close during setup surfaces its reason through
  TransportOpenError so credential rejections can be classified upstream.
- Inbound serverContent is mapped onto ServerMessage; everything else is
  logged or ignored.
- KeepAlive is a websocket ping, which never reaches the model.

Design constraints:
- Transport must not touch session state.
- Transport must not retry.
"""

from __future__ import annotations

import asyncio
import base64
import json
import urllib.parse
from typing import Any, TYPE_CHECKING

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from adapters.llm.prompts import build_system_prompt
from adapters.transport.base import (
    AudioChunk,
    Directive,
    ImageFrame,
    KeepAlive,
    Payload,
    ServerMessage,
    TextInput,
    Transport,
    TransportCallbacks,
    TransportOpenError,
    UnsupportedPayloadError,
)
from constants import (
    AUDIO_MIME_TYPE,
    GEMINI_LIVE_URL,
    IMAGE_MIME_TYPE,
    TRANSPORT_MAX_MESSAGE_BYTES,
    TRANSPORT_SETUP_TIMEOUT_MS,
)
from observability.logger import EventLogger

if TYPE_CHECKING:
    from session.session_config import SessionConfig


# =============================================================================
# Wire mapping (pure)
# =============================================================================

def build_setup_message(config: SessionConfig) -> dict[str, Any]:
    """First client message of a Live session."""
    setup: dict[str, Any] = {
        "model": f"models/{config.resolved_model}",
        "generationConfig": {
            "responseModalities": ["TEXT"],
            "speechConfig": {"languageCode": config.language},
        },
        "systemInstruction": {
            "parts": [{"text": build_system_prompt(config)}],
        },
        "inputAudioTranscription": {},
        "contextWindowCompression": {"slidingWindow": {}},
    }
    if config.tool_flags.web_search:
        setup["tools"] = [{"googleSearch": {}}]
    return {"setup": setup}


def encode_realtime_input(payload: Payload) -> dict[str, Any]:
    """Map an outbound payload onto a realtimeInput message."""
    if isinstance(payload, (TextInput, Directive)):
        return {"realtimeInput": {"text": payload.text}}

    if isinstance(payload, AudioChunk):
        return {
            "realtimeInput": {
                "audio": {
                    "data": base64.b64encode(payload.data).decode("ascii"),
                    "mimeType": AUDIO_MIME_TYPE,
                }
            }
        }

    if isinstance(payload, ImageFrame):
        return {
            "realtimeInput": {
                "video": {
                    "data": base64.b64encode(payload.data).decode("ascii"),
                    "mimeType": IMAGE_MIME_TYPE,
                }
            }
        }

    raise UnsupportedPayloadError(f"gemini cannot encode {type(payload).__name__}")


def parse_server_content(content: dict[str, Any]) -> ServerMessage:
    """Map a serverContent object onto ServerMessage."""
    transcription = (content.get("inputTranscription") or {}).get("text")

    parts = (content.get("modelTurn") or {}).get("parts") or []
    fragments = tuple(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )

    return ServerMessage(
        input_transcription=transcription if isinstance(transcription, str) else None,
        answer_fragments=fragments,
        generation_complete=bool(content.get("generationComplete")),
        turn_complete=bool(content.get("turnComplete")),
    )


def _decode(raw: str | bytes) -> dict[str, Any]:
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"expected JSON object, got {type(data).__name__}")
    return data


def _close_reason(exc: ConnectionClosed) -> str:
    frame = exc.rcvd
    if frame is not None and frame.reason:
        return frame.reason
    if frame is not None:
        return f"closed with code {frame.code}"
    return str(exc)


# =============================================================================
# Transport
# =============================================================================

class GeminiLiveTransport(Transport):
    """Gemini Live websocket transport."""

    def __init__(self, *, url: str = GEMINI_LIVE_URL) -> None:
        self._url = url
        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closing = False
        self._log = EventLogger("transport", provider="gemini")

    # -------------------------------------------------------------------------
    # Transport API
    # -------------------------------------------------------------------------

    async def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> None:
        if self._ws is not None:
            raise TransportOpenError("gemini transport already open")

        qs = urllib.parse.urlencode({"key": config.api_key})
        try:
            ws = await ws_connect(
                f"{self._url}?{qs}",
                max_size=TRANSPORT_MAX_MESSAGE_BYTES,
                ping_interval=None,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            if status in (401, 403):
                raise TransportOpenError(f"unauthorized: HTTP {status}") from e
            raise TransportOpenError(f"gemini_connect_failed: HTTP {status}") from e
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportOpenError(f"gemini_connect_failed: {e!r}") from e

        try:
            await ws.send(json.dumps(build_setup_message(config)))
            reply = _decode(
                await asyncio.wait_for(
                    ws.recv(), timeout=TRANSPORT_SETUP_TIMEOUT_MS / 1000.0
                )
            )
        except ConnectionClosed as e:
            raise TransportOpenError(_close_reason(e)) from e
        except (asyncio.TimeoutError, ValueError) as e:
            await ws.close()
            raise TransportOpenError(f"gemini_setup_failed: {e!r}") from e

        if "setupComplete" not in reply:
            await ws.close()
            raise TransportOpenError(f"gemini_setup_unexpected_reply: {sorted(reply)}")

        self._ws = ws
        self._closing = False
        self._recv_task = asyncio.create_task(self._recv_loop(ws, callbacks))
        self._log.log("transport_opened", model=config.resolved_model)
        callbacks.on_open()

    async def send(self, payload: Payload) -> None:
        ws = self._ws
        if ws is None:
            raise ConnectionError("gemini transport is not open")

        if isinstance(payload, KeepAlive):
            await ws.ping()
            return

        await ws.send(json.dumps(encode_realtime_input(payload)))

    async def close(self) -> None:
        self._closing = True

        rt = self._recv_task
        self._recv_task = None
        if rt is not None and not rt.done():
            rt.cancel()

        ws = self._ws
        self._ws = None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log.log("transport_close_failed", error=repr(e))

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self, ws: ClientConnection, callbacks: TransportCallbacks) -> None:
        """
        Receive backend messages until the socket closes.

        RULES:
        - Undecodable frames are logged and skipped.
        - A close initiated by close() is not reported.
        - Any other termination is reported exactly once (on_close or on_error).
        """
        try:
            while True:
                raw = await ws.recv()
                try:
                    data = _decode(raw)
                except ValueError as e:
                    self._log.log("transport_frame_undecodable", error=repr(e))
                    continue

                self._dispatch(data, callbacks)
        except asyncio.CancelledError:
            return
        except ConnectionClosed as e:
            if self._closing:
                return
            reason = _close_reason(e)
            self._log.log("transport_closed_by_peer", reason=reason)
            callbacks.on_close(reason)
        except Exception as e:  # pylint: disable=broad-exception-caught
            if self._closing:
                return
            self._log.log("transport_recv_failed", error=repr(e))
            callbacks.on_error(f"gemini_recv_failed: {e!r}")

    def _dispatch(self, data: dict[str, Any], callbacks: TransportCallbacks) -> None:
        if "serverContent" in data:
            callbacks.on_message(parse_server_content(data["serverContent"] or {}))
            return

        if "goAway" in data:
            # Server will close soon; the close itself drives reconnection.
            self._log.log("transport_go_away", time_left=(data["goAway"] or {}).get("timeLeft"))
            return

        if "error" in data:
            err = data["error"] or {}
            message = err.get("message") if isinstance(err, dict) else str(err)
            callbacks.on_error(str(message or "gemini_error"))
