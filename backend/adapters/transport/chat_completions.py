"""
Request/response transport over streamed chat completions.

Serves the OpenAI and Claude providers (Claude through Anthropic's
OpenAI-compatible endpoint), emulating the duplex contract:

- open() builds the client; no request is made, so a rejected credential
  surfaces on the first send as on_error("authentication failed: ...").
- Every TextInput / ImageFrame starts one streamed completion. Deltas are
  reported as answer fragments, then one completion signal.
- Requests run strictly in send order (one at a time).
- Directive replaces the standing in-band instruction (sent as a system
  message after the system prompt); it never triggers a request.
- AudioChunk is unsupported. KeepAlive is a no-op (nothing to keep alive).
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Callable, TYPE_CHECKING

import openai
from openai import AsyncOpenAI

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
    CHAT_MAX_CONTEXT_MESSAGES,
    CHAT_MAX_TOKENS,
    CHAT_TEMPERATURE,
    IMAGE_MIME_TYPE,
    SCREENSHOT_CONTEXT_PROMPT,
)
from observability.logger import EventLogger

if TYPE_CHECKING:
    from session.session_config import ProviderKind, SessionConfig


class ChatCompletionsTransport(Transport):
    """
    Streamed chat-completions transport.

    Design notes:
    - One transport instance == one connection attempt.
    - Conversation memory for the backend lives here (bounded), since the
      backend itself is stateless between requests.
    """

    def __init__(
        self,
        *,
        provider: ProviderKind,
        base_url: str | None = None,
        client_factory: Callable[..., Any] = AsyncOpenAI,
    ) -> None:
        self._provider = provider
        self._base_url = base_url
        self._client_factory = client_factory

        self._client: Any = None
        self._callbacks: TransportCallbacks | None = None
        self._model = ""
        self._system_prompt = ""
        self._directive: str | None = None
        self._messages: list[dict[str, Any]] = []

        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()
        self._log = EventLogger("transport", provider=provider.value)

    # ------------------------------------------------------------------
    # Transport API
    # ------------------------------------------------------------------

    async def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> None:
        if not config.api_key:
            raise TransportOpenError("invalid api key: no credential configured")

        try:
            self._client = self._client_factory(
                api_key=config.api_key,
                base_url=self._base_url,
            )
        except openai.OpenAIError as e:
            raise TransportOpenError(f"{self._provider.value}_client_failed: {e}") from e

        self._callbacks = callbacks
        self._model = config.resolved_model
        self._system_prompt = build_system_prompt(config)
        self._directive = None
        self._messages = []

        self._log.log("transport_opened", model=self._model)
        callbacks.on_open()

    async def send(self, payload: Payload) -> None:
        if self._client is None or self._callbacks is None:
            raise ConnectionError(f"{self._provider.value} transport is not open")

        if isinstance(payload, KeepAlive):
            return

        if isinstance(payload, Directive):
            self._directive = payload.text
            return

        if isinstance(payload, AudioChunk):
            raise UnsupportedPayloadError("Audio only supported with Gemini Live")

        if isinstance(payload, TextInput):
            request = {"role": "user", "content": payload.text}
            remembered = request
        elif isinstance(payload, ImageFrame):
            encoded = base64.b64encode(payload.data).decode("ascii")
            request = {
                "role": "user",
                "content": [
                    {"type": "text", "text": SCREENSHOT_CONTEXT_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{IMAGE_MIME_TYPE};base64,{encoded}"},
                    },
                ],
            }
            # Keep image bytes out of the rolling context
            remembered = {"role": "user", "content": "Screenshot analysis"}
        else:
            raise UnsupportedPayloadError(
                f"{self._provider.value} cannot send {type(payload).__name__}"
            )

        task = asyncio.create_task(self._run_request(request, remembered))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

        client = self._client
        self._client = None
        self._callbacks = None
        if client is not None:
            try:
                await client.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log.log("transport_close_failed", error=repr(e))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def build_messages(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Serialize the standing context plus one request.

        Order: system prompt, standing directive, remembered turns, request.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self._system_prompt},
        ]
        if self._directive:
            messages.append({"role": "system", "content": self._directive})
        messages.extend(self._messages)
        messages.append(request)
        return messages

    async def _run_request(
        self,
        request: dict[str, Any],
        remembered: dict[str, Any],
    ) -> None:
        """
        One streamed completion.

        Guarantees:
        - Emits fragments only while this transport is open
        - Emits exactly one terminal notification (completion or on_error)
        """
        async with self._lock:
            client = self._client
            callbacks = self._callbacks
            if client is None or callbacks is None:
                return

            parts: list[str] = []
            try:
                stream = await client.chat.completions.create(
                    model=self._model,
                    messages=self.build_messages(request),
                    max_tokens=CHAT_MAX_TOKENS,
                    temperature=CHAT_TEMPERATURE,
                    stream=True,
                )
                async for chunk in stream:
                    delta = self._extract_delta(chunk)
                    if not delta:
                        continue
                    parts.append(delta)
                    callbacks.on_message(ServerMessage(answer_fragments=(delta,)))

            except asyncio.CancelledError:
                return

            except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
                self._log.log("transport_request_rejected", error=str(e))
                callbacks.on_error(f"authentication failed: {e}")
                return

            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log.log("transport_request_failed", error=repr(e))
                callbacks.on_error(f"{type(e).__name__}: {e}")
                return

            self._remember(remembered, "".join(parts))
            callbacks.on_message(
                ServerMessage(generation_complete=True, turn_complete=True)
            )

    def _remember(self, user_message: dict[str, Any], answer: str) -> None:
        self._messages.append(user_message)
        self._messages.append({"role": "assistant", "content": answer})
        overflow = len(self._messages) - CHAT_MAX_CONTEXT_MESSAGES
        if overflow > 0:
            del self._messages[:overflow]

    @staticmethod
    def _extract_delta(chunk: Any) -> str:
        """
        Extract token delta from a streamed chunk (OpenAI format).
        """
        try:
            delta = chunk.choices[0].delta
            return delta.content or ""
        except (AttributeError, IndexError):
            return ""
