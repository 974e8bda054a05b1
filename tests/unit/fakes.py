# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

from __future__ import annotations

import asyncio
from typing import Any

from adapters.transport.base import (
    Payload,
    Transport,
    TransportCallbacks,
    TransportOpenError,
)
from session.session_config import ProviderKind, SessionConfig


class FakeTransport(Transport):
    """Scripted transport: records sends, optionally fails or blocks open() / close()."""

    def __init__(
        self,
        *,
        fail_open: str | None = None,
        fail_send: Exception | None = None,
        open_gate: asyncio.Event | None = None,
        close_gate: asyncio.Event | None = None,
    ) -> None:
        self.fail_open = fail_open
        self.fail_send = fail_send
        self.open_gate = open_gate
        self.close_gate = close_gate

        self.callbacks: TransportCallbacks | None = None
        self.opened_with: SessionConfig | None = None
        self.sent: list[Payload] = []
        self.closed = False

    async def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> None:
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.fail_open is not None:
            raise TransportOpenError(self.fail_open)
        self.callbacks = callbacks
        self.opened_with = config
        callbacks.on_open()

    async def send(self, payload: Payload) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(payload)

    async def close(self) -> None:
        if self.close_gate is not None:
            await self.close_gate.wait()
        self.closed = True


class TransportFactory:
    """Hands out scripted transports in order, then healthy ones."""

    def __init__(self, *transports: FakeTransport) -> None:
        self._scripted = list(transports)
        self.created: list[FakeTransport] = []
        self.providers: list[ProviderKind] = []

    def __call__(self, provider: ProviderKind) -> FakeTransport:
        transport = self._scripted.pop(0) if self._scripted else FakeTransport()
        self.created.append(transport)
        self.providers.append(provider)
        return transport


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, channel: str, payload: dict[str, Any]) -> None:
        self.events.append((channel, payload))

    def of(self, channel: str) -> list[dict[str, Any]]:
        return [p for c, p in self.events if c == channel]

    def statuses(self) -> list[str]:
        return [p["status"] for p in self.of("status")]


class FakeSleep:
    """Records requested delays and yields once instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class BlockingSleep:
    """Never returns until cancelled."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.Event().wait()


class FakeClock:
    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_config(**overrides: Any) -> SessionConfig:
    values: dict[str, Any] = {
        "provider": ProviderKind.GEMINI,
        "api_key": "test-key",
    }
    values.update(overrides)
    return SessionConfig(**values)
