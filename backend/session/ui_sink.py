"""
UI event sink.

The session emits four channels to the UI:
- status                 {status, error?}
- response               {text?, cumulative?, done?}
- transcription          {text, isNewTurn}
- conversationTurnSaved  {turn, history}

Sinks only deliver. Emission order is preserved (FIFO).
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol


STATUS = "status"
RESPONSE = "response"
TRANSCRIPTION = "transcription"
CONVERSATION_TURN_SAVED = "conversationTurnSaved"


class UiSink(Protocol):
    def emit(self, channel: str, payload: dict[str, Any]) -> None: ...


class QueueSink:
    """
    Buffers events for an asynchronous consumer (the UI websocket).

    emit() never blocks; get() waits for the next event.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue()

    def emit(self, channel: str, payload: dict[str, Any]) -> None:
        self._queue.put_nowait((channel, payload))

    async def get(self) -> tuple[str, dict[str, Any]]:
        return await self._queue.get()

    def drain(self) -> tuple[tuple[str, dict[str, Any]], ...]:
        """
        Drain all pending events without waiting.

        Returns a FIFO-ordered tuple; empty if nothing is pending.
        """
        out: list[tuple[str, dict[str, Any]]] = []
        while not self._queue.empty():
            out.append(self._queue.get_nowait())
        return tuple(out)
