"""
Conversation history management.

Responsibilities:
- Store completed user/assistant turns in insertion order
- Enforce the capacity rule: keep the 10 most recent turns, drop the
  oldest (no archive)
- Provide read-only snapshots for replay and the UI

Non-responsibilities:
- No turn assembly (MessageAssembler decides *when* a turn exists)
- No replay formatting
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from constants import MAX_HISTORY_TURNS
from observability.logger import EventLogger


@dataclass(frozen=True)
class ConversationTurn:
    """One user utterance paired with one generated answer. Immutable."""
    id: str
    timestamp: int
    user_text: str
    ai_text: str

    @staticmethod
    def create(user_text: str, ai_text: str) -> ConversationTurn:
        return ConversationTurn(
            id=f"turn_{uuid4().hex[:12]}",
            timestamp=time.time_ns() // 1_000_000,
            user_text=user_text,
            ai_text=ai_text,
        )

    def to_dict(self) -> dict[str, Any]:
        """UI shape."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "userText": self.user_text,
            "aiText": self.ai_text,
        }


class ConversationHistory:
    """
    Bounded, ordered log of completed turns.

    Invariants:
    - Turns are stored in chronological (append) order
    - len(self) <= max_turns at all times
    """

    def __init__(self, max_turns: int = MAX_HISTORY_TURNS) -> None:
        self._max_turns = max_turns
        self._turns: list[ConversationTurn] = []
        self._log = EventLogger("history")

    def __len__(self) -> int:
        return len(self._turns)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def append(self, turn: ConversationTurn) -> None:
        """Append a turn, evicting from the front beyond capacity."""
        self._turns.append(turn)
        while len(self._turns) > self._max_turns:
            dropped = self._turns.pop(0)
            self._log.log("history_turn_evicted", turn_id=dropped.id)

    def snapshot(self) -> tuple[ConversationTurn, ...]:
        """Ordered, read-only view."""
        return tuple(self._turns)

    def user_texts(self) -> list[str]:
        """Non-blank user utterances, oldest first."""
        return [t.user_text for t in self._turns if t.user_text.strip()]

    def clear(self) -> None:
        self._turns.clear()
