"""
Streamed answer assembly.

Responsibilities:
- Accumulate answer-text fragments for the current turn
- Filter keepalive sentinels and empty fragments
- Emit two update channels per fragment: the fragment itself and the
  cumulative answer so far (some backends resend cumulative text, so the
  UI picks whichever it renders)
- On the turn completion signal, pair the answer with the open utterance
  into a ConversationTurn

Non-responsibilities:
- No transport access
- No decision about *when* the backend finished (the controller forwards
  the completion signal)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from constants import HEARTBEAT_SENTINEL
from context.conversation import ConversationHistory, ConversationTurn
from orchestrator.transcription import TranscriptionAggregator
from session.ui_sink import CONVERSATION_TURN_SAVED, RESPONSE


@dataclass
class PendingAnswer:
    """Mutable accumulator for the answer being generated."""
    text: str = ""
    open: bool = True


def is_sentinel(fragment: str) -> bool:
    """True for fragments that are keepalives rather than content."""
    return not fragment or fragment.strip() == HEARTBEAT_SENTINEL


class MessageAssembler:
    """
    Owns the single PendingAnswer.

    Invariants:
    - cumulative text == concatenation of accepted fragments, in order
    - a ConversationTurn is appended only if both sides are non-empty
    """

    def __init__(
        self,
        *,
        emit: Callable[[str, dict[str, Any]], None],
        transcription: TranscriptionAggregator,
        history: ConversationHistory,
    ) -> None:
        self._emit = emit
        self._transcription = transcription
        self._history = history
        self._pending: PendingAnswer | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and self._pending.open

    @property
    def text(self) -> str:
        return self._pending.text if self._pending is not None else ""

    def on_fragment(self, fragment: str) -> bool:
        """
        Ingest one answer fragment.

        Returns False if the fragment was filtered out.
        """
        if is_sentinel(fragment):
            return False

        if self._pending is None:
            self._pending = PendingAnswer()

        self._pending.text += fragment

        self._emit(RESPONSE, {"text": fragment})
        self._emit(RESPONSE, {"cumulative": self._pending.text})
        return True

    def on_turn_complete(self) -> ConversationTurn | None:
        """
        Finalize the current exchange.

        Always resets both accumulators and emits response {done: true}.
        Returns the saved turn, or None if either side was empty.
        """
        answer = self.text.strip()
        utterance = self._transcription.complete()
        self._pending = None

        turn: ConversationTurn | None = None
        if utterance and answer:
            turn = ConversationTurn.create(user_text=utterance, ai_text=answer)
            self._history.append(turn)
            self._emit(CONVERSATION_TURN_SAVED, {
                "turn": turn.to_dict(),
                "history": [t.to_dict() for t in self._history.snapshot()],
            })

        self._emit(RESPONSE, {"done": True})
        return turn

    def reset(self) -> None:
        """Discard any partial answer (session teardown)."""
        self._pending = None
