"""
Spoken-input transcription aggregation.

Responsibilities:
- Accumulate streamed speech-to-text fragments into one user utterance
- Decide "new turn" vs "continuation" with a fixed inter-fragment gap
- Emit transcription updates to the UI

Turn rule:
- A fragment starts a new turn if no turn is open, or if more than
  TRANSCRIPTION_NEW_TURN_GAP_MS elapsed since the previous fragment.
  Otherwise it continues the open turn.
- The open turn is closed only by complete(), called when the answer for
  it finishes. One request/response exchange is one turn.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from constants import TRANSCRIPTION_NEW_TURN_GAP_MS
from session.ui_sink import TRANSCRIPTION


@dataclass
class PendingUtterance:
    """Mutable accumulator for the open user turn."""
    text: str
    last_fragment_ms: int
    open: bool = True


def _join(buffer: str, fragment: str) -> str:
    """Concatenate word fragments, inserting one space where none exists."""
    if buffer and fragment and not buffer[-1].isspace() and not fragment[0].isspace():
        return f"{buffer} {fragment}"
    return buffer + fragment


class TranscriptionAggregator:
    """
    Owns the single PendingUtterance.

    Invariants:
    - At most one PendingUtterance exists
    - last_fragment_ms is updated on every accepted fragment
    """

    def __init__(
        self,
        *,
        emit: Callable[[str, dict[str, Any]], None],
        new_turn_gap_ms: int = TRANSCRIPTION_NEW_TURN_GAP_MS,
    ) -> None:
        self._emit = emit
        self._gap_ms = new_turn_gap_ms
        self._pending: PendingUtterance | None = None
        self._last_fragment_ms: int | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def turn_open(self) -> bool:
        return self._pending is not None and self._pending.open

    @property
    def text(self) -> str:
        """Utterance so far (trimmed); empty if no turn is open."""
        return self._pending.text.strip() if self._pending is not None else ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def on_fragment(self, text: str, now_ms: int) -> bool:
        """
        Ingest one transcription fragment.

        Returns True if the fragment started a new turn.
        Empty fragments carry no speech and are ignored.
        """
        if not text:
            return False

        last = self._last_fragment_ms
        self._last_fragment_ms = now_ms

        is_new_turn = (
            not self.turn_open
            or last is None
            or now_ms - last > self._gap_ms
        )

        if is_new_turn:
            self._pending = PendingUtterance(text=text, last_fragment_ms=now_ms)
        else:
            assert self._pending is not None
            self._pending.text = _join(self._pending.text, text)
            self._pending.last_fragment_ms = now_ms

        self._emit(TRANSCRIPTION, {"text": self.text, "isNewTurn": is_new_turn})
        return is_new_turn

    def start_typed_turn(self, text: str, now_ms: int) -> None:
        """Open a new turn seeded with typed input."""
        self._pending = PendingUtterance(text=text, last_fragment_ms=now_ms)
        self._last_fragment_ms = now_ms
        self._emit(TRANSCRIPTION, {"text": self.text, "isNewTurn": True})

    def complete(self) -> str:
        """Close the open turn and return its utterance ("" if none)."""
        text = self.text
        self._pending = None
        return text

    def reset(self) -> None:
        """Discard any open turn (session teardown)."""
        self._pending = None
        self._last_fragment_ms = None
