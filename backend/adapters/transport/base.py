"""
Transport contract.

Purpose:
- Define the duplex channel between the session and one AI backend.
- Define the provider-neutral payloads the session sends and the
  provider-neutral ServerMessage it receives.

Rules:
- This file contains NO provider logic.
- No retries, no reconnection, no turn assembly.
- Transports report everything through the four callbacks; they never
  touch session state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Union

if TYPE_CHECKING:
    from session.session_config import SessionConfig


# =============================================================================
# Errors
# =============================================================================

class TransportOpenError(Exception):
    """The backend could not be reached or refused the session during open()."""


class UnsupportedPayloadError(Exception):
    """The transport variant cannot carry this payload kind."""


# =============================================================================
# Outbound payloads
# =============================================================================

@dataclass(frozen=True)
class TextInput:
    """User-visible text input."""
    text: str


@dataclass(frozen=True)
class Directive:
    """
    In-band instruction to the backend (reply length, context replay).

    Not part of the user-visible transcript.
    """
    text: str


@dataclass(frozen=True)
class AudioChunk:
    """Silence-gated PCM16LE mono audio, forwarded verbatim."""
    data: bytes


@dataclass(frozen=True)
class ImageFrame:
    """JPEG screenshot bytes."""
    data: bytes


@dataclass(frozen=True)
class KeepAlive:
    """Low-impact liveness probe; must not produce model output."""


Payload = Union[TextInput, Directive, AudioChunk, ImageFrame, KeepAlive]


# =============================================================================
# Inbound message
# =============================================================================

@dataclass(frozen=True)
class ServerMessage:
    """
    Provider-neutral view of one inbound backend message.

    A single message may carry any combination of fields; consumers apply
    them in field order (transcription, answer fragments, completion).
    """

    input_transcription: str | None = None
    answer_fragments: tuple[str, ...] = ()
    generation_complete: bool = False
    turn_complete: bool = False


# =============================================================================
# Callbacks
# =============================================================================

class TransportCallbacks(Protocol):
    """
    The four notifications a transport may deliver, in any order relative
    to send()/close() calls.
    """

    def on_open(self) -> None: ...
    def on_message(self, message: ServerMessage) -> None: ...
    def on_error(self, message: str) -> None: ...
    def on_close(self, reason: str | None) -> None: ...


# =============================================================================
# Transport
# =============================================================================

class Transport(ABC):
    """
    Abstract duplex connection to one AI backend.

    The transport is a *dumb pipe*:
    payload -> vendor wire format, vendor events -> callbacks.

    Session responsibilities (NOT here):
    - Connection state machine
    - Reconnection and replay
    - Heartbeat scheduling
    - Turn assembly
    """

    @abstractmethod
    async def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> None:
        """
        Open the connection and return once the backend accepted the session.

        Contract:
        - Raises TransportOpenError with the backend's reason on failure.
        - Must leave no background tasks running when it raises.
        - After a successful return, callbacks may fire at any time.
        """
        raise NotImplementedError

    @abstractmethod
    async def send(self, payload: Payload) -> None:
        """
        Send one payload. Fire-and-forget: no queuing while disconnected.

        Raises:
            UnsupportedPayloadError if the variant cannot carry the payload.
            Any transport exception if the connection is unusable.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection.

        Contract:
        - Idempotent; must not raise if never opened or already closed.
        """
        raise NotImplementedError
