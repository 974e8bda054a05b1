"""
Transport event definitions for the session event pump.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- Every event carries the connection generation that produced it; the
  controller drops events whose generation is no longer current.
- No clocks, no timers, no async, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from adapters.transport.base import ServerMessage


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types consumed by the session pump.

    Every event type must be explicitly handled or explicitly ignored.
    """

    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    SERVER_MESSAGE = "SERVER_MESSAGE"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    HEARTBEAT_FAILED = "HEARTBEAT_FAILED"


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class TransportOpened:
    generation: int
    type: EventType = EventType.TRANSPORT_OPENED


@dataclass(frozen=True)
class ServerMessageReceived:
    generation: int
    message: ServerMessage
    type: EventType = EventType.SERVER_MESSAGE


@dataclass(frozen=True)
class TransportFailed:
    """
    The transport reported an error.

    message:
        Raw backend text, surfaced verbatim on auth failures.
    """
    generation: int
    message: str
    type: EventType = EventType.TRANSPORT_ERROR


@dataclass(frozen=True)
class TransportClosed:
    """
    The backend closed the connection.

    reason:
        Close reason text, or None if the peer gave none.
    """
    generation: int
    reason: str | None
    type: EventType = EventType.TRANSPORT_CLOSED


@dataclass(frozen=True)
class HeartbeatFailed:
    generation: int
    message: str
    type: EventType = EventType.HEARTBEAT_FAILED


Event = Union[
    TransportOpened,
    ServerMessageReceived,
    TransportFailed,
    TransportClosed,
    HeartbeatFailed,
]
