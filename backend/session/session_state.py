"""
Authoritative live session state enumeration.

Rules:
- This enum defines ONLY the connection lifecycle states of the session.
- No behavior, no helper methods, no side effects.
- Transitions are owned exclusively by SessionController.
"""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """
    Lifecycle of the single live connection owned by the session.

    Exactly one value is current at any time; every event handler in the
    controller ends in one of these.
    """

    IDLE = "IDLE"
    INITIALIZING = "INITIALIZING"
    CONNECTED = "CONNECTED"
    RECONNECTING = "RECONNECTING"
    CLOSED = "CLOSED"
    ERROR = "ERROR"
