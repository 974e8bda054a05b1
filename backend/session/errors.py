"""
Session error taxonomy.

Errors never cross the SessionController public API as exceptions; they are
carried inside SessionResult. They are still Exception subclasses so that
internal layers can raise them where that reads naturally.
"""

from __future__ import annotations

from constants import AUTH_ERROR_MARKERS


class SessionError(Exception):
    """
    Base class for all session-level failures.

    fatal:
        True if the failure must never be retried (credential rejected).
    """

    fatal: bool = False

    @property
    def reason(self) -> str:
        """Human-readable reason, surfaced verbatim to the UI."""
        return str(self) or type(self).__name__


class AuthError(SessionError):
    """Credential rejected by the backend. Terminal."""

    fatal = True


class TransportError(SessionError):
    """Network or provider-side failure. Retryable after a successful connect."""


class InitInProgressError(SessionError):
    """initialize() called while another connection attempt is in flight."""


class NotConnectedError(SessionError):
    """A send was attempted without an active connection."""


class ReplayError(SessionError):
    """Re-sending history context after a reconnect failed."""


class InvalidInputError(SessionError):
    """Caller supplied an unusable payload (e.g. empty text)."""


def is_auth_failure(message: str | None) -> bool:
    """Return True if an error message / close reason denotes a rejected credential."""
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in AUTH_ERROR_MARKERS)


def classify_failure(message: str | None) -> SessionError:
    """Map a raw failure message onto AuthError or TransportError."""
    text = message or "unknown transport failure"
    if is_auth_failure(text):
        return AuthError(text)
    return TransportError(text)
