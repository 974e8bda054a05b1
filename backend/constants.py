"""
BEHAVIOURAL CONSTANTS
---------------------
Single source of truth for all timing, sizing and classification rules of
the live session core.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Conversation turns
# =============================================================================

# Transcription fragments further apart than this start a new user turn.
TRANSCRIPTION_NEW_TURN_GAP_MS: Final[int] = 500

MAX_HISTORY_TURNS: Final[int] = 10

# Reserved fragment value used by providers as a keepalive, never content.
HEARTBEAT_SENTINEL: Final[str] = "[ping]"

# =============================================================================
# Liveness
# =============================================================================

HEARTBEAT_INTERVAL_MS: Final[int] = 15_000

# =============================================================================
# Reconnection
# =============================================================================

RECONNECT_MAX_ATTEMPTS: Final[int] = 3
RECONNECT_DELAY_MS: Final[int] = 2_000

REPLAY_CONTEXT_PREFIX: Final[str] = (
    "Till now all these questions were asked in the interview, "
    "answer the last one please:"
)

# =============================================================================
# Error classification
# =============================================================================

# Matched case-insensitively against error messages and close reasons.
AUTH_ERROR_MARKERS: Final[Tuple[str, ...]] = (
    "api key not valid",
    "invalid api key",
    "authentication failed",
    "unauthorized",
)

# =============================================================================
# Transport
# =============================================================================

TRANSPORT_SETUP_TIMEOUT_MS: Final[int] = 10_000
TRANSPORT_MAX_MESSAGE_BYTES: Final[int] = 2**22

GEMINI_LIVE_URL: Final[str] = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
CLAUDE_OPENAI_COMPAT_BASE_URL: Final[str] = "https://api.anthropic.com/v1/"

DEFAULT_GEMINI_MODEL: Final[str] = "gemini-live-2.5-flash-preview"
DEFAULT_OPENAI_MODEL: Final[str] = "gpt-4o"
DEFAULT_CLAUDE_MODEL: Final[str] = "claude-3-5-sonnet-20241022"

CHAT_MAX_TOKENS: Final[int] = 1_000
CHAT_TEMPERATURE: Final[float] = 0.7

# Request/response providers keep at most this many non-system messages.
CHAT_MAX_CONTEXT_MESSAGES: Final[int] = 2 * MAX_HISTORY_TURNS

DEFAULT_LANGUAGE: Final[str] = "en-US"

# =============================================================================
# Media (PCM16LE mono @ 16kHz, JPEG screenshots)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2
AUDIO_MIME_TYPE: Final[str] = f"audio/pcm;rate={AUDIO_SAMPLE_RATE_HZ}"
IMAGE_MIME_TYPE: Final[str] = "image/jpeg"

# Samples below this absolute level count as silence in audio diagnostics.
AUDIO_SILENCE_LEVEL: Final[int] = 500

# Log audio level diagnostics once every N inbound chunks.
AUDIO_DIAGNOSTIC_EVERY_N_CHUNKS: Final[int] = 50

SCREENSHOT_CONTEXT_PROMPT: Final[str] = (
    "Analyze this screenshot and provide helpful insights or answers "
    "based on what you see."
)
