"""Transport construction per provider."""

from __future__ import annotations

from adapters.transport.base import Transport
from adapters.transport.chat_completions import ChatCompletionsTransport
from adapters.transport.gemini_live import GeminiLiveTransport
from constants import CLAUDE_OPENAI_COMPAT_BASE_URL
from session.session_config import ProviderKind


def build_transport(provider: ProviderKind) -> Transport:
    """Build a fresh, unopened transport for one connection attempt."""
    if provider is ProviderKind.GEMINI:
        return GeminiLiveTransport()

    if provider is ProviderKind.OPENAI:
        return ChatCompletionsTransport(provider=provider)

    if provider is ProviderKind.CLAUDE:
        return ChatCompletionsTransport(
            provider=provider,
            base_url=CLAUDE_OPENAI_COMPAT_BASE_URL,
        )

    raise ValueError(f"Unsupported AI provider: {provider}")
