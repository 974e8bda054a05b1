"""
Live session configuration.

Responsibilities:
- Describe one connection attempt (provider, credential, prompt profile, ...)
- Parse the UI / settings-store shape into a typed, immutable value
- Produce the persisted and the log-safe shapes

Non-responsibilities:
- No connection logic
- No prompt construction
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from constants import (
    DEFAULT_CLAUDE_MODEL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_LANGUAGE,
    DEFAULT_OPENAI_MODEL,
)


class ProviderKind(str, Enum):
    """Closed set of supported AI backends."""

    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"


class Verbosity(str, Enum):
    """Requested reply length."""

    SHORT = "short"
    VERBOSE = "verbose"


class Profile(str, Enum):
    """Prompt profile selecting the assistant persona."""

    INTERVIEW = "interview"
    SALES = "sales"
    MEETING = "meeting"
    PRESENTATION = "presentation"
    NEGOTIATION = "negotiation"
    EXAM = "exam"


_DEFAULT_MODELS: dict[ProviderKind, str] = {
    ProviderKind.GEMINI: DEFAULT_GEMINI_MODEL,
    ProviderKind.OPENAI: DEFAULT_OPENAI_MODEL,
    ProviderKind.CLAUDE: DEFAULT_CLAUDE_MODEL,
}


@dataclass(frozen=True)
class ToolFlags:
    """Optional provider-side tools."""

    web_search: bool = False


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable configuration for one live connection.

    A changed value (e.g. verbosity) is staged as a new SessionConfig for the
    next connection attempt; the one in use is never mutated.
    """

    provider: ProviderKind
    api_key: str = field(repr=False)
    model: str | None = None
    custom_prompt: str = ""
    language: str = DEFAULT_LANGUAGE
    verbosity: Verbosity = Verbosity.SHORT
    profile: Profile = Profile.INTERVIEW
    tool_flags: ToolFlags = ToolFlags()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def resolved_model(self) -> str:
        """Configured model, or the provider default."""
        return self.model or _DEFAULT_MODELS[self.provider]

    def with_verbosity(self, verbosity: Verbosity) -> SessionConfig:
        """Return a copy staged with a different verbosity."""
        return replace(self, verbosity=verbosity)

    # ------------------------------------------------------------------
    # Shapes
    # ------------------------------------------------------------------

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> SessionConfig:
        """
        Build a config from the UI / settings camelCase shape.

        Raises:
            ValueError on a missing provider or an unknown enum value.
        """
        provider = data.get("provider")
        if not provider:
            raise ValueError("provider is required")

        tool_data = data.get("toolFlags") or {}
        web_search = bool(
            tool_data.get("webSearch", data.get("googleSearchEnabled", False))
        )

        return SessionConfig(
            provider=ProviderKind(str(provider).lower()),
            api_key=str(data.get("apiKey") or ""),
            model=data.get("model") or None,
            custom_prompt=str(data.get("customPrompt") or ""),
            language=str(data.get("language") or DEFAULT_LANGUAGE),
            verbosity=Verbosity(str(data.get("verbosity") or Verbosity.SHORT.value)),
            profile=Profile(str(data.get("profile") or Profile.INTERVIEW.value)),
            tool_flags=ToolFlags(web_search=web_search),
        )

    def to_settings(self) -> dict[str, Any]:
        """Shape persisted by the settings store after a successful connect."""
        return {
            "provider": self.provider.value,
            "apiKey": self.api_key,
            "profile": self.profile.value,
            "toolFlags": {"webSearch": self.tool_flags.web_search},
            "verbosity": self.verbosity.value,
        }

    def redacted(self) -> dict[str, Any]:
        """Log-safe view (credential reduced to presence)."""
        return {
            "provider": self.provider.value,
            "model": self.resolved_model,
            "language": self.language,
            "verbosity": self.verbosity.value,
            "profile": self.profile.value,
            "web_search": self.tool_flags.web_search,
            "has_api_key": bool(self.api_key),
            "custom_prompt_chars": len(self.custom_prompt),
        }
