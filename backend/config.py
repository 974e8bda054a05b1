"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No behavioural constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from session.session_config import ProviderKind


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and the UI gateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str
    port: int

    # ------------------------------------------------------------------
    # Settings persistence
    # ------------------------------------------------------------------

    settings_path: str

    # ------------------------------------------------------------------
    # Provider credentials (fallbacks when the UI sends no apiKey)
    # ------------------------------------------------------------------

    gemini_api_key: str | None = field(default=None, repr=False)
    openai_api_key: str | None = field(default=None, repr=False)
    anthropic_api_key: str | None = field(default=None, repr=False)

    def api_key_for(self, provider: ProviderKind) -> str | None:
        if provider is ProviderKind.GEMINI:
            return self.gemini_api_key
        if provider is ProviderKind.OPENAI:
            return self.openai_api_key
        if provider is ProviderKind.CLAUDE:
            return self.anthropic_api_key
        return None

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if PORT is not an integer.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            host=os.environ.get("HOST", "127.0.0.1"),
            port=int(os.environ.get("PORT", "8000")),

            settings_path=os.environ.get("SETTINGS_PATH", "settings.json"),

            gemini_api_key=os.environ.get("GEMINI_API_KEY"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY"),
        )
