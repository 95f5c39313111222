"""Runtime settings read from the process environment.

Nothing is cached: the chat endpoint builds a fresh Settings per request, so
a credential added to the environment takes effect without a restart.
"""

from __future__ import annotations

import os

from pydantic import BaseModel

DEFAULT_BASE_URL = "https://api.openai.com"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_SERVER_URL = "http://localhost:13013"


class Settings(BaseModel):
    openai_api_key: str = ""
    openai_base_url: str = DEFAULT_BASE_URL
    openai_model: str = DEFAULT_MODEL
    temperature: float = 0.8
    timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "") or DEFAULT_BASE_URL,
            openai_model=os.getenv("OPENAI_MODEL", "") or DEFAULT_MODEL,
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.8")),
            timeout=float(os.getenv("LLM_TIMEOUT", "120")),
        )

    @property
    def has_credential(self) -> bool:
        return bool(self.openai_api_key)


def get_settings() -> Settings:
    """FastAPI dependency: settings as of this request."""
    return Settings.from_env()


def server_url() -> str:
    """Base URL the terminal client posts to."""
    return os.getenv("MARUTTO_URL", DEFAULT_SERVER_URL).rstrip("/")


class ConfigurationError(RuntimeError):
    """Raised when a request cannot be served because of missing configuration."""
