import json

import httpx
import pytest

from backend.app import create_app
from marutto.client import ChatClient
from marutto.config import Settings
from marutto.llm import ScriptedLLM

PROVIDER_ENV = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_MODEL",
    "LLM_TEMPERATURE",
    "LLM_TIMEOUT",
    "MARUTTO_URL",
)

ACT_ONE = {
    "scene_title": "Act 1: A Call from Marutto",
    "narration": "Rain drizzles outside as your phone vibrates.",
    "characters": [
        {"name": "鶴田 悠斗", "role": "AI Manager", "dialogue": "Welcome, detective."},
    ],
    "evidence_cards": [
        {"title": "Invoice #203", "content": "Date: March 31, Amount: ¥500,000"},
        {"title": "Bank Transaction", "content": "Deposit: April 3, Amount: ¥500,000"},
    ],
    "player_prompt": "What feels off about these documents?",
    "ui_hint": "Display these as animated cards.",
    "style": {"bg": "linear-gradient(#0B1622, #162635)", "accent": "#46E1C2"},
    "options": ["The dates don't match", "Ask 鶴田 for a hint"],
}

ENDING = {
    "scene_title": "Act 4: The Ledger Balances",
    "narration": "The office lights dim as the last receipt is filed.",
    "characters": [
        {"name": "鶴田 悠斗", "role": "AI Manager", "dialogue": "Fine work."},
    ],
    "player_prompt": "▶ Challenge Another Case",
    "detective_type": "Intuitive",
    "closing_line": "The numbers always whisper. You just listened.",
    "insight": "Timing differences hide in plain sight.",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Provider settings come only from each test, never from a developer's .env."""
    for name in PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    return "sk-test"


class RecordingFactory:
    """llm_factory stand-in: hands out fixed LLMs and remembers each call."""

    def __init__(self, *llms) -> None:
        self._llms = list(llms)
        self.settings: list[Settings] = []

    def __call__(self, settings: Settings):
        self.settings.append(settings)
        if len(self._llms) > 1:
            return self._llms.pop(0)
        return self._llms[0]


def scripted(payload: dict | str, chunk_size: int = 9) -> ScriptedLLM:
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return ScriptedLLM(text, chunk_size=chunk_size)


def asgi_client(factory: RecordingFactory) -> ChatClient:
    """A ChatClient wired straight into an in-process app."""
    app = create_app(llm_factory=factory)
    return ChatClient("http://testserver", transport=httpx.ASGITransport(app=app))
