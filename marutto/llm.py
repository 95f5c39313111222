"""LLM client - streaming HTTP connection to a chat-completion backend.

The orchestrator injects an LLM callable matching the protocol:

    def __call__(self, messages: list[dict[str, str]]) -> AsyncIterator[str]: ...

`messages` is the full chat transcript including the system instruction.
The call returns an async iterator of text deltas in arrival order.

Two implementations are provided:

    HttpLLM     - real HTTP client for OpenAI-compatible /chat/completions
                  with "stream": true (server-sent events).
    ScriptedLLM - streams a fixed text in small chunks. Useful for smoke
                  testing the relay and the client without a running model.

Production code constructs an HttpLLM from Settings (see build_llm).
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Protocol

import httpx

from marutto.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol - every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    def __call__(self, messages: list[dict[str, str]]) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# HttpLLM - connects to a real backend
# ---------------------------------------------------------------------------

class HttpLLM:
    """Async streaming client for OpenAI-compatible chat backends.

    POST {base}/v1/chat/completions
      {"model": ..., "messages": [...], "temperature": ..., "stream": true}
    Response: text/event-stream of
      data: {"choices": [{"delta": {"content": "..."}}]}
      data: [DONE]

    Args:
        provider_url: Base URL of the backend, e.g. "https://api.openai.com".
                      A trailing "/v1" is accepted too.
        api_key:      Bearer token, or empty string if not required.
        model:        Model identifier.
        temperature:  Sampling temperature.
        timeout:      HTTP timeout in seconds. Defaults to 120.
        transport:    Optional httpx transport, for tests.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "",
        temperature: float = 0.8,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, messages: list[dict[str, str]]) -> tuple[str, dict]:
        """Return (url, body) for a streaming chat completion."""
        if self._base_url.endswith("/v1"):
            url = f"{self._base_url}/chat/completions"
        else:
            url = f"{self._base_url}/v1/chat/completions"
        body: dict = {
            "messages": messages,
            "temperature": self._temperature,
            "stream": True,
        }
        if self._model:
            body["model"] = self._model
        return url, body

    def _parse_line(self, line: str) -> str | None:
        """Extract the delta text from one event-stream line.

        Returns None for lines that carry no text (keep-alives, role-only
        deltas, the [DONE] marker).
        """
        if not line.startswith("data:"):
            return None
        data = line[5:].strip()
        if not data or data == "[DONE]":
            return None
        try:
            chunk = json.loads(data)
        except ValueError as e:
            raise LLMError(f"Unexpected stream chunk from LLM backend: {data[:80]!r}") from e
        if isinstance(chunk, dict) and "error" in chunk:
            raise LLMError(f"LLM backend reported an error: {chunk['error']}")
        try:
            choices = chunk["choices"]
        except (KeyError, TypeError) as e:
            raise LLMError("Unexpected response format from chat backend") from e
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        content = delta.get("content")
        return content if isinstance(content, str) else None

    async def __call__(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        url, body = self._build_request(messages)
        logger.debug("llm stream url=%s messages=%d", url, len(messages))

        deltas = 0
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("POST", url, json=body, headers=self._headers()) as resp:
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        if line.strip() == "data: [DONE]":
                            break
                        text = self._parse_line(line)
                        if text:
                            deltas += 1
                            yield text
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM stream interrupted: {e}") from e

        logger.debug("llm stream done deltas=%d", deltas)


def build_llm(settings: Settings) -> HttpLLM:
    """Construct the production client from settings."""
    return HttpLLM(
        provider_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.temperature,
        timeout=settings.timeout,
    )


# ---------------------------------------------------------------------------
# ScriptedLLM - streams a fixed reply; useful for relay smoke tests
# ---------------------------------------------------------------------------

class ScriptedLLM:
    """Streams `reply` in chunks of `chunk_size` characters. No network calls.

    Records every transcript it receives in `calls`, so tests can check what
    the orchestrator sent.
    """

    def __init__(self, reply: str, chunk_size: int = 7) -> None:
        self.reply = reply
        self.chunk_size = chunk_size
        self.calls: list[list[dict[str, str]]] = []

    async def __call__(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        self.calls.append(messages)
        logger.debug("ScriptedLLM messages=%d reply_len=%d", len(messages), len(self.reply))
        for i in range(0, len(self.reply), self.chunk_size):
            yield self.reply[i:i + self.chunk_size]


# ---------------------------------------------------------------------------
# LLMError - raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
