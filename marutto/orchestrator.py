"""Prompt Orchestrator - runs one chat request end-to-end on the server.

Request flow:
  1. Refuse outright when no provider credential is configured.
  2. Prepend the fixed Game Master instruction to the client's history.
  3. Start the streaming model call and wait for the first delta, so a
     provider that fails up front produces a plain error response instead
     of a half-open stream.
  4. Relay every delta as an event-stream frame, then [DONE]. A provider
     failure after that point becomes an error frame and no [DONE].

The orchestrator keeps no state between requests.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable

from marutto.config import ConfigurationError, Settings
from marutto.llm import LLM, LLMError, build_llm
from marutto.models import ChatTurn
from marutto.prompts import build_messages
from marutto.wire import DONE_FRAME, encode_delta, encode_error

logger = logging.getLogger(__name__)

LLMFactory = Callable[[Settings], LLM]


class PromptOrchestrator:
    def __init__(self, settings: Settings, llm_factory: LLMFactory = build_llm) -> None:
        self._settings = settings
        self._llm_factory = llm_factory

    async def start(self, history: list[ChatTurn]) -> AsyncIterator[str]:
        """Open the model stream and return an iterator of wire frames.

        Raises ConfigurationError without calling the model when the
        credential is missing, and LLMError when the model fails before
        producing its first delta.
        """
        if not self._settings.has_credential:
            raise ConfigurationError("Missing OpenAI API key")

        llm = self._llm_factory(self._settings)
        deltas = llm(build_messages(history))
        logger.debug("chat request turns=%d", len(history))

        try:
            first = await anext(deltas)
        except StopAsyncIteration:
            first = None
        except LLMError:
            logger.exception("LLM stream failed before the first delta")
            raise

        return self._relay(first, deltas)

    async def _relay(self, first: str | None, deltas: AsyncIterator[str]) -> AsyncIterator[str]:
        count = 0
        if first is not None:
            count += 1
            yield encode_delta(first)
            try:
                async for delta in deltas:
                    count += 1
                    yield encode_delta(delta)
            except LLMError as e:
                logger.error("LLM stream failed after %d deltas: %s", count, e)
                yield encode_error(str(e))
                return
        logger.debug("relay complete deltas=%d", count)
        yield DONE_FRAME
