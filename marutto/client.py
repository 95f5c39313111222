"""Client side of the chat exchange.

ChatClient   - posts the history to /api/chat and yields decoded wire
               events in arrival order.
GameSession  - one player's session: ConversationHistory, the Message list,
               the single in-flight turn, ending detection, and restart.

The session is strictly sequential. While a turn's stream is open, further
submissions are ignored (not queued). Restart abandons the in-flight read
without telling the server.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing

import httpx

from marutto.models import ChatBody, ChatTurn, Message, Scene
from marutto.prompts import OPENING_LINE
from marutto.reconciler import SceneStreamReconciler
from marutto.scene import Progress, is_ending, progress, scene_options
from marutto.wire import Delta, Done, Event, FrameDecoder, StreamError

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


class ChatError(RuntimeError):
    """Raised when a turn's request or stream fails; the text is shown to the player."""


# ---------------------------------------------------------------------------
# ChatClient - transport
# ---------------------------------------------------------------------------

class ChatClient:
    """Streams one chat request.

    Args:
        base_url:  Server root, e.g. "http://localhost:13013".
        timeout:   HTTP timeout in seconds.
        transport: Optional httpx transport (MockTransport / ASGITransport in tests).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def stream(self, history: list[ChatTurn]) -> AsyncIterator[Event]:
        body = ChatBody(messages=history).model_dump()
        url = f"{self._base_url}{CHAT_PATH}"
        decoder = FrameDecoder()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("POST", url, json=body) as resp:
                    if resp.status_code != 200:
                        await resp.aread()
                        raise ChatError(_error_detail(resp))
                    async for chunk in resp.aiter_bytes():
                        for event in decoder.feed(chunk):
                            yield event
                            if isinstance(event, Done):
                                return
        except httpx.ConnectError as e:
            raise ChatError(f"Cannot connect to the case server at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise ChatError(f"The case server timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise ChatError(f"Connection lost: {e}") from e
        except httpx.HTTPError as e:
            raise ChatError(f"Bad response from the case server: {e}") from e

        for event in decoder.close():
            yield event


def _error_detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        detail = data.get("detail") or data.get("error")
        if detail:
            return f"HTTP {resp.status_code}: {detail}"
    return f"HTTP {resp.status_code}: {resp.text[:200]}"


# ---------------------------------------------------------------------------
# GameSession - history, messages, ending
# ---------------------------------------------------------------------------

Listener = Callable[[Message], None]


class GameSession:
    """Owns the conversation for one player.

    `on_update` is called with the assistant Message every time its visible
    state changes (created, scene parsed or replaced, finished, failed).
    """

    def __init__(self, client: ChatClient, on_update: Listener | None = None) -> None:
        self._client = client
        self._on_update = on_update
        self.history: list[ChatTurn] = []
        self.messages: list[Message] = []
        self.ending_scene: Scene | None = None
        self.loading = False
        self._epoch = 0

    # -- derived state --------------------------------------------------

    @property
    def latest_scene(self) -> Scene | None:
        for message in reversed(self.messages):
            if message.role == "assistant" and message.scene is not None:
                return message.scene
        return None

    @property
    def options(self) -> list[str]:
        return scene_options(self.latest_scene)

    @property
    def progress(self) -> Progress:
        return progress(self.messages, loading=self.loading)

    # -- actions --------------------------------------------------------

    async def start(self) -> Message | None:
        """Issue the opening turn."""
        return await self.submit(OPENING_LINE)

    async def submit(self, text: str) -> Message | None:
        """Run one turn. Returns the assistant Message, or None when ignored."""
        text = text.strip()
        if self.loading or not text:
            return None

        epoch = self._epoch
        self.loading = True
        self.messages.append(Message(role="user", content=text))
        self.history.append(ChatTurn(role="user", content=text))
        reply = Message(role="assistant", loading=True)
        self.messages.append(reply)
        reconciler = SceneStreamReconciler(reply)
        self._notify(reply)

        committed: ChatTurn | None = None
        try:
            async with aclosing(self._client.stream(list(self.history))) as events:
                async for event in events:
                    if epoch != self._epoch:
                        logger.debug("abandoning turn %s after restart", reply.id)
                        return None
                    if isinstance(event, Delta):
                        if reconciler.append(event.text):
                            self._check_ending(reply)
                            self._notify(reply)
                    elif isinstance(event, StreamError):
                        raise ChatError(event.message)
                    elif isinstance(event, Done):
                        break
        except ChatError as e:
            if epoch != self._epoch:
                return None
            committed = reconciler.fail(str(e))
        except Exception as e:
            if epoch != self._epoch:
                return None
            logger.exception("turn %s failed unexpectedly", reply.id)
            committed = reconciler.fail(f"Unexpected error: {e}")
        else:
            if epoch != self._epoch:
                return None
            committed = reconciler.finish()
        finally:
            if epoch == self._epoch:
                self.loading = False

        if committed is not None:
            self.history.append(committed)
        self._check_ending(reply)
        self._notify(reply)
        return reply

    async def select_option(self, option: str) -> Message | None:
        """A quick reply is exactly the same as typing it and submitting."""
        return await self.submit(option)

    async def restart(self) -> Message | None:
        """Forget everything and issue the opening turn again."""
        self.reset()
        return await self.start()

    def reset(self) -> None:
        self._epoch += 1
        self.history = []
        self.messages = []
        self.ending_scene = None
        self.loading = False

    # -- internals ------------------------------------------------------

    def _check_ending(self, reply: Message) -> None:
        if reply.scene is not None and is_ending(reply.scene):
            logger.info("case closed: %r", reply.scene.scene_title)
            self.ending_scene = reply.scene

    def _notify(self, message: Message) -> None:
        if self._on_update is not None:
            self._on_update(message)
