"""Scene Stream Reconciler - turns streamed deltas into a live assistant turn.

One reconciler lives for one assistant turn:

  1. Every delta is appended to the turn's raw buffer.
  2. After each append the whole buffer is re-parsed (see scene.try_parse).
     A successful parse replaces the message's scene; an unchanged parse
     keeps the existing Scene object so views keyed on it don't restart.
  3. finish() closes a cleanly ended stream; fail() closes a broken one.
     Both return the history entry to commit, if any.

History rules:
  clean end            → raw text committed, parsed or not
  broken stream        → raw text committed only if it ever parsed
  nothing received     → nothing committed
"""

from __future__ import annotations

import logging

from marutto.models import ChatTurn, Message, Scene
from marutto.scene import try_parse

logger = logging.getLogger(__name__)

NO_SCENE_ERROR = "ケースファイルを読み取れませんでした (no valid scene JSON in the response)"
EMPTY_RESPONSE_ERROR = "ケースファイルが空でした (the model returned an empty response)"


class SceneStreamReconciler:
    def __init__(self, message: Message) -> None:
        if message.role != "assistant":
            raise ValueError("Only assistant messages can be reconciled")
        self.message = message
        self._closed = False
        message.content = ""
        message.scene = None
        message.error = None
        message.loading = True

    @property
    def text(self) -> str:
        return self.message.content

    @property
    def scene(self) -> Scene | None:
        return self.message.scene

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, delta: str) -> bool:
        """Add one delta. Returns True when the visible scene changed."""
        if self._closed:
            raise RuntimeError("Turn already closed")
        if not delta:
            return False
        self.message.content += delta

        parsed = try_parse(self.message.content)
        if parsed is None or parsed == self.message.scene:
            return False
        logger.debug(
            "scene parsed message=%s title=%r len=%d",
            self.message.id, parsed.scene_title, len(self.message.content),
        )
        self.message.scene = parsed
        self.message.error = None
        return True

    def finish(self) -> ChatTurn | None:
        """Close a stream that ended cleanly ([DONE] or EOF)."""
        self._close()
        raw = self.message.content
        if self.message.scene is None:
            self.message.error = NO_SCENE_ERROR if raw.strip() else EMPTY_RESPONSE_ERROR
            logger.warning("turn %s ended without a scene (len=%d)", self.message.id, len(raw))
        if not raw:
            return None
        return ChatTurn(role="assistant", content=raw)

    def fail(self, reason: str) -> ChatTurn | None:
        """Close a stream that broke mid-way."""
        self._close()
        self.message.error = reason
        logger.warning("turn %s failed: %s", self.message.id, reason)
        if self.message.scene is None or not self.message.content:
            return None
        return ChatTurn(role="assistant", content=self.message.content)

    def _close(self) -> None:
        if self._closed:
            raise RuntimeError("Turn already closed")
        self._closed = True
        self.message.loading = False
