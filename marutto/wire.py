"""Event-stream framing between the chat endpoint and the client.

Frame format on the wire:

    data: "<delta as a JSON string>"\\n\\n     one text delta
    event: error\\ndata: {"error": "..."}\\n\\n  provider failed mid-stream
    data: [DONE]\\n\\n                           clean end of stream

Deltas are JSON-encoded so that newlines inside model output never break
framing, and so no delta can ever be mistaken for the [DONE] sentinel.
Transport EOF without [DONE] is also a terminal signal; `FrameDecoder.close`
flushes whatever partial frame was held back.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Union

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
DONE_FRAME = f"data: {DONE_SENTINEL}\n\n"

_FRAME_SEP = "\n\n"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Delta:
    text: str


@dataclass(frozen=True)
class StreamError:
    message: str


@dataclass(frozen=True)
class Done:
    pass


Event = Union[Delta, StreamError, Done]


# ---------------------------------------------------------------------------
# Encoding (server side)
# ---------------------------------------------------------------------------

def encode_delta(text: str) -> str:
    return f"data: {json.dumps(text, ensure_ascii=False)}\n\n"


def encode_error(message: str) -> str:
    return f"event: error\ndata: {json.dumps({'error': message}, ensure_ascii=False)}\n\n"


# ---------------------------------------------------------------------------
# Decoding (client side)
# ---------------------------------------------------------------------------

class FrameDecoder:
    """Incremental decoder for the frame format above.

    Chunks may split frames, lines, or multi-byte UTF-8 sequences at any
    point. Complete frames are decoded as soon as their terminating blank
    line arrives; the remainder is held back until more data comes in.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self.done = False

    @property
    def pending(self) -> str:
        """Text received but not yet part of a complete frame."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[Event]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")

        events: list[Event] = []
        while _FRAME_SEP in self._buffer:
            frame, self._buffer = self._buffer.split(_FRAME_SEP, 1)
            event = self._decode_frame(frame)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> list[Event]:
        """Flush a trailing frame left without its blank line at EOF."""
        tail = self._utf8.decode(b"", final=True)
        frame = (self._buffer + tail).replace("\r\n", "\n").strip("\n")
        self._buffer = ""
        if not frame:
            return []
        event = self._decode_frame(frame)
        return [event] if event is not None else []

    def _decode_frame(self, frame: str) -> Event | None:
        if self.done:
            logger.debug("Ignoring frame after [DONE]: %r", frame[:80])
            return None

        event_name = "message"
        data_lines: list[str] = []
        for line in frame.split("\n"):
            if not line or line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "event":
                event_name = value
            elif field == "data":
                data_lines.append(value)

        if not data_lines:
            return None
        data = "\n".join(data_lines)

        if data == DONE_SENTINEL:
            self.done = True
            return Done()

        try:
            payload = json.loads(data)
        except ValueError:
            logger.warning("Skipping undecodable %s frame: %r", event_name, data[:80])
            return None

        if event_name == "error":
            message = payload.get("error") if isinstance(payload, dict) else payload
            return StreamError(str(message or "Stream failed"))
        if not isinstance(payload, str):
            logger.warning("Skipping non-text delta frame: %r", data[:80])
            return None
        return Delta(payload)
