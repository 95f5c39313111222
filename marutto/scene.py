"""Scene decoding and the predicates the UI derives from a scene.

All functions here are pure. `try_parse` is called after every streamed
chunk, so it must never raise on garbage input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from marutto.models import Message, Scene

logger = logging.getLogger(__name__)

TOTAL_ACTS = 4
DEFAULT_ACCENT = "#46E1C2"
DEFAULT_BACKGROUND = "linear-gradient(135deg, #050b14 0%, #0b1622 45%, #162635 100%)"

_ACT_RE = re.compile(r"Act\s*(\d+)", re.IGNORECASE)
_ENDING_TITLE_RE = re.compile(r"Your Detective Type", re.IGNORECASE)
_ACT_FOUR_RE = re.compile(r"Act\s*4", re.IGNORECASE)
_CHALLENGE_RE = re.compile(r"Challenge Another Case")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _load_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        # ValueError also covers integers past the int-conversion digit limit
        return None
    return data if isinstance(data, dict) else None


def try_parse(text: str) -> Scene | None:
    """Decode accumulated model text into a Scene, or None if not yet possible.

    Tries the whole (trimmed) text first, then the span from the first "{"
    to the last "}" to get past chatter the model wraps around the object.
    """
    trimmed = text.strip() if text else ""
    if not trimmed:
        return None

    data = _load_object(trimmed)
    if data is None:
        first = trimmed.find("{")
        last = trimmed.rfind("}")
        if first != -1 and last > first:
            data = _load_object(trimmed[first:last + 1])
    if data is None:
        return None

    try:
        return Scene.model_validate(data)
    except ValidationError as e:
        # Valid JSON with badly typed fields still counts as a scene.
        bad = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.warning("Dropping malformed scene fields: %s", sorted(map(str, bad)))
        return Scene.model_validate({k: v for k, v in data.items() if k not in bad})


# ---------------------------------------------------------------------------
# Derived predicates
# ---------------------------------------------------------------------------

def act_number(scene: Scene | None) -> int | None:
    """Act number from a title like "Act 2: The Ledger", else None."""
    if scene is None or not scene.scene_title:
        return None
    match = _ACT_RE.search(scene.scene_title)
    if not match:
        return None
    return int(match.group(1))


def is_ending(scene: Scene | None) -> bool:
    """True when the scene closes the case.

    Deliberately loose: an Act 4 title or a "Challenge Another Case" prompt
    is enough, even without a detective type.
    """
    if scene is None:
        return False
    title = scene.scene_title or ""
    prompt = scene.player_prompt or ""
    return (
        bool(scene.detective_type)
        or bool(_ENDING_TITLE_RE.search(title))
        or bool(_CHALLENGE_RE.search(prompt))
        or bool(_ACT_FOUR_RE.search(title))
    )


@dataclass(frozen=True)
class EndingSummary:
    """What the case-closed overlay shows."""

    detective_type: str | None
    closing_line: str | None
    insight: str | None

    @property
    def heading(self) -> str:
        if self.detective_type:
            return f"あなたの探偵タイプ：{self.detective_type}"
        return "CASE COMPLETE"


def _first_str(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str):
            return value
    return None


def ending_summary(scene: Scene) -> EndingSummary:
    """Collect the overlay fields, accepting the alternate keys models emit."""
    return EndingSummary(
        detective_type=_first_str(scene.detective_type, scene.extra_str("Your Detective Type")),
        closing_line=_first_str(scene.closing_line, scene.extra_str("closing remark")),
        insight=_first_str(scene.insight, scene.extra_str("lesson")),
    )


def scene_options(scene: Scene | None) -> list[str]:
    if scene is None:
        return []
    return list(scene.options)


def accent_of(scene: Scene | None) -> str:
    if scene is not None and scene.style is not None and scene.style.accent:
        return scene.style.accent
    return DEFAULT_ACCENT


def background_of(scene: Scene | None) -> str:
    if scene is not None and scene.style is not None and scene.style.bg:
        return scene.style.bg
    return DEFAULT_BACKGROUND


# ---------------------------------------------------------------------------
# Act progress
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Progress:
    act: int
    percent: float

    @property
    def label(self) -> str:
        shown = min(self.act, TOTAL_ACTS) if self.act > 0 else 1
        return f"Act {shown} / {TOTAL_ACTS}"


def progress(messages: list[Message], loading: bool = False) -> Progress:
    """Case progress across the session's assistant turns."""
    scenes = [m.scene for m in messages if m.role == "assistant" and m.scene is not None]
    acts = [a for a in (act_number(s) for s in scenes) if a is not None]
    latest = act_number(scenes[-1]) if scenes else None
    if latest is None and acts:
        latest = max(acts)
    if latest is None:
        latest = 1 if any(m.role == "assistant" for m in messages) else 0

    if latest:
        percent = min(min(latest, TOTAL_ACTS) / TOTAL_ACTS * 100, 100.0)
    elif loading:
        percent = 8.0
    else:
        percent = 0.0
    return Progress(act=latest, percent=percent)
