"""Core domain models.

The server and the client both speak in these types. Pydantic is used for
validation and serialisation at every data boundary: the chat request body,
the scene decoded from model output, and the UI-facing message records.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]

MessageStatus = Literal["loading", "parsed", "failed"]


class ChatTurn(BaseModel):
    """One entry of the conversation history sent on every request."""

    role: Role
    content: str


class ChatBody(BaseModel):
    """Request body for POST /api/chat."""

    messages: list[ChatTurn]


# ---------------------------------------------------------------------------
# Scene - the structured payload the model is asked to emit
# ---------------------------------------------------------------------------

class CharacterLine(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = ""
    role: str | None = None
    dialogue: str = ""


class EvidenceCard(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    title: str = ""
    content: str = ""


class SceneStyle(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    bg: str | None = None
    accent: str | None = None


class Scene(BaseModel):
    """A decoded story scene.

    Every field is optional: a syntactically valid JSON object is a Scene
    even when the model forgot half the schema. Unknown keys are kept so the
    ending overlay can fall back to alternate spellings.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    scene_title: str | None = None
    narration: str | None = None
    characters: list[CharacterLine] = Field(default_factory=list)
    evidence_cards: list[EvidenceCard] = Field(default_factory=list)
    player_prompt: str | None = None
    ui_hint: str | None = None
    style: SceneStyle | None = None
    options: list[str] = Field(default_factory=list)
    detective_type: str | None = None
    closing_line: str | None = None
    insight: str | None = None

    def extra_str(self, key: str) -> str | None:
        """Return an unmodelled key's value if it is a string."""
        value = (self.model_extra or {}).get(key)
        return value if isinstance(value, str) else None


# ---------------------------------------------------------------------------
# Message - one UI record per turn
# ---------------------------------------------------------------------------

def _new_id() -> str:
    return uuid.uuid4().hex


class Message(BaseModel):
    """A user utterance or an assistant turn as the UI sees it.

    `id` is stable for the lifetime of the turn so the reconciler can target
    updates. `content` is the user text, or the raw accumulated model text
    for assistant turns.
    """

    id: str = Field(default_factory=_new_id)
    role: Role
    content: str = ""
    scene: Scene | None = None
    loading: bool = False
    error: str | None = None

    @property
    def status(self) -> MessageStatus:
        if self.error is not None:
            return "failed"
        if self.loading or self.scene is None:
            return "loading"
        return "parsed"
