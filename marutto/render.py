"""Rich renderables for the terminal front end.

Rendering order for a scene: act heading and title, narration, voices in
the room, evidence cards, "Your Move", insight. Every builder here is a pure
function of its arguments; timing lives in Typewriter and the terminal app.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator

from rich.color import Color, ColorParseError
from rich.columns import Columns
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from marutto.models import Message, Scene
from marutto.prompts import GAME_TITLE
from marutto.scene import DEFAULT_ACCENT, EndingSummary, Progress, act_number

NARRATION_DELAY = 0.022
RESTART_LABEL = "▶ Challenge Another Case"
ANALYSING_COPY = "鶴田 悠斗がケースファイルを解析中..."
RECEIVING_COPY = "データを受信しています..."
EMPTY_SESSION_COPY = "ケースファイルを読み込んでいます…"


def accent_style(accent: str | None) -> str:
    """A rich colour for the scene accent; unparseable values fall back."""
    if accent:
        try:
            Color.parse(accent)
            return accent
        except ColorParseError:
            pass
    return DEFAULT_ACCENT


# ---------------------------------------------------------------------------
# Typewriter
# ---------------------------------------------------------------------------

class Typewriter:
    """Character-by-character reveal with a fixed delay.

    Setting different text starts over from empty; setting the same text
    again leaves the reveal where it is.
    """

    def __init__(self, text: str = "", delay: float = NARRATION_DELAY) -> None:
        self.delay = delay
        self._chars: list[str] = []
        self._shown = 0
        self.text = ""
        self.set_text(text)

    def set_text(self, text: str | None) -> None:
        text = text or ""
        if text == self.text and self._chars:
            return
        self.text = text
        self._chars = list(text)
        self._shown = 0

    @property
    def displayed(self) -> str:
        return "".join(self._chars[:self._shown])

    @property
    def finished(self) -> bool:
        return self._shown >= len(self._chars)

    def frames(self) -> Iterator[str]:
        """Remaining prefixes, one more character each."""
        while not self.finished:
            self._shown += 1
            yield self.displayed

    async def play(self, on_frame: Callable[[str], None]) -> None:
        for frame in self.frames():
            on_frame(frame)
            await asyncio.sleep(self.delay)


# ---------------------------------------------------------------------------
# Scene pieces
# ---------------------------------------------------------------------------

def _label(text: str) -> Text:
    return Text(text.upper(), style="dim")


def render_characters(scene: Scene, accent: str) -> RenderableType | None:
    if not scene.characters:
        return None
    rows: list[RenderableType] = [_label("Voices in the Room")]
    for character in scene.characters:
        header = Text(character.name, style=f"bold {accent}")
        if character.role:
            header.append(f"  {character.role.upper()}", style="dim")
        rows.append(Panel(
            Group(header, Text(character.dialogue)),
            border_style=accent, padding=(0, 1),
        ))
    return Group(*rows)


def render_evidence(scene: Scene, accent: str) -> RenderableType | None:
    if not scene.evidence_cards:
        return None
    cards = [
        Panel(
            Text(card.content),
            title=Text(card.title.upper(), style="dim"),
            title_align="left",
            border_style=accent,
            width=34,
        )
        for card in scene.evidence_cards
    ]
    return Group(_label("Evidence Cards"), Columns(cards))


def render_scene(scene: Scene, accent: str, narration: str | None = None) -> RenderableType:
    """A parsed scene. `narration` overrides the scene text while it is being revealed."""
    act = act_number(scene)
    parts: list[RenderableType] = [
        _label(f"Act {act}" if act else "Scene"),
        Text(scene.scene_title or "", style=f"bold {accent}"),
    ]

    text = scene.narration if narration is None else narration
    if scene.narration:
        parts.append(Text(text or ""))

    for piece in (render_characters(scene, accent), render_evidence(scene, accent)):
        if piece is not None:
            parts.append(piece)

    if scene.player_prompt:
        move = [_label("Your Move"), Text(scene.player_prompt)]
        if scene.ui_hint:
            move.append(Text(scene.ui_hint, style="dim italic"))
        parts.append(Panel(Group(*move), border_style=accent))

    if scene.insight:
        parts.append(Panel(Group(_label("Insight"), Text(scene.insight)), border_style=accent))

    return Panel(Group(*parts), border_style=accent, padding=(1, 2))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def render_loading(message: Message, accent: str, streaming: bool) -> RenderableType:
    spinner = Spinner("dots", text=Text(ANALYSING_COPY), style=accent)
    rows: list[RenderableType] = [spinner]
    if message.scene is not None:
        rows.append(Text(message.scene.scene_title or RECEIVING_COPY, style="dim"))
    elif message.content:
        rows.append(Text(RECEIVING_COPY if streaming else message.content, style="dim"))
    return Panel(Group(*rows), border_style=accent)


def render_error(message: Message) -> RenderableType:
    return Panel(Text(message.error or ""), title="Error", border_style="red")


def render_message(message: Message, accent: str, streaming: bool = False) -> RenderableType:
    if message.role == "user":
        return Panel(Text(message.content), border_style="white", padding=(0, 1))
    status = message.status
    if status == "failed":
        if message.scene is not None:
            return Group(render_scene(message.scene, accent), render_error(message))
        return render_error(message)
    if status == "loading":
        return render_loading(message, accent, streaming)
    return render_scene(message.scene, accent)


# ---------------------------------------------------------------------------
# Chrome: header, quick replies, ending overlay
# ---------------------------------------------------------------------------

def render_header(progress: Progress, accent: str) -> RenderableType:
    grid = Table.grid(expand=True)
    grid.add_column()
    grid.add_column(justify="right")
    filled = round(progress.percent / 10)
    bar = Text("█" * filled, style=accent) + Text("░" * (10 - filled), style="dim")
    grid.add_row(Text(GAME_TITLE, style=f"bold {accent}"), Text(f"{progress.label}  ") + bar)
    return Panel(grid, subtitle="Marutto Case Interface", border_style=accent)


def render_options(options: list[str], accent: str) -> RenderableType | None:
    if not options:
        return None
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style=f"bold {accent}")
    table.add_column()
    for i, option in enumerate(options, start=1):
        table.add_row(f"[{i}]", option)
    return table


def render_ending(summary: EndingSummary, accent: str) -> RenderableType:
    parts: list[RenderableType] = [
        Text("CASE CLOSED", style="dim"),
        Text(summary.heading, style=f"bold {accent}"),
    ]
    if summary.insight:
        parts.append(Text(summary.insight))
    if summary.closing_line:
        parts.append(Panel(Text(summary.closing_line), border_style=accent))
    parts.append(Text(RESTART_LABEL, style=f"bold {accent}"))
    return Panel(Group(*parts), border_style=accent, padding=(1, 4))
