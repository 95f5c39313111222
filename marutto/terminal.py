"""Terminal front end: plays a case against a running server."""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.live import Live

from marutto.client import ChatClient, GameSession
from marutto.models import Message
from marutto.render import (
    EMPTY_SESSION_COPY,
    RESTART_LABEL,
    Typewriter,
    accent_style,
    render_ending,
    render_error,
    render_header,
    render_message,
    render_options,
    render_scene,
)
from marutto.scene import accent_of, ending_summary

INPUT_PROMPT = "あなたの推理や質問を入力… "
QUIT_COMMANDS = {"/quit", "/exit", ":q"}


class TerminalApp:
    def __init__(self, client: ChatClient, console: Console | None = None, delay: float | None = None) -> None:
        self.console = console or Console()
        self.session = GameSession(client, on_update=self._on_update)
        self._delay = delay
        self._live: Live | None = None

    @property
    def accent(self) -> str:
        return accent_style(accent_of(self.session.latest_scene))

    async def run(self) -> None:
        self.console.print(render_header(self.session.progress, self.accent))
        self.console.print(EMPTY_SESSION_COPY, style="dim")
        await self._play(self.session.start())

        while True:
            ending = self.session.ending_scene
            if ending is not None:
                self.console.print(render_ending(ending_summary(ending), self.accent))
                answer = await self._ask(f"{RESTART_LABEL}? [y/N] ")
                if answer is None or answer.strip().lower() not in ("y", "yes"):
                    return
                self.console.clear()
                self.console.print(render_header(self.session.progress, self.accent))
                await self._play(self.session.restart())
                continue

            options = self.session.options
            listing = render_options(options, self.accent)
            if listing is not None:
                self.console.print(listing)

            text = await self._ask(INPUT_PROMPT)
            if text is None or text.strip() in QUIT_COMMANDS:
                return
            choice = text.strip()
            if choice.isdigit() and 1 <= int(choice) <= len(options):
                await self._play(self.session.select_option(options[int(choice) - 1]))
            else:
                await self._play(self.session.submit(choice))

    async def _ask(self, prompt: str) -> str | None:
        try:
            return await asyncio.to_thread(self.console.input, prompt)
        except EOFError:
            return None

    async def _play(self, turn) -> None:
        with Live(console=self.console, transient=True, refresh_per_second=12) as live:
            self._live = live
            try:
                reply = await turn
            finally:
                self._live = None
        if reply is None:
            return
        self.console.print(render_header(self.session.progress, self.accent))
        await self._reveal(reply)

    async def _reveal(self, reply: Message) -> None:
        accent = self.accent
        scene = reply.scene
        if scene is not None:
            writer = Typewriter(scene.narration or "")
            if self._delay is not None:
                writer.delay = self._delay
            with Live(render_scene(scene, accent, narration=""), console=self.console) as live:
                await writer.play(lambda shown: live.update(render_scene(scene, accent, narration=shown)))
                live.update(render_scene(scene, accent))
        if reply.error is not None:
            self.console.print(render_error(reply))

    def _on_update(self, message: Message) -> None:
        if self._live is None:
            return
        streaming = message.loading
        self._live.update(render_message(message, self.accent, streaming=streaming))
