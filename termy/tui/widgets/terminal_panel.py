"""Terminal panel — session output, keystroke forwarding and path drops.

Terminal emulators deliver files dropped onto the window as a paste,
so a paste made only of paths is resolved to quoted absolute paths
before being typed into the session. Any other paste is typed as is.
"""

from __future__ import annotations

import logging
from pathlib import Path

from textual import events
from textual.app import ComposeResult
from textual.message import Message
from textual.widget import Widget
from textual.widgets import RichLog
from rich.text import Text

from termy.engine.config import TermyConfig
from termy.engine.models import OscEvent, OscEventKind
from termy.engine.surface import TerminalSurface
from termy.engine.terminal import ShellSession, ShellTerminalService, TerminalService, TerminalSession
from termy.shared.models.drop import DropPayload
from termy.shared.vault import VaultLookup
from termy.tui.widgets.status_bar import StatusBar

logger = logging.getLogger(__name__)

# Keys forwarded to the session as control sequences
_KEY_SEQUENCES: dict[str, str] = {
    "enter": "\n",
    "tab": "\t",
    "backspace": "\x7f",
    "escape": "\x1b",
    "ctrl+c": "\x03",
    "ctrl+d": "\x04",
    "ctrl+z": "\x1a",
    "up": "\x1b[A",
    "down": "\x1b[B",
    "right": "\x1b[C",
    "left": "\x1b[D",
}


class TerminalPanel(Widget, can_focus=True):
    """One terminal surface rendered as a scrolling log."""

    DEFAULT_CSS = """
    TerminalPanel {
        height: 1fr;
        border: round $accent;
        border-title-color: $text;
    }

    TerminalPanel RichLog {
        height: 1fr;
        background: $surface;
    }
    """

    class Detached(Message):
        """Fired when the panel tears itself down after a fatal init error."""

        def __init__(self, panel: TerminalPanel) -> None:
            self.panel = panel
            super().__init__()

    def __init__(
        self,
        config: TermyConfig,
        service: TerminalService,
        *,
        vault: VaultLookup | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._vault_name = Path(config.vault_path).name if config.vault_path else ""
        if isinstance(service, ShellTerminalService) and service.on_output is None:
            service.on_output = self.append_output
        self.surface = TerminalSurface.from_config(
            config,
            service,
            vault=vault,
            notice=self._show_notice,
            detach=self._detach,
            on_ready=self._bind_session,
        )

    def compose(self) -> ComposeResult:
        yield RichLog(
            auto_scroll=True,
            wrap=True,
            markup=False,
            highlight=False,
            max_lines=5000,
        )
        yield StatusBar()

    async def on_mount(self) -> None:
        self.border_title = self.surface.title
        self.query_one(StatusBar).vault = self._vault_name
        await self.surface.open()

    async def on_unmount(self) -> None:
        await self.surface.close()

    def append_output(self, text: str) -> None:
        self.query_one(RichLog).write(Text.from_ansi(text.rstrip("\n")))

    async def handle_drop_text(self, text: str) -> str:
        """Resolve dropped text and type the paths into the session."""
        return await self.surface.handle_drop(DropPayload.from_text(text))

    async def on_paste(self, event: events.Paste) -> None:
        event.stop()
        await self.surface.handle_paste(event.text)

    def on_key(self, event: events.Key) -> None:
        session = self.surface.session
        if session is None:
            return
        sequence = _KEY_SEQUENCES.get(event.key)
        if sequence is None and event.is_printable and event.character:
            sequence = event.character
        if sequence is None:
            return
        event.stop()
        event.prevent_default()
        session.write(sequence)

    def _bind_session(self, session: TerminalSession) -> None:
        self.border_title = session.title
        if isinstance(session, ShellSession):
            session.on_focus = self.focus
            session.on_title_change = self._set_title
            session.on_event = self._on_shell_event
        self.query_one(StatusBar).state = "ready"

    def _on_shell_event(self, event: OscEvent) -> None:
        if event.kind is OscEventKind.COMMAND_END:
            self.query_one(StatusBar).exit_code = event.exit_code

    def _set_title(self, title: str) -> None:
        self.border_title = title

    def _show_notice(self, message: str) -> None:
        self.app.notify(message, severity="warning", timeout=6)

    async def _detach(self) -> None:
        logger.info("Detaching terminal panel after failed initialization")
        self.query_one(StatusBar).state = "failed"
        self.post_message(self.Detached(self))
