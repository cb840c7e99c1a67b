"""Termy TUI — Textual application class."""

from __future__ import annotations

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from termy.engine.config import TermyConfig
from termy.engine.terminal import ShellTerminalService, TerminalService
from termy.shared.vault import VaultLookup
from termy.tui.widgets.terminal_panel import TerminalPanel


class TermyApp(App):
    """Terminal panel with drag-and-drop path pasting."""

    TITLE = "Termy"
    SUB_TITLE = "Terminal"

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    def __init__(
        self,
        config: TermyConfig | None = None,
        *,
        service: TerminalService | None = None,
        vault: VaultLookup | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config or TermyConfig()
        self.service = service or ShellTerminalService(
            self.config.shell,
            shell_args=self.config.shell_args,
            cwd=self.config.cwd,
        )
        self._vault = vault

    def compose(self) -> ComposeResult:
        yield Header()
        yield TerminalPanel(self.config, self.service, vault=self._vault, id="terminal")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one(TerminalPanel).focus()

    async def on_terminal_panel_detached(self, message: TerminalPanel.Detached) -> None:
        await message.panel.remove()
        self.sub_title = "Terminal unavailable"

    async def action_quit(self) -> None:
        """Shut every session down before quitting."""
        if isinstance(self.service, ShellTerminalService):
            await self.service.shutdown()
        await super().action_quit()
