"""Status bar — one line under the terminal with session state."""

from __future__ import annotations

from textual.reactive import reactive
from textual.widget import Widget
from rich.text import Text

DROP_HINT = "drop files to paste their paths"


class StatusBar(Widget):
    """Session state, last command exit code and the drop hint."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        background: $panel;
    }
    """

    state: reactive[str] = reactive("pending")
    exit_code: reactive[int | None] = reactive(None)
    vault: reactive[str] = reactive("")

    def render(self) -> Text:
        state_colors = {
            "pending": "yellow",
            "ready": "green",
            "failed": "red bold",
        }
        color = state_colors.get(self.state, "white")

        bar = Text()
        bar.append(" ● ", style=color)
        bar.append(self.state, style=color)

        if self.exit_code is not None:
            bar.append("  │  ", style="dim")
            exit_style = "green" if self.exit_code == 0 else "red"
            bar.append(f"exit {self.exit_code}", style=exit_style)

        if self.vault:
            bar.append("  │  ", style="dim")
            bar.append(f"vault {self.vault}", style="cyan")

        bar.append("  │  ", style="dim")
        bar.append(DROP_HINT, style="dim italic")
        return bar
