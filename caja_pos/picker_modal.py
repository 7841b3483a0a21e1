"""List-picking modal screens."""

from __future__ import annotations

from typing import Sequence

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Static

PICKER_CSS = """
    #picker-dialog {
        width: 72;
        height: auto;
        max-height: 90%;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #picker-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #picker-body {
        margin-bottom: 1;
        color: white;
    }

    #picker-help {
        margin-top: 1;
        color: #dddddd;
    }
"""


class PickerModal(ModalScreen[tuple[str, int] | None]):
    """Pick one row; dismisses with `(action, index)`.

    Enter maps to the "select" action. `actions` adds single-letter keys that
    dismiss with their own action name (e.g. `{"d": "discard"}`).
    """

    CSS = (
        """
    PickerModal {
        align: center middle;
        background: $background 60%;
    }
    """
        + PICKER_CSS
    )

    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "close", "Close"),
        ("ctrl+c", "close", "Close"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("up", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("enter", "choose('select')", "Select"),
    ]

    cursor_index = reactive(0)

    def __init__(
        self,
        title: str,
        rows: Sequence[str | Text],
        help_text: str = "J/K/↑/↓ mover, Enter elegir, Esc cerrar",
        actions: dict[str, str] | None = None,
        empty_text: str = "(sin resultados)",
    ) -> None:
        super().__init__()
        self.title_text = title
        self.rows = list(rows)
        self.help_text = help_text
        self.actions = actions or {}
        self.empty_text = empty_text

    def compose(self) -> ComposeResult:
        with Container(id="picker-dialog"):
            yield Static(self.title_text, id="picker-title")
            yield Static(id="picker-body")
            yield Static(self.help_text, id="picker-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.character and event.character in self.actions:
            self.action_choose(self.actions[event.character])
            event.stop()

    def action_close(self) -> None:
        self.dismiss(None)

    def action_move_cursor(self, delta: int) -> None:
        if not self.rows:
            return
        self.cursor_index = (self.cursor_index + delta) % len(self.rows)
        self._refresh_content()

    def action_choose(self, action: str) -> None:
        if not self.rows:
            return
        self.dismiss((action, self.cursor_index))

    def _refresh_content(self) -> None:
        body = self.query_one("#picker-body", Static)
        if not self.rows:
            body.update(self.empty_text)
            return

        content = Text(style="white")
        for idx, row in enumerate(self.rows):
            if idx > 0:
                content.append("\n")
            pointer = "➤ " if idx == self.cursor_index else "  "
            content.append(pointer)
            if isinstance(row, Text):
                content.append_text(row)
            else:
                content.append(row, style="bold white" if idx == self.cursor_index else "white")
        body.update(content)


class ToggleListModal(ModalScreen[list[int] | None]):
    """Centered modal to toggle any number of rows (add-ons for a product)."""

    CSS = (
        """
    ToggleListModal {
        align: center middle;
        background: $background 60%;
    }
    """
        + PICKER_CSS
    )

    BINDINGS = [
        ("escape", "close", "Close"),
        ("ctrl+c", "close", "Close"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("up", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("space", "toggle_current", "Toggle"),
        ("enter", "confirm", "Confirm"),
    ]

    cursor_index = reactive(0)

    def __init__(self, title: str, rows: Sequence[str]) -> None:
        super().__init__()
        self.title_text = title
        self.rows = list(rows)
        self.checked: set[int] = set()

    def compose(self) -> ComposeResult:
        with Container(id="picker-dialog"):
            yield Static(self.title_text, id="picker-title")
            yield Static(id="picker-body")
            yield Static("J/K/↑/↓ mover, Espacio marcar, Enter confirmar, Esc cancelar", id="picker-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def action_close(self) -> None:
        self.dismiss(None)

    def action_move_cursor(self, delta: int) -> None:
        if not self.rows:
            return
        self.cursor_index = (self.cursor_index + delta) % len(self.rows)
        self._refresh_content()

    def action_toggle_current(self) -> None:
        if not self.rows:
            return
        if self.cursor_index in self.checked:
            self.checked.remove(self.cursor_index)
        else:
            self.checked.add(self.cursor_index)
        self._refresh_content()

    def action_confirm(self) -> None:
        self.dismiss(sorted(self.checked))

    def _refresh_content(self) -> None:
        body = self.query_one("#picker-body", Static)
        content = Text(style="white")
        for idx, row in enumerate(self.rows):
            if idx > 0:
                content.append("\n")
            pointer = "➤ " if idx == self.cursor_index else "  "
            is_checked = idx in self.checked
            checked = "[x]" if is_checked else "[ ]"
            content.append(f"{pointer}{checked} {row}", style="bold white" if is_checked else "white")
        body.update(content)
