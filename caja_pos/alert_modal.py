"""Notification alert modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Static


class AlertModal(ModalScreen[bool]):
    """Alert with an optional accept action; dismisses True when accepted."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "close", "Close"),
        ("ctrl+c", "close", "Close"),
        ("enter", "accept", "Accept"),
    ]

    CSS = """
    AlertModal {
        align: center middle;
        background: $background 60%;
    }

    #alert-dialog {
        width: 64;
        height: auto;
        border: round $warning;
        background: $panel;
        padding: 1 2;
    }

    #alert-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #alert-body {
        margin-bottom: 1;
        color: white;
    }

    #alert-help {
        color: #dddddd;
    }
    """

    def __init__(self, title: str, body: Text | str, accept_label: str = "") -> None:
        super().__init__()
        self.title_text = title
        self.body = body
        self.accept_label = accept_label

    def compose(self) -> ComposeResult:
        with Container(id="alert-dialog"):
            yield Static(self.title_text, id="alert-title")
            yield Static(self.body, id="alert-body")
            if self.accept_label:
                yield Static(f"Enter {self.accept_label}, Esc cerrar", id="alert-help")
            else:
                yield Static("Enter/Esc cerrar", id="alert-help")

    def action_accept(self) -> None:
        self.dismiss(bool(self.accept_label))

    def action_close(self) -> None:
        self.dismiss(False)
