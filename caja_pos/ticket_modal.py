"""Ticket preview modal screen with manual print."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Container, VerticalScroll
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.widgets import Static

from caja_pos.rendering import format_ticket_preview
from caja_pos.ticket import TicketDocument


class TicketModal(ModalScreen[None]):
    """Shows a rendered ticket; `p` prints it again, any close key dismisses."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "close", "Close"),
        ("ctrl+c", "close", "Close"),
        ("enter", "close", "Close"),
        ("p", "print", "Print"),
    ]

    CSS = """
    TicketModal {
        align: center middle;
        background: $background 60%;
    }

    #ticket-dialog {
        width: 44;
        height: auto;
        max-height: 90%;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #ticket-body {
        height: auto;
        max-height: 40;
        background: white;
        color: black;
        padding: 0 1;
    }

    #ticket-status {
        color: #ffb3b3;
        margin-top: 1;
    }

    #ticket-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    def __init__(
        self,
        document: TicketDocument,
        on_print: Callable[[TicketDocument, Callable[[str | None], None]], None],
    ) -> None:
        super().__init__()
        self.document = document
        self.on_print = on_print

    def compose(self) -> ComposeResult:
        with Container(id="ticket-dialog"):
            with VerticalScroll(id="ticket-body"):
                yield Static(format_ticket_preview(self.document))
            yield Static(id="ticket-status")
            yield Static("P imprimir, Enter/Esc cerrar", id="ticket-help")

    def action_close(self) -> None:
        self.dismiss()

    def action_print(self) -> None:
        self._show_status("Imprimiendo...")
        self.on_print(self.document, self._printed)

    def _printed(self, error: str | None) -> None:
        self._show_status(error or "Enviado a la impresora")

    def _show_status(self, message: str) -> None:
        try:
            self.query_one("#ticket-status", Static).update(message)
        except NoMatches:
            return
