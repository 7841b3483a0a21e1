"""Payment selection modal screen shown before a sale is submitted."""

from __future__ import annotations

from decimal import Decimal

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from caja_pos.constant import ORDER_TYPE_PLACEHOLDER, PAYMENT_TYPES
from caja_pos.ticket import format_money


class PaymentModal(ModalScreen[tuple[str, str] | None]):
    """Choose a payment type and an optional order type; dismisses with `(payment, order_type)`."""

    CSS = """
    PaymentModal {
        align: center middle;
        background: $background 60%;
    }

    #payment-dialog {
        width: 60;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #payment-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #payment-body {
        margin-bottom: 1;
        color: white;
    }

    #payment-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #payment-help {
        color: #dddddd;
    }
    """

    def __init__(self, total: Decimal, payment_types: list[str] | None = None) -> None:
        super().__init__()
        self.total = total
        self.payment_types = list(payment_types or PAYMENT_TYPES)
        self.cursor_index: int | None = None
        self.order_type = ""
        self.typing_order_type = False
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="payment-dialog"):
            yield Static(f"Cobrar {format_money(self.total)}", id="payment-title")
            yield Static(id="payment-body")
            yield Static(id="payment-error")
            yield Static(id="payment-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if self.typing_order_type:
            self._on_order_type_key(event)
            event.stop()
            return

        if event.key in {"escape", "q", "ctrl+c"}:
            self.dismiss(None)
        elif event.key in {"j", "down"}:
            self._move_cursor(1)
        elif event.key in {"k", "up"}:
            self._move_cursor(-1)
        elif event.key == "tab":
            self.typing_order_type = True
            self._refresh_content()
        elif event.key == "enter":
            self._confirm()
        elif event.character and event.character.isdigit():
            idx = int(event.character) - 1
            if 0 <= idx < len(self.payment_types):
                self.cursor_index = idx
                self.error = ""
                self._refresh_content()
        else:
            return
        event.stop()

    def _on_order_type_key(self, event: Key) -> None:
        if event.key in {"escape", "enter", "tab"}:
            self.typing_order_type = False
        elif event.key == "backspace":
            self.order_type = self.order_type[:-1]
        elif event.is_printable and event.character and len(self.order_type) < 40:
            self.order_type += event.character
        self._refresh_content()

    def _move_cursor(self, delta: int) -> None:
        if self.cursor_index is None:
            self.cursor_index = 0 if delta > 0 else len(self.payment_types) - 1
        else:
            self.cursor_index = (self.cursor_index + delta) % len(self.payment_types)
        self.error = ""
        self._refresh_content()

    def _confirm(self) -> None:
        if self.cursor_index is None:
            self.error = "Debes seleccionar un tipo de pago"
            self._refresh_content()
            return
        self.dismiss((self.payment_types[self.cursor_index], self.order_type.strip()))

    def _refresh_content(self) -> None:
        body = self.query_one("#payment-body", Static)
        content = Text(style="white")
        content.append("Tipo de pago:\n", style="bold")
        for idx, payment_type in enumerate(self.payment_types):
            selected = idx == self.cursor_index
            pointer = "➤ " if selected else "  "
            content.append(f"{pointer}{idx + 1}. {payment_type}\n", style="bold white" if selected else "white")
        content.append("\nTipo de pedido: ", style="bold")
        if self.typing_order_type:
            content.append(f"{self.order_type}|", style="bold white")
        else:
            content.append(self.order_type or ORDER_TYPE_PLACEHOLDER)
        body.update(content)

        self.query_one("#payment-error", Static).update(self.error or "")
        help_text = self.query_one("#payment-help", Static)
        if self.typing_order_type:
            help_text.update("Escribe el tipo de pedido, Enter/Tab/Esc terminar")
        else:
            help_text.update("1-4 o J/K elegir pago, Tab tipo de pedido, Enter cobrar, Esc cancelar")
