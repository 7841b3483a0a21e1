"""Opening-float entry modal screen."""

from __future__ import annotations

from decimal import Decimal

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from caja_pos.errors import ValidationError
from caja_pos.register import parse_opening_float
from caja_pos.ticket import format_money

MAX_DIGITS = 12


class AmountModal(ModalScreen[str | None]):
    """Prompt for the opening float; dismisses with the typed amount (decimal comma) or None."""

    CSS = """
    AmountModal {
        align: center middle;
        background: $background 60%;
    }

    #amount-dialog {
        width: 48;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #amount-value {
        border: heavy $secondary;
        padding: 0 1;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self.value = ""
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="amount-dialog"):
            yield Static(Text("Abrir Caja: monto inicial", style="bold"))
            yield Static(Text("Enter confirma, Esc cancela", style="dim"))
            yield Static(id="amount-value")
            yield Static(id="amount-error")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
        elif event.key == "enter":
            self._confirm()
        elif event.key == "backspace":
            self._edit(self.value[:-1])
        elif event.character and event.character.isdigit():
            if len(self.value.replace(",", "")) < MAX_DIGITS:
                self._edit(self.value + event.character)
        elif event.character in {",", "."}:
            # Typed amounts use the es-CL decimal comma.
            if "," not in self.value:
                self._edit(self.value + ",")
        else:
            return
        event.stop()

    def _edit(self, value: str) -> None:
        self.value = value
        self.error = ""
        self._refresh_content()

    def _preview(self) -> Decimal | None:
        try:
            return parse_opening_float(self.value)
        except ValidationError:
            return None

    def _confirm(self) -> None:
        try:
            parse_opening_float(self.value)
        except ValidationError as exc:
            self.error = exc.message
            self._refresh_content()
            return
        self.dismiss(self.value)

    def _refresh_content(self) -> None:
        amount = self._preview()
        shown = Text(self.value or "0")
        if amount is not None:
            shown.append(f"  {format_money(amount)}", style="dim")
        self.query_one("#amount-value", Static).update(shown)
        self.query_one("#amount-error", Static).update(Text(self.error, style="#ffb3b3"))
