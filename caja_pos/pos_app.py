"""Main Textual app class."""

from __future__ import annotations

import threading
from typing import Any, Callable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Header, Static

from caja_pos.alert_modal import AlertModal
from caja_pos.amount_modal import AmountModal
from caja_pos.api import BackendClient
from caja_pos.cart import CartStore
from caja_pos.checkout import CheckoutOrchestrator, PendingHeldTicket, PendingSale
from caja_pos.errors import PosError, RegisterNotOpenError, ValidationError
from caja_pos.logs import get_logger
from caja_pos.models import (
    AddOn,
    ClosingSummary,
    HeldTicket,
    Operator,
    PendingEvent,
    Product,
    ReceiptConfig,
    RegisterSession,
    Sale,
    Variant,
)
from caja_pos.payment_modal import PaymentModal
from caja_pos.persistence import SessionStorage
from caja_pos.picker_modal import PickerModal, ToggleListModal
from caja_pos.printer import EscposTicketPrinter, check_printer_dependencies
from caja_pos.register import RegisterSessionManager
from caja_pos.rendering import (
    format_add_on_label,
    format_cart_line,
    format_held_ticket_row,
    format_product_label,
    format_register_badge,
    format_sale_row,
    format_session_row,
    format_table_charge_alert,
    format_variant_label,
    format_web_order_alert,
)
from caja_pos.text_prompt_modal import TextPromptModal
from caja_pos.ticket import (
    TicketDocument,
    TicketPrinter,
    TicketPrintController,
    format_money,
    format_order_number,
    render_web_order,
)
from caja_pos.ticket_modal import TicketModal
from caja_pos.watcher import build_table_charge_watcher, build_web_order_watcher

logger = get_logger(__name__)


class PosApp(App):
    """A Textual till: search products, build the cart, charge it and print tickets."""

    TITLE = "Caja POS"
    SUB_TITLE = "Punto de venta"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #cart-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #search-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #search-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 5;
    }

    #results {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-total {
        height: 1;
        margin-top: 1;
        text-style: bold;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    input_state = reactive("normal")
    search_query = reactive("")
    selected_index = reactive(0)
    cart_selected_index = reactive(None)

    BINDINGS = [
        ("tab", "cycle_results(1)", "Siguiente"),
        ("up", "cycle_results(-1)", "Anterior"),
        ("down", "cycle_results(1)", "Siguiente"),
        ("enter", "add_selected", "Agregar"),
        ("backspace", "backspace_query", "Borrar"),
        Binding("ctrl+s", "checkout", "Cobrar", priority=True),
        Binding("ctrl+o", "open_register", "Abrir caja", priority=True),
        Binding("ctrl+x", "close_register", "Cerrar caja", priority=True),
        Binding("ctrl+t", "hold_ticket", "Guardar ticket", priority=True),
        Binding("ctrl+l", "held_tickets", "Tickets guardados", priority=True),
        Binding("ctrl+r", "sales_history", "Ventas", priority=True),
        Binding("ctrl+g", "register_history", "Historial caja", priority=True),
        ("ctrl+c", "cancel_active_mode", "Salir de búsqueda"),
        ("ctrl+q", "quit", "Salir"),
    ]

    def __init__(
        self,
        backend: BackendClient,
        storage: SessionStorage,
        operator: Operator,
        printer: TicketPrinter | None = None,
    ) -> None:
        super().__init__()
        self.backend = backend
        self.storage = storage
        self.operator = operator
        self.products: list[Product] = []
        self.system_status = ""
        self._ui_thread_id = threading.get_ident()

        self.cart = CartStore()
        self.till = RegisterSessionManager(backend)
        self.checkout = CheckoutOrchestrator(self.cart, self.till, backend, on_sale=self._sale_completed)
        self.tickets = TicketPrintController(
            backend,
            printer or EscposTicketPrinter(),
            scheduler=self,
            on_error=self._auto_print_failed,
            run_print=self._print_in_background,
        )
        self.web_orders = build_web_order_watcher(
            backend,
            storage,
            self,
            on_alert=lambda event: self.call_from_thread(self._show_web_order_alert, event),
            sound=lambda: self.call_from_thread(self.bell),
            dispatch=self._dispatch_poll,
        )
        self.table_charges = build_table_charge_watcher(
            backend,
            storage,
            self,
            on_alert=lambda event: self.call_from_thread(self._show_table_charge_alert, event),
            sound=lambda: self.call_from_thread(self.bell),
            dispatch=self._dispatch_poll,
        )
        self.cart.subscribe(self._on_cart_changed)
        logger.info("app_init", operator=operator.name, role=operator.role)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="cart-pane"):
                yield Static("Carrito", classes="pane-title")
                yield Static("(carrito vacío)", id="cart-list")
                yield Static(id="cart-total")
            with Vertical(id="search-pane"):
                yield Static(id="search-bar")
                yield Static(id="results")

    def on_mount(self) -> None:
        self._ui_thread_id = threading.get_ident()
        _, msg = check_printer_dependencies()
        self.system_status = msg
        logger.info("on_mount", printer_status=msg)

        location_id = self.operator.location_id or self.storage.active_location()
        self.storage.set_active_location(location_id)
        self.backend.location_id = location_id
        self._refresh_all()
        self._load_location(location_id)

    def on_unmount(self) -> None:
        self.tickets.cancel()
        self.web_orders.deactivate()
        self.table_charges.deactivate()
        self.checkout.abandon()
        logger.info("app_shutdown")

    # Background work

    def _in_background(self, work: Callable[[], Any], on_done: Callable[[Any], None] | None, action: str) -> None:
        """Run a blocking backend call in a thread worker; results come back on the event loop."""

        def runner() -> None:
            try:
                result = work()
            except PosError as exc:
                logger.info("action_failed", action=action, code=exc.code.value, error=exc.message)
                self.call_from_thread(self._set_status, exc.message)
                return
            if on_done is not None:
                self.call_from_thread(on_done, result)

        self.run_worker(runner, thread=True, group="backend", description=action)

    def _dispatch_poll(self, check: Callable[[], Any]) -> None:
        self.run_worker(check, thread=True, group="watchers")

    def _print_in_background(self, job: Callable[[], None], failed: Callable[[Exception], None]) -> None:
        """Printing blocks on USB and the logo fetch; failures are reported on the event loop."""

        def runner() -> None:
            try:
                job()
            except Exception as exc:
                self.call_from_thread(failed, exc)

        self.run_worker(runner, thread=True, group="printer")

    def _on_cart_changed(self) -> None:
        if threading.get_ident() == self._ui_thread_id:
            self._refresh_cart()
        else:
            self.call_from_thread(self._refresh_cart)

    def _load_location(self, location_id: str, force: bool = False) -> None:
        def work() -> list[Product]:
            if force:
                self.till.refresh()
            else:
                self.till.set_location(location_id)
            return [Product.from_wire(raw) for raw in self.backend.list_products()]

        self._in_background(work, self._location_loaded, "load_location")

    def _location_loaded(self, products: list[Product]) -> None:
        self.products = products
        self.web_orders.update_context(self.operator, self.backend.location_id)
        self.table_charges.update_context(self.operator, self.backend.location_id)
        self.system_status = f"{len(products)} productos cargados"
        self._refresh_search()

    def _set_status(self, message: str) -> None:
        self.system_status = message
        self._refresh_search_bar()

    def _modal_open(self) -> bool:
        return isinstance(self.screen, ModalScreen)

    # Keys

    def on_key(self, event: Key) -> None:
        if self._modal_open():
            return

        logger.debug("on_key", key=event.key, char=event.character, state=self.input_state)

        if self.input_state == "normal" and event.character in {"+", "="}:
            self._change_selected_quantity(1)
            event.stop()
            return

        if self.input_state == "normal" and event.character == "-":
            self._change_selected_quantity(-1)
            event.stop()
            return

        if not event.is_printable or not event.character or len(event.character) != 1:
            return
        if not (event.character.isalnum() or event.character == " "):
            return

        key = event.character.lower()
        if self.input_state == "normal":
            if key == "d":
                self._delete_selected_line()
            elif key == "j":
                self._move_cart_selection(1)
            elif key == "k":
                self._move_cart_selection(-1)
            elif key == "n":
                self._edit_note_for_selected_line()
            elif key == "r":
                self._set_status("Actualizando...")
                self._load_location(self.backend.location_id, force=True)
            elif key in {"s", "b"}:
                self.input_state = "active"
                self.search_query = ""
                self.selected_index = 0
                self._refresh_search()
            else:
                return
            event.stop()
            return

        self.search_query += event.character
        self.selected_index = 0
        self._refresh_search()
        event.stop()

    def action_cancel_active_mode(self) -> None:
        if self._modal_open():
            return
        if self.input_state == "normal":
            return

        self.input_state = "normal"
        self.search_query = ""
        self.selected_index = 0
        self._refresh_search()

    def action_cycle_results(self, delta: int) -> None:
        if self._modal_open():
            return
        if self.input_state != "active":
            return

        results = self._filtered_results()
        if not results:
            self.selected_index = 0
            self._refresh_results(results)
            return
        self.selected_index = (self.selected_index + delta) % len(results)
        self._refresh_results(results)

    def action_backspace_query(self) -> None:
        if self._modal_open():
            return
        if self.input_state != "active":
            return

        if not self.search_query:
            return
        self.search_query = self.search_query[:-1]
        self.selected_index = 0
        self._refresh_search()

    # Cart

    def action_add_selected(self) -> None:
        if self._modal_open():
            return
        if self.input_state != "active":
            return

        results = self._filtered_results()
        if not results:
            return
        product = results[self.selected_index]
        if not product.available:
            self._set_status(f"{product.name} está agotado.")
            return
        self._choose_variant(product)

    def _choose_variant(self, product: Product) -> None:
        if not product.variants:
            self._choose_add_ons(product, None)
            return

        def picked(result: tuple[str, int] | None) -> None:
            if result is None:
                return
            self._choose_add_ons(product, product.variants[result[1]])

        rows = [format_variant_label(variant) for variant in product.variants]
        self.push_screen(PickerModal(f"Variante de {product.name}", rows), picked)

    def _choose_add_ons(self, product: Product, variant: Variant | None) -> None:
        if not product.add_ons:
            self._add_to_cart(product, variant, [])
            return

        def picked(result: list[int] | None) -> None:
            if result is None:
                return
            self._add_to_cart(product, variant, [product.add_ons[idx] for idx in result])

        rows = [format_add_on_label(add_on) for add_on in product.add_ons]
        self.push_screen(ToggleListModal(f"Agregados para {product.name}", rows), picked)

    def _add_to_cart(self, product: Product, variant: Variant | None, add_ons: list[AddOn]) -> None:
        try:
            line = self.cart.add(product, variant, add_ons)
        except ValidationError as exc:
            self._set_status(exc.message)
            return
        ids = [entry.line_id for entry in self.cart.lines]
        self.cart_selected_index = ids.index(line.line_id)
        if line.at_stock_limit:
            self._set_status(f"Stock máximo alcanzado para {line.name}")
        self._refresh_cart()

    def _selected_line_id(self) -> str | None:
        lines = self.cart.lines
        if self.cart_selected_index is None or not (0 <= self.cart_selected_index < len(lines)):
            return None
        return lines[self.cart_selected_index].line_id

    def _move_cart_selection(self, delta: int) -> None:
        total = len(self.cart)
        if not total:
            return

        if self.cart_selected_index is None:
            self.cart_selected_index = 0 if delta > 0 else total - 1
        else:
            self.cart_selected_index = (self.cart_selected_index + delta) % total
        self._refresh_cart()

    def _change_selected_quantity(self, delta: int) -> None:
        line_id = self._selected_line_id()
        if line_id is None:
            return
        if delta > 0:
            if not self.cart.increment(line_id):
                self._set_status("No hay más stock disponible para este producto.")
        else:
            self.cart.decrement(line_id)

    def _delete_selected_line(self) -> None:
        line_id = self._selected_line_id()
        if line_id is None:
            return
        idx = self.cart_selected_index
        self.cart.remove(line_id)
        if self.cart.is_empty:
            self.cart_selected_index = None
        else:
            self.cart_selected_index = min(idx, len(self.cart) - 1)
        self._refresh_cart()

    def _edit_note_for_selected_line(self) -> None:
        line_id = self._selected_line_id()
        if line_id is None:
            return
        line = self.cart.get(line_id)

        def done(text: str | None) -> None:
            if text is not None:
                self.cart.set_note(line_id, text)

        self.push_screen(TextPromptModal(f"Observación: {line.name}", initial=line.note), done)

    # Checkout

    def action_checkout(self) -> None:
        logger.info("submit_enter", state=self.input_state, rows=len(self.cart), screen=type(self.screen).__name__)
        if self._modal_open():
            logger.info("submit_blocked", reason="modal_open")
            return
        if self.input_state != "normal":
            logger.info("submit_blocked", reason="not_normal")
            self._set_status("Cobrar solo en modo normal (Ctrl+C para salir de la búsqueda)")
            return
        try:
            self.till.require_open()
            if self.cart.is_empty:
                raise ValidationError("El carrito está vacío.")
        except PosError as exc:
            logger.info("submit_blocked", reason=exc.code.value)
            self._set_status(exc.message)
            return

        def chosen(result: tuple[str, str] | None) -> None:
            if result is None:
                return
            payment_type, order_type = result
            try:
                pending = self.checkout.prepare(payment_type, order_type)
            except PosError as exc:
                self._set_status(exc.message)
                return

            def send() -> tuple[PendingSale, Sale]:
                sale = self.checkout.send(pending)
                self.tickets.receipt_config()
                return pending, sale

            self._set_status("Registrando venta...")
            self._in_background(send, self._checkout_finished, "checkout")

        self.push_screen(PaymentModal(self.cart.total), chosen)

    def _checkout_finished(self, result: tuple[PendingSale, Sale]) -> None:
        pending, sale = result
        outcome = self.checkout.apply_result(pending, sale)
        if not outcome.applied:
            return
        number = format_order_number(sale.order_number)
        self._set_status(f"Venta registrada: #{number} {format_money(sale.total)}")

    def _sale_completed(self, sale: Sale) -> None:
        document = self.tickets.present_sale(sale, fresh=True, config=self.tickets.last_config)
        self.push_screen(TicketModal(document, on_print=self._print_document))

    def _print_document(self, document: TicketDocument, report: Callable[[str | None], None]) -> None:
        def failed(exc: Exception) -> None:
            logger.warning("manual_print_failed", title=document.title, error=str(exc))
            report(f"Error de impresión: {exc}")

        def job() -> None:
            self.tickets.print_document(document)
            self.call_from_thread(report, None)

        self._print_in_background(job, failed)

    def _auto_print_failed(self, exc: Exception) -> None:
        self._set_status(f"Error de impresión: {exc}")

    # Held tickets

    def action_hold_ticket(self) -> None:
        if self._modal_open():
            return
        if self.cart.is_empty:
            self._set_status("El carrito está vacío.")
            return

        def named(name: str | None) -> None:
            if name is None:
                return
            try:
                pending = self.checkout.prepare_held_ticket(name)
            except PosError as exc:
                self._set_status(exc.message)
                return
            self._in_background(
                lambda: self.checkout.send_held_ticket(pending),
                lambda _: self._held_ticket_saved(pending),
                "hold_ticket",
            )

        self.push_screen(TextPromptModal("Nombre del ticket", required=True), named)

    def _held_ticket_saved(self, pending: PendingHeldTicket) -> None:
        if self.checkout.apply_held_ticket(pending):
            self._set_status(f"Ticket guardado: {pending.name}")
        else:
            self._set_status(f"Ticket guardado: {pending.name} (el carrito cambió y se conserva)")

    def action_held_tickets(self) -> None:
        if self._modal_open():
            return
        self._in_background(self.checkout.list_held_tickets, self._show_held_tickets, "list_held_tickets")

    def _show_held_tickets(self, held: list[HeldTicket]) -> None:
        def picked(result: tuple[str, int] | None) -> None:
            if result is None:
                return
            action, idx = result
            ticket = held[idx]
            if action == "discard":
                self._in_background(
                    lambda: self.checkout.discard_held_ticket(ticket),
                    lambda _: self._set_status(f"Ticket descartado: {ticket.name}"),
                    "discard_held_ticket",
                )
                return
            replace = action == "select"
            self._in_background(
                lambda: self.checkout.discard_held_ticket(ticket),
                lambda _: self._held_ticket_consumed(ticket, replace),
                "load_held_ticket",
            )

        self.push_screen(
            PickerModal(
                "Tickets guardados",
                [format_held_ticket_row(ticket) for ticket in held],
                help_text="Enter cargar (reemplaza), A agregar al carrito, D descartar, Esc cerrar",
                actions={"a": "append", "d": "discard"},
                empty_text="No hay tickets guardados",
            ),
            picked,
        )

    def _held_ticket_consumed(self, ticket: HeldTicket, replace: bool) -> None:
        self.checkout.restore_held_ticket(ticket, replace=replace)
        self.cart_selected_index = None
        self._set_status(f"Ticket cargado: {ticket.name}")

    # Register

    def _require_till_role(self) -> bool:
        if self.operator.can_manage_till:
            return True
        self._set_status("Tu rol no puede operar la caja.")
        return False

    def action_open_register(self) -> None:
        if self._modal_open() or not self._require_till_role():
            return
        if self.till.is_open:
            self._set_status("Ya hay una caja abierta.")
            return

        def entered(value: str | None) -> None:
            if value is None:
                return
            self._in_background(lambda: self.till.open(value), self._register_opened, "open_register")

        self.push_screen(AmountModal(), entered)

    def _register_opened(self, _: Any) -> None:
        self._set_status("Caja abierta")

    def action_close_register(self) -> None:
        if self._modal_open() or not self._require_till_role():
            return
        if not self.till.is_open:
            self._set_status(RegisterNotOpenError().message)
            return

        def confirmed(accepted: bool | None) -> None:
            if not accepted:
                return
            self._in_background(
                lambda: (self.till.close(self.operator.name), self.tickets.receipt_config()),
                self._register_closed,
                "close_register",
            )

        body = f"Se cerrará la caja y se emitirá el reporte de cierre.\nUsuario: {self.operator.name}"
        self.push_screen(AlertModal("Cerrar Caja", body, accept_label="cerrar caja"), confirmed)

    def _register_closed(self, result: tuple[ClosingSummary, ReceiptConfig]) -> None:
        summary, config = result
        self._set_status(f"Caja cerrada. Total final {format_money(summary.final_total)}")
        document = self.tickets.present_closing(summary, config)
        self.push_screen(TicketModal(document, on_print=self._print_document))

    # History

    def action_sales_history(self) -> None:
        if self._modal_open():
            return
        self._in_background(
            lambda: (self.checkout.recent_sales(), self.tickets.receipt_config()),
            self._show_sales_history,
            "sales_history",
        )

    def _show_sales_history(self, result: tuple[list[Sale], ReceiptConfig]) -> None:
        sales, config = result

        def picked(choice: tuple[str, int] | None) -> None:
            if choice is None:
                return
            document = self.tickets.present_sale(sales[choice[1]], config=config)
            self.push_screen(TicketModal(document, on_print=self._print_document))

        rows = [format_sale_row(sale) for sale in sales]
        self.push_screen(PickerModal("Ventas", rows, empty_text="No hay ventas registradas"), picked)

    def action_register_history(self) -> None:
        if self._modal_open() or not self._require_till_role():
            return
        self._in_background(
            lambda: (self.till.history(), self.tickets.receipt_config()),
            self._show_register_history,
            "register_history",
        )

    def _show_register_history(self, result: tuple[list[RegisterSession], ReceiptConfig]) -> None:
        history, config = result
        closed = [session for session in history if not session.is_open]

        def picked(choice: tuple[str, int] | None) -> None:
            if choice is None:
                return
            summary = ClosingSummary.from_session(closed[choice[1]])
            document = self.tickets.present_closing(summary, config)
            self.push_screen(TicketModal(document, on_print=self._print_document))

        rows = [format_session_row(session) for session in closed]
        self.push_screen(PickerModal("Historial de caja", rows, empty_text="No hay cierres registrados"), picked)

    # Alerts

    def _show_web_order_alert(self, event: PendingEvent) -> None:
        def answered(accepted: bool | None) -> None:
            if accepted:
                self._open_web_order(event)

        self.push_screen(
            AlertModal("Nuevo pedido web", format_web_order_alert(event), accept_label="ver pedido"),
            answered,
        )

    def _open_web_order(self, event: PendingEvent) -> None:
        """Show the alerted order as a printable ticket, keyed by its id."""
        logger.info("web_order_opened", event_id=event.event_id)
        document = render_web_order(event.payload, self.tickets.last_config)
        self._set_status(f"Pedido web {event.event_id}")
        self.push_screen(TicketModal(document, on_print=self._print_document))

    def _show_table_charge_alert(self, event: PendingEvent) -> None:
        def answered(accepted: bool | None) -> None:
            if not accepted:
                return
            if self.checkout.load_pending_charge(event.payload):
                self.cart_selected_index = None
                self._set_status("Cobro de mesa cargado en el carrito")
            else:
                self._set_status("Ese cobro ya fue cargado")

        self.push_screen(
            AlertModal("Cobro pendiente", format_table_charge_alert(event), accept_label="cargar al carrito"),
            answered,
        )

    # Rendering

    def _filtered_results(self) -> list[Product]:
        if not self.search_query:
            return self.products
        q = self.search_query.lower()
        return [product for product in self.products if q in product.name.lower()]

    def _refresh_all(self) -> None:
        self._refresh_cart()
        self._refresh_search()

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            start = max(0, selected - rows // 2)
            start = min(start, total - rows)

        return (start, start + rows)

    def _refresh_cart(self) -> None:
        try:
            cart_widget = self.query_one("#cart-list", Static)
            total_widget = self.query_one("#cart-total", Static)
        except NoMatches:
            return

        lines = self.cart.lines
        total_widget.update(f"Total: {format_money(self.cart.total)}")
        if not lines:
            self.cart_selected_index = None
            cart_widget.update("(carrito vacío)")
            return

        if self.cart_selected_index is not None and self.cart_selected_index >= len(lines):
            self.cart_selected_index = len(lines) - 1

        # Cart lines can span several rows; keep a conservative window.
        visible_rows = max(1, self._visible_rows(cart_widget) // 2)
        start, end = self._window_bounds(len(lines), visible_rows, self.cart_selected_index)

        content = Text()
        if start > 0:
            content.append("⋮\n", style="dim")

        for idx in range(start, end):
            if idx > start:
                content.append("\n")
            pointer = "➤ " if idx == self.cart_selected_index else "  "
            content.append(pointer)
            content.append(f"{idx + 1}. ")
            content.append_text(format_cart_line(lines[idx]))

        if end < len(lines):
            content.append("\n⋮", style="dim")

        cart_widget.update(content)

    def _refresh_search(self) -> None:
        self._refresh_search_bar()
        if self.input_state == "normal":
            self._refresh_results([])
            return
        self._refresh_results(self._filtered_results())

    def _refresh_search_bar(self) -> None:
        try:
            bar = self.query_one("#search-bar", Static)
        except NoMatches:
            return

        text = Text()
        text.append_text(format_register_badge(self.till.is_open, self.till.verified))
        text.append(f" {self.operator.name or 'Sin usuario'} @ {self.backend.location_id or 'sin local'}\n")
        if self.input_state == "normal":
            text.append("S buscar. J/K mover, +/- cantidad, N nota, D quitar. Ctrl+S cobrar.\n", style="dim")
        else:
            text.append("Buscar: ", style="bold")
            text.append(f"{self.search_query}|\n")
        text.append(self.system_status or "Listo")
        bar.update(text)

    def _refresh_results(self, results: list[Product]) -> None:
        try:
            results_widget = self.query_one("#results", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            results_widget.update("")
            return

        if not results:
            results_widget.update("Sin resultados")
            return

        if self.selected_index >= len(results):
            self.selected_index = 0

        visible_rows = self._visible_rows(results_widget)
        start, end = self._window_bounds(len(results), visible_rows, self.selected_index)

        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")

        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            pointer = "➤ " if idx == self.selected_index else "  "
            lines.append(pointer)
            lines.append_text(format_product_label(results[idx]))

        if end < len(results):
            lines.append("\n⋮", style="dim")

        results_widget.update(lines)
