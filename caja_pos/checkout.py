"""Turns the cart into a persisted sale, and manages held tickets."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterable, Protocol

from caja_pos.cart import CartStore
from caja_pos.constant import ORDER_TYPE_PLACEHOLDER
from caja_pos.errors import CollaboratorError, ValidationError
from caja_pos.logs import get_logger
from caja_pos.models import CartLine, HeldTicket, Sale, SaleLine, now_local
from caja_pos.register import RegisterSessionManager

logger = get_logger(__name__)

SALE_FAILED_MESSAGE = "Error al registrar la venta"
HELD_TICKET_FAILED_MESSAGE = "Error al guardar el ticket"


class CheckoutBackend(Protocol):
    def submit_sale(
        self, lines: list[dict[str, Any]], total: Decimal, payment_type: str, order_type: str
    ) -> dict[str, Any]: ...

    def save_held_ticket(self, name: str, lines: list[dict[str, Any]], total: Decimal) -> dict[str, Any]: ...

    def list_held_tickets(self) -> list[dict[str, Any]]: ...

    def discard_held_ticket(self, ticket_id: str) -> None: ...

    def list_sales(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]: ...


def normalize_line(line: CartLine) -> SaleLine:
    """Total mapping of a cart line to the sale-line shape; no field is left unset."""
    return SaleLine(
        product_id=line.product_id or "",
        name=line.name or "",
        unit_price=line.unit_price if line.unit_price is not None else Decimal(0),
        quantity=max(1, int(line.quantity or 1)),
        note=line.note or "",
        variant_id=line.variant_id or None,
        variant_name=line.variant_label or "",
        add_ons=tuple(line.add_ons or ()),
    )


def sale_total(lines: Iterable[SaleLine]) -> Decimal:
    return sum((line.subtotal for line in lines), Decimal(0))


@dataclass(frozen=True)
class PendingSale:
    """Cart snapshot taken when the operator confirmed payment."""

    lines: tuple[SaleLine, ...]
    total: Decimal
    payment_type: str
    order_type: str
    revision: int
    generation: int


@dataclass(frozen=True)
class PendingHeldTicket:
    name: str
    lines: tuple[SaleLine, ...]
    total: Decimal
    revision: int


@dataclass(frozen=True)
class CheckoutOutcome:
    """Result of a submit; `applied` is False when the result arrived for a stale context."""

    sale: Sale
    applied: bool


class CheckoutOrchestrator:
    """Validates register state, submits the sale and hands it to ticket rendering.

    Cart reads and writes happen in `prepare*`/`apply*`/`restore*`, which run on
    the caller's (UI) thread. `send*` only talks to the backend and may run in a
    worker thread.
    """

    def __init__(
        self,
        cart: CartStore,
        register: RegisterSessionManager,
        backend: CheckoutBackend,
        on_sale: Callable[[Sale], None] | None = None,
    ) -> None:
        self.cart = cart
        self.register = register
        self.backend = backend
        self.on_sale = on_sale
        self._generation = 0
        self._lock = threading.Lock()
        self._loaded_charges: set[str] = set()

    def abandon(self) -> None:
        """Invalidate in-flight submits; their results will not touch the cart or the ticket view."""
        with self._lock:
            self._generation += 1

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def validate(self, payment_type: str) -> None:
        if not (payment_type or "").strip():
            raise ValidationError("Debes seleccionar un tipo de pago")
        self.register.require_open()
        if self.cart.is_empty:
            raise ValidationError("El carrito está vacío.")

    def prepare(self, payment_type: str, order_type: str = "") -> PendingSale:
        self.validate(payment_type)
        with self._lock:
            generation = self._generation
        lines = tuple(normalize_line(line) for line in self.cart.lines)
        return PendingSale(
            lines=lines,
            total=sale_total(lines),
            payment_type=payment_type,
            order_type=(order_type or "").strip() or ORDER_TYPE_PLACEHOLDER,
            revision=self.cart.revision,
            generation=generation,
        )

    def send(self, pending: PendingSale) -> Sale:
        """Persist the snapshot. Failures raise and nothing is retried."""
        logger.info(
            "checkout_submit", lines=len(pending.lines), total=str(pending.total), payment_type=pending.payment_type
        )
        try:
            data = self.backend.submit_sale(
                [line.to_wire() for line in pending.lines], pending.total, pending.payment_type, pending.order_type
            )
        except CollaboratorError as exc:
            logger.warning("checkout_failed", error=exc.message, status=exc.status_code)
            message = exc.message if exc.from_backend else SALE_FAILED_MESSAGE
            raise CollaboratorError(message, status_code=exc.status_code, from_backend=exc.from_backend) from exc

        return Sale(
            order_number=str(data.get("numero_pedido") or ""),
            lines=pending.lines,
            total=pending.total,
            payment_type=pending.payment_type,
            order_type=pending.order_type,
            timestamp=now_local(),
        )

    def apply_result(self, pending: PendingSale, sale: Sale) -> CheckoutOutcome:
        """Clear the cart and hand off the ticket, unless the context moved on meanwhile."""
        if not self._is_current(pending.generation):
            logger.info("checkout_result_discarded", order_number=sale.order_number)
            return CheckoutOutcome(sale=sale, applied=False)

        if self.cart.revision == pending.revision:
            self.cart.clear()
        else:
            logger.info("checkout_cart_changed", order_number=sale.order_number)

        logger.info("checkout_completed", order_number=sale.order_number)
        if self.on_sale is not None:
            self.on_sale(sale)
        return CheckoutOutcome(sale=sale, applied=True)

    def submit(self, payment_type: str, order_type: str = "") -> CheckoutOutcome:
        """Persist the cart as a sale. Failures leave the cart untouched."""
        pending = self.prepare(payment_type, order_type)
        return self.apply_result(pending, self.send(pending))

    # Held tickets

    def prepare_held_ticket(self, name: str) -> PendingHeldTicket:
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Debes ingresar un nombre para el ticket")
        if self.cart.is_empty:
            raise ValidationError("El carrito está vacío.")
        lines = tuple(normalize_line(line) for line in self.cart.lines)
        return PendingHeldTicket(name=clean_name, lines=lines, total=sale_total(lines), revision=self.cart.revision)

    def send_held_ticket(self, pending: PendingHeldTicket) -> None:
        try:
            self.backend.save_held_ticket(pending.name, [line.to_wire() for line in pending.lines], pending.total)
        except CollaboratorError as exc:
            logger.warning("held_ticket_save_failed", error=exc.message)
            message = exc.message if exc.from_backend else HELD_TICKET_FAILED_MESSAGE
            raise CollaboratorError(message, status_code=exc.status_code, from_backend=exc.from_backend) from exc
        logger.info("held_ticket_saved", name=pending.name, lines=len(pending.lines))

    def apply_held_ticket(self, pending: PendingHeldTicket) -> bool:
        if self.cart.revision != pending.revision:
            logger.info("held_ticket_cart_changed", name=pending.name)
            return False
        self.cart.clear()
        return True

    def save_as_held_ticket(self, name: str) -> None:
        pending = self.prepare_held_ticket(name)
        self.send_held_ticket(pending)
        self.apply_held_ticket(pending)

    def list_held_tickets(self) -> list[HeldTicket]:
        return [HeldTicket.from_wire(raw) for raw in self.backend.list_held_tickets()]

    def restore_held_ticket(self, ticket: HeldTicket, replace: bool = True) -> None:
        self.cart.load_from(ticket.lines, replace=replace)
        logger.info("held_ticket_loaded", ticket_id=ticket.ticket_id, replace=replace)

    def load_held_ticket(self, ticket: HeldTicket, replace: bool = True) -> None:
        """Consume a held ticket: it is removed from the backend, then loaded into the cart."""
        self.discard_held_ticket(ticket)
        self.restore_held_ticket(ticket, replace=replace)

    def discard_held_ticket(self, ticket: HeldTicket) -> None:
        self.backend.discard_held_ticket(ticket.ticket_id)
        logger.info("held_ticket_discarded", ticket_id=ticket.ticket_id)

    # Pending table charges

    def load_pending_charge(self, charge: dict[str, Any]) -> bool:
        """Replace the cart with a table charge's items; each charge loads once per session."""
        charge_id = str(charge.get("_id") or charge.get("id") or "")
        if not charge_id or charge_id in self._loaded_charges:
            return False
        items = [
            {
                "productoId": item.get("productoId"),
                "nombre": item.get("nombre"),
                "precio": item.get("precio_unitario"),
                "cantidad": item.get("cantidad"),
                "observacion": item.get("nota") or "",
            }
            for item in charge.get("items") or []
            if isinstance(item, dict)
        ]
        if not items:
            return False
        self.cart.load_from(items, replace=True)
        self._loaded_charges.add(charge_id)
        logger.info("pending_charge_loaded", charge_id=charge_id, lines=len(items))
        return True

    def recent_sales(self) -> list[Sale]:
        """Stored sales, newest first, for reprinting."""
        sales = [Sale.from_wire(raw) for raw in self.backend.list_sales()]
        sales.sort(key=lambda sale: sale.timestamp, reverse=True)
        return sales
