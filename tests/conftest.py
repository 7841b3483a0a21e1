"""Shared pytest fixtures: an in-memory backend, a manually-fired scheduler and a temp session DB."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable

import pytest

from caja_pos.cart import CartStore
from caja_pos.models import Product
from caja_pos.persistence import SessionStorage
from caja_pos.register import RegisterSessionManager


class FakeBackend:
    """Records every call; `fail[name]` makes that call raise."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail: dict[str, Exception] = {}
        self.sessions: list[dict[str, Any]] = []
        self.held: list[dict[str, Any]] = []
        self.sales: list[dict[str, Any]] = []
        self.web_orders: list[dict[str, Any]] = []
        self.table_charges: list[dict[str, Any]] = []
        self.products: list[dict[str, Any]] = []
        self.receipt: dict[str, Any] = {}
        self.closing: dict[str, Any] = {}
        self.next_order_number: Any = 7
        self.on_submit: Callable[[], None] | None = None

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    def list_products(self) -> list[dict[str, Any]]:
        self._call("list_products")
        return list(self.products)

    def submit_sale(self, lines: list[dict[str, Any]], total: Decimal, payment_type: str, order_type: str) -> dict[str, Any]:
        self._call("submit_sale", lines, total, payment_type, order_type)
        if self.on_submit is not None:
            self.on_submit()
        return {"numero_pedido": self.next_order_number}

    def list_sales(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        self._call("list_sales", params)
        return list(self.sales)

    def save_held_ticket(self, name: str, lines: list[dict[str, Any]], total: Decimal) -> dict[str, Any]:
        self._call("save_held_ticket", name, lines, total)
        self.held.append({"_id": f"t{len(self.held) + 1}", "nombre": name, "productos": lines, "total": total})
        return {}

    def list_held_tickets(self) -> list[dict[str, Any]]:
        self._call("list_held_tickets")
        return list(self.held)

    def discard_held_ticket(self, ticket_id: str) -> None:
        self._call("discard_held_ticket", ticket_id)
        self.held = [ticket for ticket in self.held if ticket["_id"] != ticket_id]

    def open_register(self, opening_float: Decimal) -> dict[str, Any]:
        self._call("open_register", opening_float)
        self.sessions.append({"apertura": "2026-03-02T09:00:00", "cierre": None, "monto_inicial": int(opening_float)})
        return {}

    def close_register(self, operator_name: str) -> dict[str, Any]:
        self._call("close_register", operator_name)
        return {"resumen": self.closing}

    def list_register_history(self) -> list[dict[str, Any]]:
        self._call("list_register_history")
        return list(self.sessions)

    def list_pending_web_orders(self) -> list[dict[str, Any]]:
        self._call("list_pending_web_orders")
        return list(self.web_orders)

    def list_pending_table_charges(self) -> list[dict[str, Any]]:
        self._call("list_pending_table_charges")
        return list(self.table_charges)

    def get_receipt_config(self) -> dict[str, Any]:
        self._call("get_receipt_config")
        return dict(self.receipt)


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], Any], repeat: bool) -> None:
        self.delay = delay
        self.callback = callback
        self.repeat = repeat
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeScheduler:
    """Textual-style timer API where time only moves when the test fires timers."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def set_timer(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(delay, callback, repeat=False)
        self.timers.append(timer)
        return timer

    def set_interval(self, interval: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(interval, callback, repeat=True)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.stopped]

    def fire(self) -> None:
        """Fire every live timer once; one-shot timers are spent afterwards."""
        for timer in list(self.timers):
            if timer.stopped:
                continue
            if not timer.repeat:
                timer.stopped = True
            timer.callback()

    def run_until_idle(self, max_rounds: int = 50) -> None:
        for _ in range(max_rounds):
            if not self.active:
                return
            self.fire()


class RecordingPrinter:
    def __init__(self, error: Exception | None = None) -> None:
        self.documents: list[Any] = []
        self.error = error

    def print_document(self, document: Any) -> None:
        if self.error is not None:
            raise self.error
        self.documents.append(document)


def make_product(
    product_id: str = "p1",
    name: str = "Empanada",
    price: int = 3000,
    stock: int | None = None,
    variants: list[dict[str, Any]] | None = None,
    add_ons: list[dict[str, Any]] | None = None,
) -> Product:
    return Product.from_wire(
        {
            "_id": product_id,
            "nombre": name,
            "precio": price,
            "stock": stock,
            "variantes": variants or [],
            "agregados": add_ons or [],
        }
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def printer() -> RecordingPrinter:
    return RecordingPrinter()


@pytest.fixture
def storage(tmp_path) -> SessionStorage:
    store = SessionStorage(str(tmp_path / "session.db"), session_id="test-session")
    store.bootstrap_schema()
    return store


@pytest.fixture
def cart() -> CartStore:
    return CartStore()


@pytest.fixture
def register(backend: FakeBackend) -> RegisterSessionManager:
    manager = RegisterSessionManager(backend)
    manager.set_location("local-1")
    return manager


@pytest.fixture
def open_register(backend: FakeBackend) -> RegisterSessionManager:
    backend.sessions = [{"apertura": "2026-03-02T09:00:00", "cierre": None, "monto_inicial": 10000}]
    manager = RegisterSessionManager(backend)
    manager.set_location("local-1")
    return manager
