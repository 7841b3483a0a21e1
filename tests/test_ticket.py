"""Tests for ticket rendering, auto-print and manual print."""

from datetime import datetime
from decimal import Decimal

import pytest

from caja_pos.errors import CollaboratorError
from caja_pos.models import AddOn, ClosingSummary, ReceiptConfig, Sale, SaleLine
from caja_pos.ticket import (
    AutoPrintSequence,
    TicketPrintController,
    clamp_copies,
    format_money,
    render_closing,
    render_sale,
    render_web_order,
)
from conftest import RecordingPrinter


def _sale(order_number="7", stamp=datetime(2026, 3, 2, 13, 45, 10)):
    line = SaleLine(
        product_id="p1",
        name="Empanada",
        unit_price=Decimal(3000),
        quantity=2,
        note="",
        variant_id=None,
        variant_name="",
        add_ons=(),
    )
    return Sale(
        order_number=order_number,
        lines=(line,),
        total=Decimal(6000),
        payment_type="Efectivo",
        order_type="—",
        timestamp=stamp,
    )


def printed_total(printer):
    return len(printer.documents)


@pytest.mark.parametrize(
    "amount, expected",
    [
        (6000, "$6.000"),
        (Decimal("1234.5"), "$1.234,5"),
        (0, "$0"),
        (-1500, "-$1.500"),
        (1000000, "$1.000.000"),
        (None, "$0"),
    ],
)
def test_format_money(amount, expected):
    assert format_money(amount) == expected


def test_sale_ticket_layout():
    document = render_sale(_sale(), ReceiptConfig(title="Mi Local", footer_text="Gracias por su compra"))
    rows = document.text_rows()

    assert rows[0] == "Mi Local"
    assert "N° Pedido: #07" in rows
    assert "02-03-2026 13:45:10" in rows
    assert "Empanada x2" in rows
    assert "  $3.000 c/u" in rows
    assert "Total: $6.000" in rows
    assert "Pago: Efectivo" in rows
    assert "Pedido: —" in rows
    assert rows[-1] == "Gracias por su compra"


def test_sale_ticket_shows_variant_add_ons_and_note():
    line = SaleLine(
        product_id="p1",
        name="Pizza",
        unit_price=Decimal(8500),
        quantity=1,
        note="bien cocida",
        variant_id="v1",
        variant_name="Familiar",
        add_ons=(AddOn("a1", "Aceitunas", Decimal(500)),),
    )
    sale = Sale("12", (line,), Decimal(8500), "Débito", "Delivery", datetime(2026, 3, 2, 20, 0, 0))

    rows = render_sale(sale).text_rows()

    assert rows[0] == "Ticket de Venta"
    assert "Pizza (Familiar) x1" in rows
    assert "  + Aceitunas $500" in rows
    assert "  Obs: bien cocida" in rows
    assert "Pedido: Delivery" in rows


def test_sale_ticket_is_deterministic():
    assert render_sale(_sale()).as_text() == render_sale(_sale()).as_text()


def test_closing_ticket_layout():
    summary = ClosingSummary(
        opened_at=datetime(2026, 3, 2, 9, 0, 0),
        closed_at=datetime(2026, 3, 2, 21, 0, 0),
        operator_name="Ana",
        opening_float=Decimal(10000),
        total_sold=Decimal(45000),
        final_total=Decimal(55000),
        totals_by_payment_type={"Efectivo": Decimal(30000), "Débito": Decimal(15000)},
    )

    rows = render_closing(summary).text_rows()

    assert rows[0] == "Cierre de Caja"
    assert "Usuario: Ana" in rows
    assert "Monto Inicial: $10.000" in rows
    assert "Total Vendido: $45.000" in rows
    assert "Total Final: $55.000" in rows
    assert rows[-2:] == ["Efectivo: $30.000", "Débito: $15.000"]


@pytest.mark.parametrize("copies, expected", [(9, 5), (-1, 0), (3, 3), ("2", 2), ("abc", 0), (None, 0)])
def test_clamp_copies(copies, expected):
    assert clamp_copies(copies) == expected


@pytest.mark.parametrize("copies, expected", [(9, 5), (-1, 0), (1, 1), (3, 3)])
def test_auto_print_prints_clamped_number_of_copies(scheduler, copies, expected):
    printed = []
    sequence = AutoPrintSequence(scheduler, lambda: printed.append(1), copies, delay=0.5, interval=1.5)

    sequence.start()
    scheduler.run_until_idle()

    assert len(printed) == expected
    assert sequence.done
    assert scheduler.active == []


def test_auto_print_waits_for_delay_then_repeats_on_interval(scheduler):
    printed = []
    sequence = AutoPrintSequence(scheduler, lambda: printed.append(1), 3, delay=0.5, interval=1.5)

    sequence.start()
    assert printed == []
    assert [timer.delay for timer in scheduler.active] == [0.5]

    scheduler.fire()
    assert len(printed) == 1
    assert [timer.delay for timer in scheduler.active] == [1.5]

    scheduler.fire()
    scheduler.fire()
    assert len(printed) == 3
    assert scheduler.active == []


def test_auto_print_zero_copies_schedules_nothing(scheduler):
    AutoPrintSequence(scheduler, lambda: None, 0).start()

    assert scheduler.timers == []


def test_printer_failure_cancels_remaining_copies(scheduler):
    errors = []

    def fail():
        raise OSError("sin papel")

    sequence = AutoPrintSequence(scheduler, fail, 3, on_error=errors.append)
    sequence.start()
    scheduler.run_until_idle()

    assert len(errors) == 1
    assert sequence.cancelled
    assert scheduler.active == []


def test_fresh_sale_auto_prints_once(backend, scheduler, printer):
    backend.receipt = {"copias_auto": 2}
    controller = TicketPrintController(backend, printer, scheduler)
    sale = _sale()

    controller.present_sale(sale, fresh=True)
    controller.present_sale(sale, fresh=True)
    scheduler.run_until_idle()

    assert printed_total(printer) == 2


def test_recalled_sale_does_not_auto_print(backend, scheduler, printer):
    controller = TicketPrintController(backend, printer, scheduler)

    document = controller.present_sale(_sale())
    scheduler.run_until_idle()

    assert printed_total(printer) == 0
    assert "Total: $6.000" in document.text_rows()


def test_manual_print_always_prints(backend, scheduler, printer):
    controller = TicketPrintController(backend, printer, scheduler)
    document = controller.present_sale(_sale(), config=ReceiptConfig(auto_print_copies=0))

    controller.print_document(document)
    controller.print_document(document)

    assert printed_total(printer) == 2


def test_receipt_config_falls_back_to_defaults(backend, scheduler, printer):
    backend.fail["get_receipt_config"] = CollaboratorError("caído")
    controller = TicketPrintController(backend, printer, scheduler)

    assert controller.receipt_config() == ReceiptConfig()


def test_receipt_config_from_backend(backend, scheduler, printer):
    backend.receipt = {"nombre": "Mi Local", "pie": "Gracias", "logo_url": "http://x/logo.png", "copias_auto": "3"}
    controller = TicketPrintController(backend, printer, scheduler)

    config = controller.receipt_config()

    assert config == ReceiptConfig(title="Mi Local", footer_text="Gracias", logo_url="http://x/logo.png", auto_print_copies=3)


def test_cancel_stops_pending_prints(backend, scheduler, printer):
    backend.receipt = {"copias_auto": 5}
    controller = TicketPrintController(backend, printer, scheduler)

    controller.present_sale(_sale(), fresh=True)
    scheduler.fire()
    controller.cancel()
    scheduler.run_until_idle()

    assert printed_total(printer) == 1


def test_print_errors_reach_the_callback(backend, scheduler):
    errors = []
    controller = TicketPrintController(backend, RecordingPrinter(OSError("usb")), scheduler, on_error=errors.append)

    controller.present_sale(_sale(), fresh=True)
    scheduler.run_until_idle()

    assert [str(exc) for exc in errors] == ["usb"]


class QueuedRunner:
    """Holds print jobs until the test runs them, like a worker pool would."""

    def __init__(self):
        self.jobs = []

    def __call__(self, job, failed):
        self.jobs.append((job, failed))

    def run_next(self, error=None):
        job, failed = self.jobs.pop(0)
        if error is not None:
            failed(error)
            return
        job()


def test_timer_callback_only_dispatches_the_copy(backend, scheduler, printer):
    backend.receipt = {"copias_auto": 3}
    runner = QueuedRunner()
    controller = TicketPrintController(backend, printer, scheduler, run_print=runner)

    controller.present_sale(_sale(), fresh=True)
    scheduler.fire()

    assert printed_total(printer) == 0
    assert len(runner.jobs) == 1

    scheduler.run_until_idle()
    while runner.jobs:
        runner.run_next()

    assert printed_total(printer) == 3


def test_dispatched_failure_stops_later_copies(backend, scheduler, printer):
    backend.receipt = {"copias_auto": 5}
    errors = []
    runner = QueuedRunner()
    controller = TicketPrintController(backend, printer, scheduler, on_error=errors.append, run_print=runner)

    controller.present_sale(_sale(), fresh=True)
    scheduler.fire()
    scheduler.fire()
    runner.run_next(error=OSError("usb"))
    runner.run_next(error=OSError("usb"))
    scheduler.run_until_idle()

    assert [str(exc) for exc in errors] == ["usb"]
    assert scheduler.active == []
    assert runner.jobs == []


def test_receipt_config_is_remembered(backend, scheduler, printer):
    backend.receipt = {"nombre": "Mi Local"}
    controller = TicketPrintController(backend, printer, scheduler)

    assert controller.last_config == ReceiptConfig()
    controller.receipt_config()

    assert controller.last_config.title == "Mi Local"


def test_web_order_ticket_falls_back_to_id_suffix():
    order = {
        "_id": "665f0c2a9b1e4d0012345",
        "fecha": "2026-03-02T13:45:10",
        "total": 6000,
        "productos": [{"productoId": "p1", "nombre": "Empanada", "precio": 3000, "cantidad": 2}],
    }

    rows = render_web_order(order).text_rows()

    assert "N° Pedido: #12345" in rows
    assert "Empanada x2" in rows
    assert "Total: $6.000" in rows


def test_web_order_ticket_keeps_its_order_number():
    order = {"_id": "665f0c2a9b1e4d0012345", "numero_pedido": 41, "total": 0, "productos": []}

    assert "N° Pedido: #41" in render_web_order(order).text_rows()
