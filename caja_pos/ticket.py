"""Ticket rendering (sale and register-closing) and the auto-print sequence."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Protocol

from caja_pos.config import (
    AUTO_PRINT_DELAY_SECONDS,
    AUTO_PRINT_INTERVAL_SECONDS,
    AUTO_PRINT_MAX_COPIES,
    TICKET_WIDTH_CHARS,
)
from caja_pos.constant import CLOSING_TICKET_TITLE, ORDER_TYPE_PLACEHOLDER
from caja_pos.errors import CollaboratorError
from caja_pos.logs import get_logger
from caja_pos.models import ClosingSummary, ReceiptConfig, Sale, money, now_local
from caja_pos.watcher import Scheduler, Timer

logger = get_logger(__name__)

TITLE = "title"
BOLD = "bold"
NORMAL = "normal"
SMALL = "small"
DIVIDER = "divider"


def format_money(amount: Any) -> str:
    """Format like es-CL: `$6.000`, `$1.234,5`."""
    value = money(amount)
    sign = "-" if value < 0 else ""
    value = abs(value)
    integral = int(value)
    text = f"{integral:,}".replace(",", ".")
    fraction = value - integral
    if fraction:
        digits = format(fraction.normalize(), "f").split(".", 1)[1]
        text = f"{text},{digits}"
    return f"{sign}${text}"


def format_timestamp(stamp: datetime | None) -> str:
    if stamp is None:
        return "—"
    return stamp.strftime("%d-%m-%Y %H:%M:%S")


def format_order_number(order_number: str) -> str:
    return str(order_number).zfill(2)


@dataclass(frozen=True)
class TicketRow:
    text: str
    style: str = NORMAL
    centered: bool = False


@dataclass(frozen=True)
class TicketDocument:
    """Print-ready ticket: ordered rows plus an optional logo."""

    title: str
    rows: tuple[TicketRow, ...]
    logo_url: str = ""

    def as_text(self, width: int = TICKET_WIDTH_CHARS) -> str:
        out: list[str] = []
        for row in self.rows:
            if row.style == DIVIDER:
                out.append("-" * width)
            elif row.centered:
                out.append(row.text.center(width).rstrip())
            else:
                out.append(row.text)
        return "\n".join(out)

    def text_rows(self) -> list[str]:
        return [row.text for row in self.rows if row.style != DIVIDER]


def render_sale(sale: Sale, config: ReceiptConfig | None = None) -> TicketDocument:
    """Deterministic layout of a sale ticket."""
    config = config or ReceiptConfig()
    rows: list[TicketRow] = [
        TicketRow(config.title, TITLE, centered=True),
        TicketRow(f"N° Pedido: #{format_order_number(sale.order_number)}", centered=True),
        TicketRow(format_timestamp(sale.timestamp), SMALL, centered=True),
        TicketRow("", DIVIDER),
    ]

    for line in sale.lines:
        variant = f" ({line.variant_name})" if line.variant_name else ""
        rows.append(TicketRow(f"{line.name}{variant} x{line.quantity}", BOLD))
        for add_on in line.add_ons:
            rows.append(TicketRow(f"  + {add_on.name} {format_money(add_on.price)}", SMALL))
        if line.note:
            rows.append(TicketRow(f"  Obs: {line.note}", SMALL))
        rows.append(TicketRow(f"  {format_money(line.unit_price)} c/u"))

    rows.extend(
        [
            TicketRow("", DIVIDER),
            TicketRow(f"Total: {format_money(sale.total)}", TITLE),
            TicketRow("", DIVIDER),
            TicketRow(f"Pago: {sale.payment_type or ORDER_TYPE_PLACEHOLDER}"),
            TicketRow(f"Pedido: {sale.order_type or ORDER_TYPE_PLACEHOLDER}"),
        ]
    )
    if config.footer_text:
        rows.append(TicketRow("", DIVIDER))
        rows.append(TicketRow(config.footer_text, SMALL, centered=True))
    return TicketDocument(title=config.title, rows=tuple(rows), logo_url=config.logo_url)


def render_web_order(order: dict[str, Any], config: ReceiptConfig | None = None) -> TicketDocument:
    """Ticket view of a web order; without an order number the id's last 5 chars stand in."""
    sale = Sale.from_wire(order)
    if not sale.order_number:
        sale = replace(sale, order_number=str(order.get("_id") or order.get("id") or "")[-5:])
    return render_sale(sale, config)


def render_closing(
    summary: ClosingSummary, config: ReceiptConfig | None = None, printed_at: datetime | None = None
) -> TicketDocument:
    """Layout of the register-closing report."""
    config = config or ReceiptConfig()
    report_time = summary.closed_at or printed_at or now_local()
    rows: list[TicketRow] = [
        TicketRow(CLOSING_TICKET_TITLE, TITLE, centered=True),
        TicketRow("N° Reporte", centered=True),
        TicketRow(format_timestamp(report_time), SMALL, centered=True),
        TicketRow("", DIVIDER),
        TicketRow(f"Apertura: {format_timestamp(summary.opened_at)}"),
        TicketRow(f"Cierre: {format_timestamp(summary.closed_at)}"),
        TicketRow(f"Usuario: {summary.operator_name}"),
        TicketRow("", DIVIDER),
        TicketRow(f"Monto Inicial: {format_money(summary.opening_float)}"),
        TicketRow(f"Total Vendido: {format_money(summary.total_sold)}"),
        TicketRow(f"Total Final: {format_money(summary.final_total)}", TITLE),
    ]
    if summary.totals_by_payment_type:
        rows.append(TicketRow("", DIVIDER))
        rows.append(TicketRow("Desglose por método de pago:", BOLD))
        for kind, amount in summary.totals_by_payment_type.items():
            rows.append(TicketRow(f"{kind}: {format_money(amount)}"))
    return TicketDocument(title=CLOSING_TICKET_TITLE, rows=tuple(rows), logo_url=config.logo_url)


def clamp_copies(copies: Any) -> int:
    try:
        value = int(copies)
    except (TypeError, ValueError):
        return 0
    return max(0, min(AUTO_PRINT_MAX_COPIES, value))


class TicketPrinter(Protocol):
    def print_document(self, document: TicketDocument) -> None: ...


PrintRunner = Callable[[Callable[[], None], Callable[[Exception], None]], None]


def run_inline(job: Callable[[], None], failed: Callable[[Exception], None]) -> None:
    """Default print runner: print in the caller's thread."""
    try:
        job()
    except Exception as exc:
        failed(exc)


class AutoPrintSequence:
    """Prints `copies` times: once after `delay`, then every `interval` until done.

    Timer callbacks only hand each copy to `run_print`; the app passes a runner
    that prints in a worker thread and reports failures back on the event loop.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        print_copy: Callable[[], None],
        copies: Any,
        delay: float = AUTO_PRINT_DELAY_SECONDS,
        interval: float = AUTO_PRINT_INTERVAL_SECONDS,
        on_error: Callable[[Exception], None] | None = None,
        run_print: PrintRunner = run_inline,
    ) -> None:
        self.scheduler = scheduler
        self.print_copy = print_copy
        self.copies = clamp_copies(copies)
        self.delay = delay
        self.interval = interval
        self.on_error = on_error
        self.run_print = run_print
        self.printed = 0
        self.started = False
        self.cancelled = False
        self._timer: Timer | None = None
        self._repeat: Timer | None = None

    @property
    def done(self) -> bool:
        return self.cancelled or self.printed >= self.copies

    def start(self) -> None:
        if self.started:
            return
        self.started = True
        if self.copies == 0:
            return
        self._timer = self.scheduler.set_timer(self.delay, self._print_next)

    def _print_next(self) -> None:
        if self.done:
            self._stop_timers()
            return
        self.printed += 1
        copy = self.printed
        self.run_print(self.print_copy, lambda exc: self._copy_failed(copy, exc))
        if self.done:
            self._stop_timers()
            return
        if self._repeat is None:
            self._repeat = self.scheduler.set_interval(self.interval, self._print_next)

    def _copy_failed(self, copy: int, exc: Exception) -> None:
        logger.warning("auto_print_failed", copy=copy, error=str(exc))
        already_cancelled = self.cancelled
        self.cancel()
        if self.on_error is not None and not already_cancelled:
            self.on_error(exc)

    def _stop_timers(self) -> None:
        for timer in (self._timer, self._repeat):
            if timer is not None:
                timer.stop()
        self._timer = None
        self._repeat = None

    def cancel(self) -> None:
        self.cancelled = True
        self._stop_timers()


class TicketPrintController:
    """Renders tickets and drives auto-print at most once per sale."""

    def __init__(
        self,
        backend: Any,
        printer: TicketPrinter,
        scheduler: Scheduler,
        on_error: Callable[[Exception], None] | None = None,
        delay: float = AUTO_PRINT_DELAY_SECONDS,
        interval: float = AUTO_PRINT_INTERVAL_SECONDS,
        run_print: PrintRunner = run_inline,
    ) -> None:
        self.backend = backend
        self.printer = printer
        self.scheduler = scheduler
        self.on_error = on_error
        self.delay = delay
        self.interval = interval
        self.run_print = run_print
        self.last_config = ReceiptConfig()
        self._auto_printed: set[str] = set()
        self._sequences: list[AutoPrintSequence] = []

    def receipt_config(self) -> ReceiptConfig:
        """Fetch the receipt settings; `last_config` keeps the latest result for event-loop callers."""
        try:
            raw = self.backend.get_receipt_config()
        except CollaboratorError as exc:
            logger.info("receipt_config_defaulted", error=exc.message)
            config = ReceiptConfig()
        else:
            config = ReceiptConfig.from_wire(raw)
        self.last_config = config
        return config

    def present_sale(self, sale: Sale, fresh: bool = False, config: ReceiptConfig | None = None) -> TicketDocument:
        """Render a sale; a just-completed one also starts the auto-print sequence."""
        config = config or self.receipt_config()
        document = render_sale(sale, config)
        if fresh:
            self.auto_print(sale, document, config.auto_print_copies)
        return document

    def present_closing(self, summary: ClosingSummary, config: ReceiptConfig | None = None) -> TicketDocument:
        return render_closing(summary, config or self.receipt_config())

    def auto_print(self, sale: Sale, document: TicketDocument, copies: Any) -> AutoPrintSequence | None:
        if sale.key in self._auto_printed:
            logger.debug("auto_print_skipped", order_number=sale.order_number)
            return None
        self._auto_printed.add(sale.key)
        sequence = AutoPrintSequence(
            self.scheduler,
            lambda: self.printer.print_document(document),
            copies,
            delay=self.delay,
            interval=self.interval,
            on_error=self.on_error,
            run_print=self.run_print,
        )
        self._sequences = [seq for seq in self._sequences if not seq.done]
        self._sequences.append(sequence)
        logger.info("auto_print_started", order_number=sale.order_number, copies=sequence.copies)
        sequence.start()
        return sequence

    def print_document(self, document: TicketDocument) -> None:
        """Manual print; always available and free of side effects on ticket state."""
        self.printer.print_document(document)

    def cancel(self) -> None:
        for sequence in self._sequences:
            sequence.cancel()
        self._sequences = []

