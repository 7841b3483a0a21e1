"""rich Text helpers for the TUI panes and dialogs."""

from __future__ import annotations

from typing import Any

from rich.text import Text

from caja_pos.config import TICKET_WIDTH_CHARS
from caja_pos.models import AddOn, CartLine, HeldTicket, PendingEvent, Product, RegisterSession, Sale, Variant, money
from caja_pos.ticket import (
    BOLD,
    DIVIDER,
    SMALL,
    TITLE,
    TicketDocument,
    format_money,
    format_order_number,
    format_timestamp,
)
from caja_pos.watcher import web_order_state


def badge_style(register_open: bool) -> str:
    """Return a consistent badge style for the register state."""
    if register_open:
        return "bold #0b1f0f on #5fbf72"
    return "bold #ffffff on #b23a48"


def format_register_badge(register_open: bool, verified: bool = True) -> Text:
    text = Text()
    if not verified:
        text.append(" CAJA ? ", style="bold #0b1f0f on #d9b44a")
        return text
    text.append(" CAJA ABIERTA " if register_open else " CAJA CERRADA ", style=badge_style(register_open))
    return text


def format_product_label(product: Product) -> Text:
    text = Text()
    text.append(product.name, style="white" if product.available else "dim strike")
    text.append(f"  {format_money(product.price)}", style="dim")
    if product.variants:
        text.append(f"  [{len(product.variants)} var]", style="dim")
    if not product.available:
        text.append("  agotado", style="#ff8c8c")
    return text


def format_cart_line(line: CartLine) -> Text:
    """Render a cart line with its variant, add-ons, note and stock hint."""
    text = Text()
    text.append(f"{line.quantity} x ", style="bold")
    text.append(line.name)
    if line.variant_label:
        text.append(f" ({line.variant_label})", style="dim")
    text.append(f"  {format_money(line.subtotal)}", style="bold")
    for add_on in line.add_ons:
        text.append(f"\n      + {add_on.name}", style="dim")
    if line.note:
        text.append(f"\n      Obs: {line.note}", style="italic")
    if line.available_stock is not None:
        style = "#ff8c8c" if line.at_stock_limit else "dim"
        text.append(f"\n      Disponible: {line.available_stock}", style=style)
    return text


def format_ticket_preview(document: TicketDocument, width: int = TICKET_WIDTH_CHARS) -> Text:
    text = Text()
    for idx, row in enumerate(document.rows):
        if idx > 0:
            text.append("\n")
        if row.style == DIVIDER:
            text.append("-" * width, style="dim")
            continue
        content = row.text.center(width).rstrip() if row.centered else row.text
        if row.style == TITLE:
            text.append(content, style="bold")
        elif row.style == BOLD:
            text.append(content, style="bold")
        elif row.style == SMALL:
            text.append(content, style="dim")
        else:
            text.append(content)
    return text


def web_order_number(order: dict[str, Any]) -> str:
    number = str(order.get("numero_pedido") or "").strip()
    if number:
        return number
    return str(order.get("_id") or "")[-5:]


def client_label(order: dict[str, Any]) -> str:
    name = str(order.get("cliente_nombre") or "")
    phone = str(order.get("cliente_telefono") or "")
    if name and phone:
        return f"{name} ({phone})"
    return name or phone or "Cliente sin datos"


def format_web_order_alert(event: PendingEvent) -> Text:
    order = event.payload
    text = Text()
    text.append("Pedido: ", style="bold")
    text.append(f"#{web_order_number(order)}\n")
    text.append("Cliente: ", style="bold")
    text.append(f"{client_label(order)}\n")
    text.append("Total: ", style="bold")
    text.append(f"{format_money(money(order.get('total')))}\n")
    text.append("Estado: ", style="bold")
    text.append(web_order_state(order), style="bold #1a1a1a on #f0b429")
    text.append("\nProductos:", style="bold")
    for product in order.get("productos") or []:
        if not isinstance(product, dict):
            continue
        text.append(f"\n  {product.get('nombre') or 'Producto'} x {product.get('cantidad') or 1}")
    return text


def format_table_charge_alert(event: PendingEvent) -> Text:
    charge = event.payload
    table = charge.get("mesa") if isinstance(charge.get("mesa"), dict) else {}
    items = charge.get("items") if isinstance(charge.get("items"), list) else []
    text = Text()
    text.append("Tienes un cobro pendiente de la mesa ")
    text.append(f"#{table.get('numero') or '-'}", style="bold")
    text.append(".\nTotal: ")
    text.append(format_money(money(charge.get("total"))), style="bold")
    text.append(f"\nItems: {len(items)}")
    return text


def format_variant_label(variant: Variant) -> Text:
    text = Text()
    text.append(variant.name, style="white" if variant.available else "dim strike")
    if variant.price is not None:
        text.append(f"  {format_money(variant.price)}", style="dim")
    if variant.stock is not None:
        text.append(f"  stock {variant.stock}", style="#ff8c8c" if not variant.available else "dim")
    return text


def format_add_on_label(add_on: AddOn) -> str:
    if add_on.price:
        return f"{add_on.name} +{format_money(add_on.price)}"
    return add_on.name


def format_held_ticket_row(ticket: HeldTicket) -> Text:
    text = Text()
    text.append(ticket.name or "(sin nombre)", style="bold")
    text.append(f"  {format_money(ticket.total)}")
    text.append(f"  {len(ticket.lines)} productos", style="dim")
    return text


def format_sale_row(sale: Sale) -> Text:
    text = Text()
    text.append(f"#{format_order_number(sale.order_number)}", style="bold")
    text.append(f"  {format_timestamp(sale.timestamp)}", style="dim")
    text.append(f"  {format_money(sale.total)}")
    if sale.payment_type:
        text.append(f"  {sale.payment_type}", style="dim")
    return text


def format_session_row(session: RegisterSession) -> Text:
    text = Text()
    text.append(format_timestamp(session.opened_at))
    text.append(" → ")
    text.append(format_timestamp(session.closed_at))
    text.append(f"  {format_money(session.final_total if session.final_total is not None else session.opening_float)}")
    if session.operator_name:
        text.append(f"  {session.operator_name}", style="dim")
    return text
