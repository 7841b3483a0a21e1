"""Editable static vocabularies used by the till."""

from __future__ import annotations

PAYMENT_TYPES: list[str] = [
    "Efectivo",
    "Débito",
    "Crédito",
    "Transferencia",
]

ORDER_TYPE_PLACEHOLDER = "—"

# Web orders in any of these states no longer need attention.
CLOSED_ORDER_STATES: frozenset[str] = frozenset({"entregado", "rechazado", "cancelado"})

TILL_ROLES: frozenset[str] = frozenset({"admin", "superadmin", "cajero"})

DEFAULT_TICKET_TITLE = "Ticket de Venta"
CLOSING_TICKET_TITLE = "Cierre de Caja"
DEFAULT_AUTO_PRINT_COPIES = 1

WEB_ORDERS_KIND = "pedidos_web_seen"
TABLE_CHARGES_KIND = "restaurante_cobros_seen"
