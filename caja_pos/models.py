"""Domain models for the till: catalog, cart, sales, register sessions and alerts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from caja_pos.constant import DEFAULT_AUTO_PRINT_COPIES, DEFAULT_TICKET_TITLE, ORDER_TYPE_PLACEHOLDER, TILL_ROLES


def money(value: Any) -> Decimal:
    """Coerce a wire number to Decimal; missing or invalid values become 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not amount.is_finite():
        return Decimal(0)
    return amount


def money_to_wire(amount: Decimal) -> int | float:
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return None


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value.astimezone()
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    # Naive values are taken as local time; everything is shown in local time.
    return parsed.astimezone()


def now_local() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def _entity_id(raw: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value:
            return str(value)
    return ""


@dataclass(frozen=True)
class AddOn:
    """An extra ("agregado") chosen for a line; its price is folded into the unit price."""

    add_on_id: str
    name: str
    price: Decimal = Decimal(0)

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> AddOn:
        return cls(
            add_on_id=_entity_id(raw, "agregadoId", "_id", "id", "nombre"),
            name=str(raw.get("nombre") or ""),
            price=money(raw.get("precio")),
        )

    def to_wire(self) -> dict[str, Any]:
        return {"agregadoId": self.add_on_id, "nombre": self.name, "precio": money_to_wire(self.price)}


@dataclass(frozen=True)
class Variant:
    variant_id: str
    name: str
    price: Decimal | None = None
    stock: int | None = None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> Variant:
        price = raw.get("precio")
        return cls(
            variant_id=_entity_id(raw, "_id", "id"),
            name=str(raw.get("nombre") or ""),
            price=money(price) if price is not None else None,
            stock=optional_int(raw.get("stock")),
        )

    @property
    def available(self) -> bool:
        return self.stock is None or self.stock > 0


@dataclass(frozen=True)
class Product:
    """A catalog product as listed by the backend."""

    product_id: str
    name: str
    price: Decimal
    stock: int | None = None
    variants: tuple[Variant, ...] = ()
    add_ons: tuple[AddOn, ...] = ()

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> Product:
        add_ons = tuple(
            AddOn.from_wire(agg)
            for agg in raw.get("agregados") or []
            if isinstance(agg, dict) and agg.get("nombre") and agg.get("activo") is not False
        )
        return cls(
            product_id=_entity_id(raw, "_id", "productoId", "id"),
            name=str(raw.get("nombre") or ""),
            price=money(raw.get("precio")),
            stock=optional_int(raw.get("stock")),
            variants=tuple(Variant.from_wire(v) for v in raw.get("variantes") or [] if isinstance(v, dict)),
            add_ons=add_ons,
        )

    @property
    def available(self) -> bool:
        """False when the product (or every one of its variants) is sold out."""
        if self.variants:
            return any(variant.available for variant in self.variants)
        return self.stock is None or self.stock > 0


@dataclass
class CartLine:
    """One cart entry; `line_id` is the product+variant+add-on identity."""

    line_id: str
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    note: str = ""
    variant_id: str | None = None
    variant_label: str = ""
    available_stock: int | None = None
    add_ons: tuple[AddOn, ...] = ()

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def at_stock_limit(self) -> bool:
        return self.available_stock is not None and self.quantity >= self.available_stock


@dataclass(frozen=True)
class SaleLine:
    """Normalized, fully-populated line shape shared by the backend record and the ticket."""

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    note: str
    variant_id: str | None
    variant_name: str
    add_ons: tuple[AddOn, ...]

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_wire(self) -> dict[str, Any]:
        return {
            "productoId": self.product_id,
            "nombre": self.name,
            "precio_unitario": money_to_wire(self.unit_price),
            "cantidad": self.quantity,
            "observacion": self.note,
            "varianteId": self.variant_id,
            "varianteNombre": self.variant_name,
            "agregados": [add_on.to_wire() for add_on in self.add_ons],
        }

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> SaleLine:
        quantity = optional_int(raw.get("cantidad")) or 1
        return cls(
            product_id=_entity_id(raw, "productoId", "_id"),
            name=str(raw.get("nombre") or ""),
            unit_price=money(raw["precio_unitario"] if raw.get("precio_unitario") is not None else raw.get("precio")),
            quantity=max(1, quantity),
            note=str(raw.get("observacion") or raw.get("nota") or ""),
            variant_id=str(raw["varianteId"]) if raw.get("varianteId") else None,
            variant_name=str(raw.get("varianteNombre") or ""),
            add_ons=tuple(AddOn.from_wire(a) for a in raw.get("agregados") or [] if isinstance(a, dict)),
        )


@dataclass(frozen=True)
class Sale:
    """A persisted sale; immutable once the backend assigned its order number."""

    order_number: str
    lines: tuple[SaleLine, ...]
    total: Decimal
    payment_type: str
    order_type: str
    timestamp: datetime

    @property
    def key(self) -> str:
        return f"{self.order_number}@{self.timestamp.isoformat()}"

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> Sale:
        return cls(
            order_number=str(raw.get("numero_pedido") or ""),
            lines=tuple(SaleLine.from_wire(p) for p in raw.get("productos") or [] if isinstance(p, dict)),
            total=money(raw.get("total")),
            payment_type=str(raw.get("tipo_pago") or ""),
            order_type=str(raw.get("tipo_pedido") or ORDER_TYPE_PLACEHOLDER),
            timestamp=parse_timestamp(raw.get("fecha") or raw.get("createdAt")) or now_local(),
        )


def _totals_by_payment(raw: Any) -> dict[str, Decimal]:
    if not isinstance(raw, dict):
        return {}
    return {str(kind): money(value) for kind, value in raw.items()}


@dataclass(frozen=True)
class RegisterSession:
    """One till period; open while `closed_at` is None."""

    opened_at: datetime | None
    closed_at: datetime | None
    opening_float: Decimal
    total_sold: Decimal = Decimal(0)
    final_total: Decimal | None = None
    totals_by_payment_type: dict[str, Decimal] = field(default_factory=dict)
    operator_name: str = ""

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> RegisterSession:
        final_total = raw.get("monto_total_final")
        return cls(
            opened_at=parse_timestamp(raw.get("apertura")),
            closed_at=parse_timestamp(raw.get("cierre")),
            opening_float=money(raw.get("monto_inicial")),
            total_sold=money(raw.get("monto_total_vendido")),
            final_total=money(final_total) if final_total is not None else None,
            totals_by_payment_type=_totals_by_payment(raw.get("desglose_por_pago")),
            operator_name=str(raw.get("usuario") or ""),
        )


@dataclass(frozen=True)
class ClosingSummary:
    """Reconciliation produced when a register session is closed."""

    opened_at: datetime | None
    closed_at: datetime | None
    operator_name: str
    opening_float: Decimal
    total_sold: Decimal
    final_total: Decimal
    totals_by_payment_type: dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> ClosingSummary:
        opening_float = money(raw.get("monto_inicial"))
        total = raw.get("total")
        return cls(
            opened_at=parse_timestamp(raw.get("apertura")),
            closed_at=parse_timestamp(raw.get("cierre")),
            operator_name=str(raw.get("usuario") or "No registrado"),
            opening_float=opening_float,
            total_sold=money(raw.get("vendido")),
            final_total=money(total) if total is not None else opening_float,
            totals_by_payment_type=_totals_by_payment(raw.get("desglose_por_pago")),
        )

    @classmethod
    def from_session(cls, session: RegisterSession) -> ClosingSummary:
        return cls(
            opened_at=session.opened_at,
            closed_at=session.closed_at,
            operator_name=session.operator_name or "No registrado",
            opening_float=session.opening_float,
            total_sold=session.total_sold,
            final_total=session.final_total if session.final_total is not None else session.opening_float,
            totals_by_payment_type=dict(session.totals_by_payment_type),
        )


@dataclass(frozen=True)
class HeldTicket:
    """A named cart snapshot saved for later ("open tab"); lines keep their wire shape."""

    ticket_id: str
    name: str
    lines: tuple[dict[str, Any], ...]
    total: Decimal

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> HeldTicket:
        return cls(
            ticket_id=_entity_id(raw, "_id", "id"),
            name=str(raw.get("nombre") or ""),
            lines=tuple(p for p in raw.get("productos") or [] if isinstance(p, dict)),
            total=money(raw.get("total")),
        )


@dataclass(frozen=True)
class PendingEvent:
    """An externally-created record not yet surfaced to this client."""

    event_id: str
    payload: dict[str, Any]
    discovered_at: datetime


@dataclass(frozen=True)
class ReceiptConfig:
    title: str = DEFAULT_TICKET_TITLE
    footer_text: str = ""
    logo_url: str = ""
    auto_print_copies: int = DEFAULT_AUTO_PRINT_COPIES

    @classmethod
    def from_wire(cls, raw: dict[str, Any] | None) -> ReceiptConfig:
        raw = raw or {}
        copies = raw.get("copias_auto")
        try:
            auto_print_copies = int(copies) if copies is not None else DEFAULT_AUTO_PRINT_COPIES
        except (TypeError, ValueError):
            auto_print_copies = DEFAULT_AUTO_PRINT_COPIES
        return cls(
            title=str(raw.get("nombre") or DEFAULT_TICKET_TITLE),
            footer_text=str(raw.get("pie") or ""),
            logo_url=str(raw.get("logo_url") or ""),
            auto_print_copies=auto_print_copies,
        )


@dataclass(frozen=True)
class Operator:
    """The signed-in operator and the location they are working at."""

    name: str
    role: str = ""
    location_id: str = ""

    @property
    def can_manage_till(self) -> bool:
        return self.role in TILL_ROLES
