"""In-memory cart for the sale currently being built."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Iterable

from caja_pos.errors import ValidationError
from caja_pos.logs import get_logger
from caja_pos.models import AddOn, CartLine, Product, Variant, money, optional_int

logger = get_logger(__name__)


def line_identity(product_id: str, variant_id: str | None, add_ons: Iterable[AddOn] = ()) -> str:
    """Stable line id: the same product+variant+add-on combination always maps to one line."""
    key = f"{product_id}-{variant_id or 'base'}"
    add_on_ids = sorted(add_on.add_on_id for add_on in add_ons)
    if add_on_ids:
        key = f"{key}+{'+'.join(add_on_ids)}"
    return key


def _available_stock(product: Product, variant: Variant | None) -> int | None:
    if variant is not None and variant.stock is not None:
        return variant.stock
    return product.stock


def normalize_incoming_line(raw: CartLine | dict[str, Any]) -> CartLine:
    """Map a held-ticket / charge line (wire field names) onto the CartLine shape."""
    if isinstance(raw, CartLine):
        return CartLine(
            line_id=raw.line_id,
            product_id=raw.product_id,
            name=raw.name,
            unit_price=raw.unit_price,
            quantity=max(1, raw.quantity),
            note=raw.note,
            variant_id=raw.variant_id,
            variant_label=raw.variant_label,
            available_stock=raw.available_stock,
            add_ons=tuple(raw.add_ons),
        )

    product_id = str(raw.get("productoId") or raw.get("_id") or "")
    variant_id = str(raw["varianteId"]) if raw.get("varianteId") else None
    add_ons = tuple(AddOn.from_wire(a) for a in raw.get("agregados") or [] if isinstance(a, dict))
    quantity = optional_int(raw.get("cantidad")) or 1
    return CartLine(
        line_id=line_identity(product_id, variant_id, add_ons),
        product_id=product_id,
        name=str(raw.get("nombre") or ""),
        unit_price=money(raw["precio"] if raw.get("precio") is not None else raw.get("precio_unitario")),
        quantity=max(1, quantity),
        note=str(raw.get("observacion") or raw.get("nota") or ""),
        variant_id=variant_id,
        variant_label=str(raw.get("varianteNombre") or ""),
        available_stock=optional_int(raw.get("stockDisponible")),
        add_ons=add_ons,
    )


def _merge_lines(lines: Iterable[CartLine]) -> list[CartLine]:
    """Fold lines sharing an identity into the first one, keeping first-seen order."""
    merged: dict[str, CartLine] = {}
    for line in lines:
        existing = merged.get(line.line_id)
        if existing is None:
            merged[line.line_id] = line
            continue
        existing.quantity += line.quantity
        existing.note = existing.note or line.note
        if existing.available_stock is None:
            existing.available_stock = line.available_stock
    return list(merged.values())


class CartStore:
    """Ordered cart lines with merge, quantity and note operations.

    Every mutation bumps `revision`, which lets slow callers (checkout) tell
    whether the cart changed under them.
    """

    def __init__(self) -> None:
        self._lines: list[CartLine] = []
        self.revision = 0
        self._listeners: list[Callable[[], None]] = []

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines), Decimal(0))

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def get(self, line_id: str) -> CartLine | None:
        for line in self._lines:
            if line.line_id == line_id:
                return line
        return None

    def subscribe(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        self.revision += 1
        for listener in list(self._listeners):
            listener()

    def add(self, product: Product, variant: Variant | None = None, add_ons: Iterable[AddOn] = ()) -> CartLine:
        """Append a new line, or bump the quantity of the line with the same identity."""
        if not product.available or (variant is not None and not variant.available):
            raise ValidationError(f"{product.name} está agotado.")
        chosen_add_ons = tuple(add_ons)
        line_id = line_identity(product.product_id, variant.variant_id if variant else None, chosen_add_ons)
        existing = self.get(line_id)
        if existing is not None:
            if existing.at_stock_limit:
                logger.debug("cart_add_at_stock_limit", line_id=line_id, stock=existing.available_stock)
                return existing
            existing.quantity += 1
            self._changed()
            return existing

        base_price = variant.price if variant is not None and variant.price is not None else product.price
        line = CartLine(
            line_id=line_id,
            product_id=product.product_id,
            name=product.name,
            unit_price=base_price + sum((add_on.price for add_on in chosen_add_ons), Decimal(0)),
            variant_id=variant.variant_id if variant else None,
            variant_label=variant.name if variant else "",
            available_stock=_available_stock(product, variant),
            add_ons=chosen_add_ons,
        )
        self._lines.append(line)
        self._changed()
        return line

    def set_quantity(self, line_id: str, quantity: int) -> None:
        """Set a line's quantity, never below 1. Stock limits are the caller's concern."""
        line = self.get(line_id)
        if line is None:
            return
        line.quantity = max(1, int(quantity))
        self._changed()

    def can_increment(self, line_id: str) -> bool:
        line = self.get(line_id)
        return line is not None and not line.at_stock_limit

    def increment(self, line_id: str) -> bool:
        if not self.can_increment(line_id):
            return False
        line = self.get(line_id)
        assert line is not None
        self.set_quantity(line_id, line.quantity + 1)
        return True

    def decrement(self, line_id: str) -> None:
        line = self.get(line_id)
        if line is None:
            return
        self.set_quantity(line_id, line.quantity - 1)

    def remove(self, line_id: str) -> None:
        before = len(self._lines)
        self._lines = [line for line in self._lines if line.line_id != line_id]
        if len(self._lines) != before:
            self._changed()

    def set_note(self, line_id: str, text: str) -> None:
        line = self.get(line_id)
        if line is None:
            return
        line.note = text
        self._changed()

    def clear(self) -> None:
        self._lines = []
        self._changed()

    def load_from(self, lines: Iterable[CartLine | dict[str, Any]], replace: bool) -> None:
        """Load saved lines: replace the whole cart, or append to what is already there."""
        incoming = [normalize_incoming_line(raw) for raw in lines or []]
        if replace:
            self._lines = _merge_lines(incoming)
        else:
            self._lines = _merge_lines([*self._lines, *incoming])
        logger.debug("cart_loaded", incoming=len(incoming), replace=replace, lines=len(self._lines))
        self._changed()
