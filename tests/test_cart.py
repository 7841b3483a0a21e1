"""Tests for the in-memory cart."""

from decimal import Decimal

import pytest

from caja_pos.cart import CartStore, line_identity, normalize_incoming_line
from caja_pos.errors import ValidationError
from conftest import make_product


def test_adding_same_product_twice_merges_into_one_line(cart):
    product = make_product(price=3000)

    cart.add(product)
    cart.add(product)

    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == 2
    assert cart.total == Decimal(6000)


def test_different_variants_are_separate_lines(cart):
    product = make_product(
        variants=[
            {"_id": "v1", "nombre": "Grande", "precio": 4000},
            {"_id": "v2", "nombre": "Chica", "precio": 2500},
        ]
    )

    cart.add(product, product.variants[0])
    cart.add(product, product.variants[1])

    assert [line.line_id for line in cart.lines] == ["p1-v1", "p1-v2"]
    assert [line.unit_price for line in cart.lines] == [Decimal(4000), Decimal(2500)]
    assert [line.variant_label for line in cart.lines] == ["Grande", "Chica"]


def test_add_on_order_does_not_change_identity(cart):
    product = make_product(
        add_ons=[
            {"_id": "a1", "nombre": "Queso", "precio": 500},
            {"_id": "a2", "nombre": "Palta", "precio": 700},
        ]
    )
    cheese, avocado = product.add_ons

    cart.add(product, add_ons=[cheese, avocado])
    cart.add(product, add_ons=[avocado, cheese])

    assert len(cart.lines) == 1
    assert cart.lines[0].line_id == "p1-base+a1+a2"
    assert cart.lines[0].quantity == 2
    assert cart.lines[0].unit_price == Decimal(4200)


def test_inactive_add_ons_are_not_offered():
    product = make_product(
        add_ons=[
            {"_id": "a1", "nombre": "Queso", "precio": 500},
            {"_id": "a2", "nombre": "Palta", "precio": 700, "activo": False},
            {"_id": "a3", "precio": 100},
        ]
    )

    assert [add_on.name for add_on in product.add_ons] == ["Queso"]


@pytest.mark.parametrize("quantity", [0, -3])
def test_set_quantity_never_goes_below_one(cart, quantity):
    line = cart.add(make_product())

    cart.set_quantity(line.line_id, quantity)

    assert cart.get(line.line_id).quantity == 1


def test_set_quantity_on_unknown_line_is_ignored(cart):
    cart.add(make_product())
    revision = cart.revision

    cart.set_quantity("missing", 5)

    assert cart.revision == revision


def test_merge_add_stops_at_known_stock(cart):
    product = make_product(stock=2)

    for _ in range(3):
        cart.add(product)

    assert cart.lines[0].quantity == 2
    assert cart.lines[0].at_stock_limit


def test_increment_refused_at_stock_and_decrement_floors_at_one(cart):
    line = cart.add(make_product(stock=2))

    assert cart.increment(line.line_id) is True
    assert cart.increment(line.line_id) is False
    assert cart.get(line.line_id).quantity == 2

    cart.decrement(line.line_id)
    cart.decrement(line.line_id)

    assert cart.get(line.line_id).quantity == 1


def test_variant_stock_takes_precedence(cart):
    product = make_product(stock=10, variants=[{"_id": "v1", "nombre": "Grande", "stock": 1}])

    line = cart.add(product, product.variants[0])

    assert line.available_stock == 1
    assert not cart.can_increment(line.line_id)


def test_sold_out_product_cannot_be_added(cart):
    with pytest.raises(ValidationError):
        cart.add(make_product(stock=0))

    product = make_product(variants=[{"_id": "v1", "nombre": "Grande", "stock": 0}])
    assert not product.available
    with pytest.raises(ValidationError):
        cart.add(product, product.variants[0])

    assert cart.is_empty


def test_remove_and_note(cart):
    first = cart.add(make_product("p1"))
    second = cart.add(make_product("p2", name="Bebida", price=1500))

    cart.set_note(second.line_id, "sin hielo")
    cart.remove(first.line_id)

    assert [line.line_id for line in cart.lines] == [second.line_id]
    assert cart.lines[0].note == "sin hielo"


def test_every_mutation_bumps_revision_and_notifies(cart):
    seen = []
    cart.subscribe(lambda: seen.append(cart.revision))

    line = cart.add(make_product())
    cart.increment(line.line_id)
    cart.set_note(line.line_id, "x")
    cart.clear()

    assert seen == [1, 2, 3, 4]


def _held_lines():
    return [
        {"productoId": "p2", "nombre": "Bebida", "precio_unitario": 1500, "cantidad": 2},
        {"productoId": "p1", "nombre": "Empanada", "precio_unitario": 3000, "cantidad": 1, "observacion": "bien cocida"},
    ]


def test_load_from_replace_discards_current_lines(cart):
    cart.add(make_product("p9", name="Café", price=2000))

    cart.load_from(_held_lines(), replace=True)

    assert [line.product_id for line in cart.lines] == ["p2", "p1"]
    assert cart.total == Decimal(6000)


def test_load_from_append_keeps_current_lines_and_merges_duplicates(cart):
    cart.add(make_product("p1", price=3000))
    cart.add(make_product("p9", name="Café", price=2000))

    cart.load_from(_held_lines(), replace=False)

    assert [line.product_id for line in cart.lines] == ["p1", "p9", "p2"]
    assert cart.get("p1-base").quantity == 2
    assert cart.get("p1-base").note == "bien cocida"


def test_normalize_incoming_line_price_fallback():
    line = normalize_incoming_line({"productoId": "p1", "nombre": "X", "precio": None, "precio_unitario": 900})

    assert line.unit_price == Decimal(900)
    assert line.quantity == 1
    assert line.line_id == line_identity("p1", None)


def test_normalize_incoming_line_keeps_variant_and_add_ons():
    line = normalize_incoming_line(
        {
            "productoId": "p1",
            "nombre": "Pizza",
            "precio": 8000,
            "cantidad": "3",
            "varianteId": "v2",
            "varianteNombre": "Familiar",
            "agregados": [{"agregadoId": "a1", "nombre": "Aceitunas", "precio": 500}],
            "nota": "cortada",
        }
    )

    assert line.line_id == "p1-v2+a1"
    assert line.quantity == 3
    assert line.variant_label == "Familiar"
    assert line.note == "cortada"
    assert line.add_ons[0].name == "Aceitunas"


def test_lines_returns_a_copy():
    cart = CartStore()
    cart.add(make_product())

    cart.lines.clear()

    assert len(cart) == 1
