"""Cart behaviour against an in-memory catalog (no database)."""

from types import SimpleNamespace

import pytest

from poscore.services.cart import Cart
from poscore.services.errors import InsufficientStock, InvalidRequest, NotFound
from poscore.services.policies import RatePricingPolicy


@pytest.fixture
def catalog():
    return {
        "12345678": SimpleNamespace(sku="12345678", name="USB Cable", selling_price_cents=100, stock_qty=10),
        "MSE-002": SimpleNamespace(sku="MSE-002", name="Wireless Mouse", selling_price_cents=999, stock_qty=2),
    }


@pytest.fixture
def cart(catalog):
    return Cart(lookup=catalog.get)


def _snapshot(cart):
    return [(line.sku, line.quantity, line.unit_price_cents) for line in cart.lines]


def test_add_line_captures_current_price(cart):
    line = cart.add_line("12345678")

    assert len(cart) == 1
    assert line.quantity == 1
    assert line.unit_price_cents == 100
    assert line.name == "USB Cable"


def test_rescan_increments_existing_line(cart):
    cart.add_line("12345678", 1)
    cart.add_line("12345678", 1)

    assert len(cart) == 1
    assert cart.get_line("12345678").quantity == 2


def test_rescan_keeps_original_price(cart, catalog):
    cart.add_line("12345678")
    catalog["12345678"].selling_price_cents = 150

    cart.add_line("12345678")

    assert cart.get_line("12345678").unit_price_cents == 100


def test_no_duplicate_lines_after_many_adds(cart):
    for sku in ["12345678", "MSE-002", "12345678", "12345678", "MSE-002"]:
        cart.add_line(sku)

    skus = [line.sku for line in cart.lines]
    assert sorted(skus) == ["12345678", "MSE-002"]
    assert cart.get_line("12345678").quantity == 3


def test_add_beyond_stock_counts_existing_quantity(cart):
    cart.add_line("MSE-002", 2)
    before = _snapshot(cart)

    with pytest.raises(InsufficientStock) as exc_info:
        cart.add_line("MSE-002", 1)

    assert exc_info.value.details["requested_quantity"] == 3
    assert exc_info.value.details["available"] == 2
    assert _snapshot(cart) == before


def test_add_new_line_beyond_stock_leaves_cart_unchanged(cart):
    cart.add_line("12345678")
    before = _snapshot(cart)

    with pytest.raises(InsufficientStock):
        cart.add_line("MSE-002", 3)

    assert _snapshot(cart) == before
    assert "MSE-002" not in cart


def test_stock_is_reread_on_every_add(cart, catalog):
    cart.add_line("12345678", 5)
    catalog["12345678"].stock_qty = 5

    with pytest.raises(InsufficientStock):
        cart.add_line("12345678", 1)


def test_unknown_code_leaves_cart_unchanged(cart):
    cart.add_line("12345678")

    with pytest.raises(NotFound) as exc_info:
        cart.add_line("ZZZ999")

    assert exc_info.value.details == {"code": "ZZZ999"}
    assert len(cart) == 1


@pytest.mark.parametrize("bad_quantity", [0, -1, "1.5", 2.0, True, None])
def test_add_rejects_invalid_quantity(cart, bad_quantity):
    with pytest.raises(InvalidRequest):
        cart.add_line("12345678", bad_quantity)
    assert cart.is_empty()


def test_update_line_qty_sets_quantity(cart):
    cart.add_line("12345678")

    cart.update_line_qty("12345678", 7)

    assert cart.get_line("12345678").quantity == 7


def test_update_line_qty_zero_removes_line(cart):
    cart.add_line("12345678")

    assert cart.update_line_qty("12345678", 0) is None
    assert cart.is_empty()


def test_update_line_qty_beyond_stock_fails(cart):
    cart.add_line("MSE-002")

    with pytest.raises(InsufficientStock):
        cart.update_line_qty("MSE-002", 3)

    assert cart.get_line("MSE-002").quantity == 1


def test_update_line_not_in_cart(cart):
    with pytest.raises(NotFound):
        cart.update_line_qty("12345678", 1)


def test_remove_and_clear_are_unconditional(cart):
    cart.add_line("12345678")
    cart.add_line("MSE-002")

    cart.remove_line("12345678")
    cart.remove_line("not-there")
    assert [line.sku for line in cart.lines] == ["MSE-002"]

    cart.clear()
    assert cart.is_empty()


def test_lines_keep_insertion_order(cart):
    cart.add_line("MSE-002")
    cart.add_line("12345678")
    cart.add_line("MSE-002")

    assert [line.sku for line in cart.lines] == ["MSE-002", "12345678"]


def test_totals_recomputed_after_each_mutation(cart):
    cart.add_line("12345678", 2)
    assert cart.totals().total_cents == 200

    cart.add_line("MSE-002")
    assert cart.totals().subtotal_cents == 1199

    cart.update_line_qty("12345678", 0)
    assert cart.totals().total_cents == 999


def test_totals_with_rate_policy(cart):
    cart.add_line("12345678", 10)  # 1000

    totals = cart.totals(RatePricingPolicy(discount_bps=1000, tax_bps=1800))

    assert totals.subtotal_cents == 1000
    assert totals.discount_cents == 100
    assert totals.tax_cents == 162
    assert totals.total_cents == 1062


def test_override_unit_price(cart):
    cart.add_line("12345678", 2)

    cart.override_unit_price("12345678", 80)

    assert cart.totals().total_cents == 160
    with pytest.raises(InvalidRequest):
        cart.override_unit_price("12345678", -1)
