from decimal import Decimal
from types import SimpleNamespace

import pytest

from stock.services import TAX_RATE, OrderTotals, ValidationError, calculate_order_totals, line_total


ITEMS = [
    {"quantity": "10", "unit_price": "2.00"},
    {"quantity": "5", "unit_price": "4.00"},
]


def test_tax_rate_is_twenty_two_percent():
    assert TAX_RATE == Decimal("0.22")


def test_totals_with_discount_and_shipping():
    totals = calculate_order_totals(ITEMS, discount_amount="5.00", shipping_cost="3.00")

    assert totals == OrderTotals(
        subtotal=Decimal("40.00"),
        discount_amount=Decimal("5.00"),
        tax_amount=Decimal("7.70"),
        shipping_cost=Decimal("3.00"),
        total=Decimal("45.70"),
    )


def test_adjustments_default_to_zero():
    totals = calculate_order_totals(ITEMS)

    assert totals.discount_amount == Decimal("0.00")
    assert totals.shipping_cost == Decimal("0.00")
    assert totals.tax_amount == Decimal("8.80")
    assert totals.total == Decimal("48.80")


def test_total_matches_the_invariant():
    totals = calculate_order_totals(
        [{"quantity": "3.333", "unit_price": "1.17"}, {"quantity": "0.5", "unit_price": "9.99"}],
        discount_amount="1.10",
        shipping_cost="4.25",
    )
    discounted = totals.subtotal - totals.discount_amount

    assert totals.tax_amount == (discounted * TAX_RATE).quantize(Decimal("0.01"))
    assert totals.total == discounted + totals.tax_amount + totals.shipping_cost


def test_subtotal_rounds_the_exact_sum_once():
    # 3 * 0.335 = 1.005 each; rounding per line would give 1.01 * 3 = 3.03
    items = [{"quantity": "3", "unit_price": "0.335"}] * 3

    assert calculate_order_totals(items).subtotal == Decimal("3.02")


def test_half_up_rounding_of_tax():
    # 0.25 * 0.22 = 0.055 -> 0.06
    totals = calculate_order_totals([{"quantity": "1", "unit_price": "0.25"}])

    assert totals.tax_amount == Decimal("0.06")


def test_recomputation_is_idempotent():
    first = calculate_order_totals(ITEMS, "5", "3")
    second = calculate_order_totals(ITEMS, "5", "3")

    assert first == second


def test_caller_total_price_is_ignored():
    items = [{"quantity": "2", "unit_price": "3.00", "total_price": "999.99"}]

    assert calculate_order_totals(items).subtotal == Decimal("6.00")


def test_accepts_model_like_rows():
    rows = [SimpleNamespace(quantity=Decimal("10"), unit_price=Decimal("2.00"))]

    assert calculate_order_totals(rows).subtotal == Decimal("20.00")


@pytest.mark.parametrize("field", ["discount_amount", "shipping_cost"])
def test_negative_adjustments_are_rejected(field):
    with pytest.raises(ValidationError) as exc:
        calculate_order_totals(ITEMS, **{field: "-1"})
    assert exc.value.field == field


def test_discount_cannot_exceed_subtotal():
    with pytest.raises(ValidationError):
        calculate_order_totals(ITEMS, discount_amount="40.01")


def test_non_numeric_quantity_is_a_validation_error():
    with pytest.raises(ValidationError):
        calculate_order_totals([{"quantity": "ten", "unit_price": "1"}])


def test_line_total():
    assert line_total("2.5", "1.99") == Decimal("4.98")
    assert line_total(Decimal("0.333"), Decimal("3")) == Decimal("1.00")
