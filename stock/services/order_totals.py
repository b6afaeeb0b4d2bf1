"""
Purchase-order totals.

    subtotal   = round(sum(quantity * unit_price), 2)
    discounted = subtotal - discount_amount
    tax_amount = round(discounted * TAX_RATE, 2)
    total      = discounted + tax_amount + shipping_cost

Everything is computed in Decimal with ROUND_HALF_UP.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable

from .base_service import ValidationError, round_money, to_decimal

TAX_RATE = Decimal("0.22")


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "shipping_cost": self.shipping_cost,
            "total": self.total,
        }


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return round_money(to_decimal(quantity, "quantity") * to_decimal(unit_price, "unit_price"))


def _item_value(item: Any, name: str) -> Any:
    return item.get(name) if isinstance(item, dict) else getattr(item, name)


def clean_adjustment(value: Any, field: str) -> Decimal:
    """Discount or shipping: optional, non-negative, in cents."""
    amount = round_money(to_decimal(value, field, Decimal("0")))
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field)
    return amount


def calculate_order_totals(items: Iterable[Any],
                           discount_amount: Any = Decimal("0"),
                           shipping_cost: Any = Decimal("0")) -> OrderTotals:
    """
    Items may be dicts or PurchaseOrderItem rows; only quantity and
    unit_price are read. A caller-supplied total_price is ignored.
    """
    discount = clean_adjustment(discount_amount, "discount_amount")
    shipping = clean_adjustment(shipping_cost, "shipping_cost")

    exact = sum(
        (to_decimal(_item_value(item, "quantity"), "quantity")
         * to_decimal(_item_value(item, "unit_price"), "unit_price")
         for item in items),
        Decimal("0"),
    )
    subtotal = round_money(exact)
    if discount > subtotal:
        raise ValidationError("discount_amount cannot exceed the subtotal", "discount_amount")
    discounted = subtotal - discount
    tax_amount = round_money(discounted * TAX_RATE)

    return OrderTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax_amount,
        shipping_cost=shipping,
        total=discounted + tax_amount + shipping,
    )
