"""
Recipe cost roll-up.

A recipe's total cost is the sum of quantity * cost_per_unit over its
ingredient lines, rounded to cents once at the end. Line costs are the
snapshot taken when the line was written, never the live catalog price.
"""

from decimal import Decimal
from typing import Any, Iterable

from .base_service import round_money, to_decimal


def _line_value(line: Any, name: str) -> Decimal:
    value = line.get(name) if isinstance(line, dict) else getattr(line, name)
    return to_decimal(value, name)


def line_cost(quantity: Decimal, cost_per_unit: Decimal) -> Decimal:
    """Unrounded cost of one line."""
    return to_decimal(quantity, "quantity") * to_decimal(cost_per_unit, "cost_per_unit")


def rollup_cost(lines: Iterable[Any]) -> Decimal:
    total = sum(
        (line_cost(_line_value(line, "quantity"), _line_value(line, "cost_per_unit"))
         for line in lines),
        Decimal("0"),
    )
    return round_money(total)
